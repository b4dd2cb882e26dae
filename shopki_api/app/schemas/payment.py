"""
Pydantic models for the payment proxy routes.

Field names follow the storefront's request bodies (camelCase), so the
models declare aliases and accept either spelling.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field


class _Request(BaseModel):
    model_config = {"populate_by_name": True}


class MpesaInitiateRequest(_Request):
    phone_number: str = Field(..., alias="phoneNumber", min_length=1, examples=["254712345678"])
    amount: float = Field(..., alias="amount", gt=0)
    order_id: str = Field(..., alias="orderId", min_length=1)
    account_reference: Optional[str] = Field(None, alias="accountReference")
    description: Optional[str] = None


class LipanaStkRequest(_Request):
    phone: str = Field(..., min_length=1, examples=["0712345678"])
    amount: float = Field(..., gt=0)
    order_id: Optional[str] = Field(None, alias="orderId")


class ReconcileRequest(_Request):
    transaction_id: str = Field(..., alias="transactionId", min_length=1)
    status: Literal["completed", "failed", "pending"] = "completed"


class PaypalCreateRequest(_Request):
    amount: float = Field(..., gt=0)


class PaypalCaptureRequest(_Request):
    order_id: str = Field(..., alias="orderID", min_length=1)


class StripeIntentRequest(_Request):
    amount: float = Field(..., gt=0)
    order_id: str = Field(..., alias="orderId", min_length=1)


class StripeConfirmRequest(_Request):
    intent_id: str = Field(..., alias="intentId", min_length=1)
