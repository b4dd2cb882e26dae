"""
Pydantic models for orders.

An order is created by the checkout page with its line items and
shipping details.  Totals, statuses and payment fields are computed and
maintained by the backend and are read-only for clients.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


ORDER_STATUSES = ("pending", "processing", "shipped", "completed", "cancelled", "returned")

OrderStatus = Literal["pending", "processing", "shipped", "completed", "cancelled", "returned"]


class OrderItem(BaseModel):
    product_id: str = Field(..., min_length=1, examples=["b1f4c0"])
    name: str = Field(..., min_length=1, examples=["Maasai shuka"])
    price: float = Field(..., ge=0, examples=[1500.0])
    quantity: int = Field(1, ge=1, examples=[2])


class ShippingInfo(BaseModel):
    full_name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    county: str = Field(..., min_length=1)
    postal_code: Optional[str] = None


class OrderCreate(BaseModel):
    """Schema for placing an order at checkout."""

    user_id: str = Field(..., min_length=1)
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    items: List[OrderItem] = Field(..., min_length=1)
    shipping_info: ShippingInfo
    payment_method: str = Field("mpesa", examples=["mpesa", "paypal", "card"])


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderRead(BaseModel):
    id: str
    user_id: str
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    items: List[OrderItem]
    shipping_info: Optional[ShippingInfo] = None
    payment_method: str
    subtotal: float
    shipping_fee: float
    total: float
    status: str
    payment_status: str
    checkout_request_id: Optional[str] = None
    transaction_id: Optional[str] = None
    payment_id: Optional[str] = None
    transaction: Optional[Dict[str, Any]] = None
    payment_error: Optional[str] = None
    payment_initiated_at: Optional[str] = None
    stock_reduced: bool = False
    created_at: str
    updated_at: str


class PaymentStatusRead(BaseModel):
    """Snapshot used by the client to drive its payment polling loop."""

    order_id: str
    status: str
    payment_status: str
    payment_initiated_at: Optional[str] = None
    expires_at: Optional[str] = None
    seconds_remaining: Optional[int] = None
    transaction_id: Optional[str] = None
    payment_error: Optional[str] = None


class ExpireRequest(BaseModel):
    force: bool = False
