"""
Lipana M-Pesa aggregator integration.

Lipana accepts an STK push request authenticated with the secret key in
the ``x-api-key`` header and later posts a signed webhook with the
result.  This module formats the request, parses the response and
normalises the many shapes a webhook payload can take.
"""

import logging
import re
from typing import Any, Dict, Optional

from shopki_api.app.core import http
from shopki_api.app.core.config import is_configured, settings
from shopki_api.app.core.db import now_iso
from shopki_api.app.core.exceptions import ProviderError, ProviderNotConfiguredError


logger = logging.getLogger(__name__)

MIN_AMOUNT = 10
MAX_AMOUNT = 150000

INSTRUCTIONS = "Please enter your M-Pesa PIN on your phone to complete the payment."
NEXT_STEPS = "Payment confirmation will be processed automatically."
RECOVERY_OPTIONS = [
    "Verify your phone number format (should start with 07 or 254)",
    "Ensure the amount is between 10-150000 KES",
    "Check that your phone has active M-Pesa service",
    "Try again in a few moments",
]

COMPLETED_TOKENS = {"success", "succeeded", "successful", "completed", "complete", "paid", "ok"}
FAILED_TOKENS = {"failed", "failure", "fail", "error", "declined", "cancel", "cancelled", "canceled", "rejected"}
PENDING_TOKENS = {"pending", "processing", "waiting", "initiated"}

_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")


def format_phone(phone: str) -> str:
    """Normalise a Kenyan phone number to ``+254...``."""
    phone = phone.strip().replace(" ", "")
    if phone.startswith("07"):
        return "+254" + phone[1:]
    if phone.startswith("254"):
        return "+" + phone
    if not phone.startswith("+254"):
        return "+254" + phone
    return phone


def validate_amount(amount: float) -> int:
    """Return the amount as whole shillings or raise ``ValueError``."""
    value = int(amount)
    if value < MIN_AMOUNT or value > MAX_AMOUNT:
        raise ValueError(f"Amount must be between {MIN_AMOUNT} and {MAX_AMOUNT} KES")
    return value


def _payload_data(payload: Dict[str, Any]) -> Dict[str, Any]:
    data = payload.get("data")
    return data if isinstance(data, dict) else payload


def normalize_status(payload: Dict[str, Any]) -> str:
    """Map a webhook payload to ``completed``, ``failed``, ``pending`` or ``unknown``.

    The ``event`` (or ``type``) field wins, e.g. ``transaction.success``;
    otherwise ``data.status``/``result``/``state`` or the top-level
    ``status`` is used.  The value is split into words so that e.g.
    ``unpaid`` does not count as paid.
    """
    data = _payload_data(payload)
    raw = payload.get("event") or payload.get("type")
    if not raw:
        raw = data.get("status") or data.get("result") or data.get("state") or payload.get("status") or ""
    tokens = set(_TOKEN_SPLIT.split(str(raw).lower()))
    if tokens & COMPLETED_TOKENS:
        return "completed"
    if tokens & FAILED_TOKENS:
        return "failed"
    if tokens & PENDING_TOKENS:
        return "pending"
    return "unknown"


def extract_identifiers(payload: Dict[str, Any]) -> Dict[str, Optional[str]]:
    """Pull the order id, transaction id and checkout request id out of a webhook."""
    data = _payload_data(payload)
    metadata = data.get("metadata") or data.get("meta") or {}
    if not isinstance(metadata, dict):
        metadata = {}
    order_id = metadata.get("orderId") or metadata.get("order_id") or metadata.get("order")
    transaction_id = data.get("id") or data.get("transactionId") or data.get("txnId") or data.get("transaction_id")
    checkout_request_id = (
        data.get("checkoutRequestID")
        or data.get("checkoutRequestId")
        or data.get("checkout_request_id")
        or data.get("CheckoutRequestID")
    )
    return {
        "order_id": str(order_id) if order_id else None,
        "transaction_id": str(transaction_id) if transaction_id else None,
        "checkout_request_id": str(checkout_request_id) if checkout_request_id else None,
    }


class LipanaService:
    """Client for the Lipana transactions API."""

    @classmethod
    def is_configured(cls) -> bool:
        return is_configured(settings.lipana_secret_key)

    @classmethod
    async def initiate_stk_push(cls, phone: str, amount: float, order_id: Optional[str] = None) -> Dict[str, Any]:
        """Request an STK push and build the response returned to the storefront.

        Raises
        ------
        ValueError
            The amount is outside the accepted range.
        ProviderNotConfiguredError
            ``LIPANA_SECRET_KEY`` is not set.
        ProviderError
            Lipana rejected the request; ``status_code`` is Lipana's.
        """
        value = validate_amount(amount)
        if not cls.is_configured():
            raise ProviderNotConfiguredError("Lipana API key not configured. Please check backend/.env")
        formatted_phone = format_phone(phone)
        logger.info("Calling Lipana STK push for order %s (amount %s)", order_id, value)
        try:
            result = await http.request_json(
                "POST",
                f"{settings.lipana_base_url}/v1/transactions/push-stk",
                "Lipana",
                json={"phone": formatted_phone, "amount": value},
                headers={"x-api-key": settings.lipana_secret_key},
            )
        except ProviderError as exc:
            logger.error("Lipana STK push failed for order %s: %s", order_id, exc)
            raise
        if not isinstance(result, dict) or not result.get("success"):
            message = http.error_message(result, "Failed to initiate Lipana STK push")
            logger.error("Lipana STK push rejected for order %s: %s", order_id, message)
            raise ProviderError(message, status_code=502, payload=result)

        data = result.get("data") or {}
        transaction_id = data.get("transactionId")
        checkout_request_id = data.get("checkoutRequestID")
        logger.info("Lipana STK push accepted: transaction %s", transaction_id)
        return {
            "success": True,
            "transactionId": transaction_id,
            "checkoutRequestID": checkout_request_id,
            "message": data.get("message") or "STK push initiated successfully",
            "orderId": order_id,
            "transaction": {
                "id": transaction_id,
                "checkoutRequestId": checkout_request_id,
                "orderId": order_id,
                "amount": value,
                "phone": formatted_phone,
                "status": "pending",
                "timestamp": now_iso(),
                "expiresIn": settings.payment_window_seconds * 1000,
            },
            "instructions": INSTRUCTIONS,
            "nextSteps": NEXT_STEPS,
            "raw": data,
        }
