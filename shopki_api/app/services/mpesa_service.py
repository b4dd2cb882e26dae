"""
Safaricom Daraja (Lipa Na M-Pesa Online) integration.

Implements the three calls the checkout needs: an OAuth client
credentials token, the STK push request and the STK push status query,
plus parsing of the callback Safaricom posts when the customer approves
or rejects the push.

The STK password is ``base64(short_code + passkey + timestamp)`` with a
``YYYYMMDDHHMMSS`` timestamp.
"""

import base64
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from shopki_api.app.core import http
from shopki_api.app.core.config import is_configured, settings
from shopki_api.app.core.exceptions import ProviderError, ProviderNotConfiguredError


logger = logging.getLogger(__name__)

ACCOUNT_REFERENCE_PREFIX = "SHOPKI-"
DEFAULT_DESCRIPTION = "Shopki Order Payment"


def mpesa_timestamp(moment: Optional[datetime] = None) -> str:
    return (moment or datetime.now(timezone.utc)).strftime("%Y%m%d%H%M%S")


def mpesa_password(short_code: str, passkey: str, timestamp: str) -> str:
    return base64.b64encode(f"{short_code}{passkey}{timestamp}".encode("utf-8")).decode("ascii")


def callback_items(callback: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten ``CallbackMetadata.Item`` into a name -> value mapping."""
    metadata = callback.get("CallbackMetadata") or {}
    items = metadata.get("Item") or []
    return {item.get("Name"): item.get("Value") for item in items if isinstance(item, dict) and item.get("Name")}


def order_id_from_reference(reference: Any) -> Optional[str]:
    """Recover the order id from an ``SHOPKI-{orderId}`` account reference."""
    if reference is None:
        return None
    reference = str(reference)
    if reference.startswith(ACCOUNT_REFERENCE_PREFIX):
        reference = reference[len(ACCOUNT_REFERENCE_PREFIX):]
    return reference or None


class MpesaService:
    """Client for the Daraja API."""

    @classmethod
    def is_configured(cls) -> bool:
        return is_configured(settings.mpesa_consumer_key)

    @classmethod
    def _require_configured(cls) -> None:
        if not cls.is_configured():
            raise ProviderNotConfiguredError("M-Pesa payment not configured. Please contact admin.")

    @classmethod
    async def get_access_token(cls) -> str:
        """Fetch an OAuth access token with HTTP Basic client credentials."""
        cls._require_configured()
        credentials = f"{settings.mpesa_consumer_key}:{settings.mpesa_consumer_secret}"
        auth = base64.b64encode(credentials.encode("utf-8")).decode("ascii")
        data = await http.request_json(
            "GET",
            f"{settings.mpesa_base_url}/oauth/v1/generate",
            "M-Pesa",
            params={"grant_type": "client_credentials"},
            headers={"Authorization": f"Basic {auth}"},
        )
        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise ProviderError("M-Pesa did not return an access token", status_code=502, payload=data)
        return token

    @classmethod
    async def initiate_stk_push(
        cls,
        phone_number: str,
        amount: float,
        order_id: str,
        account_reference: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Send an STK push to the customer's phone.

        Returns the Daraja response.  A ``ResponseCode`` other than
        ``"0"`` is raised as ``ProviderError`` with status 400.
        """
        token = await cls.get_access_token()
        timestamp = mpesa_timestamp()
        payload = {
            "BusinessShortCode": settings.mpesa_short_code,
            "Password": mpesa_password(settings.mpesa_short_code, settings.mpesa_passkey, timestamp),
            "Timestamp": timestamp,
            "TransactionType": "CustomerPayBillOnline",
            "Amount": round(amount),
            "PartyA": phone_number,
            "PartyB": settings.mpesa_short_code,
            "PhoneNumber": phone_number,
            "CallBackURL": settings.mpesa_callback_url,
            "AccountReference": account_reference or f"{ACCOUNT_REFERENCE_PREFIX}{order_id}",
            "TransactionDesc": description or DEFAULT_DESCRIPTION,
        }
        logger.info("Initiating M-Pesa STK push for order %s (amount %s)", order_id, payload["Amount"])
        result = await http.request_json(
            "POST",
            f"{settings.mpesa_base_url}/mpesa/stkpush/v1/processrequest",
            "M-Pesa",
            json=payload,
            headers={"Authorization": f"Bearer {token}"},
        )
        if str(result.get("ResponseCode")) != "0":
            message = result.get("ResponseDescription") or "Failed to initiate M-Pesa payment"
            logger.warning("M-Pesa STK push rejected for order %s: %s", order_id, message)
            raise ProviderError(message, status_code=400, payload=result)
        return result

    @classmethod
    async def query_stk_status(cls, checkout_request_id: str) -> Dict[str, Any]:
        """Query the result of an STK push.

        ``status`` is ``completed`` when ``ResultCode`` is ``"0"``,
        ``pending`` while Daraja has no result yet and ``failed`` for any
        other result code.
        """
        token = await cls.get_access_token()
        timestamp = mpesa_timestamp()
        payload = {
            "BusinessShortCode": settings.mpesa_short_code,
            "Password": mpesa_password(settings.mpesa_short_code, settings.mpesa_passkey, timestamp),
            "Timestamp": timestamp,
            "CheckoutRequestID": checkout_request_id,
        }
        try:
            result = await http.request_json(
                "POST",
                f"{settings.mpesa_base_url}/mpesa/stkpushquery/v1/query",
                "M-Pesa",
                json=payload,
                headers={"Authorization": f"Bearer {token}"},
            )
        except ProviderError as e:
            # Daraja answers an error status while the push is still being processed.
            if not isinstance(e.payload, dict) or not e.payload:
                raise
            logger.info("M-Pesa status query for %s answered %s: %s", checkout_request_id, e.status_code, e)
            result = e.payload
        result_code = result.get("ResultCode")
        if result_code is None or result_code == "":
            status = "pending"
        elif str(result_code) == "0":
            status = "completed"
        else:
            status = "failed"
        return {
            "success": str(result.get("ResponseCode")) == "0",
            "status": status,
            "data": result,
        }

    @classmethod
    def parse_callback(cls, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Extract the fields of an STK callback.

        Returns ``None`` when the payload carries no ``Body.stkCallback``.
        """
        body = payload.get("Body") if isinstance(payload, dict) else None
        callback = body.get("stkCallback") if isinstance(body, dict) else None
        if not isinstance(callback, dict):
            return None
        items = callback_items(callback)
        checkout_request_id = callback.get("CheckoutRequestID")
        result_code = callback.get("ResultCode")
        try:
            result_code = int(result_code)
        except (TypeError, ValueError):
            pass
        return {
            "result_code": result_code,
            "result_desc": callback.get("ResultDesc"),
            "checkout_request_id": checkout_request_id,
            "merchant_request_id": callback.get("MerchantRequestID"),
            "order_id": order_id_from_reference(items.get("AccountReference")),
            "receipt_number": items.get("MpesaReceiptNumber"),
            "amount": items.get("Amount"),
            "phone": items.get("PhoneNumber"),
            "raw": callback,
        }
