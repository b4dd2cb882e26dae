"""
Card payments through PayPal and Stripe.

Both providers are called over their REST APIs with ``httpx``.  The
storefront completes the payment in the provider's widget; the backend
only creates and captures PayPal orders and creates and retrieves
Stripe payment intents.
"""

import base64
import logging
from typing import Any, Dict

from shopki_api.app.core import http
from shopki_api.app.core.config import is_configured, settings
from shopki_api.app.core.exceptions import ProviderError, ProviderNotConfiguredError


logger = logging.getLogger(__name__)

PAYPAL_LIVE_URL = "https://api-m.paypal.com"
PAYPAL_SANDBOX_URL = "https://api-m.sandbox.paypal.com"
STRIPE_URL = "https://api.stripe.com/v1"


class PaypalService:
    """Create and capture PayPal checkout orders."""

    @classmethod
    def base_url(cls) -> str:
        return PAYPAL_LIVE_URL if settings.paypal_mode == "live" else PAYPAL_SANDBOX_URL

    @classmethod
    def is_configured(cls) -> bool:
        return is_configured(settings.paypal_client_id) and is_configured(settings.paypal_client_secret)

    @classmethod
    async def get_access_token(cls) -> str:
        if not cls.is_configured():
            raise ProviderNotConfiguredError("PayPal credentials not configured")
        credentials = f"{settings.paypal_client_id}:{settings.paypal_client_secret}"
        auth = base64.b64encode(credentials.encode("utf-8")).decode("ascii")
        data = await http.request_json(
            "POST",
            f"{cls.base_url()}/v1/oauth2/token",
            "PayPal",
            data={"grant_type": "client_credentials"},
            headers={"Authorization": f"Basic {auth}"},
        )
        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise ProviderError("PayPal did not return an access token", status_code=502, payload=data)
        return token

    @classmethod
    async def create_order(cls, amount: float) -> Dict[str, Any]:
        """Create a ``CAPTURE`` order for ``amount`` in the configured currency."""
        token = await cls.get_access_token()
        data = await http.request_json(
            "POST",
            f"{cls.base_url()}/v2/checkout/orders",
            "PayPal",
            json={
                "intent": "CAPTURE",
                "purchase_units": [
                    {"amount": {"currency_code": settings.paypal_currency, "value": f"{amount:.2f}"}}
                ],
            },
            headers={"Authorization": f"Bearer {token}"},
        )
        logger.info("PayPal order %s created", data.get("id"))
        return {"orderID": data.get("id"), "data": data}

    @classmethod
    async def capture_order(cls, order_id: str) -> Dict[str, Any]:
        token = await cls.get_access_token()
        data = await http.request_json(
            "POST",
            f"{cls.base_url()}/v2/checkout/orders/{order_id}/capture",
            "PayPal",
            json={},
            headers={"Authorization": f"Bearer {token}"},
        )
        logger.info("PayPal order %s captured: %s", order_id, data.get("status"))
        return data


class StripeService:
    """Create and retrieve Stripe payment intents."""

    @classmethod
    def is_configured(cls) -> bool:
        return is_configured(settings.stripe_secret_key)

    @classmethod
    def _headers(cls) -> Dict[str, str]:
        if not cls.is_configured():
            raise ProviderNotConfiguredError("Stripe secret key not configured")
        return {"Authorization": f"Bearer {settings.stripe_secret_key}"}

    @classmethod
    async def create_intent(cls, amount: float, order_id: str) -> Dict[str, Any]:
        """Create a payment intent; ``amount`` is in the currency's smallest unit."""
        headers = cls._headers()
        data = await http.request_json(
            "POST",
            f"{STRIPE_URL}/payment_intents",
            "Stripe",
            data={
                "amount": str(int(amount)),
                "currency": settings.stripe_currency.lower(),
                "metadata[orderId]": order_id,
            },
            headers=headers,
        )
        logger.info("Stripe payment intent %s created for order %s", data.get("id"), order_id)
        return {"clientSecret": data.get("client_secret"), "intentId": data.get("id")}

    @classmethod
    async def retrieve_intent(cls, intent_id: str) -> Dict[str, Any]:
        headers = cls._headers()
        return await http.request_json("GET", f"{STRIPE_URL}/payment_intents/{intent_id}", "Stripe", headers=headers)
