"""
Customer and vendor notifications.

Builds template variables for orders, renders the matching email
template and hands the result to ``EmailService``.  ``notify`` raises
provider errors to its caller (the notification routes report them);
the ``send_order_*`` helpers are best effort and only log failures, as
they run after the order document has already been updated.
"""

import html
import logging
from typing import Any, Dict, Mapping, Optional

from shopki_api.app.core.config import settings
from shopki_api.app.core.exceptions import ProviderError
from shopki_api.app.services.email_service import EmailService
from shopki_api.app.services.email_templates import EmailTemplateService


logger = logging.getLogger(__name__)

STATUS_MESSAGES: Dict[str, Dict[str, str]] = {
    "pending": {
        "subject": "Order Confirmed - Pending Processing",
        "message": "Your order has been confirmed and is pending processing.",
    },
    "processing": {
        "subject": "Order Processing",
        "message": "Your order is now being processed and will be shipped soon.",
    },
    "shipped": {
        "subject": "Order Shipped",
        "message": "Your order has been shipped! Track your package now.",
    },
    "completed": {
        "subject": "Order Delivered",
        "message": "Your order has been delivered! Thank you for your purchase.",
    },
    "cancelled": {
        "subject": "Order Cancelled",
        "message": "Your order has been cancelled. If you have any questions, please contact our support team.",
    },
    "returned": {
        "subject": "Order Returned",
        "message": "Your returned order has been processed and refund will be initiated within 5-7 business days.",
    },
}


def format_amount(value: Any) -> str:
    try:
        return f"{float(value):,.2f}"
    except (TypeError, ValueError):
        return "N/A"


def order_recipient(order: Mapping[str, Any]) -> Optional[str]:
    shipping = order.get("shipping_info") or {}
    return order.get("user_email") or shipping.get("email")


def order_variables(order: Mapping[str, Any]) -> Dict[str, Any]:
    """Template variables shared by every order email."""
    shipping = order.get("shipping_info") or {}
    rows = []
    for item in order.get("items") or []:
        quantity = item.get("quantity") or 1
        rows.append(
            "<tr>"
            f"<td>{html.escape(str(item.get('name', '')))}</td>"
            f'<td align="center">x{quantity}</td>'
            f'<td align="right">KES {format_amount((item.get("price") or 0) * quantity)}</td>'
            "</tr>"
        )
    address_parts = [
        shipping.get("address"),
        shipping.get("city"),
        shipping.get("county"),
        shipping.get("postal_code"),
    ]
    return {
        "orderId": order.get("id"),
        "customerName": order.get("user_name") or shipping.get("full_name") or "Customer",
        "itemsHtml": "".join(rows),
        "subtotal": format_amount(order.get("subtotal")),
        "shippingFee": format_amount(order.get("shipping_fee")),
        "total": format_amount(order.get("total")),
        "shippingAddress": ", ".join(str(p) for p in address_parts if p),
        "paymentId": order.get("payment_id") or "N/A",
        "orderUrl": f"{settings.public_base_url}/orders/{order.get('id')}",
        "ordersUrl": f"{settings.public_base_url}/orders",
    }


class NotificationService:
    """Render templates and send them."""

    @classmethod
    async def notify(cls, template_type: str, to: str, variables: Mapping[str, Any]) -> Dict[str, Any]:
        """Render ``template_type`` and send it to ``to``.

        Returns the ``EmailService.send`` result.  Provider errors
        propagate.
        """
        context = {"supportEmail": settings.support_email, **variables}
        subject, body = await EmailTemplateService.render(template_type, context)
        return await EmailService.send(to, subject, body)

    @classmethod
    async def _notify_order(cls, template_type: str, order: Mapping[str, Any], extra: Optional[Mapping[str, Any]] = None) -> None:
        recipient = order_recipient(order)
        if not recipient:
            logger.warning("Order %s has no customer email; %s email skipped", order.get("id"), template_type)
            return
        variables = order_variables(order)
        if extra:
            variables.update(extra)
        try:
            await cls.notify(template_type, recipient, variables)
        except ProviderError as exc:
            logger.error("Failed to send %s email for order %s: %s", template_type, order.get("id"), exc)

    @classmethod
    async def send_order_confirmation(cls, order: Mapping[str, Any]) -> None:
        await cls._notify_order("order_confirmation", order)

    @classmethod
    async def send_order_status(cls, order: Mapping[str, Any]) -> None:
        status = order.get("status") or "pending"
        info = STATUS_MESSAGES.get(status, STATUS_MESSAGES["pending"])
        await cls._notify_order(
            "order_status",
            order,
            {
                "statusSubject": info["subject"],
                "statusMessage": info["message"],
                "statusLabel": status.replace("_", " ").capitalize(),
            },
        )

    @classmethod
    async def send_payment_confirmation(cls, order: Mapping[str, Any]) -> None:
        await cls._notify_order("payment_confirmation", order)

    @classmethod
    async def send_payment_failure(cls, order: Mapping[str, Any], reason: Optional[str] = None) -> None:
        await cls._notify_order(
            "payment_failure",
            order,
            {"reason": reason or order.get("payment_error") or "The payment was not completed"},
        )
