"""
Email templates and their admin-editable overrides.

Every notification the backend sends has a built-in subject and HTML
body containing ``{{variable}}`` placeholders.  Administrators may store
their own version of any template in the ``email_templates`` table; a
stored template replaces the built-in one for that type.

Variable values are HTML-escaped before substitution, except for
variables whose name ends with ``Html`` (pre-rendered fragments such as
the order items table).  Subjects are plain text and are not escaped.
Placeholders without a value render as an empty string.
"""

import html
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

from shopki_api.app.core.db import get_connection, now_iso


logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z0-9_]+)\s*\}\}")


def _layout(title: str, subtitle: str, body: str) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; color: #333;">'
        '<div style="background-color: #f97316; color: white; padding: 20px; border-radius: 8px 8px 0 0;">'
        f'<h2 style="margin: 0;">{title}</h2>'
        f'<p style="margin: 5px 0 0 0; opacity: 0.9;">{subtitle}</p>'
        "</div>"
        f'<div style="background-color: #f9fafb; padding: 20px; border: 1px solid #e5e7eb;">{body}</div>'
        '<div style="background-color: #f3f4f6; padding: 20px; text-align: center; '
        'border-radius: 0 0 8px 8px; font-size: 12px; color: #666;">'
        "<p>Questions? Contact us at {{supportEmail}}</p>"
        "<p>&copy; Shopki. All rights reserved.</p>"
        "</div></div>"
    )


_ORDER_SUMMARY = (
    "<p><strong>Order ID:</strong> {{orderId}}</p>"
    '<table style="width: 100%; border-collapse: collapse;">'
    "<thead><tr><th align=\"left\">Product</th><th>Qty</th><th align=\"right\">Price</th></tr></thead>"
    "<tbody>{{itemsHtml}}</tbody></table>"
    "<p><strong>Shipping:</strong> KES {{shippingFee}}</p>"
    "<p><strong>Total Amount:</strong> KES {{total}}</p>"
)

DEFAULT_TEMPLATES: Dict[str, Dict[str, str]] = {
    "payment_confirmation": {
        "subject": "Order Confirmed - {{orderId}}",
        "html": _layout(
            "Payment Successful!",
            "Your order has been confirmed",
            "<p>Hello {{customerName}},</p>"
            "<p>Your payment has been processed successfully. Here's your order summary:</p>"
            "<p><strong>Payment ID:</strong> {{paymentId}}</p>"
            "<p><strong>Status:</strong> PROCESSING</p>"
            + _ORDER_SUMMARY
            + "<p>Shipping to: {{shippingAddress}}</p>"
            '<p><a href="{{orderUrl}}">Track Your Order</a></p>',
        ),
    },
    "payment_failure": {
        "subject": "Payment Failed - Order {{orderId}}",
        "html": _layout(
            "Payment Failed",
            "We could not complete your payment",
            "<p>Hello {{customerName}},</p>"
            "<p>Unfortunately the payment for order <strong>{{orderId}}</strong> of "
            "KES {{total}} did not go through.</p>"
            "<p><strong>Reason:</strong> {{reason}}</p>"
            "<p>Your items have not been charged and remain available. "
            "You can retry the payment from your orders page.</p>"
            '<p><a href="{{orderUrl}}">Retry Payment</a></p>',
        ),
    },
    "order_confirmation": {
        "subject": "Order Confirmation - {{orderId}}",
        "html": _layout(
            "Thank you for your order!",
            "Order {{orderId}}",
            "<p>Hello {{customerName}},</p>"
            "<p>Your order has been received and will be processed once payment is confirmed.</p>"
            + _ORDER_SUMMARY
            + "<p>Shipping to: {{shippingAddress}}</p>"
            '<p>You can track your order status at <a href="{{ordersUrl}}">{{ordersUrl}}</a></p>',
        ),
    },
    "order_status": {
        "subject": "{{statusSubject}} - {{orderId}}",
        "html": _layout(
            "{{statusSubject}}",
            "Order {{orderId}}",
            "<p>Hello {{customerName}},</p>"
            "<p>{{statusMessage}}</p>"
            "<p><strong>Status:</strong> {{statusLabel}}</p>"
            + _ORDER_SUMMARY,
        ),
    },
    "chat_provider": {
        "subject": "New Message from {{senderName}} - {{serviceName}}",
        "html": _layout(
            "New Message from {{senderName}}",
            "Service: {{serviceName}}",
            "<p><strong>From:</strong> {{senderName}}</p>"
            "<p><strong>Email:</strong> {{senderEmail}}</p>"
            '<div style="background-color: white; padding: 15px; border-left: 4px solid #f97316; margin: 20px 0;">'
            '<p style="margin: 0; white-space: pre-wrap;">{{message}}</p></div>'
            "<p>Reply to this message by logging into your Shopki account and accessing your messages section.</p>",
        ),
    },
    "chat_customer": {
        "subject": "New Reply from {{providerName}} - {{serviceName}}",
        "html": _layout(
            "New Reply from {{providerName}}",
            "Service: {{serviceName}}",
            "<p>Hello {{customerName}},</p>"
            '<div style="background-color: white; padding: 15px; border-left: 4px solid #f97316; margin: 20px 0;">'
            '<p style="margin: 0; white-space: pre-wrap;">{{message}}</p></div>'
            "<p>Log into your Shopki account to continue the conversation.</p>",
        ),
    },
    "booking_vendor": {
        "subject": "New Booking Request - {{serviceName}}",
        "html": _layout(
            "New Booking Request",
            "Service: {{serviceName}}",
            "<p>Hello {{vendorName}},</p>"
            "<h3>Customer Details</h3>"
            "<p><strong>Name:</strong> {{customerName}}</p>"
            "<p><strong>Email:</strong> {{customerEmail}}</p>"
            "<p><strong>Phone:</strong> {{customerPhone}}</p>"
            "<h3>Booking Details</h3>"
            "<p><strong>Booking ID:</strong> {{bookingId}}</p>"
            "<p><strong>Date:</strong> {{bookingDate}} {{bookingTime}}</p>"
            "<p><strong>Notes:</strong> {{bookingNotes}}</p>"
            "<p>Log into your vendor dashboard to accept or reschedule this booking.</p>",
        ),
    },
    "booking_customer": {
        "subject": "Booking Confirmation - {{serviceName}}",
        "html": _layout(
            "Booking Request Received",
            "Service: {{serviceName}}",
            "<p>Hello {{customerName}},</p>"
            "<p>Your booking request has been sent to {{vendorName}}. "
            "You will be notified once the vendor responds.</p>"
            "<p><strong>Booking ID:</strong> {{bookingId}}</p>"
            "<p><strong>Date:</strong> {{bookingDate}} {{bookingTime}}</p>",
        ),
    },
    "booking_acceptance": {
        "subject": "Booking Confirmed - {{serviceName}}",
        "html": _layout(
            "Booking Confirmed!",
            "Service: {{serviceName}}",
            "<p>Hello {{customerName}},</p>"
            "<p>{{vendorName}} has accepted your booking.</p>"
            "<p><strong>Date:</strong> {{bookingDate}} {{bookingTime}}</p>"
            "<p><strong>Vendor notes:</strong> {{vendorNotes}}</p>",
        ),
    },
    "booking_reschedule": {
        "subject": "Booking Rescheduled - {{serviceName}}",
        "html": _layout(
            "Booking Rescheduled",
            "Service: {{serviceName}}",
            "<p>Hello {{customerName}},</p>"
            "<p>{{vendorName}} has proposed a new time for your booking.</p>"
            "<p><strong>Original date:</strong> {{originalDate}}</p>"
            "<p><strong>New date:</strong> {{newDate}} {{newTime}}</p>"
            "<p><strong>Reason:</strong> {{reason}}</p>",
        ),
    },
}

TEMPLATE_TYPES: Tuple[str, ...] = tuple(DEFAULT_TEMPLATES)


def substitute(template: str, variables: Mapping[str, Any], escape: bool = True) -> str:
    """Replace ``{{name}}`` placeholders in ``template``.

    Unknown placeholders become empty strings.  With ``escape`` set,
    values are HTML-escaped unless the variable name ends in ``Html``.
    """

    def replace(match: "re.Match[str]") -> str:
        name = match.group(1)
        value = variables.get(name)
        if value is None:
            return ""
        value = str(value)
        if escape and not name.endswith("Html"):
            value = html.escape(value)
        return value

    return PLACEHOLDER.sub(replace, template)


class EmailTemplateService:
    """CRUD for stored template overrides and rendering of templates."""

    @classmethod
    def _check_type(cls, template_type: str) -> None:
        if template_type not in DEFAULT_TEMPLATES:
            raise LookupError(f"Unknown email template type: {template_type}")

    @classmethod
    async def get_override(cls, template_type: str) -> Optional[Dict[str, Any]]:
        conn = get_connection()
        try:
            row = conn.execute(
                "SELECT template_type, subject, html, updated_at FROM email_templates WHERE template_type = ?",
                (template_type,),
            ).fetchone()
            return dict(row) if row else None
        finally:
            conn.close()

    @classmethod
    async def list_templates(cls) -> List[Dict[str, Any]]:
        """Return every template type with its effective subject and HTML."""
        conn = get_connection()
        try:
            rows = conn.execute("SELECT template_type, subject, html, updated_at FROM email_templates").fetchall()
        finally:
            conn.close()
        overrides = {row["template_type"]: row for row in rows}
        result = []
        for template_type, default in DEFAULT_TEMPLATES.items():
            row = overrides.get(template_type)
            result.append(
                {
                    "template_type": template_type,
                    "subject": row["subject"] if row else default["subject"],
                    "html": row["html"] if row else default["html"],
                    "customized": row is not None,
                    "updated_at": row["updated_at"] if row else None,
                }
            )
        return result

    @classmethod
    async def get_template(cls, template_type: str) -> Dict[str, Any]:
        cls._check_type(template_type)
        override = await cls.get_override(template_type)
        if override:
            return {**override, "customized": True}
        default = DEFAULT_TEMPLATES[template_type]
        return {
            "template_type": template_type,
            "subject": default["subject"],
            "html": default["html"],
            "customized": False,
            "updated_at": None,
        }

    @classmethod
    async def save_template(cls, template_type: str, subject: str, html_body: str) -> Dict[str, Any]:
        """Create or replace the stored override for ``template_type``."""
        cls._check_type(template_type)
        if not subject.strip() or not html_body.strip():
            raise ValueError("Template subject and html must not be empty")
        updated_at = now_iso()
        conn = get_connection()
        try:
            conn.execute(
                """
                INSERT INTO email_templates (template_type, subject, html, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(template_type) DO UPDATE SET
                    subject = excluded.subject, html = excluded.html, updated_at = excluded.updated_at
                """,
                (template_type, subject, html_body, updated_at),
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("Email template %s updated", template_type)
        return {
            "template_type": template_type,
            "subject": subject,
            "html": html_body,
            "customized": True,
            "updated_at": updated_at,
        }

    @classmethod
    async def delete_template(cls, template_type: str) -> None:
        """Drop the stored override so the built-in template applies again."""
        cls._check_type(template_type)
        conn = get_connection()
        try:
            cursor = conn.execute("DELETE FROM email_templates WHERE template_type = ?", (template_type,))
            conn.commit()
            if cursor.rowcount == 0:
                raise LookupError(f"Template {template_type} has no stored override")
        finally:
            conn.close()

    @classmethod
    async def render(cls, template_type: str, variables: Mapping[str, Any]) -> Tuple[str, str]:
        """Return ``(subject, html)`` for ``template_type`` filled with ``variables``."""
        template = await cls.get_template(template_type)
        return (
            substitute(template["subject"], variables, escape=False),
            substitute(template["html"], variables),
        )
