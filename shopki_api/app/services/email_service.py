"""
Transactional email delivery.

``EmailService.send`` posts a message to the configured provider
(SendGrid or Brevo).  When no provider key is configured the message is
written to the log instead and reported with status ``logged`` so that
development setups keep working without credentials.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from shopki_api.app.core import http
from shopki_api.app.core.config import is_configured, settings
from shopki_api.app.core.exceptions import ProviderError


logger = logging.getLogger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"
BREVO_URL = "https://api.brevo.com/v3/smtp/email"
SUPPORTED_PROVIDERS = ("sendgrid", "brevo")


class EmailService:
    """Send emails through SendGrid or Brevo."""

    @classmethod
    def is_configured(cls) -> bool:
        return settings.email_provider in SUPPORTED_PROVIDERS and is_configured(settings.email_api_key)

    @classmethod
    def _build_request(cls, to: str, subject: str, html: str, text: Optional[str]) -> tuple[str, Dict[str, str], Dict[str, Any]]:
        sender = {"email": settings.email_sender_address, "name": settings.email_sender_name}
        if settings.email_provider == "brevo":
            body: Dict[str, Any] = {
                "sender": sender,
                "to": [{"email": to}],
                "subject": subject,
                "htmlContent": html,
            }
            if text:
                body["textContent"] = text
            return BREVO_URL, {"api-key": settings.email_api_key}, body

        content = []
        if text:
            content.append({"type": "text/plain", "value": text})
        content.append({"type": "text/html", "value": html})
        body = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": sender,
            "subject": subject,
            "content": content,
        }
        return SENDGRID_URL, {"Authorization": f"Bearer {settings.email_api_key}"}, body

    @classmethod
    async def send(cls, to: str, subject: str, html: str, text: Optional[str] = None) -> Dict[str, Any]:
        """Send one email.

        Parameters
        ----------
        to : str
            Recipient address.
        subject : str
            Subject line.
        html : str
            HTML body.
        text : Optional[str]
            Plain text alternative.

        Returns
        -------
        dict
            ``{"status": "sent", "message_id": ...}`` or, without a
            configured provider, ``{"status": "logged", "message_id": None}``.

        Raises
        ------
        ProviderError
            The provider rejected the message or could not be reached.
        """
        if not cls.is_configured():
            logger.info("Email provider not configured; email logged. to=%s subject=%s", to, subject)
            return {"status": "logged", "message_id": None}

        url, headers, body = cls._build_request(to, subject, html, text)
        try:
            async with http.get_client() as client:
                response = await client.post(url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Email provider %s unreachable: %s", settings.email_provider, exc)
            raise ProviderError(f"Email provider unreachable: {exc}", status_code=502) from exc

        payload = http.raise_for_provider(response, settings.email_provider)
        if isinstance(payload, dict) and payload.get("messageId"):
            message_id = payload["messageId"]
        else:
            message_id = response.headers.get("x-message-id")
        logger.info("Email sent to %s via %s (subject=%s)", to, settings.email_provider, subject)
        return {"status": "sent", "message_id": message_id}

    @classmethod
    async def send_quietly(cls, to: Optional[str], subject: str, html: str, text: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Best effort variant of ``send`` used for secondary notifications.

        Failures are logged and ``None`` is returned.
        """
        if not to:
            logger.warning("No recipient for email %r; skipped", subject)
            return None
        try:
            return await cls.send(to, subject, html, text)
        except ProviderError as exc:
            logger.error("Failed to send email %r to %s: %s", subject, to, exc)
            return None
