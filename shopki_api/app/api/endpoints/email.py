"""
Email proxy endpoint used by the storefront to send arbitrary
transactional emails through the configured provider.
"""

from fastapi import APIRouter

from shopki_api.app.schemas.email import SendEmailRequest
from shopki_api.app.services.email_service import EmailService


router = APIRouter()


@router.post("/send-email")
async def send_email(request: SendEmailRequest) -> dict:
    """Send an email, or log it when no provider is configured.

    Provider errors are answered with the provider's HTTP status.
    """
    result = await EmailService.send(request.to, request.subject, request.html, request.text)
    if result["status"] == "logged":
        return {
            "success": True,
            "message": f"Email logged to console (email provider not configured). Recipient: {request.to}",
            "note": "To send real emails, configure EMAIL_PROVIDER and EMAIL_API_KEY",
        }
    return {"success": True, "message": f"Email sent to {request.to}", "messageId": result["message_id"]}
