"""
Chat notification endpoints.

The storefront calls these after storing a chat message so that the
other participant gets an email.  Without an email provider the
notification is logged and reported with ``status: logged``.
"""

from fastapi import APIRouter

from shopki_api.app.schemas.chat import NotifyChatCustomerRequest, NotifyProviderRequest
from shopki_api.app.services.notification_service import NotificationService


router = APIRouter()


def notification_response(result: dict, recipient: str) -> dict:
    if result["status"] == "logged":
        return {
            "success": True,
            "message": "Notification logged to console (email provider not configured)",
            "status": "logged",
        }
    return {"success": True, "message": f"Notification sent to {recipient}", "status": "sent"}


@router.post("/notify-provider")
async def notify_provider(request: NotifyProviderRequest) -> dict:
    """Email a service provider about a new customer message."""
    result = await NotificationService.notify(
        "chat_provider",
        request.provider_email,
        {
            "providerName": request.provider_name,
            "senderName": request.sender_name,
            "senderEmail": request.sender_email,
            "message": request.message,
            "serviceName": request.service_name,
        },
    )
    return notification_response(result, "provider")


@router.post("/notify-customer")
async def notify_customer(request: NotifyChatCustomerRequest) -> dict:
    """Email a customer about a provider's reply."""
    result = await NotificationService.notify(
        "chat_customer",
        request.customer_email,
        {
            "customerName": request.customer_name or "there",
            "providerName": request.provider_name,
            "message": request.message,
            "serviceName": request.service_name,
        },
    )
    return notification_response(result, "customer")
