"""
Booking notification endpoints.

Email a vendor about a new booking request and keep the customer
informed about its confirmation, acceptance and rescheduling.
"""

from fastapi import APIRouter

from shopki_api.app.api.endpoints.chat_notifications import notification_response
from shopki_api.app.schemas.booking import (
    NotifyAcceptanceRequest,
    NotifyCustomerRequest,
    NotifyRescheduleRequest,
    NotifyVendorRequest,
)
from shopki_api.app.services.notification_service import NotificationService


router = APIRouter()


@router.post("/notify-vendor")
async def notify_vendor(request: NotifyVendorRequest) -> dict:
    result = await NotificationService.notify(
        "booking_vendor",
        request.vendor_email,
        {
            "vendorName": request.vendor_name or "there",
            "customerName": request.customer_name,
            "customerEmail": request.customer_email,
            "customerPhone": request.customer_phone,
            "serviceName": request.service_name,
            "bookingDate": request.booking_date,
            "bookingTime": request.booking_time,
            "bookingNotes": request.booking_notes,
            "bookingId": request.booking_id,
        },
    )
    return notification_response(result, "vendor")


@router.post("/notify-customer")
async def notify_customer(request: NotifyCustomerRequest) -> dict:
    result = await NotificationService.notify(
        "booking_customer",
        request.customer_email,
        {
            "customerName": request.customer_name,
            "vendorName": request.vendor_name or "the vendor",
            "serviceName": request.service_name,
            "bookingDate": request.booking_date,
            "bookingTime": request.booking_time,
            "bookingId": request.booking_id,
        },
    )
    return notification_response(result, "customer")


@router.post("/notify-customer-acceptance")
async def notify_customer_acceptance(request: NotifyAcceptanceRequest) -> dict:
    result = await NotificationService.notify(
        "booking_acceptance",
        request.customer_email,
        {
            "customerName": request.customer_name or "there",
            "vendorName": request.vendor_name,
            "serviceName": request.service_name,
            "bookingDate": request.booking_date,
            "bookingTime": request.booking_time,
            "vendorNotes": request.vendor_notes,
        },
    )
    return notification_response(result, "customer")


@router.post("/notify-customer-reschedule")
async def notify_customer_reschedule(request: NotifyRescheduleRequest) -> dict:
    result = await NotificationService.notify(
        "booking_reschedule",
        request.customer_email,
        {
            "customerName": request.customer_name or "there",
            "vendorName": request.vendor_name,
            "serviceName": request.service_name,
            "originalDate": request.original_date,
            "newDate": request.new_date,
            "newTime": request.new_time,
            "reason": request.reason,
        },
    )
    return notification_response(result, "customer")
