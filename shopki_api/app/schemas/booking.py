"""
Pydantic models for vendor service bookings and the booking
notification routes.

The notification payloads keep the storefront's camelCase field names.
"""

from typing import Optional

from pydantic import BaseModel, Field


class BookingCreate(BaseModel):
    service_id: str = Field(..., min_length=1)
    service_name: str = Field(..., min_length=1)
    vendor_id: str = Field(..., min_length=1)
    vendor_name: Optional[str] = None
    vendor_email: Optional[str] = None
    customer_id: str = Field(..., min_length=1)
    customer_name: str = Field(..., min_length=1)
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    booking_date: str = Field(..., min_length=1, examples=["2026-11-02"])
    booking_time: Optional[str] = Field(None, examples=["14:00"])
    notes: Optional[str] = None


class BookingAccept(BaseModel):
    vendor_notes: Optional[str] = None


class BookingReschedule(BaseModel):
    new_date: str = Field(..., min_length=1)
    new_time: Optional[str] = None
    reason: Optional[str] = None


class BookingCancel(BaseModel):
    reason: Optional[str] = None


class BookingRead(BaseModel):
    id: str
    service_id: str
    service_name: str
    vendor_id: str
    vendor_name: Optional[str] = None
    vendor_email: Optional[str] = None
    customer_id: str
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    booking_date: str
    booking_time: Optional[str] = None
    notes: Optional[str] = None
    status: str
    vendor_notes: Optional[str] = None
    original_date: Optional[str] = None
    reschedule_date: Optional[str] = None
    reschedule_time: Optional[str] = None
    reschedule_reason: Optional[str] = None
    cancellation_reason: Optional[str] = None
    accepted_at: Optional[str] = None
    rescheduled_at: Optional[str] = None
    cancelled_at: Optional[str] = None
    completed_at: Optional[str] = None
    created_at: str
    updated_at: str


class VendorBookingStats(BaseModel):
    total: int = 0
    pending: int = 0
    accepted: int = 0
    rescheduled: int = 0
    completed: int = 0
    cancelled: int = 0


class _Notification(BaseModel):
    model_config = {"populate_by_name": True}


class NotifyVendorRequest(_Notification):
    vendor_email: str = Field(..., alias="vendorEmail", min_length=1)
    vendor_name: Optional[str] = Field(None, alias="vendorName")
    customer_name: str = Field(..., alias="customerName", min_length=1)
    customer_email: Optional[str] = Field(None, alias="customerEmail")
    customer_phone: Optional[str] = Field(None, alias="customerPhone")
    service_name: str = Field(..., alias="serviceName", min_length=1)
    booking_date: Optional[str] = Field(None, alias="bookingDate")
    booking_time: Optional[str] = Field(None, alias="bookingTime")
    booking_notes: Optional[str] = Field(None, alias="bookingNotes")
    booking_id: str = Field(..., alias="bookingId", min_length=1)


class NotifyCustomerRequest(_Notification):
    customer_email: str = Field(..., alias="customerEmail", min_length=1)
    customer_name: str = Field(..., alias="customerName", min_length=1)
    vendor_name: Optional[str] = Field(None, alias="vendorName")
    service_name: str = Field(..., alias="serviceName", min_length=1)
    booking_date: Optional[str] = Field(None, alias="bookingDate")
    booking_time: Optional[str] = Field(None, alias="bookingTime")
    booking_id: str = Field(..., alias="bookingId", min_length=1)


class NotifyAcceptanceRequest(_Notification):
    customer_email: str = Field(..., alias="customerEmail", min_length=1)
    customer_name: Optional[str] = Field(None, alias="customerName")
    vendor_name: str = Field(..., alias="vendorName", min_length=1)
    service_name: str = Field(..., alias="serviceName", min_length=1)
    booking_date: Optional[str] = Field(None, alias="bookingDate")
    booking_time: Optional[str] = Field(None, alias="bookingTime")
    vendor_notes: Optional[str] = Field(None, alias="vendorNotes")


class NotifyRescheduleRequest(_Notification):
    customer_email: str = Field(..., alias="customerEmail", min_length=1)
    customer_name: Optional[str] = Field(None, alias="customerName")
    vendor_name: str = Field(..., alias="vendorName", min_length=1)
    service_name: str = Field(..., alias="serviceName", min_length=1)
    original_date: Optional[str] = Field(None, alias="originalDate")
    new_date: str = Field(..., alias="newDate", min_length=1)
    new_time: Optional[str] = Field(None, alias="newTime")
    reason: Optional[str] = None
