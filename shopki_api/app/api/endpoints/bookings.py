"""
Vendor booking endpoints.

Customers create bookings; vendors accept, reschedule, cancel and
complete them.  Invalid transitions (for example accepting a cancelled
booking) are answered with 409.
"""

from typing import List, Optional

from fastapi import APIRouter, HTTPException, status

from shopki_api.app.schemas.booking import (
    BookingAccept,
    BookingCancel,
    BookingCreate,
    BookingRead,
    BookingReschedule,
    VendorBookingStats,
)
from shopki_api.app.services.booking_service import BookingService


router = APIRouter()


@router.post("", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
async def create_booking(booking: BookingCreate) -> dict:
    return await BookingService.create_booking(booking)


@router.get("/service/{service_id}", response_model=List[BookingRead])
async def service_bookings(service_id: str) -> List[dict]:
    return await BookingService.list_service_bookings(service_id)


@router.get("/vendor/{vendor_id}", response_model=List[BookingRead])
async def vendor_bookings(vendor_id: str) -> List[dict]:
    return await BookingService.list_vendor_bookings(vendor_id)


@router.get("/vendor/{vendor_id}/stats", response_model=VendorBookingStats)
async def vendor_stats(vendor_id: str) -> dict:
    return await BookingService.vendor_stats(vendor_id)


@router.get("/customer/{customer_id}", response_model=List[BookingRead])
async def customer_bookings(customer_id: str) -> List[dict]:
    return await BookingService.list_customer_bookings(customer_id)


@router.get("/{booking_id}", response_model=BookingRead)
async def get_booking(booking_id: str) -> dict:
    try:
        return await BookingService.get_booking(booking_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


async def _run_transition(coro) -> dict:
    try:
        return await coro
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("/{booking_id}/accept", response_model=BookingRead)
async def accept_booking(booking_id: str, request: Optional[BookingAccept] = None) -> dict:
    notes = request.vendor_notes if request else None
    return await _run_transition(BookingService.accept_booking(booking_id, notes))


@router.post("/{booking_id}/reschedule", response_model=BookingRead)
async def reschedule_booking(booking_id: str, request: BookingReschedule) -> dict:
    return await _run_transition(
        BookingService.reschedule_booking(booking_id, request.new_date, request.new_time, request.reason)
    )


@router.post("/{booking_id}/cancel", response_model=BookingRead)
async def cancel_booking(booking_id: str, request: Optional[BookingCancel] = None) -> dict:
    reason = request.reason if request else None
    return await _run_transition(BookingService.cancel_booking(booking_id, reason))


@router.post("/{booking_id}/complete", response_model=BookingRead)
async def complete_booking(booking_id: str) -> dict:
    return await _run_transition(BookingService.complete_booking(booking_id))
