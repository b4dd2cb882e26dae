"""
Business logic for vendor service bookings.

A customer books a vendor's service for a date; the vendor then accepts,
reschedules or cancels it and finally marks it completed.  Transitions
are restricted to ``ALLOWED_TRANSITIONS``; ``completed`` and
``cancelled`` are final.  Each transition emails the customer (or, for
new bookings, both parties) on a best-effort basis.
"""

import logging
from typing import Any, Dict, List, Optional

from shopki_api.app.core.db import get_connection, new_id, now_iso
from shopki_api.app.core.exceptions import ProviderError
from shopki_api.app.schemas.booking import BookingCreate
from shopki_api.app.services.audit_service import AuditService
from shopki_api.app.services.notification_service import NotificationService


logger = logging.getLogger(__name__)

BOOKING_STATUSES = ("pending", "accepted", "rescheduled", "completed", "cancelled")

ALLOWED_TRANSITIONS: Dict[str, tuple] = {
    "pending": ("accepted", "rescheduled", "cancelled"),
    "accepted": ("rescheduled", "completed", "cancelled"),
    "rescheduled": ("accepted", "rescheduled", "completed", "cancelled"),
    "completed": (),
    "cancelled": (),
}


class BookingService:
    """Service for creating bookings and moving them through their lifecycle."""

    @classmethod
    async def _notify(cls, template_type: str, to: Optional[str], variables: Dict[str, Any]) -> None:
        if not to:
            logger.info("No recipient for %s notification; skipped", template_type)
            return
        try:
            await NotificationService.notify(template_type, to, variables)
        except ProviderError as exc:
            logger.error("Failed to send %s notification to %s: %s", template_type, to, exc)

    @classmethod
    def _variables(cls, booking: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "bookingId": booking["id"],
            "serviceName": booking["service_name"],
            "vendorName": booking.get("vendor_name") or "The vendor",
            "customerName": booking["customer_name"],
            "customerEmail": booking.get("customer_email"),
            "customerPhone": booking.get("customer_phone"),
            "bookingDate": booking.get("reschedule_date") or booking["booking_date"],
            "bookingTime": booking.get("reschedule_time") or booking.get("booking_time"),
            "bookingNotes": booking.get("notes"),
            "vendorNotes": booking.get("vendor_notes"),
        }

    @classmethod
    async def _audit(cls, actor: Optional[str], action: str, booking_id: str, details: Optional[dict] = None) -> None:
        try:
            await AuditService.log(actor, action, "booking", booking_id, details)
        except Exception as exc:
            logger.warning("Could not write audit log for booking %s: %s", booking_id, exc)

    @classmethod
    async def create_booking(cls, data: BookingCreate) -> Dict[str, Any]:
        """Create a pending booking and notify the vendor and the customer."""
        booking_id = new_id()
        timestamp = now_iso()
        conn = get_connection()
        try:
            conn.execute(
                """
                INSERT INTO service_bookings (
                    id, service_id, service_name, vendor_id, vendor_name, vendor_email,
                    customer_id, customer_name, customer_email, customer_phone,
                    booking_date, booking_time, notes, status, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'pending', ?, ?)
                """,
                (
                    booking_id,
                    data.service_id,
                    data.service_name,
                    data.vendor_id,
                    data.vendor_name,
                    data.vendor_email,
                    data.customer_id,
                    data.customer_name,
                    data.customer_email,
                    data.customer_phone,
                    data.booking_date,
                    data.booking_time,
                    data.notes,
                    timestamp,
                    timestamp,
                ),
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("Booking %s created for service %s", booking_id, data.service_id)
        await cls._audit(data.customer_id, "create", booking_id, {"service_id": data.service_id})
        booking = await cls.get_booking(booking_id)
        variables = cls._variables(booking)
        await cls._notify("booking_vendor", booking.get("vendor_email"), variables)
        await cls._notify("booking_customer", booking.get("customer_email"), variables)
        return booking

    @classmethod
    async def get_booking(cls, booking_id: str) -> Dict[str, Any]:
        conn = get_connection()
        try:
            row = conn.execute("SELECT * FROM service_bookings WHERE id = ?", (booking_id,)).fetchone()
        finally:
            conn.close()
        if not row:
            raise LookupError(f"Booking {booking_id} not found")
        return dict(row)

    @classmethod
    async def _list_by(cls, column: str, value: str) -> List[Dict[str, Any]]:
        conn = get_connection()
        try:
            rows = conn.execute(
                f"SELECT * FROM service_bookings WHERE {column} = ? ORDER BY created_at DESC",
                (value,),
            ).fetchall()
            return [dict(row) for row in rows]
        finally:
            conn.close()

    @classmethod
    async def list_service_bookings(cls, service_id: str) -> List[Dict[str, Any]]:
        return await cls._list_by("service_id", service_id)

    @classmethod
    async def list_vendor_bookings(cls, vendor_id: str) -> List[Dict[str, Any]]:
        return await cls._list_by("vendor_id", vendor_id)

    @classmethod
    async def list_customer_bookings(cls, customer_id: str) -> List[Dict[str, Any]]:
        return await cls._list_by("customer_id", customer_id)

    @classmethod
    async def _transition(cls, booking_id: str, status: str, fields: Dict[str, Any], actor: Optional[str]) -> Dict[str, Any]:
        booking = await cls.get_booking(booking_id)
        current = booking["status"]
        if status not in ALLOWED_TRANSITIONS.get(current, ()):
            raise ValueError(f"Cannot change booking from {current} to {status}")
        timestamp = now_iso()
        fields = {**fields, "status": status, "updated_at": timestamp, f"{status}_at": timestamp}
        assignments = ", ".join(f"{name} = ?" for name in fields)
        conn = get_connection()
        try:
            conn.execute(f"UPDATE service_bookings SET {assignments} WHERE id = ?", (*fields.values(), booking_id))
            conn.commit()
        finally:
            conn.close()
        logger.info("Booking %s %s -> %s", booking_id, current, status)
        await cls._audit(actor, status, booking_id, {"from": current})
        return await cls.get_booking(booking_id)

    @classmethod
    async def accept_booking(cls, booking_id: str, vendor_notes: Optional[str] = None, actor: Optional[str] = None) -> Dict[str, Any]:
        booking = await cls._transition(booking_id, "accepted", {"vendor_notes": vendor_notes or ""}, actor)
        await cls._notify("booking_acceptance", booking.get("customer_email"), cls._variables(booking))
        return booking

    @classmethod
    async def reschedule_booking(
        cls,
        booking_id: str,
        new_date: str,
        new_time: Optional[str] = None,
        reason: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Move a booking to a new date.

        ``original_date`` keeps the date first booked, however many times
        the booking is rescheduled.
        """
        current = await cls.get_booking(booking_id)
        previous_date = current.get("reschedule_date") or current["booking_date"]
        booking = await cls._transition(
            booking_id,
            "rescheduled",
            {
                "original_date": current.get("original_date") or current["booking_date"],
                "reschedule_date": new_date,
                "reschedule_time": new_time,
                "reschedule_reason": reason or "",
            },
            actor,
        )
        variables = cls._variables(booking)
        variables.update({"originalDate": previous_date, "newDate": new_date, "newTime": new_time, "reason": reason})
        await cls._notify("booking_reschedule", booking.get("customer_email"), variables)
        return booking

    @classmethod
    async def cancel_booking(cls, booking_id: str, reason: Optional[str] = None, actor: Optional[str] = None) -> Dict[str, Any]:
        return await cls._transition(booking_id, "cancelled", {"cancellation_reason": reason or ""}, actor)

    @classmethod
    async def complete_booking(cls, booking_id: str, actor: Optional[str] = None) -> Dict[str, Any]:
        return await cls._transition(booking_id, "completed", {}, actor)

    @classmethod
    async def vendor_stats(cls, vendor_id: str) -> Dict[str, int]:
        """Count a vendor's bookings per status."""
        conn = get_connection()
        try:
            rows = conn.execute(
                "SELECT status, COUNT(*) AS count FROM service_bookings WHERE vendor_id = ? GROUP BY status",
                (vendor_id,),
            ).fetchall()
        finally:
            conn.close()
        stats = {status: 0 for status in BOOKING_STATUSES}
        for row in rows:
            stats[row["status"]] = row["count"]
        stats["total"] = sum(row["count"] for row in rows)
        return stats
