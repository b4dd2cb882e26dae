"""
Business logic for vendor service listings.

Vendors publish services (photography, catering, tailoring ...) that
customers book through ``BookingService`` and discuss through
``ChatService``.  Only the owning vendor may edit a listing or add
portfolio images to it.  Administrators move listings between
``active``, ``under_review`` and ``rejected``; deleting a listing marks
it ``deleted`` so bookings and chats that refer to it keep resolving
for administrators.
"""

import logging
import sqlite3
from typing import Any, Dict, List, Optional

from shopki_api.app.core.db import from_json, get_connection, new_id, now_iso, to_json
from shopki_api.app.schemas.service import PortfolioUpload, ServiceCreate, ServiceUpdate
from shopki_api.app.services.audit_service import AuditService


logger = logging.getLogger(__name__)

SORT_CLAUSES = {
    "newest": "created_at DESC",
    "price_asc": "price ASC",
    "price_desc": "price DESC",
    "rating": "rating DESC, created_at DESC",
}


def _row_to_service(row: sqlite3.Row) -> Dict[str, Any]:
    service = dict(row)
    service["images"] = from_json(service.get("images"), [])
    return service


async def _audit(actor: Optional[str], action: str, service_id: str, details: Optional[dict] = None) -> None:
    try:
        await AuditService.log(actor, action, "service", service_id, details)
    except Exception as exc:
        logger.warning("Could not write audit log for service %s: %s", service_id, exc)


class ServiceListingService:
    """CRUD and moderation on the ``services`` table."""

    @classmethod
    async def create_service(cls, data: ServiceCreate) -> Dict[str, Any]:
        service_id = new_id()
        timestamp = now_iso()
        conn = get_connection()
        try:
            conn.execute(
                """
                INSERT INTO services (id, name, description, category, price, duration, seller_id,
                                      seller_name, images, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 'active', ?, ?)
                """,
                (
                    service_id,
                    data.name,
                    data.description,
                    data.category,
                    data.price,
                    data.duration,
                    data.seller_id,
                    data.seller_name,
                    to_json([image.model_dump() for image in data.images]),
                    timestamp,
                    timestamp,
                ),
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("Vendor %s created service %s", data.seller_id, service_id)
        await _audit(data.seller_id, "create", service_id, {"name": data.name})
        return await cls.get_service(service_id)

    @classmethod
    async def get_service(cls, service_id: str, include_deleted: bool = False) -> Dict[str, Any]:
        conn = get_connection()
        try:
            row = conn.execute("SELECT * FROM services WHERE id = ?", (service_id,)).fetchone()
        finally:
            conn.close()
        if not row or (row["status"] == "deleted" and not include_deleted):
            raise LookupError(f"Service {service_id} not found")
        return _row_to_service(row)

    @classmethod
    async def list_services(
        cls,
        category: Optional[str] = None,
        seller_id: Optional[str] = None,
        statuses: Optional[List[str]] = None,
        sort_by: str = "newest",
    ) -> List[Dict[str, Any]]:
        """List services, by default only the ``active`` ones.

        ``statuses`` selects other moderation states; pass an empty list
        for every state.  Raises ``ValueError`` for an unknown ordering.
        """
        if sort_by not in SORT_CLAUSES:
            raise ValueError(f"Invalid sort: {sort_by}. Use one of: {', '.join(SORT_CLAUSES)}")
        if statuses is None:
            statuses = ["active"]
        where: List[str] = []
        params: List[Any] = []
        if statuses:
            where.append(f"status IN ({', '.join('?' for _ in statuses)})")
            params.extend(statuses)
        if category:
            where.append("category = ?")
            params.append(category)
        if seller_id:
            where.append("seller_id = ?")
            params.append(seller_id)
        query = "SELECT * FROM services"
        if where:
            query += " WHERE " + " AND ".join(where)
        query += f" ORDER BY {SORT_CLAUSES[sort_by]}"
        conn = get_connection()
        try:
            return [_row_to_service(row) for row in conn.execute(query, tuple(params)).fetchall()]
        finally:
            conn.close()

    @classmethod
    async def list_seller_services(cls, seller_id: str) -> List[Dict[str, Any]]:
        """Every listing of a vendor that has not been deleted."""
        return await cls.list_services(seller_id=seller_id, statuses=["active", "under_review", "rejected"])

    @classmethod
    async def _owned_service(cls, service_id: str, seller_id: str) -> Dict[str, Any]:
        service = await cls.get_service(service_id)
        if service["seller_id"] != seller_id:
            raise PermissionError("You can only edit your own services")
        return service

    @classmethod
    async def _write(cls, service_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        fields["updated_at"] = now_iso()
        assignments = ", ".join(f"{name} = ?" for name in fields)
        conn = get_connection()
        try:
            conn.execute(f"UPDATE services SET {assignments} WHERE id = ?", (*fields.values(), service_id))
            conn.commit()
        finally:
            conn.close()
        return await cls.get_service(service_id, include_deleted=True)

    @classmethod
    async def update_service(cls, service_id: str, data: ServiceUpdate) -> Dict[str, Any]:
        """Apply a vendor's edit to their own listing.

        Raises
        ------
        LookupError
            If the service does not exist or was deleted.
        PermissionError
            If ``data.seller_id`` is not the owner.
        ValueError
            If no field is given.
        """
        await cls._owned_service(service_id, data.seller_id)
        fields = {
            name: value
            for name, value in data.model_dump(exclude_unset=True, exclude={"seller_id"}).items()
            if value is not None
        }
        if not fields:
            raise ValueError("No fields to update")
        changed = sorted(fields)
        if "images" in fields:
            fields["images"] = to_json(fields["images"])
        service = await cls._write(service_id, fields)
        logger.info("Vendor %s updated service %s", data.seller_id, service_id)
        await _audit(data.seller_id, "update", service_id, {"fields": changed})
        return service

    @classmethod
    async def add_portfolio_images(cls, service_id: str, data: PortfolioUpload) -> Dict[str, Any]:
        """Append portfolio images to a vendor's listing, skipping duplicate URLs."""
        service = await cls._owned_service(service_id, data.seller_id)
        images = list(service["images"])
        known = {image.get("url") if isinstance(image, dict) else image for image in images}
        for image in data.images:
            if image.url not in known:
                images.append(image.model_dump())
                known.add(image.url)
        service = await cls._write(service_id, {"images": to_json(images)})
        await _audit(data.seller_id, "portfolio", service_id, {"images": len(images)})
        return service

    @classmethod
    async def update_status(
        cls, service_id: str, status: str, notes: Optional[str] = None, actor: Optional[str] = "admin"
    ) -> Dict[str, Any]:
        """Moderate a listing; deleted listings cannot be restored."""
        service = await cls.get_service(service_id)
        previous = service["status"]
        service = await cls._write(service_id, {"status": status, "admin_notes": notes})
        logger.info("Service %s status %s -> %s", service_id, previous, status)
        await _audit(actor, "update_status", service_id, {"from": previous, "to": status})
        return service

    @classmethod
    async def delete_service(cls, service_id: str, actor: Optional[str] = "admin") -> None:
        await cls.get_service(service_id)
        await cls._write(service_id, {"status": "deleted"})
        logger.info("Service %s deleted", service_id)
        await _audit(actor, "delete", service_id)
