"""
Business logic for orders and payment reconciliation.

Orders are created at checkout with status ``pending`` and payment
status ``pending``.  Payment providers then report outcomes through
``apply_payment_result``, which is the only place where an order's
payment status changes as a result of a payment:

* ``completed``: payment_status ``completed``, status ``processing``,
  product stock reduced once, confirmation email sent.
* ``failed``: payment_status ``failed``, status ``payment_failed``,
  failure email sent; stock untouched.
* ``pending``: payment_status ``payment_processing``.

A completed payment is terminal.  The same outcome delivered twice
(same transaction id) is a no-op, which makes webhook retries harmless.

Orders whose STK push is not approved within the payment window
(``settings.payment_window_seconds``) are expired on request or lazily
when their payment status is read.
"""

import logging
import math
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from shopki_api.app.core.config import settings
from shopki_api.app.core.db import from_json, get_connection, new_id, now_iso, parse_iso, to_json
from shopki_api.app.schemas.order import ORDER_STATUSES, OrderCreate
from shopki_api.app.services.audit_service import AuditService
from shopki_api.app.services.notification_service import NotificationService


logger = logging.getLogger(__name__)

FREE_SHIPPING_THRESHOLD = 5000
SHIPPING_FEE = 300

PAYMENT_OUTCOMES = {
    "completed": "completed",
    "failed": "failed",
    "pending": "payment_processing",
}
OPEN_PAYMENT_STATUSES = ("pending", "payment_processing")


def calculate_totals(items: List[Dict[str, Any]]) -> Dict[str, float]:
    """Return subtotal, shipping fee and total for a list of line items.

    Shipping is free when the subtotal exceeds ``FREE_SHIPPING_THRESHOLD``.
    """
    subtotal = sum(float(item["price"]) * int(item.get("quantity") or 1) for item in items)
    shipping_fee = 0 if subtotal > FREE_SHIPPING_THRESHOLD else SHIPPING_FEE
    return {"subtotal": subtotal, "shipping_fee": float(shipping_fee), "total": subtotal + shipping_fee}


def _row_to_order(row: sqlite3.Row) -> Dict[str, Any]:
    order = dict(row)
    order["items"] = from_json(order["items"], [])
    order["shipping_info"] = from_json(order["shipping_info"])
    order["transaction"] = from_json(order.pop("transaction_data"))
    order["stock_reduced"] = bool(order["stock_reduced"])
    return order


async def _audit(actor: Optional[str], action: str, order_id: str, details: Optional[dict] = None) -> None:
    try:
        await AuditService.log(actor=actor, action=action, object_type="order", object_id=order_id, details=details)
    except sqlite3.Error as exc:
        logger.warning("Could not write audit log for order %s: %s", order_id, exc)


class OrderService:
    """Service for checkout, fulfilment and payment state of orders."""

    @classmethod
    async def create_order(cls, data: OrderCreate) -> Dict[str, Any]:
        """Store a new order and send the order confirmation email.

        Totals are always computed here; client supplied totals are not
        trusted.
        """
        items = [item.model_dump() for item in data.items]
        totals = calculate_totals(items)
        order_id = new_id()
        timestamp = now_iso()
        conn = get_connection()
        try:
            conn.execute(
                """
                INSERT INTO orders (id, user_id, user_email, user_name, items, shipping_info, payment_method,
                                    subtotal, shipping_fee, total, status, payment_status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'pending', 'pending', ?, ?)
                """,
                (
                    order_id,
                    data.user_id,
                    data.user_email or data.shipping_info.email,
                    data.user_name or data.shipping_info.full_name,
                    to_json(items),
                    to_json(data.shipping_info.model_dump()),
                    data.payment_method,
                    totals["subtotal"],
                    totals["shipping_fee"],
                    totals["total"],
                    timestamp,
                    timestamp,
                ),
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("Order %s created for user %s (total %.2f)", order_id, data.user_id, totals["total"])
        await _audit(data.user_id, "create", order_id, {"total": totals["total"], "items": len(items)})
        order = await cls.get_order(order_id)
        await NotificationService.send_order_confirmation(order)
        return order

    @classmethod
    async def get_order(cls, order_id: str) -> Dict[str, Any]:
        conn = get_connection()
        try:
            row = conn.execute("SELECT * FROM orders WHERE id = ?", (order_id,)).fetchone()
        finally:
            conn.close()
        if not row:
            raise LookupError(f"Order {order_id} not found")
        return _row_to_order(row)

    @classmethod
    async def list_user_orders(cls, user_id: str) -> List[Dict[str, Any]]:
        conn = get_connection()
        try:
            rows = conn.execute(
                "SELECT * FROM orders WHERE user_id = ? ORDER BY created_at DESC",
                (user_id,),
            ).fetchall()
            return [_row_to_order(row) for row in rows]
        finally:
            conn.close()

    @classmethod
    async def list_orders(cls, status: Optional[str] = None, limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
        query = "SELECT * FROM orders"
        params: List[Any] = []
        if status:
            query += " WHERE status = ?"
            params.append(status)
        query += " ORDER BY created_at DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])
        conn = get_connection()
        try:
            return [_row_to_order(row) for row in conn.execute(query, tuple(params)).fetchall()]
        finally:
            conn.close()

    @classmethod
    async def find_order_by_checkout_request(cls, checkout_request_id: str) -> Optional[Dict[str, Any]]:
        conn = get_connection()
        try:
            row = conn.execute(
                "SELECT * FROM orders WHERE checkout_request_id = ? ORDER BY updated_at DESC LIMIT 1",
                (checkout_request_id,),
            ).fetchone()
            return _row_to_order(row) if row else None
        finally:
            conn.close()

    @classmethod
    async def find_order_by_transaction(cls, transaction_id: str) -> Optional[Dict[str, Any]]:
        conn = get_connection()
        try:
            row = conn.execute(
                "SELECT * FROM orders WHERE transaction_id = ? OR payment_id = ? ORDER BY updated_at DESC LIMIT 1",
                (transaction_id, transaction_id),
            ).fetchone()
            return _row_to_order(row) if row else None
        finally:
            conn.close()

    @classmethod
    async def _update(cls, order_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        fields = {**fields, "updated_at": now_iso()}
        assignments = ", ".join(f"{name} = ?" for name in fields)
        conn = get_connection()
        try:
            conn.execute(f"UPDATE orders SET {assignments} WHERE id = ?", (*fields.values(), order_id))
            conn.commit()
        finally:
            conn.close()
        return await cls.get_order(order_id)

    @classmethod
    async def update_order_status(cls, order_id: str, status: str, actor: Optional[str] = "admin") -> Dict[str, Any]:
        """Set the fulfilment status of an order and email the customer."""
        if status not in ORDER_STATUSES:
            raise ValueError(f"Invalid order status: {status}")
        order = await cls.get_order(order_id)
        previous = order["status"]
        order = await cls._update(order_id, {"status": status})
        logger.info("Order %s status %s -> %s", order_id, previous, status)
        await _audit(actor, "update_status", order_id, {"from": previous, "to": status})
        await NotificationService.send_order_status(order)
        return order

    @classmethod
    async def mark_payment_processing(
        cls,
        order_id: str,
        checkout_request_id: Optional[str] = None,
        transaction: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Stamp an order whose STK push was accepted by the provider.

        Starts the payment window.  Orders that are already paid are
        left untouched.
        """
        order = await cls.get_order(order_id)
        if order["payment_status"] == "completed":
            logger.warning("Order %s already paid; ignoring new payment initiation", order_id)
            return order
        fields: Dict[str, Any] = {
            "payment_status": "payment_processing",
            "payment_initiated_at": now_iso(),
            "payment_error": None,
        }
        if order["status"] in ("payment_failed", "payment_expired"):
            fields["status"] = "pending"
        if checkout_request_id:
            fields["checkout_request_id"] = checkout_request_id
        if transaction:
            fields["transaction_data"] = to_json(transaction)
            if transaction.get("id"):
                fields["transaction_id"] = transaction["id"]
        logger.info("Order %s payment processing (checkout request %s)", order_id, checkout_request_id)
        return await cls._update(order_id, fields)

    @classmethod
    async def apply_payment_result(
        cls,
        order_id: str,
        outcome: str,
        transaction_id: Optional[str] = None,
        checkout_request_id: Optional[str] = None,
        payment_id: Optional[str] = None,
        raw: Optional[Any] = None,
        error: Optional[str] = None,
        actor: Optional[str] = "system",
    ) -> Dict[str, Any]:
        """Apply a payment outcome reported by a provider.

        Parameters
        ----------
        order_id : str
            The order the payment belongs to.
        outcome : str
            ``completed``, ``failed`` or ``pending``.
        transaction_id, checkout_request_id : Optional[str]
            Provider identifiers recorded on the order.
        payment_id : Optional[str]
            Receipt number shown to the customer; defaults to the
            transaction id.
        raw : Optional[Any]
            Provider payload kept in the order's transaction record.
        error : Optional[str]
            Failure reason stored in ``payment_error`` for failed payments.
        actor : Optional[str]
            Recorded in the audit log.

        Returns
        -------
        dict
            The order after the update (or unchanged for duplicates and
            results arriving after completion).
        """
        if outcome not in PAYMENT_OUTCOMES:
            raise ValueError(f"Invalid payment outcome: {outcome}")
        target = PAYMENT_OUTCOMES[outcome]
        order = await cls.get_order(order_id)

        if order["payment_status"] == "completed":
            if outcome == "completed":
                logger.info("Order %s already completed; duplicate result ignored", order_id)
            else:
                logger.warning("Order %s already completed; late %s result ignored", order_id, outcome)
            return order
        if order["payment_status"] == target and (transaction_id is None or order["transaction_id"] == transaction_id):
            logger.info("Order %s already %s for transaction %s; duplicate ignored", order_id, target, transaction_id)
            return order

        transaction = order["transaction"] or {}
        transaction.update(
            {
                "id": transaction_id or transaction.get("id"),
                "checkout_request_id": checkout_request_id or transaction.get("checkout_request_id"),
                "raw": raw if raw is not None else transaction.get("raw"),
            }
        )
        fields: Dict[str, Any] = {"payment_status": target, "transaction_data": to_json(transaction)}
        if transaction_id:
            fields["transaction_id"] = transaction_id
        if checkout_request_id:
            fields["checkout_request_id"] = checkout_request_id

        if outcome == "completed":
            fields["status"] = "processing"
            fields["payment_id"] = payment_id or transaction_id or order["payment_id"]
            fields["payment_error"] = None
        elif outcome == "failed":
            fields["status"] = "payment_failed"
            fields["payment_error"] = error or "Payment failed"
        elif not order["payment_initiated_at"]:
            fields["payment_initiated_at"] = now_iso()

        order = await cls._update(order_id, fields)
        logger.info("Order %s payment %s (transaction %s)", order_id, target, transaction_id)
        await _audit(actor, f"payment_{outcome}", order_id, {"transaction_id": transaction_id, "payment_status": target})

        if outcome == "completed":
            await cls.reduce_stock(order)
            order = await cls.get_order(order_id)
            await NotificationService.send_payment_confirmation(order)
        elif outcome == "failed":
            await NotificationService.send_payment_failure(order, error)
        return order

    @classmethod
    async def reduce_stock(cls, order: Dict[str, Any]) -> bool:
        """Decrement stock and increment sold counts for a paid order.

        The order's ``stock_reduced`` flag is claimed atomically first, so
        the reduction happens at most once per order.  Missing products
        and per-product errors are logged and skipped.

        Returns ``True`` when stock was reduced by this call.
        """
        conn = get_connection()
        try:
            cursor = conn.execute(
                "UPDATE orders SET stock_reduced = 1, updated_at = ? WHERE id = ? AND stock_reduced = 0",
                (now_iso(), order["id"]),
            )
            conn.commit()
            if cursor.rowcount == 0:
                logger.info("Stock already reduced for order %s", order["id"])
                return False
            for item in order.get("items") or []:
                product_id = item.get("product_id")
                quantity = int(item.get("quantity") or 1)
                if not product_id:
                    continue
                try:
                    updated = conn.execute(
                        """
                        UPDATE products
                        SET stock = MAX(stock - ?, 0), sold = sold + ?, updated_at = ?
                        WHERE id = ?
                        """,
                        (quantity, quantity, now_iso(), product_id),
                    )
                    conn.commit()
                    if updated.rowcount == 0:
                        logger.warning("Product %s of order %s not found; stock unchanged", product_id, order["id"])
                except sqlite3.Error as exc:
                    logger.error("Error reducing stock for product %s: %s", product_id, exc)
            logger.info("Stock reduced for order %s", order["id"])
            return True
        finally:
            conn.close()

    @classmethod
    def _window_start(cls, order: Dict[str, Any]) -> Optional[datetime]:
        return parse_iso(order.get("payment_initiated_at")) or parse_iso(order.get("created_at"))

    @classmethod
    async def expire_payment(cls, order_id: str, force: bool = False) -> Dict[str, Any]:
        """Mark an unpaid order's payment as expired.

        Raises ``ValueError`` when the payment is no longer open or the
        payment window has not elapsed yet (unless ``force``).
        """
        order = await cls.get_order(order_id)
        if order["payment_status"] not in OPEN_PAYMENT_STATUSES:
            raise ValueError(f"Payment for order {order_id} is already {order['payment_status']}")
        if not force:
            started = cls._window_start(order)
            deadline = started + timedelta(seconds=settings.payment_window_seconds) if started else None
            if deadline and datetime.now(timezone.utc) < deadline:
                raise ValueError(f"Payment window for order {order_id} has not elapsed")
        order = await cls._update(order_id, {"payment_status": "expired", "status": "payment_expired"})
        logger.info("Order %s payment expired", order_id)
        await _audit("system", "payment_expired", order_id, {"force": force})
        return order

    @classmethod
    async def payment_status_view(cls, order_id: str) -> Dict[str, Any]:
        """Return the payment state of an order for client polling.

        A processing payment whose window has elapsed is expired before
        the view is built.
        """
        order = await cls.get_order(order_id)
        started = cls._window_start(order)
        expires_at = None
        remaining = None
        if order["payment_status"] in OPEN_PAYMENT_STATUSES and order["payment_initiated_at"] and started:
            deadline = started + timedelta(seconds=settings.payment_window_seconds)
            expires_at = deadline.isoformat()
            now = datetime.now(timezone.utc)
            remaining = max(0, math.ceil((deadline - now).total_seconds()))
            if deadline <= now and order["payment_status"] == "payment_processing":
                order = await cls.expire_payment(order_id, force=True)
        return {
            "order_id": order["id"],
            "status": order["status"],
            "payment_status": order["payment_status"],
            "payment_initiated_at": order["payment_initiated_at"],
            "expires_at": expires_at,
            "seconds_remaining": remaining,
            "transaction_id": order["transaction_id"],
            "payment_error": order["payment_error"],
        }
