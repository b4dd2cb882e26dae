"""
Payment orchestration.

Connects the provider integrations (``mpesa_service``,
``lipana_service``) with the order document.  Initiation routes stamp
the order and record a transaction -> order mapping; webhooks and
callbacks resolve the order the notification belongs to and hand the
normalised outcome to ``OrderService.apply_payment_result``.

Webhook and callback processing runs after the acknowledgement has been
sent, so the ``process_*`` methods never raise: every problem is logged.
"""

import logging
import sqlite3
from typing import Any, Dict, Optional

from shopki_api.app.core.db import get_connection, now_iso
from shopki_api.app.services import lipana_service
from shopki_api.app.services.audit_service import AuditService
from shopki_api.app.services.lipana_service import LipanaService
from shopki_api.app.services.mpesa_service import MpesaService
from shopki_api.app.services.order_service import OrderService


logger = logging.getLogger(__name__)


class PaymentService:
    """Glue between payment providers and orders."""

    @classmethod
    async def save_transaction(
        cls,
        transaction_id: str,
        order_id: Optional[str],
        checkout_request_id: Optional[str] = None,
        amount: Optional[int] = None,
        phone: Optional[str] = None,
        status: str = "pending",
    ) -> None:
        """Insert or update the mapping from a provider transaction to an order."""
        conn = get_connection()
        try:
            conn.execute(
                """
                INSERT INTO transactions (id, order_id, checkout_request_id, amount, phone, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    order_id = COALESCE(excluded.order_id, transactions.order_id),
                    checkout_request_id = COALESCE(excluded.checkout_request_id, transactions.checkout_request_id),
                    amount = COALESCE(excluded.amount, transactions.amount),
                    phone = COALESCE(excluded.phone, transactions.phone),
                    status = excluded.status
                """,
                (transaction_id, order_id, checkout_request_id, amount, phone, status, now_iso()),
            )
            conn.commit()
        finally:
            conn.close()

    @classmethod
    async def get_transaction(cls, transaction_id: str) -> Optional[Dict[str, Any]]:
        conn = get_connection()
        try:
            row = conn.execute("SELECT * FROM transactions WHERE id = ?", (transaction_id,)).fetchone()
            return dict(row) if row else None
        finally:
            conn.close()

    @classmethod
    async def _set_transaction_status(cls, transaction_id: Optional[str], status: str) -> None:
        if not transaction_id:
            return
        conn = get_connection()
        try:
            conn.execute("UPDATE transactions SET status = ? WHERE id = ?", (status, transaction_id))
            conn.commit()
        finally:
            conn.close()

    # -- initiation -----------------------------------------------------

    @classmethod
    async def initiate_mpesa_payment(
        cls,
        phone_number: str,
        amount: float,
        order_id: str,
        account_reference: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Start a Daraja STK push and mark the order as processing."""
        result = await MpesaService.initiate_stk_push(phone_number, amount, order_id, account_reference, description)
        checkout_request_id = result.get("CheckoutRequestID")
        try:
            await OrderService.mark_payment_processing(order_id, checkout_request_id=checkout_request_id)
        except LookupError:
            logger.warning("STK push sent for unknown order %s", order_id)
        return {
            "success": True,
            "checkoutRequestId": checkout_request_id,
            "responseCode": result.get("ResponseCode"),
            "message": result.get("ResponseDescription") or "STK Push sent to phone",
            "timestamp": now_iso(),
        }

    @classmethod
    async def initiate_lipana_payment(cls, phone: str, amount: float, order_id: Optional[str] = None) -> Dict[str, Any]:
        """Start a Lipana STK push, record the mapping and stamp the order."""
        response = await LipanaService.initiate_stk_push(phone, amount, order_id)
        raw = response.pop("raw", None)
        transaction = response["transaction"]
        transaction_id = transaction["id"]
        checkout_request_id = transaction["checkoutRequestId"]
        try:
            if transaction_id:
                await cls.save_transaction(
                    str(transaction_id),
                    order_id,
                    checkout_request_id,
                    transaction["amount"],
                    transaction["phone"],
                )
            if order_id:
                await OrderService.mark_payment_processing(
                    order_id,
                    checkout_request_id=checkout_request_id,
                    transaction={"id": transaction_id, "checkout_request_id": checkout_request_id, "raw": raw},
                )
        except LookupError:
            logger.warning("Lipana STK push sent for unknown order %s", order_id)
        except sqlite3.Error as exc:
            logger.error("Error writing transaction mapping or stamping order %s: %s", order_id, exc)
        return response

    # -- order resolution ----------------------------------------------

    @classmethod
    async def resolve_order(
        cls,
        order_id: Optional[str] = None,
        checkout_request_id: Optional[str] = None,
        transaction_id: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Find the order a payment notification refers to.

        Tried in order: explicit order id, order stamped with the
        checkout request id, the transactions mapping, an order whose
        transaction id matches.
        """
        if order_id:
            try:
                return await OrderService.get_order(order_id)
            except LookupError:
                logger.warning("Order %s from payment notification not found", order_id)
        if checkout_request_id:
            order = await OrderService.find_order_by_checkout_request(checkout_request_id)
            if order:
                return order
        if transaction_id:
            mapping = await cls.get_transaction(transaction_id)
            if mapping and mapping.get("order_id"):
                try:
                    return await OrderService.get_order(mapping["order_id"])
                except LookupError:
                    logger.warning("Transaction %s maps to missing order %s", transaction_id, mapping["order_id"])
            return await OrderService.find_order_by_transaction(transaction_id)
        return None

    # -- notifications from providers -----------------------------------

    @classmethod
    async def process_lipana_webhook(cls, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Apply a verified Lipana webhook to its order.

        Returns the updated order, or ``None`` when the webhook was
        ignored (unknown status, no matching order) or failed.
        """
        try:
            status = lipana_service.normalize_status(payload)
            ids = lipana_service.extract_identifiers(payload)
            logger.info(
                "Lipana webhook: status=%s order=%s transaction=%s checkout=%s",
                status,
                ids["order_id"],
                ids["transaction_id"],
                ids["checkout_request_id"],
            )
            if status == "unknown":
                logger.warning("Lipana webhook with unrecognised status ignored")
                return None
            order = await cls.resolve_order(ids["order_id"], ids["checkout_request_id"], ids["transaction_id"])
            if not order:
                logger.warning("No order matches Lipana webhook %s", ids)
                return None
            data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
            error = None
            if status == "failed":
                error = data.get("message") or data.get("reason") or data.get("resultDesc") or "Payment failed"
            order = await OrderService.apply_payment_result(
                order["id"],
                status,
                transaction_id=ids["transaction_id"],
                checkout_request_id=ids["checkout_request_id"],
                raw=data,
                error=error,
                actor="lipana",
            )
            await cls._set_transaction_status(ids["transaction_id"], status)
            return order
        except Exception:
            logger.exception("Error applying Lipana webhook")
            return None

    @classmethod
    async def process_mpesa_callback(cls, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Apply a Daraja STK callback to its order."""
        try:
            callback = MpesaService.parse_callback(payload)
            if callback is None:
                logger.warning("M-Pesa callback without Body.stkCallback ignored")
                return None
            order = await cls.resolve_order(callback["order_id"], callback["checkout_request_id"])
            if not order:
                logger.warning(
                    "Could not match M-Pesa callback to an order (reference %s, checkout %s)",
                    callback["order_id"],
                    callback["checkout_request_id"],
                )
                return None
            if callback["result_code"] == 0:
                payment_id = callback["receipt_number"] or callback["checkout_request_id"]
                return await OrderService.apply_payment_result(
                    order["id"],
                    "completed",
                    transaction_id=payment_id,
                    checkout_request_id=callback["checkout_request_id"],
                    payment_id=payment_id,
                    raw=callback["raw"],
                    actor="mpesa",
                )
            return await OrderService.apply_payment_result(
                order["id"],
                "failed",
                checkout_request_id=callback["checkout_request_id"],
                raw=callback["raw"],
                error=f"Payment failed with code: {callback['result_code']}",
                actor="mpesa",
            )
        except Exception:
            logger.exception("Error applying M-Pesa callback")
            return None

    @classmethod
    async def reconcile(cls, transaction_id: str, status: str = "completed", actor: Optional[str] = "admin") -> Dict[str, Any]:
        """Manually apply a payment outcome to the order of ``transaction_id``.

        Raises ``LookupError`` when neither the mapping nor any order
        knows the transaction.
        """
        mapping = await cls.get_transaction(transaction_id)
        order = None
        if mapping and mapping.get("order_id"):
            try:
                order = await OrderService.get_order(mapping["order_id"])
            except LookupError:
                order = None
        if order is None:
            order = await OrderService.find_order_by_transaction(transaction_id)
        if order is None:
            raise LookupError("No mapping or order found for transactionId")
        order = await OrderService.apply_payment_result(
            order["id"],
            status,
            transaction_id=transaction_id,
            checkout_request_id=mapping.get("checkout_request_id") if mapping else None,
            raw=mapping,
            error="Marked as failed during reconciliation" if status == "failed" else None,
            actor=actor,
        )
        await cls._set_transaction_status(transaction_id, status)
        try:
            await AuditService.log(actor, "reconcile", "order", order["id"], {"transaction_id": transaction_id, "status": status})
        except Exception as exc:
            logger.warning("Could not write audit log for reconcile of %s: %s", transaction_id, exc)
        return order
