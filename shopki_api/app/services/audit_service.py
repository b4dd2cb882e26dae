"""
Audit service for recording and querying system actions.

This module provides a centralized API for writing audit events to the
``audit_logs`` table and retrieving them with filters and pagination.
Order creation, payment transitions, fulfilment updates, booking
transitions and manual reconciliations are recorded here.  Only
administrators have access to read audit logs.
"""

from __future__ import annotations

from typing import Optional, List, Dict, Any

from shopki_api.app.core.db import from_json, get_connection, now_iso, to_json


class AuditService:
    """Service class for writing and retrieving audit logs."""

    @classmethod
    async def log(
        cls,
        actor: Optional[str],
        action: str,
        object_type: str,
        object_id: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Insert a new audit record.

        Parameters
        ----------
        actor : Optional[str]
            Who performed the action: a user id, ``"admin"``, or the name
            of the provider for webhook driven changes (``"lipana"``,
            ``"mpesa"``).  ``None`` for anonymous storefront calls.
        action : str
            Short description of the action (e.g. "create", "payment_completed").
        object_type : str
            Type of object affected (e.g. "order", "booking", "product").
        object_id : Optional[str]
            Identifier of the affected document, if applicable.
        details : Optional[dict]
            Additional structured data about the action, stored as JSON.
        """
        conn = get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO audit_logs (actor, action, object_type, object_id, timestamp, details)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (actor, action, object_type, object_id, now_iso(), to_json(details) if details else None),
            )
            conn.commit()
        finally:
            conn.close()

    @classmethod
    async def list_logs(
        cls,
        actor: Optional[str] = None,
        object_type: Optional[str] = None,
        object_id: Optional[str] = None,
        action: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """Retrieve audit records with optional filters and pagination.

        Date filters accept ISO strings and apply to the ``timestamp``
        column.  Sorting is always by ``timestamp`` descending.
        """
        conn = get_connection()
        try:
            cursor = conn.cursor()
            where_clauses: List[str] = []
            params: List[Any] = []
            if actor is not None:
                where_clauses.append("actor = ?")
                params.append(actor)
            if object_type:
                where_clauses.append("object_type = ?")
                params.append(object_type)
            if object_id:
                where_clauses.append("object_id = ?")
                params.append(object_id)
            if action:
                where_clauses.append("action = ?")
                params.append(action)
            if start_date:
                where_clauses.append("timestamp >= ?")
                params.append(start_date)
            if end_date:
                where_clauses.append("timestamp <= ?")
                params.append(end_date)
            query = "SELECT id, actor, action, object_type, object_id, timestamp, details FROM audit_logs"
            if where_clauses:
                query += " WHERE " + " AND ".join(where_clauses)
            query += " ORDER BY timestamp DESC, id DESC LIMIT ? OFFSET ?"
            params.extend([limit, offset])
            rows = cursor.execute(query, tuple(params)).fetchall()
            return [
                {
                    "id": row["id"],
                    "actor": row["actor"],
                    "action": row["action"],
                    "object_type": row["object_type"],
                    "object_id": row["object_id"],
                    "timestamp": row["timestamp"],
                    "details": from_json(row["details"], row["details"]),
                }
                for row in rows
            ]
        finally:
            conn.close()
