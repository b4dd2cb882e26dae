"""
Audit log endpoints.

Provides access to the audit trail for administrators.  Logs capture
order creation, payment transitions, fulfilment updates, booking
transitions and reconciliations, and support filtering by actor,
object, action and date range.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from shopki_api.app.core.security import require_admin
from shopki_api.app.services.audit_service import AuditService

router = APIRouter()


@router.get("")
async def list_audit_logs(
    actor: Optional[str] = Query(None, description="Filter by actor (user id, admin, lipana, mpesa)"),
    object_type: Optional[str] = Query(None, description="Filter by object type (order, booking, product)"),
    object_id: Optional[str] = Query(None, description="Filter by object id"),
    action: Optional[str] = Query(None, description="Filter by action"),
    start_date: Optional[str] = Query(None, description="Start date (ISO format) for filtering"),
    end_date: Optional[str] = Query(None, description="End date (ISO format) for filtering"),
    limit: int = Query(100, ge=1, le=500, description="Maximum number of logs to return"),
    offset: int = Query(0, ge=0, description="Number of logs to skip"),
    admin: dict = Depends(require_admin),
) -> List[dict]:
    """Retrieve audit logs ordered by timestamp descending."""
    return await AuditService.list_logs(
        actor=actor,
        object_type=object_type,
        object_id=object_id,
        action=action,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
