"""
Finance statistics for the admin dashboard.
"""

from typing import Literal

from fastapi import APIRouter, Depends, Query

from shopki_api.app.core.security import require_admin
from shopki_api.app.services.statistics_service import StatisticsService


router = APIRouter()


@router.get("/finance")
async def finance(
    period: Literal["all", "month", "week"] = Query("all", description="all, month (30 days) or week (7 days)"),
    admin: dict = Depends(require_admin),
) -> dict:
    """Revenue, commission, seller payouts, monthly revenue, order counts and top products."""
    return await StatisticsService.finance(period)
