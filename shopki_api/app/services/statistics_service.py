"""
Service layer for finance statistics shown on the admin dashboard.

Aggregates orders created within a period (all time, last 30 days or
last 7 days) into revenue totals, the platform commission, seller
payouts, a month-by-month revenue series, order counts per status and
the best selling products.  Aggregation is done in Python over the
period's orders, as order items are stored as JSON.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from shopki_api.app.core.db import from_json, get_connection, parse_iso


COMMISSION_RATE = 0.04
PERIOD_DAYS = {"month": 30, "week": 7}
STATUS_COUNTS = ("completed", "pending", "processing", "cancelled", "returned")
TOP_PRODUCTS = 5


class StatisticsService:
    """Finance metrics for administrators."""

    @classmethod
    def period_start(cls, period: str, now: Optional[datetime] = None) -> Optional[datetime]:
        if period == "all":
            return None
        if period not in PERIOD_DAYS:
            raise ValueError(f"Unknown period: {period}")
        return (now or datetime.now(timezone.utc)) - timedelta(days=PERIOD_DAYS[period])

    @classmethod
    async def finance(cls, period: str = "all") -> Dict[str, Any]:
        """Return the finance summary for ``period`` (``all``, ``month`` or ``week``)."""
        start = cls.period_start(period)
        conn = get_connection()
        try:
            orders = conn.execute("SELECT id, total, status, items, created_at FROM orders").fetchall()
            products = {
                row["id"]: row
                for row in conn.execute("SELECT id, name, price FROM products").fetchall()
            }
        finally:
            conn.close()

        total_revenue = 0.0
        completed_revenue = 0.0
        monthly: Dict[str, float] = defaultdict(float)
        statuses: Counter = Counter()
        product_sales: Counter = Counter()
        count = 0
        for order in orders:
            created = parse_iso(order["created_at"])
            if start and (created is None or created < start):
                continue
            count += 1
            amount = float(order["total"] or 0)
            total_revenue += amount
            if order["status"] == "completed":
                completed_revenue += amount
            statuses[order["status"]] += 1
            if created:
                monthly[created.strftime("%Y-%m")] += amount
            for item in from_json(order["items"], []):
                if item.get("product_id"):
                    product_sales[item["product_id"]] += int(item.get("quantity") or 1)

        commission = total_revenue * COMMISSION_RATE
        top_products: List[Dict[str, Any]] = []
        for product_id, quantity in product_sales.most_common(TOP_PRODUCTS):
            product = products.get(product_id)
            price = float(product["price"]) if product else 0.0
            top_products.append(
                {
                    "productId": product_id,
                    "name": product["name"] if product else "Unknown Product",
                    "quantity": quantity,
                    "revenue": quantity * price,
                }
            )

        order_stats = {"total": count}
        order_stats.update({status: statuses.get(status, 0) for status in STATUS_COUNTS})
        return {
            "period": period,
            "totalRevenue": total_revenue,
            "completedRevenue": completed_revenue,
            "totalCommission": commission,
            "commissionRate": COMMISSION_RATE,
            "sellerPayouts": total_revenue - commission,
            "totalProfit": commission,
            "monthlyRevenue": [{"month": month, "amount": monthly[month]} for month in sorted(monthly)],
            "orderStats": order_stats,
            "topProducts": top_products,
        }
