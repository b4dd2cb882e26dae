"""
Business logic for product reviews.

Customers review products they bought.  Reviews are stored in the
``reviews`` table; after each new review the product's ``rating`` (the
mean of its review ratings, one decimal) and ``review_count`` are
recomputed.  Comments are stored as submitted and HTML-escaped when
returned.
"""

import html
import logging
from typing import Any, Dict, List

from shopki_api.app.core.db import get_connection, new_id, now_iso
from shopki_api.app.schemas.review import ReviewCreate
from shopki_api.app.services.audit_service import AuditService


logger = logging.getLogger(__name__)


def _row_to_review(row) -> Dict[str, Any]:
    review = dict(row)
    if review.get("comment") is not None:
        review["comment"] = html.escape(review["comment"])
    return review


class ReviewService:
    """Service for handling product reviews."""

    @classmethod
    async def add_review(cls, product_id: str, data: ReviewCreate) -> Dict[str, Any]:
        """Create a review and refresh the product's rating.

        Raises ``LookupError`` when the product does not exist.
        """
        review_id = new_id()
        conn = get_connection()
        try:
            cursor = conn.cursor()
            product = cursor.execute("SELECT id FROM products WHERE id = ?", (product_id,)).fetchone()
            if not product:
                raise LookupError(f"Product {product_id} not found")
            cursor.execute(
                """
                INSERT INTO reviews (id, product_id, user_id, user_name, rating, comment, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (review_id, product_id, data.user_id, data.user_name, data.rating, data.comment, now_iso()),
            )
            summary = cursor.execute(
                "SELECT AVG(rating) AS average, COUNT(*) AS total FROM reviews WHERE product_id = ?",
                (product_id,),
            ).fetchone()
            cursor.execute(
                "UPDATE products SET rating = ?, review_count = ?, updated_at = ? WHERE id = ?",
                (round(summary["average"], 1), summary["total"], now_iso(), product_id),
            )
            conn.commit()
            row = cursor.execute("SELECT * FROM reviews WHERE id = ?", (review_id,)).fetchone()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.info("User %s reviewed product %s (%s stars)", data.user_id, product_id, data.rating)
        try:
            await AuditService.log(data.user_id, "create", "review", review_id, {"product_id": product_id, "rating": data.rating})
        except Exception as exc:
            logger.warning("Could not write audit log for review %s: %s", review_id, exc)
        return _row_to_review(row)

    @classmethod
    async def list_product_reviews(cls, product_id: str) -> List[Dict[str, Any]]:
        """Reviews of a product, newest first."""
        conn = get_connection()
        try:
            rows = conn.execute(
                "SELECT * FROM reviews WHERE product_id = ? ORDER BY created_at DESC, rowid DESC",
                (product_id,),
            ).fetchall()
        finally:
            conn.close()
        return [_row_to_review(row) for row in rows]
