"""
Business logic for catalog products and categories.

Products are created and edited by administrators.  Their ``stock`` and
``sold`` counters are maintained by ``OrderService.reduce_stock`` once
an order's payment completes, ``rating`` and ``review_count`` by
``ReviewService``.  ``keywords`` is stored as JSON text and takes part
in search.
"""

import logging
import sqlite3
from typing import Any, Dict, List, Optional

from shopki_api.app.core.db import from_json, get_connection, new_id, now_iso, to_json
from shopki_api.app.schemas.product import PRODUCT_SORTS, CategoryCreate, ProductCreate, ProductUpdate
from shopki_api.app.services.audit_service import AuditService


logger = logging.getLogger(__name__)

SORT_CLAUSES = {
    "newest": "created_at DESC",
    "price_asc": "price ASC",
    "price_desc": "price DESC",
    "rating": "rating DESC, created_at DESC",
}


def _row_to_product(row: sqlite3.Row) -> Dict[str, Any]:
    product = dict(row)
    product["keywords"] = from_json(product.get("keywords"), [])
    product["featured"] = bool(product.get("featured"))
    return product


def _like_pattern(term: str) -> str:
    escaped = term.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


async def _audit(actor: Optional[str], action: str, object_type: str, object_id: str, details: Optional[dict] = None) -> None:
    try:
        await AuditService.log(actor, action, object_type, object_id, details)
    except Exception as exc:
        logger.warning("Could not write audit log for %s %s: %s", object_type, object_id, exc)


class ProductService:
    """CRUD and search on the ``products`` table."""

    @classmethod
    async def create_product(cls, data: ProductCreate, actor: Optional[str] = "admin") -> Dict[str, Any]:
        product_id = new_id()
        timestamp = now_iso()
        conn = get_connection()
        try:
            conn.execute(
                """
                INSERT INTO products (id, name, description, price, category, vendor_id, image_url,
                                      stock, sold, keywords, featured, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?, ?, ?)
                """,
                (
                    product_id,
                    data.name,
                    data.description,
                    data.price,
                    data.category,
                    data.vendor_id,
                    data.image_url,
                    data.stock,
                    to_json(data.keywords),
                    1 if data.featured else 0,
                    timestamp,
                    timestamp,
                ),
            )
            conn.commit()
        finally:
            conn.close()
        await _audit(actor, "create", "product", product_id, {"name": data.name})
        return await cls.get_product(product_id)

    @classmethod
    async def get_product(cls, product_id: str) -> Dict[str, Any]:
        conn = get_connection()
        try:
            row = conn.execute("SELECT * FROM products WHERE id = ?", (product_id,)).fetchone()
        finally:
            conn.close()
        if not row:
            raise LookupError(f"Product {product_id} not found")
        return _row_to_product(row)

    @classmethod
    async def list_products(
        cls,
        category: Optional[str] = None,
        limit: Optional[int] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        featured: Optional[bool] = None,
        search: Optional[str] = None,
        sort_by: str = "newest",
    ) -> List[Dict[str, Any]]:
        """List products with optional filters.

        Parameters
        ----------
        category : Optional[str]
            Only products of this category.
        limit : Optional[int]
            Maximum number of products returned.
        min_price, max_price : Optional[float]
            Inclusive price bounds.
        featured : Optional[bool]
            Only featured (or only non-featured) products.
        search : Optional[str]
            Case-insensitive substring matched against the name,
            description and keywords.
        sort_by : str
            One of ``newest`` (default), ``price_asc``, ``price_desc``
            or ``rating``.

        Raises
        ------
        ValueError
            If ``sort_by`` is not a known ordering.
        """
        if sort_by not in PRODUCT_SORTS:
            raise ValueError(f"Invalid sort: {sort_by}. Use one of: {', '.join(PRODUCT_SORTS)}")
        where: List[str] = []
        params: List[Any] = []
        if category:
            where.append("category = ?")
            params.append(category)
        if min_price is not None:
            where.append("price >= ?")
            params.append(min_price)
        if max_price is not None:
            where.append("price <= ?")
            params.append(max_price)
        if featured is not None:
            where.append("featured = ?")
            params.append(1 if featured else 0)
        if search and search.strip():
            pattern = _like_pattern(search.strip())
            where.append(
                "(LOWER(name) LIKE ? ESCAPE '\\' OR LOWER(COALESCE(description, '')) LIKE ? ESCAPE '\\'"
                " OR LOWER(COALESCE(keywords, '')) LIKE ? ESCAPE '\\')"
            )
            params.extend([pattern, pattern, pattern])
        query = "SELECT * FROM products"
        if where:
            query += " WHERE " + " AND ".join(where)
        query += f" ORDER BY {SORT_CLAUSES[sort_by]}"
        if limit:
            query += " LIMIT ?"
            params.append(limit)
        conn = get_connection()
        try:
            return [_row_to_product(row) for row in conn.execute(query, tuple(params)).fetchall()]
        finally:
            conn.close()

    @classmethod
    async def search_products(cls, term: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return await cls.list_products(search=term, limit=limit)

    @classmethod
    async def featured_products(cls, limit: int = 10) -> List[Dict[str, Any]]:
        return await cls.list_products(featured=True, limit=limit)

    @classmethod
    async def update_product(cls, product_id: str, data: ProductUpdate, actor: Optional[str] = "admin") -> Dict[str, Any]:
        await cls.get_product(product_id)
        # name, price, stock, keywords and featured cannot be cleared
        fields = {
            name: value
            for name, value in data.model_dump(exclude_unset=True).items()
            if value is not None or name not in ("name", "price", "stock", "keywords", "featured")
        }
        if not fields:
            raise ValueError("No fields to update")
        audit_details = dict(fields)
        if "keywords" in fields:
            fields["keywords"] = to_json(fields["keywords"])
        if "featured" in fields:
            fields["featured"] = 1 if fields["featured"] else 0
        fields["updated_at"] = now_iso()
        assignments = ", ".join(f"{name} = ?" for name in fields)
        conn = get_connection()
        try:
            conn.execute(f"UPDATE products SET {assignments} WHERE id = ?", (*fields.values(), product_id))
            conn.commit()
        finally:
            conn.close()
        await _audit(actor, "update", "product", product_id, audit_details)
        return await cls.get_product(product_id)

    @classmethod
    async def delete_product(cls, product_id: str, actor: Optional[str] = "admin") -> None:
        conn = get_connection()
        try:
            cursor = conn.execute("DELETE FROM products WHERE id = ?", (product_id,))
            conn.commit()
            if cursor.rowcount == 0:
                raise LookupError(f"Product {product_id} not found")
        finally:
            conn.close()
        await _audit(actor, "delete", "product", product_id)


class CategoryService:
    """Catalog categories; ``id`` is the slug products refer to."""

    @classmethod
    async def list_categories(cls) -> List[Dict[str, Any]]:
        conn = get_connection()
        try:
            return [dict(row) for row in conn.execute("SELECT * FROM categories ORDER BY name").fetchall()]
        finally:
            conn.close()

    @classmethod
    async def get_category(cls, category_id: str) -> Dict[str, Any]:
        conn = get_connection()
        try:
            row = conn.execute("SELECT * FROM categories WHERE id = ?", (category_id,)).fetchone()
        finally:
            conn.close()
        if not row:
            raise LookupError("Category not found")
        return dict(row)

    @classmethod
    async def create_category(cls, data: CategoryCreate, actor: Optional[str] = "admin") -> Dict[str, Any]:
        conn = get_connection()
        try:
            conn.execute(
                "INSERT INTO categories (id, name, description, image_url, created_at) VALUES (?, ?, ?, ?, ?)",
                (data.id, data.name, data.description, data.image_url, now_iso()),
            )
            conn.commit()
        except sqlite3.IntegrityError:
            raise ValueError(f"Category {data.id} already exists")
        finally:
            conn.close()
        await _audit(actor, "create", "category", data.id, {"name": data.name})
        return await cls.get_category(data.id)

    @classmethod
    async def delete_category(cls, category_id: str, actor: Optional[str] = "admin") -> None:
        conn = get_connection()
        try:
            cursor = conn.execute("DELETE FROM categories WHERE id = ?", (category_id,))
            conn.commit()
            if cursor.rowcount == 0:
                raise LookupError("Category not found")
        finally:
            conn.close()
        await _audit(actor, "delete", "category", category_id)
