"""
Pydantic models for catalog products and categories.

``stock`` and ``sold`` are counters: clients set the initial stock, the
backend decrements it when an order's payment completes.  ``rating``
and ``review_count`` are maintained from the product's reviews.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


PRODUCT_SORTS = ("newest", "price_asc", "price_desc", "rating")


class ProductBase(BaseModel):
    name: str = Field(..., min_length=1, examples=["Kiondo basket"])
    description: Optional[str] = None
    price: float = Field(..., ge=0, examples=[2500.0])
    category: Optional[str] = Field(None, examples=["crafts"])
    vendor_id: Optional[str] = None
    image_url: Optional[str] = None
    stock: int = Field(0, ge=0)
    keywords: List[str] = Field(default_factory=list, examples=[["sisal", "handwoven"]])
    featured: bool = False


class ProductCreate(ProductBase):
    """Schema for creating a product."""
    pass


class ProductUpdate(BaseModel):
    """Partial update; omitted fields keep their current value."""

    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = None
    vendor_id: Optional[str] = None
    image_url: Optional[str] = None
    stock: Optional[int] = Field(None, ge=0)
    keywords: Optional[List[str]] = None
    featured: Optional[bool] = None


class ProductRead(ProductBase):
    id: str
    sold: int = 0
    rating: float = 0
    review_count: int = 0
    created_at: str
    updated_at: str


class CategoryCreate(BaseModel):
    id: str = Field(..., min_length=1, pattern=r"^[a-z0-9-]+$", examples=["crafts"])
    name: str = Field(..., min_length=1, examples=["Crafts"])
    description: Optional[str] = None
    image_url: Optional[str] = None


class CategoryRead(CategoryCreate):
    created_at: str
