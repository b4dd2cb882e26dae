"""
Catalog endpoints.  Reads are public; writes require an admin token.

Customers add reviews to products; each review refreshes the product's
rating.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from shopki_api.app.core.security import require_admin
from shopki_api.app.schemas.product import ProductCreate, ProductRead, ProductUpdate
from shopki_api.app.schemas.review import ReviewCreate, ReviewRead
from shopki_api.app.services.product_service import ProductService
from shopki_api.app.services.review_service import ReviewService


router = APIRouter()


@router.get("", response_model=List[ProductRead])
async def list_products(
    category: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=500),
    q: Optional[str] = Query(None, description="Search the name, description and keywords"),
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    featured: Optional[bool] = Query(None),
    sort_by: str = Query("newest", alias="sortBy"),
) -> List[dict]:
    try:
        return await ProductService.list_products(
            category=category,
            limit=limit,
            min_price=min_price,
            max_price=max_price,
            featured=featured,
            search=q,
            sort_by=sort_by,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/featured", response_model=List[ProductRead])
async def featured_products(limit: int = Query(10, ge=1, le=100)) -> List[dict]:
    return await ProductService.featured_products(limit)


@router.get("/{product_id}", response_model=ProductRead)
async def get_product(product_id: str) -> dict:
    try:
        return await ProductService.get_product(product_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
async def create_product(product: ProductCreate, admin: dict = Depends(require_admin)) -> dict:
    return await ProductService.create_product(product, actor=admin.get("sub"))


@router.put("/{product_id}", response_model=ProductRead)
async def update_product(product_id: str, product: ProductUpdate, admin: dict = Depends(require_admin)) -> dict:
    try:
        return await ProductService.update_product(product_id, product, actor=admin.get("sub"))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(product_id: str, admin: dict = Depends(require_admin)) -> None:
    try:
        await ProductService.delete_product(product_id, actor=admin.get("sub"))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return None


@router.get("/{product_id}/reviews", response_model=List[ReviewRead])
async def product_reviews(product_id: str) -> List[dict]:
    return await ReviewService.list_product_reviews(product_id)


@router.post("/{product_id}/reviews", response_model=ReviewRead, status_code=status.HTTP_201_CREATED)
async def add_review(product_id: str, review: ReviewCreate) -> dict:
    try:
        return await ReviewService.add_review(product_id, review)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
