"""
Catalog category endpoints.  Reads are public; writes require an admin
token.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from shopki_api.app.core.security import require_admin
from shopki_api.app.schemas.product import CategoryCreate, CategoryRead
from shopki_api.app.services.product_service import CategoryService


router = APIRouter()


@router.get("", response_model=List[CategoryRead])
async def list_categories() -> List[dict]:
    return await CategoryService.list_categories()


@router.get("/{category_id}", response_model=CategoryRead)
async def get_category(category_id: str) -> dict:
    try:
        return await CategoryService.get_category(category_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("", response_model=CategoryRead, status_code=status.HTTP_201_CREATED)
async def create_category(category: CategoryCreate, admin: dict = Depends(require_admin)) -> dict:
    try:
        return await CategoryService.create_category(category, actor=admin.get("sub"))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(category_id: str, admin: dict = Depends(require_admin)) -> None:
    try:
        await CategoryService.delete_category(category_id, actor=admin.get("sub"))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return None
