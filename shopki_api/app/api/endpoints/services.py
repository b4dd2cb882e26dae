"""
Vendor service listing endpoints.

Listings are public.  Vendors create listings, edit their own and add
portfolio images; edits by anyone but the owner are answered with 403.
Moderation and deletion require an admin token.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from shopki_api.app.core.security import require_admin
from shopki_api.app.schemas.service import (
    SERVICE_STATUSES,
    PortfolioUpload,
    ServiceCreate,
    ServiceRead,
    ServiceStatusUpdate,
    ServiceUpdate,
)
from shopki_api.app.services.service_listing_service import ServiceListingService


router = APIRouter()


@router.get("", response_model=List[ServiceRead])
async def list_services(
    category: Optional[str] = Query(None),
    sort_by: str = Query("newest", alias="sortBy"),
) -> List[dict]:
    try:
        return await ServiceListingService.list_services(category=category, sort_by=sort_by)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/admin", response_model=List[ServiceRead])
async def admin_list_services(
    status_filter: Optional[str] = Query(None, alias="status"),
    admin: dict = Depends(require_admin),
) -> List[dict]:
    """Every listing, optionally filtered by moderation status."""
    if status_filter is not None and status_filter not in SERVICE_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid status: {status_filter}")
    return await ServiceListingService.list_services(statuses=[status_filter] if status_filter else [])


@router.get("/seller/{seller_id}", response_model=List[ServiceRead])
async def seller_services(seller_id: str) -> List[dict]:
    return await ServiceListingService.list_seller_services(seller_id)


@router.get("/{service_id}", response_model=ServiceRead)
async def get_service(service_id: str) -> dict:
    try:
        return await ServiceListingService.get_service(service_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("", response_model=ServiceRead, status_code=status.HTTP_201_CREATED)
async def create_service(service: ServiceCreate) -> dict:
    return await ServiceListingService.create_service(service)


async def _run_owner_action(coro) -> dict:
    try:
        return await coro
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.put("/{service_id}", response_model=ServiceRead)
async def update_service(service_id: str, service: ServiceUpdate) -> dict:
    return await _run_owner_action(ServiceListingService.update_service(service_id, service))


@router.post("/{service_id}/portfolio", response_model=ServiceRead)
async def add_portfolio(service_id: str, upload: PortfolioUpload) -> dict:
    return await _run_owner_action(ServiceListingService.add_portfolio_images(service_id, upload))


@router.patch("/{service_id}/status", response_model=ServiceRead)
async def update_service_status(
    service_id: str, request: ServiceStatusUpdate, admin: dict = Depends(require_admin)
) -> dict:
    try:
        return await ServiceListingService.update_status(service_id, request.status, request.notes, actor=admin.get("sub"))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.delete("/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_service(service_id: str, admin: dict = Depends(require_admin)) -> None:
    try:
        await ServiceListingService.delete_service(service_id, actor=admin.get("sub"))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return None
