"""
Order endpoints.

Checkout creates orders here; the storefront reads them back, polls
their payment status while an STK push is pending and asks for expiry
once the payment window has elapsed.  Fulfilment updates and the full
order list are restricted to administrators.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from shopki_api.app.core.security import require_admin
from shopki_api.app.schemas.order import (
    ExpireRequest,
    OrderCreate,
    OrderRead,
    OrderStatusUpdate,
    PaymentStatusRead,
)
from shopki_api.app.services.order_service import OrderService


router = APIRouter()


@router.post("", response_model=OrderRead, status_code=status.HTTP_201_CREATED)
async def create_order(order: OrderCreate) -> dict:
    """Place an order.  Totals and shipping are computed server side."""
    try:
        return await OrderService.create_order(order)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("", response_model=List[OrderRead])
async def list_orders(
    status_param: Optional[str] = Query(None, alias="status", description="Filter by order status"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    admin: dict = Depends(require_admin),
) -> List[dict]:
    return await OrderService.list_orders(status=status_param, limit=limit, offset=offset)


@router.get("/user/{user_id}", response_model=List[OrderRead])
async def list_user_orders(user_id: str = Path(..., description="Customer id")) -> List[dict]:
    """Orders of one customer, newest first."""
    return await OrderService.list_user_orders(user_id)


@router.get("/{order_id}", response_model=OrderRead)
async def get_order(order_id: str) -> dict:
    try:
        return await OrderService.get_order(order_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.patch("/{order_id}/status", response_model=OrderRead)
async def update_order_status(
    update: OrderStatusUpdate,
    order_id: str = Path(...),
    admin: dict = Depends(require_admin),
) -> dict:
    """Change the fulfilment status and email the customer."""
    try:
        return await OrderService.update_order_status(order_id, update.status, actor=admin.get("sub"))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/{order_id}/payment-status", response_model=PaymentStatusRead)
async def payment_status(order_id: str) -> dict:
    """Payment state for client polling; expires a stale processing payment."""
    try:
        return await OrderService.payment_status_view(order_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/{order_id}/expire-payment", response_model=OrderRead)
async def expire_payment(order_id: str, request: Optional[ExpireRequest] = None) -> dict:
    """Expire an unpaid order whose payment window has elapsed.

    Returns 409 when the window is still open or the payment has
    already been settled.
    """
    try:
        return await OrderService.expire_payment(order_id, force=bool(request and request.force))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
