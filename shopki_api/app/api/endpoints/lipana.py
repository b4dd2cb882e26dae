"""
Lipana endpoints: STK push initiation, the signed payment webhook and
manual reconciliation for administrators.
"""

import json
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from shopki_api.app.core.config import is_configured, settings
from shopki_api.app.core.db import now_iso
from shopki_api.app.core.exceptions import ProviderError
from shopki_api.app.core.security import extract_signature, require_admin, verify_signature
from shopki_api.app.schemas.order import OrderRead
from shopki_api.app.schemas.payment import LipanaStkRequest, ReconcileRequest
from shopki_api.app.services.lipana_service import RECOVERY_OPTIONS
from shopki_api.app.services.payment_service import PaymentService


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/initiate-stk-push")
async def initiate_stk_push(request: LipanaStkRequest):
    """Start a Lipana STK push for an order.

    Provider failures are answered with Lipana's status code and a list
    of recovery options the storefront shows to the customer.
    """
    try:
        return await PaymentService.initiate_lipana_payment(request.phone, request.amount, request.order_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ProviderError as e:
        return JSONResponse(
            status_code=e.status_code,
            content={
                "success": False,
                "error": str(e),
                "statusCode": e.status_code,
                "orderId": request.order_id,
                "timestamp": now_iso(),
                "recoveryOptions": RECOVERY_OPTIONS,
            },
        )


@router.post("/webhook")
async def webhook(request: Request, background_tasks: BackgroundTasks):
    """Receive a Lipana payment notification.

    The signature is checked against the raw body.  A valid delivery is
    acknowledged immediately and applied to its order afterwards.
    """
    body = await request.body()
    secret = settings.webhook_secret
    if is_configured(secret):
        if not verify_signature(secret, body, extract_signature(request.headers)):
            logger.warning("Lipana webhook signature mismatch")
            return JSONResponse(status_code=401, content={"success": False, "message": "Invalid signature"})
    else:
        logger.warning("No Lipana webhook secret configured; accepting unsigned webhook")

    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        logger.warning("Could not parse Lipana webhook body as JSON")
        payload = {}
    if not isinstance(payload, dict):
        payload = {}
    logger.info("Lipana webhook received (%d bytes)", len(body))
    background_tasks.add_task(PaymentService.process_lipana_webhook, payload)
    return {"success": True, "received": True}


@router.post("/reconcile")
async def reconcile(request: ReconcileRequest, admin: dict = Depends(require_admin)) -> dict:
    """Apply a payment status to the order behind a Lipana transaction id."""
    try:
        order = await PaymentService.reconcile(request.transaction_id, request.status, actor=admin.get("sub"))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return {
        "success": True,
        "message": f"Order {order['id']} updated to {request.status}",
        "order": OrderRead.model_validate(order).model_dump(),
    }
