"""
M-Pesa Daraja endpoints: STK push initiation, status query and the
callback Safaricom posts with the payment result.
"""

import json
import logging

from fastapi import APIRouter, BackgroundTasks, Request
from fastapi.responses import JSONResponse

from shopki_api.app.core.db import now_iso
from shopki_api.app.core.exceptions import ProviderError
from shopki_api.app.schemas.payment import MpesaInitiateRequest
from shopki_api.app.services.mpesa_service import MpesaService
from shopki_api.app.services.payment_service import PaymentService


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/initiate-payment")
async def initiate_payment(request: MpesaInitiateRequest):
    """Send an STK push for an order.

    Answers 500 when Daraja credentials are missing and 400 when Daraja
    rejects the push.
    """
    try:
        return await PaymentService.initiate_mpesa_payment(
            request.phone_number,
            request.amount,
            request.order_id,
            request.account_reference,
            request.description,
        )
    except ProviderError as e:
        payload = e.payload if isinstance(e.payload, dict) else {}
        return JSONResponse(
            status_code=e.status_code,
            content={"success": False, "error": str(e), "responseCode": payload.get("ResponseCode")},
        )


@router.get("/payment-status/{checkout_request_id}")
async def payment_status(checkout_request_id: str) -> dict:
    result = await MpesaService.query_stk_status(checkout_request_id)
    return {**result, "timestamp": now_iso()}


@router.post("/callback")
async def callback(request: Request, background_tasks: BackgroundTasks) -> dict:
    """Acknowledge a Daraja callback and apply it after responding.

    Safaricom always receives ``ResultCode 0``, even for unreadable
    bodies, so it does not retry.
    """
    body = await request.body()
    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        logger.warning("M-Pesa callback body is not valid JSON")
        payload = {}
    if isinstance(payload, dict):
        background_tasks.add_task(PaymentService.process_mpesa_callback, payload)
    return {"ResultCode": 0, "ResultDesc": "Accepted"}
