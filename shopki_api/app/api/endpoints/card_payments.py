"""
Card payment endpoints for PayPal and Stripe.
"""

from fastapi import APIRouter

from shopki_api.app.schemas.payment import (
    PaypalCaptureRequest,
    PaypalCreateRequest,
    StripeConfirmRequest,
    StripeIntentRequest,
)
from shopki_api.app.services.card_payment_service import PaypalService, StripeService


router = APIRouter()


@router.post("/paypal/create")
async def paypal_create(request: PaypalCreateRequest) -> dict:
    return await PaypalService.create_order(request.amount)


@router.post("/paypal/capture")
async def paypal_capture(request: PaypalCaptureRequest) -> dict:
    return await PaypalService.capture_order(request.order_id)


@router.post("/stripe/create-intent")
async def stripe_create_intent(request: StripeIntentRequest) -> dict:
    return await StripeService.create_intent(request.amount, request.order_id)


@router.post("/stripe/confirm")
async def stripe_confirm(request: StripeConfirmRequest) -> dict:
    return await StripeService.retrieve_intent(request.intent_id)
