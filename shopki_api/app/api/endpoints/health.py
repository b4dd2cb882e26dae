"""
Health check endpoint.
"""

from fastapi import APIRouter

from shopki_api.app.core.db import now_iso
from shopki_api.app.services.email_service import EmailService
from shopki_api.app.services.lipana_service import LipanaService
from shopki_api.app.services.mpesa_service import MpesaService


router = APIRouter()


def _state(configured: bool) -> str:
    return "configured" if configured else "not_configured"


@router.get("/health")
async def health() -> dict:
    """Report that the server is up and which providers are configured."""
    return {
        "status": "ok",
        "message": "Payment API server is running",
        "email": _state(EmailService.is_configured()),
        "mpesa": _state(MpesaService.is_configured()),
        "lipana": _state(LipanaService.is_configured()),
        "timestamp": now_iso(),
    }
