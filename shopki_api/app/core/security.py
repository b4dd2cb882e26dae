"""
Security helpers: webhook signatures and admin authentication.

Payment aggregators sign webhook deliveries with an HMAC-SHA256 digest of
the raw request body, hex encoded, using a shared secret.  The signature
must be computed over the exact bytes received; re-serialising parsed
JSON changes whitespace and key order and breaks verification.

Customer identity is handled by the managed auth platform used by the
storefront.  The backend itself only distinguishes administrators, who
present one of the static tokens listed in ``ADMIN_API_TOKENS`` as a
bearer token.
"""

import hashlib
import hmac
from typing import Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import settings


SIGNATURE_HEADERS = ("x-lipana-signature", "x-signature", "x-webhook-signature")


def compute_signature(secret: str, body: bytes) -> str:
    """Return the hex HMAC-SHA256 of ``body`` under ``secret``."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(secret: str, body: bytes, signature: Optional[str]) -> bool:
    """Check a webhook signature in constant time.

    Comparison is case-insensitive on the hex digest; a missing
    signature never verifies.
    """
    if not signature:
        return False
    expected = compute_signature(secret, body)
    return hmac.compare_digest(expected, signature.strip().lower())


def extract_signature(headers) -> Optional[str]:
    """Return the first signature header present on the request."""
    for name in SIGNATURE_HEADERS:
        value = headers.get(name)
        if value:
            return value
    return None


security = HTTPBearer(auto_error=False)


def require_admin(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Dict[str, str]:
    """Dependency that admits only requests carrying an admin token.

    Raises 401 when no bearer token is supplied and 403 when the token is
    not one of ``ADMIN_API_TOKENS``.  With no tokens configured every
    admin route is closed.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    token = credentials.credentials
    for candidate in settings.admin_token_list:
        if hmac.compare_digest(token, candidate):
            return {"sub": "admin", "role": "admin"}
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
