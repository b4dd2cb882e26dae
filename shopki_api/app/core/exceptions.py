"""
Errors raised when talking to third-party providers.

Both derive from ``RuntimeError`` so callers that only care about
"something went wrong upstream" can catch that.  API handlers map
``ProviderNotConfiguredError`` to HTTP 500 and ``ProviderError`` to the
upstream status code.
"""

from typing import Any, Optional


class ProviderNotConfiguredError(RuntimeError):
    """Credentials for a provider are missing or still placeholders."""


class ProviderError(RuntimeError):
    """A provider answered with an error or could not be reached."""

    def __init__(self, message: str, status_code: int = 502, payload: Optional[Any] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload
