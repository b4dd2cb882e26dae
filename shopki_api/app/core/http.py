"""
Outbound HTTP client factory.

Services build their ``httpx.AsyncClient`` through ``get_client`` so
that timeouts are consistent and tests can route every provider call
to an ``httpx.MockTransport`` by assigning it to ``transport``.
"""

from typing import Any, Optional

import httpx

from .config import settings
from .exceptions import ProviderError


# Replaced by tests; ``None`` means the default network transport.
transport: Optional[httpx.AsyncBaseTransport] = None


def get_client(**kwargs: Any) -> httpx.AsyncClient:
    """Return a new async client using the configured timeout and transport."""
    kwargs.setdefault("timeout", settings.http_timeout_seconds)
    return httpx.AsyncClient(transport=transport, **kwargs)


def response_json(response: httpx.Response) -> Any:
    """Decode a provider response, returning ``{}`` for empty or non-JSON bodies."""
    try:
        return response.json()
    except ValueError:
        return {}


def error_message(payload: Any, default: str) -> str:
    """Pick a human readable message out of a provider error payload."""
    if isinstance(payload, dict):
        for key in ("message", "error_description", "errorMessage", "ResponseDescription", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and isinstance(value.get("message"), str):
                return value["message"]
        errors = payload.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            message = errors[0].get("message")
            if message:
                return str(message)
    return default


def raise_for_provider(response: httpx.Response, provider: str) -> Any:
    """Return the decoded body of a successful response or raise ``ProviderError``."""
    payload = response_json(response)
    if response.status_code >= 400:
        message = error_message(payload, f"{provider} request failed with status {response.status_code}")
        raise ProviderError(message, status_code=response.status_code, payload=payload)
    return payload


async def request_json(method: str, url: str, provider: str, **kwargs: Any) -> Any:
    """Perform a request and return the decoded JSON body.

    Network failures and HTTP error statuses are both reported as
    ``ProviderError``; the former with status 502.
    """
    try:
        async with get_client() as client:
            response = await client.request(method, url, **kwargs)
    except httpx.HTTPError as exc:
        raise ProviderError(f"{provider} is unreachable: {exc}", status_code=502) from exc
    return raise_for_provider(response, provider)
