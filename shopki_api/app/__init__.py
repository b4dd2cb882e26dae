"""
Application package initializer.

This package contains the ASGI entrypoint of the Shopki backend and all
of its submodules.  Each domain (orders, payments, bookings, chats,
email, etc.) keeps its business logic in ``services`` and exposes a
router defined in ``api/endpoints``.  The routers are aggregated in
``api/router.py`` and mounted under ``/api``.
"""

from .main import app  # noqa: F401
