"""
Main entrypoint for the Shopki API.

This module assembles the FastAPI application, sets up logging, CORS
and error handlers, and includes the API router.  The ``create_app``
function builds and configures the app, which is then instantiated at
module import time as ``app``.  Importing the app here makes it easy to
run with uvicorn or another ASGI server, e.g.::

    uvicorn shopki_api.app.main:app --reload

Every error leaves the API as JSON ``{"success": false, "error": ...}``
with the appropriate status code.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .core.logging_config import setup_logging
from .core.exceptions import ProviderError, ProviderNotConfiguredError
from .api.router import router as api_router
from .core.db import init_db


logger = logging.getLogger(__name__)

MISSING_ERROR_TYPES = {"missing", "string_too_short"}


def _field_name(loc) -> str:
    parts = [str(part) for part in loc if part not in ("body", "query", "path")]
    return ".".join(parts) or "body"


def validation_message(exc: RequestValidationError) -> str:
    """Summarise validation errors as ``Missing required fields: a, b``.

    Errors other than missing or empty values are reported as
    ``Invalid fields: ...``.
    """
    missing, invalid = [], []
    for error in exc.errors():
        name = _field_name(error.get("loc", ()))
        target = missing if error.get("type") in MISSING_ERROR_TYPES else invalid
        if name not in target:
            target.append(name)
    if missing:
        return "Missing required fields: " + ", ".join(missing)
    return "Invalid fields: " + ", ".join(invalid)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"success": False, "error": validation_message(exc)})

    @app.exception_handler(ProviderNotConfiguredError)
    async def not_configured_handler(request: Request, exc: ProviderNotConfiguredError) -> JSONResponse:
        logger.warning("%s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})

    @app.exception_handler(ProviderError)
    async def provider_error_handler(request: Request, exc: ProviderError) -> JSONResponse:
        logger.error("%s %s: provider error %s: %s", request.method, request.url.path, exc.status_code, exc)
        return JSONResponse(status_code=exc.status_code, content={"success": False, "error": str(exc)})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})


def create_app() -> FastAPI:
    """Create and configure a FastAPI application.

    This function performs one-time setup tasks such as configuring
    logging, CORS and error handlers and including the API router.  It
    returns a fully configured FastAPI instance ready to be served.

    Returns
    -------
    FastAPI
        A configured FastAPI application instance.
    """
    # Initialise logging before anything else so that the handlers below
    # can safely log messages.
    setup_logging(settings.log_level, settings.log_file or None)

    app = FastAPI(title=settings.project_name, version=settings.api_version, debug=settings.debug)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(api_router, prefix="/api")

    # Register startup event to initialise the database and apply migrations.
    @app.on_event("startup")
    async def startup_event() -> None:
        # This will create the database file if it does not exist and
        # ensure all tables are up to date.
        init_db()
        logger.info(
            "Shopki API started (email: %s, database: %s)",
            settings.email_provider if settings.email_api_key else "logging only",
            settings.database_path,
        )

    return app


# Create the application instance at import time so that tools such as
# uvicorn can discover it without calling create_app manually.
app = create_app()
