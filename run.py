"""Entry point for the Shopki API server.

This script launches the FastAPI application with Uvicorn.  It is
intended to be executed from the project root, for example under
Docker or a process manager, where you only specify a single Python
file to run.

Configuration such as provider credentials, the database path and
admin tokens is read from environment variables; see
``shopki_api/app/core/config.py`` for the supported names.

Usage:
    python run.py
"""
import asyncio
import logging
import os
from uvicorn import Config, Server

from shopki_api.app.main import app


async def run_api() -> None:
    """Start the API using Uvicorn.

    Host and port are read from environment variables `API_HOST` and
    `PORT`. Defaults are `0.0.0.0` and `5000`.
    """
    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "5000"))
    config = Config(app=app, host=host, port=port, reload=False, log_level="info")
    server = Server(config)
    await server.serve()


async def main() -> None:
    try:
        await run_api()
    except Exception:
        logging.exception("Exception in API server")
        raise


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        pass
