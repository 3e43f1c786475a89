"""FastAPI application factory.

Lifespan
--------
On startup the app configures logging, opens a single SQLite connection
(shared across all requests via ``request.app.state.db``) and initialises the
schema.  On shutdown it closes the connection cleanly.

Routers
-------
    /sync      batch-by-batch and full listing sync
    /listings  read stored listings
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from carlisting import __version__
from carlisting.config import settings
from carlisting.db import get_connection, init_db
from carlisting.logging_setup import setup_logging

from carlisting.api.routers import listings as listings_router
from carlisting.api.routers import sync as sync_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the DB on startup and close it on shutdown."""
    setup_logging(settings.effective_log_level, settings.log_file)
    conn = get_connection()
    init_db(conn)
    app.state.db = conn
    try:
        yield
    finally:
        conn.close()


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    app = FastAPI(
        title="carlisting API",
        description=(
            "Imports a dealer's car listings in resumable batches and keeps the "
            "local listing store in step with what is currently published."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    app.include_router(sync_router.router, prefix="/sync", tags=["sync"])
    app.include_router(listings_router.router, prefix="/listings", tags=["listings"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn carlisting.api.app:app  (uvicorn installed separately)
app = create_app()
