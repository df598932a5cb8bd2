"""
Bible Search Application Entry Point

This module defines the FastAPI application instance, registers all routers,
configures exception handling, and provides a test-friendly application
factory.
"""

from __future__ import annotations

import logging
from fastapi import FastAPI

from .config import settings
from .core.errors import (
    ConfigurationError,
    CorpusIntegrityError,
    DataAvailabilityError,
    SearchValidationError,
    corpus_failure_exception_handler,
    data_availability_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)

from .api import (
    search_routes,
    health_routes,
)


logger = logging.getLogger("bible.app")


# ---------------------------------------------------------------------
# Application Factory (Test-Friendly)
# ---------------------------------------------------------------------

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns
    -------
    FastAPI
        Fully configured FastAPI application.
    """
    app = FastAPI(
        title="bible-search",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # --------------------------------------------------------------
    # Exception Handling
    # --------------------------------------------------------------

    app.add_exception_handler(SearchValidationError, validation_exception_handler)
    app.add_exception_handler(DataAvailabilityError, data_availability_exception_handler)
    app.add_exception_handler(ConfigurationError, corpus_failure_exception_handler)
    app.add_exception_handler(CorpusIntegrityError, corpus_failure_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # --------------------------------------------------------------
    # Router Registration
    # --------------------------------------------------------------

    app.include_router(health_routes.router)
    app.include_router(search_routes.router)
    app.include_router(search_routes.router, prefix="/api", include_in_schema=False)

    @app.on_event("startup")
    async def _startup_validation() -> None:
        logger.info("Starting bible-search (primary translation %s)", settings.bible_translation)

        if settings.api_key is None:
            logger.warning("API_KEY is not set; /search will refuse every request")

    return app


# ---------------------------------------------------------------------
# Default Application Instance (for Uvicorn/Gunicorn)
# ---------------------------------------------------------------------

app = create_app()
