"""
Error Taxonomy & Global Error Handling

This module defines the domain exceptions raised by the search engine and the
sync manager, and the FastAPI exception handlers that translate them into
HTTP responses.

Taxonomy
--------
- ConfigurationError      : missing/invalid configuration, never retried
- SearchValidationError   : rejected input, raised before any engine work
- DataAvailabilityError   : corpus store, translation or passage absent
- DataIntegrityError      : malformed rows or documents
- BlobStorageError        : transport / status failures of the remote store
- SearchApiError          : failures of a remote search service call

Design Goals
------------
- Never leak internal exception details to clients
- Always return deterministic, machine-readable error responses
- Log full stack traces internally for debugging
"""

from __future__ import annotations

import logging
from typing import Dict, Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("bible.errors")


# ---------------------------------------------------------------------
# Domain Exceptions
# ---------------------------------------------------------------------

class BibleSearchError(RuntimeError):
    """Base class for all engine and sync failures."""


class ConfigurationError(BibleSearchError):
    """Raised when required configuration is missing or invalid."""


class SearchValidationError(BibleSearchError, ValueError):
    """Raised when query input is rejected before reaching the engine."""


class DataAvailabilityError(BibleSearchError):
    """Raised when requested data does not exist."""


class CorpusUnavailableError(DataAvailabilityError):
    """The persisted corpus store is absent, unreadable or empty."""


class TranslationUnavailableError(DataAvailabilityError):
    """A translation document could not be loaded from any source."""

    def __init__(self, translation: str, message: str) -> None:
        super().__init__(message)
        self.translation = translation


class PassageNotFoundError(DataAvailabilityError):
    """The translation loaded, but it does not contain the passage."""

    def __init__(
        self,
        translation: str,
        book: str,
        chapter: int,
        verse: int,
        message: str,
    ) -> None:
        super().__init__(message)
        self.translation = translation
        self.book = book
        self.chapter = chapter
        self.verse = verse


class DataIntegrityError(BibleSearchError):
    """Raised when persisted data or a document is malformed."""


class CorpusIntegrityError(DataIntegrityError):
    """A row of the persisted corpus store has unexpected content."""


class TranslationFormatError(DataIntegrityError):
    """A translation document is not valid JSON or has the wrong shape."""


class BlobStorageError(BibleSearchError):
    """Raised when a remote object store request fails."""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.key = key
        self.status_code = status_code


class BlobQuotaExceededError(BlobStorageError):
    """The remote store refused a write because the quota is exhausted."""


class SearchApiError(BibleSearchError):
    """A remote /api/search call failed or returned an unusable payload."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


# ---------------------------------------------------------------------
# Public Exception Handlers
# ---------------------------------------------------------------------

async def validation_exception_handler(
    request: Request,
    exc: SearchValidationError,
) -> JSONResponse:
    """
    Return a 400 with the validation message. The message is safe to expose
    because it only describes the rejected query parameter.
    """
    return JSONResponse(
        status_code=400,
        content={"error": "invalid_request", "detail": str(exc)},
    )


async def data_availability_exception_handler(
    request: Request,
    exc: DataAvailabilityError,
) -> JSONResponse:
    """
    Map data-availability failures to HTTP.

    A missing corpus means the service cannot answer anything (503); a
    missing translation or passage only affects this request (404).
    """
    logger.error(
        "Data unavailable during request %s %s: %s",
        request.method,
        request.url.path,
        exc,
    )

    if isinstance(exc, CorpusUnavailableError):
        return JSONResponse(
            status_code=503,
            content={
                "error": "service_unavailable",
                "detail": "Search corpus is not available",
            },
        )

    return JSONResponse(
        status_code=404,
        content={"error": "not_found", "detail": str(exc)},
    )


async def corpus_failure_exception_handler(
    request: Request,
    exc: BibleSearchError,
) -> JSONResponse:
    """
    Map a corpus that loaded but is unusable (bad dimension metadata, corrupt
    rows) to 503, the same as a missing corpus.
    """
    logger.error(
        "Search corpus failed to load during request %s %s: %s",
        request.method,
        request.url.path,
        exc,
    )
    return JSONResponse(
        status_code=503,
        content={
            "error": "service_unavailable",
            "detail": "Search corpus is not available",
        },
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Catch-all handler for uncaught exceptions.

    Behavior
    --------
    - Logs the full exception stack trace for internal diagnostics.
    - Returns a generic 500 error to the client with no internal details.
    """

    # Log full traceback internally (never returned to client)
    logger.exception(
        "Unhandled exception during request: %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )

    payload: Dict[str, Any] = {
        "error": "internal_server_error",
        "detail": "Unable to complete Bible search.",
    }

    return JSONResponse(
        status_code=500,
        content=payload,
    )
