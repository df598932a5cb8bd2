"""
API Key Verification

Every search request must carry an ``x-api-key`` header matching the
configured ``API_KEY``. A server started without a key refuses all requests
rather than serving them unauthenticated.
"""

from __future__ import annotations

import hmac
import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader

from ..config import settings

logger = logging.getLogger("bible.auth")


# ---------------------------------------------------------------------
# Security Scheme
# ---------------------------------------------------------------------

api_key_header = APIKeyHeader(name="x-api-key", auto_error=False)


# ---------------------------------------------------------------------
# Public Dependency
# ---------------------------------------------------------------------

def require_api_key(
    provided: Optional[str] = Depends(api_key_header),
) -> None:
    """
    FastAPI dependency enforcing the API key.

    Raises
    ------
    HTTPException
        500 if the server has no key configured, 401 if the key is missing
        or wrong.
    """
    if settings.api_key is None or not settings.api_key.get_secret_value():
        logger.error("API_KEY environment variable is not set")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server misconfiguration: missing API key",
        )

    expected = settings.api_key.get_secret_value()
    if not provided or not hmac.compare_digest(provided.encode(), expected.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
