"""
Search API Client

Calls a deployed ``/api/search`` endpoint instead of the in-process engine.
Used by ``scripts/search_bible.py --api`` to check a running service.
"""

from __future__ import annotations

import json
import logging
from typing import List, Optional

import httpx
from pydantic import ValidationError

from .models import SearchResult
from ..config import settings
from ..core.errors import ConfigurationError, SearchApiError

logger = logging.getLogger("bible.api_client")

SEARCH_PATH = "/api/search"


def search_url(base_url: str) -> str:
    return base_url.rstrip("/") + SEARCH_PATH


async def search_via_api(
    term: str,
    translation: str,
    limit: int,
    base_url: Optional[str] = None,
    api_key: Optional[str] = None,
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[SearchResult]:
    """
    Run a search against a remote service.

    Parameters
    ----------
    base_url : Optional[str]
        Service root. Defaults to settings.bible_api_base_url.

    api_key : Optional[str]
        Value for the ``x-api-key`` header. Defaults to settings.api_key.

    transport : Optional[httpx.AsyncBaseTransport]
        Transport override, used by tests.

    Raises
    ------
    ConfigurationError
        If no base URL or API key is configured.

    SearchApiError
        If the service is unreachable, answers non-2xx, or returns a body
        without a ``results`` array.
    """
    base_url = base_url or settings.bible_api_base_url
    if not base_url:
        raise ConfigurationError(
            "BIBLE_API_BASE_URL environment variable must be set to use --api flag."
        )

    if api_key is None and settings.api_key is not None:
        api_key = settings.api_key.get_secret_value()
    if not api_key:
        raise ConfigurationError("API_KEY environment variable must be set to use --api flag.")

    url = search_url(base_url)
    params = {"term": term, "translation": translation, "limit": str(limit)}

    try:
        async with httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.api_timeout,
            transport=transport,
        ) as client:
            response = await client.get(url, params=params, headers={"x-api-key": api_key})
    except httpx.HTTPError as exc:
        logger.error("Search API request to %s failed: %s", url, exc)
        raise SearchApiError(f"Failed to reach Bible API at {url}: {exc}") from exc

    if not response.is_success:
        detail = _error_detail(response.text)
        message = f"Bible API request failed ({response.status_code} {response.reason_phrase})"
        if detail:
            message += f": {detail}"
        raise SearchApiError(message, status_code=response.status_code)

    try:
        payload = response.json()
    except ValueError as exc:
        raise SearchApiError(f"Unable to parse Bible API response: {exc}") from exc

    if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
        raise SearchApiError("Bible API response is missing a results array.")

    try:
        return [SearchResult.model_validate(item) for item in payload["results"]]
    except ValidationError as exc:
        raise SearchApiError(f"Bible API returned a malformed result: {exc}") from exc


def _error_detail(body: str) -> Optional[str]:
    if not body.strip():
        return None

    try:
        parsed = json.loads(body)
    except ValueError:
        return body

    if isinstance(parsed, dict):
        for field in ("detail", "error"):
            if isinstance(parsed.get(field), str):
                return parsed[field]
    return json.dumps(parsed, indent=2)
