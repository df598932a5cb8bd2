"""
Search Routes

Exposes ``BibleSearchEngine.search`` over HTTP. Query parameters arrive as
strings and are validated here; everything past validation is the engine's
job.
"""

import math
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, status

from .dependencies import get_search_engine
from .models import SearchResponse
from ..auth.security import require_api_key
from ..core.errors import SearchValidationError
from ..search import BibleSearchEngine

router = APIRouter(tags=["search"])


def parse_number_param(value: Optional[str], key: str) -> Optional[int]:
    """
    Parse an optional non-negative integer query parameter.

    Raises
    ------
    SearchValidationError
        If the value is not a finite, non-negative integer.
    """
    if value is None:
        return None

    try:
        parsed = float(value)
    except ValueError:
        parsed = math.nan

    if not math.isfinite(parsed):
        raise SearchValidationError(f"Query parameter `{key}` must be a finite number.")
    if not parsed.is_integer():
        raise SearchValidationError(f"Query parameter `{key}` must be an integer.")
    if parsed < 0:
        raise SearchValidationError(f"Query parameter `{key}` cannot be negative.")

    return int(parsed)


@router.get(
    "/search",
    response_model=SearchResponse,
    summary="Semantic verse search",
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_api_key)],
)
async def search(
    engine: Annotated[BibleSearchEngine, Depends(get_search_engine)],
    term: Annotated[Optional[str], Query()] = None,
    q: Annotated[Optional[str], Query()] = None,
    translation: Annotated[Optional[str], Query()] = None,
    limit: Annotated[Optional[str], Query()] = None,
    max_results: Annotated[Optional[str], Query(alias="maxResults")] = None,
) -> SearchResponse:
    """
    Search verses for ``term`` (or ``q``).

    Errors from the engine propagate to the global exception handlers:
    validation -> 400, missing translation/passage -> 404,
    missing corpus -> 503, anything else -> 500.
    """
    query = (term if term is not None else (q or "")).strip()
    if not query:
        raise SearchValidationError(
            "Missing search term. Provide `term` or `q` query parameter."
        )

    parsed_limit = parse_number_param(limit, "limit")
    parsed_max_results = parse_number_param(max_results, "maxResults")

    results = await engine.search(
        query,
        translation=translation,
        limit=parsed_limit,
        max_results=parsed_max_results,
    )

    return SearchResponse(term=query, translation=translation, results=results)
