"""
API Models

Pydantic models shared by the search engine and the HTTP boundary.
``SearchResult`` is the canonical result contract of
``BibleSearchEngine.search``; the route only wraps it in ``SearchResponse``.
"""

from __future__ import annotations

from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict


class SearchResult(BaseModel):
    """
    One ranked verse.
    """
    book: str = Field(..., min_length=1)
    chapter: int = Field(..., ge=1)
    verse: int = Field(..., ge=1)
    text: str
    translation: str = Field(..., min_length=1)
    score: float

    model_config = ConfigDict(extra="forbid")


class SearchResponse(BaseModel):
    """
    Response body of ``GET /search``.
    """
    term: str
    translation: Optional[str] = None
    results: List[SearchResult] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")
