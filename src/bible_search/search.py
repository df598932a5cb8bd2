"""
Bible Search Engine

Answers a free-text query against the primary corpus and returns the best
matching verses, optionally re-rendered in another translation.

Flow
----
validate limit -> load corpus (memoized) -> embed query -> rank ->
resolve text per result (only when a non-primary translation is requested)
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional, Union

from .api.models import SearchResult
from .config import settings
from .core.errors import SearchValidationError
from .embeddings.corpus_store import CorpusStore
from .embeddings.ranker import top_k
from .embeddings.vectorizer import embed, is_zero_vector, normalize_text
from .storage.blob_client import BlobClient
from .translations.resolver import TranslationResolver

logger = logging.getLogger("bible.search")

Number = Union[int, float]


def clamp_limit(raw: Number, max_limit: int) -> int:
    """
    Validate a raw result limit and clamp it to ``[0, max_limit]``.

    Fractional values are floored.

    Raises
    ------
    SearchValidationError
        If ``raw`` is not a finite, non-negative number.
    """
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise SearchValidationError("Search result limit must be a number.")
    if not math.isfinite(raw):
        raise SearchValidationError("Search result limit must be a finite number.")

    value = math.floor(raw)
    if value < 0:
        raise SearchValidationError("Search result limit cannot be negative.")

    return min(value, max_limit)


def normalize_translation(value: Optional[str]) -> Optional[str]:
    """Uppercase a translation code; blank means "use the primary"."""
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed.upper() if trimmed else None


class BibleSearchEngine:
    """
    Owns the corpus store and the translation resolver for one service
    instance. All caches live on these objects, not in module state.
    """

    def __init__(
        self,
        corpus_store: Optional[CorpusStore] = None,
        resolver: Optional[TranslationResolver] = None,
        default_limit: Optional[int] = None,
        max_limit: Optional[int] = None,
    ) -> None:
        self.corpus_store = corpus_store or CorpusStore()
        self.resolver = resolver or TranslationResolver(
            blob_client=BlobClient.from_settings()
        )
        self.default_limit = (
            default_limit if default_limit is not None else settings.default_search_limit
        )
        self.max_limit = max_limit if max_limit is not None else settings.max_search_limit

    async def search(
        self,
        term: Optional[str],
        translation: Optional[str] = None,
        limit: Optional[Number] = None,
        max_results: Optional[Number] = None,
    ) -> List[SearchResult]:
        """
        Rank verses against ``term``.

        Parameters
        ----------
        term : Optional[str]
            Free-text query. Blank queries return no results.

        translation : Optional[str]
            Case-insensitive translation code for the returned text.
            Defaults to the corpus translation.

        limit : Optional[int | float]
            Maximum number of results, clamped to ``max_limit``.

        max_results : Optional[int | float]
            Legacy alias for ``limit``; ignored when ``limit`` is given.

        Returns
        -------
        List[SearchResult]
            Results ordered by descending score.
        """
        query = normalize_text(term or "")
        if not query:
            return []

        raw_limit = limit if limit is not None else max_results
        k = clamp_limit(
            raw_limit if raw_limit is not None else self.default_limit,
            self.max_limit,
        )
        if k == 0:
            return []

        requested = normalize_translation(translation)

        corpus = await self.corpus_store.load()
        target = requested or corpus.translation

        query_vector = embed(query, corpus.dimension)
        if is_zero_vector(query_vector):
            return []

        matches = top_k(corpus, query_vector, k)

        results: List[SearchResult] = []
        for passage, score in matches:
            text = await self.resolver.resolve_text(passage, target)
            results.append(
                SearchResult(
                    book=passage.book,
                    chapter=passage.chapter,
                    verse=passage.verse,
                    text=text,
                    translation=target,
                    score=score,
                )
            )

        logger.debug("Query %r (%s, k=%d) returned %d results", query, target, k, len(results))
        return results
