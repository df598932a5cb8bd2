"""
Corpus Store

Loads the persisted, pre-vectorized corpus of the primary translation and
keeps it in memory for the lifetime of the store instance.

Key Properties
--------------
- Lazy: nothing is read until the first ``load()``
- Single-flight: concurrent first callers share one read of the store
- Immutable: the returned ``Corpus`` is read-only and shared by all callers
- Fail loudly: a missing, empty or malformed store raises, it is never
  replaced by an empty corpus
- Atomic rebuild: ``save()`` writes a temporary file and swaps it in
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

import numpy as np
from pydantic import ValidationError
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError

from .models import Corpus, Passage
from .vectorizer import VECTORIZER_NAME, decode_embedding, encode_embedding
from ..config import settings
from ..core.errors import (
    ConfigurationError,
    CorpusIntegrityError,
    CorpusUnavailableError,
)
from ..core.singleflight import SingleFlight
from ..db import Base, MetadataRow, VerseRow, create_corpus_engine, create_session_factory

logger = logging.getLogger("bible.corpus")

_LOAD_KEY = "corpus"


class CorpusStore:
    """
    Reader/writer for the SQLite corpus store.

    One instance owns one memoized ``Corpus``; create separate instances for
    separate stores.
    """

    def __init__(
        self,
        database_path: Optional[Union[str, Path]] = None,
        default_translation: Optional[str] = None,
    ) -> None:
        """
        Parameters
        ----------
        database_path : Optional[str | Path]
            Location of the SQLite store. Defaults to settings.bible_database_path.

        default_translation : Optional[str]
            Translation assumed when the store lacks a ``translation``
            metadata row. Defaults to settings.bible_translation.
        """
        self._path = Path(database_path or settings.bible_database_path)
        self._default_translation = (
            default_translation or settings.bible_translation
        ).upper()

        self._corpus: Optional[Corpus] = None
        self._loads: SingleFlight[Corpus] = SingleFlight()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_loaded(self) -> bool:
        return self._corpus is not None

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    async def load(self) -> Corpus:
        """
        Return the in-memory corpus, reading the store on first use.

        Raises
        ------
        CorpusUnavailableError
            If the store does not exist, cannot be read, or holds no passages
            for its declared translation.

        CorpusIntegrityError
            If metadata or a verse row is malformed.
        """
        if self._corpus is not None:
            return self._corpus

        corpus = await self._loads.do(_LOAD_KEY, self._read_store)
        self._corpus = corpus
        return corpus

    async def _read_store(self) -> Corpus:
        if not self._path.is_file():
            raise CorpusUnavailableError(
                f"Unable to read Bible database at {self._path}. "
                "Run the ingest script to generate it."
            )

        engine = create_corpus_engine(self._path)
        try:
            async with create_session_factory(engine)() as session:
                meta = {
                    row.key: row.value
                    for row in (await session.execute(select(MetadataRow))).scalars()
                }

                translation = (meta.get("translation") or self._default_translation).upper()
                dimension = _parse_dimension(meta.get("embedding_dimension"))

                stmt = (
                    select(
                        VerseRow.book,
                        VerseRow.chapter,
                        VerseRow.verse,
                        VerseRow.text,
                        VerseRow.embedding,
                    )
                    .where(VerseRow.translation == translation)
                    .order_by(text("rowid"))
                )
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError as exc:
            raise CorpusUnavailableError(
                f"Unable to read Bible database at {self._path}: {type(exc).__name__}"
            ) from exc
        finally:
            await engine.dispose()

        if not rows:
            raise CorpusUnavailableError(
                f"No verses found in the Bible database for translation {translation}."
            )

        passages: List[Passage] = []
        matrix = np.empty((len(rows), dimension), dtype=np.float32)

        for i, (book, chapter, verse, verse_text, raw) in enumerate(rows):
            if (
                not isinstance(book, str)
                or not isinstance(chapter, int)
                or not isinstance(verse, int)
                or not isinstance(verse_text, str)
            ):
                raise CorpusIntegrityError(
                    f"Encountered verse row with unexpected types at position {i} "
                    f"({translation})."
                )
            if not isinstance(raw, (bytes, bytearray, memoryview)):
                raise CorpusIntegrityError(
                    f"Unexpected embedding type for {book} {chapter}:{verse}"
                )

            try:
                matrix[i] = decode_embedding(bytes(raw), dimension)
            except CorpusIntegrityError as exc:
                raise CorpusIntegrityError(
                    f"Corrupt embedding for {book} {chapter}:{verse} ({translation}): {exc}"
                ) from exc

            try:
                passage = Passage(
                    translation=translation,
                    book=book,
                    chapter=chapter,
                    verse=verse,
                    text=verse_text,
                )
            except ValidationError as exc:
                raise CorpusIntegrityError(
                    f"Invalid verse row {book} {chapter}:{verse} ({translation}): "
                    f"{exc.error_count()} invalid field(s)"
                ) from exc
            passages.append(passage)

        logger.info(
            "Loaded %d %s verses (dimension %d) from %s",
            len(passages),
            translation,
            dimension,
            self._path,
        )

        return Corpus(
            translation=translation,
            dimension=dimension,
            passages=tuple(passages),
            embeddings=matrix,
        )

    # ------------------------------------------------------------------
    # Offline build
    # ------------------------------------------------------------------

    async def save(
        self,
        translation: str,
        dimension: int,
        records: Iterable[Tuple[Passage, np.ndarray]],
    ) -> int:
        """
        Replace the store with ``records`` for ``translation``.

        The store is written to a sibling temporary file first and moved into
        place only after the transaction commits.

        Returns
        -------
        int
            Number of verses written.
        """
        if dimension <= 0:
            raise ConfigurationError(f"Invalid embedding dimension: {dimension}")

        translation = translation.upper()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        if tmp_path.exists():
            tmp_path.unlink()

        engine = create_corpus_engine(tmp_path)
        count = 0
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            async with create_session_factory(engine)() as session:
                for passage, vector in records:
                    if vector.shape != (dimension,):
                        raise CorpusIntegrityError(
                            f"Embedding for {passage.reference} has shape "
                            f"{vector.shape}, expected ({dimension},)."
                        )
                    session.add(
                        VerseRow(
                            translation=translation,
                            book=passage.book,
                            chapter=passage.chapter,
                            verse=passage.verse,
                            text=passage.text,
                            embedding=encode_embedding(vector),
                        )
                    )
                    count += 1

                session.add_all(
                    MetadataRow(key=key, value=value)
                    for key, value in (
                        ("translation", translation),
                        ("embedding_dimension", str(dimension)),
                        ("vectorizer", VECTORIZER_NAME),
                        ("generated_at", datetime.now(timezone.utc).isoformat()),
                    )
                )
                await session.commit()
        except BaseException:
            await engine.dispose()
            tmp_path.unlink(missing_ok=True)
            raise

        await engine.dispose()
        os.replace(tmp_path, self._path)

        # A rebuilt store invalidates whatever this instance had cached.
        self._corpus = None

        logger.info("Saved %d %s verses to %s", count, translation, self._path)
        return count


def _parse_dimension(raw: Optional[str]) -> int:
    try:
        dimension = int(raw) if raw is not None else 0
    except ValueError:
        dimension = 0

    if dimension <= 0:
        raise ConfigurationError(
            "Invalid or missing embedding dimension metadata in Bible database."
        )
    return dimension
