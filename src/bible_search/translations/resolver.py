"""
Translation Resolver

Looks a matched passage up in another translation by its
``(book, chapter, verse)`` identity.

Documents are loaded whole, remote store first when a credential is
configured, local file otherwise (or when the remote object does not exist).
Successful loads are cached per translation code for the lifetime of the
resolver; failed loads are not cached, so the next request retries.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, Optional, Union

from .documents import (
    TranslationDocument,
    parse_translation_document,
    read_local_document,
)
from ..config import settings
from ..core.errors import BlobStorageError, PassageNotFoundError, TranslationUnavailableError
from ..core.singleflight import SingleFlight
from ..embeddings.models import Passage
from ..storage.blob_client import BlobClient

logger = logging.getLogger("bible.translations")


class TranslationResolver:
    """
    Per-process cache of translation documents plus verse lookup.
    """

    def __init__(
        self,
        translations_dir: Optional[Union[str, Path]] = None,
        blob_client: Optional[BlobClient] = None,
    ) -> None:
        """
        Parameters
        ----------
        translations_dir : Optional[str | Path]
            Root of the local ``{CODE}/{CODE}_bible.json`` documents.
            Defaults to settings.translations_dir.

        blob_client : Optional[BlobClient]
            Remote store client. When None, only local files are used.
        """
        self._translations_dir = Path(translations_dir or settings.translations_dir)
        self._blob = blob_client

        self._documents: Dict[str, TranslationDocument] = {}
        self._loads: SingleFlight[TranslationDocument] = SingleFlight()

    def is_cached(self, translation: str) -> bool:
        return translation.upper() in self._documents

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def resolve_text(self, passage: Passage, translation: str) -> str:
        """
        Return the text of ``passage`` in ``translation``.

        The passage's own translation is answered from the passage itself
        without any I/O.

        Raises
        ------
        TranslationUnavailableError
            If the translation document cannot be loaded at all.

        TranslationFormatError
            If the document is malformed.

        PassageNotFoundError
            If the document loads but lacks this book, chapter or verse.
        """
        target = translation.upper()
        if target == passage.translation:
            return passage.text

        document = await self.load_document(target)
        return lookup_text(document, passage, target)

    async def load_document(self, translation: str) -> TranslationDocument:
        code = translation.upper()
        cached = self._documents.get(code)
        if cached is not None:
            return cached

        document = await self._loads.do(code, lambda: self._fetch(code))
        self._documents[code] = document
        return document

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _fetch(self, translation: str) -> TranslationDocument:
        if self._blob is not None:
            remote = await self._fetch_remote(translation)
            if remote is not None:
                logger.info("Loaded translation %s from Blob storage", translation)
                return remote

        document = await asyncio.to_thread(
            read_local_document, self._translations_dir, translation
        )
        logger.info("Loaded translation %s from %s", translation, self._translations_dir)
        return document

    async def _fetch_remote(self, translation: str) -> Optional[TranslationDocument]:
        key = self._blob.translation_key(translation)
        try:
            raw = await self._blob.get(key)
        except BlobStorageError as exc:
            raise TranslationUnavailableError(
                translation,
                f"Unable to load translation {translation} from Blob storage: {exc}",
            ) from exc

        if raw is None:
            return None

        return parse_translation_document(raw, translation, key)


def lookup_text(
    document: TranslationDocument,
    passage: Passage,
    translation: str,
) -> str:
    book = document.get(passage.book)
    if not book:
        raise PassageNotFoundError(
            translation,
            passage.book,
            passage.chapter,
            passage.verse,
            f"Book {passage.book} is not available in translation {translation}.",
        )

    chapter = book.get(str(passage.chapter))
    if not chapter:
        raise PassageNotFoundError(
            translation,
            passage.book,
            passage.chapter,
            passage.verse,
            f"Chapter {passage.chapter} is not available in {passage.book} ({translation}).",
        )

    text = chapter.get(str(passage.verse))
    if not isinstance(text, str):
        raise PassageNotFoundError(
            translation,
            passage.book,
            passage.chapter,
            passage.verse,
            f"Verse {passage.reference} is not available in translation {translation}.",
        )

    return text
