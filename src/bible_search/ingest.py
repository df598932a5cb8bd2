"""
Corpus Build

Offline step that turns a translation document into the persisted corpus
store: flatten -> normalize -> embed every verse -> save. Afterwards the
translation documents can be mirrored to remote storage with
``sync_translations``.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional, Union

from .config import settings
from .core.errors import ConfigurationError
from .embeddings.corpus_store import CorpusStore
from .embeddings.vectorizer import embed
from .storage.blob_client import BlobClient
from .sync.manager import SyncManager, SyncReport
from .translations.documents import flatten_document, read_local_document

logger = logging.getLogger("bible.ingest")


async def build_corpus(
    translation: Optional[str] = None,
    dimension: Optional[int] = None,
    translations_dir: Optional[Union[str, Path]] = None,
    store: Optional[CorpusStore] = None,
) -> int:
    """
    Build the corpus store for ``translation``.

    Parameters
    ----------
    translation : Optional[str]
        Translation code. Defaults to settings.bible_translation.

    dimension : Optional[int]
        Embedding dimension. Defaults to settings.embed_dim.

    translations_dir : Optional[str | Path]
        Root of the local translation documents.

    store : Optional[CorpusStore]
        Destination store. Defaults to a store at settings.bible_database_path.

    Returns
    -------
    int
        Number of verses written.
    """
    code = (translation or settings.bible_translation).upper()
    dim = dimension if dimension is not None else settings.embed_dim
    if dim <= 0:
        raise ConfigurationError(f"Invalid embedding dimension: {dim}")

    source_dir = translations_dir or settings.translations_dir
    store = store or CorpusStore()

    logger.info("Loading %s translation (embedding dimension %d)", code, dim)
    document = await asyncio.to_thread(read_local_document, source_dir, code)

    records = [
        (passage, embed(passage.text, dim))
        for passage in flatten_document(code, document)
    ]
    logger.info("Loaded %d verses. Inserting...", len(records))

    return await store.save(code, dim, records)


async def sync_translations(
    force_upload: Optional[bool] = None,
    translations_dir: Optional[Union[str, Path]] = None,
) -> Optional[SyncReport]:
    """
    Mirror translation documents to remote storage.

    Returns None, after logging a warning, when no remote credential is
    configured.
    """
    blob = BlobClient.from_settings()
    if blob is None:
        logger.warning("BLOB_READ_WRITE_TOKEN is not set; skipping translation Blob sync.")
        return None

    manager = SyncManager(
        blob,
        translations_dir=translations_dir,
        force_upload=force_upload,
    )
    return await manager.sync()
