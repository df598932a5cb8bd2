"""
Translation Documents

A translation document is the full text of one translation as nested JSON:

    { book: { "chapter": { "verse": text } } }

Chapter and verse keys are decimal strings. Documents are loaded whole; this
module parses and validates them, locates them on disk, and flattens them into
``Passage`` records for the corpus build.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Iterator, Union

from ..core.errors import TranslationFormatError, TranslationUnavailableError
from ..embeddings.models import Passage
from ..embeddings.vectorizer import normalize_text

TranslationDocument = Dict[str, Dict[str, Dict[str, str]]]


def document_filename(translation: str) -> str:
    return f"{translation}_bible.json"


def local_document_path(translations_dir: Union[str, Path], translation: str) -> Path:
    return Path(translations_dir) / translation / document_filename(translation)


def parse_translation_document(
    raw: Union[str, bytes],
    translation: str,
    source: str,
) -> TranslationDocument:
    """
    Decode and shape-check a translation document.

    Parameters
    ----------
    raw : str | bytes
        JSON payload.

    translation : str
        Translation code, used in error messages.

    source : str
        File path or remote key the payload came from.

    Raises
    ------
    TranslationFormatError
        If the payload is not JSON or not a book/chapter/verse mapping.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise TranslationFormatError(
            f"Translation data for {translation} at {source} is not valid JSON."
        ) from exc

    if not isinstance(data, dict):
        raise TranslationFormatError(
            f"Translation data for {translation} at {source} must be a JSON object."
        )

    for book, chapters in data.items():
        if not isinstance(chapters, dict):
            raise TranslationFormatError(
                f"Book {book} in {translation} ({source}) is not an object of chapters."
            )
        for chapter, verses in chapters.items():
            if not isinstance(verses, dict):
                raise TranslationFormatError(
                    f"{book} {chapter} in {translation} ({source}) is not an object of verses."
                )

    return data


def read_local_document(
    translations_dir: Union[str, Path],
    translation: str,
) -> TranslationDocument:
    path = local_document_path(translations_dir, translation)
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise TranslationUnavailableError(
            translation,
            f"Unable to load translation data for {translation} at {path}.",
        ) from exc

    return parse_translation_document(raw, translation, str(path))


def flatten_document(
    translation: str,
    document: TranslationDocument,
) -> Iterator[Passage]:
    """
    Yield every verse of ``document`` in document order, with its text
    whitespace-normalized.
    """
    for book, chapters in document.items():
        for chapter_key, verses in chapters.items():
            chapter = _parse_number(chapter_key, translation, book)
            for verse_key, text in verses.items():
                verse = _parse_number(verse_key, translation, f"{book} {chapter}")
                if not isinstance(text, str):
                    raise TranslationFormatError(
                        f"Verse {book} {chapter}:{verse} in {translation} is not a string."
                    )
                yield Passage(
                    translation=translation,
                    book=book,
                    chapter=chapter,
                    verse=verse,
                    text=normalize_text(text),
                )


def _parse_number(key: str, translation: str, where: str) -> int:
    try:
        value = int(key)
    except ValueError as exc:
        raise TranslationFormatError(
            f"Non-numeric key {key!r} under {where} in {translation}."
        ) from exc
    if value <= 0:
        raise TranslationFormatError(
            f"Non-positive key {key!r} under {where} in {translation}."
        )
    return value
