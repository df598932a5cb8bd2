"""
Database Package

Provides SQLAlchemy async engine/session factories and the schema of the
persisted corpus store (SQLite via aiosqlite).
"""

from .session import create_corpus_engine, create_session_factory
from .models import Base, VerseRow, MetadataRow

__all__ = [
    "create_corpus_engine",
    "create_session_factory",
    "Base",
    "VerseRow",
    "MetadataRow",
]
