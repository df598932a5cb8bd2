"""
SQLAlchemy Models

Defines the schema of the persisted corpus store:
- verses   : one row per (translation, book, chapter, verse) with its
             normalized text and packed float32 embedding
- metadata : key/value pairs describing how the store was built
"""

from __future__ import annotations

from sqlalchemy import String, Integer, Text, LargeBinary
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class VerseRow(Base):
    """
    A vectorized verse.

    ``embedding`` holds ``embedding_dimension`` little-endian float32 values.
    """
    __tablename__ = "verses"

    translation: Mapped[str] = mapped_column(String(16), primary_key=True)
    book: Mapped[str] = mapped_column(Text, primary_key=True)
    chapter: Mapped[int] = mapped_column(Integer, primary_key=True)
    verse: Mapped[int] = mapped_column(Integer, primary_key=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    embedding: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)


class MetadataRow(Base):
    """
    Build metadata. Known keys: translation, embedding_dimension,
    vectorizer, generated_at.
    """
    __tablename__ = "metadata"

    key: Mapped[str] = mapped_column(Text, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
