"""
Database Session Management

Provides async SQLAlchemy engine and session factories for the SQLite corpus
store. Engines are created per store path rather than at import time, so each
``CorpusStore`` owns its own connection lifecycle.
"""

from __future__ import annotations

from pathlib import Path
from typing import Union

from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
)


def create_corpus_engine(path: Union[str, Path]) -> AsyncEngine:
    """
    Create an async engine for the SQLite file at ``path``.
    """
    return create_async_engine(
        f"sqlite+aiosqlite:///{Path(path)}",
        echo=False,  # Set True for SQL debugging
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
