"""
Corpus Data Models

A ``Passage`` is one verse of one translation. Its identity
``(book, chapter, verse)`` is stable across translations and is the join key
used to look the same verse up in another translation.

A ``Corpus`` is the in-memory, vectorized passage set of the primary
translation. It is built once from the persisted store and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

import numpy as np
from pydantic import BaseModel, Field, ConfigDict


class Passage(BaseModel):
    """
    A single verse in a single translation.
    """

    translation: str = Field(
        ...,
        min_length=1,
        description="Uppercase translation code, e.g. 'NLT'.",
    )

    book: str = Field(..., min_length=1)

    chapter: int = Field(..., ge=1)

    verse: int = Field(..., ge=1)

    text: str = Field(
        ...,
        description="Whitespace-normalized verse text.",
    )

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
    )

    @property
    def identity(self) -> Tuple[str, int, int]:
        return (self.book, self.chapter, self.verse)

    @property
    def reference(self) -> str:
        return f"{self.book} {self.chapter}:{self.verse}"


@dataclass(frozen=True, eq=False)
class Corpus:
    """
    Vectorized passages of the primary translation.

    ``embeddings`` is an ``(n, dimension)`` float32 matrix whose row ``i``
    belongs to ``passages[i]``. It is marked read-only on construction.
    """

    translation: str
    dimension: int
    passages: Tuple[Passage, ...]
    embeddings: np.ndarray = field(repr=False)

    def __post_init__(self) -> None:
        if self.embeddings.shape != (len(self.passages), self.dimension):
            raise ValueError(
                f"Embedding matrix shape {self.embeddings.shape} does not match "
                f"{len(self.passages)} passages of dimension {self.dimension}."
            )
        self.embeddings.setflags(write=False)

    def __len__(self) -> int:
        return len(self.passages)
