"""
Similarity Ranker

Exact best-of-k selection over every passage of the corpus. Both the query
and the passage vectors are unit length, so the dot product is the cosine
similarity.

Selection keeps a working set of at most ``k`` matches and replaces the
current minimum whenever a strictly better score arrives. With ``k <= 50``
and a corpus of tens of thousands of short passages, the O(n * k) scan is
cheap enough that no heap or ANN structure is used.

Ordering: results are sorted by descending score. Equal scores are ordered by
corpus scan order (earlier passage first).
"""

from __future__ import annotations

import math
from typing import List, Tuple

import numpy as np

from .models import Corpus, Passage


def score_all(corpus: Corpus, query_vector: np.ndarray) -> np.ndarray:
    """
    Dot product of ``query_vector`` against every corpus embedding.
    """
    if query_vector.shape != (corpus.dimension,):
        raise ValueError(
            f"Query vector has shape {query_vector.shape}, "
            f"expected ({corpus.dimension},)."
        )
    return corpus.embeddings @ np.asarray(query_vector, dtype=np.float32)


def top_k(
    corpus: Corpus,
    query_vector: np.ndarray,
    k: int,
) -> List[Tuple[Passage, float]]:
    """
    Return up to ``k`` (passage, score) pairs with the highest scores.

    ``k`` is expected to be already clamped by the caller.
    """
    if k <= 0:
        return []

    scores = score_all(corpus, query_vector)

    # (score, scan_index)
    best: List[Tuple[float, int]] = []

    for index, raw in enumerate(scores):
        score = float(raw)
        if not math.isfinite(score):
            continue

        if len(best) < k:
            best.append((score, index))
            continue

        smallest = 0
        for i in range(1, len(best)):
            if best[i][0] < best[smallest][0]:
                smallest = i

        if score > best[smallest][0]:
            best[smallest] = (score, index)

    best.sort(key=lambda item: (-item[0], item[1]))
    return [(corpus.passages[index], score) for score, index in best]
