import numpy as np
import pytest

from bible_search.embeddings.models import Corpus, Passage
from bible_search.embeddings.ranker import top_k


def make_corpus(vectors):
    matrix = np.asarray(vectors, dtype=np.float32)
    passages = tuple(
        Passage(translation="T", book="Book", chapter=1, verse=i + 1, text=f"v{i + 1}")
        for i in range(len(matrix))
    )
    return Corpus(translation="T", dimension=matrix.shape[1], passages=passages, embeddings=matrix)


def random_unit_corpus(n, dim, seed=7):
    rng = np.random.default_rng(seed)
    m = rng.normal(size=(n, dim))
    m /= np.linalg.norm(m, axis=1, keepdims=True)
    return make_corpus(m)


def test_top_k_returns_highest_scores_in_order():
    corpus = make_corpus([[1, 0], [0, 1], [0.6, 0.8], [0.8, 0.6]])
    results = top_k(corpus, np.array([1, 0], dtype=np.float32), 2)

    assert [p.verse for p, _ in results] == [1, 4]
    assert results[0][1] == pytest.approx(1.0)
    assert results[1][1] == pytest.approx(0.8)


def test_top_k_zero_returns_empty():
    corpus = make_corpus([[1, 0]])
    assert top_k(corpus, np.array([1, 0], dtype=np.float32), 0) == []


@pytest.mark.parametrize("k", [1, 3, 10, 50, 500])
def test_top_k_bounds_and_dominance(k):
    corpus = random_unit_corpus(200, 16)
    query = corpus.embeddings[0].copy()

    results = top_k(corpus, query, k)
    assert len(results) == min(k, len(corpus))

    scores = [s for _, s in results]
    assert scores == sorted(scores, reverse=True)

    returned = {p.verse for p, _ in results}
    all_scores = corpus.embeddings @ query
    lowest_returned = min(scores)
    for i, score in enumerate(all_scores):
        if i + 1 not in returned:
            assert score <= lowest_returned + 1e-6


def test_top_k_skips_non_finite_scores():
    corpus = make_corpus([[np.nan, 0], [1, 0], [0.5, 0.5]])
    results = top_k(corpus, np.array([1, 0], dtype=np.float32), 3)
    assert [p.verse for p, _ in results] == [2, 3]


def test_top_k_orders_equal_scores_by_scan_order():
    corpus = make_corpus([[0, 1], [1, 0], [1, 0], [1, 0]])
    results = top_k(corpus, np.array([1, 0], dtype=np.float32), 2)
    assert [p.verse for p, _ in results] == [2, 3]


def test_top_k_rejects_dimension_mismatch():
    corpus = make_corpus([[1, 0]])
    with pytest.raises(ValueError):
        top_k(corpus, np.array([1, 0, 0], dtype=np.float32), 1)


def test_corpus_embeddings_are_read_only():
    corpus = make_corpus([[1, 0]])
    with pytest.raises(ValueError):
        corpus.embeddings[0, 0] = 2.0
