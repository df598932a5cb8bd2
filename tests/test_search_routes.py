import asyncio
import sqlite3

import pytest
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient
from pydantic import SecretStr

from bible_search.api.dependencies import get_search_engine
from bible_search.api.models import SearchResult
from bible_search.config import settings
from bible_search.core.errors import (
    ConfigurationError,
    CorpusIntegrityError,
    CorpusUnavailableError,
    PassageNotFoundError,
)
from bible_search.embeddings.corpus_store import CorpusStore
from bible_search.ingest import build_corpus
from bible_search.main import app
from bible_search.search import BibleSearchEngine
from bible_search.translations.resolver import TranslationResolver

TEST_API_KEY = "test-api-key"
HEADERS = {"x-api-key": TEST_API_KEY}


@pytest.fixture
def mock_engine():
    mock = AsyncMock(spec=BibleSearchEngine)
    mock.search.return_value = [
        SearchResult(
            book="Romans",
            chapter=8,
            verse=28,
            text="And we know that in all things God works for the good of those who love him",
            translation="NLT",
            score=0.42,
        )
    ]
    return mock


@pytest.fixture
def client(mock_engine, monkeypatch):
    monkeypatch.setattr(settings, "api_key", SecretStr(TEST_API_KEY))
    app.dependency_overrides[get_search_engine] = lambda: mock_engine

    with TestClient(app, raise_server_exceptions=False) as c:
        yield c

    app.dependency_overrides = {}


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_search_returns_results(client, mock_engine):
    resp = client.get("/search", params={"term": " love ", "limit": "3"}, headers=HEADERS)

    assert resp.status_code == 200
    data = resp.json()
    assert data["term"] == "love"
    assert data["results"][0]["book"] == "Romans"
    assert data["results"][0]["score"] == pytest.approx(0.42)
    mock_engine.search.assert_awaited_once_with(
        "love", translation=None, limit=3, max_results=None
    )


def test_q_alias_and_translation(client, mock_engine):
    resp = client.get(
        "/search",
        params={"q": "faith", "translation": "kjv", "maxResults": "2"},
        headers=HEADERS,
    )

    assert resp.status_code == 200
    assert resp.json()["translation"] == "kjv"
    mock_engine.search.assert_awaited_once_with(
        "faith", translation="kjv", limit=None, max_results=2
    )


def test_missing_key_rejected(client, mock_engine):
    resp = client.get("/search", params={"term": "love"})
    assert resp.status_code == 401
    mock_engine.search.assert_not_called()


def test_wrong_key_rejected(client):
    resp = client.get("/search", params={"term": "love"}, headers={"x-api-key": "nope"})
    assert resp.status_code == 401


def test_unconfigured_key_is_server_error(client, monkeypatch):
    monkeypatch.setattr(settings, "api_key", None)
    resp = client.get("/search", params={"term": "love"}, headers=HEADERS)
    assert resp.status_code == 500
    assert "misconfiguration" in resp.json()["detail"]


def test_blank_term_is_bad_request(client, mock_engine):
    resp = client.get("/search", params={"term": "   "}, headers=HEADERS)
    assert resp.status_code == 400
    mock_engine.search.assert_not_called()


@pytest.mark.parametrize(
    "value, message",
    [
        ("abc", "finite number"),
        ("Infinity", "finite number"),
        ("1.5", "integer"),
        ("-1", "cannot be negative"),
    ],
)
def test_invalid_limit_is_bad_request(client, mock_engine, value, message):
    resp = client.get("/search", params={"term": "love", "limit": value}, headers=HEADERS)
    assert resp.status_code == 400
    assert message in resp.json()["detail"]
    mock_engine.search.assert_not_called()


def test_missing_corpus_is_service_unavailable(client, mock_engine):
    mock_engine.search.side_effect = CorpusUnavailableError("no store at /secret/path")

    resp = client.get("/search", params={"term": "love"}, headers=HEADERS)
    assert resp.status_code == 503
    assert "/secret/path" not in resp.text


@pytest.mark.parametrize(
    "error",
    [
        ConfigurationError("Invalid or missing embedding dimension metadata in Bible database."),
        CorpusIntegrityError("Corrupt embedding for Romans 8:28 (NLT): bad length"),
    ],
)
def test_unusable_corpus_is_service_unavailable(client, mock_engine, error):
    mock_engine.search.side_effect = error

    resp = client.get("/search", params={"term": "love"}, headers=HEADERS)
    assert resp.status_code == 503
    assert resp.json()["error"] == "service_unavailable"
    assert "Romans" not in resp.text


def test_missing_passage_is_not_found(client, mock_engine):
    mock_engine.search.side_effect = PassageNotFoundError(
        "KJV", "Romans", 8, 28, "Verse Romans 8:28 is not available in translation KJV."
    )

    resp = client.get("/search", params={"term": "love", "translation": "KJV"}, headers=HEADERS)
    assert resp.status_code == 404


def test_unexpected_error_is_opaque_500(client, mock_engine):
    mock_engine.search.side_effect = RuntimeError("database password is hunter2")

    resp = client.get("/search", params={"term": "love"}, headers=HEADERS)
    assert resp.status_code == 500
    assert "hunter2" not in resp.text
    assert resp.json()["error"] == "internal_server_error"


@pytest.fixture
def real_engine_client(translations_dir, db_path, monkeypatch):
    asyncio.run(
        build_corpus(
            translation="A",
            dimension=384,
            translations_dir=translations_dir,
            store=CorpusStore(database_path=db_path),
        )
    )
    engine = BibleSearchEngine(
        corpus_store=CorpusStore(database_path=db_path),
        resolver=TranslationResolver(translations_dir=translations_dir),
    )

    monkeypatch.setattr(settings, "api_key", SecretStr(TEST_API_KEY))
    app.dependency_overrides[get_search_engine] = lambda: engine

    with TestClient(app, raise_server_exceptions=False) as c:
        yield c

    app.dependency_overrides = {}


def test_real_corpus_search(real_engine_client):
    resp = real_engine_client.get("/search", params={"term": "love", "limit": "2"}, headers=HEADERS)

    assert resp.status_code == 200
    data = resp.json()
    assert len(data["results"]) == 2
    assert data["results"][0]["book"] == "Romans"


@pytest.mark.parametrize(
    "statement",
    [
        "DELETE FROM metadata WHERE key = 'embedding_dimension'",
        "UPDATE verses SET chapter = 0 WHERE book = 'Romans'",
    ],
)
def test_broken_corpus_on_disk_is_service_unavailable(real_engine_client, db_path, statement):
    with sqlite3.connect(db_path) as conn:
        conn.execute(statement)

    resp = real_engine_client.get("/search", params={"term": "love"}, headers=HEADERS)
    assert resp.status_code == 503
    assert resp.json()["error"] == "service_unavailable"


def test_search_is_also_served_under_api_prefix(client, mock_engine):
    resp = client.get("/api/search", params={"term": "love"}, headers=HEADERS)

    assert resp.status_code == 200
    assert resp.json()["results"][0]["book"] == "Romans"
