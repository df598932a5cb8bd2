import json

import httpx
import pytest
import pytest_asyncio

from bible_search.embeddings.corpus_store import CorpusStore
from bible_search.ingest import build_corpus
from bible_search.storage.blob_client import BlobClient

FIXTURE_A = {
    "John": {
        "3": {
            "16": "For God so loved the world that he gave his one and only Son, "
                  "that whoever believes in him shall not perish but have eternal life.",
            "17": "For God did not send his Son into the world to condemn the world, "
                  "but to save the world through him.",
        }
    },
    "Romans": {
        "8": {
            "28": "And we know that in all things God works for the good of those "
                  "who love him, who have been called according to his purpose.",
        }
    },
}

FIXTURE_B = {
    "John": {
        "3": {
            "16": "B text of John 3:16",
            "17": "B text of John 3:17",
        }
    },
    "Romans": {
        "8": {
            "28": "B text of Romans 8:28",
        }
    },
}


def write_translation(root, code, document):
    folder = root / code
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / f"{code}_bible.json"
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


@pytest.fixture
def translations_dir(tmp_path):
    root = tmp_path / "translations"
    write_translation(root, "A", FIXTURE_A)
    write_translation(root, "B", FIXTURE_B)
    return root


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "data" / "bible.sqlite"


@pytest_asyncio.fixture
async def built_store(translations_dir, db_path):
    """A corpus store built from translation A with dimension 384."""
    await build_corpus(
        translation="A",
        dimension=384,
        translations_dir=translations_dir,
        store=CorpusStore(database_path=db_path, default_translation="A"),
    )
    return CorpusStore(database_path=db_path, default_translation="A")


class FakeBlobStore:
    """In-memory object store served through httpx.MockTransport."""

    def __init__(self):
        self.objects = {}
        self.requests = []
        self.put_status = {}
        self.get_status = {}

    def seed(self, key, body, sha256=None):
        self.objects[key] = (body, sha256)

    def calls(self, method, key=None):
        return [
            k for m, k in self.requests
            if m == method and (key is None or k == key)
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        key = request.url.path.lstrip("/")
        self.requests.append((request.method, key))

        if request.method == "PUT":
            status = self.put_status.get(key)
            if status is not None:
                return httpx.Response(status, text="upload refused")
            self.objects[key] = (request.content, request.headers.get("x-content-sha256"))
            return httpx.Response(200, json={"url": str(request.url)})

        status = self.get_status.get(key)
        if status is not None:
            return httpx.Response(status, text="unavailable")

        if key not in self.objects:
            return httpx.Response(404)

        body, sha256 = self.objects[key]
        if request.method == "HEAD":
            headers = {"content-length": str(len(body))}
            if sha256:
                headers["x-content-sha256"] = sha256
            return httpx.Response(200, headers=headers)

        return httpx.Response(200, content=body)


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def blob_client(blob_store):
    return BlobClient(
        token="test-token",
        endpoint="https://blob.test",
        prefix="translations",
        timeout=5.0,
        transport=httpx.MockTransport(blob_store.handler),
    )
