"""
Sync Manager Tests

Runs the manager against an in-memory object store (httpx.MockTransport) and
real files under tmp_path.
"""

import hashlib
import json

import pytest

from bible_search.core.errors import BlobStorageError, ConfigurationError
from bible_search.sync.manager import SyncManager, SyncOutcome, format_bytes
from bible_search.sync.manifest import LocalManifestCache, ManifestEntry, dump_manifest

DOC_B = "translations/B/B_bible.json"
DOC_A = "translations/A/A_bible.json"
MANIFEST = "translations/manifest.json"


def digest(path):
    return hashlib.sha256(path.read_bytes()).hexdigest()


def entry_for(path):
    return ManifestEntry(hash=digest(path), size=path.stat().st_size, updated_at="2024-01-01T00:00:00Z")


@pytest.fixture
def local_manifest_path(tmp_path):
    return tmp_path / "translation-manifest.json"


@pytest.fixture
def manager(blob_client, translations_dir, local_manifest_path):
    return SyncManager(
        blob_client,
        translations_dir=translations_dir,
        local_manifest_path=local_manifest_path,
        force_upload=False,
        concurrency=2,
    )


def remote_manifest(blob_store):
    body, _ = blob_store.objects[MANIFEST]
    return json.loads(body)


def test_discover_lists_translation_documents(manager, translations_dir):
    (translations_dir / "empty").mkdir()
    (translations_dir / "README.txt").write_text("not a translation")

    assert [code for code, _ in manager.discover()] == ["A", "B"]


def test_invalid_concurrency_is_rejected(blob_client, translations_dir):
    with pytest.raises(ConfigurationError):
        SyncManager(blob_client, translations_dir=translations_dir, concurrency=0)


@pytest.mark.asyncio
async def test_first_run_uploads_everything(manager, blob_store, translations_dir, local_manifest_path):
    report = await manager.sync()

    assert sorted(report.uploaded) == ["A", "B"]
    assert blob_store.calls("PUT", DOC_A) == [DOC_A]
    assert blob_store.calls("PUT", DOC_B) == [DOC_B]
    assert report.remote_manifest_written
    assert report.local_manifest_written

    path_b = translations_dir / "B" / "B_bible.json"
    assert remote_manifest(blob_store)["B"]["hash"] == digest(path_b)
    assert remote_manifest(blob_store)["B"]["size"] == path_b.stat().st_size
    assert LocalManifestCache(local_manifest_path).load()["B"].hash == digest(path_b)

    body, sha = blob_store.objects[DOC_B]
    assert body == path_b.read_bytes()
    assert sha == digest(path_b)


@pytest.mark.asyncio
async def test_unchanged_file_is_not_uploaded_and_edit_uploads_once(
    blob_client, blob_store, translations_dir, local_manifest_path
):
    path_b = translations_dir / "B" / "B_bible.json"
    entry = entry_for(path_b)
    LocalManifestCache(local_manifest_path).save({"B": entry})
    blob_store.seed(MANIFEST, dump_manifest({"B": entry}))

    manager = SyncManager(
        blob_client,
        translations_dir=translations_dir,
        local_manifest_path=local_manifest_path,
        force_upload=False,
    )

    report = await manager.sync(only=["b"])
    assert [r.outcome for r in report.results] == [SyncOutcome.UP_TO_DATE]
    assert blob_store.calls("PUT") == []
    assert not report.remote_manifest_written
    assert not report.local_manifest_written

    path_b.write_text(path_b.read_text().replace("B text", "b text", 1))

    report = await manager.sync(only=["B"])
    assert report.uploaded == ["B"]
    assert blob_store.calls("PUT", DOC_B) == [DOC_B]
    assert remote_manifest(blob_store)["B"]["hash"] == digest(path_b)
    assert LocalManifestCache(local_manifest_path).load()["B"].hash == digest(path_b)


@pytest.mark.asyncio
async def test_local_match_patches_stale_remote_manifest(manager, blob_store, translations_dir, local_manifest_path):
    path_b = translations_dir / "B" / "B_bible.json"
    LocalManifestCache(local_manifest_path).save({"B": entry_for(path_b)})

    report = await manager.sync(only=["B"])

    assert report.results[0].outcome is SyncOutcome.REMOTE_MANIFEST_PATCHED
    assert blob_store.calls("PUT", DOC_B) == []
    assert blob_store.calls("HEAD") == []
    assert blob_store.calls("PUT", MANIFEST) == [MANIFEST]
    assert remote_manifest(blob_store)["B"]["hash"] == digest(path_b)


@pytest.mark.asyncio
async def test_remote_manifest_match_is_adopted_locally(manager, blob_store, translations_dir, local_manifest_path):
    path_b = translations_dir / "B" / "B_bible.json"
    blob_store.seed(MANIFEST, dump_manifest({"B": entry_for(path_b)}))

    report = await manager.sync(only=["B"])

    assert report.results[0].outcome is SyncOutcome.ADOPTED_REMOTE_MANIFEST
    assert blob_store.calls("PUT") == []
    assert report.local_manifest_written
    assert LocalManifestCache(local_manifest_path).load()["B"].hash == digest(path_b)


@pytest.mark.asyncio
async def test_matching_remote_object_is_adopted_without_upload(manager, blob_store, translations_dir, local_manifest_path):
    path_b = translations_dir / "B" / "B_bible.json"
    blob_store.seed(DOC_B, path_b.read_bytes(), sha256=digest(path_b))

    report = await manager.sync(only=["B"])

    assert report.results[0].outcome is SyncOutcome.ADOPTED_REMOTE_OBJECT
    assert blob_store.calls("HEAD", DOC_B) == [DOC_B]
    assert blob_store.calls("PUT", DOC_B) == []
    assert remote_manifest(blob_store)["B"]["hash"] == digest(path_b)
    assert LocalManifestCache(local_manifest_path).load()["B"].hash == digest(path_b)


@pytest.mark.asyncio
async def test_remote_object_with_other_checksum_is_replaced(manager, blob_store, translations_dir):
    blob_store.seed(DOC_B, b"stale", sha256="0" * 64)

    report = await manager.sync(only=["B"])

    assert report.uploaded == ["B"]
    assert blob_store.objects[DOC_B][0] == (translations_dir / "B" / "B_bible.json").read_bytes()


@pytest.mark.asyncio
async def test_force_upload_bypasses_manifests(blob_client, blob_store, translations_dir, local_manifest_path):
    path_b = translations_dir / "B" / "B_bible.json"
    entry = entry_for(path_b)
    LocalManifestCache(local_manifest_path).save({"B": entry})
    blob_store.seed(MANIFEST, dump_manifest({"B": entry}))

    manager = SyncManager(
        blob_client,
        translations_dir=translations_dir,
        local_manifest_path=local_manifest_path,
        force_upload=True,
    )
    report = await manager.sync(only=["B"])

    assert report.uploaded == ["B"]
    assert blob_store.calls("PUT", DOC_B) == [DOC_B]
    assert blob_store.calls("HEAD") == []


@pytest.mark.asyncio
async def test_quota_exceeded_aborts_remaining_queue(blob_client, blob_store, translations_dir, local_manifest_path):
    blob_store.put_status[DOC_A] = 402
    manager = SyncManager(
        blob_client,
        translations_dir=translations_dir,
        local_manifest_path=local_manifest_path,
        force_upload=False,
        concurrency=1,
    )

    report = await manager.sync()

    assert report.quota_exceeded
    outcomes = {r.translation: r.outcome for r in report.results}
    assert outcomes == {"A": SyncOutcome.FAILED, "B": SyncOutcome.SKIPPED}
    assert blob_store.calls("PUT", DOC_B) == []
    assert MANIFEST not in blob_store.objects
    assert not local_manifest_path.exists()


@pytest.mark.asyncio
async def test_generic_failure_skips_only_that_file(manager, blob_store, local_manifest_path):
    blob_store.put_status[DOC_A] = 500

    report = await manager.sync()

    assert not report.quota_exceeded
    assert report.failed == ["A"]
    assert report.uploaded == ["B"]
    assert "500" in report.results[0].error
    assert set(remote_manifest(blob_store)) == {"B"}
    assert set(LocalManifestCache(local_manifest_path).load()) == {"B"}


@pytest.mark.asyncio
async def test_unreadable_remote_manifest_aborts_before_work(manager, blob_store):
    blob_store.get_status[MANIFEST] = 500

    with pytest.raises(BlobStorageError):
        await manager.sync()
    assert blob_store.calls("PUT") == []


@pytest.mark.asyncio
async def test_invalid_remote_manifest_is_rebuilt(manager, blob_store):
    blob_store.seed(MANIFEST, b"{broken")

    report = await manager.sync()

    assert sorted(report.uploaded) == ["A", "B"]
    assert set(remote_manifest(blob_store)) == {"A", "B"}


@pytest.mark.parametrize(
    "size, expected",
    [(0, "0 B"), (512, "512 B"), (2048, "2.0 KB"), (5 * 1024 * 1024, "5.0 MB"), (20 * 1024, "20 KB")],
)
def test_format_bytes(size, expected):
    assert format_bytes(size) == expected
