"""
Translation Sync Manager

Mirrors local translation documents to the remote object store, using the
content-hash manifests to skip documents that are already in place.

Per-translation decision (first match wins, unless ``force_upload``):

1. Local manifest has the same hash  -> nothing to transfer; patch the remote
   manifest entry if it disagrees.
2. Remote manifest has the same hash -> adopt it into the local manifest.
3. Remote object exists with the same checksum and size -> adopt its metadata
   into both manifests.
4. Otherwise upload, then record the entry in both manifests.

Translations are processed concurrently by a bounded pool of workers. Workers
never touch the manifests; they return their decision, and the manifests are
merged and written once, by a single writer, after every worker finishes.

Failure policy
--------------
- Transport / status errors for one document are logged and that document is
  skipped; the run continues.
- A quota-exceeded response stops the run: documents not yet started are
  skipped and the report is flagged ``quota_exceeded``.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from .manifest import (
    LocalManifestCache,
    Manifest,
    ManifestEntry,
    read_remote_manifest,
    write_remote_manifest,
)
from ..config import settings
from ..core.errors import (
    BlobQuotaExceededError,
    BlobStorageError,
    ConfigurationError,
)
from ..storage.blob_client import BlobClient
from ..translations.documents import document_filename

logger = logging.getLogger("bible.sync")


class SyncOutcome(str, Enum):
    UP_TO_DATE = "up_to_date"
    REMOTE_MANIFEST_PATCHED = "remote_manifest_patched"
    ADOPTED_REMOTE_MANIFEST = "adopted_remote_manifest"
    ADOPTED_REMOTE_OBJECT = "adopted_remote_object"
    UPLOADED = "uploaded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class TranslationSyncResult:
    """Decision taken for one translation document."""
    translation: str
    outcome: SyncOutcome
    entry: Optional[ManifestEntry] = None
    update_remote: bool = False
    update_local: bool = False
    error: Optional[str] = None


@dataclass
class SyncReport:
    results: List[TranslationSyncResult] = field(default_factory=list)
    remote_manifest_written: bool = False
    local_manifest_written: bool = False
    quota_exceeded: bool = False
    manifest_error: Optional[str] = None

    def with_outcome(self, outcome: SyncOutcome) -> List[str]:
        return [r.translation for r in self.results if r.outcome is outcome]

    @property
    def uploaded(self) -> List[str]:
        return self.with_outcome(SyncOutcome.UPLOADED)

    @property
    def failed(self) -> List[str]:
        return self.with_outcome(SyncOutcome.FAILED)


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def format_bytes(size: int) -> str:
    units = ["B", "KB", "MB", "GB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    precision = 1 if value < 10 and index > 0 else 0
    return f"{value:.{precision}f} {units[index]}"


class SyncManager:
    """
    One sync run over the translations directory.
    """

    def __init__(
        self,
        blob_client: BlobClient,
        translations_dir: Optional[Union[str, Path]] = None,
        local_manifest_path: Optional[Union[str, Path]] = None,
        force_upload: Optional[bool] = None,
        concurrency: Optional[int] = None,
    ) -> None:
        """
        Parameters
        ----------
        blob_client : BlobClient
            Remote store client.

        translations_dir : Optional[str | Path]
            Defaults to settings.translations_dir.

        local_manifest_path : Optional[str | Path]
            Defaults to settings.local_manifest_path.

        force_upload : Optional[bool]
            Re-upload every document regardless of manifests.
            Defaults to settings.bible_force_upload.

        concurrency : Optional[int]
            Maximum concurrent documents. Defaults to settings.sync_concurrency.
        """
        self._blob = blob_client
        self._translations_dir = Path(translations_dir or settings.translations_dir)
        self._local_cache = LocalManifestCache(
            local_manifest_path or settings.local_manifest_path
        )
        self._force = settings.bible_force_upload if force_upload is None else force_upload
        self._concurrency = concurrency if concurrency is not None else settings.sync_concurrency

        if self._concurrency < 1:
            raise ConfigurationError(
                f"Sync concurrency must be at least 1, got {self._concurrency}."
            )

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def discover(self) -> List[Tuple[str, Path]]:
        """
        List ``(CODE, path)`` for every translation sub-directory holding a
        ``{CODE}_bible.json`` document.
        """
        try:
            entries = sorted(self._translations_dir.iterdir())
        except OSError:
            logger.warning(
                "Unable to enumerate translations directory at %s",
                self._translations_dir,
            )
            return []

        found: List[Tuple[str, Path]] = []
        for entry in entries:
            if not entry.is_dir():
                continue
            code = entry.name.upper()
            path = entry / document_filename(code)
            if path.is_file():
                found.append((code, path))
        return found

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def sync(self, only: Optional[Iterable[str]] = None) -> SyncReport:
        """
        Sync every discovered translation (or only the codes in ``only``).

        Raises
        ------
        BlobStorageError
            If the remote manifest cannot be read. Per-document failures are
            reported in the returned ``SyncReport`` instead.
        """
        targets = self.discover()
        if only is not None:
            wanted = {code.upper() for code in only}
            targets = [(code, path) for code, path in targets if code in wanted]

        remote_manifest = await read_remote_manifest(self._blob)
        local_manifest = self._local_cache.load()

        semaphore = asyncio.Semaphore(self._concurrency)
        abort = asyncio.Event()

        async def worker(code: str, path: Path) -> TranslationSyncResult:
            async with semaphore:
                if abort.is_set():
                    return TranslationSyncResult(code, SyncOutcome.SKIPPED)
                try:
                    return await self._sync_one(
                        code,
                        path,
                        local_manifest.get(code),
                        remote_manifest.get(code),
                    )
                except BlobQuotaExceededError as exc:
                    abort.set()
                    logger.error(
                        "Blob storage quota exceeded while syncing %s; aborting run: %s",
                        code,
                        exc,
                    )
                    return TranslationSyncResult(code, SyncOutcome.FAILED, error=str(exc))
                except (BlobStorageError, OSError) as exc:
                    logger.warning(
                        "Failed to sync %s translation to Blob storage: %s", code, exc
                    )
                    return TranslationSyncResult(code, SyncOutcome.FAILED, error=str(exc))

        results = await asyncio.gather(*(worker(code, path) for code, path in targets))

        report = SyncReport(results=list(results), quota_exceeded=abort.is_set())
        await self._write_manifests(report, remote_manifest, local_manifest)
        return report

    async def _sync_one(
        self,
        code: str,
        path: Path,
        local_entry: Optional[ManifestEntry],
        remote_entry: Optional[ManifestEntry],
    ) -> TranslationSyncResult:
        body = await asyncio.to_thread(path.read_bytes)
        digest = sha256_hex(body)
        size = len(body)
        key = self._blob.translation_key(code)

        if not self._force:
            if local_entry is not None and local_entry.hash == digest:
                if remote_entry is not None and remote_entry.hash == digest:
                    logger.info(
                        "Blob translation %s is up to date (hash %s).", code, digest[:8]
                    )
                    return TranslationSyncResult(code, SyncOutcome.UP_TO_DATE, entry=local_entry)

                logger.info("Patching remote manifest entry for %s (hash %s).", code, digest[:8])
                return TranslationSyncResult(
                    code,
                    SyncOutcome.REMOTE_MANIFEST_PATCHED,
                    entry=local_entry,
                    update_remote=True,
                )

            if remote_entry is not None and remote_entry.hash == digest:
                logger.info("Adopting remote manifest entry for %s (hash %s).", code, digest[:8])
                return TranslationSyncResult(
                    code,
                    SyncOutcome.ADOPTED_REMOTE_MANIFEST,
                    entry=remote_entry,
                    update_local=True,
                )

            existing = await self._blob.head(key)
            if existing is not None and existing.sha256 == digest and existing.size == size:
                logger.info(
                    "Blob object for %s already matches (hash %s); adopting metadata.",
                    code,
                    digest[:8],
                )
                return TranslationSyncResult(
                    code,
                    SyncOutcome.ADOPTED_REMOTE_OBJECT,
                    entry=ManifestEntry.now(digest, size),
                    update_remote=True,
                    update_local=True,
                )

        await self._blob.put(key, body, content_type="application/json", sha256=digest)
        logger.info(
            "Uploaded translation %s to Blob storage (%s).", code, format_bytes(size)
        )
        return TranslationSyncResult(
            code,
            SyncOutcome.UPLOADED,
            entry=ManifestEntry.now(digest, size),
            update_remote=True,
            update_local=True,
        )

    async def _write_manifests(
        self,
        report: SyncReport,
        remote_manifest: Manifest,
        local_manifest: Manifest,
    ) -> None:
        remote_dirty = False
        local_dirty = False

        for result in report.results:
            if result.entry is None:
                continue
            if result.update_remote:
                remote_manifest[result.translation] = result.entry
                remote_dirty = True
            if result.update_local:
                local_manifest[result.translation] = result.entry
                local_dirty = True

        if remote_dirty:
            try:
                await write_remote_manifest(self._blob, remote_manifest)
            except BlobStorageError as exc:
                report.manifest_error = str(exc)
                if isinstance(exc, BlobQuotaExceededError):
                    report.quota_exceeded = True
                logger.error("Failed to update translation manifest in Blob storage: %s", exc)
            else:
                report.remote_manifest_written = True
                logger.info(
                    "Updated translation manifest at %s (%d entries).",
                    self._blob.manifest_key(),
                    len(remote_manifest),
                )

        if local_dirty:
            self._local_cache.save(local_manifest)
            report.local_manifest_written = True
            logger.info("Updated local translation manifest at %s", self._local_cache.path)
