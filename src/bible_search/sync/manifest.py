"""
Sync Manifest

Records which translation documents have been stored remotely:

    { "NLT": {"hash": "<sha256 hex>", "size": 4529117, "updatedAt": "<ISO-8601>"} }

The same shape is used for the shared remote manifest
(``{prefix}/manifest.json``) and for the local cache file.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Union

from pydantic import BaseModel, Field, ConfigDict, ValidationError

from ..storage.blob_client import BlobClient

logger = logging.getLogger("bible.manifest")


class ManifestEntry(BaseModel):
    """
    Sync state of one translation document.
    """

    hash: str = Field(..., min_length=1, description="SHA-256 hex digest of the document.")

    size: int = Field(..., ge=0, description="Document size in bytes.")

    updated_at: str = Field(
        ...,
        alias="updatedAt",
        description="ISO 8601 timestamp of the last sync.",
    )

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
    )

    @classmethod
    def now(cls, hash: str, size: int) -> "ManifestEntry":
        return cls(
            hash=hash,
            size=size,
            updated_at=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        )

    def matches(self, hash: str, size: int) -> bool:
        return self.hash == hash and self.size == size


Manifest = Dict[str, ManifestEntry]


def parse_manifest(raw: Union[str, bytes], source: str) -> Manifest:
    """
    Decode a manifest. An unreadable manifest is rebuilt from empty, and
    individual malformed entries are dropped; both are logged.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("Manifest JSON at %s is invalid. Rebuilding.", source)
        return {}

    if not isinstance(data, dict):
        logger.warning("Manifest at %s is not an object. Rebuilding.", source)
        return {}

    manifest: Manifest = {}
    for translation, entry in data.items():
        try:
            manifest[str(translation).upper()] = ManifestEntry.model_validate(entry)
        except ValidationError:
            logger.warning(
                "Dropping malformed manifest entry %s at %s", translation, source
            )
    return manifest


def dump_manifest(manifest: Manifest) -> bytes:
    payload = {
        translation: entry.model_dump(by_alias=True)
        for translation, entry in sorted(manifest.items())
    }
    return json.dumps(payload, indent=2).encode("utf-8")


# ---------------------------------------------------------------------
# Remote manifest
# ---------------------------------------------------------------------

async def read_remote_manifest(blob: BlobClient) -> Manifest:
    """
    Fetch the shared manifest. A missing manifest is an empty one.

    Raises
    ------
    BlobStorageError
        If the store cannot be reached or answers with an error status.
    """
    key = blob.manifest_key()
    raw = await blob.get(key)
    if raw is None:
        return {}
    return parse_manifest(raw, key)


async def write_remote_manifest(blob: BlobClient, manifest: Manifest) -> None:
    await blob.put(blob.manifest_key(), dump_manifest(manifest))


# ---------------------------------------------------------------------
# Local manifest cache
# ---------------------------------------------------------------------

class LocalManifestCache:
    """
    JSON file remembering the last known-good sync state on this machine.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def load(self) -> Manifest:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return {}
        return parse_manifest(raw, str(self.path))

    def save(self, manifest: Manifest) -> None:
        """
        Write the manifest atomically: a temporary sibling file is written and
        then renamed over the target.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_bytes(dump_manifest(manifest))
        os.replace(tmp_path, self.path)
