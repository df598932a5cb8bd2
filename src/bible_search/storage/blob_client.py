"""
Blob Storage Client

Minimal async client for the remote object store that mirrors translation
documents and the shared sync manifest.

Object layout
-------------
    {prefix}/{CODE}/{CODE}_bible.json    translation document
    {prefix}/manifest.json               sync manifest

Every request carries ``Authorization: Bearer <token>``. Uploads record the
document's SHA-256 in the ``x-content-sha256`` header so a later HEAD can
confirm the stored content without downloading it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from ..config import settings
from ..core.errors import BlobQuotaExceededError, BlobStorageError, ConfigurationError

logger = logging.getLogger("bible.blob")

CHECKSUM_HEADER = "x-content-sha256"

QUOTA_STATUS_CODES = frozenset({402, 413})


@dataclass(frozen=True)
class BlobObjectMetadata:
    """Result of a metadata probe."""
    size: Optional[int]
    sha256: Optional[str]


class BlobClient:
    """
    Stateless HTTP client for the object store. Safe to share across tasks;
    each call opens its own ``httpx.AsyncClient``.
    """

    def __init__(
        self,
        token: str,
        endpoint: Optional[str] = None,
        prefix: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Parameters
        ----------
        token : str
            Bearer credential. Must be non-empty.

        endpoint : Optional[str]
            Store base URL. Defaults to settings.bible_blob_endpoint.

        prefix : Optional[str]
            Key prefix. Defaults to settings.bible_blob_prefix.

        timeout : Optional[float]
            Per-request timeout. Defaults to settings.blob_timeout.

        transport : Optional[httpx.AsyncBaseTransport]
            Transport override, used by tests.
        """
        if not token:
            raise ConfigurationError("Blob storage token is required for remote access.")

        self._token = token
        self.endpoint = (endpoint or settings.bible_blob_endpoint).rstrip("/")
        self.prefix = (prefix if prefix is not None else settings.bible_blob_prefix).strip("/")
        self.timeout = timeout if timeout is not None else settings.blob_timeout
        self._transport = transport

    @classmethod
    def from_settings(cls) -> Optional["BlobClient"]:
        """
        Build a client from configuration, or return None when no credential
        is configured (remote access disabled).
        """
        if settings.blob_read_write_token is None:
            return None
        token = settings.blob_read_write_token.get_secret_value()
        if not token:
            return None
        return cls(token=token)

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def translation_key(self, translation: str) -> str:
        return f"{self.prefix}/{translation}/{translation}_bible.json"

    def manifest_key(self) -> str:
        return f"{self.prefix}/manifest.json"

    def url_for(self, key: str) -> str:
        return f"{self.endpoint}/{key}"

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Optional[bytes]:
        """
        Download an object. Returns None if it does not exist.

        Raises
        ------
        BlobStorageError
            On transport failure or any non-404 error status.
        """
        response = await self._request("GET", key)
        if response.status_code == 404:
            return None
        self._raise_for_status(response, key, "read")
        return response.content

    async def head(self, key: str) -> Optional[BlobObjectMetadata]:
        """
        Probe an object's size and checksum. Returns None if it does not exist.
        """
        response = await self._request("HEAD", key)
        if response.status_code == 404:
            return None
        self._raise_for_status(response, key, "probe")

        raw_size = response.headers.get("content-length")
        try:
            size = int(raw_size) if raw_size is not None else None
        except ValueError:
            size = None

        return BlobObjectMetadata(
            size=size,
            sha256=response.headers.get(CHECKSUM_HEADER),
        )

    async def put(
        self,
        key: str,
        body: bytes,
        content_type: str = "application/json",
        sha256: Optional[str] = None,
    ) -> None:
        """
        Upload ``body`` to ``key``, replacing any existing object.

        Raises
        ------
        BlobQuotaExceededError
            If the store reports that its quota is exhausted.

        BlobStorageError
            On any other failure.
        """
        headers = {
            "Content-Type": content_type,
            "Content-Length": str(len(body)),
        }
        if sha256:
            headers[CHECKSUM_HEADER] = sha256

        response = await self._request("PUT", key, content=body, headers=headers)
        self._raise_for_status(response, key, "upload")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        key: str,
        content: Optional[bytes] = None,
        headers: Optional[dict] = None,
    ) -> httpx.Response:
        all_headers = {"Authorization": f"Bearer {self._token}"}
        if headers:
            all_headers.update(headers)

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                return await client.request(
                    method,
                    self.url_for(key),
                    content=content,
                    headers=all_headers,
                )
        except httpx.HTTPError as exc:
            logger.error(
                "Blob %s %s failed (%s): %s",
                method,
                key,
                type(exc).__name__,
                str(exc),
            )
            raise BlobStorageError(
                f"Unable to reach Blob storage for {key}: {type(exc).__name__}",
                key=key,
            ) from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response, key: str, action: str) -> None:
        if response.is_success:
            return

        detail = response.text if action != "probe" else ""
        message = (
            f"Failed to {action} {key} in Blob storage: "
            f"{response.status_code} {response.reason_phrase}"
            + (f" - {detail}" if detail else "")
        )

        if response.status_code in QUOTA_STATUS_CODES or "quota" in detail.lower():
            raise BlobQuotaExceededError(message, key=key, status_code=response.status_code)

        raise BlobStorageError(message, key=key, status_code=response.status_code)
