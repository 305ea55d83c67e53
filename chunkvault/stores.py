"""Blob store backends: a remote HTTP store and a local directory store."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
import uuid
from pathlib import Path
from typing import Dict, Optional, Protocol
from urllib.parse import urlparse
from urllib.request import url2pathname

import aiofiles
import aiohttp

from .common.constants import REQUEST_TIMEOUT, TRANSIENT_HTTP_STATUSES
from .config import STORE_CLOUDINARY, STORE_LOCAL, Config, Credentials
from .utils import ConfigError, PermanentStoreError, TransientStoreError


logger = logging.getLogger(__name__)

CLOUDINARY_API = "https://api.cloudinary.com/v1_1"


class BlobStore(Protocol):
    """Key-addressable blob service."""

    async def put(self, data: bytes, name: str) -> str:
        ...

    async def get(self, url: str) -> bytes:
        ...

    async def close(self) -> None:
        ...


def is_transient_status(status: int) -> bool:
    """Return True for HTTP statuses worth retrying."""
    return status >= 500 or status in TRANSIENT_HTTP_STATUSES


def sign_params(params: Dict[str, str], api_secret: str) -> str:
    """
    Build a Cloudinary request signature.

    Args:
        params: Parameters to sign (file and api_key excluded).
        api_secret: Account API secret.

    Returns:
        SHA-1 hex signature.
    """
    payload = "&".join(f"{key}={params[key]}" for key in sorted(params))
    return hashlib.sha1((payload + api_secret).encode("utf-8")).hexdigest()


class CloudinaryBlobStore:
    """Stores chunks as raw Cloudinary uploads."""

    def __init__(
        self,
        credentials: Credentials,
        timeout: float = REQUEST_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.credentials = credentials
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    @property
    def upload_url(self) -> str:
        return f"{CLOUDINARY_API}/{self.credentials.cloud_name}/raw/upload"

    def _session_or_create(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    def _build_form(self, data: bytes, name: str) -> aiohttp.FormData:
        form = aiohttp.FormData()
        form.add_field("upload_preset", self.credentials.upload_preset)
        if self.credentials.api_secret:
            timestamp = str(int(time.time()))
            signature = sign_params(
                {"timestamp": timestamp, "upload_preset": self.credentials.upload_preset},
                self.credentials.api_secret,
            )
            form.add_field("api_key", self.credentials.api_key)
            form.add_field("timestamp", timestamp)
            form.add_field("signature", signature)
        form.add_field(
            "file", data, filename=name, content_type="application/octet-stream"
        )
        return form

    async def put(self, data: bytes, name: str) -> str:
        """
        Upload a blob.

        Args:
            data: Blob bytes.
            name: File name sent with the multipart part.

        Returns:
            Secure URL of the stored blob.
        """
        session = self._session_or_create()
        async with session.post(self.upload_url, data=self._build_form(data, name)) as resp:
            if resp.status != 200:
                body = await resp.text()
                message = f"Error uploading file: {resp.status} - {body[:200]}"
                if is_transient_status(resp.status):
                    raise TransientStoreError(message)
                raise PermanentStoreError(message)
            payload = await resp.json(content_type=None)
        url = payload.get("secure_url") if isinstance(payload, dict) else None
        if not url:
            raise PermanentStoreError("Upload response did not include secure_url.")
        return url

    async def get(self, url: str) -> bytes:
        """
        Download a blob by URL.

        Args:
            url: Secure URL returned by put.

        Returns:
            Blob bytes.
        """
        session = self._session_or_create()
        async with session.get(url) as resp:
            if resp.status != 200:
                message = f"Failed to download chunk: {resp.status}"
                if is_transient_status(resp.status):
                    raise TransientStoreError(message)
                raise PermanentStoreError(message)
            return await resp.read()

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()


class FileSystemBlobStore:
    """Stores chunks as files under a local directory and hands out file:// URLs."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root).expanduser().resolve()

    async def put(self, data: bytes, name: str) -> str:
        await asyncio.to_thread(self.root.mkdir, parents=True, exist_ok=True)
        path = self.root / f"{uuid.uuid4().hex}-{Path(name).name}"
        async with aiofiles.open(path, "wb") as outfile:
            await outfile.write(data)
        logger.debug("Stored %s (%d bytes) at %s", name, len(data), path)
        return path.as_uri()

    def _path_from_url(self, url: str) -> Path:
        parsed = urlparse(url)
        if parsed.scheme != "file":
            raise PermanentStoreError(f"Unsupported URL for local store: {url}")
        return Path(url2pathname(parsed.path))

    async def get(self, url: str) -> bytes:
        path = self._path_from_url(url)
        try:
            async with aiofiles.open(path, "rb") as infile:
                return await infile.read()
        except FileNotFoundError as exc:
            raise PermanentStoreError(f"Blob not found: {url}") from exc

    async def close(self) -> None:
        return None


def create_store(config: Config) -> BlobStore:
    """
    Build the blob store selected by configuration.

    Args:
        config: Loaded configuration.

    Returns:
        Blob store instance.
    """
    if config.blob_store == STORE_LOCAL:
        return FileSystemBlobStore(config.local_store_dir)
    if config.blob_store == STORE_CLOUDINARY:
        if config.credentials is None:
            raise ConfigError(
                "Cloudinary credentials are missing. Set CLOUDINARY_CLOUD_NAME "
                "and CLOUDINARY_UPLOAD_PRESET or use BLOB_STORE=local."
            )
        return CloudinaryBlobStore(config.credentials, timeout=config.request_timeout)
    raise ConfigError(f"Unknown blob store: {config.blob_store}")
