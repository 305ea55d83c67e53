"""Configuration management for chunkvault."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .common.constants import (
    MAX_CONCURRENT_DOWNLOADS,
    MAX_CONCURRENT_UPLOADS,
    MAX_RETRY_ATTEMPTS,
    REQUEST_TIMEOUT,
    RETRY_BASE_DELAY,
    RETRY_JITTER,
    RETRY_MAX_DELAY,
    RETRY_MAX_ELAPSED,
)
from .core.crypto import decode_key
from .utils import ConfigError

ENV_KEY = "CHUNKVAULT_KEY"
ENV_BLOB_STORE = "BLOB_STORE"
ENV_LOCAL_STORE_DIR = "LOCAL_STORE_DIR"
ENV_CLOUD_NAME = "CLOUDINARY_CLOUD_NAME"
ENV_API_KEY = "CLOUDINARY_API_KEY"
ENV_API_SECRET = "CLOUDINARY_API_SECRET"
ENV_UPLOAD_PRESET = "CLOUDINARY_UPLOAD_PRESET"
ENV_UPLOADS = "CONCURRENT_UPLOADS"
ENV_DOWNLOADS = "CONCURRENT_DOWNLOADS"
ENV_RETRY_ATTEMPTS = "RETRY_MAX_ATTEMPTS"
ENV_RETRY_BASE_DELAY = "RETRY_BASE_DELAY"
ENV_RETRY_MAX_DELAY = "RETRY_MAX_DELAY"
ENV_RETRY_MAX_ELAPSED = "RETRY_MAX_ELAPSED"
ENV_RETRY_JITTER = "RETRY_JITTER"
ENV_REQUEST_TIMEOUT = "REQUEST_TIMEOUT"

STORE_CLOUDINARY = "cloudinary"
STORE_LOCAL = "local"
SUPPORTED_STORES = (STORE_CLOUDINARY, STORE_LOCAL)


def _env_path() -> Path:
    return Path.cwd() / ".env"


@dataclass(frozen=True)
class Credentials:
    """Blob store credentials, resolved once at startup."""

    cloud_name: str
    upload_preset: str
    api_key: str = ""
    api_secret: str = field(default="", repr=False)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff settings for uploads."""

    max_attempts: int = MAX_RETRY_ATTEMPTS
    base_delay: float = RETRY_BASE_DELAY
    max_delay: float = RETRY_MAX_DELAY
    max_elapsed: float = RETRY_MAX_ELAPSED
    jitter: float = RETRY_JITTER

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigError("Retry max_attempts must be at least 1.")
        if self.base_delay < 0 or self.max_delay < 0 or self.max_elapsed < 0:
            raise ConfigError("Retry delays must be non-negative.")
        if self.jitter < 0:
            raise ConfigError("Retry jitter must be non-negative.")

    def delay_for(self, attempt: int) -> float:
        """Base delay before retrying after the given (1-based) attempt."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)


@dataclass(frozen=True)
class Config:
    """Runtime configuration, built once by load_config and passed explicitly."""

    blob_store: str = STORE_CLOUDINARY
    local_store_dir: Path = Path("blobstore")
    credentials: Optional[Credentials] = None
    encryption_key: Optional[bytes] = field(default=None, repr=False)
    concurrent_uploads: int = MAX_CONCURRENT_UPLOADS
    concurrent_downloads: int = MAX_CONCURRENT_DOWNLOADS
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    request_timeout: float = REQUEST_TIMEOUT

    def require_key(self) -> bytes:
        """
        Return the configured encryption key.

        Raises:
            ConfigError: If no key was supplied.
        """
        if self.encryption_key is None:
            raise ConfigError(
                f"{ENV_KEY} is required. Generate one with `chunkvault keygen`."
            )
        return self.encryption_key


def _parse_int(value: str, name: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise ConfigError(f"Invalid integer for {name}.") from exc
    if parsed <= 0:
        raise ConfigError(f"{name} must be greater than 0.")
    return parsed


def _parse_float(value: str, name: str) -> float:
    try:
        parsed = float(value)
    except ValueError as exc:
        raise ConfigError(f"Invalid number for {name}.") from exc
    if parsed < 0:
        raise ConfigError(f"{name} must not be negative.")
    return parsed


def _load_credentials() -> Optional[Credentials]:
    cloud_name = os.getenv(ENV_CLOUD_NAME, "").strip()
    upload_preset = os.getenv(ENV_UPLOAD_PRESET, "").strip()
    if not cloud_name and not upload_preset:
        return None
    return Credentials(
        cloud_name=cloud_name,
        upload_preset=upload_preset,
        api_key=os.getenv(ENV_API_KEY, "").strip(),
        api_secret=os.getenv(ENV_API_SECRET, "").strip(),
    )


def load_retry_policy() -> RetryPolicy:
    """
    Build the upload retry policy from the environment.

    Returns:
        RetryPolicy instance.
    """
    return RetryPolicy(
        max_attempts=_parse_int(
            os.getenv(ENV_RETRY_ATTEMPTS, str(MAX_RETRY_ATTEMPTS)).strip(),
            ENV_RETRY_ATTEMPTS,
        ),
        base_delay=_parse_float(
            os.getenv(ENV_RETRY_BASE_DELAY, str(RETRY_BASE_DELAY)).strip(),
            ENV_RETRY_BASE_DELAY,
        ),
        max_delay=_parse_float(
            os.getenv(ENV_RETRY_MAX_DELAY, str(RETRY_MAX_DELAY)).strip(),
            ENV_RETRY_MAX_DELAY,
        ),
        max_elapsed=_parse_float(
            os.getenv(ENV_RETRY_MAX_ELAPSED, str(RETRY_MAX_ELAPSED)).strip(),
            ENV_RETRY_MAX_ELAPSED,
        ),
        jitter=_parse_float(
            os.getenv(ENV_RETRY_JITTER, str(RETRY_JITTER)).strip(),
            ENV_RETRY_JITTER,
        ),
    )


def load_config(env_file: Optional[Path] = None) -> Config:
    """
    Load and validate configuration from the .env file and environment.

    Args:
        env_file: Optional .env path (defaults to ./.env).

    Returns:
        Config instance.
    """
    env_file = env_file or _env_path()
    if env_file.exists():
        load_dotenv(env_file)

    blob_store = os.getenv(ENV_BLOB_STORE, STORE_CLOUDINARY).strip().lower()
    if blob_store not in SUPPORTED_STORES:
        raise ConfigError(
            f"{ENV_BLOB_STORE} must be one of {', '.join(SUPPORTED_STORES)}."
        )

    credentials = _load_credentials()
    if blob_store == STORE_CLOUDINARY and credentials is not None:
        if not credentials.cloud_name:
            raise ConfigError(f"{ENV_CLOUD_NAME} is required for Cloudinary.")
        if not credentials.upload_preset:
            raise ConfigError(f"{ENV_UPLOAD_PRESET} is required for Cloudinary.")

    key_text = os.getenv(ENV_KEY, "").strip()
    encryption_key = decode_key(key_text) if key_text else None

    return Config(
        blob_store=blob_store,
        local_store_dir=Path(
            os.getenv(ENV_LOCAL_STORE_DIR, "blobstore").strip()
        ).expanduser(),
        credentials=credentials,
        encryption_key=encryption_key,
        concurrent_uploads=_parse_int(
            os.getenv(ENV_UPLOADS, str(MAX_CONCURRENT_UPLOADS)).strip(), ENV_UPLOADS
        ),
        concurrent_downloads=_parse_int(
            os.getenv(ENV_DOWNLOADS, str(MAX_CONCURRENT_DOWNLOADS)).strip(),
            ENV_DOWNLOADS,
        ),
        retry_policy=load_retry_policy(),
        request_timeout=_parse_float(
            os.getenv(ENV_REQUEST_TIMEOUT, str(REQUEST_TIMEOUT)).strip(),
            ENV_REQUEST_TIMEOUT,
        ),
    )
