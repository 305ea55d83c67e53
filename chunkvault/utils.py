"""Shared utilities for chunkvault."""

from __future__ import annotations

import os
from pathlib import Path


class ChunkVaultError(Exception):
    """Base exception for chunkvault errors."""


class ConfigError(ChunkVaultError):
    """Raised when configuration is invalid or missing."""


class InputNotFoundError(ChunkVaultError):
    """Raised when the input path does not resolve to a readable file."""


class EmptyInputError(ChunkVaultError):
    """Raised when the input file has zero bytes."""


class InvalidChunkCountError(ChunkVaultError):
    """Raised when the requested chunk count is not positive."""


class OutputError(ChunkVaultError):
    """Raised when the manifest or the rebuilt file cannot be written."""


class EncryptionError(ChunkVaultError):
    """Raised when encryption fails or key/IV lengths are invalid."""


class DecryptionError(ChunkVaultError):
    """Raised when padding is invalid, usually a wrong key or corrupted data."""


class StoreError(ChunkVaultError):
    """Raised by blob store backends."""


class TransientStoreError(StoreError):
    """A store failure worth retrying (network blip, 5xx, throttling)."""


class PermanentStoreError(StoreError):
    """A store failure retrying cannot fix (bad credentials, bad request)."""


class UploadError(ChunkVaultError):
    """Raised when an upload fails permanently or exhausts its retries."""


class DownloadError(ChunkVaultError):
    """Raised when downloads fail."""


class ManifestCorruptError(ChunkVaultError):
    """Raised when a manifest is unreadable or a required field is malformed."""


class IncompleteManifestError(ManifestCorruptError):
    """Raised when a manifest records chunks that never made it to the store."""


class ChecksumMismatchError(ChunkVaultError):
    """Raised when the reconstructed file does not match the recorded digest."""

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(
            f"Checksum mismatch! Original: {expected}, Reconstructed: {actual}"
        )
        self.expected = expected
        self.actual = actual


def format_bytes(size: int) -> str:
    """
    Convert bytes to a human-readable string.

    Args:
        size: Size in bytes.

    Returns:
        Human-readable size string.
    """
    if size < 0:
        raise ValueError("Size must be non-negative.")

    units = ["B", "KB", "MB", "GB", "TB", "PB"]
    value = float(size)
    for unit in units:
        if value < 1024 or unit == units[-1]:
            return f"{value:.2f} {unit}"
        value /= 1024
    return f"{value:.2f} PB"


def atomic_write(path: Path, data: str, mode: str = "w") -> None:
    """
    Write data atomically to a file.

    Args:
        path: Destination path.
        data: Data to write.
        mode: File mode.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_suffix(path.suffix + ".tmp")
    with open(temp_path, mode, encoding="utf-8") as file_handle:
        file_handle.write(data)
        file_handle.flush()
        os.fsync(file_handle.fileno())
    temp_path.replace(path)
