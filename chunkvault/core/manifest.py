"""JSON manifest model, creation and parsing logic."""

import base64
import binascii
import datetime
import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..common.constants import (
    CIPHER_ALGORITHM,
    DIGEST_ALGORITHM,
    IV_SIZE,
    MANIFEST_NAME,
    MANIFEST_VERSION,
    RECONSTRUCTED_STEM,
)
from ..utils import IncompleteManifestError, ManifestCorruptError, atomic_write

_CHECKSUM_RE = re.compile(r"^[0-9a-fA-F]{64}$")
# Keeps "<stem>.<extension>.part" within a 255-byte file name.
MAX_EXTENSION_LENGTH = 255 - len(RECONSTRUCTED_STEM) - len("..part")


def _valid_extension(extension: str) -> bool:
    separators = {"/", "\\", os.sep, os.altsep} - {None}
    if any(char in separators or not char.isprintable() for char in extension):
        return False
    if extension in (".", ".."):
        return False
    return len(extension.encode("utf-8")) <= MAX_EXTENSION_LENGTH


@dataclass(frozen=True)
class ManifestEntry:
    """Remote location of one encrypted chunk and the IV it was sealed with."""
    url: str
    iv: bytes

    def to_dict(self) -> Dict[str, str]:
        """Convert to dictionary."""
        return {
            "url": self.url,
            "iv": base64.b64encode(self.iv).decode("ascii"),
        }

    @classmethod
    def from_dict(cls, data: Any, position: int) -> "ManifestEntry":
        """Create from dictionary, rejecting anything malformed."""
        if not isinstance(data, dict):
            raise ManifestCorruptError(f"Chunk entry {position} is not an object.")
        url = data.get("url")
        if not isinstance(url, str) or not url:
            raise ManifestCorruptError(f"Chunk entry {position} has no URL.")
        iv_text = data.get("iv")
        if not isinstance(iv_text, str):
            raise ManifestCorruptError(f"Chunk entry {position} has no IV.")
        try:
            iv = base64.b64decode(iv_text, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ManifestCorruptError(
                f"Chunk entry {position} has an undecodable IV."
            ) from exc
        if len(iv) != IV_SIZE:
            raise ManifestCorruptError(
                f"Chunk entry {position} IV must be {IV_SIZE} bytes, got {len(iv)}."
            )
        return cls(url=url, iv=iv)


@dataclass
class Manifest:
    """Everything needed to rebuild a split file."""
    extension: str
    checksum: str
    entries: List[ManifestEntry] = field(default_factory=list)
    chunk_count: Optional[int] = None
    original_size: Optional[int] = None
    missing: List[int] = field(default_factory=list)
    created_at: Optional[str] = None
    version: str = MANIFEST_VERSION

    def __post_init__(self) -> None:
        if self.chunk_count is None:
            self.chunk_count = len(self.entries) + len(self.missing)

    @property
    def is_complete(self) -> bool:
        return not self.missing and len(self.entries) == self.chunk_count

    def ensure_complete(self) -> None:
        """
        Refuse manifests with gaps.

        Raises:
            IncompleteManifestError: If any chunk is missing
        """
        if self.missing:
            raise IncompleteManifestError(
                f"Manifest is missing chunks {self.missing}; "
                "the file cannot be reconstructed."
            )
        if len(self.entries) != self.chunk_count:
            raise IncompleteManifestError(
                f"Manifest lists {len(self.entries)} chunks "
                f"but {self.chunk_count} were produced."
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "version": self.version,
            "extension": self.extension,
            "checksum": self.checksum,
            "algorithm": CIPHER_ALGORITHM,
            "digest": DIGEST_ALGORITHM,
            "original_size": self.original_size,
            "chunk_count": self.chunk_count,
            "missing": list(self.missing),
            "created_at": self.created_at,
            "chunks": [entry.to_dict() for entry in self.entries],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Manifest":
        """
        Create from dictionary.

        Raises:
            ManifestCorruptError: If a required field is absent or malformed
        """
        if not isinstance(data, dict):
            raise ManifestCorruptError("Manifest root must be a JSON object.")

        extension = data.get("extension")
        if not isinstance(extension, str) or not extension:
            raise ManifestCorruptError("Failed to read file extension from manifest.")
        if not _valid_extension(extension):
            raise ManifestCorruptError(f"Invalid file extension: {extension!r}")

        checksum = data.get("checksum")
        if not isinstance(checksum, str) or not _CHECKSUM_RE.match(checksum):
            raise ManifestCorruptError("Failed to read checksum from manifest.")

        chunks = data.get("chunks")
        if not isinstance(chunks, list):
            raise ManifestCorruptError("Failed to read chunks from the manifest.")
        entries = [ManifestEntry.from_dict(item, i) for i, item in enumerate(chunks)]

        missing = data.get("missing") or []
        if not isinstance(missing, list) or not all(
            isinstance(item, int) for item in missing
        ):
            raise ManifestCorruptError("Manifest 'missing' must be a list of integers.")

        chunk_count = data.get("chunk_count")
        if chunk_count is not None and (
            not isinstance(chunk_count, int) or chunk_count < 0
        ):
            raise ManifestCorruptError("Manifest 'chunk_count' must be a non-negative integer.")

        original_size = data.get("original_size")
        if original_size is not None and (
            not isinstance(original_size, int) or original_size < 0
        ):
            raise ManifestCorruptError("Manifest 'original_size' must be a non-negative integer.")

        return cls(
            extension=extension,
            checksum=checksum.lower(),
            entries=entries,
            chunk_count=chunk_count,
            original_size=original_size,
            missing=missing,
            created_at=data.get("created_at"),
            version=str(data.get("version", MANIFEST_VERSION)),
        )


def create_manifest(
    extension: str,
    checksum: str,
    entries: List[ManifestEntry],
    chunk_count: int,
    original_size: int,
    missing: Optional[List[int]] = None,
    timestamp: Optional[datetime.datetime] = None,
) -> Manifest:
    """
    Create a manifest stamped with the current UTC time.

    Args:
        extension: Original file extension
        checksum: SHA-256 of the original plaintext
        entries: Uploaded chunks in read order
        chunk_count: Chunks produced at split time
        original_size: Size of the original file
        missing: Ordinals of chunks that failed to upload
        timestamp: Optional timestamp (defaults to now)

    Returns:
        Manifest
    """
    now = timestamp or datetime.datetime.now(datetime.timezone.utc)
    return Manifest(
        extension=extension,
        checksum=checksum,
        entries=list(entries),
        chunk_count=chunk_count,
        original_size=original_size,
        missing=sorted(missing or []),
        created_at=now.isoformat(),
    )


def save_manifest(manifest: Manifest, output_dir: Path) -> Path:
    """
    Save manifest atomically to output_dir/manifest.json.

    Args:
        manifest: Manifest to save
        output_dir: Output directory

    Returns:
        Path to saved manifest file
    """
    manifest_path = output_dir / MANIFEST_NAME
    atomic_write(manifest_path, json.dumps(manifest.to_dict(), indent=4) + "\n")
    return manifest_path


def parse_manifest(manifest_path: Path) -> Manifest:
    """
    Parse a manifest JSON file.

    Args:
        manifest_path: Path to manifest file

    Returns:
        Manifest

    Raises:
        ManifestCorruptError: If manifest cannot be read or parsed
    """
    try:
        with open(manifest_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as exc:
        raise ManifestCorruptError(
            f"Failed to parse manifest {manifest_path.name}: {exc}"
        ) from exc
    return Manifest.from_dict(data)
