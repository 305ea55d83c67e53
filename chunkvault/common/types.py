"""Type definitions and data models."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class Chunk:
    """An encrypted slice of the source file, ready for upload."""
    index: int
    size: int
    ciphertext: bytes
    iv: bytes

    @property
    def name(self) -> str:
        return f"chunk_{self.index}.bin"


@dataclass(frozen=True)
class UploadResult:
    """Outcome of uploading a single chunk."""
    index: int
    url: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.url is not None and self.error is None


@dataclass(frozen=True)
class ReconstructedFile:
    """A file rebuilt from a manifest and verified against its checksum."""
    path: Path
    size: int
    checksum: str
