"""Common utilities and shared functionality."""

from .constants import DEFAULT_CHUNK_COUNT, MANIFEST_NAME
from .logging import setup_logging
from .types import Chunk, ReconstructedFile, UploadResult

__all__ = [
    "DEFAULT_CHUNK_COUNT",
    "MANIFEST_NAME",
    "setup_logging",
    "Chunk",
    "ReconstructedFile",
    "UploadResult",
]
