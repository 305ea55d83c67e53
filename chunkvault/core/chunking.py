"""Logic for splitting a file into a fixed number of encrypted chunks."""

from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from ..common.constants import DEFAULT_CHUNK_COUNT, DEFAULT_EXTENSION
from ..common.types import Chunk
from ..utils import InvalidChunkCountError
from .crypto import encrypt_chunk


def resolve_chunk_count(chunk_count: Optional[int]) -> int:
    """
    Apply the default chunk count and reject non-positive values.

    Args:
        chunk_count: Requested chunk count, or None for the default

    Returns:
        Chunk count to use

    Raises:
        InvalidChunkCountError: If the count is zero or negative
    """
    if chunk_count is None:
        return DEFAULT_CHUNK_COUNT
    if chunk_count <= 0:
        raise InvalidChunkCountError(
            "Number of chunks must be greater than 0."
        )
    return chunk_count


def plan_chunks(file_size: int, chunk_count: Optional[int]) -> Tuple[int, List[int]]:
    """
    Work out the chunk size and the size of every chunk.

    The chunk size is ceil(file_size / chunk_count); only the last chunk may be
    shorter, and fewer chunks than requested come out when the rounding leaves
    nothing for the tail.

    Args:
        file_size: Size of the input in bytes
        chunk_count: Requested number of chunks

    Returns:
        Tuple of (chunk_size, list of chunk sizes in order)
    """
    chunk_count = resolve_chunk_count(chunk_count)
    if file_size <= 0:
        return 0, []
    chunk_size = -(-file_size // chunk_count)
    sizes = []
    remaining = file_size
    while remaining > 0:
        size = min(chunk_size, remaining)
        sizes.append(size)
        remaining -= size
    return chunk_size, sizes


def iter_chunks(data: bytes, chunk_size: int) -> Iterator[Tuple[int, bytes]]:
    """Yield (index, slice) pairs of sequential chunk_size reads."""
    for index, offset in enumerate(range(0, len(data), chunk_size)):
        yield index, data[offset:offset + chunk_size]


def encrypt_chunks(data: bytes, chunk_size: int, key: bytes) -> List[Chunk]:
    """
    Slice data and encrypt every slice under its own IV.

    Args:
        data: Whole plaintext
        chunk_size: Bytes per chunk
        key: 32-byte encryption key

    Returns:
        Chunks in read order
    """
    chunks = []
    for index, raw in iter_chunks(data, chunk_size):
        ciphertext, iv = encrypt_chunk(raw, key)
        chunks.append(Chunk(index=index, size=len(raw), ciphertext=ciphertext, iv=iv))
    return chunks


def get_extension(file_path: Path) -> str:
    """Return the path suffix without its dot, or the default placeholder."""
    suffix = file_path.suffix
    if not suffix or suffix == ".":
        return DEFAULT_EXTENSION
    return suffix[1:]
