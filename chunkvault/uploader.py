"""Split workflow: chunk, encrypt, upload and write the manifest."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional, Union

import aiofiles

from .common.constants import MANIFEST_NAME
from .core.chunking import encrypt_chunks, get_extension, plan_chunks, resolve_chunk_count
from .core.integrity import digest
from .core.manifest import Manifest, ManifestEntry, create_manifest, save_manifest
from .transport import Transport
from .utils import EmptyInputError, InputNotFoundError, OutputError, format_bytes


logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


def _validate_input(source_path: Path) -> int:
    if not source_path.is_file():
        raise InputNotFoundError(f"Input file not found: {source_path}")
    try:
        return source_path.stat().st_size
    except OSError as exc:
        raise InputNotFoundError(f"Input file is not readable: {source_path}") from exc


def _prepare_output(output_dir: Path) -> None:
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise OutputError(f"Cannot create output directory {output_dir}: {exc}") from exc


async def split_file(
    file_path: Union[str, Path],
    output_dir: Union[str, Path],
    chunk_count: Optional[int],
    key: bytes,
    transport: Transport,
    progress_callback: Optional[ProgressCallback] = None,
) -> Manifest:
    """
    Split a file into encrypted chunks, upload them and save the manifest.

    Chunks whose upload fails for good are left out of the manifest entries and
    listed under ``missing``; the remaining chunks are still uploaded.

    Args:
        file_path: File to split.
        output_dir: Directory that receives manifest.json.
        chunk_count: Number of chunks, or None for the default of 5.
        key: 32-byte encryption key.
        transport: Transport bound to a blob store.
        progress_callback: Optional callback(done, total) for upload progress.

    Returns:
        The saved manifest.
    """
    source_path = Path(file_path).expanduser()
    file_size = _validate_input(source_path)
    chunk_count = resolve_chunk_count(chunk_count)
    if file_size == 0:
        raise EmptyInputError(f"Input file is empty: {source_path}")
    destination = Path(output_dir).expanduser()
    await asyncio.to_thread(_prepare_output, destination)

    try:
        async with aiofiles.open(source_path, "rb") as infile:
            data = await infile.read()
    except OSError as exc:
        raise InputNotFoundError(f"Input file is not readable: {source_path}") from exc
    if not data:
        raise EmptyInputError(f"Input file is empty: {source_path}")

    checksum = digest(data)
    chunk_size, sizes = plan_chunks(len(data), chunk_count)
    logger.info(
        "Splitting %s (%s) into %s chunks of up to %s bytes",
        source_path.name,
        format_bytes(len(data)),
        len(sizes),
        chunk_size,
    )

    chunks = await asyncio.to_thread(encrypt_chunks, data, chunk_size, key)
    results = await transport.upload_chunks(chunks, progress_callback=progress_callback)

    entries = []
    missing = []
    for chunk, result in zip(chunks, results):
        if result.ok:
            entries.append(ManifestEntry(url=result.url, iv=chunk.iv))
        else:
            logger.error("Error uploading chunk %s: %s", result.index, result.error)
            missing.append(result.index)

    manifest = create_manifest(
        extension=get_extension(source_path),
        checksum=checksum,
        entries=entries,
        chunk_count=len(chunks),
        original_size=len(data),
        missing=missing,
    )
    try:
        manifest_path = await asyncio.to_thread(save_manifest, manifest, destination)
    except OSError as exc:
        raise OutputError(f"Cannot write manifest to {destination}: {exc}") from exc

    if missing:
        logger.warning(
            "Manifest saved at %s with %s of %s chunks missing",
            manifest_path,
            len(missing),
            len(chunks),
        )
    else:
        logger.info("File split and uploaded successfully. Manifest saved at %s", manifest_path)
    return manifest


def manifest_path_for(output_dir: Union[str, Path]) -> Path:
    """Location split_file writes its manifest to."""
    return Path(output_dir).expanduser() / MANIFEST_NAME
