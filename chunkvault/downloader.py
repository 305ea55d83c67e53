"""Reconstruct workflow: download, decrypt, reassemble and verify."""

from __future__ import annotations

import asyncio
import hashlib
import logging
from pathlib import Path
from typing import Callable, Optional, Union

import aiofiles

from .common.constants import RECONSTRUCTED_STEM
from .common.types import ReconstructedFile
from .core.crypto import decrypt_chunk
from .core.integrity import verify
from .core.manifest import Manifest, ManifestEntry, parse_manifest
from .transport import Transport
from .utils import ChecksumMismatchError, DecryptionError, OutputError


logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


def output_path_for(output_dir: Path, manifest: Manifest) -> Path:
    """Name of the rebuilt file, derived from the recorded extension."""
    return output_dir / f"{RECONSTRUCTED_STEM}.{manifest.extension}"


def _remove(path: Path) -> None:
    path.unlink(missing_ok=True)


def _decrypt(position: int, blob: bytes, key: bytes, entry: ManifestEntry) -> bytes:
    try:
        return decrypt_chunk(blob, key, entry.iv)
    except DecryptionError as exc:
        raise DecryptionError(
            f"Chunk {position} from {entry.url} could not be decrypted. "
            "Wrong key or corrupted data."
        ) from exc


async def reconstruct(
    manifest: Manifest,
    output_dir: Union[str, Path],
    key: bytes,
    transport: Transport,
    progress_callback: Optional[ProgressCallback] = None,
) -> ReconstructedFile:
    """
    Rebuild the original file described by a manifest.

    Args:
        manifest: Parsed manifest.
        output_dir: Destination directory.
        key: 32-byte encryption key used at split time.
        transport: Transport bound to the same blob store.
        progress_callback: Optional callback(done, total) for download progress.

    Returns:
        The verified reconstructed file.
    """
    manifest.ensure_complete()

    destination = Path(output_dir).expanduser()
    try:
        await asyncio.to_thread(destination.mkdir, parents=True, exist_ok=True)
    except OSError as exc:
        raise OutputError(f"Cannot create output directory {destination}: {exc}") from exc
    final_path = output_path_for(destination, manifest)
    partial_path = final_path.with_name(final_path.name + ".part")

    blobs = await transport.download_many(
        [entry.url for entry in manifest.entries],
        progress_callback=progress_callback,
    )

    hasher = hashlib.sha256()
    size = 0
    try:
        async with aiofiles.open(partial_path, "wb") as outfile:
            for position, (entry, blob) in enumerate(zip(manifest.entries, blobs)):
                plaintext = await asyncio.to_thread(_decrypt, position, blob, key, entry)
                hasher.update(plaintext)
                size += len(plaintext)
                await outfile.write(plaintext)

        actual = hasher.hexdigest()
        if manifest.original_size is not None and size != manifest.original_size:
            logger.error(
                "Reconstructed %s bytes but the manifest records %s",
                size,
                manifest.original_size,
            )
            raise ChecksumMismatchError(manifest.checksum, actual)
        verify(manifest.checksum, actual)
        await asyncio.to_thread(partial_path.replace, final_path)
    except OSError as exc:
        await asyncio.to_thread(_remove, partial_path)
        raise OutputError(f"Cannot write {partial_path}: {exc}") from exc
    except BaseException:
        await asyncio.to_thread(_remove, partial_path)
        raise

    logger.info("File reconstruction successful. Checksums match: %s", final_path)
    return ReconstructedFile(path=final_path, size=size, checksum=actual)


async def reconstruct_file(
    manifest_path: Union[str, Path],
    output_dir: Union[str, Path],
    key: bytes,
    transport: Transport,
    progress_callback: Optional[ProgressCallback] = None,
) -> ReconstructedFile:
    """
    Read a manifest file and rebuild the original file from it.

    Args:
        manifest_path: Path to manifest.json.
        output_dir: Destination directory.
        key: 32-byte encryption key used at split time.
        transport: Transport bound to the same blob store.
        progress_callback: Optional callback(done, total) for download progress.

    Returns:
        The verified reconstructed file.
    """
    manifest = await asyncio.to_thread(parse_manifest, Path(manifest_path).expanduser())
    return await reconstruct(
        manifest, output_dir, key, transport, progress_callback=progress_callback
    )
