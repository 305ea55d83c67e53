"""Core business logic (pure Python, no network code)."""

from .crypto import decode_key, decrypt_chunk, encode_key, encrypt_chunk, generate_key
from .chunking import encrypt_chunks, get_extension, iter_chunks, plan_chunks, resolve_chunk_count
from .integrity import digest, verify
from .manifest import Manifest, ManifestEntry, create_manifest, parse_manifest, save_manifest

__all__ = [
    "generate_key",
    "encode_key",
    "decode_key",
    "encrypt_chunk",
    "decrypt_chunk",
    "resolve_chunk_count",
    "plan_chunks",
    "iter_chunks",
    "encrypt_chunks",
    "get_extension",
    "digest",
    "verify",
    "Manifest",
    "ManifestEntry",
    "create_manifest",
    "parse_manifest",
    "save_manifest",
]
