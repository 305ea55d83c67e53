"""AES-256-CBC encryption with PKCS7 padding and key helpers."""

import base64
import binascii
import os
import secrets
from typing import Tuple

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from ..common.constants import IV_SIZE, KEY_SIZE
from ..utils import ConfigError, DecryptionError, EncryptionError

BLOCK_SIZE_BITS = 128


def generate_key() -> bytes:
    """
    Generate a random 256-bit encryption key.

    Returns:
        32-byte encryption key
    """
    return secrets.token_bytes(KEY_SIZE)


def encode_key(key: bytes) -> str:
    """Encode a key as urlsafe base64 text."""
    return base64.urlsafe_b64encode(key).decode("ascii")


def decode_key(text: str) -> bytes:
    """
    Decode a urlsafe base64 key.

    Args:
        text: Encoded key

    Returns:
        32-byte encryption key

    Raises:
        ConfigError: If the text is not valid base64 or has the wrong length
    """
    try:
        key = base64.urlsafe_b64decode(text.strip().encode("ascii"))
    except (binascii.Error, ValueError) as exc:
        raise ConfigError("Encryption key is not valid base64.") from exc
    if len(key) != KEY_SIZE:
        raise ConfigError(
            f"Encryption key must be {KEY_SIZE} bytes, got {len(key)}."
        )
    return key


def _cipher(key: bytes, iv: bytes) -> Cipher:
    if len(key) != KEY_SIZE:
        raise EncryptionError(f"Key must be {KEY_SIZE} bytes, got {len(key)}.")
    if len(iv) != IV_SIZE:
        raise EncryptionError(f"IV must be {IV_SIZE} bytes, got {len(iv)}.")
    return Cipher(algorithms.AES(key), modes.CBC(iv))


def encrypt_chunk(data: bytes, key: bytes) -> Tuple[bytes, bytes]:
    """
    Encrypt data using AES-256-CBC with a fresh random IV.

    Args:
        data: Data to encrypt
        key: 32-byte encryption key

    Returns:
        Tuple of (ciphertext, 16-byte IV)
    """
    iv = os.urandom(IV_SIZE)
    encryptor = _cipher(key, iv).encryptor()
    padder = padding.PKCS7(BLOCK_SIZE_BITS).padder()
    padded = padder.update(data) + padder.finalize()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return ciphertext, iv


def decrypt_chunk(data: bytes, key: bytes, iv: bytes) -> bytes:
    """
    Decrypt AES-256-CBC encrypted data.

    Args:
        data: Ciphertext
        key: 32-byte encryption key
        iv: IV used at encryption time

    Returns:
        Decrypted data

    Raises:
        EncryptionError: If the key or IV has the wrong length
        DecryptionError: If the padding is invalid (wrong key or corrupted data)
    """
    decryptor = _cipher(key, iv).decryptor()
    try:
        padded = decryptor.update(data) + decryptor.finalize()
        unpadder = padding.PKCS7(BLOCK_SIZE_BITS).unpadder()
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError as exc:
        raise DecryptionError(
            "Decryption failed. Wrong key or corrupted data."
        ) from exc
