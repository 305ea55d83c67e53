"""Whole-file SHA-256 digests."""

import hashlib
import hmac

from ..utils import ChecksumMismatchError


def digest(data: bytes) -> str:
    """
    Compute the SHA-256 hex digest of a byte string.

    Args:
        data: Bytes to hash

    Returns:
        64-character hex digest
    """
    return hashlib.sha256(data).hexdigest()


def verify(expected: str, actual: str) -> None:
    """
    Compare two digests in constant time.

    Raises:
        ChecksumMismatchError: If the digests differ
    """
    if not hmac.compare_digest(expected.lower(), actual.lower()):
        raise ChecksumMismatchError(expected, actual)
