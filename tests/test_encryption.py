"""Tests for the chunk cipher and key helpers."""

from __future__ import annotations

import unittest

from chunkvault.core.crypto import (
    decode_key,
    decrypt_chunk,
    encode_key,
    encrypt_chunk,
    generate_key,
)
from chunkvault.utils import ConfigError, DecryptionError, EncryptionError


class TestEncryption(unittest.TestCase):
    def setUp(self) -> None:
        self.key = generate_key()

    def test_generate_key_length(self) -> None:
        self.assertEqual(len(self.key), 32)
        self.assertNotEqual(self.key, generate_key())

    def test_encrypt_decrypt_chunk(self) -> None:
        data = b"hello world"
        ciphertext, iv = encrypt_chunk(data, self.key)
        self.assertEqual(len(iv), 16)
        self.assertNotEqual(ciphertext, data)
        self.assertEqual(decrypt_chunk(ciphertext, self.key, iv), data)

    def test_ciphertext_rounds_up_to_block_size(self) -> None:
        for size, expected in ((0, 16), (1, 16), (15, 16), (16, 32), (27, 32), (33, 48)):
            ciphertext, _ = encrypt_chunk(b"a" * size, self.key)
            self.assertEqual(len(ciphertext), expected, size)

    def test_fresh_iv_per_call(self) -> None:
        ivs = {encrypt_chunk(b"same plaintext", self.key)[1] for _ in range(500)}
        self.assertEqual(len(ivs), 500)

    def test_same_plaintext_different_ciphertext(self) -> None:
        first, _ = encrypt_chunk(b"x" * 64, self.key)
        second, _ = encrypt_chunk(b"x" * 64, self.key)
        self.assertNotEqual(first, second)

    def test_wrong_key_never_returns_plaintext(self) -> None:
        data = b"secret payload " * 10
        for _ in range(50):
            ciphertext, iv = encrypt_chunk(data, self.key)
            try:
                result = decrypt_chunk(ciphertext, generate_key(), iv)
            except DecryptionError:
                continue
            self.assertNotEqual(result, data)

    def test_truncated_ciphertext_raises(self) -> None:
        ciphertext, iv = encrypt_chunk(b"hello world", self.key)
        with self.assertRaises(DecryptionError):
            decrypt_chunk(ciphertext[:-1], self.key, iv)

    def test_bad_key_length(self) -> None:
        with self.assertRaises(EncryptionError):
            encrypt_chunk(b"data", b"short")
        ciphertext, iv = encrypt_chunk(b"data", self.key)
        with self.assertRaises(EncryptionError):
            decrypt_chunk(ciphertext, self.key[:16], iv)

    def test_bad_iv_length(self) -> None:
        ciphertext, _ = encrypt_chunk(b"data", self.key)
        with self.assertRaises(EncryptionError):
            decrypt_chunk(ciphertext, self.key, b"\x00" * 8)

    def test_key_encoding(self) -> None:
        self.assertEqual(decode_key(encode_key(self.key)), self.key)
        with self.assertRaises(ConfigError):
            decode_key("not base64 at all!!")
        with self.assertRaises(ConfigError):
            decode_key(encode_key(b"\x01" * 16))


if __name__ == "__main__":
    unittest.main()
