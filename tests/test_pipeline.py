"""End-to-end split and reconstruct tests against an in-memory store."""

from __future__ import annotations

import asyncio
import json
import os
import random
import tempfile
import threading
import unittest
from pathlib import Path
from unittest import mock

from fakes import InMemoryBlobStore

from chunkvault.config import RetryPolicy
from chunkvault.core.crypto import decrypt_chunk, generate_key
from chunkvault.core.integrity import digest
from chunkvault.downloader import reconstruct_file
from chunkvault.transport import Transport
from chunkvault.uploader import split_file
from chunkvault.utils import (
    ChecksumMismatchError,
    DecryptionError,
    DownloadError,
    IncompleteManifestError,
    ManifestCorruptError,
    OutputError,
)

FAST_RETRY = RetryPolicy(max_attempts=3, base_delay=0.0, max_delay=0.0, jitter=0.0)


class TestPipeline(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.base = Path(self.temp_dir.name)
        self.key = generate_key()
        self.store = InMemoryBlobStore()
        self.transport = Transport(self.store, retry_policy=FAST_RETRY)
        self.out_dir = self.base / "out"
        self.restore_dir = self.base / "restore"

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _split(self, name: str, data: bytes, chunk_count=None):
        path = self.base / name
        path.write_bytes(data)
        return asyncio.run(
            split_file(path, self.out_dir, chunk_count, self.key, self.transport)
        )

    def _reconstruct(self, key=None):
        return asyncio.run(
            reconstruct_file(
                self.out_dir / "manifest.json",
                self.restore_dir,
                key or self.key,
                self.transport,
            )
        )

    def test_round_trip(self) -> None:
        rng = random.Random(1234)
        for size in (1, 15, 16, 17, 105, 1000, 4096 + 3):
            for count in (1, 2, 4, 5, 7, 64):
                data = bytes(rng.getrandbits(8) for _ in range(size))
                with self.subTest(size=size, count=count):
                    self._split("input.bin", data, count)
                    rebuilt = self._reconstruct()
                    self.assertEqual(rebuilt.path.read_bytes(), data)
                    self.assertEqual(rebuilt.size, size)
                    self.assertEqual(rebuilt.checksum, digest(data))

    def test_output_named_from_extension(self) -> None:
        data = os.urandom(105)
        self._split("photo.jpg", data, 4)
        rebuilt = self._reconstruct()
        self.assertEqual(rebuilt.path, self.restore_dir / "reconstructed_file.jpg")
        self.assertEqual(rebuilt.path.read_bytes(), data)
        self.assertFalse((self.restore_dir / "reconstructed_file.jpg.part").exists())

    def test_tampered_chunk_is_detected(self) -> None:
        data = os.urandom(300)
        for position in range(0, 48):
            manifest = self._split("input.bin", data, 3)
            url = manifest.entries[1].url
            blob = bytearray(self.store.blobs[url])
            blob[position] ^= 0x01
            self.store.blobs[url] = bytes(blob)
            with self.subTest(position=position):
                with self.assertRaises((DecryptionError, ChecksumMismatchError)):
                    self._reconstruct()
                self.assertFalse((self.restore_dir / "reconstructed_file.bin").exists())

    def test_wrong_key_is_rejected(self) -> None:
        self._split("input.bin", os.urandom(200), 4)
        with self.assertRaises((DecryptionError, ChecksumMismatchError)):
            self._reconstruct(key=generate_key())

    def test_checksum_mismatch_carries_digests(self) -> None:
        data = b"original contents"
        self._split("input.txt", data, 2)
        manifest_path = self.out_dir / "manifest.json"
        stored = json.loads(manifest_path.read_text(encoding="utf-8"))
        stored["checksum"] = digest(b"something else")
        manifest_path.write_text(json.dumps(stored), encoding="utf-8")

        with self.assertRaises(ChecksumMismatchError) as ctx:
            self._reconstruct()
        self.assertEqual(ctx.exception.expected, digest(b"something else"))
        self.assertEqual(ctx.exception.actual, digest(data))

    def test_reordered_entries_fail(self) -> None:
        self._split("input.bin", bytes(range(200)), 4)
        manifest_path = self.out_dir / "manifest.json"
        stored = json.loads(manifest_path.read_text(encoding="utf-8"))
        stored["chunks"].reverse()
        manifest_path.write_text(json.dumps(stored), encoding="utf-8")
        with self.assertRaises(ChecksumMismatchError):
            self._reconstruct()

    def test_incomplete_manifest_is_refused(self) -> None:
        self.store.permanent_failures.add("chunk_2.bin")
        self._split("input.bin", os.urandom(100), 4)
        with self.assertRaises(IncompleteManifestError):
            self._reconstruct()
        self.assertFalse(self.restore_dir.exists())

    def test_missing_blob_fails_download(self) -> None:
        manifest = self._split("input.bin", os.urandom(100), 4)
        del self.store.blobs[manifest.entries[3].url]
        with self.assertRaises(DownloadError):
            self._reconstruct()

    def test_corrupt_manifest(self) -> None:
        self.out_dir.mkdir(parents=True)
        (self.out_dir / "manifest.json").write_text(
            json.dumps({"extension": "txt", "chunks": []}), encoding="utf-8"
        )
        with self.assertRaises(ManifestCorruptError):
            self._reconstruct()

    def _rewrite_manifest(self, **fields) -> None:
        path = self.out_dir / "manifest.json"
        stored = json.loads(path.read_text(encoding="utf-8"))
        stored.update(fields)
        path.write_text(json.dumps(stored), encoding="utf-8")

    def test_unusable_extension_is_corrupt(self) -> None:
        self._split("input.bin", os.urandom(50), 2)
        for extension in ("b\u0000in", "b" * 400):
            self._rewrite_manifest(extension=extension)
            with self.subTest(extension=extension[:8]):
                with self.assertRaises(ManifestCorruptError):
                    self._reconstruct()
        self.assertFalse(self.restore_dir.exists())

    def test_recorded_size_mismatch_is_rejected(self) -> None:
        self._split("input.bin", os.urandom(64), 2)
        self._rewrite_manifest(original_size=65)
        with self.assertRaises(ChecksumMismatchError):
            self._reconstruct()
        self.assertEqual(list(self.restore_dir.iterdir()), [])

    def test_output_dir_that_is_a_file(self) -> None:
        self._split("input.bin", os.urandom(64), 2)
        self.restore_dir.write_bytes(b"occupied")
        with self.assertRaises(OutputError):
            self._reconstruct()
        self.assertEqual(self.restore_dir.read_bytes(), b"occupied")

    def test_decryption_runs_off_the_event_loop(self) -> None:
        data = os.urandom(90)
        self._split("input.bin", data, 3)
        threads = []

        def _recording_decrypt(ciphertext, key, iv):
            threads.append(threading.current_thread())
            return decrypt_chunk(ciphertext, key, iv)

        with mock.patch("chunkvault.downloader.decrypt_chunk", _recording_decrypt):
            rebuilt = self._reconstruct()
        self.assertEqual(rebuilt.path.read_bytes(), data)
        self.assertEqual(len(threads), 3)
        self.assertNotIn(threading.main_thread(), threads)

    def test_split_and_reconstruct_share_only_manifest_and_key(self) -> None:
        data = os.urandom(777)
        self._split("input.bin", data, 6)
        fresh_transport = Transport(self.store, retry_policy=FAST_RETRY)
        rebuilt = asyncio.run(
            reconstruct_file(
                self.out_dir / "manifest.json", self.restore_dir, self.key, fresh_transport
            )
        )
        self.assertEqual(rebuilt.path.read_bytes(), data)


if __name__ == "__main__":
    unittest.main()
