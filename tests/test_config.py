"""Tests for configuration loading."""

from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from chunkvault.config import Config, load_config
from chunkvault.core.crypto import encode_key, generate_key
from chunkvault.utils import ConfigError


class TestLoadConfig(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.env_file = Path(self.temp_dir.name) / ".env"

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _load(self, env):
        with mock.patch.dict(os.environ, env, clear=True):
            return load_config(self.env_file)

    def test_defaults(self) -> None:
        config = self._load({})
        self.assertEqual(config.blob_store, "cloudinary")
        self.assertIsNone(config.credentials)
        self.assertIsNone(config.encryption_key)
        self.assertEqual(config.concurrent_uploads, 5)
        self.assertEqual(config.retry_policy.max_attempts, 5)
        with self.assertRaises(ConfigError):
            config.require_key()

    def test_credentials_and_key(self) -> None:
        key = generate_key()
        config = self._load({
            "CLOUDINARY_CLOUD_NAME": "demo",
            "CLOUDINARY_UPLOAD_PRESET": "raw_chunks",
            "CLOUDINARY_API_KEY": "123",
            "CLOUDINARY_API_SECRET": "shh",
            "CHUNKVAULT_KEY": encode_key(key),
        })
        self.assertEqual(config.credentials.cloud_name, "demo")
        self.assertEqual(config.credentials.upload_preset, "raw_chunks")
        self.assertNotIn("shh", repr(config.credentials))
        self.assertEqual(config.require_key(), key)

    def test_env_file_is_read(self) -> None:
        self.env_file.write_text(
            "BLOB_STORE=local\nLOCAL_STORE_DIR=/tmp/chunkvault-blobs\nCONCURRENT_UPLOADS=2\n",
            encoding="utf-8",
        )
        config = self._load({})
        self.assertEqual(config.blob_store, "local")
        self.assertEqual(config.local_store_dir, Path("/tmp/chunkvault-blobs"))
        self.assertEqual(config.concurrent_uploads, 2)

    def test_retry_settings(self) -> None:
        config = self._load({
            "RETRY_MAX_ATTEMPTS": "2",
            "RETRY_BASE_DELAY": "0.01",
            "RETRY_MAX_DELAY": "0.5",
            "RETRY_MAX_ELAPSED": "3",
            "RETRY_JITTER": "0",
        })
        policy = config.retry_policy
        self.assertEqual(policy.max_attempts, 2)
        self.assertEqual(policy.base_delay, 0.01)
        self.assertEqual(policy.max_delay, 0.5)
        self.assertEqual(policy.max_elapsed, 3.0)
        self.assertEqual(policy.jitter, 0.0)

    def test_each_load_builds_a_fresh_config(self) -> None:
        first = self._load({"BLOB_STORE": "local"})
        second = self._load({"BLOB_STORE": "cloudinary"})
        self.assertIsInstance(first, Config)
        self.assertEqual(first.blob_store, "local")
        self.assertEqual(second.blob_store, "cloudinary")
        self.assertFalse(hasattr(Config, "get_instance"))

    def test_invalid_values(self) -> None:
        cases = [
            {"BLOB_STORE": "s3"},
            {"CONCURRENT_UPLOADS": "zero"},
            {"CONCURRENT_DOWNLOADS": "0"},
            {"RETRY_BASE_DELAY": "-1"},
            {"CHUNKVAULT_KEY": encode_key(b"short")},
            {"CLOUDINARY_CLOUD_NAME": "demo"},
        ]
        for env in cases:
            with self.subTest(env=env):
                with self.assertRaises(ConfigError):
                    self._load(env)


if __name__ == "__main__":
    unittest.main()
