"""
Tests for atomic writes and envelope serialization.
"""

import os
import shutil
import tempfile
import threading
import unittest
from pathlib import Path
from unittest.mock import patch

from tiered_cache.core.exceptions import BackendUnavailableError, SerializationError
from tiered_cache.utils.file_io import AtomicWriter, dumps, estimate_size, loads, loads_envelope


class TestAtomicWriter(unittest.TestCase):
    """Test cases for the AtomicWriter class."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.test_file = Path(self.temp_dir) / "nested" / "store.json"
        self.writer = AtomicWriter()

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_write_atomic(self):
        self.writer.write_atomic(self.test_file, '{"a": 1}')

        self.assertTrue(self.test_file.exists())
        self.assertEqual('{"a": 1}', self.writer.read(self.test_file))
        self.assertEqual([], list(self.test_file.parent.glob("*.tmp")))

    def test_overwrite(self):
        self.writer.write_atomic(self.test_file, "first")
        self.writer.write_atomic(self.test_file, "second")

        self.assertEqual("second", self.writer.read(self.test_file))

    def test_read_missing_file(self):
        self.assertIsNone(self.writer.read(Path(self.temp_dir) / "absent.json"))

    def test_failed_replace_keeps_original(self):
        self.writer.write_atomic(self.test_file, "original")

        with patch("tiered_cache.utils.file_io.atomic_writer.os.replace", side_effect=OSError("read-only")):
            with self.assertRaises(BackendUnavailableError) as ctx:
                self.writer.write_atomic(self.test_file, "replacement")

        self.assertIsInstance(ctx.exception.original_error, OSError)
        self.assertEqual("original", self.writer.read(self.test_file))
        self.assertEqual([], list(self.test_file.parent.glob("*.tmp")))

    def test_concurrent_writers_use_separate_temp_files(self):
        threads = [
            threading.Thread(target=self.writer.write_atomic, args=(self.test_file, f"content-{n}"))
            for n in range(8)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertIn(self.writer.read(self.test_file), {f"content-{n}" for n in range(8)})
        self.assertEqual([], list(self.test_file.parent.glob("*.tmp")))

    def test_read_directory_fails(self):
        with self.assertRaises(BackendUnavailableError):
            self.writer.read(Path(self.temp_dir))


class TestJsonUtils(unittest.TestCase):
    """Test cases for JSON serialization helpers."""

    def test_dumps_and_loads(self):
        encoded = dumps({"key": "k", "data": [1, "two"]})

        self.assertIsInstance(encoded, str)
        self.assertEqual({"key": "k", "data": [1, "two"]}, loads(encoded))

    def test_dumps_unserializable(self):
        with self.assertRaises(SerializationError) as ctx:
            dumps({"when": object()}, cache_key="k")

        self.assertEqual("k", ctx.exception.cache_key)
        self.assertEqual("SET", ctx.exception.operation)

    def test_loads_invalid(self):
        with self.assertRaises(SerializationError):
            loads("{broken", cache_key="k")

    def test_loads_envelope(self):
        envelope = loads_envelope('{"key": "k", "data": null, "createdAt": 1.0, "ttl": 5}')
        self.assertIsNone(envelope['data'])

        for raw in ('[1, 2]', '{"key": "k", "data": 1}', '"text"'):
            with self.assertRaises(SerializationError):
                loads_envelope(raw)

    def test_estimate_size(self):
        self.assertEqual(len('{"a":"bc"}') * 2, estimate_size({"a": "bc"}))
        self.assertGreater(estimate_size(object()), 0)


if __name__ == '__main__':
    unittest.main()
