"""
Tests for tracecapture.artifacts.writer module.
"""

import gzip
import os
import re
import shutil
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import orjson

from tracecapture.artifacts.writer import ArtifactWriter, TraceArtifact, encode_payload
from tracecapture.core.errors import PersistError

TIMESTAMP = datetime(2025, 3, 14, 15, 9, 26, 535897, tzinfo=timezone.utc)


class TestEncodePayload(unittest.TestCase):
    """Test cases for encode_payload."""

    def test_bytes_pass_through(self):
        """Test raw bytes are written verbatim."""
        self.assertEqual(encode_payload(b'{"traceEvents":[]}'), b'{"traceEvents":[]}')

    def test_str_is_utf8_encoded(self):
        """Test strings are encoded as UTF-8."""
        self.assertEqual(encode_payload("λ"), "λ".encode("utf-8"))

    def test_dict_is_json(self):
        """Test structured payloads are serialised as JSON."""
        self.assertEqual(orjson.loads(encode_payload({"a": [1, 2]})), {"a": [1, 2]})

    def test_unserialisable_payload(self):
        """Test an unserialisable payload raises PersistError."""
        with self.assertRaises(PersistError):
            encode_payload({"handle": object()})


class TestArtifactWriter(unittest.TestCase):
    """Test cases for ArtifactWriter."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.writer = ArtifactWriter(self.temp_dir)

    def tearDown(self):
        """Clean up after tests."""
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def test_persist_naming(self):
        """Test artifacts are named <label>-<timestamp><suffix>."""
        path = self.writer.persist("train step", {"x": 1}, TIMESTAMP, suffix=".cprofile.json")

        self.assertEqual(Path(path).parent, Path(self.temp_dir))
        self.assertEqual(Path(path).name, "train_step-20250314-150926-535897.cprofile.json")
        self.assertEqual(orjson.loads(Path(path).read_bytes()), {"x": 1})

    def test_persist_creates_output_dir(self):
        """Test a missing output directory is created."""
        writer = ArtifactWriter(os.path.join(self.temp_dir, "nested", "traces"))
        path = writer.persist("run", b"data", TIMESTAMP)
        self.assertTrue(Path(path).is_file())

    def test_persist_never_overwrites(self):
        """Test a name collision appends a disambiguator."""
        first = self.writer.persist("run", b"one", TIMESTAMP)
        second = self.writer.persist("run", b"two", TIMESTAMP)

        self.assertNotEqual(first, second)
        self.assertTrue(second.endswith("-1.json"))
        self.assertEqual(Path(first).read_bytes(), b"one")
        self.assertEqual(Path(second).read_bytes(), b"two")

    def test_persist_compressed(self):
        """Test compression gzips the payload and appends .gz."""
        writer = ArtifactWriter(self.temp_dir, compress=True)

        path = writer.persist("run", b"payload", TIMESTAMP, suffix=".pt.trace.json")

        self.assertTrue(path.endswith(".pt.trace.json.gz"))
        with gzip.open(path, "rb") as f:
            self.assertEqual(f.read(), b"payload")

    def test_persist_leaves_no_temporary_files(self):
        """Test only the final artifact remains in the directory."""
        path = self.writer.persist("run", b"data", TIMESTAMP)
        self.assertEqual(os.listdir(self.temp_dir), [Path(path).name])

    def test_persist_unwritable_location(self):
        """Test an I/O failure raises PersistError chained to the OSError."""
        blocker = os.path.join(self.temp_dir, "file")
        Path(blocker).write_bytes(b"")
        writer = ArtifactWriter(os.path.join(blocker, "traces"))

        with self.assertRaises(PersistError) as cm:
            writer.persist("run", b"data", TIMESTAMP)

        self.assertIsInstance(cm.exception.__cause__, OSError)

    def test_persist_bad_payload_writes_nothing(self):
        """Test an encoding failure leaves no file behind."""
        with self.assertRaises(PersistError):
            self.writer.persist("run", {"handle": object()}, TIMESTAMP)
        self.assertEqual(os.listdir(self.temp_dir), [])

    def test_final_path_appears_with_full_content(self):
        """Test the artifact name is only claimed once the data is on disk."""
        real_link = os.link
        observed = []

        def checking_link(src, dst):
            observed.append((os.path.getsize(src), os.path.exists(dst)))
            return real_link(src, dst)

        with patch("os.link", side_effect=checking_link):
            path = self.writer.persist("run", b"data", TIMESTAMP)

        self.assertEqual(observed, [(4, False)])
        self.assertEqual(Path(path).read_bytes(), b"data")

    def test_interrupted_persist_leaves_directory_empty(self):
        """Test an interruption before the name is claimed leaves no files."""
        with patch("os.link", side_effect=KeyboardInterrupt):
            with self.assertRaises(KeyboardInterrupt):
                self.writer.persist("run", b"data", TIMESTAMP)

        self.assertEqual(os.listdir(self.temp_dir), [])

    def test_link_failure_raises_persist_error(self):
        """Test an OSError while claiming the name is a PersistError with no leftovers."""
        with patch("os.link", side_effect=PermissionError("denied")):
            with self.assertRaises(PersistError) as cm:
                self.writer.persist("run", b"data", TIMESTAMP)

        self.assertIsInstance(cm.exception.__cause__, PermissionError)
        self.assertEqual(os.listdir(self.temp_dir), [])

    def test_write_sets_artifact_path(self):
        """Test write() records the path on the artifact."""
        artifact = TraceArtifact(name="run", payload=[1, 2], timestamp=TIMESTAMP, suffix=".json")

        result = self.writer.write(artifact)

        self.assertIs(result, artifact)
        self.assertTrue(re.search(r"run-20250314-150926-535897\.json$", artifact.path))


if __name__ == "__main__":
    unittest.main()
