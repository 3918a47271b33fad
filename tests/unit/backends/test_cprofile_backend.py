"""
Tests for tracecapture.backends.cprofile module.
"""

import unittest

import orjson

from tracecapture.backends.base import BackendLease
from tracecapture.backends.cprofile import (
    LEASE_RESOURCE,
    PAYLOAD_FORMAT,
    CProfileBackend,
)
from tracecapture.core.errors import BackendBusyError, BackendConnectError, EnableError, StartError, StopError


def _profiled_function():
    return sorted(str(i) for i in range(200))


class _Recorder:
    """Collects callback invocations."""

    def __init__(self):
        self.invocations = []

    def __call__(self, err=None, value=None):
        self.invocations.append((err, value))

    @property
    def last(self):
        return self.invocations[-1]


class TestCProfileBackend(unittest.TestCase):
    """Test cases for CProfileBackend."""

    def setUp(self):
        """Set up test fixtures."""
        self.backend = CProfileBackend()

    def tearDown(self):
        """Clean up after tests."""
        self.backend.disconnect()

    def _run_to_stop(self):
        recorder = _Recorder()
        self.backend.connect()
        self.backend.enable(recorder)
        self.backend.start(recorder)
        _profiled_function()
        self.backend.stop(recorder)
        return recorder

    def test_full_cycle_produces_stats_document(self):
        """Test connect/enable/start/stop yields a stats document."""
        recorder = self._run_to_stop()

        self.assertEqual([err for err, _ in recorder.invocations], [None, None, None])
        payload = recorder.last[1]
        self.assertEqual(payload["format"], PAYLOAD_FORMAT)
        self.assertGreater(payload["total_calls"], 0)
        names = {f["function"] for f in payload["functions"]}
        self.assertIn("_profiled_function", names)

    def test_functions_sorted_by_cumulative_time(self):
        """Test the most expensive functions come first."""
        payload = self._run_to_stop().last[1]
        cumtimes = [f["cumtime"] for f in payload["functions"]]
        self.assertEqual(cumtimes, sorted(cumtimes, reverse=True))

    def test_payload_is_json_serialisable(self):
        """Test the payload survives orjson serialisation."""
        payload = self._run_to_stop().last[1]
        self.assertEqual(orjson.loads(orjson.dumps(payload))["format"], PAYLOAD_FORMAT)

    def test_enable_without_connect(self):
        """Test enable reports EnableError when not connected."""
        recorder = _Recorder()
        self.backend.enable(recorder)
        self.assertIsInstance(recorder.last[0], EnableError)

    def test_start_without_enable(self):
        """Test start reports StartError when not enabled."""
        recorder = _Recorder()
        self.backend.connect()
        self.backend.start(recorder)
        self.assertIsInstance(recorder.last[0], StartError)

    def test_stop_without_start(self):
        """Test stop reports StopError when not profiling."""
        recorder = _Recorder()
        self.backend.connect()
        self.backend.enable(recorder)
        self.backend.stop(recorder)
        self.assertIsInstance(recorder.last[0], StopError)
        self.assertIsNone(recorder.last[1])

    def test_connect_twice(self):
        """Test a second connect on the same instance fails."""
        self.backend.connect()
        with self.assertRaises(BackendConnectError):
            self.backend.connect()

    def test_disconnect_halts_active_session(self):
        """Test disconnect stops profiling and releases the lease."""
        recorder = _Recorder()
        self.backend.connect()
        self.backend.enable(recorder)
        self.backend.start(recorder)

        self.backend.disconnect()

        self.assertFalse(BackendLease.is_held(LEASE_RESOURCE))
        self.backend.stop(recorder)
        self.assertIsInstance(recorder.last[0], StopError)

    def test_disconnect_is_idempotent(self):
        """Test repeated disconnects are harmless."""
        self.backend.connect()
        self.backend.disconnect()
        self.backend.disconnect()
        self.assertFalse(BackendLease.is_held(LEASE_RESOURCE))

    def test_second_backend_is_busy(self):
        """Test a concurrent second connection fails with BackendBusyError."""
        other = CProfileBackend()
        self.backend.connect()
        try:
            with self.assertRaises(BackendBusyError):
                other.connect()
        finally:
            other.disconnect()
        self.assertTrue(BackendLease.is_held(LEASE_RESOURCE))

    def test_reconnect_after_disconnect(self):
        """Test the lease is available again after disconnect."""
        self.backend.connect()
        self.backend.disconnect()
        other = CProfileBackend()
        other.connect()
        other.disconnect()


if __name__ == "__main__":
    unittest.main()
