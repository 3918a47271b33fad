"""
Description: Backend built on the standard library's cProfile profiler.
"""

import cProfile
import pstats
from typing import Any, Optional

from tracecapture.backends.base import BackendCallback, BackendLease, InstrumentationBackend
from tracecapture.core.errors import BackendConnectError, EnableError, StartError, StopError

PAYLOAD_FORMAT = "tracecapture.cprofile"
PAYLOAD_VERSION = 1

# cProfile and other sys.setprofile/sys.monitoring tools cannot overlap.
LEASE_RESOURCE = "python-profiler"


def _func_record(key: tuple) -> dict[str, Any]:
    filename, line, function = key
    return {"file": filename, "line": line, "function": function}


def stats_document(profiler: cProfile.Profile) -> dict[str, Any]:
    """Convert a stopped profiler's stats into a JSON-serialisable document.

    Functions are ordered by cumulative time, most expensive first.
    """
    stats = pstats.Stats(profiler)
    functions = []
    for key, (prim_calls, calls, tottime, cumtime, callers) in stats.stats.items():
        record = _func_record(key)
        record.update({
            "primitive_calls": prim_calls,
            "calls": calls,
            "tottime": tottime,
            "cumtime": cumtime,
            "callers": [
                dict(_func_record(caller), calls=caller_stats[0])
                for caller, caller_stats in callers.items()
            ],
        })
        functions.append(record)
    functions.sort(key=lambda f: f["cumtime"], reverse=True)
    return {
        "format": PAYLOAD_FORMAT,
        "version": PAYLOAD_VERSION,
        "total_calls": stats.total_calls,
        "primitive_calls": stats.prim_calls,
        "total_time": stats.total_tt,
        "functions": functions,
    }


class CProfileBackend(InstrumentationBackend):
    """Deterministic profiling of the capturing thread via cProfile.

    Args:
        builtins: Also record calls into C builtins.
    """

    artifact_suffix = ".cprofile.json"

    def __init__(self, builtins: bool = True):
        self.builtins = builtins
        self._lease = BackendLease(LEASE_RESOURCE)
        self._profiler: Optional[cProfile.Profile] = None
        self._connected = False
        self._running = False

    def connect(self) -> None:
        if self._connected:
            raise BackendConnectError("cProfile backend is already connected")
        self._lease.acquire()
        self._connected = True

    def enable(self, callback: BackendCallback) -> None:
        if not self._connected:
            callback(EnableError("cProfile backend is not connected"))
            return
        self._profiler = cProfile.Profile(builtins=self.builtins)
        callback(None)

    def start(self, callback: BackendCallback) -> None:
        if self._profiler is None:
            callback(StartError("cProfile backend is not enabled"))
            return
        try:
            self._profiler.enable()
        except ValueError as exc:
            # Python 3.12+: another profiling tool already owns sys.monitoring
            callback(StartError(f"Could not start cProfile: {exc}"))
            return
        self._running = True
        callback(None)

    def stop(self, callback: BackendCallback) -> None:
        if not self._running:
            callback(StopError("cProfile backend is not profiling"))
            return
        self._profiler.disable()
        self._running = False
        callback(None, stats_document(self._profiler))

    def disconnect(self) -> None:
        if self._running:
            self._profiler.disable()
            self._running = False
        self._profiler = None
        if self._connected:
            self._lease.release()
            self._connected = False
