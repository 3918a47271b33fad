"""
Description: Instrumentation backend interface and process-wide profiler leases.
"""

import threading
from abc import ABC, abstractmethod
from typing import Callable

from tracecapture.core.errors import BackendBusyError
from tracecapture.infra.utils import logger

BackendCallback = Callable[..., None]

# resource name -> lease currently holding it
_ACTIVE_LEASES: dict[str, "BackendLease"] = {}
_LEASE_LOCK = threading.Lock()


class BackendLease:
    """Exclusive claim on a profiler that supports a single session per process.

    Contention is reported as BackendBusyError rather than queued.
    """

    def __init__(self, resource: str):
        self.resource = resource
        self.held = False

    def acquire(self) -> None:
        with _LEASE_LOCK:
            if self.resource in _ACTIVE_LEASES:
                raise BackendBusyError(
                    f"Profiler '{self.resource}' is already in use by another capture"
                )
            _ACTIVE_LEASES[self.resource] = self
        self.held = True
        logger.debug(f"Acquired lease on '{self.resource}'")

    def release(self) -> None:
        """Release the claim. Releasing a lease that is not held is a no-op."""
        if not self.held:
            return
        with _LEASE_LOCK:
            if _ACTIVE_LEASES.get(self.resource) is self:
                del _ACTIVE_LEASES[self.resource]
        self.held = False
        logger.debug(f"Released lease on '{self.resource}'")

    @staticmethod
    def is_held(resource: str) -> bool:
        with _LEASE_LOCK:
            return resource in _ACTIVE_LEASES


class InstrumentationBackend(ABC):
    """A sampling/profiling backend driven through a callback-style protocol.

    `enable`, `start` and `stop` complete by invoking their callback exactly
    once as `callback(err)` (`callback(err, payload)` for `stop`), where `err`
    is None on success. Any falsy `err` (`""`, `0`, `False`) also counts as
    success; an exception instance or a truthy value such as a message string
    is a failure. `connect` may raise. `disconnect` is synchronous,
    idempotent and best-effort; it also halts a session still in progress.
    """

    #: File suffix of the payload `stop` produces.
    artifact_suffix: str = ".json"

    @abstractmethod
    def connect(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def enable(self, callback: BackendCallback) -> None:
        raise NotImplementedError

    @abstractmethod
    def start(self, callback: BackendCallback) -> None:
        raise NotImplementedError

    @abstractmethod
    def stop(self, callback: BackendCallback) -> None:
        raise NotImplementedError

    @abstractmethod
    def disconnect(self) -> None:
        raise NotImplementedError


BackendFactory = Callable[[], InstrumentationBackend]

