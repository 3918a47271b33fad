"""
Description: Error taxonomy for trace captures.

Every failure of a capture belongs to exactly one pipeline stage. Errors
reported by backends and writers are raised to the caller unchanged; the
classes here are what tracecapture's own backends, writer and adapters raise,
and what non-exception error values reported through backend callbacks are
normalised into.
"""

from enum import Enum
from typing import Any, Optional


class Stage(str, Enum):
    """Pipeline stage a capture failure originated from."""
    CONNECT = "connect"
    ENABLE = "enable"
    START = "start"
    WORK = "work"
    STOP = "stop"
    PERSIST = "persist"


class CaptureError(Exception):
    """Base class for all capture failures."""
    stage: Optional[Stage] = None

    def __init__(self, message: str, *, stage: Optional[Stage] = None):
        super().__init__(message)
        if stage is not None:
            self.stage = stage


class BackendConnectError(CaptureError):
    stage = Stage.CONNECT


class BackendBusyError(BackendConnectError):
    """An exclusive, process-wide profiler is already held by another capture."""


class EnableError(CaptureError):
    stage = Stage.ENABLE


class StartError(CaptureError):
    stage = Stage.START


class WorkFunctionError(CaptureError):
    """The work function signalled failure without raising its own exception."""
    stage = Stage.WORK


class StopError(CaptureError):
    stage = Stage.STOP


class PersistError(CaptureError):
    stage = Stage.PERSIST


class SessionStateError(RuntimeError):
    """A session was driven through a transition its state machine forbids."""


_STAGE_ERRORS = {
    Stage.CONNECT: BackendConnectError,
    Stage.ENABLE: EnableError,
    Stage.START: StartError,
    Stage.WORK: WorkFunctionError,
    Stage.STOP: StopError,
    Stage.PERSIST: PersistError,
}


def as_exception(err: Any, stage: Stage) -> BaseException:
    """Return `err` itself when it is an exception, else wrap it for `stage`.

    Backends following the callback convention may report plain values (for
    instance a message string) instead of exception objects.
    """
    if isinstance(err, BaseException):
        return err
    return _STAGE_ERRORS[stage](str(err))
