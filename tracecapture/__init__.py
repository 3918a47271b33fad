"""
tracecapture - Profiling session lifecycle manager

Main exports:
- SessionManager: Runs a unit of work inside a profiling session and persists its trace
- capture_trace: One-shot capture configured from a CaptureConfig
- CaptureConfig / load_config: Capture settings
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("tracecapture")
except PackageNotFoundError:
    __version__ = "unknown"

from tracecapture.core.errors import (
    BackendBusyError,
    BackendConnectError,
    CaptureError,
    EnableError,
    PersistError,
    Stage,
    StartError,
    StopError,
    WorkFunctionError,
)
from tracecapture.core.pydantic import CaptureConfig, load_config
from tracecapture.core.session import (
    CaptureResult,
    Failure,
    Session,
    SessionManager,
    SessionState,
    Success,
    capture_trace,
)

__all__ = [
    'BackendBusyError',
    'BackendConnectError',
    'CaptureConfig',
    'CaptureError',
    'CaptureResult',
    'EnableError',
    'Failure',
    'PersistError',
    'Session',
    'SessionManager',
    'SessionState',
    'Stage',
    'StartError',
    'StopError',
    'Success',
    'WorkFunctionError',
    'capture_trace',
    'load_config',
]
