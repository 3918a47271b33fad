# Copyright 2025 nCompass Technologies
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Description: Profiling session lifecycle around a single unit of work.

A capture runs the pipeline

    connect -> enable -> start -> work -> stop -> disconnect -> persist

against a fresh backend instance. The first failure of any stage is the
capture's result; the backend is disconnected exactly once on every path.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from tracecapture.artifacts.writer import ArtifactWriter, TraceArtifact
from tracecapture.backends import get_backend_factory
from tracecapture.backends.base import BackendFactory, InstrumentationBackend
from tracecapture.core.bridge import call_with_callback, run_work
from tracecapture.core.errors import SessionStateError, Stage
from tracecapture.core.pydantic import CaptureConfig
from tracecapture.infra.utils import logger, utc_now, validate_label

WorkFunction = Callable[[], Union[Any, Awaitable[Any]]]


class SessionState(str, Enum):
    IDLE = "idle"
    CONNECTED = "connected"
    ENABLED = "enabled"
    PROFILING = "profiling"
    STOPPED = "stopped"
    FAILED = "failed"
    CLOSED = "closed"


# CLOSED is reachable from every other state through Session.close().
_TRANSITIONS = {
    SessionState.IDLE: {SessionState.CONNECTED, SessionState.FAILED},
    SessionState.CONNECTED: {SessionState.ENABLED, SessionState.FAILED},
    SessionState.ENABLED: {SessionState.PROFILING, SessionState.FAILED},
    SessionState.PROFILING: {SessionState.STOPPED, SessionState.FAILED},
    SessionState.STOPPED: set(),
    SessionState.FAILED: set(),
    SessionState.CLOSED: set(),
}


@dataclass(frozen=True)
class Success:
    path: str

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    cause: BaseException
    stage: Stage

    @property
    def ok(self) -> bool:
        return False


CaptureResult = Union[Success, Failure]


class Session:
    """One backend connection and its state for a single capture.

    Only the first failure is recorded; later errors (including those of
    teardown and disconnect) never replace it.
    """

    def __init__(self, backend: InstrumentationBackend):
        self.backend = backend
        self.state = SessionState.IDLE
        self.failure: Optional[BaseException] = None
        self.failure_stage: Optional[Stage] = None
        self.artifact: Optional[TraceArtifact] = None

    def _transition(self, new_state: SessionState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise SessionStateError(f"Invalid session transition {self.state.value} -> {new_state.value}")
        logger.debug(f"Session {self.state.value} -> {new_state.value}")
        self.state = new_state

    def _require(self, state: SessionState, stage: Stage) -> None:
        if self.state is not state:
            raise SessionStateError(f"Cannot {stage.value} a session in state {self.state.value}")

    def fail(self, cause: BaseException, stage: Stage) -> None:
        if self.failure is not None:
            return
        self.failure = cause
        self.failure_stage = stage
        self._transition(SessionState.FAILED)

    def connect(self) -> None:
        self._require(SessionState.IDLE, Stage.CONNECT)
        try:
            self.backend.connect()
        except BaseException as exc:
            self.fail(exc, Stage.CONNECT)
            raise
        self._transition(SessionState.CONNECTED)

    async def _call(self, stage: Stage, required: SessionState, target: SessionState, method) -> Any:
        self._require(required, stage)
        try:
            result = await call_with_callback(method, stage)
        except BaseException as exc:
            self.fail(exc, stage)
            raise
        self._transition(target)
        return result

    async def enable(self) -> None:
        await self._call(Stage.ENABLE, SessionState.CONNECTED, SessionState.ENABLED, self.backend.enable)

    async def start(self) -> None:
        await self._call(Stage.START, SessionState.ENABLED, SessionState.PROFILING, self.backend.start)

    async def run(self, work_fn: WorkFunction) -> Any:
        """Await the work function while profiling.

        On failure the active sampling session is stopped explicitly (payload
        discarded) before the error is re-raised.
        """
        self._require(SessionState.PROFILING, Stage.WORK)
        try:
            return await run_work(work_fn)
        except BaseException as exc:
            self.fail(exc, Stage.WORK)
            await self._teardown_sampling()
            raise

    async def stop(self) -> Any:
        """Stop sampling and return the backend payload."""
        return await self._call(Stage.STOP, SessionState.PROFILING, SessionState.STOPPED, self.backend.stop)

    async def _teardown_sampling(self) -> None:
        try:
            await call_with_callback(self.backend.stop, Stage.STOP)
        except BaseException as exc:
            logger.warning(f"Ignoring error while stopping sampling after a failed work function: {exc!r}")

    def close(self) -> None:
        """Disconnect from the backend. Closing twice is a no-op."""
        if self.state is SessionState.CLOSED:
            return
        try:
            self.backend.disconnect()
        except Exception as exc:
            logger.warning(f"Ignoring error while disconnecting from {type(self.backend).__name__}: {exc!r}")
        logger.debug(f"Session {self.state.value} -> {SessionState.CLOSED.value}")
        self.state = SessionState.CLOSED


class SessionManager:
    """Runs work functions inside profiling sessions and persists their traces.

    Every capture obtains its own backend from `backend_factory`; sessions are
    never shared between calls.

    Args:
        backend_factory: Zero-argument callable returning a fresh backend.
        writer: Persists the payload of successful captures.
    """

    def __init__(self, backend_factory: BackendFactory, writer: ArtifactWriter):
        self.backend_factory = backend_factory
        self.writer = writer
        self.latest_trace_path: Optional[str] = None

    @classmethod
    def from_config(cls, config: CaptureConfig) -> 'SessionManager':
        factory = get_backend_factory(config.backend, **config.backend_options())
        return cls(factory, ArtifactWriter(config.output_dir, compress=config.compress))

    async def try_capture_trace(self, name: str, work_fn: WorkFunction) -> CaptureResult:
        """Capture a trace of `work_fn` and report the outcome as a value.

        Exceptions that are not `Exception` subclasses (KeyboardInterrupt,
        cancellation) propagate once the backend has been disconnected.
        """
        validate_label(name)
        if not callable(work_fn):
            raise TypeError(f"work_fn must be callable, got {type(work_fn).__name__}")

        try:
            backend = self.backend_factory()
        except Exception as exc:
            logger.info(f"Capture '{name}' failed creating its backend: {exc!r}")
            return Failure(exc, Stage.CONNECT)

        session = Session(backend)
        try:
            try:
                session.connect()
                await session.enable()
                await session.start()
                await session.run(work_fn)
                payload = await session.stop()
                artifact = TraceArtifact(name, payload, utc_now(), suffix=backend.artifact_suffix)
            finally:
                session.close()
        except Exception as exc:
            if exc is not session.failure:
                raise
            logger.info(f"Capture '{name}' failed during {session.failure_stage.value}: {exc!r}")
            return Failure(exc, session.failure_stage)

        try:
            self.writer.write(artifact)
        except Exception as exc:
            logger.info(f"Capture '{name}' could not be persisted: {exc!r}")
            return Failure(exc, Stage.PERSIST)

        session.artifact = artifact
        self.latest_trace_path = artifact.path
        logger.info(f"Captured trace '{name}' to {artifact.path}")
        return Success(artifact.path)

    async def capture_trace(self, name: str, work_fn: WorkFunction) -> str:
        """Capture a trace of `work_fn` and return the artifact path.

        Raises:
            The first error of the pipeline, unchanged: a backend error, the
            work function's own exception, or the writer's PersistError.
        """
        result = await self.try_capture_trace(name, work_fn)
        if isinstance(result, Failure):
            raise result.cause
        return result.path

    def capture_trace_sync(self, name: str, work_fn: WorkFunction) -> str:
        """Blocking variant of capture_trace; must not be called from a running loop."""
        return asyncio.run(self.capture_trace(name, work_fn))


async def capture_trace(name: str, work_fn: WorkFunction, config: Optional[CaptureConfig] = None) -> str:
    """Capture one trace with a manager built from `config` (defaults if None)."""
    manager = SessionManager.from_config(config or CaptureConfig())
    return await manager.capture_trace(name, work_fn)
