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
Description: Backend built on torch.profiler, producing Chrome trace JSON.
"""

import os
import tempfile
from typing import Any, List, Optional

import torch
from torch.profiler import ProfilerActivity

from tracecapture.backends.base import BackendCallback, BackendLease, InstrumentationBackend
from tracecapture.core.errors import BackendConnectError, EnableError, StartError, StopError
from tracecapture.infra.utils import logger

# Kineto supports a single active profiler per process.
LEASE_RESOURCE = "torch-profiler"


def default_activities() -> List[ProfilerActivity]:
    """CPU always, CUDA when a device is present."""
    activities = [ProfilerActivity.CPU]
    if torch.cuda.is_available():
        activities.append(ProfilerActivity.CUDA)
    return activities


class TorchProfilerBackend(InstrumentationBackend):
    """Captures a torch.profiler trace around the work function.

    The payload is the raw Chrome trace JSON exported by the profiler, so the
    persisted artifact opens directly in Perfetto or chrome://tracing.
    """

    artifact_suffix = ".pt.trace.json"

    def __init__(
        self,
        record_shapes: bool = False,
        profile_memory: bool = False,
        with_stack: bool = False,
        activities: Optional[List[ProfilerActivity]] = None,
    ) -> None:
        self.record_shapes = record_shapes
        self.profile_memory = profile_memory
        self.with_stack = with_stack
        self.activities = activities
        self._lease = BackendLease(LEASE_RESOURCE)
        self._profile: Optional[Any] = None
        self._connected = False
        self._running = False

    def connect(self) -> None:
        if self._connected:
            raise BackendConnectError("torch profiler backend is already connected")
        self._lease.acquire()
        self._connected = True

    def enable(self, callback: BackendCallback) -> None:
        if not self._connected:
            callback(EnableError("torch profiler backend is not connected"))
            return
        self._profile = torch.profiler.profile(
            activities=self.activities or default_activities(),
            record_shapes=self.record_shapes,
            profile_memory=self.profile_memory,
            with_stack=self.with_stack,
        )
        callback(None)

    def start(self, callback: BackendCallback) -> None:
        if self._profile is None:
            callback(StartError("torch profiler backend is not enabled"))
            return
        try:
            self._profile.start()
        except RuntimeError as exc:
            callback(StartError(f"Could not start torch profiler: {exc}"))
            return
        self._running = True
        callback(None)

    def stop(self, callback: BackendCallback) -> None:
        if not self._running:
            callback(StopError("torch profiler backend is not profiling"))
            return
        self._running = False
        try:
            self._profile.stop()
            payload = self._export_trace()
        except (RuntimeError, OSError) as exc:
            callback(StopError(f"Could not collect torch profiler trace: {exc}"))
            return
        callback(None, payload)

    def _export_trace(self) -> bytes:
        fd, path = tempfile.mkstemp(suffix=".pt.trace.json")
        os.close(fd)
        try:
            self._profile.export_chrome_trace(path)
            with open(path, "rb") as f:
                return f.read()
        finally:
            os.unlink(path)

    def disconnect(self) -> None:
        if self._running:
            self._running = False
            try:
                self._profile.stop()
            except RuntimeError as exc:
                logger.warning(f"Ignoring torch profiler error during disconnect: {exc}")
        self._profile = None
        if self._connected:
            self._lease.release()
            self._connected = False
