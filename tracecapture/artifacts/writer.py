"""
Description: Persists captured trace payloads as artifact files.
"""

import gzip
import itertools
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

import orjson

from tracecapture.core.errors import PersistError
from tracecapture.infra.utils import format_timestamp, logger, sanitize_label


@dataclass
class TraceArtifact:
    """A successfully captured payload, persisted or about to be."""
    name: str
    payload: Any
    timestamp: datetime
    suffix: str = ".json"
    path: Optional[str] = None


def encode_payload(payload: Any) -> bytes:
    """Raw bytes pass through untouched; anything else is serialised as JSON."""
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return bytes(payload)
    if isinstance(payload, str):
        return payload.encode("utf-8")
    try:
        return orjson.dumps(payload)
    except orjson.JSONEncodeError as exc:
        raise PersistError(f"Trace payload is not JSON serialisable: {exc}") from exc


class ArtifactWriter:
    """Writes artifacts named `<label>-<YYYYMMDD-HHMMSS-ffffff><suffix>`.

    An existing file is never overwritten: a `-N` disambiguator is appended to
    the stem instead. Content is written to a temporary file that is then
    hard-linked to its final name, so the artifact path only ever appears with
    its complete content.

    Args:
        output_dir: Directory artifacts are written to (created on demand).
        compress: Gzip the payload and append `.gz` to the suffix.
    """

    def __init__(self, output_dir: Union[str, Path], compress: bool = False):
        self.output_dir = Path(output_dir)
        self.compress = compress

    def persist(self, name: str, payload: Any, timestamp: datetime, suffix: str = ".json") -> str:
        """Persist `payload` and return the artifact path.

        Raises:
            PersistError: The payload could not be encoded or written.
        """
        data = encode_payload(payload)
        if self.compress:
            data = gzip.compress(data)
            suffix = f"{suffix}.gz"
        stem = f"{sanitize_label(name)}-{format_timestamp(timestamp)}"

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.output_dir, prefix=f".{stem}.", suffix=".tmp")
        except OSError as exc:
            raise PersistError(f"Could not create artifact in {self.output_dir}: {exc}") from exc

        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            path = self._link_unique(tmp_path, stem, suffix)
        except OSError as exc:
            raise PersistError(f"Could not write artifact {stem}{suffix} in {self.output_dir}: {exc}") from exc
        finally:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)

        logger.debug(f"Wrote {len(data)} bytes to {path}")
        return str(path)

    def write(self, artifact: TraceArtifact) -> TraceArtifact:
        artifact.path = self.persist(artifact.name, artifact.payload, artifact.timestamp, artifact.suffix)
        return artifact

    def _link_unique(self, tmp_path: str, stem: str, suffix: str) -> Path:
        """Hard-link the fully written temp file to the first free artifact name."""
        for n in itertools.count():
            candidate = self.output_dir / (f"{stem}{suffix}" if n == 0 else f"{stem}-{n}{suffix}")
            try:
                os.link(tmp_path, candidate)
                return candidate
            except FileExistsError:
                continue
