"""
Description: Logging and naming utils shared across tracecapture.
"""

from datetime import datetime, timezone
from typing import Optional
import logging
import re

logger = logging.getLogger(__name__)
logger.propagate = False
handler = logging.StreamHandler()
formatter = logging.Formatter(
    fmt='[%(asctime)s] (%(levelname)s) (%(filename)s:%(lineno)d): %(message)s', 
    datefmt='%Y-%m-%d %H:%M:%S'
)
handler.setFormatter(formatter)
for h in logger.handlers[:]:
    logger.removeHandler(h)
logger.addHandler(handler)

_UNSAFE_LABEL_CHARS = re.compile(r'[^A-Za-z0-9._-]+')


def set_log_level(level: str) -> None:
    """Set the tracecapture logger level from a name such as "DEBUG"."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")
    logger.setLevel(numeric)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(timestamp: datetime) -> str:
    """Format a timestamp for use in artifact file names.

    Naive datetimes are assumed to already be in UTC. Microseconds are kept so
    back-to-back captures with the same label get distinct names.
    """
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(timezone.utc)
    return timestamp.strftime('%Y%m%d-%H%M%S-%f')


def sanitize_label(label: str, replacement: Optional[str] = '_') -> str:
    """Make a caller-supplied label safe to embed in a file name.

    Path separators and other unusual characters are collapsed into
    `replacement`. Raises ValueError when nothing usable is left.
    """
    cleaned = _UNSAFE_LABEL_CHARS.sub(replacement or '', label.strip()).strip('.')
    if not cleaned:
        raise ValueError(f"Label {label!r} has no characters usable in a file name")
    return cleaned


def validate_label(label: str) -> None:
    """Raise ValueError unless `label` is a non-empty string usable in a file name."""
    if not isinstance(label, str) or not label.strip():
        raise ValueError("Trace name must be a non-empty string")
    if not _UNSAFE_LABEL_CHARS.sub('_', label.strip()).strip('.'):
        raise ValueError(f"Trace name {label!r} has no characters usable in a file name")
