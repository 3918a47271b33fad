"""
Description: Instrumentation backends and their lookup by name.
"""

import functools
import importlib
from typing import Any

from tracecapture.backends.base import (
    BackendFactory,
    BackendLease,
    InstrumentationBackend,
)

# Backends are imported lazily so optional stacks (torch) are only required
# when selected.
BACKENDS = {
    "cprofile": "tracecapture.backends.cprofile.CProfileBackend",
    "torch": "tracecapture.backends.torch.TorchProfilerBackend",
}


def get_backend_factory(name: str, **options: Any) -> BackendFactory:
    """Return a factory producing fresh backend instances for `name`.

    Args:
        name: One of the keys of BACKENDS.
        options: Keyword arguments forwarded to the backend constructor.
    """
    if name not in BACKENDS:
        raise ValueError(f"Unknown backend '{name}'. Available: {', '.join(sorted(BACKENDS))}")
    module_path, class_name = BACKENDS[name].rsplit(".", 1)
    backend_cls = getattr(importlib.import_module(module_path), class_name)
    return functools.partial(backend_cls, **options)


__all__ = [
    'BACKENDS',
    'BackendFactory',
    'BackendLease',
    'InstrumentationBackend',
    'get_backend_factory',
]
