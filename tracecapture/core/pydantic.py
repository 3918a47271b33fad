"""
Description: Pydantic configuration for trace captures.
"""

import os
from pathlib import Path
from typing import Any, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, field_validator

# Environment variables take precedence over values read from a config file.
ENV_OVERRIDES = {
    "output_dir": "TRACECAPTURE_OUTPUT_DIR",
    "backend": "TRACECAPTURE_BACKEND",
}

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class CaptureConfig(BaseModel):
    """Settings for a SessionManager and the backend it drives."""
    model_config = ConfigDict(extra="forbid")

    output_dir: Path = Path("traces")
    backend: Literal["cprofile", "torch"] = "cprofile"
    compress: bool = False
    log_level: str = "INFO"

    # cprofile backend
    builtins: bool = True

    # torch backend
    record_shapes: bool = False
    profile_memory: bool = False
    with_stack: bool = False

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}, got {value!r}")
        return level

    def backend_options(self) -> dict[str, Any]:
        """Constructor keyword arguments for the selected backend."""
        if self.backend == "torch":
            return {
                "record_shapes": self.record_shapes,
                "profile_memory": self.profile_memory,
                "with_stack": self.with_stack,
            }
        return {"builtins": self.builtins}

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


def load_config(
    path: Optional[Union[str, Path]] = None,
    overrides: Optional[dict[str, Any]] = None,
) -> CaptureConfig:
    """Build a CaptureConfig from a YAML file, the environment and overrides.

    Precedence, lowest to highest: defaults, YAML file, environment variables,
    `overrides` entries that are not None (typically CLI flags).

    Raises:
        OSError: The config file could not be read.
        ValueError: The file is not a YAML mapping or a value is invalid
            (pydantic's ValidationError is a ValueError).
    """
    data: dict[str, Any] = {}
    if path is not None:
        with open(path, 'r') as f:
            try:
                loaded = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Failed to parse {path}: {e}") from e
        if not isinstance(loaded, dict):
            raise ValueError(f"Config file {path} must contain a mapping, got {type(loaded).__name__}")
        data.update(loaded)

    for key, env_key in ENV_OVERRIDES.items():
        env_value = os.environ.get(env_key)
        if env_value:
            data[key] = env_value

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})

    return CaptureConfig.model_validate(data)
