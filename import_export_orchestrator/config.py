"""
Engine settings for the Import/Export Orchestrator

Settings come from defaults, an optional YAML file and ``IMPORT_EXPORT_*``
environment variables, in increasing order of precedence.
"""

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .core.exceptions import ConfigurationError


ENV_PREFIX = "IMPORT_EXPORT_"


class EngineSettings(BaseModel):
    """Runtime settings of the import/export engine."""

    storage_path: str = "ImportExportFiles"
    error_report_namespace: str = "ErrorReports"

    export_retention_hours: float = Field(24, gt=0)
    history_flush_interval: int = Field(100, ge=1)
    max_concurrent_jobs: int = Field(4, ge=1)

    cleanup_interval_hours: float = Field(6, gt=0)
    cleanup_initial_delay_minutes: float = Field(5, ge=0)

    database_url: Optional[str] = None
    database_pool_size: int = Field(10, ge=1)
    redis_url: Optional[str] = None

    log_level: str = "INFO"
    structured_logging: bool = True

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level {value!r}")
        return level

    @classmethod
    def load(cls, values: Optional[Mapping[str, Any]] = None) -> "EngineSettings":
        """
        Build settings from a mapping.

        Raises:
            ConfigurationError: If a value is missing, unknown or invalid
        """
        values = dict(values or {})
        unknown = set(values) - set(cls.model_fields)
        if unknown:
            key = sorted(unknown)[0]
            raise ConfigurationError(key, "unknown setting")
        try:
            return cls(**values)
        except ValidationError as e:
            error = e.errors()[0]
            key = ".".join(str(part) for part in error.get("loc", ())) or "settings"
            raise ConfigurationError(key, error.get("msg", str(e)))

    @classmethod
    def from_yaml(cls, path: Union[str, Path], apply_env: bool = True) -> "EngineSettings":
        """Load settings from a YAML file, then apply environment overrides."""
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigurationError(str(path), f"cannot read configuration file: {e}")
        except yaml.YAMLError as e:
            raise ConfigurationError(str(path), f"invalid YAML: {e}")

        if not isinstance(data, dict):
            raise ConfigurationError(str(path), "configuration file must contain a mapping")

        if apply_env:
            data.update(env_overrides())
        return cls.load(data)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineSettings":
        """Defaults overridden by ``IMPORT_EXPORT_*`` environment variables."""
        return cls.load(env_overrides(environ))

    @property
    def retention_seconds(self) -> float:
        return self.export_retention_hours * 3600

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


def env_overrides(environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Settings named by ``IMPORT_EXPORT_<FIELD>`` variables; pydantic converts the types."""
    environ = os.environ if environ is None else environ
    overrides = {}
    for name in EngineSettings.model_fields:
        value = environ.get(f"{ENV_PREFIX}{name.upper()}")
        if value is not None:
            overrides[name] = value
    return overrides
