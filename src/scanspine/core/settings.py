"""Scan configuration.

All fields can be set through ``SCANSPINE_*`` environment variables (e.g.
``SCANSPINE_MAX_CONCURRENCY=16``), a ``.env`` file, or a JSON config file
passed to :func:`load_settings`. Precedence, highest first: explicit
overrides (CLI arguments), config file, environment, defaults.

Fields
──────
max_concurrency    : In-flight backend invocations
max_pending_items  : Content items emitted but not yet fully dispatched
max_iterators      : Concurrent traversal-unit enumerations
max_redirects      : Redirects followed by network downloads
allow_http         : Permit plain http:// inputs
work_dir           : Private location for clones and downloads
cache_dir          : Persistent verdict cache (None → in-memory only)
registry_path      : SPDX-format license dataset (None → bundled)
regexp_path        : JSON rules for the regexp backend
backends           : Backend name → enabled, the baseline for selection
log_level          : Structlog log level
log_format         : ``console`` or ``json``
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal

import pydantic
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from scanspine.core.errors import ConfigError


def _default_work_dir() -> Path:
    return Path.home() / ".cache" / "scanspine" / "work"


class ScanSettings(BaseSettings):
    """Scanspine runtime configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SCANSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Concurrency ──────────────────────────────────────────────
    max_concurrency: int = Field(default=8, ge=1)
    max_pending_items: int = Field(default=64, ge=1)
    max_iterators: int = Field(default=4, ge=1)

    # ── Network ──────────────────────────────────────────────────
    max_redirects: int = Field(default=20, ge=0, description="what Firefox does")
    allow_http: bool = Field(default=False)
    http_timeout: float = Field(default=60.0, gt=0)

    # ── Paths ────────────────────────────────────────────────────
    work_dir: Path = Field(default_factory=_default_work_dir)
    cache_dir: Path | None = Field(default=None)
    registry_path: Path | None = Field(default=None)
    regexp_path: Path | None = Field(default=None)

    # ── Backends ─────────────────────────────────────────────────
    backends: dict[str, bool] = Field(default_factory=dict)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="WARNING")
    log_format: Literal["console", "json"] = Field(default="console")


def read_config_file(path: str | Path) -> dict[str, Any]:
    """Read a JSON config file into a plain mapping.

    Raises:
        ConfigError: File unreadable, not JSON, or not a JSON object
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"cannot read config file {path}: {e}", cause=e).with_context(path=str(path)) from e
    except ValueError as e:
        raise ConfigError(f"config file {path} is not valid JSON: {e}", cause=e).with_context(path=str(path)) from e
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a JSON object").with_context(path=str(path))
    return data


def load_settings(config_path: str | Path | None = None, **overrides: Any) -> ScanSettings:
    """Build validated settings from an optional config file plus overrides.

    ``None`` overrides are ignored so CLI options that were not given fall
    through to the file, the environment, or the defaults.

    Raises:
        ConfigError: Unreadable config file or invalid values
    """
    values: dict[str, Any] = {}
    if config_path is not None:
        values.update(read_config_file(config_path))
    values.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return ScanSettings(**values)
    except pydantic.ValidationError as e:
        raise ConfigError(f"invalid configuration: {e}", cause=e) from e


__all__ = [
    "ScanSettings",
    "load_settings",
    "read_config_file",
]
