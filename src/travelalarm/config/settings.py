# src/travelalarm/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/travelalarm/config/defaults.yaml`, then optionally overridden by:
- environment variables (e.g., `TRAVELALARM_LOG_LEVEL`, `TRAVELALARM_CHECKPOINTS_PATH`)
- an external YAML file via `TRAVELALARM_CONFIG_PATH`

Design rule:
- Tuning knobs (default radius, snooze length, poll cadence) live in YAML, not in engine code.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any
from travelalarm.core.env import load_dotenv_if_present

import yaml
from pydantic import BaseModel, Field


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `travelalarm.config`."""
    text = resources.files("travelalarm.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    name: str = "TravelAlarm"
    timezone: str = "UTC"
    log_level: str = "INFO"


class AlarmSettings(BaseModel):
    default_snooze_minutes: float = Field(5, gt=0)
    default_radius_m: float = Field(500, gt=0)


class TrackingSettings(BaseModel):
    poll_interval_seconds: float = Field(60, gt=0)


class StorageSettings(BaseModel):
    checkpoints_path: str = "data/checkpoints.json"
    autosave: bool = True


class ApiSettings(BaseModel):
    event_log_size: int = Field(200, ge=1)


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    alarm: AlarmSettings = Field(default_factory=AlarmSettings)
    tracking: TrackingSettings = Field(default_factory=TrackingSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Note: We intentionally keep this whitelist small.
    """
    load_dotenv_if_present()
    data = dict(data)

    log_level = os.getenv("TRAVELALARM_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    checkpoints_path = os.getenv("TRAVELALARM_CHECKPOINTS_PATH")
    if checkpoints_path:
        data.setdefault("storage", {})["checkpoints_path"] = checkpoints_path

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("TRAVELALARM_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")
