"""Persistent application settings helpers."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any


SETTINGS_DIR = Path.home() / ".config" / "gridprobe"
SETTINGS_PATH = SETTINGS_DIR / "settings.json"

DEFAULT_ROW_BATCH = 20
DEFAULT_COL_BATCH = 10
DEFAULT_PREVIEW_CAP = 3


def load_settings() -> dict:
    """Load settings from disk.

    Returns an empty dict if settings file does not exist or contains invalid JSON.
    """
    if not SETTINGS_PATH.exists():
        return {}

    try:
        data = json.loads(SETTINGS_PATH.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return {}

    return data if isinstance(data, dict) else {}


def save_settings(data: dict) -> None:
    """Persist settings to disk atomically."""
    SETTINGS_DIR.mkdir(parents=True, exist_ok=True)
    tmp_path = SETTINGS_PATH.with_suffix(".tmp")
    tmp_path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
    tmp_path.replace(SETTINGS_PATH)


def get_setting(key: str, default: Any = None) -> Any:
    """Read a setting value with a fallback default."""
    settings = load_settings()
    return settings.get(key, default)


def set_setting(key: str, value: Any) -> None:
    """Set and persist a single setting key."""
    settings = load_settings()
    settings[key] = value
    save_settings(settings)


@dataclass(frozen=True)
class FetchLimits:
    """Pagination and preview bounds used by views and the fetcher."""

    row_batch: int = DEFAULT_ROW_BATCH
    col_batch: int = DEFAULT_COL_BATCH
    preview_cap: int = DEFAULT_PREVIEW_CAP

    @classmethod
    def from_settings(cls, settings: dict | None = None) -> "FetchLimits":
        """Build limits from a settings dict, ignoring non-positive or malformed values."""
        if settings is None:
            settings = load_settings()
        return cls(
            row_batch=_positive_int(settings.get("row_batch"), DEFAULT_ROW_BATCH),
            col_batch=_positive_int(settings.get("col_batch"), DEFAULT_COL_BATCH),
            preview_cap=_positive_int(settings.get("preview_cap"), DEFAULT_PREVIEW_CAP),
        )


def _positive_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default
