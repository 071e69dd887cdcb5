from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


_IQR_MULTIPLIER_ENV = "MILL_IQR_MULTIPLIER"
_ROLLING_WINDOW_ENV = "MILL_ROLLING_WINDOW"
_ROLLING_FIELD_ENV = "MILL_ROLLING_FIELD"
_RUNNING_HOURS_LIMIT_ENV = "MILL_RUNNING_HOURS_LIMIT"
_WORKER_COUNT_ENV = "ANALYSIS_WORKER_COUNT"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    iqr_multiplier: float
    rolling_window: int
    rolling_field: str
    running_hours_limit: int
    analysis_workers: int
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        iqr_multiplier=_read_positive_float(_IQR_MULTIPLIER_ENV, 1.5),
        rolling_window=_read_positive_int(_ROLLING_WINDOW_ENV, 11),
        rolling_field=_read_str_env(_ROLLING_FIELD_ENV, "residue"),
        running_hours_limit=_read_positive_int(_RUNNING_HOURS_LIMIT_ENV, 100),
        analysis_workers=_read_positive_int(_WORKER_COUNT_ENV, 4),
        log_level=_read_log_level("INFO"),
    )
