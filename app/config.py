"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


@dataclass(frozen=True)
class UploadSettings:
    """
    Runtime settings for upload ingestion.
    """

    max_file_bytes: int = 10 * 1024 * 1024
    batch_size: int = 1000
    max_reported_row_errors: int = 200


@dataclass(frozen=True)
class GapSettings:
    """
    Defaults for gap matrix queries.
    """

    default_lookback_weeks: int = 12
    leakage_top_n: int = 5


@dataclass(frozen=True)
class SchedulerSettings:
    enabled: bool = True
    target_refresh_hour: int = 6
    timezone: str = "UTC"


@lru_cache(maxsize=1)
def get_upload_settings() -> UploadSettings:
    """
    Return cached upload settings from environment variables.
    """

    return UploadSettings(
        max_file_bytes=max(1, _get_int_env("UPLOAD_MAX_FILE_BYTES", 10 * 1024 * 1024)),
        batch_size=max(1, _get_int_env("UPLOAD_BATCH_SIZE", 1000)),
        max_reported_row_errors=max(1, _get_int_env("UPLOAD_MAX_REPORTED_ROW_ERRORS", 200)),
    )


@lru_cache(maxsize=1)
def get_gap_settings() -> GapSettings:
    """
    Return cached gap query settings from environment variables.
    """

    return GapSettings(
        default_lookback_weeks=max(1, _get_int_env("GAP_DEFAULT_LOOKBACK_WEEKS", 12)),
        leakage_top_n=max(1, _get_int_env("GAP_LEAKAGE_TOP_N", 5)),
    )


@lru_cache(maxsize=1)
def get_scheduler_settings() -> SchedulerSettings:
    """
    Return cached scheduler settings. The refresh hour is clamped to 0..23.
    """

    return SchedulerSettings(
        enabled=_get_bool_env("SCHEDULER_ENABLED", True),
        target_refresh_hour=min(23, max(0, _get_int_env("TARGET_REFRESH_HOUR_UTC", 6))),
        timezone=_get_str_env("SCHEDULER_TIMEZONE", "UTC"),
    )
