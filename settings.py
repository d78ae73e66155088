from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Optional, TypeVar
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

N = TypeVar("N", int, float)

_STORE_NAME_ENV = "KITCHEN_STORE_NAME"
_STORE_PATH_ENV = "KITCHEN_STORE_PATH"
_BUCKET_NAME_ENV = "PHOTO_BUCKET_NAME"
_BUCKET_ROOT_ENV = "PHOTO_ROOT_PATH"
_PUBLIC_BASE_URL_ENV = "PHOTO_PUBLIC_BASE_URL"
_REFRESH_SECONDS_ENV = "DASHBOARD_REFRESH_SECONDS"
_SLOT_STEP_ENV = "SLOT_STEP_MINUTES"
_ESCALATION_ENV = "CLEANING_ESCALATION_THRESHOLD"
_TIMEZONE_ENV = "APP_TIMEZONE"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_TIMEZONE = "Europe/Paris"


@dataclass(frozen=True)
class Settings:
    store_name: str
    store_persistence_path: Optional[str]
    bucket_name: str
    bucket_root_path: Optional[str]
    public_base_url: str
    refresh_seconds: float
    slot_step_minutes: int
    cleaning_escalation_threshold: int
    timezone: str
    log_level: str


def _env(name: str) -> Optional[str]:
    """Stripped value of ``name``; ``None`` when unset, ``""`` when blank."""
    value = os.getenv(name)
    return value.strip() if value is not None else None


def _read_str_env(name: str, default: str) -> str:
    return _env(name) or default


def _read_path_env(name: str, default: Optional[str]) -> Optional[str]:
    # A blank value switches persistence off.
    value = _env(name)
    if value is None:
        return default
    return value or None


def _read_positive(name: str, default: N, cast: Callable[[str], N]) -> N:
    value = _env(name)
    if not value:
        return default
    try:
        parsed = cast(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_timezone(default: str) -> str:
    name = _env(_TIMEZONE_ENV)
    if not name:
        return default
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return default
    return name


@lru_cache
def get_settings() -> Settings:
    return Settings(
        store_name=_read_str_env(_STORE_NAME_ENV, "restaurant_data"),
        store_persistence_path=_read_path_env(_STORE_PATH_ENV, "./tmp/store.json"),
        bucket_name=_read_str_env(_BUCKET_NAME_ENV, "photos"),
        bucket_root_path=_read_path_env(_BUCKET_ROOT_ENV, "./tmp/photos"),
        public_base_url=_read_str_env(
            _PUBLIC_BASE_URL_ENV, "http://localhost:8000/photos"
        ).rstrip("/"),
        refresh_seconds=_read_positive(_REFRESH_SECONDS_ENV, 15.0, float),
        slot_step_minutes=_read_positive(_SLOT_STEP_ENV, 30, int),
        cleaning_escalation_threshold=_read_positive(_ESCALATION_ENV, 3, int),
        timezone=_read_timezone(DEFAULT_TIMEZONE),
        log_level=_read_str_env(_LOG_LEVEL_ENV, "INFO").upper(),
    )
