"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    log_level: str
    default_opening_time: str
    default_closing_time: str
    default_slot_duration_minutes: int
    seed_rooms: bool


def _env(name: str, default: str) -> str:
    return os.environ.get(f"ROOMBOOK_{name}", default)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Read settings once per process; call ``cache_clear()`` to reload."""
    slot_duration = int(_env("SLOT_DURATION_MINUTES", "90"))
    if slot_duration <= 0:
        raise ValueError("ROOMBOOK_SLOT_DURATION_MINUTES must be > 0")
    return Settings(
        app_name=_env("APP_NAME", "Room Booking Service"),
        app_version=_env("APP_VERSION", "0.1.0"),
        log_level=_env("LOG_LEVEL", "INFO"),
        default_opening_time=_env("OPENING_TIME", "08:00"),
        default_closing_time=_env("CLOSING_TIME", "20:00"),
        default_slot_duration_minutes=slot_duration,
        seed_rooms=_env("SEED_ROOMS", "false").lower() in _TRUE_VALUES,
    )
