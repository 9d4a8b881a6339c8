"""
Runtime settings read from the environment.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

_DEFAULT_CORS_ORIGINS = (
    "http://localhost:1420",
    "http://127.0.0.1:1420",
    "tauri://localhost",
)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_log_level(name: str, default: str) -> str:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    value = logging.getLevelNamesMapping().get(raw.strip().upper())
    if not value:
        return default
    # WARN and FATAL map to their canonical names
    return logging.getLevelName(value)


def _env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.environ.get(name)
    if not raw:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    log_level: str
    seed_game_modes: bool
    cors_origins: tuple[str, ...]
    host: str
    port: int
    api_title: str


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Read once per process; tests call get_settings.cache_clear() after patching env."""
    return Settings(
        log_level=_env_log_level("SCOREKEEPER_LOG_LEVEL", "INFO"),
        seed_game_modes=_env_bool("SCOREKEEPER_SEED_GAME_MODES", True),
        cors_origins=_env_list("SCOREKEEPER_CORS_ORIGINS", _DEFAULT_CORS_ORIGINS),
        host=os.environ.get("SCOREKEEPER_HOST", "127.0.0.1"),
        port=_env_int("SCOREKEEPER_PORT", 8000),
        api_title=os.environ.get("SCOREKEEPER_API_TITLE", "Ping Pong Scorekeeper API"),
    )
