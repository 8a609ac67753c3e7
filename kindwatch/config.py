"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from kindwatch.models.config import (
    APIConfig,
    KindwatchConfig,
    LogConfig,
    StoreConfig,
    WatchConfig,
)
from kindwatch.observability.logging import LOG_FORMATS


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KINDWATCH_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_log_format(value: str) -> str:
    if value.lower() not in LOG_FORMATS:
        raise ValueError(f"Invalid log format: {value}. Must be one of {LOG_FORMATS}")
    return value.lower()


def load_config() -> KindwatchConfig:
    """Load configuration from KINDWATCH_* environment variables."""
    namespace = _env("NAMESPACE", "default")
    if _env_bool("ALL_NAMESPACES", False):
        namespace = ""
    return KindwatchConfig(
        watch=WatchConfig(
            namespace=namespace,
            watch_all=_env_bool("WATCH_ALL", False),
            kind=_env("KIND", ""),
            api_version=_env("API_VERSION", ""),
            kubeconfig=_env("KUBECONFIG", ""),
        ),
        store=StoreConfig(
            db_path=_env("DB_PATH", ""),
        ),
        api=APIConfig(
            enabled=_env_bool("API_ENABLED", False),
            port=_env_int("API_PORT", 8080, min_val=1024, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
            format=_validate_log_format(_env("LOG_FORMAT", "json")),
        ),
    )
