"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class WatchConfig:
    """Watch engine configuration.

    An empty ``namespace`` means every namespace.  ``kind`` and
    ``api_version`` select a single explicit kind and must be given together.
    """

    namespace: str = "default"
    watch_all: bool = False
    kind: str = ""
    api_version: str = ""
    kubeconfig: str = ""


@dataclass
class StoreConfig:
    """Resource store configuration.  An empty path disables the store."""

    db_path: str = ""


@dataclass
class APIConfig:
    """REST API configuration."""

    enabled: bool = False
    port: int = 8080


@dataclass
class LogConfig:
    """Logging configuration.  ``format`` is "json" or "console"."""

    level: str = "info"
    format: str = "json"


@dataclass
class KindwatchConfig:
    """Top-level kindwatch configuration."""

    watch: WatchConfig = field(default_factory=WatchConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
