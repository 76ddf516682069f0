"""Dataclass schema objects used by runtime configuration loading."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_CONFIG_FILE = "config.toml"
CONFIG_FILE_ENV = "ASSET_SERVER_CONFIG"
DEFAULT_MAX_RESPONSE_BYTES = 256 * 1024 * 1024


class AppConfigurationError(Exception):
    """Raised when application configuration fails."""


@dataclass(frozen=True)
class ServerSettings:
    """Listening socket, served root and logging settings from `[server]`."""
    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = 8080
    root: str = ""
    log_level: str = "INFO"
    max_response_bytes: int = DEFAULT_MAX_RESPONSE_BYTES


@dataclass(frozen=True)
class MappingSettings:
    """One `[[mapping]]` table: a virtual path and its ordered sources."""
    path: str
    src: tuple[str, ...]


@dataclass(frozen=True)
class AppConfig:
    """Complete typed runtime configuration loaded from `config.toml`."""
    server: ServerSettings
    mappings: tuple[MappingSettings, ...]
    source_file: str
