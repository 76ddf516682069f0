"""Configuration model for the static asset server runtime."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


class ServerConfigurationError(Exception):
    """Raised when asset server configuration is invalid."""


@dataclass(frozen=True)
class AssetServerConfig:
    """Validated asset server configuration derived from app settings."""
    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = 8080
    root: str = "."
    max_response_bytes: int = 256 * 1024 * 1024

    def __post_init__(self) -> None:
        if not self.host.strip():
            raise ServerConfigurationError("server.host cannot be empty")

        if not 0 <= self.port <= 65535:
            raise ServerConfigurationError(
                f"server.port must be in [0, 65535], got: {self.port}"
            )

        if self.max_response_bytes <= 0:
            raise ServerConfigurationError(
                f"server.max_response_bytes must be positive, got: {self.max_response_bytes}"
            )

        if self.enabled:
            if not self.root:
                raise ServerConfigurationError("server.root cannot be empty")

            root_path = Path(self.root)
            if not root_path.exists():
                raise ServerConfigurationError(f"Asset root not found: {root_path}")
            if not root_path.is_dir():
                raise ServerConfigurationError(
                    f"Asset root is not a directory: {root_path}"
                )

    @classmethod
    def from_settings(cls, settings) -> "AssetServerConfig":
        root = settings.root.strip() if settings.root else ""
        return cls(
            enabled=bool(settings.enabled),
            host=settings.host,
            port=settings.port,
            root=root or ".",
            max_response_bytes=settings.max_response_bytes,
        )
