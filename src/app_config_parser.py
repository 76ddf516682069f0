"""Typed parser for config.toml sections into immutable app settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from app_config_schema import (
    DEFAULT_MAX_RESPONSE_BYTES,
    AppConfig,
    AppConfigurationError,
    MappingSettings,
    ServerSettings,
)

_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def parse_app_config(
    raw: Mapping[str, Any],
    *,
    base_dir: Path,
    source_file: str,
) -> AppConfig:
    """Parse raw TOML mappings into strongly typed application settings."""
    server = _parse_server_settings(_section(raw, "server"), base_dir=base_dir)
    mappings = _parse_mappings(raw.get("mapping", []))

    return AppConfig(
        server=server,
        mappings=mappings,
        source_file=source_file,
    )


def _parse_server_settings(
    section: Mapping[str, Any],
    *,
    base_dir: Path,
) -> ServerSettings:
    root = _as_str(section.get("root", ""), "server.root")
    return ServerSettings(
        enabled=_as_bool(section.get("enabled", True), "server.enabled"),
        host=_as_str(section.get("host", "127.0.0.1"), "server.host"),
        port=_as_int(section.get("port", 8080), "server.port"),
        root=_resolve_path(base_dir, root) if root else str(base_dir),
        log_level=_as_log_level(section.get("log_level", "INFO"), "server.log_level"),
        max_response_bytes=_as_int(
            section.get("max_response_bytes", DEFAULT_MAX_RESPONSE_BYTES),
            "server.max_response_bytes",
        ),
    )


def _parse_mappings(raw: Any) -> tuple[MappingSettings, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise AppConfigurationError("[[mapping]] must be an array of tables.")

    mappings = []
    for index, table in enumerate(raw):
        field = f"mapping[{index}]"
        if not isinstance(table, Mapping):
            raise AppConfigurationError(f"{field} must be a table.")
        mappings.append(
            MappingSettings(
                path=_required_str(table, "path", field),
                src=_as_sources(table.get("src"), f"{field}.src"),
            )
        )
    return tuple(mappings)


def _section(root: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    raw = root.get(name, {})
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise AppConfigurationError(f"[{name}] must be a table.")
    return raw


def _required_str(section: Mapping[str, Any], field: str, section_name: str) -> str:
    value = section.get(field)
    text = _as_str(value, f"{section_name}.{field}")
    if not text:
        raise AppConfigurationError(f"{section_name}.{field} is required.")
    return text


def _as_str(value: Any, field: str) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    raise AppConfigurationError(f"{field} must be a string.")


def _as_sources(value: Any, field: str) -> tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not value:
        raise AppConfigurationError(f"{field} must be a string or a non-empty list of strings.")
    sources = tuple(_as_str(item, field) for item in value)
    if not all(sources):
        raise AppConfigurationError(f"{field} entries cannot be empty.")
    return sources


def _as_bool(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
    raise AppConfigurationError(f"{field} must be a boolean.")


def _as_int(value: Any, field: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip(), 10)
        except ValueError as error:
            raise AppConfigurationError(f"{field} must be an integer.") from error
    raise AppConfigurationError(f"{field} must be an integer.")


def _as_log_level(value: Any, field: str) -> str:
    level = _as_str(value, field).upper()
    if level not in _LOG_LEVELS:
        allowed = ", ".join(_LOG_LEVELS)
        raise AppConfigurationError(f"{field} must be one of: {allowed}.")
    return level


def _resolve_path(base_dir: Path, raw: str) -> str:
    if not raw:
        return ""
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = (base_dir / path).resolve()
    return str(path)
