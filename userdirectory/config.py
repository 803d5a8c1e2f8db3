"""Configuration management for the user directory service."""
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import yaml

from .database import resolve_database_path

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000
DEFAULT_API_URL = "http://localhost:3000"
_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the API server and the admin console."""

    database_path: Path
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    cors_origins: Tuple[str, ...] = field(default_factory=lambda: ("*",))
    log_level: str = "INFO"
    api_url: str = DEFAULT_API_URL

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw dictionary data."""

        raw_db_path = data.get("database_path")
        if raw_db_path:
            candidate = Path(str(raw_db_path)).expanduser()
            if not candidate.is_absolute() and base_path is not None:
                candidate = base_path / candidate
            database_path = candidate.resolve(strict=False)
        else:
            database_path = resolve_database_path(None)

        return Settings(
            database_path=database_path,
            host=str(data.get("host") or DEFAULT_HOST),
            port=_parse_port(data.get("port", DEFAULT_PORT)),
            cors_origins=_parse_origins(data.get("cors_origins", "*")),
            log_level=_parse_log_level(data.get("log_level", "INFO")),
            api_url=str(data.get("api_url") or DEFAULT_API_URL).rstrip("/"),
        )


def _parse_port(value: object) -> int:
    try:
        port = int(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid port: {value!r}") from exc
    if not 1 <= port <= 65535:
        raise ValueError(f"Port must be between 1 and 65535, got {port}")
    return port


def _parse_origins(value: object) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(item) for item in value]
    else:
        raise ValueError("cors_origins must be a string or a list of strings")
    return tuple(item.strip() for item in items if item.strip())


def _parse_log_level(value: object) -> str:
    level = str(value).strip().upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"Unknown log level: {value!r}")
    return level


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the optional YAML configuration file."""
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (Path(__file__).resolve().parent.parent / "config" / "settings.yaml").resolve(strict=False)


def _load_yaml(config_path: Path) -> Dict[str, object]:
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")
    return raw


def load_settings(
    config_path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Load settings from YAML (when present) and apply environment overrides."""

    env = os.environ if environ is None else environ
    path = config_path or resolve_config_path(env.get("USERS_CONFIG_PATH"))

    if path.exists():
        settings = Settings.from_dict(_load_yaml(path), base_path=path.parent)
    elif config_path is not None:
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
    else:
        settings = Settings.from_dict({})

    overrides: Dict[str, object] = {}
    if env.get("USERS_DB_PATH"):
        overrides["database_path"] = resolve_database_path(env["USERS_DB_PATH"])
    if env.get("USERS_HOST"):
        overrides["host"] = env["USERS_HOST"].strip()
    if env.get("USERS_PORT"):
        overrides["port"] = _parse_port(env["USERS_PORT"])
    if env.get("USERS_CORS_ORIGINS") is not None:
        overrides["cors_origins"] = _parse_origins(env["USERS_CORS_ORIGINS"])
    if env.get("USERS_LOG_LEVEL"):
        overrides["log_level"] = _parse_log_level(env["USERS_LOG_LEVEL"])
    if env.get("USERS_API_URL"):
        overrides["api_url"] = env["USERS_API_URL"].strip().rstrip("/")

    return replace(settings, **overrides) if overrides else settings


__all__ = ["Settings", "load_settings", "resolve_config_path"]
