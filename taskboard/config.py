"""Configuration management that reads exclusively from `config/settings.toml`."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import re
import tomllib
from typing import Any


CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "settings.toml"


class SettingsError(RuntimeError):
    """Raised when configuration cannot be loaded."""


def _load_config_file(path: Path) -> dict[str, Any]:
    """Load TOML configuration from disk."""
    if not path.exists():
        raise SettingsError(
            f"Configuration file '{path}' is missing. "
            "Create 'config/settings.toml' before launching the API."
        )
    with path.open("rb") as fp:
        return tomllib.load(fp)


def _require_section(raw: dict[str, Any], section: str) -> dict[str, Any]:
    if section not in raw or not isinstance(raw[section], dict):
        raise SettingsError(
            f"Section '[{section}]' is missing in '{CONFIG_PATH}'. "
            "All settings must be defined in the config file."
        )
    return raw[section]


def _require_value(section: dict[str, Any], key: str, *, section_name: str) -> Any:
    if key not in section:
        raise SettingsError(
            f"Missing key '{section_name}.{key}' in '{CONFIG_PATH}'. "
            "Configuration values cannot be overridden via environment variables "
            "or CLI flags."
        )
    return section[key]


def _extract_settings(raw: dict[str, Any]) -> dict[str, Any]:
    """Map nested TOML structure into flat settings attributes."""
    database = _require_section(raw, "database")
    server = _require_section(raw, "server")
    cors = _require_section(raw, "cors")
    api = _require_section(raw, "api")
    logging_section = _require_section(raw, "logging")

    api_prefix = str(_require_value(api, "prefix", section_name="api")).rstrip("/")

    return {
        "database_url": _require_value(database, "url", section_name="database"),
        "host": _require_value(server, "host", section_name="server"),
        "port": _require_value(server, "port", section_name="server"),
        "debug": _require_value(server, "debug", section_name="server"),
        "cors_origins": _require_value(cors, "origins", section_name="cors"),
        "api_prefix": api_prefix,
        "log_dir": _require_value(logging_section, "dir", section_name="logging"),
    }


@dataclass(slots=True)
class Settings:
    """Application settings loaded from a config file."""

    database_url: str
    host: str
    port: int
    debug: bool
    cors_origins: list[str]
    api_prefix: str
    log_dir: str

    @property
    def cors_origins_list(self) -> list[str]:
        """Return the configured CORS origins that contain no wildcard.

        A bare "*" is kept as is so the middleware allows every origin.
        """
        return [origin for origin in self.cors_origins if origin == "*" or "*" not in origin]

    @property
    def cors_origin_regex(self) -> str | None:
        """Combine wildcard origins (e.g. "http://192.168.1.*:8080") into one regex."""
        patterns: list[str] = []
        for origin in self.cors_origins:
            if origin == "*" or "*" not in origin:
                continue
            # Escape everything, then turn the escaped asterisk back into a wildcard
            patterns.append(re.escape(origin).replace(r"\*", r".*"))
        if not patterns:
            return None
        return "|".join(f"(?:{pattern})" for pattern in patterns)

    @property
    def log_path(self) -> Path:
        """Resolve the log directory relative to the project root."""
        path = Path(self.log_dir)
        if path.is_absolute():
            return path
        return CONFIG_PATH.parent.parent / path


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    global _settings
    if _settings is None:
        raw = _load_config_file(CONFIG_PATH)
        extracted = _extract_settings(raw)
        _settings = Settings(**extracted)
    return _settings
