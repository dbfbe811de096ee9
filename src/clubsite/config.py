"""Site configuration loading and validation.

Reads an optional ``clubsite.toml`` and overlays environment variables,
returning a validated ``SiteConfig`` dataclass.

Example ``clubsite.toml``::

    [site]
    data_dir = "app/data"
    cors_origins = ["http://localhost:3000"]

    [site.logging]
    level = "INFO"
    format = "text"

    [sync]
    cooldown_seconds = 60
    calendar_max_results = 50
    cron_secret = "${CRON_SECRET}"

    [google]
    calendar_id = "${GOOGLE_CALENDAR_ID}"
    calendar_api_key = "${GOOGLE_CALENDAR_API_KEY}"
    drive_folder_id = "${GOOGLE_DRIVE_FOLDER_ID}"
    service_account_key = "${GOOGLE_SERVICE_ACCOUNT_KEY}"

Google credentials are optional at load time; the sync services raise
``ConfigError`` when a sync needs one that is missing.
"""

from __future__ import annotations

import json
import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from clubsite.errors import ConfigError

DEFAULT_DATA_DIR = "app/data"
DEFAULT_CORS_ORIGINS: tuple[str, ...] = ("http://localhost:3000",)
DEFAULT_CALENDAR_MAX_RESULTS = 50
DEFAULT_COOLDOWN_SECONDS = 60.0
CONFIG_PATH_ENV = "CLUBSITE_CONFIG"

# Pattern matching ${VAR_NAME}: supports alphanumeric + underscore variable names.
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")

# Environment overrides: env var name -> (section, key).
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "CLUBSITE_DATA_DIR": ("site", "data_dir"),
    "CLUBSITE_CORS_ORIGINS": ("site", "cors_origins"),
    "CLUBSITE_LOG_LEVEL": ("logging", "level"),
    "CLUBSITE_LOG_FORMAT": ("logging", "format"),
    "CLUBSITE_SYNC_COOLDOWN_SECONDS": ("sync", "cooldown_seconds"),
    "CLUBSITE_CALENDAR_MAX_RESULTS": ("sync", "calendar_max_results"),
    "CRON_SECRET": ("sync", "cron_secret"),
    "GOOGLE_CALENDAR_ID": ("google", "calendar_id"),
    "GOOGLE_CALENDAR_API_KEY": ("google", "calendar_api_key"),
    "GOOGLE_DRIVE_FOLDER_ID": ("google", "drive_folder_id"),
    "GOOGLE_SERVICE_ACCOUNT_KEY": ("google", "service_account_key"),
}


@dataclass
class LoggingConfig:
    """Logging configuration from the [site.logging] section."""

    level: str = "INFO"
    format: str = "text"  # "text" or "json"


@dataclass
class GoogleConfig:
    """Credentials and identifiers for the Google fetch collaborators."""

    calendar_id: str | None = None
    calendar_api_key: str | None = None
    drive_folder_id: str | None = None
    service_account_key: str | None = None

    def require_calendar(self) -> tuple[str, str]:
        """Return ``(calendar_id, api_key)`` or raise ``ConfigError``."""
        if not self.calendar_id or not self.calendar_api_key:
            raise ConfigError(
                "Missing required environment variables: "
                "GOOGLE_CALENDAR_ID or GOOGLE_CALENDAR_API_KEY"
            )
        return self.calendar_id, self.calendar_api_key

    def require_drive(self) -> tuple[str, dict[str, Any]]:
        """Return ``(folder_id, service_account_info)`` or raise ``ConfigError``.

        The service account key is the JSON key file content, passed inline.
        """
        if not self.drive_folder_id or not self.service_account_key:
            raise ConfigError(
                "Google Drive configuration missing. Please set GOOGLE_DRIVE_FOLDER_ID "
                "and GOOGLE_SERVICE_ACCOUNT_KEY environment variables."
            )
        try:
            info = json.loads(self.service_account_key)
        except json.JSONDecodeError as exc:
            raise ConfigError("Invalid service account credentials format") from exc
        if not isinstance(info, dict):
            raise ConfigError("Invalid service account credentials format")
        return self.drive_folder_id, info


@dataclass
class SyncConfig:
    """Sync trigger behaviour from the [sync] section."""

    cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS
    calendar_max_results: int = DEFAULT_CALENDAR_MAX_RESULTS
    cron_secret: str | None = None


@dataclass
class SiteConfig:
    """Parsed and validated site configuration."""

    data_dir: Path = field(default_factory=lambda: Path(DEFAULT_DATA_DIR))
    cors_origins: list[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    google: GoogleConfig = field(default_factory=GoogleConfig)


def resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${VAR_NAME}`` references in config values.

    Walks dicts, lists, and strings.  Non-string leaf values (int, bool,
    float, None) are returned unchanged.

    Raises
    ------
    ConfigError
        If a referenced environment variable is not set.
    """
    if isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [resolve_env_vars(item) for item in value]

    if isinstance(value, str):
        return _resolve_string(value)

    return value


def _resolve_string(s: str) -> str:
    """Replace all ``${VAR_NAME}`` occurrences in *s* with env var values.

    Collects all missing variable names and reports them in a single error.
    """
    missing: list[str] = []

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            missing.append(var_name)
            return match.group(0)
        return env_value

    result = _ENV_VAR_PATTERN.sub(_replace, s)

    if missing:
        vars_str = ", ".join(missing)
        raise ConfigError(f"Unresolved environment variable(s) in config value: {vars_str}")

    return result


def _read_toml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    try:
        data = tomllib.loads(path.read_bytes().decode())
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc
    return resolve_env_vars(data)


def _sections(data: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Flatten the TOML layout into site/logging/sync/google sections."""
    raw = {name: data.get(name) or {} for name in ("site", "sync", "google")}
    for name, section in raw.items():
        if not isinstance(section, dict):
            raise ConfigError(f"[{name}] must be a table")
    site = dict(raw["site"])
    logging_section = site.pop("logging", None) or {}
    if not isinstance(logging_section, dict):
        raise ConfigError("[site.logging] must be a table")
    return {
        "site": site,
        "logging": dict(logging_section),
        "sync": dict(raw["sync"]),
        "google": dict(raw["google"]),
    }


def _apply_env_overrides(sections: dict[str, dict[str, Any]], env: dict[str, str]) -> None:
    for var_name, (section, key) in _ENV_OVERRIDES.items():
        value = env.get(var_name)
        if value is None or value == "":
            continue
        if key == "cors_origins":
            sections[section][key] = [
                origin.strip() for origin in value.split(",") if origin.strip()
            ]
        else:
            sections[section][key] = value


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    normalized = str(value).strip()
    return normalized or None


def _positive_number(value: Any, kind: type, name: str, *, allow_zero: bool) -> Any:
    try:
        number = kind(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc
    if number < 0 or (number == 0 and not allow_zero):
        raise ConfigError(f"{name} must be {'>= 0' if allow_zero else '> 0'}, got {value!r}")
    return number


def load_config(path: Path | None = None, *, env: dict[str, str] | None = None) -> SiteConfig:
    """Build a ``SiteConfig`` from an optional TOML file plus environment variables.

    Parameters
    ----------
    path:
        Path to ``clubsite.toml``.  Falls back to ``$CLUBSITE_CONFIG``; when
        neither is set only environment variables and defaults are used.
    env:
        Environment mapping, defaults to ``os.environ``.

    Raises
    ------
    ConfigError
        If the file is missing or malformed, references unset variables, or
        holds invalid values.
    """
    environ = dict(os.environ) if env is None else env
    if path is None and environ.get(CONFIG_PATH_ENV):
        path = Path(environ[CONFIG_PATH_ENV])

    data = _read_toml(path) if path is not None else {}
    sections = _sections(data)
    _apply_env_overrides(sections, environ)

    site = sections["site"]
    log = sections["logging"]
    sync = sections["sync"]
    google = sections["google"]

    log_level = str(log.get("level", "INFO")).upper()
    log_format = str(log.get("format", "text")).lower()
    if log_format not in ("text", "json"):
        raise ConfigError(f"logging.format must be 'text' or 'json', got {log_format!r}")

    cors_origins = site.get("cors_origins", list(DEFAULT_CORS_ORIGINS))
    if not isinstance(cors_origins, list) or not all(isinstance(o, str) for o in cors_origins):
        raise ConfigError("site.cors_origins must be a list of strings")

    return SiteConfig(
        data_dir=Path(str(site.get("data_dir", DEFAULT_DATA_DIR))),
        cors_origins=cors_origins,
        logging=LoggingConfig(level=log_level, format=log_format),
        sync=SyncConfig(
            cooldown_seconds=_positive_number(
                sync.get("cooldown_seconds", DEFAULT_COOLDOWN_SECONDS),
                float,
                "sync.cooldown_seconds",
                allow_zero=True,
            ),
            calendar_max_results=_positive_number(
                sync.get("calendar_max_results", DEFAULT_CALENDAR_MAX_RESULTS),
                int,
                "sync.calendar_max_results",
                allow_zero=False,
            ),
            cron_secret=_optional_str(sync.get("cron_secret")),
        ),
        google=GoogleConfig(
            calendar_id=_optional_str(google.get("calendar_id")),
            calendar_api_key=_optional_str(google.get("calendar_api_key")),
            drive_folder_id=_optional_str(google.get("drive_folder_id")),
            service_account_key=_optional_str(google.get("service_account_key")),
        ),
    )
