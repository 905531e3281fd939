"""Configuration loading for the task tracker service."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


class ConfigError(RuntimeError):
    """Raised when required configuration is missing or invalid."""


@dataclass(frozen=True)
class AppConfig:
    data_path: Path
    timezone: ZoneInfo
    require_user_header: bool
    service_token: str | None
    log_level: int


def _read_dotenv_value(dotenv_path: Path, key: str) -> str | None:
    """Read a single key from a .env file without mutating the environment."""
    if not dotenv_path.is_file():
        return None
    try:
        content = dotenv_path.read_text(encoding="utf-8")
    except OSError:
        return None

    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped.startswith("export "):
            stripped = stripped[len("export ") :].strip()
        if "=" not in stripped:
            continue
        name, value = stripped.split("=", 1)
        name = name.strip()
        if name != key:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        return value or None
    return None


def _read_setting(dotenv_path: Path, key: str) -> str | None:
    value = os.environ.get(key)
    if value is None:
        value = _read_dotenv_value(dotenv_path, key)
    return value


def _read_bool(raw_value: str | None, *, default: bool, key: str) -> bool:
    if raw_value is None:
        return default
    normalized = raw_value.strip().lower()
    if not normalized:
        return default
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ConfigError(f"{key} must be a boolean value.")


def _read_timezone(raw_value: str | None, *, key: str) -> ZoneInfo:
    name = (raw_value or "").strip() or "UTC"
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"{key} must be a valid IANA timezone name.") from exc


def _read_log_level(raw_value: str | None, *, key: str) -> int:
    name = (raw_value or "").strip().upper() or "INFO"
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        raise ConfigError(f"{key} must be a logging level name.")
    return level


def load_config() -> AppConfig:
    """Load required configuration from the environment."""
    dotenv_path = Path.cwd() / ".env"

    env_key = "TASK_TRACKER_DATA_PATH"
    raw_path = (_read_setting(dotenv_path, env_key) or "").strip()
    if not raw_path:
        raise ConfigError(
            "TASK_TRACKER_DATA_PATH is required; set it to the data directory."
        )

    timezone_key = "TASK_TRACKER_TIMEZONE"
    timezone = _read_timezone(
        _read_setting(dotenv_path, timezone_key), key=timezone_key
    )

    require_user_key = "TASK_TRACKER_REQUIRE_USER_HEADER"
    require_user_header = _read_bool(
        _read_setting(dotenv_path, require_user_key),
        default=True,
        key=require_user_key,
    )

    service_token = _read_setting(dotenv_path, "TASK_TRACKER_SERVICE_TOKEN")
    service_token = service_token.strip() if isinstance(service_token, str) else None
    if not service_token:
        service_token = None

    log_level_key = "TASK_TRACKER_LOG_LEVEL"
    log_level = _read_log_level(
        _read_setting(dotenv_path, log_level_key), key=log_level_key
    )

    return AppConfig(
        data_path=Path(raw_path).resolve(),
        timezone=timezone,
        require_user_header=require_user_header,
        service_token=service_token,
        log_level=log_level,
    )
