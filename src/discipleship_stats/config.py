"""Configuration file management for discipleship-stats.

Reads and writes ~/.dt-stats/config.json for settings that don't belong in the
stats blob (timezone, sync directory, user id, engine overrides).
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH: Path = Path.home() / ".dt-stats" / "config.json"
DEFAULT_TIMEZONE = "UTC"


@dataclass(frozen=True)
class EngineConfig:
    """Every tunable the stats engine reads."""

    timezone: str = DEFAULT_TIMEZONE

    # Active window (local time of day) during which health decays
    active_start_hour: int = 6
    active_start_minute: int = 30
    active_end_hour: int = 21
    active_end_minute: int = 0
    decay_per_active_hour: float = 50 / 29

    # Burnout
    burnout_recovery_health: float = 50.0

    # Daily actions
    pts_morning_prayer: int = 6
    pts_evening_prayer: int = 6
    pts_scripture: int = 8
    pts_service: int = 3
    pts_kindness: int = 3
    max_daily_services: int = 5

    # Weekly actions
    pts_church: int = 12
    pts_mutual: int = 10
    pts_temple: int = 15

    pts_badge: int = 5

    # Sleep
    pts_sleep_bonus: int = 8
    pts_sleep_penalty: int = 8
    sleep_threshold_hours: float = 6.0

    # Settlement
    level_trigger: float = 98.0
    level_span: float = 100.0
    max_settled_health: float = 97.0
    max_health: float = 200.0
    starting_health: float = 50.0
    coins_start: int = 30
    coins_per_level: int = 15

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


DEFAULT_ENGINE_CONFIG = EngineConfig()


def load_config(config_path: Path | None = None) -> dict:
    """Load config from JSON file. Returns {} if file missing or invalid."""
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        logger.warning("Ignoring unreadable config file %s", path)
        return {}
    if not isinstance(data, dict):
        return {}
    return data


def save_config(data: dict, config_path: Path | None = None) -> None:
    """Write config dict to JSON file. Creates parent dirs if needed."""
    path = config_path or DEFAULT_CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")


def validate_timezone(name: str | None) -> str:
    """Return name if it is a known IANA zone, else the default (UTC)."""
    if not name:
        return DEFAULT_TIMEZONE
    try:
        ZoneInfo(name)
        return name
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, falling back to %s", name, DEFAULT_TIMEZONE)
        return DEFAULT_TIMEZONE


def get_engine_config(config_path: Path | None = None) -> EngineConfig:
    """Build an EngineConfig from the config file's `timezone` and `engine` keys.

    Unknown keys inside `engine` are ignored.
    """
    config = load_config(config_path)
    overrides = config.get("engine") or {}
    known = {f.name for f in fields(EngineConfig)}
    values = {k: v for k, v in overrides.items() if k in known and k != "timezone"}
    timezone_name = validate_timezone(config.get("timezone"))
    return replace(DEFAULT_ENGINE_CONFIG, timezone=timezone_name, **values)


def get_timezone(config_path: Path | None = None) -> str:
    return validate_timezone(load_config(config_path).get("timezone"))


def set_timezone(name: str, config_path: Path | None = None) -> None:
    """Persist the timezone name. Raises ValueError for unknown zones."""
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {name}") from exc
    config = load_config(config_path)
    config["timezone"] = name
    save_config(config, config_path)


def get_user_id(config_path: Path | None = None) -> str | None:
    """Return the configured sync user id, or None if not set."""
    return load_config(config_path).get("user_id") or None


def set_user_id(user_id: str, config_path: Path | None = None) -> None:
    config = load_config(config_path)
    config["user_id"] = user_id
    save_config(config, config_path)


def get_sync_dir(config_path: Path | None = None) -> Path | None:
    """Return the configured snapshot directory, or None if not set."""
    raw = load_config(config_path).get("sync_dir")
    if raw:
        return Path(raw)
    return None


def set_sync_dir(directory: Path, config_path: Path | None = None) -> None:
    """Persist the snapshot directory path to config."""
    config = load_config(config_path)
    config["sync_dir"] = str(directory)
    save_config(config, config_path)
