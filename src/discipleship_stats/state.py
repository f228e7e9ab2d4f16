"""Stats state: the single durable record the engine evolves.

Serialized with camelCase keys and epoch-millisecond timestamps so the blob
keeps the shape the mobile client stores and uploads.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone

from discipleship_stats.config import DEFAULT_ENGINE_CONFIG, EngineConfig

ENGINE_VERSION = 9


class StateFormatError(ValueError):
    """Raised when a persisted blob cannot be trusted as a StatsState."""


@dataclass
class DailyFlags:
    morning_prayer: bool = False
    evening_prayer: bool = False
    scripture: bool = False
    kindness_count: int = 0
    sleep_award_applied: bool = False


@dataclass
class WeeklyFlags:
    church: bool = False
    mutual: bool = False
    temple: bool = False


@dataclass
class SleepState:
    current_start: datetime | None = None
    last_session_duration_ms: int | None = None
    last_session_day_key: str | None = None

    @property
    def is_open(self) -> bool:
        return self.current_start is not None


@dataclass
class Streaks:
    morning_prayer: int = 0
    evening_prayer: int = 0
    scripture: int = 0


@dataclass
class StatsState:
    version: int
    created_at: datetime
    last_evaluated_at: datetime
    health: float
    skill_level: int
    coins: int
    badges: list[str] = field(default_factory=list)
    by_day: dict[str, DailyFlags] = field(default_factory=dict)
    by_week: dict[str, WeeklyFlags] = field(default_factory=dict)
    sleep: SleepState = field(default_factory=SleepState)
    streaks: Streaks = field(default_factory=Streaks)

    def day(self, key: str) -> DailyFlags:
        """Return the flags for a day, or an unsaved default record."""
        return self.by_day.get(key) or DailyFlags()

    def week(self, key: str) -> WeeklyFlags:
        """Return the flags for a week, or an unsaved default record."""
        return self.by_week.get(key) or WeeklyFlags()

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "createdAt": to_epoch_ms(self.created_at),
            "lastCalcAt": to_epoch_ms(self.last_evaluated_at),
            "health": self.health,
            "skillLevel": self.skill_level,
            "coins": self.coins,
            "badges": list(self.badges),
            "byDay": {k: _daily_to_dict(v) for k, v in sorted(self.by_day.items())},
            "byWeek": {k: _weekly_to_dict(v) for k, v in sorted(self.by_week.items())},
            "sleep": _sleep_to_dict(self.sleep),
            "streaks": {
                "morningPrayer": self.streaks.morning_prayer,
                "eveningPrayer": self.streaks.evening_prayer,
                "scripture": self.streaks.scripture,
            },
        }

    @classmethod
    def from_dict(cls, data: object, expected_version: int = ENGINE_VERSION) -> StatsState:
        """Rebuild a state from its blob.

        Raises StateFormatError on a version mismatch or any missing or
        ill-typed field; a half-valid blob is never partially trusted.
        """
        if not isinstance(data, dict):
            raise StateFormatError("stats blob is not an object")
        version = data.get("version")
        if version != expected_version:
            raise StateFormatError(f"version {version!r} != {expected_version}")
        try:
            created_at = from_epoch_ms(_number(data["createdAt"]))
            last_calc = from_epoch_ms(_number(data.get("lastCalcAt", data["createdAt"])))
            state = cls(
                version=version,
                created_at=created_at,
                last_evaluated_at=max(created_at, last_calc),
                health=float(_number(data["health"])),
                skill_level=int(_number(data["skillLevel"])),
                coins=int(_number(data["coins"])),
                badges=_badges(data.get("badges", [])),
                by_day={str(k): _daily_from_dict(v) for k, v in _mapping(data.get("byDay", {})).items()},
                by_week={str(k): _weekly_from_dict(v) for k, v in _mapping(data.get("byWeek", {})).items()},
                sleep=_sleep_from_dict(_mapping(data.get("sleep", {}))),
                streaks=_streaks_from_dict(_mapping(data.get("streaks", {}))),
            )
        except (KeyError, TypeError, ValueError, OverflowError, OSError) as exc:
            raise StateFormatError(f"malformed stats blob: {exc}") from exc
        if not 0 <= state.health <= DEFAULT_ENGINE_CONFIG.max_health:
            raise StateFormatError(f"health out of range: {state.health}")
        if state.skill_level < 0 or state.coins < 0:
            raise StateFormatError("negative skill level or coins")
        return state


def new_state(now: datetime, config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> StatsState:
    """Fresh defaults anchored at now."""
    now = ensure_aware(now)
    return StatsState(
        version=ENGINE_VERSION,
        created_at=now,
        last_evaluated_at=now,
        health=config.starting_health,
        skill_level=0,
        coins=config.coins_start,
    )


def ensure_aware(ts: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalize to UTC."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def to_epoch_ms(ts: datetime) -> int:
    return int(round(ensure_aware(ts).timestamp() * 1000))


def from_epoch_ms(ms: float) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def _number(value: object) -> float:
    # bool is an int subclass; a flag in a numeric slot is corruption
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"expected a number, got {value!r}")
    if not math.isfinite(value):
        raise ValueError(f"expected a finite number, got {value!r}")
    return value


def _flag(value: object) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"expected a bool, got {value!r}")
    return value


def _mapping(value: object) -> dict:
    if not isinstance(value, dict):
        raise TypeError(f"expected an object, got {value!r}")
    return value


def _badges(value: object) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(b, str) for b in value):
        raise TypeError("badges must be a list of strings")
    return list(dict.fromkeys(value))


def _daily_to_dict(d: DailyFlags) -> dict:
    return {
        "morningPrayer": d.morning_prayer,
        "eveningPrayer": d.evening_prayer,
        "scripture": d.scripture,
        "services": d.kindness_count,
        "sleepAwardApplied": d.sleep_award_applied,
    }


def _daily_from_dict(data: object) -> DailyFlags:
    data = _mapping(data)
    return DailyFlags(
        morning_prayer=_flag(data.get("morningPrayer", False)),
        evening_prayer=_flag(data.get("eveningPrayer", False)),
        scripture=_flag(data.get("scripture", False)),
        kindness_count=int(_number(data.get("services", 0))),
        sleep_award_applied=_flag(data.get("sleepAwardApplied", False)),
    )


def _weekly_to_dict(w: WeeklyFlags) -> dict:
    return {"church": w.church, "mutual": w.mutual, "temple": w.temple}


def _weekly_from_dict(data: object) -> WeeklyFlags:
    data = _mapping(data)
    return WeeklyFlags(
        church=_flag(data.get("church", False)),
        mutual=_flag(data.get("mutual", False)),
        temple=_flag(data.get("temple", False)),
    )


def _sleep_to_dict(s: SleepState) -> dict:
    out: dict = {}
    if s.current_start is not None:
        out["currentStart"] = to_epoch_ms(s.current_start)
    if s.last_session_duration_ms is not None:
        out["lastSessionMs"] = s.last_session_duration_ms
    if s.last_session_day_key is not None:
        out["lastSessionDayKey"] = s.last_session_day_key
    return out


def _sleep_from_dict(data: dict) -> SleepState:
    start = data.get("currentStart")
    duration = data.get("lastSessionMs")
    day = data.get("lastSessionDayKey")
    if day is not None and not isinstance(day, str):
        raise TypeError("lastSessionDayKey must be a string")
    return SleepState(
        current_start=from_epoch_ms(_number(start)) if start is not None else None,
        last_session_duration_ms=int(_number(duration)) if duration is not None else None,
        last_session_day_key=day,
    )


def _streaks_from_dict(data: dict) -> Streaks:
    return Streaks(
        morning_prayer=int(_number(data.get("morningPrayer", 0))),
        evening_prayer=int(_number(data.get("eveningPrayer", 0))),
        scripture=int(_number(data.get("scripture", 0))),
    )
