"""Idle-time health decay.

Health only drains during the daily active window (06:30-21:00 local by
default); time outside it is free. Decay that empties health triggers a
burnout: health is restored and one skill level is lost.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, time, timedelta

from discipleship_stats.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from discipleship_stats.levels import clamp
from discipleship_stats.state import StatsState, ensure_aware

logger = logging.getLogger(__name__)

MS_PER_HOUR = 3_600_000


def active_window(day, config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> tuple[datetime, datetime]:
    """Return the (start, end) instants of the active window on a local date."""
    tz = config.tzinfo
    start = datetime.combine(day, time(config.active_start_hour, config.active_start_minute), tzinfo=tz)
    end = datetime.combine(day, time(config.active_end_hour, config.active_end_minute), tzinfo=tz)
    return start, end


def active_overlap_ms(
    start: datetime, end: datetime, config: EngineConfig = DEFAULT_ENGINE_CONFIG
) -> int:
    """Milliseconds of [start, end) that fall inside the daily active window.

    Walks the interval one local calendar day at a time so multi-day gaps sum
    the window of every day they cover. end <= start yields 0.
    """
    start = ensure_aware(start)
    end = ensure_aware(end)
    if end <= start:
        return 0

    tz = config.tzinfo
    total = timedelta(0)
    current_day = start.astimezone(tz).date()
    last_day = end.astimezone(tz).date()
    while current_day <= last_day:
        window_start, window_end = active_window(current_day, config)
        overlap_start = max(start, window_start)
        overlap_end = min(end, window_end)
        if overlap_end > overlap_start:
            total += overlap_end - overlap_start
        current_day += timedelta(days=1)

    return int(round(total.total_seconds() * 1000))


def decay_amount(active_ms: float, config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> float:
    """Health lost for active_ms of active time."""
    return (active_ms / MS_PER_HOUR) * config.decay_per_active_hour


def apply_decay(
    state: StatsState, until: datetime, config: EngineConfig = DEFAULT_ENGINE_CONFIG
) -> StatsState:
    """Drain health for the active time between state.last_evaluated_at and until.

    Does not move last_evaluated_at; the engine owns the high-water mark.
    """
    active_ms = active_overlap_ms(state.last_evaluated_at, until, config)
    if active_ms <= 0:
        return state

    health = clamp(state.health - decay_amount(active_ms, config), 0, config.max_health)
    if health <= 0:
        logger.debug("Burnout at %s: skill level %d -> %d", until, state.skill_level, max(0, state.skill_level - 1))
        return replace(
            state,
            health=config.burnout_recovery_health,
            skill_level=max(0, state.skill_level - 1),
        )
    return replace(state, health=health)
