"""Sleep session resolution.

An open session only records its start. It is closed either explicitly by
the user, or in arrears: once the next active-window start (06:30 local by
default) has passed, the session is closed at that cutoff.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta

from discipleship_stats.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from discipleship_stats.decay import MS_PER_HOUR, active_window
from discipleship_stats.keys import day_key
from discipleship_stats.levels import apply_points
from discipleship_stats.state import DailyFlags, SleepState, StatsState, ensure_aware

logger = logging.getLogger(__name__)


def next_cutoff(start: datetime, config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> datetime:
    """Next active-window start strictly after start."""
    local = ensure_aware(start).astimezone(config.tzinfo)
    cutoff, _ = active_window(local.date(), config)
    if local >= cutoff:
        cutoff, _ = active_window(local.date() + timedelta(days=1), config)
    return cutoff


def sleep_delta(duration_ms: int, config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> int:
    """Bonus for a long enough night, penalty otherwise."""
    if duration_ms / MS_PER_HOUR >= config.sleep_threshold_hours:
        return config.pts_sleep_bonus
    return -config.pts_sleep_penalty


def close_session(
    state: StatsState, end: datetime, config: EngineConfig = DEFAULT_ENGINE_CONFIG
) -> StatsState:
    """Close the open session at end and apply the sleep reward or penalty."""
    start = state.sleep.current_start
    if start is None:
        return state

    end = ensure_aware(end)
    duration_ms = max(0, int(round((end - start).total_seconds() * 1000)))
    end_key = day_key(end, config.timezone)

    by_day = dict(state.by_day)
    by_day[end_key] = replace(state.by_day.get(end_key) or DailyFlags(), sleep_award_applied=True)

    closed = replace(
        state,
        by_day=by_day,
        sleep=SleepState(
            current_start=None,
            last_session_duration_ms=duration_ms,
            last_session_day_key=end_key,
        ),
    )
    delta = sleep_delta(duration_ms, config)
    logger.debug("Sleep session closed: %.2fh, %+d points", duration_ms / MS_PER_HOUR, delta)
    return apply_points(closed, delta, config)


def resolve_open_sleep_session(
    state: StatsState, now: datetime, config: EngineConfig = DEFAULT_ENGINE_CONFIG
) -> StatsState:
    """Close an open session at its cutoff, but only once now has reached it."""
    if not state.sleep.is_open:
        return state
    cutoff = next_cutoff(state.sleep.current_start, config)
    if ensure_aware(now) < cutoff:
        return state
    return close_session(state, cutoff, config)


def end_sleep_now(
    state: StatsState, now: datetime, config: EngineConfig = DEFAULT_ENGINE_CONFIG
) -> StatsState:
    """User-initiated end: close the session at now without waiting for the cutoff."""
    return close_session(state, now, config)
