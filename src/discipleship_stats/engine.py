"""Action reducer for the stats engine.

reduce(state, action, now) first catches the state up to now (sleep
resolution, then decay), then applies the action's once-per-period reward.
Every guard failure is a silent no-op reported through DispatchResult.applied;
nothing here raises for an expected condition.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum

from discipleship_stats.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from discipleship_stats.decay import apply_decay
from discipleship_stats.keys import day_key, week_key
from discipleship_stats.levels import apply_points
from discipleship_stats.sleep import end_sleep_now, resolve_open_sleep_session
from discipleship_stats.state import (
    DailyFlags,
    StatsState,
    WeeklyFlags,
    ensure_aware,
    new_state,
)

logger = logging.getLogger(__name__)


class EngineInvariantError(RuntimeError):
    """A state left the engine outside its documented bounds (a logic bug)."""


class ActionType(str, Enum):
    LOG_MORNING_PRAYER = "LOG_MORNING_PRAYER"
    LOG_EVENING_PRAYER = "LOG_EVENING_PRAYER"
    LOG_SCRIPTURE = "LOG_SCRIPTURE"
    LOG_SERVICE = "LOG_SERVICE"
    LOG_KINDNESS = "LOG_KINDNESS"
    LOG_WEEKLY = "LOG_WEEKLY"
    GRANT_BADGE = "GRANT_BADGE"
    SPEND_COINS = "SPEND_COINS"
    START_SLEEP = "START_SLEEP"
    END_SLEEP = "END_SLEEP"
    RESET_ALL = "RESET_ALL"


class WeeklyKind(str, Enum):
    CHURCH = "church"
    MUTUAL = "mutual"
    TEMPLE = "temple"


@dataclass(frozen=True)
class Action:
    type: ActionType
    weekly_kind: WeeklyKind | None = None
    badge: str | None = None
    amount: int = 0

    @classmethod
    def log_morning_prayer(cls) -> Action:
        return cls(ActionType.LOG_MORNING_PRAYER)

    @classmethod
    def log_evening_prayer(cls) -> Action:
        return cls(ActionType.LOG_EVENING_PRAYER)

    @classmethod
    def log_scripture(cls) -> Action:
        return cls(ActionType.LOG_SCRIPTURE)

    @classmethod
    def log_service(cls) -> Action:
        return cls(ActionType.LOG_SERVICE)

    @classmethod
    def log_kindness(cls) -> Action:
        return cls(ActionType.LOG_KINDNESS)

    @classmethod
    def log_weekly(cls, kind: WeeklyKind | str) -> Action:
        return cls(ActionType.LOG_WEEKLY, weekly_kind=WeeklyKind(kind))

    @classmethod
    def grant_badge(cls, badge: str) -> Action:
        return cls(ActionType.GRANT_BADGE, badge=badge)

    @classmethod
    def spend_coins(cls, amount: int) -> Action:
        return cls(ActionType.SPEND_COINS, amount=amount)

    @classmethod
    def start_sleep(cls) -> Action:
        return cls(ActionType.START_SLEEP)

    @classmethod
    def end_sleep(cls) -> Action:
        return cls(ActionType.END_SLEEP)

    @classmethod
    def reset_all(cls) -> Action:
        return cls(ActionType.RESET_ALL)


@dataclass
class DispatchResult:
    state: StatsState
    applied: bool


def weekly_points(kind: WeeklyKind, config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> int:
    if kind is WeeklyKind.CHURCH:
        return config.pts_church
    if kind is WeeklyKind.MUTUAL:
        return config.pts_mutual
    return config.pts_temple


def advance_time(state: StatsState, now: datetime, config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> StatsState:
    """Catch state up to now: resolve an overdue sleep session, then decay.

    The high-water mark never moves backwards; a now earlier than
    last_evaluated_at (clock skew) changes nothing.
    """
    now = ensure_aware(now)
    if now <= state.last_evaluated_at:
        return state
    advanced = resolve_open_sleep_session(state, now, config)
    advanced = apply_decay(advanced, now, config)
    return replace(advanced, last_evaluated_at=now)


def _check_invariants(state: StatsState, config: EngineConfig) -> None:
    if not 0 <= state.health <= config.max_health:
        raise EngineInvariantError(f"health out of bounds: {state.health}")
    if state.skill_level < 0 or state.coins < 0:
        raise EngineInvariantError(
            f"negative skill level or coins: skill={state.skill_level}, coins={state.coins}"
        )
    if state.last_evaluated_at < state.created_at:
        raise EngineInvariantError("last_evaluated_at precedes created_at")


def reduce(
    state: StatsState,
    action: Action,
    now: datetime,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> DispatchResult:
    """Apply one action at time now. The input state is never mutated."""
    now = ensure_aware(now)

    if action.type is ActionType.RESET_ALL:
        return DispatchResult(state=new_state(now, config), applied=True)

    s = copy.deepcopy(advance_time(state, now, config))
    applied = False
    dk = day_key(now, config.timezone)
    wk = week_key(now, config.timezone)

    if action.type in (
        ActionType.LOG_MORNING_PRAYER,
        ActionType.LOG_EVENING_PRAYER,
        ActionType.LOG_SCRIPTURE,
        ActionType.LOG_SERVICE,
        ActionType.LOG_KINDNESS,
    ):
        day = s.by_day.setdefault(dk, DailyFlags())
        if action.type is ActionType.LOG_MORNING_PRAYER:
            if not day.morning_prayer:
                day.morning_prayer = True
                s.streaks.morning_prayer += 1
                s = apply_points(s, config.pts_morning_prayer, config)
                applied = True
        elif action.type is ActionType.LOG_EVENING_PRAYER:
            if not day.evening_prayer:
                day.evening_prayer = True
                s.streaks.evening_prayer += 1
                s = apply_points(s, config.pts_evening_prayer, config)
                applied = True
        elif action.type is ActionType.LOG_SCRIPTURE:
            if not day.scripture:
                day.scripture = True
                s.streaks.scripture += 1
                s = apply_points(s, config.pts_scripture, config)
                applied = True
        else:
            # Service and kindness share one daily counter
            if day.kindness_count < config.max_daily_services:
                day.kindness_count += 1
                pts = config.pts_service if action.type is ActionType.LOG_SERVICE else config.pts_kindness
                s = apply_points(s, pts, config)
                applied = True

    elif action.type is ActionType.LOG_WEEKLY:
        if action.weekly_kind is None:
            raise ValueError("LOG_WEEKLY requires a weekly_kind")
        week = s.by_week.setdefault(wk, WeeklyFlags())
        attr = action.weekly_kind.value
        if not getattr(week, attr):
            setattr(week, attr, True)
            s = apply_points(s, weekly_points(action.weekly_kind, config), config)
            applied = True

    elif action.type is ActionType.GRANT_BADGE:
        if action.badge and action.badge not in s.badges:
            s.badges.append(action.badge)
            s = apply_points(s, config.pts_badge, config)
            applied = True

    elif action.type is ActionType.SPEND_COINS:
        if 0 < action.amount <= s.coins:
            s.coins -= action.amount
            applied = True

    elif action.type is ActionType.START_SLEEP:
        if not s.sleep.is_open:
            s.sleep.current_start = now
            applied = True

    elif action.type is ActionType.END_SLEEP:
        if s.sleep.is_open:
            s = end_sleep_now(s, now, config)
            applied = True

    else:
        raise ValueError(f"Unknown action type: {action.type!r}")

    if not applied:
        logger.debug("%s at %s had no effect", action.type.value, now.isoformat())

    _check_invariants(s, config)
    return DispatchResult(state=s, applied=applied)


def dispatch(
    state: StatsState,
    action: Action,
    now: datetime,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> StatsState:
    """Apply one action at time now and return the new state."""
    return reduce(state, action, now, config).state
