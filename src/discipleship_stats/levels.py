"""Point application and level/coin settlement. Pure functions, no side effects."""

from __future__ import annotations

import logging
import math
from dataclasses import replace

from discipleship_stats.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from discipleship_stats.state import StatsState

logger = logging.getLogger(__name__)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def settle_health(health: float, config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> tuple[int, float]:
    """Convert health at or above the trigger into levels.

    Returns (levels_gained, settled_health). Each pass takes
    overflow = health - trigger, gains 1 + floor(overflow / span) levels and
    keeps overflow % span as the new health, capped at max_settled_health.
    """
    gained_total = 0
    while health >= config.level_trigger:
        overflow = health - config.level_trigger
        gained = 1 + math.floor(overflow / config.level_span)
        remainder = overflow % config.level_span
        gained_total += gained
        health = clamp(remainder, 0, config.max_settled_health)
    return gained_total, health


def settle_level_ups(state: StatsState, config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> StatsState:
    """Return state with any health overflow converted to skill levels and coins."""
    gained, health = settle_health(state.health, config)
    if not gained:
        return state
    logger.debug("Settled %d level(s), health %.2f -> %.2f", gained, state.health, health)
    return replace(
        state,
        skill_level=max(0, state.skill_level + gained),
        coins=state.coins + gained * config.coins_per_level,
        health=health,
    )


def apply_points(state: StatsState, delta: float, config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> StatsState:
    """Add a signed point delta to health, clamp, then settle.

    Depends only on (state, delta): no timestamps are read or written.
    """
    bumped = replace(state, health=clamp(state.health + delta, 0, config.max_health))
    return settle_level_ups(bumped, config)


def settlement_preview(
    health: float, delta: float, config: EngineConfig = DEFAULT_ENGINE_CONFIG
) -> tuple[int, int, float]:
    """Return (levels_gained, coins_gained, final_health) for applying delta to health."""
    start = clamp(health + delta, 0, config.max_health)
    gained, final_health = settle_health(start, config)
    return gained, gained * config.coins_per_level, final_health


def points_to_next_level(health: float, config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> float:
    """Points still needed before the next settlement fires."""
    return max(0.0, config.level_trigger - health)
