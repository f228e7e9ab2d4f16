"""MCP server for discipleship-stats.

Exposes the stats engine as MCP tools so an assistant or a server-side
activity feed can read stats and log activities.
Run via: python3 -m discipleship_stats.mcp_server
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from mcp.server.fastmcp import FastMCP

from discipleship_stats.activities import ACTIVITY_NAMES, ActivityBridge
from discipleship_stats.engine import advance_time

mcp = FastMCP(name="discipleship-stats")


def _get_db():
    from discipleship_stats.db import Database
    return Database()


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _open_session(db):
    from discipleship_stats.cli import build_session
    session = build_session(db)
    session.open(_now())
    return session


@mcp.tool()
def get_stats() -> dict[str, Any]:
    """Get current health, skill level, coins, streaks, badges and today's flags."""
    db = _get_db()
    try:
        from discipleship_stats.cli import build_status_data
        session = _open_session(db)
        now = _now()
        preview = advance_time(session.state, now, session.config)
        return build_status_data(preview, now, session)
    finally:
        db.close()


@mcp.tool()
def get_today() -> dict[str, Any]:
    """Get today's and this week's completion flags only."""
    stats = get_stats()
    return {
        "day_key": stats["day_key"],
        "week_key": stats["week_key"],
        "today": stats["today"],
        "week": stats["week"],
    }


@mcp.tool()
def log_activity(activity: str) -> dict[str, Any]:
    """Log an activity by name.

    activity: one of morning_prayer, evening_prayer, scripture, service,
              kindness, church, mutual, temple, sleep_start, sleep_end.
    """
    db = _get_db()
    try:
        session = _open_session(db)
        outcome = ActivityBridge(session).apply_activity_reward(activity, _now())
        if outcome is None:
            return {"error": f"Unknown activity. Must be one of: {', '.join(ACTIVITY_NAMES)}"}
        return {
            "applied": outcome.applied,
            "health": round(outcome.state.health, 2),
            "skill_level": outcome.state.skill_level,
            "coins": outcome.state.coins,
            "events": [{"kind": e.kind.value, "message": e.message} for e in outcome.events],
        }
    finally:
        db.close()


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
