"""Day and week keys for per-period completion flags.

Every caller (engine, session, CLI, MCP server) goes through these two
functions so that a screen and the engine can never disagree about which
day a timestamp belongs to.
"""

from __future__ import annotations

import math
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo


def _localize(ts: datetime, tz: str) -> datetime:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(ZoneInfo(tz))


def _sunday_based_weekday(d: date) -> int:
    """Sunday=0 ... Saturday=6."""
    return (d.weekday() + 1) % 7


def day_key(ts: datetime, tz: str = "UTC") -> str:
    """Return the YYYY-MM-DD key of the calendar day containing ts."""
    return _localize(ts, tz).date().isoformat()


def week_number(local: datetime) -> int:
    """Year-anchored week number of a local wall-clock time.

    Counts fractional days since 1 January 00:00, offset by the Sunday-based
    weekday of 1 January, and rounds up: ceil((days + jan1_weekday + 1) / 7).
    The instant of 1 January 00:00 is week 1, and each new week begins just
    after 00:00 on Saturday.
    """
    local = local.replace(tzinfo=None)
    jan1 = datetime(local.year, 1, 1)
    days = (local - jan1).total_seconds() / 86400
    return math.ceil((days + _sunday_based_weekday(jan1.date()) + 1) / 7)


def week_key(ts: datetime, tz: str = "UTC") -> str:
    """Return the YYYY-W## key of the week containing ts."""
    local = _localize(ts, tz)
    return f"{local.year}-W{week_number(local):02d}"


def parse_day_key(key: str) -> date:
    """Parse a YYYY-MM-DD key back to a date."""
    return date.fromisoformat(key)
