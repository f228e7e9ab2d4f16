"""CLI commands for discipleship-stats."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

from discipleship_stats.activities import ACTIVITY_NAMES, ActivityBridge
from discipleship_stats.config import (
    get_engine_config,
    get_sync_dir,
    get_timezone,
    get_user_id,
    set_sync_dir,
    set_timezone,
    set_user_id,
)
from discipleship_stats.db import Database, StatsStore, UploadMarkerStore
from discipleship_stats.display import (
    console,
    print_config_result,
    print_dispatch_result,
    print_events,
    print_reset_result,
    print_status,
    print_week_table,
)
from discipleship_stats.engine import Action, advance_time
from discipleship_stats.keys import day_key, week_key
from discipleship_stats.levels import points_to_next_level
from discipleship_stats.session import DispatchOutcome, StatsSession
from discipleship_stats.state import StatsState, ensure_aware
from discipleship_stats.sync import DirectorySnapshotSink, SnapshotUploader

_ACTIVITY_LABELS: dict[str, str] = {
    "morning_prayer": "Morning prayer logged",
    "evening_prayer": "Evening prayer logged",
    "scripture": "Scripture study logged",
    "service": "Service logged",
    "kindness": "Act of kindness logged",
    "church": "Church attendance logged",
    "mutual": "Mutual logged",
    "temple": "Temple visit logged",
    "sleep_start": "Good night. Sleep started",
    "sleep_end": "Good morning. Sleep ended",
}

_ACTIVITY_NOOP_REASONS: dict[str, str] = {
    "service": "Daily service limit reached.",
    "kindness": "Daily service limit reached.",
    "church": "Already logged this week.",
    "mutual": "Already logged this week.",
    "temple": "Already logged this week.",
    "sleep_start": "A sleep session is already open.",
    "sleep_end": "No open sleep session.",
}


def parse_timestamp(value: str) -> datetime:
    """argparse type for --at: an ISO 8601 timestamp, naive means UTC."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid ISO timestamp: {value}") from exc
    return ensure_aware(parsed)


def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    parser = argparse.ArgumentParser(
        prog="dt-stats",
        description="Track daily discipleship habits and watch your stats grow",
    )
    parser.add_argument("--at", type=parse_timestamp, default=None, help="Act as if it were this ISO time")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("status", help="Show health, skill, coins and today's progress")
    log_parser = subparsers.add_parser("log", help="Log an activity")
    log_parser.add_argument("activity", choices=ACTIVITY_NAMES)
    badge_parser = subparsers.add_parser("badge", help="Grant a badge")
    badge_parser.add_argument("badge_id")
    spend_parser = subparsers.add_parser("spend", help="Spend coins")
    spend_parser.add_argument("amount", type=int)
    sleep_parser = subparsers.add_parser("sleep", help="Start or end a sleep session")
    sleep_parser.add_argument("phase", choices=["start", "end"])
    history_parser = subparsers.add_parser("history", help="Show recent days")
    history_parser.add_argument("--days", type=int, default=7)
    subparsers.add_parser("reset", help="Reset all stats to defaults")
    config_parser = subparsers.add_parser("config", help="Configure timezone, user id and sync directory")
    config_parser.add_argument("--timezone", "-t", default=None, help="IANA timezone, e.g. America/Denver")
    config_parser.add_argument("--user", "-u", default=None, help="User id for snapshot uploads")
    config_parser.add_argument("--sync-dir", "-d", default=None, help="Directory receiving snapshots")
    return parser


def build_session(db: Database, config_path: Path | None = None) -> StatsSession:
    """Wire store, engine config and uploader from the config file."""
    config = get_engine_config(config_path)
    uploader = None
    sync_dir = get_sync_dir(config_path)
    if sync_dir is not None:
        uploader = SnapshotUploader(DirectorySnapshotSink(sync_dir), markers=UploadMarkerStore(db))
    return StatsSession(
        StatsStore(db),
        config=config,
        uploader=uploader,
        user_id=get_user_id(config_path),
    )


def main() -> None:
    """Entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args()
    command = args.command or "status"

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if command == "config":
        result = do_config(timezone_name=args.timezone, user_id=args.user, sync_dir=args.sync_dir)
        sys.exit(0 if result["ok"] else 1)

    now = args.at or datetime.now(tz=timezone.utc)
    db = Database()
    try:
        session = build_session(db)
        session.open(now)
        session.subscribe(lambda event: print_events([event]))
        if command == "status":
            do_status(session, now)
        elif command == "log":
            do_log(session, args.activity, now)
        elif command == "badge":
            do_badge(session, args.badge_id, now)
        elif command == "spend":
            do_spend(session, args.amount, now)
        elif command == "sleep":
            do_log(session, f"sleep_{args.phase}", now)
        elif command == "history":
            do_history(session, now, days=args.days)
        elif command == "reset":
            do_reset(session, now)
    finally:
        db.close()


def build_status_data(state: StatsState, now: datetime, session: StatsSession) -> dict:
    """Flatten a state into the dict print_status and the MCP tools use."""
    config = session.config
    dk = day_key(now, config.timezone)
    wk = week_key(now, config.timezone)
    today = state.day(dk)
    week = state.week(wk)
    sleeping_since = None
    if state.sleep.current_start is not None:
        sleeping_since = state.sleep.current_start.astimezone(config.tzinfo).strftime("%Y-%m-%d %H:%M")
    return {
        "health": round(state.health, 2),
        "level_trigger": config.level_trigger,
        "points_to_next": round(points_to_next_level(state.health, config), 2),
        "skill_level": state.skill_level,
        "coins": state.coins,
        "badges": list(state.badges),
        "day_key": dk,
        "week_key": wk,
        "today": {
            "morning_prayer": today.morning_prayer,
            "evening_prayer": today.evening_prayer,
            "scripture": today.scripture,
            "kindness_count": today.kindness_count,
        },
        "max_daily_services": config.max_daily_services,
        "week": {"church": week.church, "mutual": week.mutual, "temple": week.temple},
        "streaks": {
            "morning_prayer": state.streaks.morning_prayer,
            "evening_prayer": state.streaks.evening_prayer,
            "scripture": state.streaks.scripture,
        },
        "sleeping_since": sleeping_since,
        "last_sleep_ms": state.sleep.last_session_duration_ms,
    }


def do_status(session: StatsSession, now: datetime) -> dict:
    """Show the state as it stands at now, without saving the catch-up."""
    preview = advance_time(session.state, now, session.config)
    data = build_status_data(preview, now, session)
    print_status(data)
    return data


def _report(outcome: DispatchOutcome, label: str, reason: str) -> dict:
    result = {
        "applied": outcome.applied,
        "label": label,
        "reason": reason,
        "health": round(outcome.state.health, 2),
        "skill_level": outcome.state.skill_level,
        "coins": outcome.state.coins,
        "events": [e.kind.value for e in outcome.events],
    }
    print_dispatch_result(result)
    return result


def do_log(session: StatsSession, activity: str, now: datetime) -> dict:
    """Log one named activity."""
    outcome = ActivityBridge(session).apply_activity_reward(activity, now)
    if outcome is None:
        console.print(f"[red]Unknown activity: {activity}[/]")
        return {"applied": False, "reason": "unknown_activity"}
    return _report(
        outcome,
        _ACTIVITY_LABELS.get(activity, "Logged"),
        _ACTIVITY_NOOP_REASONS.get(activity, "Already logged today."),
    )


def do_badge(session: StatsSession, badge_id: str, now: datetime) -> dict:
    outcome = session.dispatch(Action.grant_badge(badge_id), now)
    return _report(outcome, f"Badge '{badge_id}' granted", f"Badge '{badge_id}' already earned.")


def do_spend(session: StatsSession, amount: int, now: datetime) -> dict:
    outcome = session.dispatch(Action.spend_coins(amount), now)
    return _report(
        outcome,
        f"Spent {amount} coins",
        f"Not enough coins ({session.state.coins} available).",
    )


def do_reset(session: StatsSession, now: datetime) -> dict:
    outcome = session.dispatch(Action.reset_all(), now)
    print_reset_result()
    return {"applied": outcome.applied, "coins": outcome.state.coins, "health": outcome.state.health}


def do_history(session: StatsSession, now: datetime, days: int = 7) -> list[dict]:
    """Show completion flags for the last N days (today included)."""
    state = session.state
    tz = session.config.timezone
    rows: list[dict] = []
    for offset in range(max(days, 1) - 1, -1, -1):
        dk = day_key(now - timedelta(days=offset), tz)
        flags = state.day(dk)
        rows.append({
            "day_key": dk,
            "morning_prayer": flags.morning_prayer,
            "evening_prayer": flags.evening_prayer,
            "scripture": flags.scripture,
            "kindness_count": flags.kindness_count,
        })
    print_week_table(rows)
    return rows


def do_config(
    timezone_name: str | None = None,
    user_id: str | None = None,
    sync_dir: str | None = None,
    config_path: Path | None = None,
) -> dict:
    """Persist any given settings and report the resulting configuration."""
    if timezone_name:
        try:
            set_timezone(timezone_name, config_path)
        except ValueError as exc:
            console.print(f"[red]{exc}[/]")
            return {"ok": False, "reason": "bad_timezone"}
    if user_id:
        set_user_id(user_id, config_path)
    if sync_dir:
        set_sync_dir(Path(sync_dir).expanduser().resolve(), config_path)
    configured_dir = get_sync_dir(config_path)
    result = {
        "ok": True,
        "timezone": get_timezone(config_path),
        "user_id": get_user_id(config_path),
        "sync_dir": str(configured_dir) if configured_dir else None,
    }
    print_config_result(result)
    return result
