"""Rich terminal display for discipleship-stats."""

from __future__ import annotations

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from discipleship_stats.events import Event, EventKind

console = Console()

_HEALTH_COLORS: list[tuple[float, str]] = [
    (75, "green3"),
    (40, "gold1"),
    (15, "dark_orange3"),
    (0, "red1"),
]


def health_color(health: float) -> str:
    """Pick a Rich color for a health value."""
    for threshold, color in _HEALTH_COLORS:
        if health >= threshold:
            return color
    return "red1"


def format_hours(ms: int | None) -> str:
    """Format a millisecond duration as '8h 30m'; None -> '-'."""
    if ms is None:
        return "-"
    minutes = int(ms // 60_000)
    return f"{minutes // 60}h {minutes % 60:02d}m"


def _health_bar(current: float, total: float, width: int = 20) -> str:
    """Render a health bar as text: [████████░░░░░░░░░░░░]."""
    if total <= 0:
        return "[" + "█" * width + "]"
    ratio = max(0.0, min(current / total, 1.0))
    filled = int(ratio * width)
    empty = width - filled
    return "[" + "█" * filled + "░" * empty + "]"


def _check(done: bool) -> str:
    return "✅" if done else "⬜"


def print_status(data: dict) -> None:
    """Print the main status panel: health, skill, coins, today and this week."""
    health = data.get("health", 0.0)
    trigger = data.get("level_trigger", 98)
    color = health_color(health)
    today = data.get("today", {})
    week = data.get("week", {})
    streaks = data.get("streaks", {})

    lines: list[str] = []
    lines.append("")
    lines.append(f"  [bold]Skill Level {data.get('skill_level', 0)}[/]  |  \U0001fa99 Coins: {data.get('coins', 0)}")
    bar = _health_bar(health, trigger)
    lines.append(f"  [{color}]{bar}[/] {health:.1f}/{trigger:g} health")
    lines.append(f"  {data.get('points_to_next', 0):.1f} points to next level")

    lines.append("")
    lines.append(f"  [bold]Today ({data.get('day_key', '')}):[/]")
    lines.append(
        f"  {_check(today.get('morning_prayer', False))} Morning prayer  "
        f"{_check(today.get('evening_prayer', False))} Evening prayer  "
        f"{_check(today.get('scripture', False))} Scripture"
    )
    lines.append(
        f"  \U0001f91d Service/kindness: {today.get('kindness_count', 0)}/{data.get('max_daily_services', 5)}"
    )

    lines.append("")
    lines.append(f"  [bold]This week ({data.get('week_key', '')}):[/]")
    lines.append(
        f"  {_check(week.get('church', False))} Church  "
        f"{_check(week.get('mutual', False))} Mutual  "
        f"{_check(week.get('temple', False))} Temple"
    )

    lines.append("")
    lines.append(
        f"  \U0001f525 Streaks: morning {streaks.get('morning_prayer', 0)}  |  "
        f"evening {streaks.get('evening_prayer', 0)}  |  scripture {streaks.get('scripture', 0)}"
    )
    sleep_line = "  \U0001f319 Sleep: "
    if data.get("sleeping_since"):
        sleep_line += f"asleep since {data['sleeping_since']}"
    else:
        sleep_line += f"last {format_hours(data.get('last_sleep_ms'))}"
    lines.append(sleep_line)

    badges = data.get("badges", [])
    lines.append(f"  \U0001f3c5 Badges: {len(badges)}" + (f" ({', '.join(badges)})" if badges else ""))
    lines.append("")

    panel = Panel(
        "\n".join(lines),
        title="[bold]DISCIPLESHIP STATS[/]",
        box=box.ROUNDED,
        border_style=color,
        width=60,
    )
    console.print(panel)


def print_events(events: list[Event]) -> None:
    """Print toasts for level-ups and new badges."""
    for event in events:
        icon = "\U0001f3c5" if event.kind is EventKind.BADGE_EARNED else "⭐"
        console.print(f"[bold gold1]{icon} {event.message}[/]")


def print_dispatch_result(result: dict) -> None:
    """Print the outcome of a single logged action."""
    if result.get("applied"):
        console.print(f"[green]✔ {result.get('label', 'Done')}[/]")
    else:
        console.print(f"[yellow]{result.get('reason', 'Already logged for this period.')}[/]")


def print_week_table(rows: list[dict]) -> None:
    """Print a per-day table of completion flags."""
    table = Table(
        title="Recent Days",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold",
    )
    table.add_column("Day", style="bold")
    table.add_column("Morning", justify="center")
    table.add_column("Evening", justify="center")
    table.add_column("Scripture", justify="center")
    table.add_column("Service", justify="right")
    for row in rows:
        table.add_row(
            row["day_key"],
            _check(row["morning_prayer"]),
            _check(row["evening_prayer"]),
            _check(row["scripture"]),
            str(row["kindness_count"]),
        )
    console.print(table)


def print_config_result(result: dict) -> None:
    """Print the settings after a config change."""
    console.print("[bold green]Settings saved.[/]")
    console.print(f"  Timezone: [bold]{result.get('timezone')}[/]")
    console.print(f"  User id: [bold]{result.get('user_id') or '(not set)'}[/]")
    console.print(f"  Sync dir: [bold]{result.get('sync_dir') or '(not set)'}[/]")


def print_reset_result() -> None:
    console.print("[bold red]All stats reset to defaults.[/]")
