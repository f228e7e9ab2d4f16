"""UI-facing events derived by diffing two states."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from discipleship_stats.state import StatsState


class EventKind(str, Enum):
    BADGE_EARNED = "badge_earned"
    LEVEL_UP = "level_up"


EVENT_MESSAGES: dict[EventKind, str] = {
    EventKind.BADGE_EARNED: "A rare badge has been bestowed!",
    EventKind.LEVEL_UP: "Your mastery deepens!",
}


@dataclass(frozen=True)
class Event:
    kind: EventKind
    message: str


def diff_events(previous: StatsState | None, current: StatsState) -> list[Event]:
    """Compare previous and current state, return the events worth a toast.

    Observational only. No previous state (first run) means no events.
    """
    if previous is None:
        return []
    events: list[Event] = []
    if len(current.badges) > len(previous.badges):
        events.append(Event(EventKind.BADGE_EARNED, EVENT_MESSAGES[EventKind.BADGE_EARNED]))
    if current.skill_level > previous.skill_level:
        events.append(Event(EventKind.LEVEL_UP, EVENT_MESSAGES[EventKind.LEVEL_UP]))
    return events
