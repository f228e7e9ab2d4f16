"""Activity names to engine actions.

Server-driven activity logs arrive as plain names ("morning_prayer",
"church", "sleep_end", ...). The bridge is handed the session it dispatches
into; it holds no global state.
"""

from __future__ import annotations

import logging
from datetime import datetime

from discipleship_stats.engine import Action, WeeklyKind
from discipleship_stats.session import DispatchOutcome, StatsSession

logger = logging.getLogger(__name__)

ACTIVITY_ACTIONS: dict[str, Action] = {
    "morning_prayer": Action.log_morning_prayer(),
    "evening_prayer": Action.log_evening_prayer(),
    "scripture": Action.log_scripture(),
    "service": Action.log_service(),
    "kindness": Action.log_kindness(),
    "church": Action.log_weekly(WeeklyKind.CHURCH),
    "mutual": Action.log_weekly(WeeklyKind.MUTUAL),
    "temple": Action.log_weekly(WeeklyKind.TEMPLE),
    "sleep_start": Action.start_sleep(),
    "sleep_end": Action.end_sleep(),
}

ACTIVITY_NAMES: list[str] = list(ACTIVITY_ACTIONS)


def action_for_activity(activity: str) -> Action | None:
    """Return the action for an activity name, or None if unknown.

    Names are matched case-insensitively; dashes and underscores are equivalent.
    """
    return ACTIVITY_ACTIONS.get(activity.strip().lower().replace("-", "_"))


class ActivityBridge:
    """Dispatches named activities into an explicit session."""

    def __init__(self, session: StatsSession) -> None:
        self.session = session

    def apply_activity_reward(self, activity: str, now: datetime) -> DispatchOutcome | None:
        action = action_for_activity(activity)
        if action is None:
            logger.warning("Unknown activity type: %s", activity)
            return None
        return self.session.dispatch(action, now)
