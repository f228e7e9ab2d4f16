"""A stats session: the single writer of one user's state.

Owns the current state, serializes dispatches, persists after every
mutation, reports events to subscribers and hands changed snapshots to the
uploader.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from discipleship_stats.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from discipleship_stats.db import StatsStore
from discipleship_stats.engine import Action, reduce
from discipleship_stats.events import Event, diff_events
from discipleship_stats.state import StatsState, new_state
from discipleship_stats.sync import SnapshotUploader

logger = logging.getLogger(__name__)

EventListener = Callable[[Event], None]


@dataclass
class DispatchOutcome:
    state: StatsState
    applied: bool
    events: list[Event] = field(default_factory=list)


class StatsSession:
    """Load-dispatch-save loop around the pure engine."""

    def __init__(
        self,
        store: StatsStore,
        config: EngineConfig = DEFAULT_ENGINE_CONFIG,
        uploader: SnapshotUploader | None = None,
        user_id: str | None = None,
    ) -> None:
        self.store = store
        self.config = config
        self.uploader = uploader
        self.user_id = user_id
        self._state: StatsState | None = None
        self._listeners: list[EventListener] = []
        self._lock = threading.Lock()

    @property
    def state(self) -> StatsState:
        if self._state is None:
            raise RuntimeError("Session not opened; call open(now) first")
        return self._state

    def open(self, now: datetime) -> StatsState:
        """Load the stored state, or build and save fresh defaults."""
        with self._lock:
            state = self.store.load_state()
            if state is None:
                logger.info("No usable stats state stored, starting fresh")
                state = new_state(now, self.config)
                self.store.save_state(state)
            self._state = state
            return state

    def subscribe(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def dispatch(self, action: Action, now: datetime) -> DispatchOutcome:
        """Run one action through the engine; never interleaves with another."""
        with self._lock:
            previous = self.state
            result = reduce(previous, action, now, self.config)
            self._state = result.state
            self.store.save_state(result.state)
            events = diff_events(previous, result.state)
            if self.uploader is not None:
                self.uploader.maybe_upload(self.user_id, result.state, now)

        for event in events:
            for listener in self._listeners:
                listener(event)
        return DispatchOutcome(state=result.state, applied=result.applied, events=events)
