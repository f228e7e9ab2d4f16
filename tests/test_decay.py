"""Tests for active-window overlap and health decay."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from discipleship_stats.config import EngineConfig
from discipleship_stats.decay import (
    MS_PER_HOUR,
    active_overlap_ms,
    apply_decay,
    decay_amount,
)
from discipleship_stats.state import new_state


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestActiveOverlap:
    def test_full_day_counts_only_window(self):
        start = _utc(2026, 1, 5, 8, 0)
        end = _utc(2026, 1, 6, 8, 0)
        assert active_overlap_ms(start, end) == int(14.5 * MS_PER_HOUR)

    def test_end_before_start_is_zero(self):
        assert active_overlap_ms(_utc(2026, 1, 5, 12, 0), _utc(2026, 1, 5, 10, 0)) == 0

    def test_equal_bounds_is_zero(self):
        ts = _utc(2026, 1, 5, 12, 0)
        assert active_overlap_ms(ts, ts) == 0

    def test_night_only_is_zero(self):
        assert active_overlap_ms(_utc(2026, 1, 5, 22, 0), _utc(2026, 1, 6, 5, 0)) == 0

    def test_inside_window(self):
        assert active_overlap_ms(_utc(2026, 1, 5, 10, 0), _utc(2026, 1, 5, 12, 0)) == 2 * MS_PER_HOUR

    def test_clips_window_edges(self):
        # 06:00-07:00 only overlaps 06:30-07:00; 20:30-22:00 only 20:30-21:00
        assert active_overlap_ms(_utc(2026, 1, 5, 6, 0), _utc(2026, 1, 5, 7, 0)) == MS_PER_HOUR // 2
        assert active_overlap_ms(_utc(2026, 1, 5, 20, 30), _utc(2026, 1, 5, 22, 0)) == MS_PER_HOUR // 2

    def test_spans_several_days(self):
        start = _utc(2026, 1, 1, 6, 30)
        end = _utc(2026, 1, 3, 6, 30)
        assert active_overlap_ms(start, end) == int(2 * 14.5 * MS_PER_HOUR)

    def test_local_timezone_window(self):
        config = EngineConfig(timezone="America/Denver")
        # 08:00 Denver (UTC-7) to 08:00 the next day
        start = _utc(2026, 1, 5, 15, 0)
        end = _utc(2026, 1, 6, 15, 0)
        assert active_overlap_ms(start, end, config) == int(14.5 * MS_PER_HOUR)

    def test_local_window_differs_from_utc(self):
        config = EngineConfig(timezone="America/Denver")
        # 04:00-05:00 UTC is 21:00-22:00 Denver: outside the local window
        start = _utc(2026, 1, 6, 4, 0)
        end = _utc(2026, 1, 6, 5, 0)
        assert active_overlap_ms(start, end, config) == 0


class TestDecayAmount:
    def test_twenty_nine_hours_drain_fifty(self):
        assert decay_amount(29 * MS_PER_HOUR) == pytest.approx(50.0)

    def test_zero(self):
        assert decay_amount(0) == 0


class TestApplyDecay:
    def test_drains_health_over_active_time(self):
        state = new_state(_utc(2026, 1, 5, 6, 30))
        decayed = apply_decay(state, _utc(2026, 1, 5, 21, 0))
        # 14.5 active hours * 50/29 = 25
        assert decayed.health == pytest.approx(25.0)

    def test_no_change_outside_window(self):
        state = new_state(_utc(2026, 1, 5, 22, 0))
        decayed = apply_decay(state, _utc(2026, 1, 6, 5, 0))
        assert decayed is state

    def test_does_not_move_high_water_mark(self):
        start = _utc(2026, 1, 5, 8, 0)
        state = new_state(start)
        decayed = apply_decay(state, start + timedelta(hours=2))
        assert decayed.last_evaluated_at == start

    def test_burnout_resets_health_and_drops_level(self):
        state = replace(new_state(_utc(2026, 1, 5, 6, 30)), health=10.0, skill_level=3, coins=40)
        decayed = apply_decay(state, _utc(2026, 1, 5, 21, 0))
        assert decayed.health == 50.0
        assert decayed.skill_level == 2
        assert decayed.coins == 40

    def test_burnout_never_below_zero_level(self):
        state = replace(new_state(_utc(2026, 1, 5, 6, 30)), health=1.0, skill_level=0)
        decayed = apply_decay(state, _utc(2026, 1, 5, 21, 0))
        assert decayed.health == 50.0
        assert decayed.skill_level == 0

    def test_input_not_mutated(self):
        state = new_state(_utc(2026, 1, 5, 8, 0))
        apply_decay(state, _utc(2026, 1, 5, 12, 0))
        assert state.health == 50.0
