"""Tests for the action reducer."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from discipleship_stats.decay import MS_PER_HOUR
from discipleship_stats.engine import (
    Action,
    ActionType,
    EngineInvariantError,
    WeeklyKind,
    advance_time,
    dispatch,
    reduce,
    weekly_points,
)
from discipleship_stats.state import SleepState, new_state

# Monday 2026-01-05, noon UTC
T0 = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestScenario:
    def test_full_progression_walkthrough(self):
        s = new_state(T0)
        assert (s.health, s.coins, s.skill_level) == (50.0, 30, 0)

        s = dispatch(s, Action.log_morning_prayer(), T0)
        assert s.health == 56.0
        s = dispatch(s, Action.log_evening_prayer(), T0)
        assert s.health == 62.0
        s = dispatch(s, Action.log_scripture(), T0)
        assert s.health == 70.0
        s = dispatch(s, Action.log_weekly(WeeklyKind.TEMPLE), T0)
        assert s.health == 85.0
        s = dispatch(s, Action.log_weekly(WeeklyKind.CHURCH), T0)
        assert s.health == 97.0
        assert s.skill_level == 0

        s = dispatch(s, Action.grant_badge("x"), T0)
        assert s.skill_level == 1
        assert s.coins == 45
        assert s.health == 4.0
        assert s.badges == ["x"]


class TestDailyActions:
    def test_scripture_is_idempotent_within_day(self):
        once = dispatch(new_state(T0), Action.log_scripture(), T0)
        twice = reduce(once, Action.log_scripture(), T0)
        assert twice.applied is False
        assert twice.state.to_dict() == once.to_dict()

    def test_repeat_later_same_day_only_moves_clock(self):
        once = dispatch(new_state(T0), Action.log_morning_prayer(), T0)
        later = T0 + timedelta(hours=2)
        again = reduce(once, Action.log_morning_prayer(), later)
        assert again.applied is False
        assert again.state.streaks.morning_prayer == 1
        assert again.state.last_evaluated_at == later

    def test_streak_increments_once_per_day(self):
        s = new_state(T0)
        for _ in range(3):
            s = dispatch(s, Action.log_evening_prayer(), T0)
        assert s.streaks.evening_prayer == 1

    def test_next_day_allows_again(self):
        s = dispatch(new_state(T0), Action.log_morning_prayer(), T0)
        result = reduce(s, Action.log_morning_prayer(), T0 + timedelta(days=1))
        assert result.applied is True
        assert result.state.streaks.morning_prayer == 2
        assert result.state.by_day["2026-01-06"].morning_prayer is True

    def test_flags_recorded_under_day_key(self):
        s = dispatch(new_state(T0), Action.log_scripture(), T0)
        assert s.by_day["2026-01-05"].scripture is True


class TestServiceAndKindness:
    def test_capped_at_five_per_day(self):
        s = new_state(T0)
        results = []
        for _ in range(6):
            r = reduce(s, Action.log_service(), T0)
            results.append(r.applied)
            s = r.state
        assert results == [True] * 5 + [False]
        assert s.by_day["2026-01-05"].kindness_count == 5
        assert s.health == 65.0

    def test_kindness_shares_service_counter(self):
        s = new_state(T0)
        for _ in range(3):
            s = dispatch(s, Action.log_service(), T0)
        for _ in range(3):
            s = dispatch(s, Action.log_kindness(), T0)
        assert s.by_day["2026-01-05"].kindness_count == 5


class TestWeeklyActions:
    def test_once_per_week(self):
        s = dispatch(new_state(T0), Action.log_weekly("church"), T0)
        again = reduce(s, Action.log_weekly("church"), T0 + timedelta(days=3))
        assert again.applied is False

    def test_next_week_allowed(self):
        s = dispatch(new_state(T0), Action.log_weekly("mutual"), T0)
        later = reduce(s, Action.log_weekly("mutual"), T0 + timedelta(days=7))
        assert later.applied is True

    def test_kinds_independent(self):
        s = new_state(T0)
        for kind in WeeklyKind:
            s = dispatch(s, Action.log_weekly(kind), T0)
        week = s.by_week["2026-W02"]
        assert (week.church, week.mutual, week.temple) == (True, True, True)

    def test_points_per_kind(self):
        assert weekly_points(WeeklyKind.CHURCH) == 12
        assert weekly_points(WeeklyKind.MUTUAL) == 10
        assert weekly_points(WeeklyKind.TEMPLE) == 15

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError):
            Action.log_weekly("bowling")

    def test_missing_kind_rejected(self):
        with pytest.raises(ValueError):
            reduce(new_state(T0), Action(ActionType.LOG_WEEKLY), T0)


class TestBadgesAndCoins:
    def test_duplicate_badge_is_noop(self):
        s = dispatch(new_state(T0), Action.grant_badge("faith"), T0)
        again = reduce(s, Action.grant_badge("faith"), T0)
        assert again.applied is False
        assert again.state.badges == ["faith"]
        assert again.state.health == 55.0

    def test_spend_coins(self):
        result = reduce(new_state(T0), Action.spend_coins(10), T0)
        assert result.applied is True
        assert result.state.coins == 20

    def test_spend_exact_balance(self):
        assert dispatch(new_state(T0), Action.spend_coins(30), T0).coins == 0

    def test_insufficient_coins_silently_ignored(self):
        result = reduce(new_state(T0), Action.spend_coins(31), T0)
        assert result.applied is False
        assert result.state.coins == 30

    @pytest.mark.parametrize("amount", [0, -5])
    def test_non_positive_spend_ignored(self, amount):
        result = reduce(new_state(T0), Action.spend_coins(amount), T0)
        assert result.applied is False
        assert result.state.coins == 30


class TestSleepActions:
    def test_start_sleep(self):
        night = _utc(2026, 1, 5, 22, 0)
        s = dispatch(new_state(T0), Action.start_sleep(), night)
        assert s.sleep.current_start == night

    def test_second_start_is_noop(self):
        night = _utc(2026, 1, 5, 22, 0)
        s = dispatch(new_state(T0), Action.start_sleep(), night)
        again = reduce(s, Action.start_sleep(), night + timedelta(minutes=30))
        assert again.applied is False
        assert again.state.sleep.current_start == night

    def test_end_without_session_is_noop(self):
        assert reduce(new_state(T0), Action.end_sleep(), T0).applied is False

    def test_explicit_end(self):
        s = dispatch(new_state(T0), Action.start_sleep(), _utc(2026, 1, 5, 23, 0))
        result = reduce(s, Action.end_sleep(), _utc(2026, 1, 6, 6, 0))
        assert result.applied is True
        assert result.state.sleep.current_start is None
        assert result.state.sleep.last_session_duration_ms == 7 * MS_PER_HOUR

    def test_end_after_cutoff_already_resolved(self):
        s = dispatch(new_state(T0), Action.start_sleep(), _utc(2026, 1, 5, 22, 0))
        result = reduce(s, Action.end_sleep(), _utc(2026, 1, 6, 8, 0))
        assert result.applied is False
        assert result.state.sleep.current_start is None
        assert result.state.sleep.last_session_duration_ms == int(8.5 * MS_PER_HOUR)

    def test_any_dispatch_resolves_overdue_session(self):
        s = dispatch(new_state(T0), Action.start_sleep(), _utc(2026, 1, 5, 22, 0))
        s = dispatch(s, Action.log_morning_prayer(), _utc(2026, 1, 6, 6, 45))
        assert s.sleep.current_start is None
        assert s.sleep.last_session_day_key == "2026-01-06"


class TestResetAll:
    def test_replaces_everything(self):
        s = new_state(T0)
        s = dispatch(s, Action.grant_badge("x"), T0)
        s = dispatch(s, Action.log_scripture(), T0)
        later = T0 + timedelta(days=2)
        reset = reduce(s, Action.reset_all(), later)
        assert reset.applied is True
        assert reset.state.to_dict() == new_state(later).to_dict()


class TestAdvanceTime:
    def test_updates_mark_without_active_time(self):
        s = new_state(_utc(2026, 1, 5, 22, 0))
        later = _utc(2026, 1, 5, 23, 0)
        advanced = advance_time(s, later)
        assert advanced.last_evaluated_at == later
        assert advanced.health == 50.0

    def test_clock_skew_is_noop(self):
        s = new_state(T0)
        assert advance_time(s, T0 - timedelta(hours=3)) is s

    def test_skewed_dispatch_keeps_high_water_mark(self):
        s = dispatch(new_state(T0), Action.log_scripture(), T0 + timedelta(hours=1))
        skewed = dispatch(s, Action.log_service(), T0)
        assert skewed.last_evaluated_at == T0 + timedelta(hours=1)
        assert skewed.health >= s.health

    def test_decay_between_actions(self):
        s = dispatch(new_state(_utc(2026, 1, 5, 8, 0)), Action.log_morning_prayer(), _utc(2026, 1, 5, 8, 0))
        s = dispatch(s, Action.log_scripture(), _utc(2026, 1, 5, 10, 0))
        assert s.health == pytest.approx(56 - 2 * 50 / 29 + 8)

    def test_sleep_resolves_before_decay(self):
        s = dispatch(new_state(T0), Action.start_sleep(), _utc(2026, 1, 5, 22, 0))
        advanced = advance_time(s, _utc(2026, 1, 6, 8, 0))
        # 9 active hours before bed, +8 at the 06:30 cutoff, then 06:30-08:00
        expected = 50 - 9 * 50 / 29 + 8 - 1.5 * 50 / 29
        assert advanced.health == pytest.approx(expected)


class TestPurity:
    def test_input_state_not_mutated(self):
        s = new_state(T0)
        before = s.to_dict()
        dispatch(s, Action.log_morning_prayer(), T0 + timedelta(hours=1))
        dispatch(s, Action.grant_badge("b"), T0)
        dispatch(s, Action.start_sleep(), T0)
        assert s.to_dict() == before

    def test_broken_state_raises_invariant_error(self):
        broken = replace(new_state(T0), coins=-1)
        with pytest.raises(EngineInvariantError):
            reduce(broken, Action.spend_coins(5), T0)

    def test_sleep_state_not_shared(self):
        s = replace(new_state(T0), sleep=SleepState())
        after = dispatch(s, Action.start_sleep(), T0)
        assert s.sleep.current_start is None
        assert after.sleep.current_start == T0
