"""Tests for the MCP server tool functions."""
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from discipleship_stats.db import Database
from discipleship_stats.mcp_server import get_stats, get_today, log_activity

T0 = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def isolated(tmp_path):
    """Point the server at a temporary database and config file, frozen at T0."""
    with patch(
        "discipleship_stats.mcp_server._get_db",
        side_effect=lambda: Database(db_path=tmp_path / "mcp.db"),
    ), patch(
        "discipleship_stats.config.DEFAULT_CONFIG_PATH", tmp_path / "config.json"
    ), patch(
        "discipleship_stats.mcp_server._now", return_value=T0
    ):
        yield tmp_path


class TestGetStats:
    def test_fresh_defaults(self, isolated):
        result = get_stats()
        assert result["health"] == 50.0
        assert result["skill_level"] == 0
        assert result["coins"] == 30
        assert result["badges"] == []

    def test_reflects_logged_activity(self, isolated):
        log_activity("scripture")
        result = get_stats()
        assert result["health"] == pytest.approx(58, abs=0.1)
        assert result["today"]["scripture"] is True
        assert result["streaks"]["scripture"] == 1


class TestGetToday:
    def test_structure(self, isolated):
        result = get_today()
        assert set(result) == {"day_key", "week_key", "today", "week"}
        assert result["day_key"] == "2026-01-05"
        assert result["week"] == {"church": False, "mutual": False, "temple": False}


class TestLogActivity:
    def test_applies(self, isolated):
        result = log_activity("temple")
        assert result["applied"] is True
        assert result["health"] == 65.0
        assert result["events"] == []

    def test_repeat_not_applied(self, isolated):
        log_activity("temple")
        assert log_activity("temple")["applied"] is False

    def test_unknown_returns_error(self, isolated):
        result = log_activity("jogging")
        assert "error" in result
        assert "morning_prayer" in result["error"]

    def test_level_up_events(self, isolated):
        for name in ("morning_prayer", "evening_prayer", "scripture", "temple", "church", "mutual"):
            result = log_activity(name)
        assert result["skill_level"] == 1
        messages = [e["message"] for e in result["events"]]
        assert messages == ["Your mastery deepens!"]
