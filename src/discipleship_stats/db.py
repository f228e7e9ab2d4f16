"""SQLite persistence for the stats blob."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from discipleship_stats.state import (
    ENGINE_VERSION,
    StateFormatError,
    StatsState,
    from_epoch_ms,
    to_epoch_ms,
)

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path.home() / ".dt-stats" / "data.db"
STORAGE_KEY = "dt.stats.v9"


class Database:
    """SQLite database manager with WAL mode."""

    def __init__(self, db_path: Path | None = None) -> None:
        self.db_path = db_path or DEFAULT_DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.init_db()

    def init_db(self) -> None:
        """Create tables if they do not exist."""
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT
            );
        """)
        self.conn.commit()

    def get_value(self, key: str) -> str | None:
        """Get a stored value by key."""
        row = self.conn.execute(
            "SELECT value FROM kv_store WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def set_value(self, key: str, value: str) -> None:
        """Set a stored value (upsert)."""
        self.conn.execute(
            "INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at",
            (key, value, datetime.now(tz=timezone.utc).isoformat()),
        )
        self.conn.commit()

    def delete_value(self, key: str) -> None:
        self.conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        self.conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()


class StatsStore:
    """Loads and saves the stats blob under a fixed storage key."""

    def __init__(self, db: Database, key: str = STORAGE_KEY, expected_version: int = ENGINE_VERSION) -> None:
        self.db = db
        self.key = key
        self.expected_version = expected_version

    def load_state(self) -> StatsState | None:
        """Return the stored state, or None when absent or untrustworthy.

        A blob that fails to parse or carries another engine version is
        discarded (logged, not raised) so the caller rebuilds defaults.
        """
        raw = self.db.get_value(self.key)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding unparsable stats blob under %s", self.key)
            return None
        try:
            return StatsState.from_dict(data, expected_version=self.expected_version)
        except StateFormatError as exc:
            logger.warning("Discarding stats blob under %s: %s", self.key, exc)
            return None

    def save_state(self, state: StatsState) -> None:
        self.db.set_value(self.key, json.dumps(state.to_dict(), sort_keys=True))

    def clear(self) -> None:
        self.db.delete_value(self.key)


UPLOAD_MARKER_PREFIX = "dt.stats.lastUpload."


class UploadMarkerStore:
    """Remembers the last snapshot uploaded per user, and when."""

    def __init__(self, db: Database, prefix: str = UPLOAD_MARKER_PREFIX) -> None:
        self.db = db
        self.prefix = prefix

    def load(self, user_id: str) -> tuple[datetime, dict | None] | None:
        """Return (uploaded_at, snapshot), or None when nothing usable is stored."""
        raw = self.db.get_value(self.prefix + user_id)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            uploaded_at = from_epoch_ms(data["uploadedAt"])
            snapshot = data["snapshot"]
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, OverflowError, OSError):
            logger.warning("Ignoring unreadable upload marker for %s", user_id)
            return None
        if snapshot is not None and not isinstance(snapshot, dict):
            logger.warning("Ignoring unreadable upload marker for %s", user_id)
            return None
        return uploaded_at, snapshot

    def save(self, user_id: str, uploaded_at: datetime, snapshot: dict | None) -> None:
        payload = {"uploadedAt": to_epoch_ms(uploaded_at), "snapshot": snapshot}
        self.db.set_value(self.prefix + user_id, json.dumps(payload, sort_keys=True))
