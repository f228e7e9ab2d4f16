"""Snapshot upload for discipleship-stats.

A sink writes one snapshot file per user into a shared directory; the
uploader in front of it throttles uploads and skips snapshots identical to
the last one it sent.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

from discipleship_stats.db import UploadMarkerStore
from discipleship_stats.state import StatsState, ensure_aware

logger = logging.getLogger(__name__)

SNAPSHOT_SCHEMA_VERSION = 1
SNAPSHOT_FILE_SUFFIX = ".snapshot.json"
DEFAULT_MIN_INTERVAL = timedelta(seconds=15)

UploadFn = Callable[[str, dict], None]


def build_payload(user_id: str, snapshot: dict, uploaded_at: datetime | None = None) -> dict:
    """Wrap a state snapshot with its owner and upload time.

    Raises ValueError if user_id is empty.
    """
    if not user_id:
        raise ValueError("No user id configured. Run: dt-stats config --user <id>")
    stamp = uploaded_at or datetime.now(tz=timezone.utc)
    return {
        "schema_version": SNAPSHOT_SCHEMA_VERSION,
        "user_id": user_id,
        "snapshot": snapshot,
        "uploaded_at": ensure_aware(stamp).isoformat(),
    }


def write_snapshot(payload: dict, output_path: Path) -> None:
    """Write a snapshot payload JSON to output_path using atomic write."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_fd, tmp_path = tempfile.mkstemp(dir=output_path.parent, suffix=".tmp")
    try:
        with os.fdopen(tmp_fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
            f.write("\n")
        os.replace(tmp_path, output_path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def read_snapshot(path: Path) -> dict | None:
    """Read and validate one .snapshot.json file.

    Returns None if file is missing, unreadable, or fails validation.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return None
    if not isinstance(data, dict):
        return None
    if data.get("schema_version") != SNAPSHOT_SCHEMA_VERSION:
        return None
    if "user_id" not in data or not isinstance(data.get("snapshot"), dict):
        return None
    return data


def snapshot_path(user_id: str, directory: Path) -> Path:
    """Return the canonical path: {directory}/{user_id}.snapshot.json"""
    return directory / f"{user_id}{SNAPSHOT_FILE_SUFFIX}"


class DirectorySnapshotSink:
    """Upload target that drops snapshots into a shared directory."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def __call__(self, user_id: str, snapshot: dict) -> None:
        write_snapshot(build_payload(user_id, snapshot), snapshot_path(user_id, self.directory))


class SnapshotUploader:
    """Best-effort, throttled, deduplicated snapshot uploads.

    With a marker store the last upload time and snapshot are shared by
    every uploader built on the same database, so the throttle and dedup
    hold across separate CLI runs and MCP tool calls.
    """

    def __init__(
        self,
        upload: UploadFn,
        min_interval: timedelta = DEFAULT_MIN_INTERVAL,
        markers: UploadMarkerStore | None = None,
    ) -> None:
        self.upload = upload
        self.min_interval = min_interval
        self.markers = markers
        self.last_upload_at: datetime | None = None
        self.last_snapshot: dict | None = None

    def _recall(self, user_id: str) -> None:
        if self.markers is None:
            return
        marker = self.markers.load(user_id)
        if marker is not None:
            self.last_upload_at, self.last_snapshot = marker

    def _remember(self, user_id: str) -> None:
        if self.markers is not None:
            self.markers.save(user_id, self.last_upload_at, self.last_snapshot)

    def maybe_upload(self, user_id: str | None, state: StatsState, now: datetime) -> bool:
        """Upload state if it changed and the throttle window has passed.

        Returns True when an upload happened. Failures are logged and
        reported as False; they never reach the caller.
        """
        if not user_id:
            return False
        self._recall(user_id)
        now = ensure_aware(now)
        if self.last_upload_at is not None and now - self.last_upload_at < self.min_interval:
            return False
        snapshot = state.to_dict()
        if snapshot == self.last_snapshot:
            return False

        self.last_upload_at = now
        try:
            self.upload(user_id, snapshot)
        except (OSError, ValueError) as exc:
            logger.warning("Snapshot upload for %s failed: %s", user_id, exc)
            self._remember(user_id)
            return False
        self.last_snapshot = snapshot
        self._remember(user_id)
        return True
