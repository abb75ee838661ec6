"""Insight repositories: feedback log and seen store on SQLite.

The feedback log is the data source for the engine's suppression policy;
the seen store is a separate display-frequency window kept by the caller.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from typing import Any, TypeVar

from reclaim.core.insights.models import Match
from reclaim.core.insights.suppression import (
    LatestFeedbackIndex,
    as_utc,
    build_feedback_index_from_rows,
    parse_timestamp,
)
from reclaim.core.storage.database import InsightDatabase
from reclaim.core.storage.models import SeenEntry, StoredFeedback

logger = logging.getLogger(__name__)

DEFAULT_USER_ID = "anon"
DEFAULT_SEEN_TTL = timedelta(hours=24)

T = TypeVar("T", bound=Match)


class RepositoryError(Exception):
    """Raised when repository operations fail."""


def _iso(value: datetime) -> str:
    # Fixed-width UTC so stored timestamps sort lexically.
    return as_utc(value).strftime("%Y-%m-%dT%H:%M:%S.%f+00:00")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _user(user_id: str | None) -> str:
    return (user_id or "").strip() or DEFAULT_USER_ID


class FeedbackRepository:
    """Append-only log of insight feedback.

    Usage::

        repo = FeedbackRepository(db)
        repo.log_feedback("dopamine-dip", helpful=False, reason="not_relevant_now")
        index = repo.feedback_index()
    """

    def __init__(self, database: InsightDatabase, user_id: str = DEFAULT_USER_ID) -> None:
        self._db = database
        self._user_id = _user(user_id)

    def log_feedback(
        self,
        insight_id: str,
        helpful: bool,
        *,
        reason: str | None = None,
        source_tag: str | None = None,
        match_payload: dict[str, Any] | None = None,
        app_version: str | None = None,
        created_at: datetime | None = None,
    ) -> str:
        """Record feedback for an insight and return the row id.

        Raises:
            RepositoryError: If ``insight_id`` is empty.
        """
        insight_id = (insight_id or "").strip()
        if not insight_id:
            raise RepositoryError("log_feedback: insight_id is required")

        row_id = str(uuid.uuid4())
        conn = self._db.connection
        conn.execute(
            """INSERT INTO insight_feedback
               (id, user_id, created_at, insight_id, source_tag, helpful,
                reason, match_payload_json, app_version)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                row_id,
                self._user_id,
                _iso(created_at or _now()),
                insight_id,
                source_tag,
                1 if helpful else 0,
                (reason or "").strip() or None,
                json.dumps(match_payload, separators=(",", ":")) if match_payload else None,
                app_version,
            ),
        )
        conn.commit()
        logger.info("Logged feedback %s for insight %s (helpful=%s)", row_id, insight_id, helpful)
        return row_id

    def update_reason(self, feedback_id: str, reason: str | None) -> None:
        """Attach or change the reason on an existing feedback row.

        Raises:
            RepositoryError: If no row with ``feedback_id`` exists for this user.
        """
        conn = self._db.connection
        cursor = conn.execute(
            "UPDATE insight_feedback SET reason = ? WHERE id = ? AND user_id = ?",
            ((reason or "").strip() or None, feedback_id, self._user_id),
        )
        conn.commit()
        if cursor.rowcount == 0:
            raise RepositoryError(f"Feedback row not found: {feedback_id}")

    def list_feedback(self, limit: int = 250) -> list[StoredFeedback]:
        """Return this user's feedback rows, newest first."""
        rows = self._db.connection.execute(
            """SELECT * FROM insight_feedback WHERE user_id = ?
               ORDER BY created_at DESC, rowid DESC LIMIT ?""",
            (self._user_id, limit),
        ).fetchall()
        return [self._row_to_feedback(r) for r in rows]

    def feedback_index(self, limit: int = 250) -> LatestFeedbackIndex | None:
        """FeedbackIndex for the engine, or None when there is no feedback."""
        return build_feedback_index_from_rows(fb.as_row() for fb in self.list_feedback(limit))

    @staticmethod
    def _row_to_feedback(row: sqlite3.Row) -> StoredFeedback:
        payload = json.loads(row["match_payload_json"]) if row["match_payload_json"] else {}
        return StoredFeedback(
            id=row["id"],
            user_id=row["user_id"],
            created_at=row["created_at"],
            insight_id=row["insight_id"],
            helpful=bool(row["helpful"]),
            reason=row["reason"],
            source_tag=row["source_tag"],
            match_payload=payload,
            app_version=row["app_version"],
        )


class SeenRepository:
    """Per-(user, screen, insight) last-shown timestamps with a TTL.

    Reads fail open: a storage error means "not seen".
    """

    def __init__(self, database: InsightDatabase, ttl: timedelta = DEFAULT_SEEN_TTL) -> None:
        self._db = database
        self._ttl = ttl

    def mark_seen(
        self,
        screen: str,
        insight_id: str,
        *,
        user_id: str | None = None,
        ts: datetime | None = None,
    ) -> None:
        """Record that an insight was shown, then prune expired entries."""
        ts = ts or _now()
        conn = self._db.connection
        conn.execute(
            """INSERT INTO insight_seen (user_id, screen, insight_id, seen_at)
               VALUES (?, ?, ?, ?)
               ON CONFLICT(user_id, screen, insight_id) DO UPDATE SET seen_at = excluded.seen_at""",
            (_user(user_id), screen, insight_id, _iso(ts)),
        )
        conn.commit()
        self.prune(ts)

    def get_entry(self, screen: str, insight_id: str, *, user_id: str | None = None) -> SeenEntry | None:
        row = self._db.connection.execute(
            "SELECT * FROM insight_seen WHERE user_id = ? AND screen = ? AND insight_id = ?",
            (_user(user_id), screen, insight_id),
        ).fetchone()
        if row is None:
            return None
        return SeenEntry(
            user_id=row["user_id"],
            screen=row["screen"],
            insight_id=row["insight_id"],
            seen_at=row["seen_at"],
        )

    def was_seen_recently(
        self,
        screen: str,
        insight_id: str,
        now: datetime,
        *,
        user_id: str | None = None,
        ttl: timedelta | None = None,
    ) -> bool:
        """True iff the insight was shown on ``screen`` within ``ttl`` of ``now``."""
        try:
            entry = self.get_entry(screen, insight_id, user_id=user_id)
        except sqlite3.Error:
            logger.warning("Seen lookup failed for %s on %s", insight_id, screen, exc_info=True)
            return False
        if entry is None:
            return False
        seen_at = parse_timestamp(entry.seen_at)
        if seen_at is None:
            return False
        age = as_utc(now) - seen_at
        return timedelta(0) <= age < (ttl or self._ttl)

    def prune(self, now: datetime, ttl: timedelta | None = None) -> int:
        """Delete entries older than ``ttl``; returns the number removed."""
        cutoff = _iso(as_utc(now) - (ttl or self._ttl))
        conn = self._db.connection
        cursor = conn.execute("DELETE FROM insight_seen WHERE seen_at < ?", (cutoff,))
        conn.commit()
        if cursor.rowcount:
            logger.debug("Pruned %d seen entries older than %s", cursor.rowcount, cutoff)
        return cursor.rowcount

    def filter_unseen(
        self,
        matches: Iterable[T],
        screen: str,
        now: datetime,
        *,
        user_id: str | None = None,
        ttl: timedelta | None = None,
    ) -> list[T]:
        """Keep matches not shown on ``screen`` recently, in their original order."""
        return [
            m
            for m in matches
            if not self.was_seen_recently(screen, m.id, now, user_id=user_id, ttl=ttl)
        ]
