"""SQLite database management for insight feedback and seen tracking.

Handles connection lifecycle, schema creation, and migrations.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

# Current schema version
SCHEMA_VERSION = 2

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA_V1 = """
-- One row per feedback action on an insight card (append-only, reason may be updated)
CREATE TABLE IF NOT EXISTS insight_feedback (
    id                 TEXT PRIMARY KEY,
    user_id            TEXT NOT NULL,
    created_at         TEXT NOT NULL,
    insight_id         TEXT NOT NULL,
    source_tag         TEXT,
    helpful            INTEGER NOT NULL,
    reason             TEXT,
    match_payload_json TEXT,
    app_version        TEXT
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_feedback_user_ts  ON insight_feedback(user_id, created_at);
CREATE INDEX IF NOT EXISTS idx_feedback_insight  ON insight_feedback(insight_id);
"""

# ---------------------------------------------------------------------------
# V2: Seen store (display-frequency window per user/screen/insight)
# ---------------------------------------------------------------------------

_SCHEMA_V2 = """
CREATE TABLE IF NOT EXISTS insight_seen (
    user_id    TEXT NOT NULL,
    screen     TEXT NOT NULL,
    insight_id TEXT NOT NULL,
    seen_at    TEXT NOT NULL,
    PRIMARY KEY (user_id, screen, insight_id)
);

CREATE INDEX IF NOT EXISTS idx_seen_at ON insight_seen(seen_at);
"""


class DatabaseError(Exception):
    """Raised when database operations fail."""


class InsightDatabase:
    """SQLite database manager for the insight stores.

    Supports both file-based and in-memory (`:memory:`) databases.
    In-memory mode is used for testing.

    Usage::

        db = InsightDatabase(":memory:")
        db.initialize()
        conn = db.connection
        # ... use connection ...
        db.close()
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the active database connection.

        Raises:
            DatabaseError: If the database has not been initialized.
        """
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    def initialize(self) -> None:
        """Create the database connection and ensure schema exists.

        Idempotent: safe to call multiple times.
        """
        if self._conn is not None:
            return

        if self._db_path != ":memory:":
            db_file = Path(self._db_path).expanduser()
            db_file.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(db_file), check_same_thread=False)
        else:
            self._conn = sqlite3.connect(":memory:", check_same_thread=False)

        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")

        self._ensure_schema()
        logger.info("Insight database initialized: %s", self._db_path)

    def _ensure_schema(self) -> None:
        conn = self.connection
        conn.executescript(_SCHEMA_V1)

        cursor = conn.execute("SELECT MAX(version) FROM schema_version")
        row = cursor.fetchone()
        current_version = row[0] if row[0] is not None else 0

        if current_version < 2:
            conn.executescript(_SCHEMA_V2)
            logger.info("Applied schema migration V2: insight_seen table")

        if current_version < SCHEMA_VERSION:
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            conn.commit()
            logger.info(
                "Schema updated from version %d to %d", current_version, SCHEMA_VERSION
            )

    def get_schema_version(self) -> int:
        """Return the current schema version."""
        cursor = self.connection.execute("SELECT MAX(version) FROM schema_version")
        row = cursor.fetchone()
        return row[0] if row[0] is not None else 0

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Insight database closed")

    def __enter__(self) -> InsightDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()
