"""Feedback suppression: hides insights the user recently marked unhelpful.

Two cooldowns apply to a ``helpful=False`` record:

* reason ``not_relevant_now``: short window (24 hours by default)
* any other reason, or none: long window (7 days by default)

Positive feedback never suppresses. A feedback timestamp in the future,
an unparseable timestamp, or a failing index lookup all fail open.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol, runtime_checkable

from reclaim.core.insights.models import FeedbackRecord, Match

logger = logging.getLogger(__name__)

NOT_RELEVANT_NOW = "not_relevant_now"
DEFAULT_NOT_RELEVANT_WINDOW = timedelta(hours=24)
DEFAULT_COOLDOWN_WINDOW = timedelta(days=7)

FEEDBACK_REASONS = (
    "not_accurate",
    NOT_RELEVANT_NOW,
    "too_generic",
    "already_doing_this",
    "dont_like_suggestion",
    "confusing",
    "other",
)


@runtime_checkable
class FeedbackIndex(Protocol):
    """Synchronous lookup of the most recent feedback per insight id."""

    def get_latest(self, insight_id: str) -> FeedbackRecord | None:
        ...


@dataclass(frozen=True)
class FeedbackPolicy:
    """Feedback source plus the two cooldown windows."""

    index: FeedbackIndex
    not_relevant_window: timedelta = DEFAULT_NOT_RELEVANT_WINDOW
    cooldown_window: timedelta = DEFAULT_COOLDOWN_WINDOW


# ---------------------------------------------------------------------------
# Timestamp helpers
# ---------------------------------------------------------------------------

def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO 8601 string (``Z`` accepted) or datetime; None if invalid."""
    if isinstance(value, datetime):
        return as_utc(value)
    if not value:
        return None
    text = str(value).strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return as_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Index implementations
# ---------------------------------------------------------------------------

class LatestFeedbackIndex:
    """FeedbackIndex over an ``insight_id -> FeedbackRecord`` mapping."""

    def __init__(self, latest_by_id: Mapping[str, FeedbackRecord]) -> None:
        self._latest = {str(k).strip(): v for k, v in latest_by_id.items() if str(k).strip()}

    def get_latest(self, insight_id: str) -> FeedbackRecord | None:
        key = str(insight_id or "").strip()
        if not key:
            return None
        return self._latest.get(key)

    def __len__(self) -> int:
        return len(self._latest)


def _record_from_row(insight_id: str, row: Mapping[str, Any]) -> FeedbackRecord:
    reason = row.get("reason")
    return FeedbackRecord(
        insight_id=insight_id,
        helpful=row.get("helpful") is True or row.get("helpful") == 1,
        created_at=parse_timestamp(row.get("created_at")),
        reason=str(reason) if reason else None,
    )


def build_feedback_index_from_latest_by_id(
    latest_by_id: Mapping[str, Mapping[str, Any]] | None,
) -> LatestFeedbackIndex | None:
    """Build an index from ``{insight_id: {created_at, helpful, reason}}``."""
    if not latest_by_id:
        return None
    return LatestFeedbackIndex(
        {str(k).strip(): _record_from_row(str(k).strip(), v or {}) for k, v in latest_by_id.items()}
    )


def build_feedback_index_from_rows(
    rows: Iterable[Mapping[str, Any]] | None,
) -> LatestFeedbackIndex | None:
    """Build an index from newest-first feedback rows (first row per id wins)."""
    latest: dict[str, FeedbackRecord] = {}
    for row in rows or []:
        insight_id = str(row.get("insight_id") or "").strip()
        if not insight_id or insight_id in latest:
            continue
        latest[insight_id] = _record_from_row(insight_id, row)
    if not latest:
        return None
    return LatestFeedbackIndex(latest)


# ---------------------------------------------------------------------------
# Suppression
# ---------------------------------------------------------------------------

def _lookup(index: FeedbackIndex, insight_id: str) -> FeedbackRecord | None:
    try:
        return index.get_latest(insight_id)
    except Exception:
        logger.warning("Feedback lookup failed for %s; treating as no feedback", insight_id, exc_info=True)
        return None


def is_suppressed(
    insight_id: str,
    index: FeedbackIndex,
    now: datetime,
    *,
    not_relevant_window: timedelta = DEFAULT_NOT_RELEVANT_WINDOW,
    cooldown_window: timedelta = DEFAULT_COOLDOWN_WINDOW,
) -> bool:
    """True iff the latest feedback for ``insight_id`` is negative and recent."""
    latest = _lookup(index, insight_id)
    if latest is None or latest.helpful is not False:
        return False
    if latest.created_at is None:
        return False

    elapsed = as_utc(now) - as_utc(latest.created_at)
    if elapsed < timedelta(0):
        # Clock skew: feedback from the future.
        return False

    window = not_relevant_window if latest.reason == NOT_RELEVANT_NOW else cooldown_window
    return elapsed < window


def suppress_matches(
    matches: Iterable[Match],
    index: FeedbackIndex | None,
    now: datetime,
    *,
    not_relevant_window: timedelta = DEFAULT_NOT_RELEVANT_WINDOW,
    cooldown_window: timedelta = DEFAULT_COOLDOWN_WINDOW,
) -> list[Match]:
    """Drop suppressed matches, preserving order. Pure: nothing is mutated."""
    matches = list(matches)
    if index is None:
        return matches
    return [
        m
        for m in matches
        if not is_suppressed(
            m.id,
            index,
            now,
            not_relevant_window=not_relevant_window,
            cooldown_window=cooldown_window,
        )
    ]
