"""Raw wellbeing records and constants consumed by the context builder."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from reclaim.core.insights.suppression import as_utc, parse_timestamp

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

STRESS_TAGS = frozenset({"stressed", "overwhelmed", "anxious", "stress"})
SOCIAL_TAGS = frozenset({"social", "connected"})

BASELINE_WINDOW = 14      # older mood entries averaged for the baseline
TREND_RECENT_WINDOW = 3   # newest mood entries in the trend
TREND_PAST_WINDOW = 7     # entries after the recent window in the trend
SLEEP_AVG_WINDOW = 7      # sessions in the rolling sleep average
MIDPOINT_BASELINE = 7     # previous sessions in the midpoint baseline

MINUTES_PER_DAY = 1440


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

def _aware(value: datetime | None) -> datetime | None:
    """Naive timestamps are taken as UTC so records compare with each other."""
    return as_utc(value) if value is not None else None


@dataclass
class MoodCheckin:
    """One mood entry (rating 1-5) with optional free-text tags."""

    rating: float | None
    created_at: datetime | None
    tags: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.created_at = _aware(self.created_at)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MoodCheckin:
        rating = data.get("rating", data.get("mood"))
        return cls(
            rating=float(rating) if isinstance(rating, (int, float)) and not isinstance(rating, bool) else None,
            created_at=parse_timestamp(data.get("ts") or data.get("created_at")),
            tags=parse_tags(data.get("tags")),
        )


@dataclass
class SleepSession:
    start_time: datetime | None
    end_time: datetime | None

    def __post_init__(self) -> None:
        self.start_time = _aware(self.start_time)
        self.end_time = _aware(self.end_time)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SleepSession:
        return cls(
            start_time=parse_timestamp(data.get("start_time")),
            end_time=parse_timestamp(data.get("end_time")),
        )


@dataclass
class DailyActivitySummary:
    activity_date: date | None
    steps: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DailyActivitySummary:
        raw_date = data.get("activity_date")
        try:
            activity_date = date.fromisoformat(str(raw_date)[:10]) if raw_date else None
        except ValueError:
            activity_date = None
        steps = data.get("steps")
        return cls(
            activity_date=activity_date,
            steps=int(steps) if isinstance(steps, (int, float)) and not isinstance(steps, bool) else None,
        )


@dataclass
class MedDoseLog:
    """A scheduled dose and what happened to it: taken, missed or skipped."""

    status: str
    scheduled_for: datetime | None = None

    def __post_init__(self) -> None:
        self.scheduled_for = _aware(self.scheduled_for)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MedDoseLog:
        return cls(
            status=str(data.get("status") or "").strip().lower(),
            scheduled_for=parse_timestamp(data.get("scheduled_for")),
        )


def parse_tags(raw: Any) -> list[str]:
    """Accept a list, a JSON-array string, or a comma-separated string."""
    if not raw:
        return []
    if isinstance(raw, str):
        text = raw.strip()
        if text.startswith("["):
            try:
                raw = json.loads(text)
            except ValueError:
                raw = text.strip("[]").split(",")
        else:
            raw = text.split(",")
    if not isinstance(raw, (list, tuple, set)):
        return []
    return [str(t).strip() for t in raw if t and str(t).strip()]
