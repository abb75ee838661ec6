"""Context builder: aggregates raw wellbeing records into an insight context.

The output is a plain nested dict holding only derived values (no raw
rows, no timestamps), so identical wellbeing states serialize identically.
Sections without data are omitted: absence means "unknown", never zero.
"""

from __future__ import annotations

import logging
import statistics
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from reclaim.core.insights.suppression import as_utc
from reclaim.domains.wellbeing.domain_logic.record_models import (
    BASELINE_WINDOW,
    MIDPOINT_BASELINE,
    MINUTES_PER_DAY,
    SLEEP_AVG_WINDOW,
    SOCIAL_TAGS,
    STRESS_TAGS,
    TREND_PAST_WINDOW,
    TREND_RECENT_WINDOW,
    DailyActivitySummary,
    MedDoseLog,
    MoodCheckin,
    SleepSession,
)

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _mean(values: Sequence[float]) -> float | None:
    return statistics.fmean(values) if values else None


def _ratings(entries: Sequence[MoodCheckin]) -> list[float]:
    return [e.rating for e in entries if e.rating is not None]


# ---------------------------------------------------------------------------
# Mood, tags, behavior, flags
# ---------------------------------------------------------------------------

def mood_context(moods: Sequence[MoodCheckin], now: datetime) -> dict[str, Any]:
    """Mood section plus tags, behavior and flags (all derived from mood entries)."""
    if not moods:
        return {}

    ordered = sorted(moods, key=lambda m: m.created_at or _EPOCH, reverse=True)
    latest = ordered[0]

    baseline = _mean(_ratings(ordered[1 : 1 + BASELINE_WINDOW]))
    delta = latest.rating - baseline if latest.rating is not None and baseline is not None else None

    recent = _mean(_ratings(ordered[:TREND_RECENT_WINDOW]))
    past = _mean(_ratings(ordered[TREND_RECENT_WINDOW : TREND_RECENT_WINDOW + TREND_PAST_WINDOW]))
    if past is None:
        past = baseline if baseline is not None else _mean(_ratings(ordered))
    trend = (recent - past) / past * 100 if recent is not None and past else None

    mood: dict[str, Any] = {}
    if latest.rating is not None:
        mood["last"] = latest.rating
    if delta is not None:
        mood["deltaVsBaseline"] = round(delta, 4)
    if trend is not None:
        mood["trend3dPct"] = round(trend, 2)

    tags = list(dict.fromkeys(latest.tags))
    out: dict[str, Any] = {"tags": tags}
    if mood:
        out["mood"] = mood

    last_social = next(
        (e for e in ordered if any(t.lower() in SOCIAL_TAGS for t in e.tags)),
        None,
    )
    if last_social is not None and last_social.created_at is not None:
        age = now - last_social.created_at
        if age.total_seconds() >= 0:
            out["behavior"] = {"daysSinceSocial": age.days}

    out["flags"] = {"stress": any(t.lower() in STRESS_TAGS for t in tags)}
    return out


# ---------------------------------------------------------------------------
# Sleep
# ---------------------------------------------------------------------------

def _duration_hours(session: SleepSession) -> float | None:
    if session.start_time is None or session.end_time is None:
        return None
    if session.end_time <= session.start_time:
        return None
    return (session.end_time - session.start_time).total_seconds() / 3600


def _midpoint_minutes(session: SleepSession) -> float | None:
    if _duration_hours(session) is None:
        return None
    midpoint = session.start_time + (session.end_time - session.start_time) / 2
    return midpoint.hour * 60 + midpoint.minute


def circular_abs_delta_minutes(a: float, b: float) -> float:
    """Absolute distance on the 24h clock, in [0, 720]."""
    diff = abs(a - b) % MINUTES_PER_DAY
    return min(diff, MINUTES_PER_DAY - diff)


def sleep_context(sessions: Sequence[SleepSession]) -> dict[str, Any] | None:
    if not sessions:
        return None

    ordered = sorted(sessions, key=lambda s: s.end_time or _EPOCH, reverse=True)
    sleep: dict[str, Any] = {}

    last = _duration_hours(ordered[0])
    if last is not None:
        sleep["lastNight"] = {"hours": round(last, 2)}

    durations = [d for d in (_duration_hours(s) for s in ordered[:SLEEP_AVG_WINDOW]) if d is not None]
    if durations:
        sleep["avg7d"] = {"hours": round(statistics.fmean(durations), 2)}

    latest_mid = _midpoint_minutes(ordered[0])
    previous = [m for m in (_midpoint_minutes(s) for s in ordered[1 : 1 + MIDPOINT_BASELINE]) if m is not None]
    if latest_mid is not None and previous:
        sleep["midpoint"] = {
            "deltaMin": round(circular_abs_delta_minutes(latest_mid, statistics.fmean(previous)), 1)
        }

    return sleep or None


# ---------------------------------------------------------------------------
# Steps, meds
# ---------------------------------------------------------------------------

def steps_context(activity: Sequence[DailyActivitySummary]) -> dict[str, Any] | None:
    dated = [a for a in activity if a.activity_date is not None]
    if not dated:
        return None
    latest = max(dated, key=lambda a: a.activity_date)
    if latest.steps is None:
        return None
    return {"lastDay": latest.steps}


def compute_adherence(logs: Sequence[MedDoseLog]) -> dict[str, int]:
    scheduled = len(logs)
    taken = sum(1 for log in logs if log.status == "taken")
    pct = round(taken / scheduled * 100) if scheduled else 0
    return {"scheduled": scheduled, "taken": taken, "pct": pct}


def meds_context(logs: Sequence[MedDoseLog]) -> dict[str, Any] | None:
    if not logs:
        return None
    return {"adherencePct7d": compute_adherence(logs)["pct"]}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def build_insight_context(
    *,
    moods: Sequence[MoodCheckin] = (),
    sleep_sessions: Sequence[SleepSession] = (),
    activity: Sequence[DailyActivitySummary] = (),
    med_logs: Sequence[MedDoseLog] = (),
    now: datetime | None = None,
) -> dict[str, Any]:
    """Build the context snapshot the insight engine evaluates."""
    now = as_utc(now) if now else datetime.now(timezone.utc)
    context: dict[str, Any] = {"tags": []}
    context.update(mood_context(moods, now))

    for key, section in (
        ("sleep", sleep_context(sleep_sessions)),
        ("steps", steps_context(activity)),
        ("meds", meds_context(med_logs)),
    ):
        if section:
            context[key] = section

    logger.debug("Built insight context sections: %s", sorted(context))
    return context
