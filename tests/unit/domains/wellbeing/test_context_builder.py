"""Tests for the wellbeing context builder."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from reclaim.core.insights.engine import create_engine
from reclaim.core.insights.loader import load_default_rules
from reclaim.domains.wellbeing.domain_logic.context_builder import (
    build_insight_context,
    circular_abs_delta_minutes,
    compute_adherence,
    meds_context,
    mood_context,
    sleep_context,
    steps_context,
)
from reclaim.domains.wellbeing.domain_logic.record_models import (
    DailyActivitySummary,
    MedDoseLog,
    MoodCheckin,
    SleepSession,
    parse_tags,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _mood(rating, days_ago, tags=()):
    return MoodCheckin(rating=rating, created_at=NOW - timedelta(days=days_ago), tags=list(tags))


def _sleep(start: str, end: str) -> SleepSession:
    return SleepSession.from_dict({"start_time": start, "end_time": end})


@pytest.fixture
def moods():
    return [
        _mood(4, 4, ["social"]),
        _mood(2, 0, ["tired", "Stressed", "tired"]),
        _mood(4, 1),
        _mood(4, 2),
        _mood(4, 3),
    ]


@pytest.fixture
def sleep_sessions():
    return [
        _sleep("2026-02-28T23:30:00Z", "2026-03-01T05:00:00Z"),
        _sleep("2026-02-27T23:00:00Z", "2026-02-28T07:00:00Z"),
        _sleep("2026-02-26T23:00:00Z", "2026-02-27T07:00:00Z"),
    ]


class TestMoodContext:
    def test_derived_values(self, moods):
        out = mood_context(moods, NOW)
        assert out["mood"] == {"last": 2, "deltaVsBaseline": -2.0, "trend3dPct": -16.67}

    def test_tags_from_latest_entry_deduplicated(self, moods):
        assert mood_context(moods, NOW)["tags"] == ["tired", "Stressed"]

    def test_stress_flag(self, moods):
        assert mood_context(moods, NOW)["flags"] == {"stress": True}
        assert mood_context([_mood(3, 0, ["calm"])], NOW)["flags"] == {"stress": False}

    def test_days_since_social(self, moods):
        assert mood_context(moods, NOW)["behavior"] == {"daysSinceSocial": 4}

    def test_no_social_tag_omits_behavior(self):
        assert "behavior" not in mood_context([_mood(3, 0)], NOW)

    def test_single_entry_has_no_baseline(self):
        out = mood_context([_mood(3, 0)], NOW)
        assert out["mood"] == {"last": 3, "trend3dPct": 0.0}

    def test_empty(self):
        assert mood_context([], NOW) == {}


class TestSleepContext:
    def test_derived_values(self, sleep_sessions):
        assert sleep_context(sleep_sessions) == {
            "lastNight": {"hours": 5.5},
            "avg7d": {"hours": 7.17},
            "midpoint": {"deltaMin": 45.0},
        }

    def test_invalid_session_skipped_in_average(self):
        out = sleep_context(
            [
                _sleep("2026-03-01T05:00:00Z", "2026-03-01T04:00:00Z"),
                _sleep("2026-02-27T23:00:00Z", "2026-02-28T06:00:00Z"),
            ]
        )
        assert "lastNight" not in out
        assert out["avg7d"] == {"hours": 7.0}

    def test_empty(self):
        assert sleep_context([]) is None

    def test_circular_delta_wraps_midnight(self):
        assert circular_abs_delta_minutes(30, 1410) == 60
        assert circular_abs_delta_minutes(0, 720) == 720


class TestStepsAndMeds:
    def test_latest_day_steps(self):
        activity = [
            DailyActivitySummary(date(2026, 2, 28), 9000),
            DailyActivitySummary(date(2026, 3, 1), 1500),
        ]
        assert steps_context(activity) == {"lastDay": 1500}

    def test_steps_missing(self):
        assert steps_context([]) is None
        assert steps_context([DailyActivitySummary(date(2026, 3, 1), None)]) is None

    def test_adherence(self):
        logs = [MedDoseLog("taken"), MedDoseLog("taken"), MedDoseLog("missed"), MedDoseLog("taken")]
        assert compute_adherence(logs) == {"scheduled": 4, "taken": 3, "pct": 75}
        assert meds_context(logs) == {"adherencePct7d": 75}

    def test_no_doses(self):
        assert compute_adherence([]) == {"scheduled": 0, "taken": 0, "pct": 0}
        assert meds_context([]) is None


class TestRecordParsing:
    def test_parse_tags_variants(self):
        assert parse_tags(["a", " b ", ""]) == ["a", "b"]
        assert parse_tags('["a", "b"]') == ["a", "b"]
        assert parse_tags("a, b") == ["a", "b"]
        assert parse_tags(None) == []

    def test_mood_from_dict(self):
        mood = MoodCheckin.from_dict({"mood": 3, "ts": "2026-03-01T08:00:00Z", "tags": "tired,work"})
        assert mood.rating == 3.0
        assert mood.created_at == datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)
        assert mood.tags == ["tired", "work"]

    def test_bool_rating_rejected(self):
        assert MoodCheckin.from_dict({"rating": True}).rating is None

    def test_activity_from_dict(self):
        summary = DailyActivitySummary.from_dict({"activity_date": "2026-03-01T00:00:00Z", "steps": 1234.0})
        assert summary == DailyActivitySummary(date(2026, 3, 1), 1234)

    def test_med_status_normalized(self):
        assert MedDoseLog.from_dict({"status": " Taken "}).status == "taken"

    def test_naive_timestamps_are_taken_as_utc(self):
        naive = datetime(2026, 3, 1, 8, 0)
        assert MoodCheckin(3, naive).created_at == datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)
        session = SleepSession(naive - timedelta(hours=7), naive)
        assert session.start_time.tzinfo is timezone.utc
        assert session.end_time.tzinfo is timezone.utc
        assert SleepSession(None, None).start_time is None


class TestBuildInsightContext:
    def test_empty_records(self):
        assert build_insight_context(now=NOW) == {"tags": []}

    def test_full_snapshot(self, moods, sleep_sessions):
        context = build_insight_context(
            moods=moods,
            sleep_sessions=sleep_sessions,
            activity=[DailyActivitySummary(date(2026, 3, 1), 1500)],
            med_logs=[MedDoseLog("taken"), MedDoseLog("missed")],
            now=NOW,
        )
        assert set(context) == {"tags", "mood", "sleep", "steps", "meds", "behavior", "flags"}
        assert context["meds"] == {"adherencePct7d": 50}

    def test_snapshot_feeds_bundled_rules(self, moods, sleep_sessions):
        context = build_insight_context(
            moods=moods,
            sleep_sessions=sleep_sessions,
            activity=[DailyActivitySummary(date(2026, 3, 1), 1500)],
            now=NOW,
        )
        engine = create_engine(load_default_rules())
        ids = [m.id for m in engine.evaluate_all(context)]
        assert ids[:2] == ["low-mood-sleep-debt", "inactivity"]
        assert "tired-tag" in ids

    def test_mixed_naive_and_aware_records(self):
        naive_now = NOW.replace(tzinfo=None)
        moods = [
            MoodCheckin(2, naive_now - timedelta(hours=1), ["tired"]),
            MoodCheckin(4, NOW - timedelta(days=3), ["social"]),
        ]
        sessions = [
            SleepSession(naive_now - timedelta(hours=13), naive_now - timedelta(hours=6)),
            SleepSession(NOW - timedelta(days=1, hours=13), NOW - timedelta(days=1, hours=6)),
            SleepSession(None, None),
        ]
        context = build_insight_context(moods=moods, sleep_sessions=sessions, now=naive_now)
        assert context["mood"]["last"] == 2
        assert context["behavior"] == {"daysSinceSocial": 3}
        assert context["sleep"]["lastNight"] == {"hours": 7.0}
