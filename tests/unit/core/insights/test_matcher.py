"""Tests for rule matching and explain traces."""

from __future__ import annotations

from reclaim.core.insights.loader import normalize_rule
from reclaim.core.insights.matcher import match_rule

RULE = normalize_rule(
    {
        "id": "low-mood-sleep-debt",
        "message": "Low sleep can dampen mood.",
        "priority": 5,
        "conditions": [
            {"field": "mood.last", "operator": "lt", "value": 3},
            {"field": "sleep.lastNight.hours", "operator": "lt", "value": 6},
        ],
    }
)


class TestMatchRule:
    def test_all_conditions_hold(self):
        result = match_rule(RULE, {"mood": {"last": 2.5}, "sleep": {"lastNight": {"hours": 5.5}}})
        assert result.is_match is True
        assert len(result.satisfied_conditions) == 2
        assert result.trace == ()

    def test_one_condition_fails(self):
        result = match_rule(RULE, {"mood": {"last": 2.5}, "sleep": {"lastNight": {"hours": 7.0}}})
        assert result.is_match is False

    def test_missing_data_fails(self):
        assert match_rule(RULE, {"mood": {"last": 2.5}}).is_match is False

    def test_empty_conditions_match_trivially(self):
        rule = normalize_rule({"id": "always", "message": "Hi"})
        result = match_rule(rule, {})
        assert result.is_match is True
        assert result.satisfied_conditions == ()

    def test_disabled_rule_never_matches(self):
        rule = normalize_rule({"id": "off", "message": "Hi", "enabled": False})
        assert match_rule(rule, {}).is_match is False

    def test_short_circuit_without_explain(self):
        result = match_rule(RULE, {"mood": {"last": 4}, "sleep": {"lastNight": {"hours": 5}}})
        assert result.is_match is False
        assert result.satisfied_conditions == ()


class TestExplain:
    def test_trace_lists_every_condition(self):
        result = match_rule(
            RULE,
            {"mood": {"last": 4}, "sleep": {"lastNight": {"hours": 5}}},
            explain=True,
        )
        assert result.is_match is False
        assert [t.passed for t in result.trace] == [False, True]
        first = result.trace[0].to_dict()
        assert first == {
            "field": "mood.last",
            "operator": "lt",
            "expected": 3,
            "actual": 4,
            "pass": False,
        }

    def test_trace_records_missing_actual(self):
        result = match_rule(RULE, {}, explain=True)
        assert [t.actual for t in result.trace] == [None, None]
