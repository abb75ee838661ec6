"""Tests for condition evaluation and comparison semantics."""

from __future__ import annotations

import pytest

from reclaim.core.insights.conditions import compare, evaluate_condition, normalize_tag
from reclaim.core.insights.models import Condition, Operator


class TestCompare:
    @pytest.mark.parametrize(
        "op,actual,expected,result",
        [
            ("lt", 2.5, 3, True),
            ("lt", 3, 3, False),
            ("lte", 3, 3, True),
            ("gt", 95, 90, True),
            ("gt", 90, 90, False),
            ("gte", 5, 5, True),
            ("deltaLt", -1.5, -1, True),
            ("deltaGt", 0.5, 1, False),
            ("pctLt", -14.0, -10, True),
            ("pctGt", 12.0, 10, True),
        ],
    )
    def test_ordering_operators(self, op, actual, expected, result):
        assert compare(op, actual, expected) is result

    def test_delta_and_pct_behave_like_lt_gt(self):
        for actual in (-20, -10, 0, 10):
            assert compare(Operator.DELTA_LT, actual, -10) == compare(Operator.LT, actual, -10)
            assert compare(Operator.PCT_GT, actual, -10) == compare(Operator.GT, actual, -10)

    @pytest.mark.parametrize("op", [o.value for o in Operator])
    def test_missing_value_never_matches(self, op):
        assert compare(op, None, 0) is False

    def test_numeric_eq_uses_tolerance(self):
        assert compare("eq", 3.00001, 3) is True
        assert compare("eq", 3.01, 3) is False

    def test_boolean_eq(self):
        assert compare("eq", True, True) is True
        assert compare("eq", False, True) is False
        assert compare("eq", True, 1) is True
        assert compare("eq", False, 0) is True

    def test_string_eq_is_case_insensitive(self):
        assert compare("eq", " Tired ", "tired") is True
        assert compare("eq", "tired", "sleepy") is False

    def test_numeric_strings_are_coerced_for_ordering(self):
        assert compare("lt", "5.5", 6) is True

    def test_non_numeric_ordering_is_false(self):
        assert compare("lt", "abc", 6) is False
        assert compare("gt", 5, None) is False

    def test_nan_never_matches(self):
        assert compare("lt", float("nan"), 6) is False

    def test_unknown_operator_never_matches(self):
        assert compare("between", 5, 6) is False


class TestNormalizeTag:
    def test_strips_case_and_hash(self):
        assert normalize_tag("  #Tired ") == "tired"

    def test_none(self):
        assert normalize_tag(None) == ""


class TestEvaluateCondition:
    def test_returns_actual_value(self):
        result = evaluate_condition(Condition("mood.last", "lt", 3), {"mood": {"last": 2}})
        assert result.matched is True
        assert result.actual == 2

    def test_missing_value(self):
        result = evaluate_condition(Condition("mood.last", "lt", 3), {})
        assert result.matched is False
        assert result.actual is None

    def test_tags_contains_normalizes_membership(self):
        context = {"tags": ["#Tired", "work"]}
        assert evaluate_condition(Condition("tags.contains", "eq", "tired"), context).matched
        assert evaluate_condition(Condition("tags.contains", "eq", " WORK "), context).matched
        assert not evaluate_condition(Condition("tags.contains", "eq", "social"), context).matched

    def test_tags_contains_without_tags(self):
        assert not evaluate_condition(Condition("tags.contains", "eq", "tired"), {}).matched
        assert not evaluate_condition(Condition("tags.contains", "eq", "tired"), {"tags": []}).matched

    def test_tags_contains_non_string_value(self):
        assert not evaluate_condition(Condition("tags.contains", "eq", 1), {"tags": ["1"]}).matched

    def test_tags_empty(self):
        assert evaluate_condition(Condition("tags.empty", "eq", True), {"tags": []}).matched
        assert not evaluate_condition(Condition("tags.empty", "eq", True), {"tags": ["x"]}).matched
        assert not evaluate_condition(Condition("tags.empty", "eq", True), {}).matched

    def test_tags_count(self):
        assert evaluate_condition(Condition("tags.count", "gte", 2), {"tags": ["a", "b"]}).matched

    def test_unknown_field_never_matches(self):
        assert not evaluate_condition(Condition("mood.bogus", "eq", None), {"mood": {}}).matched
