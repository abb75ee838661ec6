"""Condition evaluator: compares a resolved context value to a condition."""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from reclaim.core.insights.fields import resolve
from reclaim.core.insights.models import Condition, ConditionResult, FieldPath, Operator

# Two numbers closer than this are equal under ``eq``.
EQ_TOLERANCE = 1e-4

_LESS_THAN = {Operator.LT, Operator.DELTA_LT, Operator.PCT_LT}
_GREATER_THAN = {Operator.GT, Operator.DELTA_GT, Operator.PCT_GT}


def normalize_tag(value: Any) -> str:
    """Canonical tag form: trimmed, case-folded, without a leading ``#``."""
    text = str(value if value is not None else "").strip().casefold()
    return text.lstrip("#").strip()


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return None if math.isnan(number) else number


def _is_numeric(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _equals(actual: Any, expected: Any) -> bool:
    # Booleans compare natively unless the other side is a number (1/0).
    if isinstance(actual, bool) and isinstance(expected, bool):
        return actual is expected
    if _is_numeric(actual) or _is_numeric(expected):
        a, b = _to_number(actual), _to_number(expected)
        if a is None or b is None:
            return False
        return abs(a - b) <= EQ_TOLERANCE
    if isinstance(actual, str) and isinstance(expected, str):
        return actual.strip().casefold() == expected.strip().casefold()
    return actual == expected


def compare(operator: Operator | str, actual: Any, expected: Any) -> bool:
    """Apply ``operator`` to ``actual`` and ``expected``.

    Missing data (None) never satisfies any operator.
    """
    if actual is None:
        return False
    op = Operator.parse(operator)
    if op is None:
        return False
    if op is Operator.EQ:
        return _equals(actual, expected)

    a, b = _to_number(actual), _to_number(expected)
    if a is None or b is None:
        return False
    if op in _LESS_THAN:
        return a < b
    if op in _GREATER_THAN:
        return a > b
    if op is Operator.LTE:
        return a <= b
    if op is Operator.GTE:
        return a >= b
    return False


def _contains_tag(tags: Any, wanted: Any) -> bool:
    if not tags or not isinstance(wanted, str):
        return False
    needle = normalize_tag(wanted)
    if not needle:
        return False
    return any(normalize_tag(tag) == needle for tag in tags)


def evaluate_condition(condition: Condition, context: Mapping[str, Any]) -> ConditionResult:
    """Evaluate one condition; ``actual`` is returned for explainability."""
    actual = resolve(context, condition.field)

    if FieldPath.parse(condition.field) is FieldPath.TAGS_CONTAINS:
        return ConditionResult(matched=_contains_tag(actual, condition.value), actual=actual)

    return ConditionResult(
        matched=compare(condition.operator, actual, condition.value),
        actual=actual,
    )
