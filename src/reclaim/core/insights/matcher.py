"""Rule matcher: checks that every condition of a rule holds."""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

from reclaim.core.insights.conditions import evaluate_condition
from reclaim.core.insights.models import ConditionTrace, Rule, RuleMatchResult


def _label(value: Any) -> str:
    return value.value if isinstance(value, Enum) else str(value)


def match_rule(
    rule: Rule,
    context: Mapping[str, Any],
    *,
    explain: bool = False,
) -> RuleMatchResult:
    """Match ``rule`` against ``context``.

    A rule with no conditions matches trivially. Without ``explain`` the
    scan stops at the first failing condition; with it, every condition is
    evaluated so the trace is complete.
    """
    if not rule.enabled:
        return RuleMatchResult(is_match=False)

    satisfied = []
    trace = []
    ok = True

    for condition in rule.conditions:
        result = evaluate_condition(condition, context)
        if explain:
            trace.append(
                ConditionTrace(
                    field=_label(condition.field),
                    operator=_label(condition.operator),
                    expected=condition.value,
                    actual=result.actual,
                    passed=result.matched,
                )
            )
        if result.matched:
            satisfied.append(condition)
            continue
        ok = False
        if not explain:
            break

    return RuleMatchResult(
        is_match=ok,
        satisfied_conditions=tuple(satisfied),
        trace=tuple(trace),
    )
