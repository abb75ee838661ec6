"""Data models for the insight rule engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class FieldPath(str, Enum):
    """Closed set of dotted paths a condition may reference."""

    MOOD_LAST = "mood.last"
    MOOD_DELTA_VS_BASELINE = "mood.deltaVsBaseline"
    MOOD_TREND_3D_PCT = "mood.trend3dPct"
    SLEEP_LAST_NIGHT_HOURS = "sleep.lastNight.hours"
    SLEEP_AVG_7D_HOURS = "sleep.avg7d.hours"
    SLEEP_MIDPOINT_DELTA_MIN = "sleep.midpoint.deltaMin"
    STEPS_LAST_DAY = "steps.lastDay"
    MEDS_ADHERENCE_PCT_7D = "meds.adherencePct7d"
    BEHAVIOR_DAYS_SINCE_SOCIAL = "behavior.daysSinceSocial"
    TAGS_CONTAINS = "tags.contains"
    TAGS_EMPTY = "tags.empty"
    TAGS_COUNT = "tags.count"
    FLAGS_STRESS = "flags.stress"

    @classmethod
    def parse(cls, value: Any) -> FieldPath | None:
        """Return the matching FieldPath, or None for unknown paths."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip())
        except ValueError:
            return None


class Operator(str, Enum):
    """Comparison operators.

    The ``delta*`` and ``pct*`` variants compare exactly like ``lt``/``gt``;
    they only document that the compared value is a change or a percentage.
    """

    LT = "lt"
    LTE = "lte"
    GT = "gt"
    GTE = "gte"
    EQ = "eq"
    DELTA_LT = "deltaLt"
    DELTA_GT = "deltaGt"
    PCT_LT = "pctLt"
    PCT_GT = "pctGt"

    @classmethod
    def parse(cls, value: Any) -> Operator | None:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip())
        except ValueError:
            return None


class ScreenScope(str, Enum):
    """Screens an insight can be surfaced on."""

    SLEEP = "sleep"
    MOOD = "mood"
    MEDS = "meds"
    DASHBOARD = "dashboard"
    GLOBAL = "global"


@dataclass(frozen=True)
class Condition:
    """A single comparison against the context snapshot.

    ``field`` and ``operator`` keep the raw string when it is not a known
    FieldPath/Operator; such conditions never match.
    """

    field: FieldPath | str
    operator: Operator | str
    value: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": _enum_value(self.field),
            "operator": _enum_value(self.operator),
            "value": self.value,
        }


@dataclass(frozen=True)
class Rule:
    """A normalised, fully-populated insight rule (all conditions AND-ed)."""

    id: str
    message: str
    priority: int = 0
    conditions: tuple[Condition, ...] = ()
    action: str | None = None
    why: str | None = None
    icon: str | None = None
    source_tag: str | None = None
    enabled: bool = True
    scopes: tuple[ScreenScope, ...] = ()

    @property
    def specificity(self) -> int:
        """Number of conditions; more conditions means more specific."""
        return len(self.conditions)


@dataclass(frozen=True)
class ConditionResult:
    """Outcome of evaluating one condition."""

    matched: bool
    actual: Any = None


@dataclass(frozen=True)
class ConditionTrace:
    """Actual-vs-expected record for one evaluated condition."""

    field: str
    operator: str
    expected: Any
    actual: Any
    passed: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "operator": self.operator,
            "expected": self.expected,
            "actual": _jsonable(self.actual),
            "pass": self.passed,
        }


@dataclass(frozen=True)
class RuleMatchResult:
    """Outcome of matching one rule against a context."""

    is_match: bool
    satisfied_conditions: tuple[Condition, ...] = ()
    trace: tuple[ConditionTrace, ...] = ()


@dataclass(frozen=True)
class Match:
    """A rule whose conditions all hold, ready for display."""

    id: str
    message: str
    priority: int = 0
    specificity: int = 0
    action: str | None = None
    why: str | None = None
    icon: str | None = None
    source_tag: str | None = None
    scopes: tuple[ScreenScope, ...] = ()
    matched_conditions: tuple[Condition, ...] = ()
    explain: tuple[ConditionTrace, ...] | None = None

    @classmethod
    def from_rule(cls, rule: Rule, result: RuleMatchResult, *, explain: bool = False) -> Match:
        return cls(
            id=rule.id,
            message=rule.message,
            priority=rule.priority,
            specificity=rule.specificity,
            action=rule.action,
            why=rule.why,
            icon=rule.icon,
            source_tag=rule.source_tag,
            scopes=rule.scopes,
            matched_conditions=result.satisfied_conditions,
            explain=result.trace if explain else None,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "priority": self.priority,
            "message": self.message,
            "action": self.action,
            "why": self.why,
            "icon": self.icon,
            "sourceTag": self.source_tag,
            "scopes": [s.value for s in self.scopes],
            "matchedConditions": [c.to_dict() for c in self.matched_conditions],
        }
        if self.explain is not None:
            data["explain"] = [t.to_dict() for t in self.explain]
        return data


@dataclass(frozen=True)
class FeedbackRecord:
    """Latest user feedback for one insight id."""

    insight_id: str
    helpful: bool
    created_at: datetime | None = None  # None when the stored timestamp is unparseable
    reason: str | None = None


@dataclass
class EvaluationStats:
    """Counters describing the work done by an engine instance."""

    evaluations: int = 0
    cache_hits: int = 0
    rules_evaluated: int = 0
    suppressed: int = 0


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _jsonable(value: Any) -> Any:
    if isinstance(value, (set, frozenset, tuple)):
        return sorted(value, key=str) if isinstance(value, (set, frozenset)) else list(value)
    return value
