"""Resolve dotted field paths against a context snapshot."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from reclaim.core.insights.models import FieldPath


def _get(context: Any, *keys: str) -> Any:
    node = context
    for key in keys:
        if not isinstance(node, Mapping):
            return None
        node = node.get(key)
        if node is None:
            return None
    return node


def _flag(value: Any) -> bool | None:
    # Only real booleans or numeric 0/1; "false" must not read as True.
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    return None


def _tag_collection(context: Mapping[str, Any]) -> list[Any] | None:
    tags = context.get("tags") if isinstance(context, Mapping) else None
    if isinstance(tags, (list, tuple, set, frozenset)):
        return list(tags)
    return None


def resolve(context: Mapping[str, Any], field_path: FieldPath | str) -> Any:
    """Resolve ``field_path`` against ``context``.

    Returns None when any intermediate segment is missing or the path is
    unknown. Never raises and never substitutes zero for missing data.

    ``tags.contains`` resolves to the whole tag collection; membership is
    tested by the condition evaluator.
    """
    path = FieldPath.parse(field_path)
    if path is None or not isinstance(context, Mapping):
        return None

    if path is FieldPath.MOOD_LAST:
        return _get(context, "mood", "last")
    if path is FieldPath.MOOD_DELTA_VS_BASELINE:
        return _get(context, "mood", "deltaVsBaseline")
    if path is FieldPath.MOOD_TREND_3D_PCT:
        return _get(context, "mood", "trend3dPct")
    if path is FieldPath.SLEEP_LAST_NIGHT_HOURS:
        return _get(context, "sleep", "lastNight", "hours")
    if path is FieldPath.SLEEP_AVG_7D_HOURS:
        return _get(context, "sleep", "avg7d", "hours")
    if path is FieldPath.SLEEP_MIDPOINT_DELTA_MIN:
        return _get(context, "sleep", "midpoint", "deltaMin")
    if path is FieldPath.STEPS_LAST_DAY:
        return _get(context, "steps", "lastDay")
    if path is FieldPath.MEDS_ADHERENCE_PCT_7D:
        return _get(context, "meds", "adherencePct7d")
    if path is FieldPath.BEHAVIOR_DAYS_SINCE_SOCIAL:
        return _get(context, "behavior", "daysSinceSocial")
    if path is FieldPath.TAGS_CONTAINS:
        return _tag_collection(context)
    if path is FieldPath.TAGS_EMPTY:
        tags = _tag_collection(context)
        return None if tags is None else len(tags) == 0
    if path is FieldPath.TAGS_COUNT:
        tags = _tag_collection(context)
        return None if tags is None else len(tags)
    if path is FieldPath.FLAGS_STRESS:
        return _flag(_get(context, "flags", "stress"))

    raise AssertionError(f"Unhandled field path: {path!r}")
