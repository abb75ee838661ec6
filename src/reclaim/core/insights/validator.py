"""Rule validator: reports authoring mistakes without affecting evaluation."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import yaml

from reclaim.core.insights.loader import FIELD_ALIASES, read_rules_file
from reclaim.core.insights.models import FieldPath, Operator


def _validate_condition(label: str, position: int, cond: Any) -> list[str]:
    where = f"{label}: condition #{position}"
    if not isinstance(cond, Mapping):
        return [f"{where} is not a mapping"]

    errors: list[str] = []
    field_name = str(cond.get("field") or "").strip()
    op_name = str(cond.get("op") or cond.get("operator") or "").strip()

    if not field_name:
        errors.append(f"{where} has no field (it will be ignored)")
    elif FieldPath.parse(FIELD_ALIASES.get(field_name, field_name)) is None:
        errors.append(f"{where} references unknown field '{field_name}' (it can never match)")

    if not op_name:
        errors.append(f"{where} has no operator (it will be ignored)")
    elif Operator.parse(op_name) is None:
        errors.append(f"{where} uses unknown operator '{op_name}' (it can never match)")

    if field_name == FieldPath.TAGS_CONTAINS.value and not isinstance(cond.get("value"), str):
        errors.append(f"{where}: tags.contains needs a string tag value")
    return errors


def validate_rules(raw_rules: Iterable[Any]) -> list[str]:
    """Return human-readable problems found in raw rule definitions."""
    errors: list[str] = []
    seen_ids: dict[str, int] = {}

    for index, rule in enumerate(raw_rules):
        if not isinstance(rule, Mapping):
            errors.append(f"rule #{index}: not a mapping")
            continue

        rule_id = str(rule.get("id") or "").strip()
        label = f"rule '{rule_id}'" if rule_id else f"rule #{index}"

        if not rule_id:
            errors.append(f"{label}: missing id (falls back to sourceTag/message)")
        elif rule_id in seen_ids:
            errors.append(f"{label}: duplicate id, already used by rule #{seen_ids[rule_id]}")
        else:
            seen_ids[rule_id] = index

        if not str(rule.get("message") or "").strip():
            errors.append(f"{label}: missing message")

        priority = rule.get("priority")
        if priority is not None and (isinstance(priority, bool) or not isinstance(priority, int)):
            errors.append(f"{label}: priority should be an integer, got {priority!r}")

        conditions = rule.get("conditions", rule.get("condition"))
        if not conditions:
            errors.append(f"{label}: no conditions (matches every context)")
            continue
        if not isinstance(conditions, list):
            errors.append(f"{label}: conditions should be a list")
            continue
        for position, cond in enumerate(conditions):
            errors.extend(_validate_condition(label, position, cond))

    return errors


def validate_rules_file(path: str | Path) -> list[str]:
    """Validate a rule file; every problem is prefixed with the file name."""
    path = Path(path)
    try:
        raw = read_rules_file(path)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        return [f"{path.name}: failed to load: {exc}"]
    return [f"{path.name}: {err}" for err in validate_rules(raw)]
