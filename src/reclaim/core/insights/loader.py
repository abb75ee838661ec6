"""Rule loader: reads rule definitions and normalises them once at load time."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import yaml

from reclaim.core.insights.models import Condition, FieldPath, Operator, Rule, ScreenScope
from reclaim.core.insights.scope import infer_scopes_from_rule, normalize_scope

logger = logging.getLogger(__name__)

# Packaged rule set, under src/reclaim/domains/wellbeing/rules/
DEFAULT_RULES_FILE = (
    Path(__file__).resolve().parent.parent.parent / "domains" / "wellbeing" / "rules" / "insights.yaml"
)

# Legacy field names still found in older rule files.
FIELD_ALIASES = {
    "stress.flag": FieldPath.FLAGS_STRESS.value,
}


class RuleFormatError(ValueError):
    """Raised when a rule file cannot be interpreted as a list of rules."""


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_condition(data: Any) -> Condition | None:
    """Build a Condition from a mapping; None when field or operator is missing.

    Unknown field paths and operators are kept as raw strings; they never match.
    """
    if not isinstance(data, Mapping):
        return None
    raw_field = _first(data, "field")
    raw_op = _first(data, "op", "operator")
    if not raw_field or not raw_op:
        return None

    field_name = str(raw_field).strip()
    field_name = FIELD_ALIASES.get(field_name, field_name)
    field_path = FieldPath.parse(field_name) or field_name
    operator = Operator.parse(raw_op) or str(raw_op).strip()
    return Condition(field=field_path, operator=operator, value=data.get("value"))


def _normalize_scopes(data: Mapping[str, Any], rule_id: str, source_tag: str | None) -> tuple[ScreenScope, ...]:
    raw = _first(data, "scopes", "scope")
    if isinstance(raw, str):
        raw = [raw]
    if isinstance(raw, (list, tuple)) and raw:
        scopes: list[ScreenScope] = []
        for item in raw:
            scope = normalize_scope(item)
            if scope not in scopes:
                scopes.append(scope)
        return tuple(scopes)
    return infer_scopes_from_rule(rule_id, source_tag)


def normalize_rule(data: Mapping[str, Any]) -> Rule | None:
    """Normalise a raw rule mapping into a fully-populated Rule.

    Defaults: priority 0, enabled True, no conditions (matches trivially).
    Returns None when no usable id can be derived.
    """
    message = str(data.get("message") or "").strip()
    source_tag = _optional_str(_first(data, "sourceTag", "source_tag"))
    rule_id = str(data.get("id") or source_tag or message or "").strip()
    if not rule_id:
        return None

    priority = data.get("priority")
    if isinstance(priority, bool) or not isinstance(priority, (int, float)):
        priority = 0

    raw_conditions = _first(data, "conditions", "condition") or []
    if isinstance(raw_conditions, Mapping):
        raw_conditions = [raw_conditions]
    conditions = tuple(
        c for c in (normalize_condition(item) for item in raw_conditions) if c is not None
    )

    return Rule(
        id=rule_id,
        message=message,
        priority=int(priority),
        conditions=conditions,
        action=_optional_str(data.get("action")),
        why=_optional_str(data.get("why")),
        icon=_optional_str(data.get("icon")),
        source_tag=source_tag,
        enabled=data.get("enabled") is not False,
        scopes=_normalize_scopes(data, rule_id, source_tag),
    )


def normalize_rules(raw_rules: Iterable[Any]) -> list[Rule]:
    """Normalise many rules, skipping entries that are not usable."""
    rules: list[Rule] = []
    for index, item in enumerate(raw_rules):
        if isinstance(item, Rule):
            rules.append(item)
            continue
        if not isinstance(item, Mapping):
            logger.warning("Skipping rule #%d: expected a mapping, got %s", index, type(item).__name__)
            continue
        rule = normalize_rule(item)
        if rule is None:
            logger.warning("Skipping rule #%d: no id, sourceTag or message", index)
            continue
        rules.append(rule)
    return rules


def read_rules_file(path: str | Path) -> list[Any]:
    """Read the raw (un-normalised) rule list from a YAML or JSON file."""
    path = Path(path).expanduser()
    suffix = path.suffix.lower()
    with open(path, encoding="utf-8") as f:
        if suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        elif suffix == ".json":
            data = json.load(f)
        else:
            raise RuleFormatError(f"Unsupported rule file type: {path.name}")

    if isinstance(data, Mapping):
        data = data.get("rules")
    if not isinstance(data, list):
        raise RuleFormatError(f"{path.name}: expected a list of rules or a mapping with 'rules'")
    return data


def load_rules_file(path: str | Path) -> list[Rule]:
    """Load and normalise all rules from a YAML or JSON file."""
    rules = normalize_rules(read_rules_file(path))
    logger.info("Loaded %d insight rules from %s", len(rules), path)
    return rules


def load_default_rules() -> list[Rule]:
    return load_rules_file(DEFAULT_RULES_FILE)
