"""Shared test fixtures for Reclaim Insights tests."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DB_PATH", ":memory:")
    monkeypatch.setenv("RULES_PATH", "")
    monkeypatch.setenv("USER_ID", "test-user")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from reclaim.core.insights.engine import InsightEngine, create_engine  # noqa: E402

def make_rule(
    id: str,
    priority: int = 0,
    conditions: list[tuple[str, str, Any]] | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Create a raw rule mapping with sensible defaults."""
    rule: dict[str, Any] = {
        "id": id,
        "priority": priority,
        "message": f"Message for {id}",
        "conditions": [
            {"field": f, "operator": op, "value": v} for f, op, v in (conditions or [])
        ],
    }
    rule.update(extra)
    return rule


SCENARIO_RULES: list[dict[str, Any]] = [
    make_rule("low-mood-sleep-debt", 5, [("mood.last", "lt", 3), ("sleep.lastNight.hours", "lt", 6)]),
    make_rule("dopamine-dip", 4, [("mood.trend3dPct", "pctLt", -10)]),
]

SAMPLE_RULES: list[dict[str, Any]] = [
    make_rule(
        "low-mood-sleep-debt",
        priority=5,
        conditions=[("mood.last", "lt", 3), ("sleep.lastNight.hours", "lt", 6)],
        sourceTag="sleep",
        action="Take a 10 minute sunlight walk.",
    ),
    make_rule(
        "dopamine-dip",
        priority=4,
        conditions=[("mood.trend3dPct", "pctLt", -10)],
        sourceTag="mood",
    ),
    make_rule(
        "circadian-shift",
        priority=3,
        conditions=[("sleep.midpoint.deltaMin", "gt", 90)],
        sourceTag="sleep",
    ),
    make_rule(
        "inactivity",
        priority=4,
        conditions=[("steps.lastDay", "lt", 2000), ("mood.last", "lt", 4)],
        sourceTag="activity",
    ),
    make_rule(
        "meds-adherence",
        priority=2,
        conditions=[("meds.adherencePct7d", "lt", 70)],
        sourceTag="meds",
    ),
    make_rule(
        "vagal-tone",
        priority=4,
        conditions=[("flags.stress", "eq", True), ("sleep.lastNight.hours", "lt", 6)],
        sourceTag="breath",
    ),
]


@pytest.fixture
def rule_factory():
    """The make_rule helper, for tests that build their own rule sets."""
    return make_rule


@pytest.fixture
def scenario_rules() -> list[dict[str, Any]]:
    """Two rules that both fire on a low-mood, short-sleep, dipping-trend context."""
    return [dict(r) for r in SCENARIO_RULES]


@pytest.fixture
def sample_rules() -> list[dict[str, Any]]:
    return [dict(r) for r in SAMPLE_RULES]


@pytest.fixture
def engine(sample_rules) -> InsightEngine:
    """Create an insight engine over the sample rules."""
    return create_engine(sample_rules)


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def insight_db():
    """Create an in-memory InsightDatabase for testing."""
    from reclaim.core.storage.database import InsightDatabase

    db = InsightDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def feedback_repository(insight_db):
    from reclaim.core.storage.repository import FeedbackRepository

    return FeedbackRepository(insight_db, user_id="test-user")


@pytest.fixture
def seen_repository(insight_db):
    from reclaim.core.storage.repository import SeenRepository

    return SeenRepository(insight_db)
