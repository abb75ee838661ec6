"""Insight engine: matches, ranks and filters rules for a context snapshot.

The engine is pure and synchronous: for a fixed rule set and context it
always returns the same ordered list. It owns a single-entry memo of the
latest ranked result, keyed by the stable serialization of the context.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from reclaim.core.insights.loader import normalize_rules
from reclaim.core.insights.matcher import match_rule
from reclaim.core.insights.models import EvaluationStats, Match, Rule
from reclaim.core.insights.ranker import rank_matches
from reclaim.core.insights.stable import stable_stringify
from reclaim.core.insights.suppression import FeedbackPolicy, suppress_matches

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EvaluationOptions:
    """Per-call options for ``evaluate_all``.

    ``now`` defaults to the current UTC time and only matters when
    ``feedback`` is given.
    """

    feedback: FeedbackPolicy | None = None
    now: datetime | None = None
    explain: bool = False


class InsightEngine:
    """Evaluates an immutable rule set against context snapshots."""

    def __init__(self, rules: Iterable[Rule | Mapping[str, Any]], *, cache_enabled: bool = True) -> None:
        self._rules: tuple[Rule, ...] = tuple(normalize_rules(rules or []))
        self._active: tuple[Rule, ...] = tuple(r for r in self._rules if r.enabled)
        self._cache_enabled = cache_enabled
        # Guards the memo and the stats counters.
        self._lock = threading.Lock()
        self._cache_key: str | None = None
        self._cache_value: tuple[Match, ...] = ()
        self.stats = EvaluationStats()

    @property
    def rules(self) -> tuple[Rule, ...]:
        """All loaded rules, including disabled ones."""
        return self._rules

    def _ranked(self, context: Mapping[str, Any], explain: bool) -> tuple[Match, ...]:
        key = f"{int(explain)}|{stable_stringify(context)}" if self._cache_enabled else None

        if key is not None:
            with self._lock:
                if key == self._cache_key:
                    self.stats.cache_hits += 1
                    return self._cache_value

        matches = []
        for rule in self._active:
            result = match_rule(rule, context, explain=explain)
            if result.is_match:
                matches.append(Match.from_rule(rule, result, explain=explain))
        ranked = tuple(rank_matches(matches))

        with self._lock:
            self.stats.rules_evaluated += len(self._active)
            if key is not None:
                self._cache_key = key
                self._cache_value = ranked
        return ranked

    def evaluate_all(
        self,
        context: Mapping[str, Any],
        options: EvaluationOptions | None = None,
    ) -> list[Match]:
        """Return every matching insight, best first."""
        options = options or EvaluationOptions()
        with self._lock:
            self.stats.evaluations += 1
        ranked = self._ranked(context or {}, options.explain)

        if options.feedback is None:
            result = list(ranked)
        else:
            policy = options.feedback
            result = suppress_matches(
                ranked,
                policy.index,
                options.now or datetime.now(timezone.utc),
                not_relevant_window=policy.not_relevant_window,
                cooldown_window=policy.cooldown_window,
            )
            with self._lock:
                self.stats.suppressed += len(ranked) - len(result)

        logger.debug(
            "evaluate_all: rules=%d matched=%d returned=%d",
            len(self._active),
            len(ranked),
            len(result),
        )
        return result

    def evaluate_one(
        self,
        context: Mapping[str, Any],
        options: EvaluationOptions | None = None,
    ) -> Match | None:
        """Return the single best insight, or None."""
        matches = self.evaluate_all(context, options)
        return matches[0] if matches else None

    def clear_cache(self) -> None:
        with self._lock:
            self._cache_key = None
            self._cache_value = ()


def create_engine(rules: Iterable[Rule | Mapping[str, Any]], *, cache_enabled: bool = True) -> InsightEngine:
    """Create an engine over ``rules`` (raw mappings are normalised)."""
    return InsightEngine(rules, cache_enabled=cache_enabled)


def evaluate_insight(
    context: Mapping[str, Any],
    rules: Iterable[Rule | Mapping[str, Any]],
    options: EvaluationOptions | None = None,
) -> Match | None:
    """One-shot helper: best insight for ``context`` under ``rules``."""
    return create_engine(rules, cache_enabled=False).evaluate_one(context, options)
