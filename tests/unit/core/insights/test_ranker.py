"""Tests for match ranking."""

from __future__ import annotations

from reclaim.core.insights.models import Match
from reclaim.core.insights.ranker import rank_key, rank_matches


def _match(id: str, priority: int = 0, specificity: int = 0) -> Match:
    return Match(id=id, message=id, priority=priority, specificity=specificity)


class TestRankMatches:
    def test_priority_descending(self):
        ranked = rank_matches([_match("a", 1), _match("b", 5), _match("c", 3)])
        assert [m.id for m in ranked] == ["b", "c", "a"]

    def test_specificity_breaks_priority_ties(self):
        ranked = rank_matches([_match("one", 4, 1), _match("two", 4, 2)])
        assert [m.id for m in ranked] == ["two", "one"]

    def test_id_breaks_remaining_ties(self):
        ranked = rank_matches([_match("zebra", 2, 1), _match("alpha", 2, 1)])
        assert [m.id for m in ranked] == ["alpha", "zebra"]

    def test_order_independent_of_input_order(self):
        matches = [_match("c", 1, 1), _match("a", 1, 1), _match("b", 2, 0)]
        assert rank_matches(matches) == rank_matches(list(reversed(matches)))

    def test_negative_priority_ranks_last(self):
        ranked = rank_matches([_match("fallback", -999), _match("normal", 0)])
        assert ranked[-1].id == "fallback"

    def test_rank_key(self):
        assert rank_key(_match("x", 3, 2)) == (-3, -2, "x")
