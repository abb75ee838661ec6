"""Total, deterministic ordering of insight matches."""

from __future__ import annotations

from collections.abc import Iterable

from reclaim.core.insights.models import Match


def rank_key(match: Match) -> tuple[int, int, str]:
    """Priority desc, then specificity desc, then id asc."""
    return (-match.priority, -match.specificity, match.id)


def rank_matches(matches: Iterable[Match]) -> list[Match]:
    """Return ``matches`` best-first.

    Rule ids are unique, so the id tie-break makes the order total.
    """
    return sorted(matches, key=rank_key)
