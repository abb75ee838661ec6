"""Screen scopes: where an insight may be shown, and picking one per screen."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from typing import Any

from reclaim.core.insights.models import Match, ScreenScope

logger = logging.getLogger(__name__)

_FALLBACK_MESSAGES = {
    ScreenScope.MOOD: "Log your mood to unlock personalized trends.",
    ScreenScope.SLEEP: "Sync or log sleep to unlock better sleep nudges.",
    ScreenScope.MEDS: "Keep logging meds to get adherence tips.",
    ScreenScope.DASHBOARD: "Keep logging to unlock personalized insights.",
    ScreenScope.GLOBAL: "Keep logging to unlock personalized insights.",
}


def _keyword_scope(text: str) -> ScreenScope | None:
    if "dashboard" in text or text == "home":
        return ScreenScope.DASHBOARD
    if "sleep" in text:
        return ScreenScope.SLEEP
    if "mood" in text:
        return ScreenScope.MOOD
    if "med" in text:
        return ScreenScope.MEDS
    return None


def normalize_scope(value: Any) -> ScreenScope:
    """Map a scope name, screen name or route (``/sleep``) to a ScreenScope."""
    if isinstance(value, ScreenScope):
        return value
    text = str(value if value is not None else "").strip().lower()
    text = re.sub(r"\s+", "_", text.lstrip("/"))
    return _keyword_scope(text) or ScreenScope.GLOBAL


def infer_scopes_from_rule(rule_id: str, source_tag: str | None = None) -> tuple[ScreenScope, ...]:
    """Infer scopes for rules that do not declare any, from sourceTag or id."""
    key = str(source_tag or rule_id or "").lower()
    scope = _keyword_scope(key)
    return (scope,) if scope else (ScreenScope.GLOBAL,)


def matches_scope(match: Match, scope: ScreenScope, *, allow_global: bool) -> bool:
    if match.scopes:
        return scope in match.scopes or (allow_global and ScreenScope.GLOBAL in match.scopes)
    return allow_global and scope is ScreenScope.GLOBAL


def contextual_fallback(scope: ScreenScope) -> Match:
    """Placeholder insight shown when nothing matches on a screen."""
    return Match(
        id=f"fallback-{scope.value}",
        message=_FALLBACK_MESSAGES[scope],
        priority=-999,
        scopes=(scope,),
    )


def pick_insight_for_screen(
    matches: Iterable[Match] | None,
    preferred_scopes: Sequence[ScreenScope | str] = (),
    *,
    allow_global_fallback: bool = True,
    dashboard_first: bool = False,
) -> Match:
    """Choose the insight to display on a screen.

    Engine order is preserved; the first match for the first satisfied scope
    wins. Never returns None: a contextual fallback is used when nothing fits.
    """
    candidates = list(matches or [])
    preferred = [normalize_scope(s) for s in preferred_scopes] or [ScreenScope.GLOBAL]
    chosen: Match | None = None

    if dashboard_first:
        chosen = next(
            (m for m in candidates if matches_scope(m, ScreenScope.DASHBOARD, allow_global=allow_global_fallback)),
            None,
        )

    if chosen is None:
        for scope in preferred:
            chosen = next(
                (m for m in candidates if matches_scope(m, scope, allow_global=allow_global_fallback)),
                None,
            )
            if chosen is not None:
                break

    if chosen is None and allow_global_fallback:
        chosen = next(
            (m for m in candidates if matches_scope(m, ScreenScope.GLOBAL, allow_global=True)),
            None,
        )

    if chosen is None:
        chosen = contextual_fallback(preferred[0])

    logger.debug(
        "pick_insight_for_screen: total=%d preferred=%s chosen=%s",
        len(candidates),
        [s.value for s in preferred],
        chosen.id,
    )
    return chosen
