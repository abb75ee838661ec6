"""MCP tools for wellbeing insights: evaluate, pick, feedback and follow-up reason, seen, context."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from fastmcp import FastMCP

if TYPE_CHECKING:
    from reclaim.core.config.settings import Settings
    from reclaim.core.insights.engine import InsightEngine
    from reclaim.core.storage.repository import FeedbackRepository, SeenRepository

from reclaim.core.insights.engine import EvaluationOptions
from reclaim.core.insights.scope import normalize_scope, pick_insight_for_screen
from reclaim.core.insights.suppression import FEEDBACK_REASONS, FeedbackPolicy
from reclaim.domains.wellbeing.domain_logic.context_builder import build_insight_context
from reclaim.domains.wellbeing.domain_logic.record_models import (
    DailyActivitySummary,
    MedDoseLog,
    MoodCheckin,
    SleepSession,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def _validate_context(context: Any) -> dict[str, Any]:
    if context is None:
        return {}
    if not isinstance(context, dict):
        raise ValueError("context must be an object")
    return context


def _validate_reason(reason: str | None, helpful: bool) -> str | None:
    reason = (reason or "").strip() or None
    if helpful and reason:
        raise ValueError("reason is only accepted for helpful=false feedback")
    return reason


def _validate_limit(limit: int) -> int:
    if limit < 1:
        raise ValueError("limit must be >= 1")
    return limit


def register_insight_tools(
    mcp: FastMCP,
    engine: InsightEngine,
    settings: Settings,
    feedback_repository: FeedbackRepository | None = None,
    seen_repository: SeenRepository | None = None,
) -> None:
    """Register insight tools on the MCP server.

    Feedback suppression and seen filtering are only applied when the
    corresponding repository is available.
    """
    not_relevant_window = timedelta(hours=settings.feedback_not_relevant_hours)
    cooldown_window = timedelta(days=settings.feedback_cooldown_days)
    seen_ttl = timedelta(hours=settings.seen_ttl_hours)

    def _options(use_feedback: bool, explain: bool) -> EvaluationOptions:
        policy = None
        if use_feedback and feedback_repository is not None:
            index = feedback_repository.feedback_index(settings.feedback_fetch_limit)
            if index is not None:
                policy = FeedbackPolicy(
                    index=index,
                    not_relevant_window=not_relevant_window,
                    cooldown_window=cooldown_window,
                )
        return EvaluationOptions(feedback=policy, now=datetime.now(timezone.utc), explain=explain)

    @mcp.tool
    def evaluate_insights(
        context: dict[str, Any],
        use_feedback: bool = True,
        explain: bool = False,
        limit: int = 5,
    ) -> str:
        """Evaluate the insight rules against a wellbeing context snapshot.

        Args:
            context: Context snapshot, e.g. {"mood": {"last": 2.5}, "sleep": {"lastNight": {"hours": 5.5}}}.
            use_feedback: Hide insights recently marked unhelpful.
            explain: Include a per-condition actual-vs-expected trace.
            limit: Maximum number of insights returned (best first).
        """
        context = _validate_context(context)
        limit = _validate_limit(limit)
        matches = engine.evaluate_all(context, _options(use_feedback, explain))
        return json.dumps(
            {"count": len(matches), "insights": [m.to_dict() for m in matches[:limit]]},
            indent=2,
        )

    @mcp.tool
    def pick_insight(
        context: dict[str, Any],
        screen: str = "dashboard",
        dashboard_first: bool = False,
        skip_seen: bool = True,
        mark_seen: bool = True,
    ) -> str:
        """Pick the single insight to display on a screen.

        Args:
            context: Context snapshot to evaluate.
            screen: Screen or route name (sleep, mood, meds, dashboard).
            dashboard_first: Prefer dashboard-scoped insights.
            skip_seen: Skip insights already shown on this screen recently.
            mark_seen: Record the chosen insight as shown.
        """
        context = _validate_context(context)
        scope = normalize_scope(screen)
        now = datetime.now(timezone.utc)
        matches = engine.evaluate_all(context, _options(True, False))

        if skip_seen and seen_repository is not None:
            unseen = seen_repository.filter_unseen(
                matches, scope.value, now, user_id=settings.user_id, ttl=seen_ttl
            )
            # Rotate through seen insights rather than showing only the fallback.
            matches = unseen or matches

        chosen = pick_insight_for_screen(matches, [scope], dashboard_first=dashboard_first)
        if mark_seen and seen_repository is not None and not chosen.id.startswith("fallback-"):
            seen_repository.mark_seen(scope.value, chosen.id, user_id=settings.user_id, ts=now)

        return json.dumps({"screen": scope.value, "insight": chosen.to_dict()}, indent=2)

    @mcp.tool
    def record_insight_feedback(
        insight_id: str,
        helpful: bool,
        reason: str = "",
        source_tag: str = "",
    ) -> str:
        """Record whether an insight was helpful.

        Args:
            insight_id: Id of the insight the user responded to.
            helpful: True for thumbs-up, False for thumbs-down.
            reason: For helpful=false: not_accurate, not_relevant_now, too_generic,
                already_doing_this, dont_like_suggestion, confusing, other.
            source_tag: Optional source tag of the insight.
        """
        if feedback_repository is None:
            return json.dumps({"status": "error", "error": "Feedback storage is not enabled"})

        reason_value = _validate_reason(reason, helpful)
        if reason_value and reason_value not in FEEDBACK_REASONS:
            logger.info("Free-text feedback reason for %s", insight_id)

        feedback_id = feedback_repository.log_feedback(
            insight_id,
            helpful,
            reason=reason_value,
            source_tag=source_tag or None,
        )
        return json.dumps({"status": "ok", "feedback_id": feedback_id})

    @mcp.tool
    def update_insight_feedback_reason(feedback_id: str, reason: str) -> str:
        """Attach a reason to feedback already recorded (the follow-up after a thumbs-down).

        Args:
            feedback_id: Id returned by record_insight_feedback.
            reason: One of the known reasons, or free text.
        """
        if feedback_repository is None:
            return json.dumps({"status": "error", "error": "Feedback storage is not enabled"})

        reason_value = (reason or "").strip()
        if not reason_value:
            raise ValueError("reason must not be empty")
        if reason_value not in FEEDBACK_REASONS:
            logger.info("Free-text feedback reason for feedback %s", feedback_id)

        feedback_repository.update_reason(feedback_id, reason_value)
        return json.dumps({"status": "ok", "feedback_id": feedback_id, "reason": reason_value})

    @mcp.tool
    def mark_insight_seen(insight_id: str, screen: str) -> str:
        """Record that an insight was shown on a screen."""
        if seen_repository is None:
            return json.dumps({"status": "error", "error": "Seen storage is not enabled"})
        scope = normalize_scope(screen)
        seen_repository.mark_seen(scope.value, insight_id, user_id=settings.user_id)
        return json.dumps({"status": "ok", "screen": scope.value, "insight_id": insight_id})

    @mcp.tool
    def build_context(
        moods: list[dict[str, Any]] | None = None,
        sleep_sessions: list[dict[str, Any]] | None = None,
        activity: list[dict[str, Any]] | None = None,
        med_logs: list[dict[str, Any]] | None = None,
    ) -> str:
        """Aggregate raw wellbeing records into an insight context snapshot.

        Args:
            moods: Mood check-ins: {"rating": 1-5, "created_at": ISO, "tags": [...]}.
            sleep_sessions: {"start_time": ISO, "end_time": ISO}.
            activity: Daily summaries: {"activity_date": "YYYY-MM-DD", "steps": int}.
            med_logs: Dose logs from the last 7 days: {"status": "taken|missed|skipped"}.
        """
        context = build_insight_context(
            moods=[MoodCheckin.from_dict(m) for m in moods or []],
            sleep_sessions=[SleepSession.from_dict(s) for s in sleep_sessions or []],
            activity=[DailyActivitySummary.from_dict(a) for a in activity or []],
            med_logs=[MedDoseLog.from_dict(m) for m in med_logs or []],
        )
        return json.dumps(context, indent=2)
