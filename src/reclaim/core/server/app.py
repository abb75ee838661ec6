"""Reclaim Insights MCP Server: application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging
from datetime import timedelta
from pathlib import Path

from fastmcp import FastMCP

from reclaim.core.config.settings import get_settings
from reclaim.core.insights.engine import InsightEngine, create_engine
from reclaim.core.insights.loader import DEFAULT_RULES_FILE, load_rules_file
from reclaim.core.insights.validator import validate_rules_file
from reclaim.core.storage.database import InsightDatabase
from reclaim.core.storage.repository import FeedbackRepository, SeenRepository
from reclaim.domains.wellbeing.resources.rules import register_insight_rule_resources
from reclaim.domains.wellbeing.tools.insight_tools import register_insight_tools

logger = logging.getLogger(__name__)


def create_app(
    *,
    engine_override: InsightEngine | None = None,
    database_override: InsightDatabase | None = None,
) -> FastMCP:
    """Create and configure the Reclaim Insights MCP server.

    1. Creates the FastMCP server instance
    2. Loads and lints the rule set, builds the insight engine
    3. Opens the feedback/seen store
    4. Registers all tools and resources
    """
    settings = get_settings()

    # --- Server instance ---
    server = FastMCP(
        "Reclaim Insights",
        instructions=(
            "Wellbeing insight server. Evaluates mood, sleep, activity and medication "
            "context snapshots against a deterministic rule set and returns the most "
            "relevant actionable insight, honouring user feedback cooldowns."
        ),
    )

    # --- Rules + engine ---
    if engine_override is not None:
        engine = engine_override
        rules_source = "<override>"
    else:
        rules_file = Path(settings.rules_path).expanduser() if settings.rules_path else DEFAULT_RULES_FILE
        for problem in validate_rules_file(rules_file):
            logger.warning("Rule lint: %s", problem)
        engine = create_engine(load_rules_file(rules_file), cache_enabled=settings.engine_cache_enabled)
        rules_source = str(rules_file)
    logger.info("Insight engine ready with %d rules from %s", len(engine.rules), rules_source)

    # --- Storage (feedback + seen) ---
    database = database_override or InsightDatabase(settings.db_path)
    database.initialize()
    feedback_repository = FeedbackRepository(database, user_id=settings.user_id)
    seen_repository = SeenRepository(database, ttl=timedelta(hours=settings.seen_ttl_hours))
    logger.info("Insight store initialized (schema v%d)", database.get_schema_version())

    # --- Register tools ---
    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        return {
            "status": "ok",
            "server": "Reclaim Insights",
            "version": "0.1.0",
            "rules_loaded": len(engine.rules),
            "rules_enabled": sum(1 for r in engine.rules if r.enabled),
            "rules_source": rules_source,
            "feedback_rows": len(feedback_repository.list_feedback(settings.feedback_fetch_limit)),
            "evaluations": engine.stats.evaluations,
            "cache_hits": engine.stats.cache_hits,
        }

    register_insight_tools(server, engine, settings, feedback_repository, seen_repository)
    logger.info("Insight tools registered")

    # --- Register resources ---
    register_insight_rule_resources(server, engine)

    return server


# Module-level instance for FastMCP discovery.
# Lazy: only created when the attribute is accessed (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
