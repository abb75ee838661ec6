"""MCP Resources for insight rule discovery."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from fastmcp import FastMCP

if TYPE_CHECKING:
    from reclaim.core.insights.engine import InsightEngine


def register_insight_rule_resources(mcp: FastMCP, engine: InsightEngine) -> None:
    """Register rule discovery resources on the MCP server."""

    @mcp.resource("insights://rules/registry")
    def insight_rule_registry_resource() -> str:
        """Discover all loaded insight rules."""
        rules = engine.rules
        return json.dumps(
            {
                "rule_count": len(rules),
                "enabled_count": sum(1 for r in rules if r.enabled),
                "rules": [
                    {
                        "id": r.id,
                        "priority": r.priority,
                        "enabled": r.enabled,
                        "scopes": [s.value for s in r.scopes],
                        "source_tag": r.source_tag,
                        "message": r.message,
                        "conditions": [c.to_dict() for c in r.conditions],
                    }
                    for r in rules
                ],
            },
            indent=2,
        )
