"""Data models for the insight persistence layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class StoredFeedback:
    """One feedback row as written by the insight card."""

    id: str
    user_id: str
    created_at: str  # ISO 8601, UTC
    insight_id: str
    helpful: bool
    reason: str | None = None
    source_tag: str | None = None
    match_payload: dict[str, Any] = field(default_factory=dict)
    app_version: str | None = None

    def as_row(self) -> dict[str, Any]:
        """Shape consumed by ``build_feedback_index_from_rows``."""
        return {
            "insight_id": self.insight_id,
            "created_at": self.created_at,
            "helpful": self.helpful,
            "reason": self.reason,
        }


@dataclass
class SeenEntry:
    """Last time an insight was shown on a screen."""

    user_id: str
    screen: str
    insight_id: str
    seen_at: str  # ISO 8601, UTC
