"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Reclaim insights server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Server
    # Loopback by default; there is no auth layer in front of the MCP server.
    reclaim_host: str = "127.0.0.1"
    reclaim_port: int = 8011
    reclaim_log_level: str = "info"
    reclaim_allow_insecure_bind: bool = False

    # Rules (empty = packaged default rule set)
    rules_path: str = ""

    # Storage (feedback + seen stores)
    db_path: str = "~/.reclaim/insights.db"
    user_id: str = "anon"

    # Feedback suppression
    feedback_not_relevant_hours: float = 24.0
    feedback_cooldown_days: float = 7.0
    feedback_fetch_limit: int = 250

    # Display frequency
    seen_ttl_hours: float = 24.0

    # Engine
    engine_cache_enabled: bool = True


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
