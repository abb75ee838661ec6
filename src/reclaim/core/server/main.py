"""Server entry point: ``python -m reclaim.core.server.main``."""

from __future__ import annotations

import logging
from ipaddress import ip_address

from reclaim.core.config.settings import Settings, get_settings
from reclaim.core.insights.loader import DEFAULT_RULES_FILE
from reclaim.core.server.app import create_app

logger = logging.getLogger(__name__)


def _is_loopback_host(host: str) -> bool:
    host = host.strip().strip("[]")
    if host.lower() == "localhost":
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def _check_bind(settings: Settings) -> None:
    """The feedback log is readable and writable by any caller, so stay on loopback unless told otherwise."""
    if settings.reclaim_allow_insecure_bind:
        if not _is_loopback_host(settings.reclaim_host):
            logger.warning("Binding to non-loopback host %s with no auth layer", settings.reclaim_host)
        return
    if not _is_loopback_host(settings.reclaim_host):
        raise RuntimeError(
            f"Refusing to bind to non-loopback host {settings.reclaim_host!r}: the insight tools read "
            "and write the user's feedback log with no auth layer in front of them. "
            "Set RECLAIM_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )


def _rules_source(settings: Settings) -> str:
    if settings.rules_path:
        return settings.rules_path
    return f"<bundled> {DEFAULT_RULES_FILE}"


def run() -> None:
    """Check the bind address, log where rules and feedback live, then serve over Streamable HTTP."""
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.reclaim_log_level.upper(), logging.INFO))
    _check_bind(settings)

    logger.info(
        "Starting Reclaim Insights server on %s:%d (rules=%s, store=%s, user=%s)",
        settings.reclaim_host,
        settings.reclaim_port,
        _rules_source(settings),
        settings.db_path,
        settings.user_id,
    )
    create_app().run(
        transport="streamable-http",
        host=settings.reclaim_host,
        port=settings.reclaim_port,
    )


if __name__ == "__main__":
    run()
