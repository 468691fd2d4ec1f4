"""Vitalog server entry point (``python -m vitalog.core.server.main``).

Startup is split into small steps so the bind policy and the
configuration warnings can be checked without starting a transport.
"""

from __future__ import annotations

import logging
from ipaddress import ip_address

from vitalog.core.config.settings import Settings, get_settings
from vitalog.core.server.app import create_app

logger = logging.getLogger(__name__)

LOOPBACK_NAMES = frozenset({"localhost", "localhost."})


def is_loopback_host(host: str) -> bool:
    """True when ``host`` names or addresses the local machine only."""
    host = host.strip().strip("[]").lower()
    if host in LOOPBACK_NAMES:
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def check_bind(settings: Settings) -> None:
    """Refuse a non-loopback bind unless it was explicitly allowed.

    Raises:
        RuntimeError: the host is reachable from the network and
            ``VITALOG_ALLOW_INSECURE_BIND`` is not set.
    """
    if settings.vitalog_allow_insecure_bind or is_loopback_host(settings.vitalog_host):
        return
    raise RuntimeError(
        f"Refusing to bind Vitalog to {settings.vitalog_host!r} without an auth layer. "
        "Set VITALOG_ALLOW_INSECURE_BIND=true to override (unsafe)."
    )


def startup_warnings(settings: Settings) -> list[str]:
    """Configuration gaps that still allow the server to start."""
    warnings = []
    if not settings.vitalog_owner_id:
        warnings.append("VITALOG_OWNER_ID is not set: reading tools will report unauthenticated")
    if not settings.encryption_key:
        warnings.append("ENCRYPTION_KEY is not set: only health_check will be available")
    if settings.vitalog_allow_insecure_bind and not is_loopback_host(settings.vitalog_host):
        warnings.append(f"Serving health data on non-loopback host {settings.vitalog_host}")
    return warnings


def configure_logging(settings: Settings) -> None:
    level = getattr(logging, settings.vitalog_log_level.upper(), logging.INFO)
    logging.basicConfig(level=level)


def run() -> None:
    """Start the Vitalog MCP server with Streamable HTTP transport."""
    settings = get_settings()
    configure_logging(settings)
    check_bind(settings)
    for message in startup_warnings(settings):
        logger.warning(message)

    logger.info("Starting Vitalog server on %s:%d", settings.vitalog_host, settings.vitalog_port)
    create_app().run(
        transport="streamable-http",
        host=settings.vitalog_host,
        port=settings.vitalog_port,
    )


if __name__ == "__main__":
    run()
