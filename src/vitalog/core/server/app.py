"""Vitalog MCP Server: application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for `fastmcp run` discovery
"""

from __future__ import annotations

import logging

from fastmcp import FastMCP

from vitalog.core.audit.logger import AuditLogger
from vitalog.core.config.settings import get_settings
from vitalog.core.identity import IdentityProvider, StaticIdentityProvider
from vitalog.core.storage.database import DatabaseError, ReadingDatabase
from vitalog.core.storage.encryption import EncryptionError, FieldEncryptor
from vitalog.core.storage.repository import ReadingRepository
from vitalog.domains.metrics.domain_logic.families import FAMILIES
from vitalog.domains.metrics.service import ReadingService
from vitalog.domains.metrics.tools.audit_tools import register_audit_tools
from vitalog.domains.metrics.tools.data_management_tools import (
    register_data_management_tools,
)
from vitalog.domains.metrics.tools.reading_tools import register_reading_tools
from vitalog.domains.metrics.tools.statistics_tools import register_statistics_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "Vitalog"
SERVER_VERSION = "0.1.0"

_UNSET = object()


def create_app(
    *,
    repository_override: ReadingRepository | None = None,
    identity_override: IdentityProvider | None = None,
    audit_logger_override: AuditLogger | None | object = _UNSET,
) -> FastMCP:
    """Create and configure the Vitalog MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Resolves the identity provider (configured owner id)
    3. Initializes the encrypted reading store and audit trail
    4. Registers the reading, statistics, data management and audit tools

    Without an encryption key (and no repository override) the server
    starts with only ``health_check``.
    """
    settings = get_settings()

    # --- Server instance ---
    server = FastMCP(
        SERVER_NAME,
        instructions=(
            "Vitalog personal health log. Record blood pressure, blood glucose "
            "and weight readings, edit or delete them, and get period "
            "statistics and export reports. Timestamps are local wall-clock "
            "'YYYY-MM-DDTHH:MM' plus client_utc_offset_minutes (minutes local "
            "time lags UTC)."
        ),
    )

    identity = identity_override or StaticIdentityProvider(settings.vitalog_owner_id)

    # --- Initialize encrypted storage (reading store) ---
    repository: ReadingRepository | None = None
    database: ReadingDatabase | None = None
    if repository_override is not None:
        repository = repository_override
    elif settings.encryption_key:
        try:
            encryptor = FieldEncryptor(settings.encryption_key)
            database = ReadingDatabase(settings.db_path)
            database.initialize()
            repository = ReadingRepository(database, encryptor)
            logger.info(
                "Reading store initialized: %s (schema v%d)",
                settings.db_path,
                database.get_schema_version(),
            )
        except (EncryptionError, DatabaseError) as exc:
            logger.error("Failed to initialize storage: %s", exc)
            logger.warning("Continuing without persistence, readings will not be stored")
            repository = None
    else:
        logger.info(
            "No ENCRYPTION_KEY configured, running without persistence. "
            "Set ENCRYPTION_KEY to enable the reading store."
        )

    # --- Audit trail ---
    if audit_logger_override is not _UNSET:
        audit_logger = audit_logger_override
    elif database is not None:
        audit_logger = AuditLogger(database)
    else:
        audit_logger = None

    # --- Register tools ---
    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        status = {
            "status": "ok",
            "server": SERVER_NAME,
            "version": SERVER_VERSION,
            "families": list(FAMILIES),
            "storage_enabled": repository is not None,
            "audit_enabled": audit_logger is not None,
        }
        return status

    if repository is None:
        return server

    service = ReadingService(
        repository,
        identity,
        audit_logger=audit_logger,
        require_utc_offset=settings.require_utc_offset,
    )

    register_reading_tools(server, service, audit_logger)
    register_statistics_tools(server, service, audit_logger)
    register_data_management_tools(server, service, audit_logger)
    logger.info("Reading tools registered")

    if audit_logger is not None:
        register_audit_tools(server, audit_logger, identity)
        logger.info("Audit tools registered")

    return server


# Module-level instance for `fastmcp run src/vitalog/core/server/app.py:mcp`.
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
