"""MCP tools for bulk reading deletion and retention.

Single-reading deletion lives with the other reading tools. Everything here
removes many readings at once and is recorded in the audit trail.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from vitalog.domains.metrics.tools.responses import run_tool

if TYPE_CHECKING:
    from vitalog.core.audit.logger import AuditLogger
    from vitalog.domains.metrics.service import ReadingService

logger = logging.getLogger(__name__)

CONFIRM_DELETE_ALL = "DELETE_ALL"


def register_data_management_tools(
    mcp: FastMCP,
    service: ReadingService,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register bulk data management tools on the MCP server."""

    @mcp.tool
    async def purge_old_readings(
        ctx: Context,
        older_than_days: int = 365,
        family: str = "",
    ) -> str:
        """Delete your readings captured more than a number of days ago.

        Args:
            older_than_days: Delete readings older than this many days
                (1-36500, default: 365).
            family: Only this family ('blood_pressure', 'blood_glucose', 'weight').
        """
        return run_tool(
            "purge_old_readings",
            {"older_than_days": older_than_days, "family": family},
            lambda: {
                "status": "purged",
                "readings_deleted": service.purge_old_readings(
                    older_than_days, family or None
                ),
                "older_than_days": older_than_days,
            },
            audit_logger=audit_logger,
            family=family or None,
            identity=service.identity,
        )

    @mcp.tool
    async def delete_all_readings(
        ctx: Context,
        confirm: str = "",
        family: str = "",
    ) -> str:
        """Permanently delete ALL of your readings, or all of one family.

        This cannot be undone.

        Args:
            confirm: Must be exactly 'DELETE_ALL' to proceed. Safety gate.
            family: Only this family; empty deletes every family.
        """
        if confirm != CONFIRM_DELETE_ALL:
            return json.dumps({
                "status": "cancelled",
                "message": (
                    "To delete your readings, call this tool with "
                    "confirm='DELETE_ALL'. This action cannot be undone."
                ),
            })

        return run_tool(
            "delete_all_readings",
            {"confirm": confirm, "family": family},
            lambda: {
                "status": "all_deleted",
                "readings_deleted": service.delete_all_readings(family or None),
                "family": family or None,
                "message": "Readings have been permanently deleted.",
            },
            audit_logger=audit_logger,
            family=family or None,
            identity=service.identity,
        )
