"""MCP tools for viewing the audit trail.

The audit log is PHI-free: owner ids and tool inputs are hashed, and no
reading values or notes are ever written to it. Every view is scoped to the
calling owner's hash.
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from vitalog.core.audit.logger import TOOL_INVOCATION
from vitalog.core.errors import VitalogError
from vitalog.domains.metrics.service import checked_days
from vitalog.domains.metrics.tools.responses import error_response

if TYPE_CHECKING:
    from vitalog.core.audit.logger import AuditLogger
    from vitalog.core.identity import IdentityProvider

logger = logging.getLogger(__name__)


def register_audit_tools(
    mcp: FastMCP,
    audit_logger: AuditLogger,
    identity: IdentityProvider,
) -> None:
    """Register audit trail tools on the MCP server."""

    @mcp.tool
    async def audit_summary(
        ctx: Context,
        days: int = 30,
    ) -> str:
        """View recent changes to your readings and your tool usage.

        Args:
            days: Number of days to look back (1-36500, default: 30).
        """
        try:
            owner_id = identity.current_owner_id()
            days = checked_days(days, "days")
        except VitalogError as exc:
            return error_response(exc)

        since = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()

        owner_events = audit_logger.get_events(owner_id=owner_id, since=since, limit=500)
        changes = [e for e in owner_events if e["action"] != TOOL_INVOCATION]
        recent_tools = audit_logger.get_events(
            action=TOOL_INVOCATION, owner_id=owner_id, since=since, limit=20
        )

        display_events = []
        for event in changes[:20]:
            display_events.append({
                "timestamp": event.get("timestamp"),
                "action": event.get("action"),
                "family": event.get("family"),
                "reading_id": event.get("reading_id"),
                "status": event.get("status"),
            })

        return json.dumps({
            "status": "ok",
            "period_days": days,
            "total_events": audit_logger.count_events(owner_id=owner_id, since=since),
            "changes_by_action": dict(Counter(e["action"] for e in changes)),
            "recent_changes": display_events,
            "recent_tool_calls": [
                {
                    "timestamp": event.get("timestamp"),
                    "tool_name": event.get("tool_name"),
                    "status": event.get("status"),
                    "error_type": event.get("error_type"),
                    "duration_ms": event.get("duration_ms"),
                }
                for event in recent_tools
            ],
            "note": (
                "This audit trail contains no health values or notes. "
                "It records which readings changed and which tools were used."
            ),
        }, indent=2)
