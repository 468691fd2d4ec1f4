"""Audit logger: PHI-free trail of reading mutations and tool calls.

Every create, update, and delete of a reading is recorded, together with
the tool invocation that caused it. Nothing identifying or clinical is
stored:

* ``owner_hash``      : SHA-256 of the owner id, never the id itself.
* ``tool_input_hash`` : SHA-256 of canonical JSON of the tool input.
* ``reading_id``      : the opaque UUID of the reading touched, no values.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from vitalog.core.errors import StorageUnavailableError
from vitalog.core.storage.database import ReadingDatabase

logger = logging.getLogger(__name__)

READING_CREATE = "reading_create"
READING_UPDATE = "reading_update"
READING_DELETE = "reading_delete"
DATA_DELETE = "data_delete"
TOOL_INVOCATION = "tool_invocation"


# ---------------------------------------------------------------------------
# Hashing
# ---------------------------------------------------------------------------

def _hash_input(data: Any) -> str:
    """SHA-256 hash of canonical JSON; no PHI stored in audit logs.

    Returns:
        Hex-encoded SHA-256 digest, or empty string if ``data`` is not
        JSON-serializable.
    """
    try:
        canonical = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode()).hexdigest()
    except (TypeError, ValueError):
        return ""


def hash_owner(owner_id: str) -> str:
    return hashlib.sha256(owner_id.encode()).hexdigest() if owner_id else ""


# ---------------------------------------------------------------------------
# AuditEvent dataclass
# ---------------------------------------------------------------------------

@dataclass
class AuditEvent:
    """A single audit log entry."""

    action: str                          # one of the action constants above
    tool_name: str = ""
    tool_input_hash: str = ""
    owner_hash: str = ""
    family: str | None = None
    reading_id: str | None = None
    duration_ms: float | None = None
    status: str = "success"              # 'success' | 'failure'
    error_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# AuditLogger
# ---------------------------------------------------------------------------

class AuditLogger:
    """Records audit events to the ``audit_log`` SQLite table.

    Writes are committed immediately. A failed audit write is logged and
    reported as an empty event id; it never fails the operation being
    audited.

    Usage::

        audit = AuditLogger(reading_db)
        audit.log_reading_change(
            READING_CREATE, owner_id="user_123",
            family="weight", reading_id=saved.id,
        )
    """

    def __init__(self, database: ReadingDatabase) -> None:
        self._db = database

    # ---------------------------------------------------------------
    # Write
    # ---------------------------------------------------------------

    def log_event(self, event: AuditEvent) -> str:
        """Insert an audit event and return its UUID (or "" on failure)."""
        event_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()

        metadata_json = (
            json.dumps(event.metadata, separators=(",", ":"))
            if event.metadata
            else None
        )

        try:
            conn = self._db.connection
            conn.execute(
                """INSERT INTO audit_log
                   (id, timestamp, action, tool_name, tool_input_hash,
                    owner_hash, family, reading_id,
                    duration_ms, status, error_type, metadata_json)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    event_id,
                    now,
                    event.action,
                    event.tool_name or None,
                    event.tool_input_hash or None,
                    event.owner_hash or None,
                    event.family,
                    event.reading_id,
                    event.duration_ms,
                    event.status,
                    event.error_type,
                    metadata_json,
                ),
            )
            conn.commit()
        except (sqlite3.Error, StorageUnavailableError):
            logger.exception("Failed to write audit event; event lost")
            return ""

        return event_id

    def log_reading_change(
        self,
        action: str,
        *,
        owner_id: str,
        family: str,
        reading_id: str,
    ) -> str:
        """Record that one reading was created, updated, or deleted."""
        return self.log_event(AuditEvent(
            action=action,
            owner_hash=hash_owner(owner_id),
            family=family,
            reading_id=reading_id,
        ))

    def log_tool_call(
        self,
        tool_name: str,
        tool_input: Any = None,
        *,
        owner_id: str = "",
        family: str | None = None,
        duration_ms: float | None = None,
        status: str = "success",
        error_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Convenience wrapper for logging a tool invocation.

        Args:
            tool_name: Name of the MCP tool.
            tool_input: Tool input data (hashed, never stored raw).
            owner_id: Caller identity (hashed).
            family: Metric family the tool acted on, if any.
            duration_ms: Tool execution duration in milliseconds.
            status: 'success' or 'failure'.
            error_type: Error code or exception class name on failure.
            metadata: Additional non-PHI metadata.

        Returns:
            The generated event ID.
        """
        return self.log_event(AuditEvent(
            action=TOOL_INVOCATION,
            tool_name=tool_name,
            tool_input_hash=_hash_input(tool_input) if tool_input else "",
            owner_hash=hash_owner(owner_id),
            family=family,
            duration_ms=duration_ms,
            status=status,
            error_type=error_type,
            metadata=metadata or {},
        ))

    def log_data_delete(
        self,
        *,
        owner_id: str,
        tool_name: str = "",
        family: str | None = None,
        count: int = 0,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Log a bulk deletion of an owner's readings."""
        return self.log_event(AuditEvent(
            action=DATA_DELETE,
            tool_name=tool_name,
            owner_hash=hash_owner(owner_id),
            family=family,
            metadata={**(metadata or {}), "records_deleted": count},
        ))

    # ---------------------------------------------------------------
    # Read
    # ---------------------------------------------------------------

    @staticmethod
    def _filters(**criteria: str | None) -> tuple[str, list[Any]]:
        """WHERE clause and params for the non-empty criteria."""
        columns = {
            "action": "action",
            "tool_name": "tool_name",
            "family": "family",
            "owner_id": "owner_hash",
        }
        conditions: list[str] = []
        params: list[Any] = []
        for name, value in criteria.items():
            if not value:
                continue
            if name == "since":
                conditions.append("timestamp >= ?")
            else:
                conditions.append(f"{columns[name]} = ?")
            params.append(hash_owner(value) if name == "owner_id" else value)
        where = (" WHERE " + " AND ".join(conditions)) if conditions else ""
        return where, params

    def get_events(
        self,
        *,
        action: str | None = None,
        tool_name: str | None = None,
        owner_id: str | None = None,
        family: str | None = None,
        since: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Audit events matching every given filter, newest first.

        ``owner_id`` is matched by its hash; ``since`` is an ISO 8601 lower bound.
        """
        where, params = self._filters(
            action=action, tool_name=tool_name, owner_id=owner_id,
            family=family, since=since,
        )
        rows = self._db.connection.execute(
            f"SELECT * FROM audit_log{where} ORDER BY timestamp DESC LIMIT ?",
            [*params, limit],
        ).fetchall()
        return [dict(row) for row in rows]

    def count_events(
        self,
        *,
        owner_id: str | None = None,
        action: str | None = None,
        since: str | None = None,
    ) -> int:
        """Count audit events, optionally per owner, action, or since a timestamp."""
        where, params = self._filters(owner_id=owner_id, action=action, since=since)
        row = self._db.connection.execute(
            f"SELECT COUNT(*) FROM audit_log{where}", params
        ).fetchone()
        return row[0]
