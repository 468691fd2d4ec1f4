"""JSON responses shared by the reading tools.

Every tool returns a JSON string. Failures carry a stable ``code``;
not-found (which also covers readings owned by someone else and malformed
ids) has its own ``not_found`` status so callers can branch on it.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any, Callable

from vitalog.core.errors import NotFoundError, UnauthenticatedError, VitalogError

if TYPE_CHECKING:
    from vitalog.core.audit.logger import AuditLogger
    from vitalog.core.identity import IdentityProvider

logger = logging.getLogger(__name__)


def error_response(exc: VitalogError) -> str:
    if isinstance(exc, NotFoundError):
        return json.dumps({
            "status": "not_found",
            "code": NotFoundError.code,
            "reading_id": exc.reading_id,
            "message": "No reading found with that ID.",
        })
    return json.dumps({"status": "error", **exc.to_dict()}, default=str)


def _audit_owner(identity: IdentityProvider | None) -> str:
    if identity is None:
        return ""
    try:
        return identity.current_owner_id()
    except UnauthenticatedError:
        return ""


def run_tool(
    tool_name: str,
    tool_input: dict[str, Any],
    call: Callable[[], dict[str, Any]],
    *,
    audit_logger: AuditLogger | None = None,
    family: str | None = None,
    identity: IdentityProvider | None = None,
) -> str:
    """Run ``call``, audit the invocation, and serialize the outcome.

    ``VitalogError`` becomes an error payload. Anything else propagates to
    FastMCP as a tool failure. The audit row carries the caller's owner
    hash when ``identity`` resolves one.
    """
    start_time = time.monotonic()
    try:
        payload = call()
    except VitalogError as exc:
        elapsed_ms = (time.monotonic() - start_time) * 1000
        logger.info("%s rejected: %s", tool_name, exc.code)
        if audit_logger is not None:
            audit_logger.log_tool_call(
                tool_name,
                tool_input,
                owner_id=_audit_owner(identity),
                family=family,
                duration_ms=elapsed_ms,
                status="failure",
                error_type=exc.code,
            )
        return error_response(exc)

    elapsed_ms = (time.monotonic() - start_time) * 1000
    if audit_logger is not None:
        audit_logger.log_tool_call(
            tool_name,
            tool_input,
            owner_id=_audit_owner(identity),
            family=family,
            duration_ms=elapsed_ms,
        )
    payload.setdefault("status", "ok")
    payload["duration_ms"] = round(elapsed_ms, 1)
    return json.dumps(payload, indent=2)
