"""MCP tools for recording and editing readings.

Timestamps are the client's local wall-clock time (``YYYY-MM-DDTHH:MM``)
plus ``client_utc_offset_minutes``: minutes local time lags UTC, the
browser ``getTimezoneOffset`` value (UTC-5 is 300, UTC+2 is -120).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from vitalog.domains.metrics.tools.responses import run_tool

if TYPE_CHECKING:
    from vitalog.core.audit.logger import AuditLogger
    from vitalog.domains.metrics.service import ReadingService

logger = logging.getLogger(__name__)


def register_reading_tools(
    mcp: FastMCP,
    service: ReadingService,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register add / update / get / list / delete reading tools."""

    def _add(tool_name: str, family: str, fields: dict) -> str:
        return run_tool(
            tool_name,
            fields,
            lambda: {"status": "created", "reading": service.add_reading(family, fields)},
            audit_logger=audit_logger,
            identity=service.identity,
            family=family,
        )

    def _update(tool_name: str, family: str, reading_id: str, fields: dict) -> str:
        return run_tool(
            tool_name,
            {"reading_id": reading_id, **fields},
            lambda: {
                "status": "updated",
                "reading": service.update_reading(family, reading_id, fields),
            },
            audit_logger=audit_logger,
            identity=service.identity,
            family=family,
        )

    # ------------------------------------------------------------------
    # Blood pressure
    # ------------------------------------------------------------------

    @mcp.tool
    async def add_blood_pressure_reading(
        ctx: Context,
        systolic: float | None = None,
        diastolic: float | None = None,
        pulse: float | None = None,
        captured_at: str = "",
        reading_type: str = "normal",
        walk_duration: float | None = None,
        peak_pulse: float | None = None,
        client_utc_offset_minutes: int | None = None,
        notes: str = "",
    ) -> str:
        """Record a blood pressure reading.

        Args:
            systolic: Systolic pressure in mmHg (50-300). Must exceed diastolic.
            diastolic: Diastolic pressure in mmHg (30-200).
            pulse: Pulse in bpm (30-220).
            captured_at: When it was measured, local time 'YYYY-MM-DDTHH:MM'.
            reading_type: 'normal' or 'after_activity'.
            walk_duration: Minutes walked before measuring (after_activity only).
            peak_pulse: Highest pulse during the walk in bpm (after_activity only).
            client_utc_offset_minutes: Minutes local time lags UTC (UTC-5 is 300).
            notes: Optional free-text notes.
        """
        return _add("add_blood_pressure_reading", "blood_pressure", {
            "systolic": systolic,
            "diastolic": diastolic,
            "pulse": pulse,
            "subtype": reading_type,
            "walk_duration": walk_duration,
            "peak_pulse": peak_pulse,
            "captured_at": captured_at,
            "client_utc_offset_minutes": client_utc_offset_minutes,
            "notes": notes,
        })

    @mcp.tool
    async def update_blood_pressure_reading(
        ctx: Context,
        reading_id: str,
        systolic: float | None = None,
        diastolic: float | None = None,
        pulse: float | None = None,
        captured_at: str = "",
        reading_type: str = "normal",
        walk_duration: float | None = None,
        peak_pulse: float | None = None,
        client_utc_offset_minutes: int | None = None,
        notes: str = "",
    ) -> str:
        """Replace every field of one of your blood pressure readings.

        Switching reading_type away from 'after_activity' clears walk_duration
        and peak_pulse.

        Args:
            reading_id: ID of the reading to update.
            systolic: Systolic pressure in mmHg (50-300).
            diastolic: Diastolic pressure in mmHg (30-200).
            pulse: Pulse in bpm (30-220).
            captured_at: Local time 'YYYY-MM-DDTHH:MM'.
            reading_type: 'normal' or 'after_activity'.
            walk_duration: Minutes walked (after_activity only).
            peak_pulse: Highest pulse during the walk (after_activity only).
            client_utc_offset_minutes: Minutes local time lags UTC.
            notes: Free-text notes (replaces existing notes).
        """
        return _update("update_blood_pressure_reading", "blood_pressure", reading_id, {
            "systolic": systolic,
            "diastolic": diastolic,
            "pulse": pulse,
            "subtype": reading_type,
            "walk_duration": walk_duration,
            "peak_pulse": peak_pulse,
            "captured_at": captured_at,
            "client_utc_offset_minutes": client_utc_offset_minutes,
            "notes": notes,
        })

    # ------------------------------------------------------------------
    # Blood glucose
    # ------------------------------------------------------------------

    @mcp.tool
    async def add_glucose_reading(
        ctx: Context,
        glucose: float | None = None,
        reading_type: str = "",
        captured_at: str = "",
        client_utc_offset_minutes: int | None = None,
        notes: str = "",
    ) -> str:
        """Record a blood glucose reading.

        Args:
            glucose: Blood glucose in mg/dL (20-600).
            reading_type: 'fasting', 'before_meal', 'after_meal', 'bedtime' or 'random'.
            captured_at: Local time 'YYYY-MM-DDTHH:MM'.
            client_utc_offset_minutes: Minutes local time lags UTC.
            notes: Optional free-text notes.
        """
        return _add("add_glucose_reading", "blood_glucose", {
            "glucose": glucose,
            "subtype": reading_type,
            "captured_at": captured_at,
            "client_utc_offset_minutes": client_utc_offset_minutes,
            "notes": notes,
        })

    @mcp.tool
    async def update_glucose_reading(
        ctx: Context,
        reading_id: str,
        glucose: float | None = None,
        reading_type: str = "",
        captured_at: str = "",
        client_utc_offset_minutes: int | None = None,
        notes: str = "",
    ) -> str:
        """Replace every field of one of your blood glucose readings.

        Args:
            reading_id: ID of the reading to update.
            glucose: Blood glucose in mg/dL (20-600).
            reading_type: 'fasting', 'before_meal', 'after_meal', 'bedtime' or 'random'.
            captured_at: Local time 'YYYY-MM-DDTHH:MM'.
            client_utc_offset_minutes: Minutes local time lags UTC.
            notes: Free-text notes (replaces existing notes).
        """
        return _update("update_glucose_reading", "blood_glucose", reading_id, {
            "glucose": glucose,
            "subtype": reading_type,
            "captured_at": captured_at,
            "client_utc_offset_minutes": client_utc_offset_minutes,
            "notes": notes,
        })

    # ------------------------------------------------------------------
    # Weight
    # ------------------------------------------------------------------

    @mcp.tool
    async def add_weight_reading(
        ctx: Context,
        weight: float | None = None,
        captured_at: str = "",
        client_utc_offset_minutes: int | None = None,
        notes: str = "",
    ) -> str:
        """Record a body weight reading.

        Args:
            weight: Body weight in kg (20-300).
            captured_at: Local time 'YYYY-MM-DDTHH:MM'.
            client_utc_offset_minutes: Minutes local time lags UTC.
            notes: Optional free-text notes.
        """
        return _add("add_weight_reading", "weight", {
            "weight": weight,
            "captured_at": captured_at,
            "client_utc_offset_minutes": client_utc_offset_minutes,
            "notes": notes,
        })

    @mcp.tool
    async def update_weight_reading(
        ctx: Context,
        reading_id: str,
        weight: float | None = None,
        captured_at: str = "",
        client_utc_offset_minutes: int | None = None,
        notes: str = "",
    ) -> str:
        """Replace every field of one of your weight readings.

        Args:
            reading_id: ID of the reading to update.
            weight: Body weight in kg (20-300).
            captured_at: Local time 'YYYY-MM-DDTHH:MM'.
            client_utc_offset_minutes: Minutes local time lags UTC.
            notes: Free-text notes (replaces existing notes).
        """
        return _update("update_weight_reading", "weight", reading_id, {
            "weight": weight,
            "captured_at": captured_at,
            "client_utc_offset_minutes": client_utc_offset_minutes,
            "notes": notes,
        })

    # ------------------------------------------------------------------
    # Any family
    # ------------------------------------------------------------------

    @mcp.tool
    async def get_reading(
        ctx: Context,
        reading_id: str,
        family: str = "",
        client_utc_offset_minutes: int | None = None,
    ) -> str:
        """Fetch one of your readings by ID.

        Args:
            reading_id: ID of the reading.
            family: Optional family the reading must belong to.
            client_utc_offset_minutes: Offset used for the local time shown.
        """
        return run_tool(
            "get_reading",
            {"reading_id": reading_id, "family": family},
            lambda: {"reading": service.get_reading(
                reading_id,
                family_name=family or None,
                client_utc_offset_minutes=client_utc_offset_minutes,
            )},
            audit_logger=audit_logger,
            identity=service.identity,
            family=family or None,
        )

    @mcp.tool
    async def list_readings(
        ctx: Context,
        family: str,
        reading_type: str = "",
        limit: int = 0,
        period: str = "",
        start_date: str = "",
        end_date: str = "",
        client_utc_offset_minutes: int | None = None,
        height_cm: float | None = None,
    ) -> str:
        """List your readings for one family, newest first.

        Args:
            family: 'blood_pressure', 'blood_glucose' or 'weight'.
            reading_type: Only readings of this type (e.g. 'fasting').
            limit: Maximum readings to return (0 for all).
            period: '7days', '30days', '90days', 'allTime' or 'custom'.
            start_date: First day 'YYYY-MM-DD' of a custom period.
            end_date: Last day 'YYYY-MM-DD' of a custom period.
            client_utc_offset_minutes: Minutes local time lags UTC.
            height_cm: Your height, to show BMI categories for weight.
        """
        def _call() -> dict:
            readings = service.list_readings(
                family,
                subtype=reading_type or None,
                limit=limit or None,
                period=period or None,
                start=start_date or None,
                end=end_date or None,
                client_utc_offset_minutes=client_utc_offset_minutes,
                height_cm=height_cm,
            )
            return {"family": family, "count": len(readings), "readings": readings}

        return run_tool(
            "list_readings",
            {"family": family, "reading_type": reading_type, "limit": limit,
             "period": period, "start_date": start_date, "end_date": end_date},
            _call,
            audit_logger=audit_logger,
            identity=service.identity,
            family=family,
        )

    @mcp.tool
    async def delete_reading(
        ctx: Context,
        reading_id: str,
        family: str = "",
    ) -> str:
        """Permanently delete one of your readings.

        Args:
            reading_id: ID of the reading to delete.
            family: Optional family the reading must belong to.
        """
        return run_tool(
            "delete_reading",
            {"reading_id": reading_id, "family": family},
            lambda: {
                "status": "deleted",
                "reading_id": service.delete_reading(reading_id, family_name=family or None),
            },
            audit_logger=audit_logger,
            identity=service.identity,
            family=family or None,
        )
