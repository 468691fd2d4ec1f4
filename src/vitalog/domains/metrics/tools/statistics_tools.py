"""MCP tools for period statistics and export reports."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from vitalog.domains.metrics.tools.responses import run_tool

if TYPE_CHECKING:
    from vitalog.core.audit.logger import AuditLogger
    from vitalog.domains.metrics.service import ReadingService

logger = logging.getLogger(__name__)


def register_statistics_tools(
    mcp: FastMCP,
    service: ReadingService,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register statistics and export tools on the MCP server."""

    @mcp.tool
    async def reading_statistics(
        ctx: Context,
        family: str,
        period: str = "30days",
        start_date: str = "",
        end_date: str = "",
        client_utc_offset_minutes: int | None = None,
        height_cm: float | None = None,
    ) -> str:
        """Averages, ranges and daily trend of your readings over a period.

        Returns overall and per-type count/mean/min/max, a daily average
        series, the 10 most recent readings, and for weight the change
        between the last 30 days and earlier readings. A period with no
        readings reports zeros with count 0.

        Args:
            family: 'blood_pressure', 'blood_glucose' or 'weight'.
            period: '7days', '30days', '90days', 'allTime' or 'custom'
                ('week', 'month' and 'all' also work).
            start_date: First day 'YYYY-MM-DD' of a custom period.
            end_date: Last day 'YYYY-MM-DD' of a custom period.
            client_utc_offset_minutes: Minutes local time lags UTC; sets day boundaries.
            height_cm: Your height, for BMI.
        """
        return run_tool(
            "reading_statistics",
            {"family": family, "period": period,
             "start_date": start_date, "end_date": end_date},
            lambda: {"statistics": service.get_statistics(
                family,
                period or None,
                start=start_date or None,
                end=end_date or None,
                client_utc_offset_minutes=client_utc_offset_minutes,
                height_cm=height_cm,
            )},
            audit_logger=audit_logger,
            identity=service.identity,
            family=family,
        )

    @mcp.tool
    async def export_readings(
        ctx: Context,
        family: str,
        period: str = "",
        start_date: str = "",
        end_date: str = "",
        reading_type: str = "",
        client_utc_offset_minutes: int | None = None,
        weight_unit: str = "kg",
        height_cm: float | None = None,
    ) -> str:
        """Report data for your readings: grouped tables and daily averages.

        Readings are grouped by type and sorted newest first; each group
        also gets a daily average series. Weight can be shown in lbs; the
        stored values stay in kg.

        Args:
            family: 'blood_pressure', 'blood_glucose' or 'weight'.
            period: Optional '7days', '30days', '90days', 'allTime' or 'custom'.
            start_date: First day 'YYYY-MM-DD' of a custom range.
            end_date: Last day 'YYYY-MM-DD' of a custom range.
            reading_type: Only readings of this type.
            client_utc_offset_minutes: Minutes local time lags UTC.
            weight_unit: 'kg' or 'lbs'.
            height_cm: Your height, for BMI categories.
        """
        return run_tool(
            "export_readings",
            {"family": family, "period": period, "start_date": start_date,
             "end_date": end_date, "reading_type": reading_type,
             "weight_unit": weight_unit},
            lambda: {"report": service.export(
                family,
                period=period or None,
                start=start_date or None,
                end=end_date or None,
                subtype=reading_type or None,
                client_utc_offset_minutes=client_utc_offset_minutes,
                weight_unit=weight_unit,
                height_cm=height_cm,
            )},
            audit_logger=audit_logger,
            identity=service.identity,
            family=family,
        )
