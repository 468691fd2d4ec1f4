"""Period statistics over a reading set.

Pure computation: callers fetch the owner's readings, this module filters
them to a period, partitions them by subtype, and reduces each partition
to count / mean / min / max plus a per-day series.

An empty partition reports zeros, never None: presentation checks
``count`` to detect "no data".
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_FLOOR, Decimal
from typing import Any, Iterable, Sequence

from vitalog.core.errors import InvalidPeriodError
from vitalog.core.storage.models import Reading
from vitalog.domains.metrics.domain_logic.families import FamilyDescriptor
from vitalog.domains.metrics.domain_logic.timestamps import (
    day_bounds,
    local_day,
    parse_day,
)

logger = logging.getLogger(__name__)

CHANGE_WINDOW_DAYS = 30

_PERIOD_DAYS = {"7days": 7, "30days": 30, "90days": 90}
_PERIOD_ALIASES = {
    "week": "7days",
    "month": "30days",
    "quarter": "90days",
    "all": "allTime",
    "all_time": "allTime",
    "alltime": "allTime",
}


def round_half_up(value: float, precision: int = 0) -> float | int:
    """Round with halves going toward positive infinity (120.5 -> 121).

    ``round()`` rounds half to even, which would report a mean of 120.5
    mmHg as 120.
    """
    step = Decimal(1).scaleb(-precision)
    scaled = (Decimal(str(value)) / step + Decimal("0.5")).to_integral_value(
        rounding=ROUND_FLOOR
    )
    result = scaled * step
    return int(result) if precision == 0 else float(result)


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


# ---------------------------------------------------------------------------
# Period selection
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Period:
    """A time window selector: last N days, a custom day range, or all time."""

    name: str                   # '7days' | '30days' | '90days' | 'allTime' | 'custom'
    days: int | None = None
    start: date | None = None
    end: date | None = None

    @classmethod
    def parse(
        cls,
        selector: str | None,
        *,
        start: str | date | None = None,
        end: str | date | None = None,
    ) -> Period:
        """Build a period from a selector name.

        ``custom`` needs ``start`` and ``end`` dates (``YYYY-MM-DD``), which
        are taken as whole local days. Passing dates with no selector also
        means custom.

        Raises:
            InvalidPeriodError: Unknown selector or incomplete custom range.
        """
        name = (selector or "").strip()
        if not name:
            name = "custom" if (start or end) else "allTime"
        name = _PERIOD_ALIASES.get(name.lower(), name)

        if name in _PERIOD_DAYS:
            return cls(name=name, days=_PERIOD_DAYS[name])
        if name == "allTime":
            return cls(name=name)
        if name == "custom":
            if not start or not end:
                raise InvalidPeriodError("A custom period needs both start and end dates")
            first, last = parse_day(start), parse_day(end)
            if first > last:
                raise InvalidPeriodError(
                    "Period start must not be after its end",
                    start=first.isoformat(),
                    end=last.isoformat(),
                )
            return cls(name=name, start=first, end=last)

        raise InvalidPeriodError(
            f"Unknown period {selector!r}. Valid: 7days, 30days, 90days, allTime, custom",
            period=selector,
        )

    def bounds(
        self,
        now: datetime,
        client_utc_offset_minutes: int | None = None,
    ) -> tuple[datetime | None, datetime | None]:
        """Inclusive ``(since, until)`` instants; None means unbounded."""
        if self.days is not None:
            return now - timedelta(days=self.days), now
        if self.name == "custom":
            since, _ = day_bounds(self.start, client_utc_offset_minutes)
            _, until = day_bounds(self.end, client_utc_offset_minutes)
            return since, until
        return None, None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": self.name}
        if self.days is not None:
            payload["days"] = self.days
        if self.start is not None:
            payload["start"] = self.start.isoformat()
            payload["end"] = self.end.isoformat()
        return payload


def filter_to_window(
    readings: Iterable[Reading],
    since: datetime | None,
    until: datetime | None,
) -> list[Reading]:
    return [
        r for r in readings
        if (since is None or r.captured_at >= since)
        and (until is None or r.captured_at <= until)
    ]


# ---------------------------------------------------------------------------
# Partitioning and reduction
# ---------------------------------------------------------------------------

def partition_readings(
    family: FamilyDescriptor,
    readings: Iterable[Reading],
) -> dict[str, list[Reading]]:
    """Group readings by subtype, preserving input order within each group.

    Every known partition key is present (possibly empty). A reading whose
    stored subtype is not a known one gets its own partition rather than
    being dropped.
    """
    partitions: dict[str, list[Reading]] = {key: [] for key in family.partition_keys}
    for reading in readings:
        partitions.setdefault(family.partition_key(reading.subtype), []).append(reading)
    return partitions


def summarize(family: FamilyDescriptor, readings: Sequence[Reading]) -> dict[str, Any]:
    """Count plus mean/min/max of every numeric field of the family.

    Means are rounded to the field's display precision; extrema are the
    stored values. Optional fields are reduced over the readings that
    carry them.
    """
    summary: dict[str, Any] = {"count": len(readings)}
    for spec in family.fields:
        values = [r.values[spec.name] for r in readings if r.values.get(spec.name) is not None]
        if not values:
            summary[spec.name] = {"mean": 0, "min": 0, "max": 0}
            continue
        summary[spec.name] = {
            "mean": round_half_up(_mean(values), spec.precision),
            "min": min(values),
            "max": max(values),
        }
    return summary


def daily_series(
    family: FamilyDescriptor,
    readings: Iterable[Reading],
    client_utc_offset_minutes: int | None = None,
) -> list[dict[str, Any]]:
    """Per-day averages of each numeric field, ascending by the owner's local day."""
    by_day: dict[date, list[Reading]] = defaultdict(list)
    for reading in readings:
        by_day[local_day(reading.captured_at, client_utc_offset_minutes)].append(reading)

    series = []
    for day in sorted(by_day):
        day_readings = by_day[day]
        point: dict[str, Any] = {"date": day.isoformat(), "count": len(day_readings)}
        for spec in family.fields:
            values = [
                r.values[spec.name] for r in day_readings
                if r.values.get(spec.name) is not None
            ]
            if values:
                point[spec.name] = round_half_up(_mean(values), spec.precision)
            elif spec.required:
                point[spec.name] = 0
        series.append(point)
    return series


def change_over_window(
    family: FamilyDescriptor,
    readings: Sequence[Reading],
    now: datetime,
    *,
    window_days: int = CHANGE_WINDOW_DAYS,
) -> dict[str, float | int]:
    """Mean of the trailing window minus mean of the older readings.

    Zero for a field when either side has no readings.
    """
    cutoff = now - timedelta(days=window_days)
    changes: dict[str, float | int] = {}
    for name in family.change_fields:
        spec = family.get_field(name)
        recent = [r.values[name] for r in readings
                  if r.captured_at >= cutoff and r.values.get(name) is not None]
        older = [r.values[name] for r in readings
                 if r.captured_at < cutoff and r.values.get(name) is not None]
        if not recent or not older:
            changes[name] = 0
            continue
        changes[name] = round_half_up(_mean(recent) - _mean(older), spec.precision)
    return changes


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def compute_statistics(
    family: FamilyDescriptor,
    readings: Iterable[Reading],
    period: Period,
    *,
    now: datetime | None = None,
    client_utc_offset_minutes: int | None = None,
) -> dict[str, Any]:
    """Aggregate one owner's readings of one family over a period.

    Args:
        family: Family the readings belong to.
        readings: The owner's readings (any order).
        period: Window to aggregate over.
        now: Reference instant for relative periods (defaults to UTC now).
        client_utc_offset_minutes: Owner's offset, used for day boundaries.

    Returns:
        Dict with: family, period, since, until, count, overall,
        partitions, counts_by_subtype, daily, change.
    """
    now = now or datetime.now(timezone.utc)
    since, until = period.bounds(now, client_utc_offset_minutes)
    in_scope = filter_to_window(readings, since, until)

    partitions = partition_readings(family, in_scope)
    result: dict[str, Any] = {
        "family": family.name,
        "period": period.to_dict(),
        "since": since.isoformat() if since else None,
        "until": until.isoformat() if until else None,
        "count": len(in_scope),
        "overall": summarize(family, in_scope),
        "partitions": {key: summarize(family, group) for key, group in partitions.items()},
        "counts_by_subtype": {key: len(group) for key, group in partitions.items()},
        "daily": daily_series(family, in_scope, client_utc_offset_minutes),
    }
    if family.change_fields:
        result["change"] = change_over_window(family, in_scope, now)

    logger.debug(
        "Aggregated %d %s readings over %s", len(in_scope), family.name, period.name
    )
    return result
