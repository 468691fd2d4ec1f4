"""Export report shaping.

Turns a reading set the caller has already narrowed into the grouped,
ordered, labeled structure a PDF or CSV renderer consumes. No rendering
happens here. Every input reading lands in exactly one section.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

from vitalog.core.errors import InvalidArgumentError
from vitalog.core.storage.models import Reading
from vitalog.domains.metrics.domain_logic.aggregator import (
    daily_series,
    partition_readings,
    round_half_up,
)
from vitalog.domains.metrics.domain_logic.classifiers import (
    Category,
    category_description,
    classify,
)
from vitalog.domains.metrics.domain_logic.families import KG_TO_LBS, FamilyDescriptor
from vitalog.domains.metrics.domain_logic.timestamps import to_client_local

WEIGHT_UNITS = ("kg", "lbs")


def _display_value(value: float | int | None, unit: str, weight_unit: str) -> float | int | None:
    if value is not None and unit == "kg" and weight_unit == "lbs":
        return round_half_up(value * KG_TO_LBS, 1)
    return value


def _columns(family: FamilyDescriptor, weight_unit: str) -> list[dict[str, str]]:
    columns = [{"key": "date", "label": "Date"}, {"key": "time", "label": "Time"}]
    for spec in family.fields:
        unit = weight_unit if spec.unit == "kg" else spec.unit
        columns.append({"key": spec.name, "label": f"{spec.label} ({unit})"})
    columns += [
        {"key": "category", "label": "Category"},
        {"key": "notes", "label": "Notes"},
        {"key": "recorded_at", "label": "Recorded At"},
    ]
    return columns


def _row(
    family: FamilyDescriptor,
    reading: Reading,
    *,
    offset: int | None,
    weight_unit: str,
    height_cm: float | None,
) -> dict[str, Any]:
    local = to_client_local(reading.captured_at, offset)
    row: dict[str, Any] = {
        "id": reading.id,
        "date": local.strftime("%Y-%m-%d"),
        "time": local.strftime("%H:%M"),
    }
    for spec in family.fields:
        row[spec.name] = _display_value(
            reading.values.get(spec.name), spec.unit, weight_unit
        )
    # Categories come from stored values, never from converted display values
    row["category"] = classify(
        family, reading.subtype, reading.values, height_cm=height_cm
    ).value
    row["notes"] = reading.notes
    row["recorded_at"] = (
        to_client_local(reading.recorded_at, offset).strftime("%Y-%m-%d %H:%M")
        if reading.recorded_at
        else ""
    )
    return row


def shape_export(
    family: FamilyDescriptor,
    readings: Iterable[Reading],
    *,
    client_utc_offset_minutes: int | None = None,
    weight_unit: str = "kg",
    height_cm: float | None = None,
    generated_at: datetime | None = None,
) -> dict[str, Any]:
    """Build the report structure for one family.

    Args:
        family: Family the readings belong to.
        readings: Readings to report, already filtered by the caller.
        client_utc_offset_minutes: Owner's offset for dates, times and days.
        weight_unit: ``kg`` or ``lbs``; conversion is display-only.
        height_cm: Optional height for BMI categories.
        generated_at: Report timestamp (defaults to UTC now).

    Returns:
        Dict with: family, title, generated_at, weight_unit, summary,
        columns, sections (newest first per subtype) and daily (ascending
        per subtype).
    """
    if weight_unit not in WEIGHT_UNITS:
        raise InvalidArgumentError(
            f"weight_unit must be one of {', '.join(WEIGHT_UNITS)}", weight_unit=weight_unit
        )

    ordered = sorted(readings, key=lambda r: r.captured_at, reverse=True)
    partitions = partition_readings(family, ordered)
    offset = client_utc_offset_minutes

    sections = []
    daily: dict[str, list[dict[str, Any]]] = {}
    for key, group in partitions.items():
        if not group:
            continue
        section: dict[str, Any] = {
            "subtype": key,
            "label": family.subtype_label(key if family.has_subtypes else None),
            "count": len(group),
            "rows": [
                _row(family, r, offset=offset, weight_unit=weight_unit, height_cm=height_cm)
                for r in group
            ],
        }
        target = family.target_range(key)
        if target is not None:
            section["target_range"] = target
        sections.append(section)

        series = daily_series(family, group, offset)
        for point in series:
            for spec in family.fields:
                if spec.unit == "kg" and spec.name in point:
                    point[spec.name] = _display_value(
                        point[spec.name], spec.unit, weight_unit
                    )
        daily[key] = series

    summary: dict[str, Any] = {
        "total": len(ordered),
        "counts_by_subtype": {key: len(group) for key, group in partitions.items()},
        "first": ordered[-1].captured_at.isoformat() if ordered else None,
        "last": ordered[0].captured_at.isoformat() if ordered else None,
    }
    if family.bmi_field and height_cm is None:
        summary["bmi_note"] = category_description(family.name, Category.UNKNOWN)

    return {
        "family": family.name,
        "title": f"{family.display_name} Report",
        "generated_at": (generated_at or datetime.now(timezone.utc)).isoformat(),
        "weight_unit": weight_unit,
        "summary": summary,
        "columns": _columns(family, weight_unit),
        "sections": sections,
        "daily": daily,
    }
