"""Reading validation: reject, never coerce, out-of-range input.

One generic validator driven by the family descriptor. Checks run in a
fixed order so the reported error is deterministic:

1. required fields (numeric fields, subtype, captured_at)
2. closed bounds per numeric field
3. cross-field relations (systolic > diastolic)
4. subtype membership
5. timestamp normalization
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping

from vitalog.core.errors import (
    InvalidRelationError,
    InvalidSubtypeError,
    MissingFieldError,
    OutOfRangeError,
)
from vitalog.domains.metrics.domain_logic.families import (
    FamilyDescriptor,
    FieldSpec,
    get_family,
)
from vitalog.domains.metrics.domain_logic.timestamps import normalize_captured_at


@dataclass
class ValidatedReading:
    """A reading that passed every family rule, ready to persist."""

    family: str
    subtype: str | None
    values: dict[str, float | int | None]
    captured_at: datetime
    notes: str = ""


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _to_number(spec: FieldSpec, raw: Any) -> float | int:
    """Convert and bound-check one numeric value."""
    if isinstance(raw, bool):
        raise OutOfRangeError(spec.name, raw, spec.bounds)
    if isinstance(raw, (int, float)):
        number = raw
    else:
        try:
            number = float(str(raw).strip())
        except ValueError:
            raise OutOfRangeError(spec.name, raw, spec.bounds) from None
    if isinstance(number, float):
        if not math.isfinite(number):
            raise OutOfRangeError(spec.name, raw, spec.bounds)
        if number.is_integer():
            number = int(number)
    if not spec.in_bounds(number):
        raise OutOfRangeError(spec.name, number, spec.bounds)
    return number


def _subtype_from(fields: Mapping[str, Any]) -> Any:
    subtype = fields.get("subtype")
    if _is_missing(subtype):
        subtype = fields.get("reading_type")
    return subtype


def validate_reading(
    family: FamilyDescriptor | str,
    fields: Mapping[str, Any],
    *,
    require_offset: bool = False,
) -> ValidatedReading:
    """Validate raw submitted fields for one family.

    Args:
        family: Family descriptor or its name.
        fields: Raw fields: the family's numeric fields, ``subtype`` (or
            ``reading_type``), ``captured_at``, optional
            ``client_utc_offset_minutes`` and ``notes``.
        require_offset: Reject a missing client UTC offset.

    Raises:
        MissingFieldError, OutOfRangeError, InvalidRelationError,
        InvalidSubtypeError, MalformedTimestampError.
    """
    if isinstance(family, str):
        family = get_family(family)

    subtype = _subtype_from(fields)

    # 1. Required fields
    for spec in family.required_fields:
        if _is_missing(fields.get(spec.name)):
            raise MissingFieldError(spec.name)
    if family.has_subtypes and _is_missing(subtype):
        raise MissingFieldError("subtype")
    if _is_missing(fields.get("captured_at")):
        raise MissingFieldError("captured_at")

    # 2. Bounds. Activity-only fields count only for the activity subtype.
    values: dict[str, float | int | None] = {}
    for spec in family.fields:
        raw = fields.get(spec.name)
        if spec.name in family.activity_fields and subtype != family.activity_subtype:
            values[spec.name] = None
            continue
        if not spec.required and _is_missing(raw):
            values[spec.name] = None
            continue
        values[spec.name] = _to_number(spec, raw)

    # 3. Cross-field relations
    for greater, lesser in family.relations:
        if not values[greater] > values[lesser]:
            raise InvalidRelationError(
                f"{family.get_field(greater).label} must be greater than "
                f"{family.get_field(lesser).label.lower()}",
                **{greater: values[greater], lesser: values[lesser]},
            )

    # 4. Subtype
    if family.has_subtypes:
        if subtype not in family.subtypes:
            raise InvalidSubtypeError(family.name, subtype, family.subtypes)
    else:
        subtype = None

    # 5. Timestamp
    captured_at = normalize_captured_at(
        fields["captured_at"],
        fields.get("client_utc_offset_minutes"),
        require_offset=require_offset,
    )

    notes = fields.get("notes") or ""
    return ValidatedReading(
        family=family.name,
        subtype=subtype,
        values=values,
        captured_at=captured_at,
        notes=str(notes),
    )
