"""Reading service: the request-level operations behind the MCP tools.

Order of work for every request:

1. resolve the caller through the identity provider (``Unauthenticated``
   short-circuits everything else);
2. validate input (no repository call happens for invalid input);
3. make exactly one owner-scoped repository mutation;
4. translate a repository no-match into ``NotFoundError``.

Categories and labels are attached to every reading on the way out; they
are never stored.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Mapping

from vitalog.core.audit.logger import READING_CREATE, READING_DELETE, READING_UPDATE
from vitalog.core.errors import InvalidArgumentError, MalformedIdentifierError, NotFoundError
from vitalog.core.storage.models import Reading
from vitalog.domains.metrics.domain_logic.aggregator import Period, compute_statistics
from vitalog.domains.metrics.domain_logic.classifiers import (
    body_mass_index,
    category_description,
    classify,
)
from vitalog.domains.metrics.domain_logic.exporter import shape_export
from vitalog.domains.metrics.domain_logic.families import (
    FamilyDescriptor,
    get_family,
)
from vitalog.domains.metrics.domain_logic.timestamps import coerce_offset, format_wall_clock
from vitalog.domains.metrics.domain_logic.validators import ValidatedReading, validate_reading

if TYPE_CHECKING:
    from vitalog.core.audit.logger import AuditLogger
    from vitalog.core.identity import IdentityProvider
    from vitalog.core.storage.repository import ReadingRepository

logger = logging.getLogger(__name__)

RECENT_READINGS = 10
# Day-count arguments beyond a century are rejected before any date math
MAX_LOOKBACK_DAYS = 36500


def checked_days(days: int, name: str) -> int:
    """Validate a day-count argument (1 to MAX_LOOKBACK_DAYS).

    Raises:
        InvalidArgumentError: Not a whole number in range.
    """
    if isinstance(days, bool) or not isinstance(days, int):
        raise InvalidArgumentError(f"{name} must be a whole number of days", **{name: days})
    if not 1 <= days <= MAX_LOOKBACK_DAYS:
        raise InvalidArgumentError(
            f"{name} must be between 1 and {MAX_LOOKBACK_DAYS}", **{name: days}
        )
    return days


class ReadingService:
    """Owner-scoped reading lifecycle, statistics and export.

    Usage::

        service = ReadingService(repo, StaticIdentityProvider("user_123"))
        saved = service.add_reading("blood_glucose", {
            "glucose": 95, "subtype": "fasting",
            "captured_at": "2025-03-10T07:15", "client_utc_offset_minutes": 300,
        })
        service.get_statistics("blood_glucose", "30days")
    """

    def __init__(
        self,
        repository: ReadingRepository,
        identity: IdentityProvider,
        *,
        audit_logger: AuditLogger | None = None,
        require_utc_offset: bool = False,
    ) -> None:
        self._repo = repository
        self._identity = identity
        self._audit = audit_logger
        self._require_offset = require_utc_offset

    @property
    def identity(self) -> IdentityProvider:
        return self._identity

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def _owner(self) -> str:
        return self._identity.current_owner_id()

    def _audit_change(self, action: str, owner_id: str, family: str, reading_id: str) -> None:
        if self._audit is not None:
            self._audit.log_reading_change(
                action, owner_id=owner_id, family=family, reading_id=reading_id
            )

    def _checked_id(self, reading_id: str) -> str:
        rid = self._repo.parse_id(reading_id)
        if rid is None:
            raise MalformedIdentifierError(str(reading_id))
        return rid

    @staticmethod
    def _to_reading(owner_id: str, validated: ValidatedReading) -> Reading:
        return Reading(
            owner_id=owner_id,
            family=validated.family,
            subtype=validated.subtype,
            captured_at=validated.captured_at,
            values={k: v for k, v in validated.values.items() if v is not None},
            notes=validated.notes,
        )

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------

    @staticmethod
    def describe(
        reading: Reading,
        *,
        client_utc_offset_minutes: int | None = None,
        height_cm: float | None = None,
    ) -> dict[str, Any]:
        """Reading dict with every family field, labels and category attached."""
        family = get_family(reading.family)
        payload = reading.to_dict()
        for name in family.field_names:
            payload.setdefault(name, None)

        category = classify(family, reading.subtype, reading.values, height_cm=height_cm)
        payload["subtype_label"] = family.subtype_label(reading.subtype)
        payload["category"] = category.value
        payload["category_description"] = category_description(family.name, category)
        payload["captured_at_local"] = format_wall_clock(
            reading.captured_at, client_utc_offset_minutes
        )
        target = family.target_range(reading.subtype)
        if target is not None:
            payload["target_range"] = target
        if family.bmi_field and height_cm:
            bmi = body_mass_index(reading.values[family.bmi_field], height_cm)
            payload["bmi"] = round(bmi, 1) if bmi is not None else None
        return payload

    # ------------------------------------------------------------------
    # Reading lifecycle
    # ------------------------------------------------------------------

    def add_reading(self, family_name: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Validate and persist a new reading for the caller.

        Raises:
            UnauthenticatedError, UnknownFamilyError, validation errors,
            StorageUnavailableError.
        """
        owner_id = self._owner()
        family = get_family(family_name)
        validated = validate_reading(family, fields, require_offset=self._require_offset)

        saved = self._repo.create_reading(self._to_reading(owner_id, validated))
        self._audit_change(READING_CREATE, owner_id, family.name, saved.id)
        return self.describe(
            saved,
            client_utc_offset_minutes=coerce_offset(fields.get("client_utc_offset_minutes")),
        )

    def get_reading(
        self,
        reading_id: str,
        *,
        family_name: str | None = None,
        client_utc_offset_minutes: int | str | None = None,
    ) -> dict[str, Any]:
        owner_id = self._owner()
        family = get_family(family_name).name if family_name else None
        rid = self._checked_id(reading_id)
        reading = self._repo.get_reading(rid, owner_id, family=family)
        if reading is None:
            raise NotFoundError(rid)
        return self.describe(
            reading, client_utc_offset_minutes=coerce_offset(client_utc_offset_minutes)
        )

    def update_reading(
        self,
        family_name: str,
        reading_id: str,
        fields: Mapping[str, Any],
    ) -> dict[str, Any]:
        """Replace every mutable field of one of the caller's readings.

        Fields not supplied are cleared, not kept: this is a full
        replacement, last write wins.

        Raises:
            NotFoundError: No reading with that id is owned by the caller
                (including a malformed id).
        """
        owner_id = self._owner()
        family = get_family(family_name)
        validated = validate_reading(family, fields, require_offset=self._require_offset)
        rid = self._checked_id(reading_id)

        matched = self._repo.update_reading(rid, owner_id, self._to_reading(owner_id, validated))
        if not matched:
            raise NotFoundError(rid)
        self._audit_change(READING_UPDATE, owner_id, family.name, rid)

        updated = self._repo.get_reading(rid, owner_id, family=family.name)
        if updated is None:
            raise NotFoundError(rid)
        return self.describe(
            updated,
            client_utc_offset_minutes=coerce_offset(fields.get("client_utc_offset_minutes")),
        )

    def delete_reading(self, reading_id: str, *, family_name: str | None = None) -> str:
        """Delete one of the caller's readings; returns the canonical id."""
        owner_id = self._owner()
        family = get_family(family_name).name if family_name else None
        rid = self._checked_id(reading_id)

        if not self._repo.delete_reading(rid, owner_id, family=family):
            raise NotFoundError(rid)
        self._audit_change(READING_DELETE, owner_id, family or "", rid)
        return rid

    def list_readings(
        self,
        family_name: str,
        *,
        subtype: str | None = None,
        limit: int | None = None,
        period: str | None = None,
        start: str | None = None,
        end: str | None = None,
        client_utc_offset_minutes: int | str | None = None,
        height_cm: float | None = None,
    ) -> list[dict[str, Any]]:
        """The caller's readings, newest first, optionally narrowed."""
        owner_id = self._owner()
        family = get_family(family_name)
        offset = coerce_offset(client_utc_offset_minutes)
        since, until = self._window(period, start, end, offset)

        readings = self._repo.list_readings(
            owner_id,
            family.name,
            since=since,
            until=until,
            subtype=subtype or None,
            limit=limit,
        )
        return [
            self.describe(r, client_utc_offset_minutes=offset, height_cm=height_cm)
            for r in readings
        ]

    def delete_all_readings(self, family_name: str | None = None) -> int:
        owner_id = self._owner()
        family = get_family(family_name).name if family_name else None
        count = self._repo.delete_all_readings(owner_id, family=family)
        if self._audit is not None:
            self._audit.log_data_delete(
                owner_id=owner_id, tool_name="delete_all_readings", family=family, count=count
            )
        return count

    def purge_old_readings(self, older_than_days: int, family_name: str | None = None) -> int:
        """Delete the caller's readings captured more than N days ago.

        Raises:
            InvalidArgumentError: ``older_than_days`` outside 1..MAX_LOOKBACK_DAYS.
        """
        owner_id = self._owner()
        family = get_family(family_name).name if family_name else None
        older_than_days = checked_days(older_than_days, "older_than_days")
        cutoff = self._now() - timedelta(days=older_than_days)
        count = self._repo.purge_before(owner_id, cutoff, family=family)
        if self._audit is not None and count > 0:
            self._audit.log_data_delete(
                owner_id=owner_id,
                tool_name="purge_old_readings",
                family=family,
                count=count,
                metadata={"older_than_days": older_than_days},
            )
        return count

    # ------------------------------------------------------------------
    # Statistics and export
    # ------------------------------------------------------------------

    def _window(
        self,
        period: str | None,
        start: str | None,
        end: str | None,
        offset: int | None,
    ) -> tuple[datetime | None, datetime | None]:
        if not period and not start and not end:
            return None, None
        return Period.parse(period, start=start, end=end).bounds(self._now(), offset)

    def get_statistics(
        self,
        family_name: str,
        period: str | None = "30days",
        *,
        start: str | None = None,
        end: str | None = None,
        client_utc_offset_minutes: int | str | None = None,
        height_cm: float | None = None,
    ) -> dict[str, Any]:
        """Period statistics for the caller plus the most recent readings."""
        owner_id = self._owner()
        family = get_family(family_name)
        offset = coerce_offset(client_utc_offset_minutes)
        selector = Period.parse(period, start=start, end=end)
        now = self._now()
        since, until = selector.bounds(now, offset)

        readings = self._repo.list_readings(owner_id, family.name, since=since, until=until)
        stats = compute_statistics(
            family, readings, selector, now=now, client_utc_offset_minutes=offset
        )
        stats["recent_readings"] = [
            self.describe(r, client_utc_offset_minutes=offset, height_cm=height_cm)
            for r in readings[:RECENT_READINGS]
        ]
        if family.bmi_field and height_cm and stats["count"]:
            bmi = body_mass_index(stats["overall"][family.bmi_field]["mean"], height_cm)
            stats["bmi"] = round(bmi, 1) if bmi is not None else None
        return stats

    def export(
        self,
        family_name: str,
        *,
        period: str | None = None,
        start: str | None = None,
        end: str | None = None,
        subtype: str | None = None,
        client_utc_offset_minutes: int | str | None = None,
        weight_unit: str = "kg",
        height_cm: float | None = None,
    ) -> dict[str, Any]:
        """Report structure for the caller's readings of one family."""
        owner_id = self._owner()
        family: FamilyDescriptor = get_family(family_name)
        offset = coerce_offset(client_utc_offset_minutes)
        since, until = self._window(period, start, end, offset)

        readings = self._repo.list_readings(
            owner_id, family.name, since=since, until=until, subtype=subtype or None
        )
        report = shape_export(
            family,
            readings,
            client_utc_offset_minutes=offset,
            weight_unit=weight_unit,
            height_cm=height_cm,
        )
        report["range"] = {
            "since": since.isoformat() if since else None,
            "until": until.isoformat() if until else None,
        }
        logger.info("Shaped %s export with %d readings", family.name, len(readings))
        return report
