"""Client wall-clock -> absolute instant conversion.

Clients submit ``YYYY-MM-DDTHH:MM`` in their own local time together with
their UTC offset in minutes, using the browser ``getTimezoneOffset``
convention: positive means local time is *behind* UTC (UTC-5 -> 300).

    utc_instant = naive_local_as_utc + offset_minutes

Stored data depends on this exact sign; do not flip it.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone

from vitalog.core.errors import MalformedTimestampError

_WALL_CLOCK_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2})$")
_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")

# getTimezoneOffset spans UTC+14 (-840) to UTC-12 (720)
MAX_OFFSET_MINUTES = 840


def coerce_offset(offset: int | str | None) -> int | None:
    if offset is None or offset == "":
        return None
    if isinstance(offset, bool):
        raise MalformedTimestampError("UTC offset must be an integer number of minutes")
    try:
        minutes = int(offset)
    except (TypeError, ValueError):
        raise MalformedTimestampError(
            "UTC offset must be an integer number of minutes", offset=offset
        ) from None
    if isinstance(offset, float) and offset != minutes:
        raise MalformedTimestampError("UTC offset must be whole minutes", offset=offset)
    if abs(minutes) > MAX_OFFSET_MINUTES:
        raise MalformedTimestampError("UTC offset out of range", offset=minutes)
    return minutes


def parse_wall_clock(value: str) -> datetime:
    """Parse ``YYYY-MM-DDTHH:MM`` into a naive datetime (seconds = 0)."""
    if not isinstance(value, str):
        raise MalformedTimestampError("Timestamp must be a string", value=repr(value))
    match = _WALL_CLOCK_RE.match(value.strip())
    if match is None:
        raise MalformedTimestampError(
            "Timestamp must look like YYYY-MM-DDTHH:MM", value=value
        )
    try:
        return datetime(*(int(part) for part in match.groups()))
    except ValueError as exc:
        raise MalformedTimestampError(f"Invalid timestamp: {exc}", value=value) from exc


def _out_of_range(value: object) -> MalformedTimestampError:
    return MalformedTimestampError(
        "Timestamp falls outside the supported date range", value=str(value)
    )


def normalize_captured_at(
    value: str,
    client_utc_offset_minutes: int | str | None = None,
    *,
    require_offset: bool = False,
) -> datetime:
    """Resolve a client wall-clock string to an aware UTC instant.

    Args:
        value: Wall-clock time in the client's local zone.
        client_utc_offset_minutes: Minutes local time lags UTC. When omitted
            the naive value is interpreted in the server's local timezone.
        require_offset: Reject a missing offset instead of falling back.

    Raises:
        MalformedTimestampError: Unparseable value or offset, or a local time
            whose UTC instant is not representable (years 1-9999).
    """
    naive = parse_wall_clock(value)
    offset = coerce_offset(client_utc_offset_minutes)

    if offset is None and require_offset:
        raise MalformedTimestampError("A client UTC offset is required")
    try:
        if offset is None:
            # Server-local fallback for clients that predate the offset field
            return naive.astimezone(timezone.utc)
        return naive.replace(tzinfo=timezone.utc) + timedelta(minutes=offset)
    except (OverflowError, OSError) as exc:
        raise _out_of_range(value) from exc


def to_client_local(instant: datetime, client_utc_offset_minutes: int | None = None) -> datetime:
    """Re-express an instant as naive wall-clock time for the client."""
    try:
        if client_utc_offset_minutes is None:
            return instant.astimezone().replace(tzinfo=None)
        utc = instant.astimezone(timezone.utc).replace(tzinfo=None)
        return utc - timedelta(minutes=client_utc_offset_minutes)
    except (OverflowError, OSError) as exc:
        raise _out_of_range(instant.isoformat()) from exc


def format_wall_clock(instant: datetime, client_utc_offset_minutes: int | None = None) -> str:
    return to_client_local(instant, client_utc_offset_minutes).strftime("%Y-%m-%dT%H:%M")


def local_day(instant: datetime, client_utc_offset_minutes: int | None = None) -> date:
    """Calendar day of an instant as seen by the owner."""
    return to_client_local(instant, client_utc_offset_minutes).date()


def parse_day(value: str | date) -> date:
    if isinstance(value, date):
        return value
    match = _DATE_RE.match(str(value).strip())
    if match is None:
        raise MalformedTimestampError("Date must look like YYYY-MM-DD", value=value)
    try:
        return date(*(int(part) for part in match.groups()))
    except ValueError as exc:
        raise MalformedTimestampError(f"Invalid date: {exc}", value=value) from exc


def day_bounds(
    day: str | date,
    client_utc_offset_minutes: int | None = None,
) -> tuple[datetime, datetime]:
    """UTC instants of the first and last microsecond of a local day."""
    first = parse_day(day)
    try:
        following = first + timedelta(days=1)
    except OverflowError as exc:
        raise _out_of_range(first.isoformat()) from exc
    start = normalize_captured_at(f"{first.isoformat()}T00:00", client_utc_offset_minutes)
    next_start = normalize_captured_at(
        f"{following.isoformat()}T00:00", client_utc_offset_minutes
    )
    return start, next_start - timedelta(microseconds=1)
