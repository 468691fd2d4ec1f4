"""Error taxonomy shared by validators, storage, and tools.

Each error carries a stable machine-readable ``code`` and a human-readable
message. Tools serialize them with :meth:`VitalogError.to_dict`.
"""

from __future__ import annotations

from typing import Any


class VitalogError(Exception):
    """Base class for all errors surfaced to callers."""

    code = "internal_error"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


# ---------------------------------------------------------------------------
# Validation (raised before any repository call)
# ---------------------------------------------------------------------------

class MissingFieldError(VitalogError):
    code = "missing_field"

    def __init__(self, field: str) -> None:
        super().__init__(f"{field} is required", field=field)
        self.field = field


class OutOfRangeError(VitalogError):
    code = "out_of_range"

    def __init__(self, field: str, value: Any, bounds: tuple[float, float]) -> None:
        lo, hi = bounds
        super().__init__(
            f"{field} must be between {lo:g} and {hi:g}",
            field=field,
            value=value,
            min=lo,
            max=hi,
        )
        self.field = field
        self.value = value
        self.bounds = bounds


class InvalidRelationError(VitalogError):
    code = "invalid_relation"


class InvalidSubtypeError(VitalogError):
    code = "invalid_subtype"

    def __init__(self, family: str, subtype: Any, allowed: tuple[str, ...]) -> None:
        super().__init__(
            f"Invalid reading type {subtype!r} for {family}; expected one of {', '.join(allowed)}",
            family=family,
            subtype=subtype,
            allowed=list(allowed),
        )


class MalformedTimestampError(VitalogError):
    code = "malformed_timestamp"


class UnknownFamilyError(VitalogError):
    code = "unknown_family"


class InvalidPeriodError(VitalogError):
    code = "invalid_period"


class InvalidArgumentError(VitalogError):
    """A tool option outside its allowed set (e.g. an unknown unit)."""

    code = "invalid_argument"


# ---------------------------------------------------------------------------
# Lookup / storage / identity
# ---------------------------------------------------------------------------

class NotFoundError(VitalogError):
    """No reading with that id is owned by the caller.

    Covers both a missing record and one owned by someone else; the two are
    deliberately indistinguishable.
    """

    code = "not_found"

    def __init__(self, reading_id: str) -> None:
        super().__init__("Reading not found", reading_id=reading_id)
        self.reading_id = reading_id


class MalformedIdentifierError(NotFoundError):
    """The id is not a well-formed repository key.

    Reported to callers exactly like :class:`NotFoundError` so the storage
    key format never leaks.
    """


class StorageUnavailableError(VitalogError):
    code = "storage_unavailable"


class UnauthenticatedError(VitalogError):
    code = "unauthenticated"

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)
