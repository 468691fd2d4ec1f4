"""Data models for the reading persistence layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class Reading:
    """One recorded measurement event for one metric family, owned by one user.

    ``id``, ``recorded_at`` and ``updated_at`` are assigned by the repository;
    they are empty/None before creation and never client-supplied.
    """

    owner_id: str
    family: str  # 'blood_pressure', 'blood_glucose', 'weight'
    subtype: str | None
    captured_at: datetime  # aware UTC: when the measurement was taken
    values: dict[str, float | int | None] = field(default_factory=dict)
    notes: str = ""
    id: str = ""
    recorded_at: datetime | None = None
    updated_at: datetime | None = None

    def value(self, name: str) -> float | int | None:
        return self.values.get(name)

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation (instants as ISO 8601 UTC)."""
        return {
            "id": self.id,
            "family": self.family,
            "subtype": self.subtype,
            "captured_at": self.captured_at.isoformat(),
            **self.values,
            "notes": self.notes,
            "recorded_at": self.recorded_at.isoformat() if self.recorded_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
