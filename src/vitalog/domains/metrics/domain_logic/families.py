"""Metric family descriptors.

Blood pressure, blood glucose and weight share one engine. Everything that
differs between them (fields, bounds, subtypes, activity-only fields,
cross-field rules, category thresholds) lives in a ``FamilyDescriptor``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from vitalog.core.errors import UnknownFamilyError
from vitalog.domains.metrics.domain_logic.classifiers import (
    Category,
    GLUCOSE_TARGETS,
    classify_blood_pressure,
    classify_glucose,
    classify_weight,
)

# Partition key used for families without subtypes
ALL_READINGS = "all"

KG_TO_LBS = 2.20462


@dataclass(frozen=True)
class FieldSpec:
    """A numeric reading field with its closed physiologic bounds."""

    name: str
    label: str
    unit: str
    minimum: float
    maximum: float
    precision: int = 0  # decimal places for display averages
    required: bool = True

    @property
    def bounds(self) -> tuple[float, float]:
        return (self.minimum, self.maximum)

    def in_bounds(self, value: float) -> bool:
        return self.minimum <= value <= self.maximum


@dataclass(frozen=True)
class FamilyDescriptor:
    """Everything the generic engine needs to know about one metric family."""

    name: str
    display_name: str
    fields: tuple[FieldSpec, ...]
    classifier: Callable[[str | None, Mapping[str, Any], float | None], Category]
    subtypes: tuple[str, ...] = ()
    subtype_labels: dict[str, str] = field(default_factory=dict)
    # Fields only meaningful for one subtype; cleared for every other subtype
    activity_subtype: str | None = None
    activity_fields: tuple[str, ...] = ()
    # (greater, lesser) pairs: values[greater] must exceed values[lesser]
    relations: tuple[tuple[str, str], ...] = ()
    # Fields whose change over the trailing window is reported
    change_fields: tuple[str, ...] = ()
    # Per-subtype target range labels; empty when the family has none
    target_ranges: dict[str, str] = field(default_factory=dict)
    # Body-mass field (kg) that yields a BMI when a height is known
    bmi_field: str | None = None

    @property
    def has_subtypes(self) -> bool:
        return bool(self.subtypes)

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    @property
    def required_fields(self) -> tuple[FieldSpec, ...]:
        return tuple(f for f in self.fields if f.required)

    @property
    def partition_keys(self) -> tuple[str, ...]:
        return self.subtypes if self.subtypes else (ALL_READINGS,)

    def get_field(self, name: str) -> FieldSpec:
        for spec in self.fields:
            if spec.name == name:
                return spec
        raise KeyError(name)

    def partition_key(self, subtype: str | None) -> str:
        if not self.has_subtypes:
            return ALL_READINGS
        return subtype or ALL_READINGS

    def subtype_label(self, subtype: str | None) -> str:
        if subtype is None or not self.has_subtypes:
            return self.display_name
        return self.subtype_labels.get(subtype, subtype.replace("_", " ").title())

    def target_range(self, subtype: str | None) -> str | None:
        """Target range label for a subtype, or None if the family defines none."""
        if not self.target_ranges:
            return None
        return self.target_ranges.get(subtype or "", "N/A")


BLOOD_PRESSURE = FamilyDescriptor(
    name="blood_pressure",
    display_name="Blood Pressure",
    fields=(
        FieldSpec("systolic", "Systolic", "mmHg", 50, 300),
        FieldSpec("diastolic", "Diastolic", "mmHg", 30, 200),
        FieldSpec("pulse", "Pulse", "bpm", 30, 220),
        FieldSpec("walk_duration", "Walk Duration", "min", 1, 600, required=False),
        FieldSpec("peak_pulse", "Peak Pulse", "bpm", 30, 220, required=False),
    ),
    classifier=classify_blood_pressure,
    subtypes=("normal", "after_activity"),
    subtype_labels={"normal": "Normal Reading", "after_activity": "After Activity"},
    activity_subtype="after_activity",
    activity_fields=("walk_duration", "peak_pulse"),
    relations=(("systolic", "diastolic"),),
)

BLOOD_GLUCOSE = FamilyDescriptor(
    name="blood_glucose",
    display_name="Blood Sugar",
    fields=(FieldSpec("glucose", "Glucose", "mg/dL", 20, 600),),
    classifier=classify_glucose,
    subtypes=("fasting", "before_meal", "after_meal", "bedtime", "random"),
    subtype_labels={
        "fasting": "Fasting",
        "before_meal": "Before Meal",
        "after_meal": "After Meal",
        "bedtime": "Bedtime",
        "random": "Random",
    },
    target_ranges=GLUCOSE_TARGETS,
)

WEIGHT = FamilyDescriptor(
    name="weight",
    display_name="Weight",
    fields=(FieldSpec("weight", "Weight", "kg", 20, 300, precision=1),),
    classifier=classify_weight,
    change_fields=("weight",),
    bmi_field="weight",
)

FAMILIES: dict[str, FamilyDescriptor] = {
    f.name: f for f in (BLOOD_PRESSURE, BLOOD_GLUCOSE, WEIGHT)
}

# Column names for every numeric field across all families
ALL_FIELD_NAMES: tuple[str, ...] = tuple(
    dict.fromkeys(name for fam in FAMILIES.values() for name in fam.field_names)
)


def get_family(name: str) -> FamilyDescriptor:
    """Look up a family descriptor by name."""
    try:
        return FAMILIES[name]
    except KeyError:
        raise UnknownFamilyError(
            f"Unknown metric family {name!r}. Valid: {', '.join(FAMILIES)}",
            family=name,
        ) from None
