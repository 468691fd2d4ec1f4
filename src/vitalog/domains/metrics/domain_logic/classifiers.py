"""Clinical category classification for readings.

Categories are display metadata only: they are never persisted and are
always recomputed from the current field values. All functions are pure.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping

if TYPE_CHECKING:
    from vitalog.domains.metrics.domain_logic.families import FamilyDescriptor


class Category(str, Enum):
    NORMAL = "Normal"
    ELEVATED = "Elevated"
    HIGH = "High"
    LOW = "Low"
    PREDIABETES = "Prediabetes"
    DIABETES = "Diabetes"
    UNDERWEIGHT = "Underweight"
    OVERWEIGHT = "Overweight"
    OBESE = "Obese"
    UNKNOWN = "Unknown"


# ---------------------------------------------------------------------------
# Per-family threshold functions
# ---------------------------------------------------------------------------

def classify_blood_pressure(
    subtype: str | None,
    values: Mapping[str, Any],
    height_cm: float | None = None,
) -> Category:
    """Normal < 120/80, Elevated < 130/80, otherwise High.

    The subtype does not change the thresholds.
    """
    systolic = values["systolic"]
    diastolic = values["diastolic"]
    if systolic < 120 and diastolic < 80:
        return Category.NORMAL
    if systolic < 130 and diastolic < 80:
        return Category.ELEVATED
    return Category.HIGH


def classify_glucose(
    subtype: str | None,
    values: Mapping[str, Any],
    height_cm: float | None = None,
) -> Category:
    glucose = values["glucose"]
    if subtype in ("fasting", "before_meal"):
        if glucose < 100:
            return Category.NORMAL
        if glucose < 126:
            return Category.PREDIABETES
        return Category.DIABETES
    if subtype in ("after_meal", "random"):
        if glucose < 140:
            return Category.NORMAL
        if glucose < 200:
            return Category.PREDIABETES
        return Category.DIABETES
    if subtype == "bedtime":
        if 90 <= glucose <= 150:
            return Category.NORMAL
        if glucose < 90:
            return Category.LOW
        return Category.HIGH
    return Category.UNKNOWN


def classify_weight(
    subtype: str | None,
    values: Mapping[str, Any],
    height_cm: float | None = None,
) -> Category:
    """BMI bands; ``Unknown`` when no height is available."""
    bmi = body_mass_index(values["weight"], height_cm)
    if bmi is None:
        return Category.UNKNOWN
    if bmi < 18.5:
        return Category.UNDERWEIGHT
    if bmi < 25:
        return Category.NORMAL
    if bmi < 30:
        return Category.OVERWEIGHT
    return Category.OBESE


def body_mass_index(weight_kg: float, height_cm: float | None) -> float | None:
    if not height_cm or height_cm <= 0:
        return None
    return weight_kg / ((height_cm / 100) ** 2)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def classify(
    family: FamilyDescriptor,
    subtype: str | None,
    values: Mapping[str, Any],
    *,
    height_cm: float | None = None,
) -> Category:
    """Map a validated reading to its family's clinical bucket."""
    return family.classifier(subtype, values, height_cm)


_DESCRIPTIONS: dict[tuple[str, Category], str] = {
    ("blood_pressure", Category.NORMAL): "Your blood pressure is within the normal range",
    ("blood_pressure", Category.ELEVATED): "Your blood pressure is elevated",
    ("blood_pressure", Category.HIGH): "Your blood pressure is high",
    ("blood_glucose", Category.NORMAL): "Your glucose is within the target range",
    ("blood_glucose", Category.PREDIABETES): "Your glucose is in the prediabetes range",
    ("blood_glucose", Category.DIABETES): "Your glucose is in the diabetes range",
    ("blood_glucose", Category.LOW): "Your bedtime glucose is below the target range",
    ("blood_glucose", Category.HIGH): "Your bedtime glucose is above the target range",
    ("weight", Category.UNDERWEIGHT): "BMI below 18.5",
    ("weight", Category.NORMAL): "BMI 18.5-24.9",
    ("weight", Category.OVERWEIGHT): "BMI 25-29.9",
    ("weight", Category.OBESE): "BMI 30+",
    ("weight", Category.UNKNOWN): "Height not provided for BMI calculation",
}


def category_description(family_name: str, category: Category) -> str:
    return _DESCRIPTIONS.get((family_name, category), "")


GLUCOSE_TARGETS = {
    "fasting": "< 100 mg/dL",
    "before_meal": "< 100 mg/dL",
    "after_meal": "< 140 mg/dL",
    "bedtime": "90-150 mg/dL",
    "random": "< 140 mg/dL",
}
