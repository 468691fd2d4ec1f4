"""Tests for export report shaping."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from vitalog.core.errors import InvalidArgumentError
from vitalog.domains.metrics.domain_logic.exporter import shape_export
from vitalog.domains.metrics.domain_logic.families import BLOOD_GLUCOSE, BLOOD_PRESSURE, WEIGHT


def _utc(day: int, hour: int) -> datetime:
    return datetime(2025, 3, day, hour, 0, tzinfo=timezone.utc)


@pytest.fixture
def glucose_readings(make_reading):
    return [
        make_reading(subtype="fasting", glucose=95, captured_at=_utc(1, 12)),
        make_reading(subtype="fasting", glucose=105, captured_at=_utc(3, 12)),
        make_reading(subtype="bedtime", glucose=140, captured_at=_utc(2, 3)),
        make_reading(subtype="legacy", glucose=120, captured_at=_utc(2, 12)),
    ]


class TestSections:
    def test_every_reading_appears_once(self, glucose_readings):
        report = shape_export(BLOOD_GLUCOSE, glucose_readings, client_utc_offset_minutes=0)
        assert sum(s["count"] for s in report["sections"]) == len(glucose_readings)
        assert report["summary"]["total"] == 4

    def test_empty_partitions_omitted_known_order_kept(self, glucose_readings):
        report = shape_export(BLOOD_GLUCOSE, glucose_readings, client_utc_offset_minutes=0)
        assert [s["subtype"] for s in report["sections"]] == ["fasting", "bedtime", "legacy"]

    def test_rows_newest_first(self, glucose_readings):
        report = shape_export(BLOOD_GLUCOSE, glucose_readings, client_utc_offset_minutes=0)
        fasting = report["sections"][0]
        assert [row["date"] for row in fasting["rows"]] == ["2025-03-03", "2025-03-01"]

    def test_labels_targets_and_categories(self, glucose_readings):
        report = shape_export(BLOOD_GLUCOSE, glucose_readings, client_utc_offset_minutes=0)
        fasting = report["sections"][0]
        assert fasting["label"] == "Fasting"
        assert fasting["target_range"] == "< 100 mg/dL"
        assert [row["category"] for row in fasting["rows"]] == ["Prediabetes", "Normal"]

    def test_target_ranges_come_from_descriptor(self, make_reading):
        family = replace(BLOOD_PRESSURE, target_ranges={"normal": "< 120/80 mmHg"})
        reading = make_reading(
            "blood_pressure", subtype="normal", systolic=118, diastolic=76, pulse=70
        )
        with_targets = shape_export(family, [reading])
        assert with_targets["sections"][0]["target_range"] == "< 120/80 mmHg"
        assert "target_range" not in shape_export(BLOOD_PRESSURE, [reading])["sections"][0]

    def test_rows_use_client_local_time(self, glucose_readings):
        report = shape_export(BLOOD_GLUCOSE, glucose_readings, client_utc_offset_minutes=300)
        bedtime = next(s for s in report["sections"] if s["subtype"] == "bedtime")
        assert bedtime["rows"][0]["date"] == "2025-03-01"
        assert bedtime["rows"][0]["time"] == "22:00"

    def test_columns(self):
        report = shape_export(BLOOD_PRESSURE, [])
        labels = [c["label"] for c in report["columns"]]
        assert labels[:3] == ["Date", "Time", "Systolic (mmHg)"]
        assert labels[-3:] == ["Category", "Notes", "Recorded At"]

    def test_empty_input(self):
        report = shape_export(BLOOD_PRESSURE, [])
        assert report["sections"] == []
        assert report["summary"]["total"] == 0
        assert report["summary"]["first"] is None
        assert report["daily"] == {}

    def test_input_not_mutated(self, glucose_readings):
        before = [(r.subtype, dict(r.values)) for r in glucose_readings]
        shape_export(BLOOD_GLUCOSE, glucose_readings)
        assert [(r.subtype, dict(r.values)) for r in glucose_readings] == before


class TestDaily:
    def test_daily_series_per_subtype_ascending(self, glucose_readings):
        report = shape_export(BLOOD_GLUCOSE, glucose_readings, client_utc_offset_minutes=0)
        assert report["daily"]["fasting"] == [
            {"date": "2025-03-01", "count": 1, "glucose": 95},
            {"date": "2025-03-03", "count": 1, "glucose": 105},
        ]
        assert set(report["daily"]) == {"fasting", "bedtime", "legacy"}


class TestWeightUnits:
    def test_lbs_is_display_only(self, make_reading):
        reading = make_reading("weight", weight=80.0, captured_at=_utc(1, 12))
        report = shape_export(WEIGHT, [reading], weight_unit="lbs", client_utc_offset_minutes=0)
        row = report["sections"][0]["rows"][0]
        assert row["weight"] == 176.4
        assert report["daily"]["all"][0]["weight"] == 176.4
        assert reading.values["weight"] == 80.0
        assert "Weight (lbs)" in [c["label"] for c in report["columns"]]

    def test_bmi_note_without_height(self, make_reading):
        report = shape_export(WEIGHT, [make_reading("weight")])
        assert report["summary"]["bmi_note"] == "Height not provided for BMI calculation"
        assert report["sections"][0]["rows"][0]["category"] == "Unknown"

    def test_category_with_height(self, make_reading):
        report = shape_export(WEIGHT, [make_reading("weight", weight=90)], height_cm=170)
        assert report["sections"][0]["rows"][0]["category"] == "Obese"
        assert "bmi_note" not in report["summary"]

    def test_unknown_unit_rejected(self):
        with pytest.raises(InvalidArgumentError):
            shape_export(WEIGHT, [], weight_unit="stone")
