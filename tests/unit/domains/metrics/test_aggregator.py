"""Tests for period statistics."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from vitalog.core.errors import InvalidPeriodError
from vitalog.domains.metrics.domain_logic.aggregator import (
    Period,
    change_over_window,
    compute_statistics,
    daily_series,
    partition_readings,
    round_half_up,
    summarize,
)
from vitalog.domains.metrics.domain_logic.families import (
    BLOOD_GLUCOSE,
    BLOOD_PRESSURE,
    WEIGHT,
)

NOW = datetime(2025, 3, 31, 12, 0, tzinfo=timezone.utc)


def _days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


class TestRounding:
    @pytest.mark.parametrize("value,precision,expected", [
        (120.5, 0, 121),
        (119.4999, 0, 119),
        (72.45, 1, 72.5),
        (72.44, 1, 72.4),
        (-1.25, 1, -1.2),
        (110.0, 0, 110),
    ])
    def test_round_half_up(self, value, precision, expected):
        assert round_half_up(value, precision) == expected

    def test_integer_precision_returns_int(self):
        assert isinstance(round_half_up(99.6), int)


class TestPeriod:
    @pytest.mark.parametrize("selector,days", [
        ("7days", 7), ("30days", 30), ("90days", 90), ("week", 7), ("month", 30),
    ])
    def test_relative(self, selector, days):
        period = Period.parse(selector)
        assert period.days == days
        assert period.bounds(NOW) == (NOW - timedelta(days=days), NOW)

    @pytest.mark.parametrize("selector", ["allTime", "all", None, ""])
    def test_all_time(self, selector):
        period = Period.parse(selector)
        assert period.name == "allTime"
        assert period.bounds(NOW) == (None, None)

    def test_custom_whole_days(self):
        period = Period.parse("custom", start="2025-03-01", end="2025-03-02")
        since, until = period.bounds(NOW, 300)
        assert since == datetime(2025, 3, 1, 5, 0, tzinfo=timezone.utc)
        assert until == datetime(2025, 3, 3, 4, 59, 59, 999999, tzinfo=timezone.utc)

    def test_dates_without_selector_mean_custom(self):
        assert Period.parse(None, start="2025-03-01", end="2025-03-05").name == "custom"

    def test_custom_needs_both_dates(self):
        with pytest.raises(InvalidPeriodError):
            Period.parse("custom", start="2025-03-01")

    def test_custom_start_after_end(self):
        with pytest.raises(InvalidPeriodError):
            Period.parse("custom", start="2025-03-05", end="2025-03-01")

    def test_unknown_selector(self):
        with pytest.raises(InvalidPeriodError):
            Period.parse("fortnight")


class TestSummaries:
    def test_glucose_example(self, make_reading):
        readings = [make_reading(glucose=g) for g in (90, 110, 130)]
        stats = compute_statistics(BLOOD_GLUCOSE, readings, Period.parse("allTime"), now=NOW)
        fasting = stats["partitions"]["fasting"]
        assert fasting["count"] == 3
        assert fasting["glucose"] == {"mean": 110, "min": 90, "max": 130}
        assert stats["overall"]["glucose"]["mean"] == 110
        assert stats["count"] == 3

    def test_empty_input_reports_zeros(self):
        stats = compute_statistics(BLOOD_PRESSURE, [], Period.parse("30days"), now=NOW)
        assert stats["count"] == 0
        assert stats["overall"]["count"] == 0
        assert stats["overall"]["systolic"] == {"mean": 0, "min": 0, "max": 0}
        assert stats["partitions"]["after_activity"]["pulse"] == {"mean": 0, "min": 0, "max": 0}
        assert stats["daily"] == []

    def test_means_rounded_to_display_precision(self, make_reading):
        readings = [
            make_reading("blood_pressure", subtype="normal", systolic=s, diastolic=70, pulse=60)
            for s in (120, 121)
        ]
        summary = summarize(BLOOD_PRESSURE, readings)
        assert summary["systolic"]["mean"] == 121

        weights = [make_reading("weight", weight=w) for w in (70.0, 70.15)]
        assert summarize(WEIGHT, weights)["weight"]["mean"] == 70.1

    def test_optional_fields_reduced_over_present_values(self, make_reading):
        readings = [
            make_reading("blood_pressure", subtype="after_activity",
                         systolic=130, diastolic=80, pulse=90, walk_duration=10),
            make_reading("blood_pressure", subtype="after_activity",
                         systolic=130, diastolic=80, pulse=90),
        ]
        summary = summarize(BLOOD_PRESSURE, readings)
        assert summary["walk_duration"] == {"mean": 10, "min": 10, "max": 10}
        assert summary["peak_pulse"] == {"mean": 0, "min": 0, "max": 0}

    def test_period_filters_window(self, make_reading):
        readings = [
            make_reading(glucose=100, captured_at=_days_ago(3)),
            make_reading(glucose=200, captured_at=_days_ago(10)),
            make_reading(glucose=300, captured_at=NOW + timedelta(days=1)),
        ]
        stats = compute_statistics(BLOOD_GLUCOSE, readings, Period.parse("7days"), now=NOW)
        assert stats["count"] == 1
        assert stats["overall"]["glucose"]["mean"] == 100

    def test_window_lower_bound_inclusive(self, make_reading):
        readings = [make_reading(captured_at=_days_ago(7))]
        stats = compute_statistics(BLOOD_GLUCOSE, readings, Period.parse("7days"), now=NOW)
        assert stats["count"] == 1

    def test_counts_by_subtype(self, make_reading):
        readings = [
            make_reading(subtype="fasting"),
            make_reading(subtype="fasting"),
            make_reading(subtype="bedtime"),
        ]
        stats = compute_statistics(BLOOD_GLUCOSE, readings, Period.parse("allTime"), now=NOW)
        assert stats["counts_by_subtype"] == {
            "fasting": 2, "before_meal": 0, "after_meal": 0, "bedtime": 1, "random": 0,
        }


class TestPartitions:
    def test_every_reading_in_exactly_one_partition(self, make_reading):
        readings = [
            make_reading(subtype="fasting"),
            make_reading(subtype="random"),
            make_reading(subtype="legacy_type"),
        ]
        partitions = partition_readings(BLOOD_GLUCOSE, readings)
        assert sum(len(group) for group in partitions.values()) == 3
        assert len(partitions["legacy_type"]) == 1

    def test_weight_single_partition(self, make_reading):
        partitions = partition_readings(WEIGHT, [make_reading("weight")] * 2)
        assert list(partitions) == ["all"]


class TestDailySeries:
    def test_grouped_by_local_day_ascending(self, make_reading):
        readings = [
            # 2025-03-02 02:00Z is still 03-01 at UTC-5
            make_reading(glucose=100, captured_at=datetime(2025, 3, 2, 2, 0, tzinfo=timezone.utc)),
            make_reading(glucose=120, captured_at=datetime(2025, 3, 1, 15, 0, tzinfo=timezone.utc)),
            make_reading(glucose=90, captured_at=datetime(2025, 3, 2, 15, 0, tzinfo=timezone.utc)),
        ]
        series = daily_series(BLOOD_GLUCOSE, readings, 300)
        assert series == [
            {"date": "2025-03-01", "count": 2, "glucose": 110},
            {"date": "2025-03-02", "count": 1, "glucose": 90},
        ]

    def test_dates_sorted(self, make_reading):
        readings = [make_reading(captured_at=datetime(2025, 3, d, 12, tzinfo=timezone.utc))
                    for d in (5, 1, 3)]
        dates = [p["date"] for p in daily_series(BLOOD_GLUCOSE, readings, 0)]
        assert dates == sorted(dates)
        assert date.fromisoformat(dates[0]) == date(2025, 3, 1)


class TestChange:
    def test_weight_change(self, make_reading):
        readings = [
            make_reading("weight", weight=80.0, captured_at=_days_ago(60)),
            make_reading("weight", weight=82.0, captured_at=_days_ago(45)),
            make_reading("weight", weight=79.0, captured_at=_days_ago(5)),
        ]
        assert change_over_window(WEIGHT, readings, NOW) == {"weight": -2.0}

    def test_zero_when_one_side_empty(self, make_reading):
        readings = [make_reading("weight", weight=80.0, captured_at=_days_ago(2))]
        assert change_over_window(WEIGHT, readings, NOW) == {"weight": 0}

    def test_change_only_for_weight(self, make_reading):
        stats = compute_statistics(BLOOD_GLUCOSE, [], Period.parse("allTime"), now=NOW)
        assert "change" not in stats
        stats = compute_statistics(WEIGHT, [], Period.parse("allTime"), now=NOW)
        assert stats["change"] == {"weight": 0}
