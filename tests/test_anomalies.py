from __future__ import annotations

from datetime import date, timedelta

import pytest

from fitness_analytics.anomalies import (
    detect_anomalies,
    detect_frequency_changes,
    detect_performance_drops,
    detect_rpe_anomalies,
    detect_volume_spikes,
    sort_by_severity,
)
from fitness_analytics.models import PerformanceRecord

START = date(2024, 1, 1)  # a Monday


def _series(values: list[float]) -> list[tuple[date, float]]:
    return [(START + timedelta(days=index), float(value)) for index, value in enumerate(values)]


def test_rpe_run_of_four_is_one_medium_anomaly() -> None:
    events = detect_rpe_anomalies(_series([9, 9, 9, 9, 6]), exercise="Squat")
    assert len(events) == 1
    event = events[0]
    assert event.kind == "rpe_anomaly"
    assert event.severity == "medium"
    assert event.confidence == pytest.approx(0.8)
    assert event.detected_at == START + timedelta(days=3)
    assert event.actual == pytest.approx(9.0)


def test_rpe_runs_are_flushed_at_the_end() -> None:
    events = detect_rpe_anomalies(_series([6, 9, 9, 9]))
    assert len(events) == 1
    assert detect_rpe_anomalies(_series([9, 9, 6, 9, 9])) == []
    assert detect_rpe_anomalies(_series([9] * 5))[0].severity == "high"


def test_performance_drop_against_trailing_window() -> None:
    medium = detect_performance_drops(_series([100, 100, 100, 85]), exercise="Bench Press")
    assert len(medium) == 1
    assert medium[0].severity == "medium"
    assert medium[0].deviation == pytest.approx(-15.0)
    assert medium[0].confidence == pytest.approx(0.75)
    assert medium[0].description == "15% performance drop in Bench Press"

    high = detect_performance_drops(_series([100, 100, 100, 75]))
    assert high[0].severity == "high"
    assert detect_performance_drops(_series([100, 100, 100, 95])) == []


def test_volume_spike_z_score() -> None:
    medium = detect_volume_spikes(_series([100] * 9 + [1000]))
    assert len(medium) == 1
    assert medium[0].severity == "medium"
    assert medium[0].deviation == pytest.approx(3.0)
    assert medium[0].confidence == pytest.approx(0.9)

    high = detect_volume_spikes(_series([100] * 19 + [1000]))
    assert high[0].severity == "high"
    assert detect_volume_spikes(_series([100] * 5)) == []


def test_frequency_gap_week_counts_as_zero() -> None:
    dates = []
    for week in (0, 1, 2, 4):
        for day in (0, 2, 4):
            dates.append(START + timedelta(weeks=week, days=day))
    events = detect_frequency_changes(dates)
    assert len(events) == 1
    assert events[0].severity == "high"
    assert events[0].detected_at == START + timedelta(weeks=3)
    assert events[0].actual == 0.0
    assert events[0].description == "Training frequency decreased by 100%"


def test_frequency_medium_drop() -> None:
    dates = [START + timedelta(weeks=week, days=day) for week in (0, 1, 2) for day in (0, 2, 4)]
    dates.append(START + timedelta(weeks=3))
    events = detect_frequency_changes(dates)
    assert [event.severity for event in events] == ["medium"]


def test_detect_anomalies_requires_minimum_records() -> None:
    records = [PerformanceRecord(date=START, exercise="Squat", weight=200, reps=1, rpe=9)] * 4
    assert detect_anomalies(records) == []


def test_detect_anomalies_sorts_by_severity() -> None:
    records = [
        PerformanceRecord(date=START + timedelta(days=2 * index), exercise="Squat", weight=weight, reps=1, rpe=rpe)
        for index, (weight, rpe) in enumerate([(300, 7), (300, 9), (300, 9), (300, 9), (300, 9), (300, 9), (220, 7)])
    ]
    events = detect_anomalies(records)
    kinds = {event.kind for event in events}
    assert {"rpe_anomaly", "performance_drop"} <= kinds
    severities = [event.severity for event in events]
    assert severities == [event.severity for event in sort_by_severity(events)]
    assert events[0].severity == "high"


def test_detect_anomalies_merges_exercise_spellings() -> None:
    spellings = ["Squat", "squat", "SQUAT ", "Squat", "squat", "Squat"]
    weights = [300, 300, 300, 300, 300, 220]
    records = [
        PerformanceRecord(date=START + timedelta(days=2 * index), exercise=name, weight=weight, reps=1, rpe=7)
        for index, (name, weight) in enumerate(zip(spellings, weights))
    ]
    drops = [event for event in detect_anomalies(records) if event.kind == "performance_drop"]
    assert len(drops) == 1
    assert drops[0].exercise == "Squat"
    assert drops[0].severity == "high"
