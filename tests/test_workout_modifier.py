from __future__ import annotations

from datetime import date

import pytest

from fitness_analytics.models import DailyMetrics, PlannedWorkout, ReadinessAnalysis
from fitness_analytics.readiness import analyze_readiness
from fitness_analytics.workout_modifier import (
    apply_modifications,
    calculate_optimal_rest,
    real_time_coaching,
    suggest_workout_modifications,
)

TODAY = date(2024, 3, 1)
SQUAT = PlannedWorkout(exercise="Squat", sets=4, reps=10, intensity_pct=80.0, rest_seconds=120.0)


def _readiness(score: int, deviation: float = 0.0) -> ReadinessAnalysis:
    return ReadinessAnalysis(
        overall_score=score,
        level="fair",
        factors=(),
        baseline=score - deviation,
        deviation=deviation,
        confidence=0.5,
        recommendations=(),
    )


def test_critical_readiness_deloads_and_adds_recovery_changes() -> None:
    readiness = analyze_readiness(
        [DailyMetrics(date=TODAY, sleep=4, energy=3, soreness=8, stress=7)], today=TODAY
    )
    modifications = suggest_workout_modifications(SQUAT, readiness)
    assert [item.kind for item in modifications] == ["deload", "rest", "exercise"]

    deload = modifications[0]
    assert deload.severity == "major"
    assert deload.suggested["sets"] == 2
    assert deload.suggested["reps"] == 7
    assert deload.suggested["intensity_pct"] == pytest.approx(55.0)

    adjusted = apply_modifications(SQUAT, modifications)
    assert adjusted.sets == 2
    assert adjusted.reps == 7
    assert adjusted.rest_seconds == pytest.approx(240.0)
    assert adjusted.warmup_minutes == pytest.approx(20.0)


def test_deload_never_increases_reps() -> None:
    planned = PlannedWorkout(exercise="Deadlift", sets=1, reps=3, intensity_pct=50.0)
    [deload] = suggest_workout_modifications(planned, _readiness(30))
    assert deload.suggested["reps"] == 3
    assert deload.suggested["sets"] == 1
    assert deload.suggested["intensity_pct"] == pytest.approx(50.0)


def test_moderate_readiness_reduces_intensity_and_volume() -> None:
    modifications = suggest_workout_modifications(
        PlannedWorkout(exercise="Bench Press", sets=3, reps=5, intensity_pct=80.0), _readiness(55, -5)
    )
    assert [item.kind for item in modifications] == ["intensity", "volume"]
    assert modifications[0].suggested["intensity_pct"] == pytest.approx(64.0)
    assert modifications[0].suggested["intensity_range"] == (60.0, 68.0)
    assert modifications[1].suggested["sets"] == 2


def test_excellent_readiness_above_baseline_suggests_overload() -> None:
    [overload] = suggest_workout_modifications(SQUAT, _readiness(90, 10))
    assert overload.kind == "intensity"
    assert overload.severity == "minor"
    assert overload.suggested["intensity_pct"] == pytest.approx(86.0)
    assert suggest_workout_modifications(SQUAT, _readiness(90, 0)) == []
    assert suggest_workout_modifications(SQUAT, _readiness(75)) == []


def test_apply_modifications_without_changes_returns_plan() -> None:
    assert apply_modifications(SQUAT, []) is SQUAT


def test_optimal_rest() -> None:
    compound = calculate_optimal_rest("compound", 80)
    assert (compound.min_seconds, compound.max_seconds) == (150.0, 240.0)

    heavy = calculate_optimal_rest("compound", 90, last_rpe=9)
    assert (heavy.min_seconds, heavy.max_seconds) == (270.0, 360.0)

    light = calculate_optimal_rest("isolation", 60, last_rpe=5)
    assert (light.min_seconds, light.max_seconds) == (60.0, 120.0)
    assert light.reasoning == "Based on isolation exercise at 60% intensity with RPE 5"


def test_real_time_coaching_cues() -> None:
    coaching = real_time_coaching(3, "Squat", last_rpe=9.5, elapsed_seconds=2520, readiness=_readiness(60))
    assert coaching.phase == "between-sets"
    assert coaching.fatigue == pytest.approx(7.0)
    assert [cue.kind for cue in coaching.cues] == ["intensity", "form", "rest", "motivation"]
    assert coaching.cues[0].urgency == "high"

    first_set = real_time_coaching(1, "Squat", last_rpe=6)
    assert first_set.phase == "during-workout"
    assert [cue.kind for cue in first_set.cues] == ["intensity"]
    assert first_set.fatigue is None
