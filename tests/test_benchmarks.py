from __future__ import annotations

from datetime import date, timedelta

import pytest

from fitness_analytics.benchmarks import (
    BENCHMARKS,
    calculate_percentile_rank,
    compare_against_personal_history,
    generate_competitive_analysis,
    get_benchmark,
    improvement_opportunity,
    overall_rank,
    personal_benchmark,
    progress_velocity,
    strength_standards,
)
from fitness_analytics.models import PerformanceRecord

TODAY = date(2024, 6, 1)


def _record(exercise: str, value: float, days_ago: int = 0) -> PerformanceRecord:
    return PerformanceRecord(date=TODAY - timedelta(days=days_ago), exercise=exercise, weight=value, reps=1)


def test_benchmark_lookup_accepts_aliases() -> None:
    assert get_benchmark("  BENCH  ").exercise == "Bench Press"
    assert get_benchmark("Back Squat").exercise == "Squat"
    assert get_benchmark("ohp").exercise == "Overhead Press"
    assert get_benchmark("bicep curl") is None


def test_percentile_rank_on_breakpoint() -> None:
    assert calculate_percentile_rank(225, BENCHMARKS["Bench Press"]) == pytest.approx(75.0)
    assert calculate_percentile_rank(0, BENCHMARKS["Deadlift"]) == 0.0


def test_progress_velocity_per_month() -> None:
    velocity = progress_velocity([_record("Squat", 200, days_ago=30), _record("Squat", 215)])
    assert velocity.current_rate == pytest.approx(15.0)
    assert velocity.relative_pace == "faster"
    assert progress_velocity([_record("Squat", 200)]).relative_pace == "average"


def test_personal_benchmark_tracks_ranking_history() -> None:
    records = [_record("Bench Press", 185, days_ago=182), _record("Bench Press", 225)]
    ranking = personal_benchmark("bench press", records, today=TODAY)
    assert ranking is not None
    assert ranking.percentile_rank == pytest.approx(75.0)
    assert ranking.cohort_comparison.above_average
    assert ranking.historical_ranking.six_months_ago == pytest.approx(50.0)
    assert ranking.historical_ranking.one_year_ago is None
    assert ranking.historical_ranking.trend == "improving"
    assert personal_benchmark("bicep curl", records, today=TODAY) is None


def test_competitive_analysis() -> None:
    records = [
        _record("Bench Press", 225),
        _record("Squat", 245),
        _record("Deadlift", 315),
        _record("Bicep Curl", 100),
    ]
    analysis = generate_competitive_analysis(records, today=TODAY)
    assert [item.exercise for item in analysis.exercise_rankings] == ["Bench Press", "Squat", "Deadlift"]
    assert analysis.overall_rank.percentile == pytest.approx(175 / 3)
    assert analysis.overall_rank.description == "Intermediate"
    assert analysis.overall_rank.strongest_lifts[0] == "Bench Press"
    assert analysis.strength_profile.category == "bodybuilder"

    opportunities = analysis.improvement_opportunities
    assert [item.exercise for item in opportunities] == ["Squat", "Deadlift", "Bench Press"]
    squat = opportunities[0]
    assert squat.target_percentile == 90.0
    assert squat.required_delta == pytest.approx(140.0)
    assert squat.estimated_months is None
    assert squat.difficulty == "moderate"
    assert len(squat.strategies) == 6


def test_overall_rank_without_rankings() -> None:
    rank = overall_rank([])
    assert rank.percentile == 50.0
    assert rank.description == "Average"


def test_improvement_opportunity_already_past_target() -> None:
    ranking = personal_benchmark("Bench Press", [_record("Bench Press", 405)], today=TODAY)
    opportunity = improvement_opportunity(ranking)
    assert opportunity.required_delta == 0.0
    assert opportunity.estimated_months == 0.0


def test_compare_against_personal_history() -> None:
    records = [
        _record("Squat", 200, days_ago=182),
        _record("Squat", 240, days_ago=100),
        _record("Squat", 220),
    ]
    [comparison] = compare_against_personal_history(records, today=TODAY)
    assert comparison.current == pytest.approx(220.0)
    assert comparison.personal_best == pytest.approx(240.0)
    assert comparison.percentage_of_best == pytest.approx(220 / 240 * 100)
    assert comparison.days_since_best == 100
    assert comparison.six_month_change == pytest.approx(10.0)
    assert comparison.one_year_change == 0.0
    assert comparison.trend == "improving"


def test_strength_standards_follow_percentile_table() -> None:
    standards = strength_standards()
    assert standards["Squat"] == {"beginner": 185.0, "intermediate": 245.0, "advanced": 315.0, "elite": 435.0}
    assert set(standards) == set(BENCHMARKS)
