from __future__ import annotations

from datetime import date, timedelta

import pytest

from fitness_analytics.models import PerformanceRecord
from fitness_analytics.prediction import (
    assess_injury_risk,
    evaluate_model,
    fit_models,
    predict_goal_achievement,
    predict_performance,
    predict_plateau,
)
from fitness_analytics.stats import r_squared

START = date(2024, 1, 1)


def _make_records(values: list[float], *, step_days: int = 7, exercise: str = "Squat") -> list[PerformanceRecord]:
    return [
        PerformanceRecord(date=START + timedelta(days=index * step_days), exercise=exercise, weight=value, reps=1)
        for index, value in enumerate(values)
    ]


def test_linear_progress_forecasts_one_week_ahead() -> None:
    models = predict_performance(_make_records([200, 210, 220, 230, 240]))
    assert models
    assert [model.r_squared for model in models] == sorted((model.r_squared for model in models), reverse=True)
    linear = next(model for model in models if model.kind == "linear")
    assert linear.r_squared == pytest.approx(1.0)
    week = linear.predictions["1w"]
    assert week.value == pytest.approx(250.0)
    assert week.confidence == pytest.approx(0.95)
    assert week.date == START + timedelta(days=35)
    assert set(linear.predictions) == {"1w", "1m", "3m", "6m", "1y"}


def test_every_model_reports_bounded_fit_quality() -> None:
    for model in predict_performance(_make_records([200, 205, 203, 212, 215, 214])):
        assert 0.0 <= model.r_squared <= 1.0
        for forecast in model.predictions.values():
            assert forecast.value >= 0.0
            assert 0.0 <= forecast.confidence <= 1.0


def test_prediction_needs_four_training_days() -> None:
    assert predict_performance(_make_records([200, 210, 220])) == []
    same_day = _make_records([200, 210, 220], step_days=0) + _make_records([230])
    assert predict_performance(same_day) == []


def test_unknown_metric_is_rejected() -> None:
    with pytest.raises(ValueError):
        predict_performance(_make_records([200, 210, 220, 230]), metric="speed")  # type: ignore[arg-type]


def test_fit_models_skips_degenerate_families() -> None:
    models = fit_models([0, 1, 2, 3], [0, 1, 2, 3])
    kinds = {model.kind for model in models}
    assert "exponential" not in kinds
    assert "linear" in kinds
    linear = next(model for model in models if model.kind == "linear")
    assert evaluate_model(linear, 10) == pytest.approx(10.0)

    with pytest.raises(ValueError):
        fit_models([0, 1], [1])


def test_injury_risk_defaults_for_short_history() -> None:
    result = assess_injury_risk(_make_records([200] * 6))
    assert result.risk_level == "low"
    assert result.risk_score == pytest.approx(15.0)
    assert result.days_to_deload == 21


def test_injury_risk_flags_volume_jump_and_hard_sessions() -> None:
    previous = [
        PerformanceRecord(date=START + timedelta(days=index), exercise="Squat", weight=200, reps=5, volume=1000)
        for index in range(7)
    ]
    recent = [
        PerformanceRecord(date=START + timedelta(days=7 + index), exercise="Squat", weight=200, reps=5, rpe=9,
                          volume=3000)
        for index in range(7)
    ]
    result = assess_injury_risk(previous + recent)
    assert result.factors["volume_increase"] == pytest.approx(100.0)
    assert result.factors["recovery"] == pytest.approx(100.0)
    assert result.factors["training_load"] == pytest.approx(48.0)
    assert result.risk_score == pytest.approx(54.4)
    assert result.risk_level == "high"
    assert result.days_to_deload == 12
    assert "Consider immediate deload week" in result.recommendations
    assert "Volume increased too rapidly - scale back to previous levels" in result.recommendations


def test_goal_achievement_at_observed_rate() -> None:
    records = [
        PerformanceRecord(date=START + timedelta(days=offset), exercise="Squat", weight=value, reps=1)
        for offset, value in ((0, 200), (15, 215), (30, 230))
    ]
    result = predict_goal_achievement(230, 330, records)
    assert result.current_rate == pytest.approx(1.0)
    assert result.required_rate == pytest.approx(100 / 90)
    assert result.probability == pytest.approx(0.9)
    assert result.timeframe_days.realistic == 100
    assert result.timeframe_days.pessimistic == 150
    assert result.timeframe_days.optimistic < result.timeframe_days.realistic
    assert result.confidence == pytest.approx(0.65)


def test_goal_achievement_default_for_short_history() -> None:
    result = predict_goal_achievement(200, 250, _make_records([200, 205]))
    assert result.probability == pytest.approx(0.5)
    assert result.timeframe_days.realistic == 90


def test_plateau_default_and_declining_lift() -> None:
    assert predict_plateau(_make_records([200, 210])).probability == pytest.approx(0.3)

    today = date(2024, 3, 1)
    declining = predict_plateau(_make_records([250, 240, 230, 220, 210, 200]), today=today)
    assert declining.probability > 0.7
    assert declining.trend_strength == pytest.approx(0.0)
    assert declining.estimated_date == today + timedelta(days=30)
    assert declining.breakout_strategies[0] == "Complete program change recommended"
    assert len(declining.variation_recommendations) == 6

    rising = predict_plateau(_make_records([200, 210, 220, 230, 240, 250]), today=today)
    assert rising.probability < 0.3
    assert rising.estimated_date is None


def test_refitting_history_reproduces_r_squared() -> None:
    xs = [0.0, 3.0, 7.0, 10.0, 14.0, 21.0]
    ys = [200.0, 204.0, 211.0, 209.0, 218.0, 224.0]
    for model in fit_models(xs, ys):
        fitted = [evaluate_model(model, x) for x in xs]
        assert r_squared(ys, fitted) == pytest.approx(model.r_squared, abs=1e-9)
