from __future__ import annotations

import pytest

from fitness_analytics.anomalies import detect_anomalies
from fitness_analytics.config import AppConfig, TrendThresholds
from fitness_analytics.prediction import assess_injury_risk, predict_performance, predict_plateau
from fitness_analytics.stats import correlation, detect_outliers, linear_regression
from fitness_analytics.trends import analyze_trend, detect_performance_pattern


def test_constant_series_is_stable_with_zero_confidence() -> None:
    result = analyze_trend([7] * 7)
    assert result.trend == "stable"
    assert result.direction == "neutral"
    assert result.confidence == 0.0
    assert result.slope == 0.0


def test_short_series_returns_neutral_default() -> None:
    result = analyze_trend([1, 2])
    assert (result.trend, result.direction, result.confidence) == ("stable", "neutral", 0.0)


def test_increasing_and_decreasing_series() -> None:
    rising = analyze_trend([10, 11, 12, 13, 14])
    assert rising.trend == "increasing"
    assert rising.direction == "positive"
    assert rising.slope == pytest.approx(1.0)
    assert rising.confidence == pytest.approx(1.0)

    falling = analyze_trend([14, 13, 12, 11, 10])
    assert falling.trend == "decreasing"
    assert falling.direction == "negative"


def test_volatility_takes_precedence_over_slope() -> None:
    result = analyze_trend([1, 10, 1, 10, 1])
    assert result.trend == "volatile"
    assert result.direction == "neutral"
    assert result.volatility > 0.3


def test_small_slope_is_stable() -> None:
    assert analyze_trend([10, 10.05, 10.1]).trend == "stable"


def test_thresholds_come_from_config() -> None:
    config = AppConfig(trend=TrendThresholds(slope=10.0))
    assert analyze_trend([10, 11, 12, 13, 14], config=config).trend == "stable"


def test_performance_pattern_scales_confidence_by_coverage() -> None:
    pattern = detect_performance_pattern("Squat", [100, 105, 110, 115, 120], timeframe=10)
    assert pattern.trend == "increasing"
    assert pattern.significance == "high"
    assert pattern.confidence == pytest.approx(0.5)
    assert pattern.data_points == 5
    assert pattern.timeframe == 10


def test_performance_pattern_reports_factor_correlations() -> None:
    pattern = detect_performance_pattern(
        "Squat",
        [100, 105, 110, 115, 120],
        factors={"sleep": [6, 7, 8, 9, 10], "misaligned": [1, 2]},
    )
    assert [item.factor for item in pattern.correlations] == ["sleep"]
    assert pattern.correlations[0].strength == pytest.approx(1.0)


def test_flat_pattern_has_low_significance() -> None:
    pattern = detect_performance_pattern("energy", [7, 7, 7, 7])
    assert pattern.significance == "low"
    assert pattern.trend == "stable"


def test_short_inputs_return_defaults_everywhere() -> None:
    for values in ([], [5.0], [5.0, 6.0]):
        assert analyze_trend(values).confidence == 0.0
        assert correlation(values, values).correlation == 0.0
        assert detect_outliers(values) == []
    assert linear_regression([], []).r_squared == 0.0
    assert linear_regression([0], [5.0]).slope == 0.0
    assert detect_anomalies([]) == []
    assert predict_performance([]) == []
    assert predict_plateau([]).probability == pytest.approx(0.3)
    assert assess_injury_risk([]).risk_level == "low"
