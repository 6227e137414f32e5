from __future__ import annotations

import pytest

from fitness_analytics.benchmarks import BENCHMARKS
from fitness_analytics.stats import (
    baseline,
    correlation,
    correlation_strength,
    detect_outliers,
    detect_weekly_seasonality,
    linear_regression,
    mean,
    moving_average,
    normalize,
    percentile_interpolate,
    r_squared,
    standard_deviation,
    value_at_percentile,
    variance,
)


def test_linear_regression_exact_fit() -> None:
    fit = linear_regression([0, 1, 2, 3], [1, 3, 5, 7])
    assert fit.slope == pytest.approx(2.0)
    assert fit.intercept == pytest.approx(1.0)
    assert fit.r_squared == pytest.approx(1.0)


def test_linear_regression_degenerate_inputs() -> None:
    flat_x = linear_regression([2, 2, 2], [1, 2, 3])
    assert flat_x.slope == 0.0
    assert flat_x.intercept == pytest.approx(2.0)
    assert flat_x.r_squared == 0.0

    assert linear_regression([1], [5]).slope == 0.0
    assert linear_regression([1, 2, 3], [1, 2]).r_squared == 0.0
    assert linear_regression([0, 1, 2], [4, 4, 4]).r_squared == 0.0


def test_r_squared_is_clamped_to_unit_interval() -> None:
    assert r_squared([1, 2, 3], [10, -10, 30]) == 0.0
    noisy = linear_regression(range(6), [1, 4, 2, 6, 3, 7])
    assert 0.0 <= noisy.r_squared <= 1.0


def test_correlation_perfect_and_short_series() -> None:
    perfect = correlation([1, 2, 3, 4], [2, 4, 6, 8])
    assert perfect.correlation == pytest.approx(1.0)
    assert perfect.strength == "strong"
    assert perfect.significance == pytest.approx(1.0)

    short = correlation([1, 2], [2, 4])
    assert short.correlation == 0.0
    assert short.strength == "weak"

    constant = correlation([1, 2, 3], [5, 5, 5])
    assert constant.correlation == 0.0


def test_correlation_strength_bands() -> None:
    assert correlation_strength(0.29) == "weak"
    assert correlation_strength(-0.5) == "moderate"
    assert correlation_strength(0.7) == "strong"


def test_summary_statistics() -> None:
    assert mean([]) == 0.0
    assert variance([1, 2, 3, 4]) == pytest.approx(5 / 3)
    assert standard_deviation([5]) == 0.0
    assert moving_average([1, 2, 3, 4], 2) == pytest.approx([1.5, 2.5, 3.5])
    assert moving_average([1, 2, 3], 5) == pytest.approx([2.0])
    assert normalize([3, 3, 3]) == [0.5, 0.5, 0.5]
    assert normalize([0, 5, 10]) == pytest.approx([0.0, 0.5, 1.0])


def test_detect_outliers_uses_tukey_fences() -> None:
    assert detect_outliers([10, 11, 12, 13, 100]) == [4]
    assert detect_outliers([1, 2, 300]) == []


def test_baseline_methods() -> None:
    assert baseline([1, 2, 100]) == pytest.approx(2.0)
    assert baseline([1, 2, 3], "mean") == pytest.approx(2.0)
    assert baseline([3, 1, 3, 1, 2], "mode") == 1.0
    assert baseline([]) == 0.0
    with pytest.raises(ValueError):
        baseline([1, 2], "geometric")  # type: ignore[arg-type]


def test_percentile_interpolate_breakpoints_and_extrapolation() -> None:
    table = {50: 185, 75: 225}
    assert percentile_interpolate(225, table) == pytest.approx(75.0)
    assert percentile_interpolate(205, table) == pytest.approx(62.5)
    assert percentile_interpolate(92.5, table) == pytest.approx(25.0)
    assert percentile_interpolate(500, table) == pytest.approx(76.0)
    assert percentile_interpolate(1000, {99: 100}) == 100.0
    assert percentile_interpolate(-5, table) == 0.0


def test_percentile_interpolate_is_monotonic() -> None:
    for benchmark in BENCHMARKS.values():
        previous = -1.0
        for value in range(0, 1000, 5):
            current = percentile_interpolate(value, benchmark.percentiles)
            assert 0.0 <= current <= 100.0
            assert current >= previous
            previous = current


def test_value_at_percentile_inverts_interpolation() -> None:
    table = {25: 135, 50: 185, 75: 225}
    assert value_at_percentile(50, table) == pytest.approx(185.0)
    assert value_at_percentile(62.5, table) == pytest.approx(205.0)
    assert value_at_percentile(99, table) == pytest.approx(225.0)


def test_weekly_seasonality() -> None:
    pattern = [1, 5, 3, 7, 2, 6, 4] * 3
    result = detect_weekly_seasonality(pattern)
    assert result.has_seasonality
    assert result.period == 7
    assert result.strength == pytest.approx(1.0)

    assert not detect_weekly_seasonality(pattern[:10]).has_seasonality
