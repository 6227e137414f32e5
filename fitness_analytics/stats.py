"""Statistical primitives shared by every analyzer.

All functions accept plain sequences of numbers, never raise on short input
and return neutral values (zeros, empty lists) instead.
"""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass
from typing import Literal, Mapping, Sequence

import numpy as np
from scipy import stats as scipy_stats

from .models import Serializable

BaselineMethod = Literal["mean", "median", "mode"]
Strength = Literal["weak", "moderate", "strong"]


@dataclass(frozen=True)
class RegressionResult(Serializable):
    slope: float
    intercept: float
    r_squared: float


@dataclass(frozen=True)
class CorrelationResult(Serializable):
    correlation: float
    significance: float
    strength: Strength


@dataclass(frozen=True)
class Seasonality(Serializable):
    has_seasonality: bool
    strength: float
    period: int | None = None


def _as_array(values: Sequence[float]) -> np.ndarray:
    return np.asarray(list(values), dtype=float)


def clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    return float(min(upper, max(lower, value)))


def linear_regression(xs: Sequence[float], ys: Sequence[float]) -> RegressionResult:
    """
    Ordinary least squares fit of `ys` against `xs`.

    Zero variance in `xs` yields a flat line through the mean of `ys`. R^2 is
    clamped at zero and reported as zero when `ys` has no variance.
    """
    x = _as_array(xs)
    y = _as_array(ys)
    if x.size != y.size or x.size < 2:
        return RegressionResult(slope=0.0, intercept=0.0, r_squared=0.0)

    x_mean = float(x.mean())
    y_mean = float(y.mean())
    sxx = float(np.sum((x - x_mean) ** 2))
    slope = 0.0 if sxx == 0.0 else float(np.sum((x - x_mean) * (y - y_mean)) / sxx)
    intercept = y_mean - slope * x_mean
    fitted = intercept + slope * x
    return RegressionResult(slope=slope, intercept=intercept, r_squared=r_squared(y, fitted))


def r_squared(actual: Sequence[float], predicted: Sequence[float]) -> float:
    """Coefficient of determination, clamped to [0, 1]; 0 when `actual` is constant."""
    y = _as_array(actual)
    fit = _as_array(predicted)
    if y.size == 0 or y.size != fit.size:
        return 0.0
    total = float(np.sum((y - y.mean()) ** 2))
    if total == 0.0:
        return 0.0
    residual = float(np.sum((y - fit) ** 2))
    if not math.isfinite(residual):
        return 0.0
    return clamp(1.0 - residual / total)


def correlation(xs: Sequence[float], ys: Sequence[float]) -> CorrelationResult:
    """
    Pearson correlation with a significance score.

    Significance is one minus the two-sided p-value of the t statistic
    t = |r| * sqrt((n - 2) / (1 - r^2)). Fewer than three paired points, or a
    constant series, report no correlation.
    """
    x = _as_array(xs)
    y = _as_array(ys)
    if x.size != y.size or x.size < 3:
        return CorrelationResult(correlation=0.0, significance=0.0, strength="weak")

    x_dev = x - x.mean()
    y_dev = y - y.mean()
    denominator = math.sqrt(float(np.sum(x_dev**2)) * float(np.sum(y_dev**2)))
    if denominator == 0.0:
        return CorrelationResult(correlation=0.0, significance=0.0, strength="weak")

    r = clamp(float(np.sum(x_dev * y_dev)) / denominator, -1.0, 1.0)
    dof = x.size - 2
    if abs(r) >= 1.0:
        significance = 1.0
    else:
        t_stat = abs(r) * math.sqrt(dof / (1 - r * r))
        p_value = 2 * float(scipy_stats.t.sf(t_stat, dof))
        significance = clamp(1.0 - p_value)
    return CorrelationResult(correlation=r, significance=significance, strength=correlation_strength(r))


def correlation_strength(r: float) -> Strength:
    magnitude = abs(r)
    if magnitude < 0.3:
        return "weak"
    if magnitude < 0.7:
        return "moderate"
    return "strong"


def mean(values: Sequence[float]) -> float:
    data = _as_array(values)
    return float(data.mean()) if data.size else 0.0


def variance(values: Sequence[float]) -> float:
    """Sample variance (n - 1); zero for fewer than two values."""
    data = _as_array(values)
    if data.size < 2:
        return 0.0
    return float(np.var(data, ddof=1))


def standard_deviation(values: Sequence[float]) -> float:
    """Sample standard deviation (n - 1); zero for fewer than two values."""
    return math.sqrt(variance(values))


def population_std(values: Sequence[float]) -> float:
    data = _as_array(values)
    if data.size == 0:
        return 0.0
    return float(np.std(data, ddof=0))


def coefficient_of_variation(values: Sequence[float]) -> float:
    average = mean(values)
    if average == 0:
        return 0.0
    return population_std(values) / abs(average)


def moving_average(values: Sequence[float], window: int) -> list[float]:
    """Trailing simple moving average; a window wider than the data collapses to the mean."""
    data = _as_array(values)
    if data.size == 0 or window <= 0:
        return []
    if window >= data.size:
        return [float(data.mean())]
    kernel = np.ones(window) / window
    return [float(value) for value in np.convolve(data, kernel, mode="valid")]


def normalize(values: Sequence[float]) -> list[float]:
    """Min-max scale into [0, 1]; a constant series maps to 0.5 everywhere."""
    data = _as_array(values)
    if data.size == 0:
        return []
    low, high = float(data.min()), float(data.max())
    if high == low:
        return [0.5] * int(data.size)
    return [float(value) for value in (data - low) / (high - low)]


def detect_outliers(values: Sequence[float]) -> list[int]:
    """
    Indices of values outside Tukey's fences (Q1 - 1.5 IQR, Q3 + 1.5 IQR).

    Quartiles are read from the sorted data at floor(n * 0.25) and
    floor(n * 0.75). Fewer than four values never produce outliers.
    """
    data = _as_array(values)
    if data.size < 4:
        return []
    ordered = np.sort(data)
    q1 = float(ordered[int(math.floor(data.size * 0.25))])
    q3 = float(ordered[int(math.floor(data.size * 0.75))])
    iqr = q3 - q1
    lower = q1 - 1.5 * iqr
    upper = q3 + 1.5 * iqr
    return [int(index) for index in np.flatnonzero((data < lower) | (data > upper))]


def baseline(values: Sequence[float], method: BaselineMethod = "median") -> float:
    """Typical value of a series; empty input gives 0. Mode ties resolve to the smallest value."""
    data = [float(value) for value in values]
    if not data:
        return 0.0
    if method == "mean":
        return float(np.mean(data))
    if method == "mode":
        counts = Counter(data)
        top = max(counts.values())
        return min(value for value, count in counts.items() if count == top)
    if method == "median":
        return float(np.median(data))
    raise ValueError(f"Unsupported baseline method: {method!r}")


def percentile_interpolate(value: float, table: Mapping[int, float]) -> float:
    """
    Map a raw value onto a percentile using piecewise-linear interpolation.

    `table` maps percentile breakpoints (e.g. 10, 25, ..., 99) to the value at
    that percentile. Below the lowest breakpoint the percentile scales
    proportionally toward zero; above the highest it extrapolates by the
    relative excess, capped at 100. The result is monotonically non-decreasing
    in `value` for tables whose values increase with percentile.
    """
    points = sorted((float(pct), float(val)) for pct, val in table.items())
    if not points:
        return 0.0

    low_pct, low_val = points[0]
    if value <= low_val:
        if low_val <= 0:
            return clamp(low_pct, 0.0, 100.0)
        return clamp(low_pct * max(value, 0.0) / low_val, 0.0, 100.0)

    high_pct, high_val = points[-1]
    if value >= high_val:
        excess = (value - high_val) / high_val if high_val > 0 else 0.0
        return clamp(high_pct + min(1.0, excess), 0.0, 100.0)

    for (lower_pct, lower_val), (upper_pct, upper_val) in zip(points, points[1:]):
        if lower_val <= value <= upper_val:
            if upper_val == lower_val:
                return upper_pct
            ratio = (value - lower_val) / (upper_val - lower_val)
            return clamp(lower_pct + ratio * (upper_pct - lower_pct), 0.0, 100.0)
    return clamp(high_pct, 0.0, 100.0)


def value_at_percentile(percentile: float, table: Mapping[int, float]) -> float:
    """Inverse of `percentile_interpolate` within the tabulated range."""
    points = sorted((float(pct), float(val)) for pct, val in table.items())
    if not points:
        return 0.0
    if percentile <= points[0][0]:
        low_pct, low_val = points[0]
        return low_val * max(percentile, 0.0) / low_pct if low_pct > 0 else low_val
    if percentile >= points[-1][0]:
        return points[-1][1]
    for (lower_pct, lower_val), (upper_pct, upper_val) in zip(points, points[1:]):
        if lower_pct <= percentile <= upper_pct:
            ratio = (percentile - lower_pct) / (upper_pct - lower_pct)
            return lower_val + ratio * (upper_val - lower_val)
    return points[-1][1]


def detect_weekly_seasonality(values: Sequence[float], *, period: int = 7, threshold: float = 0.3) -> Seasonality:
    """Lag-`period` autocorrelation; needs two full periods of data."""
    data = [float(value) for value in values]
    if len(data) < period * 2:
        return Seasonality(has_seasonality=False, strength=0.0)
    lagged = correlation(data[:-period], data[period:]).correlation
    if lagged > threshold:
        return Seasonality(has_seasonality=True, strength=lagged, period=period)
    return Seasonality(has_seasonality=False, strength=lagged)
