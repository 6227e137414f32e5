"""Trend classification for metric series and per-metric performance patterns."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Mapping, Sequence, Tuple

from .config import AppConfig, resolve
from .models import Serializable, TrendResult
from .stats import clamp, correlation, linear_regression, mean, population_std

LOGGER = logging.getLogger(__name__)

MIN_TREND_POINTS = 3

Significance = Literal["low", "medium", "high"]


@dataclass(frozen=True)
class FactorCorrelation(Serializable):
    factor: str
    strength: float
    significance: float


@dataclass(frozen=True)
class PerformancePattern(Serializable):
    metric: str
    trend: str
    direction: str
    confidence: float
    timeframe: int
    significance: Significance
    data_points: int
    slope: float = 0.0
    correlations: Tuple[FactorCorrelation, ...] = ()


def _neutral_trend() -> TrendResult:
    return TrendResult(trend="stable", direction="neutral", confidence=0.0, slope=0.0, volatility=0.0)


def analyze_trend(values: Sequence[float], *, config: AppConfig | None = None) -> TrendResult:
    """
    Classify a series as increasing, decreasing, stable or volatile.

    The slope comes from an OLS fit against the sample index, volatility is the
    population coefficient of variation. Volatility wins over slope: a noisy
    series is reported as volatile even when its fitted slope is steep.
    """
    data = [float(value) for value in values]
    if len(data) < MIN_TREND_POINTS:
        LOGGER.debug("Trend needs %s points, received %s", MIN_TREND_POINTS, len(data))
        return _neutral_trend()

    thresholds = resolve(config).trend
    fit = linear_regression(range(len(data)), data)
    average = mean(data)
    volatility = population_std(data) / abs(average) if average != 0 else 0.0
    confidence = clamp(fit.r_squared)

    if volatility > thresholds.volatility:
        return TrendResult("volatile", "neutral", confidence, fit.slope, volatility)
    if abs(fit.slope) < thresholds.slope:
        return TrendResult("stable", "neutral", confidence, fit.slope, volatility)
    if fit.slope > 0:
        return TrendResult("increasing", "positive", confidence, fit.slope, volatility)
    return TrendResult("decreasing", "negative", confidence, fit.slope, volatility)


def detect_performance_pattern(
    metric: str,
    values: Sequence[float],
    *,
    timeframe: int = 14,
    factors: Mapping[str, Sequence[float]] | None = None,
    config: AppConfig | None = None,
) -> PerformancePattern:
    """
    Summarise a metric's trend over `timeframe` days.

    Confidence is the trend confidence scaled by how much of the timeframe is
    covered by data. Optional `factors` are correlated against the metric when
    they line up point for point.
    """
    cfg = resolve(config)
    data = [float(value) for value in values]
    trend = analyze_trend(data, config=cfg)
    coverage = min(1.0, len(data) / timeframe) if timeframe > 0 else 1.0
    magnitude = abs(trend.slope)
    if magnitude > cfg.trend.pattern_high_slope:
        significance: Significance = "high"
    elif magnitude > cfg.trend.pattern_medium_slope:
        significance = "medium"
    else:
        significance = "low"

    correlations: list[FactorCorrelation] = []
    for name, series in (factors or {}).items():
        if len(series) != len(data):
            continue
        result = correlation(series, data)
        if result.strength != "weak":
            correlations.append(
                FactorCorrelation(factor=name, strength=result.correlation, significance=result.significance)
            )

    return PerformancePattern(
        metric=metric,
        trend=trend.trend,
        direction=trend.direction,
        confidence=trend.confidence * coverage,
        timeframe=timeframe,
        significance=significance,
        data_points=len(data),
        slope=trend.slope,
        correlations=tuple(correlations),
    )
