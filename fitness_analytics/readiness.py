"""Daily readiness scoring from wellness check-ins.

Each factor's latest reading is normalised onto 0-100 (soreness and stress are
inverted so that lower raw values score higher), combined with per-factor
weights, and compared against a personal baseline built from older data.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Literal, Sequence

from .config import AppConfig, resolve
from .models import (
    CORE_FACTORS,
    DailyMetrics,
    ReadinessAnalysis,
    ReadinessFactor,
    Serializable,
)
from .stats import baseline as series_baseline, clamp, mean
from .trends import analyze_trend

LOGGER = logging.getLogger(__name__)

INVERTED_FACTORS = frozenset({"soreness", "stress"})
HRV_REFERENCE_SCORE = 70.0

ONBOARDING_RECOMMENDATIONS: tuple[str, ...] = (
    "Start tracking daily metrics for personalized insights",
    "Maintain consistent sleep schedule",
    "Monitor workout intensity and recovery",
)


@dataclass(frozen=True)
class HistoryComparison(Serializable):
    trend: Literal["improving", "declining", "stable"]
    comparison: str
    significance: Literal["low", "medium", "high"]


def _normalise(name: str, raw: float) -> float:
    if name in INVERTED_FACTORS:
        return clamp((10 - raw) * 10, 0.0, 100.0)
    return clamp(raw * 10, 0.0, 100.0)


def _factor_values(metrics: Sequence[DailyMetrics], name: str) -> list[float]:
    values = [item.factor_value(name) for item in metrics]
    if name in INVERTED_FACTORS:
        return [value for value in values if value is not None and value >= 0]
    return [value for value in values if value is not None and value > 0]


def _factor_trend(name: str, values: Sequence[float], cfg: AppConfig) -> str:
    window = values[-cfg.readiness.trend_window :]
    result = analyze_trend(window, config=cfg)
    if result.confidence <= cfg.readiness.trend_min_confidence or result.direction == "neutral":
        return "stable"
    rising = result.direction == "positive"
    if name in INVERTED_FACTORS:
        return "declining" if rising else "improving"
    return "improving" if rising else "declining"


def analyze_readiness_factors(
    metrics: Sequence[DailyMetrics],
    *,
    config: AppConfig | None = None,
) -> tuple[ReadinessFactor, ...]:
    """
    Score every factor that has at least one usable reading.

    HRV has no fixed scale, so it is scored against the athlete's own median:
    a reading at the median scores 70 and the score moves proportionally.
    """
    cfg = resolve(config)
    weights = cfg.readiness.weights.as_mapping()
    factors: list[ReadinessFactor] = []
    for name in (*CORE_FACTORS, "hrv"):
        values = _factor_values(metrics, name)
        if not values:
            continue
        latest = values[-1]
        if name == "hrv":
            reference = series_baseline(values)
            score = clamp(HRV_REFERENCE_SCORE * latest / reference, 0.0, 100.0) if reference > 0 else 0.0
        else:
            score = _normalise(name, latest)
        factors.append(
            ReadinessFactor(
                name=name,
                value=latest,
                weight=weights[name],
                score=score,
                trend=_factor_trend(name, values, cfg),  # type: ignore[arg-type]
            )
        )
    return tuple(factors)


def overall_score(factors: Sequence[ReadinessFactor]) -> int:
    """Weight-normalised combination of factor scores; 50 when nothing is weighted."""
    total_weight = sum(item.weight for item in factors)
    if total_weight <= 0:
        return 50
    weighted = sum(item.score * item.weight for item in factors)
    return int(round(clamp(weighted / total_weight, 0.0, 100.0)))


def readiness_level(score: float) -> str:
    if score >= 85:
        return "excellent"
    if score >= 70:
        return "good"
    if score >= 50:
        return "fair"
    return "poor"


def personal_baseline(
    metrics: Sequence[DailyMetrics],
    *,
    today: date,
    config: AppConfig | None = None,
) -> float:
    """
    Typical readiness built from data at least two weeks old.

    Uses the last `baseline_window` qualifying days, takes the median of each
    normalised factor and combines them with the readiness weights. Too little
    history yields the default baseline.
    """
    cfg = resolve(config).readiness
    if len(metrics) < cfg.baseline_min_history:
        return cfg.default_baseline

    cutoff = today - timedelta(days=cfg.baseline_exclusion_days)
    history = [item for item in metrics if item.date < cutoff][-cfg.baseline_window :]
    if len(history) < cfg.baseline_min_points:
        LOGGER.debug("Only %s baseline days before %s; using default", len(history), cutoff)
        return cfg.default_baseline

    weights = cfg.weights.as_mapping()
    weighted = 0.0
    total_weight = 0.0
    for name in CORE_FACTORS:
        scores = [_normalise(name, value) for value in _factor_values(history, name)]
        if not scores:
            continue
        weighted += series_baseline(scores) * weights[name]
        total_weight += weights[name]
    if total_weight <= 0:
        return cfg.default_baseline
    return float(round(clamp(weighted / total_weight, cfg.baseline_floor, cfg.baseline_ceiling)))


def _recommendations(
    factors: Sequence[ReadinessFactor],
    score: int,
    deviation: float,
    limit: int,
) -> tuple[str, ...]:
    by_name = {item.name: item for item in factors}
    advice: list[str] = []

    if score < 50:
        advice.append("Consider a rest day or light recovery session")
    elif score < 70:
        advice.append("Proceed with caution - reduce intensity by 10-20%")
    elif score > 85:
        advice.append("Excellent readiness - consider progressive overload")

    sleep = by_name.get("sleep")
    energy = by_name.get("energy")
    soreness = by_name.get("soreness")
    stress = by_name.get("stress")

    if sleep and sleep.score < 60:
        advice.append(f"Prioritize sleep recovery - aim for {math.ceil(sleep.value + 1)}+ hours tonight")
    if energy and energy.score < 60:
        advice.append("Focus on nutrition and hydration before training")
    if soreness and soreness.score < 60:
        advice.append("Include extra warm-up and mobility work")
        if soreness.value > 6:
            advice.append("Consider massage or foam rolling session")
    if stress and stress.score < 60:
        advice.append("Practice stress management techniques (meditation, breathing)")

    if sleep and sleep.trend == "declining":
        advice.append("Sleep quality is declining - review sleep hygiene")
    if energy and stress and energy.trend == "declining" and stress.trend == "declining":
        advice.append("Multiple declining factors detected - consider a deload week")

    if deviation < -15:
        advice.append("Significantly below baseline - prioritize recovery")
    elif deviation > 15:
        advice.append("Above baseline - great time for challenging workouts")

    return tuple(advice[:limit])


def readiness_confidence(
    metrics: Sequence[DailyMetrics],
    factors: Sequence[ReadinessFactor],
    *,
    today: date,
    config: AppConfig | None = None,
) -> float:
    """Blend recency, completeness, recent consistency and history depth into [0, 1]."""
    cfg = resolve(config)
    if not metrics:
        return 0.0

    days_since = max(0, (today - metrics[-1].date).days)
    recency = clamp(1 - days_since / cfg.readiness.recency_decay_days)

    present = sum(1 for item in factors if item.name in CORE_FACTORS)
    completeness = clamp(present / len(CORE_FACTORS))

    consistency = 0.0
    recent = metrics[-cfg.readiness.trend_window :]
    if len(recent) >= 3:
        sleep_trend = analyze_trend(_factor_values(recent, "sleep"), config=cfg)
        energy_trend = analyze_trend(_factor_values(recent, "energy"), config=cfg)
        consistency = clamp((sleep_trend.confidence + energy_trend.confidence) / 2)

    depth = clamp(len(metrics) / cfg.readiness.baseline_window)

    return clamp(recency * 0.3 + completeness * 0.3 + consistency * 0.2 + depth * 0.2)


def default_readiness(config: AppConfig | None = None) -> ReadinessAnalysis:
    """Analysis reported for athletes with no check-ins yet."""
    cfg = resolve(config).readiness
    weights = cfg.weights.as_mapping()
    defaults = (("sleep", 7.0), ("energy", 7.0), ("soreness", 3.0), ("stress", 3.0))
    factors = tuple(
        ReadinessFactor(name=name, value=value, weight=weights[name], score=70.0, trend="stable")
        for name, value in defaults
    )
    return ReadinessAnalysis(
        overall_score=70,
        level="good",
        factors=factors,
        baseline=cfg.default_baseline,
        deviation=70 - cfg.default_baseline,
        confidence=0.1,
        recommendations=ONBOARDING_RECOMMENDATIONS,
    )


def analyze_readiness(
    metrics: Sequence[DailyMetrics],
    *,
    baseline: float | None = None,
    today: date | None = None,
    config: AppConfig | None = None,
) -> ReadinessAnalysis:
    """
    Score today's readiness from check-ins ordered oldest to newest.

    `baseline` overrides the computed personal baseline. `today` anchors the
    baseline window and recency decay; it defaults to the current date.
    """
    cfg = resolve(config)
    if not metrics:
        LOGGER.debug("No daily metrics supplied; returning default readiness")
        return default_readiness(cfg)

    ordered = sorted(metrics, key=lambda item: item.date)
    anchor = today or date.today()
    factors = analyze_readiness_factors(ordered, config=cfg)
    score = overall_score(factors)
    reference = baseline if baseline is not None else personal_baseline(ordered, today=anchor, config=cfg)
    deviation = score - reference

    return ReadinessAnalysis(
        overall_score=score,
        level=readiness_level(score),  # type: ignore[arg-type]
        factors=factors,
        baseline=float(reference),
        deviation=float(deviation),
        confidence=readiness_confidence(ordered, factors, today=anchor, config=cfg),
        recommendations=_recommendations(factors, score, deviation, cfg.readiness.max_recommendations),
    )


def compare_to_history(
    current: ReadinessAnalysis,
    history: Sequence[ReadinessAnalysis],
    *,
    config: AppConfig | None = None,
) -> HistoryComparison:
    """Compare today's score against the mean of the last seven analyses."""
    if len(history) < 3:
        return HistoryComparison("stable", "Insufficient history for comparison", "low")

    recent = [float(item.overall_score) for item in history[-7:]]
    trend = analyze_trend(recent, config=config)
    difference = current.overall_score - mean(recent)

    if abs(difference) < 5:
        comparison = "Similar to recent average"
    elif difference > 0:
        comparison = f"{round(difference)} points above recent average"
    else:
        comparison = f"{round(abs(difference))} points below recent average"

    if abs(difference) > 15:
        significance = "high"
    elif abs(difference) > 8:
        significance = "medium"
    else:
        significance = "low"

    if trend.direction == "positive":
        direction = "improving"
    elif trend.direction == "negative":
        direction = "declining"
    else:
        direction = "stable"
    return HistoryComparison(direction, comparison, significance)  # type: ignore[arg-type]
