"""Curve fitting and forecasting for performance histories.

Four model families are fitted independently against days elapsed since the
first observation:

- linear:       y = c0 + c1 * x
- polynomial:   y = c0 + c1 * x + c2 * x^2 (normal equations)
- exponential:  y = a * exp(b * x) (log-linearised)
- logistic:     y = L / (1 + exp(-k * (x - x0)))

The logistic curve starts from a heuristic guess (L = 1.1 * max, k = 0.1,
x0 = midpoint) and is refined with `scipy.optimize.curve_fit`. When the solver
fails, or does worse than the guess, the guess is kept and the model is marked
`approximate`.
"""

from __future__ import annotations

import logging
import math
import warnings
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Dict, List, Literal, Optional, Sequence

import numpy as np
from scipy.optimize import OptimizeWarning, curve_fit

from .models import DegenerateFitError, Forecast, PerformanceRecord, PredictionModel, Serializable
from .stats import clamp, linear_regression, mean, population_std, r_squared

LOGGER = logging.getLogger(__name__)

Metric = Literal["one_rm", "volume"]
GoalType = Literal["strength", "bodyweight", "volume", "consistency"]

HORIZONS: tuple[tuple[str, int], ...] = (
    ("1w", 7),
    ("1m", 30),
    ("3m", 91),
    ("6m", 182),
    ("1y", 365),
)
DECAY_FACTORS: dict[str, tuple[float, ...]] = {
    "linear": (0.95, 0.85, 0.7, 0.5, 0.3),
    "polynomial": (0.9, 0.8, 0.65, 0.45, 0.25),
    "exponential": (0.85, 0.7, 0.5, 0.3, 0.15),
    "logistic": (0.8, 0.75, 0.7, 0.65, 0.6),
}
MODEL_NAMES: dict[str, str] = {
    "linear": "Linear Regression",
    "polynomial": "Polynomial Regression",
    "exponential": "Exponential Model",
    "logistic": "Logistic Model",
}
MIN_PREDICTION_POINTS = 4
SINGULAR_DETERMINANT = 1e-10
MAX_EXPONENT = 700.0
LOGISTIC_GROWTH_GUESS = 0.1
GOAL_WINDOW_DAYS = 90


@dataclass(frozen=True)
class InjuryRiskAssessment(Serializable):
    risk_level: Literal["low", "moderate", "high", "critical"]
    risk_score: float
    factors: Dict[str, float]
    recommendations: List[str]
    days_to_deload: int


@dataclass(frozen=True)
class GoalTimeframe(Serializable):
    optimistic: int
    realistic: int
    pessimistic: int


@dataclass(frozen=True)
class GoalPrediction(Serializable):
    goal_type: str
    target_value: float
    current_value: float
    probability: float
    timeframe_days: GoalTimeframe
    required_rate: float
    current_rate: float
    confidence: float


@dataclass(frozen=True)
class PlateauPrediction(Serializable):
    exercise: str
    probability: float
    estimated_date: Optional[date]
    trend_strength: float
    variation_recommendations: List[str] = field(default_factory=list)
    breakout_strategies: List[str] = field(default_factory=list)


def evaluate_model(model: PredictionModel, x: float) -> float:
    """Value of a fitted curve at `x` days after the first observation."""
    return float(_curve(model.kind, model.coefficients)(np.asarray([x], dtype=float))[0])


def _curve(kind: str, coefficients: Sequence[float]) -> Callable[[np.ndarray], np.ndarray]:
    if kind == "linear":
        intercept, slope = coefficients
        return lambda x: intercept + slope * x
    if kind == "polynomial":
        c, b, a = coefficients
        return lambda x: c + b * x + a * x**2
    if kind == "exponential":
        a, b = coefficients
        return lambda x: a * np.exp(b * x)
    if kind == "logistic":
        upper, growth, midpoint = coefficients
        return lambda x: _logistic(x, upper, growth, midpoint)
    raise ValueError(f"Unknown model kind: {kind!r}")


def _logistic(x: np.ndarray, upper: float, growth: float, midpoint: float) -> np.ndarray:
    with np.errstate(over="ignore"):
        return upper / (1 + np.exp(-growth * (x - midpoint)))


def _forecasts(
    kind: str,
    coefficients: Sequence[float],
    r2: float,
    last_x: float,
    last_date: date | None,
) -> dict[str, Forecast]:
    curve = _curve(kind, coefficients)
    horizon_x = np.asarray([last_x + days for _, days in HORIZONS], dtype=float)
    with np.errstate(over="ignore"):
        values = curve(horizon_x)
    if not np.all(np.isfinite(values)):
        raise DegenerateFitError(f"{kind} forecast is not finite")
    predictions: dict[str, Forecast] = {}
    for (label, days), value, decay in zip(HORIZONS, values, DECAY_FACTORS[kind]):
        predictions[label] = Forecast(
            value=max(0.0, float(value)),
            confidence=clamp(r2 * decay),
            date=last_date + timedelta(days=days) if last_date else None,
        )
    return predictions


def _fit_linear(x: np.ndarray, y: np.ndarray) -> tuple[tuple[float, ...], bool]:
    fit = linear_regression(x, y)
    return (fit.intercept, fit.slope), False


def _fit_polynomial(x: np.ndarray, y: np.ndarray) -> tuple[tuple[float, ...], bool]:
    # Solve on x scaled into [0, 1] so the determinant check is unit free.
    span = float(x.max()) if x.size and x.max() > 0 else 1.0
    t = x / span
    powers = [float(np.sum(t**k)) for k in range(5)]
    matrix = np.array(
        [
            [powers[0], powers[1], powers[2]],
            [powers[1], powers[2], powers[3]],
            [powers[2], powers[3], powers[4]],
        ]
    )
    if abs(float(np.linalg.det(matrix))) < SINGULAR_DETERMINANT:
        raise DegenerateFitError("quadratic normal equations are singular")
    rhs = np.array([float(np.sum(y)), float(np.sum(t * y)), float(np.sum(t**2 * y))])
    c, b_scaled, a_scaled = np.linalg.solve(matrix, rhs)
    return (float(c), float(b_scaled) / span, float(a_scaled) / span**2), False


def _fit_exponential(x: np.ndarray, y: np.ndarray) -> tuple[tuple[float, ...], bool]:
    if np.any(y <= 0):
        raise DegenerateFitError("exponential fit requires positive values")
    fit = linear_regression(x, np.log(y))
    return (math.exp(fit.intercept), fit.slope), False


def _fit_logistic(x: np.ndarray, y: np.ndarray) -> tuple[tuple[float, ...], bool]:
    guess = (float(y.max()) * 1.1, LOGISTIC_GROWTH_GUESS, float(x[-1]) / 2)
    guess_r2 = r_squared(y, _logistic(x, *guess))
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", OptimizeWarning)
            params, _ = curve_fit(_logistic, x, y, p0=guess, maxfev=5000)
    except (RuntimeError, ValueError, FloatingPointError) as exc:
        LOGGER.debug("Logistic least squares did not converge: %s", exc)
        return guess, True
    refined = tuple(float(value) for value in params)
    if not all(math.isfinite(value) for value in refined) or refined[0] <= 0:
        return guess, True
    if r_squared(y, _logistic(x, *refined)) < guess_r2:
        return guess, True
    return refined, False


_FITTERS: dict[str, tuple[int, Callable[[np.ndarray, np.ndarray], tuple[tuple[float, ...], bool]]]] = {
    "linear": (3, _fit_linear),
    "polynomial": (3, _fit_polynomial),
    "exponential": (3, _fit_exponential),
    "logistic": (4, _fit_logistic),
}


def fit_models(
    xs: Sequence[float],
    ys: Sequence[float],
    *,
    last_date: date | None = None,
) -> list[PredictionModel]:
    """
    Fit every model family and return the successful fits, best R^2 first.

    `xs` are days since the first observation. Families whose minimum point
    count is not met, or whose fit is degenerate, are skipped.
    """
    x = np.asarray(list(xs), dtype=float)
    y = np.asarray(list(ys), dtype=float)
    if x.size != y.size:
        raise ValueError("xs and ys must have the same length")

    models: list[PredictionModel] = []
    for kind, (minimum, fitter) in _FITTERS.items():
        if y.size < minimum:
            continue
        try:
            coefficients, approximate = fitter(x, y)
            curve = _curve(kind, coefficients)
            with np.errstate(over="ignore"):
                fitted = curve(x)
            if kind == "exponential" and abs(coefficients[1]) * (float(x[-1]) + HORIZONS[-1][1]) > MAX_EXPONENT:
                raise DegenerateFitError("exponential growth rate overflows forecast horizon")
            r2 = r_squared(y, fitted)
            predictions = _forecasts(kind, coefficients, r2, float(x[-1]), last_date)
        except (DegenerateFitError, np.linalg.LinAlgError) as exc:
            LOGGER.debug("Skipping %s model: %s", kind, exc)
            continue
        models.append(
            PredictionModel(
                kind=kind,  # type: ignore[arg-type]
                name=MODEL_NAMES[kind],
                coefficients=tuple(float(value) for value in coefficients),
                r_squared=r2,
                predictions=predictions,
                approximate=approximate,
            )
        )
    return sorted(models, key=lambda model: model.r_squared, reverse=True)


def collapse_same_day(
    records: Sequence[PerformanceRecord],
    metric: Metric,
) -> list[tuple[date, float]]:
    """One value per calendar day: the best one-rep max, or the summed volume."""
    reducer = sum if metric == "volume" else max
    buckets: dict[date, list[float]] = {}
    for record in records:
        value = record.volume if metric == "volume" else record.one_rm
        buckets.setdefault(record.date, []).append(float(value or 0.0))
    return [(day, float(reducer(values))) for day, values in sorted(buckets.items())]


def predict_performance(
    records: Sequence[PerformanceRecord],
    metric: Metric = "one_rm",
) -> list[PredictionModel]:
    """Forecast an exercise's one-rep max or volume; needs four training days."""
    if metric not in ("one_rm", "volume"):
        raise ValueError(f"metric must be 'one_rm' or 'volume'; received {metric!r}")
    series = collapse_same_day(records, metric)
    if len(series) < MIN_PREDICTION_POINTS:
        LOGGER.debug("Not enough data to model %s (%s days)", metric, len(series))
        return []
    origin = series[0][0]
    xs = [float((day - origin).days) for day, _ in series]
    ys = [value for _, value in series]
    return fit_models(xs, ys, last_date=series[-1][0])


def default_injury_risk() -> InjuryRiskAssessment:
    return InjuryRiskAssessment(
        risk_level="low",
        risk_score=15.0,
        factors={
            "training_load": 10.0,
            "volume_increase": 5.0,
            "intensity_spike": 0.0,
            "recovery": 0.0,
            "consistency": 0.0,
        },
        recommendations=["Continue current training program", "Monitor for any unusual fatigue"],
        days_to_deload=21,
    )


def _rpes(records: Sequence[PerformanceRecord]) -> list[float]:
    return [float(record.rpe) for record in records if record.rpe is not None]


def _training_load_risk(recent: Sequence[PerformanceRecord]) -> float:
    volume_risk = min(100.0, sum(record.volume or 0.0 for record in recent) / 1000)
    rpes = _rpes(recent)
    intensity_risk = max(0.0, (mean(rpes) - 6) * 25) if rpes else 0.0
    return (volume_risk + intensity_risk) / 2


def _volume_increase_risk(recent: Sequence[PerformanceRecord], previous: Sequence[PerformanceRecord]) -> float:
    previous_volume = sum(record.volume or 0.0 for record in previous)
    if not previous or previous_volume <= 0:
        return 0.0
    recent_volume = sum(record.volume or 0.0 for record in recent)
    increase = (recent_volume - previous_volume) / previous_volume * 100
    return clamp((increase - 10) * 4, 0.0, 100.0)


def _intensity_spike_risk(recent: Sequence[PerformanceRecord]) -> float:
    rpes = _rpes(recent)
    if len(rpes) < 2:
        return 0.0
    return clamp((max(rpes) - mean(rpes)) * 25, 0.0, 100.0)


def _recovery_risk(recent: Sequence[PerformanceRecord]) -> float:
    longest = current = 0
    for record in recent:
        if record.rpe is not None and record.rpe >= 8:
            current += 1
            longest = max(longest, current)
        else:
            current = 0
    return min(100.0, longest * 25.0)


def _consistency_risk(recent: Sequence[PerformanceRecord]) -> float:
    volumes = [record.volume or 0.0 for record in recent]
    average = mean(volumes)
    if average <= 0:
        return 0.0
    return min(100.0, population_std(volumes) / average * 100)


def assess_injury_risk(records: Sequence[PerformanceRecord]) -> InjuryRiskAssessment:
    """
    Score injury risk (0-100) from the last two blocks of seven sessions.

    Weights: training load 0.3, volume increase 0.25, intensity spikes 0.2,
    recovery 0.15, consistency 0.1. Fewer than seven sessions give a low-risk default.
    """
    if len(records) < 7:
        return default_injury_risk()

    newest_first = sorted(records, key=lambda record: record.date, reverse=True)
    recent = newest_first[:7]
    previous = newest_first[7:14]
    factors = {
        "training_load": _training_load_risk(recent),
        "volume_increase": _volume_increase_risk(recent, previous),
        "intensity_spike": _intensity_spike_risk(recent),
        "recovery": _recovery_risk(list(reversed(recent))),
        "consistency": _consistency_risk(recent),
    }
    score = min(
        100.0,
        factors["training_load"] * 0.3
        + factors["volume_increase"] * 0.25
        + factors["intensity_spike"] * 0.2
        + factors["recovery"] * 0.15
        + factors["consistency"] * 0.1,
    )
    if score < 25:
        level = "low"
    elif score < 50:
        level = "moderate"
    elif score < 75:
        level = "high"
    else:
        level = "critical"

    recommendations: list[str] = []
    if level in ("high", "critical"):
        recommendations.extend(
            [
                "Consider immediate deload week",
                "Focus on mobility and recovery work",
                "Reduce training intensity by 20-30%",
            ]
        )
    if factors["volume_increase"] > 50:
        recommendations.append("Volume increased too rapidly - scale back to previous levels")
    if factors["intensity_spike"] > 50:
        recommendations.append("Avoid consecutive high-intensity sessions")
    if factors["recovery"] > 60:
        recommendations.append("Increase rest periods between sets and sessions")
        recommendations.append("Prioritize sleep and nutrition")

    return InjuryRiskAssessment(
        risk_level=level,  # type: ignore[arg-type]
        risk_score=score,
        factors=factors,
        recommendations=recommendations,
        days_to_deload=max(3, math.floor(28 * (1 - score / 100))),
    )


def _progress_rate(records: Sequence[PerformanceRecord]) -> float:
    ordered = sorted(records, key=lambda record: record.date)
    days = (ordered[-1].date - ordered[0].date).days
    if days <= 0:
        return 0.0
    return ((ordered[-1].one_rm or 0.0) - (ordered[0].one_rm or 0.0)) / days


def _progress_consistency(records: Sequence[PerformanceRecord]) -> float:
    values = [record.one_rm or 0.0 for record in sorted(records, key=lambda record: record.date)]
    if len(values) < 3:
        return 0.0
    diffs = [later - earlier for earlier, later in zip(values, values[1:])]
    average = mean(diffs)
    if average == 0:
        return 0.0
    return max(0.0, 1 - population_std(diffs) / abs(average))


def predict_goal_achievement(
    current_value: float,
    target_value: float,
    records: Sequence[PerformanceRecord],
    goal_type: GoalType = "strength",
) -> GoalPrediction:
    """Probability and timeframe (days) for reaching `target_value` at the observed daily rate."""
    required = (target_value - current_value) / GOAL_WINDOW_DAYS
    if len(records) < 3:
        return GoalPrediction(
            goal_type=goal_type,
            target_value=target_value,
            current_value=current_value,
            probability=0.5,
            timeframe_days=GoalTimeframe(optimistic=60, realistic=90, pessimistic=120),
            required_rate=required,
            current_rate=0.0,
            confidence=0.1,
        )

    rate = _progress_rate(records)
    if required <= 0:
        probability = 1.0
    elif rate > 0:
        probability = clamp(rate / required)
    else:
        probability = 0.0
    base = abs(target_value - current_value) / max(rate, 0.01)
    confidence = (min(1.0, len(records) / 10) + _progress_consistency(records)) / 2
    return GoalPrediction(
        goal_type=goal_type,
        target_value=target_value,
        current_value=current_value,
        probability=probability,
        timeframe_days=GoalTimeframe(
            optimistic=math.floor(base * 0.7),
            realistic=math.floor(base),
            pessimistic=math.floor(base * 1.5),
        ),
        required_rate=required,
        current_rate=rate,
        confidence=confidence,
    )


VARIATIONS: dict[str, tuple[str, ...]] = {
    "bench press": ("Close-grip bench press", "Incline bench press", "Dumbbell bench press"),
    "squat": ("Front squats", "Pause squats", "Box squats"),
    "deadlift": ("Deficit deadlifts", "Romanian deadlifts", "Sumo deadlifts"),
}


def predict_plateau(
    records: Sequence[PerformanceRecord],
    *,
    today: date | None = None,
) -> PlateauPrediction:
    """
    Likelihood that one exercise's one-rep max is stalling.

    A weak or negative trend and low recent variation both push the
    probability up. Fewer than six sessions give the 0.3 default.
    """
    exercise = records[0].exercise if records else "Unknown"
    if len(records) < 6:
        return PlateauPrediction(
            exercise=exercise,
            probability=0.3,
            estimated_date=None,
            trend_strength=0.5,
            variation_recommendations=["Vary rep ranges", "Include pause reps"],
            breakout_strategies=["Increase training frequency", "Add accessory work"],
        )

    ordered = sorted(records, key=lambda record: record.date)
    values = [record.one_rm or 0.0 for record in ordered]
    fit = linear_regression(range(len(values)), values)
    strength = clamp(fit.r_squared if fit.slope > 0 else 1 - fit.r_squared)

    recent = values[-5:]
    recent_mean = mean(recent)
    variation = population_std(recent) / recent_mean if recent_mean > 0 else 0.0
    probability = clamp((1 - strength) * 0.7 + (1 - min(1.0, variation * 10)) * 0.3)

    estimated: date | None = None
    if probability > 0.6:
        estimated = (today or date.today()) + timedelta(days=math.floor((1 - strength) * 30))

    variations = [
        "Try different rep ranges (3-5, 6-8, 12-15)",
        "Incorporate pause reps or tempo variations",
        "Add unilateral variations of the movement",
        "Focus on weak point training",
        *VARIATIONS.get(exercise.strip().lower(), ()),
    ][: 6 if probability > 0.7 else 4]

    strategies = [
        "Deload for 1 week, then return with 10% volume increase",
        "Switch to higher frequency training (more sessions per week)",
        "Focus on technical improvements and form refinement",
        "Add accessory exercises targeting weak points",
    ]
    if strength < 0.3:
        strategies.insert(0, "Complete program change recommended")
        strategies.append("Consider working with a qualified trainer")

    return PlateauPrediction(
        exercise=exercise,
        probability=probability,
        estimated_date=estimated,
        trend_strength=strength,
        variation_recommendations=variations,
        breakout_strategies=strategies,
    )
