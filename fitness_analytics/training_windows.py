"""Time-of-day training recommendations from circadian energy patterns.

The 24-hour optimality curve comes from fixed score bands per chronotype
(peak windows, meal-time and extreme-hour penalties). Weekday variation is
layered on top from historical energy and soreness by weekday.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Literal, Optional, Sequence

from .metrics import weekday_profile
from .models import DailyMetrics, EnergyReading, Serializable
from .stats import clamp, linear_regression, mean, standard_deviation

LOGGER = logging.getLogger(__name__)

Chronotype = Literal["morning", "evening", "neutral"]
RecoveryPattern = Literal["fast", "moderate", "slow"]
Timing = Literal[
    "prioritize_sleep",
    "light_activity_only",
    "active_recovery",
    "high_intensity_ok",
    "moderate_intensity",
]

WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
CHRONOTYPE_BIAS = 2.0
WORKOUT_HOUR_RATIO = 1.5
MIN_WINDOW_SEPARATION = 4
WEEKDAY_ADJUSTMENT_CAP = 10.0
WEEKLY_WINDOW_SCORE = 70.0

DEFAULT_MORNING_ENERGY = 7.0
DEFAULT_AFTERNOON_ENERGY = 7.0
DEFAULT_EVENING_ENERGY = 6.0
DEFAULT_BEDTIME = 22
DEFAULT_WAKEUP = 6
DEFAULT_SLEEP_HOURS = 8.0
DEFAULT_SLEEP_CONSISTENCY = 0.8
DEFAULT_ENERGY_VARIABILITY = 1.5

AVOID_REASONS = (
    "Low performance window for your chronotype",
    "Risk of poor workout quality",
    "Consider active recovery instead",
)


@dataclass(frozen=True)
class CircadianProfile(Serializable):
    chronotype: Chronotype
    morning_energy: float
    afternoon_energy: float
    evening_energy: float
    energy_variability: float
    average_bedtime: int
    average_wakeup: int
    sleep_duration: float
    sleep_consistency: float
    days_observed: int = 0


@dataclass(frozen=True)
class TrainingWindow(Serializable):
    hour: int
    weekday: Optional[int]
    score: float
    confidence: float
    duration_minutes: int
    reasoning: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class PersonalizedFactors(Serializable):
    chronotype: Chronotype
    bedtime: int
    wakeup: int
    peak_hour: int
    recovery_pattern: RecoveryPattern


@dataclass(frozen=True)
class OptimalTrainingWindows(Serializable):
    primary: TrainingWindow
    secondary: Optional[TrainingWindow]
    avoid: List[TrainingWindow]
    weekly_pattern: Dict[str, List[TrainingWindow]]
    weekly_scores: Dict[str, List[float]]
    hourly_scores: List[float]
    personalized: PersonalizedFactors


@dataclass(frozen=True)
class IntensityGuidance(Serializable):
    timing: Timing
    readiness: float
    readiness_trend: float
    sleep_debt: float
    window_score: float


def infer_chronotype(morning_energy: float, evening_energy: float) -> Chronotype:
    bias = morning_energy - evening_energy
    if bias >= CHRONOTYPE_BIAS:
        return "morning"
    if -bias >= CHRONOTYPE_BIAS:
        return "evening"
    return "neutral"


def _period(hour: int) -> str | None:
    if 5 <= hour <= 11:
        return "morning"
    if 12 <= hour <= 16:
        return "afternoon"
    if 17 <= hour <= 22:
        return "evening"
    return None


def _chronotype_from_workouts(workout_times: Sequence[datetime]) -> Chronotype:
    morning = sum(1 for moment in workout_times if 6 <= moment.hour <= 10)
    evening = sum(1 for moment in workout_times if 17 <= moment.hour <= 21)
    if morning > evening * WORKOUT_HOUR_RATIO:
        return "morning"
    if evening > morning * WORKOUT_HOUR_RATIO:
        return "evening"
    return "neutral"


def _sleep_consistency(hours: Sequence[float]) -> float:
    if len(hours) < 2:
        return DEFAULT_SLEEP_CONSISTENCY
    average = mean(hours)
    if average <= 0:
        return DEFAULT_SLEEP_CONSISTENCY
    return clamp(1 - standard_deviation(hours) / average)


def build_circadian_profile(
    daily_metrics: Sequence[DailyMetrics],
    energy_readings: Sequence[EnergyReading] = (),
    workout_times: Sequence[datetime] = (),
) -> CircadianProfile:
    """
    Summarise when in the day a user tends to have energy.

    Timestamped energy readings are averaged per period (morning 5-11h,
    afternoon 12-16h, evening 17-22h) and drive the chronotype directly. Without
    readings, the chronotype comes from when workouts were started and the
    period energies are scaled from the average daily energy rating.
    """
    sleep_hours = [item.sleep for item in daily_metrics if item.sleep > 0]
    energies = [item.energy for item in daily_metrics]

    by_period: dict[str, list[float]] = {"morning": [], "afternoon": [], "evening": []}
    for reading in energy_readings:
        period = _period(reading.timestamp.hour)
        if period is not None:
            by_period[period].append(reading.energy)

    if any(by_period.values()):
        morning = mean(by_period["morning"]) if by_period["morning"] else DEFAULT_MORNING_ENERGY
        afternoon = mean(by_period["afternoon"]) if by_period["afternoon"] else DEFAULT_AFTERNOON_ENERGY
        evening = mean(by_period["evening"]) if by_period["evening"] else DEFAULT_EVENING_ENERGY
        chronotype = infer_chronotype(morning, evening)
    elif energies:
        chronotype = _chronotype_from_workouts(workout_times)
        base = mean(energies)
        morning = base * (1.2 if chronotype == "morning" else 0.8)
        afternoon = base
        evening = base * (1.2 if chronotype == "evening" else 0.8)
    else:
        LOGGER.debug("No energy data; using the default circadian profile")
        chronotype = _chronotype_from_workouts(workout_times) if workout_times else "neutral"
        morning, afternoon, evening = DEFAULT_MORNING_ENERGY, DEFAULT_AFTERNOON_ENERGY, DEFAULT_EVENING_ENERGY

    return CircadianProfile(
        chronotype=chronotype,
        morning_energy=morning,
        afternoon_energy=afternoon,
        evening_energy=evening,
        energy_variability=standard_deviation(energies) if len(energies) >= 2 else DEFAULT_ENERGY_VARIABILITY,
        average_bedtime=DEFAULT_BEDTIME,
        average_wakeup=DEFAULT_WAKEUP,
        sleep_duration=mean(sleep_hours) if sleep_hours else DEFAULT_SLEEP_HOURS,
        sleep_consistency=_sleep_consistency(sleep_hours),
        days_observed=len(daily_metrics),
    )


def hourly_optimality(
    chronotype: Chronotype,
    morning_energy: float,
    afternoon_energy: float,
    evening_energy: float,
) -> list[float]:
    """Score every hour of the day 0-100 for training suitability."""
    scores = [50.0] * 24
    if chronotype == "morning":
        for hour in range(6, 11):
            scores[hour] = 80 + (morning_energy - 5) * 2
        for hour in range(10, 13):
            scores[hour] = 70 + (morning_energy - 5) * 1.5
        for hour in range(20, 24):
            scores[hour] = 30 - (evening_energy - 5)
    elif chronotype == "evening":
        for hour in range(5, 10):
            scores[hour] = 30 - (morning_energy - 5)
        for hour in range(14, 19):
            scores[hour] = 70 + (afternoon_energy - 5) * 1.5
        for hour in range(18, 22):
            scores[hour] = 80 + (evening_energy - 5) * 2
    else:
        for hour in range(9, 12):
            scores[hour] = 75 + (morning_energy - 5)
        for hour in range(17, 20):
            scores[hour] = 75 + (evening_energy - 5)

    # post-meal dips
    scores[8] = max(scores[8] - 10, 20)
    scores[13] = max(scores[13] - 15, 20)
    scores[20] = max(scores[20] - 10, 20)

    for hour in range(0, 6):
        scores[hour] = max(scores[hour] - 30, 10)
    for hour in (22, 23):
        scores[hour] = max(scores[hour] - 20, 20)

    return [clamp(score, 0.0, 100.0) for score in scores]


def local_maxima(scores: Sequence[float]) -> list[int]:
    """Hours scoring at least as high as both neighbours, best first (earliest on ties)."""
    peaks = []
    for hour, score in enumerate(scores):
        left = scores[hour - 1] if hour > 0 else float("-inf")
        right = scores[hour + 1] if hour < len(scores) - 1 else float("-inf")
        if score >= left and score >= right:
            peaks.append(hour)
    return sorted(peaks, key=lambda hour: (-scores[hour], hour))


def optimal_duration(score: float) -> int:
    if score >= 85:
        return 90
    if score >= 75:
        return 75
    if score >= 65:
        return 60
    return 45


def window_reasoning(hour: int, chronotype: Chronotype, score: float) -> list[str]:
    reasoning = []
    if score >= 85:
        reasoning.append("Peak performance window for your chronotype")
    if 6 <= hour <= 10 and chronotype == "morning":
        reasoning.append("Optimal morning window for early chronotypes")
    if 17 <= hour <= 20 and chronotype == "evening":
        reasoning.append("Optimal evening window for late chronotypes")
    if 9 <= hour <= 11:
        reasoning.append("Good cortisol and body temperature timing")
    if 17 <= hour <= 19:
        reasoning.append("Peak body temperature and coordination")
    if not reasoning:
        reasoning.append(f"Aligned with your {chronotype} energy pattern")
    return reasoning


def recovery_pattern(daily_metrics: Sequence[DailyMetrics]) -> RecoveryPattern:
    if len(daily_metrics) < 7:
        return "moderate"
    soreness = mean([item.soreness for item in daily_metrics])
    sleep = mean([item.sleep for item in daily_metrics])
    if soreness <= 3 and sleep >= 7.5:
        return "fast"
    if soreness >= 6 or sleep <= 6:
        return "slow"
    return "moderate"


def weekday_adjustments(daily_metrics: Sequence[DailyMetrics]) -> list[float]:
    """
    Score offset per weekday (Monday first) from historical check-ins.

    Days with above-average energy and below-average soreness score higher;
    each offset is capped at +/-10 points. Weekdays without enough history
    get no offset.
    """
    adjustments = [0.0] * 7
    profile = weekday_profile(daily_metrics)
    if profile.empty:
        return adjustments
    overall_energy = mean([item.energy for item in daily_metrics])
    overall_soreness = mean([item.soreness for item in daily_metrics])
    for row in profile.itertuples(index=False):
        delta = (row.energy - overall_energy) - (row.soreness - overall_soreness)
        adjustments[int(row.weekday)] = clamp(delta * 5, -WEEKDAY_ADJUSTMENT_CAP, WEEKDAY_ADJUSTMENT_CAP)
    return adjustments


def _profile_confidence(profile: CircadianProfile, has_readings: bool) -> float:
    history = min(1.0, profile.days_observed / 14)
    base = 0.5 + 0.3 * history + (0.2 if has_readings else 0.0)
    return clamp(base * profile.sleep_consistency)


def predict_training_windows(
    daily_metrics: Sequence[DailyMetrics],
    energy_readings: Sequence[EnergyReading] = (),
    workout_times: Sequence[datetime] = (),
) -> OptimalTrainingWindows:
    """
    Recommend primary/secondary training hours, a weekly pattern and times to avoid.

    Primary and secondary windows are the two best local maxima of the hourly
    curve that are at least four hours apart. With no history at all the
    default neutral profile still yields a usable recommendation.
    """
    ordered = sorted(daily_metrics, key=lambda item: item.date)
    profile = build_circadian_profile(ordered, energy_readings, workout_times)
    scores = hourly_optimality(
        profile.chronotype, profile.morning_energy, profile.afternoon_energy, profile.evening_energy
    )
    confidence = _profile_confidence(profile, bool(energy_readings))
    adjustments = weekday_adjustments(ordered)

    weekly_scores: dict[str, list[float]] = {}
    weekly_pattern: dict[str, list[TrainingWindow]] = {}
    for weekday, name in enumerate(WEEKDAY_NAMES):
        day_scores = [clamp(score + adjustments[weekday], 0.0, 100.0) for score in scores]
        weekly_scores[name] = day_scores
        windows = [
            TrainingWindow(
                hour=hour,
                weekday=weekday,
                score=day_scores[hour],
                confidence=confidence,
                duration_minutes=optimal_duration(day_scores[hour]),
                reasoning=window_reasoning(hour, profile.chronotype, day_scores[hour]),
            )
            for hour in local_maxima(day_scores)
            if day_scores[hour] >= WEEKLY_WINDOW_SCORE
        ]
        weekly_pattern[name] = windows[:3]

    peaks = local_maxima(scores)
    primary_hour = peaks[0]
    # Tuesday unless history says another weekday is stronger
    best_weekday = 1
    for weekday, adjustment in enumerate(adjustments):
        if adjustment > adjustments[best_weekday]:
            best_weekday = weekday

    primary = TrainingWindow(
        hour=primary_hour,
        weekday=best_weekday,
        score=scores[primary_hour],
        confidence=confidence,
        duration_minutes=optimal_duration(scores[primary_hour]),
        reasoning=[
            f"Optimal for {profile.chronotype} chronotype",
            *window_reasoning(primary_hour, profile.chronotype, scores[primary_hour]),
        ],
    )

    secondary = None
    for hour in peaks[1:]:
        if abs(hour - primary_hour) >= MIN_WINDOW_SEPARATION:
            secondary = TrainingWindow(
                hour=hour,
                weekday=(best_weekday + 2) % 7,
                score=scores[hour],
                confidence=confidence * 0.9,
                duration_minutes=optimal_duration(scores[hour]),
                reasoning=["Alternative training window", "Good backup option for scheduling flexibility"],
            )
            break

    awake = range(profile.average_wakeup, profile.average_bedtime)
    avoid = [
        TrainingWindow(
            hour=hour,
            weekday=None,
            score=scores[hour],
            confidence=confidence,
            duration_minutes=0,
            reasoning=list(AVOID_REASONS),
        )
        for hour in awake
        if scores[hour] <= 30
    ]

    return OptimalTrainingWindows(
        primary=primary,
        secondary=secondary,
        avoid=avoid,
        weekly_pattern=weekly_pattern,
        weekly_scores=weekly_scores,
        hourly_scores=scores,
        personalized=PersonalizedFactors(
            chronotype=profile.chronotype,
            bedtime=profile.average_bedtime,
            wakeup=profile.average_wakeup,
            peak_hour=primary_hour,
            recovery_pattern=recovery_pattern(ordered),
        ),
    )


def quick_readiness(metrics: DailyMetrics) -> float:
    """Single check-in readiness on a roughly 0-100 scale (no baseline, no weights config)."""
    return (
        metrics.sleep * 10
        + metrics.energy * 10
        + (10 - metrics.soreness) * 8
        + (10 - metrics.stress) * 7
    ) / 3.5


def training_intensity_guidance(daily_metrics: Sequence[DailyMetrics]) -> IntensityGuidance:
    """Pick an intensity label for today from the latest check-in and the last week's trend."""
    if not daily_metrics:
        return IntensityGuidance("moderate_intensity", 70.0, 0.0, 0.0, 100.0)

    ordered = sorted(daily_metrics, key=lambda item: item.date)
    latest = ordered[-1]
    readiness = quick_readiness(latest)
    recent = [quick_readiness(item) for item in ordered[-7:]]
    trend = 0.0
    if len(recent) >= 3:
        fit = linear_regression(list(range(len(recent))), recent)
        trend = fit.slope * fit.r_squared
    sleep_debt = max(0.0, DEFAULT_SLEEP_HOURS - latest.sleep)

    multiplier = readiness / 70
    if trend > 0.1:
        multiplier *= 1.1
    elif trend < -0.1:
        multiplier *= 0.9
    multiplier = clamp(multiplier, 0.5, 1.5)

    if latest.stress <= 4:
        stress_factor = 1.0
    elif latest.stress <= 6:
        stress_factor = 0.9
    elif latest.stress <= 8:
        stress_factor = 0.8
    else:
        stress_factor = 0.7

    if sleep_debt <= 0:
        sleep_factor = 1.0
    elif sleep_debt <= 1:
        sleep_factor = 0.95
    elif sleep_debt <= 2:
        sleep_factor = 0.85
    else:
        sleep_factor = 0.75

    if sleep_debt > 2:
        timing: Timing = "prioritize_sleep"
    elif latest.stress > 7:
        timing = "light_activity_only"
    elif readiness < 50:
        timing = "active_recovery"
    elif readiness > 80:
        timing = "high_intensity_ok"
    else:
        timing = "moderate_intensity"

    return IntensityGuidance(
        timing=timing,
        readiness=readiness,
        readiness_trend=trend,
        sleep_debt=sleep_debt,
        window_score=multiplier * stress_factor * sleep_factor * 100,
    )
