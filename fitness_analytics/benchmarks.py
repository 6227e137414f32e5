"""Population benchmarks and competitive ranking for strength lifts.

Percentile tables are static reference data (one-rep max in lbs for a
25-35 year old intermediate strength-training cohort). Ranks between
tabulated breakpoints are linearly interpolated.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Literal, Optional, Sequence

from .analysis import group_by_exercise, latest_value, normalise_exercise, personal_best, value_near
from .models import BenchmarkData, Cohort, PerformanceRecord, Serializable
from .stats import clamp, percentile_interpolate, value_at_percentile

LOGGER = logging.getLogger(__name__)

Pace = Literal["faster", "average", "slower"]
RankingTrend = Literal["improving", "stable", "declining"]
Difficulty = Literal["easy", "moderate", "hard"]
ProfileCategory = Literal["powerlifter", "bodybuilder", "athlete", "generalist"]

COHORT_AVERAGE_RATE = 2.5
DAYS_PER_MONTH = 30
MAJOR_LIFTS = frozenset({"squat", "bench press", "deadlift", "overhead press"})
OPPORTUNITY_CEILING = 85.0


def _cohort(sample_size: int) -> Cohort:
    return Cohort(
        age_range="25-35",
        experience_level="intermediate",
        bodyweight_range="170-190",
        training_style="strength",
        sample_size=sample_size,
    )


BENCHMARKS: dict[str, BenchmarkData] = {
    "Bench Press": BenchmarkData(
        exercise="Bench Press",
        metric="one_rm",
        percentiles={10: 95, 25: 135, 50: 185, 75: 225, 90: 275, 95: 315, 99: 405},
        cohort=_cohort(1247),
    ),
    "Squat": BenchmarkData(
        exercise="Squat",
        metric="one_rm",
        percentiles={10: 135, 25: 185, 50: 245, 75: 315, 90: 385, 95: 435, 99: 550},
        cohort=_cohort(1180),
    ),
    "Deadlift": BenchmarkData(
        exercise="Deadlift",
        metric="one_rm",
        percentiles={10: 185, 25: 245, 50: 315, 75: 405, 90: 485, 95: 545, 99: 650},
        cohort=_cohort(1156),
    ),
    "Overhead Press": BenchmarkData(
        exercise="Overhead Press",
        metric="one_rm",
        percentiles={10: 65, 25: 95, 50: 125, 75: 155, 90: 185, 95: 205, 99: 245},
        cohort=_cohort(892),
    ),
}

ALIASES: dict[str, str] = {
    "bench press": "Bench Press",
    "bench": "Bench Press",
    "barbell bench press": "Bench Press",
    "squat": "Squat",
    "back squat": "Squat",
    "barbell squat": "Squat",
    "deadlift": "Deadlift",
    "conventional deadlift": "Deadlift",
    "overhead press": "Overhead Press",
    "ohp": "Overhead Press",
    "military press": "Overhead Press",
    "shoulder press": "Overhead Press",
}

EXERCISE_STRATEGIES: dict[str, tuple[str, ...]] = {
    "Bench Press": (
        "Strengthen triceps and shoulders",
        "Practice competition-style bench technique",
        "Add pause bench and close-grip variations",
    ),
    "Squat": (
        "Improve ankle and hip mobility",
        "Strengthen core and glutes",
        "Practice depth and bracing techniques",
    ),
    "Deadlift": (
        "Strengthen posterior chain",
        "Work on hip hinge pattern",
        "Add deficit and Romanian deadlift variations",
    ),
}


@dataclass(frozen=True)
class CohortComparison(Serializable):
    above_average: bool
    percentile_rank: float
    cohort: Cohort


@dataclass(frozen=True)
class HistoricalRanking(Serializable):
    six_months_ago: Optional[float]
    one_year_ago: Optional[float]
    trend: RankingTrend


@dataclass(frozen=True)
class ProgressVelocity(Serializable):
    current_rate: float
    cohort_average_rate: float
    relative_pace: Pace


@dataclass(frozen=True)
class PersonalBenchmark(Serializable):
    exercise: str
    current_value: float
    personal_best: float
    percentile_rank: float
    cohort_comparison: CohortComparison
    historical_ranking: HistoricalRanking
    progress_velocity: ProgressVelocity


@dataclass(frozen=True)
class OverallRank(Serializable):
    percentile: float
    description: str
    strongest_lifts: List[str]
    weakest_lifts: List[str]


@dataclass(frozen=True)
class ImprovementOpportunity(Serializable):
    exercise: str
    current_percentile: float
    target_percentile: float
    required_delta: float
    estimated_months: Optional[float]
    difficulty: Difficulty
    strategies: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class StrengthProfile(Serializable):
    category: ProfileCategory
    confidence: float
    characteristics: List[str]


@dataclass(frozen=True)
class CompetitiveAnalysis(Serializable):
    overall_rank: OverallRank
    exercise_rankings: List[PersonalBenchmark]
    improvement_opportunities: List[ImprovementOpportunity]
    strength_profile: StrengthProfile


@dataclass(frozen=True)
class PersonalHistoryComparison(Serializable):
    exercise: str
    current: float
    personal_best: float
    percentage_of_best: float
    days_since_best: int
    six_month_change: float
    one_year_change: float
    trend: RankingTrend


def get_benchmark(exercise: str) -> BenchmarkData | None:
    """Look up the reference table for an exercise by name or common alias."""
    canonical = ALIASES.get(normalise_exercise(exercise))
    return BENCHMARKS.get(canonical) if canonical else None


def calculate_percentile_rank(value: float, benchmark: BenchmarkData) -> float:
    return clamp(percentile_interpolate(value, benchmark.percentiles), 0.0, 100.0)


def progress_velocity(records: Sequence[PerformanceRecord]) -> ProgressVelocity:
    """Change in one-rep max per 30-day month between the first and last record."""
    if len(records) < 2:
        return ProgressVelocity(0.0, COHORT_AVERAGE_RATE, "average")
    ordered = sorted(records, key=lambda record: record.date)
    months = (ordered[-1].date - ordered[0].date).days / DAYS_PER_MONTH
    rate = ((ordered[-1].one_rm or 0.0) - (ordered[0].one_rm or 0.0)) / months if months > 0 else 0.0
    if rate > COHORT_AVERAGE_RATE * 1.2:
        pace: Pace = "faster"
    elif rate < COHORT_AVERAGE_RATE * 0.8:
        pace = "slower"
    else:
        pace = "average"
    return ProgressVelocity(rate, COHORT_AVERAGE_RATE, pace)


def _ranking_trend(current: float, previous: float | None) -> RankingTrend:
    if previous is None:
        return "stable"
    if current - previous > 2:
        return "improving"
    if current - previous < -2:
        return "declining"
    return "stable"


def personal_benchmark(
    exercise: str,
    records: Sequence[PerformanceRecord],
    *,
    today: date,
) -> PersonalBenchmark | None:
    """Rank an exercise history against its cohort; None without a reference table."""
    benchmark = get_benchmark(exercise)
    latest = latest_value(records)
    best = personal_best(records)
    if benchmark is None or latest is None or best is None:
        return None

    current = latest[1]
    rank = calculate_percentile_rank(current, benchmark)
    six_value = value_near(records, today - timedelta(days=182), tolerance_days=30)
    year_value = value_near(records, today - timedelta(days=365), tolerance_days=60)
    six_rank = calculate_percentile_rank(six_value, benchmark) if six_value is not None else None
    year_rank = calculate_percentile_rank(year_value, benchmark) if year_value is not None else None

    return PersonalBenchmark(
        exercise=benchmark.exercise,
        current_value=current,
        personal_best=best[1],
        percentile_rank=rank,
        cohort_comparison=CohortComparison(rank > 50, rank, benchmark.cohort),
        historical_ranking=HistoricalRanking(
            six_months_ago=six_rank,
            one_year_ago=year_rank,
            trend=_ranking_trend(rank, six_rank if six_rank is not None else year_rank),
        ),
        progress_velocity=progress_velocity(records),
    )


def overall_rank(rankings: Sequence[PersonalBenchmark]) -> OverallRank:
    """Weighted percentile across lifts; the four major lifts count double."""
    if not rankings:
        return OverallRank(50.0, "Average", [], [])
    weighted = 0.0
    total = 0.0
    for ranking in rankings:
        weight = 2.0 if normalise_exercise(ranking.exercise) in MAJOR_LIFTS else 1.0
        weighted += ranking.percentile_rank * weight
        total += weight
    percentile = weighted / total

    if percentile >= 90:
        description = "Elite"
    elif percentile >= 75:
        description = "Advanced"
    elif percentile >= 50:
        description = "Intermediate"
    elif percentile >= 25:
        description = "Novice"
    else:
        description = "Beginner"

    ordered = sorted(rankings, key=lambda ranking: ranking.percentile_rank, reverse=True)
    return OverallRank(
        percentile=percentile,
        description=description,
        strongest_lifts=[ranking.exercise for ranking in ordered[:3]],
        weakest_lifts=[ranking.exercise for ranking in ordered[-2:]],
    )


def target_percentile(current: float) -> float:
    if current < 25:
        return 50.0
    if current < 50:
        return 75.0
    if current < 75:
        return 90.0
    return 95.0


def _difficulty(gap: float) -> Difficulty:
    if gap <= 25:
        return "easy"
    if gap <= 40:
        return "moderate"
    return "hard"


def _strategies(exercise: str, gap: float) -> list[str]:
    strategies = [
        "Increase training frequency for this exercise",
        "Focus on progressive overload with smaller increments",
        "Add accessory exercises targeting weak points",
        "Improve technique through form work and coaching",
        *EXERCISE_STRATEGIES.get(exercise, ()),
    ]
    return strategies[: 6 if gap > 30 else 4]


def improvement_opportunity(ranking: PersonalBenchmark) -> ImprovementOpportunity:
    """
    Next realistic percentile band for a lift and what reaching it takes.

    The estimated timeframe (months) divides the required gain by the observed
    monthly progress rate and is None while the lift is not progressing.
    """
    benchmark = get_benchmark(ranking.exercise)
    current = ranking.percentile_rank
    target = target_percentile(current)
    if benchmark is None:
        delta = 0.0
    else:
        delta = max(0.0, value_at_percentile(target, benchmark.percentiles) - ranking.current_value)
    rate = ranking.progress_velocity.current_rate
    if delta == 0:
        months: float | None = 0.0
    elif rate > 0:
        months = delta / rate
    else:
        months = None
    gap = target - current
    return ImprovementOpportunity(
        exercise=ranking.exercise,
        current_percentile=current,
        target_percentile=target,
        required_delta=delta,
        estimated_months=months,
        difficulty=_difficulty(gap),
        strategies=_strategies(ranking.exercise, gap),
    )


def improvement_opportunities(rankings: Sequence[PersonalBenchmark], *, limit: int = 3) -> list[ImprovementOpportunity]:
    candidates = sorted(
        (ranking for ranking in rankings if ranking.percentile_rank < OPPORTUNITY_CEILING),
        key=lambda ranking: ranking.percentile_rank,
    )
    return [improvement_opportunity(ranking) for ranking in candidates[:limit]]


def strength_profile(rankings: Sequence[PersonalBenchmark]) -> StrengthProfile:
    """Classify the lifter from bench, squat and deadlift percentiles (missing lifts count as 50)."""
    by_name = {normalise_exercise(ranking.exercise): ranking.percentile_rank for ranking in rankings}
    bench = by_name.get("bench press", 50.0)
    squat = by_name.get("squat", 50.0)
    deadlift = by_name.get("deadlift", 50.0)
    average = (bench + squat + deadlift) / 3
    spread = math.sqrt(((bench - average) ** 2 + (squat - average) ** 2 + (deadlift - average) ** 2) / 3)

    if average > 75 and spread < 15:
        return StrengthProfile(
            "powerlifter", 0.8, ["Strong in all main lifts", "Consistent strength across movements"]
        )
    if bench > squat + 20 and bench > deadlift + 15:
        return StrengthProfile("bodybuilder", 0.7, ["Upper body dominant", "Strong bench press focus"])
    if spread > 25:
        return StrengthProfile("athlete", 0.6, ["Specialized strengths", "Variable across movements"])
    return StrengthProfile("generalist", 0.5, ["Balanced development", "Well-rounded strength"])


def generate_competitive_analysis(
    records: Sequence[PerformanceRecord],
    *,
    today: date | None = None,
) -> CompetitiveAnalysis:
    """Rank every benchmarked exercise in a training log and summarise the lifter."""
    anchor = today or date.today()
    rankings: list[PersonalBenchmark] = []
    for exercise, items in group_by_exercise(records).items():
        ranking = personal_benchmark(exercise, items, today=anchor)
        if ranking is None:
            LOGGER.debug("No benchmark table for %s", exercise)
            continue
        rankings.append(ranking)
    return CompetitiveAnalysis(
        overall_rank=overall_rank(rankings),
        exercise_rankings=rankings,
        improvement_opportunities=improvement_opportunities(rankings),
        strength_profile=strength_profile(rankings),
    )


def compare_against_personal_history(
    records: Sequence[PerformanceRecord],
    *,
    today: date | None = None,
) -> list[PersonalHistoryComparison]:
    """Current lift versus personal best and versus six and twelve months ago."""
    anchor = today or date.today()
    results: list[PersonalHistoryComparison] = []
    for exercise, items in group_by_exercise(records).items():
        latest = latest_value(items)
        best = personal_best(items)
        if latest is None or best is None:
            continue
        current = latest[1]
        best_date, best_value = best
        six_value = value_near(items, anchor - timedelta(days=182), tolerance_days=30)
        year_value = value_near(items, anchor - timedelta(days=365), tolerance_days=60)
        six_change = (current - six_value) / six_value * 100 if six_value else 0.0
        year_change = (current - year_value) / year_value * 100 if year_value else 0.0
        if six_change > 2:
            trend: RankingTrend = "improving"
        elif six_change < -2:
            trend = "declining"
        else:
            trend = "stable"
        results.append(
            PersonalHistoryComparison(
                exercise=exercise,
                current=current,
                personal_best=best_value,
                percentage_of_best=current / best_value * 100 if best_value > 0 else 0.0,
                days_since_best=max(0, (anchor - best_date).days),
                six_month_change=six_change,
                one_year_change=year_change,
                trend=trend,
            )
        )
    return results


def strength_standards() -> Dict[str, Dict[str, float]]:
    """Beginner/intermediate/advanced/elite thresholds read from the 25th/50th/75th/95th percentiles."""
    return {
        name: {
            "beginner": float(data.percentiles[25]),
            "intermediate": float(data.percentiles[50]),
            "advanced": float(data.percentiles[75]),
            "elite": float(data.percentiles[95]),
        }
        for name, data in BENCHMARKS.items()
    }
