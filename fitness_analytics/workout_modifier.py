"""Rule engine adjusting a planned workout to today's readiness."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Literal, Optional, Sequence

from .models import PlannedWorkout, ReadinessAnalysis, Serializable, WorkoutModification

LOGGER = logging.getLogger(__name__)

Urgency = Literal["low", "medium", "high"]

DELOAD_BELOW = 40
REDUCE_BELOW = 60
OVERLOAD_ABOVE = 85
FACTOR_ALERT_BELOW = 50
EXTENDED_REST_SECONDS = (180.0, 300.0)
EXTRA_MOBILITY_MINUTES = 10.0

_PLAN_FIELDS = frozenset(item.name for item in fields(PlannedWorkout))


@dataclass(frozen=True)
class RestRecommendation(Serializable):
    min_seconds: float
    max_seconds: float
    reasoning: str


@dataclass(frozen=True)
class CoachingCue(Serializable):
    kind: str
    message: str
    urgency: Urgency
    timing: str


@dataclass(frozen=True)
class RealTimeCoaching(Serializable):
    phase: str
    exercise: str
    set_number: int
    cues: List[CoachingCue] = field(default_factory=list)
    rpe: Optional[float] = None
    fatigue: Optional[float] = None


def _deload(planned: PlannedWorkout) -> WorkoutModification:
    return WorkoutModification(
        kind="deload",
        severity="major",
        reason="Critical readiness detected",
        original={"sets": planned.sets, "reps": planned.reps, "intensity_pct": planned.intensity_pct},
        suggested={
            "sets": max(1, math.floor(planned.sets * 0.5)),
            "reps": min(planned.reps, max(5, math.floor(planned.reps * 0.7))),
            "intensity_pct": min(planned.intensity_pct, 55.0),
            "intensity_range": (50.0, 60.0),
            "focus": "movement_quality",
        },
        confidence=0.9,
        explanation="Your body needs recovery. Consider a light movement session instead.",
    )


def suggest_workout_modifications(
    planned: PlannedWorkout,
    readiness: ReadinessAnalysis,
) -> list[WorkoutModification]:
    """
    Map a readiness analysis onto concrete changes to one planned exercise.

    Score bands decide deload (<40), reduced intensity and volume (<60) or
    an overload opportunity (>85 while above baseline). Poor sleep and high
    soreness add rest and warm-up changes on top of the band rule.
    """
    score = readiness.overall_score
    modifications: list[WorkoutModification] = []

    if score < DELOAD_BELOW:
        modifications.append(_deload(planned))
    elif score < REDUCE_BELOW:
        modifications.append(
            WorkoutModification(
                kind="intensity",
                severity="moderate",
                reason="Below baseline readiness",
                original={"intensity_pct": planned.intensity_pct},
                suggested={
                    "intensity_pct": round(planned.intensity_pct * 0.8, 1),
                    "intensity_range": (round(planned.intensity_pct * 0.75, 1), round(planned.intensity_pct * 0.85, 1)),
                },
                confidence=0.8,
                explanation="Reduce intensity by 15-25% to match current readiness level.",
            )
        )
        modifications.append(
            WorkoutModification(
                kind="volume",
                severity="moderate",
                reason="Elevated fatigue indicators",
                original={"sets": planned.sets},
                suggested={"sets": max(1, math.floor(planned.sets * 0.8))},
                confidence=0.7,
                explanation="Reduce training volume to accommodate lower energy levels.",
            )
        )

    sleep = readiness.factor("sleep")
    if sleep is not None and sleep.score < FACTOR_ALERT_BELOW:
        low, high = EXTENDED_REST_SECONDS
        modifications.append(
            WorkoutModification(
                kind="rest",
                severity="moderate",
                reason="Poor sleep quality",
                original={"rest_seconds": planned.rest_seconds},
                suggested={"rest_seconds": max(planned.rest_seconds, (low + high) / 2), "rest_range": (low, high)},
                confidence=0.8,
                explanation="Extend rest periods due to insufficient recovery sleep.",
            )
        )

    soreness = readiness.factor("soreness")
    if soreness is not None and soreness.score < FACTOR_ALERT_BELOW:
        modifications.append(
            WorkoutModification(
                kind="exercise",
                severity="minor",
                reason="High muscle soreness",
                original={"warmup_minutes": planned.warmup_minutes},
                suggested={"warmup_minutes": planned.warmup_minutes + EXTRA_MOBILITY_MINUTES, "mobility": "emphasize"},
                confidence=0.9,
                explanation="Add 10 minutes of mobility work and extend warm-up.",
            )
        )

    if score > OVERLOAD_ABOVE and readiness.deviation > 0:
        modifications.append(
            WorkoutModification(
                kind="intensity",
                severity="minor",
                reason="Excellent readiness",
                original={"intensity_pct": planned.intensity_pct},
                suggested={
                    "intensity_pct": round(planned.intensity_pct * 1.075, 1),
                    "intensity_range": (round(planned.intensity_pct * 1.05, 1), round(planned.intensity_pct * 1.10, 1)),
                },
                confidence=0.7,
                explanation="Consider progressive overload - you're primed for growth!",
            )
        )

    LOGGER.debug("Readiness %s produced %s modifications for %s", score, len(modifications), planned.exercise)
    return modifications


def apply_modifications(planned: PlannedWorkout, modifications: Sequence[WorkoutModification]) -> PlannedWorkout:
    """Fold suggested values into the plan; later modifications win on the same field."""
    changes: Dict[str, Any] = {}
    for modification in modifications:
        for key, value in modification.suggested.items():
            if key in _PLAN_FIELDS:
                changes[key] = value
    return replace(planned, **changes) if changes else planned


def calculate_optimal_rest(exercise_type: str, intensity: float, last_rpe: float | None = None) -> RestRecommendation:
    base = 180.0 if exercise_type == "compound" else 120.0
    if intensity > 85:
        base += 60
    if intensity < 70:
        base -= 30
    if last_rpe is not None and last_rpe >= 8:
        base += 60
    if last_rpe is not None and last_rpe <= 6:
        base -= 30

    reasoning = f"Based on {exercise_type} exercise at {intensity:g}% intensity"
    if last_rpe is not None:
        reasoning += f" with RPE {last_rpe:g}"
    return RestRecommendation(min_seconds=max(60.0, base - 30), max_seconds=base + 60, reasoning=reasoning)


def real_time_coaching(
    current_set: int,
    exercise: str,
    *,
    last_rpe: float | None = None,
    elapsed_seconds: float | None = None,
    readiness: ReadinessAnalysis | None = None,
) -> RealTimeCoaching:
    """Between-set cues from the last set's RPE, session length and readiness."""
    cues: list[CoachingCue] = []
    if last_rpe is not None:
        if last_rpe >= 9:
            cues.append(
                CoachingCue(
                    "intensity",
                    "That was very challenging! Consider reducing weight by 5-10% for the next set.",
                    "high",
                    "next-set",
                )
            )
        elif last_rpe <= 6:
            cues.append(
                CoachingCue(
                    "intensity",
                    "You have more in the tank! Consider adding 2.5-5kg for the next set.",
                    "medium",
                    "next-set",
                )
            )
    if current_set >= 3:
        cues.append(
            CoachingCue("form", "Focus on form quality over speed. Control the eccentric phase.", "medium", "immediate")
        )

    fatigue = min(10.0, elapsed_seconds / 360) if elapsed_seconds else None
    if fatigue is not None and fatigue > 6:
        cues.append(
            CoachingCue("rest", "Take an extra 30-60 seconds between sets to maintain quality.", "medium", "next-set")
        )
    if readiness is not None and readiness.overall_score < 70:
        cues.append(CoachingCue("motivation", "Listen to your body today. Quality over quantity.", "low", "immediate"))

    return RealTimeCoaching(
        phase="during-workout" if current_set == 1 else "between-sets",
        exercise=exercise,
        set_number=current_set,
        cues=cues,
        rpe=last_rpe,
        fatigue=fatigue,
    )
