"""One-rep-max estimation from submaximal sets.

Four classic regression formulas are blended with rep-range dependent weights:

- Epley:    w * (1 + reps / 30)
- Brzycki:  w * 36 / (37 - reps)
- Lombardi: w * reps ** 0.10
- Mayhew:   100 * w / (52.2 + 41.9 * exp(-0.055 * reps))

A reported RPE rescales every estimate through the RPE -> %1RM table below.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List

RPE_PERCENTAGE: dict[float, float] = {
    10.0: 1.0,
    9.5: 0.975,
    9.0: 0.95,
    8.5: 0.925,
    8.0: 0.9,
    7.5: 0.875,
    7.0: 0.85,
    6.5: 0.825,
    6.0: 0.8,
    5.0: 0.75,
}
DEFAULT_RPE_PERCENTAGE = 0.8


@dataclass(frozen=True)
class OneRMEstimate:
    estimates: Dict[str, float]
    composite: float
    confidence: float
    recommended_method: str


@dataclass(frozen=True)
class DataQuality:
    is_valid: bool
    issues: List[str] = field(default_factory=list)
    confidence: float = 1.0


def epley(weight: float, reps: int) -> float:
    if reps == 1:
        return float(weight)
    return weight * (1 + reps / 30)


def brzycki(weight: float, reps: int) -> float:
    # Formula breaks down at 37+ reps.
    if reps == 1 or reps >= 37:
        return float(weight)
    return weight * (36 / (37 - reps))


def lombardi(weight: float, reps: int) -> float:
    if reps == 1:
        return float(weight)
    return weight * reps**0.10


def mayhew(weight: float, reps: int) -> float:
    if reps == 1:
        return float(weight)
    return (100 * weight) / (52.2 + 41.9 * math.exp(-0.055 * reps))


def _formula_weights(reps: int) -> dict[str, float]:
    if reps <= 3:
        return {"epley": 0.4, "brzycki": 0.35, "lombardi": 0.1, "mayhew": 0.15}
    if reps <= 6:
        return {"epley": 0.35, "brzycki": 0.3, "lombardi": 0.15, "mayhew": 0.2}
    if reps <= 10:
        return {"epley": 0.25, "brzycki": 0.25, "lombardi": 0.25, "mayhew": 0.25}
    return {"epley": 0.2, "brzycki": 0.15, "lombardi": 0.4, "mayhew": 0.25}


def rpe_adjustment(rpe: float) -> float:
    """Multiplier converting a set at `rpe` into a maximal-effort estimate."""
    rounded = round(float(rpe) * 2) / 2
    return 1 / RPE_PERCENTAGE.get(rounded, DEFAULT_RPE_PERCENTAGE)


def composite_estimate(weight: float, reps: int, rpe: float | None = None) -> OneRMEstimate:
    """Blend all formulas; confidence reflects how closely they agree (1 - 2 * CV)."""
    estimates = {
        "epley": epley(weight, reps),
        "brzycki": brzycki(weight, reps),
        "lombardi": lombardi(weight, reps),
        "mayhew": mayhew(weight, reps),
    }
    if rpe is not None:
        factor = rpe_adjustment(rpe)
        estimates = {name: value * factor for name, value in estimates.items()}

    weights = _formula_weights(reps)
    composite = sum(estimates[name] * weights[name] for name in estimates)

    values = list(estimates.values())
    mean = sum(values) / len(values)
    if mean > 0:
        variance = sum((value - mean) ** 2 for value in values) / len(values)
        confidence = max(0.0, min(1.0, 1 - (math.sqrt(variance) / mean) * 2))
    else:
        confidence = 0.0

    if reps <= 3:
        method = "brzycki"
    elif reps > 10:
        method = "lombardi"
    elif 6 <= reps <= 8:
        method = "mayhew"
    else:
        method = "epley"

    return OneRMEstimate(
        estimates=estimates,
        composite=composite,
        confidence=confidence,
        recommended_method=method,
    )


def estimate_one_rm(weight: float, reps: int, *, rpe: float | None = None) -> float:
    """Composite one-rep-max rounded to one decimal; zero for empty sets."""
    if weight <= 0 or reps <= 0:
        return 0.0
    return round(composite_estimate(weight, reps, rpe).composite, 1)


def validate_set(weight: float, reps: int, rpe: float | None = None) -> DataQuality:
    """Flag sets whose estimates are unreliable and scale confidence accordingly."""
    if weight <= 0:
        return DataQuality(is_valid=False, issues=["Weight must be positive"], confidence=0.0)
    if reps <= 0 or reps > 50:
        return DataQuality(is_valid=False, issues=["Reps must be between 1 and 50"], confidence=0.0)

    issues: list[str] = []
    confidence = 1.0
    if rpe is not None and not 1 <= rpe <= 10:
        issues.append("RPE must be between 1 and 10")
        confidence *= 0.8
    if reps > 15:
        issues.append("1RM estimates less accurate for high rep sets (>15)")
        confidence *= 0.7
    if reps == 1:
        issues.append("Single rep may not reflect true 1RM due to technique/conditions")
        confidence *= 0.9
    if rpe is not None and rpe < 6:
        issues.append("Low RPE may indicate submaximal effort, affecting accuracy")
        confidence *= 0.8
    if rpe is not None and rpe > 9.5 and reps > 5:
        issues.append("High RPE with high reps may indicate form breakdown")
        confidence *= 0.8

    is_valid = not any("must" in issue for issue in issues)
    return DataQuality(is_valid=is_valid, issues=issues, confidence=max(0.1, confidence))
