from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import date, datetime
from typing import Any, Dict, Literal, Mapping, Optional, Tuple

from .one_rm import estimate_one_rm

TrendLabel = Literal["increasing", "decreasing", "stable", "volatile"]
Direction = Literal["positive", "negative", "neutral"]
FactorTrend = Literal["improving", "stable", "declining"]
ReadinessLevel = Literal["poor", "fair", "good", "excellent"]
ModelKind = Literal["linear", "polynomial", "exponential", "logistic"]
AnomalyKind = Literal["performance_drop", "volume_spike", "rpe_anomaly", "frequency_change"]
Severity = Literal["low", "medium", "high", "critical"]
InsightCategory = Literal["warning", "suggestion", "celebration", "information"]
Priority = Literal["low", "medium", "high", "critical"]
ModificationKind = Literal["intensity", "volume", "exercise", "rest", "deload"]
ModificationSeverity = Literal["minor", "moderate", "major"]
CoachingStyle = Literal["supportive", "direct", "technical", "motivational"]

SEVERITY_ORDER: dict[str, int] = {"critical": 4, "high": 3, "medium": 2, "low": 1}
FACTOR_NAMES: tuple[str, ...] = ("sleep", "energy", "soreness", "stress", "hrv")
CORE_FACTORS: tuple[str, ...] = ("sleep", "energy", "soreness", "stress")
COACHING_STYLES: tuple[str, ...] = ("supportive", "direct", "technical", "motivational")

__all__ = [
    "ValidationError",
    "DegenerateFitError",
    "parse_iso_date",
    "parse_datetime",
    "coerce_number",
    "clamp_rpe",
    "parse_daily_metrics",
    "parse_performance_record",
    "parse_energy_reading",
    "Serializable",
    "MetricPoint",
    "DailyMetrics",
    "PerformanceRecord",
    "EnergyReading",
    "TrendResult",
    "ReadinessFactor",
    "ReadinessAnalysis",
    "Forecast",
    "PredictionModel",
    "AnomalyEvent",
    "Cohort",
    "BenchmarkData",
    "InsightAction",
    "CoachingInsight",
    "PlannedWorkout",
    "WorkoutModification",
    "UserProfile",
]


class ValidationError(ValueError):
    """Raised when user-supplied data cannot be normalised safely."""


class DegenerateFitError(ArithmeticError):
    """Raised when a regression system is singular and cannot be solved."""


def parse_iso_date(value: Any, *, field: str = "date") -> date:
    """
    Parse user-supplied ISO-8601 dates.

    Accepts `datetime.date`, `datetime.datetime`, or strings. Raises `ValidationError`
    with a friendlier message if the payload cannot be parsed.
    """
    if isinstance(value, date):
        return value if not isinstance(value, datetime) else value.date()

    if not isinstance(value, str):
        raise ValidationError(
            f"{field} must be provided as YYYY-MM-DD text; received {value!r}."
        )

    candidate = value.strip()
    if not candidate:
        raise ValidationError(f"{field} cannot be empty.")

    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise ValidationError(
            f"{field} must be a valid ISO date (YYYY-MM-DD); received {candidate!r}."
        ) from exc

    return parsed.date()


def parse_datetime(value: Any, *, field: str = "timestamp") -> datetime:
    """Parse an ISO-8601 timestamp; bare dates resolve to midnight."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} must be an ISO timestamp; received {value!r}.")
    try:
        return datetime.fromisoformat(value.strip())
    except ValueError as exc:
        raise ValidationError(
            f"{field} must be a valid ISO timestamp; received {value!r}."
        ) from exc


def coerce_number(
    value: Any,
    *,
    field: str = "value",
    minimum: float | None = None,
    maximum: float | None = None,
    allow_empty: bool = False,
    allow_float: bool = True,
) -> float:
    """
    Convert arbitrary input into a float with guardrails.

    The `minimum` and `maximum` bounds (inclusive) trigger a ValidationError when
    breached. When `allow_float` is False, the coerced number must be whole.
    """
    if value is None:
        if allow_empty:
            return float("nan")
        raise ValidationError(f"{field} is required.")

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number; received {value!r}.")

    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            if allow_empty:
                return float("nan")
            raise ValidationError(f"{field} is required.")
        try:
            number = float(stripped)
        except ValueError as exc:
            raise ValidationError(f"{field} must be a number; received {value!r}.") from exc
    else:
        raise ValidationError(f"{field} must be a number; received {value!r}.")

    if math.isnan(number):
        if allow_empty:
            return number
        raise ValidationError(f"{field} is required.")

    if not allow_float and number != round(number):
        raise ValidationError(f"{field} must be an integer; received {value!r}.")

    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be >= {minimum}; received {number}.")

    if maximum is not None and number > maximum:
        raise ValidationError(f"{field} must be <= {maximum}; received {number}.")

    return number


def clamp_rpe(value: Any, *, field: str = "rpe") -> float:
    """
    Coerce the Rate of Perceived Exertion onto the 1-10 scale.

    Half points (e.g. 8.5) are kept; values outside the bounds are gently clamped.
    """
    coerced = coerce_number(value, field=field)
    return min(10.0, max(1.0, coerced))


def _optional_number(value: Any, *, field: str, minimum: float | None = None) -> float | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return coerce_number(value, field=field, minimum=minimum)


class Serializable:
    """Mixin giving frozen result dataclasses a JSON-friendly `to_dict`."""

    def to_dict(self) -> Dict[str, Any]:
        return _to_primitive(asdict(self))  # type: ignore[call-overload]


def _to_primitive(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        return _to_primitive(asdict(value))
    if isinstance(value, Mapping):
        return {str(key): _to_primitive(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_primitive(item) for item in value]
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


@dataclass(frozen=True)
class MetricPoint(Serializable):
    date: date
    value: float


@dataclass(frozen=True)
class DailyMetrics(Serializable):
    """One wellness check-in: sleep hours plus 1-10 subjective ratings."""

    date: date
    sleep: float
    energy: float
    soreness: float
    stress: float
    hrv: Optional[float] = None

    def factor_value(self, name: str) -> float | None:
        value = getattr(self, name)
        return None if value is None else float(value)


@dataclass(frozen=True)
class PerformanceRecord(Serializable):
    """
    A logged set block for one exercise.

    `one_rm` falls back to the composite estimate from weight/reps/RPE and
    `volume` to weight x reps x sets when they are not supplied.
    """

    date: date
    exercise: str
    weight: float
    reps: int
    sets: int = 1
    rpe: Optional[float] = None
    one_rm: Optional[float] = None
    volume: Optional[float] = None

    def __post_init__(self) -> None:
        if self.one_rm is None:
            estimate = estimate_one_rm(self.weight, self.reps, rpe=self.rpe)
            object.__setattr__(self, "one_rm", estimate)
        if self.volume is None:
            object.__setattr__(self, "volume", float(self.weight) * self.reps * self.sets)


@dataclass(frozen=True)
class EnergyReading(Serializable):
    timestamp: datetime
    energy: float


@dataclass(frozen=True)
class TrendResult(Serializable):
    trend: TrendLabel
    direction: Direction
    confidence: float
    slope: float
    volatility: float


@dataclass(frozen=True)
class ReadinessFactor(Serializable):
    name: str
    value: float
    weight: float
    score: float
    trend: FactorTrend


@dataclass(frozen=True)
class ReadinessAnalysis(Serializable):
    overall_score: int
    level: ReadinessLevel
    factors: Tuple[ReadinessFactor, ...]
    baseline: float
    deviation: float
    confidence: float
    recommendations: Tuple[str, ...]

    def factor(self, name: str) -> ReadinessFactor | None:
        for item in self.factors:
            if item.name == name:
                return item
        return None


@dataclass(frozen=True)
class Forecast(Serializable):
    value: float
    confidence: float
    date: Optional[date] = None


@dataclass(frozen=True)
class PredictionModel(Serializable):
    kind: ModelKind
    name: str
    coefficients: Tuple[float, ...]
    r_squared: float
    predictions: Dict[str, Forecast] = field(default_factory=dict)
    approximate: bool = False


@dataclass(frozen=True)
class AnomalyEvent(Serializable):
    kind: AnomalyKind
    severity: Severity
    confidence: float
    detected_at: date
    expected: float
    actual: float
    deviation: float
    description: str
    exercise: Optional[str] = None
    possible_causes: Tuple[str, ...] = ()
    suggested_actions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Cohort(Serializable):
    age_range: str
    experience_level: str
    bodyweight_range: str
    training_style: str
    sample_size: int


@dataclass(frozen=True)
class BenchmarkData(Serializable):
    exercise: str
    metric: str
    percentiles: Mapping[int, float]
    cohort: Cohort
    unit: str = "lbs"


@dataclass(frozen=True)
class InsightAction(Serializable):
    """A follow-up the client can offer: `action` names it, `payload` parameterises it."""

    label: str
    action: str
    payload: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CoachingInsight(Serializable):
    id: str
    category: InsightCategory
    kind: str
    priority: Priority
    title: str
    message: str
    evidence: Tuple[str, ...]
    actions: Tuple[InsightAction, ...]
    confidence: float


@dataclass(frozen=True)
class PlannedWorkout(Serializable):
    exercise: str
    sets: int
    reps: int
    intensity_pct: float
    rest_seconds: float = 120.0
    exercise_type: str = "compound"
    warmup_minutes: float = 10.0


@dataclass(frozen=True)
class WorkoutModification(Serializable):
    kind: ModificationKind
    severity: ModificationSeverity
    reason: str
    original: Mapping[str, Any]
    suggested: Mapping[str, Any]
    confidence: float
    explanation: str


@dataclass(frozen=True)
class UserProfile(Serializable):
    coaching_style: CoachingStyle = "supportive"
    experience_level: str = "intermediate"
    bodyweight: Optional[float] = None


def parse_daily_metrics(payload: Mapping[str, Any]) -> DailyMetrics:
    """Decode one wellness check-in from a JSON-like mapping."""
    if not isinstance(payload, Mapping):
        raise ValidationError(f"daily metrics must be an object; received {payload!r}.")
    return DailyMetrics(
        date=parse_iso_date(payload.get("date")),
        sleep=coerce_number(payload.get("sleep"), field="sleep", minimum=0.0, maximum=24.0),
        energy=coerce_number(payload.get("energy"), field="energy", minimum=0.0, maximum=10.0),
        soreness=coerce_number(payload.get("soreness"), field="soreness", minimum=0.0, maximum=10.0),
        stress=coerce_number(payload.get("stress"), field="stress", minimum=0.0, maximum=10.0),
        hrv=_optional_number(payload.get("hrv"), field="hrv", minimum=0.0),
    )


def parse_performance_record(payload: Mapping[str, Any]) -> PerformanceRecord:
    """Decode one performance record, deriving one-rep max and volume when absent."""
    if not isinstance(payload, Mapping):
        raise ValidationError(f"performance record must be an object; received {payload!r}.")
    exercise = str(payload.get("exercise") or "").strip()
    if not exercise:
        raise ValidationError("exercise is required.")
    rpe_raw = payload.get("rpe")
    return PerformanceRecord(
        date=parse_iso_date(payload.get("date")),
        exercise=exercise,
        weight=coerce_number(payload.get("weight"), field="weight", minimum=0.0),
        reps=int(coerce_number(payload.get("reps"), field="reps", minimum=1, allow_float=False)),
        sets=int(coerce_number(payload.get("sets", 1), field="sets", minimum=1, allow_float=False)),
        rpe=None if rpe_raw in (None, "") else clamp_rpe(rpe_raw),
        one_rm=_optional_number(payload.get("one_rm"), field="one_rm", minimum=0.0),
        volume=_optional_number(payload.get("volume"), field="volume", minimum=0.0),
    )


def parse_energy_reading(payload: Mapping[str, Any]) -> EnergyReading:
    if not isinstance(payload, Mapping):
        raise ValidationError(f"energy reading must be an object; received {payload!r}.")
    return EnergyReading(
        timestamp=parse_datetime(payload.get("timestamp")),
        energy=coerce_number(payload.get("energy"), field="energy", minimum=0.0, maximum=10.0),
    )
