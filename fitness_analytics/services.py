"""Per-user analysis orchestration with cached, best-effort results.

`analyze_user` runs every engine over one athlete's data. `AnalyticsService`
wraps it with the insight and system-status caches: fresh cache hits are
returned directly, misses recompute, and a failed recomputation falls back to
the last cached bundle (flagged stale) or to the cold-start bundle.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional, Sequence, Union

from .analysis import group_by_exercise
from .anomalies import detect_anomalies
from .benchmarks import CompetitiveAnalysis, generate_competitive_analysis
from .cache import CacheStats, ResultCache
from .config import AppConfig, resolve
from .insights import generate_insights
from .metrics import weekly_summary_rows
from .models import (
    AnomalyEvent,
    CoachingInsight,
    DailyMetrics,
    EnergyReading,
    PerformanceRecord,
    PlannedWorkout,
    PredictionModel,
    ReadinessAnalysis,
    Serializable,
    UserProfile,
    ValidationError,
    WorkoutModification,
    coerce_number,
    parse_daily_metrics,
    parse_datetime,
    parse_energy_reading,
    parse_performance_record,
)
from .prediction import (
    InjuryRiskAssessment,
    PlateauPrediction,
    assess_injury_risk,
    collapse_same_day,
    predict_performance,
    predict_plateau,
)
from .readiness import analyze_readiness
from .stats import mean
from .training_windows import (
    IntensityGuidance,
    OptimalTrainingWindows,
    predict_training_windows,
    training_intensity_guidance,
)
from .trends import PerformancePattern, detect_performance_pattern
from .workout_modifier import suggest_workout_modifications

LOGGER = logging.getLogger(__name__)

Source = Literal["cache", "fresh", "stale", "default"]
ComponentState = Literal["healthy", "error"]

WELLNESS_PATTERN_DAYS = 14
STATUS_KEY = "system"


@dataclass(frozen=True)
class UserData:
    daily_metrics: tuple[DailyMetrics, ...] = ()
    records: tuple[PerformanceRecord, ...] = ()
    energy_readings: tuple[EnergyReading, ...] = ()
    workout_times: tuple[datetime, ...] = ()
    planned: tuple[PlannedWorkout, ...] = ()
    profile: UserProfile = field(default_factory=UserProfile)


@dataclass(frozen=True)
class InsightBundle(Serializable):
    generated_for: date
    readiness: ReadinessAnalysis
    patterns: List[PerformancePattern]
    anomalies: List[AnomalyEvent]
    predictions: Dict[str, List[PredictionModel]]
    injury_risk: InjuryRiskAssessment
    plateaus: List[PlateauPrediction]
    training_windows: OptimalTrainingWindows
    intensity_guidance: IntensityGuidance
    competitive: CompetitiveAnalysis
    insights: List[CoachingInsight]
    modifications: Dict[str, List[WorkoutModification]]
    weekly_summary: List[Dict[str, Any]]
    confidence: float


@dataclass(frozen=True)
class AnalysisResult(Serializable):
    bundle: InsightBundle
    stale: bool
    source: Source


@dataclass(frozen=True)
class SystemStatus(Serializable):
    components: Dict[str, ComponentState]
    checked_at: datetime

    @property
    def healthy(self) -> bool:
        return all(state == "healthy" for state in self.components.values())


@dataclass(frozen=True)
class QuickInsights(Serializable):
    injury_level: str
    injury_score: float
    plateau_level: str
    plateau_score: float
    readiness_score: int
    next_optimal_workout: str
    recommendations: List[str]


def _parse_planned(payload: Mapping[str, Any]) -> PlannedWorkout:
    if not isinstance(payload, Mapping):
        raise ValidationError(f"planned workout must be an object; received {payload!r}.")
    exercise = str(payload.get("exercise") or "").strip()
    if not exercise:
        raise ValidationError("exercise is required.")
    return PlannedWorkout(
        exercise=exercise,
        sets=int(coerce_number(payload.get("sets"), field="sets", minimum=1, allow_float=False)),
        reps=int(coerce_number(payload.get("reps"), field="reps", minimum=1, allow_float=False)),
        intensity_pct=coerce_number(payload.get("intensity_pct", 75), field="intensity_pct", minimum=0, maximum=120),
        rest_seconds=coerce_number(payload.get("rest_seconds", 120), field="rest_seconds", minimum=0),
        exercise_type=str(payload.get("exercise_type") or "compound"),
        warmup_minutes=coerce_number(payload.get("warmup_minutes", 10), field="warmup_minutes", minimum=0),
    )


def _parse_profile(payload: Any) -> UserProfile:
    if payload is None:
        return UserProfile()
    if not isinstance(payload, Mapping):
        raise ValidationError(f"profile must be an object; received {payload!r}.")
    style = str(payload.get("coaching_style") or "supportive")
    if style not in ("supportive", "direct", "technical", "motivational"):
        raise ValidationError(f"coaching_style must be supportive, direct, technical or motivational; received {style!r}.")
    bodyweight = payload.get("bodyweight")
    return UserProfile(
        coaching_style=style,  # type: ignore[arg-type]
        experience_level=str(payload.get("experience_level") or "intermediate"),
        bodyweight=None if bodyweight in (None, "") else coerce_number(bodyweight, field="bodyweight", minimum=0),
    )


def _items(payload: Mapping[str, Any], key: str) -> Sequence[Any]:
    value = payload.get(key) or []
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{key} must be a list; received {type(value).__name__}.")
    return value


def load_user_data(payload: Mapping[str, Any]) -> UserData:
    """
    Decode one athlete's JSON payload.

    Recognised keys: `daily_metrics`, `performance`, `energy_readings`,
    `workout_times`, `planned_workouts` (lists) and `profile` (object).
    Missing keys mean no data; malformed entries raise `ValidationError`.
    """
    if not isinstance(payload, Mapping):
        raise ValidationError(f"user data must be an object; received {payload!r}.")
    return UserData(
        daily_metrics=tuple(parse_daily_metrics(item) for item in _items(payload, "daily_metrics")),
        records=tuple(parse_performance_record(item) for item in _items(payload, "performance")),
        energy_readings=tuple(parse_energy_reading(item) for item in _items(payload, "energy_readings")),
        workout_times=tuple(
            parse_datetime(item, field="workout_times") for item in _items(payload, "workout_times")
        ),
        planned=tuple(_parse_planned(item) for item in _items(payload, "planned_workouts")),
        profile=_parse_profile(payload.get("profile")),
    )


def _patterns(data: UserData, cfg: AppConfig) -> list[PerformancePattern]:
    patterns: list[PerformancePattern] = []
    for exercise, items in group_by_exercise(data.records).items():
        series = collapse_same_day(items, "one_rm")
        if len(series) < 3:
            continue
        timeframe = (series[-1][0] - series[0][0]).days + 1
        patterns.append(
            detect_performance_pattern(exercise, [value for _, value in series], timeframe=timeframe, config=cfg)
        )

    recent = sorted(data.daily_metrics, key=lambda item: item.date)[-WELLNESS_PATTERN_DAYS:]
    if len(recent) >= 3:
        for name in ("sleep", "energy"):
            patterns.append(
                detect_performance_pattern(
                    name.capitalize(),
                    [getattr(item, name) for item in recent],
                    timeframe=WELLNESS_PATTERN_DAYS,
                    config=cfg,
                )
            )
    return patterns


def analyze_user(
    data: UserData,
    *,
    today: date | None = None,
    config: AppConfig | None = None,
) -> InsightBundle:
    """Run every engine over one athlete's data; empty data yields the cold-start bundle."""
    cfg = resolve(config)
    anchor = today or date.today()

    readiness = analyze_readiness(data.daily_metrics, today=anchor, config=cfg)
    patterns = _patterns(data, cfg)
    anomalies = detect_anomalies(data.records, config=cfg)

    by_exercise = group_by_exercise(data.records)
    predictions = {}
    for exercise, items in by_exercise.items():
        models = predict_performance(items)
        if models:
            predictions[exercise] = models
    plateaus = [predict_plateau(items, today=anchor) for items in by_exercise.values()]

    insights = generate_insights(
        readiness,
        patterns,
        data.daily_metrics,
        profile=data.profile,
        anomalies=anomalies,
        today=anchor,
    )
    modifications = {planned.exercise: suggest_workout_modifications(planned, readiness) for planned in data.planned}

    best_fits = [models[0].r_squared for models in predictions.values()]
    confidence = mean([readiness.confidence, *best_fits]) if best_fits else readiness.confidence

    return InsightBundle(
        generated_for=anchor,
        readiness=readiness,
        patterns=patterns,
        anomalies=anomalies,
        predictions=predictions,
        injury_risk=assess_injury_risk(data.records),
        plateaus=plateaus,
        training_windows=predict_training_windows(data.daily_metrics, data.energy_readings, data.workout_times),
        intensity_guidance=training_intensity_guidance(data.daily_metrics),
        competitive=generate_competitive_analysis(data.records, today=anchor),
        insights=insights,
        modifications=modifications,
        weekly_summary=weekly_summary_rows(data.records),
        confidence=confidence,
    )


def default_bundle(*, today: date | None = None, config: AppConfig | None = None) -> InsightBundle:
    return analyze_user(UserData(), today=today, config=config)


def analyze_users(
    batch: Mapping[str, UserData],
    *,
    max_workers: int = 4,
    today: date | None = None,
    config: AppConfig | None = None,
) -> dict[str, InsightBundle]:
    """Analyse independent athletes in parallel; a failing athlete gets the default bundle."""
    cfg = resolve(config)
    anchor = today or date.today()
    results: dict[str, InsightBundle] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            user_id: executor.submit(analyze_user, data, today=anchor, config=cfg) for user_id, data in batch.items()
        }
        for user_id, future in futures.items():
            try:
                results[user_id] = future.result()
            except Exception:
                LOGGER.exception("Analysis failed for user %s", user_id)
                results[user_id] = default_bundle(today=anchor, config=cfg)
    return results


def _probe_components(cfg: AppConfig, today: date) -> dict[str, ComponentState]:
    sample_metrics = tuple(
        DailyMetrics(date=today - timedelta(days=offset), sleep=7.5, energy=7, soreness=3, stress=3)
        for offset in range(10, 0, -1)
    )
    sample_records = tuple(
        PerformanceRecord(
            date=today - timedelta(days=offset * 3),
            exercise="Squat",
            weight=200.0 + (10 - offset) * 5,
            reps=5,
            sets=3,
            rpe=8.0,
        )
        for offset in range(10, 0, -1)
    )
    probes: dict[str, Callable[[], object]] = {
        "readiness": lambda: analyze_readiness(sample_metrics, today=today, config=cfg),
        "anomalies": lambda: detect_anomalies(sample_records, config=cfg),
        "prediction": lambda: predict_performance(sample_records),
        "injury_risk": lambda: assess_injury_risk(sample_records),
        "plateau_detection": lambda: predict_plateau(sample_records, today=today),
        "benchmarks": lambda: generate_competitive_analysis(sample_records, today=today),
        "training_windows": lambda: predict_training_windows(sample_metrics),
    }
    states: dict[str, ComponentState] = {}
    for name, probe in probes.items():
        try:
            probe()
        except Exception:
            LOGGER.exception("Health probe failed for %s", name)
            states[name] = "error"
        else:
            states[name] = "healthy"
    return states


UserSource = Callable[[str], Union[UserData, Mapping[str, Any]]]


class AnalyticsService:
    """
    Cached entry point for per-user insight bundles.

    `fetch` loads one athlete's data (a `UserData` or a raw JSON mapping).
    Insight bundles are cached for `insights_ttl_seconds` and the system
    status for `status_ttl_seconds` (see `CacheSettings`).
    """

    def __init__(
        self,
        fetch: UserSource,
        *,
        config: AppConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._fetch = fetch
        self._config = resolve(config)
        self._today = today
        cache_settings = self._config.cache
        self.insights_cache: ResultCache[InsightBundle] = ResultCache(cache_settings.insights_ttl_seconds, clock=clock)
        self.status_cache: ResultCache[SystemStatus] = ResultCache(cache_settings.status_ttl_seconds, clock=clock)

    def _load(self, user_id: str) -> UserData:
        payload = self._fetch(user_id)
        return payload if isinstance(payload, UserData) else load_user_data(payload)

    def get_user_insights(self, user_id: str, *, force_refresh: bool = False) -> AnalysisResult:
        if not force_refresh:
            cached = self.insights_cache.get(user_id)
            if cached is not None:
                LOGGER.debug("Returning cached insights for %s", user_id)
                return AnalysisResult(cached, stale=False, source="cache")

        with self.insights_cache.lock_for(user_id):
            if not force_refresh:
                cached = self.insights_cache.get(user_id)
                if cached is not None:
                    return AnalysisResult(cached, stale=False, source="cache")
            try:
                bundle = analyze_user(self._load(user_id), today=self._today(), config=self._config)
            except Exception:
                LOGGER.exception("Failed to compute insights for %s", user_id)
                stale = self.insights_cache.get_stale(user_id)
                if stale is not None:
                    LOGGER.info("Serving stale insights for %s", user_id)
                    return AnalysisResult(stale, stale=True, source="stale")
                fallback = default_bundle(today=self._today(), config=self._config)
                return AnalysisResult(fallback, stale=True, source="default")
            self.insights_cache.set(user_id, bundle)
            LOGGER.info("Insights generated and cached for %s", user_id)
            return AnalysisResult(bundle, stale=False, source="fresh")

    def get_system_status(self, *, force_refresh: bool = False) -> SystemStatus:
        if not force_refresh:
            cached = self.status_cache.get(STATUS_KEY)
            if cached is not None:
                return cached
        status = SystemStatus(components=_probe_components(self._config, self._today()), checked_at=datetime.now())
        self.status_cache.set(STATUS_KEY, status)
        if not status.healthy:
            LOGGER.warning("Degraded components: %s", sorted(k for k, v in status.components.items() if v != "healthy"))
        return status

    def quick_insights(self, user_id: str) -> QuickInsights:
        """Dashboard summary derived from the (possibly cached) insight bundle."""
        bundle = self.get_user_insights(user_id).bundle
        plateau_score = max((item.probability for item in bundle.plateaus), default=0.2) * 100
        if plateau_score > 60:
            plateau_level = "high"
        elif plateau_score > 30:
            plateau_level = "moderate"
        else:
            plateau_level = "low"
        return QuickInsights(
            injury_level=bundle.injury_risk.risk_level,
            injury_score=bundle.injury_risk.risk_score,
            plateau_level=plateau_level,
            plateau_score=plateau_score,
            readiness_score=bundle.readiness.overall_score,
            next_optimal_workout=f"{bundle.training_windows.primary.hour:02d}:00",
            recommendations=list(bundle.readiness.recommendations[:3]),
        )

    def clear_cache(self, user_id: Optional[str] = None) -> None:
        if user_id is not None:
            self.insights_cache.invalidate(user_id)
            LOGGER.info("Cleared cached insights for %s", user_id)
            return
        self.insights_cache.invalidate()
        self.status_cache.invalidate()
        LOGGER.info("Cleared all cached analytics")

    def cache_stats(self) -> dict[str, CacheStats]:
        return {"insights": self.insights_cache.stats(), "status": self.status_cache.stats()}
