"""Anomaly detection over training logs.

Four detectors run per exercise or across the whole log: one-rep-max drops
against a trailing window, volume spikes by z-score, runs of high RPE, and
week-over-week changes in session frequency.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Sequence, Tuple, Union

from .analysis import group_by_exercise
from .config import AnomalyThresholds, AppConfig, resolve
from .metrics import weekly_session_counts
from .models import SEVERITY_ORDER, AnomalyEvent, MetricPoint, PerformanceRecord
from .stats import mean, population_std

LOGGER = logging.getLogger(__name__)

SeriesInput = Sequence[Union[MetricPoint, Tuple[date, float]]]

DROP_CAUSES = ("Fatigue accumulation", "Form breakdown", "Inadequate recovery", "External stressors")
DROP_ACTIONS = (
    "Review recent training load",
    "Check sleep and nutrition",
    "Consider deload week",
    "Video analysis of technique",
)
SPIKE_CAUSES = ("Overreaching attempt", "Program change", "Competition preparation")
SPIKE_ACTIONS = (
    "Monitor for overtraining signs",
    "Ensure adequate recovery",
    "Consider volume reduction next session",
)
RPE_CAUSES = ("Inadequate recovery", "Progressive overload too aggressive", "External stress factors")
RPE_ACTIONS = ("Schedule deload", "Reduce intensity", "Focus on recovery protocols")
FREQUENCY_CAUSES = ("Schedule changes", "Motivation fluctuation", "Program modification", "Life circumstances")
FREQUENCY_ACTIONS = (
    "Assess schedule sustainability",
    "Adjust program to fit availability",
    "Consider minimum effective dose",
)


def _points(series: SeriesInput) -> list[tuple[date, float]]:
    points: list[tuple[date, float]] = []
    for item in series:
        if isinstance(item, MetricPoint):
            points.append((item.date, float(item.value)))
        else:
            day, value = item
            points.append((day, float(value)))
    return points


def _margin_confidence(excess: float, scale: float, floor: float, cap: float) -> float:
    """Confidence growing linearly with how far a signal clears its threshold."""
    if scale <= 0:
        return min(cap, floor)
    return max(0.0, min(cap, floor + excess / scale))


def detect_performance_drops(
    series: SeriesInput,
    *,
    exercise: str | None = None,
    config: AppConfig | None = None,
) -> list[AnomalyEvent]:
    """Flag values that fall at least `drop_pct` percent below the preceding window average."""
    limits = resolve(config).anomalies
    points = _points(series)
    if len(points) < 2:
        return []
    window = min(limits.drop_window, len(points) - 1)
    label = exercise or "this lift"
    events: list[AnomalyEvent] = []
    for index in range(window, len(points)):
        day, value = points[index]
        expected = mean([item[1] for item in points[index - window : index]])
        if expected <= 0:
            continue
        deviation = (value - expected) / expected * 100
        if deviation > -limits.drop_pct:
            continue
        events.append(
            AnomalyEvent(
                kind="performance_drop",
                severity="high" if deviation <= -limits.drop_high_pct else "medium",
                confidence=min(limits.max_confidence, abs(deviation) / limits.drop_high_pct),
                detected_at=day,
                expected=expected,
                actual=value,
                deviation=deviation,
                description=f"{round(abs(deviation))}% performance drop in {label}",
                exercise=exercise,
                possible_causes=DROP_CAUSES,
                suggested_actions=DROP_ACTIONS,
            )
        )
    return events


def detect_volume_spikes(
    series: SeriesInput,
    *,
    exercise: str | None = None,
    config: AppConfig | None = None,
) -> list[AnomalyEvent]:
    """Flag sessions whose volume z-score against the whole series exceeds `volume_z`."""
    limits = resolve(config).anomalies
    points = _points(series)
    values = [value for _, value in points]
    if len(values) < 2:
        return []
    average = mean(values)
    spread = population_std(values)
    if spread == 0:
        return []
    label = exercise or "this lift"
    events: list[AnomalyEvent] = []
    for day, value in points:
        z_score = (value - average) / spread
        if z_score <= limits.volume_z:
            continue
        events.append(
            AnomalyEvent(
                kind="volume_spike",
                severity="high" if z_score > limits.volume_z_high else "medium",
                confidence=min(limits.max_confidence, z_score / limits.volume_z_high),
                detected_at=day,
                expected=average,
                actual=value,
                deviation=z_score,
                description=f"Unusual volume spike in {label}",
                exercise=exercise,
                possible_causes=SPIKE_CAUSES,
                suggested_actions=SPIKE_ACTIONS,
            )
        )
    return events


def _rpe_event(
    run: Sequence[tuple[date, float]],
    limits: AnomalyThresholds,
    exercise: str | None,
) -> AnomalyEvent:
    actual = mean([value for _, value in run])
    length = len(run)
    return AnomalyEvent(
        kind="rpe_anomaly",
        severity="high" if length >= limits.rpe_high_run else "medium",
        confidence=_margin_confidence(length - limits.rpe_min_run, 10.0, 0.7, limits.max_confidence),
        detected_at=run[-1][0],
        expected=limits.rpe_expected,
        actual=actual,
        deviation=(actual - limits.rpe_expected) / limits.rpe_expected * 100,
        description=f"{length} consecutive high-RPE sessions in {exercise or 'this lift'}",
        exercise=exercise,
        possible_causes=RPE_CAUSES,
        suggested_actions=RPE_ACTIONS,
    )


def detect_rpe_anomalies(
    series: SeriesInput,
    *,
    exercise: str | None = None,
    config: AppConfig | None = None,
) -> list[AnomalyEvent]:
    """
    Flag runs of consecutive sessions at or above `rpe_high`.

    A run is reported once, when it ends; a run still open at the end of the
    series is reported as well.
    """
    limits = resolve(config).anomalies
    events: list[AnomalyEvent] = []
    run: list[tuple[date, float]] = []
    for day, value in _points(series):
        if value >= limits.rpe_high:
            run.append((day, value))
            continue
        if len(run) >= limits.rpe_min_run:
            events.append(_rpe_event(run, limits, exercise))
        run = []
    if len(run) >= limits.rpe_min_run:
        events.append(_rpe_event(run, limits, exercise))
    return events


def detect_frequency_changes(
    dates: Iterable[date],
    *,
    config: AppConfig | None = None,
) -> list[AnomalyEvent]:
    """
    Flag ISO weeks whose session count deviates from the running weekly average.

    Weeks without sessions between the first and last logged week count as
    zero. Each week is compared against the mean of all weeks before it.
    """
    limits = resolve(config).anomalies
    counts = weekly_session_counts(dates)
    if len(counts) < 2:
        return []
    running = counts.expanding().mean().shift(1)
    events: list[AnomalyEvent] = []
    for week_start, count in counts.iloc[1:].items():
        expected = float(running.loc[week_start])
        if expected <= 0:
            continue
        deviation = (float(count) - expected) / expected * 100
        if abs(deviation) <= limits.frequency_pct:
            continue
        direction = "increased" if deviation > 0 else "decreased"
        events.append(
            AnomalyEvent(
                kind="frequency_change",
                severity="high" if abs(deviation) > limits.frequency_high_pct else "medium",
                confidence=_margin_confidence(abs(deviation) - limits.frequency_pct, 100.0, 0.5, limits.max_confidence),
                detected_at=week_start.date(),
                expected=expected,
                actual=float(count),
                deviation=deviation,
                description=f"Training frequency {direction} by {round(abs(deviation))}%",
                possible_causes=FREQUENCY_CAUSES,
                suggested_actions=FREQUENCY_ACTIONS,
            )
        )
    return events


def sort_by_severity(events: Iterable[AnomalyEvent]) -> list[AnomalyEvent]:
    return sorted(events, key=lambda event: SEVERITY_ORDER[event.severity], reverse=True)


def detect_anomalies(
    records: Sequence[PerformanceRecord],
    *,
    config: AppConfig | None = None,
) -> list[AnomalyEvent]:
    """
    Run every detector over a training log, most severe events first.

    Per-exercise detectors need `min_exercise_records` sessions of that
    exercise; the frequency detector looks across all exercises.
    """
    cfg = resolve(config)
    limits = cfg.anomalies
    if len(records) < limits.min_records:
        LOGGER.debug("Anomaly detection needs %s records, received %s", limits.min_records, len(records))
        return []

    grouped = group_by_exercise(records)

    events: list[AnomalyEvent] = []
    for exercise, items in grouped.items():
        if len(items) < limits.min_exercise_records:
            continue
        strength = [(item.date, float(item.one_rm or 0.0)) for item in items]
        volume = [(item.date, float(item.volume or 0.0)) for item in items]
        effort = [(item.date, float(item.rpe)) for item in items if item.rpe is not None]
        events.extend(detect_performance_drops(strength, exercise=exercise, config=cfg))
        events.extend(detect_volume_spikes(volume, exercise=exercise, config=cfg))
        events.extend(detect_rpe_anomalies(effort, exercise=exercise, config=cfg))

    events.extend(detect_frequency_changes((record.date for record in records), config=cfg))
    return sort_by_severity(events)
