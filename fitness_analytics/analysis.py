from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import date
from typing import Dict, List, Optional, Tuple, Union

from .models import PerformanceRecord, ValidationError, parse_performance_record

RecordInput = Union[Mapping[str, object], PerformanceRecord]
Group = Dict[str, List[PerformanceRecord]]


def normalise_exercise(name: str) -> str:
    return " ".join((name or "").strip().lower().split())


def personal_best(records: Iterable[RecordInput]) -> Optional[Tuple[date, float]]:
    """Return the best one-rep max and its date from an iterable of records."""
    best_pair: Optional[Tuple[date, float]] = None
    for item in records:
        record = _normalise_record(item)
        value = float(record.one_rm or 0.0)
        if best_pair is None or value > best_pair[1]:
            best_pair = (record.date, value)
    return best_pair


def group_by_exercise(records: Iterable[RecordInput]) -> Group:
    """
    Group records by exercise, keeping the first spelling seen as the key.

    Matching is case and whitespace insensitive; each group is date ordered.
    """
    grouped: Group = {}
    labels: Dict[str, str] = {}
    for item in records:
        record = _normalise_record(item)
        key = normalise_exercise(record.exercise)
        label = labels.setdefault(key, record.exercise.strip())
        grouped.setdefault(label, []).append(record)
    for entries in grouped.values():
        entries.sort(key=lambda record: record.date)
    return grouped


def latest_value(records: Sequence[PerformanceRecord]) -> Optional[Tuple[date, float]]:
    """Most recent day's best one-rep max."""
    if not records:
        return None
    last_day = max(record.date for record in records)
    value = max(float(record.one_rm or 0.0) for record in records if record.date == last_day)
    return last_day, value


def value_near(records: Sequence[PerformanceRecord], target: date, *, tolerance_days: int) -> Optional[float]:
    """Best one-rep max logged closest to `target`, if any record is within tolerance."""
    candidates = [
        (abs((record.date - target).days), -float(record.one_rm or 0.0))
        for record in records
        if abs((record.date - target).days) <= tolerance_days
    ]
    if not candidates:
        return None
    _, negative_value = min(candidates)
    return -negative_value


def _normalise_record(item: RecordInput) -> PerformanceRecord:
    """
    Convert various record representations into a `PerformanceRecord`.
    """
    if isinstance(item, PerformanceRecord):
        return item
    if isinstance(item, Mapping):
        try:
            return parse_performance_record(item)
        except ValidationError as exc:
            raise ValueError(str(exc)) from exc
    raise TypeError(f"Unsupported record type: {type(item)!r}")
