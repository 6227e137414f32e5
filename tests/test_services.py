from __future__ import annotations

import json
from datetime import date, timedelta
from typing import Any

import pytest

from fitness_analytics.cache import ResultCache
from fitness_analytics.config import AppConfig
from fitness_analytics.models import ValidationError
from fitness_analytics.services import (
    AnalyticsService,
    UserData,
    analyze_user,
    analyze_users,
    load_user_data,
)

TODAY = date(2024, 3, 1)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _make_payload() -> dict[str, Any]:
    metrics = [
        {
            "date": (TODAY - timedelta(days=offset)).isoformat(),
            "sleep": 7.5,
            "energy": 7,
            "soreness": 3,
            "stress": 4,
        }
        for offset in range(20, -1, -1)
    ]
    performance = [
        {
            "date": (TODAY - timedelta(days=offset * 3)).isoformat(),
            "exercise": "Squat",
            "weight": 200 + (8 - offset) * 5,
            "reps": 5,
            "sets": 3,
            "rpe": 8,
        }
        for offset in range(8, 0, -1)
    ]
    return {
        "daily_metrics": metrics,
        "performance": performance,
        "energy_readings": [{"timestamp": "2024-02-28T08:00:00", "energy": 8}],
        "workout_times": ["2024-02-27T18:30:00"],
        "planned_workouts": [{"exercise": "Squat", "sets": 4, "reps": 5, "intensity_pct": 80}],
        "profile": {"coaching_style": "direct"},
    }


def test_result_cache_expiry_and_stale_reads() -> None:
    clock = FakeClock()
    cache: ResultCache[str] = ResultCache(10, clock=clock)
    cache.set("alpha", "bundle")
    assert cache.get("alpha") == "bundle"

    clock.now = 10.0
    assert cache.get("alpha") is None
    assert cache.get_stale("alpha") == "bundle"
    assert cache.age("alpha") == pytest.approx(10.0)

    stats = cache.stats()
    assert (stats.entries, stats.hits, stats.misses) == (1, 1, 1)

    cache.invalidate("alpha")
    assert cache.get_stale("alpha") is None

    with pytest.raises(ValueError):
        ResultCache(0)


def test_result_cache_evicts_oldest_entry() -> None:
    cache: ResultCache[int] = ResultCache(60, max_entries=2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)
    assert len(cache) == 2
    assert cache.get_stale("a") is None
    assert cache.lock_for("c") is cache.lock_for("c")


def test_result_cache_releases_key_locks() -> None:
    cache: ResultCache[str] = ResultCache(60, max_entries=2)
    for index in range(1000):
        user_id = f"user-{index}"
        with cache.lock_for(user_id):
            cache.set(user_id, user_id)
        cache.invalidate(user_id)
    assert len(cache) == 0
    assert cache.stats().locks == 0

    held = cache.lock_for("alpha")
    with held:
        cache.invalidate()
        assert cache.lock_for("alpha") is held
        assert cache.stats().locks == 1
    del held
    assert cache.stats().locks == 0


def test_load_user_data_rejects_malformed_payloads() -> None:
    data = load_user_data(_make_payload())
    assert len(data.daily_metrics) == 21
    assert data.profile.coaching_style == "direct"
    assert data.planned[0].intensity_pct == pytest.approx(80.0)

    with pytest.raises(ValidationError):
        load_user_data({"daily_metrics": {"date": "2024-03-01"}})
    with pytest.raises(ValidationError):
        load_user_data({"profile": {"coaching_style": "shouty"}})
    with pytest.raises(ValidationError):
        load_user_data({"planned_workouts": [{"exercise": "Squat", "sets": 0, "reps": 5}]})


def test_analyze_user_produces_serialisable_bundle() -> None:
    bundle = analyze_user(load_user_data(_make_payload()), today=TODAY, config=AppConfig())
    assert bundle.generated_for == TODAY
    assert "Squat" in bundle.predictions
    assert {pattern.metric for pattern in bundle.patterns} >= {"Squat", "Sleep", "Energy"}
    assert list(bundle.modifications) == ["Squat"]
    assert len(bundle.insights) <= 5
    assert 0.0 <= bundle.confidence <= 1.0
    assert bundle.competitive.exercise_rankings[0].exercise == "Squat"
    assert sum(week["sessions"] for week in bundle.weekly_summary) == 8

    payload = json.loads(json.dumps(bundle.to_dict()))
    assert payload["generated_for"] == "2024-03-01"
    assert payload["readiness"]["overall_score"] == bundle.readiness.overall_score
    assert payload["weekly_summary"][-1]["end_date"] == "2024-02-27"


def test_empty_user_gets_cold_start_bundle() -> None:
    bundle = analyze_user(UserData(), today=TODAY, config=AppConfig())
    assert bundle.readiness.overall_score == 70
    assert bundle.predictions == {}
    assert bundle.injury_risk.risk_level == "low"
    assert bundle.training_windows.primary.hour == 9
    assert bundle.competitive.overall_rank.description == "Average"
    assert bundle.weekly_summary == []


def test_analyze_users_isolates_failures() -> None:
    batch = {"good": load_user_data(_make_payload()), "broken": None}
    results = analyze_users(batch, today=TODAY, config=AppConfig())  # type: ignore[arg-type]
    assert set(results) == {"good", "broken"}
    assert results["broken"].readiness.overall_score == 70
    assert results["good"].predictions


def test_service_caches_and_refreshes_insights() -> None:
    clock = FakeClock()
    calls: list[str] = []

    def fetch(user_id: str) -> dict[str, Any]:
        calls.append(user_id)
        return _make_payload()

    service = AnalyticsService(fetch, config=AppConfig(), clock=clock, today=lambda: TODAY)
    first = service.get_user_insights("alpha")
    assert first.source == "fresh"
    assert not first.stale

    second = service.get_user_insights("alpha")
    assert second.source == "cache"
    assert second.bundle is first.bundle
    assert calls == ["alpha"]

    clock.now = 900.0
    assert service.get_user_insights("alpha").source == "fresh"
    assert service.get_user_insights("alpha", force_refresh=True).source == "fresh"
    assert len(calls) == 3

    stats = service.cache_stats()["insights"]
    assert stats.entries == 1
    assert stats.hits >= 1


def test_service_serves_stale_bundle_when_recompute_fails() -> None:
    clock = FakeClock()
    payloads: list[Any] = [_make_payload()]

    def fetch(user_id: str) -> Any:
        if not payloads:
            raise RuntimeError("store offline")
        return payloads.pop()

    service = AnalyticsService(fetch, config=AppConfig(), clock=clock, today=lambda: TODAY)
    fresh = service.get_user_insights("alpha")

    clock.now = 1000.0
    stale = service.get_user_insights("alpha")
    assert stale.source == "stale"
    assert stale.stale
    assert stale.bundle is fresh.bundle

    fallback = service.get_user_insights("beta")
    assert fallback.source == "default"
    assert fallback.bundle.readiness.overall_score == 70
    assert service.cache_stats()["insights"].locks == 0


def test_service_clear_cache_and_quick_insights() -> None:
    service = AnalyticsService(lambda user_id: _make_payload(), config=AppConfig(), today=lambda: TODAY)
    summary = service.quick_insights("alpha")
    assert summary.injury_level in {"low", "moderate", "high", "critical"}
    assert summary.plateau_level in {"low", "moderate", "high"}
    assert summary.next_optimal_workout.endswith(":00")
    assert len(summary.recommendations) <= 3

    assert len(service.insights_cache) == 1
    service.clear_cache("alpha")
    assert len(service.insights_cache) == 0


def test_system_status_is_cached() -> None:
    clock = FakeClock()
    service = AnalyticsService(lambda user_id: UserData(), config=AppConfig(), clock=clock, today=lambda: TODAY)
    status = service.get_system_status()
    assert status.healthy
    assert set(status.components) >= {"readiness", "prediction", "training_windows"}
    assert service.get_system_status() is status

    clock.now = 300.0
    assert service.get_system_status() is not status
