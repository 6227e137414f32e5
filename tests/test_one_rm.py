from __future__ import annotations

from datetime import date

import pytest

from fitness_analytics.models import PerformanceRecord
from fitness_analytics.one_rm import (
    brzycki,
    composite_estimate,
    epley,
    estimate_one_rm,
    rpe_adjustment,
    validate_set,
)


def test_single_rep_is_the_one_rep_max() -> None:
    assert estimate_one_rm(225, 1) == pytest.approx(225.0)
    assert composite_estimate(225, 1).confidence == pytest.approx(1.0)


def test_formulas() -> None:
    assert epley(100, 10) == pytest.approx(100 * (1 + 10 / 30))
    assert brzycki(100, 10) == pytest.approx(100 * 36 / 27)
    assert brzycki(100, 40) == pytest.approx(100.0)


def test_composite_is_between_individual_estimates() -> None:
    result = composite_estimate(200, 5)
    values = result.estimates.values()
    assert min(values) <= result.composite <= max(values)
    assert result.recommended_method == "epley"
    assert 0.0 <= result.confidence <= 1.0


def test_rpe_scales_estimate() -> None:
    assert rpe_adjustment(10) == pytest.approx(1.0)
    assert rpe_adjustment(8.4) == pytest.approx(1 / 0.925)
    assert estimate_one_rm(190, 1, rpe=9.5) == pytest.approx(round(190 / 0.975, 1))


def test_empty_sets_estimate_zero() -> None:
    assert estimate_one_rm(0, 5) == 0.0
    assert estimate_one_rm(100, 0) == 0.0


def test_performance_record_derives_one_rm_and_volume() -> None:
    record = PerformanceRecord(date=date(2024, 1, 1), exercise="Squat", weight=200, reps=1, sets=3)
    assert record.one_rm == pytest.approx(200.0)
    assert record.volume == pytest.approx(600.0)


def test_validate_set_flags_issues() -> None:
    assert not validate_set(0, 5).is_valid
    assert not validate_set(100, 60).is_valid

    high_reps = validate_set(100, 20)
    assert high_reps.is_valid
    assert high_reps.confidence == pytest.approx(0.7)

    grinder = validate_set(100, 8, rpe=10)
    assert any("form breakdown" in issue for issue in grinder.issues)
