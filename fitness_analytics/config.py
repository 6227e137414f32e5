from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping, TypeVar

from .env import get_env

try:  # pragma: no cover - Python 3.11+
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover - Python <3.11
    import tomli as tomllib  # type: ignore

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_PATHS: tuple[str, ...] = ("config/fitness_analytics.toml",)


@dataclass(frozen=True)
class TrendThresholds:
    slope: float = 0.1
    volatility: float = 0.3
    pattern_high_slope: float = 0.2
    pattern_medium_slope: float = 0.1


@dataclass(frozen=True)
class FactorWeights:
    sleep: float = 0.35
    energy: float = 0.25
    soreness: float = 0.20
    stress: float = 0.15
    hrv: float = 0.05

    def as_mapping(self) -> dict[str, float]:
        return {item.name: float(getattr(self, item.name)) for item in fields(self)}


@dataclass(frozen=True)
class ReadinessSettings:
    weights: FactorWeights = FactorWeights()
    baseline_exclusion_days: int = 14
    baseline_window: int = 21
    baseline_min_points: int = 5
    baseline_min_history: int = 7
    default_baseline: float = 60.0
    baseline_floor: float = 30.0
    baseline_ceiling: float = 90.0
    trend_window: int = 7
    trend_min_confidence: float = 0.3
    recency_decay_days: float = 3.0
    max_recommendations: int = 4


@dataclass(frozen=True)
class AnomalyThresholds:
    min_records: int = 5
    min_exercise_records: int = 4
    drop_window: int = 3
    drop_pct: float = 10.0
    drop_high_pct: float = 20.0
    volume_z: float = 2.5
    volume_z_high: float = 3.0
    rpe_high: float = 8.5
    rpe_expected: float = 7.5
    rpe_min_run: int = 3
    rpe_high_run: int = 5
    frequency_pct: float = 50.0
    frequency_high_pct: float = 75.0
    max_confidence: float = 0.9


@dataclass(frozen=True)
class CacheSettings:
    status_ttl_seconds: float = 300.0
    insights_ttl_seconds: float = 900.0


@dataclass(frozen=True)
class AppConfig:
    trend: TrendThresholds = TrendThresholds()
    readiness: ReadinessSettings = ReadinessSettings()
    anomalies: AnomalyThresholds = AnomalyThresholds()
    cache: CacheSettings = CacheSettings()


_Section = TypeVar("_Section")


def _configure_logger() -> logging.Logger:
    logger = logging.getLogger("fitness_analytics")
    level_name = get_env("LOG_LEVEL") or os.getenv("LOG_LEVEL")
    if level_name:
        level = getattr(logging, level_name.upper(), logging.INFO)
        logger.setLevel(level)
    return logger


PACKAGE_LOGGER = _configure_logger()


def _config_path() -> Path | None:
    """Resolve the TOML configuration file, if present."""
    env_override = get_env("CONFIG")
    if env_override:
        path = Path(env_override).expanduser()
        return path if path.exists() else None

    for candidate in DEFAULT_CONFIG_PATHS:
        default_path = Path(candidate)
        if default_path.exists():
            return default_path
    return None


def _load_toml(path: Path) -> Mapping[str, Any]:
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _coerce_section(base: _Section, raw: Any) -> _Section:
    """
    Overlay numeric values from a TOML table onto a frozen settings dataclass.

    Unknown keys are ignored. A table containing a non-numeric value falls back
    to the defaults for the whole section so half-applied overrides never leak.
    """
    if not isinstance(raw, Mapping) or not raw:
        return base
    overrides: dict[str, Any] = {}
    for item in fields(base):  # type: ignore[arg-type]
        if item.name not in raw:
            continue
        current = getattr(base, item.name)
        value = raw[item.name]
        try:
            if isinstance(current, bool) or isinstance(value, bool):
                raise TypeError(item.name)
            if isinstance(current, int):
                overrides[item.name] = int(value)
            else:
                overrides[item.name] = float(value)
        except (TypeError, ValueError):
            LOGGER.warning("Ignoring invalid configuration section %s", type(base).__name__)
            return base
    return replace(base, **overrides)  # type: ignore[type-var]


def _coerce_readiness(raw: Any) -> ReadinessSettings:
    base = ReadinessSettings()
    if not isinstance(raw, Mapping):
        return base
    scalar = {key: value for key, value in raw.items() if key != "weights"}
    settings = _coerce_section(base, scalar)
    weights = _coerce_section(FactorWeights(), raw.get("weights"))
    if any(value < 0 for value in weights.as_mapping().values()):
        LOGGER.warning("Readiness weights must be non-negative; using defaults")
        weights = FactorWeights()
    return replace(settings, weights=weights)


def build_config(raw: Mapping[str, Any]) -> AppConfig:
    """Build an `AppConfig` from a parsed TOML mapping."""
    return AppConfig(
        trend=_coerce_section(TrendThresholds(), raw.get("trend")),
        readiness=_coerce_readiness(raw.get("readiness")),
        anomalies=_coerce_section(AnomalyThresholds(), raw.get("anomalies")),
        cache=_coerce_section(CacheSettings(), raw.get("cache")),
    )


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Load configuration once, falling back to built-in defaults."""
    path = _config_path()
    if not path:
        return AppConfig()
    data = _load_toml(path)
    LOGGER.debug("Loaded analytics configuration from %s", path)
    return build_config(data)


def resolve(config: AppConfig | None) -> AppConfig:
    """Return the explicit override or the process-wide configuration."""
    return config if config is not None else get_config()


def as_dict() -> dict[str, Any]:
    """Return the effective configuration for debug/CLI display."""
    config = get_config()
    readiness = {
        item.name: getattr(config.readiness, item.name)
        for item in fields(config.readiness)
        if item.name != "weights"
    }
    readiness["weights"] = config.readiness.weights.as_mapping()
    return {
        "trend": _section_dict(config.trend),
        "readiness": readiness,
        "anomalies": _section_dict(config.anomalies),
        "cache": _section_dict(config.cache),
        "source": str(_config_path() or "defaults"),
    }


def _section_dict(section: Any) -> dict[str, Any]:
    return {item.name: getattr(section, item.name) for item in fields(section)}
