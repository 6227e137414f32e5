"""fitness_analytics package."""

from importlib import metadata
from typing import Any

try:
    __version__ = metadata.version("fitness-analytics")
except metadata.PackageNotFoundError:  # pragma: no cover - fallback for local edits
    __version__ = "0.0.0"

__all__ = ["app", "__version__", "analyze_user", "analyze_readiness"]


def __getattr__(name: str) -> Any:  # pragma: no cover - exercised indirectly
    if name == "app":
        from .cli import app

        return app
    if name == "analyze_user":
        from .services import analyze_user

        return analyze_user
    if name == "analyze_readiness":
        from .readiness import analyze_readiness

        return analyze_readiness
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
