from __future__ import annotations

import os

PRIMARY_PREFIX = "FITNESS_ANALYTICS_"


def get_env(name: str, default: str | None = None) -> str | None:
    """
    Resolve configuration environment variables.

    Every setting is namespaced with the `FITNESS_ANALYTICS_` prefix so the
    engine can be embedded next to other services without collisions.
    """
    value = os.getenv(f"{PRIMARY_PREFIX}{name}")
    if value is not None:
        return value
    return default
