"""Runtime settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from kernel.errors import ValidationError

from .policy import DEFAULT_ATTEMPTS, MAX_PRIMITIVES, MAX_TRIANGLES, TriangleExplosionThresholds

ENV_PREFIX = "CADBRIDGE_"

ENVIRONMENTS = ("development", "production", "testing")


@dataclass(frozen=True)
class Settings:
    environment: str = "production"
    log_level: Optional[str] = None
    debug_triangulation: bool = False
    max_triangles: int = MAX_TRIANGLES
    max_primitives: int = MAX_PRIMITIVES
    attempts: int = DEFAULT_ATTEMPTS

    @property
    def thresholds(self) -> TriangleExplosionThresholds:
        return TriangleExplosionThresholds(
            max_triangles=self.max_triangles,
            max_primitives=self.max_primitives,
        )


def _int_setting(env: Mapping[str, str], name: str, default: int, minimum: int) -> int:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValidationError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from e
    if value < minimum:
        raise ValidationError(f"{ENV_PREFIX}{name} must be >= {minimum}, got {value}")
    return value


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from ``CADBRIDGE_*`` environment variables.

    Args:
        env: Mapping to read instead of ``os.environ``

    Raises:
        ValidationError: A variable holds an invalid value
    """
    env = os.environ if env is None else env

    environment = env.get(ENV_PREFIX + "ENV", "production").strip().lower()
    if environment not in ENVIRONMENTS:
        raise ValidationError(f"{ENV_PREFIX}ENV must be one of {', '.join(ENVIRONMENTS)}, got {environment!r}")

    log_level = env.get(ENV_PREFIX + "LOG_LEVEL") or None

    return Settings(
        environment=environment,
        log_level=log_level.upper() if log_level else None,
        debug_triangulation=env.get(ENV_PREFIX + "DEBUG_TRIANGULATION") == "1",
        max_triangles=_int_setting(env, "MAX_TRIANGLES", MAX_TRIANGLES, 0),
        max_primitives=_int_setting(env, "MAX_PRIMITIVES", MAX_PRIMITIVES, 0),
        attempts=_int_setting(env, "ATTEMPTS", DEFAULT_ATTEMPTS, 1),
    )
