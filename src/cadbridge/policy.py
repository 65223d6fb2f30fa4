"""Triangulation retry policy.

Defines when a mesh counts as a "triangle explosion" and how deflections
are coarsened on each retry. Coarsening always starts from the original
deflections; it is never compounded across attempts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

# Limits tuned to catch runaway tessellation while allowing large assemblies
MAX_TRIANGLES = 5_000_000
MAX_PRIMITIVES = 50_000

DEFAULT_ATTEMPTS = 3


@dataclass(frozen=True)
class TriangleExplosionThresholds:
    max_triangles: int = MAX_TRIANGLES
    max_primitives: int = MAX_PRIMITIVES


TRIANGLE_EXPLOSION_THRESHOLDS = TriangleExplosionThresholds()


@dataclass(frozen=True)
class TriangulationBase:
    """Deflections requested by the caller, before any coarsening."""

    linear_deflection0: float
    angular_deflection0: float
    parallel: Optional[bool] = None


@dataclass(frozen=True)
class TriangulationAttempt:
    """Meshing parameters for one attempt; ``relative`` is always False."""

    linear_deflection: float
    angular_deflection: float
    relative: bool = False
    parallel: Optional[bool] = None


def is_triangle_explosion(stats, thresholds: TriangleExplosionThresholds = TRIANGLE_EXPLOSION_THRESHOLDS) -> bool:
    """True when triangle or primitive counts exceed the thresholds.

    Args:
        stats: Anything with ``triangles`` and ``primitive_count`` attributes
        thresholds: Limits to compare against
    """
    return stats.triangles > thresholds.max_triangles or stats.primitive_count > thresholds.max_primitives


def schedule_for_attempt(base: TriangulationBase, attempt_index: int) -> TriangulationAttempt:
    """Meshing parameters for ``attempt_index``.

    Attempt 0 uses the base deflections. Attempt 1 doubles the linear
    deflection and scales the angular one by 1.4 (capped at 1.0 rad).
    Later attempts quadruple the linear deflection and scale the angular
    one by 1.8 (capped at 1.2 rad).
    """
    if attempt_index <= 0:
        linear = base.linear_deflection0
        angular = base.angular_deflection0
    elif attempt_index == 1:
        linear = base.linear_deflection0 * 2
        angular = min(1.0, base.angular_deflection0 * 1.4)
    else:
        linear = base.linear_deflection0 * 4
        angular = min(1.2, base.angular_deflection0 * 1.8)

    return TriangulationAttempt(
        linear_deflection=linear,
        angular_deflection=angular,
        relative=False,
        parallel=base.parallel,
    )
