"""Orbital position model — body positions at an arbitrary simulated time.

Positions are a pure function of `hours`: every call recomputes each angle
from the body's initial phase, so the search engine can evaluate time points
in any order without accumulating error.  Orbits lie in the x/z plane.

Scalar inner kernels are JIT-compiled with Numba.
"""

from __future__ import annotations

import math

import numpy as np
from numba import njit

from bodies.processing import BodySystem, ProcessedBody
from config import settings

# --------------------------------------------------------------------------- #
#  Constants
# --------------------------------------------------------------------------- #
TWO_PI = 2.0 * math.pi


# --------------------------------------------------------------------------- #
#  Kernels
# --------------------------------------------------------------------------- #
@njit(cache=True)
def orbit_angle(initial_phase_rad: float, rads_per_hour: float, hours: float) -> float:
    """Instantaneous orbit angle in [0, 2pi)."""
    angle = (initial_phase_rad + hours * rads_per_hour) % TWO_PI
    if angle < 0.0:
        angle += TWO_PI
    return angle


@njit(cache=True)
def circular_offset(angle: float, radius: float) -> tuple:
    return radius * math.cos(angle), radius * math.sin(angle)


@njit(cache=True)
def focal_ellipse_offset(angle: float, a: float, ecc: float) -> tuple:
    """Offset on an ellipse whose focus (not center) sits at the orbit center.

    The ellipse center is shifted by a*e along +x, so the parent body lies
    on a focus and the time-averaged focal distance equals `a`.
    """
    b = a * math.sqrt(1.0 - ecc * ecc)
    return a * ecc + a * math.cos(angle), b * math.sin(angle)


@njit(cache=True)
def binary_offset(angle: float, half_separation: float, sign: float) -> tuple:
    """Binary member offset; the two members (sign +1/-1) stay opposed."""
    return sign * half_separation * math.cos(angle), sign * half_separation * math.sin(angle)


# --------------------------------------------------------------------------- #
#  Public API
# --------------------------------------------------------------------------- #
def body_offset(body: ProcessedBody, hours: float, half_separation: float) -> tuple[float, float]:
    """(x, z) offset of a body from its orbit center at `hours`."""
    angle = orbit_angle(body.initial_phase_rad, body.rads_per_hour, float(hours))
    if body.binary_sign is not None:
        return binary_offset(angle, half_separation, float(body.binary_sign))
    if body.eccentricity > 0.0:
        return focal_ellipse_offset(angle, body.orbit_radius, body.eccentricity)
    return circular_offset(angle, body.orbit_radius)


def positions_at(
    hours: float,
    system: BodySystem,
    half_separation: float | None = None,
) -> dict[str, np.ndarray]:
    """Compute the position snapshot {name: (x, y, z)} at `hours`.

    Bodies are evaluated in the system's dependency order, so a satellite's
    orbit center is always resolved before the satellite itself.
    """
    if half_separation is None:
        half_separation = settings.binary_half_separation

    origin = np.zeros(3, dtype=np.float64)
    positions: dict[str, np.ndarray] = {}

    for body in system.bodies:
        center = origin
        if body.orbit_center is not None:
            center = positions.get(body.orbit_center, origin)

        dx, dz = body_offset(body, hours, half_separation)
        positions[body.name] = np.array(
            [center[0] + dx, center[1], center[2] + dz], dtype=np.float64
        )

    return positions


def snapshot_to_dict(snapshot: dict[str, np.ndarray]) -> dict[str, dict[str, float]]:
    """JSON-friendly view of a snapshot for rendering clients."""
    return {
        name: {"x": float(p[0]), "y": float(p[1]), "z": float(p[2])}
        for name, p in snapshot.items()
    }
