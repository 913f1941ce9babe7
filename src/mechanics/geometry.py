"""Observer geometry — viewpoints on the observer planet and angular measures.

Handles:
- Apparent (angular) radius of a body
- Placing an observer on a tilted planet surface at (latitude, longitude)
- Direction / distance from the observer to a body
- Angular separation between directions
"""

from __future__ import annotations

import math

import numpy as np
from numba import njit
from scipy.spatial.transform import Rotation

# Axis the observer planet is tilted around
TILT_AXIS = np.array([0.0, 0.0, 1.0])


def apparent_radius(body_size: float, distance: float) -> float:
    """Angular half-diameter in degrees of a body of radius `body_size`."""
    return math.degrees(math.atan(body_size / distance))


# --------------------------------------------------------------------------- #
#  Observer placement
# --------------------------------------------------------------------------- #
def tilt_rotation(axial_tilt_deg: float) -> Rotation:
    """Rotation applied to surface offsets for a planet with the given tilt."""
    return Rotation.from_rotvec(TILT_AXIS * math.radians(axial_tilt_deg))


def surface_offset(radius: float, latitude: float, longitude: float) -> np.ndarray:
    """Untilted surface offset for (latitude, longitude) in degrees.

    Polar angle is measured from +y (phi = 90 - latitude), azimuth from +z
    towards +x.
    """
    phi = math.radians(90.0 - latitude)
    theta = math.radians(longitude)
    sin_phi = math.sin(phi)
    return np.array([
        radius * sin_phi * math.sin(theta),
        radius * math.cos(phi),
        radius * sin_phi * math.cos(theta),
    ], dtype=np.float64)


def observer_position(
    planet_pos: np.ndarray,
    radius: float,
    rotation: Rotation,
    latitude: float,
    longitude: float,
) -> np.ndarray:
    """World-space point on the planet surface at (latitude, longitude)."""
    return planet_pos + rotation.apply(surface_offset(radius, latitude, longitude))


# --------------------------------------------------------------------------- #
#  Directions and angles
# --------------------------------------------------------------------------- #
def body_vector(target: np.ndarray, observer: np.ndarray) -> tuple[np.ndarray, float]:
    """Unit direction and distance from `observer` to `target`."""
    vec = target - observer
    distance = float(np.linalg.norm(vec))
    if distance == 0.0:
        return vec, 0.0
    return vec / distance, distance


@njit(cache=True)
def _angle_between(u: np.ndarray, v: np.ndarray) -> float:
    nu = math.sqrt(u[0] * u[0] + u[1] * u[1] + u[2] * u[2])
    nv = math.sqrt(v[0] * v[0] + v[1] * v[1] + v[2] * v[2])
    denom = nu * nv
    if denom == 0.0:
        return math.pi / 2.0
    cos_angle = (u[0] * v[0] + u[1] * v[1] + u[2] * v[2]) / denom
    cos_angle = max(-1.0, min(1.0, cos_angle))
    return math.acos(cos_angle)


def angular_separation(u: np.ndarray, v: np.ndarray) -> float:
    """Angle in degrees between two directions (0 identical, 180 opposite)."""
    return math.degrees(_angle_between(u, v))


def mean_direction(vectors: list[np.ndarray]) -> np.ndarray:
    """Normalized sum of direction vectors."""
    total = np.sum(vectors, axis=0)
    norm = np.linalg.norm(total)
    if norm == 0.0:
        return total
    return total / norm
