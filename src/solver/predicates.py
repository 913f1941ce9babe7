"""Event predicate evaluator — is an event occurring in a position snapshot?

Evaluation never raises for missing bodies: an event that references a body
without a catalog entry or a position simply fails closed (met=False), so the
search loop can keep scanning.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np
from scipy.spatial.transform import Rotation

from bodies.processing import BodySystem, ProcessedBody
from mechanics.geometry import (
    angular_separation,
    apparent_radius,
    body_vector,
    mean_direction,
    observer_position,
)
from phenomena.catalog import (
    CLUSTER,
    CONJUNCTION,
    DEFAULT_OVERLAP_THRESHOLD,
    DOMINANCE,
    OCCULTATION,
    TRIANGLE,
    CelestialEvent,
)

logger = logging.getLogger("almanac.predicates")

# Secondary bodies of clusters/triangles may sit this many tolerances away
SECONDARY_TOLERANCE_FACTOR = 3.0


@dataclass(frozen=True, slots=True)
class EventCheck:
    met: bool
    viewing_latitude: float
    viewing_longitude: float


@dataclass(slots=True)
class BodyView:
    """A body as seen from the observer."""
    name: str
    body: ProcessedBody
    direction: np.ndarray  # unit vector
    distance: float
    apparent_radius: float


def _view(
    name: str,
    snapshot: dict[str, np.ndarray],
    system: BodySystem,
    observer_pos: np.ndarray,
) -> BodyView | None:
    body = system.get(name)
    pos = snapshot.get(name)
    if body is None or pos is None:
        return None
    direction, distance = body_vector(pos, observer_pos)
    if distance == 0.0:
        return None
    return BodyView(name, body, direction, distance, apparent_radius(body.size, distance))


def optimal_latitude(
    event: CelestialEvent,
    snapshot: dict[str, np.ndarray],
    system: BodySystem,
    rotation: Rotation,
) -> float | None:
    """Latitude that roughly centers the primaries vertically in the sky.

    First-order heuristic: average the y components of the directions seen
    from latitude 0 and take -asin of the mean.  Returns None when a primary
    is missing.
    """
    observer = system.observer
    planet_pos = snapshot.get(observer.name)
    viewpoint = observer_position(planet_pos, observer.size, rotation, 0.0, event.viewing_longitude)

    total_y = 0.0
    for name in event.primary_bodies:
        view = _view(name, snapshot, system, viewpoint)
        if view is None:
            return None
        total_y += view.direction[1]
    avg_y = max(-1.0, min(1.0, total_y / len(event.primary_bodies)))
    return -math.degrees(math.asin(avg_y))


def _within_spread(views: list[BodyView], tolerance: float) -> tuple[bool, np.ndarray]:
    mean = mean_direction([v.direction for v in views])
    for v in views:
        if angular_separation(v.direction, mean) > tolerance:
            return False, mean
    return True, mean


def _pairwise_at_least(views: list[BodyView], min_separation: float) -> bool:
    for i in range(len(views)):
        for j in range(i + 1, len(views)):
            if angular_separation(views[i].direction, views[j].direction) < min_separation:
                return False
    return True


def _conjunction(event: CelestialEvent, primaries: list[BodyView]) -> bool:
    if len(primaries) < 2:
        return False
    ok, _ = _within_spread(primaries, event.longitude_tolerance)
    if not ok:
        return False
    if event.min_separation:
        return _pairwise_at_least(primaries, event.min_separation)
    return True


def _cluster(event: CelestialEvent, primaries: list[BodyView], secondaries: list[BodyView]) -> bool:
    ok, mean = _within_spread(primaries, event.longitude_tolerance)
    if not ok:
        return False
    limit = event.longitude_tolerance * SECONDARY_TOLERANCE_FACTOR
    return all(angular_separation(v.direction, mean) <= limit for v in secondaries)


def _occultation(event: CelestialEvent, primaries: list[BodyView]) -> bool:
    if len(primaries) < 2:
        return False
    overlap = event.overlap_threshold
    if overlap is None:
        overlap = DEFAULT_OVERLAP_THRESHOLD

    # Nearest first; only adjacent foreground/background pairs are compared
    ordered = sorted(primaries, key=lambda v: v.distance)
    for fg, bg in zip(ordered, ordered[1:]):
        max_separation = fg.apparent_radius + bg.apparent_radius * (1.0 - overlap)
        if angular_separation(fg.direction, bg.direction) > max_separation:
            return False

    ok, _ = _within_spread(ordered, event.longitude_tolerance)
    return ok


def _dominance(event: CelestialEvent, primaries: list[BodyView], secondaries: list[BodyView]) -> bool:
    if not secondaries or not event.min_separation or not primaries:
        return False
    dominant = primaries[0].direction
    return all(
        angular_separation(dominant, v.direction) >= event.min_separation
        for v in secondaries
    )


def evaluate(
    event: CelestialEvent,
    snapshot: dict[str, np.ndarray],
    system: BodySystem,
    rotation: Rotation,
) -> EventCheck:
    """Decide whether `event` is occurring in `snapshot`.

    `rotation` is the observer planet's tilt (see mechanics.geometry.tilt_rotation).
    Returns the verdict plus the suggested viewing latitude/longitude.
    """
    longitude = event.viewing_longitude
    observer = system.observer
    if observer is None or observer.name not in snapshot:
        return EventCheck(False, 0.0, longitude)

    latitude = optimal_latitude(event, snapshot, system, rotation)
    if latitude is None:
        return EventCheck(False, 0.0, longitude)

    viewpoint = observer_position(
        snapshot[observer.name], observer.size, rotation, latitude, longitude
    )

    primaries = [_view(n, snapshot, system, viewpoint) for n in event.primary_bodies]
    secondaries = [_view(n, snapshot, system, viewpoint) for n in event.secondary_bodies]
    if any(v is None for v in primaries) or any(v is None for v in secondaries):
        return EventCheck(False, latitude, longitude)

    if event.spread_floor is not None:
        met, _ = _within_spread(primaries, max(event.longitude_tolerance, event.spread_floor))
    elif event.type == CONJUNCTION:
        met = _conjunction(event, primaries)
    elif event.type in (CLUSTER, TRIANGLE):
        met = _cluster(event, primaries, secondaries)
    elif event.type == OCCULTATION:
        met = _occultation(event, primaries)
    elif event.type == DOMINANCE:
        met = _dominance(event, primaries, secondaries)
    else:
        met = False

    return EventCheck(met, latitude, longitude)


def clears_suns(
    event: CelestialEvent,
    snapshot: dict[str, np.ndarray],
    system: BodySystem,
    rotation: Rotation,
    latitude: float,
    longitude: float,
) -> bool:
    """True when every primary keeps its distance from every sun.

    Required separation is (primary apparent radius + sun apparent radius)
    scaled by the event's sun_separation_multiplier.  Missing bodies fail.
    """
    observer = system.observer
    if observer is None or observer.name not in snapshot:
        return False
    viewpoint = observer_position(
        snapshot[observer.name], observer.size, rotation, latitude, longitude
    )

    suns = []
    for sun in system.suns:
        view = _view(sun.name, snapshot, system, viewpoint)
        if view is not None:
            suns.append(view)

    for name in event.primary_bodies:
        primary = _view(name, snapshot, system, viewpoint)
        if primary is None:
            return False
        for sun in suns:
            if sun.name == primary.name:
                continue
            required = (primary.apparent_radius + sun.apparent_radius) * event.sun_separation_multiplier
            if angular_separation(primary.direction, sun.direction) < required:
                return False
    return True
