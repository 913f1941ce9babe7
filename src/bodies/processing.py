"""Catalog preprocessing — derive per-body angular rates and resolve orbit roles.

Runs once per catalog.  The result is memoized on the (frozen) catalog
tuples, so editing a body produces a new key rather than mutating a cached
system.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from functools import lru_cache

from bodies.catalog import STAR, CelestialBody, validate_catalog

logger = logging.getLogger("almanac.bodies")

TWO_PI = 2.0 * math.pi


@dataclass(frozen=True, slots=True)
class ProcessedBody:
    name: str
    kind: str
    size: float
    orbit_radius: float  # 0 for non-orbiting bodies
    rads_per_hour: float  # 0 for infinite / absent periods
    initial_phase_rad: float
    eccentricity: float  # effective: 0 unless the body is flagged eccentric
    axial_tilt: float
    orbit_center: str | None
    binary_sign: int | None
    observer: bool
    orbit_period_days: float | None


@dataclass(frozen=True)
class BodySystem:
    """Processed catalog, bodies in dependency order (centers before satellites)."""

    bodies: tuple[ProcessedBody, ...]
    hours_per_day: int
    observer: ProcessedBody | None = None
    suns: tuple[ProcessedBody, ...] = ()
    by_name: dict[str, ProcessedBody] = field(default_factory=dict, compare=False, hash=False)

    def __len__(self) -> int:
        return len(self.bodies)

    def __contains__(self, name: str) -> bool:
        return name in self.by_name

    def get(self, name: str) -> ProcessedBody | None:
        return self.by_name.get(name)

    @property
    def planets(self) -> tuple[ProcessedBody, ...]:
        return tuple(b for b in self.bodies if b.kind != STAR)


def rads_per_hour(period_days: float | None, hours_per_day: int) -> float:
    if period_days is None or not math.isfinite(period_days) or period_days <= 0:
        return 0.0
    return TWO_PI / (period_days * hours_per_day)


def process_body(body: CelestialBody, hours_per_day: int) -> ProcessedBody:
    ecc = body.eccentricity if body.eccentric and body.eccentricity > 0 else 0.0
    return ProcessedBody(
        name=body.name,
        kind=body.kind,
        size=body.size,
        orbit_radius=body.orbit_radius or 0.0,
        rads_per_hour=rads_per_hour(body.orbit_period_days, hours_per_day),
        initial_phase_rad=math.radians(body.initial_phase),
        eccentricity=ecc,
        axial_tilt=body.axial_tilt,
        orbit_center=body.orbit_center,
        binary_sign=body.binary_sign,
        observer=body.observer,
        orbit_period_days=body.orbit_period_days,
    )


@lru_cache(maxsize=16)
def preprocess(
    stars: tuple[CelestialBody, ...],
    planets: tuple[CelestialBody, ...],
    hours_per_day: int = 24,
) -> BodySystem:
    """Build the BodySystem for a catalog.

    Raises CatalogError for catalogs the position model cannot evaluate
    (unknown or nested orbit centers, duplicate names, ...).
    """
    validate_catalog(stars, planets)

    processed = [process_body(b, hours_per_day) for b in (*stars, *planets)]

    # Single-level dependency: bodies orbiting the origin first, satellites after
    ordered = tuple(
        [b for b in processed if b.orbit_center is None]
        + [b for b in processed if b.orbit_center is not None]
    )

    observer = next((b for b in ordered if b.observer), None)
    if observer is None:
        logger.warning("Catalog has no observer body; every event check will fail closed")

    system = BodySystem(
        bodies=ordered,
        hours_per_day=hours_per_day,
        observer=observer,
        suns=tuple(b for b in ordered if b.kind == STAR),
        by_name={b.name: b for b in ordered},
    )
    logger.debug("Preprocessed catalog: %d bodies (%d suns)", len(system), len(system.suns))
    return system
