"""Body catalog for the Sebaka system.

Distances and sizes are in scene units (1 AU = 150 units), periods in
simulated days, phases and tilts in degrees.  Orbit roles (binary member,
satellite of another body, observer) are explicit fields so the position
model and the solver never special-case body names.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger("almanac.bodies")

STAR = "Star"
PLANET = "Planet"


class CatalogError(ValueError):
    """Raised when a body catalog is malformed."""


@dataclass(frozen=True, slots=True)
class CelestialBody:
    name: str
    kind: str  # "Star" or "Planet"
    size: float  # radius, scene units
    orbit_radius: float | None = None  # semi-major axis; None = does not orbit
    orbit_period_days: float | None = None  # None = infinite period
    initial_phase: float = 0.0  # degrees at hours = 0
    eccentric: bool = False
    eccentricity: float = 0.0
    axial_tilt: float = 0.0  # degrees
    color: str = "#FFFFFF"  # hex hint for frontend
    orbit_center: str | None = None  # name of the body orbited (None = origin)
    binary_sign: int | None = None  # +1 / -1 for the two binary-star members
    observer: bool = False


# --------------------------------------------------------------------------- #
#  Stars
# --------------------------------------------------------------------------- #
ALPHA = CelestialBody(
    name="Alpha", kind=STAR, size=8.0,
    orbit_period_days=60.0, initial_phase=0.0,
    color="#FFF4E0", binary_sign=-1,
)
TWILIGHT = CelestialBody(
    name="Twilight", kind=STAR, size=5.5,
    orbit_period_days=60.0, initial_phase=0.0,
    color="#FFB46B", binary_sign=1,
)
BEACON = CelestialBody(
    name="Beacon", kind=STAR, size=6.0,
    orbit_radius=900.0, orbit_period_days=12_225.0, initial_phase=200.0,
    color="#BFD8FF",
)

# --------------------------------------------------------------------------- #
#  Planets around the binary
# --------------------------------------------------------------------------- #
RUTILIS = CelestialBody(
    name="Rutilis", kind=PLANET, size=1.6,
    orbit_radius=50.0, orbit_period_days=160.0, initial_phase=35.0,
    axial_tilt=4.0, color="#C1440E",
)
SEBAKA = CelestialBody(
    name="Sebaka", kind=PLANET, size=2.5,
    orbit_radius=80.0, orbit_period_days=324.0, initial_phase=0.0,
    axial_tilt=23.5, color="#4F8FBF", observer=True,
)
SPECTRIS = CelestialBody(
    name="Spectris", kind=PLANET, size=2.2,
    orbit_radius=110.0, orbit_period_days=522.0, initial_phase=140.0,
    axial_tilt=12.0, color="#B7A6E0",
)
VIRIDIS = CelestialBody(
    name="Viridis", kind=PLANET, size=2.0,
    orbit_radius=150.0, orbit_period_days=832.0, initial_phase=250.0,
    axial_tilt=27.0, color="#3FA34D",
)
AETHERIS = CelestialBody(
    name="Aetheris", kind=PLANET, size=3.4,
    orbit_radius=220.0, orbit_period_days=1_478.0, initial_phase=300.0,
    eccentric=True, eccentricity=0.2, axial_tilt=8.0, color="#6FA8DC",
)

# --------------------------------------------------------------------------- #
#  Planets around Beacon
# --------------------------------------------------------------------------- #
GELIDIS = CelestialBody(
    name="Gelidis", kind=PLANET, size=1.2,
    orbit_radius=30.0, orbit_period_days=150.0, initial_phase=90.0,
    color="#DDEEFF", orbit_center="Beacon",
)
LIMINIS = CelestialBody(
    name="Liminis", kind=PLANET, size=1.4,
    orbit_radius=50.0, orbit_period_days=320.0, initial_phase=270.0,
    color="#9A8FB0", orbit_center="Beacon",
)

# --------------------------------------------------------------------------- #
#  Lookup tables
# --------------------------------------------------------------------------- #
DEFAULT_STARS: tuple[CelestialBody, ...] = (ALPHA, TWILIGHT, BEACON)
DEFAULT_PLANETS: tuple[CelestialBody, ...] = (
    RUTILIS, SEBAKA, SPECTRIS, VIRIDIS, AETHERIS, GELIDIS, LIMINIS,
)


def body_by_name(
    stars: tuple[CelestialBody, ...], planets: tuple[CelestialBody, ...]
) -> dict[str, CelestialBody]:
    return {b.name: b for b in (*stars, *planets)}


def validate_catalog(
    stars: tuple[CelestialBody, ...], planets: tuple[CelestialBody, ...]
) -> None:
    """Raise CatalogError if the catalog cannot be simulated."""
    bodies = (*stars, *planets)
    names = [b.name for b in bodies]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise CatalogError(f"Duplicate body names: {', '.join(duplicates)}")

    lookup = body_by_name(stars, planets)
    observers = [b.name for b in bodies if b.observer]
    if len(observers) > 1:
        raise CatalogError(f"More than one observer body: {', '.join(observers)}")

    for b in stars:
        if b.kind != STAR:
            raise CatalogError(f"{b.name}: listed as a star but kind is '{b.kind}'")
    for b in planets:
        if b.kind != PLANET:
            raise CatalogError(f"{b.name}: listed as a planet but kind is '{b.kind}'")

    for b in bodies:
        if not 0.0 <= b.eccentricity < 1.0:
            raise CatalogError(f"{b.name}: eccentricity {b.eccentricity} outside [0, 1)")
        if b.binary_sign not in (None, 1, -1):
            raise CatalogError(f"{b.name}: binary_sign must be +1 or -1, got {b.binary_sign}")
        if b.orbit_center is None:
            continue
        center = lookup.get(b.orbit_center)
        if center is None:
            raise CatalogError(f"{b.name}: unknown orbit center '{b.orbit_center}'")
        if center.orbit_center is not None:
            raise CatalogError(
                f"{b.name}: orbit center '{center.name}' itself orbits "
                f"'{center.orbit_center}' (only one level of satellites is supported)"
            )


# --------------------------------------------------------------------------- #
#  JSON catalogs
# --------------------------------------------------------------------------- #
_FIELDS = {
    "orbitRadius": "orbit_radius",
    "orbitPeriodDays": "orbit_period_days",
    "initialPhase": "initial_phase",
    "axialTilt": "axial_tilt",
    "orbitCenter": "orbit_center",
    "binarySign": "binary_sign",
}


def _body_from_dict(raw: dict, kind: str) -> CelestialBody:
    data = {_FIELDS.get(k, k): v for k, v in raw.items()}
    data.setdefault("kind", kind)
    allowed = set(CelestialBody.__dataclass_fields__)
    unknown = sorted(set(data) - allowed)
    if unknown:
        logger.debug("Ignoring unknown body fields %s for %s", unknown, data.get("name"))
    try:
        return CelestialBody(**{k: v for k, v in data.items() if k in allowed})
    except TypeError as e:
        raise CatalogError(f"Invalid body record {raw!r}: {e}") from e


def load_catalog(path: Path) -> tuple[tuple[CelestialBody, ...], tuple[CelestialBody, ...]]:
    """Load `{"stars": [...], "planets": [...]}` from a JSON file."""
    try:
        with open(path, encoding="utf-8") as f:
            doc = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogError(f"Cannot read body catalog {path}: {e}") from e

    if not isinstance(doc, dict):
        raise CatalogError(f"Body catalog {path} must be a JSON object")

    stars = tuple(_body_from_dict(r, STAR) for r in doc.get("stars", []))
    planets = tuple(_body_from_dict(r, PLANET) for r in doc.get("planets", []))
    validate_catalog(stars, planets)
    logger.info("Loaded body catalog %s (%d stars, %d planets)", path, len(stars), len(planets))
    return stars, planets


def catalog_from_settings() -> tuple[tuple[CelestialBody, ...], tuple[CelestialBody, ...]]:
    """Configured catalog: the JSON file at settings.catalog_path, else the built-in one."""
    from config import settings

    if settings.catalog_path is not None:
        return load_catalog(settings.catalog_path)
    return DEFAULT_STARS, DEFAULT_PLANETS
