"""Celestial event definitions and the built-in event catalog.

Angles are degrees as seen from the observer planet.  `longitude_tolerance`
is the maximum deviation of each primary body from the mean direction of
the primaries.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger("almanac.phenomena")

CONJUNCTION = "conjunction"
CLUSTER = "cluster"
TRIANGLE = "triangle"
OCCULTATION = "occultation"
DOMINANCE = "dominance"

EVENT_TYPES = (CONJUNCTION, CLUSTER, TRIANGLE, OCCULTATION, DOMINANCE)

DEFAULT_OVERLAP_THRESHOLD = 0.1
DEFAULT_VIEWING_LONGITUDE = 180.0


class EventDefinitionError(ValueError):
    """Raised when an event definition is malformed."""


@dataclass(frozen=True, slots=True)
class CelestialEvent:
    name: str
    description: str
    type: str  # one of EVENT_TYPES
    primary_bodies: tuple[str, ...]
    longitude_tolerance: float
    secondary_bodies: tuple[str, ...] = ()
    min_separation: float | None = None
    overlap_threshold: float | None = None  # fraction 0-1, occultations
    sun_separation_multiplier: float = 1.0
    viewing_longitude: float = DEFAULT_VIEWING_LONGITUDE
    visibility_condition: str | None = None  # "night" | "twilight" | "day", descriptive
    spread_floor: float | None = None  # relaxed spread rule: max(tolerance, floor) only

    def __post_init__(self) -> None:
        if self.type not in EVENT_TYPES:
            raise EventDefinitionError(
                f"{self.name}: type must be one of {', '.join(EVENT_TYPES)}, got '{self.type}'"
            )
        if not self.primary_bodies:
            raise EventDefinitionError(f"{self.name}: at least one primary body is required")
        if self.overlap_threshold is not None and not 0.0 <= self.overlap_threshold <= 1.0:
            raise EventDefinitionError(
                f"{self.name}: overlap_threshold {self.overlap_threshold} outside [0, 1]"
            )
        if self.longitude_tolerance < 0:
            raise EventDefinitionError(f"{self.name}: longitude_tolerance must be >= 0")

    @property
    def relevant_bodies(self) -> tuple[str, ...]:
        return (*self.primary_bodies, *self.secondary_bodies)


# --------------------------------------------------------------------------- #
#  Built-in events
# --------------------------------------------------------------------------- #
CELESTIAL_EVENTS: tuple[CelestialEvent, ...] = (
    CelestialEvent(
        name="Great Conjunction",
        description="Rare near-alignment of Rutilis, Spectris, Viridis and Aetheris "
                    "in a \"Celestial Crescent\", a prophetic event.",
        type=CONJUNCTION,
        primary_bodies=("Rutilis", "Spectris", "Viridis", "Aetheris"),
        longitude_tolerance=10.0,
        viewing_longitude=180.0,
        visibility_condition="night",
        spread_floor=15.0,
    ),
    CelestialEvent(
        name="Gathering of Witnesses",
        description="Annual visibility of Rutilis, Spectris, Viridis and Aetheris in a loose arc.",
        type=CLUSTER,
        primary_bodies=("Rutilis", "Spectris", "Viridis", "Aetheris"),
        secondary_bodies=("Beacon",),
        longitude_tolerance=15.0,
        viewing_longitude=270.0,
        visibility_condition="night",
    ),
    CelestialEvent(
        name="Twin Conjunction",
        description="Rutilis and Spectris appear close, the \"Double Ember\".",
        type=CONJUNCTION,
        primary_bodies=("Rutilis", "Spectris"),
        longitude_tolerance=5.0,
        min_separation=2.0,
        viewing_longitude=240.0,
        visibility_condition="twilight",
    ),
    CelestialEvent(
        name="Triad Alignment",
        description="Rutilis, Spectris and Viridis form the \"Triad Lantern\".",
        type=TRIANGLE,
        primary_bodies=("Rutilis", "Spectris", "Viridis"),
        longitude_tolerance=10.0,
        viewing_longitude=210.0,
        visibility_condition="night",
    ),
    CelestialEvent(
        name="Quadrant Convergence",
        description="Rutilis, Spectris, Viridis and Aetheris align, the \"Quadrant Veil\".",
        type=CONJUNCTION,
        primary_bodies=("Rutilis", "Spectris", "Viridis", "Aetheris"),
        longitude_tolerance=15.0,
        viewing_longitude=270.0,
        visibility_condition="night",
    ),
    CelestialEvent(
        name="Aetheris Dominance",
        description="Aetheris stands alone in the sky, the \"Blue Halo\".",
        type=DOMINANCE,
        primary_bodies=("Aetheris",),
        secondary_bodies=("Spectris", "Viridis"),
        longitude_tolerance=0.5,
        min_separation=20.0,
        viewing_longitude=180.0,
        visibility_condition="night",
    ),
    CelestialEvent(
        name="Pre-Conjunction Prelude",
        description="Near-alignment of the inner planets, the \"Pre-Conjunction Blaze\".",
        type=CLUSTER,
        primary_bodies=("Rutilis", "Spectris", "Viridis", "Aetheris"),
        longitude_tolerance=20.0,
        viewing_longitude=90.0,
        visibility_condition="night",
    ),
    CelestialEvent(
        name="Spectris-Viridis Occultation",
        description="Rare eclipse, the \"Ringed Eclipse\".",
        type=OCCULTATION,
        primary_bodies=("Spectris", "Viridis"),
        longitude_tolerance=0.35,
        overlap_threshold=0.5,
        viewing_longitude=170.0,
    ),
    CelestialEvent(
        name="Spectris-Aetheris Occultation",
        description="Rare \"Giant's Veil\" eclipse.",
        type=OCCULTATION,
        primary_bodies=("Spectris", "Aetheris"),
        longitude_tolerance=0.7,
        overlap_threshold=0.5,
        viewing_longitude=185.0,
    ),
    CelestialEvent(
        name="Viridis-Aetheris Occultation",
        description="Rare \"Storm Shroud\" eclipse.",
        type=OCCULTATION,
        primary_bodies=("Viridis", "Aetheris"),
        longitude_tolerance=0.65,
        overlap_threshold=0.5,
        viewing_longitude=190.0,
    ),
    CelestialEvent(
        name="Triple Cascade",
        description="Extremely rare occultation of all three, the \"Triple Cascade\".",
        type=OCCULTATION,
        primary_bodies=("Viridis", "Spectris", "Aetheris"),
        longitude_tolerance=1.0,
        overlap_threshold=0.3,
        viewing_longitude=188.0,
    ),
    CelestialEvent(
        name="Inner Conjunction",
        description="A rare alignment where all inner planets eclipse each other.",
        type=OCCULTATION,
        primary_bodies=("Rutilis", "Spectris", "Viridis", "Aetheris"),
        longitude_tolerance=1.0,
        overlap_threshold=0.3,
        viewing_longitude=180.0,
    ),
    CelestialEvent(
        name="The Great Eclipse",
        description="Spectris passes across the disk of Beacon.",
        type=OCCULTATION,
        primary_bodies=("Spectris", "Beacon"),
        longitude_tolerance=1.0,
        overlap_threshold=0.2,
        sun_separation_multiplier=0.0,
        viewing_longitude=180.0,
        visibility_condition="day",
    ),
    CelestialEvent(
        name="Celestial Origin Alignment",
        description="Beacon, Rutilis and Spectris line up over the binary suns.",
        type=CONJUNCTION,
        primary_bodies=("Beacon", "Rutilis", "Spectris"),
        longitude_tolerance=5.0,
        sun_separation_multiplier=0.0,
        viewing_longitude=180.0,
        visibility_condition="twilight",
    ),
)

EVENT_BY_NAME: dict[str, CelestialEvent] = {e.name: e for e in CELESTIAL_EVENTS}


# --------------------------------------------------------------------------- #
#  JSON catalogs
# --------------------------------------------------------------------------- #
_FIELDS = {
    "primaryBodies": "primary_bodies",
    "secondaryBodies": "secondary_bodies",
    "longitudeTolerance": "longitude_tolerance",
    "minSeparation": "min_separation",
    "overlapThreshold": "overlap_threshold",
    "sunSeparationMultiplier": "sun_separation_multiplier",
    "viewingLongitude": "viewing_longitude",
    "visibilityCondition": "visibility_condition",
    "spreadFloor": "spread_floor",
}


def event_from_dict(raw: dict) -> CelestialEvent:
    data = {_FIELDS.get(k, k): v for k, v in raw.items()}
    for key in ("primary_bodies", "secondary_bodies"):
        if key in data:
            data[key] = tuple(data[key] or ())
    data.setdefault("description", "")
    allowed = set(CelestialEvent.__dataclass_fields__)
    try:
        return CelestialEvent(**{k: v for k, v in data.items() if k in allowed})
    except TypeError as e:
        raise EventDefinitionError(f"Invalid event record {raw!r}: {e}") from e


def load_events(path: Path) -> tuple[CelestialEvent, ...]:
    """Load a JSON list of event definitions."""
    try:
        with open(path, encoding="utf-8") as f:
            doc = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise EventDefinitionError(f"Cannot read event catalog {path}: {e}") from e

    if not isinstance(doc, list):
        raise EventDefinitionError(f"Event catalog {path} must be a JSON list")

    events = tuple(event_from_dict(r) for r in doc)
    names = [e.name for e in events]
    if len(set(names)) != len(names):
        raise EventDefinitionError(f"Event catalog {path} has duplicate event names")
    logger.info("Loaded %d event definitions from %s", len(events), path)
    return events


def events_from_settings() -> dict[str, CelestialEvent]:
    """Configured events by name: the JSON file at settings.events_path, else the built-ins."""
    from config import settings

    if settings.events_path is not None:
        return {e.name: e for e in load_events(settings.events_path)}
    return dict(EVENT_BY_NAME)
