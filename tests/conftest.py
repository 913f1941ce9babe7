"""Shared fixtures: a small, hand-checkable star system.

The observer sits at the origin and never moves.  Two planets A and B start
co-linear with it along +x; A laps B every 720 days, so they line up again
(seen from the observer) near multiples of 720 days.
"""

from __future__ import annotations

import pytest

from bodies.catalog import PLANET, STAR, CelestialBody
from bodies.processing import preprocess
from phenomena.catalog import CONJUNCTION, CelestialEvent
from solver.engine import SearchLimits

HOURS_PER_DAY = 24
ALIGNMENT_HOURS = 720 * HOURS_PER_DAY

OBSERVER = CelestialBody(name="Sebaka", kind=PLANET, size=10.0, observer=True)
PLANET_A = CelestialBody(
    name="A", kind=PLANET, size=5.0, orbit_radius=1000.0, orbit_period_days=360.0,
)
PLANET_B = CelestialBody(
    name="B", kind=PLANET, size=5.0, orbit_radius=2000.0, orbit_period_days=720.0,
)


@pytest.fixture
def planets() -> tuple[CelestialBody, ...]:
    return (OBSERVER, PLANET_A, PLANET_B)


@pytest.fixture
def system(planets):
    return preprocess((), planets, HOURS_PER_DAY)


@pytest.fixture
def sunlit_system(planets):
    """Same system plus a fixed sun sitting behind A and B on the +x axis."""
    sun = CelestialBody(name="Sol", kind=STAR, size=20.0, orbit_radius=3000.0)
    return preprocess((sun,), planets, HOURS_PER_DAY)


@pytest.fixture
def alignment() -> CelestialEvent:
    return CelestialEvent(
        name="A-B Alignment",
        description="A and B line up as seen from Sebaka",
        type=CONJUNCTION,
        primary_bodies=("A", "B"),
        longitude_tolerance=1.0,
        min_separation=0.0,
        viewing_longitude=90.0,
    )


def make_limits(**overrides) -> SearchLimits:
    values = dict(
        escape_step_days=30.0,
        escape_budget_years=2.0,
        window_min_half_days=10.0,
        window_max_iterations=10_000,
        lookahead_years=50.0,
        broad_scan_years=5.0,
        broad_max_iterations=100_000,
        stable_days=2,
        yield_every=500,
        cache_size=50,
    )
    values.update(overrides)
    return SearchLimits(**values)


@pytest.fixture
def limits() -> SearchLimits:
    return make_limits()
