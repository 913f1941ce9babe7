from __future__ import annotations

import dataclasses

import pytest

from mechanics.geometry import (
    angular_separation,
    body_vector,
    mean_direction,
    observer_position,
    tilt_rotation,
)
from mechanics.orbits import positions_at
from phenomena.catalog import CLUSTER, DOMINANCE, OCCULTATION, CelestialEvent
from solver.predicates import clears_suns, evaluate, optimal_latitude

ROTATION = tilt_rotation(0.0)
DAY = 24.0


def check(event, system, day):
    return evaluate(event, positions_at(day * DAY, system), system, ROTATION)


def test_alignment_met_at_epoch(alignment, system):
    result = check(alignment, system, 0)
    assert result.met
    assert result.viewing_latitude == pytest.approx(0.0)
    assert result.viewing_longitude == 90.0


def test_alignment_not_met_off_alignment(alignment, system):
    assert not check(alignment, system, 30).met
    assert not check(alignment, system, 360).met


def test_alignment_met_again_after_synodic_period(alignment, system):
    assert check(alignment, system, 720).met


def test_wider_tolerance_never_loses_a_hit(alignment, system):
    wide = dataclasses.replace(alignment, longitude_tolerance=5.0)
    for day in range(0, 1500, 7):
        if check(alignment, system, day).met:
            assert check(wide, system, day).met


def test_conjunction_needs_two_primaries(system):
    single = CelestialEvent(
        name="Lonely", description="", type="conjunction",
        primary_bodies=("A",), longitude_tolerance=10.0,
    )
    assert not check(single, system, 0).met


def test_conjunction_min_separation(alignment, system):
    apart = dataclasses.replace(alignment, min_separation=0.1)
    assert not check(apart, system, 0).met
    assert check(alignment, system, 0).met


def test_missing_body_fails_closed(alignment, system):
    ghost = dataclasses.replace(alignment, primary_bodies=("A", "Nowhere"))
    result = check(ghost, system, 0)
    assert not result.met
    assert optimal_latitude(ghost, positions_at(0.0, system), system, ROTATION) is None


def test_no_observer_fails_closed(alignment, planets):
    from bodies.processing import preprocess

    system = preprocess((), planets[1:], 24)
    assert not check(alignment, system, 0).met


def test_spread_floor_relaxes_tolerance(alignment, system):
    relaxed = dataclasses.replace(alignment, spread_floor=15.0)
    assert not check(alignment, system, 30).met
    assert check(relaxed, system, 30).met


def test_tolerance_boundary_is_inclusive(alignment, system):
    snapshot = positions_at(5 * DAY, system)
    latitude = optimal_latitude(alignment, snapshot, system, ROTATION)
    viewpoint = observer_position(snapshot["Sebaka"], 10.0, ROTATION, latitude, alignment.viewing_longitude)
    directions = [body_vector(snapshot[n], viewpoint)[0] for n in alignment.primary_bodies]
    mean = mean_direction(directions)
    spread = max(angular_separation(d, mean) for d in directions)
    assert spread > alignment.longitude_tolerance

    assert check(dataclasses.replace(alignment, longitude_tolerance=spread), system, 5).met
    assert not check(dataclasses.replace(alignment, longitude_tolerance=spread * 0.999), system, 5).met


def test_occultation(system):
    event = CelestialEvent(
        name="A covers B", description="", type=OCCULTATION,
        primary_bodies=("A", "B"), longitude_tolerance=1.0, viewing_longitude=90.0,
    )
    assert check(event, system, 0).met
    assert not check(event, system, 30).met


def test_dominance(system):
    event = CelestialEvent(
        name="A alone", description="", type=DOMINANCE,
        primary_bodies=("A",), secondary_bodies=("B",),
        longitude_tolerance=1.0, min_separation=20.0, viewing_longitude=90.0,
    )
    assert not check(event, system, 0).met
    assert check(event, system, 90).met


def test_cluster_secondaries_within_three_tolerances(planets):
    from bodies.catalog import PLANET, CelestialBody
    from bodies.processing import preprocess

    def system_with_c(phase: float):
        c = CelestialBody(name="C", kind=PLANET, size=5.0, orbit_radius=1500.0, initial_phase=phase)
        return preprocess((), (*planets, c), 24)

    event = CelestialEvent(
        name="Cluster", description="", type=CLUSTER,
        primary_bodies=("A", "B"), secondary_bodies=("C",),
        longitude_tolerance=1.0, viewing_longitude=90.0,
    )
    assert check(event, system_with_c(2.0), 0).met
    assert not check(event, system_with_c(10.0), 0).met


def test_sun_behind_alignment_blocks_clearance(alignment, sunlit_system):
    snapshot = positions_at(0.0, sunlit_system)
    result = evaluate(alignment, snapshot, sunlit_system, ROTATION)
    assert result.met
    assert not clears_suns(alignment, snapshot, sunlit_system, ROTATION,
                           result.viewing_latitude, result.viewing_longitude)


def test_zero_multiplier_always_clears(alignment, sunlit_system):
    event = dataclasses.replace(alignment, sun_separation_multiplier=0.0)
    snapshot = positions_at(0.0, sunlit_system)
    assert clears_suns(event, snapshot, sunlit_system, ROTATION, 0.0, 90.0)


def _disc_system(b_phase: float):
    """A (radius 50) in front of B (radius 200), both roughly along +x."""
    from bodies.catalog import PLANET, CelestialBody
    from bodies.processing import preprocess
    from conftest import OBSERVER

    a = CelestialBody(name="A", kind=PLANET, size=50.0, orbit_radius=1000.0, orbit_period_days=360.0)
    b = CelestialBody(name="B", kind=PLANET, size=200.0, orbit_radius=2000.0,
                      orbit_period_days=720.0, initial_phase=b_phase)
    return preprocess((), (OBSERVER, a, b), 24)


OCCULTATION_EVENT = CelestialEvent(
    name="A covers B", description="", type=OCCULTATION,
    primary_bodies=("A", "B"), longitude_tolerance=10.0, viewing_longitude=90.0,
)


def test_occultation_uses_overlap_adjusted_disc_bound():
    # Seen from the surface A spans ~2.89 deg and B ~5.74 deg.  With the default
    # overlap of 0.1 the discs may sit ~8.06 deg apart; touching discs sit ~8.63.
    assert check(OCCULTATION_EVENT, _disc_system(7.4), 0).met  # ~7.44 deg apart
    assert not check(OCCULTATION_EVENT, _disc_system(8.3), 0).met  # ~8.34 deg apart


def test_occultation_zero_overlap_accepts_touching_discs():
    touching = dataclasses.replace(OCCULTATION_EVENT, overlap_threshold=0.0)
    assert check(touching, _disc_system(8.3), 0).met
    full = dataclasses.replace(OCCULTATION_EVENT, overlap_threshold=1.0)
    assert not check(full, _disc_system(7.4), 0).met
