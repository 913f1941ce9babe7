from __future__ import annotations

import math

import numpy as np
import pytest

from bodies.catalog import DEFAULT_PLANETS, DEFAULT_STARS, PLANET, STAR, CatalogError, CelestialBody
from bodies.processing import preprocess
from mechanics.orbits import orbit_angle, positions_at, snapshot_to_dict


def test_positions_are_deterministic(system):
    first = positions_at(12_345.6, system)
    second = positions_at(12_345.6, system)
    assert first.keys() == second.keys()
    for name in first:
        np.testing.assert_array_equal(first[name], second[name])


def test_positions_repeat_after_one_period(system):
    start = positions_at(100.0, system)
    later = positions_at(100.0 + 360 * 24, system)
    np.testing.assert_allclose(later["A"], start["A"], atol=1e-6)


def test_initial_phase_places_body_on_x_axis(system):
    snapshot = positions_at(0.0, system)
    np.testing.assert_allclose(snapshot["A"], [1000.0, 0.0, 0.0], atol=1e-9)
    np.testing.assert_allclose(snapshot["B"], [2000.0, 0.0, 0.0], atol=1e-9)


def test_non_orbiting_body_stays_at_origin(system):
    for hours in (0.0, 500.0, 1e6):
        np.testing.assert_array_equal(positions_at(hours, system)["Sebaka"], [0.0, 0.0, 0.0])


def test_orbits_lie_in_xz_plane():
    system = preprocess(DEFAULT_STARS, DEFAULT_PLANETS, 24)
    for pos in positions_at(98_765.0, system).values():
        assert pos[1] == 0.0


def test_orbit_angle_wraps():
    angle = orbit_angle(0.0, 2.0 * math.pi / 24.0, 36.0)
    assert angle == pytest.approx(math.pi)
    assert 0.0 <= orbit_angle(-1.0, 0.0, 0.0) < 2.0 * math.pi


def test_eccentric_orbit_has_origin_on_focus():
    body = CelestialBody(
        name="E", kind=PLANET, size=1.0, orbit_radius=100.0, orbit_period_days=100.0,
        eccentric=True, eccentricity=0.5,
    )
    system = preprocess((), (body,), 24)
    samples = [np.linalg.norm(positions_at(h, system)["E"]) for h in np.arange(0.0, 2400.0, 24.0)]
    assert np.mean(samples) == pytest.approx(100.0, rel=1e-6)
    assert min(samples) == pytest.approx(50.0, rel=1e-3)
    assert max(samples) == pytest.approx(150.0, rel=1e-6)


def test_eccentricity_ignored_unless_flagged():
    body = CelestialBody(
        name="C", kind=PLANET, size=1.0, orbit_radius=100.0, orbit_period_days=100.0,
        eccentric=False, eccentricity=0.5,
    )
    system = preprocess((), (body,), 24)
    for h in (0.0, 300.0, 777.0):
        assert np.linalg.norm(positions_at(h, system)["C"]) == pytest.approx(100.0)


def test_binary_members_stay_opposed():
    system = preprocess(DEFAULT_STARS, DEFAULT_PLANETS, 24)
    for h in (0.0, 333.0, 4_000.0):
        snapshot = positions_at(h, system)
        np.testing.assert_allclose(snapshot["Alpha"], -snapshot["Twilight"], atol=1e-9)
        assert np.linalg.norm(snapshot["Alpha"]) == pytest.approx(15.0)


def test_half_separation_override():
    system = preprocess(DEFAULT_STARS, DEFAULT_PLANETS, 24)
    snapshot = positions_at(0.0, system, half_separation=40.0)
    assert np.linalg.norm(snapshot["Alpha"] - snapshot["Twilight"]) == pytest.approx(80.0)


def test_satellite_orbits_its_center():
    system = preprocess(DEFAULT_STARS, DEFAULT_PLANETS, 24)
    for h in (0.0, 10_000.0, 250_000.0):
        snapshot = positions_at(h, system)
        assert np.linalg.norm(snapshot["Gelidis"] - snapshot["Beacon"]) == pytest.approx(30.0)
        assert np.linalg.norm(snapshot["Liminis"] - snapshot["Beacon"]) == pytest.approx(50.0)


def test_satellite_listed_before_center_still_resolves():
    moon = CelestialBody(name="Moon", kind=PLANET, size=1.0, orbit_radius=10.0,
                         orbit_period_days=20.0, orbit_center="Host")
    host = CelestialBody(name="Host", kind=PLANET, size=3.0, orbit_radius=300.0,
                         orbit_period_days=400.0)
    system = preprocess((), (moon, host), 24)
    snapshot = positions_at(5_000.0, system)
    assert np.linalg.norm(snapshot["Moon"] - snapshot["Host"]) == pytest.approx(10.0)


def test_nested_orbit_center_rejected():
    star = CelestialBody(name="S", kind=STAR, size=5.0, orbit_radius=500.0, orbit_period_days=900.0)
    planet = CelestialBody(name="P", kind=PLANET, size=1.0, orbit_radius=40.0,
                           orbit_period_days=100.0, orbit_center="S")
    moon = CelestialBody(name="M", kind=PLANET, size=0.5, orbit_radius=4.0,
                         orbit_period_days=10.0, orbit_center="P")
    with pytest.raises(CatalogError, match="one level"):
        preprocess((star,), (planet, moon), 24)


def test_unknown_orbit_center_rejected():
    planet = CelestialBody(name="P", kind=PLANET, size=1.0, orbit_radius=40.0,
                           orbit_period_days=100.0, orbit_center="Nowhere")
    with pytest.raises(CatalogError, match="unknown orbit center"):
        preprocess((), (planet,), 24)


def test_snapshot_to_dict(system):
    data = snapshot_to_dict(positions_at(0.0, system))
    assert data["A"] == {"x": 1000.0, "y": 0.0, "z": 0.0}
