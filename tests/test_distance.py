from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from ev_range.diagnostics import Diagnostics
from ev_range.distance import (
    attach_distances,
    average_speed_kmh,
    bearing_deg,
    haversine_km,
    haversine_km_array,
    path_distance_km,
    points_within_radius,
)
from ev_range.models import LocationSample

T0 = datetime(2024, 3, 4, 8, 0, tzinfo=timezone.utc)


def _sample(minutes, lat, lon=10.0, **kwargs):
    return LocationSample(timestamp=T0 + timedelta(minutes=minutes), latitude=lat, longitude=lon, **kwargs)


def test_haversine_symmetry_and_zero():
    a = (47.6062, -122.3321)
    b = (45.5152, -122.6784)
    assert haversine_km(*a, *b) == haversine_km(*b, *a)
    assert haversine_km(*a, *a) == 0.0


def test_one_degree_latitude():
    assert haversine_km(0.0, 0.0, 1.0, 0.0) == pytest.approx(111.19, abs=0.01)
    assert haversine_km(50.0, 8.0, 51.0, 8.0) == pytest.approx(111.19, abs=1.0)


def test_invalid_coordinates_yield_zero_and_count_anomaly():
    diagnostics = Diagnostics()
    assert haversine_km(91.0, 0.0, 0.0, 0.0, diagnostics) == 0.0
    assert haversine_km(float("nan"), 0.0, 0.0, 0.0, diagnostics) == 0.0
    assert diagnostics.computation_anomalies == 2
    assert diagnostics.distance_calculations == 0


def test_long_jump_is_kept_and_counted():
    diagnostics = Diagnostics()
    d = haversine_km(0.0, 0.0, 10.0, 0.0, diagnostics)
    assert d > 1000
    assert diagnostics.distance_anomalies == 1
    assert diagnostics.max_distance_km == pytest.approx(d)


def test_array_matches_scalar():
    lat1 = np.array([0.0, 47.6, 10.0, 95.0])
    lon1 = np.array([0.0, -122.3, 10.0, 0.0])
    lat2 = np.array([1.0, 47.7, 10.5, 0.0])
    lon2 = np.array([0.0, -122.3, 11.0, 0.0])
    expected = [haversine_km(a, b, c, d) for a, b, c, d in zip(lat1, lon1, lat2, lon2)]
    assert np.allclose(haversine_km_array(lat1, lon1, lat2, lon2), expected)
    assert haversine_km_array(lat1, lon1, lat2, lon2)[-1] == 0.0


def test_bearing():
    assert bearing_deg(0.0, 0.0, 1.0, 0.0) == pytest.approx(0.0)
    assert bearing_deg(0.0, 0.0, 0.0, 1.0) == pytest.approx(90.0)
    assert bearing_deg(0.0, 0.0, -1.0, 0.0) == pytest.approx(180.0)
    assert 0.0 <= bearing_deg(10.0, 10.0, 9.0, 9.0) < 360.0


def test_attach_distances_sets_velocity_on_earlier_sample():
    diagnostics = Diagnostics()
    samples = [_sample(0, 10.0), _sample(1, 10.01), _sample(2, 10.02)]
    enriched = attach_distances(samples, diagnostics)

    step = haversine_km(10.0, 10.0, 10.01, 10.0)
    assert enriched[0].distance_to_next_km == pytest.approx(step)
    assert enriched[0].time_to_next_s == 60.0
    assert enriched[0].velocity_kmh == pytest.approx(step * 60.0)
    assert enriched[-1].velocity_kmh is None
    assert enriched[-1].distance_to_next_km is None
    assert samples[0].velocity_kmh is None
    assert diagnostics.distance_calculations == 2


def test_attach_distances_uses_next_sample_across_batches():
    diagnostics = Diagnostics()
    batch = [_sample(0, 10.0), _sample(1, 10.01)]
    enriched = attach_distances(batch, diagnostics, next_sample=_sample(2, 10.02))
    assert enriched[-1].velocity_kmh is not None


def test_attach_distances_keeps_provided_velocity_without_elapsed_time():
    samples = [_sample(0, 10.0, velocity_kmh=42.0), _sample(0, 10.01)]
    enriched = attach_distances(samples, Diagnostics())
    assert enriched[0].velocity_kmh == 42.0
    assert enriched[0].time_to_next_s == 0.0

    without = attach_distances([_sample(0, 10.0), _sample(0, 10.01)], Diagnostics())
    assert without[0].velocity_kmh is None


def test_attach_distances_clamps_unreasonable_velocity():
    diagnostics = Diagnostics()
    enriched = attach_distances([_sample(0, 10.0), _sample(10, 11.0)], diagnostics)
    assert enriched[0].velocity_kmh == 200.0
    assert diagnostics.velocity_clamped == 1


def test_average_speed_and_path_distance():
    a, b, c = _sample(0, 10.0), _sample(30, 10.1), _sample(60, 10.2)
    assert average_speed_kmh(a, b) == pytest.approx(haversine_km(10.0, 10.0, 10.1, 10.0) * 2.0)
    assert average_speed_kmh(a, a) is None
    assert path_distance_km([a, b, c]) == pytest.approx(
        haversine_km(10.0, 10.0, 10.1, 10.0) + haversine_km(10.1, 10.0, 10.2, 10.0)
    )
    assert path_distance_km([a]) == 0.0


def test_points_within_radius_nearest_first():
    center = _sample(0, 10.0)
    far, mid, near, same, broken = (
        _sample(1, 10.2),
        _sample(2, 10.05),
        _sample(3, 10.01),
        _sample(4, 10.0),
        _sample(5, 95.0),
    )
    found = points_within_radius(center, [far, mid, near, same, broken], radius_km=10.0)

    assert found == [same, near, mid]
    assert points_within_radius(center, [far], radius_km=haversine_km(10.0, 10.0, 10.2, 10.0) + 1e-6) == [far]
    assert points_within_radius(center, [], radius_km=10.0) == []
    assert points_within_radius(_sample(0, float("nan")), [mid], radius_km=10.0) == []
