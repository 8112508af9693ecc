from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from ev_range.diagnostics import Diagnostics
from ev_range.distance import haversine_km
from ev_range.errors import InputError
from ev_range.models import LocationSample
from ev_range.modes import TransportMode
from ev_range.segmentation import SegmentationParams, build_trip, dominant_mode, segment_trips

T0 = datetime(2024, 3, 4, 8, 0, tzinfo=timezone.utc)


def _sample(minutes, lat, mode=TransportMode.IN_VEHICLE):
    return LocationSample(timestamp=T0 + timedelta(minutes=minutes), latitude=lat, longitude=-122.3, mode=mode)


def _drive(start_minute, count, lat0=47.0, mode=TransportMode.IN_VEHICLE):
    # one sample per minute, 0.01 degrees apart (about 67 km/h)
    return [_sample(start_minute + i, lat0 + 0.01 * i, mode) for i in range(count)]


def test_forty_minute_gap_gives_two_trips():
    samples = _drive(0, 11) + _drive(50, 11, lat0=47.2)
    diagnostics = Diagnostics()
    trips = segment_trips(samples, SegmentationParams(), diagnostics)

    assert len(trips) == 2
    assert trips[0].end == T0 + timedelta(minutes=10)
    assert trips[1].start == T0 + timedelta(minutes=50)
    assert diagnostics.trips_emitted == 2
    assert diagnostics.trips_discarded == 0


def test_trip_distance_is_sum_of_pairwise_distances():
    samples = _drive(0, 15)
    trip = segment_trips(samples, SegmentationParams(), Diagnostics())[0]
    expected = sum(
        haversine_km(a.latitude, a.longitude, b.latitude, b.longitude) for a, b in zip(samples, samples[1:])
    )
    assert np.isclose(trip.distance_km, expected, atol=1e-6)
    assert trip.point_count == 15
    assert trip.average_speed_kmh == pytest.approx(expected / (14 / 60.0))


def test_category_change_splits_trip():
    samples = _drive(0, 6) + _drive(6, 7, lat0=47.1, mode=TransportMode.WALKING)
    trips = segment_trips(samples, SegmentationParams(), Diagnostics())

    assert [t.dominant_mode for t in trips] == [TransportMode.IN_VEHICLE, TransportMode.WALKING]
    assert trips[0].is_motorized
    assert not trips[1].is_motorized


def test_same_category_modes_stay_in_one_trip():
    samples = _drive(0, 4) + _drive(4, 3, lat0=47.04, mode=TransportMode.IN_BUS)
    trips = segment_trips(samples, SegmentationParams(), Diagnostics())
    assert len(trips) == 1
    assert trips[0].dominant_mode is TransportMode.IN_VEHICLE


def test_short_trips_are_discarded():
    samples = _drive(0, 2) + _drive(60, 5) + [_sample(120, 48.0)]
    diagnostics = Diagnostics()
    trips = segment_trips(samples, SegmentationParams(), diagnostics)

    assert len(trips) == 1
    assert trips[0].point_count == 5
    assert diagnostics.trips_discarded == 2


def test_unsorted_input_raises():
    samples = _drive(0, 5)
    with pytest.raises(InputError):
        segment_trips([samples[1], samples[0]], SegmentationParams(), Diagnostics())


def test_empty_input():
    assert segment_trips([], SegmentationParams(), Diagnostics()) == []
    with pytest.raises(InputError):
        build_trip([])


def test_dominant_mode_ties_go_to_first_seen():
    samples = [
        _sample(0, 47.0, TransportMode.IN_BUS),
        _sample(1, 47.0, TransportMode.IN_VEHICLE),
        _sample(2, 47.0, TransportMode.IN_VEHICLE),
        _sample(3, 47.0, TransportMode.IN_BUS),
    ]
    assert dominant_mode(samples) is TransportMode.IN_BUS
