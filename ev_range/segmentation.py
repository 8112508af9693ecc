"""Trip segmentation based on time-gap and mode-category rules.

Implements sequential trip boundary detection over time-ordered samples and
drops trips that are too short to be meaningful.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import List, Sequence

from ev_range.diagnostics import Diagnostics
from ev_range.distance import path_distance_km
from ev_range.errors import InputError
from ev_range.models import LocationSample, Trip
from ev_range.modes import TransportMode, category_of


@dataclass(frozen=True)
class SegmentationParams:
    max_gap_minutes: float = 30.0
    min_trip_minutes: float = 2.0
    min_points_per_trip: int = 2


def dominant_mode(samples: Sequence[LocationSample]) -> TransportMode:
    """Most frequent mode; ties go to the mode seen first."""

    counts = Counter(s.mode for s in samples)
    best = samples[0].mode
    for sample in samples:
        if counts[sample.mode] > counts[best]:
            best = sample.mode
    return best


def build_trip(samples: Sequence[LocationSample]) -> Trip:
    if not samples:
        raise InputError("Trip samples cannot be empty")
    return Trip(
        start=samples[0].timestamp,
        end=samples[-1].timestamp,
        distance_km=path_distance_km(samples),
        dominant_mode=dominant_mode(samples),
        point_count=len(samples),
        samples=tuple(samples),
    )


def _is_valid_trip(samples: Sequence[LocationSample], params: SegmentationParams) -> bool:
    if len(samples) < params.min_points_per_trip:
        return False
    duration_s = (samples[-1].timestamp - samples[0].timestamp).total_seconds()
    return duration_s >= params.min_trip_minutes * 60.0


def segment_trips(
    samples: Sequence[LocationSample],
    params: SegmentationParams,
    diagnostics: Diagnostics,
) -> List[Trip]:
    """
    Split time-ordered samples into trips using Rule A (time gap) and Rule B
    (motorized/non-motorized category change). Trips that are too short or
    have too few points are dropped.
    """

    trips: List[Trip] = []
    if not samples:
        return trips

    max_gap_s = params.max_gap_minutes * 60.0
    current: List[LocationSample] = [samples[0]]
    current_category = category_of(samples[0].mode)
    dropped = 0

    for prev, sample in zip(samples, samples[1:]):
        gap_s = (sample.timestamp - prev.timestamp).total_seconds()
        if gap_s < 0:
            raise InputError(
                f"Samples must be sorted by timestamp before segmentation "
                f"({sample.timestamp.isoformat()} follows {prev.timestamp.isoformat()})"
            )

        new_trip = False
        # Rule A: time gap
        if gap_s > max_gap_s:
            new_trip = True

        # Rule B: category change
        if category_of(sample.mode) is not current_category:
            new_trip = True

        if new_trip:
            if _is_valid_trip(current, params):
                trips.append(build_trip(current))
            else:
                dropped += 1
            current = [sample]
            current_category = category_of(sample.mode)
        else:
            current.append(sample)

    if _is_valid_trip(current, params):
        trips.append(build_trip(current))
    else:
        dropped += 1

    diagnostics.trips_emitted += len(trips)
    diagnostics.trips_discarded += dropped
    if dropped:
        logging.info(
            "Dropped %d trips shorter than %.1f minutes or %d points",
            dropped,
            params.min_trip_minutes,
            params.min_points_per_trip,
        )
    logging.debug("Segmented %d samples into %d trips", len(samples), len(trips))
    return trips
