"""Great-circle distance, bearing and velocity between location samples.

Scalar helpers mirror the vectorised NumPy path used for whole batches; both
use the Haversine formula on a sphere of radius 6371 km. Invalid coordinates
never fail a batch: their distance is 0.0 and an anomaly is counted.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import List, Sequence

import numpy as np

from ev_range.diagnostics import Diagnostics
from ev_range.models import LocationSample

EARTH_RADIUS_KM = 6371.0
MAX_REASONABLE_DISTANCE_KM = 500.0
MAX_REASONABLE_SPEED_KMH = 200.0


def are_coordinates_valid(latitude: float, longitude: float) -> bool:
    """Check coordinates are finite and inside [-90, 90] x [-180, 180]."""

    return (
        math.isfinite(latitude)
        and math.isfinite(longitude)
        and -90.0 <= latitude <= 90.0
        and -180.0 <= longitude <= 180.0
    )


def _haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_KM * c


def haversine_km(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
    diagnostics: Diagnostics | None = None,
) -> float:
    """Compute the Haversine distance in kilometers between two lat/lon points.

    Args:
        lat1: Latitude 1 in degrees.
        lon1: Longitude 1 in degrees.
        lat2: Latitude 2 in degrees.
        lon2: Longitude 2 in degrees.
        diagnostics: Optional counters to record anomalies in.

    Returns:
        Distance in kilometers, or 0.0 when either point is invalid.
    """

    if not (are_coordinates_valid(lat1, lon1) and are_coordinates_valid(lat2, lon2)):
        logging.debug("Invalid coordinates (%s, %s) -> (%s, %s); distance set to 0", lat1, lon1, lat2, lon2)
        if diagnostics is not None:
            diagnostics.computation_anomalies += 1
        return 0.0

    distance = _haversine(lat1, lon1, lat2, lon2)
    if not math.isfinite(distance):
        if diagnostics is not None:
            diagnostics.computation_anomalies += 1
        return 0.0

    if diagnostics is not None:
        diagnostics.distance_calculations += 1
        diagnostics.max_distance_km = max(diagnostics.max_distance_km, distance)
        if distance > MAX_REASONABLE_DISTANCE_KM:
            diagnostics.distance_anomalies += 1
    if distance > MAX_REASONABLE_DISTANCE_KM:
        logging.warning(
            "Distance %.2fkm between (%.6f, %.6f) and (%.6f, %.6f) exceeds reasonable limit",
            distance,
            lat1,
            lon1,
            lat2,
            lon2,
        )
    return distance


def sample_distance_km(a: LocationSample, b: LocationSample, diagnostics: Diagnostics | None = None) -> float:
    return haversine_km(a.latitude, a.longitude, b.latitude, b.longitude, diagnostics)


def haversine_km_array(
    lat1: np.ndarray,
    lon1: np.ndarray,
    lat2: np.ndarray,
    lon2: np.ndarray,
) -> np.ndarray:
    """Vectorised Haversine distance (km). Invalid pairs yield 0.0."""

    lat1 = np.asarray(lat1, dtype=float)
    lon1 = np.asarray(lon1, dtype=float)
    lat2 = np.asarray(lat2, dtype=float)
    lon2 = np.asarray(lon2, dtype=float)

    valid = _valid_mask(lat1, lon1) & _valid_mask(lat2, lon2)
    with np.errstate(invalid="ignore"):
        phi1 = np.radians(lat1)
        phi2 = np.radians(lat2)
        d_phi = np.radians(lat2 - lat1)
        d_lambda = np.radians(lon2 - lon1)
        a = np.sin(d_phi / 2.0) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(d_lambda / 2.0) ** 2
        a = np.clip(a, 0.0, 1.0)
        d = EARTH_RADIUS_KM * 2.0 * np.arctan2(np.sqrt(a), np.sqrt(1.0 - a))
    return np.where(valid & np.isfinite(d), d, 0.0)


def _valid_mask(lat: np.ndarray, lon: np.ndarray) -> np.ndarray:
    with np.errstate(invalid="ignore"):
        return np.isfinite(lat) & np.isfinite(lon) & (np.abs(lat) <= 90.0) & (np.abs(lon) <= 180.0)


def bearing_deg(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Initial course from point 1 to point 2 in degrees (0 = north, clockwise)."""

    if not (are_coordinates_valid(lat1, lon1) and are_coordinates_valid(lat2, lon2)):
        return 0.0

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_lambda = math.radians(lon2 - lon1)
    y = math.sin(d_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(d_lambda)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def average_speed_kmh(a: LocationSample, b: LocationSample) -> float | None:
    """Implied speed between two samples, or None if no time elapsed."""

    hours = (b.timestamp - a.timestamp).total_seconds() / 3600.0
    if hours <= 0:
        return None
    return sample_distance_km(a, b) / hours


def attach_distances(
    samples: Sequence[LocationSample],
    diagnostics: Diagnostics,
    next_sample: LocationSample | None = None,
    max_speed_kmh: float = MAX_REASONABLE_SPEED_KMH,
) -> List[LocationSample]:
    """Return copies of ``samples`` with distance/time/velocity to the following sample.

    ``samples`` must be time ordered. ``next_sample`` is the sample that follows
    the last element when the sequence is one batch of a longer stream; without
    it the last sample keeps no derived distance.
    """

    if not samples:
        return []

    chain = list(samples) if next_sample is None else [*samples, next_sample]
    if len(chain) < 2:
        return list(samples)

    lats = np.fromiter((s.latitude for s in chain), dtype=float, count=len(chain))
    lons = np.fromiter((s.longitude for s in chain), dtype=float, count=len(chain))
    distances = haversine_km_array(lats[:-1], lons[:-1], lats[1:], lons[1:])
    valid = _valid_mask(lats, lons)
    pair_valid = valid[:-1] & valid[1:]

    anomalies = int(np.count_nonzero(~pair_valid))
    diagnostics.computation_anomalies += anomalies
    diagnostics.distance_calculations += int(np.count_nonzero(pair_valid))
    if pair_valid.any():
        diagnostics.max_distance_km = max(diagnostics.max_distance_km, float(distances[pair_valid].max()))

    for idx in np.flatnonzero(distances > MAX_REASONABLE_DISTANCE_KM):
        diagnostics.distance_anomalies += 1
        logging.warning(
            "Distance %.2fkm between samples at %s and %s exceeds reasonable limit",
            distances[idx],
            chain[idx].timestamp.isoformat(),
            chain[idx + 1].timestamp.isoformat(),
        )

    enriched: List[LocationSample] = []
    for idx, current in enumerate(samples):
        if idx + 1 >= len(chain):
            enriched.append(current)
            continue
        distance = float(distances[idx])
        dt_s = (chain[idx + 1].timestamp - current.timestamp).total_seconds()
        velocity = current.velocity_kmh
        if dt_s > 0:
            velocity = distance / (dt_s / 3600.0)
            if velocity > max_speed_kmh:
                logging.debug("Velocity %.1f km/h exceeds %.1f km/h; clamping", velocity, max_speed_kmh)
                diagnostics.velocity_clamped += 1
                velocity = max_speed_kmh
        enriched.append(replace(current, distance_to_next_km=distance, time_to_next_s=dt_s, velocity_kmh=velocity))
    return enriched


def points_within_radius(
    center: LocationSample,
    samples: Sequence[LocationSample],
    radius_km: float,
) -> List[LocationSample]:
    """Return the samples within ``radius_km`` of ``center``, nearest first.

    Samples with invalid coordinates are never returned. Ties keep input order.
    """

    if not samples or not center.has_valid_coordinates():
        return []

    lats = np.fromiter((s.latitude for s in samples), dtype=float, count=len(samples))
    lons = np.fromiter((s.longitude for s in samples), dtype=float, count=len(samples))
    distances = haversine_km_array(
        np.full(len(samples), center.latitude), np.full(len(samples), center.longitude), lats, lons
    )
    inside = np.flatnonzero(_valid_mask(lats, lons) & (distances <= radius_km))
    order = inside[np.argsort(distances[inside], kind="stable")]
    logging.debug("Found %d samples within %.1fkm of (%.6f, %.6f)", len(order), radius_km, center.latitude, center.longitude)
    return [samples[int(idx)] for idx in order]


def path_distance_km(samples: Sequence[LocationSample]) -> float:
    """Sum of consecutive pairwise distances along ``samples``."""

    total = 0.0
    for prev, cur in zip(samples, samples[1:]):
        if are_coordinates_valid(prev.latitude, prev.longitude) and are_coordinates_valid(cur.latitude, cur.longitude):
            distance = _haversine(prev.latitude, prev.longitude, cur.latitude, cur.longitude)
            if math.isfinite(distance):
                total += distance
    return total
