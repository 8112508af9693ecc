"""Transport modes, their categories and typical speed ranges.

All lookup tables are read-only mappings built once at import time. Mode
behaviour is exposed as plain functions over :class:`TransportMode` values.
"""

from __future__ import annotations

import re
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Tuple


class TransportCategory(Enum):
    """Motorized modes are the ones an EV would replace."""

    MOTORIZED = "motorized"
    NON_MOTORIZED = "non_motorized"


class TransportMode(Enum):
    IN_VEHICLE = "IN_VEHICLE"
    IN_BUS = "IN_BUS"
    ON_MOTORCYCLE = "ON_MOTORCYCLE"
    WALKING = "WALKING"
    RUNNING = "RUNNING"
    ON_BICYCLE = "ON_BICYCLE"
    IN_TRAIN = "IN_TRAIN"
    IN_FLIGHT = "IN_FLIGHT"
    UNKNOWN = "UNKNOWN"


MOTORIZED_MODES: frozenset[TransportMode] = frozenset(
    {TransportMode.IN_VEHICLE, TransportMode.IN_BUS, TransportMode.ON_MOTORCYCLE}
)

# Inclusive (min, max) km/h.
TYPICAL_SPEED_RANGES: Mapping[TransportMode, Tuple[float, float]] = MappingProxyType(
    {
        TransportMode.IN_VEHICLE: (0.0, 120.0),
        TransportMode.IN_BUS: (0.0, 80.0),
        TransportMode.ON_MOTORCYCLE: (0.0, 120.0),
        TransportMode.WALKING: (0.0, 8.0),
        TransportMode.RUNNING: (5.0, 25.0),
        TransportMode.ON_BICYCLE: (0.0, 50.0),
        TransportMode.IN_TRAIN: (0.0, 300.0),
        TransportMode.IN_FLIGHT: (100.0, 900.0),
        TransportMode.UNKNOWN: (0.0, 200.0),
    }
)

DEFAULT_SPEED_RANGE: Tuple[float, float] = (0.0, 200.0)

GOOGLE_ACTIVITY_MAPPING: Mapping[str, TransportMode] = MappingProxyType(
    {
        "IN_VEHICLE": TransportMode.IN_VEHICLE,
        "IN_BUS": TransportMode.IN_BUS,
        "ON_MOTORCYCLE": TransportMode.ON_MOTORCYCLE,
        "WALKING": TransportMode.WALKING,
        "RUNNING": TransportMode.RUNNING,
        "ON_BICYCLE": TransportMode.ON_BICYCLE,
        "IN_TRAIN": TransportMode.IN_TRAIN,
        "IN_FLIGHT": TransportMode.IN_FLIGHT,
        "UNKNOWN": TransportMode.UNKNOWN,
    }
)

DISPLAY_NAMES: Mapping[TransportMode, str] = MappingProxyType(
    {
        TransportMode.IN_VEHICLE: "In Vehicle",
        TransportMode.IN_BUS: "In Bus",
        TransportMode.ON_MOTORCYCLE: "On Motorcycle",
        TransportMode.WALKING: "Walking",
        TransportMode.RUNNING: "Running",
        TransportMode.ON_BICYCLE: "On Bicycle",
        TransportMode.IN_TRAIN: "In Train",
        TransportMode.IN_FLIGHT: "In Flight",
        TransportMode.UNKNOWN: "Unknown",
    }
)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z])(?=[A-Z])")


def category_of(mode: TransportMode) -> TransportCategory:
    """Return the category a mode belongs to."""

    return TransportCategory.MOTORIZED if mode in MOTORIZED_MODES else TransportCategory.NON_MOTORIZED


def is_motorized(mode: TransportMode) -> bool:
    return mode in MOTORIZED_MODES


def typical_speed_range(mode: TransportMode) -> Tuple[float, float]:
    return TYPICAL_SPEED_RANGES.get(mode, DEFAULT_SPEED_RANGE)


def is_speed_valid(mode: TransportMode, speed_kmh: float) -> bool:
    """Check whether ``speed_kmh`` lies inside the mode's typical range (inclusive)."""

    low, high = typical_speed_range(mode)
    return low <= speed_kmh <= high


def infer_mode_from_speed(speed_kmh: float) -> TransportMode:
    """Guess a transport mode from speed alone."""

    if speed_kmh < 8:
        return TransportMode.WALKING
    if speed_kmh < 25:
        return TransportMode.ON_BICYCLE
    if speed_kmh < 120:
        return TransportMode.IN_VEHICLE
    return TransportMode.IN_FLIGHT


def display_name(mode: TransportMode) -> str:
    return DISPLAY_NAMES.get(mode, mode.value)


def mode_from_google_activity(activity_type: str | None) -> TransportMode:
    """Map a Google location-history activity label (e.g. ``"IN_VEHICLE"``) to a mode."""

    if activity_type is None or not activity_type.strip():
        return TransportMode.UNKNOWN
    return GOOGLE_ACTIVITY_MAPPING.get(activity_type.strip().upper(), TransportMode.UNKNOWN)


def parse_mode(text: str | None) -> TransportMode:
    """Parse a mode label written as ``IN_VEHICLE``, ``in_vehicle``, ``InVehicle`` or ``In Vehicle``.

    Unrecognised or empty labels map to ``UNKNOWN``.
    """

    if text is None:
        return TransportMode.UNKNOWN
    label = str(text).strip()
    if not label:
        return TransportMode.UNKNOWN
    label = _CAMEL_BOUNDARY.sub("_", label)
    label = label.replace(" ", "_").replace("-", "_").upper()
    return GOOGLE_ACTIVITY_MAPPING.get(label, TransportMode.UNKNOWN)
