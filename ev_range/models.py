"""Data models for location samples, trips, daily summaries and range results."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import IntEnum
from typing import Dict, List, Tuple

from ev_range.modes import TransportCategory, TransportMode, category_of, is_motorized, is_speed_valid, typical_speed_range


def _finite(value: float) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value)


def to_utc(ts: datetime) -> datetime:
    """Return ``ts`` as an aware UTC datetime. Naive values are taken to be UTC."""

    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


@dataclass(frozen=True)
class LocationSample:
    """A single GPS fix.

    Attributes:
        timestamp: Aware UTC datetime (naive input is interpreted as UTC).
        latitude: Latitude in decimal degrees.
        longitude: Longitude in decimal degrees.
        accuracy_m: Horizontal accuracy radius in meters, if reported.
        mode: Reported transport mode.
        confidence: Mode confidence 0-100, if reported.
        velocity_kmh: Speed in km/h, either provided or derived by the distance engine.
        altitude_m: Altitude in meters, if reported.
        distance_to_next_km: Derived; great-circle distance to the following sample.
        time_to_next_s: Derived; seconds until the following sample.
    """

    timestamp: datetime
    latitude: float
    longitude: float
    accuracy_m: float | None = None
    mode: TransportMode = TransportMode.UNKNOWN
    confidence: float | None = None
    velocity_kmh: float | None = None
    altitude_m: float | None = None
    distance_to_next_km: float | None = None
    time_to_next_s: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "timestamp", to_utc(self.timestamp))

    @property
    def category(self) -> TransportCategory:
        return category_of(self.mode)

    def has_valid_coordinates(self) -> bool:
        """True when both coordinates are finite and inside their ranges."""

        return (
            _finite(self.latitude)
            and _finite(self.longitude)
            and -90.0 <= self.latitude <= 90.0
            and -180.0 <= self.longitude <= 180.0
        )

    def validate(self) -> List[str]:
        """Return a list of problems with this sample (empty when valid)."""

        errors: List[str] = []
        if not _finite(self.latitude) or not -90.0 <= self.latitude <= 90.0:
            errors.append("Latitude must be between -90 and +90 degrees")
        if not _finite(self.longitude) or not -180.0 <= self.longitude <= 180.0:
            errors.append("Longitude must be between -180 and +180 degrees")
        if self.accuracy_m is not None and not 0 <= self.accuracy_m <= 10_000:
            errors.append("Accuracy must be between 0 and 10,000 meters")
        if self.confidence is not None and not 0 <= self.confidence <= 100:
            errors.append("Mode confidence must be between 0 and 100")
        if self.velocity_kmh is not None and not 0 <= self.velocity_kmh <= 1000:
            errors.append("Velocity must be between 0 and 1000 km/h")
        if self.time_to_next_s is not None and self.time_to_next_s < 0:
            errors.append("Time to next sample must be non-negative")
        if (
            self.velocity_kmh is not None
            and self.mode is not TransportMode.UNKNOWN
            and not is_speed_valid(self.mode, self.velocity_kmh)
        ):
            low, high = typical_speed_range(self.mode)
            errors.append(
                f"Velocity {self.velocity_kmh:.1f} km/h is outside typical range for "
                f"{self.mode.value} ({low:g}-{high:g} km/h)"
            )
        return errors


@dataclass(frozen=True)
class Trip:
    """A contiguous run of samples of one transport category."""

    start: datetime
    end: datetime
    distance_km: float
    dominant_mode: TransportMode
    point_count: int
    samples: Tuple[LocationSample, ...] = field(default=(), repr=False, compare=False)

    @property
    def category(self) -> TransportCategory:
        return category_of(self.dominant_mode)

    @property
    def is_motorized(self) -> bool:
        return is_motorized(self.dominant_mode)

    @property
    def duration_seconds(self) -> float:
        return max(0.0, (self.end - self.start).total_seconds())

    @property
    def duration_hours(self) -> float:
        return self.duration_seconds / 3600.0

    @property
    def average_speed_kmh(self) -> float:
        hours = self.duration_hours
        return self.distance_km / hours if hours > 0 else 0.0


@dataclass(frozen=True)
class DailySummary:
    """Motorized driving on one local calendar date."""

    date: date
    total_distance_km: float = 0.0
    trip_count: int = 0
    longest_trip_km: float = 0.0
    average_speed_kmh: float = 0.0
    driving_minutes: float = 0.0
    modes: Tuple[TransportMode, ...] = ()
    sample_count: int = 0
    data_quality: float = 0.0

    def is_significant_day(self, minimum_distance_km: float = 1.0) -> bool:
        return self.total_distance_km >= minimum_distance_km and self.trip_count > 0

    @property
    def is_significant(self) -> bool:
        return self.is_significant_day()

    def is_compatible_with(self, range_km: float) -> bool:
        """A day fits a range when its longest single trip does."""

        return self.longest_trip_km <= range_km

    def efficiency_rating(self) -> int:
        """Rate the day 1-5 by average speed; moderate highway speeds score highest."""

        speed = self.average_speed_kmh
        if speed < 20:
            return 2
        if speed < 40:
            return 3
        if speed < 70:
            return 5
        if speed < 100:
            return 4
        return 2

    def validate(self) -> List[str]:
        """Return violated consistency rules (empty when the summary is coherent)."""

        errors: List[str] = []
        if self.total_distance_km < 0:
            errors.append("Total distance must be non-negative")
        if self.longest_trip_km < 0:
            errors.append("Longest trip distance must be non-negative")
        if self.longest_trip_km > self.total_distance_km:
            errors.append("Longest trip distance cannot exceed total daily distance")
        if self.trip_count < 0:
            errors.append("Motorized trips count must be non-negative")
        if self.sample_count < 0:
            errors.append("Location points count must be non-negative")
        if not 0 <= self.average_speed_kmh <= 200:
            errors.append("Average speed must be between 0 and 200 km/h")
        if not 0 <= self.driving_minutes <= 1440:
            errors.append("Driving time must be between 0 and 1440 minutes")
        if self.total_distance_km > 0 and self.trip_count == 0:
            errors.append("Cannot have distance without trips")
        if self.trip_count > 0 and self.total_distance_km == 0:
            errors.append("Cannot have trips without distance")
        if self.average_speed_kmh > 0 and (self.total_distance_km == 0 or self.driving_minutes == 0):
            errors.append("Cannot have average speed without distance and time")
        if any(not is_motorized(mode) for mode in self.modes):
            errors.append("Transport modes list contains non-motorized modes")
        return errors

    def __str__(self) -> str:
        return (
            f"{self.date:%Y-%m-%d}:{self.total_distance_km:.1f}km in {self.trip_count} trips "
            f"(longest: {self.longest_trip_km:.1f}km, avg speed: {self.average_speed_kmh:.1f}km/h)"
        )


class Severity(IntEnum):
    MINOR = 1
    MODERATE = 2
    MAJOR = 3
    SEVERE = 4


@dataclass(frozen=True)
class ChallengingDay:
    """A day whose longest trip exceeds the EV range."""

    date: date
    total_distance_km: float
    longest_trip_km: float
    excess_km: float
    severity: Severity
    trip_count: int
    average_speed_kmh: float
    recommendations: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RangeRecommendation:
    range_km: int
    compatibility_percentage: float
    compatible_days: int
    total_days: int
    assessment: str
    estimated_price: float
    is_recommended: bool
    notes: str = ""


@dataclass(frozen=True)
class MonthlyStats:
    month: int
    total_days: int
    average_distance_km: float
    max_distance_km: float
    average_trips: float
    average_speed_kmh: float
    range_compatibility: Dict[int, float] = field(default_factory=dict)


@dataclass(frozen=True)
class SeasonalAnalysis:
    monthly: Dict[int, MonthlyStats] = field(default_factory=dict)
    insights: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RangeAnalysis:
    """Compatibility of one EV range with a set of significant driving days."""

    ev_range_km: float
    total_days: int = 0
    compatible_days: int = 0
    incompatible_days: int = 0
    compatibility_percentage: float = 0.0
    average_daily_distance_km: float = 0.0
    maximum_daily_distance_km: float = 0.0
    recommended_minimum_range_km: int = 0
    required_full_compatibility_range_km: int = 0
    target_percentile: float = 95.0
    incompatibility_breakdown: Dict[str, int] = field(default_factory=dict)
    monthly_compatibility: Dict[int, float] = field(default_factory=dict)
    date_range: Tuple[date, date] | None = None
    analyzed_modes: Tuple[TransportMode, ...] = ()
    total_trips: int = 0
    data_quality_score: float = 0.0
    assessment: str = ""
    recommendations: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()

    def validate(self) -> List[str]:
        """Return violated consistency rules (empty when the result is coherent)."""

        errors: List[str] = []
        if not 0 < self.ev_range_km <= 1000:
            errors.append("EV range must be in (0, 1000] kilometers")
        if min(self.total_days, self.compatible_days, self.incompatible_days) < 0:
            errors.append("Day counts must be non-negative")
        if self.compatible_days + self.incompatible_days != self.total_days:
            errors.append("Compatible days plus incompatible days must equal total days analyzed")
        if not 0.0 <= self.compatibility_percentage <= 100.0:
            errors.append("Compatibility percentage must be between 0 and 100")
        if self.maximum_daily_distance_km < self.average_daily_distance_km:
            errors.append("Maximum daily distance cannot be less than average daily distance")
        if self.recommended_minimum_range_km > self.required_full_compatibility_range_km:
            errors.append("Recommended minimum range cannot exceed required full compatibility range")
        if self.date_range is not None and self.date_range[0] > self.date_range[1]:
            errors.append("Analysis date range start must be before or equal to end")
        return errors

    def __str__(self) -> str:
        return (
            f"EV Range Analysis: {self.ev_range_km:g}km range achieves {self.compatibility_percentage:.1f}% "
            f"compatibility ({self.compatible_days}/{self.total_days} days) with avg daily distance "
            f"{self.average_daily_distance_km:.1f}km"
        )
