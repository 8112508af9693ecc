"""Daily aggregation of motorized trips.

Trips are keyed by the local calendar date of their start time; each date
group is reduced independently into a :class:`DailySummary` and the results
are merged in date order.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, List, Sequence, Tuple

import pandas as pd

from ev_range.models import DailySummary, LocationSample, Trip
from ev_range.modes import TransportMode

HIGH_CONFIDENCE = 70.0


@dataclass(frozen=True)
class AggregationParams:
    timezone: str = "UTC"
    min_significant_km: float = 1.0
    full_coverage: bool = False
    workers: int = 1


def local_date(ts: datetime, tz_name: str) -> date:
    """Calendar date of ``ts`` in the given IANA timezone."""

    return pd.Timestamp(ts).tz_convert(tz_name).date()


def data_quality_score(samples: Iterable[LocationSample]) -> float:
    """Share of quality signals present: reported accuracy and confidence >= 70.

    Returns a value in [0, 1]; 0.0 for no samples.
    """

    total = 0
    with_accuracy = 0
    high_confidence = 0
    for sample in samples:
        total += 1
        if sample.accuracy_m is not None:
            with_accuracy += 1
        if sample.confidence is not None and sample.confidence >= HIGH_CONFIDENCE:
            high_confidence += 1
    if total == 0:
        return 0.0
    return (with_accuracy + high_confidence) / (2.0 * total)


def summarize_day(day: date, trips: Sequence[Trip]) -> DailySummary:
    """Reduce one date's motorized trips into a summary."""

    if not trips:
        return DailySummary(date=day)

    total_km = sum(t.distance_km for t in trips)
    total_hours = sum(t.duration_hours for t in trips)
    observed = {t.dominant_mode for t in trips if t.is_motorized}
    samples = [s for t in trips for s in t.samples]
    return DailySummary(
        date=day,
        total_distance_km=total_km,
        trip_count=len(trips),
        longest_trip_km=max(t.distance_km for t in trips),
        average_speed_kmh=total_km / total_hours if total_hours > 0 else 0.0,
        driving_minutes=total_hours * 60.0,
        modes=tuple(mode for mode in TransportMode if mode in observed),
        sample_count=sum(t.point_count for t in trips),
        data_quality=data_quality_score(samples),
    )


def _group_by_local_date(trips: Sequence[Trip], tz_name: str) -> List[Tuple[date, List[Trip]]]:
    frame = pd.DataFrame(
        {
            "trip_idx": range(len(trips)),
            "start": pd.to_datetime([t.start for t in trips], utc=True),
        }
    )
    frame["local_date"] = frame["start"].dt.tz_convert(tz_name).dt.date
    return [
        (day, [trips[i] for i in group["trip_idx"]])
        for day, group in frame.groupby("local_date", sort=True)
    ]


def aggregate_daily(trips: Sequence[Trip], params: AggregationParams) -> List[DailySummary]:
    """
    Build one summary per local date from the motorized trips.
    With ``full_coverage`` the dates between the first and last driving day that
    had no trips are reported as zero-activity summaries.
    """

    motorized = [t for t in trips if t.is_motorized]
    if not motorized:
        return []

    groups = _group_by_local_date(motorized, params.timezone)
    if params.workers > 1 and len(groups) > 1:
        with ThreadPoolExecutor(max_workers=params.workers) as executor:
            summaries = list(executor.map(lambda item: summarize_day(*item), groups))
    else:
        summaries = [summarize_day(day, day_trips) for day, day_trips in groups]

    for summary in summaries:
        for problem in summary.validate():
            logging.warning("Daily summary %s: %s", summary.date.isoformat(), problem)

    if params.full_coverage:
        summaries = fill_missing_days(summaries)

    significant = sum(1 for s in summaries if s.is_significant_day(params.min_significant_km))
    logging.info("Aggregated %d trips into %d daily summaries (%d significant)", len(motorized), len(summaries), significant)
    return summaries


def fill_missing_days(summaries: Sequence[DailySummary]) -> List[DailySummary]:
    """Insert zero-activity summaries for dates missing between the first and last day."""

    if not summaries:
        return []
    by_date = {s.date: s for s in summaries}
    first = min(by_date)
    last = max(by_date)
    filled: List[DailySummary] = []
    day = first
    while day <= last:
        filled.append(by_date.get(day, DailySummary(date=day)))
        day += timedelta(days=1)
    return filled


def significant_days(summaries: Iterable[DailySummary], min_distance_km: float = 1.0) -> List[DailySummary]:
    return [s for s in summaries if s.is_significant_day(min_distance_km)]
