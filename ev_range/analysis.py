"""EV range compatibility statistics over daily driving summaries.

A day is compatible with a range when its longest single trip fits within it;
trips on the same day are assumed to be separated by a charging opportunity.
Every function here reads immutable summaries and builds a fresh result.
"""

from __future__ import annotations

import calendar
import logging
import math
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Sequence, Tuple

import numpy as np
import pandas as pd

from ev_range.errors import InputError
from ev_range.models import (
    ChallengingDay,
    DailySummary,
    MonthlyStats,
    RangeAnalysis,
    RangeRecommendation,
    SeasonalAnalysis,
    Severity,
)
from ev_range.modes import TransportMode

MAX_EV_RANGE_KM = 1000.0
MIN_ANALYSIS_DAYS = 7
DEFAULT_TARGET_PERCENTILE = 95.0
STANDARD_EV_RANGES: Tuple[int, ...] = (150, 200, 250, 300, 350, 400, 450, 500, 600, 700)
SEASONAL_RANGES: Tuple[int, ...] = (200, 300, 400, 500)

BUCKET_LABELS: Tuple[str, ...] = ("0-50km over", "50-100km over", "100-200km over", "200km+ over")

_ASSESSMENTS: Tuple[Tuple[float, str, str], ...] = (
    (95.0, "Excellent", "This EV range handles almost all your driving needs"),
    (85.0, "Very Good", "This EV range works well for most of your driving"),
    (70.0, "Good", "This EV range covers most days, with occasional charging needs"),
    (50.0, "Fair", "This EV range requires planning for longer trips"),
    (25.0, "Limited", "This EV range works for short trips but often needs charging"),
    (-math.inf, "Poor", "This EV range is insufficient for your typical driving patterns"),
)


def validate_range(range_km: float) -> float:
    """Return ``range_km`` as float if it lies in (0, 1000], otherwise raise InputError."""

    if isinstance(range_km, bool) or not isinstance(range_km, (int, float, np.integer, np.floating)):
        raise InputError(f"EV range must be a number, got {range_km!r}")
    value = float(range_km)
    if not math.isfinite(value) or value <= 0 or value > MAX_EV_RANGE_KM:
        raise InputError(f"EV range must be in (0, {MAX_EV_RANGE_KM:g}] kilometers, got {range_km!r}")
    return value


def validate_percentile(target_percentile: float) -> float:
    value = float(target_percentile)
    if not math.isfinite(value) or not 0.0 < value <= 100.0:
        raise InputError(f"Target percentile must be in (0, 100], got {target_percentile!r}")
    return value


def _require(summaries: Iterable[DailySummary] | None) -> List[DailySummary]:
    if summaries is None:
        raise InputError("Daily summaries are required")
    return list(summaries)


def compatibility_percentage(summaries: Sequence[DailySummary], range_km: float) -> float:
    """Percentage of days whose longest trip fits within ``range_km`` (0.0 for no days)."""

    if not summaries:
        return 0.0
    compatible = sum(1 for s in summaries if s.is_compatible_with(range_km))
    return compatible * 100.0 / len(summaries)


def percentile_range(longest_trips_km: Iterable[float], target_percentile: float = DEFAULT_TARGET_PERCENTILE) -> int:
    """Smallest whole-km range covering ``target_percentile`` % of the given longest trips.

    Uses the nearest-rank rule: sort ascending, take index ceil(n * P / 100) - 1
    clamped to [0, n - 1], and round that value up.
    """

    values = np.sort(np.asarray(list(longest_trips_km), dtype=float))
    n = len(values)
    if n == 0:
        return 0
    p = validate_percentile(target_percentile)
    if p >= 100.0:
        return int(math.ceil(values[-1]))
    index = int(math.ceil(n * p / 100.0)) - 1
    index = max(0, min(index, n - 1))
    return int(math.ceil(values[index]))


def required_range(summaries: Iterable[DailySummary], target_percentile: float = DEFAULT_TARGET_PERCENTILE) -> int:
    """Minimum EV range (km) for ``target_percentile`` % of days."""

    days = _require(summaries)
    return percentile_range((s.longest_trip_km for s in days), target_percentile)


def classify_severity(excess_km: float) -> Severity:
    if excess_km <= 50:
        return Severity.MINOR
    if excess_km <= 100:
        return Severity.MODERATE
    if excess_km <= 200:
        return Severity.MAJOR
    return Severity.SEVERE


def excess_bucket(excess_km: float) -> str:
    return BUCKET_LABELS[int(classify_severity(excess_km)) - 1]


def incompatibility_breakdown(summaries: Sequence[DailySummary], range_km: float) -> Dict[str, int]:
    """Histogram of how far incompatible days overshoot the range."""

    breakdown = {label: 0 for label in BUCKET_LABELS}
    for summary in summaries:
        if not summary.is_compatible_with(range_km):
            breakdown[excess_bucket(summary.longest_trip_km - range_km)] += 1
    return breakdown


def _days_frame(summaries: Sequence[DailySummary]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "month": [s.date.month for s in summaries],
            "total_distance_km": [s.total_distance_km for s in summaries],
            "longest_trip_km": [s.longest_trip_km for s in summaries],
            "trip_count": [s.trip_count for s in summaries],
            "average_speed_kmh": [s.average_speed_kmh for s in summaries],
        }
    )


def monthly_compatibility(summaries: Sequence[DailySummary], range_km: float) -> Dict[int, float]:
    """Compatibility percentage per calendar month (1-12)."""

    if not summaries:
        return {}
    frame = _days_frame(summaries)
    frame["compatible"] = frame["longest_trip_km"] <= range_km
    grouped = frame.groupby("month", sort=True)["compatible"].agg(["sum", "count"])
    return {int(month): int(row["sum"]) * 100.0 / int(row["count"]) for month, row in grouped.iterrows()}


def assess_compatibility(percentage: float) -> str:
    """Short label (Excellent ... Poor) for a compatibility percentage."""

    for threshold, label, _ in _ASSESSMENTS:
        if percentage >= threshold:
            return label
    return "Poor"


def describe_compatibility(percentage: float) -> str:
    for threshold, label, text in _ASSESSMENTS:
        if percentage >= threshold:
            return f"{label} - {text}"
    return ""


def validate_analysis_data(summaries: Sequence[DailySummary], min_distance_km: float = 1.0) -> List[str]:
    """Warnings that make an analysis low-confidence. Never raises.

    ``summaries`` may include zero-activity days; they count towards the
    zero-distance share but not towards the significant-day minimum.
    """

    warnings: List[str] = []
    significant = [s for s in summaries if s.is_significant_day(min_distance_km)]

    if len(significant) < MIN_ANALYSIS_DAYS:
        warnings.append(
            f"Insufficient data: {len(significant)} days available, minimum {MIN_ANALYSIS_DAYS} "
            f"required for reliable analysis"
        )

    zero_days = sum(1 for s in summaries if s.total_distance_km == 0)
    if summaries and zero_days > len(summaries) * 0.5:
        warnings.append(f"High proportion of days with zero distance: {zero_days}/{len(summaries)}")

    if significant:
        first = min(s.date for s in significant)
        last = max(s.date for s in significant)
        span_days = (last - first).days
        if span_days < 7:
            warnings.append("Analysis covers less than one week of data")
        if len(significant) > 1:
            coverage = len(significant) * 100.0 / (span_days + 1)
            if coverage < 50:
                warnings.append(f"Low data coverage: {coverage:.1f}% of days have driving data")
    return warnings


def _analysis_recommendations(
    compatibility: float,
    recommended_km: int,
    target_percentile: float,
    incompatible_days: int,
    max_daily_km: float,
    range_km: float,
    monthly: Dict[int, float],
) -> Tuple[str, ...]:
    recommendations: List[str] = []
    if compatibility < 80:
        recommendations.append(
            f"Consider an EV with at least {recommended_km}km range for {target_percentile:g}% compatibility"
        )
    if incompatible_days > 0:
        recommendations.append("Plan charging stops for longer trips or use alternative transport")
    if max_daily_km > range_km * 2:
        recommendations.append("Longest trips may require multiple charging stops or hybrid vehicle")
    if monthly and max(monthly.values()) - min(monthly.values()) > 20:
        recommendations.append("Consider seasonal driving patterns when planning EV usage")
    return tuple(recommendations)


def analyze_range(
    summaries: Iterable[DailySummary] | None,
    range_km: float,
    target_percentile: float = DEFAULT_TARGET_PERCENTILE,
    min_distance_km: float = 1.0,
) -> RangeAnalysis:
    """Compute compatibility statistics for one EV range.

    Args:
        summaries: Daily summaries; non-significant days are ignored.
        range_km: Candidate single-charge range in km, in (0, 1000].
        target_percentile: Coverage for the recommended range (default 95).
        min_distance_km: Minimum daily distance for a significant day.

    Returns:
        A new RangeAnalysis. With no significant days all counts are zero.

    Raises:
        InputError: If summaries are missing or the range/percentile is invalid.
    """

    all_days = _require(summaries)
    range_value = validate_range(range_km)
    percentile = validate_percentile(target_percentile)
    days = sorted((s for s in all_days if s.is_significant_day(min_distance_km)), key=lambda s: s.date)
    warnings = validate_analysis_data(all_days, min_distance_km)

    if not days:
        warnings.insert(0, "No significant driving days found in dataset")
        return RangeAnalysis(
            ev_range_km=range_value,
            target_percentile=percentile,
            incompatibility_breakdown={label: 0 for label in BUCKET_LABELS},
            assessment=describe_compatibility(0.0),
            warnings=tuple(warnings),
        )

    total = len(days)
    compatible = sum(1 for s in days if s.is_compatible_with(range_value))
    compatibility = compatible * 100.0 / total
    longest = [s.longest_trip_km for s in days]
    recommended = percentile_range(longest, percentile)
    full = percentile_range(longest, 100.0)
    max_daily = max(s.total_distance_km for s in days)
    monthly = monthly_compatibility(days, range_value)
    observed = {mode for s in days for mode in s.modes}

    analysis = RangeAnalysis(
        ev_range_km=range_value,
        total_days=total,
        compatible_days=compatible,
        incompatible_days=total - compatible,
        compatibility_percentage=compatibility,
        average_daily_distance_km=sum(s.total_distance_km for s in days) / total,
        maximum_daily_distance_km=max_daily,
        recommended_minimum_range_km=recommended,
        required_full_compatibility_range_km=full,
        target_percentile=percentile,
        incompatibility_breakdown=incompatibility_breakdown(days, range_value),
        monthly_compatibility=monthly,
        date_range=(days[0].date, days[-1].date),
        analyzed_modes=tuple(mode for mode in TransportMode if mode in observed),
        total_trips=sum(s.trip_count for s in days),
        data_quality_score=sum(s.data_quality for s in days) / total,
        assessment=describe_compatibility(compatibility),
        recommendations=_analysis_recommendations(
            compatibility, recommended, percentile, total - compatible, max_daily, range_value, monthly
        ),
        warnings=tuple(warnings),
    )
    logging.info(
        "Range %.0fkm: %.1f%% compatibility across %d days (recommended %dkm, full %dkm)",
        range_value,
        compatibility,
        total,
        recommended,
        full,
    )
    return analysis


def analyze_ranges(
    summaries: Iterable[DailySummary] | None,
    ranges_km: Sequence[float],
    target_percentile: float = DEFAULT_TARGET_PERCENTILE,
    min_distance_km: float = 1.0,
    workers: int = 1,
) -> List[RangeAnalysis]:
    """Analyse several ranges independently; output order follows ``ranges_km``."""

    days = _require(summaries)
    if not ranges_km:
        raise InputError("At least one EV range is required")
    for value in ranges_km:
        validate_range(value)

    def run(range_km: float) -> RangeAnalysis:
        return analyze_range(days, range_km, target_percentile, min_distance_km)

    if workers > 1 and len(ranges_km) > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(run, ranges_km))
    return [run(r) for r in ranges_km]


def _challenging_day_recommendations(summary: DailySummary, excess_km: float) -> Tuple[str, ...]:
    recommendations: List[str] = []
    if excess_km <= 50:
        recommendations.append("Plan charging stop or use fast charging")
    elif excess_km <= 100:
        recommendations.append("Plan multiple charging stops or consider hybrid vehicle")
    else:
        recommendations.append("Consider alternative transportation or hybrid vehicle for long trips")
    if summary.trip_count > 5:
        recommendations.append("Multiple trips - consider trip consolidation")
    return tuple(recommendations)


def identify_challenging_days(
    summaries: Iterable[DailySummary] | None,
    range_km: float,
    min_distance_km: float = 1.0,
) -> List[ChallengingDay]:
    """Days whose longest trip exceeds the range, most severe first."""

    days = _require(summaries)
    range_value = validate_range(range_km)
    challenging: List[ChallengingDay] = []
    for summary in days:
        if not summary.is_significant_day(min_distance_km) or summary.is_compatible_with(range_value):
            continue
        excess = summary.longest_trip_km - range_value
        challenging.append(
            ChallengingDay(
                date=summary.date,
                total_distance_km=summary.total_distance_km,
                longest_trip_km=summary.longest_trip_km,
                excess_km=excess,
                severity=classify_severity(excess),
                trip_count=summary.trip_count,
                average_speed_kmh=summary.average_speed_kmh,
                recommendations=_challenging_day_recommendations(summary, excess),
            )
        )
    challenging.sort(key=lambda d: (-int(d.severity), -d.excess_km, d.date))
    logging.debug("Identified %d challenging days for %.0fkm range", len(challenging), range_value)
    return challenging


def estimate_price(range_km: float) -> float:
    """Rough list price used only to compare ranges against each other."""

    return 30_000.0 + range_km * 100.0


def _range_notes(compatibility: float, range_km: float, days: Sequence[DailySummary]) -> str:
    notes: List[str] = []
    if compatibility >= 95:
        notes.append("Covers almost all your driving needs")
    elif compatibility >= 85:
        notes.append("Good coverage for most driving patterns")
    elif compatibility < 70:
        incompatible = sum(1 for s in days if not s.is_compatible_with(range_km))
        notes.append(f"May require charging planning on {incompatible} days")
    if max(s.longest_trip_km for s in days) > range_km * 1.5:
        notes.append("Some trips significantly exceed range")
    return "; ".join(notes)


def recommend_ranges(
    summaries: Iterable[DailySummary] | None,
    ranges_km: Sequence[int] = STANDARD_EV_RANGES,
    min_distance_km: float = 1.0,
) -> List[RangeRecommendation]:
    """Sweep standard ranges; a range is recommended when 85% <= compatibility < 100%.

    Sorted by compatibility (descending), then range (ascending).
    """

    days = [s for s in _require(summaries) if s.is_significant_day(min_distance_km)]
    if not days:
        return []

    recommendations: List[RangeRecommendation] = []
    for range_km in ranges_km:
        validate_range(range_km)
        compatible = sum(1 for s in days if s.is_compatible_with(range_km))
        compatibility = compatible * 100.0 / len(days)
        recommendations.append(
            RangeRecommendation(
                range_km=int(range_km),
                compatibility_percentage=compatibility,
                compatible_days=compatible,
                total_days=len(days),
                assessment=assess_compatibility(compatibility),
                estimated_price=estimate_price(range_km),
                is_recommended=85.0 <= compatibility < 100.0,
                notes=_range_notes(compatibility, range_km, days),
            )
        )
    recommendations.sort(key=lambda r: (-r.compatibility_percentage, r.range_km))
    return recommendations


def analyze_seasonal_patterns(
    summaries: Iterable[DailySummary] | None,
    ranges_km: Sequence[int] = SEASONAL_RANGES,
    min_distance_km: float = 1.0,
) -> SeasonalAnalysis:
    """Per-month driving statistics and compatibility for a few reference ranges."""

    days = [s for s in _require(summaries) if s.is_significant_day(min_distance_km)]
    if not days:
        return SeasonalAnalysis()

    frame = _days_frame(days)
    monthly: Dict[int, MonthlyStats] = {}
    for month, month_df in frame.groupby("month", sort=True):
        n = len(month_df)
        compat = {
            int(r): int((month_df["longest_trip_km"] <= r).sum()) * 100.0 / n
            for r in ranges_km
        }
        monthly[int(month)] = MonthlyStats(
            month=int(month),
            total_days=n,
            average_distance_km=float(month_df["total_distance_km"].mean()),
            max_distance_km=float(month_df["total_distance_km"].max()),
            average_trips=float(month_df["trip_count"].mean()),
            average_speed_kmh=float(month_df["average_speed_kmh"].mean()),
            range_compatibility=compat,
        )
    return SeasonalAnalysis(monthly=monthly, insights=_seasonal_insights(monthly))


def _seasonal_insights(monthly: Dict[int, MonthlyStats]) -> Tuple[str, ...]:
    if len(monthly) < 3:
        return ()
    busiest = max(monthly.values(), key=lambda m: (m.average_distance_km, -m.month))
    quietest = min(monthly.values(), key=lambda m: (m.average_distance_km, m.month))
    if busiest.average_distance_km > quietest.average_distance_km * 1.5:
        return (
            f"Driving varies significantly by season: {calendar.month_name[busiest.month]} has "
            f"{busiest.average_distance_km:.0f}km avg vs {quietest.average_distance_km:.0f}km in "
            f"{calendar.month_name[quietest.month]}",
        )
    return ()
