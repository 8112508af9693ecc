"""Input/output helpers for the EV range pipeline.

Covers chunked loading of normalised sample CSVs, required-column checks,
conversion of result records to DataFrames, and CSV/JSON saving.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Iterator, List, Sequence

import pandas as pd

from ev_range.analysis import BUCKET_LABELS
from ev_range.diagnostics import Diagnostics
from ev_range.errors import InputError
from ev_range.models import ChallengingDay, DailySummary, LocationSample, RangeAnalysis, RangeRecommendation
from ev_range.modes import parse_mode

REQUIRED_COLUMNS: List[str] = ["timestamp", "latitude", "longitude"]
OPTIONAL_NUMERIC_COLUMNS: List[str] = ["accuracy", "confidence", "velocity", "altitude"]


def ensure_required_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Validate that the DataFrame contains the required columns."""

    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise InputError(f"Missing required columns: {missing}")
    return df


def _optional(value: Any) -> float | None:
    if value is None or pd.isna(value):
        return None
    return float(value)


def samples_from_frame(df: pd.DataFrame, diagnostics: Diagnostics) -> List[LocationSample]:
    """Convert one frame of normalised rows into samples.

    Rows with an unparseable timestamp or invalid coordinates are skipped and
    counted as invalid records.
    """

    ensure_required_columns(df)
    frame = pd.DataFrame(
        {
            "timestamp": pd.to_datetime(df["timestamp"], utc=True, errors="coerce", format="ISO8601"),
            "latitude": pd.to_numeric(df["latitude"], errors="coerce"),
            "longitude": pd.to_numeric(df["longitude"], errors="coerce"),
        }
    )
    for column in OPTIONAL_NUMERIC_COLUMNS:
        frame[column] = pd.to_numeric(df[column], errors="coerce") if column in df.columns else float("nan")
    frame["mode"] = df["mode"] if "mode" in df.columns else None

    valid = (
        frame["timestamp"].notna()
        & frame["latitude"].between(-90.0, 90.0)
        & frame["longitude"].between(-180.0, 180.0)
    )
    skipped = int((~valid).sum())
    if skipped:
        diagnostics.invalid_records += skipped
        logging.debug("Skipped %d rows with unparseable timestamp or coordinates", skipped)

    samples: List[LocationSample] = []
    for row in frame[valid].itertuples(index=False):
        samples.append(
            LocationSample(
                timestamp=row.timestamp.to_pydatetime(),
                latitude=float(row.latitude),
                longitude=float(row.longitude),
                accuracy_m=_optional(row.accuracy),
                mode=parse_mode(None if row.mode is None or pd.isna(row.mode) else row.mode),
                confidence=_optional(row.confidence),
                velocity_kmh=_optional(row.velocity),
                altitude_m=_optional(row.altitude),
            )
        )
    return samples


def iter_sample_chunks(
    path: str | Path,
    diagnostics: Diagnostics,
    chunk_size: int = 50_000,
) -> Iterator[List[LocationSample]]:
    """Yield samples from a normalised CSV ``chunk_size`` rows at a time."""

    path = Path(path)
    if not path.is_file():
        raise InputError(f"Sample CSV not found: {path}")

    # Peek at the header so a bad file fails before any chunk is processed.
    try:
        header = pd.read_csv(path, nrows=0)
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as exc:
        raise InputError(f"Could not read header of {path}: {exc}") from exc
    ensure_required_columns(header)
    logging.info("Reading %s in chunks of %d rows", path, chunk_size)

    def skip_bad_line(fields: List[str]) -> None:
        diagnostics.invalid_records += 1
        logging.debug("Skipping malformed CSV line: %s", fields)
        return None

    rows = 0
    with pd.read_csv(
        path,
        chunksize=chunk_size,
        engine="python",
        on_bad_lines=skip_bad_line,
    ) as reader:
        for chunk in reader:
            rows += len(chunk)
            diagnostics.samples_read += len(chunk)
            yield samples_from_frame(chunk, diagnostics)
    logging.info("Read %d rows from %s", rows, path)


def summaries_to_frame(summaries: Sequence[DailySummary], min_significant_km: float = 1.0) -> pd.DataFrame:
    columns = [
        "date",
        "total_distance_km",
        "trip_count",
        "longest_trip_km",
        "average_speed_kmh",
        "driving_minutes",
        "modes",
        "sample_count",
        "data_quality",
        "is_significant",
    ]
    rows = [
        {
            "date": s.date.isoformat(),
            "total_distance_km": s.total_distance_km,
            "trip_count": s.trip_count,
            "longest_trip_km": s.longest_trip_km,
            "average_speed_kmh": s.average_speed_kmh,
            "driving_minutes": s.driving_minutes,
            "modes": ";".join(m.value for m in s.modes),
            "sample_count": s.sample_count,
            "data_quality": s.data_quality,
            "is_significant": s.is_significant_day(min_significant_km),
        }
        for s in summaries
    ]
    return pd.DataFrame(rows, columns=columns)


def analyses_to_frame(analyses: Sequence[RangeAnalysis]) -> pd.DataFrame:
    rows: List[Dict[str, Any]] = []
    for a in analyses:
        row: Dict[str, Any] = {
            "ev_range_km": a.ev_range_km,
            "total_days": a.total_days,
            "compatible_days": a.compatible_days,
            "incompatible_days": a.incompatible_days,
            "compatibility_percentage": a.compatibility_percentage,
            "average_daily_distance_km": a.average_daily_distance_km,
            "maximum_daily_distance_km": a.maximum_daily_distance_km,
            "recommended_minimum_range_km": a.recommended_minimum_range_km,
            "required_full_compatibility_range_km": a.required_full_compatibility_range_km,
            "target_percentile": a.target_percentile,
            "first_date": a.date_range[0].isoformat() if a.date_range else None,
            "last_date": a.date_range[1].isoformat() if a.date_range else None,
            "total_trips": a.total_trips,
            "data_quality_score": a.data_quality_score,
        }
        for label in BUCKET_LABELS:
            row[label] = a.incompatibility_breakdown.get(label, 0)
        row["assessment"] = a.assessment
        row["recommendations"] = "; ".join(a.recommendations)
        row["warnings"] = "; ".join(a.warnings)
        rows.append(row)
    return pd.DataFrame(rows)


def recommendations_to_frame(recommendations: Sequence[RangeRecommendation]) -> pd.DataFrame:
    return pd.DataFrame([asdict(r) for r in recommendations])


def challenging_days_to_frame(days: Sequence[ChallengingDay]) -> pd.DataFrame:
    rows = []
    for day in days:
        row = asdict(day)
        row["date"] = day.date.isoformat()
        row["severity"] = day.severity.name
        row["recommendations"] = "; ".join(day.recommendations)
        rows.append(row)
    return pd.DataFrame(rows)


def save_dataframe(df: pd.DataFrame, path: str | Path) -> None:
    """Persist a DataFrame to CSV."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    logging.info("Saved %d rows to %s", len(df), path)


def _json_default(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def save_json(payload: Dict[str, Any], path: str | Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, default=_json_default)
    logging.info("Saved %s", path)
