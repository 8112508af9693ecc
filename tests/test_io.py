from datetime import date

import pandas as pd
import pytest

from ev_range.analysis import analyze_range, identify_challenging_days, recommend_ranges
from ev_range.diagnostics import Diagnostics
from ev_range.errors import InputError
from ev_range.io import (
    analyses_to_frame,
    challenging_days_to_frame,
    ensure_required_columns,
    iter_sample_chunks,
    recommendations_to_frame,
    samples_from_frame,
    save_dataframe,
    save_json,
    summaries_to_frame,
)
from ev_range.models import DailySummary
from ev_range.modes import TransportMode


def _frame():
    return pd.DataFrame(
        {
            "timestamp": ["2024-03-04T08:00:00Z", "2024-03-04T08:01:00Z", "not a time", "2024-03-04T08:03:00Z"],
            "latitude": [47.60, "abc", 47.62, 47.63],
            "longitude": [-122.33, -122.33, -122.33, -122.33],
            "accuracy": [12.0, None, 5.0, None],
            "mode": ["InVehicle", "IN_VEHICLE", "walking", None],
        }
    )


def test_samples_from_frame_skips_invalid_rows():
    diagnostics = Diagnostics()
    samples = samples_from_frame(_frame(), diagnostics)

    assert len(samples) == 2
    assert diagnostics.invalid_records == 2
    assert samples[0].mode is TransportMode.IN_VEHICLE
    assert samples[0].accuracy_m == 12.0
    assert samples[0].timestamp.tzinfo is not None
    assert samples[1].mode is TransportMode.UNKNOWN
    assert samples[1].accuracy_m is None
    assert samples[1].velocity_kmh is None


def test_required_columns():
    with pytest.raises(InputError):
        ensure_required_columns(pd.DataFrame({"timestamp": [], "latitude": []}))


def test_iter_sample_chunks(tmp_path):
    path = tmp_path / "samples.csv"
    _frame().to_csv(path, index=False)
    diagnostics = Diagnostics()
    chunks = list(iter_sample_chunks(path, diagnostics, chunk_size=3))

    assert [len(c) for c in chunks] == [1, 1]
    assert diagnostics.samples_read == 4
    assert diagnostics.invalid_records == 2

    with pytest.raises(InputError):
        list(iter_sample_chunks(tmp_path / "missing.csv", Diagnostics()))


def test_result_frames_and_saving(tmp_path):
    days = [
        DailySummary(date=date(2024, 3, d), total_distance_km=40.0 * d, trip_count=2, longest_trip_km=30.0 * d,
                     modes=(TransportMode.IN_VEHICLE, TransportMode.IN_BUS))
        for d in range(1, 9)
    ]
    summaries = summaries_to_frame(days)
    assert list(summaries["modes"].unique()) == ["IN_VEHICLE;IN_BUS"]
    assert summaries.loc[0, "date"] == "2024-03-01"

    analyses = analyses_to_frame([analyze_range(days, 150.0), analyze_range(days, 300.0)])
    assert list(analyses["ev_range_km"]) == [150.0, 300.0]
    assert "200km+ over" in analyses.columns

    sweep = recommendations_to_frame(recommend_ranges(days))
    assert len(sweep) == 10
    challenging = challenging_days_to_frame(identify_challenging_days(days, 150.0))
    assert set(challenging["severity"]) == {"MINOR", "MODERATE"}

    save_dataframe(summaries, tmp_path / "out" / "daily.csv")
    save_json({"when": date(2024, 3, 1), "value": float("nan")}, tmp_path / "out" / "diag.json")
    assert pd.read_csv(tmp_path / "out" / "daily.csv").shape[0] == 8
    assert '"when": "2024-03-01"' in (tmp_path / "out" / "diag.json").read_text(encoding="utf-8")


def test_mixed_precision_timestamps_are_all_parsed():
    frame = pd.DataFrame(
        {
            "timestamp": [
                "2024-03-04T08:00:00+00:00",
                "2024-03-04T08:00:30.500000+00:00",
                "2024-03-04T08:01:00+00:00",
                "2024-03-04T08:01:30.500000+00:00",
            ],
            "latitude": [47.60, 47.61, 47.62, 47.63],
            "longitude": [-122.33, -122.33, -122.33, -122.33],
        }
    )
    diagnostics = Diagnostics()
    samples = samples_from_frame(frame, diagnostics)

    assert len(samples) == 4
    assert diagnostics.invalid_records == 0
    assert samples[1].timestamp.microsecond == 500_000
    assert (samples[3].timestamp - samples[0].timestamp).total_seconds() == 90.5


def test_empty_or_headerless_csv_is_an_input_error(tmp_path):
    empty = tmp_path / "empty.csv"
    empty.write_text("", encoding="utf-8")
    with pytest.raises(InputError):
        list(iter_sample_chunks(empty, Diagnostics()))

    headerless = tmp_path / "headerless.csv"
    headerless.write_text("2024-03-04T08:00:00Z,47.6,-122.3\n", encoding="utf-8")
    with pytest.raises(InputError):
        list(iter_sample_chunks(headerless, Diagnostics()))


def test_significance_column_uses_threshold():
    days = [
        DailySummary(date=date(2024, 3, 1), total_distance_km=3.0, trip_count=1, longest_trip_km=3.0),
        DailySummary(date=date(2024, 3, 2), total_distance_km=12.0, trip_count=2, longest_trip_km=8.0),
    ]
    assert list(summaries_to_frame(days)["is_significant"]) == [True, True]
    assert list(summaries_to_frame(days, min_significant_km=5.0)["is_significant"]) == [False, True]
