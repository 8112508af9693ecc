import math
import random
from datetime import datetime, timedelta, timezone

import pandas as pd
import pytest

from ev_range.cancellation import CancellationToken
from ev_range.config import AnalysisConfig
from ev_range.errors import InputError
from ev_range.models import LocationSample
from ev_range.modes import TransportMode
from ev_range.pipeline import OutcomeStatus, RangeAnalysisPipeline

STEP_KM = 6371.0 * math.radians(0.01)


def _daily_drives(days=10, minutes=30):
    """One drive per day: a sample every minute moving 0.01 degrees north."""

    samples = []
    for day in range(days):
        start = datetime(2024, 3, 1 + day, 8, 0, tzinfo=timezone.utc)
        for i in range(minutes + 1):
            samples.append(
                LocationSample(
                    timestamp=start + timedelta(minutes=i),
                    latitude=47.0 + 0.01 * i,
                    longitude=-122.3,
                    accuracy_m=10.0,
                    mode=TransportMode.IN_VEHICLE,
                    confidence=90.0,
                )
            )
    return samples


def test_empty_input_completes_with_zero_results():
    outcome = RangeAnalysisPipeline().run([], ranges_km=[300])

    assert outcome.status is OutcomeStatus.COMPLETED
    result = outcome.result
    assert result.trips == ()
    assert result.daily_summaries == ()
    assert len(result.analyses) == 1
    assert result.analyses[0].total_days == 0
    assert result.recommendations == ()


def test_missing_input_and_bad_range_raise():
    with pytest.raises(InputError):
        RangeAnalysisPipeline().run(None)
    with pytest.raises(InputError):
        RangeAnalysisPipeline().run(_daily_drives(days=1), ranges_km=[0])


def test_end_to_end_daily_drives():
    outcome = RangeAnalysisPipeline().run(_daily_drives(), ranges_km=[30, 50])
    assert outcome.completed
    result = outcome.result

    assert len(result.trips) == 10
    assert len(result.daily_summaries) == 10
    day = result.daily_summaries[0]
    assert day.trip_count == 1
    assert day.longest_trip_km == pytest.approx(30 * STEP_KM)
    assert day.average_speed_kmh == pytest.approx(60 * STEP_KM)
    assert day.data_quality == pytest.approx(1.0)

    short, long_ = result.analyses
    assert short.ev_range_km == 30.0
    assert short.compatibility_percentage == 0.0
    assert long_.compatibility_percentage == 100.0
    assert long_.recommended_minimum_range_km == math.ceil(30 * STEP_KM)
    assert long_.warnings == ()
    assert len(result.challenging_days[30.0]) == 10
    assert result.challenging_days[50.0] == ()
    assert result.recommendations[0].compatibility_percentage == 100.0

    diagnostics = result.diagnostics
    assert diagnostics.samples_read == 310
    assert diagnostics.mode_corrections == 0
    assert diagnostics.trips_emitted == 10
    assert diagnostics.distance_calculations == 309


def test_noisy_records_are_filtered_and_counted():
    samples = _daily_drives()
    t = samples[5].timestamp + timedelta(seconds=30)
    samples += [
        LocationSample(timestamp=t, latitude=47.05, longitude=-122.3, accuracy_m=800.0),
        LocationSample(timestamp=t, latitude=float("nan"), longitude=-122.3),
        LocationSample(timestamp=t, latitude=0.0, longitude=0.0),
    ]
    result = RangeAnalysisPipeline().run(samples, ranges_km=[50]).result

    assert result.diagnostics.filtered_accuracy == 1
    assert result.diagnostics.filtered_null_island == 1
    assert result.diagnostics.invalid_records == 1
    assert result.analyses[0].total_days == 10


def test_input_order_does_not_matter():
    ordered = _daily_drives()
    shuffled = list(ordered)
    random.Random(7).shuffle(shuffled)

    a = RangeAnalysisPipeline().run(ordered, ranges_km=[40]).result
    b = RangeAnalysisPipeline().run(shuffled, ranges_km=[40]).result
    assert a.daily_summaries == b.daily_summaries
    assert a.analyses == b.analyses


def test_repeated_runs_are_identical():
    pipeline = RangeAnalysisPipeline()
    first = pipeline.run(_daily_drives(), ranges_km=[25, 40, 300]).result
    second = pipeline.run(_daily_drives(), ranges_km=[25, 40, 300]).result
    assert first.analyses == second.analyses
    assert first.diagnostics.as_dict() == second.diagnostics.as_dict()


def test_batched_parallel_run_matches_sequential():
    samples = _daily_drives()
    sequential = RangeAnalysisPipeline().run(samples, ranges_km=[40]).result
    parallel = RangeAnalysisPipeline(AnalysisConfig(batch_size=7, chunk_size=13, workers=3)).run(
        samples, ranges_km=[40]
    ).result

    assert parallel.daily_summaries == sequential.daily_summaries
    assert parallel.trips == sequential.trips
    assert parallel.analyses == sequential.analyses
    assert parallel.diagnostics.distance_calculations == sequential.diagnostics.distance_calculations


def test_cancelled_run_returns_no_result():
    token = CancellationToken()
    token.cancel()
    outcome = RangeAnalysisPipeline().run(_daily_drives(), token=token)
    assert outcome.status is OutcomeStatus.CANCELLED
    assert outcome.result is None


def test_cancellation_between_chunks():
    token = CancellationToken()

    def stream():
        for idx, sample in enumerate(_daily_drives()):
            if idx == 60:
                token.cancel()
            yield sample

    outcome = RangeAnalysisPipeline(AnalysisConfig(chunk_size=50)).run(stream(), token=token)
    assert not outcome.completed
    assert outcome.result is None


def test_run_csv(tmp_path):
    rows = [
        {
            "timestamp": s.timestamp.isoformat(),
            "latitude": s.latitude,
            "longitude": s.longitude,
            "accuracy": s.accuracy_m,
            "mode": "InVehicle",
            "confidence": s.confidence,
        }
        for s in _daily_drives()
    ]
    rows.append({"timestamp": "2024-03-02T09:00:00+00:00", "latitude": "abc", "longitude": -122.3})
    path = tmp_path / "samples.csv"
    pd.DataFrame(rows).to_csv(path, index=False)

    outcome = RangeAnalysisPipeline(AnalysisConfig(chunk_size=100)).run_csv(path, ranges_km=[50])
    result = outcome.result
    assert result.diagnostics.samples_read == 311
    assert result.diagnostics.invalid_records == 1
    assert result.analyses[0].total_days == 10
    assert result.analyses[0].compatibility_percentage == 100.0
