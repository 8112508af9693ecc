"""High-level pipeline orchestration for the EV range analysis."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from itertools import islice
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Sequence, Tuple

from ev_range.aggregation import aggregate_daily
from ev_range.analysis import (
    analyze_ranges,
    analyze_seasonal_patterns,
    identify_challenging_days,
    recommend_ranges,
    validate_analysis_data,
    validate_range,
)
from ev_range.cancellation import CancellationToken
from ev_range.config import AnalysisConfig
from ev_range.diagnostics import Diagnostics
from ev_range.distance import attach_distances
from ev_range.errors import AnalysisCancelled, InputError
from ev_range.io import iter_sample_chunks
from ev_range.mode_validation import validate_modes
from ev_range.models import (
    ChallengingDay,
    DailySummary,
    LocationSample,
    RangeAnalysis,
    RangeRecommendation,
    SeasonalAnalysis,
    Trip,
)
from ev_range.quality import filter_by_quality
from ev_range.segmentation import segment_trips
from ev_range.stationary import remove_stationary_periods


class OutcomeStatus(Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class AnalysisResult:
    """Everything a completed run produced."""

    daily_summaries: Tuple[DailySummary, ...]
    trips: Tuple[Trip, ...]
    analyses: Tuple[RangeAnalysis, ...]
    diagnostics: Diagnostics
    recommendations: Tuple[RangeRecommendation, ...] = ()
    challenging_days: Dict[float, Tuple[ChallengingDay, ...]] = field(default_factory=dict)
    seasonal: SeasonalAnalysis = field(default_factory=SeasonalAnalysis)


@dataclass(frozen=True)
class AnalysisOutcome:
    """Completed runs carry a result; cancelled runs carry nothing."""

    status: OutcomeStatus
    result: AnalysisResult | None = None

    @property
    def completed(self) -> bool:
        return self.status is OutcomeStatus.COMPLETED

    @classmethod
    def cancelled(cls) -> "AnalysisOutcome":
        return cls(status=OutcomeStatus.CANCELLED)


class PipelineComponent:
    """Provide shared configuration handling and logging for components."""

    def __init__(self, config: AnalysisConfig) -> None:
        """Initialise the component with configuration and a dedicated logger."""

        self.config: AnalysisConfig = config
        self.logger: logging.Logger = logging.getLogger(self.__class__.__name__)


class SampleIngestor(PipelineComponent):
    """Drop invalid and low-quality samples chunk by chunk, then sort the survivors."""

    def ingest(
        self,
        chunks: Iterable[List[LocationSample]],
        token: CancellationToken,
        diagnostics: Diagnostics,
    ) -> List[LocationSample]:
        kept: List[LocationSample] = []
        for chunk in chunks:
            token.raise_if_cancelled()
            valid = [s for s in chunk if s.has_valid_coordinates()]
            diagnostics.invalid_records += len(chunk) - len(valid)
            kept.extend(filter_by_quality(valid, self.config.quality, diagnostics))

        kept.sort(key=lambda s: s.timestamp)
        self.logger.info(
            "Kept %d samples (%d invalid, %d below quality thresholds)",
            len(kept),
            diagnostics.invalid_records,
            diagnostics.quality_filtered,
        )
        return kept


class TraceEnricher(PipelineComponent):
    """Attach distance/velocity and correct modes in fixed-size batches."""

    def _process_batch(
        self,
        batch: Sequence[LocationSample],
        next_sample: LocationSample | None,
        token: CancellationToken,
    ) -> Tuple[List[LocationSample], Diagnostics]:
        token.raise_if_cancelled()
        local = Diagnostics()
        enriched = attach_distances(batch, local, next_sample=next_sample, max_speed_kmh=self.config.max_speed_kmh)
        return validate_modes(enriched, local), local

    def enrich(
        self,
        samples: Sequence[LocationSample],
        token: CancellationToken,
        diagnostics: Diagnostics,
    ) -> List[LocationSample]:
        size = self.config.batch_size
        jobs = [
            (samples[start:start + size], samples[start + size] if start + size < len(samples) else None)
            for start in range(0, len(samples), size)
        ]

        if self.config.workers > 1 and len(jobs) > 1:
            with ThreadPoolExecutor(max_workers=self.config.workers) as executor:
                results = list(executor.map(lambda job: self._process_batch(job[0], job[1], token), jobs))
        else:
            results = [self._process_batch(batch, nxt, token) for batch, nxt in jobs]

        enriched: List[LocationSample] = []
        for batch_samples, batch_diagnostics in results:
            enriched.extend(batch_samples)
            diagnostics.merge(batch_diagnostics)
        self.logger.info(
            "Enriched %d samples in %d batches (%d mode corrections, %d clamped velocities)",
            len(enriched),
            len(jobs),
            diagnostics.mode_corrections,
            diagnostics.velocity_clamped,
        )
        return enriched


class TripBuilder(PipelineComponent):
    """Remove dwell periods and split the trace into trips."""

    def build(self, samples: Sequence[LocationSample], diagnostics: Diagnostics) -> List[Trip]:
        moving = remove_stationary_periods(samples, self.config.stationary, diagnostics)
        trips = segment_trips(moving, self.config.segmentation, diagnostics)
        self.logger.info(
            "Built %d trips from %d samples (%d stationary samples removed)",
            len(trips),
            len(moving),
            diagnostics.stationary_removed,
        )
        return trips


class RangeReporter(PipelineComponent):
    """Run the range analyses, the standard sweep and challenging-day reports."""

    def report(
        self,
        summaries: Sequence[DailySummary],
        ranges_km: Sequence[float],
        token: CancellationToken,
        diagnostics: Diagnostics,
    ) -> Tuple[
        List[RangeAnalysis],
        List[RangeRecommendation],
        Dict[float, Tuple[ChallengingDay, ...]],
        SeasonalAnalysis,
    ]:
        min_km = self.config.aggregation.min_significant_km
        for warning in validate_analysis_data(summaries, min_km):
            self.logger.warning("%s", warning)
            diagnostics.add_warning(warning)

        token.raise_if_cancelled()
        analyses = analyze_ranges(
            summaries,
            ranges_km,
            target_percentile=self.config.target_percentile,
            min_distance_km=min_km,
            workers=self.config.workers,
        )
        for analysis in analyses:
            for warning in analysis.warnings:
                diagnostics.add_warning(warning)

        token.raise_if_cancelled()
        recommendations: List[RangeRecommendation] = []
        if self.config.include_sweep:
            recommendations = recommend_ranges(summaries, self.config.sweep_ranges_km, min_km)

        challenging = {r: tuple(identify_challenging_days(summaries, r, min_km)) for r in ranges_km}
        seasonal = analyze_seasonal_patterns(summaries, min_distance_km=min_km)
        return analyses, recommendations, challenging, seasonal


def _chunked(
    samples: Iterable[LocationSample],
    size: int,
    diagnostics: Diagnostics,
) -> Iterator[List[LocationSample]]:
    iterator = iter(samples)
    while True:
        chunk = list(islice(iterator, size))
        if not chunk:
            return
        diagnostics.samples_read += len(chunk)
        yield chunk


class RangeAnalysisPipeline:
    """Coordinate the end-to-end workflow from raw samples to range analyses."""

    def __init__(self, config: AnalysisConfig | None = None) -> None:
        """Initialise helpers using the provided configuration."""

        self.config: AnalysisConfig = config or AnalysisConfig()
        self.ingestor = SampleIngestor(self.config)
        self.enricher = TraceEnricher(self.config)
        self.trip_builder = TripBuilder(self.config)
        self.reporter = RangeReporter(self.config)

    def run(
        self,
        samples: Iterable[LocationSample] | None,
        ranges_km: Sequence[float] | None = None,
        token: CancellationToken | None = None,
    ) -> AnalysisOutcome:
        """Analyse an iterable of samples in any order.

        Raises:
            InputError: If ``samples`` is None or a requested range is invalid.
        """

        if samples is None:
            raise InputError("Location samples are required")
        diagnostics = Diagnostics()
        return self._execute(_chunked(samples, self.config.chunk_size, diagnostics), ranges_km, token, diagnostics)

    def run_csv(
        self,
        path: str | Path,
        ranges_km: Sequence[float] | None = None,
        token: CancellationToken | None = None,
    ) -> AnalysisOutcome:
        """Analyse a normalised sample CSV, read in bounded chunks."""

        diagnostics = Diagnostics()
        chunks = iter_sample_chunks(path, diagnostics, self.config.chunk_size)
        return self._execute(chunks, ranges_km, token, diagnostics)

    def _execute(
        self,
        chunks: Iterable[List[LocationSample]],
        ranges_km: Sequence[float] | None,
        token: CancellationToken | None,
        diagnostics: Diagnostics,
    ) -> AnalysisOutcome:
        ranges = tuple(validate_range(r) for r in (ranges_km if ranges_km is not None else self.config.ev_ranges_km))
        if not ranges:
            raise InputError("At least one EV range is required")
        token = token or CancellationToken()

        try:
            samples = self.ingestor.ingest(chunks, token, diagnostics)
            token.raise_if_cancelled()
            enriched = self.enricher.enrich(samples, token, diagnostics)
            token.raise_if_cancelled()
            trips = self.trip_builder.build(enriched, diagnostics)
            token.raise_if_cancelled()
            summaries = aggregate_daily(trips, self.config.aggregation)
            token.raise_if_cancelled()
            analyses, recommendations, challenging, seasonal = self.reporter.report(
                summaries, ranges, token, diagnostics
            )
            token.raise_if_cancelled()
        except AnalysisCancelled:
            logging.warning("Analysis cancelled; discarding partial results")
            return AnalysisOutcome.cancelled()

        result = AnalysisResult(
            daily_summaries=tuple(summaries),
            trips=tuple(trips),
            analyses=tuple(analyses),
            diagnostics=diagnostics,
            recommendations=tuple(recommendations),
            challenging_days=challenging,
            seasonal=seasonal,
        )
        logging.info(
            "Analysis complete: %d samples read, %d trips, %d daily summaries, %d ranges",
            diagnostics.samples_read,
            len(trips),
            len(summaries),
            len(analyses),
        )
        return AnalysisOutcome(status=OutcomeStatus.COMPLETED, result=result)
