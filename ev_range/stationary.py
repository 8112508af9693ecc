"""Removal of sustained low-speed dwell periods.

A dwell is a run of consecutive samples whose velocity is known and at or
below a threshold. When the run spans at least the minimum duration every
sample in it is dropped. The scan is a single forward pass that tracks where
the current run started.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence

from ev_range.diagnostics import Diagnostics
from ev_range.models import LocationSample


@dataclass(frozen=True)
class StationaryParams:
    max_speed_kmh: float = 5.0
    min_duration_minutes: float = 15.0

    @property
    def min_duration_seconds(self) -> float:
        return self.min_duration_minutes * 60.0


def _is_slow(sample: LocationSample, max_speed_kmh: float) -> bool:
    return sample.velocity_kmh is not None and sample.velocity_kmh <= max_speed_kmh


def remove_stationary_periods(
    samples: Sequence[LocationSample],
    params: StationaryParams,
    diagnostics: Diagnostics,
) -> List[LocationSample]:
    """Drop every sample belonging to a long enough stationary run.

    ``samples`` must be time ordered. Sequences shorter than three samples are
    returned unchanged.
    """

    if len(samples) < 3:
        return list(samples)

    kept: List[LocationSample] = []
    run_start: int | None = None

    def close_run(end: int) -> None:
        # run covers samples[run_start:end]
        span_s = (samples[end - 1].timestamp - samples[run_start].timestamp).total_seconds()
        if span_s >= params.min_duration_seconds:
            diagnostics.stationary_removed += end - run_start
        else:
            kept.extend(samples[run_start:end])

    for idx, sample in enumerate(samples):
        if _is_slow(sample, params.max_speed_kmh):
            if run_start is None:
                run_start = idx
            continue
        if run_start is not None:
            close_run(idx)
            run_start = None
        kept.append(sample)

    if run_start is not None:
        close_run(len(samples))

    logging.debug(
        "Stationary period removal: %d -> %d samples (removed %d)",
        len(samples),
        len(kept),
        len(samples) - len(kept),
    )
    return kept
