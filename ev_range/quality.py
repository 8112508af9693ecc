"""Data-quality filtering of raw location samples.

Samples are rejected, never corrected. Order is preserved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List

from ev_range.diagnostics import Diagnostics
from ev_range.models import LocationSample

NULL_ISLAND_TOLERANCE_DEG = 0.01


@dataclass(frozen=True)
class QualityParams:
    """Thresholds controlling sample rejection."""

    max_accuracy_m: float = 100.0
    min_confidence: float = 50.0


def rejection_reason(sample: LocationSample, params: QualityParams) -> str | None:
    """Return why ``sample`` should be dropped, or None to keep it."""

    if sample.accuracy_m is not None and sample.accuracy_m > params.max_accuracy_m:
        return "accuracy"
    if sample.confidence is not None and sample.confidence < params.min_confidence:
        return "confidence"
    if abs(sample.latitude) < NULL_ISLAND_TOLERANCE_DEG and abs(sample.longitude) < NULL_ISLAND_TOLERANCE_DEG:
        return "null_island"
    return None


def filter_by_quality(
    samples: Iterable[LocationSample],
    params: QualityParams,
    diagnostics: Diagnostics,
) -> List[LocationSample]:
    """Drop samples with poor accuracy, low mode confidence or a (0, 0) fix."""

    kept: List[LocationSample] = []
    seen = 0
    for sample in samples:
        seen += 1
        reason = rejection_reason(sample, params)
        if reason is None:
            kept.append(sample)
        elif reason == "accuracy":
            diagnostics.filtered_accuracy += 1
        elif reason == "confidence":
            diagnostics.filtered_confidence += 1
        else:
            diagnostics.filtered_null_island += 1

    logging.debug("Quality filtering: %d -> %d samples (removed %d)", seen, len(kept), seen - len(kept))
    return kept
