"""Speed-based correction of implausible transport-mode labels."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, List, Tuple

from ev_range.diagnostics import Diagnostics
from ev_range.models import LocationSample
from ev_range.modes import display_name, infer_mode_from_speed, is_speed_valid

DEFAULT_CORRECTED_CONFIDENCE = 50.0


def validate_mode(sample: LocationSample) -> Tuple[LocationSample, bool]:
    """Return the sample with a plausible mode and whether it was corrected.

    Samples without velocity, or whose velocity fits the declared mode's
    typical range, are returned unchanged. Only ``sample`` is consulted.
    """

    if sample.velocity_kmh is None:
        return sample, False

    speed = sample.velocity_kmh
    if is_speed_valid(sample.mode, speed):
        return sample, False

    corrected = infer_mode_from_speed(speed)
    if corrected is sample.mode:
        return sample, False

    logging.debug(
        "Transport mode correction: %s -> %s based on speed %.1f km/h",
        display_name(sample.mode),
        display_name(corrected),
        speed,
    )
    confidence = sample.confidence if sample.confidence is not None else DEFAULT_CORRECTED_CONFIDENCE
    return replace(sample, mode=corrected, confidence=confidence), True


def validate_modes(samples: Iterable[LocationSample], diagnostics: Diagnostics) -> List[LocationSample]:
    validated: List[LocationSample] = []
    for sample in samples:
        checked, corrected = validate_mode(sample)
        if corrected:
            diagnostics.mode_corrections += 1
        validated.append(checked)
    return validated
