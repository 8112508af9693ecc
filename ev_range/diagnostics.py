"""Per-run counters exposed next to the analysis results.

Each pipeline run owns one :class:`Diagnostics` instance. Worker batches
fill their own instance and are merged on the coordinating thread, so no
counter is shared between threads.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List


@dataclass
class Diagnostics:
    samples_read: int = 0
    invalid_records: int = 0
    filtered_accuracy: int = 0
    filtered_confidence: int = 0
    filtered_null_island: int = 0
    distance_calculations: int = 0
    distance_anomalies: int = 0
    computation_anomalies: int = 0
    velocity_clamped: int = 0
    max_distance_km: float = 0.0
    mode_corrections: int = 0
    stationary_removed: int = 0
    trips_emitted: int = 0
    trips_discarded: int = 0
    warnings: List[str] = field(default_factory=list)

    @property
    def quality_filtered(self) -> int:
        return self.filtered_accuracy + self.filtered_confidence + self.filtered_null_island

    def add_warning(self, message: str) -> None:
        if message not in self.warnings:
            self.warnings.append(message)

    def merge(self, other: "Diagnostics") -> "Diagnostics":
        """Add another instance's counters into this one and return ``self``."""

        for f in fields(self):
            if f.name == "warnings":
                for message in other.warnings:
                    self.add_warning(message)
            elif f.name == "max_distance_km":
                self.max_distance_km = max(self.max_distance_km, other.max_distance_km)
            else:
                setattr(self, f.name, getattr(self, f.name) + getattr(other, f.name))
        return self

    def as_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["quality_filtered"] = self.quality_filtered
        return payload
