"""Configuration helpers for the EV range pipeline.

Provides YAML loading, small utilities for accessing nested configuration
values with defaults, and the typed :class:`AnalysisConfig` built from them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from ev_range.aggregation import AggregationParams
from ev_range.analysis import DEFAULT_TARGET_PERCENTILE, MAX_EV_RANGE_KM, STANDARD_EV_RANGES
from ev_range.distance import MAX_REASONABLE_SPEED_KMH
from ev_range.errors import ConfigError
from ev_range.quality import QualityParams
from ev_range.segmentation import SegmentationParams
from ev_range.stationary import StationaryParams


def load_config(path: str | Path) -> Dict[str, Any]:
    """Load a YAML configuration file."""

    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")
    with path.open("r", encoding="utf-8") as fh:
        try:
            cfg = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Could not parse {path}: {exc}") from exc
    if not isinstance(cfg, dict):
        raise ConfigError(f"Top level of {path} must be a mapping")
    return cfg


def get_nested(config: Dict[str, Any], keys: list[str], default: Any) -> Any:
    """Retrieve a nested value from a config dict with a default."""

    current: Any = config
    for key in keys:
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current


def _number(cfg: Dict[str, Any], keys: list[str], default: float, minimum: float = 0.0, strict: bool = False) -> float:
    raw = get_nested(cfg, keys, default)
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{'.'.join(keys)} must be a number, got {raw!r}") from exc
    if value < minimum or (strict and value == minimum):
        bound = ">" if strict else ">="
        raise ConfigError(f"{'.'.join(keys)} must be {bound} {minimum:g}, got {raw!r}")
    return value


def _integer(cfg: Dict[str, Any], keys: list[str], default: int, minimum: int = 1) -> int:
    raw = get_nested(cfg, keys, default)
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ConfigError(f"{'.'.join(keys)} must be an integer, got {raw!r}")
    if raw < minimum:
        raise ConfigError(f"{'.'.join(keys)} must be >= {minimum}, got {raw!r}")
    return raw


def _flag(cfg: Dict[str, Any], keys: list[str], default: bool) -> bool:
    raw = get_nested(cfg, keys, default)
    if not isinstance(raw, bool):
        raise ConfigError(f"{'.'.join(keys)} must be true or false, got {raw!r}")
    return raw


def _ranges(cfg: Dict[str, Any], keys: list[str], default: Tuple[float, ...]) -> Tuple[float, ...]:
    raw = get_nested(cfg, keys, list(default))
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        raw = [raw]
    if not isinstance(raw, (list, tuple)) or not raw:
        raise ConfigError(f"{'.'.join(keys)} must be a non-empty list of ranges in km")
    ranges = []
    for item in raw:
        if isinstance(item, bool) or not isinstance(item, (int, float)) or not 0 < item <= MAX_EV_RANGE_KM:
            raise ConfigError(f"{'.'.join(keys)} entries must be in (0, {MAX_EV_RANGE_KM:g}] km, got {item!r}")
        ranges.append(float(item))
    return tuple(ranges)


def validate_timezone(name: str) -> str:
    """Return ``name`` if it is a known IANA zone, otherwise raise ConfigError."""

    if not isinstance(name, str) or not name:
        raise ConfigError(f"Timezone must be a non-empty string, got {name!r}")
    if name.upper() == "UTC":
        return "UTC"
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"Unknown timezone: {name}") from exc
    return name


@dataclass(frozen=True)
class AnalysisConfig:
    """Strongly-typed configuration for one pipeline run."""

    quality: QualityParams = field(default_factory=QualityParams)
    stationary: StationaryParams = field(default_factory=StationaryParams)
    segmentation: SegmentationParams = field(default_factory=SegmentationParams)
    aggregation: AggregationParams = field(default_factory=AggregationParams)
    max_speed_kmh: float = MAX_REASONABLE_SPEED_KMH
    ev_ranges_km: Tuple[float, ...] = (200.0, 300.0, 400.0)
    target_percentile: float = DEFAULT_TARGET_PERCENTILE
    include_sweep: bool = True
    sweep_ranges_km: Tuple[float, ...] = tuple(float(r) for r in STANDARD_EV_RANGES)
    chunk_size: int = 50_000
    batch_size: int = 10_000
    workers: int = 1
    input_csv: str | None = None
    output_dir: Path = Path("output")

    @classmethod
    def from_dict(cls, cfg: Dict[str, Any] | None) -> "AnalysisConfig":
        """Build and validate a config from a parsed YAML mapping."""

        cfg = cfg or {}
        if not isinstance(cfg, dict):
            raise ConfigError("Configuration must be a mapping")

        workers = _integer(cfg, ["processing", "workers"], 1)
        target = _number(cfg, ["analysis", "target_percentile"], DEFAULT_TARGET_PERCENTILE, strict=True)
        if target > 100:
            raise ConfigError(f"analysis.target_percentile must be <= 100, got {target:g}")
        input_csv = get_nested(cfg, ["input", "csv"], None)

        return cls(
            quality=QualityParams(
                max_accuracy_m=_number(cfg, ["quality", "max_accuracy_m"], 100.0, strict=True),
                min_confidence=_number(cfg, ["quality", "min_confidence"], 50.0),
            ),
            stationary=StationaryParams(
                max_speed_kmh=_number(cfg, ["stationary", "max_speed_kmh"], 5.0),
                min_duration_minutes=_number(cfg, ["stationary", "min_duration_minutes"], 15.0, strict=True),
            ),
            segmentation=SegmentationParams(
                max_gap_minutes=_number(cfg, ["segmentation", "max_gap_minutes"], 30.0, strict=True),
                min_trip_minutes=_number(cfg, ["segmentation", "min_trip_minutes"], 2.0),
                min_points_per_trip=_integer(cfg, ["segmentation", "min_points_per_trip"], 2, minimum=2),
            ),
            aggregation=AggregationParams(
                timezone=validate_timezone(get_nested(cfg, ["aggregation", "timezone"], "UTC")),
                min_significant_km=_number(cfg, ["aggregation", "min_significant_km"], 1.0),
                full_coverage=_flag(cfg, ["aggregation", "full_coverage"], False),
                workers=workers,
            ),
            max_speed_kmh=_number(cfg, ["distance", "max_reasonable_speed_kmh"], MAX_REASONABLE_SPEED_KMH, strict=True),
            ev_ranges_km=_ranges(cfg, ["analysis", "ev_ranges"], cls.ev_ranges_km),
            target_percentile=target,
            include_sweep=_flag(cfg, ["analysis", "sweep", "enabled"], True),
            sweep_ranges_km=_ranges(cfg, ["analysis", "sweep", "ranges"], tuple(float(r) for r in STANDARD_EV_RANGES)),
            chunk_size=_integer(cfg, ["processing", "chunk_size"], 50_000),
            batch_size=_integer(cfg, ["processing", "batch_size"], 10_000),
            workers=workers,
            input_csv=str(input_csv) if input_csv else None,
            output_dir=Path(get_nested(cfg, ["output", "dir"], "output")),
        )
