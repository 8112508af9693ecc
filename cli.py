"""CLI entry point for the EV range analysis pipeline.

Reads a normalised sample CSV in chunks, runs quality filtering, trip
extraction, daily aggregation and range analysis, and writes the reports to
the configured output directory.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import Dict, List

from ev_range.cancellation import CancellationToken
from ev_range.config import AnalysisConfig, load_config
from ev_range.errors import InputError
from ev_range.io import (
    analyses_to_frame,
    challenging_days_to_frame,
    recommendations_to_frame,
    save_dataframe,
    save_json,
    summaries_to_frame,
)
from ev_range.pipeline import AnalysisResult, RangeAnalysisPipeline

EXIT_OK = 0
EXIT_CANCELLED = 1
EXIT_INPUT_ERROR = 2


def configure_logging(log_cfg: Dict[str, object]) -> None:
    """Configure root logger with both file and console handlers."""

    log_dir = Path(log_cfg.get("dir", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    filename = log_cfg.get("filename", "ev_range.log")
    log_path = log_dir / filename
    level_name = str(log_cfg.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s - %(levelname)s - %(message)s"
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)

    file_handler = logging.FileHandler(log_path, mode="w", encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(fmt))
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(logging.Formatter(fmt))

    root.addHandler(file_handler)
    root.addHandler(stream_handler)
    root.info("Logging to %s (level=%s)", log_path, level_name)


def write_reports(
    result: AnalysisResult,
    output_dir: Path,
    include_sweep: bool = True,
    min_significant_km: float = 1.0,
) -> List[Path]:
    """Write the CSV and JSON reports of a completed run and return their paths."""

    written: List[Path] = []

    path = output_dir / "daily_summaries.csv"
    save_dataframe(summaries_to_frame(result.daily_summaries, min_significant_km), path)
    written.append(path)

    path = output_dir / "range_analysis.csv"
    save_dataframe(analyses_to_frame(result.analyses), path)
    written.append(path)

    if include_sweep:
        path = output_dir / "range_sweep.csv"
        save_dataframe(recommendations_to_frame(result.recommendations), path)
        written.append(path)

    for range_km, days in result.challenging_days.items():
        path = output_dir / f"challenging_days_{range_km:g}km.csv"
        save_dataframe(challenging_days_to_frame(days), path)
        written.append(path)

    path = output_dir / "diagnostics.json"
    payload = {
        "diagnostics": result.diagnostics.as_dict(),
        "seasonal_insights": list(result.seasonal.insights),
        "analyses": [str(a) for a in result.analyses],
    }
    save_json(payload, path)
    written.append(path)
    return written


def main(config_path: str = "config/ev_range.yaml", csv_path: str | None = None, ranges: List[float] | None = None) -> int:
    try:
        cfg = load_config(config_path)
        configure_logging(cfg.get("logging", {}) or {})
        config = AnalysisConfig.from_dict(cfg)
    except InputError as exc:
        logging.error("Invalid configuration: %s", exc)
        return EXIT_INPUT_ERROR

    csv_path = csv_path or config.input_csv
    if not csv_path:
        logging.error("No input CSV given (use --csv or input.csv in %s)", config_path)
        return EXIT_INPUT_ERROR
    logging.info("Analysing %s with ranges %s", csv_path, list(ranges or config.ev_ranges_km))

    token = CancellationToken()
    previous = signal.signal(signal.SIGINT, lambda signum, frame: token.cancel())
    try:
        outcome = RangeAnalysisPipeline(config).run_csv(csv_path, ranges_km=ranges, token=token)
    except InputError as exc:
        logging.error("Analysis failed: %s", exc)
        return EXIT_INPUT_ERROR
    finally:
        signal.signal(signal.SIGINT, previous)

    if not outcome.completed or outcome.result is None:
        logging.warning("Analysis cancelled before completion; no reports written")
        return EXIT_CANCELLED

    write_reports(
        outcome.result,
        config.output_dir,
        include_sweep=config.include_sweep,
        min_significant_km=config.aggregation.min_significant_km,
    )
    for analysis in outcome.result.analyses:
        logging.info("%s", analysis)
    return EXIT_OK


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="EV range compatibility analysis.")
    parser.add_argument(
        "-c",
        "--config",
        default="config/ev_range.yaml",
        help="Path to YAML config file.",
    )
    parser.add_argument("--csv", default=None, help="Normalised sample CSV (overrides input.csv).")
    parser.add_argument(
        "--range",
        dest="ranges",
        type=float,
        nargs="+",
        default=None,
        help="EV ranges in km to analyse (overrides analysis.ev_ranges).",
    )
    args = parser.parse_args()
    sys.exit(main(args.config, args.csv, args.ranges))
