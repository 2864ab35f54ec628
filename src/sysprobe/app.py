"""sysprobe - command line entry points."""

import argparse
import logging
import re
import socket
import sys
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from sysprobe.charts import render_charts
from sysprobe.errors import ConfigError, RecordStoreError
from sysprobe.log_config import setup_logger
from sysprobe.models import DEFAULT_SAMPLE_INTERVAL_SECONDS, RunConfig, parse_duration
from sysprobe.monitor import PsutilMetricsProvider, Sampler

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_RENDER_FAILED = 1
EXIT_INVALID_INPUT = 2
EXIT_CAPTURE_FAILED = 3
EXIT_INTERRUPTED = 130

DURATION_PROMPT = "Duration in minutes: "


def host_identity() -> str:
    """Host name made safe for use in a file name."""
    name = socket.gethostname() or "localhost"
    return re.sub(r"[^A-Za-z0-9._-]", "_", name)


def build_output_path(output_dir: Path, host: str, start: datetime) -> Path:
    """
    Record store path for a run started at ``start`` on ``host``.

    A numeric suffix is appended when a file of that name already exists so
    repeated runs within the same second never share a file.
    """
    base = f"{host}_{start:%Y%m%d_%H%M%S}"
    path = output_dir / f"{base}.csv"
    counter = 1
    while path.exists():
        path = output_dir / f"{base}_{counter}.csv"
        counter += 1
    return path


def prompt_duration(input_fn: Callable[[str], str] = input) -> int:
    """Ask the operator for a duration in minutes and validate it."""
    try:
        raw = input_fn(DURATION_PROMPT)
    except EOFError:
        raw = ""
    return parse_duration(raw)


def create_sampler(config: RunConfig) -> Sampler:
    """Sampler reading the local host through psutil."""
    return Sampler(config, PsutilMetricsProvider())


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sysprobe",
        description="Sample host CPU and memory usage to CSV, then chart it.",
    )
    parser.add_argument(
        "-d",
        "--duration",
        help="capture duration in whole minutes (prompted for when omitted)",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=DEFAULT_SAMPLE_INTERVAL_SECONDS,
        help="seconds between samples (default: %(default)s)",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="directory for the CSV and charts (default: current directory)",
    )
    parser.add_argument("--no-charts", action="store_true", help="skip chart rendering")
    parser.add_argument("--log-file", type=Path, help="also write a detailed log here")
    parser.add_argument("-v", "--verbose", action="store_true", help="log every sample")
    return parser


def main(argv: list[str] | None = None, input_fn: Callable[[str], str] = input) -> int:
    """Entry point for the sysprobe capture tool."""
    args = _build_parser().parse_args(argv)
    setup_logger(logging.DEBUG if args.verbose else logging.INFO, args.log_file)

    output_dir = args.output_dir if args.output_dir is not None else Path.cwd()
    if not output_dir.is_dir():
        logger.error("Output directory does not exist: %s", output_dir)
        return EXIT_INVALID_INPUT

    host = host_identity()
    try:
        if args.duration is not None:
            duration = parse_duration(args.duration)
        else:
            duration = prompt_duration(input_fn)
        config = RunConfig(
            duration_minutes=duration,
            output_path=build_output_path(output_dir, host, datetime.now()),
            sample_interval_seconds=args.interval,
        )
    except ConfigError as e:
        logger.error("%s", e)
        return EXIT_INVALID_INPUT
    except KeyboardInterrupt:
        logger.error("Cancelled before sampling started")
        return EXIT_INTERRUPTED

    try:
        result = create_sampler(config).run()
    except OSError as e:
        logger.error("Capture failed: %s", e)
        return EXIT_CAPTURE_FAILED
    logger.info("Samples written to %s", result.output_path)
    if args.no_charts:
        return EXIT_OK

    try:
        charts = render_charts(result.output_path, host, config.duration_minutes)
    except (RecordStoreError, OSError) as e:
        logger.error("Chart rendering failed: %s", e)
        return EXIT_RENDER_FAILED

    for path in charts:
        print(path)
    return EXIT_OK


def chart_main(argv: list[str] | None = None) -> int:
    """Entry point for re-rendering charts from an existing record store."""
    parser = argparse.ArgumentParser(
        prog="sysprobe-chart",
        description="Render CPU and memory charts from a sysprobe CSV file.",
    )
    parser.add_argument("records", type=Path, help="record store CSV file")
    parser.add_argument("--host", help="host name shown in chart titles")
    parser.add_argument("--duration", type=int, help="nominal duration shown in chart titles")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    args = parser.parse_args(argv)
    setup_logger(logging.DEBUG if args.verbose else logging.INFO)

    try:
        charts = render_charts(args.records, args.host, args.duration)
    except (RecordStoreError, OSError) as e:
        logger.error("Chart rendering failed: %s", e)
        return EXIT_RENDER_FAILED

    for path in charts:
        print(path)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
