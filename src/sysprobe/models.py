"""Data models for sysprobe."""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

from sysprobe.errors import ConfigError, DurationValidationError

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_SAMPLE_INTERVAL_SECONDS = 15
MAX_DURATION_MINUTES = 2**32 - 1

_UNSIGNED_INT = re.compile(r"[0-9]+")


@dataclass(slots=True, frozen=True)
class Sample:
    """One (timestamp, cpu%, memory%) observation."""

    timestamp: datetime  # second precision
    cpu: float  # 0.0 - 100.0
    memory: float  # 0.0 - 100.0


@dataclass(slots=True, frozen=True)
class MeasurementOk:
    """A metric query that produced a value."""

    value: float


@dataclass(slots=True, frozen=True)
class MeasurementFailed:
    """A metric query that could not produce a value."""

    reason: str


Measurement = MeasurementOk | MeasurementFailed


@dataclass(slots=True, frozen=True)
class RunConfig:
    """Explicit configuration for one capture, built once at the boundary."""

    duration_minutes: int
    output_path: Path
    sample_interval_seconds: int = DEFAULT_SAMPLE_INTERVAL_SECONDS

    def __post_init__(self) -> None:
        if not 0 < self.duration_minutes <= MAX_DURATION_MINUTES:
            raise ConfigError(f"duration_minutes out of range: {self.duration_minutes}")
        if self.sample_interval_seconds <= 0:
            raise ConfigError(
                f"sample_interval_seconds must be positive: {self.sample_interval_seconds}"
            )

    @property
    def duration_seconds(self) -> int:
        return self.duration_minutes * 60


@dataclass(slots=True, frozen=True)
class Run:
    """One bounded monitoring session, identified by its record store path."""

    config: RunConfig
    start_time: datetime

    @property
    def output_path(self) -> Path:
        return self.config.output_path

    @property
    def end_time(self) -> datetime:
        """Nominal end of the run (``OverflowError`` past year 9999)."""
        return self.start_time + timedelta(minutes=self.config.duration_minutes)


def parse_duration(raw: str) -> int:
    """
    Parse an operator-supplied duration in minutes.

    Accepts only an unsigned integer literal made of ASCII digits, with no sign
    and no surrounding whitespace, whose value is at least 1.

    Raises:
        DurationValidationError: if the text is not accepted.
    """
    if raw is None or not _UNSIGNED_INT.fullmatch(raw):
        raise DurationValidationError(raw, "expected a whole number of minutes")
    value = int(raw)
    if value <= 0:
        raise DurationValidationError(raw, "duration must be greater than zero")
    if value > MAX_DURATION_MINUTES:
        raise DurationValidationError(raw, f"duration must not exceed {MAX_DURATION_MINUTES}")
    return value


def format_timestamp(value: datetime) -> str:
    """Format a timestamp the way the record store stores it."""
    return value.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(text: str) -> datetime:
    """Parse a record store timestamp (``ValueError`` on bad input)."""
    return datetime.strptime(text, TIMESTAMP_FORMAT)
