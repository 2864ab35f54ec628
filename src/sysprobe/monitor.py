"""Sampling engine for sysprobe."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Protocol

import psutil

from sysprobe.models import (
    Measurement,
    MeasurementFailed,
    MeasurementOk,
    Run,
    RunConfig,
    Sample,
)
from sysprobe.records import RecordWriter, count_rows

logger = logging.getLogger(__name__)

# Minimum spacing psutil needs between cpu_percent calls
CPU_PRIME_SECONDS = 0.1


class MetricsProvider(Protocol):
    """Source of host utilization figures."""

    def sample_cpu(self) -> Measurement: ...

    def sample_memory(self) -> Measurement: ...


def clamp_percent(value: float) -> float:
    """Clamp to [0, 100] and round to 2 decimal places."""
    return round(min(max(value, 0.0), 100.0), 2)


def memory_percent(total: int, free: int) -> Measurement:
    """Memory in use as a percentage of the visible total."""
    if total <= 0:
        return MeasurementFailed(f"total memory reported as {total}")
    return MeasurementOk(clamp_percent((total - free) / total * 100))


class PsutilMetricsProvider:
    """
    MetricsProvider backed by psutil.

    CPU utilization is the aggregate of all processors since the previous
    call; memory utilization is derived from total and free physical memory.
    """

    def __init__(self) -> None:
        # First call always returns 0.0
        try:
            psutil.cpu_percent(interval=None)
        except (psutil.Error, OSError) as e:
            logger.debug("Could not prime CPU counter: %s", e)
        time.sleep(CPU_PRIME_SECONDS)

    def sample_cpu(self) -> Measurement:
        try:
            return MeasurementOk(clamp_percent(psutil.cpu_percent(interval=None)))
        except (psutil.Error, OSError) as e:
            return MeasurementFailed(f"{type(e).__name__}: {e}")

    def sample_memory(self) -> Measurement:
        try:
            mem = psutil.virtual_memory()
        except (psutil.Error, OSError) as e:
            return MeasurementFailed(f"{type(e).__name__}: {e}")
        return memory_percent(mem.total, mem.free)


@dataclass(slots=True)
class MetricStats:
    """Running min/avg/max of one metric over a capture."""

    minimum: float = 100.0
    maximum: float = 0.0
    total: float = 0.0
    count: int = 0

    def add(self, value: float) -> None:
        self.minimum = min(self.minimum, value)
        self.maximum = max(self.maximum, value)
        self.total += value
        self.count += 1

    @property
    def average(self) -> float:
        return round(self.total / self.count, 2) if self.count else 0.0


@dataclass(slots=True)
class CaptureResult:
    """Outcome of one completed (or interrupted) capture."""

    run: Run
    rows_written: int = 0
    cpu_failures: int = 0
    memory_failures: int = 0
    interrupted: bool = False
    cpu: MetricStats = field(default_factory=MetricStats)
    memory: MetricStats = field(default_factory=MetricStats)

    @property
    def output_path(self) -> Path:
        return self.run.output_path


class Sampler:
    """
    Fixed-interval sampler writing one Sample per iteration to the record store.

    The loop ends when the monotonic clock passes ``duration_minutes`` after
    the start, or when the operator interrupts it. Each iteration measures,
    appends, then sleeps for the full interval, so slow measurements push
    later samples later rather than being made up.
    """

    def __init__(
        self,
        config: RunConfig,
        provider: MetricsProvider,
        *,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize the Sampler.

        Args:
            config: Validated run configuration.
            provider: Source of CPU and memory measurements.
            clock: Monotonic seconds, used for the deadline.
            now: Wall-clock time, used for sample timestamps.
            sleep: Blocking sleep between iterations.
        """
        self._config = config
        self._provider = provider
        self._clock = clock
        self._now = now
        self._sleep = sleep
        self._last_timestamp: datetime | None = None

    @property
    def config(self) -> RunConfig:
        return self._config

    def run(self) -> CaptureResult:
        """Run the capture to completion and return its result."""
        run = Run(config=self._config, start_time=self._now().replace(microsecond=0))
        result = CaptureResult(run=run)
        deadline = self._clock() + self._config.duration_seconds

        logger.info(
            "Sampling every %ds for %d minute(s) into %s",
            self._config.sample_interval_seconds,
            self._config.duration_minutes,
            run.output_path,
        )

        with RecordWriter(run.output_path) as writer:
            try:
                while self._clock() < deadline:
                    sample = self._take_sample(result)
                    writer.append(sample)
                    result.rows_written = writer.rows_written
                    result.cpu.add(sample.cpu)
                    result.memory.add(sample.memory)
                    logger.debug(
                        "%s cpu=%.2f%% memory=%.2f%%", sample.timestamp, sample.cpu, sample.memory
                    )
                    self._sleep(self._config.sample_interval_seconds)
            except KeyboardInterrupt:
                result.interrupted = True
            result.rows_written = writer.rows_written

        if result.interrupted:
            # Rows buffered just before the interrupt are on disk after close()
            result.rows_written = count_rows(run.output_path)
            logger.warning("Sampling interrupted after %d sample(s)", result.rows_written)

        self._log_summary(result)
        return result

    def _take_sample(self, result: CaptureResult) -> Sample:
        cpu = self._provider.sample_cpu()
        memory = self._provider.sample_memory()

        if isinstance(cpu, MeasurementFailed):
            result.cpu_failures += 1
            logger.warning("CPU measurement failed, recording 0.0: %s", cpu.reason)
            cpu_value = 0.0
        else:
            cpu_value = clamp_percent(cpu.value)

        if isinstance(memory, MeasurementFailed):
            result.memory_failures += 1
            logger.warning("Memory measurement failed, recording 0.0: %s", memory.reason)
            memory_value = 0.0
        else:
            memory_value = clamp_percent(memory.value)

        return Sample(timestamp=self._next_timestamp(), cpu=cpu_value, memory=memory_value)

    def _next_timestamp(self) -> datetime:
        """Current wall-clock second, never earlier than the previous sample."""
        timestamp = self._now().replace(microsecond=0)
        if self._last_timestamp is not None and timestamp < self._last_timestamp:
            timestamp = self._last_timestamp
        self._last_timestamp = timestamp
        return timestamp

    def _log_summary(self, result: CaptureResult) -> None:
        if not result.rows_written:
            logger.warning("No samples were recorded")
            return
        logger.info(
            "Captured %d sample(s): cpu min/avg/max %.2f/%.2f/%.2f%%, "
            "memory min/avg/max %.2f/%.2f/%.2f%%",
            result.rows_written,
            result.cpu.minimum,
            result.cpu.average,
            result.cpu.maximum,
            result.memory.minimum,
            result.memory.average,
            result.memory.maximum,
        )
        if result.cpu_failures or result.memory_failures:
            logger.warning(
                "%d CPU and %d memory measurement(s) failed and were recorded as 0.0",
                result.cpu_failures,
                result.memory_failures,
            )
