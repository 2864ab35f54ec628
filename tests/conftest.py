"""Shared fixtures for sysprobe tests."""

import logging
from datetime import datetime, timedelta

import pytest

from sysprobe.log_config import LOGGER_NAME
from sysprobe.models import Measurement, MeasurementOk
from sysprobe.monitor import memory_percent


class FakeClock:
    """Deterministic stand-in for time.monotonic, datetime.now and time.sleep."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 10, 0, 0)) -> None:
        self.start = start
        self.elapsed = 0.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.elapsed

    def now(self) -> datetime:
        return self.start + timedelta(seconds=self.elapsed)

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.elapsed += seconds


class FakeProvider:
    """MetricsProvider returning fixed results, optionally taking time."""

    def __init__(
        self,
        cpu: Measurement = MeasurementOk(37.5),
        memory: Measurement | None = None,
        clock: FakeClock | None = None,
        work_seconds: float = 0.0,
    ) -> None:
        self.cpu = cpu
        self.memory = memory if memory is not None else memory_percent(1000, 600)
        self.clock = clock
        self.work_seconds = work_seconds
        self.calls = 0

    def sample_cpu(self) -> Measurement:
        self.calls += 1
        if self.clock is not None:
            self.clock.elapsed += self.work_seconds
        return self.cpu

    def sample_memory(self) -> Measurement:
        return self.memory


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo setup_logger so caplog sees records in every test."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def clock_factory():
    """The FakeClock class, for tests needing a custom start or several clocks."""
    return FakeClock


@pytest.fixture
def provider_factory():
    """The FakeProvider class, for tests building or subclassing providers."""
    return FakeProvider
