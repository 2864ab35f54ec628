"""Record store: the append-only CSV file holding every sample of a run."""

import csv
import io
import logging
import math
import os
from pathlib import Path

from sysprobe.errors import RecordStoreError
from sysprobe.models import Sample, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

HEADER = ("timestamp", "cpu", "memory")


def format_row(sample: Sample) -> str:
    """Render one sample as a complete CSV line, including the terminator."""
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="\n").writerow(
        (format_timestamp(sample.timestamp), f"{sample.cpu:.2f}", f"{sample.memory:.2f}")
    )
    return buffer.getvalue()


class RecordWriter:
    """
    Sole writer of a run's record store.

    The file is created exclusively so an existing capture is never
    overwritten. Every append is written as one complete line, then flushed
    and synced, so an interrupted run leaves only whole rows behind.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._file: io.TextIOWrapper | None = None
        self._rows = 0

    @property
    def path(self) -> Path:
        return self._path

    @property
    def rows_written(self) -> int:
        return self._rows

    def open(self) -> None:
        if self._file is not None:
            return
        self._file = open(self._path, "x", encoding="utf-8", newline="")
        self._write_line(",".join(HEADER) + "\n")

    def append(self, sample: Sample) -> None:
        if self._file is None:
            raise RecordStoreError(f"Record store is not open: {self._path}")
        self._write_line(format_row(sample), data=True)

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def _write_line(self, line: str, data: bool = False) -> None:
        self._file.write(line)
        if data:
            # Counted as soon as the line is buffered; close() flushes it
            self._rows += 1
        self._file.flush()
        os.fsync(self._file.fileno())

    def __enter__(self) -> "RecordWriter":
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def _parse_percent(text: str) -> float:
    value = float(text)
    if not math.isfinite(value) or not 0.0 <= value <= 100.0:
        raise ValueError(f"percentage out of range: {text!r}")
    return value


def parse_row(row: list[str]) -> Sample:
    """Parse one data row (``ValueError`` if it is malformed)."""
    if len(row) != len(HEADER):
        raise ValueError(f"expected {len(HEADER)} fields, got {len(row)}")
    timestamp, cpu, memory = row
    return Sample(
        timestamp=parse_timestamp(timestamp),
        cpu=_parse_percent(cpu),
        memory=_parse_percent(memory),
    )


def read_records(path: Path) -> list[Sample]:
    """
    Read every well-formed sample from a record store, in file order.

    Malformed rows, including ones with undecodable bytes, are skipped with a
    warning. Blank lines are ignored.

    Raises:
        RecordStoreError: if the file is missing its ``timestamp,cpu,memory``
            header.
        OSError: if the file cannot be opened.
    """
    samples: list[Sample] = []
    with open(path, encoding="utf-8", errors="replace", newline="") as f:
        reader = csv.reader(f)
        header = next(reader, None)
        if header is None or tuple(field.strip() for field in header) != HEADER:
            raise RecordStoreError(f"Missing or unexpected header in {path}: {header}")

        for row in reader:
            if not row:
                continue
            try:
                samples.append(parse_row(row))
            except ValueError as e:
                logger.warning("Skipping malformed row %d in %s: %s", reader.line_num, path, e)

    return samples


def count_rows(path: Path) -> int:
    """Number of non-blank data lines in a record store."""
    with open(path, encoding="utf-8", errors="replace", newline="") as f:
        next(f, None)
        return sum(1 for line in f if line.strip())
