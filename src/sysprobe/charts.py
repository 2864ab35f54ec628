"""Chart rendering for completed record stores."""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import matplotlib

matplotlib.use("Agg")  # Headless rendering to files only
import matplotlib.dates as mdates  # noqa: E402
import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
from matplotlib.ticker import MultipleLocator  # noqa: E402

from sysprobe.errors import EmptyRecordStoreError  # noqa: E402
from sysprobe.models import Sample  # noqa: E402
from sysprobe.records import read_records  # noqa: E402

logger = logging.getLogger(__name__)

Y_MIN = 0.0
Y_MAX = 100.0
Y_GRID_STEP = 10
SMOOTHING_STEPS = 8

MetricSelector = Callable[[Sample], float]


@dataclass(slots=True, frozen=True)
class ChartStyle:
    """Presentation settings for one metric's chart."""

    name: str
    title: str
    ylabel: str
    color: str
    suffix: str


CPU_STYLE = ChartStyle(
    name="cpu", title="CPU Usage", ylabel="CPU Usage (%)", color="tab:blue", suffix="_cpu.png"
)
MEMORY_STYLE = ChartStyle(
    name="memory",
    title="Memory Usage",
    ylabel="Memory Usage (%)",
    color="tab:orange",
    suffix="_memory.png",
)


def select_cpu(sample: Sample) -> float:
    return sample.cpu


def select_memory(sample: Sample) -> float:
    return sample.memory


METRICS: tuple[tuple[MetricSelector, ChartStyle], ...] = (
    (select_cpu, CPU_STYLE),
    (select_memory, MEMORY_STYLE),
)


def chart_path(record_path: Path, style: ChartStyle) -> Path:
    """Image path for a metric: the record store's extension replaced by the suffix."""
    record_path = Path(record_path)
    return record_path.with_name(record_path.stem + style.suffix)


def chart_series(
    records: Sequence[Sample], selector: MetricSelector
) -> tuple[list[datetime], list[float]]:
    """The exact (x, y) points plotted for a metric."""
    return [r.timestamp for r in records], [selector(r) for r in records]


def smooth_line(x: Sequence[float], y: Sequence[float], steps: int = SMOOTHING_STEPS):
    """
    Densify a polyline with Catmull-Rom interpolation for drawing.

    The curve passes through every input point. x is interpolated linearly so
    it stays monotonic; y is clamped to the fixed axis range.
    """
    xs = np.asarray(x, dtype=float)
    ys = np.asarray(y, dtype=float)
    if len(xs) < 3:
        return xs, ys

    padded = np.concatenate(([2 * ys[0] - ys[1]], ys, [2 * ys[-1] - ys[-2]]))
    p0, p1, p2, p3 = padded[:-3], padded[1:-2], padded[2:-1], padded[3:]
    t = np.linspace(0.0, 1.0, steps, endpoint=False)[:, None]

    curve = 0.5 * (
        2 * p1
        + (p2 - p0) * t
        + (2 * p0 - 5 * p1 + 4 * p2 - p3) * t**2
        + (3 * p1 - p0 - 3 * p2 + p3) * t**3
    )
    line_x = xs[:-1] + (xs[1:] - xs[:-1]) * t

    smooth_x = np.append(line_x.T.ravel(), xs[-1])
    smooth_y = np.append(curve.T.ravel(), ys[-1])
    return smooth_x, np.clip(smooth_y, Y_MIN, Y_MAX)


def build_chart(
    records: Sequence[Sample],
    selector: MetricSelector,
    style: ChartStyle,
    subtitle: str = "",
):
    """Build the figure for one metric. The caller closes it."""
    timestamps, values = chart_series(records, selector)
    x = mdates.date2num(timestamps)
    line_x, line_y = smooth_line(x, values)

    fig, ax = plt.subplots(figsize=(12, 5))
    ax.plot(line_x, line_y, color=style.color, linewidth=2, gid="line")
    ax.plot(x, values, linestyle="none", marker="o", markersize=3, color=style.color, gid="samples")

    ax.set_title(f"{style.title} - {subtitle}" if subtitle else style.title)
    ax.set_xlabel("Time")
    ax.set_ylabel(style.ylabel)

    # Percentages, never autoscaled
    ax.set_ylim(Y_MIN, Y_MAX)
    ax.yaxis.set_major_locator(MultipleLocator(Y_GRID_STEP))
    ax.grid(True, alpha=0.3)

    ax.xaxis_date()
    ax.xaxis.set_major_formatter(mdates.DateFormatter("%H:%M:%S"))
    plt.setp(ax.get_xticklabels(), rotation=45, ha="right")

    fig.tight_layout()
    return fig


def render_chart(
    records: Sequence[Sample],
    selector: MetricSelector,
    style: ChartStyle,
    output_path: Path,
    subtitle: str = "",
) -> Path:
    """Render one metric as a PNG line chart and return its path."""
    fig = build_chart(records, selector, style, subtitle)
    try:
        fig.savefig(output_path, dpi=150)
    finally:
        plt.close(fig)
    return Path(output_path)


def render_charts(
    record_path: Path, host: str | None = None, duration_minutes: int | None = None
) -> list[Path]:
    """
    Render the CPU and memory charts of a completed record store.

    Args:
        record_path: Path of the record store CSV.
        host: Host name shown in chart titles.
        duration_minutes: Nominal capture duration shown in chart titles.

    Returns:
        Paths of the written images, CPU first.

    Raises:
        EmptyRecordStoreError: if the store has no usable data rows. No image
            is written in that case.
        RecordStoreError: if the store has no valid header.
    """
    record_path = Path(record_path)
    records = read_records(record_path)
    if not records:
        raise EmptyRecordStoreError(record_path)

    parts = []
    if host:
        parts.append(host)
    if duration_minutes:
        parts.append(f"{duration_minutes} min")
    subtitle = ", ".join(parts)

    outputs = []
    for selector, style in METRICS:
        path = render_chart(records, selector, style, chart_path(record_path, style), subtitle)
        logger.info("Wrote %s chart (%d points) to %s", style.name, len(records), path)
        outputs.append(path)
    return outputs
