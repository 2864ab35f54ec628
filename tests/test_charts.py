"""Tests for chart rendering."""

from datetime import datetime, timedelta

import matplotlib.dates as mdates
import matplotlib.pyplot as plt
import numpy as np
import pytest

from sysprobe.charts import (
    CPU_STYLE,
    MEMORY_STYLE,
    METRICS,
    build_chart,
    chart_path,
    chart_series,
    render_chart,
    render_charts,
    select_cpu,
    select_memory,
    smooth_line,
)
from sysprobe.errors import EmptyRecordStoreError, RecordStoreError
from sysprobe.models import Sample
from sysprobe.records import RecordWriter, read_records

START = datetime(2024, 1, 1, 10, 0, 0)


def make_records(count: int) -> list[Sample]:
    return [
        Sample(
            timestamp=START + timedelta(seconds=15 * i),
            cpu=float(10 + (i * 7) % 80),
            memory=40.0 + i / 10,
        )
        for i in range(count)
    ]


def write_records(path, records):
    with RecordWriter(path) as writer:
        for record in records:
            writer.append(record)
    return path


class TestChartPath:
    """Tests for chart_path."""

    def test_replaces_csv_extension(self, tmp_path):
        """Test the metric suffix replaces the .csv extension."""
        records = tmp_path / "host_20240101_100000.csv"
        assert chart_path(records, CPU_STYLE) == tmp_path / "host_20240101_100000_cpu.png"
        assert chart_path(records, MEMORY_STYLE) == tmp_path / "host_20240101_100000_memory.png"

    def test_paths_are_distinct(self, tmp_path):
        """Test each metric gets its own file."""
        records = tmp_path / "run.csv"
        paths = {chart_path(records, style) for _, style in METRICS}
        assert len(paths) == len(METRICS)
        assert records not in paths


class TestChartSeries:
    """Tests for chart_series."""

    def test_selects_metric(self):
        """Test the series pairs timestamps with the selected metric."""
        records = make_records(3)
        x, y = chart_series(records, select_memory)
        assert x == [r.timestamp for r in records]
        assert y == [r.memory for r in records]

    def test_rereading_store_gives_same_series(self, tmp_path):
        """Test rendering input is identical across reads of the same store."""
        path = write_records(tmp_path / "run.csv", make_records(12))
        first = chart_series(read_records(path), select_cpu)
        second = chart_series(read_records(path), select_cpu)
        assert first == second


class TestSmoothLine:
    """Tests for smooth_line."""

    def test_passes_through_samples(self):
        """Test the smoothed curve contains every original point."""
        x = [0.0, 1.0, 2.0, 3.0, 4.0]
        y = [10.0, 50.0, 20.0, 80.0, 30.0]
        sx, sy = smooth_line(x, y, steps=8)
        assert len(sx) == 8 * 4 + 1
        np.testing.assert_allclose(sx[::8], x)
        np.testing.assert_allclose(sy[::8], y)

    def test_x_is_monotonic(self):
        """Test the densified x values never go backwards."""
        sx, _ = smooth_line([0.0, 0.1, 5.0, 5.2], [0.0, 100.0, 0.0, 100.0])
        assert np.all(np.diff(sx) >= 0)

    def test_clamped_to_axis_range(self):
        """Test overshoot is clipped to 0-100."""
        _, sy = smooth_line([0.0, 1.0, 2.0, 3.0], [0.0, 100.0, 0.0, 100.0])
        assert sy.min() >= 0.0
        assert sy.max() <= 100.0

    @pytest.mark.parametrize("count", [1, 2])
    def test_short_series_unchanged(self, count):
        """Test one or two points are drawn as-is."""
        x = [float(i) for i in range(count)]
        sx, sy = smooth_line(x, [50.0] * count)
        assert list(sx) == x
        assert list(sy) == [50.0] * count


class TestBuildChart:
    """Tests for figure construction."""

    def test_fixed_y_axis(self):
        """Test the y axis spans 0-100 with a tick every 10."""
        fig = build_chart(make_records(5), select_cpu, CPU_STYLE)
        try:
            ax = fig.axes[0]
            assert ax.get_ylim() == (0.0, 100.0)
            ticks = [t for t in ax.get_yticks() if 0 <= t <= 100]
            assert ticks == [float(v) for v in range(0, 101, 10)]
        finally:
            plt.close(fig)

    def test_fixed_y_axis_for_low_values(self):
        """Test low readings do not autoscale the axis."""
        records = [Sample(START + timedelta(seconds=15 * i), 0.5, 1.0) for i in range(4)]
        fig = build_chart(records, select_memory, MEMORY_STYLE)
        try:
            assert fig.axes[0].get_ylim() == (0.0, 100.0)
        finally:
            plt.close(fig)

    def test_plots_every_sample(self):
        """Test the marker series holds exactly the sample values."""
        records = make_records(6)
        fig = build_chart(records, select_cpu, CPU_STYLE, subtitle="myhost, 10 min")
        try:
            ax = fig.axes[0]
            (samples,) = [line for line in ax.lines if line.get_gid() == "samples"]
            assert list(samples.get_ydata()) == [r.cpu for r in records]
            np.testing.assert_allclose(
                samples.get_xdata(), mdates.date2num([r.timestamp for r in records])
            )
            assert ax.get_title() == "CPU Usage - myhost, 10 min"
        finally:
            plt.close(fig)

    def test_render_chart_writes_png(self, tmp_path):
        """Test render_chart writes a PNG and closes its figure."""
        before = plt.get_fignums()
        out = render_chart(make_records(3), select_cpu, CPU_STYLE, tmp_path / "cpu.png")
        assert out.read_bytes()[:8] == b"\x89PNG\r\n\x1a\n"
        assert plt.get_fignums() == before


class TestRenderCharts:
    """Tests for render_charts."""

    def test_renders_both_metrics(self, tmp_path):
        """Test a populated store produces a CPU and a memory chart."""
        path = write_records(tmp_path / "host_20240101_100000.csv", make_records(40))
        outputs = render_charts(path, "myhost", 10)

        assert outputs == [
            tmp_path / "host_20240101_100000_cpu.png",
            tmp_path / "host_20240101_100000_memory.png",
        ]
        assert all(p.stat().st_size > 0 for p in outputs)

    def test_single_sample(self, tmp_path):
        """Test a store with one row still renders."""
        path = write_records(tmp_path / "run.csv", make_records(1))
        assert len(render_charts(path)) == 2

    def test_header_only_is_error(self, tmp_path):
        """Test an empty store raises and writes no image."""
        path = write_records(tmp_path / "run.csv", [])
        with pytest.raises(EmptyRecordStoreError):
            render_charts(path, "myhost", 10)
        assert list(tmp_path.glob("*.png")) == []

    def test_only_malformed_rows_is_error(self, tmp_path):
        """Test a store whose rows are all malformed counts as empty."""
        path = tmp_path / "run.csv"
        path.write_text("timestamp,cpu,memory\nbad,row,here\n", encoding="utf-8")
        with pytest.raises(EmptyRecordStoreError):
            render_charts(path)
        assert list(tmp_path.glob("*.png")) == []

    def test_malformed_row_skipped(self, tmp_path):
        """Test a malformed row is skipped without aborting the render."""
        path = tmp_path / "run.csv"
        path.write_text(
            "timestamp,cpu,memory\n"
            "2024-01-01 10:00:00,3.25,41.07\n"
            "2024-01-01 10:00:15,oops,41.08\n"
            "2024-01-01 10:00:30,2.10,41.09\n",
            encoding="utf-8",
        )
        outputs = render_charts(path)
        assert len(outputs) == 2

        for selector, style in METRICS:
            fig = build_chart(read_records(path), selector, style)
            try:
                (samples,) = [line for line in fig.axes[0].lines if line.get_gid() == "samples"]
                assert len(samples.get_ydata()) == 2
            finally:
                plt.close(fig)
        cpu_fig = build_chart(read_records(path), select_cpu, CPU_STYLE)
        try:
            (samples,) = [line for line in cpu_fig.axes[0].lines if line.get_gid() == "samples"]
            assert list(samples.get_ydata()) == [3.25, 2.10]
        finally:
            plt.close(cpu_fig)

    def test_missing_header_is_error(self, tmp_path):
        """Test a file without the record store header is refused."""
        path = tmp_path / "run.csv"
        path.write_text("a,b\n1,2\n", encoding="utf-8")
        with pytest.raises(RecordStoreError):
            render_charts(path)
