"""Tests for plot job generation.

Covers:
    - Plane -> mm -> steps transform (fit, centering, margins)
    - Stroke width -> pen height mapping
    - Job generation order, heights, degenerate segments
    - Time estimate and formatting
"""

from __future__ import annotations

import pytest

from mazeface.maze.optimizer import Chain
from mazeface.maze.walls import WallSegment
from mazeface.utils.validators import ShadingV1
from plotter_control.configs.loader import PlotterConfig
from plotter_control.job_ir.segments import (
    PlotSegment,
    PlotTransform,
    estimate_plot_time,
    format_time,
    generate_plot_job,
    round_half_up,
    segments_to_strokes,
    step_rate_for_speed,
    stroke_to_height,
)


# ---------------------------------------------------------------------------
# Transform
# ---------------------------------------------------------------------------


class TestTransform:
    def test_square_fills_plot_area(self) -> None:
        t = PlotTransform.fit(100, 100, 132, 132, 10, 10, 80)
        assert t.scale == pytest.approx(1.32)
        assert t.to_steps(0, 0) == (800, 800)
        assert t.to_steps(100, 100) == (11360, 11360)

    def test_wide_maze_centered_vertically(self) -> None:
        t = PlotTransform.fit(200, 100, 132, 132, 10, 10, 80)
        assert t.scale == pytest.approx(0.66)
        x, y = t.to_mm(0, 0)
        assert x == pytest.approx(10.0)
        assert y == pytest.approx(43.0)

    def test_tall_maze_centered_horizontally(self) -> None:
        t = PlotTransform.fit(50, 100, 100, 100)
        assert t.scale == pytest.approx(1.0)
        assert t.to_mm(0, 0) == pytest.approx((25.0, 0.0))

    def test_from_config_uses_paper(self) -> None:
        t = PlotTransform.from_config(100, 100, PlotterConfig())
        assert t.offset_x_mm == pytest.approx(10.0)
        assert t.steps_per_mm == 80.0

    def test_rejects_empty_maze(self) -> None:
        with pytest.raises(ValueError):
            PlotTransform.fit(0, 100, 100, 100)

    def test_round_half_up(self) -> None:
        assert round_half_up(0.5) == 1
        assert round_half_up(2.5) == 3
        assert round_half_up(-0.5) == 0
        assert round_half_up(1.49) == 1


# ---------------------------------------------------------------------------
# Pen height
# ---------------------------------------------------------------------------


class TestStrokeToHeight:
    @pytest.mark.parametrize(
        "width,expected",
        [(0.5, 45), (3.0, 25), (1.75, 35), (0.1, 45), (10.0, 25)],
    )
    def test_mapping(self, width: float, expected: int) -> None:
        assert stroke_to_height(width, 45, 25, 0.5, 3.0) == expected

    def test_step_rate_range(self) -> None:
        assert step_rate_for_speed(0) == 200.0
        assert step_rate_for_speed(100) == 2000.0
        assert step_rate_for_speed(50) == 1100.0

    def test_pen_height_validated(self) -> None:
        with pytest.raises(ValueError):
            PlotSegment(0, 0, 1, 1, pen_height=120)


# ---------------------------------------------------------------------------
# Job generation
# ---------------------------------------------------------------------------


class TestGeneratePlotJob:
    def test_order_and_heights(self) -> None:
        chains = [
            Chain([
                WallSegment(0, 0, 50, 0, brightness=255),
                WallSegment(50, 0, 50, 50, brightness=0),
            ]),
            Chain([WallSegment(100, 100, 0, 100, brightness=255)]),
        ]
        job = generate_plot_job(chains, 100, 100)

        assert len(job) == 3
        assert job[0].start == (800, 800)
        assert job[0].end == job[1].start
        # brightness 255 -> width 1.2 -> height 39; black -> clamped to dark
        assert job[0].pen_height == 39
        assert job[1].pen_height == 25
        assert job[2].start == (11360, 11360)
        assert job[2].end == (800, 11360)

    def test_shading_model_drives_heights(self) -> None:
        chains = [Chain([WallSegment(0, 0, 50, 0, brightness=0)])]
        default = generate_plot_job(chains, 100, 100)
        # no extra width for dark walls: base width 0.5 -> light height
        flat = generate_plot_job(chains, 100, 100, shading=ShadingV1(wall_thickness=0.5, shading_intensity=0.0))
        assert default[0].pen_height == 25
        assert flat[0].pen_height == 45

    def test_degenerate_segments_dropped(self) -> None:
        chains = [Chain([WallSegment(0, 0, 0.001, 0), WallSegment(0, 0, 10, 0)])]
        job = generate_plot_job(chains, 100, 100)
        assert len(job) == 1
        assert job[0].length > 0

    def test_strokes_group_contiguous_segments(self) -> None:
        segs = [
            PlotSegment(0, 0, 10, 0, 40),
            PlotSegment(10, 0, 10, 10, 40),
            PlotSegment(50, 50, 60, 50, 40),
            PlotSegment(60, 50, 60, 60, 30),
        ]
        strokes = segments_to_strokes(segs)
        assert [len(s) for s in strokes] == [2, 2]
        assert segments_to_strokes([]) == []


# ---------------------------------------------------------------------------
# Time estimate
# ---------------------------------------------------------------------------


class TestEstimate:
    def test_empty_job(self) -> None:
        assert estimate_plot_time([]) == 0.0

    def test_travel_draw_and_pen_moves(self) -> None:
        segs = [
            PlotSegment(0, 0, 100, 0, 40),
            PlotSegment(100, 0, 100, 100, 40),
            PlotSegment(200, 200, 300, 200, 40),
        ]
        travel = 2**0.5 * 100
        draw = 300.0
        expected = (travel + draw) / 1100.0 + 3 * 2 * 0.3
        assert estimate_plot_time(segs, speed=50) == pytest.approx(expected)

    def test_explicit_step_rate(self) -> None:
        segs = [PlotSegment(0, 0, 400, 0, 40)]
        assert estimate_plot_time(segs, speed=50, step_rate=400) == pytest.approx(1.0 + 0.6)
        assert estimate_plot_time(segs, step_rate=None) == pytest.approx(400 / 1100.0 + 0.6)

    def test_includes_travel_from_home(self) -> None:
        near = estimate_plot_time([PlotSegment(0, 0, 100, 0, 40)], speed=100)
        far = estimate_plot_time([PlotSegment(1000, 0, 1100, 0, 40)], speed=100)
        assert far - near == pytest.approx(1000 / 2000.0)

    @pytest.mark.parametrize(
        "seconds,text",
        [(0, "0s"), (42.4, "42s"), (59.4, "59s"), (59.6, "1m 0s"), (125, "2m 5s"), (3600, "60m 0s")],
    )
    def test_format_time(self, seconds: float, text: str) -> None:
        assert format_time(seconds) == text
