"""Plot job intermediate representation.

Ordered maze chains (plane units) become :class:`PlotSegment` records in
integer motor steps with a pen height on the 0..100 scale.  Plane
coordinates map onto the plot rectangle by a uniform, aspect-preserving
scale centered on the free axis, then onto steps at ``steps_per_mm``.

Thicker (darker) walls get a lower pen height, i.e. more pressure:
stroke widths are clamped to ``[min_stroke, max_stroke]``, normalized, and
interpolated from ``pen_down_light`` to ``pen_down_dark``.

Consecutive segments where one ends exactly where the next starts form a
*stroke*; the plotter keeps the pen down across a stroke and lifts it for
the travel between strokes.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from mazeface.maze.optimizer import Chain
from mazeface.maze.walls import stroke_width
from mazeface.utils.validators import ShadingV1

from plotter_control.configs.loader import PlotterConfig

logger = logging.getLogger(__name__)

STEPS_PER_MM = 80.0
PEN_MOVE_S = 0.3


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from -inf (EBB convention)."""
    return math.floor(value + 0.5)


# ---------------------------------------------------------------------------
# Segments
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PlotSegment:
    """One pen-down line in motor steps.

    Attributes
    ----------
    x1, y1, x2, y2 : int
        Start and end in steps from the home position.
    pen_height : int
        Logical pen height, 0 (most pressure) .. 100 (lifted).
    """

    x1: int
    y1: int
    x2: int
    y2: int
    pen_height: int

    def __post_init__(self) -> None:
        if not 0 <= self.pen_height <= 100:
            raise ValueError(f"pen_height must be within 0..100, got {self.pen_height}")

    @property
    def start(self) -> tuple[int, int]:
        return (self.x1, self.y1)

    @property
    def end(self) -> tuple[int, int]:
        return (self.x2, self.y2)

    @property
    def length(self) -> float:
        return math.hypot(self.x2 - self.x1, self.y2 - self.y1)


@dataclass(frozen=True)
class PlotTransform:
    """Plane -> paper (mm) -> motor steps.

    Use :meth:`fit` rather than constructing directly.
    """

    scale: float
    offset_x_mm: float
    offset_y_mm: float
    steps_per_mm: float = STEPS_PER_MM

    @classmethod
    def fit(
        cls,
        maze_width: float,
        maze_height: float,
        plot_width_mm: float,
        plot_height_mm: float,
        margin_x_mm: float = 0.0,
        margin_y_mm: float = 0.0,
        steps_per_mm: float = STEPS_PER_MM,
    ) -> PlotTransform:
        """Largest uniform scale that fits the plane, centered on the free axis."""
        if maze_width <= 0 or maze_height <= 0:
            raise ValueError(f"Maze size must be positive, got {maze_width}x{maze_height}")

        if maze_width / maze_height > plot_width_mm / plot_height_mm:
            scale = plot_width_mm / maze_width
            off_x, off_y = 0.0, (plot_height_mm - maze_height * scale) / 2
        else:
            scale = plot_height_mm / maze_height
            off_x, off_y = (plot_width_mm - maze_width * scale) / 2, 0.0

        return cls(scale, margin_x_mm + off_x, margin_y_mm + off_y, steps_per_mm)

    @classmethod
    def from_config(cls, maze_width: float, maze_height: float, config: PlotterConfig) -> PlotTransform:
        paper = config.paper
        return cls.fit(
            maze_width, maze_height,
            paper.plot_width_mm, paper.plot_height_mm,
            paper.margin_x_mm, paper.margin_y_mm,
            config.motion.steps_per_mm,
        )

    def to_mm(self, x: float, y: float) -> tuple[float, float]:
        return (self.offset_x_mm + x * self.scale, self.offset_y_mm + y * self.scale)

    def to_steps(self, x: float, y: float) -> tuple[int, int]:
        mx, my = self.to_mm(x, y)
        return (round_half_up(mx * self.steps_per_mm), round_half_up(my * self.steps_per_mm))


# ---------------------------------------------------------------------------
# Pen height / speed
# ---------------------------------------------------------------------------


def step_rate_for_speed(speed: float) -> float:
    """Speed percentage (1..100) -> steps per second (200..2000)."""
    return 200.0 + speed / 100.0 * 1800.0


def stroke_to_height(
    width: float,
    pen_down_light: float,
    pen_down_dark: float,
    min_stroke: float = 0.5,
    max_stroke: float = 3.0,
) -> int:
    """Pen height for a stroke width; thin -> light height, thick -> dark height."""
    clamped = min(max_stroke, max(min_stroke, width))
    t = (clamped - min_stroke) / (max_stroke - min_stroke)
    return round_half_up(pen_down_light - t * (pen_down_light - pen_down_dark))


# ---------------------------------------------------------------------------
# Job generation
# ---------------------------------------------------------------------------


def generate_plot_job(
    chains: list[Chain],
    maze_width: float,
    maze_height: float,
    config: PlotterConfig | None = None,
    shading: ShadingV1 | None = None,
) -> list[PlotSegment]:
    """Convert ordered chains into plot segments.

    Segment order and orientation are preserved.  Segments that collapse to
    a single step position after rounding are dropped.  Stroke widths use
    the same ``shading`` model as the SVG export; the plotter config only
    maps them onto pen heights.
    """
    cfg = config or PlotterConfig()
    shading = shading or ShadingV1()
    transform = PlotTransform.from_config(maze_width, maze_height, cfg)
    pen, stroke = cfg.pen, cfg.stroke

    segments: list[PlotSegment] = []
    dropped = 0
    for chain in chains:
        for wall in chain.segments:
            start = transform.to_steps(*wall.start)
            end = transform.to_steps(*wall.end)
            if start == end:
                dropped += 1
                continue
            width = stroke_width(wall.brightness, shading.wall_thickness, shading.shading_intensity)
            height = stroke_to_height(
                width, pen.pen_down_light, pen.pen_down_dark, stroke.min_stroke, stroke.max_stroke,
            )
            segments.append(PlotSegment(*start, *end, pen_height=height))

    logger.info(
        "Plot job: %d segments in %d strokes (%d degenerate dropped, scale %.4f mm/unit)",
        len(segments), len(segments_to_strokes(segments)), dropped, transform.scale,
    )
    return segments


def segments_to_strokes(segments: list[PlotSegment]) -> list[list[PlotSegment]]:
    """Group consecutive endpoint-contiguous segments into pen-down strokes."""
    strokes: list[list[PlotSegment]] = []
    for seg in segments:
        if strokes and strokes[-1][-1].end == seg.start:
            strokes[-1].append(seg)
        else:
            strokes.append([seg])
    return strokes


def estimate_plot_time(
    segments: list[PlotSegment],
    speed: float = 50.0,
    step_rate: float | None = None,
) -> float:
    """Rough plot duration in seconds.

    Travel from the previous end (starting at home) plus drawn length, at
    the step rate for ``speed`` (or an explicit ``step_rate`` in steps/s),
    plus two 0.3 s pen moves per segment.
    """
    if not segments:
        return 0.0

    total_steps = 0.0
    last = (0, 0)
    for seg in segments:
        total_steps += math.dist(last, seg.start)
        total_steps += seg.length
        last = seg.end

    rate = step_rate if step_rate is not None else step_rate_for_speed(speed)
    return total_steps / rate + len(segments) * 2 * PEN_MOVE_S


def format_time(seconds: float) -> str:
    """``"42s"`` under a minute, else ``"3m 7s"``."""
    total = round_half_up(seconds)
    if total < 60:
        return f"{total}s"
    return f"{total // 60}m {total % 60}s"
