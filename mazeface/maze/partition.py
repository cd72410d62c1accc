"""Spatial partitioning of the maze plane into cells.

Two partitioners produce the same :class:`Partition` structure:

Quadtree (adaptive)
    The plane is split recursively into four equal quadrants.  A region
    splits while its shorter side exceeds both ``min_cell_size`` and a
    threshold that drops in dark regions and near strong local edges, so
    detail concentrates where the portrait is dark or busy.

Uniform grid
    Every cell is 1 x 1; this is the quadtree's degenerate case and shares
    all downstream stages.

Cells live in one list and refer to each other only by index.  Adjacency is
computed once, before carving, by matching collinear edges whose overlap
exceeds a tolerance tied to the minimum cell size.  Each neighbor record
stores the exact shared span so walls between cells of different sizes can
be drawn over the overlap only.
"""

from __future__ import annotations

import bisect
import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable

from ..data_pipeline.density import BrightnessSampler, DensityField
from ..utils.validators import QuadtreeParamsV1

logger = logging.getLogger(__name__)

Point = tuple[float, float]

ADJACENCY_TOLERANCE_RATIO = 1e-3
BORDER_EPS = 1.0
EDGE_DENSITY_WEIGHT = 0.3


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------


class Side(IntEnum):
    """Cell side.  ``bit`` gives the side's flag in a wall bitmask."""

    TOP = 0
    RIGHT = 1
    BOTTOM = 2
    LEFT = 3

    @property
    def opposite(self) -> Side:
        return Side((self + 2) % 4)

    @property
    def bit(self) -> int:
        return 1 << int(self)

    @property
    def is_horizontal(self) -> bool:
        """True for TOP/BOTTOM (the side runs along x)."""
        return self in (Side.TOP, Side.BOTTOM)


ALL_WALLS = 0b1111


@dataclass(slots=True)
class Cell:
    """Axis-aligned maze cell.

    Parameters
    ----------
    index : int
        Position in the owning partition's cell list.
    x, y, w, h : float
        Rectangle in plane units (+y down).
    brightness : float
        Tone in [0, 255] after contrast/invert; drives stroke weight.
    density : float
        Darkness in [0, 1]; drives carving bias.
    grid_pos : tuple[int, int] | None
        ``(gx, gy)`` for uniform-grid cells.
    """

    index: int
    x: float
    y: float
    w: float
    h: float
    brightness: float
    density: float
    grid_pos: tuple[int, int] | None = None

    @property
    def x2(self) -> float:
        return self.x + self.w

    @property
    def y2(self) -> float:
        return self.y + self.h

    @property
    def center(self) -> Point:
        return (self.x + self.w / 2, self.y + self.h / 2)

    def side_span(self, side: Side) -> tuple[Point, Point]:
        """Endpoints of a full side, smaller coordinate first."""
        if side is Side.TOP:
            return (self.x, self.y), (self.x2, self.y)
        if side is Side.BOTTOM:
            return (self.x, self.y2), (self.x2, self.y2)
        if side is Side.LEFT:
            return (self.x, self.y), (self.x, self.y2)
        return (self.x2, self.y), (self.x2, self.y2)


@dataclass(frozen=True, slots=True)
class Neighbor:
    """Adjacency record: which cell lies across ``side`` and where they touch."""

    index: int
    side: Side
    start: Point
    end: Point

    @property
    def mid(self) -> Point:
        return ((self.start[0] + self.end[0]) / 2, (self.start[1] + self.end[1]) / 2)


@dataclass
class Partition:
    """Cells tiling a ``width`` x ``height`` plane plus their adjacency.

    ``entrance`` and ``exit`` index the cells opened to the outside on the
    top and bottom border respectively.
    """

    width: float
    height: float
    cells: list[Cell]
    neighbors: list[list[Neighbor]]
    min_cell_size: float
    entrance: int = 0
    exit: int = 0
    grid_shape: tuple[int, int] | None = None
    _by_side: list[dict[Side, list[Neighbor]]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if len(self.neighbors) != len(self.cells):
            raise ValueError(
                f"neighbors has {len(self.neighbors)} entries for {len(self.cells)} cells"
            )
        self._by_side = []
        for records in self.neighbors:
            grouped: dict[Side, list[Neighbor]] = {s: [] for s in Side}
            for nb in records:
                grouped[nb.side].append(nb)
            self._by_side.append(grouped)

    def __len__(self) -> int:
        return len(self.cells)

    @property
    def is_grid(self) -> bool:
        return self.grid_shape is not None

    def neighbors_on(self, index: int, side: Side) -> list[Neighbor]:
        return self._by_side[index][side]

    def is_border_side(self, index: int, side: Side) -> bool:
        """True when nothing lies across ``side`` (image edge)."""
        return not self._by_side[index][side]

    def touches_border(self, index: int) -> bool:
        return any(self.is_border_side(index, s) for s in Side)

    def adjacency_pairs(self) -> list[tuple[int, int]]:
        """Every adjacent pair once, as ``(a, b)`` with ``a < b``."""
        return sorted(
            {(min(i, nb.index), max(i, nb.index))
             for i, records in enumerate(self.neighbors) for nb in records}
        )

    def grid_index(self, gx: int, gy: int) -> int:
        """Cell index for grid position (gx, gy); grid partitions only."""
        if self.grid_shape is None:
            raise ValueError("grid_index() requires a uniform-grid partition")
        cols, rows = self.grid_shape
        if not (0 <= gx < cols and 0 <= gy < rows):
            raise IndexError(f"Grid position ({gx}, {gy}) outside {cols}x{rows}")
        return gy * cols + gx


# ---------------------------------------------------------------------------
# Adjacency
# ---------------------------------------------------------------------------


def _bucket(value: float, tolerance: float) -> int:
    return math.floor(value / tolerance + 0.5)


def build_adjacency(cells: list[Cell], tolerance: float) -> list[list[Neighbor]]:
    """Neighbor records for a set of non-overlapping cells.

    Two cells are adjacent when one's right (bottom) edge lies within
    ``tolerance`` of the other's left (top) edge and the perpendicular
    overlap is longer than ``tolerance``.  Edges are bucketed by coordinate
    and searched with bisection, so the cost is near-linear in the cell
    count rather than quadratic.

    Parameters
    ----------
    cells : list[Cell]
        Cells whose ``index`` matches their list position.
    tolerance : float
        Positive matching tolerance in plane units.

    Returns
    -------
    list[list[Neighbor]]
        Per-cell records ordered by side, then position along the side.
    """
    if tolerance <= 0:
        raise ValueError(f"tolerance must be positive, got {tolerance}")

    neighbors: list[list[Neighbor]] = [[] for _ in cells]

    # Vertical edges: a's right side against b's left side.
    # Horizontal edges: a's bottom side against b's top side.
    for horizontal in (False, True):
        buckets: dict[int, list[Cell]] = defaultdict(list)
        for c in cells:
            buckets[_bucket(c.y if horizontal else c.x, tolerance)].append(c)
        index: dict[int, tuple[list[float], list[float], list[Cell]]] = {}
        for key, members in buckets.items():
            members.sort(key=lambda c: c.x if horizontal else c.y)
            starts = [c.x if horizontal else c.y for c in members]
            ends = [c.x2 if horizontal else c.y2 for c in members]
            index[key] = (starts, ends, members)

        for a in cells:
            edge = a.y2 if horizontal else a.x2
            a_lo, a_hi = (a.x, a.x2) if horizontal else (a.y, a.y2)
            k = _bucket(edge, tolerance)
            for kk in (k - 1, k, k + 1):
                if kk not in index:
                    continue
                starts, ends, members = index[kk]
                lo_i = bisect.bisect_right(ends, a_lo + tolerance)
                hi_i = bisect.bisect_left(starts, a_hi - tolerance)
                for b in members[lo_i:hi_i]:
                    other_edge = b.y if horizontal else b.x
                    if abs(other_edge - edge) > tolerance:
                        continue
                    lo = max(a_lo, b.x if horizontal else b.y)
                    hi = min(a_hi, b.x2 if horizontal else b.y2)
                    if hi - lo <= tolerance:
                        continue
                    if horizontal:
                        start, end = (lo, edge), (hi, edge)
                        a_side = Side.BOTTOM
                    else:
                        start, end = (edge, lo), (edge, hi)
                        a_side = Side.RIGHT
                    neighbors[a.index].append(Neighbor(b.index, a_side, start, end))
                    neighbors[b.index].append(Neighbor(a.index, a_side.opposite, start, end))

    for records in neighbors:
        records.sort(key=lambda nb: (nb.side, nb.start[0] if nb.side.is_horizontal else nb.start[1]))
    return neighbors


def _closest_to_center(
    cells: list[Cell],
    width: float,
    touches: Callable[[Cell], bool],
) -> int:
    center_x = width / 2
    best, best_dist = 0, math.inf
    for c in cells:
        if not touches(c):
            continue
        dist = abs(c.center[0] - center_x)
        if dist < best_dist:
            best, best_dist = c.index, dist
    return best


def select_entrance_exit(cells: list[Cell], width: float, height: float) -> tuple[int, int]:
    """Top- and bottom-border cells whose centers are closest to the vertical midline."""
    entrance = _closest_to_center(cells, width, lambda c: c.y < BORDER_EPS)
    exit_ = _closest_to_center(cells, width, lambda c: c.y2 > height - BORDER_EPS)
    return entrance, exit_


# ---------------------------------------------------------------------------
# Partitioners
# ---------------------------------------------------------------------------


def _contrast(b: float, contrast: float) -> float:
    return contrast * (b - 128.0) + 128.0


def quadtree_partition(
    sampler: BrightnessSampler,
    params: QuadtreeParamsV1 | None = None,
    width: float | None = None,
    height: float | None = None,
) -> Partition:
    """Adaptive quadtree over a ``width`` x ``height`` plane.

    Parameters
    ----------
    sampler : BrightnessSampler
        Brightness lookup for the source image.
    params : QuadtreeParamsV1 | None
        Subdivision parameters; ``params.resolution`` is the default plane
        size.
    width, height : float | None
        Plane size override for non-square images.

    Returns
    -------
    Partition
        Leaves in depth-first order (top-left, top-right, bottom-left,
        bottom-right), with adjacency and entrance/exit already chosen.
    """
    p = params or QuadtreeParamsV1()
    width = float(width if width is not None else p.resolution)
    height = float(height if height is not None else p.resolution)
    cells: list[Cell] = []

    def subdivide(x: float, y: float, w: float, h: float) -> None:
        b_mid = _contrast(sampler.brightness_at(x + w / 2, y + h / 2, width, height), p.contrast)
        b_tl = _contrast(sampler.brightness_at(x, y, width, height), p.contrast)
        b_br = _contrast(sampler.brightness_at(x + w, y + h, width, height), p.contrast)

        edge_strength = abs(b_tl - b_br)
        tone = 255.0 - b_mid if p.invert else b_mid
        threshold = tone / 255.0 * 45.0 * p.density_bias
        threshold -= edge_strength / 255.0 * 30.0 * p.edge_focus

        size = min(w, h)
        if size > p.min_cell_size and size > threshold:
            hw, hh = w / 2, h / 2
            subdivide(x, y, hw, hh)
            subdivide(x + hw, y, hw, hh)
            subdivide(x, y + hh, hw, hh)
            subdivide(x + hw, y + hh, hw, hh)
            return

        shade = min(255.0, max(0.0, tone))
        cells.append(Cell(len(cells), x, y, w, h, brightness=shade, density=1.0 - shade / 255.0))

    subdivide(0.0, 0.0, width, height)

    neighbors = build_adjacency(cells, ADJACENCY_TOLERANCE_RATIO * p.min_cell_size)
    entrance, exit_ = select_entrance_exit(cells, width, height)
    logger.info(
        "Quadtree: %d leaves over %.0fx%.0f (min cell %.2f)",
        len(cells), width, height, p.min_cell_size,
    )
    return Partition(
        width=width,
        height=height,
        cells=cells,
        neighbors=neighbors,
        min_cell_size=p.min_cell_size,
        entrance=entrance,
        exit=exit_,
    )


def uniform_grid_partition(
    density: DensityField,
    smoothing_radius: int = 0,
    edge_focus: float = 0.0,
) -> Partition:
    """One unit cell per density-field cell, row-major.

    Parameters
    ----------
    density : DensityField
        Per-cell darkness and block brightness.
    smoothing_radius : int
        When positive, a cell's carving density is the mean over its
        ``(2r+1)^2`` in-bounds neighborhood.
    edge_focus : float
        Weight of the Sobel edge magnitude added to the carving density, so
        outlines in the portrait carve like darker areas.

    Returns
    -------
    Partition
        Cells with ``grid_pos``; entrance and exit both in column
        ``floor(width / 2)``.  Brightness (stroke weight) is never smoothed.
    """
    cols, rows = density.width, density.height
    edges = density.edge_strength() if edge_focus > 0 else None

    def carving_density(gx: int, gy: int) -> float:
        if smoothing_radius > 0:
            d = density.region_density(gx, gy, smoothing_radius)
        else:
            d = density.density_at(gx, gy)
        if edges is not None:
            d = min(1.0, d + float(edges[gy, gx]) * EDGE_DENSITY_WEIGHT * edge_focus)
        return d

    cells = [
        Cell(
            gy * cols + gx, float(gx), float(gy), 1.0, 1.0,
            brightness=float(density.brightness[gy, gx]),
            density=carving_density(gx, gy),
            grid_pos=(gx, gy),
        )
        for gy in range(rows)
        for gx in range(cols)
    ]

    offsets = ((Side.TOP, 0, -1), (Side.RIGHT, 1, 0), (Side.BOTTOM, 0, 1), (Side.LEFT, -1, 0))
    neighbors: list[list[Neighbor]] = []
    for c in cells:
        gx, gy = c.grid_pos
        records = []
        for side, dx, dy in offsets:
            nx, ny = gx + dx, gy + dy
            if 0 <= nx < cols and 0 <= ny < rows:
                start, end = c.side_span(side)
                records.append(Neighbor(ny * cols + nx, side, start, end))
        neighbors.append(records)

    mid = cols // 2
    logger.info("Uniform grid: %dx%d cells", cols, rows)
    return Partition(
        width=float(cols),
        height=float(rows),
        cells=cells,
        neighbors=neighbors,
        min_cell_size=1.0,
        entrance=mid,
        exit=(rows - 1) * cols + mid,
        grid_shape=(cols, rows),
    )
