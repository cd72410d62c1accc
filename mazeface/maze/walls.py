"""Wall geometry from a carved maze.

For every cell side:

* no neighbor (image edge) -> one full-side wall, unless the side is the
  entrance top or exit bottom opening;
* a closed neighbor boundary -> one wall over the shared span only, so a
  large quadtree leaf next to several small ones gets several sub-walls.

Both cells of a closed pair report the same span; canonical ordering plus
exact-key deduplication collapses the pair to one segment.  Coordinates are
rounded so that shared endpoints compare equal bit for bit, which the
stitcher relies on.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from .carver import Maze
from .partition import Point, Side

logger = logging.getLogger(__name__)

COORD_PRECISION = 6


@dataclass(frozen=True, slots=True)
class WallSegment:
    """Straight wall from (x1, y1) to (x2, y2) with its shading sample."""

    x1: float
    y1: float
    x2: float
    y2: float
    brightness: float = 128.0

    @property
    def start(self) -> Point:
        return (self.x1, self.y1)

    @property
    def end(self) -> Point:
        return (self.x2, self.y2)

    @property
    def length(self) -> float:
        return math.hypot(self.x2 - self.x1, self.y2 - self.y1)

    @property
    def key(self) -> tuple[float, float, float, float]:
        """Order-independent identity (endpoints only)."""
        c = self.canonical()
        return (c.x1, c.y1, c.x2, c.y2)

    def reversed(self) -> WallSegment:
        return WallSegment(self.x2, self.y2, self.x1, self.y1, self.brightness)

    def canonical(self) -> WallSegment:
        """Same segment with the lexicographically smaller endpoint first."""
        if (self.x2, self.y2) < (self.x1, self.y1):
            return self.reversed()
        return self

    def rounded(self, precision: int = COORD_PRECISION) -> WallSegment:
        return WallSegment(
            round(self.x1, precision), round(self.y1, precision),
            round(self.x2, precision), round(self.y2, precision),
            self.brightness,
        )


def deduplicate_walls(segments: list[WallSegment]) -> list[WallSegment]:
    """Canonicalize and drop exact duplicates, keeping first-seen order."""
    seen: dict[tuple[float, float, float, float], WallSegment] = {}
    for seg in segments:
        c = seg.canonical()
        seen.setdefault((c.x1, c.y1, c.x2, c.y2), c)
    return list(seen.values())


def extract_walls(maze: Maze, precision: int = COORD_PRECISION) -> list[WallSegment]:
    """Deduplicated wall segments for a finished maze.

    Parameters
    ----------
    maze : Maze
        Carved maze.
    precision : int
        Decimal places kept on every coordinate.

    Returns
    -------
    list[WallSegment]
        Canonical segments in cell order (sides top, right, bottom, left).
        Border walls take the cell's brightness; internal walls the mean of
        both cells.
    """
    part = maze.partition
    raw: list[WallSegment] = []

    for cell in part.cells:
        for side in Side:
            records = part.neighbors_on(cell.index, side)
            if not records:
                if maze.is_outside_opening(cell.index, side):
                    continue
                (x1, y1), (x2, y2) = cell.side_span(side)
                raw.append(WallSegment(x1, y1, x2, y2, cell.brightness))
                continue
            for nb in records:
                if not maze.is_wall(cell.index, nb):
                    continue
                shade = (cell.brightness + part.cells[nb.index].brightness) / 2.0
                raw.append(WallSegment(*nb.start, *nb.end, shade))

    walls = deduplicate_walls([seg.rounded(precision) for seg in raw])
    logger.debug("Extracted %d walls (%d before dedup)", len(walls), len(raw))
    return walls


def stroke_width(
    brightness: float,
    wall_thickness: float = 1.2,
    shading_intensity: float = 2.0,
) -> float:
    """Stroke weight for a wall: darker walls draw thicker.

    ``wall_thickness * (1 + (1 - b / 255) * shading_intensity)`` with ``b``
    clamped to [0, 255].
    """
    b = min(255.0, max(0.0, brightness))
    return wall_thickness * (1.0 + (1.0 - b / 255.0) * shading_intensity)
