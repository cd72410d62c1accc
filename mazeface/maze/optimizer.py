"""Pen-travel optimization for wall geometry.

Two stages:

1. **Stitching** joins segments that share an exact endpoint into chains
   (polylines).  Chains start preferentially at open ends (endpoints used by
   exactly one segment) so a corridor is not split in the middle; each seed
   is walked forward, then backward, flipping segments as needed.  Segments
   left over afterwards lie on closed loops and seed further chains.
2. **Ordering** is a greedy nearest-neighbor tour: from the pen position,
   take the chain whose nearer end is closest, reversing it when its end is
   the nearer one.  O(n^2) overall, vectorized per step with numpy.

Every input segment appears exactly once in the output, possibly reversed;
no coordinate is created.  Travel between chains is always pen-up.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict, deque
from dataclasses import dataclass, field

import numpy as np

from .partition import Point
from .walls import WallSegment

logger = logging.getLogger(__name__)


@dataclass
class Chain:
    """Endpoint-contiguous run of oriented wall segments."""

    segments: list[WallSegment] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.segments)

    @property
    def start(self) -> Point:
        return self.segments[0].start

    @property
    def end(self) -> Point:
        return self.segments[-1].end

    @property
    def points(self) -> list[Point]:
        """Polyline vertices, ``len(segments) + 1`` of them."""
        if not self.segments:
            return []
        return [self.segments[0].start] + [s.end for s in self.segments]

    @property
    def length(self) -> float:
        return sum(s.length for s in self.segments)

    def reversed(self) -> Chain:
        return Chain([s.reversed() for s in reversed(self.segments)])


# ---------------------------------------------------------------------------
# Stitching
# ---------------------------------------------------------------------------


def stitch_segments(segments: list[WallSegment]) -> list[Chain]:
    """Join endpoint-sharing segments into chains.

    Endpoints must match exactly; round coordinates upstream.
    """
    endpoints: dict[Point, list[int]] = defaultdict(list)
    for i, seg in enumerate(segments):
        endpoints[seg.start].append(i)
        endpoints[seg.end].append(i)

    used = [False] * len(segments)

    def take_from(point: Point) -> int | None:
        for i in endpoints[point]:
            if not used[i]:
                used[i] = True
                return i
        return None

    def grow(seed: WallSegment) -> Chain:
        run = deque([seed])
        tail = seed.end
        while (i := take_from(tail)) is not None:
            seg = segments[i]
            seg = seg if seg.start == tail else seg.reversed()
            run.append(seg)
            tail = seg.end
        head = seed.start
        while (i := take_from(head)) is not None:
            seg = segments[i]
            seg = seg if seg.end == head else seg.reversed()
            run.appendleft(seg)
            head = seg.start
        return Chain(list(run))

    chains: list[Chain] = []
    for i, seg in enumerate(segments):
        if used[i]:
            continue
        if len(endpoints[seg.start]) == 1:
            used[i] = True
            chains.append(grow(seg))
        elif len(endpoints[seg.end]) == 1:
            used[i] = True
            chains.append(grow(seg.reversed()))

    for i, seg in enumerate(segments):
        if not used[i]:
            used[i] = True
            chains.append(grow(seg))

    logger.debug("Stitched %d segments into %d chains", len(segments), len(chains))
    return chains


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


def order_chains(chains: list[Chain], start: Point = (0.0, 0.0)) -> list[Chain]:
    """Greedy nearest-neighbor order with per-chain reversal.

    Ties go to the lowest remaining index, and to the chain's start over its
    end.
    """
    chains = [c for c in chains if len(c)]
    if not chains:
        return []

    starts = np.array([c.start for c in chains], dtype=np.float64)
    ends = np.array([c.end for c in chains], dtype=np.float64)
    remaining = np.ones(len(chains), dtype=bool)
    pen = np.array(start, dtype=np.float64)
    ordered: list[Chain] = []

    for _ in range(len(chains)):
        ds = np.hypot(*(starts - pen).T)
        de = np.hypot(*(ends - pen).T)
        nearest = np.where(remaining, np.minimum(ds, de), np.inf)
        idx = int(np.argmin(nearest))
        remaining[idx] = False

        chain = chains[idx]
        if de[idx] < ds[idx]:
            chain = chain.reversed()
        ordered.append(chain)
        pen = np.array(chain.end, dtype=np.float64)

    return ordered


def optimize_segments(
    segments: list[WallSegment],
    stitch: bool = True,
    start: Point = (0.0, 0.0),
) -> list[Chain]:
    """Stitch (optional) and order ``segments`` for drawing.

    With ``stitch=False`` every segment is ordered as its own chain.
    """
    chains = stitch_segments(segments) if stitch else [Chain([s]) for s in segments]
    ordered = order_chains(chains, start)
    logger.info(
        "Optimized %d segments into %d chains (pen-up travel %.1f)",
        len(segments), len(ordered), travel_distance(ordered, start),
    )
    return ordered


def travel_distance(chains: list[Chain], start: Point = (0.0, 0.0)) -> float:
    """Total pen-up distance when drawing ``chains`` in order from ``start``."""
    total = 0.0
    pen = start
    for chain in chains:
        if not len(chain):
            continue
        total += math.dist(pen, chain.start)
        pen = chain.end
    return total


def flatten(chains: list[Chain]) -> list[WallSegment]:
    """Oriented segments in drawing order."""
    return [seg for chain in chains for seg in chain.segments]
