"""Maze carving over a partition's adjacency graph.

Passage state lives in a single undirected edge set owned by :class:`Maze`:
a pair ``(a, b)`` with ``a < b`` is present iff the boundary between the two
cells is open.  Both cells therefore always agree on the state of their
shared boundary.

Carving runs four passes in a fixed order:

1. **Growing tree** -- spanning tree rooted at the entrance.  The newest
   active cell is extended with probability 0.75, otherwise a uniformly
   random active one; among unvisited neighbors, lighter cells are mildly
   preferred (weight ``1 - density * 0.3``).
2. **Light-area wall removal** -- cells with density < 0.5 may open one extra
   interior boundary, never creating a fully open 2x2 block (a 4-cycle of
   open boundaries).
3. **Dark-area complexity injection** -- interior cells with density > 0.6
   may close one open boundary to an interior neighbor when both cells keep
   at least two open sides and another route between them remains, so no
   cell ever becomes unreachable.
4. **Entrance/exit** -- the entrance's top side and the exit's bottom side
   are opened to the outside.

All randomness comes from one :class:`SeededRandom`; identical seed, density
and partition give an identical edge set.

Usage::

    from mazeface.maze.carver import CarveParams, carve_maze, solve
    maze = carve_maze(partition, CarveParams(seed=7))
    path = solve(maze)
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass

from ..utils.validators import MazeParamsV1
from .partition import ALL_WALLS, Neighbor, Partition, Side
from .rng import SeededRandom

logger = logging.getLogger(__name__)

NEWEST_CELL_PROBABILITY = 0.75
DENSITY_PREFERENCE = 0.3
LIGHT_THRESHOLD = 0.5
DARK_THRESHOLD = 0.6


@dataclass(frozen=True)
class CarveParams:
    """Carving knobs.

    Parameters
    ----------
    seed : int
        RNG seed.
    wall_removal_strength : float
        0..1, scales extra openings in light areas.
    extra_walls_strength : float
        0..1, scales extra closures in dark areas.
    """

    seed: int = 1
    wall_removal_strength: float = 0.7
    extra_walls_strength: float = 0.5

    def __post_init__(self) -> None:
        for name in ("wall_removal_strength", "extra_walls_strength"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")

    @classmethod
    def from_config(cls, params: MazeParamsV1) -> CarveParams:
        return cls(
            seed=params.seed,
            wall_removal_strength=params.wall_removal_strength,
            extra_walls_strength=params.extra_walls_strength,
        )


def _edge(a: int, b: int) -> tuple[int, int]:
    return (a, b) if a < b else (b, a)


class Maze:
    """A partition plus its open-boundary set.

    Parameters
    ----------
    partition : Partition
        Cells and adjacency; not modified.
    """

    def __init__(self, partition: Partition) -> None:
        self.partition = partition
        self.open_edges: set[tuple[int, int]] = set()
        self.visited: list[bool] = [False] * len(partition)
        self.exits_open = False

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def entrance(self) -> int:
        return self.partition.entrance

    @property
    def exit(self) -> int:
        return self.partition.exit

    def __len__(self) -> int:
        return len(self.partition)

    def is_open(self, a: int, b: int) -> bool:
        return _edge(a, b) in self.open_edges

    def open_neighbors(self, index: int) -> list[int]:
        """Cells reachable from ``index`` through one open boundary."""
        return [nb.index for nb in self.partition.neighbors[index]
                if _edge(index, nb.index) in self.open_edges]

    def open_count(self, index: int) -> int:
        return len(self.open_neighbors(index))

    def is_outside_opening(self, index: int, side: Side) -> bool:
        """True for the entrance's top side and the exit's bottom side, once opened."""
        if not self.exits_open:
            return False
        return (index == self.entrance and side is Side.TOP) or (
            index == self.exit and side is Side.BOTTOM
        )

    def is_wall(self, index: int, neighbor: Neighbor) -> bool:
        return _edge(index, neighbor.index) not in self.open_edges

    def wall_mask(self, index: int) -> int:
        """Walls present on each side as a bitmask (``Side.bit``).

        A side counts as walled when any boundary along it is closed, or
        when it is an image edge that is not the entrance/exit opening.
        """
        mask = 0
        for side in Side:
            records = self.partition.neighbors_on(index, side)
            if not records:
                if not self.is_outside_opening(index, side):
                    mask |= side.bit
            elif any(self.is_wall(index, nb) for nb in records):
                mask |= side.bit
        return mask & ALL_WALLS

    def reachable(
        self,
        start: int | None = None,
        skip: tuple[int, int] | None = None,
        target: int | None = None,
    ) -> set[int]:
        """Cells connected to ``start`` (default: entrance) by open boundaries.

        ``skip`` excludes one edge from the search.  With ``target`` the
        search stops as soon as that cell is reached, so the result is then
        only a partial component.
        """
        origin = self.entrance if start is None else start
        seen = {origin}
        queue = deque([origin])
        while queue:
            cur = queue.popleft()
            for nxt in self.open_neighbors(cur):
                if nxt in seen or (skip is not None and _edge(cur, nxt) == skip):
                    continue
                seen.add(nxt)
                if nxt == target:
                    return seen
                queue.append(nxt)
        return seen

    def bridges(self) -> set[tuple[int, int]]:
        """Open edges whose closure would split their component.

        Iterative Tarjan low-link over the open-edge graph, O(cells + edges).
        """
        adjacency: list[list[int]] = [[] for _ in range(len(self))]
        for a, b in self.open_edges:
            adjacency[a].append(b)
            adjacency[b].append(a)

        order = [-1] * len(self)
        low = [0] * len(self)
        found: set[tuple[int, int]] = set()
        counter = 0
        for root in range(len(self)):
            if order[root] != -1:
                continue
            order[root] = low[root] = counter
            counter += 1
            stack = [(root, -1, iter(adjacency[root]))]
            while stack:
                node, parent, pending = stack[-1]
                descended = False
                for nxt in pending:
                    if nxt == parent:
                        continue
                    if order[nxt] == -1:
                        order[nxt] = low[nxt] = counter
                        counter += 1
                        stack.append((nxt, node, iter(adjacency[nxt])))
                        descended = True
                        break
                    low[node] = min(low[node], order[nxt])
                if descended:
                    continue
                stack.pop()
                if parent != -1:
                    low[parent] = min(low[parent], low[node])
                    if low[node] > order[parent]:
                        found.add(_edge(parent, node))
        return found

    def fingerprint(self) -> tuple[tuple[int, int], ...]:
        """Sorted open-edge tuple; equal fingerprints mean identical mazes."""
        return tuple(sorted(self.open_edges))

    # ------------------------------------------------------------------
    # Mutation (carver only)
    # ------------------------------------------------------------------

    def open(self, a: int, b: int) -> None:
        self.open_edges.add(_edge(a, b))

    def close(self, a: int, b: int) -> None:
        self.open_edges.discard(_edge(a, b))


class MazeCarver:
    """Runs the carving passes over one partition.

    Parameters
    ----------
    partition : Partition
        Cells and adjacency.
    params : CarveParams | None
        Seed and refinement strengths.
    """

    def __init__(self, partition: Partition, params: CarveParams | None = None) -> None:
        self.params = params or CarveParams()
        self.rng = SeededRandom(self.params.seed)
        self.maze = Maze(partition)

    @property
    def partition(self) -> Partition:
        return self.maze.partition

    def carve(self) -> Maze:
        """Run every pass in order and return the finished maze."""
        opened = self.carve_base()
        extra = self.remove_light_walls()
        closed = self.inject_dark_complexity()
        self.open_entrance_exit()
        logger.info(
            "Carved %d cells (seed=%d): %d tree edges, +%d light openings, -%d dark closures",
            len(self.maze), self.params.seed, opened, extra, closed,
        )
        return self.maze

    # ------------------------------------------------------------------
    # Pass 1: growing tree
    # ------------------------------------------------------------------

    def carve_base(self) -> int:
        """Build the spanning tree from the entrance; returns edges opened."""
        maze, rng = self.maze, self.rng
        if len(maze) == 0:
            return 0

        cells = self.partition.cells
        active = [maze.entrance]
        maze.visited[maze.entrance] = True
        opened = 0

        while active:
            if rng.next() < NEWEST_CELL_PROBABILITY:
                idx = len(active) - 1
            else:
                idx = rng.next_int(0, len(active))
            current = active[idx]

            candidates = [nb.index for nb in self.partition.neighbors[current]
                          if not maze.visited[nb.index]]
            if not candidates:
                active.pop(idx)
                continue

            weights = [1.0 - cells[c].density * DENSITY_PREFERENCE for c in candidates]
            chosen = rng.weighted_pick(candidates, weights)
            maze.open(current, chosen)
            maze.visited[chosen] = True
            active.append(chosen)
            opened += 1

        unvisited = maze.visited.count(False)
        if unvisited:
            logger.warning("%d cells unreachable from the entrance stay walled", unvisited)
        return opened

    # ------------------------------------------------------------------
    # Pass 2: light areas
    # ------------------------------------------------------------------

    def _closes_open_block(self, a: int, b: int) -> bool:
        """True if opening (a, b) would complete a 4-cycle of open boundaries."""
        maze = self.maze
        around_a = [d for d in maze.open_neighbors(a) if d != b]
        around_b = [c for c in maze.open_neighbors(b) if c != a]
        return any(c != d and maze.is_open(c, d) for d in around_a for c in around_b)

    def remove_light_walls(self) -> int:
        """Open at most one extra interior boundary per light cell."""
        strength = self.params.wall_removal_strength
        if strength <= 0:
            return 0

        maze, rng = self.maze, self.rng
        opened = 0
        for cell in self.partition.cells:
            if cell.density >= LIGHT_THRESHOLD:
                continue
            probability = (LIGHT_THRESHOLD - cell.density) * 2.0 * strength

            for nb in rng.shuffle(list(self.partition.neighbors[cell.index])):
                if maze.is_open(cell.index, nb.index):
                    continue
                if self._closes_open_block(cell.index, nb.index):
                    continue
                if rng.next() < probability:
                    maze.open(cell.index, nb.index)
                    opened += 1
                    break
        return opened

    # ------------------------------------------------------------------
    # Pass 3: dark areas
    # ------------------------------------------------------------------

    def inject_dark_complexity(self) -> int:
        """Close at most one open boundary per dark interior cell."""
        strength = self.params.extra_walls_strength
        if strength <= 0:
            return 0

        maze, rng, part = self.maze, self.rng, self.partition
        closed = 0
        # invalidated by every closure
        bridges: set[tuple[int, int]] | None = None
        for cell in part.cells:
            if cell.density <= DARK_THRESHOLD or part.touches_border(cell.index):
                continue
            probability = (cell.density - DARK_THRESHOLD) * 2.5 * strength
            if rng.next() >= probability:
                continue

            open_sides = maze.open_neighbors(cell.index)
            if len(open_sides) < 3:
                continue
            other = rng.pick(open_sides)
            if part.touches_border(other) or maze.open_count(other) < 3:
                continue
            if bridges is None:
                bridges = maze.bridges()
            if _edge(cell.index, other) in bridges:
                continue
            maze.close(cell.index, other)
            bridges = None
            closed += 1
        return closed

    # ------------------------------------------------------------------
    # Pass 4: entrance / exit
    # ------------------------------------------------------------------

    def open_entrance_exit(self) -> None:
        self.maze.exits_open = True


def carve_maze(partition: Partition, params: CarveParams | None = None) -> Maze:
    """Carve ``partition`` with a fresh RNG; see :class:`MazeCarver`."""
    return MazeCarver(partition, params).carve()


def solve(maze: Maze) -> list[int]:
    """Shortest cell path from entrance to exit (BFS), or ``[]`` if none."""
    start, goal = maze.entrance, maze.exit
    parents: dict[int, int | None] = {start: None}
    queue = deque([start])
    while queue:
        cur = queue.popleft()
        if cur == goal:
            path = []
            node: int | None = cur
            while node is not None:
                path.append(node)
                node = parents[node]
            return path[::-1]
        for nxt in maze.open_neighbors(cur):
            if nxt not in parents:
                parents[nxt] = cur
                queue.append(nxt)
    return []
