"""Tests for maze carving.

Covers:
    - Spanning tree properties of the base pass
    - Determinism for identical seed and input
    - Every cell reachable after all passes (many seeds, both variants)
    - Light/dark refinement passes and their guards
    - Entrance/exit openings and the BFS solver
"""

from __future__ import annotations

import numpy as np
import pytest

from mazeface.data_pipeline.density import BrightnessSampler, DensityField
from mazeface.maze.carver import CarveParams, Maze, MazeCarver, carve_maze, solve
from mazeface.maze.partition import ALL_WALLS, Partition, Side, quadtree_partition, uniform_grid_partition
from mazeface.utils.validators import MazeParamsV1, QuadtreeParamsV1


def _grid_from(gray: np.ndarray, width: int, height: int) -> Partition:
    return uniform_grid_partition(DensityField.from_grayscale(gray, width, height))


@pytest.fixture()
def portrait_grid(portrait_gray: np.ndarray) -> Partition:
    return _grid_from(portrait_gray, 16, 16)


@pytest.fixture()
def portrait_quadtree(portrait_gray: np.ndarray) -> Partition:
    return quadtree_partition(BrightnessSampler(portrait_gray), QuadtreeParamsV1(resolution=256, min_cell_size=8))


class TestCarveParams:
    def test_defaults(self) -> None:
        p = CarveParams()
        assert (p.seed, p.wall_removal_strength, p.extra_walls_strength) == (1, 0.7, 0.5)

    def test_rejects_out_of_range(self) -> None:
        with pytest.raises(ValueError, match="wall_removal_strength"):
            CarveParams(wall_removal_strength=1.5)

    def test_from_config(self) -> None:
        p = CarveParams.from_config(MazeParamsV1(seed=9, extra_walls_strength=0.0))
        assert p.seed == 9
        assert p.extra_walls_strength == 0.0


class TestBaseTree:
    def test_spanning_tree(self, grid4: Partition) -> None:
        carver = MazeCarver(grid4, CarveParams(seed=1))
        opened = carver.carve_base()
        maze = carver.maze
        assert opened == len(grid4) - 1
        assert len(maze.open_edges) == 15
        assert all(maze.visited)
        assert maze.reachable() == set(range(16))

    def test_open_edges_are_adjacent(self, portrait_quadtree: Partition) -> None:
        maze = carve_maze(portrait_quadtree)
        pairs = set(portrait_quadtree.adjacency_pairs())
        assert maze.open_edges <= pairs

    def test_strengths_zero_leave_a_tree(self, portrait_grid: Partition) -> None:
        maze = carve_maze(portrait_grid, CarveParams(seed=4, wall_removal_strength=0, extra_walls_strength=0))
        assert len(maze.open_edges) == len(portrait_grid) - 1

    def test_single_cell(self, make_grid) -> None:
        maze = carve_maze(make_grid(1, 1))
        assert maze.open_edges == set()
        assert solve(maze) == [0]


class TestBridges:
    def test_tree_edges_are_all_bridges(self, grid4: Partition) -> None:
        carver = MazeCarver(grid4, CarveParams(seed=1))
        carver.carve_base()
        assert carver.maze.bridges() == carver.maze.open_edges

    def test_cycle_has_no_bridges(self, make_grid) -> None:
        maze = Maze(make_grid(2, 2))
        for a, b in [(0, 1), (1, 3), (3, 2), (2, 0)]:
            maze.open(a, b)
        assert maze.bridges() == set()
        maze.close(0, 1)
        assert maze.bridges() == {(1, 3), (2, 3), (0, 2)}

    def test_matches_search_without_edge(self, portrait_quadtree: Partition) -> None:
        carver = MazeCarver(portrait_quadtree, CarveParams(seed=7, wall_removal_strength=1.0))
        carver.carve_base()
        carver.remove_light_walls()
        maze = carver.maze
        expected = {(a, b) for a, b in maze.open_edges if b not in maze.reachable(a, skip=(a, b))}
        assert maze.bridges() == expected
        assert expected != maze.open_edges

    def test_reachable_stops_at_target(self, make_grid) -> None:
        maze = Maze(make_grid(4, 1))
        for a in range(3):
            maze.open(a, a + 1)
        assert maze.reachable(0, target=1) == {0, 1}
        assert maze.reachable(0) == {0, 1, 2, 3}


class TestDeterminism:
    def test_same_seed_same_maze(self, portrait_quadtree: Partition) -> None:
        a = carve_maze(portrait_quadtree, CarveParams(seed=5))
        b = carve_maze(portrait_quadtree, CarveParams(seed=5))
        assert a.fingerprint() == b.fingerprint()

    def test_different_seed_different_maze(self, portrait_grid: Partition) -> None:
        a = carve_maze(portrait_grid, CarveParams(seed=1))
        b = carve_maze(portrait_grid, CarveParams(seed=2))
        assert a.fingerprint() != b.fingerprint()


class TestConnectivity:
    @pytest.mark.parametrize("seed", range(1, 21))
    def test_grid_fully_reachable(self, portrait_grid: Partition, seed: int) -> None:
        maze = carve_maze(portrait_grid, CarveParams(seed=seed, wall_removal_strength=1.0, extra_walls_strength=1.0))
        assert maze.reachable() == set(range(len(portrait_grid)))
        assert solve(maze)[-1] == portrait_grid.exit

    @pytest.mark.parametrize("seed", [1, 7, 13, 99])
    def test_quadtree_fully_reachable(self, portrait_quadtree: Partition, seed: int) -> None:
        maze = carve_maze(portrait_quadtree, CarveParams(seed=seed, extra_walls_strength=1.0))
        assert maze.reachable() == set(range(len(portrait_quadtree)))

    def test_all_black_grid_reachable(self) -> None:
        part = _grid_from(np.zeros((40, 40), dtype=np.uint8), 10, 10)
        for seed in range(1, 11):
            maze = carve_maze(part, CarveParams(seed=seed, extra_walls_strength=1.0))
            assert maze.reachable() == set(range(100))


class TestRefinement:
    def test_light_areas_gain_openings(self) -> None:
        part = _grid_from(np.full((40, 40), 255, dtype=np.uint8), 10, 10)
        carver = MazeCarver(part, CarveParams(seed=3, wall_removal_strength=1.0))
        carver.carve_base()
        extra = carver.remove_light_walls()
        assert extra > 0
        assert len(carver.maze.open_edges) == 99 + extra

    def test_light_pass_never_opens_a_block(self) -> None:
        part = _grid_from(np.full((40, 40), 255, dtype=np.uint8), 10, 10)
        for seed in range(1, 11):
            maze = carve_maze(part, CarveParams(seed=seed, wall_removal_strength=1.0))
            for gy in range(9):
                for gx in range(9):
                    a, b = part.grid_index(gx, gy), part.grid_index(gx + 1, gy)
                    c, d = part.grid_index(gx, gy + 1), part.grid_index(gx + 1, gy + 1)
                    square = [maze.is_open(a, b), maze.is_open(b, d), maze.is_open(d, c), maze.is_open(c, a)]
                    assert not all(square)

    def test_light_pass_skips_dark_cells(self) -> None:
        part = _grid_from(np.zeros((40, 40), dtype=np.uint8), 10, 10)
        carver = MazeCarver(part, CarveParams(seed=3, wall_removal_strength=1.0))
        carver.carve_base()
        assert carver.remove_light_walls() == 0

    def test_dark_pass_skips_light_cells(self) -> None:
        part = _grid_from(np.full((40, 40), 255, dtype=np.uint8), 10, 10)
        carver = MazeCarver(part, CarveParams(seed=3, extra_walls_strength=1.0))
        carver.carve_base()
        carver.remove_light_walls()
        assert carver.inject_dark_complexity() == 0

    def test_dark_pass_only_breaks_cycles(self) -> None:
        part = _grid_from(np.zeros((40, 40), dtype=np.uint8), 10, 10)
        carver = MazeCarver(part, CarveParams(seed=5, extra_walls_strength=1.0))
        carver.carve_base()
        # A pure tree has no alternate routes, so nothing may close.
        assert carver.inject_dark_complexity() == 0
        assert len(carver.maze.open_edges) == 99

    def test_dark_keeps_at_least_as_many_walls(self) -> None:
        black = _grid_from(np.zeros((40, 40), dtype=np.uint8), 10, 10)
        white = _grid_from(np.full((40, 40), 255, dtype=np.uint8), 10, 10)
        params = CarveParams(seed=2, extra_walls_strength=0.0)
        assert len(carve_maze(black, params).open_edges) <= len(carve_maze(white, params).open_edges)


class TestMazeQueries:
    def test_exits_open_after_carve(self, grid4: Partition) -> None:
        maze = carve_maze(grid4)
        assert maze.is_outside_opening(grid4.entrance, Side.TOP)
        assert maze.is_outside_opening(grid4.exit, Side.BOTTOM)
        assert not maze.is_outside_opening(grid4.entrance, Side.LEFT)
        assert not maze.wall_mask(grid4.entrance) & Side.TOP.bit
        assert maze.wall_mask(0) & Side.TOP.bit

    def test_wall_mask_before_carving(self, grid4: Partition) -> None:
        maze = Maze(grid4)
        assert all(maze.wall_mask(i) == ALL_WALLS for i in range(16))

    def test_open_close_symmetric(self, grid4: Partition) -> None:
        maze = Maze(grid4)
        maze.open(5, 1)
        assert maze.is_open(1, 5) and maze.is_open(5, 1)
        assert maze.open_neighbors(1) == [5]
        maze.close(1, 5)
        assert not maze.is_open(5, 1)

    def test_solve_path_is_connected(self, portrait_grid: Partition) -> None:
        maze = carve_maze(portrait_grid, CarveParams(seed=8))
        path = solve(maze)
        assert path[0] == portrait_grid.entrance
        assert path[-1] == portrait_grid.exit
        assert all(maze.is_open(a, b) for a, b in zip(path, path[1:]))

    def test_solve_unreachable(self, grid4: Partition) -> None:
        assert solve(Maze(grid4)) == []
