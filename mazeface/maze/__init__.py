"""Maze construction: partition, carve, extract walls, order for drawing."""

from .carver import CarveParams, Maze, MazeCarver, carve_maze, solve
from .optimizer import Chain, optimize_segments, order_chains, stitch_segments, travel_distance
from .partition import Cell, Neighbor, Partition, Side, quadtree_partition, uniform_grid_partition
from .rng import SeededRandom
from .walls import WallSegment, deduplicate_walls, extract_walls, stroke_width

__all__ = [
    "CarveParams",
    "Cell",
    "Chain",
    "Maze",
    "MazeCarver",
    "Neighbor",
    "Partition",
    "SeededRandom",
    "Side",
    "WallSegment",
    "carve_maze",
    "deduplicate_walls",
    "extract_walls",
    "optimize_segments",
    "order_chains",
    "quadtree_partition",
    "solve",
    "stitch_segments",
    "stroke_width",
    "travel_distance",
    "uniform_grid_partition",
]
