#!/usr/bin/env python3
"""
Generate Maze Script.

Turn a portrait into a maze SVG.

Usage:
    python -m plotter_control.scripts.generate_maze portrait.jpg -o maze.svg
    python -m plotter_control.scripts.generate_maze portrait.jpg -o maze.svg --seed 7
    python -m plotter_control.scripts.generate_maze portrait.jpg -o maze.svg \\
        --config configs/maze.v1.yaml --variant grid
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from mazeface.maze.optimizer import travel_distance
from mazeface.pipeline import MazeSession
from mazeface.utils.logging_config import install_excepthook, setup_logging
from mazeface.utils.validators import MazeJobV1, load_maze_job_config

logger = logging.getLogger(__name__)


def build_job(args: argparse.Namespace) -> MazeJobV1:
    """Config file (or defaults) with command-line overrides applied."""
    job = load_maze_job_config(args.config) if args.config else MazeJobV1()
    maze_updates: dict[str, object] = {}
    if args.seed is not None:
        maze_updates["seed"] = args.seed
    if args.variant is not None:
        maze_updates["variant"] = args.variant
    if maze_updates:
        job = job.model_copy(update={"maze": job.maze.model_copy(update=maze_updates)})
    if args.no_stitch:
        job = job.model_copy(update={"export": job.export.model_copy(update={"stitch": False})})
    return job


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Generate a portrait maze SVG",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("image", type=str, help="Input image (any Pillow format)")
    parser.add_argument("--output", "-o", type=str, required=True, help="Output SVG path")
    parser.add_argument("--config", "-c", type=str, help="Maze job YAML (maze.v1)")
    parser.add_argument("--seed", type=int, help="RNG seed override")
    parser.add_argument(
        "--variant",
        choices=["grid", "quadtree"],
        help="Partition variant override",
    )
    parser.add_argument(
        "--no-stitch",
        action="store_true",
        help="Keep one path per wall segment",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    parser.add_argument("--log-file", type=str, help="Optional log file")

    args = parser.parse_args(argv)
    setup_logging(args.log_level, log_file=args.log_file, context={"app": "generate_maze"})
    install_excepthook()

    try:
        job = build_job(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}")
        return 1

    session = MazeSession(job)
    try:
        chains = session.run(args.image, output=args.output)
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    maze = session.maze
    path = session.solution()
    print(f"Cells:      {len(maze)}")
    print(f"Walls:      {len(session.walls)} segments in {len(chains)} chains")
    print(f"Pen-up:     {travel_distance(chains):.1f} units")
    print(f"Solution:   {len(path)} cells")
    print(f"Written to: {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
