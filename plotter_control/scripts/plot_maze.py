#!/usr/bin/env python3
"""
Plot Maze Script.

Generate a maze from a portrait and draw it on an EBB pen plotter, or run
the plotter's calibration helpers.

Usage:
    python -m plotter_control.scripts.plot_maze portrait.jpg --dry-run
    python -m plotter_control.scripts.plot_maze portrait.jpg --address tcp://127.0.0.1:2000
    python -m plotter_control.scripts.plot_maze --test-bounds
    python -m plotter_control.scripts.plot_maze --test-pattern

Ctrl+C during a plot stops after the current segment and homes the pen.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from mazeface.pipeline import MazeSession
from mazeface.utils.logging_config import install_excepthook, setup_logging
from mazeface.utils.validators import MazeJobV1, load_maze_job_config
from plotter_control.configs.loader import ConfigError, PlotterConfig, load_config
from plotter_control.hardware.ebb_client import EBBError, EBBTransport
from plotter_control.hardware.plotter import Plotter, PlotterError, PlotterStatus
from plotter_control.job_ir.segments import (
    PlotSegment,
    estimate_plot_time,
    format_time,
    generate_plot_job,
    segments_to_strokes,
)

logger = logging.getLogger(__name__)


def build_segments(image: str, job: MazeJobV1, config: PlotterConfig) -> list[PlotSegment]:
    session = MazeSession(job)
    session.load_image(image)
    chains, width, height = session.plot_segments()
    return generate_plot_job(chains, width, height, config, shading=job.shading)


def print_progress(status: PlotterStatus) -> None:
    print(
        f"\rProgress: {status.current_segment}/{status.total_segments} "
        f"({status.progress}%) [{status.state.name.lower()}]",
        end="",
        flush=True,
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Plot a portrait maze on an EBB pen plotter",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("image", nargs="?", help="Input image")
    parser.add_argument("--config", "-c", type=str, help="Maze job YAML (maze.v1)")
    parser.add_argument("--plotter-config", "-p", type=str, help="Plotter YAML")
    parser.add_argument("--address", "-a", type=str, help="EBB socket path or tcp://host:port")
    parser.add_argument("--seed", type=int, help="RNG seed override")
    parser.add_argument("--reset", action="store_true", help="Reset the EBB before initialising it")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Build the plot job and print the estimate without connecting",
    )

    tests = parser.add_mutually_exclusive_group()
    tests.add_argument("--test-pattern", action="store_true", help="Draw five graded test lines")
    tests.add_argument("--test-bounds", action="store_true", help="Trace the plot area pen-up")
    parser.add_argument("--log-level", default="INFO", help="Logging level")

    args = parser.parse_args(argv)
    setup_logging(args.log_level, context={"app": "plot_maze"})
    install_excepthook()

    if not (args.image or args.test_pattern or args.test_bounds):
        parser.error("an image is required unless --test-pattern or --test-bounds is given")

    try:
        config = load_config(args.plotter_config)
        job = load_maze_job_config(args.config) if args.config else MazeJobV1()
    except (ConfigError, FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}")
        return 1
    if args.seed is not None:
        job = job.model_copy(update={"maze": job.maze.model_copy(update={"seed": args.seed})})

    segments: list[PlotSegment] = []
    if args.image:
        try:
            segments = build_segments(args.image, job, config)
        except ValueError as e:
            print(f"Error: {e}")
            return 1
        estimate = estimate_plot_time(segments, step_rate=config.motion.effective_step_rate)
        print(f"Plot job: {len(segments)} segments, {len(segments_to_strokes(segments))} strokes")
        print(f"Estimated time: {format_time(estimate)}")

    if args.dry_run:
        return 0

    address = args.address or config.connection.address
    print(f"Connecting to EBB at {address}...")
    transport = EBBTransport(
        address,
        timeout=config.connection.timeout_s,
        connect_attempts=config.connection.connect_attempts,
        connect_interval=config.connection.connect_interval_s,
    )
    plotter = Plotter(config)

    try:
        transport.connect()
        version = plotter.connect(transport, reset=args.reset)
        print(f"Connected: {version}\n")

        if args.test_bounds:
            plotter.test_bounds()
        elif args.test_pattern:
            plotter.draw_test_pattern()
        else:
            worker = plotter.start_plot(segments, on_progress=print_progress)
            try:
                while worker.is_alive():
                    worker.join(0.2)
            except KeyboardInterrupt:
                print("\nStopping after the current segment...")
                plotter.stop()
                worker.join()
            print()
            if plotter.last_error is not None:
                raise plotter.last_error
            print("Plot complete.")
    except (EBBError, PlotterError) as e:
        print(f"\nError: {e}")
        logger.exception("Plot failed")
        return 1
    finally:
        if plotter.state.name != "DISCONNECTED":
            plotter.disconnect()
        else:
            transport.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
