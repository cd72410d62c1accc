"""End-to-end maze generation session.

A :class:`MazeSession` owns every intermediate product of one run (adjusted
grayscale, density/partition, maze, walls, ordered chains), so independent
sessions can run side by side without shared state.  Stages are separate
methods; each one runs the stages it depends on if they have not run yet,
and changing parameters through :meth:`update` drops everything downstream.

Usage::

    session = MazeSession(load_maze_job_config("configs/maze.v1.yaml"))
    session.load_image("portrait.jpg")
    session.export_svg("out/maze.svg")
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

from .data_pipeline.density import BrightnessSampler, DensityField
from .data_pipeline.preprocess import ImageError, prepare_grayscale
from .export.svg import SvgExporter
from .maze.carver import CarveParams, Maze, carve_maze, solve
from .maze.optimizer import Chain, optimize_segments
from .maze.partition import Partition, quadtree_partition, uniform_grid_partition
from .maze.walls import WallSegment, extract_walls
from .utils.logging_config import pop_context, push_context
from .utils.validators import MazeJobV1

logger = logging.getLogger(__name__)

_STAGES = ("gray", "partition", "maze", "walls", "chains")


class MazeSession:
    """Image -> partition -> maze -> walls -> chains, with cached stages.

    Parameters
    ----------
    job : MazeJobV1 | None
        Job parameters; defaults apply when omitted.
    """

    def __init__(self, job: MazeJobV1 | None = None) -> None:
        self.job = job or MazeJobV1()
        self.source: np.ndarray | str | Path | None = None
        self.gray: np.ndarray | None = None
        self.density: DensityField | None = None
        self.partition: Partition | None = None
        self.maze: Maze | None = None
        self.walls: list[WallSegment] | None = None
        self.chains: list[Chain] | None = None

    def _invalidate(self, first: str) -> None:
        for stage in _STAGES[_STAGES.index(first):]:
            setattr(self, stage, None)
            if stage == "partition":
                self.density = None

    def update(self, job: MazeJobV1) -> None:
        """Swap parameters, dropping only the stages they affect."""
        old, self.job = self.job, job
        if old.image != job.image:
            self._invalidate("gray")
        elif old.maze.variant != job.maze.variant or old.maze.grid != job.maze.grid \
                or old.maze.quadtree != job.maze.quadtree:
            self._invalidate("partition")
        elif old.maze != job.maze:
            self._invalidate("maze")
        elif old.export.stitch != job.export.stitch:
            self._invalidate("chains")

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def load_image(self, image: np.ndarray | str | Path) -> np.ndarray:
        """Set the source image and run preprocessing."""
        self.source = image
        self._invalidate("gray")
        self.gray = prepare_grayscale(image, self.job.image)
        return self.gray

    def _require_gray(self) -> np.ndarray:
        if self.gray is None:
            if self.source is None:
                raise ImageError("No image loaded; call load_image() first")
            self.gray = prepare_grayscale(self.source, self.job.image)
        return self.gray

    def build_partition(self) -> Partition:
        if self.partition is None:
            gray = self._require_gray()
            params = self.job.maze
            if params.variant == "grid":
                self.density = DensityField.from_grayscale(gray, params.grid.width, params.grid.height)
                self.partition = uniform_grid_partition(
                    self.density, params.grid.smoothing_radius, params.grid.edge_focus,
                )
            else:
                img_h, img_w = gray.shape
                res = params.quadtree.resolution
                # Long image side spans the full resolution.
                scale = res / max(img_w, img_h)
                self.partition = quadtree_partition(
                    BrightnessSampler(gray), params.quadtree, width=img_w * scale, height=img_h * scale,
                )
        return self.partition

    def carve(self) -> Maze:
        if self.maze is None:
            partition = self.build_partition()
            push_context(seed=self.job.maze.seed)
            try:
                self.maze = carve_maze(partition, CarveParams.from_config(self.job.maze))
            finally:
                pop_context(["seed"])
        return self.maze

    def extract_walls(self) -> list[WallSegment]:
        if self.walls is None:
            self.walls = extract_walls(self.carve())
        return self.walls

    def optimize(self) -> list[Chain]:
        if self.chains is None:
            self.chains = optimize_segments(self.extract_walls(), stitch=self.job.export.stitch)
        return self.chains

    def solution(self) -> list[int]:
        return solve(self.carve())

    def render_svg(self) -> str:
        return SvgExporter(self.job.export, self.job.shading).render(self.optimize(), self.build_partition())

    def export_svg(self, path: str | Path) -> Path:
        return SvgExporter(self.job.export, self.job.shading).save(path, self.optimize(), self.build_partition())

    def plot_segments(self) -> tuple[list[Chain], float, float]:
        """Ordered chains plus plane size, the input of a plot job."""
        partition = self.build_partition()
        return self.optimize(), partition.width, partition.height

    def run(self, image: np.ndarray | str | Path, output: str | Path | None = None) -> list[Chain]:
        """Every stage in order; writes the SVG when ``output`` is given."""
        self.load_image(image)
        chains = self.optimize()
        if output is not None:
            self.export_svg(output)
        return chains
