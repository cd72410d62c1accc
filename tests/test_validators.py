"""Test maze job schema validation and config loading.

Tests for mazeface.utils.validators:
    - Load the shipped example job
    - Reject out-of-range values with the offending key in the message
    - Range and cross-field checks (levels, shading, min cell size)
    - Schema version check

Run:
    pytest tests/test_validators.py -v
"""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from mazeface.utils.validators import (
    GridParamsV1,
    ImageAdjustmentsV1,
    MazeJobV1,
    MazeParamsV1,
    QuadtreeParamsV1,
    ShadingV1,
    load_maze_job_config,
)

EXAMPLE_JOB = Path(__file__).parent.parent / "configs" / "maze.v1.yaml"


class TestLoadJob:
    def test_example_job(self) -> None:
        job = load_maze_job_config(EXAMPLE_JOB)
        assert job.schema_version == "maze.v1"
        assert job.maze.variant == "quadtree"
        assert job.maze.quadtree.resolution == 800
        assert job.export.stitch is True

    def test_defaults_match_example(self) -> None:
        assert load_maze_job_config(EXAMPLE_JOB).model_dump() == MazeJobV1().model_dump()

    def test_partial_file_uses_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "job.yaml"
        path.write_text(yaml.safe_dump({"maze": {"variant": "grid", "seed": 7}}))
        job = load_maze_job_config(path)
        assert job.maze.seed == 7
        assert job.maze.grid.width == 40
        assert job.shading.wall_thickness == 1.2

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_maze_job_config(tmp_path / "missing.yaml")

    def test_invalid_value_names_key(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.safe_dump({"maze": {"wall_removal_strength": 2.0}}))
        with pytest.raises(ValueError, match="wall_removal_strength"):
            load_maze_job_config(path)

    def test_wrong_schema(self, tmp_path: Path) -> None:
        path = tmp_path / "v2.yaml"
        path.write_text(yaml.safe_dump({"schema": "maze.v2"}))
        with pytest.raises(ValueError, match="maze.v1"):
            load_maze_job_config(path)


class TestModels:
    def test_levels_order(self) -> None:
        with pytest.raises(ValidationError, match="black_point"):
            ImageAdjustmentsV1(black_point=200, white_point=100)

    def test_shading_ranges(self) -> None:
        with pytest.raises(ValidationError, match="wall_thickness"):
            ShadingV1(wall_thickness=0.0)

    def test_grid_carving_options(self) -> None:
        with pytest.raises(ValidationError, match="smoothing_radius"):
            GridParamsV1(smoothing_radius=6)
        with pytest.raises(ValidationError, match="edge_focus"):
            GridParamsV1(edge_focus=-0.5)

    def test_min_cell_below_resolution(self) -> None:
        with pytest.raises(ValidationError, match="min_cell_size"):
            QuadtreeParamsV1(resolution=32, min_cell_size=64)

    def test_unknown_variant(self) -> None:
        with pytest.raises(ValidationError):
            MazeParamsV1(variant="hexagon")

    def test_seed_range(self) -> None:
        MazeParamsV1(seed=2**32 - 1)
        with pytest.raises(ValidationError):
            MazeParamsV1(seed=-1)

    def test_schema_alias(self) -> None:
        assert MazeJobV1(schema="maze.v1").schema_version == "maze.v1"
        assert MazeJobV1(schema_version="maze.v1").schema_version == "maze.v1"
