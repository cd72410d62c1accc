"""Maze job schema validation.

A maze job YAML (``maze.v1``) bundles every user-facing knob of the
generator: image adjustments, partition/carving parameters, shading and SVG
export options.  Each section is a pydantic model with explicit ranges so a
bad value fails before any image is touched, with the offending key in the
message.

Usage::

    from mazeface.utils import validators
    job = validators.load_maze_job_config("configs/maze.v1.yaml")
    job.maze.seed, job.shading.wall_thickness
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ============================================================================
# IMAGE
# ============================================================================

class ImageAdjustmentsV1(BaseModel):
    """Grayscale preprocessing applied before density sampling."""
    brightness: float = Field(0.0, ge=-100.0, le=100.0, description="Additive offset, percent of full scale")
    contrast: float = Field(1.0, ge=0.0, le=5.0, description="Gain around mid-gray (128)")
    black_point: int = Field(0, ge=0, le=255, description="Input level mapped to 0")
    white_point: int = Field(255, ge=0, le=255, description="Input level mapped to 255")
    gamma: float = Field(1.0, gt=0.0, le=10.0, description="Output = 255 * (g/255) ** gamma")
    invert: bool = Field(False, description="Swap light and dark after adjustment")
    auto_levels: bool = Field(False, description="Derive black/white points from the histogram")

    @model_validator(mode="after")
    def check_levels(self) -> "ImageAdjustmentsV1":
        if self.black_point >= self.white_point:
            raise ValueError(
                f"black_point ({self.black_point}) must be < white_point ({self.white_point})"
            )
        return self


# ============================================================================
# MAZE
# ============================================================================

class GridParamsV1(BaseModel):
    """Uniform grid variant: one cell per grid position, unit cell size."""
    width: int = Field(40, ge=1, le=1000, description="Cells per row")
    height: int = Field(40, ge=1, le=1000, description="Cells per column")
    smoothing_radius: int = Field(0, ge=0, le=5, description="Carving density averaged over this neighborhood (0 = off)")
    edge_focus: float = Field(0.0, ge=0.0, le=10.0, description="Extra carving density along brightness edges")


class QuadtreeParamsV1(BaseModel):
    """Adaptive quadtree variant (plane is resolution x resolution units)."""
    resolution: float = Field(800.0, ge=16.0, le=10000.0, description="Plane edge length")
    min_cell_size: float = Field(4.0, gt=0.0, description="Leaves never split below this size")
    density_bias: float = Field(1.2, ge=0.0, le=10.0, description="Scales the tone threshold")
    contrast: float = Field(1.5, ge=0.0, le=10.0, description="Contrast applied to sampled brightness")
    edge_focus: float = Field(1.0, ge=0.0, le=10.0, description="Weight of local edges in the threshold")
    invert: bool = Field(False, description="Subdivide light regions instead of dark ones")

    @model_validator(mode="after")
    def check_min_cell(self) -> "QuadtreeParamsV1":
        if self.min_cell_size >= self.resolution:
            raise ValueError(
                f"min_cell_size ({self.min_cell_size}) must be smaller than resolution ({self.resolution})"
            )
        return self


class MazeParamsV1(BaseModel):
    """Partition choice plus carving parameters."""
    variant: Literal["grid", "quadtree"] = Field("quadtree", description="Partition variant")
    seed: int = Field(1, ge=0, le=2**32 - 1, description="Seed for the deterministic RNG")
    wall_removal_strength: float = Field(0.7, ge=0.0, le=1.0, description="Extra openings in light areas")
    extra_walls_strength: float = Field(0.5, ge=0.0, le=1.0, description="Extra closures in dark areas")
    grid: GridParamsV1 = Field(default_factory=GridParamsV1)
    quadtree: QuadtreeParamsV1 = Field(default_factory=QuadtreeParamsV1)


# ============================================================================
# SHADING / EXPORT
# ============================================================================

class ShadingV1(BaseModel):
    """Stroke weight model: base * (1 + darkness * intensity), for both SVG and plot."""
    wall_thickness: float = Field(1.2, gt=0.0, le=20.0, description="Base stroke width")
    shading_intensity: float = Field(2.0, ge=0.0, le=10.0, description="Extra width for dark walls")


class ExportV1(BaseModel):
    """SVG export options."""
    output_size_mm: float = Field(150.0, gt=0.0, le=2000.0, description="Physical width of the document")
    precision: int = Field(4, ge=0, le=8, description="Decimals for path coordinates")
    stitch: bool = Field(True, description="Merge contiguous walls into polylines")
    labels: bool = Field(True, description="Draw START/END labels")
    markers: bool = Field(True, description="Draw entrance/exit arrows")


class MazeJobV1(BaseModel):
    """Complete maze job (schema ``maze.v1``)."""
    model_config = ConfigDict(populate_by_name=True)

    schema_version: str = Field("maze.v1", alias="schema", description="Schema version")
    image: ImageAdjustmentsV1 = Field(default_factory=ImageAdjustmentsV1)
    maze: MazeParamsV1 = Field(default_factory=MazeParamsV1)
    shading: ShadingV1 = Field(default_factory=ShadingV1)
    export: ExportV1 = Field(default_factory=ExportV1)

    @field_validator("schema_version")
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "maze.v1":
            raise ValueError(f"Expected schema 'maze.v1', got '{v}'")
        return v


# ============================================================================
# PUBLIC API
# ============================================================================

def load_maze_job_config(path: str | Path) -> MazeJobV1:
    """Load and validate a maze job YAML.

    Parameters
    ----------
    path : str | Path
        Path to a ``maze.v1`` YAML file.

    Returns
    -------
    MazeJobV1
        Validated job.

    Raises
    ------
    FileNotFoundError
        If ``path`` doesn't exist.
    ValueError
        If validation fails (message names the file and offending fields).
    """
    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Maze job config not found: {path}")

    data = fs.load_yaml(path)
    try:
        return MazeJobV1(**data)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Maze job config validation failed at {path}: {e}") from e
