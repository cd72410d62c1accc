"""Shared fixtures: synthetic portraits and small partitions."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from mazeface.data_pipeline.density import DensityField
from mazeface.maze.partition import Partition, uniform_grid_partition


def _portrait(size: int = 64) -> np.ndarray:
    """Light background with a dark disc in the middle, (H, W) uint8."""
    yy, xx = np.mgrid[0:size, 0:size]
    r = np.hypot(xx - size / 2, yy - size / 2)
    img = np.full((size, size), 230, dtype=np.uint8)
    img[r < size * 0.3] = 30
    return img


@pytest.fixture()
def portrait_gray() -> np.ndarray:
    return _portrait()


@pytest.fixture()
def portrait_rgb(portrait_gray: np.ndarray) -> np.ndarray:
    return np.repeat(portrait_gray[..., None], 3, axis=2)


@pytest.fixture()
def portrait_path(tmp_path: Path, portrait_rgb: np.ndarray) -> Path:
    path = tmp_path / "portrait.png"
    Image.fromarray(portrait_rgb).save(path)
    return path


@pytest.fixture()
def gradient_gray() -> np.ndarray:
    """Horizontal ramp, black on the left to white on the right (32 x 64)."""
    row = np.linspace(0, 255, 64)
    return np.tile(row, (32, 1)).astype(np.uint8)


def _grid(width: int, height: int, value: int = 128) -> Partition:
    gray = np.full((height * 4, width * 4), value, dtype=np.uint8)
    return uniform_grid_partition(DensityField.from_grayscale(gray, width, height))


@pytest.fixture()
def make_grid():
    """Factory: flat-tone uniform grid of ``width`` x ``height`` cells."""
    return _grid


@pytest.fixture()
def grid4() -> Partition:
    return _grid(4, 4)


@pytest.fixture()
def blank4() -> Partition:
    """4 x 4 grid over a pure white image (density 0 everywhere)."""
    return _grid(4, 4, 255)
