"""Density sampling: grayscale buffer -> per-cell darkness in [0, 1].

Two samplers feed the two partition variants:

DensityField (uniform grid)
    Non-overlapping block averages, one block per grid cell, inverted and
    normalized so darker blocks give higher density.  Block ``gx`` covers
    pixel columns ``floor(gx * cw) .. floor((gx + 1) * cw)``.  A block that
    covers no pixels (grid finer than the image) reads as mid-gray.

BrightnessSampler (quadtree)
    The image resampled once to a fixed 256 x 256 lookup, then point-sampled
    at continuous plane coordinates with clamping.

Queries outside the field return the neutral density 0.5 instead of raising.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import cv2
import numpy as np

from .preprocess import ImageError

logger = logging.getLogger(__name__)

NEUTRAL_DENSITY = 0.5
EMPTY_BLOCK_BRIGHTNESS = 128.0
SAMPLE_SIZE = 256


def _block_means(gray: np.ndarray, width: int, height: int) -> np.ndarray:
    """Mean of each grid block via an integral image."""
    img_h, img_w = gray.shape
    integral = np.zeros((img_h + 1, img_w + 1), dtype=np.float64)
    integral[1:, 1:] = np.cumsum(np.cumsum(gray, axis=0), axis=1)

    xs = np.floor(np.arange(width + 1) * (img_w / width)).astype(np.int64)
    ys = np.floor(np.arange(height + 1) * (img_h / height)).astype(np.int64)
    x0, x1 = xs[:-1], xs[1:]
    y0, y1 = ys[:-1, None], ys[1:, None]

    sums = integral[y1, x1] - integral[y0, x1] - integral[y1, x0] + integral[y0, x0]
    counts = (y1 - y0) * (x1 - x0)
    return np.where(counts > 0, sums / np.maximum(counts, 1), EMPTY_BLOCK_BRIGHTNESS)


@dataclass(frozen=True)
class DensityField:
    """Immutable per-cell density grid.

    Attributes
    ----------
    values : np.ndarray
        (height, width) densities in [0, 1]; 1 = darkest.
    brightness : np.ndarray
        (height, width) block-averaged brightness in [0, 255].
    """

    values: np.ndarray
    brightness: np.ndarray

    @classmethod
    def from_grayscale(cls, gray: np.ndarray, width: int, height: int) -> DensityField:
        """Block-average ``gray`` onto a ``width`` x ``height`` grid.

        Raises
        ------
        ImageError
            If the buffer is empty or not 2-D.
        ValueError
            If the grid size is not positive.
        """
        gray = np.asarray(gray, dtype=np.float64)
        if gray.ndim != 2 or gray.size == 0:
            raise ImageError(f"Density field needs a non-empty 2-D buffer, got shape {gray.shape}")
        if width < 1 or height < 1:
            raise ValueError(f"Grid size must be positive, got {width}x{height}")

        brightness = _block_means(gray, width, height)
        values = 1.0 - brightness / 255.0
        brightness.setflags(write=False)
        values.setflags(write=False)
        logger.debug(
            "Density field %dx%d from %dx%d image (mean density %.3f)",
            width, height, gray.shape[1], gray.shape[0], float(values.mean()),
        )
        return cls(values=values, brightness=brightness)

    @property
    def width(self) -> int:
        return int(self.values.shape[1])

    @property
    def height(self) -> int:
        return int(self.values.shape[0])

    def contains(self, gx: int, gy: int) -> bool:
        return 0 <= gx < self.width and 0 <= gy < self.height

    def density_at(self, gx: int, gy: int) -> float:
        """Density of cell (gx, gy), or 0.5 outside the grid."""
        if not self.contains(gx, gy):
            return NEUTRAL_DENSITY
        return float(self.values[gy, gx])

    def region_density(self, gx: int, gy: int, radius: int = 1) -> float:
        """Mean density over the in-bounds (2r+1)^2 neighborhood of (gx, gy)."""
        x0, x1 = max(0, gx - radius), min(self.width, gx + radius + 1)
        y0, y1 = max(0, gy - radius), min(self.height, gy + radius + 1)
        if x0 >= x1 or y0 >= y1:
            return NEUTRAL_DENSITY
        return float(self.values[y0:y1, x0:x1].mean())

    def edge_strength(self) -> np.ndarray:
        """Sobel (3x3) gradient magnitude of the block brightness, in [0, 1].

        A full black-to-white step between neighboring cells reads as 1.
        """
        b = np.ascontiguousarray(self.brightness, dtype=np.float32)
        gx = cv2.Sobel(b, cv2.CV_32F, 1, 0, ksize=3, borderType=cv2.BORDER_REPLICATE)
        gy = cv2.Sobel(b, cv2.CV_32F, 0, 1, ksize=3, borderType=cv2.BORDER_REPLICATE)
        magnitude = cv2.magnitude(gx, gy)
        return np.clip(magnitude.astype(np.float64) / (4.0 * 255.0), 0.0, 1.0)


class BrightnessSampler:
    """Point sampler over a fixed-size resampled copy of the image.

    Parameters
    ----------
    gray : np.ndarray
        Grayscale buffer (H, W) in [0, 255].
    sample_size : int
        Edge length of the square lookup image.
    """

    def __init__(self, gray: np.ndarray, sample_size: int = SAMPLE_SIZE) -> None:
        arr = np.asarray(gray)
        if arr.ndim != 2 or arr.size == 0:
            raise ImageError(f"Sampler needs a non-empty 2-D buffer, got shape {arr.shape}")
        if sample_size < 2:
            raise ValueError(f"sample_size must be >= 2, got {sample_size}")
        self.sample_size = sample_size
        self._lookup = cv2.resize(
            arr.astype(np.float32),
            (sample_size, sample_size),
            interpolation=cv2.INTER_AREA,
        ).astype(np.float64)

    def brightness_at(self, x: float, y: float, width: float, height: float) -> float:
        """Brightness at plane point (x, y) for a ``width`` x ``height`` plane.

        Coordinates outside the plane clamp to the nearest edge pixel.
        """
        last = self.sample_size - 1
        sx = min(last, max(0, math.floor(x / width * last)))
        sy = min(last, max(0, math.floor(y / height * last)))
        return float(self._lookup[sy, sx])
