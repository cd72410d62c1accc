"""Grayscale preprocessing for maze density sampling.

Converts an input portrait into the single-channel uint8 buffer the rest of
the pipeline consumes.  The adjustment chain runs in a fixed order:

    1. Luminance grayscale (0.299 R + 0.587 G + 0.114 B)
    2. Levels: map [black_point, white_point] onto [0, 255], clamped
    3. Gamma: 255 * (g / 255) ** gamma
    4. Brightness: + brightness * 2.55
    5. Contrast: (g - 128) * contrast + 128
    6. Clamp to [0, 255], then optional invert

Public API:
    load_image(path) -> (H, W, 3) uint8
    to_grayscale(rgb) -> (H, W) float64
    auto_levels(gray, percentile=1.0) -> (black, white)
    apply_adjustments(gray, adjustments) -> (H, W) uint8
    prepare_grayscale(image, adjustments) -> (H, W) uint8

Malformed or empty images raise :class:`ImageError` here, before anything
reaches the density field.
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError

from ..utils.validators import ImageAdjustmentsV1

logger = logging.getLogger(__name__)

_LUMA = np.array([0.299, 0.587, 0.114], dtype=np.float64)


class ImageError(ValueError):
    """Raised for missing, unreadable, or empty image buffers."""

    pass


def load_image(path: str | Path) -> np.ndarray:
    """Load an image file as RGB uint8.

    Parameters
    ----------
    path : str | Path
        Any format Pillow can read.  Alpha is dropped, palettes are expanded.

    Returns
    -------
    np.ndarray
        Shape (H, W, 3), dtype uint8.

    Raises
    ------
    ImageError
        If the file is missing, not an image, or has zero pixels.
    """
    path = Path(path)
    if not path.exists():
        raise ImageError(f"Image not found: {path}")
    try:
        with Image.open(path) as img:
            rgb = np.asarray(img.convert("RGB"), dtype=np.uint8)
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageError(f"Cannot read image {path}: {exc}") from exc

    _check_not_empty(rgb, str(path))
    logger.info("Loaded %s (%dx%d)", path.name, rgb.shape[1], rgb.shape[0])
    return rgb


def _check_not_empty(arr: np.ndarray, what: str) -> None:
    if arr.ndim not in (2, 3) or arr.shape[0] == 0 or arr.shape[1] == 0:
        raise ImageError(f"Empty or malformed image buffer ({what}): shape {arr.shape}")


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Luminance grayscale as float64 in [0, 255].

    Accepts (H, W), (H, W, 3) or (H, W, 4); alpha is ignored.
    """
    arr = np.asarray(image)
    _check_not_empty(arr, "grayscale input")
    if arr.ndim == 2:
        return arr.astype(np.float64)
    if arr.shape[2] not in (3, 4):
        raise ImageError(f"Expected 1, 3 or 4 channels, got {arr.shape[2]}")
    return arr[..., :3].astype(np.float64) @ _LUMA


def auto_levels(gray: np.ndarray, percentile: float = 1.0) -> tuple[int, int]:
    """Histogram-stretch points.

    Parameters
    ----------
    gray : np.ndarray
        Grayscale buffer, values in [0, 255].
    percentile : float
        Fraction (in percent) of pixels clipped at each end.

    Returns
    -------
    tuple[int, int]
        ``(black, white)``: the first gray level whose cumulative count from
        the dark end reaches the threshold, and likewise from the light end.
    """
    levels = np.clip(np.rint(np.asarray(gray, dtype=np.float64)), 0, 255).astype(np.int64)
    hist = np.bincount(levels.ravel(), minlength=256)
    threshold = levels.size * percentile / 100.0

    black = int(np.argmax(np.cumsum(hist) >= threshold))
    white = 255 - int(np.argmax(np.cumsum(hist[::-1]) >= threshold))
    return black, white


def apply_adjustments(
    gray: np.ndarray,
    adjustments: ImageAdjustmentsV1 | None = None,
) -> np.ndarray:
    """Run the levels -> gamma -> brightness -> contrast -> invert chain.

    Parameters
    ----------
    gray : np.ndarray
        Grayscale buffer in [0, 255] (any numeric dtype).
    adjustments : ImageAdjustmentsV1 | None
        Adjustment parameters; defaults leave the image unchanged.

    Returns
    -------
    np.ndarray
        Adjusted buffer, dtype uint8.
    """
    adj = adjustments or ImageAdjustmentsV1()
    g = np.asarray(gray, dtype=np.float64)
    _check_not_empty(g, "adjustment input")

    black, white = adj.black_point, adj.white_point
    if adj.auto_levels:
        black, white = auto_levels(g)
        logger.debug("Auto levels: black=%d white=%d", black, white)

    g = (g - black) / max(1, white - black) * 255.0
    g = np.clip(g, 0.0, 255.0)
    g = 255.0 * np.power(g / 255.0, adj.gamma)
    g = g + adj.brightness * 2.55
    g = (g - 128.0) * adj.contrast + 128.0
    g = np.clip(g, 0.0, 255.0)
    if adj.invert:
        g = 255.0 - g

    return np.rint(g).astype(np.uint8)


def prepare_grayscale(
    image: np.ndarray | str | Path,
    adjustments: ImageAdjustmentsV1 | None = None,
) -> np.ndarray:
    """Load (if given a path), convert and adjust an image in one call."""
    if isinstance(image, (str, Path)):
        image = load_image(image)
    return apply_adjustments(to_grayscale(image), adjustments)
