"""Image preprocessing and density sampling.

Modules:
    preprocess: load, grayscale, levels/gamma/brightness/contrast/invert
    density: block-averaged density grid and quadtree brightness sampler
"""

from .density import BrightnessSampler, DensityField
from .preprocess import ImageError, apply_adjustments, load_image, prepare_grayscale

__all__ = [
    "BrightnessSampler",
    "DensityField",
    "ImageError",
    "apply_adjustments",
    "load_image",
    "prepare_grayscale",
]
