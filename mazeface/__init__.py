"""Portrait maze generator.

Turns a grayscale portrait into a solvable maze whose wall density follows
the image, then extracts and orders the wall geometry for SVG export and
pen plotting.

Subpackages:
    data_pipeline: image adjustments and density sampling
    maze: seeded RNG, partitioning, carving, wall extraction, path ordering
    export: SVG document writer
    utils: filesystem, logging and config validation helpers
"""

__version__ = "0.3.0"

__all__ = ["data_pipeline", "maze", "export", "utils", "pipeline"]
