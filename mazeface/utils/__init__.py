"""Cross-cutting utilities (lowest dependency layer).

    - Atomic I/O and YAML loading (fs)
    - Maze job schema validation (validators)
    - Unified logging (logging_config)

No module in utils/ may import from upper layers (maze, export, pipeline).

Convenience imports:
    from mazeface.utils import fs, validators
    from mazeface.utils.logging_config import setup_logging
"""

from . import fs
from . import logging_config
from . import validators

__all__ = ["fs", "logging_config", "validators"]
