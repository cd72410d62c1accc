"""Plotter configuration loading and validation."""

from plotter_control.configs.loader import (
    PAPER_SIZES,
    ConfigError,
    ConnectionConfig,
    MotionConfig,
    PaperConfig,
    PenConfig,
    PlotterConfig,
    StrokeConfig,
    load_config,
)

__all__ = [
    "PAPER_SIZES",
    "ConfigError",
    "ConnectionConfig",
    "MotionConfig",
    "PaperConfig",
    "PenConfig",
    "PlotterConfig",
    "StrokeConfig",
    "load_config",
]
