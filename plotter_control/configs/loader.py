"""Configuration loader for the pen plotter.

Loads and validates ``plotter.yaml`` into typed, frozen dataclasses.
Paper size, margins, pen heights, speed and stroke mapping all come from
the config.  The plot rectangle is derived (paper minus margins on both
sides) rather than stored.

Pen heights use the EBB's logical 0..100 scale: 0 is the lowest servo
position (most pressure), 100 the highest.

Usage::

    from plotter_control.configs.loader import load_config
    cfg = load_config()                        # default path
    cfg = load_config("/custom/plotter.yaml")  # explicit path
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from mazeface.utils.fs import load_yaml

logger = logging.getLogger(__name__)

# Paper presets in millimetres (width, height).
PAPER_SIZES: dict[str, tuple[float, float]] = {
    "4x6": (102.0, 152.0),
    "6x4": (152.0, 102.0),
    "6x6": (152.0, 152.0),
    "8x8": (203.0, 203.0),
    "8x10": (203.0, 254.0),
    "A5": (148.0, 210.0),
    "A4": (210.0, 297.0),
    "Letter": (216.0, 279.0),
}


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


# ---------------------------------------------------------------------------
# Dataclasses -- mirror the YAML structure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConnectionConfig:
    """EBB transport settings.

    ``address`` is a Unix socket path or ``tcp://host:port`` of a serial
    bridge.
    """

    address: str = "/tmp/axidraw.sock"
    timeout_s: float = 5.0
    connect_attempts: int = 3
    connect_interval_s: float = 1.0


@dataclass(frozen=True)
class PenConfig:
    """Servo heights (0..100) and timing."""

    pen_up: float = 60.0
    pen_down: float = 40.0
    pen_down_light: float = 45.0
    pen_down_dark: float = 25.0
    servo_rate: int = 150
    pen_move_ms: int = 300
    invert_pen_lift: bool = False


@dataclass(frozen=True)
class PaperConfig:
    """Paper and margins in mm."""

    width_mm: float = 152.0
    height_mm: float = 152.0
    margin_x_mm: float = 10.0
    margin_y_mm: float = 10.0

    @property
    def plot_width_mm(self) -> float:
        return self.width_mm - 2 * self.margin_x_mm

    @property
    def plot_height_mm(self) -> float:
        return self.height_mm - 2 * self.margin_y_mm


@dataclass(frozen=True)
class MotionConfig:
    """Speed and step resolution.

    ``speed`` (1..100) maps to 200..2000 steps/s.  ``step_rate`` overrides
    that mapping for carriage moves when set.
    """

    speed: float = 50.0
    steps_per_mm: float = 80.0
    step_rate: float | None = None

    @property
    def effective_step_rate(self) -> float:
        if self.step_rate is not None:
            return self.step_rate
        return 200.0 + self.speed / 100.0 * 1800.0


@dataclass(frozen=True)
class StrokeConfig:
    """Stroke-width range mapped onto the light..dark pen heights.

    Widths themselves come from the maze job's shading model.
    """

    min_stroke: float = 0.5
    max_stroke: float = 3.0


@dataclass(frozen=True)
class PlotterConfig:
    """Complete plotter configuration loaded from ``plotter.yaml``."""

    connection: ConnectionConfig = ConnectionConfig()
    pen: PenConfig = PenConfig()
    paper: PaperConfig = PaperConfig()
    motion: MotionConfig = MotionConfig()
    stroke: StrokeConfig = StrokeConfig()


# ---------------------------------------------------------------------------
# Internal parsing helpers
# ---------------------------------------------------------------------------


def _parse_paper(data: dict[str, Any]) -> PaperConfig:
    """Paper from a preset name or explicit dimensions (explicit wins)."""
    preset = data.get("size")
    if preset is not None:
        if preset not in PAPER_SIZES:
            raise ConfigError(
                f"Unknown paper size '{preset}'. Available: {list(PAPER_SIZES)}"
            )
        width, height = PAPER_SIZES[preset]
    else:
        width, height = PaperConfig.width_mm, PaperConfig.height_mm

    return PaperConfig(
        width_mm=float(data.get("width_mm", width)),
        height_mm=float(data.get("height_mm", height)),
        margin_x_mm=float(data.get("margin_x_mm", PaperConfig.margin_x_mm)),
        margin_y_mm=float(data.get("margin_y_mm", PaperConfig.margin_y_mm)),
    )


def _validate_config(cfg: PlotterConfig) -> None:
    """Validate ranges and cross-field consistency.

    Raises
    ------
    ConfigError
        On any invalid value or combination.
    """
    pen = cfg.pen
    for name in ("pen_up", "pen_down", "pen_down_light", "pen_down_dark"):
        value = getattr(pen, name)
        if not 0.0 <= value <= 100.0:
            raise ConfigError(f"pen.{name} must be within 0..100, got {value}")
    if pen.pen_up <= pen.pen_down:
        logger.warning(
            "pen_up (%.0f) is not above pen_down (%.0f); check invert_pen_lift",
            pen.pen_up, pen.pen_down,
        )
    if pen.servo_rate < 1 or pen.pen_move_ms < 0:
        raise ConfigError(
            f"servo_rate must be >= 1 and pen_move_ms >= 0, got "
            f"{pen.servo_rate} / {pen.pen_move_ms}"
        )

    paper = cfg.paper
    if paper.plot_width_mm <= 0 or paper.plot_height_mm <= 0:
        raise ConfigError(
            f"Margins leave no plot area: {paper.width_mm:.0f}x{paper.height_mm:.0f} mm "
            f"with margins {paper.margin_x_mm:.1f}/{paper.margin_y_mm:.1f} mm"
        )

    motion = cfg.motion
    if not 1.0 <= motion.speed <= 100.0:
        raise ConfigError(f"motion.speed must be within 1..100, got {motion.speed}")
    if motion.steps_per_mm <= 0:
        raise ConfigError(f"motion.steps_per_mm must be positive, got {motion.steps_per_mm}")
    if motion.step_rate is not None and motion.step_rate <= 0:
        raise ConfigError(f"motion.step_rate must be positive, got {motion.step_rate}")

    stroke = cfg.stroke
    if not 0.0 < stroke.min_stroke < stroke.max_stroke:
        raise ConfigError(
            f"stroke widths need 0 < min_stroke < max_stroke, got "
            f"{stroke.min_stroke} / {stroke.max_stroke}"
        )

    if cfg.connection.timeout_s <= 0 or cfg.connection.connect_attempts < 1:
        raise ConfigError("connection.timeout_s must be > 0 and connect_attempts >= 1")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(path: str | Path | None = None) -> PlotterConfig:
    """Load and validate plotter configuration from YAML.

    Parameters
    ----------
    path : str | Path | None
        Path to ``plotter.yaml``.  ``None`` loads the default shipped
        alongside this module.

    Returns
    -------
    PlotterConfig
        Fully validated, frozen configuration object.

    Raises
    ------
    ConfigError
        If any field is malformed or fails validation.
    FileNotFoundError
        If *path* does not exist.
    """
    if path is None:
        path = Path(__file__).parent / "plotter.yaml"
    else:
        path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    logger.info("Loading plotter configuration from %s", path)

    data: dict[str, Any] = load_yaml(path)
    if not data:
        raise ConfigError(f"Empty configuration file: {path}")

    try:
        # -- connection -----------------------------------------------------
        cd = data.get("connection", {})
        connection = ConnectionConfig(
            address=str(cd.get("address", ConnectionConfig.address)),
            timeout_s=float(cd.get("timeout_s", ConnectionConfig.timeout_s)),
            connect_attempts=int(cd.get("connect_attempts", ConnectionConfig.connect_attempts)),
            connect_interval_s=float(cd.get("connect_interval_s", ConnectionConfig.connect_interval_s)),
        )

        # -- pen ------------------------------------------------------------
        pd = data["pen"]
        pen = PenConfig(
            pen_up=float(pd["pen_up"]),
            pen_down=float(pd["pen_down"]),
            pen_down_light=float(pd.get("pen_down_light", PenConfig.pen_down_light)),
            pen_down_dark=float(pd.get("pen_down_dark", PenConfig.pen_down_dark)),
            servo_rate=int(pd.get("servo_rate", PenConfig.servo_rate)),
            pen_move_ms=int(pd.get("pen_move_ms", PenConfig.pen_move_ms)),
            invert_pen_lift=bool(pd.get("invert_pen_lift", False)),
        )

        # -- paper ----------------------------------------------------------
        paper = _parse_paper(data["paper"])

        # -- motion ---------------------------------------------------------
        md = data.get("motion", {})
        step_rate = md.get("step_rate")
        motion = MotionConfig(
            speed=float(md.get("speed", MotionConfig.speed)),
            steps_per_mm=float(md.get("steps_per_mm", MotionConfig.steps_per_mm)),
            step_rate=float(step_rate) if step_rate is not None else None,
        )

        # -- stroke ---------------------------------------------------------
        sd = data.get("stroke", {})
        stroke = StrokeConfig(
            min_stroke=float(sd.get("min_stroke", StrokeConfig.min_stroke)),
            max_stroke=float(sd.get("max_stroke", StrokeConfig.max_stroke)),
        )

        config = PlotterConfig(
            connection=connection,
            pen=pen,
            paper=paper,
            motion=motion,
            stroke=stroke,
        )

        _validate_config(config)
        logger.info(
            "Plotter configuration loaded (paper %.0fx%.0f mm, speed %.0f%%)",
            paper.width_mm, paper.height_mm, motion.speed,
        )
        return config

    except KeyError as exc:
        raise ConfigError(
            f"Missing required configuration key: {exc}"
        ) from exc
    except (TypeError, ValueError, AttributeError) as exc:
        raise ConfigError(
            f"Invalid configuration value: {exc}"
        ) from exc
