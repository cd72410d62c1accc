"""High-level pen plotter control.

Drives an :class:`~plotter_control.hardware.ebb_client.EBB` through a plot
job one segment at a time:

    pen up -> for each segment:
                  stop requested?  -> leave the loop
                  paused?          -> block until resumed (or stopped)
                  not at start?    -> pen up + travel
                  line to end at the segment's pen height
           -> home

Pause and stop are cooperative: they are checked between segments, so an
in-flight move always finishes.  Stop returns the carriage home.  Only one
plot may run per connection; a second start while plotting raises
:class:`PlotterBusyError`.  A failed device command ends the job with
:class:`PlotterError` naming the segment; nothing is retried and the
carriage may be left mid-plot (home it manually).
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable

from plotter_control.configs.loader import PlotterConfig
from plotter_control.job_ir.segments import (
    PlotSegment,
    PlotTransform,
    round_half_up,
    stroke_to_height,
)
from plotter_control.hardware.ebb_client import EBB, CommandTransport, EBBError, EBBSettings

logger = logging.getLogger(__name__)

TEST_PATTERN_START_MM = 20.0
TEST_PATTERN_LENGTH_MM = 30.0
TEST_PATTERN_SPACING_MM = 8.0
TEST_PATTERN_LINES = 5


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


class PlotterState(Enum):
    """Connection / job state."""

    DISCONNECTED = auto()
    CONNECTED = auto()
    PLOTTING = auto()
    PAUSED = auto()


@dataclass
class PlotterStatus:
    """Progress snapshot passed to observers."""

    state: PlotterState
    progress: int = 0  # percent
    current_segment: int = 0
    total_segments: int = 0


class PlotterError(Exception):
    """Base exception for plotter operations."""

    pass


class PlotterNotConnectedError(PlotterError):
    """An operation needs a connected plotter."""

    pass


class PlotterBusyError(PlotterError):
    """A plot is already running on this connection."""

    pass


# ---------------------------------------------------------------------------
# Plotter
# ---------------------------------------------------------------------------


class Plotter:
    """Plot-job driver.

    Parameters
    ----------
    config : PlotterConfig | None
        Paper, pen, motion and stroke settings.
    sleep : Callable[[float], None]
        Wait function handed to the EBB layer.
    """

    def __init__(
        self,
        config: PlotterConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or PlotterConfig()
        self._sleep = sleep
        self._ebb: EBB | None = None
        self._transport: CommandTransport | None = None

        self._state = PlotterState.DISCONNECTED
        self._state_lock = threading.Lock()
        self._stop_flag = threading.Event()
        self._resume_flag = threading.Event()
        self._resume_flag.set()
        self._current = 0
        self._total = 0
        self._progress_cb: Callable[[PlotterStatus], None] | None = None
        self._worker: threading.Thread | None = None
        self.last_error: BaseException | None = None

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def state(self) -> PlotterState:
        return self._state

    @property
    def ebb(self) -> EBB:
        if self._ebb is None:
            raise PlotterNotConnectedError("Plotter is not connected")
        return self._ebb

    def get_status(self) -> PlotterStatus:
        progress = round(self._current / self._total * 100) if self._total else 0
        return PlotterStatus(self._state, progress, self._current, self._total)

    def _notify(self) -> None:
        if self._progress_cb is None:
            return
        try:
            self._progress_cb(self.get_status())
        except Exception as exc:  # noqa: BLE001
            logger.error("Progress callback error: %s", exc)

    def _settings(self) -> EBBSettings:
        cfg = self.config
        return EBBSettings(
            pen_up_position=cfg.pen.pen_up,
            pen_down_position=cfg.pen.pen_down,
            servo_rate=cfg.pen.servo_rate,
            step_rate=cfg.motion.effective_step_rate,
            pen_move_ms=cfg.pen.pen_move_ms,
            invert_pen_lift=cfg.pen.invert_pen_lift,
        )

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def connect(self, transport: CommandTransport, reset: bool = False) -> str:
        """Initialise the board on an open transport; returns its version string.

        With ``reset`` the board is returned to its power-on defaults (``R``)
        before the servo and motors are configured.

        Raises
        ------
        PlotterError
            If any initialisation command fails.
        """
        ebb = EBB(transport, self._settings(), sleep=self._sleep)
        try:
            if reset:
                ebb.reset()
            version = ebb.version()
            ebb.configure_servo()
            ebb.enable_motors()
            ebb.pen_up()
        except EBBError as exc:
            raise PlotterError(f"Plotter initialisation failed: {exc}") from exc

        self._transport, self._ebb = transport, ebb
        self._state = PlotterState.CONNECTED
        logger.info("Plotter connected: %s", version)
        self._notify()
        return version

    def disconnect(self) -> None:
        """Disable motors and close the transport."""
        if self._ebb is not None:
            try:
                self._ebb.disable_motors()
            except EBBError as exc:
                logger.warning("Could not disable motors: %s", exc)
            self._ebb = None
        if self._transport is not None:
            self._transport.close()
            self._transport = None
        self._state = PlotterState.DISCONNECTED
        logger.info("Plotter disconnected")
        self._notify()

    # ------------------------------------------------------------------
    # Geometry helpers
    # ------------------------------------------------------------------

    def transform(self, maze_width: float, maze_height: float) -> PlotTransform:
        return PlotTransform.from_config(maze_width, maze_height, self.config)

    def maze_to_steps(self, x: float, y: float, maze_width: float, maze_height: float) -> tuple[int, int]:
        return self.transform(maze_width, maze_height).to_steps(x, y)

    def stroke_to_height(self, width: float) -> int:
        pen, stroke = self.config.pen, self.config.stroke
        return stroke_to_height(width, pen.pen_down_light, pen.pen_down_dark, stroke.min_stroke, stroke.max_stroke)

    def calculate_duration(self, dx: float, dy: float) -> int:
        """Milliseconds for a (dx, dy) step move at the configured step rate."""
        rate = self.config.motion.effective_step_rate
        return max(1, round_half_up(math.hypot(dx, dy) / rate * 1000))

    # ------------------------------------------------------------------
    # Plotting
    # ------------------------------------------------------------------

    def _begin(self, segments: list[PlotSegment], on_progress: Callable[[PlotterStatus], None] | None) -> None:
        with self._state_lock:
            if self._ebb is None:
                raise PlotterNotConnectedError("Plotter is not connected")
            if self._state in (PlotterState.PLOTTING, PlotterState.PAUSED):
                raise PlotterBusyError("A plot is already running")
            self._state = PlotterState.PLOTTING
        self._progress_cb = on_progress
        self._stop_flag.clear()
        self._resume_flag.set()
        self._current, self._total = 0, len(segments)
        self.last_error = None
        self._notify()

    def _run(self, segments: list[PlotSegment]) -> None:
        ebb = self.ebb
        total = len(segments)
        logger.info("Plotting %d segments", total)
        try:
            try:
                ebb.pen_up()
                for idx, seg in enumerate(segments):
                    if self._stop_flag.is_set():
                        logger.info("Plot stopped before segment %d/%d", idx + 1, total)
                        break
                    self._resume_flag.wait()
                    if self._stop_flag.is_set():
                        logger.info("Plot stopped while paused at segment %d/%d", idx + 1, total)
                        break

                    self._current = idx + 1
                    self._notify()
                    if ebb.position != seg.start:
                        ebb.move_to_without_drawing(*seg.start)
                    ebb.line_to(seg.x2, seg.y2, seg.pen_height)
                ebb.home()
            except EBBError as exc:
                raise PlotterError(
                    f"Plot failed at segment {self._current}/{total}: {exc}"
                ) from exc
        finally:
            with self._state_lock:
                self._state = PlotterState.CONNECTED
            self._notify()
            self._progress_cb = None
        logger.info("Plot finished (%d/%d segments)", self._current, total)

    def plot(
        self,
        segments: list[PlotSegment],
        on_progress: Callable[[PlotterStatus], None] | None = None,
    ) -> None:
        """Run a plot job to completion (or stop) on the calling thread.

        Raises
        ------
        PlotterNotConnectedError
            If not connected.
        PlotterBusyError
            If a plot is already running.
        PlotterError
            If a device command fails mid-plot.
        """
        self._begin(segments, on_progress)
        self._run(segments)

    def start_plot(
        self,
        segments: list[PlotSegment],
        on_progress: Callable[[PlotterStatus], None] | None = None,
    ) -> threading.Thread:
        """Run :meth:`plot` on a worker thread; errors land in ``last_error``."""
        self._begin(segments, on_progress)

        def worker() -> None:
            try:
                self._run(segments)
            except PlotterError as exc:
                self.last_error = exc
                logger.error("%s", exc)

        self._worker = threading.Thread(target=worker, name="plotter", daemon=True)
        self._worker.start()
        return self._worker

    def wait(self, timeout: float | None = None) -> bool:
        """Join the worker started by :meth:`start_plot`; True when finished."""
        if self._worker is None:
            return True
        self._worker.join(timeout)
        return not self._worker.is_alive()

    def pause(self) -> None:
        """Block before the next segment until :meth:`resume`."""
        with self._state_lock:
            if self._state is not PlotterState.PLOTTING:
                return
            self._resume_flag.clear()
            self._state = PlotterState.PAUSED
        logger.info("Plot paused at segment %d/%d", self._current, self._total)
        self._notify()

    def resume(self) -> None:
        with self._state_lock:
            if self._state is not PlotterState.PAUSED:
                return
            self._state = PlotterState.PLOTTING
            self._resume_flag.set()
        logger.info("Plot resumed")
        self._notify()

    def stop(self) -> None:
        """Finish the current segment, then home.  Also releases a pause."""
        with self._state_lock:
            if self._state not in (PlotterState.PLOTTING, PlotterState.PAUSED):
                return
            self._stop_flag.set()
            self._resume_flag.set()
        logger.info("Plot stop requested")

    # ------------------------------------------------------------------
    # Utilities
    # ------------------------------------------------------------------

    def _require_idle(self) -> EBB:
        ebb = self.ebb
        if self._state in (PlotterState.PLOTTING, PlotterState.PAUSED):
            raise PlotterBusyError("Cannot run a utility move while plotting")
        return ebb

    def test_pen_height(self, height: float) -> None:
        """Move the servo straight to ``height`` (0..100)."""
        self._require_idle().set_pen_height(height)

    def test_pen_up(self) -> None:
        self._require_idle().set_pen_height(self.config.pen.pen_up)

    def test_pen_down(self, height: float | None = None) -> None:
        self._require_idle().set_pen_height(self.config.pen.pen_down if height is None else height)

    def draw_test_pattern(self, light: float | None = None, dark: float | None = None) -> None:
        """Five 30 mm lines, 8 mm apart, graded from ``light`` to ``dark`` height."""
        ebb = self._require_idle()
        light = self.config.pen.pen_down_light if light is None else light
        dark = self.config.pen.pen_down_dark if dark is None else dark
        spm = self.config.motion.steps_per_mm

        start = round(TEST_PATTERN_START_MM * spm)
        length = round(TEST_PATTERN_LENGTH_MM * spm)
        spacing = round(TEST_PATTERN_SPACING_MM * spm)
        try:
            ebb.pen_up()
            for i in range(TEST_PATTERN_LINES):
                t = i / (TEST_PATTERN_LINES - 1)
                height = round_half_up(light - t * (light - dark))
                y = start + i * spacing
                ebb.move_to(start, y)
                ebb.set_pen_down_height(height)
                ebb.pen_down()
                ebb.move_to(start + length, y)
                ebb.pen_up()
            ebb.home()
        except EBBError as exc:
            raise PlotterError(f"Test pattern failed: {exc}") from exc

    def test_bounds(self) -> None:
        """Trace the plot rectangle with the pen up, then home."""
        ebb = self._require_idle()
        paper, spm = self.config.paper, self.config.motion.steps_per_mm
        left, top = round(paper.margin_x_mm * spm), round(paper.margin_y_mm * spm)
        right = round((paper.margin_x_mm + paper.plot_width_mm) * spm)
        bottom = round((paper.margin_y_mm + paper.plot_height_mm) * spm)
        try:
            ebb.pen_up()
            for x, y in ((left, top), (right, top), (right, bottom), (left, bottom), (left, top)):
                ebb.move_to(x, y)
            ebb.home()
        except EBBError as exc:
            raise PlotterError(f"Bounds trace failed: {exc}") from exc

    def go_home(self) -> None:
        try:
            self._require_idle().home()
        except EBBError as exc:
            raise PlotterError(f"Homing failed: {exc}") from exc
