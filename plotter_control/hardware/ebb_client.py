"""EiBotBoard (EBB) client for AxiDraw-class pen plotters.

Two layers:

EBBTransport
    Byte stream to the board.  Commands are ASCII terminated by ``\\r``; a
    reply is complete once it contains ``OK`` or ends with a line break.
    The stream is a Unix socket or ``tcp://host:port`` exposed by a
    serial bridge (ser2net or similar).  One request is in flight at a
    time.  A reply that does not complete before the timeout is returned
    as-is with a warning: the EBB acknowledges motion loosely and the
    caller waits out the move duration anyway.

EBB
    The logical command set (version, motors, servo, pen, moves) plus the
    tracked carriage position and pen state.  Moves are relative on the
    wire; the class converts absolute step targets to the two-motor
    kinematics ``A = dx + dy``, ``B = dx - dy``.

Protocol reference:
    https://evil-mad.github.io/EggBot/ebb.html

Commands are never retried automatically: a repeated move would displace
the carriage twice.
"""

from __future__ import annotations

import logging
import math
import socket
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Protocol

logger = logging.getLogger(__name__)

TERMINATOR = "\r"
SERVO_MIN = 7500     # highest pen position
SERVO_MAX = 28000    # lowest pen position (most pressure)
SERVO_INTERVAL_MS = 24


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class EBBError(Exception):
    """Base exception for all EBB client errors."""

    pass


class EBBConnectionError(EBBError):
    """Socket-level failure (connect, send or receive)."""

    pass


class EBBCommandError(EBBError):
    """The board rejected a command (reply starts with ``!``)."""

    pass


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class CommandTransport(Protocol):
    def send_command(self, command: str, timeout: float | None = None) -> str: ...

    def close(self) -> None: ...


def _reply_complete(text: str) -> bool:
    return bool(text) and ("OK" in text or text.endswith(("\r", "\n")))


class EBBTransport:
    """Stream-socket transport to an EBB.

    Parameters
    ----------
    address : str
        Unix socket path, or ``tcp://host:port``.
    timeout : float
        Default per-command reply timeout in seconds.
    connect_attempts : int
        Tries for :meth:`connect`.
    connect_interval : float
        Seconds between connection tries.

    Examples
    --------
    >>> with EBBTransport("tcp://127.0.0.1:2000") as link:
    ...     link.send_command("V")
    """

    def __init__(
        self,
        address: str,
        timeout: float = 5.0,
        connect_attempts: int = 1,
        connect_interval: float = 1.0,
    ) -> None:
        self.address = address
        self.timeout = timeout
        self.connect_attempts = connect_attempts
        self.connect_interval = connect_interval

        self._sock: socket.socket | None = None
        self._lock = threading.Lock()

    @property
    def is_connected(self) -> bool:
        return self._sock is not None

    def __enter__(self) -> EBBTransport:
        self.connect()
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def _open_socket(self) -> socket.socket:
        if self.address.startswith("tcp://"):
            host, _, port = self.address[len("tcp://"):].rpartition(":")
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            target: object = (host, int(port))
        else:
            sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            target = self.address
        sock.settimeout(self.timeout)
        try:
            sock.connect(target)
        except OSError:
            sock.close()
            raise
        return sock

    def connect(self) -> None:
        """Open the stream.

        Raises
        ------
        EBBConnectionError
            If every attempt fails.
        """
        for attempt in range(1, self.connect_attempts + 1):
            try:
                logger.info(
                    "Connecting to EBB at %s (attempt %d/%d)",
                    self.address, attempt, self.connect_attempts,
                )
                self._sock = self._open_socket()
                logger.info("Connected to EBB at %s", self.address)
                return
            except (OSError, ValueError) as exc:
                logger.warning("Connection attempt %d failed: %s", attempt, exc)
                self._sock = None
                if attempt < self.connect_attempts:
                    time.sleep(self.connect_interval)

        raise EBBConnectionError(
            f"Failed to connect to EBB at {self.address} "
            f"after {self.connect_attempts} attempts"
        )

    def close(self) -> None:
        if self._sock is not None:
            try:
                self._sock.close()
            except OSError:
                pass
            self._sock = None
            logger.info("Disconnected from EBB")

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def send_command(self, command: str, timeout: float | None = None) -> str:
        """Send one command and return the stripped reply.

        Raises
        ------
        EBBConnectionError
            On socket failure or when the peer closes the stream.
        EBBCommandError
            If the board answers with an error (``!...``).
        """
        if self._sock is None:
            raise EBBConnectionError("Not connected to EBB")

        timeout = timeout or self.timeout
        with self._lock:
            try:
                self._sock.sendall((command + TERMINATOR).encode("ascii"))
                raw = self._read_reply(command, timeout)
            except (BrokenPipeError, ConnectionResetError, OSError) as exc:
                self.close()
                raise EBBConnectionError(f"Socket error on {command!r}: {exc}") from exc

        reply = raw.strip()
        if reply.startswith("!"):
            raise EBBCommandError(f"EBB rejected {command!r}: {reply}")
        logger.debug("EBB %s -> %r", command, reply)
        return reply

    def _read_reply(self, command: str, timeout: float) -> str:
        deadline = time.monotonic() + timeout
        buf = b""
        while True:
            text = buf.decode("ascii", errors="replace").lstrip("\r\n")
            if _reply_complete(text):
                return text
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            self._sock.settimeout(remaining)  # type: ignore[union-attr]
            try:
                chunk = self._sock.recv(1024)  # type: ignore[union-attr]
            except socket.timeout:
                break
            if not chunk:
                raise ConnectionResetError("Connection closed by EBB")
            buf += chunk

        logger.warning(
            "EBB command %r: no complete reply after %.1fs (got %r)", command, timeout, buf,
        )
        return buf.decode("ascii", errors="replace")


# ---------------------------------------------------------------------------
# Command layer
# ---------------------------------------------------------------------------


def scale_to_servo_pos(value: float, invert: bool = False) -> int:
    """Logical height 0..100 -> servo units (100 = SERVO_MIN, 0 = SERVO_MAX)."""
    clamped = max(0.0, min(100.0, value))
    if invert:
        clamped = 100.0 - clamped
    return math.floor(SERVO_MIN + (100.0 - clamped) / 100.0 * (SERVO_MAX - SERVO_MIN) + 0.5)


@dataclass(frozen=True)
class EBBSettings:
    """Servo and motion settings used by :class:`EBB`."""

    pen_up_position: float = 60.0
    pen_down_position: float = 40.0
    servo_rate: int = 150
    step_rate: float = 1000.0
    pen_move_ms: int = 300
    invert_pen_lift: bool = False


class EBB:
    """EBB command set with tracked position and pen state.

    Parameters
    ----------
    transport : CommandTransport
        Connected transport (anything with ``send_command``).
    settings : EBBSettings | None
        Servo/motion settings.
    sleep : Callable[[float], None]
        Wait function (seconds) used after pen and carriage moves.
    """

    def __init__(
        self,
        transport: CommandTransport,
        settings: EBBSettings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.transport = transport
        self.settings = settings or EBBSettings()
        self._sleep = sleep
        self._pen_up = True
        self._x = 0
        self._y = 0

    @property
    def position(self) -> tuple[int, int]:
        return (self._x, self._y)

    @property
    def pen_is_up(self) -> bool:
        return self._pen_up

    def _send(self, command: str) -> str:
        return self.transport.send_command(command)

    def _servo(self, height: float) -> int:
        return scale_to_servo_pos(height, self.settings.invert_pen_lift)

    def _wait(self, ms: float) -> None:
        if ms > 0:
            self._sleep(ms / 1000.0)

    def duration_ms(self, dx: float, dy: float) -> int:
        """Move time at the configured step rate, at least 1 ms."""
        return max(1, math.floor(math.hypot(dx, dy) / self.settings.step_rate * 1000 + 0.5))

    # ------------------------------------------------------------------
    # Board
    # ------------------------------------------------------------------

    def version(self) -> str:
        return self._send("V")

    def reset(self) -> None:
        self._send("R")

    def enable_motors(self) -> None:
        """Both motors on at 1/16 microstepping."""
        self._send("EM,1,1")

    def disable_motors(self) -> None:
        self._send("EM,0,0")

    def configure_servo(self) -> None:
        """Push pen-up/pen-down positions and the servo rate."""
        s = self.settings
        self._send(f"SC,5,{self._servo(s.pen_up_position)}")
        self._send(f"SC,4,{self._servo(s.pen_down_position)}")
        self._send(f"SC,10,{s.servo_rate}")

    # ------------------------------------------------------------------
    # Pen
    # ------------------------------------------------------------------

    def pen_up(self, duration: int | None = None) -> None:
        if self._pen_up:
            return
        ms = self.settings.pen_move_ms if duration is None else duration
        self._send(f"SP,1,{ms}")
        self._pen_up = True
        self._wait(ms)

    def pen_down(self, duration: int | None = None) -> None:
        if not self._pen_up:
            return
        ms = self.settings.pen_move_ms if duration is None else duration
        self._send(f"SP,0,{ms}")
        self._pen_up = False
        self._wait(ms)

    def set_pen_height(self, height: float) -> None:
        """Drive the servo directly to ``height`` (0..100)."""
        self._send(f"S2,{self._servo(height)},0")

    def set_pen_down_height(self, height: float) -> None:
        """Change where the next pen-down lands."""
        self._send(f"SC,4,{self._servo(height)}")
        self.settings = replace(self.settings, pen_down_position=height)

    # ------------------------------------------------------------------
    # Carriage
    # ------------------------------------------------------------------

    def move_to(self, x: int, y: int, duration: int | None = None) -> None:
        """Absolute move in steps with the pen as it is."""
        dx, dy = x - self._x, y - self._y
        if dx == 0 and dy == 0:
            return
        ms = self.duration_ms(dx, dy) if duration is None else duration
        self._send(f"SM,{ms},{dx + dy},{dx - dy}")
        self._x, self._y = x, y
        self._wait(ms)

    def move_with_height(self, x: int, y: int, height: float, duration: int | None = None) -> None:
        """Move while gliding the pen to ``height``.

        The servo rate is set so the pen reaches the new height in the same
        time the carriage takes (the servo updates every 24 ms).  A
        zero-length move only sets the height.
        """
        dx, dy = x - self._x, y - self._y
        if dx == 0 and dy == 0:
            self.set_pen_height(height)
            return

        ms = self.duration_ms(dx, dy) if duration is None else duration
        target = self._servo(height)
        current = self._servo(self.settings.pen_down_position)
        rate = max(1, math.floor(abs(target - current) / (ms / SERVO_INTERVAL_MS) + 0.5))

        self._send(f"SC,10,{rate}")
        self._send(f"SC,4,{target}")
        if self._pen_up:
            self._send("SP,0")
            self._pen_up = False
        self._send(f"SM,{ms},{dx + dy},{dx - dy}")

        self._x, self._y = x, y
        self.settings = replace(self.settings, pen_down_position=height)
        self._wait(ms)

    def line_to(self, x: int, y: int, height: float = 50.0) -> None:
        """Draw to (x, y) at pen ``height``."""
        self.move_with_height(x, y, height)

    def move_to_without_drawing(self, x: int, y: int) -> None:
        self.pen_up()
        self.move_to(x, y)

    def home(self) -> None:
        """Pen up, then back to (0, 0)."""
        self.pen_up()
        self.move_to(0, 0)
