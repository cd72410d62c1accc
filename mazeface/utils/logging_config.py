"""Logging setup shared by the maze generator and the plotter CLIs.

Every module logs through ``logging.getLogger(__name__)``; only entrypoints
call :func:`setup_logging`.  Records carry contextual fields (``app``,
``seed``, ``job``) pushed with :func:`push_context`, so a batch run that
generates several mazes can tell its lines apart.

Format examples:
    Human: 2026-03-02T10:11:12.345Z | INFO     | app=plot seed=7 | Plotting 812 segments
    JSON:  {"t": "2026-03-02T10:11:12.345+00:00", "lvl": "INFO", "seed": 7, "msg": "..."}

Usage::

    from mazeface.utils.logging_config import setup_logging, push_context
    setup_logging("INFO", log_file="outputs/logs/maze.log", context={"app": "maze"})
    push_context(seed=42)

Repeated ``setup_logging()`` calls replace the handlers installed by the
previous call instead of stacking duplicates.
"""

from __future__ import annotations

import contextvars
import json as jsonlib
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

_context_var: contextvars.ContextVar[dict[str, Any]] = contextvars.ContextVar(
    "maze_logging_context", default={},
)

_installed_handlers: list[logging.Handler] = []

_LEVEL_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
_RESET = "\033[0m"


class ContextFormatter(logging.Formatter):
    """Formatter that appends the current contextual fields.

    Parameters
    ----------
    fmt_mode : str
        ``"human"`` for aligned text lines, ``"json"`` for one JSON object
        per line.
    use_color : bool
        Colorize the level name.  Ignored when stderr is not a TTY.
    tz : str
        ``"UTC"`` or ``"local"`` timestamps.
    """

    def __init__(
        self,
        fmt_mode: str = "human",
        use_color: bool = True,
        tz: str = "UTC",
    ) -> None:
        super().__init__()
        if fmt_mode not in ("human", "json"):
            raise ValueError(f"fmt_mode must be 'human' or 'json', got {fmt_mode!r}")
        self.fmt_mode = fmt_mode
        self.use_color = use_color and sys.stderr.isatty()
        self.tz = tz

    def format(self, record: logging.LogRecord) -> str:
        context = _context_var.get()
        if self.tz == "UTC":
            ts = datetime.fromtimestamp(record.created, tz=timezone.utc)
        else:
            ts = datetime.fromtimestamp(record.created)

        if self.fmt_mode == "json":
            payload: dict[str, Any] = {
                "t": ts.isoformat(),
                "lvl": record.levelname,
                "name": record.name,
                "pid": os.getpid(),
                "msg": record.getMessage(),
            }
            payload.update(context)
            if record.exc_info:
                payload["exc"] = self.formatException(record.exc_info)
            return jsonlib.dumps(payload, default=str)

        level = f"{record.levelname:8s}"
        if self.use_color:
            level = f"{_LEVEL_COLORS.get(record.levelname, '')}{level}{_RESET}"
        parts = [ts.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z", "|", level, "|"]
        if context:
            parts.append(" ".join(f"{k}={v}" for k, v in context.items()))
            parts.append("|")
        parts.append(record.getMessage())
        line = " ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    log_level: str = "INFO",
    log_file: str | Path | None = None,
    *,
    json: bool = False,
    color: bool = True,
    to_stderr: bool = True,
    rotate: dict[str, Any] | None = None,
    tz: str = "UTC",
    capture_warnings: bool = True,
    quiet_libs: list[str] | None = None,
    context: dict[str, Any] | None = None,
) -> list[logging.Handler]:
    """Configure the root logger.

    Parameters
    ----------
    log_level : str
        ``"DEBUG"``, ``"INFO"``, ``"WARNING"``, ``"ERROR"`` or ``"CRITICAL"``.
    log_file : str | Path | None
        Optional log file; parent directories are created.
    json : bool
        Write JSON lines to the file handler (console stays human-readable).
    color : bool
        ANSI colors on the console.
    to_stderr : bool
        Attach a console handler.
    rotate : dict | None
        ``{"mode": "size", "max_bytes": ..., "backup_count": ...}`` or
        ``{"mode": "time", "when": "D", "interval": 1, "backup_count": ...}``.
    tz : str
        ``"UTC"`` or ``"local"``.
    capture_warnings : bool
        Route :mod:`warnings` through logging.
    quiet_libs : list[str] | None
        Logger names forced to WARNING (e.g. ``["PIL"]``).
    context : dict | None
        Initial contextual fields.

    Returns
    -------
    list[logging.Handler]
        The handlers attached by this call.

    Raises
    ------
    ValueError
        For an unknown level name or rotation mode.
    """
    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level!r}")

    root = logging.getLogger()
    for handler in _installed_handlers:
        root.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    root.setLevel(level)

    if to_stderr:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(ContextFormatter("human", color, tz))
        _installed_handlers.append(console)

    if log_file is not None:
        _installed_handlers.append(_create_file_handler(Path(log_file), rotate, json, tz))

    for handler in _installed_handlers:
        root.addHandler(handler)

    if context:
        push_context(**context)

    for lib in quiet_libs or []:
        logging.getLogger(lib).setLevel(logging.WARNING)

    if capture_warnings:
        logging.captureWarnings(True)

    return list(_installed_handlers)


def _create_file_handler(
    log_path: Path,
    rotate: dict[str, Any] | None,
    json_format: bool,
    tz: str,
) -> logging.Handler:
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handler: logging.Handler
    if rotate is None:
        handler = logging.FileHandler(log_path, encoding="utf-8")
    elif rotate.get("mode", "size") == "size":
        handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=rotate.get("max_bytes", 10_000_000),
            backupCount=rotate.get("backup_count", 3),
            encoding="utf-8",
        )
    elif rotate["mode"] == "time":
        handler = logging.handlers.TimedRotatingFileHandler(
            log_path,
            when=rotate.get("when", "D"),
            interval=rotate.get("interval", 1),
            backupCount=rotate.get("backup_count", 7),
            encoding="utf-8",
        )
    else:
        raise ValueError(f"Unknown rotation mode: {rotate['mode']!r}. Use 'size' or 'time'.")

    handler.setFormatter(
        ContextFormatter("json" if json_format else "human", use_color=False, tz=tz)
    )
    return handler


def push_context(**kwargs: Any) -> None:
    """Add contextual fields to every subsequent record in this context.

    Examples
    --------
    >>> push_context(app="maze", seed=7)
    """
    _context_var.set({**_context_var.get(), **kwargs})


def pop_context(keys: list[str] | None = None) -> None:
    """Remove the named contextual fields, or all of them when ``keys`` is None."""
    if keys is None:
        _context_var.set({})
        return
    current = dict(_context_var.get())
    for key in keys:
        current.pop(key, None)
    _context_var.set(current)


def get_context() -> dict[str, Any]:
    """Return a copy of the current contextual fields."""
    return dict(_context_var.get())


def install_excepthook() -> None:
    """Log uncaught exceptions (except Ctrl+C) at CRITICAL before exiting."""

    def _log_exception(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return
        logging.getLogger(__name__).critical(
            "Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback),
        )

    sys.excepthook = _log_exception
