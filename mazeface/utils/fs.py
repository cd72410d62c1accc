"""Filesystem helpers: atomic writes and YAML loading.

Exported SVG documents and plot jobs are written atomically
(tmp file -> fsync -> rename) so a previewer watching the output directory
never opens a half-written file.

Usage::

    from mazeface.utils import fs
    fs.atomic_write_text("out/maze.svg", svg_text)
    params = fs.load_yaml("configs/maze.v1.yaml")
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml


def ensure_dir(p: str | Path) -> Path:
    """Create directory ``p`` (and parents) if needed and return it as a Path."""
    p = Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


def atomic_write_bytes(
    path: str | Path,
    data: bytes,
    tmp_suffix: str = ".tmp",
) -> None:
    """Write bytes to ``path`` atomically.

    Parameters
    ----------
    path : str | Path
        Target file path.  Parent directories are created.
    data : bytes
        Payload.
    tmp_suffix : str
        Suffix for the sibling temporary file.

    Raises
    ------
    RuntimeError
        If the write or rename fails; the temporary file is removed.
    """
    path = Path(path)
    ensure_dir(path.parent)
    tmp_path = path.with_suffix(path.suffix + tmp_suffix)

    try:
        with open(tmp_path, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        tmp_path.replace(path)
    except OSError as e:
        if tmp_path.exists():
            tmp_path.unlink()
        raise RuntimeError(f"Failed to write {path} atomically: {e}") from e


def atomic_write_text(
    path: str | Path,
    text: str,
    encoding: str = "utf-8",
) -> None:
    """Text wrapper around :func:`atomic_write_bytes`."""
    atomic_write_bytes(path, text.encode(encoding))


def atomic_yaml_dump(obj: Any, path: str | Path) -> None:
    """Serialize ``obj`` with ``yaml.safe_dump`` and write it atomically."""
    text = yaml.safe_dump(
        obj,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )
    atomic_write_text(path, text)


def load_yaml(path: str | Path) -> dict[str, Any]:
    """Load a YAML mapping with ``yaml.safe_load``.

    Parameters
    ----------
    path : str | Path
        YAML file path.

    Returns
    -------
    dict[str, Any]
        Parsed mapping (empty dict for an empty file).

    Raises
    ------
    FileNotFoundError
        If the file doesn't exist.
    yaml.YAMLError
        If parsing fails.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e

    return data if data is not None else {}
