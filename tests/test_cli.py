"""Tests for the command-line entrypoints (generate and dry-run plot)."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import pytest
import yaml

from mazeface.utils import logging_config
from plotter_control.scripts import generate_maze, plot_maze


@pytest.fixture(autouse=True)
def restore_process_state(monkeypatch):
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    yield
    logging_config.setup_logging("WARNING", to_stderr=False, capture_warnings=False)
    logging.captureWarnings(False)
    logging_config.pop_context()


@pytest.fixture()
def grid_job(tmp_path: Path) -> Path:
    path = tmp_path / "job.yaml"
    path.write_text(yaml.safe_dump({"maze": {"variant": "grid", "grid": {"width": 10, "height": 10}}}))
    return path


class TestGenerateMaze:
    def test_writes_svg(self, portrait_path: Path, grid_job: Path, tmp_path: Path, capsys) -> None:
        out = tmp_path / "maze.svg"
        code = generate_maze.main([
            str(portrait_path), "-o", str(out), "-c", str(grid_job), "--seed", "3", "--log-level", "WARNING",
        ])
        assert code == 0
        assert out.read_text().lstrip().startswith("<?xml")
        printed = capsys.readouterr().out
        assert "Cells:      100" in printed

    def test_overrides(self, grid_job: Path) -> None:
        args = argparse.Namespace(
            config=str(grid_job), seed=11, variant="quadtree", no_stitch=True,
        )
        job = generate_maze.build_job(args)
        assert job.maze.seed == 11
        assert job.maze.variant == "quadtree"
        assert job.maze.grid.width == 10
        assert job.export.stitch is False

    def test_missing_image(self, tmp_path: Path, grid_job: Path, capsys) -> None:
        code = generate_maze.main([
            str(tmp_path / "none.png"), "-o", str(tmp_path / "m.svg"), "-c", str(grid_job), "--log-level", "ERROR",
        ])
        assert code == 1
        assert "not found" in capsys.readouterr().out

    def test_bad_config(self, portrait_path: Path, tmp_path: Path, capsys) -> None:
        bad = tmp_path / "bad.yaml"
        bad.write_text(yaml.safe_dump({"maze": {"seed": -4}}))
        code = generate_maze.main([str(portrait_path), "-o", str(tmp_path / "m.svg"), "-c", str(bad)])
        assert code == 1
        assert "Error loading config" in capsys.readouterr().out


class TestPlotMaze:
    def test_dry_run(self, portrait_path: Path, grid_job: Path, capsys) -> None:
        code = plot_maze.main([str(portrait_path), "-c", str(grid_job), "--dry-run", "--log-level", "WARNING"])
        assert code == 0
        printed = capsys.readouterr().out
        assert "Plot job:" in printed
        assert "Estimated time:" in printed
        assert "Connecting" not in printed

    def test_requires_image_or_utility(self) -> None:
        with pytest.raises(SystemExit):
            plot_maze.main(["--dry-run"])

    def test_connection_failure(self, portrait_path: Path, grid_job: Path, tmp_path: Path, capsys) -> None:
        plotter_cfg = tmp_path / "plotter.yaml"
        plotter_cfg.write_text(yaml.safe_dump({
            "connection": {"connect_attempts": 1, "connect_interval_s": 0.01},
            "pen": {"pen_up": 60, "pen_down": 40},
            "paper": {"size": "6x6"},
        }))
        code = plot_maze.main([
            "--test-bounds", "-p", str(plotter_cfg), "--address", str(tmp_path / "no.sock"), "--log-level", "CRITICAL",
        ])
        assert code == 1
        assert "Failed to connect" in capsys.readouterr().out
