"""Test unified logging setup.

Tests for mazeface.utils.logging_config:
    - JSON file output carries contextual fields
    - Repeated setup does not duplicate handlers
    - push/pop context
    - Bad level names rejected

Run:
    pytest tests/test_logging_config.py -v
"""

from __future__ import annotations

import json
import logging
import logging.handlers

import pytest

from mazeface.utils import logging_config


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logging_config.setup_logging("WARNING", to_stderr=False, capture_warnings=False)
    logging.captureWarnings(False)
    logging_config.pop_context()


def test_json_file_with_context(tmp_path):
    """JSON lines include message, level and pushed context."""
    log_path = tmp_path / "logs" / "maze.log"
    logging_config.setup_logging(
        "INFO", log_file=log_path, json=True, to_stderr=False, context={"app": "test"},
    )
    logging_config.push_context(seed=7)
    logging.getLogger("mazeface.test").info("carved %d cells", 16)

    rec = json.loads(log_path.read_text().strip().splitlines()[-1])
    assert rec["msg"] == "carved 16 cells"
    assert rec["lvl"] == "INFO"
    assert rec["app"] == "test"
    assert rec["seed"] == 7


def test_setup_is_idempotent(tmp_path):
    log_path = tmp_path / "maze.log"
    for _ in range(2):
        logging_config.setup_logging("INFO", log_file=log_path, to_stderr=False)
    logging.getLogger("mazeface.test").info("once")
    assert log_path.read_text().count("once") == 1


def test_human_format(tmp_path):
    log_path = tmp_path / "maze.log"
    logging_config.setup_logging("DEBUG", log_file=log_path, to_stderr=False, context={"app": "cli"})
    logging.getLogger("mazeface.test").debug("hello")
    line = log_path.read_text().strip()
    assert "| DEBUG" in line
    assert "app=cli" in line
    assert line.endswith("hello")


def test_level_filters(tmp_path):
    log_path = tmp_path / "maze.log"
    logging_config.setup_logging("WARNING", log_file=log_path, to_stderr=False)
    logging.getLogger("mazeface.test").info("hidden")
    logging.getLogger("mazeface.test").warning("shown")
    text = log_path.read_text()
    assert "hidden" not in text
    assert "shown" in text


def test_context_push_pop():
    logging_config.pop_context()
    logging_config.push_context(app="maze", seed=3)
    assert logging_config.get_context() == {"app": "maze", "seed": 3}
    logging_config.pop_context(["seed"])
    assert logging_config.get_context() == {"app": "maze"}
    logging_config.pop_context()
    assert logging_config.get_context() == {}


def test_unknown_level():
    with pytest.raises(ValueError, match="Unknown log level"):
        logging_config.setup_logging("LOUD", to_stderr=False)


def test_rotating_handler(tmp_path):
    handlers = logging_config.setup_logging(
        "INFO", log_file=tmp_path / "r.log", to_stderr=False,
        rotate={"mode": "size", "max_bytes": 1000, "backup_count": 2},
    )
    assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in handlers)

    with pytest.raises(ValueError, match="rotation mode"):
        logging_config.setup_logging("INFO", log_file=tmp_path / "x.log", to_stderr=False, rotate={"mode": "weekly"})
