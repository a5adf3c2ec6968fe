"""
Unit tests for logging_setup module.
"""

import logging
from pathlib import Path

import pytest

from drawing_cost_intelligence.utils.logging_setup import (
    setup_logging,
    setup_logging_from_config,
)


@pytest.fixture(autouse=True)
def restore_logging():
    """Reset root logging after each test."""
    root = logging.getLogger()
    level = root.level
    handlers = list(root.handlers)
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_level(self):
        """Test the root level is applied."""
        setup_logging("debug")

        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level(self):
        """Test an unknown level name is rejected."""
        with pytest.raises(ValueError):
            setup_logging("LOUD")

    def test_log_file(self, temp_dir):
        """Test records are written to the log file."""
        log_file = Path(temp_dir) / "logs" / "analysis.log"
        setup_logging("INFO", str(log_file))

        logging.getLogger("drawing_cost_intelligence.test").info("analysis started")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "analysis started" in log_file.read_text(encoding="utf-8")

    def test_from_config(self):
        """Test the logging config section is applied."""
        setup_logging_from_config({"level": "WARNING", "log_file": None})

        assert logging.getLogger().level == logging.WARNING
