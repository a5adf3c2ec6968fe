"""Logging configuration for the drawing cost intelligence system."""

import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Configure root logging.

    Logs go to stderr and, when given, to a log file as well.

    Args:
        log_level: Logging level as string (DEBUG, INFO, WARNING, ERROR).
            Defaults to "INFO".
        log_file: Optional path of a file that also receives log records.

    Raises:
        ValueError: If log_level is not a known level name.
    """
    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def setup_logging_from_config(logging_section: Dict[str, Any]) -> None:
    """Configure logging from the ``logging`` section of the system config."""
    setup_logging(
        log_level=str(logging_section.get("level", "INFO")),
        log_file=logging_section.get("log_file"),
    )
