"""Utility functions for the drawing cost intelligence system."""

from .config_loader import Config, SystemConfig
from .error_handlers import (
    CalibrationError,
    ConfigurationError,
    DrawingProcessingError,
    GroundTruthError,
)
from .geometry_utils import PageRegion, extract_title_block_region, spans_overlap
from .logging_setup import setup_logging
from .text_utils import normalize_plus_minus, parse_decimal, parse_fraction

__all__ = [
    "Config",
    "SystemConfig",
    "CalibrationError",
    "ConfigurationError",
    "DrawingProcessingError",
    "GroundTruthError",
    "PageRegion",
    "extract_title_block_region",
    "spans_overlap",
    "setup_logging",
    "normalize_plus_minus",
    "parse_decimal",
    "parse_fraction",
]
