"""
Quality modules for the Drawing Cost Intelligence System.

This package contains confidence calibration, extraction validation and
accuracy benchmarking.
"""

from .confidence_calibrator import ConfidenceCalibrator, CalibrationConfig
from .extraction_validator import ExtractionValidator, ValidatorConfig
from .accuracy_benchmark import AccuracyBenchmark, BenchmarkReport

__all__ = [
    "ConfidenceCalibrator",
    "CalibrationConfig",
    "ExtractionValidator",
    "ValidatorConfig",
    "AccuracyBenchmark",
    "BenchmarkReport",
]
