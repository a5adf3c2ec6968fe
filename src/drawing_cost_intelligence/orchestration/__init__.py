"""
Orchestration module for drawing cost analysis.
"""

from .drawing_analyzer import AnalyzerConfig, DrawingAnalyzer
from .package_scanner import (
    ComponentDrawingMatcher,
    ComponentInfo,
    DrawingPackageIndex,
    DrawingPackageScanner,
)


__all__ = [
    "AnalyzerConfig",
    "DrawingAnalyzer",
    "ComponentDrawingMatcher",
    "ComponentInfo",
    "DrawingPackageIndex",
    "DrawingPackageScanner",
]
