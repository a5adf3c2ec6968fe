"""
Drawing Cost Intelligence System

Extraction of manufacturing intelligence and cost tiers from engineering
drawing text.
"""

__version__ = "0.1.0"
__author__ = "Drawing Cost Intelligence Team"

# Core exports
from .orchestration import AnalyzerConfig, DrawingAnalyzer
from .models import DrawingData, PageText

__all__ = [
    "AnalyzerConfig",
    "DrawingAnalyzer",
    "DrawingData",
    "PageText",
    "__version__",
]
