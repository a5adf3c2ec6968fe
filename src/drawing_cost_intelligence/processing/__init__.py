"""
Processing modules for the Drawing Cost Intelligence System.

This package contains the text extraction and tolerance classification
components.
"""

from .title_block_parser import TitleBlockParser, TitleBlockConfig
from .note_extractor import DrawingNoteExtractor, NoteExtractorConfig
from .spec_recognizer import SpecRecognizer, SpecEntry
from .tolerance_analyzer import ToleranceAnalyzer, ToleranceConfig
from .gdt_extractor import GdtExtractor, GdtConfig
from .fabrication_classifier import FabricationToleranceClassifier, FabricationConfig
from .bom_extractor import BomExtractor, BomConfig

__all__ = [
    "TitleBlockParser",
    "TitleBlockConfig",
    "DrawingNoteExtractor",
    "NoteExtractorConfig",
    "SpecRecognizer",
    "SpecEntry",
    "ToleranceAnalyzer",
    "ToleranceConfig",
    "GdtExtractor",
    "GdtConfig",
    "FabricationToleranceClassifier",
    "FabricationConfig",
    "BomExtractor",
    "BomConfig",
]
