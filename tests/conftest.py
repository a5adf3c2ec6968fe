"""
Pytest configuration and fixtures.
"""

import pytest
import tempfile
import shutil

from drawing_cost_intelligence.models.data_structures import PageText, Word
from drawing_cost_intelligence.orchestration.drawing_analyzer import (
    AnalyzerConfig,
    DrawingAnalyzer,
)
from drawing_cost_intelligence.quality.confidence_calibrator import (
    ConfidenceCalibrator,
)


END_TO_END_TEXT = (
    "PART NO: 12345-A\n"
    "MATERIAL: 304 STAINLESS\n"
    "REV: B\n"
    "UNLESS OTHERWISE SPECIFIED TOLERANCES: ±.005\n"
    "BREAK ALL EDGES\n"
    "TRUE POSITION ⌀.003 A B\n"
)


@pytest.fixture(scope="function")
def temp_dir():
    """Create temporary directory for test."""
    temp_path = tempfile.mkdtemp()
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture(scope="function")
def end_to_end_text():
    """Single-page drawing text covering title block, notes, tolerances and GD&T."""
    return END_TO_END_TEXT


@pytest.fixture(scope="function")
def calibrator():
    """In-memory calibrator with no calibration file."""
    return ConfidenceCalibrator()


@pytest.fixture(scope="function")
def analyzer(calibrator):
    """Analyzer with default configuration and in-memory calibration."""
    return DrawingAnalyzer(AnalyzerConfig(max_workers=2), calibrator=calibrator)


@pytest.fixture(scope="function")
def sample_page():
    """
    Create a 1000x800 page with a title block in the bottom-right corner.

    Words in the title block region (x >= 450, y <= 280) carry the part
    number and material; a drawing note sits in the upper-left area.
    """
    words = (
        Word("BREAK", left=50, bottom=700, right=100, top=712),
        Word("ALL", left=105, bottom=700, right=130, top=712),
        Word("EDGES", left=135, bottom=700, right=185, top=712),
        Word("PART", left=600, bottom=200, right=640, top=212),
        Word("NO:", left=645, bottom=200, right=670, top=212),
        Word("NM-1234", left=675, bottom=200, right=740, top=212),
        Word("MATERIAL:", left=600, bottom=100, right=680, top=112),
        Word("6061", left=685, bottom=100, right=720, top=112),
        Word("ALUMINUM", left=725, bottom=100, right=800, top=112),
    )
    full_text = "BREAK ALL EDGES\nPART NO: NM-1234\nMATERIAL: 6061 ALUMINUM\n"
    return PageText(
        page_number=1, full_text=full_text, words=words, width=1000, height=800
    )


# Markers for different test categories
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line(
        "markers", "integration: Integration tests for multiple components"
    )
    config.addinivalue_line("markers", "slow: Tests that take significant time")
