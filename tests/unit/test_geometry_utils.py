"""
Unit tests for geometry_utils module.
"""

import pytest

from drawing_cost_intelligence.models.data_structures import PageText, Word
from drawing_cost_intelligence.utils.geometry_utils import (
    PageRegion,
    extract_title_block_region,
    overlaps_any,
    spans_overlap,
    title_block_region,
    words_in_region,
)


class TestPageRegion:
    """Tests for PageRegion class."""

    def test_area(self):
        """Test area calculation."""
        region = PageRegion(left=0, bottom=0, right=100, top=50)

        assert region.area() == 5000

    def test_invalid_width(self):
        """Test a region with right < left is rejected."""
        with pytest.raises(ValueError):
            PageRegion(left=100, bottom=0, right=50, top=50)

    def test_invalid_height(self):
        """Test a region with top < bottom is rejected."""
        with pytest.raises(ValueError):
            PageRegion(left=0, bottom=50, right=100, top=10)

    def test_contains_word(self):
        """Test containment uses the word's left and bottom edges."""
        region = PageRegion(left=450, bottom=0, right=1000, top=280)

        assert region.contains_word(Word("IN", left=450, bottom=280, right=470, top=292))
        assert not region.contains_word(Word("OUT", left=449, bottom=100, right=470, top=112))
        assert not region.contains_word(Word("HIGH", left=600, bottom=281, right=640, top=293))


class TestTitleBlockRegion:
    """Tests for title block region selection."""

    def test_region_bounds(self):
        """Test the bottom-right region is derived from the fractions."""
        region = title_block_region(1000, 800, 0.45, 0.35)

        assert region == PageRegion(left=450, bottom=0, right=1000, top=280)

    def test_invalid_fraction(self):
        """Test fractions outside [0, 1] are rejected."""
        with pytest.raises(ValueError):
            title_block_region(1000, 800, 1.2, 0.35)
        with pytest.raises(ValueError):
            title_block_region(1000, 800, 0.45, -0.1)

    def test_reading_order(self):
        """Test words are sorted top-down, then left to right."""
        words = [
            Word("LOW", left=500, bottom=10, right=540, top=20),
            Word("RIGHT", left=600, bottom=100, right=650, top=110),
            Word("LEFT", left=500, bottom=100, right=540, top=110),
        ]
        region = PageRegion(left=0, bottom=0, right=1000, top=800)

        assert [w.text for w in words_in_region(words, region)] == ["LEFT", "RIGHT", "LOW"]

    def test_extract_region_text(self, sample_page):
        """Test only title block words are returned, in reading order."""
        text = extract_title_block_region(sample_page)

        assert text == "PART NO: NM-1234 MATERIAL: 6061 ALUMINUM"
        assert "BREAK" not in text

    def test_extract_without_words(self):
        """Test pages without word geometry fall back to the full text."""
        page = PageText(page_number=1, full_text="PART NO: 123")

        assert extract_title_block_region(page) == "PART NO: 123"


class TestSpans:
    """Tests for character span overlap."""

    def test_overlap(self):
        """Test overlapping spans."""
        assert spans_overlap((0, 10), (5, 15))

    def test_adjacent_spans_do_not_overlap(self):
        """Test half-open spans that touch do not overlap."""
        assert not spans_overlap((0, 10), (10, 20))

    def test_overlaps_any(self):
        """Test overlap against several accepted spans."""
        accepted = [(0, 5), (20, 30)]

        assert overlaps_any((25, 35), accepted)
        assert not overlaps_any((5, 20), accepted)
        assert not overlaps_any((1, 2), [])
