"""
Unit tests for iso_tolerance module.
"""

import math

import pytest

from drawing_cost_intelligence.processing.iso_tolerance import (
    classify_geometric_13920,
    classify_linear_13920,
    is_tighter,
    is_tighter_geometric,
    is_tighter_linear,
    iso13920_geometric,
    iso13920_linear,
    iso2768_linear,
)


class TestIso13920Linear:
    """Tests for ISO 13920 linear lookups."""

    def test_lookup(self):
        """Test a mid-table lookup."""
        assert iso13920_linear(100, "B") == 2.0

    def test_breakpoint_inclusive(self):
        """Test a size on a breakpoint uses that row."""
        assert iso13920_linear(30, "A") == 1.0
        assert iso13920_linear(31, "C") == 4.0

    def test_past_last_row(self):
        """Test sizes past the table use the last row."""
        assert iso13920_linear(50000, "D") == 40.0

    def test_unknown_class(self):
        """Test an unknown class is rejected."""
        with pytest.raises(ValueError):
            iso13920_linear(100, "E")


class TestIso13920Geometric:
    """Tests for ISO 13920 geometric lookups."""

    def test_lookup(self):
        """Test a geometric lookup."""
        assert iso13920_geometric(500, "F") == 3.0
        assert iso13920_geometric(50, "E") == 0.5


class TestIso2768:
    """Tests for ISO 2768-1 linear lookups."""

    def test_lookup(self):
        """Test medium and coarse lookups."""
        assert iso2768_linear(2, "m") == pytest.approx(0.1)
        assert iso2768_linear(50, "c") == pytest.approx(0.8)

    def test_undefined_cell(self):
        """Test undefined table cells are NaN."""
        assert math.isnan(iso2768_linear(1, "v"))


class TestClassOrdering:
    """Tests for class comparisons."""

    def test_linear(self):
        """Test linear class ordering."""
        assert is_tighter_linear("A", "B")
        assert not is_tighter_linear("C", "B")
        assert not is_tighter_linear("B", "B")

    def test_geometric(self):
        """Test geometric class ordering."""
        assert is_tighter_geometric("E", "F")
        assert not is_tighter_geometric("H", "F")

    def test_unknown_class(self):
        """Test comparing unknown classes is rejected."""
        with pytest.raises(ValueError):
            is_tighter("A", "Z")


class TestClassification:
    """Tests for required class classification."""

    def test_linear_class_from_band(self):
        """Test the finest covering class is returned."""
        assert classify_linear_13920(100, 2.0) == "A"
        assert classify_linear_13920(100, 4.0) == "B"

    def test_linear_looser_than_d(self):
        """Test bands looser than class D yield None."""
        assert classify_linear_13920(100, 20.0) is None

    def test_geometric_class(self):
        """Test geometric classification."""
        assert classify_geometric_13920(500, 2.0) == "F"
        assert classify_geometric_13920(500, 50.0) is None
