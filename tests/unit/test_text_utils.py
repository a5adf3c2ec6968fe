"""
Unit tests for text_utils module.
"""

import pytest

from drawing_cost_intelligence.utils.text_utils import (
    clean_field_value,
    contains_any,
    decimal_places,
    inches_to_mm,
    normalize_plus_minus,
    normalize_whitespace,
    parse_decimal,
    parse_fraction,
)


class TestNormalization:
    """Tests for text normalization."""

    def test_whitespace(self):
        """Test runs of whitespace collapse to one space."""
        assert normalize_whitespace("  PART\t NO:\n 123 ") == "PART NO: 123"

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("1.000 +/- .005", "1.000 ± .005"),
            ("1.000 + / - .005", "1.000 ± .005"),
            ("1.000 +-.005", "1.000 ±.005"),
            ("1.000 ±.005", "1.000 ±.005"),
        ],
    )
    def test_plus_minus(self, text, expected):
        """Test plus/minus spellings become the ± symbol."""
        assert normalize_plus_minus(text) == expected

    def test_clean_field_value(self):
        """Test surrounding punctuation is stripped."""
        assert clean_field_value(" : NM-1234. ") == "NM-1234"
        assert clean_field_value(None) == ""


class TestNumbers:
    """Tests for numeric parsing."""

    def test_parse_decimal(self):
        """Test drawing decimals."""
        assert parse_decimal(".005") == pytest.approx(0.005)
        assert parse_decimal(" 1.250 ") == pytest.approx(1.25)
        assert parse_decimal("abc") is None
        assert parse_decimal("") is None
        assert parse_decimal(None) is None

    def test_parse_fraction(self):
        """Test simple and mixed fractions."""
        assert parse_fraction("1/32") == pytest.approx(1 / 32)
        assert parse_fraction("1 1/2") == pytest.approx(1.5)

    def test_parse_fraction_invalid(self):
        """Test malformed fractions and zero denominators."""
        assert parse_fraction("1/0") is None
        assert parse_fraction("half") is None
        assert parse_fraction(None) is None

    def test_decimal_places(self):
        """Test digits after the decimal point are counted."""
        assert decimal_places(".005") == 3
        assert decimal_places("1.25") == 2
        assert decimal_places("3") == 0

    def test_inches_to_mm(self):
        """Test inch to millimeter conversion."""
        assert inches_to_mm(1.0) == pytest.approx(25.4)
        assert inches_to_mm(0.004) == pytest.approx(0.1016)


class TestContainsAny:
    """Tests for keyword search."""

    def test_case_insensitive(self):
        """Test keywords match regardless of case."""
        assert contains_any("304 Stainless", ("STAINLESS",))
        assert not contains_any("PLASTIC", ("STEEL", "ALUMINUM"))
