"""
Text utilities for the Drawing Cost Intelligence System.

Provides functions for text normalization, numeric parsing of drawing
callouts, and inch to millimeter conversion.
"""

import re
from typing import Iterable, Optional


MM_PER_INCH = 25.4

# Plus/minus spellings found in extracted drawing text
_PLUS_MINUS_PATTERN = re.compile(r"\+\s*/\s*-|\+\s*-(?=\s*\.?\d)")

_FRACTION_PATTERN = re.compile(r"^\s*(?:(\d+)\s+)?(\d+)\s*/\s*(\d+)\s*$")

# Punctuation stripped from both ends of a parsed field value
_FIELD_PUNCTUATION = " \t\r\n:.,-"


def normalize_whitespace(text: str) -> str:
    """
    Normalize multiple spaces, tabs, newlines to single space.

    Args:
        text: Input text

    Returns:
        Normalized text with single spaces
    """
    normalized = re.sub(r"\s+", " ", text)
    return normalized.strip()


def normalize_plus_minus(text: str) -> str:
    """
    Replace "+/-" and "+-" spellings with the "±" symbol.

    Args:
        text: Input text

    Returns:
        Text using "±" for every bilateral tolerance marker
    """
    return _PLUS_MINUS_PATTERN.sub("±", text)


def parse_decimal(text: Optional[str]) -> Optional[float]:
    """
    Parse a drawing decimal such as ".005", "0.005" or "1.250".

    Args:
        text: Numeric text, possibly with surrounding whitespace

    Returns:
        Parsed value, or None if the text is not a number
    """
    if text is None:
        return None
    cleaned = text.strip()
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def parse_fraction(text: Optional[str]) -> Optional[float]:
    """
    Parse a fraction such as "1/32" or a mixed number such as "1 1/2".

    Args:
        text: Fraction text

    Returns:
        Decimal value, or None for malformed text or a zero denominator
    """
    if text is None:
        return None
    match = _FRACTION_PATTERN.match(text)
    if not match:
        return None
    whole, numerator, denominator = match.groups()
    if int(denominator) == 0:
        return None
    value = int(numerator) / int(denominator)
    if whole:
        value += int(whole)
    return value


def decimal_places(text: str) -> int:
    """
    Count digits written after the decimal point.

    Args:
        text: Numeric text, e.g. ".005"

    Returns:
        Number of digits after the point (0 when there is no point)
    """
    if "." not in text:
        return 0
    return len(text.split(".", 1)[1].strip())


def inches_to_mm(value: float) -> float:
    return value * MM_PER_INCH


def clean_field_value(text: Optional[str]) -> str:
    """
    Strip whitespace and surrounding ": . , -" punctuation from a field value.

    Args:
        text: Raw captured text

    Returns:
        Cleaned value (may be empty)
    """
    if not text:
        return ""
    return normalize_whitespace(text).strip(_FIELD_PUNCTUATION)


def contains_any(text: str, keywords: Iterable[str]) -> bool:
    """
    Case-insensitive substring test against several keywords.

    Args:
        text: Text to search
        keywords: Candidate substrings

    Returns:
        True if any keyword occurs in text
    """
    upper = text.upper()
    return any(keyword.upper() in upper for keyword in keywords)
