"""
Geometry utilities for the Drawing Cost Intelligence System.

Works in PDF page coordinates (origin at the bottom-left corner, y grows
upward). Key functionality includes:
- Rectangular page regions with containment checks
- Title block region selection from positioned words
- Character span overlap tests used by the text extractors

Typical usage:
    from drawing_cost_intelligence.utils.geometry_utils import (
        extract_title_block_region,
    )

    region_text = extract_title_block_region(page, x_fraction=0.45, y_fraction=0.35)
"""

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from ..models.data_structures import PageText, Word


@dataclass(frozen=True)
class PageRegion:
    """
    Axis-aligned rectangle in PDF page coordinates.

    Attributes:
        left: Left edge
        bottom: Bottom edge
        right: Right edge (must be >= left)
        top: Top edge (must be >= bottom)

    Raises:
        ValueError: If the rectangle has negative width or height.

    Example:
        >>> region = PageRegion(left=0, bottom=0, right=100, top=50)
        >>> region.area()
        5000
    """

    left: float
    bottom: float
    right: float
    top: float

    def __post_init__(self) -> None:
        """Validate region extents."""
        if self.right < self.left:
            raise ValueError(
                f"Right edge must be >= left edge, got {self.right} < {self.left}"
            )
        if self.top < self.bottom:
            raise ValueError(
                f"Top edge must be >= bottom edge, got {self.top} < {self.bottom}"
            )

    def area(self) -> float:
        return (self.right - self.left) * (self.top - self.bottom)

    def contains_word(self, word: Word) -> bool:
        """
        Check whether a word's anchor lies in this region.

        A word belongs to the region when its left edge is at or right of the
        region's left edge and its bottom edge is at or below the region's
        top edge.

        Args:
            word: Positioned word

        Returns:
            True if the word anchor falls inside the region
        """
        return (
            self.left <= word.left <= self.right
            and self.bottom <= word.bottom <= self.top
        )


def title_block_region(
    page_width: float, page_height: float, x_fraction: float, y_fraction: float
) -> PageRegion:
    """
    Bottom-right title block region of a page.

    Args:
        page_width: Page width
        page_height: Page height
        x_fraction: Fraction of the width where the region starts
        y_fraction: Fraction of the height where the region ends

    Returns:
        Region spanning [width * x_fraction, width] x [0, height * y_fraction]

    Raises:
        ValueError: If a fraction is outside [0, 1].
    """
    if not 0.0 <= x_fraction <= 1.0:
        raise ValueError(f"x_fraction must be in [0, 1], got {x_fraction}")
    if not 0.0 <= y_fraction <= 1.0:
        raise ValueError(f"y_fraction must be in [0, 1], got {y_fraction}")
    return PageRegion(
        left=page_width * x_fraction,
        bottom=0.0,
        right=page_width,
        top=page_height * y_fraction,
    )


def words_in_region(words: Iterable[Word], region: PageRegion) -> List[Word]:
    """
    Select words inside a region in reading order (top-down, then left-right).

    Args:
        words: Positioned words
        region: Page region

    Returns:
        Words sorted by top edge descending, then left edge ascending
    """
    selected = [w for w in words if region.contains_word(w)]
    return sorted(selected, key=lambda w: (-w.top, w.left))


def extract_title_block_region(
    page: PageText, x_fraction: float = 0.45, y_fraction: float = 0.35
) -> str:
    """
    Build the title block region text for a page.

    When the page carries no positioned words the full page text is returned,
    so callers always have something to parse.

    Args:
        page: Page text with word geometry
        x_fraction: Fraction of the width where the title block starts
        y_fraction: Fraction of the height where the title block ends

    Returns:
        Words in the region joined with single spaces
    """
    if not page.words or page.width <= 0 or page.height <= 0:
        return page.full_text or ""
    region = title_block_region(page.width, page.height, x_fraction, y_fraction)
    return " ".join(w.text for w in words_in_region(page.words, region))


def spans_overlap(first: Tuple[int, int], second: Tuple[int, int]) -> bool:
    """
    Check whether two half-open character spans share any character.

    Args:
        first: (start, end) span
        second: (start, end) span

    Returns:
        True if the spans overlap
    """
    return first[0] < second[1] and first[1] > second[0]


def overlaps_any(span: Tuple[int, int], accepted: Sequence[Tuple[int, int]]) -> bool:
    return any(spans_overlap(span, other) for other in accepted)
