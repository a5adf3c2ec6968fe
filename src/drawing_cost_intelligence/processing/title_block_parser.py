"""
Title block parsing module for the Drawing Cost Intelligence System.

Extracts labeled title block fields (part number, material, revision,
description and the simpler single-pattern fields) from drawing text using
ordered fallback pattern families. For every field the first pattern whose
captured group is non-empty after cleanup wins.

Typical usage example:
    >>> parser = TitleBlockParser()
    >>> info = parser.parse("PART NO: NM-1234-A\\nMATERIAL: 304 STAINLESS")
    >>> info.part_number, info.material
    ('NM-1234-A', '304 STAINLESS')
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from ..models.data_structures import (
    NOT_FOUND,
    Matched,
    MatchResult,
    PageText,
    TitleBlockField,
    TitleBlockInfo,
)
from ..utils.geometry_utils import extract_title_block_region
from ..utils.text_utils import clean_field_value, normalize_whitespace

logger = logging.getLogger(__name__)

_FLAGS = re.IGNORECASE | re.MULTILINE

# Adjacent labels that leak into a material value
_MATERIAL_LEAK_PATTERN = re.compile(
    r"\s*\b(FINISH|SCALE|UNLESS|DRAWN|DATE|REV)\b.*$", re.IGNORECASE | re.DOTALL
)

_DATE_FORMATS = ("%m/%d/%Y", "%m-%d-%Y", "%m/%d/%y", "%m-%d-%y")


class ValueCleanup(Enum):
    """How a captured group is turned into a field value."""

    PLAIN = "plain"
    MATERIAL = "material"
    UPPER = "upper"
    DATE = "date"


@dataclass(frozen=True)
class FieldPattern:
    """One fallback pattern for a title block field.

    Attributes:
        pattern: Compiled regex; group 1 holds the value.
        confidence: Confidence assigned when this pattern wins.
        cleanup: Cleanup applied to the captured group.
    """

    pattern: "re.Pattern[str]"
    confidence: float
    cleanup: ValueCleanup = ValueCleanup.PLAIN


@dataclass(frozen=True)
class TitleBlockPatterns:
    """Immutable table of ordered patterns per title block field."""

    table: Mapping[TitleBlockField, Tuple[FieldPattern, ...]]

    def patterns_for(self, name: TitleBlockField) -> Tuple[FieldPattern, ...]:
        return self.table.get(name, ())


def _fp(
    regex: str,
    confidence: float,
    cleanup: ValueCleanup = ValueCleanup.PLAIN,
    flags: int = _FLAGS,
) -> FieldPattern:
    return FieldPattern(re.compile(regex, flags), confidence, cleanup)


def default_title_block_patterns() -> TitleBlockPatterns:
    """Build the default title block pattern table.

    Returns:
        TitleBlockPatterns covering every TitleBlockField.
    """
    part_number = (
        _fp(r"\bPART\s*(?:NO|NUMBER|#|NUM)\.?\s*[:.]?\s*([A-Z0-9][\w\-\.]+)", 0.85),
        _fp(r"\bDWG\s*(?:NO|NUMBER|#|NUM)\.?\s*[:.]?\s*([A-Z0-9][\w\-\.]+)", 0.85),
        _fp(r"\bDRAWING\s*(?:NO|NUMBER|#|NUM)\.?\s*[:.]?\s*([A-Z0-9][\w\-\.]+)", 0.85),
        _fp(r"\bP/?N\s*[:.]?\s*([A-Z0-9][\w\-\.]+)", 0.85),
        _fp(r"\bITEM\s*(?:NO|NUMBER|#)\.?\s*[:.]?\s*([A-Z0-9][\w\-\.]+)", 0.85),
    )

    material_labeled = (
        _fp(
            r"\bMATERIAL\s*[:.]?\s*(.+?)(?:\s*$|\s*FINISH|\s*SCALE|\s*UNLESS)",
            0.85,
            ValueCleanup.MATERIAL,
        ),
        _fp(
            r"\bMAT(?:['’]?L)?\b\s*[:.]?\s*(.+?)(?:\s*$|\s*FINISH|\s*SCALE)",
            0.85,
            ValueCleanup.MATERIAL,
        ),
        _fp(r"\bMATL\s*SPEC\s*[:.]?\s*(.+?)(?:\s*$)", 0.85, ValueCleanup.MATERIAL),
    )
    material_callouts = (
        _fp(r"\b(ASTM\s*A[\-\s]?\d+)", 0.70, ValueCleanup.MATERIAL),
        _fp(r"\b(A36|A53[12]?|A500)\b", 0.70, ValueCleanup.MATERIAL),
        _fp(
            r"\b(\d{3,4}\s*(?:STAINLESS|SS|CRS|HRS|AL|ALUMINUM))\b",
            0.70,
            ValueCleanup.MATERIAL,
        ),
        _fp(
            r"\b((?:304L?|316L?|1018|1020|1045|4130|4140|6061|5052|3003)"
            r"(?:\s*(?:SS|STAINLESS|CRS|HRS|AL|ALUMINUM|STEEL))?)\b",
            0.70,
            ValueCleanup.MATERIAL,
        ),
        _fp(
            r"\b(MILD\s*STEEL|CARBON\s*STEEL|STAINLESS\s*STEEL|GALVANIZED|GALVANNEAL)\b",
            0.70,
            ValueCleanup.MATERIAL,
        ),
    )

    revision = (
        _fp(r"\bREV(?:ISION)?\.?\s*[:.]?\s*([A-Z0-9]{1,3})\b", 0.90, ValueCleanup.UPPER),
        _fp(r"\bREV\s+([A-Z])\b", 0.90, ValueCleanup.UPPER),
    )

    description = (
        _fp(r"\bDESC(?:RIPTION)?\.?\s*[:.]?\s*(.+?)(?:\s*$)", 0.80),
        _fp(r"\bTITLE\s*[:.]?\s*(.+?)(?:\s*$)", 0.80),
        _fp(r"\bNAME\s*[:.]?\s*(.+?)(?:\s*$)", 0.80),
    )

    table = {
        TitleBlockField.PART_NUMBER: part_number,
        TitleBlockField.MATERIAL: material_labeled + material_callouts,
        TitleBlockField.REVISION: revision,
        TitleBlockField.DESCRIPTION: description,
        TitleBlockField.FINISH: (
            _fp(
                r"\bFINISH\s*[:.]?\s*(.+?)(?:\s*$|\s*SCALE|\s*MATERIAL|\s*UNLESS)",
                0.80,
            ),
        ),
        TitleBlockField.DRAWN_BY: (
            _fp(r"\bDRAWN\s*(?:BY)?\s*[:.]?\s*([A-Z][A-Z \t\.]{1,20})", 0.75),
        ),
        TitleBlockField.CHECKED_BY: (
            _fp(
                r"\b(?:CHECKED|CHKD|CHK)\.?\s*(?:BY)?\s*[:.]?\s*([A-Z][A-Z \t\.]{1,20})",
                0.75,
            ),
        ),
        TitleBlockField.SCALE: (
            _fp(
                r"\bSCALE\s*[:.]?\s*(\d+\s*[:/]\s*\d+|FULL|HALF|NTS|NONE)",
                0.85,
            ),
        ),
        TitleBlockField.SHEET: (
            _fp(r"\bSHEET\s*[:.]?\s*(\d+\s*(?:OF|/)\s*\d+)", 0.85),
        ),
        TitleBlockField.DATE: (
            _fp(
                r"\bDATE\s*[:.]?\s*(\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4})",
                0.80,
                ValueCleanup.DATE,
            ),
        ),
        TitleBlockField.TOLERANCE_GENERAL: (
            _fp(
                r"UNLESS\s+OTHERWISE\s+(?:NOTED|SPECIFIED|STATED).{0,200}?"
                r"TOLERANCES?\s*(?:ARE)?\s*[:.]?\s*([^\r\n]+)",
                0.80,
                flags=re.IGNORECASE | re.DOTALL,
            ),
        ),
    }
    return TitleBlockPatterns(MappingProxyType(table))


@dataclass
class TitleBlockConfig:
    """
    Configuration for title block parsing.

    Attributes:
        region_x_fraction: Fraction of page width where the title block region starts.
        region_y_fraction: Fraction of page height where the title block region ends.
        full_text_confidence_factor: Multiplier for fields recovered from full page text.
        min_title_block_confidence: Below this, later pages are also searched.
    """

    region_x_fraction: float = 0.45
    region_y_fraction: float = 0.35
    full_text_confidence_factor: float = 0.9
    min_title_block_confidence: float = 0.5

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not 0.0 <= self.region_x_fraction <= 1.0:
            raise ValueError(
                f"region_x_fraction must be between 0.0 and 1.0, "
                f"got {self.region_x_fraction}"
            )
        if not 0.0 <= self.region_y_fraction <= 1.0:
            raise ValueError(
                f"region_y_fraction must be between 0.0 and 1.0, "
                f"got {self.region_y_fraction}"
            )
        if not 0.0 < self.full_text_confidence_factor <= 1.0:
            raise ValueError(
                f"full_text_confidence_factor must be in (0.0, 1.0], "
                f"got {self.full_text_confidence_factor}"
            )
        if not 0.0 <= self.min_title_block_confidence <= 1.0:
            raise ValueError(
                f"min_title_block_confidence must be between 0.0 and 1.0, "
                f"got {self.min_title_block_confidence}"
            )


class TitleBlockParser:
    """
    Parses title block fields from drawing text.

    Attributes:
        config: Title block configuration.
        patterns: Immutable pattern table used for every parse.
    """

    def __init__(
        self,
        config: Optional[TitleBlockConfig] = None,
        patterns: Optional[TitleBlockPatterns] = None,
    ) -> None:
        self.config = config or TitleBlockConfig()
        self.patterns = patterns or default_title_block_patterns()

    def parse(self, text: Optional[str]) -> TitleBlockInfo:
        """
        Parse every title block field from text.

        Args:
            text: Title block or page text. None and blank text are allowed.

        Returns:
            TitleBlockInfo with one entry per field found.
        """
        info = TitleBlockInfo()
        if not text or not text.strip():
            return info

        for name in TitleBlockField:
            result = self.match_field(name, text)
            if isinstance(result, Matched):
                info.set(name, result.value, result.confidence)

        logger.debug(
            f"Parsed title block: {len(info.fields)} fields, "
            f"confidence {info.overall_confidence:.2f}"
        )
        return info

    def match_field(self, name: TitleBlockField, text: Optional[str]) -> MatchResult:
        """
        Match a single field using its ordered fallback patterns.

        Args:
            name: Field to match.
            text: Text to search.

        Returns:
            Matched with the cleaned value, confidence and match span, or
            NOT_FOUND when no pattern yields a non-empty value.
        """
        if not text:
            return NOT_FOUND

        for field_pattern in self.patterns.patterns_for(name):
            match = field_pattern.pattern.search(text)
            if match is None or match.lastindex is None:
                continue
            value = _clean(match.group(1), field_pattern.cleanup)
            if value:
                return Matched(
                    value=value,
                    confidence=field_pattern.confidence,
                    start=match.start(),
                    end=match.end(),
                )
        return NOT_FOUND

    def parse_page(
        self, page: PageText, region_text: Optional[str] = None
    ) -> TitleBlockInfo:
        """
        Parse a page, preferring the title block region.

        The region text is parsed first. When part number or material is
        still missing, the full page text is parsed and every field still
        empty is filled with its confidence scaled by
        ``full_text_confidence_factor``.

        Args:
            page: Page text with word geometry.
            region_text: Pre-computed region text. Computed from the page's
                words when omitted.

        Returns:
            TitleBlockInfo for the page.
        """
        if region_text is None:
            region_text = extract_title_block_region(
                page,
                x_fraction=self.config.region_x_fraction,
                y_fraction=self.config.region_y_fraction,
            )

        result = self.parse(region_text)

        needs_fallback = not result.has(TitleBlockField.PART_NUMBER) or not result.has(
            TitleBlockField.MATERIAL
        )
        same_text = normalize_whitespace(region_text or "") == normalize_whitespace(
            page.full_text or ""
        )
        if not needs_fallback or same_text:
            return result

        full = self.parse(page.full_text)
        factor = self.config.full_text_confidence_factor
        for name, fv in full.fields.items():
            if not result.has(name):
                result.set(name, fv.value, fv.confidence * factor)
                logger.debug(
                    f"Page {page.page_number}: {name.value} recovered from full text"
                )
        return result


def _clean(raw: Optional[str], cleanup: ValueCleanup) -> str:
    """Apply the cleanup rule for a captured group."""
    if raw is None:
        return ""
    if cleanup is ValueCleanup.UPPER:
        return raw.strip().upper()
    if cleanup is ValueCleanup.MATERIAL:
        value = normalize_whitespace(raw).strip(" :.,")
        value = _MATERIAL_LEAK_PATTERN.sub("", value)
        return value.strip()
    if cleanup is ValueCleanup.DATE:
        return _parse_date(raw.strip())
    return clean_field_value(raw)


def _parse_date(raw: str) -> str:
    """Normalize a drawing date to ISO format; unparseable dates are dropped."""
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt).date().isoformat()
        except ValueError:
            continue
    return ""
