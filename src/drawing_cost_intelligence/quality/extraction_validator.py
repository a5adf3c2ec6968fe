"""
Extraction validation module for the Drawing Cost Intelligence System.

Checks extracted drawing data against domain knowledge to catch false
positives: title block labels leaking into values, unknown materials and
finishes, impossible geometry and BOM rows mistaken for notes.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from ..models.data_structures import DrawingData, DrawingNote, TitleBlockField
from ..utils.text_utils import contains_any

logger = logging.getLogger(__name__)


KNOWN_MATERIAL_KEYWORDS = (
    "STEEL", "STAINLESS", "ALUMINUM", "ALUMINIUM", "COPPER", "BRASS", "BRONZE",
    "TITANIUM", "INCONEL", "MONEL", "HASTELLOY", "NICKEL",
    "A36", "A53", "A500", "A513", "A514", "A572",
    "304", "304L", "316", "316L", "321", "347", "410", "430", "440",
    "1008", "1010", "1018", "1020", "1045", "1095",
    "4130", "4140", "4340", "8620",
    "6061", "5052", "3003", "2024", "7075",
    "CRS", "HRS", "HRPO", "CR", "HR",
    "SS", "CS", "MS", "AL",
    "GALVANIZED", "GALVANNEAL", "GALV",
    "ASTM", "SAE", "AISI", "AMS", "MIL",
    "MILD STEEL", "CARBON STEEL", "STAINLESS STEEL",
    "DOM", "ERW", "SEAMLESS",
)

KNOWN_FINISH_KEYWORDS = (
    "PAINT", "POWDER COAT", "ANODIZE", "GALVANIZE", "ZINC PLATE",
    "CHROME PLATE", "BLACK OXIDE", "E-COAT", "PRIME", "PRIMER",
    "HOT DIP", "ELECTROLESS NICKEL", "HARD CHROME", "PASSIVATE",
    "CHEM FILM", "ALODINE", "CONVERSION COATING", "CLEAR COAT",
    "NONE", "N/A", "AS MACHINED", "MILL FINISH",
    "SANDBLAST", "BEAD BLAST", "TUMBLE",
    "POLISHED", "BRUSHED", "SATIN",
)

# Label words that never belong in a part number
INVALID_PART_NUMBER_WORDS = (
    "SCALE", "MATERIAL", "FINISH", "DRAWN", "CHECKED", "DATE",
    "REVISION", "SHEET", "TITLE", "DESCRIPTION", "UNLESS",
    "TOLERANCE", "DO NOT", "BREAK", "DEBURR", "PAINT",
    "NOTES", "GENERAL", "DIMENSIONS", "SPECIFIED",
)

PART_NUMBER_PATTERN = re.compile(r"^[A-Za-z0-9][\w\-./]{1,30}$")
MATERIAL_LABEL_LEAK_PATTERN = re.compile(
    r"\b(FINISH|SCALE|DRAWN|DATE|REV|SHEET)\b", re.IGNORECASE
)
NUMERIC_NOTE_PATTERN = re.compile(r"^\d+$")

FIELD_PART_NUMBER = "PartNumber"
FIELD_MATERIAL = "Material"
FIELD_FINISH = "Finish"
FIELD_THICKNESS = "Thickness"
FIELD_LENGTH = "OverallLength"
FIELD_WIDTH = "OverallWidth"
NOTE_FIELD_PREFIX = "Note["

_TITLE_BLOCK_FIELDS = {
    FIELD_PART_NUMBER: TitleBlockField.PART_NUMBER,
    FIELD_MATERIAL: TitleBlockField.MATERIAL,
    FIELD_FINISH: TitleBlockField.FINISH,
}
_GEOMETRY_ATTRIBUTES = {
    FIELD_THICKNESS: "thickness_in",
    FIELD_LENGTH: "overall_length_in",
    FIELD_WIDTH: "overall_width_in",
}


class Severity(Enum):
    """Validation issue severity levels."""

    INFO = "Info"
    WARNING = "Warning"
    ERROR = "Error"


@dataclass
class ValidationIssue:
    """A problem found in extracted drawing data."""

    field: str
    original_value: Optional[str]
    severity: Severity
    message: str

    def __str__(self) -> str:
        return (
            f"[{self.severity.value}] {self.field}: {self.message} "
            f"(was: '{self.original_value}')"
        )


@dataclass
class ValidatorConfig:
    """
    Configuration for extraction validation.

    Attributes:
        max_plausible_dimension_in: Thickness above this (inches) is flagged.
        min_note_length: Notes shorter than this are flagged as suspicious.
    """

    max_plausible_dimension_in: float = 12.0
    min_note_length: int = 3

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.max_plausible_dimension_in <= 0:
            raise ValueError(
                f"max_plausible_dimension_in must be positive, "
                f"got {self.max_plausible_dimension_in}"
            )
        if self.min_note_length < 0:
            raise ValueError(
                f"min_note_length must be non-negative, got {self.min_note_length}"
            )


class ExtractionValidator:
    """
    Validates extracted drawing data and clears values that are clearly wrong.

    Warnings are advisory. Errors mark values that ``validate_and_correct``
    removes from the data.
    """

    def __init__(self, config: Optional[ValidatorConfig] = None) -> None:
        self.config = config or ValidatorConfig()

    def validate(self, data: Optional[DrawingData]) -> List[ValidationIssue]:
        """
        Check extracted data against domain rules.

        Args:
            data: Drawing data to check.

        Returns:
            Issues found, empty when the data looks sound.
        """
        issues: List[ValidationIssue] = []
        if data is None:
            return issues

        self._validate_part_number(data.part_number, issues)
        self._validate_material(data.material, issues)
        self._validate_finish(data.finish, issues)
        self._validate_thickness(data.thickness_in, issues)
        self._validate_dimensions(data.overall_length_in, data.overall_width_in, issues)
        self._validate_notes(data.notes, issues)

        logger.debug(f"Validation found {len(issues)} issue(s)")
        return issues

    def validate_and_correct(
        self, data: Optional[DrawingData]
    ) -> Tuple[List[ValidationIssue], int]:
        """
        Validate and clear every value with an Error-severity issue.

        Title block fields and geometry values are cleared; notes whose text
        failed validation are removed.

        Args:
            data: Drawing data, modified in place.

        Returns:
            Tuple of (issues found, number of corrections applied).
        """
        issues = self.validate(data)
        if data is None:
            return issues, 0

        corrections = 0
        invalid_notes = set()

        for issue in issues:
            if issue.severity != Severity.ERROR:
                continue
            if issue.field in _TITLE_BLOCK_FIELDS:
                data.clear_field(_TITLE_BLOCK_FIELDS[issue.field])
                corrections += 1
            elif issue.field in _GEOMETRY_ATTRIBUTES:
                setattr(data, _GEOMETRY_ATTRIBUTES[issue.field], None)
                corrections += 1
            elif issue.field.startswith(NOTE_FIELD_PREFIX) and issue.original_value:
                invalid_notes.add(issue.original_value.lower())

        if invalid_notes:
            data.notes = [n for n in data.notes if n.text.lower() not in invalid_notes]
            corrections += len(invalid_notes)

        if corrections:
            logger.info(f"Validator applied {corrections} correction(s)")
        return issues, corrections

    def _validate_part_number(
        self, part_number: Optional[str], issues: List[ValidationIssue]
    ) -> None:
        if not part_number:
            return

        upper = part_number.upper()
        for word in INVALID_PART_NUMBER_WORDS:
            if word in upper:
                issues.append(
                    ValidationIssue(
                        FIELD_PART_NUMBER,
                        part_number,
                        Severity.ERROR,
                        f"Part number contains label text '{word}' - likely a parsing error",
                    )
                )
                return

        if not PART_NUMBER_PATTERN.match(part_number):
            issues.append(
                ValidationIssue(
                    FIELD_PART_NUMBER,
                    part_number,
                    Severity.WARNING,
                    "Part number has unusual format",
                )
            )

    def _validate_material(
        self, material: Optional[str], issues: List[ValidationIssue]
    ) -> None:
        if not material:
            return

        if not contains_any(material, KNOWN_MATERIAL_KEYWORDS):
            issues.append(
                ValidationIssue(
                    FIELD_MATERIAL,
                    material,
                    Severity.WARNING,
                    "Material does not match any known material keyword",
                )
            )

        if MATERIAL_LABEL_LEAK_PATTERN.search(material):
            issues.append(
                ValidationIssue(
                    FIELD_MATERIAL,
                    material,
                    Severity.ERROR,
                    "Material field contains adjacent title block label - likely a parsing error",
                )
            )

    def _validate_finish(
        self, finish: Optional[str], issues: List[ValidationIssue]
    ) -> None:
        if finish and not contains_any(finish, KNOWN_FINISH_KEYWORDS):
            issues.append(
                ValidationIssue(
                    FIELD_FINISH,
                    finish,
                    Severity.WARNING,
                    "Finish does not match any known finish type",
                )
            )

    def _validate_thickness(
        self, thickness: Optional[float], issues: List[ValidationIssue]
    ) -> None:
        if thickness is None:
            return

        limit = self.config.max_plausible_dimension_in
        if thickness <= 0:
            issues.append(
                ValidationIssue(
                    FIELD_THICKNESS, f"{thickness:.4f}", Severity.ERROR,
                    "Thickness must be positive",
                )
            )
        elif thickness > limit:
            issues.append(
                ValidationIssue(
                    FIELD_THICKNESS, f"{thickness:.4f}", Severity.WARNING,
                    f"Thickness exceeds {limit:g} inches - verify units",
                )
            )

    def _validate_dimensions(
        self,
        length: Optional[float],
        width: Optional[float],
        issues: List[ValidationIssue],
    ) -> None:
        for field_name, label, value in (
            (FIELD_LENGTH, "Length", length),
            (FIELD_WIDTH, "Width", width),
        ):
            if value is not None and value <= 0:
                issues.append(
                    ValidationIssue(
                        field_name, f"{value:.4f}", Severity.ERROR,
                        f"{label} must be positive",
                    )
                )

    def _validate_notes(
        self, notes: List[DrawingNote], issues: List[ValidationIssue]
    ) -> None:
        for i, note in enumerate(notes or []):
            if note.text is None:
                continue
            field_name = f"{NOTE_FIELD_PREFIX}{i}]"

            if len(note.text) < self.config.min_note_length:
                issues.append(
                    ValidationIssue(
                        field_name, note.text, Severity.WARNING,
                        "Note text is suspiciously short",
                    )
                )

            if NUMERIC_NOTE_PATTERN.match(note.text.strip()):
                issues.append(
                    ValidationIssue(
                        field_name, note.text, Severity.ERROR,
                        "Note is just a number - likely a BOM entry, not a manufacturing note",
                    )
                )
