"""
Bill-of-materials extraction for the Drawing Cost Intelligence System.

Assembly drawings carry a parts list naming the detail parts they are built
from. This module recognizes the BOM header, reads the rows beneath it
(item number, part number, description, quantity) and flags pages that look
like assembly or weldment drawings.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from ..models.data_structures import BomEntry

logger = logging.getLogger(__name__)

BOM_HEADER_PATTERN = re.compile(
    r"\b(?:(?:BILL\s*OF\s*MATERIALS?|BOM|PARTS?\s*LIST|ITEM\s+(?:NO|NUMBER))\b|ITEM\s*#)",
    re.IGNORECASE,
)

# ITEM  PART-NUMBER  DESCRIPTION...  QTY
BOM_ROW_PATTERN = re.compile(
    r"^[ \t]*(\d{1,3})[ \t]+([A-Z0-9][\w\-\.]+)[ \t]+(.+?)[ \t]+(\d{1,4})[ \t]*$",
    re.IGNORECASE | re.MULTILINE,
)

ASSEMBLY_PATTERN = re.compile(
    r"\b(?:ASSEMBLY|ASSY|WELDMENT|WELDED\s+ASSY|SUB[\-\s]?ASSY)\b",
    re.IGNORECASE,
)


@dataclass
class BomConfig:
    """
    Configuration for BOM extraction.

    Attributes:
        row_confidence: Confidence assigned to every BOM row.
    """

    row_confidence: float = 0.70

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not 0.0 <= self.row_confidence <= 1.0:
            raise ValueError(
                f"row_confidence must be between 0.0 and 1.0, got {self.row_confidence}"
            )


class BomExtractor:
    """
    Reads bill-of-materials tables from drawing text.

    Attributes:
        config: BOM configuration.
    """

    def __init__(self, config: Optional[BomConfig] = None) -> None:
        self.config = config or BomConfig()

    def has_bom(self, text: Optional[str]) -> bool:
        """Whether the text carries a BOM header."""
        return bool(text and BOM_HEADER_PATTERN.search(text))

    def extract(self, text: Optional[str]) -> List[BomEntry]:
        """
        Extract BOM rows from page text.

        Only rows at or after the first BOM header are read, so numbered
        notes above the table are never taken for parts.

        Args:
            text: Page text. None and blank text are allowed.

        Returns:
            BomEntry list in table order; empty when there is no header.
        """
        if not text or not text.strip():
            return []

        header = BOM_HEADER_PATTERN.search(text)
        if header is None:
            return []

        table_start = text.rfind("\n", 0, header.start()) + 1
        entries: List[BomEntry] = []
        for match in BOM_ROW_PATTERN.finditer(text, table_start):
            entries.append(
                BomEntry(
                    item_number=match.group(1).strip(),
                    part_number=match.group(2).strip(),
                    description=match.group(3).strip(),
                    quantity=int(match.group(4)),
                    confidence=self.config.row_confidence,
                )
            )

        logger.debug(f"Read {len(entries)} BOM row(s)")
        return entries

    @staticmethod
    def is_assembly(text: Optional[str]) -> bool:
        """Whether the text suggests an assembly-level drawing."""
        return bool(text and ASSEMBLY_PATTERN.search(text))
