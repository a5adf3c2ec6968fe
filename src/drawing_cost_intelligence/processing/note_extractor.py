"""
Manufacturing note extraction module for the Drawing Cost Intelligence System.

Finds manufacturing notes (deburr, finish, heat treat, weld, machining,
process constraints, inspection, hardware) in free drawing text, resolves
overlapping candidate matches and derives routing hints from the accepted
notes.

Overlap resolution is greedy longest-first: every pattern match becomes a
candidate with its character span, candidates are stably sorted by match
length (longest first) and each is accepted unless its text was already
accepted (case-insensitive) or its span overlaps an accepted span. The
result is deterministic for identical input.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Set, Tuple

from ..models.data_structures import (
    DrawingNote,
    NoteCategory,
    RoutingHint,
    RoutingImpact,
    RoutingOp,
)
from ..utils.geometry_utils import overlaps_any

logger = logging.getLogger(__name__)

_NOTE_FLAGS = re.IGNORECASE | re.MULTILINE

# Numbered "NOTES:" list and its items
_NOTES_SECTION_PATTERN = re.compile(
    r"NOTES?\s*:\s*\r?\n((?:\s*\d+[\.\)]\s*.+\r?\n?)+)", re.IGNORECASE
)
_NUMBERED_ITEM_PATTERN = re.compile(
    r"\d+[\.\)]\s*(.+?)(?=\r?\n\s*\d+[\.\)]|\s*$)", re.IGNORECASE
)

# Bill of materials header and row shapes
_BOM_HEADER_KEYWORDS = (
    re.compile(r"\bITEM\b", re.IGNORECASE),
    re.compile(r"\bQTY\b|\bQUANTITY\b", re.IGNORECASE),
    re.compile(r"\bPART\s*(?:NO|NUMBER|#)\b|\bP/N\b", re.IGNORECASE),
    re.compile(r"\bDESCRIPTION\b", re.IGNORECASE),
)
_BOM_HEADER_MIN_KEYWORDS = 2
_BOM_ROW_PATTERN = re.compile(r"^\s*\d{1,3}(?:\s+|\s*\|\s*)\S+.*$")

_TEMPLATE_GROUP_PATTERN = re.compile(r"\{(\d+)\}")


@dataclass(frozen=True)
class NotePattern:
    """
    A note pattern mapped to a category and routing operation.

    Attributes:
        pattern: Compiled regex (IGNORECASE | MULTILINE).
        category: Note category assigned to matches.
        impact: Routing impact assigned to matches.
        routing_op: Routing operation for generated hints.
        work_center: Work center code, None when routed without one.
        template: Routing note template; ``{n}`` is replaced by capture group n.
        confidence: Base confidence for matches.
    """

    pattern: "re.Pattern[str]"
    category: NoteCategory
    impact: RoutingImpact
    routing_op: RoutingOp
    work_center: Optional[str]
    template: Optional[str]
    confidence: float


def _np(
    regex: str,
    category: NoteCategory,
    impact: RoutingImpact,
    op: RoutingOp,
    work_center: Optional[str],
    template: Optional[str],
    confidence: float,
) -> NotePattern:
    return NotePattern(
        re.compile(regex, _NOTE_FLAGS),
        category,
        impact,
        op,
        work_center,
        template,
        confidence,
    )


def default_note_patterns() -> Tuple[NotePattern, ...]:
    """Build the default note pattern table, in matching priority order."""
    add = RoutingImpact.ADD_OPERATION
    modify = RoutingImpact.MODIFY_OPERATION
    deburr = NoteCategory.DEBURR
    finish = NoteCategory.FINISH
    heat = NoteCategory.HEAT_TREAT
    weld = NoteCategory.WELD
    machine = NoteCategory.MACHINE
    constraint = NoteCategory.PROCESS_CONSTRAINT
    inspect = NoteCategory.INSPECT
    hardware = NoteCategory.HARDWARE
    outside = RoutingOp.OUTSIDE_PROCESS

    return (
        # Deburr / edge break
        _np(r"break\s*(all)?\s*(?:sharp\s*)?edges", deburr, add, RoutingOp.DEBURR, "F210", "BREAK ALL EDGES", 0.95),
        _np(r"deburr\s*(all)?", deburr, add, RoutingOp.DEBURR, "F210", "DEBURR", 0.95),
        _np(r"remove\s*(all)?\s*burrs", deburr, add, RoutingOp.DEBURR, "F210", "REMOVE ALL BURRS", 0.95),
        _np(r"tumble\s*deburr", deburr, add, RoutingOp.DEBURR, "F210", "TUMBLE DEBURR", 0.90),
        _np(r"radius\s+all\s+edges", deburr, add, RoutingOp.DEBURR, "F210", "RADIUS ALL EDGES", 0.90),
        # Finish / coating
        _np(r"paint\s+(.+?)(?:\s*$|\s*per\s)", finish, add, outside, None, "PAINT {1}", 0.90),
        _np(r"powder\s*coat\s*(.*?)(?:\s*$)", finish, add, outside, None, "POWDER COAT", 0.90),
        _np(r"anodize\s*(.*?)(?:\s*$)", finish, add, outside, None, "ANODIZE", 0.90),
        _np(r"galvanize", finish, add, outside, None, "GALVANIZE", 0.90),
        _np(r"zinc\s*plate", finish, add, outside, None, "ZINC PLATE", 0.90),
        _np(r"chrome\s*plate", finish, add, outside, None, "CHROME PLATE", 0.90),
        _np(r"black\s*oxide", finish, add, outside, None, "BLACK OXIDE", 0.90),
        _np(r"hot\s*dip\s*galv", finish, add, outside, None, "HOT DIP GALVANIZE", 0.90),
        _np(r"e-?coat", finish, add, outside, None, "E-COAT", 0.85),
        _np(r"prime[rd]?\s", finish, add, outside, None, "PRIME", 0.80),
        # Heat treat
        _np(r"heat\s*treat\s*(.*?)(?:\s*$)", heat, add, outside, None, "HEAT TREAT", 0.90),
        _np(r"stress\s*reliev", heat, add, outside, None, "STRESS RELIEVE", 0.90),
        _np(r"harden\s*(?:to|per)", heat, add, outside, None, "HARDEN", 0.90),
        _np(r"\b(?:RC|HRC|ROCKWELL)\s*(\d{2})", heat, add, outside, None, "HARDEN TO {0}", 0.85),
        _np(r"normalize", heat, add, outside, None, "NORMALIZE", 0.85),
        _np(r"anneal", heat, add, outside, None, "ANNEAL", 0.85),
        _np(r"carburize", heat, add, outside, None, "CARBURIZE", 0.85),
        _np(r"case\s*harden", heat, add, outside, None, "CASE HARDEN", 0.85),
        # Welding
        _np(r"weld\s*(?:all|per|as)", weld, add, RoutingOp.WELD, "F400", "WELD PER DWG", 0.90),
        _np(r"mig\s*weld", weld, add, RoutingOp.WELD, "F400", "MIG WELD", 0.90),
        _np(r"tig\s*weld", weld, add, RoutingOp.WELD, "F400", "TIG WELD", 0.90),
        _np(r"spot\s*weld", weld, add, RoutingOp.WELD, "F400", "SPOT WELD", 0.85),
        _np(r"plug\s*weld", weld, add, RoutingOp.WELD, "F400", "PLUG WELD", 0.85),
        _np(r"tack\s*weld", weld, add, RoutingOp.WELD, "F400", "TACK WELD", 0.85),
        _np(r"fillet\s*weld", weld, add, RoutingOp.WELD, "F400", "FILLET WELD PER DWG", 0.90),
        # Machining / tapping
        _np(r"tap\s+(\d+[/\-]\d+)", machine, add, RoutingOp.TAP, "F220", "TAP {1}", 0.90),
        _np(r"drill\s+.+?thru", machine, add, RoutingOp.DRILL, None, "DRILL PER DWG", 0.80),
        _np(r"countersink", machine, add, RoutingOp.MACHINE, None, "COUNTERSINK PER DWG", 0.85),
        _np(r"counterbore", machine, add, RoutingOp.MACHINE, None, "COUNTERBORE PER DWG", 0.85),
        _np(r"ream\s+to", machine, add, RoutingOp.MACHINE, None, "REAM PER DWG", 0.85),
        # Process constraints
        _np(r"waterjet\s*only", constraint, modify, RoutingOp.PROCESS_OVERRIDE, "F110", "WATERJET ONLY", 0.95),
        _np(r"laser\s*cut", constraint, modify, RoutingOp.PROCESS_OVERRIDE, "F115", "LASER CUT", 0.85),
        _np(r"plasma\s*cut", constraint, modify, RoutingOp.PROCESS_OVERRIDE, "F120", "PLASMA CUT", 0.85),
        _np(r"do\s*not\s*(?:laser|burn)", constraint, modify, RoutingOp.PROCESS_OVERRIDE, "F110", "DO NOT LASER - USE WATERJET", 0.95),
        _np(r"flame\s*cut", constraint, modify, RoutingOp.PROCESS_OVERRIDE, "F120", "FLAME CUT", 0.80),
        # Inspection
        _np(r"inspect\s*(?:per|to|100%|all)", inspect, add, RoutingOp.INSPECT, None, "INSPECT PER DWG", 0.85),
        _np(r"cmm\s*inspect", inspect, add, RoutingOp.INSPECT, None, "CMM INSPECT", 0.90),
        _np(r"first\s*article", inspect, add, RoutingOp.INSPECT, None, "FIRST ARTICLE REQUIRED", 0.90),
        _np(r"ppap\s*required", inspect, add, RoutingOp.INSPECT, None, "PPAP REQUIRED", 0.90),
        # Hardware
        _np(r"install\s+pem", hardware, add, RoutingOp.HARDWARE, None, "INSTALL PEM HARDWARE", 0.90),
        _np(r"press\s*fit\s*(.+?)(?:\s*$)", hardware, add, RoutingOp.HARDWARE, None, "PRESS FIT HARDWARE", 0.85),
        _np(r"insert\s+rivet\s*nut", hardware, add, RoutingOp.HARDWARE, None, "INSTALL RIVET NUT", 0.85),
        _np(r"install\s+.+?insert", hardware, add, RoutingOp.HARDWARE, None, "INSTALL INSERT PER DWG", 0.80),
    )


@dataclass
class NoteExtractorConfig:
    """
    Configuration for note extraction.

    Attributes:
        numbered_note_confidence: Confidence for items of a numbered NOTES list.
        blank_bom_rows: Blank bill-of-materials rows before matching.
    """

    numbered_note_confidence: float = 0.75
    blank_bom_rows: bool = True

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not 0.0 <= self.numbered_note_confidence <= 1.0:
            raise ValueError(
                f"numbered_note_confidence must be between 0.0 and 1.0, "
                f"got {self.numbered_note_confidence}"
            )


@dataclass(frozen=True)
class _Candidate:
    start: int
    end: int
    text: str
    pattern: NotePattern

    @property
    def length(self) -> int:
        return self.end - self.start


class DrawingNoteExtractor:
    """
    Extracts and classifies manufacturing notes from drawing text.

    Attributes:
        config: Note extraction configuration.
        patterns: Immutable note pattern table.
    """

    def __init__(
        self,
        config: Optional[NoteExtractorConfig] = None,
        patterns: Optional[Sequence[NotePattern]] = None,
    ) -> None:
        self.config = config or NoteExtractorConfig()
        self.patterns: Tuple[NotePattern, ...] = tuple(
            patterns if patterns is not None else default_note_patterns()
        )

    def extract_notes(self, text: Optional[str], page_number: int = 1) -> List[DrawingNote]:
        """
        Extract manufacturing notes from page text.

        Args:
            text: Page text.
            page_number: 1-based page number recorded on each note.

        Returns:
            Accepted notes in acceptance order. Spans index into ``text``.
        """
        if not text or not text.strip():
            return []

        working = blank_bom_rows(text) if self.config.blank_bom_rows else text

        candidates: List[_Candidate] = []
        for note_pattern in self.patterns:
            for match in note_pattern.pattern.finditer(working):
                matched_text = match.group(0).strip()
                if not matched_text:
                    continue
                candidates.append(
                    _Candidate(match.start(), match.end(), matched_text, note_pattern)
                )

        # Stable sort keeps table order among equal-length candidates
        candidates.sort(key=lambda c: c.length, reverse=True)

        notes: List[DrawingNote] = []
        seen: Set[str] = set()
        accepted: List[Tuple[int, int]] = []

        for candidate in candidates:
            key = candidate.text.upper()
            span = (candidate.start, candidate.end)
            if key in seen or overlaps_any(span, accepted):
                continue
            seen.add(key)
            accepted.append(span)
            notes.append(
                DrawingNote(
                    text=candidate.text,
                    category=candidate.pattern.category,
                    impact=candidate.pattern.impact,
                    confidence=candidate.pattern.confidence,
                    page_number=page_number,
                    span=span,
                )
            )

        self._extract_numbered_notes(working, page_number, notes, seen, accepted)

        logger.debug(f"Page {page_number}: extracted {len(notes)} notes")
        return notes

    def _extract_numbered_notes(
        self,
        text: str,
        page_number: int,
        notes: List[DrawingNote],
        seen: Set[str],
        accepted: List[Tuple[int, int]],
    ) -> None:
        """Add items of an explicit numbered NOTES list."""
        section = _NOTES_SECTION_PATTERN.search(text)
        if section is None:
            return

        offset = section.start(1)
        for item in _NUMBERED_ITEM_PATTERN.finditer(section.group(1)):
            raw = item.group(1)
            note_text = raw.strip()
            if not note_text:
                continue
            key = note_text.upper()
            lead = len(raw) - len(raw.lstrip())
            start = offset + item.start(1) + lead
            span = (start, start + len(note_text))
            if key in seen or overlaps_any(span, accepted):
                continue
            seen.add(key)
            accepted.append(span)

            category = self.classify(note_text)
            impact = (
                RoutingImpact.INFORMATIONAL
                if category is NoteCategory.GENERAL
                else RoutingImpact.ADD_OPERATION
            )
            notes.append(
                DrawingNote(
                    text=note_text,
                    category=category,
                    impact=impact,
                    confidence=self.config.numbered_note_confidence,
                    page_number=page_number,
                    span=span,
                )
            )

    def classify(self, text: str) -> NoteCategory:
        """
        Classify text by the first matching note pattern.

        Args:
            text: Note text.

        Returns:
            Category of the first matching pattern, GENERAL if none match.
        """
        for note_pattern in self.patterns:
            if note_pattern.pattern.search(text):
                return note_pattern.category
        return NoteCategory.GENERAL

    def generate_routing_hints(self, notes: Sequence[DrawingNote]) -> List[RoutingHint]:
        """
        Convert notes into routing hints.

        Informational notes are skipped. The first pattern matching a note's
        text produces exactly one hint for that note.

        Args:
            notes: Accepted notes.

        Returns:
            Routing hints in note order.
        """
        hints: List[RoutingHint] = []

        for note in notes:
            if note.impact is RoutingImpact.INFORMATIONAL:
                continue

            for note_pattern in self.patterns:
                match = note_pattern.pattern.search(note.text)
                if match is None:
                    continue

                if note_pattern.template:
                    note_text = _substitute_groups(note_pattern.template, match)
                else:
                    note_text = note.text.upper()

                hints.append(
                    RoutingHint(
                        operation=note_pattern.routing_op,
                        work_center=note_pattern.work_center,
                        note_text=note_text,
                        source_note=note.text,
                        confidence=note.confidence,
                    )
                )
                break

        return hints


def blank_bom_rows(text: str) -> str:
    """
    Blank bill-of-materials tables in a working copy of the text.

    A BOM header line holds at least two of the ITEM / QTY / PART NO /
    DESCRIPTION keywords. The header and the BOM-shaped rows that follow it
    (item number first) are replaced by spaces of equal length, so every
    character offset outside the table is unchanged.

    Args:
        text: Page text.

    Returns:
        Text of identical length with BOM rows blanked.
    """
    lines = text.splitlines(keepends=True)
    out: List[str] = []
    in_bom = False

    for line in lines:
        body = line.rstrip("\r\n")
        ending = line[len(body):]

        if _is_bom_header(body):
            in_bom = True
            out.append(" " * len(body) + ending)
            continue

        if in_bom:
            if not body.strip():
                out.append(line)
                continue
            if _BOM_ROW_PATTERN.match(body):
                out.append(" " * len(body) + ending)
                continue
            in_bom = False

        out.append(line)

    return "".join(out)


def _is_bom_header(line: str) -> bool:
    hits = [bool(keyword.search(line)) for keyword in _BOM_HEADER_KEYWORDS]
    # ITEM or QTY must be present; title blocks also carry PART NO and DESCRIPTION
    return (hits[0] or hits[1]) and sum(hits) >= _BOM_HEADER_MIN_KEYWORDS


def _substitute_groups(template: str, match: "re.Match[str]") -> str:
    """Replace ``{n}`` placeholders with upper-cased, trimmed capture groups."""

    def replace(placeholder: "re.Match[str]") -> str:
        index = int(placeholder.group(1))
        if index > (match.re.groups or 0):
            return ""
        value = match.group(index)
        return (value or "").strip().upper()

    return _TEMPLATE_GROUP_PATTERN.sub(replace, template).strip()
