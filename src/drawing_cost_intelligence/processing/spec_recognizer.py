"""
Industry specification recognition for the Drawing Cost Intelligence System.

Recognizes ASTM, AMS, MIL, AWS, ASME, SAE, QQ and quality/controlled
information references in drawing text. Recognition is two-pass: a single
broad master pattern finds anything shaped like a specification reference,
then each hit is classified against an ordered database of specific entries
(first matching entry wins). Each raw reference is reported once.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Set, Tuple, Union

from ..models.data_structures import (
    NOT_FOUND,
    DrawingNote,
    NotFound,
    NoteCategory,
    RoutingHint,
    RoutingImpact,
    RoutingOp,
    SpecCategory,
    SpecMatch,
)

logger = logging.getLogger(__name__)

# Anything shaped like a specification reference, with an optional
# CLASS / TYPE / GRADE / COND qualifier
MASTER_SPEC_PATTERN = re.compile(
    r"\b(?:"
    r"ASTM\s*[A-Z][\-\s]?\d+"
    r"|AMS[\-\s]?\d{4}"
    r"|AMS[\-\s][A-Z][\-\s]?\d+"
    r"|MIL[\-\s][A-Z]{1,4}[\-\s]\d+"
    r"|MIL[\-\s]DTL[\-\s]\d+"
    r"|MIL[\-\s]STD[\-\s]\d+"
    r"|AWS\s*[A-Z]\d+(?:\.\d+)?"
    r"|ASME\s*[A-Z]\d+(?:\.\d+)?"
    r"|SAE\s*[A-Z]?\d+"
    r"|QQ[\-\s][A-Z][\-\s]\d+"
    r"|NADCAP"
    r"|AS\s*9100"
    r"|AS\s*9102"
    r"|ISO\s*9001"
    r"|ITAR"
    r"|DFARS"
    r"|CUI\b"
    r"|NIST\s*800[\-\s]\d+"
    r"|AMS[\-\s]QQ[\-\s][A-Z][\-\s]\d+"
    r")"
    r"(?:[\-\s]*(?:CLASS|TYPE|GRADE|COND|GR)\s*[A-Z0-9]{1,4})?",
    re.IGNORECASE,
)

_CATEGORY_TO_NOTE = {
    SpecCategory.MATERIAL: NoteCategory.MATERIAL,
    SpecCategory.WELDING: NoteCategory.WELD,
    SpecCategory.COATING: NoteCategory.FINISH,
    SpecCategory.PLATING: NoteCategory.FINISH,
    SpecCategory.HEAT_TREAT: NoteCategory.HEAT_TREAT,
    SpecCategory.INSPECTION: NoteCategory.INSPECT,
    SpecCategory.SURFACE_FINISH: NoteCategory.FINISH,
    SpecCategory.PROCESS: NoteCategory.MACHINE,
    SpecCategory.QUALITY: NoteCategory.INSPECT,
    SpecCategory.TESTING: NoteCategory.INSPECT,
    SpecCategory.CONTROLLED: NoteCategory.GENERAL,
}


@dataclass(frozen=True)
class SpecEntry:
    """
    One entry of the specification database.

    Attributes:
        pattern: Compiled pattern matched against a master-pattern hit.
        spec_id: Normalized identifier, e.g. "ASTM A36".
        full_name: Human-readable name.
        category: Specification family.
        routing_op: Routing operation implied, None for informational specs.
        work_center: Work center code, if any.
        routing_note: Routing note for downstream systems.
        confidence: Match confidence.
    """

    pattern: "re.Pattern[str]"
    spec_id: str
    full_name: str
    category: SpecCategory
    routing_op: Optional[RoutingOp]
    work_center: Optional[str]
    routing_note: Optional[str]
    confidence: float

    def to_match(self, raw_text: str) -> SpecMatch:
        return SpecMatch(
            raw_text=raw_text,
            spec_id=self.spec_id,
            full_name=self.full_name,
            category=self.category,
            routing_op=self.routing_op,
            work_center=self.work_center,
            routing_note=self.routing_note,
            confidence=self.confidence,
        )


def _s(
    regex: str,
    spec_id: str,
    full_name: str,
    category: SpecCategory,
    op: Optional[RoutingOp],
    work_center: Optional[str],
    note: Optional[str],
    confidence: float,
) -> SpecEntry:
    # A trailing digit would make this a different spec (A53 vs A536)
    return SpecEntry(
        re.compile(regex + r"(?!\d)", re.IGNORECASE),
        spec_id,
        full_name,
        category,
        op,
        work_center,
        note,
        confidence,
    )


def default_spec_database() -> Tuple[SpecEntry, ...]:
    """Build the ordered specification database."""
    mat = SpecCategory.MATERIAL
    weld = RoutingOp.WELD
    outside = RoutingOp.OUTSIDE_PROCESS
    inspect = RoutingOp.INSPECT

    return (
        # Structural steel
        _s(r"ASTM\s*A[\-\s]?36", "ASTM A36", "Carbon Structural Steel", mat, None, None, None, 0.95),
        _s(r"ASTM\s*A[\-\s]?500", "ASTM A500", "Structural Tubing (Cold-Formed)", mat, None, None, None, 0.95),
        _s(r"ASTM\s*A[\-\s]?513", "ASTM A513", "Electric-Resistance-Welded Tubing", mat, None, None, None, 0.95),
        _s(r"ASTM\s*A[\-\s]?514", "ASTM A514", "High-Yield Quenched & Tempered Plate", mat, None, None, None, 0.90),
        _s(r"ASTM\s*A[\-\s]?516", "ASTM A516", "Pressure Vessel Plate", mat, None, None, None, 0.90),
        _s(r"ASTM\s*A[\-\s]?529", "ASTM A529", "High-Strength Carbon-Manganese Steel", mat, None, None, None, 0.90),
        _s(r"ASTM\s*A[\-\s]?572", "ASTM A572", "High-Strength Low-Alloy Steel", mat, None, None, None, 0.95),
        _s(r"ASTM\s*A[\-\s]?588", "ASTM A588", "Weathering Steel (Corten)", mat, None, None, None, 0.90),
        _s(r"ASTM\s*A[\-\s]?53", "ASTM A53", "Pipe (Black/Galvanized)", mat, None, None, None, 0.90),
        # Stainless
        _s(r"ASTM\s*A[\-\s]?240", "ASTM A240", "Stainless Steel Plate/Sheet", mat, None, None, None, 0.95),
        _s(r"ASTM\s*A[\-\s]?276", "ASTM A276", "Stainless Steel Bar", mat, None, None, None, 0.90),
        _s(r"ASTM\s*A[\-\s]?312", "ASTM A312", "Stainless Steel Pipe", mat, None, None, None, 0.90),
        _s(r"ASTM\s*A[\-\s]?269", "ASTM A269", "Stainless Steel Tubing", mat, None, None, None, 0.90),
        _s(r"ASTM\s*A[\-\s]?554", "ASTM A554", "Stainless Welded Mechanical Tubing", mat, None, None, None, 0.90),
        # Aluminum
        _s(r"ASTM\s*B[\-\s]?209", "ASTM B209", "Aluminum Sheet/Plate", mat, None, None, None, 0.90),
        _s(r"ASTM\s*B[\-\s]?221", "ASTM B221", "Aluminum Bar/Rod/Wire/Shape", mat, None, None, None, 0.90),
        _s(r"ASTM\s*B[\-\s]?241", "ASTM B241", "Aluminum Seamless Pipe/Tube", mat, None, None, None, 0.90),
        # Aerospace materials
        _s(r"AMS[\-\s]?4027", "AMS 4027", "6061-T6 Aluminum Sheet", mat, None, None, None, 0.90),
        _s(r"AMS[\-\s]?4041", "AMS 4041", "2024-T3 Aluminum Sheet", mat, None, None, None, 0.90),
        _s(r"AMS[\-\s]?4044", "AMS 4044", "2024-T4 Aluminum Sheet", mat, None, None, None, 0.90),
        _s(r"AMS[\-\s]?4911", "AMS 4911", "Titanium 6Al-4V Sheet/Plate", mat, None, None, None, 0.90),
        _s(r"AMS[\-\s]?5510", "AMS 5510", "304 Stainless Sheet", mat, None, None, None, 0.90),
        _s(r"AMS[\-\s]?5524", "AMS 5524", "321 Stainless Sheet", mat, None, None, None, 0.90),
        _s(r"AMS[\-\s]?5596", "AMS 5596", "Inconel 718 Sheet", mat, None, None, None, 0.90),
        _s(r"AMS[\-\s]?6350", "AMS 6350", "4130 Normalized Steel", mat, None, None, None, 0.90),
        # Welding codes
        _s(r"AWS\s*D1[\.\s]?1", "AWS D1.1", "Structural Welding - Steel", SpecCategory.WELDING, weld, "F400", "WELD PER AWS D1.1", 0.95),
        _s(r"AWS\s*D1[\.\s]?2", "AWS D1.2", "Structural Welding - Aluminum", SpecCategory.WELDING, weld, "F400", "WELD PER AWS D1.2", 0.95),
        _s(r"AWS\s*D1[\.\s]?3", "AWS D1.3", "Structural Welding - Sheet Steel", SpecCategory.WELDING, weld, "F400", "WELD PER AWS D1.3", 0.95),
        _s(r"AWS\s*D1[\.\s]?6", "AWS D1.6", "Structural Welding - Stainless", SpecCategory.WELDING, weld, "F400", "WELD PER AWS D1.6", 0.95),
        _s(r"AWS\s*D17[\.\s]?1", "AWS D17.1", "Aerospace Fusion Welding", SpecCategory.WELDING, weld, "F400", "WELD PER AWS D17.1 (AEROSPACE)", 0.95),
        _s(r"AWS\s*D9[\.\s]?1", "AWS D9.1", "Sheet Metal Welding", SpecCategory.WELDING, weld, "F400", "WELD PER AWS D9.1", 0.90),
        # Coating / paint
        _s(r"MIL[\-\s]PRF[\-\s]22750", "MIL-PRF-22750", "Epoxy Primer (High-Solids)", SpecCategory.COATING, outside, None, "PRIME PER MIL-PRF-22750", 0.90),
        _s(r"MIL[\-\s]PRF[\-\s]85285", "MIL-PRF-85285", "Polyurethane Topcoat", SpecCategory.COATING, outside, None, "PAINT PER MIL-PRF-85285", 0.90),
        _s(r"MIL[\-\s]DTL[\-\s]53039", "MIL-DTL-53039", "CARC Epoxy Primer", SpecCategory.COATING, outside, None, "PRIME PER MIL-DTL-53039 (CARC)", 0.90),
        _s(r"MIL[\-\s]PRF[\-\s]23377", "MIL-PRF-23377", "Epoxy Primer", SpecCategory.COATING, outside, None, "PRIME PER MIL-PRF-23377", 0.90),
        _s(r"AMS[\-\s]C[\-\s]27725", "AMS-C-27725", "Powder Coating", SpecCategory.COATING, outside, None, "POWDER COAT PER AMS-C-27725", 0.90),
        # Plating
        _s(r"ASTM\s*B[\-\s]?633", "ASTM B633", "Zinc Electroplating", SpecCategory.PLATING, outside, None, "ZINC PLATE PER ASTM B633", 0.90),
        _s(r"ASTM\s*B[\-\s]?456", "ASTM B456", "Nickel/Chrome Plating", SpecCategory.PLATING, outside, None, "NICKEL/CHROME PLATE PER ASTM B456", 0.90),
        _s(r"ASTM\s*B[\-\s]?488", "ASTM B488", "Gold Electroplating", SpecCategory.PLATING, outside, None, "GOLD PLATE PER ASTM B488", 0.85),
        _s(r"ASTM\s*B[\-\s]?733", "ASTM B733", "Electroless Nickel", SpecCategory.PLATING, outside, None, "ELECTROLESS NICKEL PER ASTM B733", 0.90),
        _s(r"AMS[\-\s]QQ[\-\s]N[\-\s]290", "AMS-QQ-N-290", "Nickel Plating", SpecCategory.PLATING, outside, None, "NICKEL PLATE PER AMS-QQ-N-290", 0.90),
        _s(r"QQ[\-\s]N[\-\s]290", "QQ-N-290", "Nickel Plating (Legacy)", SpecCategory.PLATING, outside, None, "NICKEL PLATE PER QQ-N-290", 0.85),
        _s(r"MIL[\-\s]DTL[\-\s]5541", "MIL-DTL-5541", "Chemical Film (Chem Film / Alodine)", SpecCategory.PLATING, outside, None, "CHEM FILM PER MIL-DTL-5541", 0.90),
        _s(r"MIL[\-\s]DTL[\-\s]13924", "MIL-DTL-13924", "Black Oxide", SpecCategory.PLATING, outside, None, "BLACK OXIDE PER MIL-DTL-13924", 0.90),
        _s(r"AMS[\-\s]2700", "AMS 2700", "Passivation (Stainless)", SpecCategory.PLATING, outside, None, "PASSIVATE PER AMS 2700", 0.90),
        _s(r"ASTM\s*A[\-\s]?967", "ASTM A967", "Passivation (Chemical)", SpecCategory.PLATING, outside, None, "PASSIVATE PER ASTM A967", 0.90),
        # Heat treat
        _s(r"AMS[\-\s]2759", "AMS 2759", "Heat Treatment of Steel Parts", SpecCategory.HEAT_TREAT, outside, None, "HEAT TREAT PER AMS 2759", 0.90),
        _s(r"AMS[\-\s]H[\-\s]6875", "AMS-H-6875", "Heat Treatment of Stainless", SpecCategory.HEAT_TREAT, outside, None, "HEAT TREAT PER AMS-H-6875", 0.90),
        _s(r"AMS[\-\s]2750", "AMS 2750", "Pyrometry (Furnace Calibration)", SpecCategory.HEAT_TREAT, None, None, None, 0.85),
        # Surface treatment
        _s(r"AMS[\-\s]2430", "AMS 2430", "Shot Peening", SpecCategory.SURFACE_FINISH, outside, None, "SHOT PEEN PER AMS 2430", 0.90),
        _s(r"AMS[\-\s]2431", "AMS 2431", "Shot Peening (Computer Monitored)", SpecCategory.SURFACE_FINISH, outside, None, "SHOT PEEN PER AMS 2431", 0.90),
        _s(r"MIL[\-\s]STD[\-\s]171", "MIL-STD-171", "Surface Finishing", SpecCategory.SURFACE_FINISH, outside, None, "FINISH PER MIL-STD-171", 0.85),
        _s(r"AMS[\-\s]2470", "AMS 2470", "Anodize Type I (Chromic)", SpecCategory.SURFACE_FINISH, outside, None, "ANODIZE TYPE I PER AMS 2470", 0.90),
        _s(r"AMS[\-\s]2471", "AMS 2471", "Anodize Type II (Sulfuric)", SpecCategory.SURFACE_FINISH, outside, None, "ANODIZE TYPE II PER AMS 2471", 0.90),
        _s(r"AMS[\-\s]2472", "AMS 2472", "Anodize Type III (Hard)", SpecCategory.SURFACE_FINISH, outside, None, "HARD ANODIZE PER AMS 2472", 0.90),
        _s(r"MIL[\-\s]A[\-\s]8625", "MIL-A-8625", "Anodic Coatings for Aluminum", SpecCategory.SURFACE_FINISH, outside, None, "ANODIZE PER MIL-A-8625", 0.90),
        # Inspection / testing
        _s(r"ASME\s*Y14[\.\s]?5", "ASME Y14.5", "Dimensioning & Tolerancing (GD&T)", SpecCategory.INSPECTION, None, None, None, 0.90),
        _s(r"AS\s*9102", "AS 9102", "First Article Inspection", SpecCategory.INSPECTION, inspect, None, "FIRST ARTICLE PER AS 9102", 0.95),
        _s(r"ASTM\s*E[\-\s]?1444", "ASTM E1444", "Magnetic Particle Inspection", SpecCategory.TESTING, inspect, None, "MAG PARTICLE INSPECT PER ASTM E1444", 0.90),
        _s(r"ASTM\s*E[\-\s]?1417", "ASTM E1417", "Liquid Penetrant Inspection", SpecCategory.TESTING, inspect, None, "LPI PER ASTM E1417", 0.90),
        _s(r"ASTM\s*E[\-\s]?94", "ASTM E94", "Radiographic Examination", SpecCategory.TESTING, inspect, None, "RADIOGRAPHIC INSPECT PER ASTM E94", 0.90),
        _s(r"ASTM\s*E[\-\s]?164", "ASTM E164", "Ultrasonic Contact Examination", SpecCategory.TESTING, inspect, None, "UT INSPECT PER ASTM E164", 0.90),
        # Quality management
        _s(r"AS\s*9100", "AS 9100", "Aerospace Quality Management System", SpecCategory.QUALITY, None, None, None, 0.90),
        _s(r"ISO\s*9001", "ISO 9001", "Quality Management System", SpecCategory.QUALITY, None, None, None, 0.85),
        _s(r"NADCAP", "NADCAP", "National Aerospace & Defense Contractors Accreditation Program", SpecCategory.QUALITY, None, None, None, 0.90),
        # Fasteners / hardware
        _s(r"SAE\s*J429", "SAE J429", "Mechanical Properties of Bolts", mat, None, None, None, 0.80),
        _s(r"ASTM\s*A[\-\s]?193", "ASTM A193", "High-Temp Bolting Material", mat, None, None, None, 0.80),
        _s(r"ASTM\s*A[\-\s]?194", "ASTM A194", "High-Temp Nut Material", mat, None, None, None, 0.80),
        _s(r"ASTM\s*F[\-\s]?3125", "ASTM F3125", "High-Strength Structural Bolts", mat, None, None, None, 0.80),
        # Controlled information
        _s(r"\bITAR\b", "ITAR", "International Traffic in Arms Regulations", SpecCategory.CONTROLLED, None, None, None, 0.95),
        _s(r"\bDFARS\b", "DFARS", "Defense Federal Acquisition Regulation Supplement", SpecCategory.CONTROLLED, None, None, None, 0.90),
        _s(r"\bCUI\b", "CUI", "Controlled Unclassified Information", SpecCategory.CONTROLLED, None, None, None, 0.90),
        _s(r"NIST\s*800[\-\s]171", "NIST 800-171", "Protecting CUI in Nonfederal Systems", SpecCategory.CONTROLLED, None, None, None, 0.90),
        # Process
        _s(r"AMS[\-\s]2175", "AMS 2175", "Classification of Castings", SpecCategory.PROCESS, None, None, None, 0.85),
        _s(r"AMS[\-\s]2644", "AMS 2644", "Fluorescent Penetrant Inspection", SpecCategory.TESTING, inspect, None, "FPI PER AMS 2644", 0.90),
        _s(r"AMS[\-\s]2645", "AMS 2645", "Fluorescent Penetrant Inspection (Type 1)", SpecCategory.TESTING, inspect, None, "FPI TYPE 1 PER AMS 2645", 0.90),
    )


class SpecRecognizer:
    """
    Recognizes industry specification references in drawing text.

    Attributes:
        database: Ordered, immutable specification entries.
        master_pattern: Broad pattern used for the first pass.
    """

    def __init__(
        self,
        database: Optional[Sequence[SpecEntry]] = None,
        master_pattern: Optional["re.Pattern[str]"] = None,
    ) -> None:
        self.database: Tuple[SpecEntry, ...] = tuple(
            database if database is not None else default_spec_database()
        )
        self.master_pattern = master_pattern or MASTER_SPEC_PATTERN

    @property
    def database_size(self) -> int:
        return len(self.database)

    def recognize(self, text: Optional[str]) -> List[SpecMatch]:
        """
        Find specification references in text.

        Args:
            text: Drawing text.

        Returns:
            One SpecMatch per distinct raw reference (case-insensitive), in
            text order. Master-pattern hits with no database entry are dropped.
        """
        if not text or not text.strip():
            return []

        results: List[SpecMatch] = []
        seen: Set[str] = set()

        for candidate in self.master_pattern.finditer(text):
            raw = candidate.group(0).strip()
            key = raw.upper()
            if key in seen:
                continue

            result = self.lookup(raw)
            if isinstance(result, SpecMatch):
                seen.add(key)
                results.append(result)

        if results:
            logger.debug(
                f"Recognized {len(results)} specs: "
                f"{', '.join(m.spec_id for m in results)}"
            )
        return results

    def lookup(self, raw: str) -> Union[SpecMatch, NotFound]:
        """
        Classify a single raw reference against the database.

        Args:
            raw: Raw reference text, e.g. "ASTM A-36".

        Returns:
            SpecMatch for the first matching entry, NOT_FOUND otherwise.
        """
        for entry in self.database:
            if entry.pattern.search(raw):
                return entry.to_match(raw)
        return NOT_FOUND

    def to_routing_hints(self, matches: Sequence[SpecMatch]) -> List[RoutingHint]:
        """
        Convert spec matches to routing hints.

        Informational specs are skipped; one hint per (operation, work center)
        pair.

        Args:
            matches: Recognized specs.

        Returns:
            Routing hints in match order.
        """
        hints: List[RoutingHint] = []
        seen_ops: Set[Tuple[RoutingOp, Optional[str]]] = set()

        for match in matches:
            if match.routing_op is None:
                continue
            op_key = (match.routing_op, match.work_center)
            if op_key in seen_ops:
                continue
            seen_ops.add(op_key)

            hints.append(
                RoutingHint(
                    operation=match.routing_op,
                    work_center=match.work_center,
                    note_text=match.routing_note or f"PER {match.spec_id}",
                    source_note=match.raw_text,
                    confidence=match.confidence,
                )
            )

        return hints

    def to_drawing_notes(
        self, matches: Sequence[SpecMatch], page_number: int = 1
    ) -> List[DrawingNote]:
        """
        Convert spec matches to drawing notes.

        Args:
            matches: Recognized specs.
            page_number: Page number recorded on each note.

        Returns:
            One note per match, text "{spec id}: {full name}".
        """
        return [
            DrawingNote(
                text=f"{m.spec_id}: {m.full_name}",
                category=_CATEGORY_TO_NOTE.get(m.category, NoteCategory.GENERAL),
                impact=(
                    RoutingImpact.ADD_OPERATION
                    if m.routing_op is not None
                    else RoutingImpact.INFORMATIONAL
                ),
                confidence=m.confidence,
                page_number=page_number,
            )
            for m in matches
        ]
