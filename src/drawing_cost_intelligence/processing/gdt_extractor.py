"""
GD&T extraction module for the Drawing Cost Intelligence System.

Extracts geometric tolerance feature control frames (true position, flatness,
parallelism, profile, runout, ...) from drawing text. Both spelled-out
keywords and Unicode GD&T symbols are recognized since PDF text extraction
often drops the true symbols.

Every keyword is followed by a shared tail capturing the tolerance value,
an optional diameter marker, an optional MMC/LMC modifier and up to three
single-letter datum references.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Tuple

from ..models.data_structures import (
    CostImpact,
    GdtCallout,
    GdtType,
    RoutingHint,
    RoutingOp,
    ToleranceCostFlag,
    ToleranceTier,
)
from ..utils.geometry_utils import overlaps_any

logger = logging.getLogger(__name__)

_MODIFIER = r"MMC|LMC|Ⓜ|Ⓛ|(?-i:M|L)\b"
_DATUM = r"(?-i:[A-Z])\b"

GDT_TAIL = (
    r"\s*(?P<diameter>[⌀Ø]\s*|DIA(?:METER)?\.?\s*)?"
    r"(?P<value>\d*\.\d+|\d+)\"?[ \t]*"
    r"(?:(?P<modifier>" + _MODIFIER + r")[ \t]*)?"
    r"(?:(?:TO|W/?R/?T|REF|DATUMS?)[ \t]+)?"
    r"(?:(?P<d1>" + _DATUM + r")[ \t]*(?:(?:" + _MODIFIER + r")[ \t]*)?)?"
    r"(?:[\-,]?[ \t]*(?P<d2>" + _DATUM + r")[ \t]*(?:(?:" + _MODIFIER + r")[ \t]*)?)?"
    r"(?:[\-,]?[ \t]*(?P<d3>" + _DATUM + r"))?"
)

# Keyword/symbol variants, specific forms before generic ones
GDT_KEYWORDS: Tuple[Tuple[str, GdtType], ...] = (
    (r"TRUE\s*POS(?:ITION)?", GdtType.POSITION),
    (r"\bT/?P\b", GdtType.POSITION),
    (r"⌖", GdtType.POSITION),
    (r"FLATNESS", GdtType.FLATNESS),
    (r"⏥", GdtType.FLATNESS),
    (r"STRAIGHTNESS", GdtType.STRAIGHTNESS),
    (r"⏤", GdtType.STRAIGHTNESS),
    (r"CIRCULARITY", GdtType.CIRCULARITY),
    (r"ROUNDNESS", GdtType.CIRCULARITY),
    (r"○", GdtType.CIRCULARITY),
    (r"CYLINDRICITY", GdtType.CYLINDRICITY),
    (r"⌭", GdtType.CYLINDRICITY),
    (r"PARALLELISM", GdtType.PARALLELISM),
    (r"∥", GdtType.PARALLELISM),
    (r"PERPENDICULARITY", GdtType.PERPENDICULARITY),
    (r"⊥", GdtType.PERPENDICULARITY),
    (r"ANGULARITY", GdtType.ANGULARITY),
    (r"∠", GdtType.ANGULARITY),
    (r"CONCENTRICITY", GdtType.CONCENTRICITY),
    (r"◎", GdtType.CONCENTRICITY),
    (r"SYMMETRY", GdtType.SYMMETRY),
    (r"⌯", GdtType.SYMMETRY),
    (r"PROFILE\s+OF\s+(?:A\s+)?LINE", GdtType.PROFILE_OF_LINE),
    (r"⌒", GdtType.PROFILE_OF_LINE),
    (r"PROFILE\s+OF\s+(?:A\s+)?SURFACE", GdtType.PROFILE_OF_SURFACE),
    (r"⌓", GdtType.PROFILE_OF_SURFACE),
    # Bare PROFILE reads as profile of a surface
    (r"PROFILE", GdtType.PROFILE_OF_SURFACE),
    (r"TOTAL\s+RUNOUT", GdtType.TOTAL_RUNOUT),
    (r"↗↗", GdtType.TOTAL_RUNOUT),
    (r"CIRCULAR\s+RUNOUT", GdtType.CIRCULAR_RUNOUT),
    # Bare RUNOUT reads as circular runout
    (r"RUNOUT", GdtType.CIRCULAR_RUNOUT),
    (r"↗", GdtType.CIRCULAR_RUNOUT),
)

POSITION_THRESHOLDS = (0.003, 0.007, 0.014)
FORM_THRESHOLDS = (0.001, 0.003, 0.005)
ORIENTATION_THRESHOLDS = (0.002, 0.005, 0.010)

_FAMILY_THRESHOLDS: Dict[GdtType, Tuple[float, float, float]] = {
    GdtType.POSITION: POSITION_THRESHOLDS,
    GdtType.FLATNESS: FORM_THRESHOLDS,
    GdtType.STRAIGHTNESS: FORM_THRESHOLDS,
    GdtType.CIRCULARITY: FORM_THRESHOLDS,
    GdtType.CYLINDRICITY: FORM_THRESHOLDS,
    GdtType.PARALLELISM: ORIENTATION_THRESHOLDS,
    GdtType.PERPENDICULARITY: ORIENTATION_THRESHOLDS,
    GdtType.ANGULARITY: ORIENTATION_THRESHOLDS,
    GdtType.PROFILE_OF_LINE: ORIENTATION_THRESHOLDS,
    GdtType.PROFILE_OF_SURFACE: ORIENTATION_THRESHOLDS,
    GdtType.CONCENTRICITY: ORIENTATION_THRESHOLDS,
    GdtType.SYMMETRY: ORIENTATION_THRESHOLDS,
    GdtType.CIRCULAR_RUNOUT: ORIENTATION_THRESHOLDS,
    GdtType.TOTAL_RUNOUT: ORIENTATION_THRESHOLDS,
}

_TIER_IMPACT = {
    ToleranceTier.PRECISION: CostImpact.CRITICAL,
    ToleranceTier.TIGHT: CostImpact.HIGH,
    ToleranceTier.MODERATE: CostImpact.MEDIUM,
    ToleranceTier.STANDARD: CostImpact.LOW,
}

_DISPLAY_NAMES = {
    GdtType.PROFILE_OF_LINE: "profile of line",
    GdtType.PROFILE_OF_SURFACE: "profile of surface",
    GdtType.CIRCULAR_RUNOUT: "circular runout",
    GdtType.TOTAL_RUNOUT: "total runout",
}

_MMC_MARKERS = {"MMC", "M", "Ⓜ"}
_LMC_MARKERS = {"LMC", "L", "Ⓛ"}


def display_name(feature_type: GdtType) -> str:
    """Lower-case display name of a GD&T type, e.g. "profile of surface"."""
    return _DISPLAY_NAMES.get(feature_type, feature_type.value.lower())


@dataclass
class GdtConfig:
    """
    Configuration for GD&T extraction.

    Attributes:
        max_tolerance: Largest plausible tolerance value (inches).
        mmc_bonus_factor: Position tolerance multiplier when MMC applies.
        callout_confidence: Confidence assigned to every callout.
    """

    max_tolerance: float = 1.0
    mmc_bonus_factor: float = 1.5
    callout_confidence: float = 0.80

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.max_tolerance <= 0:
            raise ValueError(f"max_tolerance must be positive, got {self.max_tolerance}")
        if self.mmc_bonus_factor < 1.0:
            raise ValueError(
                f"mmc_bonus_factor must be at least 1.0, got {self.mmc_bonus_factor}"
            )
        if not 0.0 <= self.callout_confidence <= 1.0:
            raise ValueError(
                f"callout_confidence must be between 0.0 and 1.0, "
                f"got {self.callout_confidence}"
            )


class GdtExtractor:
    """
    Extracts GD&T callouts and classifies their cost impact.

    Attributes:
        config: GD&T configuration.
        patterns: Compiled (pattern, feature type) pairs in priority order.
    """

    def __init__(
        self,
        config: Optional[GdtConfig] = None,
        keywords: Optional[Sequence[Tuple[str, GdtType]]] = None,
    ) -> None:
        self.config = config or GdtConfig()
        self.patterns: Tuple[Tuple["re.Pattern[str]", GdtType], ...] = tuple(
            (re.compile(keyword + GDT_TAIL, re.IGNORECASE), feature_type)
            for keyword, feature_type in (keywords or GDT_KEYWORDS)
        )

    def extract(self, text: Optional[str]) -> List[GdtCallout]:
        """
        Extract GD&T callouts from drawing text.

        A match starting inside an already accepted callout is ignored, so
        "TOTAL RUNOUT .002" does not also yield a circular runout.

        Args:
            text: Drawing text.

        Returns:
            Callouts sorted tightest tolerance first, one per
            (type, tolerance) pair.
        """
        if not text or not text.strip():
            return []

        results: List[GdtCallout] = []
        seen: Set[Tuple[GdtType, float]] = set()
        accepted: List[Tuple[int, int]] = []

        for pattern, feature_type in self.patterns:
            for match in pattern.finditer(text):
                start = match.start()
                if overlaps_any((start, start + 1), accepted):
                    continue

                value = float(match.group("value"))
                if value <= 0 or value > self.config.max_tolerance:
                    continue

                accepted.append(match.span())
                key = (feature_type, round(value, 5))
                if key in seen:
                    continue
                seen.add(key)

                results.append(self._build_callout(feature_type, value, match))

        results.sort(key=lambda c: c.tolerance)
        if results:
            logger.debug(f"Extracted {len(results)} GD&T callouts")
        return results

    def _build_callout(
        self, feature_type: GdtType, value: float, match: "re.Match[str]"
    ) -> GdtCallout:
        raw = match.group(0).strip()
        modifier = (match.group("modifier") or "").upper()

        datums: List[str] = []
        for group in ("d1", "d2", "d3"):
            datum = match.group(group)
            if datum and datum.upper() not in datums:
                datums.append(datum.upper())

        callout = GdtCallout(
            feature_type=feature_type,
            tolerance=value,
            is_diametral=match.group("diameter") is not None,
            is_mmc=modifier in _MMC_MARKERS,
            is_lmc=modifier in _LMC_MARKERS,
            datums=datums,
            raw_text=raw,
            confidence=self.config.callout_confidence,
        )
        callout.tier = self.classify(callout)
        callout.impact = _TIER_IMPACT[callout.tier]
        return callout

    def classify(self, callout: GdtCallout) -> ToleranceTier:
        """
        Classify a callout by its feature family.

        Position compares the stated value, multiplied by the MMC bonus
        factor when MMC applies.
        """
        value = callout.tolerance
        if callout.feature_type == GdtType.POSITION and callout.is_mmc:
            value *= self.config.mmc_bonus_factor
        precision, tight, moderate = _FAMILY_THRESHOLDS[callout.feature_type]
        if value <= precision:
            return ToleranceTier.PRECISION
        if value <= tight:
            return ToleranceTier.TIGHT
        if value <= moderate:
            return ToleranceTier.MODERATE
        return ToleranceTier.STANDARD

    def to_cost_flags(self, callouts: Sequence[GdtCallout]) -> List[ToleranceCostFlag]:
        """Cost flags for every callout at Moderate or tighter."""
        flags: List[ToleranceCostFlag] = []
        for callout in callouts:
            if callout.tier < ToleranceTier.MODERATE:
                continue
            datums = f" (Datum {'-'.join(callout.datums)})" if callout.datums else ""
            mmc = " @ MMC" if callout.is_mmc else ""
            flags.append(
                ToleranceCostFlag(
                    description=f"{_label(callout)}{datums}{mmc}",
                    tier=callout.tier,
                    impact=callout.impact,
                    suggested_action=_gdt_action(callout),
                    source="GD&T callout",
                )
            )
        return flags

    def to_routing_hints(self, callouts: Sequence[GdtCallout]) -> List[RoutingHint]:
        """
        Routing hints for tight GD&T.

        One CMM hint for the first Tight-or-better callout, one fixture hint
        for the first tight Position, and one review-pricing hint when three
        or more callouts are Tight or better.
        """
        hints: List[RoutingHint] = []
        needs_cmm = False
        needs_fixture = False
        tight_count = 0

        for callout in callouts:
            if callout.tier < ToleranceTier.TIGHT:
                continue
            tight_count += 1

            if not needs_cmm:
                needs_cmm = True
                hints.append(
                    RoutingHint(
                        operation=RoutingOp.INSPECT,
                        work_center=None,
                        note_text="CMM INSPECT - GD&T REQUIREMENTS",
                        source_note=_label(callout),
                        confidence=0.90,
                    )
                )

            if callout.feature_type == GdtType.POSITION and not needs_fixture:
                needs_fixture = True
                hints.append(
                    RoutingHint(
                        operation=RoutingOp.MACHINE,
                        work_center=None,
                        note_text="FIXTURE MAY BE REQUIRED - TIGHT TRUE POSITION",
                        source_note=f'Position {callout.tolerance:.4f}"',
                        confidence=0.75,
                    )
                )

        if tight_count >= 3:
            hints.append(
                RoutingHint(
                    operation=RoutingOp.INSPECT,
                    work_center=None,
                    note_text=f"MULTIPLE TIGHT GD&T ({tight_count} CALLOUTS) - REVIEW PRICING",
                    source_note="Multiple callouts",
                    confidence=0.85,
                )
            )

        return hints


def _label(callout: GdtCallout) -> str:
    return f'{display_name(callout.feature_type)} {callout.tolerance:.4f}"'


def _gdt_action(callout: GdtCallout) -> str:
    tier = callout.tier
    kind = callout.feature_type

    if kind == GdtType.POSITION:
        if tier >= ToleranceTier.PRECISION:
            return "CMM INSPECT + FIXTURE REQUIRED"
        if tier >= ToleranceTier.TIGHT:
            return "CMM INSPECT REQUIRED"
        return "VERIFY TRUE POSITION"

    if kind in (GdtType.FLATNESS, GdtType.STRAIGHTNESS):
        if tier >= ToleranceTier.PRECISION:
            return "GRINDING OR LAPPING REQUIRED"
        if tier >= ToleranceTier.TIGHT:
            return "SURFACE GRINDING MAY BE REQUIRED"
        return "VERIFY FLATNESS/STRAIGHTNESS"

    if kind in (GdtType.PROFILE_OF_LINE, GdtType.PROFILE_OF_SURFACE):
        if tier >= ToleranceTier.TIGHT:
            return "CMM INSPECT + POSSIBLE FIXTURE"
        return "VERIFY PROFILE"

    if kind in (GdtType.CONCENTRICITY, GdtType.CIRCULAR_RUNOUT, GdtType.TOTAL_RUNOUT):
        if tier >= ToleranceTier.TIGHT:
            return "CMM INSPECT - RUNOUT/CONCENTRICITY"
        return "VERIFY RUNOUT"

    if kind in (GdtType.PERPENDICULARITY, GdtType.PARALLELISM, GdtType.ANGULARITY):
        if tier >= ToleranceTier.TIGHT:
            return "CMM INSPECT - ORIENTATION"
        return "VERIFY ORIENTATION"

    return "REVIEW GD&T REQUIREMENT"
