"""
Tolerance analysis module for the Drawing Cost Intelligence System.

Extracts and classifies tolerances from drawing text:
    1. General tolerance block ("UNLESS OTHERWISE SPECIFIED ...") -> baseline tier
    2. Specific dimension tolerances (0.500 ±0.002, +.001/-.000) -> tight callouts
    3. Surface finish callouts (Ra 32, 125 RMS, FINISH=63)

Tight and precision findings produce cost flags and routing hints. All
values are in inches; surface finish in microinches.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

from ..models.data_structures import (
    CostImpact,
    DimensionTolerance,
    FinishUnit,
    GeneralTolerance,
    RoutingHint,
    RoutingOp,
    SurfaceFinishCallout,
    ToleranceAnalysis,
    ToleranceCostFlag,
    ToleranceTier,
    ToleranceType,
)
from ..utils.text_utils import (
    decimal_places,
    normalize_plus_minus,
    parse_decimal,
    parse_fraction,
)

logger = logging.getLogger(__name__)

_NUMBER = r"(\d*\.?\d+)"

# General tolerance block
_DECIMAL_PLACE_PATTERN = re.compile(
    r"\.(X{1,4})\s*[=:]?\s*±\s*" + _NUMBER, re.IGNORECASE
)
_SPELLED_PLACE_PATTERN = re.compile(
    r"\b(ONE|TWO|THREE|FOUR)[\s\-]*(?:PLACE|PL)\.?\s*(?:DECIMALS?|DEC)?\.?"
    r"\s*[=:]?\s*±\s*" + _NUMBER,
    re.IGNORECASE,
)
_GENERIC_PLUS_MINUS_PATTERN = re.compile(
    r"±\s*(\d*\.\d+|\d{2,5})\b(?!\s*(?:°|'|DEG|MIN|/))", re.IGNORECASE
)
_FRACTIONAL_PATTERN = re.compile(
    r"FRACTION(?:AL|S)?\s*[=:]?\s*±\s*(\d+\s*/\s*\d+)", re.IGNORECASE
)
_ANGULAR_DEGREES_PATTERN = re.compile(
    r"(?:ANGLES?|ANGULAR)\s*[=:]?\s*±\s*(\d+(?:\.\d+)?)\s*(?:°|DEG(?:REES?)?\b)",
    re.IGNORECASE,
)
_ANGULAR_MINUTES_PATTERN = re.compile(
    r"(?:ANGLES?|ANGULAR)\s*[=:]?\s*±\s*(\d+)\s*(?:'|MIN(?:UTES?)?\b)",
    re.IGNORECASE,
)

_PLACE_WORDS = {"ONE": 1, "TWO": 2, "THREE": 3, "FOUR": 4}

# Specific dimension tolerances
_BILATERAL_PATTERN = re.compile(r"(?<![\d.])" + _NUMBER + r"\s*±\s*" + _NUMBER)
_UNILATERAL_PATTERN = re.compile(
    r"(?<![\d.])" + _NUMBER + r"\s*\+\s*" + _NUMBER + r"\s*[/\-]\s*\-?\s*" + _NUMBER
)
_SPLIT_UNILATERAL_PATTERN = re.compile(
    r"(?<![\d.])" + _NUMBER + r"\s+\+\s*" + _NUMBER + r"\s+\-\s*" + _NUMBER
)

# Surface finish
_FINISH_RA_PATTERN = re.compile(r"\bRa\s*=?\s*(\d+)|\b(\d+)\s*Ra\b", re.IGNORECASE)
_FINISH_RMS_PATTERN = re.compile(r"\bRMS\s*=?\s*(\d+)|\b(\d+)\s*RMS\b", re.IGNORECASE)
_FINISH_LABEL_PATTERN = re.compile(
    r"\b(?:FINISH|SURFACE)\s*=?\s*(\d+)\s*(?:µ(?:in)?|MICRO(?:INCH)?)?",
    re.IGNORECASE,
)

_MIN_FINISH_VALUE = 1
_MAX_FINISH_VALUE = 1000

SOURCE_DIMENSION = "Dimension callout"
SOURCE_SURFACE_FINISH = "Surface finish callout"
SOURCE_TITLE_BLOCK = "Title block"


@dataclass
class ToleranceConfig:
    """
    Configuration for tolerance classification.

    Attributes:
        precision_band: Largest total band (in) classified as Precision.
        tight_band: Largest total band (in) classified as Tight.
        moderate_band: Largest total band (in) classified as Moderate.
        precision_finish: Largest Ra value classified as Precision.
        tight_finish: Largest Ra value classified as Tight.
        moderate_finish: Largest Ra value classified as Moderate.
        unless_specified_window: Characters captured after "UNLESS OTHERWISE ...".
    """

    precision_band: float = 0.002
    tight_band: float = 0.005
    moderate_band: float = 0.010
    precision_finish: int = 16
    tight_finish: int = 32
    moderate_finish: int = 63
    unless_specified_window: int = 500

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not 0.0 < self.precision_band <= self.tight_band <= self.moderate_band:
            raise ValueError(
                f"tolerance bands must satisfy 0 < precision <= tight <= moderate, "
                f"got {self.precision_band}, {self.tight_band}, {self.moderate_band}"
            )
        if not 0 < self.precision_finish <= self.tight_finish <= self.moderate_finish:
            raise ValueError(
                f"finish thresholds must satisfy 0 < precision <= tight <= moderate, "
                f"got {self.precision_finish}, {self.tight_finish}, {self.moderate_finish}"
            )
        if self.unless_specified_window < 1:
            raise ValueError(
                f"unless_specified_window must be positive, got {self.unless_specified_window}"
            )


class ToleranceAnalyzer:
    """
    Extracts tolerances from drawing text and classifies their cost impact.

    Attributes:
        config: Tolerance configuration.
    """

    def __init__(self, config: Optional[ToleranceConfig] = None) -> None:
        self.config = config or ToleranceConfig()
        self._unless_specified_pattern = re.compile(
            r"UNLESS\s+OTHERWISE\s+(?:NOTED|SPECIFIED|STATED).{0,%d}"
            % self.config.unless_specified_window,
            re.IGNORECASE | re.DOTALL,
        )

    def analyze(
        self, full_text: Optional[str], tolerance_text: Optional[str] = None
    ) -> ToleranceAnalysis:
        """
        Analyze all tolerances in drawing text.

        Args:
            full_text: Full drawing text.
            tolerance_text: General tolerance text from the title block, if any.

        Returns:
            ToleranceAnalysis; empty for blank input.
        """
        analysis = ToleranceAnalysis()

        if tolerance_text and tolerance_text.strip():
            analysis.general = self.parse_general_tolerance(tolerance_text)

        if analysis.general is None and full_text and full_text.strip():
            block = self.find_unless_specified_block(full_text)
            if block is not None:
                analysis.general = self.parse_general_tolerance(block)

        if full_text and full_text.strip():
            normalized = normalize_plus_minus(full_text)
            analysis.dimensions = self.extract_dimension_tolerances(normalized)
            analysis.surface_finishes = self.extract_surface_finishes(normalized)

        analysis.cost_flags = self._cost_flags(analysis)
        analysis.overall_tier = max(
            [analysis.general.tier if analysis.general else ToleranceTier.STANDARD]
            + [d.tier for d in analysis.dimensions]
            + [sf.tier for sf in analysis.surface_finishes]
        )

        logger.debug(f"Tolerance analysis: {analysis.summary}")
        return analysis

    def find_unless_specified_block(self, text: str) -> Optional[str]:
        """Return the "UNLESS OTHERWISE SPECIFIED ..." span, or None."""
        match = self._unless_specified_pattern.search(text)
        return match.group(0) if match else None

    def parse_general_tolerance(self, text: Optional[str]) -> Optional[GeneralTolerance]:
        """
        Parse a general tolerance block into structured values.

        Decimal places come from ".XX"-style labels (the length of the X run
        picks the bucket) or spelled-out "THREE PLACE DECIMAL" phrases. When
        neither is present, bare ± values are bucketed by the number of
        decimals written.

        Args:
            text: General tolerance text.

        Returns:
            GeneralTolerance, or None when the text holds no tolerance values.
        """
        if not text or not text.strip():
            return None

        normalized = normalize_plus_minus(text)
        places: Dict[int, float] = {}

        for match in _DECIMAL_PLACE_PATTERN.finditer(normalized):
            value = _parse_tolerance_value(match.group(2))
            if value is not None:
                places.setdefault(len(match.group(1)), value)

        for match in _SPELLED_PLACE_PATTERN.finditer(normalized):
            value = _parse_tolerance_value(match.group(2))
            if value is not None:
                places.setdefault(_PLACE_WORDS[match.group(1).upper()], value)

        if not places:
            for match in _GENERIC_PLUS_MINUS_PATTERN.finditer(normalized):
                raw = match.group(1)
                value = _parse_tolerance_value(raw)
                if value is None or value <= 0:
                    continue
                written = decimal_places(raw) if "." in raw else len(raw.zfill(3))
                places.setdefault(min(max(written, 1), 4), value)

        general = GeneralTolerance(
            one_place=places.get(1),
            two_place=places.get(2),
            three_place=places.get(3),
            four_place=places.get(4),
            raw_text=text.strip(),
        )

        frac_match = _FRACTIONAL_PATTERN.search(normalized)
        if frac_match:
            general.fractional_text = re.sub(r"\s+", "", frac_match.group(1))
            general.fractional = parse_fraction(general.fractional_text)

        deg_match = _ANGULAR_DEGREES_PATTERN.search(normalized)
        if deg_match:
            general.angular_degrees = parse_decimal(deg_match.group(1))

        min_match = _ANGULAR_MINUTES_PATTERN.search(normalized)
        if min_match:
            general.angular_degrees = int(min_match.group(1)) / 60.0

        if (
            not places
            and general.fractional is None
            and general.angular_degrees is None
        ):
            return None

        tightest = general.tightest_decimal
        general.tier = (
            self.classify_dimension_tier(tightest)
            if tightest is not None
            else ToleranceTier.STANDARD
        )
        return general

    def extract_dimension_tolerances(self, text: str) -> List[DimensionTolerance]:
        """
        Find toleranced dimensions in (±-normalized) text.

        Args:
            text: Drawing text with "+/-" already normalized to "±".

        Returns:
            Dimension tolerances in discovery order, one per normalized value.
        """
        results: List[DimensionTolerance] = []
        seen: Set[Tuple[float, float, float]] = set()

        def add(nominal: float, plus: float, minus: float, tol_type: ToleranceType, raw: str) -> None:
            band = plus + minus
            if band <= 0 or max(plus, minus) >= nominal:
                return
            key = (round(nominal, 4), round(plus, 4), round(minus, 4))
            if key in seen:
                return
            seen.add(key)
            results.append(
                DimensionTolerance(
                    nominal=nominal,
                    plus=plus,
                    minus=minus,
                    tolerance_type=tol_type,
                    tier=self.classify_dimension_tier(band),
                    raw_text=raw.strip(),
                )
            )

        for match in _BILATERAL_PATTERN.finditer(text):
            nominal, tol = parse_decimal(match.group(1)), parse_decimal(match.group(2))
            if nominal is None or tol is None:
                continue
            add(nominal, tol, tol, ToleranceType.BILATERAL, match.group(0))

        for pattern in (_UNILATERAL_PATTERN, _SPLIT_UNILATERAL_PATTERN):
            for match in pattern.finditer(text):
                nominal, plus, minus = (parse_decimal(match.group(i)) for i in (1, 2, 3))
                if nominal is None or plus is None or minus is None:
                    continue
                tol_type = (
                    ToleranceType.UNILATERAL
                    if plus == 0 or minus == 0 or pattern is _SPLIT_UNILATERAL_PATTERN
                    else ToleranceType.BILATERAL
                )
                add(nominal, plus, minus, tol_type, match.group(0))

        return results

    def extract_surface_finishes(self, text: str) -> List[SurfaceFinishCallout]:
        """
        Find surface roughness callouts; each value is reported once.

        Args:
            text: Drawing text.

        Returns:
            Surface finish callouts in discovery order.
        """
        results: List[SurfaceFinishCallout] = []
        seen: Set[int] = set()

        for pattern, unit in (
            (_FINISH_RA_PATTERN, FinishUnit.RA),
            (_FINISH_RMS_PATTERN, FinishUnit.RMS),
            (_FINISH_LABEL_PATTERN, FinishUnit.RA),
        ):
            for match in pattern.finditer(text):
                for group in match.groups():
                    if group is None:
                        continue
                    value = int(group)
                    if not _MIN_FINISH_VALUE <= value <= _MAX_FINISH_VALUE:
                        continue
                    if value in seen:
                        continue
                    seen.add(value)
                    results.append(
                        SurfaceFinishCallout(
                            value=value,
                            unit=unit,
                            tier=self.classify_surface_finish(value),
                            raw_text=match.group(0).strip(),
                        )
                    )

        return results

    def classify_dimension_tier(self, total_band: float) -> ToleranceTier:
        if total_band <= self.config.precision_band:
            return ToleranceTier.PRECISION
        if total_band <= self.config.tight_band:
            return ToleranceTier.TIGHT
        if total_band <= self.config.moderate_band:
            return ToleranceTier.MODERATE
        return ToleranceTier.STANDARD

    def classify_surface_finish(self, value: int) -> ToleranceTier:
        if value <= self.config.precision_finish:
            return ToleranceTier.PRECISION
        if value <= self.config.tight_finish:
            return ToleranceTier.TIGHT
        if value <= self.config.moderate_finish:
            return ToleranceTier.MODERATE
        return ToleranceTier.STANDARD

    def _cost_flags(self, analysis: ToleranceAnalysis) -> List[ToleranceCostFlag]:
        flags: List[ToleranceCostFlag] = []

        for dim in analysis.dimensions:
            if dim.tier < ToleranceTier.TIGHT:
                continue
            flags.append(
                ToleranceCostFlag(
                    description=f'{dim.raw_text} (band: ±{dim.total_band / 2:.4f}")',
                    tier=dim.tier,
                    impact=(
                        CostImpact.CRITICAL
                        if dim.tier == ToleranceTier.PRECISION
                        else CostImpact.HIGH
                    ),
                    suggested_action=_dimension_action(dim.tier),
                    source=SOURCE_DIMENSION,
                )
            )

        for sf in analysis.surface_finishes:
            if sf.tier < ToleranceTier.TIGHT:
                continue
            flags.append(
                ToleranceCostFlag(
                    description=f"Surface finish {sf.value} {sf.unit.value}",
                    tier=sf.tier,
                    impact=(
                        CostImpact.HIGH
                        if sf.tier == ToleranceTier.PRECISION
                        else CostImpact.MEDIUM
                    ),
                    suggested_action=_surface_action(sf.tier),
                    source=SOURCE_SURFACE_FINISH,
                )
            )

        if analysis.general is not None and analysis.general.tier >= ToleranceTier.TIGHT:
            flags.append(
                ToleranceCostFlag(
                    description=f"General tolerance block: {analysis.general.raw_text}",
                    tier=analysis.general.tier,
                    impact=CostImpact.HIGH,
                    suggested_action="TIGHT GENERAL TOLERANCES - REVIEW ALL DIMENSIONS",
                    source=SOURCE_TITLE_BLOCK,
                )
            )

        return flags

    def to_routing_hints(self, analysis: Optional[ToleranceAnalysis]) -> List[RoutingHint]:
        """
        Derive routing hints from tolerance cost flags.

        At most one CMM inspection hint (first High-or-worse flag) and one
        grinding hint (first tight surface finish) are produced.
        """
        if analysis is None or not analysis.cost_flags:
            return []

        hints: List[RoutingHint] = []
        needs_inspect = False
        needs_grinding = False

        for flag in analysis.cost_flags:
            if flag.impact >= CostImpact.HIGH and not needs_inspect:
                needs_inspect = True
                hints.append(
                    RoutingHint(
                        operation=RoutingOp.INSPECT,
                        work_center=None,
                        note_text="CMM INSPECT - TIGHT TOLERANCES",
                        source_note=flag.description,
                        confidence=0.85,
                    )
                )

            if (
                flag.source == SOURCE_SURFACE_FINISH
                and flag.tier >= ToleranceTier.TIGHT
                and not needs_grinding
            ):
                needs_grinding = True
                hints.append(
                    RoutingHint(
                        operation=RoutingOp.OUTSIDE_PROCESS,
                        work_center=None,
                        note_text=f"GRINDING REQUIRED - {flag.description}",
                        source_note=flag.description,
                        confidence=0.80,
                    )
                )

        return hints


def _parse_tolerance_value(raw: str) -> Optional[float]:
    # Bare digits are thousandths: "005" -> 0.005, "01" -> 0.001
    if "." in raw:
        return parse_decimal(raw)
    return parse_decimal("0." + raw.zfill(3))


def _dimension_action(tier: ToleranceTier) -> str:
    if tier == ToleranceTier.PRECISION:
        return "CMM INSPECT REQUIRED - FIXTURE MAY BE NEEDED"
    if tier == ToleranceTier.TIGHT:
        return "CMM INSPECT RECOMMENDED"
    return "NOTE ON ROUTING"


def _surface_action(tier: ToleranceTier) -> str:
    if tier == ToleranceTier.PRECISION:
        return "GRINDING OR LAPPING REQUIRED"
    if tier == ToleranceTier.TIGHT:
        return "GRINDING MAY BE REQUIRED"
    return "VERIFY SURFACE FINISH ACHIEVABLE"
