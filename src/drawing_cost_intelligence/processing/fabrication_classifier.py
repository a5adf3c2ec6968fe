"""
Fabrication tolerance classification for the Drawing Cost Intelligence System.

Reframes tolerance and GD&T results for a sheet metal / welding shop rather
than a machine shop:
    - standard tolerances are ISO 13920 BF (weldments) or ISO 2768-m
    - ±0.005" is machining territory, not "standard"
    - press brake stackup across bend-to-bend dimensions is a cost driver

Runs after ToleranceAnalyzer and GdtExtractor.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from ..models.data_structures import (
    BendStackupRisk,
    CostImpact,
    FabDimensionClassification,
    FabGdtClassification,
    FabricationTier,
    FabricationToleranceResult,
    GdtCallout,
    GdtType,
    RoutingHint,
    RoutingOp,
    ToleranceAnalysis,
    ToleranceCostFlag,
    ToleranceTier,
)
from ..utils.text_utils import inches_to_mm
from .iso_tolerance import (
    GEOMETRIC_CLASSES,
    LINEAR_CLASSES,
    classify_linear_13920,
    is_tighter_geometric,
    is_tighter_linear,
)

logger = logging.getLogger(__name__)

_ISO13920_PATTERN = re.compile(
    r"ISO\s*13920\s*[-–:]?\s*(?:CLASS\s*)?([A-D])(?:\s*[-/]?\s*([E-H]))?\b",
    re.IGNORECASE,
)
_ISO2768_PATTERN = re.compile(
    r"ISO\s*2768(?:-1)?\s*[-–:]?\s*([fmcv])(?:\s*[-/]?\s*([HKL]))?\b",
    re.IGNORECASE,
)

# Press brake bend indicators
_BEND_PATTERN = re.compile(
    r"BEND|BRAKE|FOLD|↑|↓|FLANGE|BEND\s*(?:RADIUS|ANGLE|R)", re.IGNORECASE
)
# Dimensions referenced to bends
_BEND_REFERENCE_PATTERN = re.compile(
    r"(?:FROM|TO|BETWEEN)\s+BEND|BEND\s+(?:TO|LINE)|INSIDE\s+(?:OF\s+)?BEND",
    re.IGNORECASE,
)

# (precision machining, machining, tighter than standard) limits in mm
_FLATNESS_LIMITS_MM = (0.5, 1.0, 1.5)
_ORIENTATION_LIMITS_MM = (0.5, 1.0, 2.0)
_POSITION_LIMITS_MM = (0.5, 1.5, 3.0)
_DEFAULT_LIMITS_MM = (0.5, 1.0, 2.0)

_GDT_LIMITS_MM: Dict[GdtType, Tuple[float, float, float]] = {
    GdtType.FLATNESS: _FLATNESS_LIMITS_MM,
    GdtType.STRAIGHTNESS: _FLATNESS_LIMITS_MM,
    GdtType.PERPENDICULARITY: _ORIENTATION_LIMITS_MM,
    GdtType.PARALLELISM: _ORIENTATION_LIMITS_MM,
    GdtType.ANGULARITY: _ORIENTATION_LIMITS_MM,
    GdtType.POSITION: _POSITION_LIMITS_MM,
}

SOURCE_FABRICATION = "Fabrication tolerance analysis"
SOURCE_BEND_STACKUP = "Bend stackup analysis"


@dataclass
class FabricationConfig:
    """
    Configuration for fabrication classification.

    Attributes:
        shop_linear_class: Shop standard ISO 13920 linear class (A-D).
        shop_geometric_class: Shop standard ISO 13920 geometric class (E-H).
        precision_machining_threshold: Half band (in) at or below which a
            dimension needs precision machining.
        machining_threshold: Half band (in) at or below which a dimension
            needs machining.
    """

    shop_linear_class: str = "B"
    shop_geometric_class: str = "F"
    precision_machining_threshold: float = 0.005
    machining_threshold: float = 0.010

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        self.shop_linear_class = self.shop_linear_class.upper()
        self.shop_geometric_class = self.shop_geometric_class.upper()
        if self.shop_linear_class not in LINEAR_CLASSES:
            raise ValueError(
                f"shop_linear_class must be one of {LINEAR_CLASSES}, "
                f"got {self.shop_linear_class}"
            )
        if self.shop_geometric_class not in GEOMETRIC_CLASSES:
            raise ValueError(
                f"shop_geometric_class must be one of {GEOMETRIC_CLASSES}, "
                f"got {self.shop_geometric_class}"
            )
        if not 0.0 < self.precision_machining_threshold <= self.machining_threshold:
            raise ValueError(
                f"thresholds must satisfy 0 < precision_machining <= machining, "
                f"got {self.precision_machining_threshold}, {self.machining_threshold}"
            )


class FabricationToleranceClassifier:
    """
    Classifies a drawing's tolerances from the fabrication shop's perspective.

    Attributes:
        config: Fabrication configuration.
    """

    def __init__(self, config: Optional[FabricationConfig] = None) -> None:
        self.config = config or FabricationConfig()

    def classify(
        self,
        text: Optional[str],
        tolerance_analysis: Optional[ToleranceAnalysis] = None,
        gdt_callouts: Optional[Sequence[GdtCallout]] = None,
    ) -> FabricationToleranceResult:
        """
        Classify drawing tolerances for fabrication.

        Args:
            text: Full drawing text.
            tolerance_analysis: Result of ToleranceAnalyzer.analyze.
            gdt_callouts: Result of GdtExtractor.extract.

        Returns:
            FabricationToleranceResult.
        """
        result = FabricationToleranceResult()
        text = text or ""

        self._detect_iso_standards(text, result)

        if tolerance_analysis is not None:
            for dim in tolerance_analysis.dimensions:
                band_mm = inches_to_mm(dim.total_band)
                required = classify_linear_13920(inches_to_mm(dim.nominal), band_mm)
                tier = self.classify_dimension(dim.total_band, required)
                result.dimension_classifications.append(
                    FabDimensionClassification(
                        nominal=dim.nominal,
                        tolerance_band=dim.total_band,
                        tolerance_band_mm=band_mm,
                        required_iso13920_class=required,
                        fab_tier=tier,
                        raw_text=dim.raw_text,
                    )
                )
                self._mark_requirements(result, tier)

        for callout in gdt_callouts or ():
            tolerance_mm = inches_to_mm(callout.tolerance)
            tier = self.classify_gdt(callout.feature_type, tolerance_mm)
            result.gdt_classifications.append(
                FabGdtClassification(
                    feature_type=callout.feature_type,
                    tolerance=callout.tolerance,
                    tolerance_mm=tolerance_mm,
                    fab_tier=tier,
                    raw_text=callout.raw_text,
                )
            )
            self._mark_requirements(result, tier)

        self._analyze_bend_stackup(text, result)
        result.overall_tier = self._overall_tier(result)
        result.cost_flags = self._cost_flags(result)

        logger.debug(f"Fabrication classification: {result.summary}")
        return result

    def classify_dimension(
        self, tolerance_band: float, required_class: Optional[str]
    ) -> FabricationTier:
        """
        Fabrication tier of one dimension.

        Args:
            tolerance_band: Total band in inches.
            required_class: ISO 13920 linear class the band requires, if any.
        """
        half_band = tolerance_band / 2.0
        if half_band <= self.config.precision_machining_threshold:
            return FabricationTier.PRECISION_MACHINING
        if half_band <= self.config.machining_threshold:
            return FabricationTier.MACHINING
        if required_class is not None and is_tighter_linear(
            required_class, self.config.shop_linear_class
        ):
            return FabricationTier.TIGHTER_THAN_STANDARD
        return FabricationTier.SHOP_STANDARD

    def classify_gdt(self, feature_type: GdtType, tolerance_mm: float) -> FabricationTier:
        precision, machining, tighter = _GDT_LIMITS_MM.get(feature_type, _DEFAULT_LIMITS_MM)
        if tolerance_mm <= precision:
            return FabricationTier.PRECISION_MACHINING
        if tolerance_mm <= machining:
            return FabricationTier.MACHINING
        if tolerance_mm <= tighter:
            return FabricationTier.TIGHTER_THAN_STANDARD
        return FabricationTier.SHOP_STANDARD

    def _detect_iso_standards(self, text: str, result: FabricationToleranceResult) -> None:
        match = _ISO13920_PATTERN.search(text)
        if match:
            result.iso13920_detected = True
            result.detected_linear_class = match.group(1).upper()
            result.linear_tighter_than_shop = is_tighter_linear(
                result.detected_linear_class, self.config.shop_linear_class
            )
            if match.group(2):
                result.detected_geometric_class = match.group(2).upper()
                result.geometric_tighter_than_shop = is_tighter_geometric(
                    result.detected_geometric_class, self.config.shop_geometric_class
                )

        match = _ISO2768_PATTERN.search(text)
        if match:
            result.iso2768_detected = True
            result.detected_iso2768_class = match.group(1).lower()

    @staticmethod
    def _mark_requirements(result: FabricationToleranceResult, tier: FabricationTier) -> None:
        if tier >= FabricationTier.MACHINING:
            result.requires_machining = True
        if tier >= FabricationTier.TIGHTER_THAN_STANDARD:
            result.requires_cmm = True

    @staticmethod
    def _analyze_bend_stackup(text: str, result: FabricationToleranceResult) -> None:
        if not text.strip():
            return
        result.bend_count = len(_BEND_PATTERN.findall(text))
        result.bend_reference_count = len(_BEND_REFERENCE_PATTERN.findall(text))
        result.bend_stackup_risk = bend_stackup_risk(
            result.bend_count, result.bend_reference_count
        )

    @staticmethod
    def _overall_tier(result: FabricationToleranceResult) -> FabricationTier:
        tiers = [FabricationTier.SHOP_STANDARD]
        if result.linear_tighter_than_shop or result.geometric_tighter_than_shop:
            tiers.append(FabricationTier.TIGHTER_THAN_STANDARD)
        if result.bend_stackup_risk == BendStackupRisk.HIGH:
            tiers.append(FabricationTier.TIGHTER_THAN_STANDARD)
        tiers.extend(d.fab_tier for d in result.dimension_classifications)
        tiers.extend(g.fab_tier for g in result.gdt_classifications)
        return max(tiers)

    def _cost_flags(self, result: FabricationToleranceResult) -> List[ToleranceCostFlag]:
        flags: List[ToleranceCostFlag] = []
        shop_class = self.config.shop_linear_class + self.config.shop_geometric_class

        if result.iso13920_detected:
            detected = (result.detected_linear_class or "") + (
                result.detected_geometric_class or ""
            )
            if result.linear_tighter_than_shop or result.geometric_tighter_than_shop:
                flags.append(
                    ToleranceCostFlag(
                        description=(
                            f"Drawing specifies ISO 13920-{detected}, "
                            f"shop standard is {shop_class}"
                        ),
                        tier=ToleranceTier.TIGHT,
                        impact=CostImpact.HIGH,
                        suggested_action="TIGHTER THAN SHOP STANDARD - ADDITIONAL LABOR/SETUP REQUIRED",
                        source="ISO 13920 comparison",
                    )
                )
            else:
                flags.append(
                    ToleranceCostFlag(
                        description=(
                            f"Drawing specifies ISO 13920-{detected} "
                            f"(within shop standard {shop_class})"
                        ),
                        tier=ToleranceTier.STANDARD,
                        impact=CostImpact.NONE,
                        suggested_action="STANDARD FABRICATION TOLERANCES",
                        source="ISO 13920 comparison",
                    )
                )

        machining_dims = [
            d for d in result.dimension_classifications
            if d.fab_tier >= FabricationTier.MACHINING
        ]
        if machining_dims:
            tightest = min(machining_dims, key=lambda d: d.tolerance_band).raw_text
            flags.append(
                ToleranceCostFlag(
                    description=(
                        f"{len(machining_dims)} dimension(s) require machining "
                        f"(tightest: {tightest})"
                    ),
                    tier=ToleranceTier.PRECISION,
                    impact=CostImpact.CRITICAL,
                    suggested_action="MACHINING OPERATIONS REQUIRED - SIGNIFICANT COST INCREASE",
                    source=SOURCE_FABRICATION,
                )
            )

        tighter_dims = [
            d for d in result.dimension_classifications
            if d.fab_tier == FabricationTier.TIGHTER_THAN_STANDARD
        ]
        if tighter_dims:
            flags.append(
                ToleranceCostFlag(
                    description=(
                        f"{len(tighter_dims)} dimension(s) tighter than shop standard "
                        f"(ISO 13920-A territory)"
                    ),
                    tier=ToleranceTier.MODERATE,
                    impact=CostImpact.MEDIUM,
                    suggested_action="EXTRA SETUP/LABOR FOR TIGHTER TOLERANCES",
                    source=SOURCE_FABRICATION,
                )
            )

        machining_gdt = [
            g for g in result.gdt_classifications
            if g.fab_tier >= FabricationTier.MACHINING
        ]
        if machining_gdt:
            flags.append(
                ToleranceCostFlag(
                    description=f"{len(machining_gdt)} GD&T callout(s) require machining",
                    tier=ToleranceTier.PRECISION,
                    impact=CostImpact.CRITICAL,
                    suggested_action="GD&T BEYOND FAB CAPABILITY - MACHINING REQUIRED",
                    source="Fabrication GD&T analysis",
                )
            )

        if result.bend_stackup_risk >= BendStackupRisk.MEDIUM:
            high = result.bend_stackup_risk == BendStackupRisk.HIGH
            flags.append(
                ToleranceCostFlag(
                    description=(
                        f"Press brake stackup risk: {result.bend_count} bends, "
                        f"{result.bend_reference_count} bend-to-bend references"
                    ),
                    tier=ToleranceTier.TIGHT if high else ToleranceTier.MODERATE,
                    impact=CostImpact.HIGH if high else CostImpact.MEDIUM,
                    suggested_action=(
                        "HIGH STACKUP RISK - MAY NEED INTERMEDIATE INSPECTION OR FIXTURE"
                        if high
                        else "MODERATE STACKUP RISK - VERIFY BEND SEQUENCE"
                    ),
                    source="Press brake analysis",
                )
            )

        return flags

    def to_routing_hints(
        self, result: Optional[FabricationToleranceResult]
    ) -> List[RoutingHint]:
        """Routing hints for machining, CMM inspection and high bend stackup."""
        hints: List[RoutingHint] = []
        if result is None:
            return hints

        if result.requires_machining:
            hints.append(
                RoutingHint(
                    operation=RoutingOp.MACHINE,
                    work_center=None,
                    note_text="MACHINING REQUIRED - TOLERANCES TIGHTER THAN FAB STANDARD",
                    source_note=SOURCE_FABRICATION,
                    confidence=0.85,
                )
            )

        if result.requires_cmm:
            hints.append(
                RoutingHint(
                    operation=RoutingOp.INSPECT,
                    work_center=None,
                    note_text="CMM INSPECT - TIGHT TOLERANCES ON FABRICATED PART",
                    source_note=SOURCE_FABRICATION,
                    confidence=0.80,
                )
            )

        if result.bend_stackup_risk == BendStackupRisk.HIGH:
            hints.append(
                RoutingHint(
                    operation=RoutingOp.INSPECT,
                    work_center=None,
                    note_text=(
                        f"PRESS BRAKE STACKUP RISK - {result.bend_count} BENDS "
                        f"WITH INTER-BEND DIMS"
                    ),
                    source_note=SOURCE_BEND_STACKUP,
                    confidence=0.75,
                )
            )

        return hints


def bend_stackup_risk(bend_count: int, reference_count: int) -> BendStackupRisk:
    """Press brake stackup risk from bend and bend-reference counts."""
    if bend_count >= 6 and reference_count >= 2:
        return BendStackupRisk.HIGH
    if bend_count >= 4 and reference_count >= 1:
        return BendStackupRisk.MEDIUM
    if bend_count >= 3:
        return BendStackupRisk.LOW
    return BendStackupRisk.NONE
