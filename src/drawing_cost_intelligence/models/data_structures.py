"""
Core data structures for the Drawing Cost Intelligence System.

Defines the enumerations and dataclasses shared by every analysis stage:
page text input, title block fields, manufacturing notes, routing hints,
recognized specifications, tolerance and GD&T callouts, fabrication
classification results and the aggregate DrawingData.

Ordinal classifications (tolerance tier, fabrication tier, cost impact,
bend stackup risk) are IntEnums so that the "overall" value of any
aggregate is simply ``max()`` over its constituents.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Tuple, Union


def clamp_confidence(value: float) -> float:
    """Clamp a confidence score into [0.0, 1.0]."""
    return max(0.0, min(1.0, float(value)))


# ============================================================================
# ORDINAL CLASSIFICATIONS
# ============================================================================


class ToleranceTier(IntEnum):
    """Machine-shop tolerance tightness, loosest first."""

    STANDARD = 0
    MODERATE = 1
    TIGHT = 2
    PRECISION = 3


class FabricationTier(IntEnum):
    """Fabrication-shop tolerance tightness, loosest first."""

    SHOP_STANDARD = 0
    TIGHTER_THAN_STANDARD = 1
    MACHINING = 2
    PRECISION_MACHINING = 3


class CostImpact(IntEnum):
    """Quoting cost impact of a requirement."""

    NONE = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4


class BendStackupRisk(IntEnum):
    """Press brake tolerance stackup risk."""

    NONE = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3


# ============================================================================
# CLOSED CATEGORIES
# ============================================================================


class NoteCategory(Enum):
    """Manufacturing note categories."""

    GENERAL = "General"
    DEBURR = "Deburr"
    FINISH = "Finish"
    HEAT_TREAT = "HeatTreat"
    WELD = "Weld"
    MACHINE = "Machine"
    PROCESS_CONSTRAINT = "ProcessConstraint"
    INSPECT = "Inspect"
    HARDWARE = "Hardware"
    MATERIAL = "Material"


class RoutingImpact(Enum):
    """How a note affects the routing."""

    INFORMATIONAL = "Informational"
    ADD_OPERATION = "AddOperation"
    MODIFY_OPERATION = "ModifyOperation"


class RoutingOp(Enum):
    """Routing operations a hint can target."""

    DEBURR = "Deburr"
    FINISH = "Finish"
    HEAT_TREAT = "HeatTreat"
    WELD = "Weld"
    TAP = "Tap"
    DRILL = "Drill"
    MACHINE = "Machine"
    INSPECT = "Inspect"
    HARDWARE = "Hardware"
    PROCESS_OVERRIDE = "ProcessOverride"
    OUTSIDE_PROCESS = "OutsideProcess"


class SpecCategory(Enum):
    """Industry specification families."""

    MATERIAL = "Material"
    WELDING = "Welding"
    COATING = "Coating"
    PLATING = "Plating"
    HEAT_TREAT = "HeatTreat"
    SURFACE_FINISH = "SurfaceFinish"
    INSPECTION = "Inspection"
    TESTING = "Testing"
    QUALITY = "Quality"
    PROCESS = "Process"
    CONTROLLED = "Controlled"


class ToleranceType(Enum):
    """Dimension tolerance shape."""

    BILATERAL = "Bilateral"
    UNILATERAL = "Unilateral"


class FinishUnit(Enum):
    """Surface roughness notation."""

    RA = "Ra"
    RMS = "RMS"


class GdtType(Enum):
    """GD&T geometric characteristics."""

    POSITION = "Position"
    FLATNESS = "Flatness"
    STRAIGHTNESS = "Straightness"
    CIRCULARITY = "Circularity"
    CYLINDRICITY = "Cylindricity"
    PARALLELISM = "Parallelism"
    PERPENDICULARITY = "Perpendicularity"
    ANGULARITY = "Angularity"
    CONCENTRICITY = "Concentricity"
    SYMMETRY = "Symmetry"
    PROFILE_OF_LINE = "ProfileOfLine"
    PROFILE_OF_SURFACE = "ProfileOfSurface"
    CIRCULAR_RUNOUT = "CircularRunout"
    TOTAL_RUNOUT = "TotalRunout"


class AnalysisMethod(Enum):
    """Source of the extracted data."""

    TEXT_ONLY = "TextOnly"
    VISION_AI = "VisionAI"
    HYBRID = "Hybrid"


class TitleBlockField(Enum):
    """Title block fields, valued by their DrawingData attribute name."""

    PART_NUMBER = "part_number"
    DESCRIPTION = "description"
    REVISION = "revision"
    MATERIAL = "material"
    FINISH = "finish"
    DRAWN_BY = "drawn_by"
    CHECKED_BY = "checked_by"
    SCALE = "scale"
    SHEET = "sheet"
    TOLERANCE_GENERAL = "tolerance_general"
    DATE = "date"


# Fields that drive title block confidence and the full-text fallback
KEY_TITLE_BLOCK_FIELDS: Tuple[TitleBlockField, ...] = (
    TitleBlockField.PART_NUMBER,
    TitleBlockField.MATERIAL,
    TitleBlockField.REVISION,
    TitleBlockField.DESCRIPTION,
)


# ============================================================================
# MATCH RESULT
# ============================================================================


@dataclass(frozen=True)
class Matched:
    """A successful single-field match.

    Attributes:
        value: Cleaned matched value.
        confidence: Confidence score (0.0-1.0).
        start: Start offset of the whole match in the searched text.
        end: End offset of the whole match in the searched text.
    """

    value: str
    confidence: float
    start: int = -1
    end: int = -1

    @property
    def found(self) -> bool:
        return True


@dataclass(frozen=True)
class NotFound:
    """No signal for the requested field."""

    @property
    def found(self) -> bool:
        return False


NOT_FOUND = NotFound()

MatchResult = Union[Matched, NotFound]


# ============================================================================
# PAGE TEXT INPUT
# ============================================================================


@dataclass(frozen=True)
class Word:
    """A positioned word on a PDF page (PDF coordinates, origin bottom-left)."""

    text: str
    left: float
    bottom: float
    right: float
    top: float
    font_size: float = 0.0


@dataclass(frozen=True)
class PageText:
    """Text content of one drawing page.

    Attributes:
        page_number: 1-based page number.
        full_text: Plain text of the whole page.
        words: Positioned words in reading order.
        width: Page width in PDF units.
        height: Page height in PDF units.
    """

    page_number: int
    full_text: str
    words: Tuple[Word, ...] = ()
    width: float = 0.0
    height: float = 0.0

    @property
    def has_text(self) -> bool:
        return bool(self.full_text and self.full_text.strip())


# ============================================================================
# TITLE BLOCK
# ============================================================================


@dataclass(frozen=True)
class FieldValue:
    """A field value with its confidence."""

    value: str
    confidence: float


@dataclass
class TitleBlockInfo:
    """Parsed title block fields, each with an independent confidence."""

    fields: Dict[TitleBlockField, FieldValue] = field(default_factory=dict)

    def get(self, name: TitleBlockField) -> Optional[FieldValue]:
        return self.fields.get(name)

    def value(self, name: TitleBlockField) -> Optional[str]:
        entry = self.fields.get(name)
        return entry.value if entry else None

    def confidence(self, name: TitleBlockField) -> float:
        entry = self.fields.get(name)
        return entry.confidence if entry else 0.0

    def set(self, name: TitleBlockField, value: str, confidence: float) -> None:
        self.fields[name] = FieldValue(value, clamp_confidence(confidence))

    def has(self, name: TitleBlockField) -> bool:
        return name in self.fields

    @property
    def part_number(self) -> Optional[str]:
        return self.value(TitleBlockField.PART_NUMBER)

    @property
    def material(self) -> Optional[str]:
        return self.value(TitleBlockField.MATERIAL)

    @property
    def revision(self) -> Optional[str]:
        return self.value(TitleBlockField.REVISION)

    @property
    def description(self) -> Optional[str]:
        return self.value(TitleBlockField.DESCRIPTION)

    @property
    def overall_confidence(self) -> float:
        """Mean confidence of the populated key fields, 0.0 if none."""
        scores = [
            self.fields[key].confidence
            for key in KEY_TITLE_BLOCK_FIELDS
            if key in self.fields
        ]
        return sum(scores) / len(scores) if scores else 0.0


# ============================================================================
# NOTES, ROUTING, SPECS
# ============================================================================


@dataclass
class DrawingNote:
    """A manufacturing note found on a drawing.

    Attributes:
        text: Exact matched substring, trimmed.
        category: Note category.
        impact: Routing impact.
        confidence: Confidence score (0.0-1.0).
        page_number: 1-based page number.
        span: (start, end) character offsets in the page text, if known.
    """

    text: str
    category: NoteCategory
    impact: RoutingImpact
    confidence: float
    page_number: int = 1
    span: Optional[Tuple[int, int]] = None


@dataclass
class RoutingHint:
    """A routing suggestion for downstream ERP routing.

    Attributes:
        operation: Routing operation.
        work_center: Work center code, None for outside processes.
        note_text: Routing note text.
        source_note: Drawing text that produced the hint.
        confidence: Confidence score (0.0-1.0).
    """

    operation: RoutingOp
    work_center: Optional[str]
    note_text: str
    source_note: str
    confidence: float


@dataclass
class SpecMatch:
    """A recognized industry specification reference."""

    raw_text: str
    spec_id: str
    full_name: str
    category: SpecCategory
    routing_op: Optional[RoutingOp] = None
    work_center: Optional[str] = None
    routing_note: Optional[str] = None
    confidence: float = 0.0


@dataclass
class BomEntry:
    """A bill-of-materials row read from an assembly drawing."""

    item_number: str
    part_number: str
    description: str
    quantity: int = 1
    material: Optional[str] = None
    confidence: float = 0.0


# ============================================================================
# TOLERANCES
# ============================================================================


@dataclass
class DimensionTolerance:
    """A toleranced dimension callout (inches)."""

    nominal: float
    plus: float
    minus: float
    tolerance_type: ToleranceType
    tier: ToleranceTier
    raw_text: str

    @property
    def total_band(self) -> float:
        return self.plus + self.minus


@dataclass
class SurfaceFinishCallout:
    """A surface roughness callout."""

    value: int
    unit: FinishUnit
    tier: ToleranceTier
    raw_text: str


@dataclass
class GeneralTolerance:
    """The "unless otherwise specified" tolerance block.

    Decimal place values are the stated ± tolerance in inches.
    """

    one_place: Optional[float] = None
    two_place: Optional[float] = None
    three_place: Optional[float] = None
    four_place: Optional[float] = None
    fractional_text: Optional[str] = None
    fractional: Optional[float] = None
    angular_degrees: Optional[float] = None
    tier: ToleranceTier = ToleranceTier.STANDARD
    raw_text: str = ""

    @property
    def tightest_decimal(self) -> Optional[float]:
        """Stated tolerance of the finest populated decimal place."""
        for value in (
            self.four_place,
            self.three_place,
            self.two_place,
            self.one_place,
        ):
            if value is not None:
                return value
        return None


@dataclass
class ToleranceCostFlag:
    """A cost-relevant tolerance finding."""

    description: str
    tier: ToleranceTier
    impact: CostImpact
    suggested_action: str
    source: str


@dataclass
class ToleranceAnalysis:
    """Result of tolerance analysis for one text."""

    general: Optional[GeneralTolerance] = None
    dimensions: List[DimensionTolerance] = field(default_factory=list)
    surface_finishes: List[SurfaceFinishCallout] = field(default_factory=list)
    cost_flags: List[ToleranceCostFlag] = field(default_factory=list)
    overall_tier: ToleranceTier = ToleranceTier.STANDARD

    @property
    def tightest_dimension_band(self) -> Optional[float]:
        if not self.dimensions:
            return None
        return min(d.total_band for d in self.dimensions)

    @property
    def tightest_surface_finish(self) -> Optional[int]:
        if not self.surface_finishes:
            return None
        return min(sf.value for sf in self.surface_finishes)

    @property
    def has_tolerances(self) -> bool:
        return bool(self.general or self.dimensions or self.surface_finishes)

    @property
    def summary(self) -> str:
        general = (
            f"General: {self.general.tier.name}"
            if self.general
            else "General: not specified"
        )
        return (
            f"{general}, {len(self.dimensions)} specific tolerances, "
            f"{len(self.surface_finishes)} surface finishes, "
            f"{len(self.cost_flags)} cost flags, Overall: {self.overall_tier.name}"
        )


@dataclass
class GdtCallout:
    """A GD&T feature control frame callout."""

    feature_type: GdtType
    tolerance: float
    is_diametral: bool = False
    is_mmc: bool = False
    is_lmc: bool = False
    datums: List[str] = field(default_factory=list)
    tier: ToleranceTier = ToleranceTier.STANDARD
    impact: CostImpact = CostImpact.LOW
    raw_text: str = ""
    confidence: float = 0.80


# ============================================================================
# FABRICATION
# ============================================================================


@dataclass
class FabDimensionClassification:
    """Fabrication view of one dimension tolerance."""

    nominal: float
    tolerance_band: float
    tolerance_band_mm: float
    required_iso13920_class: Optional[str]
    fab_tier: FabricationTier
    raw_text: str


@dataclass
class FabGdtClassification:
    """Fabrication view of one GD&T callout."""

    feature_type: GdtType
    tolerance: float
    tolerance_mm: float
    fab_tier: FabricationTier
    raw_text: str


@dataclass
class FabricationToleranceResult:
    """Fabrication-shop classification of a drawing's tolerances."""

    iso13920_detected: bool = False
    detected_linear_class: Optional[str] = None
    detected_geometric_class: Optional[str] = None
    linear_tighter_than_shop: bool = False
    geometric_tighter_than_shop: bool = False
    iso2768_detected: bool = False
    detected_iso2768_class: Optional[str] = None
    dimension_classifications: List[FabDimensionClassification] = field(
        default_factory=list
    )
    gdt_classifications: List[FabGdtClassification] = field(default_factory=list)
    bend_count: int = 0
    bend_reference_count: int = 0
    bend_stackup_risk: BendStackupRisk = BendStackupRisk.NONE
    overall_tier: FabricationTier = FabricationTier.SHOP_STANDARD
    requires_machining: bool = False
    requires_cmm: bool = False
    cost_flags: List[ToleranceCostFlag] = field(default_factory=list)

    @property
    def summary(self) -> str:
        parts = []
        if self.iso13920_detected:
            cls = (self.detected_linear_class or "") + (
                self.detected_geometric_class or ""
            )
            parts.append(f"ISO 13920-{cls}")
        if self.iso2768_detected and self.detected_iso2768_class:
            parts.append(f"ISO 2768-{self.detected_iso2768_class}")
        parts.append(f"{len(self.dimension_classifications)} dims")
        parts.append(f"{len(self.gdt_classifications)} GD&T")
        if self.bend_count > 0:
            parts.append(
                f"{self.bend_count} bends ({self.bend_stackup_risk.name} risk)"
            )
        if self.requires_machining:
            parts.append("MACHINING REQUIRED")
        parts.append(f"Overall: {self.overall_tier.name}")
        return ", ".join(parts)


# ============================================================================
# VISION INPUT
# ============================================================================


@dataclass
class VisionField:
    """A field value proposed by an external vision model."""

    value: Optional[str] = None
    confidence: float = 0.0

    @property
    def has_value(self) -> bool:
        return bool(self.value and self.value.strip())


@dataclass
class VisionNote:
    """A manufacturing note proposed by an external vision model."""

    text: str
    category: str = ""
    confidence: float = 0.0


@dataclass
class VisionResult:
    """Completed result from an external vision analysis."""

    success: bool = False
    fields: Dict[TitleBlockField, VisionField] = field(default_factory=dict)
    notes: List[VisionNote] = field(default_factory=list)
    error_message: Optional[str] = None

    @property
    def overall_confidence(self) -> float:
        """Mean confidence across the five core fields, counting blanks as 0."""
        core = (
            TitleBlockField.PART_NUMBER,
            TitleBlockField.DESCRIPTION,
            TitleBlockField.REVISION,
            TitleBlockField.MATERIAL,
            TitleBlockField.FINISH,
        )
        total = 0.0
        for name in core:
            vf = self.fields.get(name)
            if vf is not None and vf.has_value:
                total += vf.confidence
        return total / len(core)


# ============================================================================
# AGGREGATE
# ============================================================================


@dataclass
class DrawingData:
    """Everything extracted from one drawing.

    Title block values live in ``fields`` keyed by TitleBlockField; the
    confidence of each retained value is tracked alongside it so that later
    candidates only replace a value when they are more certain.
    """

    fields: Dict[TitleBlockField, FieldValue] = field(default_factory=dict)

    thickness_in: Optional[float] = None
    overall_length_in: Optional[float] = None
    overall_width_in: Optional[float] = None

    notes: List[DrawingNote] = field(default_factory=list)
    routing_hints: List[RoutingHint] = field(default_factory=list)
    recognized_specs: List[SpecMatch] = field(default_factory=list)
    tolerance_analysis: Optional[ToleranceAnalysis] = None
    gdt_callouts: List[GdtCallout] = field(default_factory=list)
    fabrication: Optional[FabricationToleranceResult] = None
    bom: List[BomEntry] = field(default_factory=list)
    is_assembly: bool = False

    source: Optional[str] = None
    page_count: int = 0
    method: AnalysisMethod = AnalysisMethod.TEXT_ONLY
    overall_confidence: float = 0.0
    raw_text: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    coverage_suspicious: bool = False

    def value(self, name: TitleBlockField) -> Optional[str]:
        entry = self.fields.get(name)
        return entry.value if entry else None

    def confidence(self, name: TitleBlockField) -> float:
        entry = self.fields.get(name)
        return entry.confidence if entry else 0.0

    def set_field(
        self, name: TitleBlockField, value: Optional[str], confidence: float
    ) -> None:
        """Set or clear (value None/blank) a title block field."""
        if value is None or not str(value).strip():
            self.fields.pop(name, None)
        else:
            self.fields[name] = FieldValue(value, clamp_confidence(confidence))

    def clear_field(self, name: TitleBlockField) -> None:
        self.fields.pop(name, None)

    @property
    def part_number(self) -> Optional[str]:
        return self.value(TitleBlockField.PART_NUMBER)

    @property
    def description(self) -> Optional[str]:
        return self.value(TitleBlockField.DESCRIPTION)

    @property
    def revision(self) -> Optional[str]:
        return self.value(TitleBlockField.REVISION)

    @property
    def material(self) -> Optional[str]:
        return self.value(TitleBlockField.MATERIAL)

    @property
    def finish(self) -> Optional[str]:
        return self.value(TitleBlockField.FINISH)

    @property
    def tolerance_general(self) -> Optional[str]:
        return self.value(TitleBlockField.TOLERANCE_GENERAL)

    @property
    def has_title_block(self) -> bool:
        return any(key in self.fields for key in KEY_TITLE_BLOCK_FIELDS)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to plain JSON-compatible types."""
        data = asdict(self)
        data["fields"] = {
            name.value: {"value": fv.value, "confidence": fv.confidence}
            for name, fv in self.fields.items()
        }
        return _jsonify(data)


# ============================================================================
# DRAWING PACKAGES
# ============================================================================


@dataclass
class DrawingPageInfo:
    """One page of a drawing package, analyzed on its own.

    Attributes:
        pdf_path: File the page came from.
        page_number: 1-based page number within that file.
        title_block: Title block fields found on the page.
        has_text: Whether the page carried extractable text.
        is_assembly: Page looks like an assembly or weldment drawing.
        has_bom: Page carries a bill-of-materials header.
        bom: BOM rows read from the page.
        confidence: Title block confidence for the page.
    """

    pdf_path: str
    page_number: int
    title_block: TitleBlockInfo = field(default_factory=TitleBlockInfo)
    has_text: bool = False
    is_assembly: bool = False
    has_bom: bool = False
    bom: List[BomEntry] = field(default_factory=list)
    notes: List[DrawingNote] = field(default_factory=list)
    routing_hints: List[RoutingHint] = field(default_factory=list)
    recognized_specs: List[SpecMatch] = field(default_factory=list)
    gdt_callouts: List[GdtCallout] = field(default_factory=list)
    tolerance_analysis: Optional[ToleranceAnalysis] = None
    confidence: float = 0.0

    @property
    def part_number(self) -> Optional[str]:
        return self.title_block.part_number

    @property
    def description(self) -> Optional[str]:
        return self.title_block.description

    @property
    def revision(self) -> Optional[str]:
        return self.title_block.revision

    @property
    def material(self) -> Optional[str]:
        return self.title_block.material

    @property
    def sheet_info(self) -> Optional[str]:
        return self.title_block.value(TitleBlockField.SHEET)


def _jsonify(obj: Any) -> Any:
    """Recursively convert enums and tuples to JSON-friendly values."""
    if isinstance(obj, Enum):
        return obj.name if isinstance(obj, IntEnum) else obj.value
    if isinstance(obj, dict):
        return {
            (k.value if isinstance(k, Enum) else k): _jsonify(v)
            for k, v in obj.items()
        }
    if isinstance(obj, (list, tuple)):
        return [_jsonify(v) for v in obj]
    return obj
