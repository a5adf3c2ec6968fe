"""Data models for the drawing cost intelligence system."""

from .data_structures import (
    AnalysisMethod,
    BendStackupRisk,
    BomEntry,
    CostImpact,
    DimensionTolerance,
    DrawingData,
    DrawingNote,
    DrawingPageInfo,
    FabricationTier,
    FabricationToleranceResult,
    FieldValue,
    GdtCallout,
    GdtType,
    GeneralTolerance,
    Matched,
    NOT_FOUND,
    NotFound,
    NoteCategory,
    PageText,
    RoutingHint,
    RoutingImpact,
    RoutingOp,
    SpecCategory,
    SpecMatch,
    SurfaceFinishCallout,
    TitleBlockField,
    TitleBlockInfo,
    ToleranceAnalysis,
    ToleranceCostFlag,
    ToleranceTier,
    VisionField,
    VisionNote,
    VisionResult,
    Word,
)

__all__ = [
    "AnalysisMethod",
    "BendStackupRisk",
    "BomEntry",
    "CostImpact",
    "DimensionTolerance",
    "DrawingData",
    "DrawingNote",
    "DrawingPageInfo",
    "FabricationTier",
    "FabricationToleranceResult",
    "FieldValue",
    "GdtCallout",
    "GdtType",
    "GeneralTolerance",
    "Matched",
    "NOT_FOUND",
    "NotFound",
    "NoteCategory",
    "PageText",
    "RoutingHint",
    "RoutingImpact",
    "RoutingOp",
    "SpecCategory",
    "SpecMatch",
    "SurfaceFinishCallout",
    "TitleBlockField",
    "TitleBlockInfo",
    "ToleranceAnalysis",
    "ToleranceCostFlag",
    "ToleranceTier",
    "VisionField",
    "VisionNote",
    "VisionResult",
    "Word",
]
