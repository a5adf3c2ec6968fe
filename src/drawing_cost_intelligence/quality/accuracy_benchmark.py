"""
Extraction accuracy benchmark for the Drawing Cost Intelligence System.

Compares analyzer output against hand-labelled ground truth and reports
precision, recall and F1 per title block field and for manufacturing notes.

A test directory holds drawings alongside ``*.gt.json`` ground-truth files:

    {
        "pdfFileName": "12345-A.pdf",
        "drawingType": "Part",
        "partNumber": "12345-A",
        "material": "A36 STEEL",
        "manufacturingNotes": ["BREAK ALL SHARP EDGES", "..."]
    }

Keys are matched case-insensitively; absent keys mean the field is blank on
the drawing.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    Union,
)

from tqdm import tqdm

from ..models.data_structures import DrawingData, PageText, TitleBlockField
from ..utils.error_handlers import GroundTruthError

if TYPE_CHECKING:
    from ..orchestration.drawing_analyzer import DrawingAnalyzer

logger = logging.getLogger(__name__)

GROUND_TRUTH_GLOB = "*.gt.json"

# Benchmark field name -> ground truth key (lower case) and extracted field
BENCHMARK_FIELDS = (
    ("PartNumber", "partnumber", TitleBlockField.PART_NUMBER),
    ("Description", "description", TitleBlockField.DESCRIPTION),
    ("Revision", "revision", TitleBlockField.REVISION),
    ("Material", "material", TitleBlockField.MATERIAL),
    ("Finish", "finish", TitleBlockField.FINISH),
    ("DrawnBy", "drawnby", TitleBlockField.DRAWN_BY),
    ("Scale", "scale", TitleBlockField.SCALE),
    ("SheetInfo", "sheetinfo", TitleBlockField.SHEET),
    ("ToleranceGeneral", "tolerancegeneral", TitleBlockField.TOLERANCE_GENERAL),
)

PageLoader = Callable[[Path], Sequence[PageText]]


class MatchType(Enum):
    """Outcome of comparing one extracted field against ground truth."""

    TRUE_POSITIVE_EXACT = "TruePositiveExact"
    TRUE_POSITIVE_FUZZY = "TruePositiveFuzzy"
    FALSE_POSITIVE = "FalsePositive"
    FALSE_NEGATIVE = "FalseNegative"
    TRUE_NEGATIVE = "TrueNegative"
    MISMATCH = "Mismatch"


_TRUE_POSITIVES = (MatchType.TRUE_POSITIVE_EXACT, MatchType.TRUE_POSITIVE_FUZZY)
_FALSE_POSITIVES = (MatchType.FALSE_POSITIVE, MatchType.MISMATCH)


def _ratio(numerator: int, denominator: int) -> float:
    return numerator / denominator if denominator > 0 else 1.0


def _f1(precision: float, recall: float) -> float:
    total = precision + recall
    return 2 * precision * recall / total if total > 0 else 0.0


@dataclass
class ExtractionGroundTruth:
    """Hand-labelled expected values for one drawing."""

    pdf_file_name: str
    drawing_type: Optional[str] = None
    fields: Dict[str, Optional[str]] = field(default_factory=dict)
    manufacturing_notes: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExtractionGroundTruth":
        """
        Build ground truth from a parsed JSON object.

        Raises:
            ValueError: If the object has no ``pdfFileName``.
        """
        lowered = {str(k).lower(): v for k, v in data.items()}

        pdf_file_name = lowered.get("pdffilename")
        if not pdf_file_name:
            raise ValueError("Ground truth is missing pdfFileName")

        fields: Dict[str, Optional[str]] = {}
        for name, key, _ in BENCHMARK_FIELDS:
            value = lowered.get(key)
            fields[name] = None if value is None else str(value)

        notes = lowered.get("manufacturingnotes") or []
        if not isinstance(notes, list):
            raise ValueError("manufacturingNotes must be a list")

        return cls(
            pdf_file_name=str(pdf_file_name),
            drawing_type=lowered.get("drawingtype"),
            fields=fields,
            manufacturing_notes=[str(n) for n in notes],
        )


def load_ground_truth(path: Union[str, Path]) -> ExtractionGroundTruth:
    """
    Read one ground-truth JSON file.

    Raises:
        GroundTruthError: If the file cannot be read or is malformed.
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError("Ground truth must be a JSON object")
        return ExtractionGroundTruth.from_dict(data)
    except (OSError, ValueError) as e:
        # json.JSONDecodeError is a ValueError
        raise GroundTruthError(
            f"Invalid ground truth file: {e}", path=str(path), original_error=e
        ) from e


@dataclass
class FieldComparison:
    field_name: str
    expected: str
    actual: str
    match: MatchType


@dataclass
class FieldMetrics:
    """Confusion counts for one field across all drawings."""

    true_positives: int = 0
    false_positives: int = 0
    false_negatives: int = 0
    true_negatives: int = 0
    total: int = 0

    @property
    def precision(self) -> float:
        return _ratio(self.true_positives, self.true_positives + self.false_positives)

    @property
    def recall(self) -> float:
        return _ratio(self.true_positives, self.true_positives + self.false_negatives)

    @property
    def f1(self) -> float:
        return _f1(self.precision, self.recall)


@dataclass
class NoteListMetrics:
    """Confusion counts for manufacturing note lists."""

    true_positives: int = 0
    false_positives: int = 0
    false_negatives: int = 0
    expected_count: int = 0
    actual_count: int = 0

    @property
    def precision(self) -> float:
        return _ratio(self.true_positives, self.true_positives + self.false_positives)

    @property
    def recall(self) -> float:
        return _ratio(self.true_positives, self.true_positives + self.false_negatives)

    @property
    def f1(self) -> float:
        return _f1(self.precision, self.recall)


@dataclass
class DrawingComparisonResult:
    pdf_file_name: str
    drawing_type: Optional[str] = None
    fields: List[FieldComparison] = field(default_factory=list)
    notes_metrics: Optional[NoteListMetrics] = None


@dataclass
class BenchmarkReport:
    """Benchmark results across all test drawings."""

    results: List[DrawingComparisonResult] = field(default_factory=list)
    skipped: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None
    field_summary: Dict[str, FieldMetrics] = field(default_factory=dict)
    notes_summary: Optional[NoteListMetrics] = None

    def calculate_summary(self) -> None:
        """Aggregate per-drawing comparisons into per-field and note totals."""
        if not self.results:
            return

        self.field_summary = {}
        for result in self.results:
            for comparison in result.fields:
                metrics = self.field_summary.setdefault(
                    comparison.field_name, FieldMetrics()
                )
                metrics.total += 1
                if comparison.match in _TRUE_POSITIVES:
                    metrics.true_positives += 1
                elif comparison.match in _FALSE_POSITIVES:
                    metrics.false_positives += 1
                elif comparison.match == MatchType.FALSE_NEGATIVE:
                    metrics.false_negatives += 1
                else:
                    metrics.true_negatives += 1

        notes = NoteListMetrics()
        for result in self.results:
            m = result.notes_metrics
            if m is None:
                continue
            notes.true_positives += m.true_positives
            notes.false_positives += m.false_positives
            notes.false_negatives += m.false_negatives
            notes.expected_count += m.expected_count
            notes.actual_count += m.actual_count
        self.notes_summary = notes

    def format_report(self) -> str:
        """Format the report as human-readable text."""
        lines = [
            "=== PDF Extraction Accuracy Benchmark ===",
            f"Drawings tested: {len(self.results)}, Skipped: {len(self.skipped)}",
            "",
        ]
        if self.error:
            lines.append(f"Error: {self.error}")

        if self.field_summary:
            lines.append("--- Per-Field Metrics ---")
            lines.append(
                f"{'Field':<20} {'Precision':>10} {'Recall':>10} {'F1':>10} "
                f"{'TP':>5} {'FP':>5} {'FN':>5}"
            )
            for name, m in self.field_summary.items():
                lines.append(
                    f"{name:<20} {m.precision:>10.1%} {m.recall:>10.1%} {m.f1:>10.1%} "
                    f"{m.true_positives:>5} {m.false_positives:>5} {m.false_negatives:>5}"
                )

        if self.notes_summary is not None:
            n = self.notes_summary
            lines.append("")
            lines.append("--- Notes Metrics ---")
            lines.append(
                f"Precision: {n.precision:.1%}, Recall: {n.recall:.1%}, F1: {n.f1:.1%}"
            )
            lines.append(
                f"TP: {n.true_positives}, FP: {n.false_positives}, FN: {n.false_negatives}"
            )

        return "\n".join(lines) + "\n"


def compare_field(
    field_name: str, expected: Optional[str], actual: Optional[str]
) -> FieldComparison:
    """
    Compare one extracted value with its expected value.

    Exact means equal ignoring case and surrounding whitespace; fuzzy means
    either value contains the other.
    """
    expected_empty = not expected or not expected.strip()
    actual_empty = not actual or not actual.strip()

    if expected_empty and actual_empty:
        return FieldComparison(field_name, "", "", MatchType.TRUE_NEGATIVE)
    if expected_empty:
        return FieldComparison(field_name, "", actual, MatchType.FALSE_POSITIVE)
    if actual_empty:
        return FieldComparison(field_name, expected, "", MatchType.FALSE_NEGATIVE)

    exp = expected.strip().lower()
    act = actual.strip().lower()
    if exp == act:
        match = MatchType.TRUE_POSITIVE_EXACT
    elif act in exp or exp in act:
        match = MatchType.TRUE_POSITIVE_FUZZY
    else:
        match = MatchType.MISMATCH
    return FieldComparison(field_name, expected, actual, match)


def _fuzzy_contains(a: str, b: str) -> bool:
    a, b = a.lower(), b.lower()
    return a in b or b in a


def compare_note_lists(
    expected: Optional[Sequence[str]], actual: Optional[Sequence[str]]
) -> NoteListMetrics:
    """Match note lists by case-insensitive containment in either direction."""
    expected = list(expected or [])
    actual = list(actual or [])
    metrics = NoteListMetrics(expected_count=len(expected), actual_count=len(actual))

    for exp in expected:
        if any(_fuzzy_contains(exp, act) for act in actual):
            metrics.true_positives += 1
        else:
            metrics.false_negatives += 1

    for act in actual:
        if not any(_fuzzy_contains(exp, act) for exp in expected):
            metrics.false_positives += 1

    return metrics


class AccuracyBenchmark:
    """
    Runs the analyzer over a labelled test directory.

    Text extraction from drawing files happens outside this package, so the
    caller supplies ``page_loader`` to turn a drawing path into page text.
    """

    def __init__(self, show_progress: bool = False) -> None:
        self.show_progress = show_progress

    def run(
        self,
        test_dir: Union[str, Path],
        analyzer: "DrawingAnalyzer",
        page_loader: PageLoader,
    ) -> BenchmarkReport:
        """
        Analyze every drawing with ground truth in ``test_dir`` and score it.

        Args:
            test_dir: Directory holding drawings and ``*.gt.json`` files.
            analyzer: Analyzer under test.
            page_loader: Callable returning page text for a drawing path.

        Returns:
            BenchmarkReport with summary metrics calculated. Directory
            problems are reported in ``error``; per-file problems in
            ``skipped``.
        """
        report = BenchmarkReport()
        test_dir = Path(test_dir)

        if not test_dir.is_dir():
            report.error = f"Test directory not found: {test_dir}"
            logger.warning(report.error)
            return report

        gt_files = sorted(test_dir.glob(GROUND_TRUTH_GLOB))
        if not gt_files:
            report.error = "No ground truth files (*.gt.json) found in test directory"
            logger.warning(report.error)
            return report

        logger.info(f"Benchmarking {len(gt_files)} drawings in {test_dir}")

        for gt_file in tqdm(gt_files, desc="Benchmark", disable=not self.show_progress):
            try:
                gt = load_ground_truth(gt_file)
            except GroundTruthError as e:
                logger.warning(f"Skipping {gt_file.name}: {e}")
                report.skipped[gt_file.name] = str(e)
                continue

            drawing_path = test_dir / gt.pdf_file_name
            if not drawing_path.exists():
                report.skipped[gt.pdf_file_name] = "PDF file not found"
                continue

            try:
                pages = page_loader(drawing_path)
                extracted = analyzer.analyze_pages(pages, source=str(drawing_path))
            except Exception as e:
                logger.error(f"Failed to analyze {drawing_path}: {e}", exc_info=True)
                report.skipped[gt.pdf_file_name] = str(e)
                continue

            report.results.append(self.compare_result(gt, extracted))

        report.calculate_summary()
        logger.info(
            f"Benchmark complete: {len(report.results)} compared, "
            f"{len(report.skipped)} skipped"
        )
        return report

    @staticmethod
    def compare_result(
        gt: ExtractionGroundTruth, extracted: DrawingData
    ) -> DrawingComparisonResult:
        """Compare one drawing's extraction against its ground truth."""
        result = DrawingComparisonResult(
            pdf_file_name=gt.pdf_file_name, drawing_type=gt.drawing_type
        )
        for name, _, tb_field in BENCHMARK_FIELDS:
            result.fields.append(
                compare_field(name, gt.fields.get(name), extracted.value(tb_field))
            )
        result.notes_metrics = compare_note_lists(
            gt.manufacturing_notes, [n.text for n in extracted.notes]
        )
        return result
