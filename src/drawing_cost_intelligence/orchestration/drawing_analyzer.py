"""
Drawing analysis orchestrator for the Drawing Cost Intelligence System.

Runs every extraction stage over a drawing's page text and assembles the
aggregate DrawingData:

1. Per page, in parallel: title block, manufacturing notes, spec references,
   BOM rows and the assembly flag
2. Drawing-wide: tolerances, GD&T, fabrication classification
3. Routing hints from every stage
4. Validation corrections and coverage warnings
5. Optional merge of an external vision result
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import yaml
from tqdm import tqdm

from ..models.data_structures import (
    AnalysisMethod,
    BomEntry,
    DrawingData,
    DrawingNote,
    NoteCategory,
    PageText,
    RoutingHint,
    RoutingImpact,
    SpecMatch,
    TitleBlockField,
    TitleBlockInfo,
    VisionResult,
    clamp_confidence,
)
from ..processing.bom_extractor import BomConfig, BomExtractor
from ..processing.fabrication_classifier import (
    FabricationConfig,
    FabricationToleranceClassifier,
)
from ..processing.gdt_extractor import GdtConfig, GdtExtractor
from ..processing.note_extractor import DrawingNoteExtractor, NoteExtractorConfig
from ..processing.spec_recognizer import SpecRecognizer
from ..processing.title_block_parser import TitleBlockConfig, TitleBlockParser
from ..processing.tolerance_analyzer import ToleranceAnalyzer, ToleranceConfig
from ..quality.accuracy_benchmark import BENCHMARK_FIELDS
from ..quality.confidence_calibrator import CalibrationConfig, ConfidenceCalibrator
from ..quality.extraction_validator import (
    ExtractionValidator,
    Severity,
    ValidatorConfig,
)
from ..utils.config_loader import Config, SystemConfig
from ..utils.error_handlers import ConfigurationError
from ..utils.logging_setup import setup_logging_from_config

logger = logging.getLogger(__name__)

PAGE_BREAK = "\n--- PAGE BREAK ---\n"
NO_TEXT_WARNING = "No extractable text - drawing may be scanned or image-only"

# Overall confidence contributions for populated key fields and notes
_FIELD_CONFIDENCE_WEIGHTS = (
    (TitleBlockField.PART_NUMBER, 0.8),
    (TitleBlockField.MATERIAL, 0.8),
    (TitleBlockField.DESCRIPTION, 0.7),
    (TitleBlockField.REVISION, 0.9),
)
_NOTES_CONFIDENCE_WEIGHT = 0.7

# Calibration field accuracy is keyed by benchmark field name
_CALIBRATION_KEYS = {tb_field: name.lower() for name, _, tb_field in BENCHMARK_FIELDS}

_COMPANION_SUBFOLDERS = ("Drawings", "PDF")


@dataclass
class AnalyzerConfig:
    """
    Configuration for the drawing analyzer and its components.

    Attributes:
        title_block: Title block parser configuration.
        notes: Note extractor configuration.
        bom: Bill-of-materials extractor configuration.
        tolerance: Tolerance analyzer configuration.
        gdt: GD&T extractor configuration.
        fabrication: Fabrication classifier configuration.
        calibration: Confidence calibration configuration.
        validation: Extraction validator configuration.
        max_workers: Thread pool size for page and batch analysis.
        show_progress: Show a progress bar for batch analysis.
        apply_corrections: Clear values the validator marks as errors.
    """

    title_block: TitleBlockConfig = field(default_factory=TitleBlockConfig)
    notes: NoteExtractorConfig = field(default_factory=NoteExtractorConfig)
    bom: BomConfig = field(default_factory=BomConfig)
    tolerance: ToleranceConfig = field(default_factory=ToleranceConfig)
    gdt: GdtConfig = field(default_factory=GdtConfig)
    fabrication: FabricationConfig = field(default_factory=FabricationConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    validation: ValidatorConfig = field(default_factory=ValidatorConfig)
    max_workers: int = 4
    show_progress: bool = False
    apply_corrections: bool = True

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")

    @classmethod
    def from_system_config(cls, system_config: SystemConfig) -> "AnalyzerConfig":
        """
        Build analyzer configuration from loaded YAML sections.

        Args:
            system_config: Loaded system configuration.

        Returns:
            AnalyzerConfig with every component configured.

        Raises:
            ConfigurationError: If a section has unknown keys or invalid values.
        """
        tolerance_section = dict(system_config.tolerance)
        gdt_section = tolerance_section.pop("gdt", None) or {}
        orchestration = system_config.orchestration

        sections: Tuple[Tuple[str, Any, Dict[str, Any]], ...] = (
            ("title_block", TitleBlockConfig, system_config.title_block),
            ("notes", NoteExtractorConfig, system_config.notes),
            ("bom", BomConfig, system_config.bom),
            ("tolerance", ToleranceConfig, tolerance_section),
            ("tolerance.gdt", GdtConfig, gdt_section),
            ("fabrication", FabricationConfig, system_config.fabrication),
            ("calibration", CalibrationConfig, system_config.calibration),
            ("validation", ValidatorConfig, system_config.validation),
        )

        built: Dict[str, Any] = {}
        for key, config_cls, section in sections:
            try:
                built[key] = config_cls(**section)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(
                    f"Invalid configuration section '{key}': {e}",
                    config_key=key,
                    original_error=e,
                ) from e

        try:
            return cls(
                title_block=built["title_block"],
                notes=built["notes"],
                bom=built["bom"],
                tolerance=built["tolerance"],
                gdt=built["tolerance.gdt"],
                fabrication=built["fabrication"],
                calibration=built["calibration"],
                validation=built["validation"],
                max_workers=int(orchestration.get("max_workers", 4)),
                show_progress=bool(orchestration.get("show_progress", False)),
                apply_corrections=bool(orchestration.get("apply_corrections", True)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Invalid configuration section 'orchestration': {e}",
                config_key="orchestration",
                original_error=e,
            ) from e


@dataclass
class _PageAnalysis:
    page_number: int
    title_block: TitleBlockInfo
    notes: List[DrawingNote]
    specs: List[SpecMatch]
    bom: List[BomEntry]
    is_assembly: bool


def merge_title_blocks(blocks: Sequence[Tuple[int, TitleBlockInfo]]) -> TitleBlockInfo:
    """
    Merge per-page title blocks field by field.

    A candidate replaces the retained value only when its confidence is
    strictly higher; ties keep the value from the lower page number. The
    result does not depend on the order of ``blocks``.

    Args:
        blocks: (page number, title block) pairs.

    Returns:
        Merged TitleBlockInfo.
    """
    merged = TitleBlockInfo()
    for _, block in sorted(blocks, key=lambda item: item[0]):
        for name, fv in block.fields.items():
            if fv.confidence > merged.confidence(name):
                merged.set(name, fv.value, fv.confidence)
    return merged


class DrawingAnalyzer:
    """
    Orchestrates drawing analysis across all extraction components.

    Components are injected for testing; any left as None are built from
    ``config``.

    Attributes:
        config: Analyzer configuration.
        calibrator: Shared confidence calibrator.
    """

    def __init__(
        self,
        config: Optional[AnalyzerConfig] = None,
        title_block_parser: Optional[TitleBlockParser] = None,
        note_extractor: Optional[DrawingNoteExtractor] = None,
        spec_recognizer: Optional[SpecRecognizer] = None,
        tolerance_analyzer: Optional[ToleranceAnalyzer] = None,
        gdt_extractor: Optional[GdtExtractor] = None,
        fabrication_classifier: Optional[FabricationToleranceClassifier] = None,
        calibrator: Optional[ConfidenceCalibrator] = None,
        validator: Optional[ExtractionValidator] = None,
        bom_extractor: Optional[BomExtractor] = None,
    ) -> None:
        self.config = config or AnalyzerConfig()
        self.title_block_parser = title_block_parser or TitleBlockParser(
            self.config.title_block
        )
        self.note_extractor = note_extractor or DrawingNoteExtractor(self.config.notes)
        self.spec_recognizer = spec_recognizer or SpecRecognizer()
        self.tolerance_analyzer = tolerance_analyzer or ToleranceAnalyzer(
            self.config.tolerance
        )
        self.gdt_extractor = gdt_extractor or GdtExtractor(self.config.gdt)
        self.fabrication_classifier = fabrication_classifier or (
            FabricationToleranceClassifier(self.config.fabrication)
        )
        self.calibrator = calibrator or ConfidenceCalibrator.load(
            config=self.config.calibration
        )
        self.validator = validator or ExtractionValidator(self.config.validation)
        self.bom_extractor = bom_extractor or BomExtractor(self.config.bom)

        logger.info(
            f"DrawingAnalyzer initialized: {self.spec_recognizer.database_size} specs, "
            f"{self.config.max_workers} workers"
        )

    @classmethod
    def from_config_file(
        cls, config_path: Optional[str] = None, configure_logging: bool = True
    ) -> "DrawingAnalyzer":
        """
        Build an analyzer from the YAML system configuration.

        Args:
            config_path: Configuration file path; defaults as in Config.load.
            configure_logging: Apply the ``logging`` section to the root logger.

        Returns:
            Configured DrawingAnalyzer.

        Raises:
            ConfigurationError: If the file cannot be loaded or is invalid.
        """
        try:
            system_config = Config.load(config_path)
        except (OSError, KeyError, ValueError, yaml.YAMLError) as e:
            raise ConfigurationError(
                f"Failed to load configuration: {e}", original_error=e
            ) from e

        errors = Config.validate(system_config)
        if errors:
            raise ConfigurationError(f"Invalid configuration: {'; '.join(errors)}")

        if configure_logging:
            setup_logging_from_config(system_config.logging)

        return cls(AnalyzerConfig.from_system_config(system_config))

    def analyze_text(
        self, text: str, vision: Optional[VisionResult] = None
    ) -> DrawingData:
        """Analyze a single page of plain text."""
        return self.analyze_pages([PageText(page_number=1, full_text=text)], vision=vision)

    def analyze_pages(
        self,
        pages: Sequence[PageText],
        vision: Optional[VisionResult] = None,
        source: Optional[str] = None,
    ) -> DrawingData:
        """
        Analyze one drawing from its page text.

        Args:
            pages: Page text in any order.
            vision: Completed external vision result, if any.
            source: Drawing file path or identifier, recorded on the result.

        Returns:
            DrawingData. Drawings without text yield an empty result with
            zero confidence and a warning (plus any vision data).
        """
        pages = sorted(pages or [], key=lambda p: p.page_number)
        data = DrawingData(source=source, page_count=len(pages))

        text_pages = [p for p in pages if p.has_text]
        if not text_pages:
            logger.warning(f"No extractable text in {source or 'drawing'}")
            data.warnings.append(NO_TEXT_WARNING)
            if vision is not None:
                self.merge_vision_results(data, vision)
            return data

        data.raw_text = PAGE_BREAK.join(p.full_text for p in text_pages)

        page_results = self._analyze_pages_parallel(text_pages)

        title_block = self._resolve_title_block(page_results)
        for name, fv in title_block.fields.items():
            data.set_field(name, fv.value, self._calibrated(name, fv.confidence))

        data.notes = _dedupe_notes(n for r in page_results for n in r.notes)
        data.recognized_specs = _dedupe_specs(s for r in page_results for s in r.specs)
        data.bom = [entry for r in page_results for entry in r.bom]
        data.is_assembly = any(r.is_assembly for r in page_results)

        data.tolerance_analysis = self.tolerance_analyzer.analyze(
            data.raw_text, data.tolerance_general
        )
        data.gdt_callouts = self.gdt_extractor.extract(data.raw_text)
        data.fabrication = self.fabrication_classifier.classify(
            data.raw_text, data.tolerance_analysis, data.gdt_callouts
        )

        self._validate(data)
        data.routing_hints = self._routing_hints(data)
        self._check_coverage(data)
        data.overall_confidence = self._overall_confidence(data, title_block)

        if vision is not None:
            self.merge_vision_results(data, vision)

        logger.info(
            f"Analyzed {source or 'drawing'}: {len(pages)} page(s), "
            f"{len(data.notes)} notes, {len(data.recognized_specs)} specs, "
            f"{len(data.gdt_callouts)} GD&T, confidence {data.overall_confidence:.2f}"
        )
        return data

    def analyze_batch(
        self,
        drawings: Mapping[str, Sequence[PageText]],
        vision_results: Optional[Mapping[str, VisionResult]] = None,
    ) -> Dict[str, DrawingData]:
        """
        Analyze several drawings in parallel.

        A drawing whose analysis raises is returned as an empty result
        carrying the error as a warning; the rest of the batch continues.

        Args:
            drawings: Page text keyed by drawing identifier.
            vision_results: Optional vision results keyed the same way.

        Returns:
            DrawingData keyed by drawing identifier.
        """
        vision_results = vision_results or {}
        results: Dict[str, DrawingData] = {}
        if not drawings:
            return results

        logger.info(f"Analyzing batch of {len(drawings)} drawings")

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            future_to_id = {
                executor.submit(
                    self.analyze_pages, pages, vision_results.get(drawing_id), drawing_id
                ): drawing_id
                for drawing_id, pages in drawings.items()
            }

            for future in tqdm(
                as_completed(future_to_id),
                total=len(future_to_id),
                desc="Drawings",
                disable=not self.config.show_progress,
            ):
                drawing_id = future_to_id[future]
                try:
                    results[drawing_id] = future.result()
                except Exception as e:
                    logger.error(f"Failed to analyze {drawing_id}: {e}", exc_info=True)
                    failed = DrawingData(source=drawing_id)
                    failed.warnings.append(f"Analysis failed: {e}")
                    results[drawing_id] = failed

        return results

    def merge_vision_results(
        self, data: DrawingData, vision: Optional[VisionResult]
    ) -> DrawingData:
        """
        Merge a completed vision result into text-extracted data.

        Vision fills fields the text missed. When both sources have a value
        the text value is kept; a disagreement is recorded as a warning.
        Every field the vision result reports gets a cross-validated
        confidence. Vision notes that do not duplicate an existing note are
        appended.

        Args:
            data: Text-extracted data, modified in place.
            vision: Vision result; ignored when None or unsuccessful.

        Returns:
            ``data``.
        """
        if vision is None:
            return data
        if not vision.success:
            logger.info(f"Ignoring unsuccessful vision result: {vision.error_message}")
            return data

        has_text = bool(data.raw_text and data.raw_text.strip())

        for name, vision_field in vision.fields.items():
            text_value = data.value(name)
            text_found = text_value is not None
            text_conf = data.confidence(name)
            vision_found = vision_field.has_value

            if text_found and vision_found:
                vision_value = vision_field.value.strip()
                if _same_value(text_value, vision_value):
                    confidence = self.calibrator.cross_validate(
                        text_conf, True, vision_field.confidence, True
                    )
                else:
                    message = (
                        f"Text/vision conflict on {name.value}: text='{text_value}', "
                        f"vision='{vision_value}' (kept text)"
                    )
                    logger.warning(message)
                    data.warnings.append(message)
                    confidence = self.calibrator.cross_validate(
                        text_conf, True, vision_field.confidence, False
                    )
                data.set_field(name, text_value, confidence)
            elif vision_found:
                confidence = self.calibrator.cross_validate(
                    0.0, False, vision_field.confidence, True
                )
                data.set_field(name, vision_field.value.strip(), confidence)
            elif text_found:
                confidence = self.calibrator.cross_validate(text_conf, True, 0.0, False)
                data.set_field(name, text_value, confidence)

        added = self._merge_vision_notes(data, vision)
        if added:
            data.routing_hints.extend(self.note_extractor.generate_routing_hints(added))

        if has_text:
            data.method = AnalysisMethod.HYBRID
            data.overall_confidence = clamp_confidence(
                max(data.overall_confidence, vision.overall_confidence)
            )
        else:
            data.method = AnalysisMethod.VISION_AI
            data.overall_confidence = clamp_confidence(vision.overall_confidence)

        logger.debug(
            f"Merged vision result: {len(vision.fields)} fields, {len(added)} new notes"
        )
        return data

    @staticmethod
    def find_companion_pdf(part_path: Union[str, Path]) -> Optional[Path]:
        """
        Find the drawing PDF that belongs to a part file.

        Looks in the part's folder, then its ``Drawings`` and ``PDF``
        subfolders (exact name, then case-insensitive stem), then the
        parent folder (exact name only).

        Args:
            part_path: Path of the part file.

        Returns:
            Path of the drawing, or None when none is found.
        """
        if not part_path:
            return None
        part_path = Path(part_path)
        folder = part_path.parent
        stem = part_path.stem
        if not folder.is_dir():
            return None

        for candidate_dir in (folder,) + tuple(folder / s for s in _COMPANION_SUBFOLDERS):
            if not candidate_dir.is_dir():
                continue
            exact = candidate_dir / f"{stem}.pdf"
            if exact.is_file():
                return exact
            for pdf in sorted(candidate_dir.iterdir()):
                if (
                    pdf.is_file()
                    and pdf.suffix.lower() == ".pdf"
                    and pdf.stem.lower() == stem.lower()
                ):
                    return pdf

        parent_pdf = folder.parent / f"{stem}.pdf"
        if folder.parent != folder and parent_pdf.is_file():
            return parent_pdf
        return None

    def _analyze_page(self, page: PageText) -> _PageAnalysis:
        return _PageAnalysis(
            page_number=page.page_number,
            title_block=self.title_block_parser.parse_page(page),
            notes=self.note_extractor.extract_notes(page.full_text, page.page_number),
            specs=self.spec_recognizer.recognize(page.full_text),
            bom=self.bom_extractor.extract(page.full_text),
            is_assembly=self.bom_extractor.has_bom(page.full_text)
            or self.bom_extractor.is_assembly(page.full_text),
        )

    def _analyze_pages_parallel(self, pages: Sequence[PageText]) -> List[_PageAnalysis]:
        if len(pages) == 1:
            return [self._analyze_page(pages[0])]

        results: List[_PageAnalysis] = []
        workers = min(self.config.max_workers, len(pages))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self._analyze_page, page) for page in pages]
            for future in as_completed(futures):
                results.append(future.result())

        results.sort(key=lambda r: r.page_number)
        return results

    def _resolve_title_block(self, page_results: Sequence[_PageAnalysis]) -> TitleBlockInfo:
        """First page's title block, or a merge across pages when it is weak."""
        first = page_results[0].title_block
        threshold = self.config.title_block.min_title_block_confidence
        if first.overall_confidence >= threshold or len(page_results) == 1:
            return first

        logger.debug(
            f"First page title block confidence {first.overall_confidence:.2f} "
            f"below {threshold}, merging all pages"
        )
        return merge_title_blocks([(r.page_number, r.title_block) for r in page_results])

    def _calibrated(self, name: TitleBlockField, confidence: float) -> float:
        key = _CALIBRATION_KEYS.get(name)
        if key is None:
            return confidence
        return self.calibrator.get_field_confidence(key, confidence)

    def _routing_hints(self, data: DrawingData) -> List[RoutingHint]:
        hints = self.note_extractor.generate_routing_hints(data.notes)
        hints.extend(self.spec_recognizer.to_routing_hints(data.recognized_specs))
        hints.extend(self.tolerance_analyzer.to_routing_hints(data.tolerance_analysis))
        hints.extend(self.gdt_extractor.to_routing_hints(data.gdt_callouts))
        hints.extend(self.fabrication_classifier.to_routing_hints(data.fabrication))
        return hints

    def _validate(self, data: DrawingData) -> None:
        if self.config.apply_corrections:
            issues, corrections = self.validator.validate_and_correct(data)
            if corrections:
                logger.debug(f"{data.source or 'drawing'}: {corrections} correction(s)")
        else:
            issues = self.validator.validate(data)

        for issue in issues:
            if issue.severity is not Severity.INFO:
                data.warnings.append(str(issue))

    def _check_coverage(self, data: DrawingData) -> None:
        analysis = data.tolerance_analysis
        check = self.calibrator.check_coverage_density(
            page_count=data.page_count,
            note_count=len(data.notes),
            gdt_count=len(data.gdt_callouts),
            has_tolerances=bool(analysis and analysis.has_tolerances),
            has_title_block=data.has_title_block,
        )
        if check.suspicious:
            data.coverage_suspicious = True
            data.warnings.append(check.reason)
            logger.warning(f"{data.source or 'drawing'}: {check.reason}")

    @staticmethod
    def _overall_confidence(data: DrawingData, title_block: TitleBlockInfo) -> float:
        scores: List[float] = []
        if title_block.overall_confidence > 0:
            scores.append(title_block.overall_confidence)
        for name, weight in _FIELD_CONFIDENCE_WEIGHTS:
            if data.value(name):
                scores.append(weight)
        if data.notes:
            scores.append(_NOTES_CONFIDENCE_WEIGHT)
        return clamp_confidence(sum(scores) / len(scores)) if scores else 0.0

    def _merge_vision_notes(
        self, data: DrawingData, vision: VisionResult
    ) -> List[DrawingNote]:
        added: List[DrawingNote] = []
        for vision_note in vision.notes:
            text = (vision_note.text or "").strip()
            if not text:
                continue
            if any(_fuzzy_duplicate(text, note.text) for note in data.notes):
                continue

            category = _note_category(vision_note.category)
            if category is None:
                category = self.note_extractor.classify(text)
            impact = (
                RoutingImpact.INFORMATIONAL
                if category is NoteCategory.GENERAL
                else RoutingImpact.ADD_OPERATION
            )
            note = DrawingNote(
                text=text,
                category=category,
                impact=impact,
                confidence=clamp_confidence(vision_note.confidence),
            )
            data.notes.append(note)
            added.append(note)
        return added


def _dedupe_notes(notes) -> List[DrawingNote]:
    seen = set()
    unique: List[DrawingNote] = []
    for note in notes:
        key = note.text.lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(note)
    return unique


def _dedupe_specs(specs) -> List[SpecMatch]:
    seen = set()
    unique: List[SpecMatch] = []
    for spec in specs:
        key = spec.raw_text.lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(spec)
    return unique


def _same_value(a: str, b: str) -> bool:
    return a.strip().lower() == b.strip().lower()


def _fuzzy_duplicate(a: str, b: str) -> bool:
    a, b = a.lower(), b.lower()
    return a in b or b in a


def _note_category(value: Optional[str]) -> Optional[NoteCategory]:
    if not value:
        return None
    for category in NoteCategory:
        if category.value.lower() == value.strip().lower():
            return category
    return None
