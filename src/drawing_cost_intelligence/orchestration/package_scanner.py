"""
Drawing package scanning for the Drawing Cost Intelligence System.

A drawing package is a folder of PDFs, or one multi-page PDF, covering an
assembly and its detail parts. The scanner analyzes every page on its own
and indexes the pages by the part number in their title block, so a part's
sheets can be found and merged into one DrawingData later. The components
of an assembly model are then matched to those pages.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union

from tqdm import tqdm

from ..models.data_structures import (
    AnalysisMethod,
    BomEntry,
    DrawingData,
    DrawingPageInfo,
    PageText,
    TitleBlockField,
)
from ..quality.accuracy_benchmark import PageLoader
from ..utils.error_handlers import log_error_with_context
from .drawing_analyzer import DrawingAnalyzer

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class DrawingPackageIndex:
    """
    Pages of a drawing package grouped by part number.

    Part number keys compare case-insensitively; the spelling of the first
    page seen for a part is kept.

    Attributes:
        pages_by_part_number: Pages keyed by part number, in scan order.
        unmatched_pages: Pages with no part number.
        all_bom_entries: BOM rows from every page.
        scanned_files: PDF files read, in scan order.
        total_pages: Pages read across all files.
    """

    def __init__(self) -> None:
        self.pages_by_part_number: Dict[str, List[DrawingPageInfo]] = {}
        self.unmatched_pages: List[DrawingPageInfo] = []
        self.all_bom_entries: List[BomEntry] = []
        self.scanned_files: List[str] = []
        self.total_pages = 0

    @property
    def matched_pages(self) -> int:
        return sum(len(pages) for pages in self.pages_by_part_number.values())

    @property
    def unique_part_numbers(self) -> int:
        return len(self.pages_by_part_number)

    @property
    def summary(self) -> str:
        return (
            f"{len(self.scanned_files)} PDF(s), {self.total_pages} pages, "
            f"{self.unique_part_numbers} part numbers found, "
            f"{len(self.unmatched_pages)} unmatched pages"
        )

    def add_page(self, page: DrawingPageInfo) -> None:
        """Group a page under its part number, or record it as unmatched."""
        part_number = (page.part_number or "").strip()
        if not part_number:
            self.unmatched_pages.append(page)
            return

        key = self._key_for(part_number) or part_number
        self.pages_by_part_number.setdefault(key, []).append(page)

    def find_pages(self, part_number: Optional[str]) -> List[DrawingPageInfo]:
        """
        Find the pages for a part number.

        Tries an exact case-insensitive match, then a trimmed match, then a
        partial match where either value contains the other.

        Args:
            part_number: Part number to look up.

        Returns:
            Matching pages; empty when nothing matches.
        """
        if not part_number or not part_number.strip():
            return []

        if part_number in self.pages_by_part_number:
            return self.pages_by_part_number[part_number]

        key = self._key_for(part_number)
        if key is not None:
            return self.pages_by_part_number[key]

        wanted = part_number.strip().upper()
        for key, pages in self.pages_by_part_number.items():
            candidate = key.strip().upper()
            if wanted in candidate or candidate in wanted:
                return pages

        return []

    def build_drawing_data(self, part_number: Optional[str]) -> Optional[DrawingData]:
        """
        Merge every page of a part into one DrawingData.

        Title block values come from the first page. Notes are merged across
        pages without case-insensitive duplicates; routing hints and BOM rows
        are concatenated.

        Args:
            part_number: Part number to look up.

        Returns:
            Merged DrawingData, or None when the part has no pages.
        """
        pages = self.find_pages(part_number)
        if not pages:
            return None

        primary = pages[0]
        data = DrawingData(
            source=primary.pdf_path,
            page_count=len(pages),
            method=AnalysisMethod.TEXT_ONLY,
            overall_confidence=primary.confidence,
        )
        for name in (
            TitleBlockField.PART_NUMBER,
            TitleBlockField.DESCRIPTION,
            TitleBlockField.REVISION,
            TitleBlockField.MATERIAL,
            TitleBlockField.SHEET,
        ):
            fv = primary.title_block.get(name)
            if fv is not None:
                data.set_field(name, fv.value, fv.confidence)

        seen_notes = set()
        for page in pages:
            for note in page.notes:
                key = note.text.lower()
                if key not in seen_notes:
                    seen_notes.add(key)
                    data.notes.append(note)
            data.routing_hints.extend(page.routing_hints)
            data.bom.extend(page.bom)
            data.is_assembly = data.is_assembly or page.is_assembly

        return data

    def _key_for(self, part_number: str) -> Optional[str]:
        wanted = part_number.strip().upper()
        for key in self.pages_by_part_number:
            if key.strip().upper() == wanted:
                return key
        return None


class DrawingPackageScanner:
    """
    Scans drawing packages into a DrawingPackageIndex.

    Text extraction from PDF files happens outside this package, so the
    caller supplies ``page_loader`` to turn a file path into page text.

    Attributes:
        page_loader: Callable returning page text for a PDF path.
        analyzer: Analyzer whose components read each page.
        show_progress: Show a progress bar while scanning files.
    """

    def __init__(
        self,
        page_loader: PageLoader,
        analyzer: Optional[DrawingAnalyzer] = None,
        show_progress: bool = False,
    ) -> None:
        self.page_loader = page_loader
        self.analyzer = analyzer or DrawingAnalyzer()
        self.show_progress = show_progress

    def scan_folder(self, folder: Optional[PathLike]) -> DrawingPackageIndex:
        """
        Scan every PDF directly inside a folder.

        Files are read in case-insensitive name order. A missing folder
        yields an empty index.
        """
        if not folder or not Path(folder).is_dir():
            logger.warning(f"Drawing package folder not found: {folder}")
            return DrawingPackageIndex()

        pdfs = sorted(
            (p for p in Path(folder).iterdir() if p.is_file() and p.suffix.lower() == ".pdf"),
            key=lambda p: p.name.lower(),
        )
        logger.info(f"Found {len(pdfs)} PDF(s) in {folder}")
        return self.scan_files(pdfs)

    def scan_files(self, paths: Optional[Iterable[PathLike]]) -> DrawingPackageIndex:
        """Scan the given PDF files into one index."""
        index = DrawingPackageIndex()
        for path in tqdm(list(paths or []), desc="Drawing package", disable=not self.show_progress):
            self.scan_pdf(path, index)

        logger.info(f"Scanned drawing package: {index.summary}")
        return index

    def scan_pdf(self, path: Optional[PathLike], index: DrawingPackageIndex) -> None:
        """
        Scan one PDF into ``index``.

        Missing files are skipped. A file whose text cannot be read is
        recorded as scanned and contributes no pages.

        Args:
            path: PDF file path.
            index: Index updated in place.
        """
        if not path or not Path(path).is_file():
            logger.warning(f"Skipping missing drawing file: {path}")
            return

        path = Path(path)
        index.scanned_files.append(str(path))

        try:
            pages = list(self.page_loader(path))
        except Exception as e:
            log_error_with_context(e, logger, {"source": str(path), "stage": "text extraction"})
            return

        index.total_pages += len(pages)
        for page in sorted(pages, key=lambda p: p.page_number):
            info = self.analyze_page(page, path)
            index.add_page(info)
            index.all_bom_entries.extend(info.bom)

        logger.debug(f"Scanned {path.name}: {len(pages)} page(s)")

    def analyze_page(self, page: PageText, pdf_path: PathLike) -> DrawingPageInfo:
        """
        Analyze a single page on its own.

        Args:
            page: Page text.
            pdf_path: File the page came from.

        Returns:
            DrawingPageInfo. A page without text carries only its location.
        """
        info = DrawingPageInfo(pdf_path=str(pdf_path), page_number=page.page_number)
        if not page.has_text:
            return info

        analyzer = self.analyzer
        text = page.full_text
        info.has_text = True

        info.title_block = analyzer.title_block_parser.parse_page(page)
        info.confidence = info.title_block.overall_confidence

        info.notes = analyzer.note_extractor.extract_notes(text, page.page_number)
        info.recognized_specs = analyzer.spec_recognizer.recognize(text)
        info.tolerance_analysis = analyzer.tolerance_analyzer.analyze(
            text, info.title_block.value(TitleBlockField.TOLERANCE_GENERAL)
        )
        info.gdt_callouts = analyzer.gdt_extractor.extract(text)

        info.routing_hints = analyzer.note_extractor.generate_routing_hints(info.notes)
        info.routing_hints.extend(
            analyzer.spec_recognizer.to_routing_hints(info.recognized_specs)
        )
        info.routing_hints.extend(
            analyzer.tolerance_analyzer.to_routing_hints(info.tolerance_analysis)
        )
        info.routing_hints.extend(analyzer.gdt_extractor.to_routing_hints(info.gdt_callouts))

        info.has_bom = analyzer.bom_extractor.has_bom(text)
        info.bom = analyzer.bom_extractor.extract(text)
        info.is_assembly = info.has_bom or analyzer.bom_extractor.is_assembly(text)
        return info


# ============================================================================
# COMPONENT MATCHING
# ============================================================================


class MatchMethod(Enum):
    """How a component was matched to its drawing pages."""

    NONE = "None"
    EXACT_PART_NUMBER = "ExactPartNumber"
    FILE_NAME = "FileName"
    BOM_REFERENCE = "BomReference"


@dataclass
class ComponentInfo:
    """A component of an assembly model to be matched to drawings."""

    file_path: str
    part_number: Optional[str] = None
    is_assembly: bool = False
    quantity: int = 1


@dataclass
class ComponentMatch:
    """Drawing pages matched to one component."""

    pages: List[DrawingPageInfo] = field(default_factory=list)
    method: MatchMethod = MatchMethod.NONE
    confidence: float = 0.0

    @property
    def is_matched(self) -> bool:
        return bool(self.pages) and self.method is not MatchMethod.NONE


@dataclass
class MatchResults:
    """
    Outcome of matching every component of an assembly.

    Attributes:
        matched: Matches keyed by component file path.
        unmatched: Component paths with no drawing.
        unmatched_drawings: Pages no component claimed, including pages
            without a part number.
    """

    matched: Dict[str, ComponentMatch] = field(default_factory=dict)
    unmatched: List[str] = field(default_factory=list)
    unmatched_drawings: List[DrawingPageInfo] = field(default_factory=list)


class ComponentDrawingMatcher:
    """
    Matches assembly components to pages of a DrawingPackageIndex.

    Strategies run from most to least certain: the component's part number,
    its file name, then a BOM row naming the part number or file name.
    """

    EXACT_CONFIDENCE = 0.95
    FILE_NAME_CONFIDENCE = 0.85
    BOM_CONFIDENCE = 0.75

    def match(
        self,
        component_path: Optional[PathLike],
        part_number: Optional[str],
        index: Optional[DrawingPackageIndex],
    ) -> ComponentMatch:
        """
        Match one component to its drawing pages.

        Args:
            component_path: Component file path; its stem is tried as a
                part number.
            part_number: Part number from the component's properties.
            index: Package index to search.

        Returns:
            ComponentMatch; ``is_matched`` is False when nothing matched.
        """
        if index is None:
            return ComponentMatch()

        file_name = Path(component_path).stem if component_path else None

        if part_number and part_number.strip():
            pages = index.find_pages(part_number)
            if pages:
                return ComponentMatch(pages, MatchMethod.EXACT_PART_NUMBER, self.EXACT_CONFIDENCE)

        if file_name:
            pages = index.find_pages(file_name)
            if pages:
                return ComponentMatch(pages, MatchMethod.FILE_NAME, self.FILE_NAME_CONFIDENCE)

        for term in (part_number, file_name):
            if term and term.strip():
                bom_match = self._find_via_bom(term, index)
                if bom_match is not None:
                    return bom_match

        return ComponentMatch()

    def match_all(
        self,
        components: Optional[Sequence[ComponentInfo]],
        index: Optional[DrawingPackageIndex],
    ) -> MatchResults:
        """
        Match every component and report the drawings left over.

        Args:
            components: Components of the assembly.
            index: Package index to search.

        Returns:
            MatchResults; empty when either input is missing.
        """
        results = MatchResults()
        if components is None or index is None:
            return results

        for component in components:
            match = self.match(component.file_path, component.part_number, index)
            if match.is_matched:
                results.matched[component.file_path] = match
            else:
                results.unmatched.append(component.file_path)

        claimed = {
            page.part_number.upper()
            for match in results.matched.values()
            for page in match.pages
            if page.part_number
        }
        for key, pages in index.pages_by_part_number.items():
            if key.upper() not in claimed:
                results.unmatched_drawings.extend(pages)
        results.unmatched_drawings.extend(index.unmatched_pages)

        logger.info(
            f"Matched {len(results.matched)} of {len(components)} components, "
            f"{len(results.unmatched_drawings)} drawing page(s) unclaimed"
        )
        return results

    def _find_via_bom(
        self, term: str, index: DrawingPackageIndex
    ) -> Optional[ComponentMatch]:
        wanted = term.strip().upper()
        for entry in index.all_bom_entries:
            if not entry.part_number:
                continue
            bom_pn = entry.part_number.strip().upper()
            if wanted in bom_pn or bom_pn in wanted:
                pages = index.find_pages(entry.part_number)
                if pages:
                    return ComponentMatch(pages, MatchMethod.BOM_REFERENCE, self.BOM_CONFIDENCE)
        return None
