"""
Unit tests for drawing_analyzer module.
"""

from pathlib import Path

import pytest
import yaml

from drawing_cost_intelligence.models.data_structures import (
    AnalysisMethod,
    NoteCategory,
    PageText,
    RoutingOp,
    TitleBlockField,
    TitleBlockInfo,
    ToleranceTier,
    VisionField,
    VisionNote,
    VisionResult,
)
from drawing_cost_intelligence.orchestration.drawing_analyzer import (
    NO_TEXT_WARNING,
    PAGE_BREAK,
    AnalyzerConfig,
    DrawingAnalyzer,
    merge_title_blocks,
)
from drawing_cost_intelligence.processing.title_block_parser import TitleBlockParser
from drawing_cost_intelligence.quality.accuracy_benchmark import (
    BenchmarkReport,
    FieldMetrics,
)
from drawing_cost_intelligence.utils.config_loader import Config
from drawing_cost_intelligence.utils.error_handlers import ConfigurationError


class _ExplodingParser(TitleBlockParser):
    """Parser that fails on pages containing EXPLODE."""

    def parse_page(self, page, region_text=None):
        if "EXPLODE" in page.full_text:
            raise RuntimeError("parser exploded")
        return super().parse_page(page, region_text)


def _block(**fields):
    info = TitleBlockInfo()
    for name, (value, confidence) in fields.items():
        info.set(TitleBlockField[name.upper()], value, confidence)
    return info


class TestAnalyzerConfig:
    """Tests for AnalyzerConfig."""

    def test_invalid_workers(self):
        """Test a worker count below one is rejected."""
        with pytest.raises(ValueError):
            AnalyzerConfig(max_workers=0)

    def test_from_system_config(self):
        """Test the shipped configuration builds every component config."""
        config = AnalyzerConfig.from_system_config(Config.load("config/system_config.yaml"))

        assert config.max_workers == 4
        assert config.gdt.mmc_bonus_factor == 1.5
        assert config.fabrication.shop_linear_class == "B"
        assert config.title_block.min_title_block_confidence == 0.5
        assert config.bom.row_confidence == pytest.approx(0.70)

    def test_unknown_key(self):
        """Test an unknown key names the offending section."""
        system_config = Config.load("config/system_config.yaml")
        system_config.tolerance = dict(system_config.tolerance)
        system_config.tolerance["gdt"] = {"bogus": 1}

        with pytest.raises(ConfigurationError) as exc_info:
            AnalyzerConfig.from_system_config(system_config)

        assert exc_info.value.config_key == "tolerance.gdt"

    def test_invalid_value(self):
        """Test an invalid value is reported as a configuration error."""
        system_config = Config.load("config/system_config.yaml")
        system_config.fabrication = {"shop_linear_class": "Z"}

        with pytest.raises(ConfigurationError) as exc_info:
            AnalyzerConfig.from_system_config(system_config)

        assert exc_info.value.config_key == "fabrication"


class TestFromConfigFile:
    """Tests for DrawingAnalyzer.from_config_file."""

    @pytest.fixture(autouse=True)
    def clear_env(self, monkeypatch):
        """Keep environment overrides out of these tests."""
        monkeypatch.delenv("DRAWING_COST_CONFIG", raising=False)
        monkeypatch.delenv("DRAWING_COST_CALIBRATION", raising=False)

    def test_shipped_config(self):
        """Test the shipped configuration builds a working analyzer."""
        analyzer = DrawingAnalyzer.from_config_file(configure_logging=False)

        assert analyzer.config.max_workers == 4
        assert analyzer.analyze_text("MATERIAL: 304 STAINLESS").material == "304 STAINLESS"

    def test_missing_file(self):
        """Test a missing file is reported as a configuration error."""
        with pytest.raises(ConfigurationError):
            DrawingAnalyzer.from_config_file("config/missing.yaml", configure_logging=False)

    def test_invalid_values(self, temp_dir):
        """Test range validation failures are reported."""
        with open(Config.project_root() / "config/system_config.yaml", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
        raw["title_block"]["region_x_fraction"] = 2.0
        path = Path(temp_dir) / "bad.yaml"
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(raw, f)

        with pytest.raises(ConfigurationError) as exc_info:
            DrawingAnalyzer.from_config_file(str(path), configure_logging=False)

        assert "title_block.region_x_fraction" in str(exc_info.value)


class TestMergeTitleBlocks:
    """Tests for cross-page title block merging."""

    def test_higher_confidence_wins(self):
        """Test a later page with a more confident value replaces the first."""
        merged = merge_title_blocks(
            [
                (1, _block(part_number=("AAA", 0.6))),
                (2, _block(part_number=("BBB", 0.85), material=("A36", 0.7))),
            ]
        )

        assert merged.part_number == "BBB"
        assert merged.material == "A36"

    def test_tie_keeps_lower_page(self):
        """Test ties keep the lower page's value regardless of input order."""
        blocks = [
            (2, _block(part_number=("BBB", 0.85))),
            (1, _block(part_number=("AAA", 0.85))),
        ]

        assert merge_title_blocks(blocks).part_number == "AAA"
        assert merge_title_blocks(list(reversed(blocks))).part_number == "AAA"


class TestAnalyzeText:
    """Tests for single page analysis."""

    def test_end_to_end(self, analyzer, end_to_end_text):
        """Test every stage contributes to the drawing data."""
        data = analyzer.analyze_text(end_to_end_text)

        assert data.part_number == "12345-A"
        assert data.material == "304 STAINLESS"
        assert data.revision == "B"
        assert data.tolerance_general == "±.005"
        assert data.confidence(TitleBlockField.PART_NUMBER) == pytest.approx(0.85)
        assert [n.text for n in data.notes] == ["BREAK ALL EDGES"]
        assert data.notes[0].category == NoteCategory.DEBURR
        assert data.tolerance_analysis.overall_tier == ToleranceTier.TIGHT
        assert len(data.gdt_callouts) == 1
        assert data.gdt_callouts[0].datums == ["A", "B"]
        assert data.fabrication.requires_machining
        assert data.page_count == 1
        assert data.method == AnalysisMethod.TEXT_ONLY
        assert not data.coverage_suspicious
        assert data.warnings == []

    def test_routing_hint_order(self, analyzer, end_to_end_text):
        """Test hints are ordered notes, tolerances, GD&T, fabrication."""
        data = analyzer.analyze_text(end_to_end_text)

        assert [h.operation for h in data.routing_hints] == [
            RoutingOp.DEBURR,
            RoutingOp.INSPECT,
            RoutingOp.INSPECT,
            RoutingOp.MACHINE,
            RoutingOp.MACHINE,
            RoutingOp.INSPECT,
        ]
        assert data.routing_hints[0].work_center == "F210"

    def test_overall_confidence(self, analyzer, end_to_end_text):
        """Test overall confidence averages title block, key fields and notes."""
        data = analyzer.analyze_text(end_to_end_text)

        title_block = (0.85 + 0.85 + 0.90) / 3
        expected = (title_block + 0.8 + 0.8 + 0.9 + 0.7) / 5
        assert data.overall_confidence == pytest.approx(expected)

    def test_calibrated_field_confidence(self, calibrator, end_to_end_text):
        """Test calibrated field accuracy replaces the pattern confidence."""
        calibrator.update_from_benchmark(
            BenchmarkReport(
                field_summary={"PartNumber": FieldMetrics(true_positives=3, false_positives=2)}
            )
        )
        analyzer = DrawingAnalyzer(AnalyzerConfig(max_workers=1), calibrator=calibrator)

        data = analyzer.analyze_text(end_to_end_text)

        assert data.confidence(TitleBlockField.PART_NUMBER) == pytest.approx(0.6)

    def test_validator_corrections(self, analyzer):
        """Test a label leaking into the part number is removed with a warning."""
        data = analyzer.analyze_text("PART NO: SCALE\nMATERIAL: A36\nDEBURR ALL EDGES\n")

        assert data.part_number is None
        assert any(w.startswith("[Error] PartNumber") for w in data.warnings)

    def test_to_dict(self, analyzer, end_to_end_text):
        """Test serialization to JSON-compatible values."""
        result = analyzer.analyze_text(end_to_end_text).to_dict()

        assert result["fields"]["part_number"]["value"] == "12345-A"
        assert result["method"] == "TextOnly"
        assert result["tolerance_analysis"]["overall_tier"] == "TIGHT"


class TestAnalyzePages:
    """Tests for multi-page analysis."""

    def test_no_text(self, analyzer):
        """Test a drawing without text yields an empty, warned result."""
        data = analyzer.analyze_pages([PageText(page_number=1, full_text="  \n")])

        assert data.warnings == [NO_TEXT_WARNING]
        assert data.overall_confidence == 0.0
        assert data.page_count == 1
        assert data.raw_text is None
        assert data.fields == {}

    def test_pages_joined_in_order(self, analyzer):
        """Test raw text joins pages by page number."""
        pages = [
            PageText(page_number=2, full_text="DEBURR ALL EDGES"),
            PageText(page_number=1, full_text="PART NO: 12345-A\nMATERIAL: A36"),
        ]

        data = analyzer.analyze_pages(pages, source="12345-A.pdf")

        assert data.raw_text == "PART NO: 12345-A\nMATERIAL: A36" + PAGE_BREAK + "DEBURR ALL EDGES"
        assert data.source == "12345-A.pdf"
        assert data.page_count == 2
        assert [n.page_number for n in data.notes] == [2]

    def test_strong_first_page_title_block(self, analyzer):
        """Test a confident first-page title block is used as-is."""
        pages = [
            PageText(page_number=1, full_text="PART NO: AAA-1"),
            PageText(page_number=2, full_text="PART NO: BBB-2\nMATERIAL: A36"),
        ]

        data = analyzer.analyze_pages(pages)

        assert data.part_number == "AAA-1"
        assert data.material is None

    def test_weak_first_page_merges(self, analyzer):
        """Test later pages are searched when page one has no title block."""
        pages = [
            PageText(page_number=1, full_text="SEE SHEET 2"),
            PageText(page_number=2, full_text="PART NO: 999-B\nMATERIAL: A36"),
        ]

        data = analyzer.analyze_pages(pages)

        assert data.part_number == "999-B"
        assert data.material == "A36"
        assert data.coverage_suspicious

    def test_bom_rows_collected(self, analyzer):
        """Test BOM rows from every page land on the drawing with the assembly flag."""
        pages = [
            PageText(
                page_number=1,
                full_text=(
                    "PART NO: ASSY-100\nDESCRIPTION: FRAME\n\n"
                    "BILL OF MATERIAL\n"
                    "ITEM NO  PART NUMBER  DESCRIPTION  QTY\n"
                    "1 12345-01 BRACKET 2\n"
                ),
            ),
            PageText(
                page_number=2,
                full_text="PARTS LIST\n2 12345-02 BASE PLATE 1\n",
            ),
        ]

        data = analyzer.analyze_pages(pages)

        assert [(e.item_number, e.part_number, e.quantity) for e in data.bom] == [
            ("1", "12345-01", 2),
            ("2", "12345-02", 1),
        ]
        assert data.bom[1].description == "BASE PLATE"
        assert data.is_assembly
        assert data.to_dict()["bom"][0]["part_number"] == "12345-01"
        assert not any("BRACKET" in n.text for n in data.notes)

    def test_detail_part_not_assembly(self, analyzer, end_to_end_text):
        """Test a detail drawing has no BOM and is not an assembly."""
        data = analyzer.analyze_text(end_to_end_text)

        assert data.bom == []
        assert not data.is_assembly


class TestVisionMerge:
    """Tests for merging external vision results."""

    def test_vision_only(self, analyzer):
        """Test vision fills an image-only drawing."""
        vision = VisionResult(
            success=True,
            fields={
                TitleBlockField.PART_NUMBER: VisionField("V-100", 0.9),
                TitleBlockField.MATERIAL: VisionField("A36", 0.8),
            },
        )

        data = analyzer.analyze_pages([PageText(page_number=1, full_text="")], vision)

        assert data.method == AnalysisMethod.VISION_AI
        assert data.part_number == "V-100"
        assert data.confidence(TitleBlockField.PART_NUMBER) == pytest.approx(0.765)
        assert data.overall_confidence == pytest.approx((0.9 + 0.8) / 5)
        assert NO_TEXT_WARNING in data.warnings

    def test_hybrid(self, analyzer, end_to_end_text):
        """Test agreement, conflict and vision-only fields."""
        vision = VisionResult(
            success=True,
            fields={
                TitleBlockField.PART_NUMBER: VisionField("12345-a", 0.9),
                TitleBlockField.MATERIAL: VisionField("316 STAINLESS", 0.8),
                TitleBlockField.FINISH: VisionField("PAINT", 0.6),
            },
        )

        data = analyzer.analyze_text(end_to_end_text, vision)

        assert data.method == AnalysisMethod.HYBRID
        assert data.part_number == "12345-A"
        assert data.confidence(TitleBlockField.PART_NUMBER) == 1.0
        assert data.material == "304 STAINLESS"
        assert data.confidence(TitleBlockField.MATERIAL) == pytest.approx(0.85 * 0.85)
        assert data.finish == "PAINT"
        assert data.confidence(TitleBlockField.FINISH) == pytest.approx(0.51)
        assert (
            "Text/vision conflict on material: text='304 STAINLESS', "
            "vision='316 STAINLESS' (kept text)"
        ) in data.warnings

    def test_hybrid_confidence_clamped(self, analyzer, end_to_end_text):
        """Test vision confidences above one never leak into the result."""
        vision = VisionResult(
            success=True,
            fields={
                name: VisionField(value, 1.4)
                for name, value in (
                    (TitleBlockField.PART_NUMBER, "12345-A"),
                    (TitleBlockField.DESCRIPTION, "BRACKET"),
                    (TitleBlockField.REVISION, "B"),
                    (TitleBlockField.MATERIAL, "304 STAINLESS"),
                    (TitleBlockField.FINISH, "PAINT"),
                )
            },
        )

        data = analyzer.analyze_text(end_to_end_text, vision)

        assert data.method == AnalysisMethod.HYBRID
        assert data.overall_confidence == 1.0
        for name in vision.fields:
            assert 0.0 <= data.confidence(name) <= 1.0
        assert data.confidence(TitleBlockField.FINISH) == pytest.approx(0.85)

    def test_vision_notes(self, analyzer, end_to_end_text):
        """Test new vision notes are added with routing hints and duplicates skipped."""
        vision = VisionResult(
            success=True,
            notes=[
                VisionNote("BREAK ALL EDGES", "Deburr", 0.9),
                VisionNote("WELD ALL AROUND", "Weld", 0.7),
            ],
        )

        data = analyzer.analyze_text(end_to_end_text, vision)

        assert [n.text for n in data.notes] == ["BREAK ALL EDGES", "WELD ALL AROUND"]
        assert data.notes[1].category == NoteCategory.WELD
        assert data.routing_hints[-1].operation == RoutingOp.WELD
        assert data.routing_hints[-1].work_center == "F400"

    def test_unsuccessful_vision_ignored(self, analyzer, end_to_end_text):
        """Test a failed vision result changes nothing."""
        vision = VisionResult(
            success=False,
            fields={TitleBlockField.PART_NUMBER: VisionField("X-1", 0.9)},
            error_message="timeout",
        )

        data = analyzer.analyze_text(end_to_end_text, vision)

        assert data.method == AnalysisMethod.TEXT_ONLY
        assert data.part_number == "12345-A"


class TestAnalyzeBatch:
    """Tests for batch analysis."""

    def test_failure_isolated(self, calibrator, end_to_end_text):
        """Test one failing drawing does not stop the batch."""
        analyzer = DrawingAnalyzer(
            AnalyzerConfig(max_workers=2),
            title_block_parser=_ExplodingParser(),
            calibrator=calibrator,
        )
        drawings = {
            "good.pdf": [PageText(page_number=1, full_text=end_to_end_text)],
            "bad.pdf": [PageText(page_number=1, full_text="EXPLODE")],
        }

        results = analyzer.analyze_batch(drawings)

        assert results["good.pdf"].part_number == "12345-A"
        assert results["bad.pdf"].warnings == ["Analysis failed: parser exploded"]
        assert results["bad.pdf"].source == "bad.pdf"

    def test_empty_batch(self, analyzer):
        """Test an empty batch returns no results."""
        assert analyzer.analyze_batch({}) == {}


class TestFindCompanionPdf:
    """Tests for locating a part's drawing PDF."""

    def test_same_folder(self, temp_dir):
        """Test an exact match beside the part file."""
        pdf = Path(temp_dir) / "12345.pdf"
        pdf.write_bytes(b"%PDF")

        assert DrawingAnalyzer.find_companion_pdf(Path(temp_dir) / "12345.SLDPRT") == pdf

    def test_case_insensitive(self, temp_dir):
        """Test a case-insensitive stem match."""
        (Path(temp_dir) / "ABC-1.PDF").write_bytes(b"%PDF")

        result = DrawingAnalyzer.find_companion_pdf(Path(temp_dir) / "abc-1.ipt")

        assert result is not None
        assert result.name.lower() == "abc-1.pdf"

    def test_drawings_subfolder(self, temp_dir):
        """Test the Drawings subfolder is searched."""
        drawings = Path(temp_dir) / "Drawings"
        drawings.mkdir()
        pdf = drawings / "12345.pdf"
        pdf.write_bytes(b"%PDF")

        assert DrawingAnalyzer.find_companion_pdf(Path(temp_dir) / "12345.SLDPRT") == pdf

    def test_parent_folder(self, temp_dir):
        """Test the parent folder is searched last."""
        parts = Path(temp_dir) / "parts"
        parts.mkdir()
        pdf = Path(temp_dir) / "12345.pdf"
        pdf.write_bytes(b"%PDF")

        assert DrawingAnalyzer.find_companion_pdf(parts / "12345.SLDPRT") == pdf

    def test_not_found(self, temp_dir):
        """Test None when no drawing exists."""
        assert DrawingAnalyzer.find_companion_pdf(Path(temp_dir) / "12345.SLDPRT") is None
        assert DrawingAnalyzer.find_companion_pdf(Path(temp_dir) / "missing" / "x.ipt") is None
        assert DrawingAnalyzer.find_companion_pdf("") is None
