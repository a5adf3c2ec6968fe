"""
Integration tests for the drawing analysis pipeline.

Exercise the analyzer with positioned page words, batch analysis, and the
benchmark-to-calibration feedback loop.
"""

import json
from pathlib import Path

import pytest

from drawing_cost_intelligence.models.data_structures import (
    PageText,
    RoutingOp,
    TitleBlockField,
)
from drawing_cost_intelligence.orchestration.drawing_analyzer import (
    AnalyzerConfig,
    DrawingAnalyzer,
)
from drawing_cost_intelligence.quality.accuracy_benchmark import AccuracyBenchmark
from drawing_cost_intelligence.quality.confidence_calibrator import (
    CalibrationConfig,
    ConfidenceCalibrator,
)


@pytest.mark.integration
class TestDrawingPipeline:
    """End-to-end analysis of drawings."""

    def test_title_block_region(self, analyzer, sample_page):
        """Test the title block is read from the bottom-right words."""
        data = analyzer.analyze_pages([sample_page], source="NM-1234.pdf")

        assert data.part_number == "NM-1234"
        assert data.material == "6061 ALUMINUM"
        assert data.confidence(TitleBlockField.MATERIAL) == pytest.approx(0.85)
        assert [h.operation for h in data.routing_hints] == [RoutingOp.DEBURR]
        assert data.overall_confidence == pytest.approx((0.85 + 0.8 + 0.8 + 0.7) / 4)
        assert data.warnings == []

    def test_batch(self, analyzer, sample_page, end_to_end_text):
        """Test a batch returns one result per drawing."""
        drawings = {
            "NM-1234.pdf": [sample_page],
            "12345-A.pdf": [PageText(page_number=1, full_text=end_to_end_text)],
            "scan.pdf": [PageText(page_number=1, full_text="")],
        }

        results = analyzer.analyze_batch(drawings)

        assert set(results) == set(drawings)
        assert results["NM-1234.pdf"].part_number == "NM-1234"
        assert results["12345-A.pdf"].part_number == "12345-A"
        assert results["scan.pdf"].overall_confidence == 0.0
        assert all(r.source == name for name, r in results.items())


@pytest.mark.integration
class TestCalibrationLoop:
    """Benchmark results feed persisted calibration."""

    def test_benchmark_to_calibration(self, temp_dir, end_to_end_text):
        """Test measured field accuracy is saved and used by a new analyzer."""
        test_dir = Path(temp_dir) / "corpus"
        test_dir.mkdir()
        (test_dir / "12345-A.pdf").write_bytes(b"%PDF-1.4")
        with open(test_dir / "12345-A.gt.json", "w", encoding="utf-8") as f:
            json.dump({"pdfFileName": "12345-A.pdf", "partNumber": "99999"}, f)

        calibration_path = Path(temp_dir) / "calibration.json"
        config = AnalyzerConfig(
            max_workers=1, calibration=CalibrationConfig(path=str(calibration_path))
        )
        analyzer = DrawingAnalyzer(config)

        def page_loader(path):
            return [PageText(page_number=1, full_text=end_to_end_text)]

        report = AccuracyBenchmark().run(test_dir, analyzer, page_loader)
        analyzer.calibrator.update_from_benchmark(report)
        analyzer.calibrator.save()

        reloaded = ConfidenceCalibrator.load(calibration_path)
        assert reloaded.get_field_confidence("partnumber", 1.0) == 0.0

        calibrated = DrawingAnalyzer(config)
        data = calibrated.analyze_text(end_to_end_text)

        assert data.part_number == "12345-A"
        assert data.confidence(TitleBlockField.PART_NUMBER) == 0.0
