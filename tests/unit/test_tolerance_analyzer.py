"""
Unit tests for tolerance_analyzer module.
"""

import pytest

from drawing_cost_intelligence.models.data_structures import (
    CostImpact,
    FinishUnit,
    RoutingOp,
    ToleranceTier,
    ToleranceType,
)
from drawing_cost_intelligence.processing.tolerance_analyzer import (
    ToleranceAnalyzer,
    ToleranceConfig,
)


@pytest.fixture
def analyzer():
    return ToleranceAnalyzer()


class TestToleranceConfig:
    """Tests for ToleranceConfig validation."""

    def test_band_order_enforced(self):
        """Test that bands out of order are rejected."""
        with pytest.raises(ValueError):
            ToleranceConfig(precision_band=0.01, tight_band=0.005)

    def test_finish_order_enforced(self):
        """Test that finish thresholds out of order are rejected."""
        with pytest.raises(ValueError):
            ToleranceConfig(precision_finish=64)


class TestTierBoundaries:
    """Tests for tier classification at the configured boundaries."""

    @pytest.mark.parametrize(
        "band,expected",
        [
            (0.002, ToleranceTier.PRECISION),
            (0.0021, ToleranceTier.TIGHT),
            (0.005, ToleranceTier.TIGHT),
            (0.0051, ToleranceTier.MODERATE),
            (0.010, ToleranceTier.MODERATE),
            (0.0101, ToleranceTier.STANDARD),
        ],
    )
    def test_dimension_tier(self, analyzer, band, expected):
        """Test dimension band boundaries are inclusive."""
        assert analyzer.classify_dimension_tier(band) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [
            (16, ToleranceTier.PRECISION),
            (17, ToleranceTier.TIGHT),
            (32, ToleranceTier.TIGHT),
            (63, ToleranceTier.MODERATE),
            (64, ToleranceTier.STANDARD),
        ],
    )
    def test_surface_finish_tier(self, analyzer, value, expected):
        """Test surface finish boundaries are inclusive."""
        assert analyzer.classify_surface_finish(value) == expected


class TestGeneralTolerance:
    """Tests for general tolerance block parsing."""

    def test_decimal_place_labels(self, analyzer):
        """Test .XX style labels populate the matching decimal places."""
        general = analyzer.parse_general_tolerance(
            ".XX ±.01 .XXX ±.005 FRACTIONS ±1/32 ANGLES ±1°"
        )

        assert general.two_place == pytest.approx(0.01)
        assert general.three_place == pytest.approx(0.005)
        assert general.fractional_text == "1/32"
        assert general.fractional == pytest.approx(1 / 32)
        assert general.angular_degrees == pytest.approx(1.0)
        assert general.tier == ToleranceTier.TIGHT

    def test_plus_minus_spelling_normalized(self, analyzer):
        """Test +/- is read as ±."""
        general = analyzer.parse_general_tolerance(".XXX +/- .010")

        assert general.three_place == pytest.approx(0.010)
        assert general.tier == ToleranceTier.MODERATE

    def test_spelled_places(self, analyzer):
        """Test spelled-out decimal place phrases."""
        general = analyzer.parse_general_tolerance("TWO PLACE DECIMAL ±.02")

        assert general.two_place == pytest.approx(0.02)
        assert general.tier == ToleranceTier.STANDARD

    def test_bare_value_bucketed_by_decimals(self, analyzer):
        """Test a bare ± value is bucketed by its written decimals."""
        general = analyzer.parse_general_tolerance("±.005")

        assert general.three_place == pytest.approx(0.005)
        assert general.tier == ToleranceTier.TIGHT

    def test_angular_minutes(self, analyzer):
        """Test angular tolerances in minutes are converted to degrees."""
        general = analyzer.parse_general_tolerance("ANGLES ±30'")

        assert general.angular_degrees == pytest.approx(0.5)
        assert general.tier == ToleranceTier.STANDARD

    def test_no_signal(self, analyzer):
        """Test text without tolerance values yields None."""
        assert analyzer.parse_general_tolerance("SEE NOTES") is None
        assert analyzer.parse_general_tolerance("") is None

    def test_unless_specified_block(self, analyzer):
        """Test the UNLESS OTHERWISE SPECIFIED block is located."""
        block = analyzer.find_unless_specified_block(
            "TITLE BRACKET\nUNLESS OTHERWISE SPECIFIED .XX ±.01"
        )

        assert block.startswith("UNLESS OTHERWISE SPECIFIED")
        assert analyzer.find_unless_specified_block("NO BLOCK") is None


class TestDimensionTolerances:
    """Tests for specific dimension tolerance extraction."""

    def test_bilateral(self, analyzer):
        """Test a ± callout."""
        dims = analyzer.extract_dimension_tolerances("1.250 ±.002")

        assert len(dims) == 1
        assert dims[0].nominal == pytest.approx(1.25)
        assert dims[0].total_band == pytest.approx(0.004)
        assert dims[0].tolerance_type == ToleranceType.BILATERAL
        assert dims[0].tier == ToleranceTier.TIGHT

    def test_unilateral(self, analyzer):
        """Test a +x/-0 callout."""
        dims = analyzer.extract_dimension_tolerances("0.500 +.001/-.000")

        assert len(dims) == 1
        assert dims[0].plus == pytest.approx(0.001)
        assert dims[0].minus == 0.0
        assert dims[0].tolerance_type == ToleranceType.UNILATERAL
        assert dims[0].tier == ToleranceTier.PRECISION

    def test_tolerance_not_smaller_than_nominal_rejected(self, analyzer):
        """Test implausible callouts are ignored."""
        assert analyzer.extract_dimension_tolerances("0.005 ±.010") == []

    def test_duplicates_reported_once(self, analyzer):
        """Test the same callout on two views is reported once."""
        dims = analyzer.extract_dimension_tolerances("2.000 ±.005\n2.000 ±.005")

        assert len(dims) == 1


class TestSurfaceFinish:
    """Tests for surface finish extraction."""

    def test_ra_and_rms(self, analyzer):
        """Test Ra and RMS notations."""
        finishes = analyzer.extract_surface_finishes("Ra 32 ALL OVER\n125 RMS")

        assert [(f.value, f.unit) for f in finishes] == [
            (32, FinishUnit.RA),
            (125, FinishUnit.RMS),
        ]
        assert finishes[0].tier == ToleranceTier.TIGHT
        assert finishes[1].tier == ToleranceTier.STANDARD

    def test_out_of_range_ignored(self, analyzer):
        """Test implausible roughness values are ignored."""
        assert analyzer.extract_surface_finishes("Ra 2000") == []


class TestAnalyze:
    """Tests for full tolerance analysis."""

    def test_end_to_end(self, analyzer, end_to_end_text):
        """Test the general tolerance drives the overall tier."""
        analysis = analyzer.analyze(end_to_end_text, "±.005")

        assert analysis.general.tier == ToleranceTier.TIGHT
        assert analysis.dimensions == []
        assert analysis.overall_tier == ToleranceTier.TIGHT
        assert len(analysis.cost_flags) == 1
        assert analysis.cost_flags[0].impact == CostImpact.HIGH

    def test_general_found_in_full_text(self, analyzer):
        """Test the general block is read from full text when no title block value exists."""
        analysis = analyzer.analyze("UNLESS OTHERWISE SPECIFIED .XXX ±.010")

        assert analysis.general is not None
        assert analysis.general.three_place == pytest.approx(0.010)

    def test_overall_is_tightest(self, analyzer):
        """Test the overall tier is the tightest of all findings."""
        analysis = analyzer.analyze("Ra 63\n0.500 +.001/-.000")

        assert analysis.overall_tier == ToleranceTier.PRECISION
        assert analysis.tightest_dimension_band == pytest.approx(0.001)
        assert analysis.tightest_surface_finish == 63

    def test_empty(self, analyzer):
        """Test blank text yields an empty standard analysis."""
        analysis = analyzer.analyze("")

        assert not analysis.has_tolerances
        assert analysis.overall_tier == ToleranceTier.STANDARD
        assert analysis.cost_flags == []


class TestRoutingHints:
    """Tests for tolerance routing hints."""

    def test_single_inspect_hint(self, analyzer):
        """Test several high-impact flags produce one CMM hint."""
        analysis = analyzer.analyze("1.000 ±.001\n2.000 ±.002")
        hints = analyzer.to_routing_hints(analysis)

        assert len(hints) == 1
        assert hints[0].operation == RoutingOp.INSPECT
        assert hints[0].note_text == "CMM INSPECT - TIGHT TOLERANCES"

    def test_grinding_hint(self, analyzer):
        """Test a tight surface finish adds a grinding hint."""
        analysis = analyzer.analyze("Ra 16")
        hints = analyzer.to_routing_hints(analysis)

        assert [h.operation for h in hints] == [
            RoutingOp.INSPECT,
            RoutingOp.OUTSIDE_PROCESS,
        ]
        assert hints[1].note_text.startswith("GRINDING REQUIRED")

    def test_no_analysis(self, analyzer):
        """Test no hints without an analysis."""
        assert analyzer.to_routing_hints(None) == []
