"""
Unit tests for gdt_extractor module.
"""

import pytest

from drawing_cost_intelligence.models.data_structures import (
    CostImpact,
    GdtCallout,
    GdtType,
    RoutingOp,
    ToleranceTier,
)
from drawing_cost_intelligence.processing.gdt_extractor import (
    GdtConfig,
    GdtExtractor,
    display_name,
)


@pytest.fixture
def extractor():
    return GdtExtractor()


class TestExtract:
    """Tests for GdtExtractor.extract."""

    def test_true_position(self, extractor, end_to_end_text):
        """Test a diametral true position with two datums."""
        callouts = extractor.extract(end_to_end_text)

        assert len(callouts) == 1
        callout = callouts[0]
        assert callout.feature_type == GdtType.POSITION
        assert callout.tolerance == pytest.approx(0.003)
        assert callout.is_diametral
        assert not callout.is_mmc
        assert callout.datums == ["A", "B"]
        assert callout.tier == ToleranceTier.PRECISION
        assert callout.impact == CostImpact.CRITICAL
        assert callout.confidence == pytest.approx(0.80)

    def test_mmc_loosens_position(self, extractor):
        """Test the MMC bonus moves a position callout to a looser tier."""
        with_mmc = extractor.extract("TRUE POSITION ⌀.005 M A B")[0]
        without_mmc = extractor.extract("TRUE POSITION ⌀.005 A B")[0]

        assert with_mmc.is_mmc
        assert with_mmc.datums == ["A", "B"]
        assert with_mmc.tier == ToleranceTier.MODERATE
        assert without_mmc.tier == ToleranceTier.TIGHT

    def test_form_tolerance(self, extractor):
        """Test flatness uses the form thresholds."""
        callouts = extractor.extract("FLATNESS .004")

        assert callouts[0].feature_type == GdtType.FLATNESS
        assert callouts[0].tier == ToleranceTier.MODERATE
        assert callouts[0].datums == []

    def test_total_runout_not_double_counted(self, extractor):
        """Test TOTAL RUNOUT is not also reported as circular runout."""
        callouts = extractor.extract("TOTAL RUNOUT .002 A")

        assert [c.feature_type for c in callouts] == [GdtType.TOTAL_RUNOUT]

    def test_generic_match_kept_outside_specific_span(self, extractor):
        """Test a bare RUNOUT elsewhere in the text is still reported."""
        callouts = extractor.extract("TOTAL RUNOUT .002 A\nRUNOUT .004 B\nPROFILE OF A LINE .003")

        assert [(c.feature_type, c.tolerance) for c in callouts] == [
            (GdtType.TOTAL_RUNOUT, pytest.approx(0.002)),
            (GdtType.PROFILE_OF_LINE, pytest.approx(0.003)),
            (GdtType.CIRCULAR_RUNOUT, pytest.approx(0.004)),
        ]

    def test_symbol_recognized(self, extractor):
        """Test Unicode GD&T symbols are recognized."""
        callouts = extractor.extract("⊥ .001 A")

        assert callouts[0].feature_type == GdtType.PERPENDICULARITY
        assert callouts[0].tier == ToleranceTier.PRECISION

    def test_sorted_tightest_first(self, extractor):
        """Test callouts are ordered by tolerance value."""
        callouts = extractor.extract("FLATNESS .004\nPERPENDICULARITY .001 A")

        assert [c.tolerance for c in callouts] == pytest.approx([0.001, 0.004])

    def test_duplicates_reported_once(self, extractor):
        """Test the same callout repeated is reported once."""
        callouts = extractor.extract("FLATNESS .002\nFLATNESS .002")

        assert len(callouts) == 1

    def test_implausible_value_ignored(self, extractor):
        """Test values above the configured maximum are ignored."""
        assert extractor.extract("FLATNESS 5") == []

    def test_empty_text(self, extractor):
        """Test blank text yields no callouts."""
        assert extractor.extract("") == []
        assert extractor.extract(None) == []


class TestClassify:
    """Tests for GD&T tier classification."""

    @pytest.mark.parametrize(
        "value,tier",
        [
            (".003", ToleranceTier.PRECISION),
            (".006", ToleranceTier.TIGHT),
            (".007", ToleranceTier.TIGHT),
            (".010", ToleranceTier.MODERATE),
            (".014", ToleranceTier.MODERATE),
            (".020", ToleranceTier.STANDARD),
        ],
    )
    def test_position_thresholds(self, extractor, value, tier):
        """Test position compares the stated diametral value."""
        callout = extractor.extract(f"TRUE POSITION ⌀{value} A B")[0]

        assert callout.tier == tier

    def test_position_mmc_effective_value(self, extractor):
        """Test MMC multiplies the position tolerance before classifying."""
        callout = GdtCallout(feature_type=GdtType.POSITION, tolerance=0.005, is_mmc=True)

        assert extractor.classify(callout) == ToleranceTier.MODERATE

    def test_orientation_standard(self, extractor):
        """Test a loose parallelism callout is standard."""
        callout = GdtCallout(feature_type=GdtType.PARALLELISM, tolerance=0.020)

        assert extractor.classify(callout) == ToleranceTier.STANDARD

    def test_custom_mmc_factor(self):
        """Test the MMC factor is configurable."""
        extractor = GdtExtractor(GdtConfig(mmc_bonus_factor=1.0))
        callout = GdtCallout(feature_type=GdtType.POSITION, tolerance=0.005, is_mmc=True)

        assert extractor.classify(callout) == ToleranceTier.TIGHT

    def test_invalid_config(self):
        """Test an MMC factor below one is rejected."""
        with pytest.raises(ValueError):
            GdtConfig(mmc_bonus_factor=0.5)


class TestCostFlagsAndHints:
    """Tests for GD&T cost flags and routing hints."""

    def test_cost_flag_description(self, extractor, end_to_end_text):
        """Test flag text names the feature, value and datums."""
        flags = extractor.to_cost_flags(extractor.extract(end_to_end_text))

        assert len(flags) == 1
        assert flags[0].description == 'position 0.0030" (Datum A-B)'
        assert flags[0].impact == CostImpact.CRITICAL
        assert flags[0].suggested_action == "CMM INSPECT + FIXTURE REQUIRED"

    def test_standard_callouts_not_flagged(self, extractor):
        """Test standard-tier callouts produce no flags."""
        callouts = extractor.extract("PARALLELISM .020 A")

        assert extractor.to_cost_flags(callouts) == []

    def test_tight_position_hints(self, extractor, end_to_end_text):
        """Test a tight position yields CMM and fixture hints."""
        hints = extractor.to_routing_hints(extractor.extract(end_to_end_text))

        assert [h.operation for h in hints] == [RoutingOp.INSPECT, RoutingOp.MACHINE]
        assert hints[1].note_text == "FIXTURE MAY BE REQUIRED - TIGHT TRUE POSITION"

    def test_many_tight_callouts(self, extractor):
        """Test three tight callouts add a pricing review hint."""
        text = "FLATNESS .001\nPERPENDICULARITY .002 A\nTOTAL RUNOUT .002 B"
        hints = extractor.to_routing_hints(extractor.extract(text))

        assert hints[-1].note_text == "MULTIPLE TIGHT GD&T (3 CALLOUTS) - REVIEW PRICING"

    def test_display_name(self):
        """Test multi-word display names."""
        assert display_name(GdtType.PROFILE_OF_SURFACE) == "profile of surface"
        assert display_name(GdtType.FLATNESS) == "flatness"
