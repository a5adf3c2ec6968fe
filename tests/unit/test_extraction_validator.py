"""
Unit tests for extraction_validator module.
"""

import pytest

from drawing_cost_intelligence.models.data_structures import (
    DrawingData,
    DrawingNote,
    NoteCategory,
    RoutingImpact,
    TitleBlockField,
)
from drawing_cost_intelligence.quality.extraction_validator import (
    ExtractionValidator,
    Severity,
    ValidationIssue,
    ValidatorConfig,
)


@pytest.fixture
def validator():
    return ExtractionValidator()


def _note(text):
    return DrawingNote(text, NoteCategory.GENERAL, RoutingImpact.INFORMATIONAL, 0.7)


def _drawing(**fields):
    data = DrawingData()
    for name, value in fields.items():
        data.set_field(TitleBlockField[name.upper()], value, 0.8)
    return data


class TestValidatorConfig:
    """Tests for ValidatorConfig validation."""

    def test_non_positive_limit(self):
        """Test a non-positive dimension limit is rejected."""
        with pytest.raises(ValueError):
            ValidatorConfig(max_plausible_dimension_in=0)


class TestTitleBlockFields:
    """Tests for part number, material and finish checks."""

    def test_clean_drawing(self, validator):
        """Test plausible values produce no issues."""
        data = _drawing(
            part_number="12345-A", material="304 STAINLESS", finish="POWDER COAT BLACK"
        )

        assert validator.validate(data) == []

    def test_part_number_with_label(self, validator):
        """Test a label word in the part number is an error."""
        issues = validator.validate(_drawing(part_number="SCALE 1:1"))

        assert len(issues) == 1
        assert issues[0].field == "PartNumber"
        assert issues[0].severity == Severity.ERROR
        assert "'SCALE'" in issues[0].message

    def test_part_number_unusual_format(self, validator):
        """Test an unusual part number format is a warning."""
        issues = validator.validate(_drawing(part_number="12 34"))

        assert [i.severity for i in issues] == [Severity.WARNING]

    def test_unknown_material(self, validator):
        """Test an unrecognized material is a warning."""
        issues = validator.validate(_drawing(material="UNOBTAINIUM"))

        assert [i.severity for i in issues] == [Severity.WARNING]

    def test_material_case_insensitive(self, validator):
        """Test material keywords match regardless of case."""
        assert validator.validate(_drawing(material="mild steel")) == []

    def test_material_label_leak(self, validator):
        """Test an adjacent label in the material is an error."""
        issues = validator.validate(_drawing(material="304 STAINLESS FINISH"))

        assert [i.severity for i in issues] == [Severity.ERROR]
        assert issues[0].field == "Material"

    def test_unknown_finish(self, validator):
        """Test an unrecognized finish is a warning."""
        issues = validator.validate(_drawing(finish="GLITTER"))

        assert [(i.field, i.severity) for i in issues] == [("Finish", Severity.WARNING)]


class TestGeometry:
    """Tests for thickness and overall dimension checks."""

    def test_negative_thickness(self, validator):
        """Test non-positive thickness is an error."""
        data = DrawingData(thickness_in=-0.125)

        issues = validator.validate(data)

        assert issues[0].severity == Severity.ERROR
        assert issues[0].message == "Thickness must be positive"

    def test_large_thickness(self, validator):
        """Test implausibly large thickness is a warning."""
        issues = validator.validate(DrawingData(thickness_in=14.0))

        assert issues[0].severity == Severity.WARNING
        assert issues[0].message == "Thickness exceeds 12 inches - verify units"

    def test_non_positive_dimensions(self, validator):
        """Test zero length and width are errors."""
        issues = validator.validate(DrawingData(overall_length_in=0.0, overall_width_in=-1.0))

        assert [i.field for i in issues] == ["OverallLength", "OverallWidth"]
        assert all(i.severity == Severity.ERROR for i in issues)

    def test_large_dimensions_allowed(self, validator):
        """Test the plausible maximum applies to thickness only."""
        assert validator.validate(DrawingData(overall_length_in=48.0, overall_width_in=24.0)) == []


class TestNotes:
    """Tests for manufacturing note checks."""

    def test_short_note(self, validator):
        """Test a very short note is a warning."""
        data = DrawingData(notes=[_note("AB")])

        issues = validator.validate(data)

        assert [i.severity for i in issues] == [Severity.WARNING]
        assert issues[0].field == "Note[0]"

    def test_numeric_note(self, validator):
        """Test a bare number is flagged as a BOM entry."""
        data = DrawingData(notes=[_note("BREAK ALL EDGES"), _note("123")])

        issues = validator.validate(data)

        assert len(issues) == 1
        assert issues[0].field == "Note[1]"
        assert issues[0].severity == Severity.ERROR


class TestValidateAndCorrect:
    """Tests for automatic correction."""

    def test_errors_cleared(self, validator):
        """Test error values are removed and warnings kept."""
        data = _drawing(part_number="SCALE 1:1", material="UNOBTAINIUM")
        data.thickness_in = 0.0
        data.notes = [_note("DEBURR ALL EDGES"), _note("4200")]

        issues, corrections = validator.validate_and_correct(data)

        assert corrections == 3
        assert data.part_number is None
        assert data.material == "UNOBTAINIUM"
        assert data.thickness_in is None
        assert [n.text for n in data.notes] == ["DEBURR ALL EDGES"]
        assert len(issues) == 4

    def test_no_data(self, validator):
        """Test None input is a no-op."""
        assert validator.validate_and_correct(None) == ([], 0)


class TestValidationIssue:
    """Tests for issue formatting."""

    def test_str(self):
        """Test the display format."""
        issue = ValidationIssue("PartNumber", "SCALE 1:1", Severity.ERROR, "bad value")

        assert str(issue) == "[Error] PartNumber: bad value (was: 'SCALE 1:1')"
