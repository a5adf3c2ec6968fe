"""
Unit tests for config_loader module.
"""

from pathlib import Path

import pytest
import yaml

from drawing_cost_intelligence.utils.config_loader import (
    CALIBRATION_PATH_ENV,
    Config,
    SystemConfig,
)


def _write_config(directory, config_dict):
    path = Path(directory) / "config.yaml"
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config_dict, f)
    return path


@pytest.fixture
def config_dict():
    """Minimal valid configuration."""
    return {
        "title_block": {"region_x_fraction": 0.45, "region_y_fraction": 0.35},
        "notes": {},
        "tolerance": {"precision_band": 0.002, "tight_band": 0.005, "moderate_band": 0.010},
        "fabrication": {"shop_linear_class": "B", "shop_geometric_class": "F"},
        "calibration": {"path": None},
        "validation": {},
        "orchestration": {"max_workers": 2},
        "logging": {"level": "INFO", "log_file": None},
    }


class TestSystemConfig:
    """Tests for SystemConfig."""

    def test_missing_section(self, config_dict):
        """Test a missing section raises KeyError."""
        del config_dict["notes"]

        with pytest.raises(KeyError):
            SystemConfig(**config_dict)

    def test_null_section_becomes_empty(self, config_dict):
        """Test a null section is read as an empty mapping."""
        config_dict["validation"] = None

        assert SystemConfig(**config_dict).validation == {}

    def test_bom_section_optional(self, config_dict):
        """Test the bom section may be omitted."""
        assert SystemConfig(**config_dict).bom == {}

        config_dict["bom"] = {"row_confidence": 0.6}
        assert SystemConfig(**config_dict).bom == {"row_confidence": 0.6}


class TestLoad:
    """Tests for Config.load."""

    def test_default_config(self, monkeypatch):
        """Test the shipped configuration loads and validates."""
        monkeypatch.delenv(CALIBRATION_PATH_ENV, raising=False)

        config = Config.load("config/system_config.yaml")

        assert config.fabrication["shop_linear_class"] == "B"
        assert config.tolerance["gdt"]["mmc_bonus_factor"] == 1.5
        assert Path(config.calibration["path"]).is_absolute()
        assert Config.validate(config) == []

    def test_absolute_path(self, temp_dir, config_dict):
        """Test loading from an absolute path."""
        path = _write_config(temp_dir, config_dict)

        config = Config.load(str(path))

        assert config.orchestration["max_workers"] == 2

    def test_missing_file(self, temp_dir):
        """Test a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            Config.load(str(Path(temp_dir) / "missing.yaml"))

    def test_not_a_dictionary(self, temp_dir):
        """Test a YAML list is rejected."""
        path = Path(temp_dir) / "config.yaml"
        path.write_text("- one\n- two\n", encoding="utf-8")

        with pytest.raises(ValueError):
            Config.load(str(path))

    def test_calibration_override(self, temp_dir, config_dict, monkeypatch):
        """Test the environment overrides the calibration path."""
        override = str(Path(temp_dir) / "override.json")
        monkeypatch.setenv(CALIBRATION_PATH_ENV, override)
        path = _write_config(temp_dir, config_dict)

        config = Config.load(str(path))

        assert config.calibration["path"] == override


class TestValidate:
    """Tests for Config.validate."""

    def test_valid(self, config_dict):
        """Test a valid configuration has no errors."""
        assert Config.validate(SystemConfig(**config_dict)) == []

    def test_bad_fraction(self, config_dict):
        """Test an out-of-range region fraction."""
        config_dict["title_block"]["region_x_fraction"] = 1.5

        errors = Config.validate(SystemConfig(**config_dict))

        assert len(errors) == 1
        assert "region_x_fraction" in errors[0]

    def test_bands_out_of_order(self, config_dict):
        """Test tolerance bands must increase."""
        config_dict["tolerance"]["tight_band"] = 0.002

        assert len(Config.validate(SystemConfig(**config_dict))) == 1

    def test_bad_shop_class(self, config_dict):
        """Test unknown shop classes."""
        config_dict["fabrication"]["shop_linear_class"] = "E"
        config_dict["fabrication"]["shop_geometric_class"] = "A"

        assert len(Config.validate(SystemConfig(**config_dict))) == 2

    def test_missing_calibration_directory(self, temp_dir, config_dict):
        """Test a calibration path in a missing directory."""
        config_dict["calibration"]["path"] = str(Path(temp_dir) / "nope" / "cal.json")

        errors = Config.validate(SystemConfig(**config_dict))

        assert errors[0].startswith("Directory not found for calibration.path")

    def test_bad_workers(self, config_dict):
        """Test a worker count below one."""
        config_dict["orchestration"]["max_workers"] = 0

        assert len(Config.validate(SystemConfig(**config_dict))) == 1
