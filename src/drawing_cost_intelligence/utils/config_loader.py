"""Configuration loading and validation for the drawing cost intelligence system.

This module loads system configuration from YAML files, applies environment
overrides (optionally read from a ``.env`` file), resolves relative paths
against the project root and validates value ranges.

Typical usage example:
    config = Config.load()
    errors = Config.validate(config)
    if errors:
        raise ConfigurationError(f"Configuration invalid: {errors}")
"""

import os
import yaml
from pathlib import Path
from typing import List, Dict, Any, Optional

from dotenv import load_dotenv

CONFIG_PATH_ENV = "DRAWING_COST_CONFIG"
CALIBRATION_PATH_ENV = "DRAWING_COST_CALIBRATION"

DEFAULT_CONFIG_PATH = "config/system_config.yaml"

_LINEAR_CLASSES = ("A", "B", "C", "D")
_GEOMETRIC_CLASSES = ("E", "F", "G", "H")


class SystemConfig:
    """Container for system configuration parameters.

    Attributes:
        title_block: Title block region and fallback settings.
        notes: Note extraction settings.
        bom: Bill-of-materials reading settings (optional section).
        tolerance: Tolerance and GD&T tier thresholds.
        fabrication: Fabrication shop baseline classes and thresholds.
        calibration: Calibration file path and cross-validation factors.
        validation: Extraction validator limits.
        orchestration: Worker pool and progress settings.
        logging: Logging level and optional log file.
    """

    def __init__(self, **config_dict: Dict[str, Any]) -> None:
        """Initialize SystemConfig from configuration dictionary.

        Args:
            **config_dict: Configuration dictionary with required keys:
                title_block, notes, tolerance, fabrication, calibration,
                validation, orchestration, logging.

        Raises:
            KeyError: If any required configuration section is missing.
        """
        required_keys = [
            "title_block",
            "notes",
            "tolerance",
            "fabrication",
            "calibration",
            "validation",
            "orchestration",
            "logging",
        ]

        missing_keys = [key for key in required_keys if key not in config_dict]
        if missing_keys:
            raise KeyError(f"Missing required configuration sections: {missing_keys}")

        self.title_block: Dict[str, Any] = config_dict["title_block"] or {}
        self.notes: Dict[str, Any] = config_dict["notes"] or {}
        self.bom: Dict[str, Any] = config_dict.get("bom") or {}
        self.tolerance: Dict[str, Any] = config_dict["tolerance"] or {}
        self.fabrication: Dict[str, Any] = config_dict["fabrication"] or {}
        self.calibration: Dict[str, Any] = config_dict["calibration"] or {}
        self.validation: Dict[str, Any] = config_dict["validation"] or {}
        self.orchestration: Dict[str, Any] = config_dict["orchestration"] or {}
        self.logging: Dict[str, Any] = config_dict["logging"] or {}


class Config:
    """Static utility class for loading and validating configuration files."""

    # Configuration keys holding paths, resolved against the project root
    _RELATIVE_PATH_KEYS = [
        "calibration.path",
        "logging.log_file",
    ]

    @staticmethod
    def project_root() -> Path:
        return Path(__file__).parent.parent.parent.parent

    @staticmethod
    def _resolve_nested_path(
        config_dict: Dict[str, Any], key_path: str, project_root: Path
    ) -> None:
        """Resolve a nested config path to an absolute path in-place.

        Missing or null values are left untouched.

        Args:
            config_dict: Configuration dictionary to modify in-place.
            key_path: Dot-separated path to the key (e.g., "calibration.path").
            project_root: Project root directory for resolving relative paths.
        """
        keys = key_path.split(".")
        current = config_dict

        for key in keys[:-1]:
            current = current.get(key) or {}

        final_key = keys[-1]
        relative_path = current.get(final_key)
        if relative_path:
            current[final_key] = str(project_root / relative_path)

    @staticmethod
    def load(config_path: Optional[str] = None) -> SystemConfig:
        """Load system configuration from a YAML file.

        The path is taken from the argument, else from the
        ``DRAWING_COST_CONFIG`` environment variable, else the default
        ``config/system_config.yaml``. Relative paths resolve against the
        project root. ``DRAWING_COST_CALIBRATION`` overrides the calibration
        file path. Environment variables may be supplied through a ``.env``
        file.

        Args:
            config_path: Path to the configuration YAML file.

        Returns:
            SystemConfig object containing the loaded and resolved configuration.

        Raises:
            FileNotFoundError: If the configuration file does not exist.
            yaml.YAMLError: If the configuration file is not valid YAML.
            KeyError: If required configuration sections are missing.
            ValueError: If the configuration file doesn't contain a dictionary.
        """
        load_dotenv()

        project_root = Config.project_root()
        if config_path is None:
            config_path = os.getenv(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH)
        config_file_path = project_root / config_path

        if not config_file_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_file_path}")

        try:
            with open(config_file_path, "r", encoding="utf-8") as f:
                config_dict = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(
                f"Failed to parse configuration file: {config_file_path}"
            ) from e

        if not isinstance(config_dict, dict):
            raise ValueError("Configuration file must contain a YAML dictionary")

        calibration_override = os.getenv(CALIBRATION_PATH_ENV)
        if calibration_override and isinstance(config_dict.get("calibration"), dict):
            config_dict["calibration"]["path"] = calibration_override

        for path_key in Config._RELATIVE_PATH_KEYS:
            Config._resolve_nested_path(config_dict, path_key, project_root)

        return SystemConfig(**config_dict)

    @staticmethod
    def validate(config: SystemConfig) -> List[str]:
        """Validate configuration value ranges.

        Args:
            config: SystemConfig object to validate.

        Returns:
            List of error messages. Empty list if the configuration is valid.
        """
        errors: List[str] = []

        for key in ("region_x_fraction", "region_y_fraction"):
            value = config.title_block.get(key)
            if value is not None and not 0.0 <= float(value) <= 1.0:
                errors.append(f"title_block.{key} must be in [0, 1], got {value}")

        factor = config.title_block.get("full_text_confidence_factor")
        if factor is not None and not 0.0 < float(factor) <= 1.0:
            errors.append(
                f"title_block.full_text_confidence_factor must be in (0, 1], got {factor}"
            )

        bands = [
            config.tolerance.get("precision_band"),
            config.tolerance.get("tight_band"),
            config.tolerance.get("moderate_band"),
        ]
        if all(b is not None for b in bands) and not (
            0 < bands[0] < bands[1] < bands[2]
        ):
            errors.append(
                "tolerance bands must satisfy 0 < precision_band < tight_band < moderate_band"
            )

        linear = str(config.fabrication.get("shop_linear_class", "B")).upper()
        if linear not in _LINEAR_CLASSES:
            errors.append(
                f"fabrication.shop_linear_class must be one of {_LINEAR_CLASSES}, got {linear}"
            )
        geometric = str(config.fabrication.get("shop_geometric_class", "F")).upper()
        if geometric not in _GEOMETRIC_CLASSES:
            errors.append(
                "fabrication.shop_geometric_class must be one of "
                f"{_GEOMETRIC_CLASSES}, got {geometric}"
            )

        calibration_path = config.calibration.get("path")
        if calibration_path:
            parent = Path(calibration_path).parent
            if not parent.exists():
                errors.append(
                    f"Directory not found for calibration.path: {parent}"
                )
            elif Path(calibration_path).is_dir():
                errors.append(
                    f"Expected file for calibration.path, "
                    f"but found directory: {calibration_path}"
                )

        workers = config.orchestration.get("max_workers")
        if workers is not None and int(workers) < 1:
            errors.append(f"orchestration.max_workers must be >= 1, got {workers}")

        return errors
