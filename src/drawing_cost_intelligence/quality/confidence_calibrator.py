"""
Confidence calibration for the Drawing Cost Intelligence System.

Replaces fixed confidence scores with values measured on a test corpus.
Calibration state (pattern precision and title block field accuracy) is
persisted as JSON:

    {
        "patternPrecision": {"break all edges": 0.93, ...},
        "fieldAccuracy": {"partnumber": 0.88, ...},
        "lastUpdated": "2024-05-01T12:00:00+00:00"
    }

Keys are case-insensitive. A missing file is not an error; load failures
are logged and defaults apply.
"""

import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional, Union

from ..models.data_structures import clamp_confidence
from ..utils.error_handlers import CalibrationError, log_error_with_context

if TYPE_CHECKING:
    from .accuracy_benchmark import BenchmarkReport

logger = logging.getLogger(__name__)

PATTERN_PRECISION_KEY = "patternPrecision"
FIELD_ACCURACY_KEY = "fieldAccuracy"
LAST_UPDATED_KEY = "lastUpdated"

_TRUE_SUFFIX = "_true"
_TOTAL_SUFFIX = "_total"


@dataclass
class CalibrationConfig:
    """
    Configuration for confidence calibration.

    Attributes:
        path: Calibration JSON file, None to keep calibration in memory only.
        default_precision: Precision reported for a pattern with no data.
        agreement_boost: Multiplier when text and vision both found a value.
        single_source_penalty: Multiplier when only one source found a value.
    """

    path: Optional[str] = None
    default_precision: float = 0.5
    agreement_boost: float = 1.15
    single_source_penalty: float = 0.85

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not 0.0 <= self.default_precision <= 1.0:
            raise ValueError(
                f"default_precision must be between 0.0 and 1.0, "
                f"got {self.default_precision}"
            )
        if self.agreement_boost < 1.0:
            raise ValueError(
                f"agreement_boost must be at least 1.0, got {self.agreement_boost}"
            )
        if not 0.0 <= self.single_source_penalty <= 1.0:
            raise ValueError(
                f"single_source_penalty must be between 0.0 and 1.0, "
                f"got {self.single_source_penalty}"
            )


@dataclass
class CoverageCheck:
    """Result of the extraction density check."""

    suspicious: bool = False
    reason: Optional[str] = None


class ConfidenceCalibrator:
    """
    Holds calibrated confidences and updates them thread-safely.

    Attributes:
        config: Calibration configuration.
    """

    def __init__(self, config: Optional[CalibrationConfig] = None) -> None:
        self.config = config or CalibrationConfig()
        self._pattern_precision: Dict[str, float] = {}
        self._field_accuracy: Dict[str, float] = {}
        self._lock = threading.Lock()

    @classmethod
    def load(
        cls,
        path: Optional[Union[str, Path]] = None,
        config: Optional[CalibrationConfig] = None,
    ) -> "ConfidenceCalibrator":
        """
        Create a calibrator from a calibration JSON file.

        Args:
            path: File to read; defaults to ``config.path``.
            config: Calibration configuration.

        Returns:
            Calibrator holding the file's data, or defaults when the file is
            missing or unreadable.
        """
        calibrator = cls(config)
        source = path if path is not None else calibrator.config.path
        if source is None:
            return calibrator

        source = Path(source)
        if not source.exists():
            logger.info(f"No calibration file at {source}, using defaults")
            return calibrator

        try:
            data = _read_calibration_file(source)
        except CalibrationError as e:
            log_error_with_context(e, logger, {"source": str(source)})
            logger.warning(f"Using default calibration for {source}")
            return calibrator

        calibrator._pattern_precision = _read_section(data.get(PATTERN_PRECISION_KEY))
        calibrator._field_accuracy = _read_section(data.get(FIELD_ACCURACY_KEY))
        logger.info(
            f"Loaded calibration from {source}: "
            f"{len(calibrator._pattern_precision)} pattern entries, "
            f"{len(calibrator._field_accuracy)} field entries"
        )
        return calibrator

    def save(self, path: Optional[Union[str, Path]] = None) -> Path:
        """
        Write calibration data as JSON.

        Args:
            path: Target file; defaults to ``config.path``.

        Returns:
            Path written.

        Raises:
            CalibrationError: If no path is known or the file cannot be written.
        """
        target = path if path is not None else self.config.path
        if target is None:
            raise CalibrationError("No calibration path configured")
        target = Path(target)

        with self._lock:
            data = {
                PATTERN_PRECISION_KEY: dict(self._pattern_precision),
                FIELD_ACCURACY_KEY: dict(self._field_accuracy),
                LAST_UPDATED_KEY: datetime.now(timezone.utc).isoformat(),
            }

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            raise CalibrationError(
                f"Failed to write calibration data: {e}",
                path=str(target),
                original_error=e,
            ) from e

        logger.debug(f"Saved calibration to {target}")
        return target

    @property
    def pattern_precision(self) -> Dict[str, float]:
        with self._lock:
            return dict(self._pattern_precision)

    @property
    def field_accuracy(self) -> Dict[str, float]:
        with self._lock:
            return dict(self._field_accuracy)

    def get_pattern_confidence(
        self, template: str, default: Optional[float] = None
    ) -> float:
        """Calibrated precision of a pattern, else ``default`` (or the configured default)."""
        with self._lock:
            value = self._pattern_precision.get(template.lower())
        if value is not None:
            return value
        return self.config.default_precision if default is None else default

    def get_field_confidence(self, field_name: str, default: float) -> float:
        """Calibrated accuracy of a title block field, else ``default``."""
        with self._lock:
            return self._field_accuracy.get(field_name.lower(), default)

    def record_pattern_result(self, template: str, correct: bool) -> float:
        """
        Record whether a pattern match was correct and update its precision.

        Args:
            template: Pattern identifier.
            correct: Whether the match was confirmed correct.

        Returns:
            Updated precision for the pattern.
        """
        key = template.lower()
        true_key = key + _TRUE_SUFFIX
        total_key = key + _TOTAL_SUFFIX

        with self._lock:
            total = self._pattern_precision.get(total_key, 0.0) + 1
            true_count = self._pattern_precision.get(true_key, 0.0) + (1 if correct else 0)
            self._pattern_precision[total_key] = total
            self._pattern_precision[true_key] = true_count
            precision = true_count / total if total > 0 else self.config.default_precision
            self._pattern_precision[key] = precision

        return precision

    def update_from_benchmark(self, report: Optional["BenchmarkReport"]) -> None:
        """Set field accuracy from a benchmark report's per-field precision."""
        if report is None:
            return
        with self._lock:
            for field_name, metrics in report.field_summary.items():
                self._field_accuracy[field_name.lower()] = metrics.precision
        logger.info(f"Updated {len(report.field_summary)} field accuracies from benchmark")

    def cross_validate(
        self,
        text_confidence: float,
        text_found: bool,
        vision_confidence: float,
        vision_found: bool,
    ) -> float:
        """
        Combine text and vision confidence for one field.

        Both found: ``min(1, max(text, vision) * boost)``. One found: that
        source's confidence times the single-source penalty. Neither: 0.
        Inputs are clamped to [0, 1] first.
        """
        text_confidence = clamp_confidence(text_confidence)
        vision_confidence = clamp_confidence(vision_confidence)
        if text_found and vision_found:
            return min(
                1.0, max(text_confidence, vision_confidence) * self.config.agreement_boost
            )
        if text_found:
            return text_confidence * self.config.single_source_penalty
        if vision_found:
            return vision_confidence * self.config.single_source_penalty
        return 0.0

    @staticmethod
    def check_coverage_density(
        page_count: int,
        note_count: int,
        gdt_count: int,
        has_tolerances: bool,
        has_title_block: bool = False,
    ) -> CoverageCheck:
        """
        Flag drawings with suspiciously little extracted content.

        Later rules override the reason of earlier ones.
        """
        check = CoverageCheck()

        if page_count >= 3 and note_count <= 1:
            check.suspicious = True
            check.reason = (
                f"Multi-page drawing ({page_count} pages) has only {note_count} "
                f"note(s) - possible false negatives"
            )

        if page_count >= 2 and note_count == 0 and gdt_count == 0:
            check.suspicious = True
            check.reason = (
                f"Multi-page drawing ({page_count} pages) has zero notes and zero "
                f"GD&T - likely extraction failure"
            )

        if has_title_block and note_count == 0 and page_count >= 1:
            check.suspicious = True
            check.reason = (
                "Title block populated but zero manufacturing notes extracted - "
                "notes section may have been missed"
            )

        return check


def _read_calibration_file(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise CalibrationError(
            f"Failed to load calibration data: {e}", path=str(path), original_error=e
        ) from e
    if not isinstance(data, dict):
        raise CalibrationError("Calibration file is not a JSON object", path=str(path))
    return data


def _read_section(section: object) -> Dict[str, float]:
    if not isinstance(section, dict):
        return {}
    values: Dict[str, float] = {}
    for key, value in section.items():
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            values[str(key).lower()] = float(value)
    return values
