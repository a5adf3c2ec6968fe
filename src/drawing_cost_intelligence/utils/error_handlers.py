"""
Error handling utilities for the Drawing Cost Intelligence System.

Absence of signal in drawing text is never an exception; these exceptions
cover the conditions that are: bad configuration and unreadable calibration
or ground-truth files.

Classes:
    DrawingProcessingError: Base exception for all analysis errors.
    ConfigurationError: Exception for configuration errors.
    CalibrationError: Exception for calibration file read/write errors.
    GroundTruthError: Exception for malformed benchmark ground-truth files.

Functions:
    log_error_with_context: Log an error with its source and stage.
"""

import logging
import traceback
from typing import Any, Dict, Optional


class DrawingProcessingError(Exception):
    """
    Base exception for drawing analysis errors.

    Attributes:
        message: Error message.
        source: Drawing or file the error relates to, if known.
        stage: Stage that raised (initialization, calibration, benchmark).
        recoverable: True when the caller can continue with defaults.
        original_error: Wrapped underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        stage: Optional[str] = None,
        recoverable: bool = False,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.source = source
        self.stage = stage
        self.recoverable = recoverable
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the error for structured logs and batch results."""
        result: Dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "source": self.source,
            "stage": self.stage,
            "recoverable": self.recoverable,
        }
        if self.original_error is not None:
            result["cause"] = f"{type(self.original_error).__name__}: {self.original_error}"
        return result


class ConfigurationError(DrawingProcessingError):
    """
    Exception for configuration errors.

    Attributes:
        config_key: Optional configuration key that caused the error.
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message=message,
            stage="initialization",
            recoverable=False,
            original_error=original_error,
        )
        self.config_key = config_key

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["config_key"] = self.config_key
        return result


class CalibrationError(DrawingProcessingError):
    """
    Exception for calibration file errors.

    The calibrator catches this on load and falls back to defaults; it is
    only propagated by explicit save calls.

    Attributes:
        path: Calibration file path involved.
    """

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message=message,
            source=path,
            stage="calibration",
            recoverable=True,
            original_error=original_error,
        )
        self.path = path


class GroundTruthError(DrawingProcessingError):
    """
    Exception for unreadable or malformed ground-truth files.

    Attributes:
        path: Ground-truth file path.
    """

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message=message,
            source=path,
            stage="benchmark",
            recoverable=False,
            original_error=original_error,
        )
        self.path = path


def log_error_with_context(
    error: Exception, logger: logging.Logger, context: Dict[str, Any]
) -> None:
    """
    Log an error with its source, stage and any extra context.

    Recoverable DrawingProcessingErrors log at WARNING, everything else at
    ERROR. The traceback is added at DEBUG.

    Args:
        error: The exception to log.
        logger: Logger of the calling module.
        context: Extra fields; ``source`` and ``stage`` override the values
            carried by the error.
    """
    source = context.get("source", getattr(error, "source", None)) or "unknown"
    stage = context.get("stage", getattr(error, "stage", None)) or "unknown"
    recoverable = isinstance(error, DrawingProcessingError) and error.recoverable
    level = logging.WARNING if recoverable else logging.ERROR

    extras = ", ".join(
        f"{key}={value}" for key, value in context.items() if key not in ("source", "stage")
    )
    message = f"{stage} failed for {source}: [{type(error).__name__}] {error}"
    if extras:
        message += f" ({extras})"
    logger.log(level, message)

    cause = getattr(error, "original_error", None)
    if cause is not None:
        logger.log(level, f"  caused by [{type(cause).__name__}] {cause}")

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(traceback.format_exc())
