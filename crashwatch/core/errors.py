"""
Crashwatch Error Handling Module

Structured error codes and the exception hierarchy for the crash risk
engine. Only configuration problems are raised; problems with indicator
data are recorded as ``MissingIndicator`` entries and absorbed by the engine.
"""

import logging
import traceback
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# =============================================================================
# Error Code Taxonomy
# =============================================================================


class ErrorCategory(Enum):
    """Top-level error categories."""

    CONFIGURATION = "CONFIGURATION"
    DATA = "DATA"
    SYSTEM = "SYSTEM"


class ErrorSeverity(Enum):
    """Error severity levels for monitoring and alerting."""

    DEBUG = auto()
    INFO = auto()
    WARNING = auto()
    ERROR = auto()
    CRITICAL = auto()


@dataclass(frozen=True)
class ErrorCode:
    """Structured error code with metadata."""

    code: str
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    recovery_hint: str = ""

    def __str__(self) -> str:
        return f"{self.category.value}_{self.code}"


class ErrorCodes:
    """Central registry of all Crashwatch error codes."""

    # Configuration Errors (1xxx)
    CONFIG_WEIGHTS_INVALID = ErrorCode(
        code="1001",
        category=ErrorCategory.CONFIGURATION,
        severity=ErrorSeverity.CRITICAL,
        message="Indicator weight table is invalid",
        recovery_hint="Weights must be non-negative, cover every indicator and sum to 1.0.",
    )

    CONFIG_BANDS_INVALID = ErrorCode(
        code="1002",
        category=ErrorCategory.CONFIGURATION,
        severity=ErrorSeverity.CRITICAL,
        message="Risk level bands are invalid",
        recovery_hint="Bands must start at 0, ascend without gaps or overlaps and end at 100.",
    )

    CONFIG_THRESHOLDS_INVALID = ErrorCode(
        code="1003",
        category=ErrorCategory.CONFIGURATION,
        severity=ErrorSeverity.CRITICAL,
        message="Default indicator thresholds are inconsistent",
        recovery_hint="Order historical_avg, warning_level and danger_level along the indicator polarity.",
    )

    CONFIG_MODEL_INVALID = ErrorCode(
        code="1004",
        category=ErrorCategory.CONFIGURATION,
        severity=ErrorSeverity.CRITICAL,
        message="Risk model document failed validation",
        recovery_hint="Compare the document against the packaged risk_model.yaml.",
    )

    CONFIG_FILE_UNREADABLE = ErrorCode(
        code="1005",
        category=ErrorCategory.CONFIGURATION,
        severity=ErrorSeverity.CRITICAL,
        message="Risk model file could not be read",
        recovery_hint="Check CRASHWATCH_RISK_MODEL_PATH and file permissions.",
    )

    # Data conditions (2xxx), reported on breakdowns rather than raised
    DATA_INDICATOR_MISSING = ErrorCode(
        code="2001",
        category=ErrorCategory.DATA,
        severity=ErrorSeverity.INFO,
        message="Indicator reading not supplied",
    )

    DATA_INDICATOR_INVALID = ErrorCode(
        code="2002",
        category=ErrorCategory.DATA,
        severity=ErrorSeverity.WARNING,
        message="Indicator reading rejected as invalid",
        recovery_hint="Inspect the upstream source for the indicator.",
    )

    DATA_INSUFFICIENT = ErrorCode(
        code="2003",
        category=ErrorCategory.DATA,
        severity=ErrorSeverity.WARNING,
        message="No usable indicators for evaluation",
    )

    # System Errors (9xxx)
    SYSTEM_INTERNAL_ERROR = ErrorCode(
        code="9001",
        category=ErrorCategory.SYSTEM,
        severity=ErrorSeverity.CRITICAL,
        message="Internal error",
    )


# =============================================================================
# Missing Indicator Records
# =============================================================================


class MissingReason(Enum):
    """Why an indicator did not contribute to an evaluation."""

    MISSING = "missing"
    NON_FINITE = "non_finite"
    OUT_OF_DOMAIN = "out_of_domain"
    INCONSISTENT_THRESHOLDS = "inconsistent_thresholds"

    @property
    def error_code(self) -> ErrorCode:
        if self is MissingReason.MISSING:
            return ErrorCodes.DATA_INDICATOR_MISSING
        return ErrorCodes.DATA_INDICATOR_INVALID


@dataclass(frozen=True)
class MissingIndicator:
    """
    An indicator excluded from aggregation.

    Never raised. The engine attaches these to the breakdown so consumers
    can show which inputs were absent or rejected.
    """

    kind: Any  # IndicatorKind; typed loosely to avoid a circular import
    reason: MissingReason
    detail: str = ""

    @property
    def code(self) -> str:
        return str(self.reason.error_code)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "indicator": getattr(self.kind, "value", str(self.kind)),
            "reason": self.reason.value,
            "code": self.code,
            "detail": self.detail,
        }


# =============================================================================
# Base Exception Classes
# =============================================================================


class CrashwatchError(Exception):
    """
    Base exception for all Crashwatch errors.

    Provides structured error information including error codes
    and recovery suggestions.
    """

    def __init__(
        self,
        error_code: ErrorCode = ErrorCodes.SYSTEM_INTERNAL_ERROR,
        detail: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.error_code = error_code
        self.detail = detail
        self.original_error = original_error
        self.context = context or {}
        self.debug_info: Dict[str, Any] = {}
        self.timestamp = datetime.now(timezone.utc)

        if original_error:
            self.debug_info["original_traceback"] = traceback.format_exception(
                type(original_error), original_error, original_error.__traceback__
            )

        super().__init__(self.technical_message)

    @property
    def code(self) -> str:
        """Full error code string."""
        return str(self.error_code)

    @property
    def category(self) -> ErrorCategory:
        return self.error_code.category

    @property
    def severity(self) -> ErrorSeverity:
        return self.error_code.severity

    @property
    def technical_message(self) -> str:
        """Technical error message for logging."""
        msg = f"[{self.code}] {self.error_code.message}"
        if self.detail:
            msg = f"{msg}: {self.detail}"
        return msg

    @property
    def recovery_hint(self) -> str:
        return self.error_code.recovery_hint

    def to_dict(self, include_debug: bool = False) -> Dict[str, Any]:
        """
        Convert error to dictionary for serialization.

        Args:
            include_debug: Include context and traceback information
        """
        result = {
            "code": self.code,
            "category": self.category.value,
            "message": self.technical_message,
            "recovery_hint": self.recovery_hint,
            "timestamp": self.timestamp.isoformat(),
        }

        if include_debug:
            result["debug"] = {
                "context": self.context,
                "debug_info": self.debug_info,
            }

        return result

    def log(self) -> None:
        """Log the error with appropriate severity."""
        log_method = getattr(logger, self.severity.name.lower(), logger.error)
        log_method(
            self.technical_message,
            extra={
                "ctx_error_code": self.code,
                "ctx_context": self.context,
            },
        )


class ConfigurationError(CrashwatchError):
    """Invalid risk model configuration. Fatal at load time."""

    def __init__(
        self,
        error_code: ErrorCode = ErrorCodes.CONFIG_MODEL_INVALID,
        **kwargs,
    ):
        super().__init__(error_code, **kwargs)


# =============================================================================
# Utility Functions
# =============================================================================


def wrap_exception(
    exception: Exception,
    default_code: ErrorCode = ErrorCodes.CONFIG_MODEL_INVALID,
    context: Optional[Dict[str, Any]] = None,
) -> CrashwatchError:
    """
    Wrap a generic exception raised while loading configuration.

    Maps common exception types to appropriate error codes.
    """
    if isinstance(exception, CrashwatchError):
        return exception

    # pydantic.ValidationError is a ValueError subclass
    exception_mapping = {
        FileNotFoundError: ErrorCodes.CONFIG_FILE_UNREADABLE,
        PermissionError: ErrorCodes.CONFIG_FILE_UNREADABLE,
        IsADirectoryError: ErrorCodes.CONFIG_FILE_UNREADABLE,
        UnicodeDecodeError: ErrorCodes.CONFIG_FILE_UNREADABLE,
        ValueError: ErrorCodes.CONFIG_MODEL_INVALID,
    }

    error_code = default_code
    for exc_type, mapped_code in exception_mapping.items():
        if isinstance(exception, exc_type):
            error_code = mapped_code
            break

    if error_code.category is ErrorCategory.CONFIGURATION:
        return ConfigurationError(
            error_code,
            detail=str(exception),
            original_error=exception,
            context=context,
        )

    return CrashwatchError(
        error_code,
        detail=str(exception),
        original_error=exception,
        context=context,
    )
