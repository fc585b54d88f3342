"""
Crashwatch Core Module

Error taxonomy shared by the risk engine, configuration and CLI.
"""

from .errors import (
    ConfigurationError,
    CrashwatchError,
    ErrorCategory,
    ErrorCode,
    ErrorCodes,
    ErrorSeverity,
    MissingIndicator,
    MissingReason,
    wrap_exception,
)

__all__ = [
    "ConfigurationError",
    "CrashwatchError",
    "ErrorCategory",
    "ErrorCode",
    "ErrorCodes",
    "ErrorSeverity",
    "MissingIndicator",
    "MissingReason",
    "wrap_exception",
]
