"""
Crashwatch Configuration Module

Settings, logging and metrics, plus the packaged default risk model.
"""

from .logging import (
    ConsoleFormatter,
    LogContext,
    StructuredFormatter,
    configure_logging,
    log_performance,
    log_with_context,
)
from .metrics import MetricNames, MetricsCollector, RiskMetrics, get_metrics
from .settings import CrashwatchSettings, clear_settings_cache, get_settings

__all__ = [
    "ConsoleFormatter",
    "CrashwatchSettings",
    "LogContext",
    "MetricNames",
    "MetricsCollector",
    "RiskMetrics",
    "StructuredFormatter",
    "clear_settings_cache",
    "configure_logging",
    "get_metrics",
    "get_settings",
    "log_performance",
    "log_with_context",
]
