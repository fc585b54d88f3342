"""
Crashwatch - Composite Market Crash Risk Scoring

Aggregates valuation, credit, leverage and volatility indicators into a
single crash risk score with a risk level and critical warning count.
"""

__version__ = "0.1.0"

from .core.errors import ConfigurationError, CrashwatchError, MissingIndicator
from .risk import (
    CrashRiskEngine,
    IndicatorKind,
    IndicatorReading,
    IndicatorStatus,
    Polarity,
    RiskBreakdown,
    RiskLevel,
    evaluate,
)

__all__ = [
    "ConfigurationError",
    "CrashRiskEngine",
    "CrashwatchError",
    "IndicatorKind",
    "IndicatorReading",
    "IndicatorStatus",
    "MissingIndicator",
    "Polarity",
    "RiskBreakdown",
    "RiskLevel",
    "evaluate",
]
