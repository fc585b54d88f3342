"""
Crash Risk Module

Composite crash risk scoring from six market indicators: CAPE ratio,
yield curve spread, margin debt, high yield credit spread, Buffett
indicator and VIX.

Readings are normalized to 0-100 sub-scores against their thresholds,
combined with a weight table renormalized over the indicators actually
available, and classified into ordered risk levels.
"""

from .aggregator import AggregateScore, aggregate
from .classifier import (
    Classification,
    RiskBand,
    RiskBands,
    RiskLevel,
    classify,
)
from .engine import (
    CrashRiskEngine,
    IndicatorDetail,
    RiskBreakdown,
    evaluate,
    get_default_engine,
)
from .indicators import (
    INDICATOR_INFO,
    IndicatorInfo,
    IndicatorKind,
    IndicatorReading,
    Polarity,
)
from .model import RiskModel, RiskModelConfig, load_risk_model
from .normalizer import IndicatorStatus, NormalizedResult, normalize
from .weights import DEFAULT_WEIGHTS, WeightTable

__all__ = [
    "AggregateScore",
    "Classification",
    "CrashRiskEngine",
    "DEFAULT_WEIGHTS",
    "INDICATOR_INFO",
    "IndicatorDetail",
    "IndicatorInfo",
    "IndicatorKind",
    "IndicatorReading",
    "IndicatorStatus",
    "NormalizedResult",
    "Polarity",
    "RiskBand",
    "RiskBands",
    "RiskBreakdown",
    "RiskLevel",
    "RiskModel",
    "RiskModelConfig",
    "WeightTable",
    "aggregate",
    "classify",
    "evaluate",
    "get_default_engine",
    "load_risk_model",
    "normalize",
]
