"""
Crash Risk Engine

Turns a collection of indicator readings into a RiskBreakdown:
normalize each reading, aggregate the available sub-scores with the
weight table, then classify the composite score.

The engine holds only its immutable RiskModel, so one instance can serve
concurrent evaluations. Bad input data never raises; only configuration
errors do, and those surface when the engine is constructed.
"""

import logging
import math
import time
from dataclasses import dataclass, replace
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from crashwatch.config.logging import log_performance, log_with_context
from crashwatch.config.metrics import MetricsCollector, RiskMetrics
from crashwatch.config.settings import CrashwatchSettings, get_settings
from crashwatch.core.errors import MissingIndicator, MissingReason

from .aggregator import AggregateScore, aggregate
from .classifier import RiskLevel, classify
from .indicators import IndicatorKind, IndicatorReading
from .model import RiskModel, load_risk_model
from .normalizer import IndicatorStatus, NormalizedResult, normalize, resolve_duplicates

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndicatorDetail:
    """Per-indicator line of a breakdown, for display."""

    kind: IndicatorKind
    available: bool
    value: Optional[float]
    sub_score: Optional[float]
    status: Optional[IndicatorStatus]
    weight: float
    effective_weight: float
    missing_reason: Optional[MissingReason] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "indicator": self.kind.value,
            "available": self.available,
            "value": self.value,
            "sub_score": self.sub_score,
            "status": self.status.value if self.status else None,
            "weight": self.weight,
            "effective_weight": self.effective_weight,
            "missing_reason": self.missing_reason.value if self.missing_reason else None,
        }


@dataclass(frozen=True)
class RiskBreakdown:
    """
    Result of one evaluation.

    When no indicator was usable ``insufficient_data`` is set, the score is
    0.0 and ``risk_level`` is None, so consumers can render "data
    unavailable" rather than a precise-looking number.
    """

    total_score: float
    risk_level: Optional[RiskLevel]
    critical_warning_count: int
    warning_count: int
    insufficient_data: bool
    indicators: Tuple[IndicatorDetail, ...]
    missing: Tuple[MissingIndicator, ...]
    model_version: str

    @property
    def display_score(self) -> int:
        """Composite score rounded half-up to an integer."""
        return int(math.floor(self.total_score + 0.5))

    @property
    def available_count(self) -> int:
        return sum(1 for detail in self.indicators if detail.available)

    def detail(self, kind: IndicatorKind) -> IndicatorDetail:
        for item in self.indicators:
            if item.kind is kind:
                return item
        raise KeyError(kind)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "total_score": self.total_score,
            "display_score": self.display_score,
            "risk_level": self.risk_level.value if self.risk_level else None,
            "critical_warning_count": self.critical_warning_count,
            "warning_count": self.warning_count,
            "insufficient_data": self.insufficient_data,
            "available_count": self.available_count,
            "indicators": [detail.to_dict() for detail in self.indicators],
            "missing": [item.to_dict() for item in self.missing],
            "model_version": self.model_version,
        }

    def to_frame(self) -> pd.DataFrame:
        """Per-indicator detail as a DataFrame indexed by indicator."""
        rows = [detail.to_dict() for detail in self.indicators]
        columns = [
            "indicator",
            "available",
            "value",
            "sub_score",
            "status",
            "weight",
            "effective_weight",
            "missing_reason",
        ]
        return pd.DataFrame(rows, columns=columns).set_index("indicator")


class CrashRiskEngine:
    """
    Composite crash risk scoring over the six market indicators.

    Example:
        engine = CrashRiskEngine()
        breakdown = engine.evaluate([
            engine.reading(IndicatorKind.CAPE, 38.0),
            engine.reading(IndicatorKind.VOLATILITY_INDEX, 18.0),
        ])
    """

    def __init__(
        self,
        model: Optional[RiskModel] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        """
        Initialize the engine.

        Args:
            model: Validated risk model; the packaged default when None
            metrics: Collector for evaluation metrics; nothing recorded when None

        Raises:
            ConfigurationError: If the default model cannot be loaded
        """
        self.model = model if model is not None else load_risk_model()
        self._metrics = RiskMetrics(metrics) if metrics is not None else None
        logger.info(
            "CrashRiskEngine initialized with risk model %s", self.model.version
        )

    @classmethod
    def from_settings(
        cls,
        settings: Optional[CrashwatchSettings] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> "CrashRiskEngine":
        """Build an engine from the model named in settings."""
        settings = settings or get_settings()
        return cls(load_risk_model(settings.RISK_MODEL_PATH), metrics=metrics)

    # -------------------------------------------------------------------------
    # Reading Construction
    # -------------------------------------------------------------------------

    def reading(self, kind: Any, value: Optional[float], **overrides: Any) -> IndicatorReading:
        """
        Reading for a bare value using the model's default thresholds.

        Args:
            kind: Indicator identity or key
            value: Current value, None when unavailable
            **overrides: Replacement fields (e.g. danger_level)
        """
        template = self.model.defaults[IndicatorKind.parse(kind)]
        reading = template.with_value(value)
        if overrides:
            reading = replace(reading, **overrides)
        return reading

    def readings_from_mapping(self, data: Mapping[Any, Any]) -> List[IndicatorReading]:
        """
        Readings from a mapping of indicator key to number, None or payload.

        Unknown keys are skipped with a warning. Payload objects use the
        upstream indicator shape; thresholds they omit come from the model.
        """
        readings: List[IndicatorReading] = []
        for key, raw in data.items():
            try:
                kind = IndicatorKind.parse(key)
            except ValueError:
                logger.warning("Skipping unknown indicator key %r", key)
                continue

            defaults = self.model.defaults[kind]
            if isinstance(raw, Mapping):
                readings.append(IndicatorReading.from_payload(kind, raw, defaults=defaults))
            else:
                readings.append(IndicatorReading.from_payload(kind, {"value": raw}, defaults=defaults))
        return readings

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def normalize_all(self, readings: Iterable[Any]) -> Dict[IndicatorKind, NormalizedResult]:
        """
        Normalize readings, keeping one result per indicator.

        Items that are not readings are skipped. When an indicator appears
        more than once the most severe available result wins, which does
        not depend on input order.
        """
        normalized: List[NormalizedResult] = []

        for reading in readings:
            if not isinstance(reading, IndicatorReading) or not isinstance(
                reading.kind, IndicatorKind
            ):
                logger.warning("Ignoring non-reading input of type %s", type(reading).__name__)
                continue

            result = normalize(reading, warning_score=self.model.warning_score)
            if result.missing is not None and result.missing.reason is not MissingReason.MISSING:
                logger.warning(
                    "Excluding %s: %s (%s)",
                    reading.kind.value,
                    result.missing.reason.value,
                    result.missing.detail,
                )
            normalized.append(result)

        results, duplicates = resolve_duplicates(normalized)
        for kind in duplicates:
            logger.warning("Multiple readings for %s; kept the most severe", kind.value)

        return results

    @log_performance(threshold_ms=50.0)
    def evaluate(self, readings: Iterable[IndicatorReading]) -> RiskBreakdown:
        """
        Evaluate crash risk from whichever readings are available.

        Args:
            readings: Zero or more indicator readings

        Returns:
            RiskBreakdown, freshly built for this call
        """
        start = time.perf_counter()

        results = self.normalize_all(readings)
        aggregate_score = aggregate(results.values(), self.model.weights)
        classification = classify(aggregate_score.score, results.values(), self.model.bands)

        breakdown = RiskBreakdown(
            total_score=aggregate_score.score,
            risk_level=None if aggregate_score.insufficient_data else classification.risk_level,
            critical_warning_count=classification.critical_warning_count,
            warning_count=classification.warning_count,
            insufficient_data=aggregate_score.insufficient_data,
            indicators=self._details(results, aggregate_score),
            missing=self._missing(results),
            model_version=self.model.version,
        )

        if breakdown.insufficient_data:
            logger.warning("No usable indicators; returning insufficient-data breakdown")
        else:
            log_with_context(
                logger,
                logging.DEBUG,
                f"Crash risk {breakdown.total_score:.2f} ({breakdown.risk_level.value})",
                score=round(breakdown.total_score, 4),
                risk_level=breakdown.risk_level.value,
                indicators_used=len(aggregate_score.used),
                critical_warnings=breakdown.critical_warning_count,
            )

        if self._metrics is not None:
            self._metrics.record_evaluation(
                duration_ms=(time.perf_counter() - start) * 1000,
                risk_level=breakdown.risk_level.value if breakdown.risk_level else None,
                composite_score=breakdown.total_score,
                critical_warnings=breakdown.critical_warning_count,
                unavailable={m.kind.value: m.reason.value for m in breakdown.missing},
                insufficient_data=breakdown.insufficient_data,
            )

        return breakdown

    def evaluate_mapping(self, data: Mapping[Any, Any]) -> RiskBreakdown:
        """Evaluate from a mapping of indicator key to value or payload."""
        return self.evaluate(self.readings_from_mapping(data))

    def _details(
        self,
        results: Mapping[IndicatorKind, NormalizedResult],
        aggregate_score: AggregateScore,
    ) -> Tuple[IndicatorDetail, ...]:
        effective = self.model.weights.renormalized(aggregate_score.used)
        details = []
        for kind in IndicatorKind:
            result = results.get(kind)
            if result is None:
                result = NormalizedResult.unavailable(kind, MissingReason.MISSING, "not supplied")
            details.append(
                IndicatorDetail(
                    kind=kind,
                    available=result.is_available,
                    value=result.value,
                    sub_score=result.sub_score,
                    status=result.status,
                    weight=self.model.weights[kind],
                    effective_weight=effective.get(kind, 0.0),
                    missing_reason=result.missing.reason if result.missing else None,
                )
            )
        return tuple(details)

    def _missing(
        self, results: Mapping[IndicatorKind, NormalizedResult]
    ) -> Tuple[MissingIndicator, ...]:
        missing = []
        for kind in IndicatorKind:
            result = results.get(kind)
            if result is None:
                logger.debug("Indicator %s not supplied", kind.value)
                missing.append(MissingIndicator(kind, MissingReason.MISSING, "not supplied"))
            elif result.missing is not None:
                missing.append(result.missing)
        return tuple(missing)

    def health_check(self) -> bool:
        """Engine is healthy when it holds a validated model."""
        return self.model is not None


# =============================================================================
# Default Engine
# =============================================================================


@lru_cache()
def get_default_engine() -> CrashRiskEngine:
    """
    Process-wide engine built from settings on first use.

    Raises:
        ConfigurationError: If the configured risk model is invalid
    """
    return CrashRiskEngine.from_settings()


def evaluate(
    readings: Iterable[IndicatorReading],
    engine: Optional[CrashRiskEngine] = None,
) -> RiskBreakdown:
    """
    Evaluate crash risk with the given or default engine.

    Args:
        readings: Zero or more indicator readings
        engine: Engine to use; the cached default when None

    Returns:
        RiskBreakdown
    """
    return (engine or get_default_engine()).evaluate(readings)
