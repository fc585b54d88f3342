"""
Indicator Normalizer

Maps a raw indicator reading onto a 0-100 sub-score and a
safe / warning / danger status using the reading's own thresholds.

The curve is piecewise linear in the adverse distance from the historical
average: 0 at the average, ``warning_score`` at the warning level and 100
at the danger level, saturating beyond it.
"""

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from crashwatch.core.errors import MissingIndicator, MissingReason

from .indicators import (
    INDICATOR_INFO,
    IndicatorKind,
    IndicatorReading,
    Polarity,
    coerce_float,
    coerce_polarity,
)

logger = logging.getLogger(__name__)

MAX_SUB_SCORE = 100.0
DEFAULT_WARNING_SCORE = 40.0


class IndicatorStatus(Enum):
    """Severity band of a single indicator."""

    SAFE = "safe"
    WARNING = "warning"
    DANGER = "danger"


@dataclass(frozen=True)
class NormalizedResult:
    """
    Normalizer output for one indicator.

    Either available (``sub_score`` and ``status`` set) or unavailable
    (``missing`` set). The aggregator only consumes available results.
    """

    kind: IndicatorKind
    sub_score: Optional[float] = None
    status: Optional[IndicatorStatus] = None
    value: Optional[float] = None
    missing: Optional[MissingIndicator] = None
    polarity: Optional[Polarity] = None

    @property
    def is_available(self) -> bool:
        return self.missing is None

    @classmethod
    def unavailable(
        cls,
        kind: IndicatorKind,
        reason: MissingReason,
        detail: str = "",
        value: Optional[float] = None,
    ) -> "NormalizedResult":
        return cls(
            kind=kind,
            value=value,
            missing=MissingIndicator(kind=kind, reason=reason, detail=detail),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "indicator": self.kind.value,
            "available": self.is_available,
            "value": self.value,
            "sub_score": self.sub_score,
            "status": self.status.value if self.status else None,
            "missing_reason": self.missing.reason.value if self.missing else None,
            "polarity": self.polarity.value if self.polarity else None,
        }


def _prepare(
    reading: IndicatorReading,
) -> Tuple[IndicatorReading, Optional[MissingIndicator]]:
    """
    Coerce a reading's numbers and polarity, then validate it.

    Returns the coerced reading and None when it can be scored, otherwise
    the original reading and the reason it cannot.
    """
    kind = reading.kind

    if reading.value is None:
        return reading, MissingIndicator(kind, MissingReason.MISSING, "no value supplied")

    value = coerce_float(reading.value)
    if value is None:
        return reading, MissingIndicator(
            kind, MissingReason.NON_FINITE, f"unusable {type(reading.value).__name__} value"
        )
    if not math.isfinite(value):
        return reading, MissingIndicator(kind, MissingReason.NON_FINITE, f"value={value}")

    if value < 0 and not INDICATOR_INFO[kind].allows_negative:
        return reading, MissingIndicator(
            kind, MissingReason.OUT_OF_DOMAIN, f"negative value {value} is impossible"
        )

    avg, warning, danger = thresholds = tuple(
        coerce_float(t)
        for t in (reading.historical_avg, reading.warning_level, reading.danger_level)
    )
    if not all(t is not None and math.isfinite(t) for t in thresholds):
        return reading, MissingIndicator(
            kind,
            MissingReason.INCONSISTENT_THRESHOLDS,
            "thresholds must be finite numbers",
        )

    polarity = INDICATOR_INFO[kind].polarity
    if reading.polarity is not None:
        polarity = coerce_polarity(reading.polarity)
        if polarity is None:
            return reading, MissingIndicator(
                kind, MissingReason.INCONSISTENT_THRESHOLDS, "unknown polarity"
            )

    to_warning = polarity.sign * (warning - avg)
    to_danger = polarity.sign * (danger - avg)
    if not (0 < to_warning <= to_danger) or not math.isfinite(to_danger):
        return reading, MissingIndicator(
            kind,
            MissingReason.INCONSISTENT_THRESHOLDS,
            f"avg={avg} warning={warning} danger={danger} not ordered for {polarity.value}",
        )

    prepared = replace(
        reading,
        value=value,
        historical_avg=avg,
        warning_level=warning,
        danger_level=danger,
        polarity=polarity,
    )
    return prepared, None


def check_reading(reading: IndicatorReading) -> Optional[MissingIndicator]:
    """
    Validate a reading before scoring.

    Returns:
        None when the reading can be scored, otherwise the reason it cannot
    """
    return _prepare(reading)[1]


def classify_status(reading: IndicatorReading) -> IndicatorStatus:
    """Status of a valid reading. At-threshold values take the worse band."""
    value = reading.value
    if reading.effective_polarity.sign > 0:
        if value >= reading.danger_level:
            return IndicatorStatus.DANGER
        if value >= reading.warning_level:
            return IndicatorStatus.WARNING
    else:
        if value <= reading.danger_level:
            return IndicatorStatus.DANGER
        if value <= reading.warning_level:
            return IndicatorStatus.WARNING
    return IndicatorStatus.SAFE


def normalize(
    reading: IndicatorReading,
    warning_score: float = DEFAULT_WARNING_SCORE,
) -> NormalizedResult:
    """
    Score a single reading.

    Never raises on bad data: absent, non-numeric, non-finite or impossible
    values and inconsistent thresholds produce an unavailable result.

    Args:
        reading: Indicator reading
        warning_score: Sub-score assigned at exactly the warning level

    Returns:
        NormalizedResult
    """
    reading, problem = _prepare(reading)
    if problem is not None:
        return NormalizedResult(
            kind=reading.kind, value=coerce_float(reading.value), missing=problem
        )

    polarity = reading.effective_polarity
    status = classify_status(reading)
    if status is IndicatorStatus.DANGER:
        return NormalizedResult(
            kind=reading.kind,
            sub_score=MAX_SUB_SCORE,
            status=status,
            value=reading.value,
            polarity=polarity,
        )

    sign = polarity.sign
    distance = sign * (reading.value - reading.historical_avg)
    to_warning = sign * (reading.warning_level - reading.historical_avg)
    to_danger = sign * (reading.danger_level - reading.historical_avg)

    if status is IndicatorStatus.WARNING:
        # to_danger > to_warning here, otherwise the reading would be in danger
        fraction = (distance - to_warning) / (to_danger - to_warning)
        sub_score = warning_score + (MAX_SUB_SCORE - warning_score) * fraction
    elif distance <= 0:
        sub_score = 0.0
    else:
        sub_score = warning_score * distance / to_warning

    return NormalizedResult(
        kind=reading.kind,
        sub_score=min(MAX_SUB_SCORE, max(0.0, sub_score)),
        status=status,
        value=reading.value,
        polarity=polarity,
    )


# =============================================================================
# Duplicate Resolution
# =============================================================================

_STATUS_RANK = {
    IndicatorStatus.SAFE: 0,
    IndicatorStatus.WARNING: 1,
    IndicatorStatus.DANGER: 2,
}


def severity_key(result: NormalizedResult) -> Tuple:
    """
    Total ordering of results for one indicator, most severe last.

    Available results outrank unavailable ones. Ties on sub-score and status
    are broken by the value in the result's own adverse direction.
    """
    if not result.is_available:
        return (0, 0.0, 0, 0.0, result.missing.reason.value, result.missing.detail)
    polarity = result.polarity or INDICATOR_INFO[result.kind].polarity
    return (
        1,
        result.sub_score,
        _STATUS_RANK[result.status],
        polarity.sign * result.value,
        polarity.value,
        "",
    )


def resolve_duplicates(
    results: Iterable[NormalizedResult],
) -> Tuple[Dict[IndicatorKind, NormalizedResult], List[IndicatorKind]]:
    """
    Keep the most severe result per indicator.

    Returns:
        (kind -> kept result, indicators that appeared more than once)
    """
    kept: Dict[IndicatorKind, NormalizedResult] = {}
    duplicates = set()
    for result in results:
        current = kept.get(result.kind)
        if current is None:
            kept[result.kind] = result
            continue
        duplicates.add(result.kind)
        if severity_key(result) > severity_key(current):
            kept[result.kind] = result
    return kept, sorted(duplicates, key=lambda kind: kind.value)
