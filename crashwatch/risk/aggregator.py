"""
Composite Score Aggregator

Combines available indicator sub-scores into one composite score,
renormalizing weights over the indicators that were actually present:

    composite = sum(w_i * s_i) / sum(w_i)   over available i

so missing indicators neither count as safe nor depress the score.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Tuple

from .indicators import IndicatorKind
from .normalizer import NormalizedResult, resolve_duplicates
from .weights import WeightTable

logger = logging.getLogger(__name__)

_CANONICAL_ORDER = {kind: index for index, kind in enumerate(IndicatorKind)}


@dataclass(frozen=True)
class AggregateScore:
    """Composite score plus the subset of indicators it was computed over."""

    score: float
    insufficient_data: bool
    used: Tuple[IndicatorKind, ...] = ()
    total_weight: float = 0.0

    @classmethod
    def no_data(cls) -> "AggregateScore":
        return cls(score=0.0, insufficient_data=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "insufficient_data": self.insufficient_data,
            "used": [kind.value for kind in self.used],
            "total_weight": self.total_weight,
        }


def aggregate(results: Iterable[NormalizedResult], weights: WeightTable) -> AggregateScore:
    """
    Weighted mean of available sub-scores.

    Unavailable results and zero-weight indicators are excluded. If nothing
    usable remains the insufficient-data sentinel is returned instead of
    dividing by zero. Results are summed in canonical indicator order with
    exactly rounded sums, so the score does not depend on input order.
    Several results for one indicator are resolved the same way the engine
    resolves duplicate readings.

    Args:
        results: Normalized results; duplicates keep the most severe
        weights: Weight table

    Returns:
        AggregateScore
    """
    kept, duplicates = resolve_duplicates(results)
    for kind in duplicates:
        logger.warning("Multiple results for %s; aggregating the most severe", kind.value)

    present = sorted(
        (r for r in kept.values() if r.is_available and weights[r.kind] > 0),
        key=lambda r: _CANONICAL_ORDER[r.kind],
    )
    used = tuple(r.kind for r in present)

    if not present:
        logger.debug("No usable indicators; returning insufficient-data sentinel")
        return AggregateScore.no_data()

    total_weight = math.fsum(weights[r.kind] for r in present)
    weighted_sum = math.fsum(weights[r.kind] * r.sub_score for r in present)
    score = weighted_sum / total_weight

    # A weighted mean lies within its inputs; this only absorbs rounding
    lowest = min(r.sub_score for r in present)
    highest = max(r.sub_score for r in present)
    score = min(highest, max(lowest, score))

    return AggregateScore(
        score=score,
        insufficient_data=False,
        used=used,
        total_weight=total_weight,
    )
