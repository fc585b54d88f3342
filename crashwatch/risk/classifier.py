"""
Risk Level Classifier

Maps a composite score onto ordered risk level bands and counts the
indicators sitting in the warning and danger bands.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from crashwatch.core.errors import ConfigurationError, ErrorCodes

from .normalizer import MAX_SUB_SCORE, IndicatorStatus, NormalizedResult, resolve_duplicates


class RiskLevel(Enum):
    """Composite crash risk classification, least to most severe."""

    LOW = "low"
    MODERATE = "moderate"
    ELEVATED = "elevated"
    HIGH = "high"
    EXTREME = "extreme"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    def __lt__(self, other: "RiskLevel") -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.severity < other.severity

    @property
    def label(self) -> str:
        return self.value.capitalize()


_SEVERITY = {level: rank for rank, level in enumerate(RiskLevel)}


@dataclass(frozen=True)
class RiskBand:
    """Score interval ``[lower, upper)`` mapped to a level; the last band is closed."""

    level: RiskLevel
    lower: float
    upper: float

    def contains(self, score: float, closed: bool = False) -> bool:
        if closed:
            return self.lower <= score <= self.upper
        return self.lower <= score < self.upper


# Cut points of the dashboard risk gauge
DEFAULT_BAND_LOWER_BOUNDS: Tuple[Tuple[RiskLevel, float], ...] = (
    (RiskLevel.LOW, 0.0),
    (RiskLevel.MODERATE, 30.0),
    (RiskLevel.ELEVATED, 50.0),
    (RiskLevel.HIGH, 65.0),
    (RiskLevel.EXTREME, 80.0),
)


class RiskBands:
    """
    Ordered, exhaustive, non-overlapping partition of [0, 100].

    Built from ``(level, lower_bound)`` pairs; each band ends where the next
    begins and the last ends at 100 inclusive.

    Raises:
        ConfigurationError: If bounds are unordered, do not start at 0, leave
            an empty band, or levels repeat or run out of severity order
    """

    def __init__(
        self,
        lower_bounds: Sequence[Tuple[RiskLevel, float]] = DEFAULT_BAND_LOWER_BOUNDS,
    ):
        if not lower_bounds:
            raise ConfigurationError(ErrorCodes.CONFIG_BANDS_INVALID, detail="no bands defined")

        levels = [RiskLevel(level) for level, _ in lower_bounds]
        bounds = [float(lower) for _, lower in lower_bounds]

        if len(set(levels)) != len(levels):
            raise ConfigurationError(
                ErrorCodes.CONFIG_BANDS_INVALID, detail="a risk level appears in more than one band"
            )
        if levels != sorted(levels):
            raise ConfigurationError(
                ErrorCodes.CONFIG_BANDS_INVALID, detail="bands must be listed in severity order"
            )
        if not all(math.isfinite(b) for b in bounds):
            raise ConfigurationError(
                ErrorCodes.CONFIG_BANDS_INVALID, detail=f"non-finite band bound in {bounds}"
            )
        if bounds[0] != 0.0:
            raise ConfigurationError(
                ErrorCodes.CONFIG_BANDS_INVALID, detail=f"first band must start at 0, got {bounds[0]}"
            )

        uppers = bounds[1:] + [MAX_SUB_SCORE]
        bands: List[RiskBand] = []
        for level, lower, upper in zip(levels, bounds, uppers):
            if not lower < upper:
                raise ConfigurationError(
                    ErrorCodes.CONFIG_BANDS_INVALID,
                    detail=f"band {level.value} [{lower}, {upper}) is empty or overlaps its neighbour",
                )
            bands.append(RiskBand(level=level, lower=lower, upper=upper))

        self._bands: Tuple[RiskBand, ...] = tuple(bands)

    @property
    def bands(self) -> Tuple[RiskBand, ...]:
        return self._bands

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RiskBands):
            return NotImplemented
        return self._bands == other._bands

    def __hash__(self) -> int:
        return hash(self._bands)

    def __repr__(self) -> str:
        return "RiskBands(" + ", ".join(
            f"{b.level.value}=[{b.lower}, {b.upper})" for b in self._bands
        ) + ")"

    def level_for(self, score: float) -> RiskLevel:
        """
        Risk level for a composite score.

        Scores outside [0, 100] are clamped to the nearest band.
        """
        if score >= self._bands[-1].lower:
            return self._bands[-1].level
        for band in self._bands:
            if band.contains(score):
                return band.level
        return self._bands[0].level

    def to_list(self) -> List[Dict[str, Any]]:
        return [
            {"level": band.level.value, "lower": band.lower, "upper": band.upper}
            for band in self._bands
        ]


@dataclass(frozen=True)
class Classification:
    """Classifier output."""

    risk_level: RiskLevel
    critical_warning_count: int
    warning_count: int


def count_status(results: Iterable[NormalizedResult], status: IndicatorStatus) -> int:
    """Number of available results in the given status."""
    return sum(1 for r in results if r.is_available and r.status is status)


def classify(
    composite_score: float,
    results: Iterable[NormalizedResult],
    bands: Optional[RiskBands] = None,
) -> Classification:
    """
    Classify a composite score and count warnings.

    Unavailable results neither add to nor suppress the counts. An indicator
    supplied more than once is counted once, by its most severe result.

    Args:
        composite_score: Aggregated score in [0, 100]
        results: Normalized results for the same evaluation
        bands: Risk bands (defaults to the standard cut points)

    Returns:
        Classification
    """
    bands = bands or RiskBands()
    results = list(resolve_duplicates(results)[0].values())
    return Classification(
        risk_level=bands.level_for(composite_score),
        critical_warning_count=count_status(results, IndicatorStatus.DANGER),
        warning_count=count_status(results, IndicatorStatus.WARNING),
    )
