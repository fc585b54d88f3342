"""
Indicator Weight Table

Static, versioned mapping of indicator identity to relative importance.
Validated once at construction; an invalid table is a configuration
error and is never raised per evaluation.
"""

import math
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, Mapping, Tuple

from crashwatch.core.errors import ConfigurationError, ErrorCodes

from .indicators import IndicatorKind

WEIGHT_SUM_TOLERANCE = 1e-9

# Weights by historical predictive power in the 1929 and 2008 crashes
DEFAULT_WEIGHTS: Mapping[IndicatorKind, float] = MappingProxyType(
    {
        IndicatorKind.CAPE: 0.20,
        IndicatorKind.YIELD_CURVE: 0.20,
        IndicatorKind.MARGIN_DEBT: 0.15,
        IndicatorKind.CREDIT_SPREAD: 0.15,
        IndicatorKind.BUFFETT_INDICATOR: 0.15,
        IndicatorKind.VOLATILITY_INDEX: 0.15,
    }
)


class WeightTable:
    """
    Immutable indicator weights summing to 1.0 over the canonical set.

    Raises:
        ConfigurationError: If an indicator is missing or unknown, a weight is
            negative or non-finite, or the weights do not sum to 1.0
    """

    def __init__(
        self,
        weights: Mapping[Any, float] = DEFAULT_WEIGHTS,
        version: str = "default",
    ):
        parsed: Dict[IndicatorKind, float] = {}
        for key, weight in weights.items():
            try:
                kind = IndicatorKind.parse(key)
            except ValueError as e:
                raise ConfigurationError(
                    ErrorCodes.CONFIG_WEIGHTS_INVALID, detail=str(e)
                ) from e
            if kind in parsed:
                raise ConfigurationError(
                    ErrorCodes.CONFIG_WEIGHTS_INVALID,
                    detail=f"duplicate weight for {kind.value}",
                )
            try:
                weight = float(weight)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(
                    ErrorCodes.CONFIG_WEIGHTS_INVALID,
                    detail=f"weight for {kind.value} is not a number: {weight!r}",
                ) from e
            if not math.isfinite(weight) or weight < 0:
                raise ConfigurationError(
                    ErrorCodes.CONFIG_WEIGHTS_INVALID,
                    detail=f"weight for {kind.value} must be finite and non-negative, got {weight}",
                )
            parsed[kind] = weight

        absent = [kind.value for kind in IndicatorKind if kind not in parsed]
        if absent:
            raise ConfigurationError(
                ErrorCodes.CONFIG_WEIGHTS_INVALID,
                detail=f"no weight for: {', '.join(absent)}",
            )

        total = math.fsum(parsed.values())
        if not math.isclose(total, 1.0, rel_tol=0.0, abs_tol=WEIGHT_SUM_TOLERANCE):
            raise ConfigurationError(
                ErrorCodes.CONFIG_WEIGHTS_INVALID,
                detail=f"weights sum to {total}, expected 1.0",
                context={"weights": {k.value: v for k, v in parsed.items()}},
            )

        # Canonical enum order, so iteration never depends on input order
        self._weights = MappingProxyType({kind: parsed[kind] for kind in IndicatorKind})
        self.version = version

    def __getitem__(self, kind: IndicatorKind) -> float:
        return self._weights[kind]

    def __iter__(self) -> Iterator[IndicatorKind]:
        return iter(self._weights)

    def __len__(self) -> int:
        return len(self._weights)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WeightTable):
            return NotImplemented
        return dict(self._weights) == dict(other._weights) and self.version == other.version

    def __hash__(self) -> int:
        return hash((self.version, tuple(self._weights.items())))

    def __repr__(self) -> str:
        body = ", ".join(f"{k.value}={v}" for k, v in self._weights.items())
        return f"WeightTable(version={self.version!r}, {body})"

    def items(self) -> Iterable[Tuple[IndicatorKind, float]]:
        return self._weights.items()

    def renormalized(self, kinds: Iterable[IndicatorKind]) -> Dict[IndicatorKind, float]:
        """
        Effective weights over a subset of indicators.

        Weights of the given indicators are rescaled to sum to 1.0. Returns
        an empty dict when the subset carries no weight.
        """
        wanted = set(kinds)
        present = [kind for kind in self._weights if kind in wanted]
        total = math.fsum(self._weights[kind] for kind in present)
        if total <= 0:
            return {}
        return {kind: self._weights[kind] / total for kind in present}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "weights": {kind.value: weight for kind, weight in self._weights.items()},
        }
