"""
Crash Risk Indicators Module

Defines the six market indicators scored by the crash risk engine,
their static metadata, and the reading value object handed to the engine
by data-fetching collaborators.
"""

import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)


class IndicatorKind(Enum):
    """Identity of a crash risk indicator."""

    CAPE = "cape"  # Shiller cyclically adjusted P/E
    YIELD_CURVE = "yield_curve"  # 10Y - 3M treasury spread, percent
    MARGIN_DEBT = "margin_debt"  # Margin debt / GDP, percent
    CREDIT_SPREAD = "credit_spread"  # High yield OAS, percent
    BUFFETT_INDICATOR = "buffett_indicator"  # Market cap / GDP, percent
    VOLATILITY_INDEX = "volatility_index"  # VIX

    @classmethod
    def parse(cls, key: Any) -> "IndicatorKind":
        """
        Resolve an indicator from its enum value, member name or upstream key.

        Raises:
            ValueError: If the key does not name an indicator
        """
        if isinstance(key, cls):
            return key
        text = str(key).strip()
        normalized = text.lower()
        for kind in cls:
            if normalized in (kind.value, kind.name.lower()):
                return kind
        if text in UPSTREAM_KEYS:
            return UPSTREAM_KEYS[text]
        raise ValueError(f"Unknown indicator: {key!r}")


class Polarity(Enum):
    """Direction in which an indicator value becomes dangerous."""

    HIGHER_IS_WORSE = "higher_is_worse"
    LOWER_IS_WORSE = "lower_is_worse"

    @property
    def sign(self) -> int:
        """+1 when rising values are adverse, -1 when falling values are."""
        return 1 if self is Polarity.HIGHER_IS_WORSE else -1


# Keys used by the dashboard's indicator endpoints
UPSTREAM_KEYS: Dict[str, IndicatorKind] = {
    "cape": IndicatorKind.CAPE,
    "yieldCurve": IndicatorKind.YIELD_CURVE,
    "marginDebt": IndicatorKind.MARGIN_DEBT,
    "creditSpreads": IndicatorKind.CREDIT_SPREAD,
    "buffett": IndicatorKind.BUFFETT_INDICATOR,
    "vix": IndicatorKind.VOLATILITY_INDEX,
}


@dataclass(frozen=True)
class IndicatorInfo:
    """Static metadata for an indicator."""

    kind: IndicatorKind
    name: str
    unit: str
    polarity: Polarity
    allows_negative: bool = False
    description: str = ""


INDICATOR_INFO: Dict[IndicatorKind, IndicatorInfo] = {
    IndicatorKind.CAPE: IndicatorInfo(
        kind=IndicatorKind.CAPE,
        name="CAPE Ratio",
        unit="ratio",
        polarity=Polarity.HIGHER_IS_WORSE,
        description="Shiller cyclically adjusted price-to-earnings ratio",
    ),
    IndicatorKind.YIELD_CURVE: IndicatorInfo(
        kind=IndicatorKind.YIELD_CURVE,
        name="Yield Curve Spread",
        unit="percent",
        polarity=Polarity.LOWER_IS_WORSE,
        allows_negative=True,
        description="10-year minus 3-month treasury yield; inversion precedes recessions",
    ),
    IndicatorKind.MARGIN_DEBT: IndicatorInfo(
        kind=IndicatorKind.MARGIN_DEBT,
        name="Margin Debt / GDP",
        unit="percent",
        polarity=Polarity.HIGHER_IS_WORSE,
        description="FINRA margin debt relative to nominal GDP",
    ),
    IndicatorKind.CREDIT_SPREAD: IndicatorInfo(
        kind=IndicatorKind.CREDIT_SPREAD,
        name="High Yield Credit Spread",
        unit="percent",
        polarity=Polarity.HIGHER_IS_WORSE,
        description="ICE BofA US High Yield option-adjusted spread",
    ),
    IndicatorKind.BUFFETT_INDICATOR: IndicatorInfo(
        kind=IndicatorKind.BUFFETT_INDICATOR,
        name="Buffett Indicator",
        unit="percent",
        polarity=Polarity.HIGHER_IS_WORSE,
        description="Total market capitalization relative to GDP",
    ),
    IndicatorKind.VOLATILITY_INDEX: IndicatorInfo(
        kind=IndicatorKind.VOLATILITY_INDEX,
        name="VIX",
        unit="index",
        polarity=Polarity.HIGHER_IS_WORSE,
        description="CBOE 30-day implied volatility of the S&P 500",
    ),
}


def get_indicator_info(kind: IndicatorKind) -> IndicatorInfo:
    """Get static metadata for an indicator."""
    return INDICATOR_INFO[kind]


@dataclass(frozen=True)
class IndicatorReading:
    """
    One indicator observation with the thresholds it is judged against.

    ``value`` is None when the indicator could not be obtained for this
    evaluation. That is a distinct state from a reading of 0.0.
    """

    kind: IndicatorKind
    value: Optional[float]
    historical_avg: float
    warning_level: float
    danger_level: float
    polarity: Optional[Polarity] = None  # None: the indicator's natural polarity
    timestamp: Optional[datetime] = None
    description: str = ""

    @property
    def is_available(self) -> bool:
        return self.value is not None

    @property
    def effective_polarity(self) -> Polarity:
        polarity = coerce_polarity(self.polarity)
        if polarity is not None:
            return polarity
        return INDICATOR_INFO[self.kind].polarity

    def with_value(self, value: Optional[float]) -> "IndicatorReading":
        """Copy of this reading carrying a different value."""
        return replace(self, value=value)

    @classmethod
    def from_payload(
        cls,
        kind: Any,
        payload: Optional[Mapping[str, Any]],
        defaults: Optional["IndicatorReading"] = None,
    ) -> "IndicatorReading":
        """
        Build a reading from an upstream indicator response.

        Accepts the dashboard endpoint shape (``value``, ``historicalAvg``,
        ``warningLevel``, ``dangerLevel``, ``timestamp``, ``description``)
        and the snake_case equivalents. Bad data never raises: a missing or
        unparseable value yields an unavailable reading. Omitted thresholds
        fall back to ``defaults``; unparseable ones become NaN, which the
        normalizer rejects as inconsistent.

        Args:
            kind: Indicator identity or key
            payload: Response body, or None when the fetch failed
            defaults: Reading supplying thresholds the payload omits

        Returns:
            IndicatorReading
        """
        kind = IndicatorKind.parse(kind)
        payload = payload if isinstance(payload, Mapping) else {}

        def threshold(camel: str, snake: str) -> float:
            raw = payload.get(camel, payload.get(snake))
            if raw is None:
                return getattr(defaults, snake) if defaults is not None else math.nan
            parsed = coerce_float(raw)
            if parsed is None:
                logger.warning(
                    "Unparseable %s %s of type %s", kind.value, snake, type(raw).__name__
                )
                return math.nan
            return parsed

        value = coerce_float(payload.get("value"))
        if value is None and payload.get("value") is not None:
            logger.warning(
                "Discarding unparseable %s value of type %s",
                kind.value,
                type(payload.get("value")).__name__,
            )

        polarity = coerce_polarity(payload.get("polarity"))
        if polarity is None and defaults is not None:
            polarity = defaults.polarity

        return cls(
            kind=kind,
            value=value,
            historical_avg=threshold("historicalAvg", "historical_avg"),
            warning_level=threshold("warningLevel", "warning_level"),
            danger_level=threshold("dangerLevel", "danger_level"),
            polarity=polarity,
            timestamp=_to_datetime(payload.get("timestamp")),
            description=str(payload.get("description") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary in the upstream payload shape."""
        return {
            "indicator": self.kind.value,
            "value": self.value,
            "historicalAvg": self.historical_avg,
            "warningLevel": self.warning_level,
            "dangerLevel": self.danger_level,
            "polarity": self.effective_polarity.value,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "description": self.description,
        }


def coerce_float(raw: Any) -> Optional[float]:
    """Float value of ``raw``, or None for booleans and anything unconvertible."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return float(raw)
    except (TypeError, ValueError, OverflowError):
        return None


def coerce_polarity(raw: Any) -> Optional[Polarity]:
    if raw is None:
        return None
    if isinstance(raw, Polarity):
        return raw
    try:
        return Polarity(str(raw))
    except ValueError:
        return None


def _to_datetime(raw: Any) -> Optional[datetime]:
    if isinstance(raw, datetime):
        return raw
    if not isinstance(raw, str) or not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
