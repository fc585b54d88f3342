"""Tests for indicator identities and reading construction."""

import math
from datetime import datetime, timezone

import pytest

from crashwatch.risk.indicators import (
    INDICATOR_INFO,
    IndicatorKind,
    IndicatorReading,
    Polarity,
    coerce_float,
    get_indicator_info,
)


class TestIndicatorKind:
    @pytest.mark.parametrize(
        "key,expected",
        [
            ("cape", IndicatorKind.CAPE),
            ("yield_curve", IndicatorKind.YIELD_CURVE),
            ("YIELD_CURVE", IndicatorKind.YIELD_CURVE),
            ("yieldCurve", IndicatorKind.YIELD_CURVE),
            ("marginDebt", IndicatorKind.MARGIN_DEBT),
            ("creditSpreads", IndicatorKind.CREDIT_SPREAD),
            ("buffett", IndicatorKind.BUFFETT_INDICATOR),
            ("vix", IndicatorKind.VOLATILITY_INDEX),
            (" volatility_index ", IndicatorKind.VOLATILITY_INDEX),
            (IndicatorKind.CAPE, IndicatorKind.CAPE),
        ],
    )
    def test_parse(self, key, expected):
        assert IndicatorKind.parse(key) is expected

    @pytest.mark.parametrize("key", ["gold", "", None, 3])
    def test_parse_unknown(self, key):
        with pytest.raises(ValueError):
            IndicatorKind.parse(key)

    def test_six_indicators(self):
        assert len(IndicatorKind) == 6
        assert set(INDICATOR_INFO) == set(IndicatorKind)


class TestIndicatorInfo:
    def test_only_yield_curve_is_inverted(self):
        inverted = [k for k, info in INDICATOR_INFO.items() if info.polarity is Polarity.LOWER_IS_WORSE]

        assert inverted == [IndicatorKind.YIELD_CURVE]

    def test_only_yield_curve_may_be_negative(self):
        assert get_indicator_info(IndicatorKind.YIELD_CURVE).allows_negative
        assert not get_indicator_info(IndicatorKind.VOLATILITY_INDEX).allows_negative

    def test_polarity_sign(self):
        assert Polarity.HIGHER_IS_WORSE.sign == 1
        assert Polarity.LOWER_IS_WORSE.sign == -1


class TestReading:
    def test_natural_polarity(self):
        reading = IndicatorReading(IndicatorKind.YIELD_CURVE, 0.3, 1.5, 0.25, 0.0)

        assert reading.effective_polarity is Polarity.LOWER_IS_WORSE

    def test_with_value(self):
        reading = IndicatorReading(IndicatorKind.CAPE, None, 16.8, 25.0, 30.0)

        updated = reading.with_value(31.0)

        assert updated.value == 31.0
        assert reading.value is None
        assert not reading.is_available
        assert updated.is_available

    def test_zero_is_available(self):
        assert IndicatorReading(IndicatorKind.MARGIN_DEBT, 0.0, 1.8, 2.5, 3.0).is_available


class TestFromPayload:
    def test_camel_case_payload(self):
        reading = IndicatorReading.from_payload(
            "vix",
            {
                "value": 18.4,
                "historicalAvg": 19.5,
                "warningLevel": 20,
                "dangerLevel": 30,
                "timestamp": "2025-11-14T16:00:00Z",
                "description": "CBOE VIX close",
            },
        )

        assert reading.kind is IndicatorKind.VOLATILITY_INDEX
        assert reading.value == 18.4
        assert reading.warning_level == 20.0
        assert reading.timestamp == datetime(2025, 11, 14, 16, 0, tzinfo=timezone.utc)
        assert reading.description == "CBOE VIX close"

    def test_snake_case_payload(self):
        reading = IndicatorReading.from_payload(
            IndicatorKind.CAPE,
            {"value": "33.1", "historical_avg": 16.8, "warning_level": 25, "danger_level": 30},
        )

        assert reading.value == 33.1
        assert reading.danger_level == 30.0

    def test_defaults_fill_thresholds(self, risk_model):
        defaults = risk_model.defaults[IndicatorKind.CREDIT_SPREAD]

        reading = IndicatorReading.from_payload("creditSpreads", {"value": 4.2}, defaults=defaults)

        assert reading.historical_avg == defaults.historical_avg
        assert reading.danger_level == defaults.danger_level
        assert reading.polarity is defaults.polarity

    def test_missing_thresholds_without_defaults_are_nan(self):
        reading = IndicatorReading.from_payload("cape", {"value": 30.0})

        assert math.isnan(reading.warning_level)

    @pytest.mark.parametrize("raw", ["high", 10**400, True])
    def test_unparseable_threshold_is_nan_not_default(self, risk_model, raw):
        defaults = risk_model.defaults[IndicatorKind.CAPE]

        payload = {"value": 30.0, "dangerLevel": raw}
        reading = IndicatorReading.from_payload("cape", payload, defaults=defaults)

        assert math.isnan(reading.danger_level)
        assert reading.warning_level == defaults.warning_level

    @pytest.mark.parametrize(
        "payload",
        [None, {}, {"value": None}, {"value": "n/a"}, {"value": True}, {"value": 10**400}, "oops"],
    )
    def test_unusable_value_is_unavailable(self, payload):
        reading = IndicatorReading.from_payload("cape", payload)

        assert reading.value is None

    def test_polarity_override(self):
        reading = IndicatorReading.from_payload("cape", {"value": 10.0, "polarity": "lower_is_worse"})

        assert reading.effective_polarity is Polarity.LOWER_IS_WORSE

    def test_bad_timestamp_ignored(self):
        reading = IndicatorReading.from_payload("cape", {"value": 10.0, "timestamp": "yesterday"})

        assert reading.timestamp is None

    def test_unknown_kind_raises(self):
        with pytest.raises(ValueError):
            IndicatorReading.from_payload("gold", {"value": 1.0})

    def test_to_dict_shape(self):
        reading = IndicatorReading.from_payload(
            "yieldCurve", {"value": -0.2, "historicalAvg": 1.5, "warningLevel": 0.25, "dangerLevel": 0.0}
        )

        data = reading.to_dict()

        assert data["indicator"] == "yield_curve"
        assert data["dangerLevel"] == 0.0
        assert data["polarity"] == "lower_is_worse"
        assert data["timestamp"] is None


class TestCoerceFloat:
    @pytest.mark.parametrize("raw,expected", [(38, 38.0), ("4.2", 4.2), (-0.5, -0.5)])
    def test_numbers_and_numeric_strings(self, raw, expected):
        assert coerce_float(raw) == expected

    @pytest.mark.parametrize("raw", [None, True, False, "n/a", [1.0], 10**400])
    def test_unconvertible_is_none(self, raw):
        assert coerce_float(raw) is None

    def test_effective_polarity_accepts_string(self):
        reading = IndicatorReading(IndicatorKind.CAPE, 10.0, 16.8, 25.0, 30.0, polarity="lower_is_worse")

        assert reading.effective_polarity is Polarity.LOWER_IS_WORSE
