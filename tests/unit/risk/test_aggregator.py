"""
Tests for the composite score aggregator.

Covers weight renormalization over present indicators, the
insufficient-data sentinel, duplicate results and order independence.
"""

import logging
import math

import numpy as np
import pytest

from crashwatch.core.errors import MissingReason
from crashwatch.risk.aggregator import AggregateScore, aggregate
from crashwatch.risk.indicators import IndicatorKind, IndicatorReading
from crashwatch.risk.normalizer import IndicatorStatus, NormalizedResult, normalize
from crashwatch.risk.weights import DEFAULT_WEIGHTS, WeightTable


def result(kind, score, status=IndicatorStatus.SAFE):
    return NormalizedResult(kind=kind, sub_score=score, status=status, value=1.0)


def missing(kind):
    return NormalizedResult.unavailable(kind, MissingReason.MISSING)


@pytest.fixture
def weights():
    return WeightTable()


@pytest.fixture
def full_results():
    scores = [100.0, 32.0, 55.5, 8.0, 80.0, 0.0]
    return [result(kind, score) for kind, score in zip(IndicatorKind, scores)]


class TestInsufficientData:
    def test_no_results(self, weights):
        agg = aggregate([], weights)

        assert agg.insufficient_data
        assert agg.score == 0.0
        assert not math.isnan(agg.score)
        assert agg.used == ()

    def test_only_unavailable_results(self, weights):
        agg = aggregate([missing(kind) for kind in IndicatorKind], weights)

        assert agg == AggregateScore.no_data()

    def test_only_zero_weight_results(self):
        weights = WeightTable({kind: (1.0 if kind is IndicatorKind.CAPE else 0.0) for kind in IndicatorKind})

        agg = aggregate([result(IndicatorKind.VOLATILITY_INDEX, 90.0)], weights)

        assert agg.insufficient_data


class TestWeightedMean:
    def test_all_present_matches_weighted_sum(self, weights, full_results):
        agg = aggregate(full_results, weights)

        expected = math.fsum(DEFAULT_WEIGHTS[r.kind] * r.sub_score for r in full_results)
        assert agg.score == pytest.approx(expected)
        assert agg.total_weight == pytest.approx(1.0)
        assert agg.used == tuple(IndicatorKind)

    def test_one_missing_is_renormalized_average(self, weights, full_results):
        dropped = IndicatorKind.MARGIN_DEBT
        results = [r if r.kind is not dropped else missing(dropped) for r in full_results]
        present = [r for r in results if r.is_available]

        agg = aggregate(results, weights)

        expected = math.fsum(DEFAULT_WEIGHTS[r.kind] * r.sub_score for r in present) / math.fsum(
            DEFAULT_WEIGHTS[r.kind] for r in present
        )
        assert agg.score == expected
        assert dropped not in agg.used

    def test_missing_does_not_depress_score(self, weights):
        results = [result(IndicatorKind.CAPE, 80.0), missing(IndicatorKind.YIELD_CURVE)]

        assert aggregate(results, weights).score == 80.0

    def test_all_at_hundred_is_exactly_hundred(self, weights):
        agg = aggregate([result(kind, 100.0, IndicatorStatus.DANGER) for kind in IndicatorKind], weights)

        assert agg.score == 100.0

    def test_score_within_bounds(self, weights):
        rng = np.random.default_rng(7)
        for _ in range(50):
            scores = rng.uniform(0, 100, len(IndicatorKind))
            agg = aggregate([result(k, float(s)) for k, s in zip(IndicatorKind, scores)], weights)
            assert scores.min() <= agg.score <= scores.max()

    def test_duplicate_kinds_keep_most_severe(self, weights, caplog):
        low = result(IndicatorKind.CAPE, 10.0)
        high = result(IndicatorKind.CAPE, 20.0)

        with caplog.at_level(logging.WARNING, logger="crashwatch.risk.aggregator"):
            forward = aggregate([low, high], weights)
        backward = aggregate([high, low], weights)

        assert forward == backward
        assert forward.score == 20.0
        assert forward.used == (IndicatorKind.CAPE,)
        assert "Multiple results for cape" in caplog.text

    def test_repeated_result_counts_once(self, weights):
        cape = normalize(IndicatorReading(IndicatorKind.CAPE, 38.0, 17.0, 25.0, 30.0))
        vix = result(IndicatorKind.VOLATILITY_INDEX, 0.0)

        assert aggregate([cape, cape, vix], weights) == aggregate([cape, vix], weights)


class TestOrderIndependence:
    def test_permutations_give_identical_score(self, weights):
        rng = np.random.default_rng(42)
        scores = rng.uniform(0, 100, len(IndicatorKind))
        results = [result(k, float(s)) for k, s in zip(IndicatorKind, scores)]
        baseline = aggregate(results, weights)

        for _ in range(100):
            shuffled = [results[i] for i in rng.permutation(len(results))]
            agg = aggregate(shuffled, weights)
            assert agg.score == baseline.score
            assert agg.used == baseline.used

    def test_accepts_generator(self, weights, full_results):
        assert aggregate((r for r in full_results), weights) == aggregate(full_results, weights)
