"""
Crashwatch Metrics Collection

In-process counters, gauges and histograms for crash risk evaluations,
exportable in Prometheus text format. Nothing is recorded unless an
engine is given a collector.
"""

from bisect import bisect_right
from collections import defaultdict, deque
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Deque, Dict, List, Optional, Sequence

# Evaluation duration buckets in milliseconds; evaluations are pure arithmetic
EVALUATION_DURATION_BUCKETS = [0.1, 0.25, 0.5, 1, 2.5, 5, 10, 25, 50]

Labels = Optional[Dict[str, str]]


def _series_key(name: str, labels: Labels = None) -> str:
    """Prometheus series identifier, e.g. ``name{a="1",b="2"}``."""
    if not labels:
        return name
    rendered = ",".join(f'{k}="{v}"' for k, v in sorted(labels.items()))
    return f"{name}{{{rendered}}}"


def _split_key(key: str):
    """Split a series key into its metric name and label block (without braces)."""
    name, _, rest = key.partition("{")
    return name, rest.rstrip("}")


# =============================================================================
# Metrics Collector
# =============================================================================


class MetricsCollector:
    """
    Thread-safe store of counters, gauges and histogram samples.

    Histograms keep at most ``max_samples`` recent observations per series.
    """

    def __init__(self, max_samples: int = 10000):
        self._lock = Lock()
        self._max_samples = max_samples
        self._counters: Dict[str, float] = defaultdict(float)
        self._gauges: Dict[str, float] = {}
        self._samples: Dict[str, Deque[float]] = {}
        self._buckets: Dict[str, Sequence[float]] = {}

    def increment_counter(self, name: str, value: float = 1.0, labels: Labels = None) -> None:
        key = _series_key(name, labels)
        with self._lock:
            self._counters[key] += value

    def get_counter(self, name: str, labels: Labels = None) -> float:
        key = _series_key(name, labels)
        with self._lock:
            return self._counters.get(key, 0.0)

    def set_gauge(self, name: str, value: float, labels: Labels = None) -> None:
        key = _series_key(name, labels)
        with self._lock:
            self._gauges[key] = value

    def get_gauge(self, name: str, labels: Labels = None) -> float:
        key = _series_key(name, labels)
        with self._lock:
            return self._gauges.get(key, 0.0)

    def observe_histogram(
        self,
        name: str,
        value: float,
        labels: Labels = None,
        buckets: Optional[Sequence[float]] = None,
    ) -> None:
        key = _series_key(name, labels)
        with self._lock:
            if key not in self._samples:
                self._samples[key] = deque(maxlen=self._max_samples)
            self._samples[key].append(value)
            if buckets:
                self._buckets[key] = sorted(buckets)

    def get_histogram_stats(self, name: str, labels: Labels = None) -> Dict[str, float]:
        """Count, sum, min, max and mean of the retained samples."""
        key = _series_key(name, labels)
        with self._lock:
            values = list(self._samples.get(key, ()))
        return self._stats(values)

    @staticmethod
    def _stats(values: List[float]) -> Dict[str, float]:
        if not values:
            return {"count": 0, "sum": 0.0, "min": 0.0, "max": 0.0, "avg": 0.0}
        total = sum(values)
        return {
            "count": len(values),
            "sum": total,
            "min": min(values),
            "max": max(values),
            "avg": total / len(values),
        }

    def get_all_metrics(self) -> Dict[str, Any]:
        """Snapshot of every series."""
        with self._lock:
            counters = dict(self._counters)
            gauges = dict(self._gauges)
            samples = {key: list(values) for key, values in self._samples.items()}
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "counters": counters,
            "gauges": gauges,
            "histograms": {key: self._stats(values) for key, values in samples.items()},
        }

    def get_prometheus_format(self) -> str:
        """Render all series in Prometheus text exposition format."""
        with self._lock:
            counters = dict(self._counters)
            gauges = dict(self._gauges)
            samples = {key: sorted(values) for key, values in self._samples.items()}
            buckets = dict(self._buckets)

        lines: List[str] = []
        for kind, series in (("counter", counters), ("gauge", gauges)):
            for key, value in series.items():
                lines.append(f"# TYPE {_split_key(key)[0]} {kind}")
                lines.append(f"{key} {value}")

        for key, values in samples.items():
            name, labels = _split_key(key)
            prefix = f"{labels}," if labels else ""
            suffix = f"{{{labels}}}" if labels else ""
            lines.append(f"# TYPE {name} histogram")
            for bound in buckets.get(key, EVALUATION_DURATION_BUCKETS):
                count = bisect_right(values, bound)
                lines.append(f'{name}_bucket{{{prefix}le="{bound}"}} {count}')
            lines.append(f'{name}_bucket{{{prefix}le="+Inf"}} {len(values)}')
            lines.append(f"{name}_sum{suffix} {sum(values)}")
            lines.append(f"{name}_count{suffix} {len(values)}")

        return "\n".join(lines)

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._samples.clear()
            self._buckets.clear()


_metrics = MetricsCollector()


def get_metrics() -> MetricsCollector:
    """Process-wide collector, for callers that want one shared registry."""
    return _metrics


class MetricNames:
    """Metric names recorded by the engine."""

    EVALUATIONS_TOTAL = "crashwatch_evaluations_total"
    EVALUATION_DURATION_MS = "crashwatch_evaluation_duration_ms"
    INSUFFICIENT_DATA_TOTAL = "crashwatch_insufficient_data_total"
    INDICATOR_UNAVAILABLE_TOTAL = "crashwatch_indicator_unavailable_total"
    COMPOSITE_SCORE = "crashwatch_composite_score"
    CRITICAL_WARNINGS = "crashwatch_critical_warnings"


# =============================================================================
# Risk Metrics Helper
# =============================================================================


class RiskMetrics:
    """Records evaluation outcomes on a collector."""

    def __init__(self, collector: Optional[MetricsCollector] = None):
        self.metrics = collector or _metrics

    def record_evaluation(
        self,
        duration_ms: float,
        risk_level: Optional[str],
        composite_score: float,
        critical_warnings: int,
        unavailable: Dict[str, str],
        insufficient_data: bool,
    ) -> None:
        """
        Record one evaluation.

        The score and warning gauges are left untouched by insufficient-data
        evaluations, so they keep showing the last real reading.

        Args:
            duration_ms: Wall time of the evaluation
            risk_level: Risk level value, None when data was insufficient
            composite_score: Composite score
            critical_warnings: Number of indicators in danger
            unavailable: Indicator -> reason for excluded indicators
            insufficient_data: Whether no indicator was usable
        """
        self.metrics.increment_counter(
            MetricNames.EVALUATIONS_TOTAL,
            labels={"risk_level": risk_level or "unknown"},
        )
        self.metrics.observe_histogram(
            MetricNames.EVALUATION_DURATION_MS,
            duration_ms,
            buckets=EVALUATION_DURATION_BUCKETS,
        )

        for indicator, reason in unavailable.items():
            self.metrics.increment_counter(
                MetricNames.INDICATOR_UNAVAILABLE_TOTAL,
                labels={"indicator": indicator, "reason": reason},
            )

        if insufficient_data:
            self.metrics.increment_counter(MetricNames.INSUFFICIENT_DATA_TOTAL)
            return

        self.metrics.set_gauge(MetricNames.COMPOSITE_SCORE, composite_score)
        self.metrics.set_gauge(MetricNames.CRITICAL_WARNINGS, float(critical_warnings))
