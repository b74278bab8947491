"""
Metrics Collection Module
-------------------------
In-process counters, gauges and histograms for treasury cycles, swaps and
payroll payments. Series are keyed by name plus sorted tags, e.g.
``payments_total{agent_id=autocfo_1,status=failed}``.
"""

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from loguru import logger

Tags = Dict[str, str]

HISTOGRAM_WINDOW = 1000


def series_key(name: str, tags: Optional[Tags] = None) -> str:
    if not tags:
        return name
    return name + "{" + ",".join(f"{k}={v}" for k, v in sorted(tags.items())) + "}"


@dataclass
class Counter:
    """Monotonic count of events."""
    name: str
    tags: Tags = field(default_factory=dict)
    value: int = 0

    def increment(self, amount: int = 1) -> None:
        self.value += amount


@dataclass
class Gauge:
    """Last reported value, e.g. the treasury total."""
    name: str
    tags: Tags = field(default_factory=dict)
    value: float = 0.0
    updated_at: Optional[float] = None

    def set(self, value: float) -> None:
        self.value = value
        self.updated_at = time.time()


@dataclass
class Histogram:
    """Sliding window of observations (most recent ``HISTOGRAM_WINDOW``)."""
    name: str
    tags: Tags = field(default_factory=dict)
    values: deque = field(default_factory=lambda: deque(maxlen=HISTOGRAM_WINDOW))

    def record(self, value: float) -> None:
        self.values.append(value)

    def get_stats(self) -> Dict[str, float]:
        if not self.values:
            return {"count": 0, "sum": 0.0, "min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p95": 0.0}

        ordered = sorted(self.values)
        count = len(ordered)
        total = sum(ordered)
        return {
            "count": count,
            "sum": total,
            "min": ordered[0],
            "max": ordered[-1],
            "avg": total / count,
            "p50": ordered[count // 2],
            "p95": ordered[min(count - 1, int(count * 0.95))],
        }


class MetricsCollector:
    """Thread-safe registry of metric series."""

    def __init__(self) -> None:
        self.counters: Dict[str, Counter] = {}
        self.gauges: Dict[str, Gauge] = {}
        self.histograms: Dict[str, Histogram] = {}
        self.start_time = time.time()
        self._lock = threading.Lock()

    def _series(self, registry: Dict[str, Any], factory, name: str, tags: Optional[Tags]):
        key = series_key(name, tags)
        with self._lock:
            if key not in registry:
                registry[key] = factory(name=name, tags=dict(tags or {}))
            return registry[key]

    def counter(self, name: str, tags: Optional[Tags] = None) -> Counter:
        return self._series(self.counters, Counter, name, tags)

    def gauge(self, name: str, tags: Optional[Tags] = None) -> Gauge:
        return self._series(self.gauges, Gauge, name, tags)

    def histogram(self, name: str, tags: Optional[Tags] = None) -> Histogram:
        return self._series(self.histograms, Histogram, name, tags)

    def increment_counter(self, name: str, amount: int = 1, tags: Optional[Tags] = None) -> None:
        counter = self.counter(name, tags)
        with self._lock:
            counter.increment(amount)

    def set_gauge(self, name: str, value: float, tags: Optional[Tags] = None) -> None:
        gauge = self.gauge(name, tags)
        with self._lock:
            gauge.set(value)

    def record_histogram(self, name: str, value: float, tags: Optional[Tags] = None) -> None:
        histogram = self.histogram(name, tags)
        with self._lock:
            histogram.record(value)

    def get_all_metrics(self) -> Dict[str, Any]:
        """Plain-dict view of every series, for printing or shipping."""
        with self._lock:
            return {
                "uptime_seconds": time.time() - self.start_time,
                "counters": {
                    key: {"name": c.name, "value": c.value, "tags": dict(c.tags)}
                    for key, c in self.counters.items()
                },
                "gauges": {
                    key: {"name": g.name, "value": g.value, "tags": dict(g.tags)}
                    for key, g in self.gauges.items()
                },
                "histograms": {
                    key: {"name": h.name, "stats": h.get_stats(), "tags": dict(h.tags)}
                    for key, h in self.histograms.items()
                },
            }

    def reset_all(self) -> None:
        with self._lock:
            self.counters.clear()
            self.gauges.clear()
            self.histograms.clear()
            self.start_time = time.time()
        logger.info("All metrics reset")


_metrics_instance: Optional[MetricsCollector] = None


def get_metrics_collector() -> MetricsCollector:
    """Process-wide collector, created on first use."""
    global _metrics_instance
    if _metrics_instance is None:
        _metrics_instance = MetricsCollector()
    return _metrics_instance


def record_cycle(agent_id: str, outcome: str, duration: float) -> None:
    """Count a finished or rejected cycle and time it."""
    metrics = get_metrics_collector()
    metrics.increment_counter("cycles_total", tags={"agent_id": agent_id, "outcome": outcome})
    metrics.record_histogram("cycle_duration_seconds", duration, tags={"agent_id": agent_id})


def record_swap(agent_id: str, amount: float) -> None:
    metrics = get_metrics_collector()
    metrics.increment_counter("swaps_total", tags={"agent_id": agent_id})
    metrics.record_histogram("swap_amount_usd", amount, tags={"agent_id": agent_id})


def record_payment(agent_id: str, success: bool) -> None:
    get_metrics_collector().increment_counter(
        "payments_total",
        tags={"agent_id": agent_id, "status": "success" if success else "failed"},
    )


def update_treasury_value(agent_id: str, value: float) -> None:
    get_metrics_collector().set_gauge("treasury_value_usd", value, tags={"agent_id": agent_id})


def record_error(agent_id: str, error_type: str) -> None:
    get_metrics_collector().increment_counter("errors_total", tags={"agent_id": agent_id, "type": error_type})
