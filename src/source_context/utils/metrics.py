"""Metrics collection for observability.

Counters, gauges and histograms for context builds, remote fetches and
the file cache. Designed to be compatible with Prometheus-style
monitoring.
"""

from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from threading import Lock
from typing import Any

import structlog

log = structlog.get_logger()

LabelKey = tuple[tuple[str, str], ...]


def _label_key(labels: dict[str, str] | None) -> LabelKey:
    return tuple(sorted(labels.items())) if labels else ()


class MetricType(StrEnum):
    """Types of metrics."""

    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"


@dataclass
class MetricValue:
    """A single metric value with metadata."""

    name: str
    type: MetricType
    value: float
    labels: dict[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    help_text: str = ""


class Counter:
    """A monotonically increasing counter.

    Example:
        counter = Counter("builds_total", "Total context builds")
        counter.inc()
        counter.inc(labels={"outcome": "success"})
    """

    def __init__(self, name: str, help_text: str = "") -> None:
        self.name = name
        self.help_text = help_text
        self._values: dict[LabelKey, float] = defaultdict(float)
        self._lock = Lock()

    def inc(self, value: float = 1, labels: dict[str, str] | None = None) -> None:
        """Increment the counter.

        Raises:
            ValueError: If value is negative.
        """
        if value < 0:
            raise ValueError("Counter can only increase")

        with self._lock:
            self._values[_label_key(labels)] += value

    def get(self, labels: dict[str, str] | None = None) -> float:
        """Get current counter value."""
        with self._lock:
            return self._values.get(_label_key(labels), 0)

    def total(self) -> float:
        """Sum over every label combination."""
        with self._lock:
            return sum(self._values.values())

    def get_all(self) -> list[MetricValue]:
        """Get all counter values with their labels."""
        with self._lock:
            return [
                MetricValue(
                    name=self.name,
                    type=MetricType.COUNTER,
                    value=value,
                    labels=dict(label_key),
                    help_text=self.help_text,
                )
                for label_key, value in self._values.items()
            ]


class Gauge:
    """A metric that can go up or down."""

    def __init__(self, name: str, help_text: str = "") -> None:
        self.name = name
        self.help_text = help_text
        self._values: dict[LabelKey, float] = defaultdict(float)
        self._lock = Lock()

    def set(self, value: float, labels: dict[str, str] | None = None) -> None:
        """Set the gauge value."""
        with self._lock:
            self._values[_label_key(labels)] = value

    def inc(self, value: float = 1, labels: dict[str, str] | None = None) -> None:
        """Increment the gauge."""
        with self._lock:
            self._values[_label_key(labels)] += value

    def dec(self, value: float = 1, labels: dict[str, str] | None = None) -> None:
        """Decrement the gauge."""
        with self._lock:
            self._values[_label_key(labels)] -= value

    def get(self, labels: dict[str, str] | None = None) -> float:
        """Get current gauge value."""
        with self._lock:
            return self._values.get(_label_key(labels), 0)

    def get_all(self) -> list[MetricValue]:
        """Get all gauge values with their labels."""
        with self._lock:
            return [
                MetricValue(
                    name=self.name,
                    type=MetricType.GAUGE,
                    value=value,
                    labels=dict(label_key),
                    help_text=self.help_text,
                )
                for label_key, value in self._values.items()
            ]


class Histogram:
    """A histogram metric for tracking value distributions."""

    # Default buckets for timing (in seconds)
    DEFAULT_BUCKETS = (0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf"))

    def __init__(
        self,
        name: str,
        help_text: str = "",
        buckets: tuple[float, ...] | None = None,
    ) -> None:
        self.name = name
        self.help_text = help_text
        self._buckets = buckets or self.DEFAULT_BUCKETS
        self._observations: dict[LabelKey, list[float]] = defaultdict(list)
        self._lock = Lock()

    def observe(self, value: float, labels: dict[str, str] | None = None) -> None:
        """Record an observation."""
        with self._lock:
            self._observations[_label_key(labels)].append(value)

    def get_stats(self, labels: dict[str, str] | None = None) -> dict[str, float]:
        """Get count, sum, min, max and mean of the observations."""
        with self._lock:
            values = list(self._observations.get(_label_key(labels), []))

        if not values:
            return {"count": 0, "sum": 0, "min": 0, "max": 0, "mean": 0}

        return {
            "count": len(values),
            "sum": sum(values),
            "min": min(values),
            "max": max(values),
            "mean": sum(values) / len(values),
        }

    def get_buckets(self, labels: dict[str, str] | None = None) -> dict[float, int]:
        """Get per-bucket observation counts."""
        with self._lock:
            values = list(self._observations.get(_label_key(labels), []))

        bucket_counts: dict[float, int] = dict.fromkeys(self._buckets, 0)
        for value in values:
            for bucket in self._buckets:
                if value <= bucket:
                    bucket_counts[bucket] += 1
                    break

        return bucket_counts


class MetricsRegistry:
    """Registry for the engine's metrics.

    Example:
        registry = MetricsRegistry.get_instance()
        registry.files_requested.inc(3)
        metrics = registry.get_all_metrics()
    """

    _instance: MetricsRegistry | None = None
    _lock = Lock()

    def __init__(self) -> None:
        self.context_builds = Counter(
            "source_context_builds_total",
            "Total source context builds by outcome",
        )
        self.files_requested = Counter(
            "source_context_files_requested_total",
            "Total candidate files requested",
        )
        self.files_retrieved = Counter(
            "source_context_files_retrieved_total",
            "Total candidate files retrieved",
        )
        self.file_fetch_errors = Counter(
            "source_context_file_fetch_errors_total",
            "Total per-file fetch failures absorbed",
        )
        self.revision_lookups = Counter(
            "source_context_revision_lookups_total",
            "Total latest-revision lookups against the repository host",
        )

        self.cache_hits = Counter(
            "source_context_cache_hits_total",
            "Total file cache hits",
        )
        self.cache_misses = Counter(
            "source_context_cache_misses_total",
            "Total file cache misses",
        )
        self.cache_entries = Gauge(
            "source_context_cache_entries",
            "Number of files currently cached",
        )
        self.cache_bytes = Gauge(
            "source_context_cache_bytes",
            "Bytes currently held by the file cache",
        )

        self.build_duration = Histogram(
            "source_context_build_duration_seconds",
            "Source context build duration in seconds",
        )

        self._start_time = time.time()

    @classmethod
    def get_instance(cls) -> MetricsRegistry:
        """Get the process-wide metrics registry instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def get_uptime_seconds(self) -> float:
        """Get uptime in seconds."""
        return time.time() - self._start_time

    def _counters(self) -> list[Counter]:
        return [
            self.context_builds,
            self.files_requested,
            self.files_retrieved,
            self.file_fetch_errors,
            self.revision_lookups,
            self.cache_hits,
            self.cache_misses,
        ]

    def get_all_metrics(self) -> dict[str, Any]:
        """Get all metrics as a dictionary."""
        return {
            "uptime_seconds": self.get_uptime_seconds(),
            "builds": {
                "success": self.context_builds.get(labels={"outcome": "success"}),
                "failed": self.context_builds.total()
                - self.context_builds.get(labels={"outcome": "success"}),
                "duration_stats": self.build_duration.get_stats(),
            },
            "files": {
                "requested": self.files_requested.get(),
                "retrieved": self.files_retrieved.get(),
                "errors": self.file_fetch_errors.get(),
            },
            "revisions": {
                "lookups": self.revision_lookups.get(),
            },
            "cache": {
                "hits": self.cache_hits.get(),
                "misses": self.cache_misses.get(),
                "entries": self.cache_entries.get(),
                "bytes": self.cache_bytes.get(),
            },
        }

    def to_prometheus_format(self) -> str:
        """Export metrics in Prometheus text format."""
        lines: list[str] = []

        def emit(name: str, help_text: str, kind: str, values: list[MetricValue]) -> None:
            if help_text:
                lines.append(f"# HELP {name} {help_text}")
            lines.append(f"# TYPE {name} {kind}")
            for metric in values:
                if metric.labels:
                    label_str = ",".join(f'{k}="{v}"' for k, v in metric.labels.items())
                    lines.append(f"{name}{{{label_str}}} {metric.value}")
                else:
                    lines.append(f"{name} {metric.value}")

        for counter in self._counters():
            emit(counter.name, counter.help_text, "counter", counter.get_all())

        for gauge in [self.cache_entries, self.cache_bytes]:
            emit(gauge.name, gauge.help_text, "gauge", gauge.get_all())

        lines.append("# HELP source_context_uptime_seconds Uptime in seconds")
        lines.append("# TYPE source_context_uptime_seconds gauge")
        lines.append(f"source_context_uptime_seconds {self.get_uptime_seconds()}")

        return "\n".join(lines)


def get_metrics() -> MetricsRegistry:
    """Get the process-wide metrics registry."""
    return MetricsRegistry.get_instance()


class Timer:
    """Context manager for timing operations.

    Example:
        with Timer(metrics.build_duration) as timer:
            await builder.build(event)
        print(timer.elapsed)
    """

    def __init__(
        self,
        histogram: Histogram,
        labels: dict[str, str] | None = None,
    ) -> None:
        self._histogram = histogram
        self._labels = labels
        self._start: float | None = None
        self.elapsed: float = 0.0

    def __enter__(self) -> Timer:
        self._start = time.perf_counter()
        return self

    def __exit__(self, *args: Any) -> None:
        if self._start is not None:
            self.elapsed = time.perf_counter() - self._start
            self._histogram.observe(self.elapsed, labels=self._labels)
