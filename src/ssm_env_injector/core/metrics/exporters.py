"""Prometheus adapter for the :class:`MeterRegistry` protocol."""

from __future__ import annotations

import threading
from typing import Any

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram, generate_latest
from prometheus_client import CONTENT_TYPE_LATEST as PROMETHEUS_CONTENT_TYPE


_MS_BUCKETS = (1.0, 5.0, 10.0, 25.0, 50.0, 100.0, 250.0, 500.0, 1000.0, 2500.0, 5000.0, 10000.0)


class PrometheusRegistry:
    """Adapter that forwards metrics to ``prometheus_client``.

    Counters map to :class:`~prometheus_client.Counter` and timers to
    :class:`~prometheus_client.Histogram` (observed in milliseconds).
    Metrics are created lazily on first use; label names come from the tag
    keys of the first call for a given metric name.

    Args:
        collector_registry: Target registry. Defaults to the global
            ``prometheus_client.REGISTRY``.
    """

    content_type = PROMETHEUS_CONTENT_TYPE

    def __init__(self, collector_registry: CollectorRegistry | None = None) -> None:
        self._registry = collector_registry if collector_registry is not None else REGISTRY
        self._lock = threading.Lock()
        self._counters: dict[str, Any] = {}
        self._histograms: dict[str, Any] = {}

    @property
    def collector_registry(self) -> CollectorRegistry:
        return self._registry

    def counter(
        self,
        name: str,
        value: float = 1.0,
        tags: dict[str, str] | None = None,
    ) -> None:
        metric = self._get_or_create(self._counters, Counter, name, tags)
        if tags:
            metric.labels(**tags).inc(value)
        else:
            metric.inc(value)

    def timer(
        self,
        name: str,
        duration_ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        metric = self._get_or_create(self._histograms, Histogram, name, tags, buckets=_MS_BUCKETS)
        if tags:
            metric.labels(**tags).observe(duration_ms)
        else:
            metric.observe(duration_ms)

    def exposition(self) -> bytes:
        """Render the registry in the Prometheus text format."""
        return generate_latest(self._registry)

    def _get_or_create(
        self,
        cache: dict[str, Any],
        metric_type: Any,
        name: str,
        tags: dict[str, str] | None,
        **kwargs: Any,
    ) -> Any:
        with self._lock:
            if name not in cache:
                label_names = sorted(tags.keys()) if tags else []
                cache[name] = metric_type(
                    name,
                    f"{metric_type.__name__} {name}",
                    label_names,
                    registry=self._registry,
                    **kwargs,
                )
            return cache[name]
