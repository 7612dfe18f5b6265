"""Metrics collection and export abstractions."""

from ssm_env_injector.core.metrics.exporters import PrometheusRegistry
from ssm_env_injector.core.metrics.registry import InMemoryRegistry, MeterRegistry

__all__ = [
    "InMemoryRegistry",
    "MeterRegistry",
    "PrometheusRegistry",
]
