"""Metric sources used to sample autoscaling signals."""

from .base import MetricSource, MetricSourceFactory  # noqa: F401
from .prometheus import PrometheusClient, PrometheusClientFactory  # noqa: F401

__all__ = [
    "MetricSource",
    "MetricSourceFactory",
    "PrometheusClient",
    "PrometheusClientFactory",
]
