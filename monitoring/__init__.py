"""
Monitoring Module for the subdomain router.

Prometheus metrics for resolution outcomes, resolution latency, endpoint
health and registry sizes.

Quick Start:
    from monitoring import MetricsRegistry, start_metrics_server
    from routing import SubdomainRouter

    registry = MetricsRegistry()
    router = SubdomainRouter(metrics=registry)

    # Expose /metrics
    start_metrics_server(9090, registry)
"""

from monitoring.prometheus_metrics import (
    MetricsRegistry,
    MetricType,
    MetricDefinition,
    ROUTING_METRICS,
    REGISTRY_METRICS,
    start_metrics_server,
)

__all__ = [
    "MetricsRegistry",
    "MetricType",
    "MetricDefinition",
    "ROUTING_METRICS",
    "REGISTRY_METRICS",
    "start_metrics_server",
]

__version__ = "1.0.0"
