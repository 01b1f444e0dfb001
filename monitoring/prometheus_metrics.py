"""
Prometheus Metrics Module for the subdomain router.

Provides metrics instrumentation for resolution decisions, endpoint
health and registry sizes.

Usage:
    from monitoring import MetricsRegistry

    registry = MetricsRegistry()

    with registry.timer("subdomain_resolution_seconds", policy="weighted"):
        result = router.resolve_subdomain("api.example.com")

    registry.count("subdomain_resolutions_total", policy="weighted", status="routed")
"""

import time
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field
from enum import Enum
from contextlib import contextmanager

from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
    start_http_server,
)


class MetricType(Enum):
    """Types of Prometheus metrics."""
    COUNTER = "counter"
    HISTOGRAM = "histogram"
    GAUGE = "gauge"


@dataclass
class MetricDefinition:
    """Definition for a Prometheus metric."""
    name: str
    description: str
    metric_type: MetricType
    labels: List[str] = field(default_factory=list)
    buckets: Optional[List[float]] = None  # For histograms


# =============================================================================
# METRIC DEFINITIONS
# =============================================================================

ROUTING_METRICS = [
    MetricDefinition(
        name="subdomain_resolutions_total",
        description="Total subdomain resolution attempts",
        metric_type=MetricType.COUNTER,
        labels=["policy", "status"]
    ),
    MetricDefinition(
        name="subdomain_resolution_seconds",
        description="Time spent evaluating a routing policy",
        metric_type=MetricType.HISTOGRAM,
        labels=["policy"],
        buckets=[0.00001, 0.00005, 0.0001, 0.0005, 0.001, 0.005, 0.01]
    ),
    MetricDefinition(
        name="routing_history_entries",
        description="Entries currently held in the routing history",
        metric_type=MetricType.GAUGE,
        labels=[]
    ),
]

REGISTRY_METRICS = [
    MetricDefinition(
        name="service_endpoint_healthy",
        description="Health flag of a service endpoint (1 healthy, 0 unhealthy)",
        metric_type=MetricType.GAUGE,
        labels=["service"]
    ),
    MetricDefinition(
        name="subdomains_registered",
        description="Number of registered subdomains",
        metric_type=MetricType.GAUGE,
        labels=[]
    ),
]


# =============================================================================
# METRICS REGISTRY
# =============================================================================

class MetricsRegistry:
    """
    Registry for the router's Prometheus metrics.

    Each instance owns its CollectorRegistry, so several routers can live
    in one process without metric name collisions.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize the metrics registry."""
        self._registry = registry or CollectorRegistry()
        self._metrics: Dict[str, Any] = {}

        self._register_all_metrics()

    @property
    def collector_registry(self) -> CollectorRegistry:
        return self._registry

    def _register_all_metrics(self):
        """Register all defined metrics."""
        for metric_def in ROUTING_METRICS + REGISTRY_METRICS:
            self._create_metric(metric_def)

    def _create_metric(self, definition: MetricDefinition):
        """Create a Prometheus metric from definition."""
        metric_class = {
            MetricType.COUNTER: Counter,
            MetricType.HISTOGRAM: Histogram,
            MetricType.GAUGE: Gauge,
        }[definition.metric_type]

        kwargs = {
            'name': definition.name,
            'documentation': definition.description,
            'labelnames': definition.labels,
            'registry': self._registry,
        }

        if definition.buckets and definition.metric_type == MetricType.HISTOGRAM:
            kwargs['buckets'] = definition.buckets

        self._metrics[definition.name] = metric_class(**kwargs)

    def get(self, name: str) -> Any:
        """Get a metric by name."""
        if name not in self._metrics:
            raise KeyError(f"Metric '{name}' not found")
        return self._metrics[name]

    def counter(self, name: str) -> Counter:
        """Get a counter metric."""
        return self.get(name)

    def histogram(self, name: str) -> Histogram:
        """Get a histogram metric."""
        return self.get(name)

    def gauge(self, name: str) -> Gauge:
        """Get a gauge metric."""
        return self.get(name)

    @contextmanager
    def timer(self, histogram_name: str, **labels):
        """
        Context manager for timing operations.

        Usage:
            with registry.timer("subdomain_resolution_seconds", policy="simple"):
                result = evaluate(...)
        """
        histogram = self.histogram(histogram_name)
        start = time.perf_counter()
        try:
            yield
        finally:
            duration = time.perf_counter() - start
            self._labelled(histogram, labels).observe(duration)

    def count(self, counter_name: str, value: int = 1, **labels):
        """Increment a counter."""
        self._labelled(self.counter(counter_name), labels).inc(value)

    def set_gauge(self, gauge_name: str, value: float, **labels):
        """Set a gauge value."""
        self._labelled(self.gauge(gauge_name), labels).set(value)

    def observe(self, histogram_name: str, value: float, **labels):
        """Observe a histogram value."""
        self._labelled(self.histogram(histogram_name), labels).observe(value)

    def sample(self, name: str, **labels) -> Optional[float]:
        """Read the current value of a sample, e.g. ``subdomain_resolutions_total``."""
        return self._registry.get_sample_value(name, labels)

    @staticmethod
    def _labelled(metric, labels: Dict[str, Any]):
        return metric.labels(**labels) if labels else metric

    def generate_metrics(self) -> bytes:
        """Generate metrics output for Prometheus scraping."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


# =============================================================================
# HTTP SERVER
# =============================================================================

def start_metrics_server(port: int = 9090, registry: Optional[MetricsRegistry] = None) -> MetricsRegistry:
    """
    Start a standalone HTTP server for Prometheus metrics.

    Args:
        port: Port to listen on (default: 9090)
        registry: MetricsRegistry instance (creates default if None)
    """
    if registry is None:
        registry = MetricsRegistry()

    start_http_server(port, registry=registry.collector_registry)
    return registry
