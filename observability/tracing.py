"""
OpenTelemetry tracing for the subdomain router.

Wraps routing decisions in spans so resolution latency and outcomes show
up next to the request traces of the service embedding the router.
"""

import os
import time
import functools
from typing import Dict, Any, Optional, Callable, TypeVar
from contextlib import contextmanager

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION
from opentelemetry.trace import Status, StatusCode, SpanKind


# Type variable for generic function decoration
F = TypeVar('F', bound=Callable[..., Any])


class TracingConfig:
    """Configuration for distributed tracing."""

    def __init__(
        self,
        service_name: str,
        service_version: str = "1.0.0",
        otlp_endpoint: Optional[str] = None,
        environment: str = "development",
        enable_console_export: bool = False
    ):
        """
        Initialize tracing configuration.

        Args:
            service_name: Name of the service for trace identification
            service_version: Version of the service
            otlp_endpoint: OTLP collector endpoint (e.g., "http://jaeger:4317");
                falls back to OTEL_EXPORTER_OTLP_ENDPOINT, export is off if neither is set
            environment: Deployment environment (development, staging, production)
            enable_console_export: Whether to also export to console
        """
        self.service_name = service_name
        self.service_version = service_version
        self.otlp_endpoint = otlp_endpoint or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
        self.environment = environment
        self.enable_console_export = enable_console_export


class DistributedTracer:
    """
    Tracing manager using OpenTelemetry.

    A caller-provided TracerProvider is used as is. Otherwise ``initialize``
    builds one with the configured exporters and installs it globally.

    Example:
        >>> tracer = DistributedTracer(TracingConfig("edge-router"))
        >>> with tracer.span("resolve_subdomain") as span:
        ...     span.set_attribute("routing.subdomain", "api.example.com")
    """

    def __init__(self, config: TracingConfig, provider: Optional[TracerProvider] = None):
        """Initialize the tracer with configuration."""
        self.config = config
        self._provider = provider
        self._tracer: Optional[trace.Tracer] = None
        self._initialized = False

    def initialize(self) -> None:
        """Set up the TracerProvider and obtain a tracer from it."""
        if self._initialized:
            return

        if self._provider is None:
            resource = Resource.create({
                SERVICE_NAME: self.config.service_name,
                SERVICE_VERSION: self.config.service_version,
                "deployment.environment": self.config.environment,
            })
            self._provider = TracerProvider(resource=resource)

            if self.config.otlp_endpoint:
                otlp_exporter = OTLPSpanExporter(
                    endpoint=self.config.otlp_endpoint,
                    insecure=True
                )
                self._provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

            if self.config.enable_console_export:
                self._provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

            trace.set_tracer_provider(self._provider)

        self._tracer = self._provider.get_tracer(
            self.config.service_name,
            self.config.service_version
        )
        self._initialized = True

    @property
    def tracer(self) -> trace.Tracer:
        """Get the tracer instance, initializing if necessary."""
        if not self._initialized:
            self.initialize()
        return self._tracer

    @contextmanager
    def span(
        self,
        name: str,
        kind: SpanKind = SpanKind.INTERNAL,
        attributes: Optional[Dict[str, Any]] = None
    ):
        """
        Create a new span as a context manager.

        Exceptions escaping the block mark the span as failed and are re-raised.
        """
        with self.tracer.start_as_current_span(
            name,
            kind=kind,
            attributes=attributes or {}
        ) as span:
            try:
                yield span
            except Exception as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                span.record_exception(e)
                raise

    def trace(
        self,
        name: Optional[str] = None,
        attributes: Optional[Dict[str, Any]] = None
    ) -> Callable[[F], F]:
        """
        Decorator for tracing functions.

        Example:
            >>> @tracer.trace(attributes={"component": "health"})
            ... def refresh_health(router):
            ...     ...
        """
        def decorator(func: F) -> F:
            span_name = name or func.__name__

            @functools.wraps(func)
            def wrapper(*args, **kwargs):
                with self.span(span_name, attributes=attributes) as span:
                    span.set_attribute("function.name", func.__name__)
                    start_time = time.perf_counter()
                    try:
                        return func(*args, **kwargs)
                    finally:
                        duration = time.perf_counter() - start_time
                        span.set_attribute("function.duration_ms", duration * 1000)

            return wrapper

        return decorator

    def add_event(self, name: str, attributes: Optional[Dict[str, Any]] = None) -> None:
        """Add an event to the current span."""
        span = trace.get_current_span()
        span.add_event(name, attributes or {})

    def set_attribute(self, key: str, value: Any) -> None:
        """Set an attribute on the current span."""
        span = trace.get_current_span()
        span.set_attribute(key, value)

    def shutdown(self) -> None:
        """Flush and stop span processors."""
        if self._provider is not None:
            self._provider.shutdown()


# Tracer instances per service
_tracers: Dict[str, DistributedTracer] = {}


def get_tracer(service_name: str) -> DistributedTracer:
    """
    Get or create a tracer for a service.

    Args:
        service_name: Name of the service

    Returns:
        DistributedTracer instance for the service
    """
    if service_name not in _tracers:
        _tracers[service_name] = DistributedTracer(TracingConfig(service_name))
        _tracers[service_name].initialize()

    return _tracers[service_name]


__all__ = [
    'TracingConfig',
    'DistributedTracer',
    'get_tracer',
]
