import random

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from monitoring import MetricsRegistry
from observability import DistributedTracer, TracingConfig
from routing import SubdomainRouter


@pytest.fixture
def router():
    r = SubdomainRouter(rng=random.Random(1234))
    yield r
    r.clear()


@pytest.fixture
def metrics():
    return MetricsRegistry()


@pytest.fixture
def span_exporter():
    return InMemorySpanExporter()


@pytest.fixture
def tracer(span_exporter):
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    return DistributedTracer(TracingConfig("router-tests"), provider=provider)


@pytest.fixture
def instrumented_router(metrics, tracer):
    return SubdomainRouter(metrics=metrics, tracer=tracer, rng=random.Random(7))
