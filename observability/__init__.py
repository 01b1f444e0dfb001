"""
Observability module for the subdomain router.

Provides OpenTelemetry tracing of routing decisions.
"""

from .tracing import (
    TracingConfig,
    DistributedTracer,
    get_tracer,
)


__all__ = [
    'TracingConfig',
    'DistributedTracer',
    'get_tracer',
]

__version__ = '1.0.0'
