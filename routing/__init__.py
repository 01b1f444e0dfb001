# Subdomain Routing Module
"""
DNS-style subdomain traffic routing.

Resolves a subdomain plus client context to a backend endpoint using
simple, weighted, geolocation, latency or failover policies, and keeps
a routing history for statistics.
"""

from .config import (
    RouterConfig,
    RoutingConfigError,
    RoutingTable,
    apply_routing_table,
    load_routing_table,
)
from .endpoints import EndpointRegistry, InvalidEndpointError, Protocol, ServiceEndpoint
from .policies import (
    ClientContext,
    FailoverPolicy,
    FailoverRole,
    GeolocationPolicy,
    LatencyPolicy,
    PolicyType,
    ResolvedEndpoint,
    WeightedPolicy,
    build_policy,
    evaluate,
)
from .resolver import SubdomainRouter
from .stats import RoutingHistoryEntry, RoutingStats, summarize
from .subdomains import PolicyRecord, SubdomainConfig, SubdomainRegistry

__all__ = [
    "SubdomainRouter",
    "SubdomainConfig",
    "SubdomainRegistry",
    "PolicyRecord",
    "EndpointRegistry",
    "ServiceEndpoint",
    "Protocol",
    "InvalidEndpointError",
    "PolicyType",
    "WeightedPolicy",
    "GeolocationPolicy",
    "LatencyPolicy",
    "FailoverPolicy",
    "FailoverRole",
    "ClientContext",
    "ResolvedEndpoint",
    "build_policy",
    "evaluate",
    "RoutingHistoryEntry",
    "RoutingStats",
    "summarize",
    "RouterConfig",
    "RoutingTable",
    "RoutingConfigError",
    "load_routing_table",
    "apply_routing_table",
]
