"""
Subdomain Router - Resolve a subdomain to a backend endpoint.

The router owns its endpoint registry, subdomain registry and routing
history. Every public call runs to completion under one lock, so a single
resolution never observes a health flag flip midway.
"""

import random
import threading
import time
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Iterator, List, Mapping, Optional, Tuple, Union

from logging_ import LogConfig, StructuredLogger
from monitoring import MetricsRegistry
from observability import DistributedTracer

from .config import RouterConfig, RoutingTable, apply_routing_table, load_routing_table
from .endpoints import EndpointRegistry, InvalidEndpointError, Protocol, ServiceEndpoint
from .policies import ClientContext, PolicyType, ResolvedEndpoint, evaluate
from .stats import RoutingHistoryEntry, RoutingStats, summarize
from .subdomains import SubdomainConfig, SubdomainRegistry


ContextLike = Union[ClientContext, Mapping[str, Any], None]


class SubdomainRouter:
    """
    Resolution orchestrator for subdomain traffic.

    Example:
        >>> router = SubdomainRouter()
        >>> _ = router.register_endpoint("web-app", "web.internal", 443, "https")
        >>> _ = router.register_subdomain("app.example.com", SubdomainConfig("web-app"))
        >>> router.resolve_subdomain("app.example.com").endpoint
        'web.internal'
    """

    def __init__(
        self,
        config: Optional[RouterConfig] = None,
        metrics: Optional[MetricsRegistry] = None,
        tracer: Optional[DistributedTracer] = None,
        rng: Optional[random.Random] = None,
        log_config: Optional[LogConfig] = None,
    ):
        self.config = config or RouterConfig()
        self.endpoints = EndpointRegistry()
        self.subdomains = SubdomainRegistry()
        self._history: List[RoutingHistoryEntry] = []
        self._lock = threading.RLock()
        self._rng = rng or random.Random()
        self._metrics = metrics if self.config.metrics_enabled else None
        self._tracer = tracer if self.config.tracing_enabled else None
        self._log = StructuredLogger(__name__, log_config)

    @classmethod
    def from_table(
        cls,
        source: Union[RoutingTable, str, Mapping[str, Any]],
        **kwargs: Any,
    ) -> "SubdomainRouter":
        """Build a router from a routing table (path, YAML text or parsed table)."""
        table = source if isinstance(source, RoutingTable) else load_routing_table(source)
        kwargs.setdefault("config", table.router)
        router = cls(**kwargs)
        apply_routing_table(router, table)
        return router

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_endpoint(
        self,
        service: str,
        endpoint: str,
        port: int = 443,
        protocol: Union[Protocol, str] = Protocol.HTTPS,
        healthy: bool = True,
    ) -> ServiceEndpoint:
        """
        Insert or overwrite the endpoint for a service.

        Raises:
            InvalidEndpointError: If protocol is not http/https or port is out of range.
        """
        with self._lock:
            try:
                record = self.endpoints.register(service, endpoint, port, protocol, healthy)
            except InvalidEndpointError as e:
                self._log.warning("endpoint rejected", service=service, error=str(e))
                raise
            self._gauge_health(record.service, record.healthy)
            return record

    def register_subdomain(self, name: str, config: SubdomainConfig) -> SubdomainConfig:
        """
        Register a subdomain, replacing any previous config under that name.

        The target service endpoint is created from the config's endpoint
        details, or as ``<service>.internal`` when the service is unknown.
        """
        with self._lock:
            if config.ttl is None:
                config = replace(config, ttl=self.config.default_ttl)
            if config.endpoint or config.port is not None or config.protocol is not None:
                self.register_endpoint(
                    config.target_service,
                    config.endpoint or self.config.default_endpoint(config.target_service),
                    config.port if config.port is not None else self.config.default_port,
                    config.protocol or self.config.default_protocol,
                )
            elif config.target_service not in self.endpoints:
                self.register_endpoint(
                    config.target_service,
                    self.config.default_endpoint(config.target_service),
                    self.config.default_port,
                    self.config.default_protocol,
                )

            stored = self.subdomains.register(name, config)
            if self._metrics:
                self._metrics.set_gauge("subdomains_registered", len(self.subdomains))
            self._log.info(
                "subdomain registered",
                subdomain=name,
                target_service=stored.target_service,
                policy=stored.routing_policy.value,
                active=stored.active,
            )
            return stored

    def set_health(self, service: str, healthy: bool) -> None:
        """Flip the health flag of a service; unknown services are ignored."""
        with self._lock:
            if self.endpoints.set_health(service, healthy):
                self._gauge_health(service, healthy)
                self._log.info("service health changed", service=service, healthy=healthy)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_subdomain(self, name: str) -> Optional[SubdomainConfig]:
        with self._lock:
            return self.subdomains.get(name)

    def lookup_endpoint(self, service: str) -> Optional[ServiceEndpoint]:
        with self._lock:
            return self.endpoints.lookup(service)

    def list_active(self) -> List[str]:
        """Active subdomain names in registration order."""
        with self._lock:
            return self.subdomains.list_active()

    @property
    def history(self) -> Tuple[RoutingHistoryEntry, ...]:
        with self._lock:
            return tuple(self._history)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve_subdomain(
        self,
        name: str,
        client_context: ContextLike = None,
    ) -> Optional[ResolvedEndpoint]:
        """
        Resolve a subdomain to an endpoint for one client request.

        Returns None when no route is available: unknown or inactive
        subdomain, unknown target service, or an unhealthy selection with
        no viable fallback. Unknown subdomains leave no history entry.
        """
        with self._lock:
            config = self.subdomains.get(name)
            if config is None:
                self._count("none", "unregistered")
                self._log.debug("unregistered subdomain", subdomain=name)
                return None

            context = ClientContext.from_value(
                client_context,
                self.config.default_location,
                self.config.default_region,
            )

            if not config.active:
                if self.config.record_inactive_attempts:
                    self._append(RoutingHistoryEntry(
                        subdomain=name,
                        client_context=context.to_dict(),
                        selected_endpoint=None,
                        routing_policy=config.routing_policy,
                        routing_time_ms=0.0,
                        timestamp_ms=int(time.time() * 1000),
                        successful=False,
                    ))
                self._count(config.routing_policy.value, "inactive")
                self._log.debug("inactive subdomain", subdomain=name)
                return None

            if config.routing_policy is PolicyType.WEIGHTED and context.random_value is None:
                context = replace(context, random_value=self._rng.random())

            record = self.subdomains.policy_for(name)
            with self._span(name, config) as span:
                timestamp_ms = int(time.time() * 1000)
                start = time.perf_counter()
                result = evaluate(
                    config,
                    record.config if record else None,
                    context,
                    self.endpoints,
                )
                elapsed = time.perf_counter() - start
                if span is not None:
                    span.set_attribute("routing.successful", result is not None)
                    if result is not None:
                        span.set_attribute("routing.endpoint", result.endpoint)
                        span.set_attribute("routing.type", result.routing_type.value)
                        if result.selected_service:
                            span.set_attribute("routing.selected_service", result.selected_service)

            self._append(RoutingHistoryEntry(
                subdomain=name,
                client_context=context.to_dict(),
                selected_endpoint=result,
                routing_policy=config.routing_policy,
                routing_time_ms=elapsed * 1000,
                timestamp_ms=timestamp_ms,
                successful=result is not None,
            ))

            policy = config.routing_policy.value
            self._count(policy, "routed" if result is not None else "no_route")
            if self._metrics:
                self._metrics.observe("subdomain_resolution_seconds", elapsed, policy=policy)

            self._log.debug(
                "subdomain resolved" if result is not None else "no route",
                subdomain=name,
                policy=policy,
                endpoint=result.to_dict() if result is not None else None,
                routing_time_ms=elapsed * 1000,
            )
            return result

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_routing_stats(self) -> RoutingStats:
        """Summarize the routing history without modifying it."""
        with self._lock:
            return summarize(self._history)

    def clear(self) -> None:
        """Reset registries and history."""
        with self._lock:
            self.endpoints.clear()
            self.subdomains.clear()
            self._history = []
            if self._metrics:
                self._metrics.set_gauge("subdomains_registered", 0)
                self._metrics.set_gauge("routing_history_entries", 0)
                self._metrics.gauge("service_endpoint_healthy").clear()
            self._log.info("router cleared")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _append(self, entry: RoutingHistoryEntry) -> None:
        self._history.append(entry)
        if self._metrics:
            self._metrics.set_gauge("routing_history_entries", len(self._history))

    def _count(self, policy: str, status: str) -> None:
        if self._metrics:
            self._metrics.count("subdomain_resolutions_total", policy=policy, status=status)

    def _gauge_health(self, service: str, healthy: bool) -> None:
        if self._metrics:
            self._metrics.set_gauge("service_endpoint_healthy", 1 if healthy else 0, service=service)

    @contextmanager
    def _span(self, name: str, config: SubdomainConfig) -> Iterator[Any]:
        if self._tracer is None:
            yield None
            return
        with self._tracer.span(
            "resolve_subdomain",
            attributes={
                "routing.subdomain": name,
                "routing.policy": config.routing_policy.value,
                "routing.target_service": config.target_service,
            },
        ) as span:
            yield span
