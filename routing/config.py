"""
Router configuration and YAML routing tables.

Example table::

    router:
      default_location: US
    endpoints:
      - service: web-app
        endpoint: web.internal
        port: 443
        protocol: https
    subdomains:
      app.example.com:
        target_service: web-app
        routing_policy: failover
        policy:
          primary: web-app
          secondary: web-app-backup
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple, Union

import yaml

from .endpoints import Protocol, ServiceEndpoint, validate_port
from .policies import PolicyType, build_policy
from .subdomains import SubdomainConfig

if TYPE_CHECKING:
    from .resolver import SubdomainRouter


_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class RouterConfig:
    """Resolver defaults and toggles."""

    default_location: str = "US"
    default_region: str = "us-east-1"
    default_ttl: int = 300
    default_port: int = 443
    default_protocol: Protocol = Protocol.HTTPS
    endpoint_suffix: str = ".internal"
    # Registered-but-inactive subdomains still get a failed history entry
    record_inactive_attempts: bool = True
    metrics_enabled: bool = True
    tracing_enabled: bool = True

    def __post_init__(self):
        self.default_protocol = Protocol.parse(self.default_protocol)

    @classmethod
    def from_env(cls, prefix: str = "ROUTING_") -> "RouterConfig":
        """Build a config from ``ROUTING_*`` environment variables."""
        values: Dict[str, Any] = {}
        for f in fields(cls):
            raw = os.getenv(prefix + f.name.upper())
            if raw is None:
                continue
            if f.type in (bool, "bool"):
                values[f.name] = raw.strip().lower() in _TRUTHY
            elif f.type in (int, "int"):
                values[f.name] = int(raw)
            else:
                values[f.name] = raw
        return cls(**values)

    def default_endpoint(self, service: str) -> str:
        return f"{service}{self.endpoint_suffix}"


@dataclass
class RoutingTable:
    """Parsed routing table, ready to apply to a router."""
    router: RouterConfig = field(default_factory=RouterConfig)
    endpoints: List[ServiceEndpoint] = field(default_factory=list)
    subdomains: List[Tuple[str, SubdomainConfig]] = field(default_factory=list)


def load_routing_table(source: Union[str, Path, Mapping[str, Any]]) -> RoutingTable:
    """
    Parse a routing table from a file path, YAML text or an already-loaded mapping.

    Raises:
        RoutingConfigError: If the document is not a valid routing table.
    """
    if isinstance(source, Mapping):
        data = source
    else:
        text = _read_source(source)
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise RoutingConfigError(f"Invalid routing table YAML: {e}") from e

    if not isinstance(data, Mapping):
        raise RoutingConfigError("Routing table must be a mapping")

    try:
        router = _parse_router(data.get("router") or {})
        endpoints = [_parse_endpoint(item) for item in data.get("endpoints") or []]
        subdomains = [
            (str(name), _parse_subdomain(name, item, router))
            for name, item in (data.get("subdomains") or {}).items()
        ]
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise RoutingConfigError(f"Invalid routing table: {e}") from e

    return RoutingTable(router=router, endpoints=endpoints, subdomains=subdomains)


def apply_routing_table(router: "SubdomainRouter", table: RoutingTable) -> None:
    """Register the table's endpoints, then its subdomains, in document order."""
    for record in table.endpoints:
        router.register_endpoint(
            record.service,
            record.endpoint,
            record.port,
            record.protocol,
            record.healthy,
        )
    for name, config in table.subdomains:
        router.register_subdomain(name, config)


def _read_source(source: Union[str, Path]) -> str:
    if isinstance(source, Path):
        return source.read_text()
    if "\n" not in source:
        try:
            is_file = Path(source).is_file()
        except (OSError, ValueError):
            # Too long or otherwise not a usable path, so treat it as YAML text
            is_file = False
        if is_file:
            return Path(source).read_text()
    return source


def _parse_router(data: Mapping[str, Any]) -> RouterConfig:
    known = {f.name for f in fields(RouterConfig)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown router settings: {sorted(unknown)}")
    return RouterConfig(**data)


def _parse_endpoint(data: Mapping[str, Any]) -> ServiceEndpoint:
    service = data["service"]
    return ServiceEndpoint(
        service=service,
        endpoint=data.get("endpoint") or f"{service}.internal",
        port=validate_port(service, data.get("port", 443)),
        protocol=Protocol.parse(data.get("protocol", Protocol.HTTPS)),
        healthy=bool(data.get("healthy", True)),
    )


def _parse_subdomain(name: str, data: Mapping[str, Any], router: RouterConfig) -> SubdomainConfig:
    policy_type = PolicyType.parse(data.get("routing_policy"))
    policy = build_policy(policy_type, data.get("policy") or {})
    protocol: Optional[Protocol] = None
    if data.get("protocol") is not None:
        protocol = Protocol.parse(data["protocol"])
    port = data.get("port")
    if port is not None:
        validate_port(data["target_service"], port)

    return SubdomainConfig(
        target_service=data["target_service"],
        routing_policy=policy_type,
        policy=policy,
        health_check_enabled=bool(data.get("health_check_enabled", False)),
        ttl=int(data["ttl"]) if data.get("ttl") is not None else router.default_ttl,
        active=bool(data.get("active", True)),
        endpoint=data.get("endpoint"),
        port=port,
        protocol=protocol,
        name=str(name),
    )


class RoutingConfigError(ValueError):
    """Raised when a routing table cannot be parsed."""
    pass
