"""
Routing Policies - Strategies for picking a backend endpoint.

Each policy variant is a small dataclass holding its parameters as an
ordered sequence of ``(key, value)`` pairs. Iteration order is part of
the contract: the weighted scan walks buckets in declaration order and
the latency policy falls back to the first declared region.

Evaluators are plain functions of (subdomain config, policy, client
context, endpoint registry). They read health flags but never mutate
registry or history state.
"""

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterable, Mapping, Optional, Tuple, Union

from .endpoints import EndpointRegistry, ServiceEndpoint

if TYPE_CHECKING:
    from .subdomains import SubdomainConfig


WILDCARD_LOCATION = "*"


class PolicyType(str, Enum):
    """Closed set of routing strategies."""
    SIMPLE = "simple"
    WEIGHTED = "weighted"
    GEOLOCATION = "geolocation"
    LATENCY = "latency"
    FAILOVER = "failover"

    @classmethod
    def parse(cls, value: Union["PolicyType", str, None]) -> "PolicyType":
        """Map a policy name to a PolicyType; unknown or missing names are SIMPLE."""
        if isinstance(value, cls):
            return value
        if not value:
            return cls.SIMPLE
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.SIMPLE


class FailoverRole(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


def _ordered_pairs(
    value: Union[Mapping[str, Any], Iterable[Tuple[str, Any]]],
) -> Tuple[Tuple[str, Any], ...]:
    """Normalize a mapping or pair sequence to a tuple of pairs, keeping order."""
    items = value.items() if isinstance(value, Mapping) else value
    return tuple((str(key), val) for key, val in items)


@dataclass
class WeightedPolicy:
    """Split traffic across services in proportion to integer weights."""
    weights: Tuple[Tuple[str, int], ...]

    def __post_init__(self):
        self.weights = _ordered_pairs(self.weights)
        if not self.weights:
            raise ValueError("Weighted policy needs at least one service")
        for service, weight in self.weights:
            if isinstance(weight, bool) or not isinstance(weight, int) or weight <= 0:
                raise ValueError(f"Weight for {service} must be a positive integer, got {weight!r}")

    @property
    def policy_type(self) -> PolicyType:
        return PolicyType.WEIGHTED

    @property
    def total_weight(self) -> int:
        return sum(weight for _, weight in self.weights)


@dataclass
class GeolocationPolicy:
    """Map client location codes to services, with an optional ``*`` default."""
    locations: Tuple[Tuple[str, str], ...]

    def __post_init__(self):
        self.locations = _ordered_pairs(self.locations)
        if not self.locations:
            raise ValueError("Geolocation policy needs at least one location")

    @property
    def policy_type(self) -> PolicyType:
        return PolicyType.GEOLOCATION

    def match(self, location: str) -> Optional[Tuple[str, str]]:
        """Return ``(matched_location, service)``; exact match beats the wildcard."""
        wildcard = None
        for code, service in self.locations:
            if code == location:
                return code, service
            if code == WILDCARD_LOCATION and wildcard is None:
                wildcard = (code, service)
        return wildcard


@dataclass
class LatencyPolicy:
    """Map client regions to services; unknown regions use the first entry."""
    regions: Tuple[Tuple[str, str], ...]

    def __post_init__(self):
        self.regions = _ordered_pairs(self.regions)
        if not self.regions:
            raise ValueError("Latency policy needs at least one region")

    @property
    def policy_type(self) -> PolicyType:
        return PolicyType.LATENCY

    def closest(self, region: str) -> Tuple[str, str]:
        """Return ``(region, service)`` for the client region or the first declared one."""
        for code, service in self.regions:
            if code == region:
                return code, service
        return self.regions[0]


@dataclass
class FailoverPolicy:
    """Prefer ``primary``; use ``secondary`` only when the primary is unhealthy."""
    primary: str
    secondary: str

    def __post_init__(self):
        if not self.primary or not self.secondary:
            raise ValueError("Failover policy needs both a primary and a secondary service")

    @property
    def policy_type(self) -> PolicyType:
        return PolicyType.FAILOVER


PolicyConfig = Union[WeightedPolicy, GeolocationPolicy, LatencyPolicy, FailoverPolicy]


def build_policy(policy_type: PolicyType, data: Mapping[str, Any]) -> Optional[PolicyConfig]:
    """
    Build a policy dataclass from plain settings, e.g. a YAML block.

    Returns None for SIMPLE or when the settings for the type are absent,
    which makes the subdomain fall back to simple routing.
    """
    if policy_type is PolicyType.WEIGHTED:
        return WeightedPolicy(data["weights"]) if data.get("weights") else None
    elif policy_type is PolicyType.GEOLOCATION:
        return GeolocationPolicy(data["locations"]) if data.get("locations") else None
    elif policy_type is PolicyType.LATENCY:
        return LatencyPolicy(data["regions"]) if data.get("regions") else None
    elif policy_type is PolicyType.FAILOVER:
        if data.get("primary") and data.get("secondary"):
            return FailoverPolicy(primary=data["primary"], secondary=data["secondary"])
        return None
    return None


@dataclass
class ClientContext:
    """Request attributes derived upstream (geo-IP, load balancer metadata)."""
    location: str = "US"
    region: str = "us-east-1"
    random_value: Optional[float] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_value(
        cls,
        value: Union["ClientContext", Mapping[str, Any], None],
        default_location: str = "US",
        default_region: str = "us-east-1",
    ) -> "ClientContext":
        """Build a context from a mapping, filling absent fields with defaults."""
        if isinstance(value, cls):
            return value
        data = dict(value or {})
        random_value = _as_roll(data.pop("random_value", data.pop("randomValue", None)))
        return cls(
            location=data.pop("location", None) or default_location,
            region=data.pop("region", None) or default_region,
            random_value=random_value,
            extra=data,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {"location": self.location, "region": self.region}
        if self.random_value is not None:
            data["random_value"] = self.random_value
        data.update(self.extra)
        return data


def _as_roll(value: Any) -> Optional[float]:
    """Parse a weighted roll; unusable values count as absent."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class ResolvedEndpoint:
    """Outcome of a successful resolution."""
    endpoint: str
    port: int
    protocol: str
    routing_type: PolicyType
    selected_service: Optional[str] = None
    weight: Optional[int] = None
    matched_location: Optional[str] = None
    client_region: Optional[str] = None
    failover_type: Optional[FailoverRole] = None

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict of the decision, leaving out metadata that does not apply."""
        data = {
            "endpoint": self.endpoint,
            "port": self.port,
            "protocol": self.protocol,
            "routing_type": self.routing_type.value,
        }
        optional = {
            "selected_service": self.selected_service,
            "weight": self.weight,
            "matched_location": self.matched_location,
            "client_region": self.client_region,
            "failover_type": self.failover_type.value if self.failover_type else None,
        }
        data.update({key: val for key, val in optional.items() if val is not None})
        return data


def _resolved(record: ServiceEndpoint, routing_type: PolicyType, **metadata: Any) -> ResolvedEndpoint:
    return ResolvedEndpoint(
        endpoint=record.endpoint,
        port=record.port,
        protocol=record.protocol.value,
        routing_type=routing_type,
        **metadata,
    )


def resolve_simple(
    config: "SubdomainConfig",
    endpoints: EndpointRegistry,
) -> Optional[ResolvedEndpoint]:
    """Route straight to the subdomain's target service if it is healthy."""
    record = endpoints.healthy(config.target_service)
    if record is None:
        return None
    return _resolved(record, PolicyType.SIMPLE)


def resolve_weighted(
    config: "SubdomainConfig",
    policy: Optional[WeightedPolicy],
    context: ClientContext,
    endpoints: EndpointRegistry,
) -> Optional[ResolvedEndpoint]:
    """
    Pick the first bucket whose cumulative share reaches the random value.

    An unhealthy pick yields None; the call does not retry another bucket.
    """
    if policy is None:
        return resolve_simple(config, endpoints)

    roll = context.random_value if context.random_value is not None else random.random()
    total = policy.total_weight
    cumulative = 0

    for service, weight in policy.weights:
        cumulative += weight
        if roll <= cumulative / total:
            record = endpoints.healthy(service)
            if record is None:
                return None
            return _resolved(
                record,
                PolicyType.WEIGHTED,
                selected_service=service,
                weight=weight,
            )

    return resolve_simple(config, endpoints)


def resolve_geolocation(
    config: "SubdomainConfig",
    policy: Optional[GeolocationPolicy],
    context: ClientContext,
    endpoints: EndpointRegistry,
) -> Optional[ResolvedEndpoint]:
    """Route by client location: exact code, then ``*``, then simple routing."""
    if policy is None:
        return resolve_simple(config, endpoints)

    match = policy.match(context.location)
    if match is None:
        return resolve_simple(config, endpoints)

    location, service = match
    record = endpoints.healthy(service)
    if record is None:
        return None
    return _resolved(
        record,
        PolicyType.GEOLOCATION,
        selected_service=service,
        matched_location=location,
    )


def resolve_latency(
    config: "SubdomainConfig",
    policy: Optional[LatencyPolicy],
    context: ClientContext,
    endpoints: EndpointRegistry,
) -> Optional[ResolvedEndpoint]:
    """Route to the service serving the client's region, or the first region."""
    if policy is None:
        return resolve_simple(config, endpoints)

    _, service = policy.closest(context.region)
    record = endpoints.healthy(service)
    if record is None:
        return None
    return _resolved(
        record,
        PolicyType.LATENCY,
        selected_service=service,
        client_region=context.region,
    )


def resolve_failover(
    config: "SubdomainConfig",
    policy: Optional[FailoverPolicy],
    endpoints: EndpointRegistry,
) -> Optional[ResolvedEndpoint]:
    """Try the primary, then the secondary. Both down means no route."""
    if policy is None:
        return resolve_simple(config, endpoints)

    for role, service in (
        (FailoverRole.PRIMARY, policy.primary),
        (FailoverRole.SECONDARY, policy.secondary),
    ):
        record = endpoints.healthy(service)
        if record is not None:
            return _resolved(
                record,
                PolicyType.FAILOVER,
                selected_service=service,
                failover_type=role,
            )

    return None


def evaluate(
    config: "SubdomainConfig",
    policy: Optional[PolicyConfig],
    context: ClientContext,
    endpoints: EndpointRegistry,
) -> Optional[ResolvedEndpoint]:
    """Dispatch to the evaluator for the subdomain's policy type."""
    policy_type = config.routing_policy

    if policy is not None and policy.policy_type is not policy_type:
        policy = None

    if policy_type is PolicyType.WEIGHTED:
        return resolve_weighted(config, policy, context, endpoints)
    elif policy_type is PolicyType.GEOLOCATION:
        return resolve_geolocation(config, policy, context, endpoints)
    elif policy_type is PolicyType.LATENCY:
        return resolve_latency(config, policy, context, endpoints)
    elif policy_type is PolicyType.FAILOVER:
        return resolve_failover(config, policy, endpoints)
    return resolve_simple(config, endpoints)
