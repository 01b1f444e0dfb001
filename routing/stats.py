"""
Routing statistics over the resolution history.
"""

from collections import Counter
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional

from .policies import PolicyType, ResolvedEndpoint


@dataclass(frozen=True)
class RoutingHistoryEntry:
    """One resolution decision. Entries are never mutated once appended."""
    subdomain: str
    client_context: Mapping[str, Any]
    selected_endpoint: Optional[ResolvedEndpoint]
    routing_policy: PolicyType
    routing_time_ms: float
    timestamp_ms: int
    successful: bool

    def __post_init__(self):
        object.__setattr__(self, "client_context", MappingProxyType(dict(self.client_context)))


@dataclass
class RoutingStats:
    """Summary of a routing history."""
    total_requests: int = 0
    successful_routings: int = 0
    average_routing_time_ms: float = 0.0
    routing_policy_usage: Dict[str, int] = field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.successful_routings / self.total_requests * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "successful_routings": self.successful_routings,
            "average_routing_time_ms": self.average_routing_time_ms,
            "routing_policy_usage": dict(self.routing_policy_usage),
            "success_rate": self.success_rate,
        }


def summarize(history: Iterable[RoutingHistoryEntry]) -> RoutingStats:
    """Reduce a history log to counts, mean latency and per-policy usage."""
    entries = list(history)
    if not entries:
        return RoutingStats()

    usage = Counter(entry.routing_policy.value for entry in entries)
    return RoutingStats(
        total_requests=len(entries),
        successful_routings=sum(1 for entry in entries if entry.successful),
        average_routing_time_ms=sum(entry.routing_time_ms for entry in entries) / len(entries),
        routing_policy_usage=dict(usage),
    )
