"""
Subdomain Registry - Which subdomain routes to which service, and how.
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple, Union

from .endpoints import Protocol
from .policies import PolicyConfig, PolicyType

logger = logging.getLogger(__name__)


@dataclass
class SubdomainConfig:
    """
    Routing configuration for one fully-qualified subdomain.

    ``routing_policy`` defaults to the type of ``policy`` when one is given,
    otherwise to simple routing. ``endpoint``, ``port`` and ``protocol``
    describe the target service when registration should create or
    replace its endpoint. ``ttl`` is advisory only and takes the router's
    default when left unset.
    """
    target_service: str
    routing_policy: Union[PolicyType, str, None] = None
    policy: Optional[PolicyConfig] = None
    health_check_enabled: bool = False
    ttl: Optional[int] = None
    active: bool = True
    endpoint: Optional[str] = None
    port: Optional[int] = None
    protocol: Union[Protocol, str, None] = None
    name: str = ""

    def __post_init__(self):
        if self.routing_policy is None and self.policy is not None:
            self.routing_policy = self.policy.policy_type
        self.routing_policy = PolicyType.parse(self.routing_policy)


@dataclass
class PolicyRecord:
    """Policy parameters stored for a non-simple subdomain."""
    subdomain: str
    policy_type: PolicyType
    config: PolicyConfig


class SubdomainRegistry:
    """
    Stores subdomain configs and their policy records.

    Re-registering a name replaces its config and policy record while
    keeping its first position in registration order.
    """

    def __init__(self):
        self._subdomains: Dict[str, SubdomainConfig] = {}
        self._policies: Dict[Tuple[str, PolicyType], PolicyRecord] = {}

    def register(self, name: str, config: SubdomainConfig) -> SubdomainConfig:
        """Store a subdomain config (last write wins)."""
        stored = replace(config, name=name)
        replaced = name in self._subdomains
        self._subdomains[name] = stored

        for key in [key for key in self._policies if key[0] == name]:
            del self._policies[key]

        if stored.routing_policy is not PolicyType.SIMPLE and stored.policy is not None:
            self._policies[(name, stored.routing_policy)] = PolicyRecord(
                subdomain=name,
                policy_type=stored.routing_policy,
                config=stored.policy,
            )

        logger.info(
            "%s subdomain %s -> %s (%s)",
            "Updated" if replaced else "Registered",
            name,
            stored.target_service,
            stored.routing_policy.value,
        )
        return stored

    def get(self, name: str) -> Optional[SubdomainConfig]:
        return self._subdomains.get(name)

    def policy_for(self, name: str) -> Optional[PolicyRecord]:
        """Get the policy record matching the subdomain's current policy type."""
        config = self._subdomains.get(name)
        if config is None:
            return None
        return self._policies.get((name, config.routing_policy))

    def list_active(self) -> List[str]:
        """Active subdomain names in registration order."""
        return [name for name, config in self._subdomains.items() if config.active]

    def __contains__(self, name: str) -> bool:
        return name in self._subdomains

    def __len__(self) -> int:
        return len(self._subdomains)

    def clear(self) -> None:
        self._subdomains.clear()
        self._policies.clear()
