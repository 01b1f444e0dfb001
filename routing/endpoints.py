"""
Service Endpoint Registry - Backend destinations for subdomain traffic.
"""

import logging
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, Iterator, Optional

logger = logging.getLogger(__name__)


class Protocol(str, Enum):
    """Protocols a service endpoint may speak."""
    HTTP = "http"
    HTTPS = "https"

    @classmethod
    def parse(cls, value: "Protocol | str") -> "Protocol":
        """Coerce a string to a Protocol, rejecting anything else."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidEndpointError(
                f"Unsupported protocol {value!r}, expected one of "
                f"{[p.value for p in cls]}"
            ) from None


@dataclass
class ServiceEndpoint:
    """A backend destination for a service."""
    service: str
    endpoint: str
    port: int = 443
    protocol: Protocol = Protocol.HTTPS
    healthy: bool = True

    def to_dict(self) -> dict:
        data = asdict(self)
        data["protocol"] = self.protocol.value
        return data


class EndpointRegistry:
    """
    Stores known backend services keyed by service name.

    Registration is an upsert. Health flags are the only field mutated
    after registration, driven by an external health-check source.
    """

    def __init__(self):
        self._endpoints: Dict[str, ServiceEndpoint] = {}

    def register(
        self,
        service: str,
        endpoint: str,
        port: int = 443,
        protocol: "Protocol | str" = Protocol.HTTPS,
        healthy: bool = True,
    ) -> ServiceEndpoint:
        """Insert or overwrite the endpoint for a service."""
        proto = Protocol.parse(protocol)
        validate_port(service, port)

        record = ServiceEndpoint(
            service=service,
            endpoint=endpoint,
            port=port,
            protocol=proto,
            healthy=healthy,
        )
        self._endpoints[service] = record
        return record

    def set_health(self, service: str, healthy: bool) -> bool:
        """
        Update the health flag of a known service.

        Returns False when the service is unknown; that is not an error.
        """
        record = self._endpoints.get(service)
        if record is None:
            logger.debug("Health update for unknown service %s ignored", service)
            return False
        record.healthy = healthy
        return True

    def lookup(self, service: str) -> Optional[ServiceEndpoint]:
        """Get the endpoint registered for a service."""
        return self._endpoints.get(service)

    def healthy(self, service: str) -> Optional[ServiceEndpoint]:
        """Get the endpoint for a service only if it is registered and healthy."""
        record = self._endpoints.get(service)
        if record is not None and record.healthy:
            return record
        return None

    def __contains__(self, service: str) -> bool:
        return service in self._endpoints

    def __iter__(self) -> Iterator[ServiceEndpoint]:
        return iter(list(self._endpoints.values()))

    def __len__(self) -> int:
        return len(self._endpoints)

    def clear(self) -> None:
        self._endpoints.clear()


def validate_port(service: str, port: int) -> int:
    """Raise InvalidEndpointError unless port is an int in 1-65535."""
    if isinstance(port, bool) or not isinstance(port, int) or not 1 <= port <= 65535:
        raise InvalidEndpointError(f"Port out of range for {service}: {port!r}")
    return port


class InvalidEndpointError(ValueError):
    """Raised when an endpoint is registered with a bad protocol or port."""
    pass
