"""Tests for the subdomain router."""

import dataclasses
import random

import pytest

from routing import (
    FailoverPolicy,
    GeolocationPolicy,
    InvalidEndpointError,
    LatencyPolicy,
    PolicyType,
    RouterConfig,
    SubdomainConfig,
    SubdomainRouter,
    WeightedPolicy,
)


def test_simple_scenario(router):
    """Healthy simple routing, then no route once the service goes down."""
    router.register_endpoint("web-app", "web.internal", 443, "https", healthy=True)
    router.register_subdomain("app.example.com", SubdomainConfig("web-app"))

    result = router.resolve_subdomain("app.example.com")
    assert result.to_dict() == {
        "endpoint": "web.internal",
        "port": 443,
        "protocol": "https",
        "routing_type": "simple",
    }

    router.set_health("web-app", False)
    assert router.resolve_subdomain("app.example.com") is None


def test_registration_creates_default_endpoint(router):
    router.register_subdomain("api.example.com", SubdomainConfig("api-service"))

    record = router.lookup_endpoint("api-service")
    assert record.endpoint == "api-service.internal"
    assert record.port == 443
    assert record.protocol.value == "https"
    assert record.healthy is True


def test_registration_keeps_existing_endpoint(router):
    router.register_endpoint("api-service", "api.internal", 8443, "https", healthy=False)
    router.register_subdomain("api.example.com", SubdomainConfig("api-service"))

    record = router.lookup_endpoint("api-service")
    assert record.endpoint == "api.internal"
    assert record.healthy is False


def test_registration_with_endpoint_details_overwrites(router):
    router.register_endpoint("api-service", "old.internal", 8443, "https", healthy=False)
    router.register_subdomain(
        "api.example.com",
        SubdomainConfig("api-service", endpoint="new.internal", port=8080, protocol="http"),
    )

    record = router.lookup_endpoint("api-service")
    assert (record.endpoint, record.port, record.protocol.value, record.healthy) == (
        "new.internal", 8080, "http", True,
    )


def test_registration_with_bad_protocol_raises(router):
    with pytest.raises(InvalidEndpointError):
        router.register_subdomain("api.example.com", SubdomainConfig("api", protocol="gopher"))
    assert router.get_subdomain("api.example.com") is None


def test_unregistered_subdomain_leaves_no_history(router):
    assert router.resolve_subdomain("nope.example.com") is None
    assert router.history == ()
    assert router.get_routing_stats().total_requests == 0


def test_inactive_subdomain_records_failed_entry(router):
    router.register_subdomain("old.example.com", SubdomainConfig("web", active=False))

    assert router.resolve_subdomain("old.example.com") is None
    assert router.list_active() == []

    (entry,) = router.history
    assert entry.subdomain == "old.example.com"
    assert entry.successful is False
    assert entry.selected_endpoint is None


def test_inactive_attempts_can_be_left_out_of_history():
    router = SubdomainRouter(RouterConfig(record_inactive_attempts=False))
    router.register_subdomain("old.example.com", SubdomainConfig("web", active=False))

    assert router.resolve_subdomain("old.example.com") is None
    assert router.history == ()


def test_unknown_target_service_is_no_route(router):
    router.register_subdomain(
        "api.example.com",
        SubdomainConfig("api", policy=FailoverPolicy("ghost-a", "ghost-b")),
    )
    assert router.resolve_subdomain("api.example.com") is None
    assert router.history[-1].successful is False


def test_weighted_resolution_uses_context_value(router):
    router.register_endpoint("blue", "blue.internal")
    router.register_endpoint("green", "green.internal")
    router.register_subdomain(
        "api.example.com",
        SubdomainConfig("blue", policy=WeightedPolicy({"blue": 1, "green": 3})),
    )

    assert router.resolve_subdomain("api.example.com", {"random_value": 0.2}).selected_service == "blue"
    assert router.resolve_subdomain("api.example.com", {"random_value": 0.3}).selected_service == "green"


def test_weighted_resolution_draws_from_rng_and_records_it():
    router = SubdomainRouter(rng=random.Random(42))
    router.register_endpoint("blue", "blue.internal")
    router.register_endpoint("green", "green.internal")
    router.register_subdomain(
        "api.example.com",
        SubdomainConfig("blue", policy=WeightedPolicy({"blue": 1, "green": 1})),
    )

    result = router.resolve_subdomain("api.example.com")
    roll = router.history[-1].client_context["random_value"]

    assert 0.0 <= roll < 1.0
    assert result.selected_service == ("blue" if roll <= 0.5 else "green")


def test_geolocation_and_latency_defaults(router):
    router.register_endpoint("us", "us.internal")
    router.register_endpoint("east", "east.internal")
    router.register_subdomain(
        "stream.example.com",
        SubdomainConfig("us", policy=GeolocationPolicy({"US": "us", "*": "us"})),
    )
    router.register_subdomain(
        "ws.example.com",
        SubdomainConfig("east", policy=LatencyPolicy({"us-east-1": "east"})),
    )

    geo = router.resolve_subdomain("stream.example.com")
    assert geo.matched_location == "US"

    latency = router.resolve_subdomain("ws.example.com")
    assert latency.client_region == "us-east-1"


def test_configured_defaults_feed_client_context():
    router = SubdomainRouter(RouterConfig(default_location="EU", default_region="eu-west-1"))
    router.register_endpoint("eu", "eu.internal")
    router.register_subdomain(
        "stream.example.com",
        SubdomainConfig("eu", policy=GeolocationPolicy({"EU": "eu"})),
    )

    assert router.resolve_subdomain("stream.example.com").matched_location == "EU"
    assert router.history[-1].client_context["region"] == "eu-west-1"


def test_policy_configured_without_parameters_falls_back_to_simple(router):
    router.register_subdomain(
        "api.example.com", SubdomainConfig("api", routing_policy=PolicyType.FAILOVER)
    )

    result = router.resolve_subdomain("api.example.com")
    assert result.routing_type is PolicyType.SIMPLE
    assert router.history[-1].routing_policy is PolicyType.FAILOVER


def test_unparsable_random_value_draws_from_rng():
    router = SubdomainRouter(rng=random.Random(7))
    router.register_endpoint("blue", "blue.internal")
    router.register_endpoint("green", "green.internal")
    router.register_subdomain(
        "api.example.com",
        SubdomainConfig("blue", policy=WeightedPolicy({"blue": 1, "green": 1})),
    )

    result = router.resolve_subdomain("api.example.com", {"randomValue": "not-a-number"})

    roll = router.history[-1].client_context["random_value"]
    assert roll == random.Random(7).random()
    assert result.selected_service == ("blue" if roll <= 0.5 else "green")


def test_history_entries_cannot_be_rewritten(router):
    router.register_endpoint("web", "web.internal")
    router.register_subdomain("www.example.com", SubdomainConfig("web"))
    context = {"location": "EU"}

    result = router.resolve_subdomain("www.example.com", context)
    context["location"] = "XX"

    with pytest.raises(dataclasses.FrozenInstanceError):
        result.endpoint = "other.internal"
    with pytest.raises(TypeError):
        router.history[-1].client_context["location"] = "XX"

    entry = router.history[-1]
    assert entry.selected_endpoint.endpoint == "web.internal"
    assert entry.client_context["location"] == "EU"


def test_registration_applies_router_default_ttl():
    router = SubdomainRouter(RouterConfig(default_ttl=60))

    assert router.register_subdomain("www.example.com", SubdomainConfig("web")).ttl == 60
    assert router.register_subdomain("api.example.com", SubdomainConfig("api", ttl=5)).ttl == 5
    assert router.get_subdomain("www.example.com").ttl == 60


def test_stats(router):
    router.register_endpoint("web", "web.internal")
    router.register_endpoint("api", "api.internal", healthy=False)
    router.register_subdomain("www.example.com", SubdomainConfig("web"))
    router.register_subdomain(
        "api.example.com",
        SubdomainConfig("api", policy=FailoverPolicy("api", "web")),
    )
    router.register_subdomain("down.example.com", SubdomainConfig("api"))

    router.resolve_subdomain("www.example.com")
    router.resolve_subdomain("api.example.com")
    router.resolve_subdomain("down.example.com")
    router.resolve_subdomain("missing.example.com")

    stats = router.get_routing_stats()
    assert stats.total_requests == 3
    assert stats.successful_routings == 2
    assert stats.routing_policy_usage == {"simple": 2, "failover": 1}
    assert stats.average_routing_time_ms >= 0.0
    assert stats.success_rate == pytest.approx(200 / 3)

    # Reading stats does not touch the log
    assert len(router.history) == 3
    assert router.get_routing_stats() == stats


def test_clear_resets_everything(router):
    router.register_subdomain("www.example.com", SubdomainConfig("web"))
    router.resolve_subdomain("www.example.com")

    router.clear()

    assert router.list_active() == []
    assert router.lookup_endpoint("web") is None
    assert router.history == ()
    assert router.get_routing_stats().total_requests == 0
    assert router.resolve_subdomain("www.example.com") is None


def test_independent_router_instances():
    first, second = SubdomainRouter(), SubdomainRouter()
    first.register_subdomain("www.example.com", SubdomainConfig("web"))

    assert first.resolve_subdomain("www.example.com") is not None
    assert second.resolve_subdomain("www.example.com") is None


def test_metrics_are_recorded(instrumented_router, metrics):
    router = instrumented_router
    router.register_endpoint("web", "web.internal")
    router.register_subdomain("www.example.com", SubdomainConfig("web"))
    router.register_subdomain("old.example.com", SubdomainConfig("web", active=False))

    router.resolve_subdomain("www.example.com")
    router.set_health("web", False)
    router.resolve_subdomain("www.example.com")
    router.resolve_subdomain("old.example.com")
    router.resolve_subdomain("missing.example.com")

    assert metrics.sample("subdomain_resolutions_total", policy="simple", status="routed") == 1
    assert metrics.sample("subdomain_resolutions_total", policy="simple", status="no_route") == 1
    assert metrics.sample("subdomain_resolutions_total", policy="simple", status="inactive") == 1
    assert metrics.sample("subdomain_resolutions_total", policy="none", status="unregistered") == 1
    assert metrics.sample("subdomain_resolution_seconds_count", policy="simple") == 2
    assert metrics.sample("service_endpoint_healthy", service="web") == 0
    assert metrics.sample("subdomains_registered") == 2
    assert metrics.sample("routing_history_entries") == 3


def test_metrics_can_be_disabled(metrics):
    router = SubdomainRouter(RouterConfig(metrics_enabled=False), metrics=metrics)
    router.register_subdomain("www.example.com", SubdomainConfig("web"))
    router.resolve_subdomain("www.example.com")

    assert metrics.sample("subdomain_resolutions_total", policy="simple", status="routed") is None


def test_resolution_spans(instrumented_router, span_exporter):
    router = instrumented_router
    router.register_endpoint("primary", "primary.internal", healthy=False)
    router.register_endpoint("backup", "backup.internal")
    router.register_subdomain(
        "api.example.com",
        SubdomainConfig("primary", policy=FailoverPolicy("primary", "backup")),
    )

    router.resolve_subdomain("api.example.com")

    (span,) = span_exporter.get_finished_spans()
    assert span.name == "resolve_subdomain"
    assert span.attributes["routing.subdomain"] == "api.example.com"
    assert span.attributes["routing.policy"] == "failover"
    assert span.attributes["routing.successful"] is True
    assert span.attributes["routing.selected_service"] == "backup"


def test_from_table():
    router = SubdomainRouter.from_table(
        {
            "router": {"default_location": "EU"},
            "endpoints": [{"service": "eu", "endpoint": "eu.internal"}],
            "subdomains": {
                "stream.example.com": {
                    "target_service": "eu",
                    "routing_policy": "geolocation",
                    "policy": {"locations": {"EU": "eu"}},
                },
            },
        }
    )

    assert router.config.default_location == "EU"
    assert router.resolve_subdomain("stream.example.com").selected_service == "eu"
