"""
Tests for the load balancer wiring and the target health state machine.
"""

import pytest

from provisioning import ResourceGraph
from provisioning.certificate import CertificateIssuer
from provisioning.compute import ComputeCluster
from provisioning.dns import lookup_hosted_zone
from provisioning.resources import (
    ANYWHERE,
    ContainerImage,
    ContainerLimits,
    ContainerService,
    HealthCheck,
    Listener,
    LoadBalancer,
    Network,
    TargetGroup,
)
from provisioning.traffic import (
    HTTPS_PORT,
    TargetGroupHealth,
    TargetHealth,
    TargetState,
    TrafficRouter,
)


@pytest.fixture
def service(graph: ResourceGraph, network: Network) -> ContainerService:
    compute = ComputeCluster(graph)
    return compute.deploy(
        network,
        ContainerImage.from_registry("nginx"),
        ContainerLimits(),
        3000,
        {},
        {},
        compute.security_group(network),
    )


@pytest.fixture
def load_balancer(graph: ResourceGraph, network: Network, service: ContainerService) -> LoadBalancer:
    zone = lookup_hosted_zone(graph, "example.com")
    certificate = CertificateIssuer(graph).issue("example.com", zone)
    return TrafficRouter(graph).route(network, certificate, service)


class TestRoute:
    def test_load_balancer_accepts_https_only(self, load_balancer: LoadBalancer) -> None:
        group = load_balancer.security_group
        assert not group.allow_all_outbound
        assert [(rule.peer, rule.port) for rule in group.ingress] == [(ANYWHERE, HTTPS_PORT)]
        assert load_balancer.subnet_group == "public"
        assert load_balancer.internet_facing

    def test_service_accepts_load_balancer_only(
        self, load_balancer: LoadBalancer, service: ContainerService
    ) -> None:
        rules = service.security_group.ingress
        assert len(rules) == 1
        assert rules[0].peer is load_balancer.security_group
        assert rules[0].port == 3000

    def test_listener(self, graph: ResourceGraph, load_balancer: LoadBalancer) -> None:
        (listener,) = graph.of_type(Listener)

        assert listener.load_balancer is load_balancer
        assert listener.port == 443
        assert listener.protocol == "HTTPS"
        assert listener.certificate.domain_name == "example.com"

    def test_target_group(self, graph: ResourceGraph, load_balancer, service) -> None:
        (target_group,) = graph.of_type(TargetGroup)

        assert target_group.id == "ECSTargetGroup"
        assert target_group.targets == [service]
        assert target_group.port == 3000
        assert target_group.health_check == HealthCheck("/health", 30, 5, 2, 3, "HTTP")

    def test_order(self, graph: ResourceGraph, load_balancer: LoadBalancer) -> None:
        order = [r.id for r in graph.creation_order()]

        assert order.index("LoadBalancerSecurityGroup") < order.index("ECSSecurityGroup")
        assert order.index("ECSService") < order.index("ECSTargetGroup")
        assert order.index("Certificate") < order.index("LoadBalancerListener")


class TestHealthCheck:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"timeout": 30, "interval": 30},
            {"healthy_threshold": 1},
            {"unhealthy_threshold": 11},
            {"path": "health"},
        ],
    )
    def test_invalid(self, kwargs) -> None:
        with pytest.raises(ValueError):
            HealthCheck(**kwargs)


class TestTargetHealth:
    @pytest.fixture
    def target(self) -> TargetHealth:
        return TargetHealth(HealthCheck())

    def test_starts_unknown(self, target: TargetHealth) -> None:
        assert target.state == TargetState.UNKNOWN
        assert not target.receives_traffic

    def test_healthy_after_threshold(self, target: TargetHealth) -> None:
        assert target.record_probe(True) == TargetState.UNKNOWN
        assert target.record_probe(True) == TargetState.HEALTHY
        assert target.receives_traffic

    def test_unhealthy_after_threshold(self, target: TargetHealth) -> None:
        target.record_probe(False)
        target.record_probe(False)
        assert target.state == TargetState.UNKNOWN
        assert target.record_probe(False) == TargetState.UNHEALTHY

    def test_failure_resets_success_streak(self, target: TargetHealth) -> None:
        target.record_probe(True)
        target.record_probe(False)
        target.record_probe(True)

        assert target.state == TargetState.UNKNOWN

    def test_recovers(self, target: TargetHealth) -> None:
        for _ in range(3):
            target.record_probe(False)
        target.record_probe(True)
        assert target.state == TargetState.UNHEALTHY

        target.record_probe(True)
        assert target.state == TargetState.HEALTHY

    def test_healthy_target_needs_full_failure_streak(self, target: TargetHealth) -> None:
        target.record_probe(True)
        target.record_probe(True)
        target.record_probe(False)
        target.record_probe(False)

        assert target.state == TargetState.HEALTHY

    def test_slow_probe_counts_as_failure(self, target: TargetHealth) -> None:
        for _ in range(3):
            target.record_probe(True, elapsed=5.5)

        assert target.state == TargetState.UNHEALTHY

    def test_probe_at_timeout_still_succeeds(self, target: TargetHealth) -> None:
        target.record_probe(True, elapsed=5.0)
        target.record_probe(True, elapsed=5.0)

        assert target.state == TargetState.HEALTHY


class TestTargetGroupHealth:
    def test_routable_targets(self) -> None:
        group = TargetGroupHealth(HealthCheck())
        group.register("10.0.0.10")
        group.register("10.0.1.10")

        for _ in range(2):
            group.record_probe("10.0.0.10", True)
            group.record_probe("10.0.1.10", False)

        assert group.routable_targets() == ["10.0.0.10"]
        assert group.state("10.0.1.10") == TargetState.UNKNOWN

    def test_register_is_idempotent(self) -> None:
        group = TargetGroupHealth(HealthCheck())
        first = group.register("t")
        first.record_probe(True)

        assert group.register("t") is first

    def test_deregistered_target_not_routable(self) -> None:
        group = TargetGroupHealth(HealthCheck())
        group.register("t")
        group.record_probe("t", True)
        group.record_probe("t", True)

        group.deregister("t")

        assert group.routable_targets() == []
        with pytest.raises(KeyError):
            group.record_probe("t", True)
