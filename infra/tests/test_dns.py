"""
Tests for hosted zone lookup and alias record binding.
"""

import pytest

from provisioning import ResourceGraph
from provisioning.dns import DNSBinder, lookup_hosted_zone
from provisioning.errors import DependencyError
from provisioning.resources import DnsRecord, HostedZone, LoadBalancer, Network, SecurityGroup


@pytest.fixture
def zone(graph: ResourceGraph) -> HostedZone:
    return lookup_hosted_zone(graph, "example.com", zone_id="Z123")


def make_load_balancer(graph: ResourceGraph, network: Network, name: str) -> LoadBalancer:
    group = graph.add(SecurityGroup(id=f"{name}SecurityGroup", network=network))
    return graph.add(
        LoadBalancer(id=name, network=network, subnet_group="public", security_group=group)
    )


def test_hosted_zone_is_imported(zone: HostedZone) -> None:
    assert zone.imported
    assert zone.zone_id == "Z123"


class TestBind:
    def test_alias_record(self, graph: ResourceGraph, network: Network, zone: HostedZone) -> None:
        lb = make_load_balancer(graph, network, "LoadBalancer")

        record = DNSBinder(graph).bind(zone, "api", "example.com", lb)

        assert record.id == "ApiARecord"
        assert record.record_name == "api.example.com"
        assert record.record_type == "A"
        assert record.alias_target is lb
        assert graph.dependencies_of(record) == [zone, lb]

    def test_binding_twice_converges(self, graph: ResourceGraph, network: Network, zone: HostedZone) -> None:
        lb = make_load_balancer(graph, network, "LoadBalancer")
        binder = DNSBinder(graph)

        first = binder.bind(zone, "api", "example.com", lb)
        size = len(graph)
        second = binder.bind(zone, "api", "example.com", lb, resource_id="Other")

        assert first is second
        assert len(graph) == size
        assert len(graph.of_type(DnsRecord)) == 1

    def test_rebinding_repoints_record(self, graph: ResourceGraph, network: Network, zone: HostedZone) -> None:
        old = make_load_balancer(graph, network, "Old")
        new = make_load_balancer(graph, network, "New")
        binder = DNSBinder(graph)
        record = binder.bind(zone, "api", "example.com", old)

        binder.bind(zone, "api", "example.com", new)

        assert record.alias_target is new

    def test_rebinding_to_unknown_load_balancer(
        self, graph: ResourceGraph, network: Network, zone: HostedZone
    ) -> None:
        lb = make_load_balancer(graph, network, "LoadBalancer")
        binder = DNSBinder(graph)
        record = binder.bind(zone, "api", "example.com", lb)
        stray = LoadBalancer(
            id="Stray", network=network, subnet_group="public", security_group=lb.security_group
        )

        with pytest.raises(DependencyError):
            binder.bind(zone, "api", "example.com", stray)
        assert record.alias_target is lb

    def test_different_names_get_separate_records(
        self, graph: ResourceGraph, network: Network, zone: HostedZone
    ) -> None:
        lb = make_load_balancer(graph, network, "LoadBalancer")
        binder = DNSBinder(graph)

        binder.bind(zone, "api", "example.com", lb)
        binder.bind(zone, "admin", "example.com", lb)

        assert sorted(r.record_name for r in graph.of_type(DnsRecord)) == [
            "admin.example.com",
            "api.example.com",
        ]
