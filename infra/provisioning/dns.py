"""DNS hosted zones and alias records."""

from .errors import DependencyError
from .graph import ResourceGraph
from .resources import DnsRecord, HostedZone, LoadBalancer, RemovalPolicy, logical_id


def lookup_hosted_zone(
    graph: ResourceGraph,
    domain: str,
    *,
    zone_id: str | None = None,
    resource_id: str = "HostedZone",
) -> HostedZone:
    """Reference an existing hosted zone. Zones are never created or deleted here."""
    zone = HostedZone(
        id=resource_id,
        domain_name=domain,
        zone_id=zone_id,
        removal_policy=RemovalPolicy.RETAIN,
    )
    return graph.add(zone)


class DNSBinder:
    """Publishes ``subdomain.domain`` as an alias A record for a load balancer."""

    def __init__(self, graph: ResourceGraph) -> None:
        self.graph = graph

    def bind(
        self,
        hosted_zone: HostedZone,
        subdomain: str,
        domain: str,
        load_balancer: LoadBalancer,
        *,
        resource_id: str | None = None,
    ) -> DnsRecord:
        """
        Create or update the alias record.

        Binding the same name again converges on the existing record (and
        re-points it if the load balancer changed) instead of adding another.
        """
        record_name = f"{subdomain}.{domain}"
        for record in self.graph.of_type(DnsRecord):
            if record.hosted_zone is hosted_zone and (record.record_name, record.record_type) == (
                record_name,
                "A",
            ):
                if load_balancer not in self.graph:
                    raise DependencyError(
                        f"{record.id!r} references {load_balancer.id!r}, which has not been created yet"
                    )
                record.alias_target = load_balancer
                return record

        record = DnsRecord(
            id=resource_id or f"{logical_id(subdomain)}ARecord",
            hosted_zone=hosted_zone,
            record_name=record_name,
            alias_target=load_balancer,
        )
        return self.graph.add(record)
