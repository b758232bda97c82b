"""
Network topology - VPC address allocation and subnet routing.

Subnet blocks are allocated sequentially in request order, one block per
subnet group per availability zone, each aligned to its own size. This is the
same order CDK's ``ec2.Vpc`` uses, so the planned layout matches the deployed
one.
"""

import ipaddress
from collections.abc import Iterable
from dataclasses import dataclass

from .errors import ProvisioningError, SubnetAllocationError
from .graph import ResourceGraph
from .resources import (
    INTERNET_GATEWAY,
    LOCAL,
    Network,
    Route,
    Subnet,
    SubnetGroup,
    SubnetKind,
)

# AWS accepts subnet blocks between /16 and /28.
MIN_PREFIX = 16
MAX_PREFIX = 28


@dataclass(frozen=True)
class SubnetSpec:
    name: str
    cidr_mask: int
    kind: SubnetKind


DEFAULT_SUBNETS = (
    SubnetSpec(name="public", cidr_mask=24, kind=SubnetKind.PUBLIC),
    SubnetSpec(name="private", cidr_mask=24, kind=SubnetKind.PRIVATE_ISOLATED),
)


def assert_routing(network: Network) -> None:
    """Public subnets route to the internet gateway; private-isolated ones never do."""
    for subnet in network.subnets:
        public = subnet.group.kind == SubnetKind.PUBLIC
        if public != subnet.has_internet_route:
            raise ProvisioningError(
                f"Subnet {subnet.cidr} in group {subnet.group.name!r} ({subnet.group.kind.value}) "
                f"{'lacks' if public else 'has'} a route to the internet"
            )


class NetworkTopology:
    """Allocates the virtual network and its public / private-isolated subnet groups."""

    def __init__(self, graph: ResourceGraph) -> None:
        self.graph = graph

    def allocate(
        self,
        subnet_specs: Iterable[SubnetSpec],
        *,
        cidr: str = "10.0.0.0/16",
        max_azs: int = 2,
        resource_id: str = "VPC",
    ) -> Network:
        """
        Plan the network and add it to the graph.

        Raises:
            SubnetAllocationError: if the specs are invalid or do not fit in
                ``cidr``. Nothing is added to the graph in that case.
        """
        try:
            specs = [SubnetSpec(s.name, s.cidr_mask, SubnetKind(s.kind)) for s in subnet_specs]
        except ValueError as e:
            raise SubnetAllocationError(str(e)) from e
        try:
            vpc_cidr = ipaddress.IPv4Network(cidr)
        except ValueError as e:
            raise SubnetAllocationError(f"Invalid VPC CIDR {cidr!r}: {e}") from e
        if max_azs < 1:
            raise SubnetAllocationError("max_azs must be at least 1")

        self._validate(specs, vpc_cidr)
        groups = tuple(SubnetGroup(spec.name, spec.cidr_mask, spec.kind) for spec in specs)

        subnets: list[Subnet] = []
        next_address = int(vpc_cidr.network_address)
        for group in groups:
            size = 2 ** (32 - group.cidr_mask)
            for az in range(max_azs):
                start = -(-next_address // size) * size  # align up
                block = ipaddress.IPv4Network((start, group.cidr_mask))
                if not block.subnet_of(vpc_cidr):
                    raise SubnetAllocationError(
                        f"{vpc_cidr} cannot fit subnet group {group.name!r} "
                        f"(/{group.cidr_mask} x {max_azs} AZs)"
                    )
                subnets.append(
                    Subnet(
                        group=group,
                        availability_zone=az,
                        cidr=block,
                        routes=self._routes(group, vpc_cidr),
                    )
                )
                next_address = start + size

        network = Network(
            id=resource_id,
            cidr=vpc_cidr,
            max_azs=max_azs,
            subnet_groups=groups,
            subnets=tuple(subnets),
        )
        assert_routing(network)
        return self.graph.add(network)

    @staticmethod
    def _routes(group: SubnetGroup, vpc_cidr: ipaddress.IPv4Network) -> tuple[Route, ...]:
        routes = [Route(destination=str(vpc_cidr), target=LOCAL)]
        if group.kind == SubnetKind.PUBLIC:
            routes.append(Route(destination="0.0.0.0/0", target=INTERNET_GATEWAY))
        return tuple(routes)

    @staticmethod
    def _validate(specs: list[SubnetSpec], vpc_cidr: ipaddress.IPv4Network) -> None:
        kinds = {spec.kind for spec in specs}
        if SubnetKind.PUBLIC not in kinds or SubnetKind.PRIVATE_ISOLATED not in kinds:
            raise SubnetAllocationError(
                "At least one public and one private-isolated subnet group are required"
            )

        names = [spec.name for spec in specs]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise SubnetAllocationError(f"Duplicate subnet group names: {duplicates}")

        low = max(MIN_PREFIX, vpc_cidr.prefixlen)
        for spec in specs:
            if not low <= spec.cidr_mask <= MAX_PREFIX:
                raise SubnetAllocationError(
                    f"Subnet group {spec.name!r} mask /{spec.cidr_mask} must be between "
                    f"/{low} and /{MAX_PREFIX}"
                )
