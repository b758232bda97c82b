"""
Load-balanced TLS ingress and target health tracking.

The listener terminates TLS with the issued certificate and forwards plain
HTTP to the service port. Which tasks actually receive traffic is decided by
the per-target health state machine below, which mirrors the load
balancer's threshold rules.
"""

from dataclasses import dataclass
from enum import Enum

from .errors import ProvisioningError
from .graph import ResourceGraph
from .resources import (
    ANYWHERE,
    Certificate,
    ContainerService,
    HealthCheck,
    Listener,
    LoadBalancer,
    Network,
    SecurityGroup,
    SubnetKind,
    TargetGroup,
)

HTTPS_PORT = 443


class TrafficRouter:
    """Creates the load balancer, its HTTPS listener and the service's target group."""

    def __init__(self, graph: ResourceGraph) -> None:
        self.graph = graph

    def route(
        self,
        network: Network,
        certificate: Certificate,
        service: ContainerService,
        health_check: HealthCheck | None = None,
        *,
        resource_id: str = "LoadBalancer",
        target_group_id: str = "ECSTargetGroup",
    ) -> LoadBalancer:
        if service.network is not network:
            raise ProvisioningError(f"Service {service.id!r} belongs to another network")
        public = network.groups_of_kind(SubnetKind.PUBLIC)
        if not public:
            raise ProvisioningError(f"Network {network.id!r} has no public subnets")

        security_group = self.graph.add(
            SecurityGroup(
                id=f"{resource_id}SecurityGroup",
                network=network,
                description="Internet-facing load balancer",
                allow_all_outbound=False,
            )
        )
        self.graph.authorize_ingress(
            security_group, ANYWHERE, HTTPS_PORT, description="Allow HTTPS from anywhere"
        )
        load_balancer = self.graph.add(
            LoadBalancer(
                id=resource_id,
                network=network,
                subnet_group=public[0].name,
                security_group=security_group,
            )
        )

        # Tasks only accept traffic from the load balancer.
        self.graph.authorize_ingress(
            service.security_group,
            security_group,
            service.port,
            description="Allow traffic from the load balancer",
        )

        target_group = self.graph.add(
            TargetGroup(
                id=target_group_id,
                network=network,
                port=service.port,
                health_check=health_check or HealthCheck(),
                targets=[service],
            )
        )
        self.graph.add(
            Listener(
                id=f"{resource_id}Listener",
                load_balancer=load_balancer,
                certificate=certificate,
                target_group=target_group,
                port=HTTPS_PORT,
            )
        )
        return load_balancer


class TargetState(str, Enum):
    UNKNOWN = "unknown"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


@dataclass
class TargetHealth:
    """
    Health state of one target.

    ``unknown``/``unhealthy`` become ``healthy`` after ``healthy_threshold``
    consecutive successful probes; ``unknown``/``healthy`` become
    ``unhealthy`` after ``unhealthy_threshold`` consecutive failures. A
    probe that took longer than the check's timeout counts as a failure.
    """

    health_check: HealthCheck
    state: TargetState = TargetState.UNKNOWN
    consecutive_successes: int = 0
    consecutive_failures: int = 0

    def record_probe(self, success: bool, elapsed: float | None = None) -> TargetState:
        if elapsed is not None and elapsed > self.health_check.timeout:
            success = False

        if success:
            self.consecutive_successes += 1
            self.consecutive_failures = 0
            if (
                self.state != TargetState.HEALTHY
                and self.consecutive_successes >= self.health_check.healthy_threshold
            ):
                self.state = TargetState.HEALTHY
        else:
            self.consecutive_failures += 1
            self.consecutive_successes = 0
            if (
                self.state != TargetState.UNHEALTHY
                and self.consecutive_failures >= self.health_check.unhealthy_threshold
            ):
                self.state = TargetState.UNHEALTHY
        return self.state

    @property
    def receives_traffic(self) -> bool:
        return self.state == TargetState.HEALTHY


class TargetGroupHealth:
    """Tracks every registered target of a target group."""

    def __init__(self, health_check: HealthCheck) -> None:
        self.health_check = health_check
        self._targets: dict[str, TargetHealth] = {}

    def register(self, target_id: str) -> TargetHealth:
        return self._targets.setdefault(target_id, TargetHealth(self.health_check))

    def deregister(self, target_id: str) -> None:
        self._targets.pop(target_id, None)

    def record_probe(self, target_id: str, success: bool, elapsed: float | None = None) -> TargetState:
        try:
            target = self._targets[target_id]
        except KeyError:
            raise KeyError(f"Target {target_id!r} is not registered") from None
        return target.record_probe(success, elapsed)

    def state(self, target_id: str) -> TargetState:
        return self._targets[target_id].state

    def routable_targets(self) -> list[str]:
        return [tid for tid, target in self._targets.items() if target.receives_traffic]
