"""
Container service provisioning.

Plaintext environment variables and injected secrets are kept apart: the
environment only accepts strings or attribute references (e.g. a database
hostname), secrets only accept ``SecretRef`` handles that the orchestrator
resolves when the container starts.
"""

from collections.abc import Iterable, Mapping

from .errors import PlaintextSecretError, ProvisioningError
from .graph import ResourceGraph
from .resources import (
    AttributeRef,
    Cluster,
    ContainerImage,
    ContainerLimits,
    ContainerService,
    LogGroup,
    Network,
    Resource,
    SecretRef,
    SecurityGroup,
    SubnetKind,
)

# Valid Fargate CPU units -> memory (MiB) combinations.
FARGATE_MEMORY: dict[int, tuple[int, ...]] = {
    256: (512, 1024, 2048),
    512: tuple(range(1024, 4097, 1024)),
    1024: tuple(range(2048, 8193, 1024)),
    2048: tuple(range(4096, 16385, 1024)),
    4096: tuple(range(8192, 30721, 1024)),
}


class ComputeCluster:
    """Runs a containerized service on a cluster in the public subnets."""

    def __init__(self, graph: ResourceGraph, *, cluster_id: str = "ECSCluster") -> None:
        self.graph = graph
        self.cluster_id = cluster_id
        self._cluster: Cluster | None = None

    def security_group(
        self, network: Network, *, resource_id: str = "ECSSecurityGroup"
    ) -> SecurityGroup:
        """
        Create the service's security group.

        Created separately from the service so other components (the
        database) can authorize it before the service itself exists.
        """
        return self.graph.add(
            SecurityGroup(id=resource_id, network=network, description="Container service")
        )

    def deploy(
        self,
        network: Network,
        image: ContainerImage,
        limits: ContainerLimits,
        port: int,
        env: Mapping[str, str | AttributeRef],
        secrets: Mapping[str, SecretRef],
        security_group: SecurityGroup,
        *,
        subnet_group: str | None = None,
        desired_count: int = 1,
        log_retention_days: int = 1,
        depends_on: Iterable[Resource] = (),
        resource_id: str = "ECSService",
        log_group_id: str = "ECSLogGroup",
    ) -> ContainerService:
        self._check_environment(env, secrets)
        self._check_limits(limits)
        if not 0 < port < 65536:
            raise ProvisioningError(f"Invalid container port {port}")
        if desired_count < 0:
            raise ProvisioningError("desired_count cannot be negative")
        if security_group.network is not network:
            raise ProvisioningError(
                f"Security group {security_group.id!r} belongs to another network"
            )
        placement = self._placement(network, subnet_group)

        log_group = self.graph.add(LogGroup(id=log_group_id, retention_days=log_retention_days))
        service = ContainerService(
            id=resource_id,
            network=network,
            cluster=self._get_cluster(network),
            image=image,
            limits=limits,
            port=port,
            environment=dict(env),
            secrets=dict(secrets),
            security_group=security_group,
            log_group=log_group,
            subnet_group=placement,
            assign_public_ip=True,
            desired_count=desired_count,
            depends_on=list(depends_on),
        )
        return self.graph.add(service)

    def _get_cluster(self, network: Network) -> Cluster:
        if self._cluster is None:
            self._cluster = self.graph.add(Cluster(id=self.cluster_id, network=network))
        elif self._cluster.network is not network:
            raise ProvisioningError(f"Cluster {self.cluster_id!r} belongs to another network")
        return self._cluster

    @staticmethod
    def _placement(network: Network, subnet_group: str | None) -> str:
        if subnet_group is None:
            public = network.groups_of_kind(SubnetKind.PUBLIC)
            if not public:
                raise ProvisioningError(f"Network {network.id!r} has no public subnets")
            return public[0].name
        group = network.group(subnet_group)
        if group.kind != SubnetKind.PUBLIC:
            raise ProvisioningError(
                f"Container services run in public subnets, {subnet_group!r} is {group.kind.value}"
            )
        return group.name

    @staticmethod
    def _check_environment(
        env: Mapping[str, str | AttributeRef], secrets: Mapping[str, SecretRef]
    ) -> None:
        for name, value in env.items():
            if isinstance(value, SecretRef):
                raise PlaintextSecretError(
                    f"Environment variable {name!r} holds {value!r}; pass it as an injected secret"
                )
            if not isinstance(value, (str, AttributeRef)):
                raise TypeError(f"Environment variable {name!r} must be a string, got {type(value)}")
        for name, value in secrets.items():
            if not isinstance(value, SecretRef):
                raise PlaintextSecretError(
                    f"Secret {name!r} must be injected by reference, not as a plain value"
                )
        overlap = sorted(set(env) & set(secrets))
        if overlap:
            raise ProvisioningError(f"Variables defined both as environment and secret: {overlap}")

    @staticmethod
    def _check_limits(limits: ContainerLimits) -> None:
        allowed = FARGATE_MEMORY.get(limits.cpu)
        if allowed is None:
            raise ProvisioningError(f"Unsupported CPU value {limits.cpu}")
        if limits.memory_mib not in allowed:
            raise ProvisioningError(
                f"{limits.memory_mib} MiB is not a valid memory size for {limits.cpu} CPU units"
            )
