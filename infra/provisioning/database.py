"""
Managed database provisioning.

The cluster lives in a private-isolated subnet group and owns a security
group whose only ingress rule is the database port from one peer group.
"""

from .errors import ProvisioningError
from .graph import ResourceGraph
from .resources import (
    DatabaseCluster,
    Network,
    RemovalPolicy,
    Secret,
    SecurityGroup,
    SubnetKind,
)

DOCUMENTDB_PORT = 27017


class DatabaseProvisioner:
    """Creates a DocumentDB-compatible cluster reachable only from one security group."""

    def __init__(self, graph: ResourceGraph) -> None:
        self.graph = graph

    def create_cluster(
        self,
        network: Network,
        credentials: Secret,
        peer_security_group: SecurityGroup,
        *,
        username_field: str = "username",
        password_field: str = "password",
        subnet_group: str | None = None,
        instance_type: str = "t3.medium",
        instances: int = 1,
        port: int = DOCUMENTDB_PORT,
        removal_policy: RemovalPolicy = RemovalPolicy.DESTROY,
        resource_id: str = "DocDB",
    ) -> DatabaseCluster:
        placement = self._placement(network, subnet_group)
        if peer_security_group.network is not network:
            raise ProvisioningError(
                f"Peer security group {peer_security_group.id!r} belongs to another network"
            )
        if instances < 1:
            raise ProvisioningError("A database cluster needs at least one instance")
        # Fail on unknown credential fields before anything is added.
        credentials.ref(username_field)
        credentials.ref(password_field)

        security_group = self.graph.add(
            SecurityGroup(
                id=f"{resource_id}SecurityGroup",
                network=network,
                description="Database cluster",
            )
        )
        self.graph.authorize_ingress(
            security_group,
            peer_security_group,
            port,
            description="Allow DocumentDB traffic from ECS",
        )

        cluster = DatabaseCluster(
            id=resource_id,
            network=network,
            subnet_group=placement,
            credentials=credentials,
            username_field=username_field,
            password_field=password_field,
            security_group=security_group,
            instance_type=instance_type,
            instances=instances,
            port=port,
            removal_policy=removal_policy,
        )
        return self.graph.add(cluster)

    @staticmethod
    def _placement(network: Network, subnet_group: str | None) -> str:
        if subnet_group is None:
            isolated = network.groups_of_kind(SubnetKind.PRIVATE_ISOLATED)
            if not isolated:
                raise ProvisioningError(f"Network {network.id!r} has no private-isolated subnets")
            return isolated[0].name

        group = network.group(subnet_group)
        if group.kind != SubnetKind.PRIVATE_ISOLATED:
            raise ProvisioningError(
                f"Databases must be placed in a private-isolated subnet group, "
                f"{subnet_group!r} is {group.kind.value}"
            )
        return group.name
