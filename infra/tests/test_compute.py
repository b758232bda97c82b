"""
Tests for the container service: secret injection, limits and placement.
"""

import pytest

from provisioning import ResourceGraph
from provisioning.compute import ComputeCluster
from provisioning.errors import PlaintextSecretError, ProvisioningError
from provisioning.resources import (
    ContainerImage,
    ContainerLimits,
    Network,
    Secret,
    SecurityGroup,
)
from provisioning.secret import SecretsProvisioner

IMAGE = ContainerImage.from_registry("public.ecr.aws/docker/library/node:20-alpine")


@pytest.fixture
def compute(graph: ResourceGraph) -> ComputeCluster:
    return ComputeCluster(graph)


@pytest.fixture
def app_group(compute: ComputeCluster, network: Network) -> SecurityGroup:
    return compute.security_group(network)


@pytest.fixture
def app_secret(graph: ResourceGraph) -> Secret:
    return SecretsProvisioner(graph).generate("PayloadSecret", ("payloadSecret",))


def deploy(compute, network, app_group, env=None, secrets=None, **kwargs):
    return compute.deploy(
        network,
        IMAGE,
        kwargs.pop("limits", ContainerLimits()),
        kwargs.pop("port", 3000),
        env or {},
        secrets or {},
        app_group,
        **kwargs,
    )


class TestDeploy:
    def test_service_layout(self, graph, compute, network, app_group, app_secret) -> None:
        service = deploy(
            compute,
            network,
            app_group,
            env={"NODE_ENV": "production"},
            secrets={"PAYLOAD_SECRET": app_secret.ref("payloadSecret")},
        )

        assert service.subnet_group == "public"
        assert service.assign_public_ip
        assert service.cluster.id == "ECSCluster"
        assert service.log_group.retention_days == 1
        assert service.log_stream_prefix == "ecs"
        assert service.environment == {"NODE_ENV": "production"}
        assert app_secret in graph.dependencies_of(service)

    def test_cluster_shared_between_services(self, compute, network, app_group) -> None:
        first = deploy(compute, network, app_group)
        second = deploy(
            compute, network, app_group, resource_id="Worker", log_group_id="WorkerLogs"
        )

        assert first.cluster is second.cluster

    def test_explicit_dependencies(self, graph, compute, network, app_group, app_secret) -> None:
        service = deploy(compute, network, app_group, depends_on=[app_secret])

        assert service.depends_on == [app_secret]


class TestSecretSeparation:
    def test_secret_ref_in_environment_rejected(self, compute, network, app_group, app_secret) -> None:
        with pytest.raises(PlaintextSecretError):
            deploy(compute, network, app_group, env={"PAYLOAD_SECRET": app_secret.ref("payloadSecret")})

    def test_plain_value_as_secret_rejected(self, compute, network, app_group) -> None:
        with pytest.raises(PlaintextSecretError):
            deploy(compute, network, app_group, secrets={"PAYLOAD_SECRET": "hunter2"})

    def test_name_in_both_rejected(self, compute, network, app_group, app_secret) -> None:
        with pytest.raises(ProvisioningError, match="both"):
            deploy(
                compute,
                network,
                app_group,
                env={"TOKEN": "x"},
                secrets={"TOKEN": app_secret.ref("payloadSecret")},
            )

    def test_non_string_environment_rejected(self, compute, network, app_group) -> None:
        with pytest.raises(TypeError):
            deploy(compute, network, app_group, env={"PORT": 3000})


class TestValidation:
    @pytest.mark.parametrize(
        "limits",
        [ContainerLimits(cpu=256, memory_mib=4096), ContainerLimits(cpu=300, memory_mib=512)],
    )
    def test_invalid_limits(self, compute, network, app_group, limits) -> None:
        with pytest.raises(ProvisioningError):
            deploy(compute, network, app_group, limits=limits)

    def test_valid_larger_limits(self, compute, network, app_group) -> None:
        service = deploy(compute, network, app_group, limits=ContainerLimits(cpu=1024, memory_mib=3072))

        assert service.limits.memory_mib == 3072

    @pytest.mark.parametrize("port", [0, 70000])
    def test_invalid_port(self, compute, network, app_group, port) -> None:
        with pytest.raises(ProvisioningError):
            deploy(compute, network, app_group, port=port)

    def test_private_placement_rejected(self, compute, network, app_group) -> None:
        with pytest.raises(ProvisioningError, match="public subnets"):
            deploy(compute, network, app_group, subnet_group="private")

    def test_negative_desired_count(self, compute, network, app_group) -> None:
        with pytest.raises(ProvisioningError):
            deploy(compute, network, app_group, desired_count=-1)
