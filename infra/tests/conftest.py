"""
Shared fixtures for provisioning tests.

Everything runs against ``InMemoryBackend``; time is simulated with
``FakeClock`` so certificate validation never sleeps for real.
"""

import pytest

from provisioning import DeploymentConfig, ResourceGraph
from provisioning.backends import InMemoryBackend
from provisioning.network import DEFAULT_SUBNETS, NetworkTopology
from provisioning.resources import Network

DB_SECRET = "universal/db/credentials"


class FakeClock:
    """Monotonic clock advanced only by ``sleep``."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def graph() -> ResourceGraph:
    return ResourceGraph()


@pytest.fixture
def network(graph: ResourceGraph) -> Network:
    return NetworkTopology(graph).allocate(DEFAULT_SUBNETS)


@pytest.fixture
def config() -> DeploymentConfig:
    return DeploymentConfig(
        domain_name="example.com",
        backend_subdomain="api",
        hosted_zone_id="Z0123456789ABCDEF",
        container_image="public.ecr.aws/docker/library/node:20-alpine",
    )


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend(
        secret_store={DB_SECRET: {"dbMainUsername": "docdbadmin", "dbMainPassword": "s3cr3t/p@ss"}},
        hosted_zones=["example.com"],
    )
