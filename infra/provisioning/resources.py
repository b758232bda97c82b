"""
Typed resource descriptors for the provisioning graph.

Descriptors describe *what* should exist; backends decide *how* it is created.
Cross-resource references are plain Python references to other descriptors,
from which the graph derives dependency edges.

Secret material never appears here: a descriptor can only hold a
``SecretRef`` (secret + field name), which a backend resolves inside the
secret store or at container start.
"""

import ipaddress
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from .errors import PlaintextSecretError


class RemovalPolicy(str, Enum):
    """What happens to a resource when the graph is torn down."""

    DESTROY = "destroy"
    RETAIN = "retain"
    SNAPSHOT = "snapshot"


class SubnetKind(str, Enum):
    PUBLIC = "public"
    PRIVATE_ISOLATED = "private-isolated"


class CertificateStatus(str, Enum):
    PENDING_VALIDATION = "pending-validation"
    ISSUED = "issued"
    FAILED = "failed"


def logical_id(name: str) -> str:
    """Turn a free-form name (e.g. ``universal/db/credentials``) into a construct-safe id."""
    return "".join(part[:1].upper() + part[1:] for part in re.split(r"[^A-Za-z0-9]+", name) if part)


@dataclass(frozen=True)
class AttributeRef:
    """Reference to an attribute that only exists once ``resource`` is created."""

    resource: "Resource"
    name: str

    def __str__(self) -> str:
        return f"${{{self.resource.id}.{self.name}}}"


@dataclass(frozen=True)
class SecretRef:
    """
    Opaque handle to one field of a secret.

    Holds no value. It deliberately refuses string conversion so that it
    cannot be interpolated into plaintext configuration by accident.
    """

    secret: "Secret"
    field: str

    def __str__(self) -> str:
        raise PlaintextSecretError(
            f"{self!r} is a secret reference and cannot be rendered as plaintext"
        )

    def __repr__(self) -> str:
        return f"SecretRef({self.secret.name}:{self.field})"


@dataclass(eq=False, kw_only=True)
class Resource:
    """Base descriptor. Identity (not value) equality: every descriptor is one node."""

    id: str
    removal_policy: RemovalPolicy = RemovalPolicy.DESTROY
    depends_on: list["Resource"] = field(default_factory=list)

    @property
    def imported(self) -> bool:
        """Imported resources are looked up, never created or deleted by us."""
        return False

    def references(self) -> list["Resource"]:
        """Resources this descriptor points at through its own fields."""
        return []

    def dependencies(self) -> list["Resource"]:
        seen: dict[int, Resource] = {}
        for resource in [*self.references(), *self.depends_on]:
            seen.setdefault(id(resource), resource)
        return list(seen.values())

    def attr(self, name: str) -> AttributeRef:
        return AttributeRef(self, name)


# =================================================================
# Network
# =================================================================


@dataclass(frozen=True)
class SubnetGroup:
    name: str
    cidr_mask: int
    kind: SubnetKind


@dataclass(frozen=True)
class Route:
    destination: str
    target: str


INTERNET_GATEWAY = "internet-gateway"
LOCAL = "local"


@dataclass(frozen=True)
class Subnet:
    group: SubnetGroup
    availability_zone: int
    cidr: ipaddress.IPv4Network
    routes: tuple[Route, ...]

    @property
    def has_internet_route(self) -> bool:
        return any(route.target == INTERNET_GATEWAY for route in self.routes)


@dataclass(eq=False, kw_only=True)
class Network(Resource):
    cidr: ipaddress.IPv4Network
    max_azs: int
    subnet_groups: tuple[SubnetGroup, ...]
    subnets: tuple[Subnet, ...]

    def group(self, name: str) -> SubnetGroup:
        for group in self.subnet_groups:
            if group.name == name:
                return group
        raise KeyError(f"Network {self.id!r} has no subnet group {name!r}")

    def groups_of_kind(self, kind: SubnetKind) -> list[SubnetGroup]:
        return [group for group in self.subnet_groups if group.kind == kind]

    def subnets_in(self, group_name: str) -> list[Subnet]:
        return [subnet for subnet in self.subnets if subnet.group.name == group_name]


@dataclass(frozen=True)
class CidrPeer:
    cidr: str

    def __post_init__(self) -> None:
        ipaddress.IPv4Network(self.cidr)


ANYWHERE = CidrPeer("0.0.0.0/0")


@dataclass(frozen=True)
class IngressRule:
    peer: Union["SecurityGroup", CidrPeer]
    port: int
    protocol: str = "tcp"
    description: str = ""

    def same_as(self, other: "IngressRule") -> bool:
        return (self.peer is other.peer or self.peer == other.peer) and (
            self.port,
            self.protocol,
        ) == (other.port, other.protocol)


@dataclass(eq=False, kw_only=True)
class SecurityGroup(Resource):
    network: Network
    description: str = ""
    allow_all_outbound: bool = True
    ingress: list[IngressRule] = field(default_factory=list)

    def references(self) -> list[Resource]:
        peers = [rule.peer for rule in self.ingress if isinstance(rule.peer, SecurityGroup)]
        return [self.network, *[peer for peer in peers if peer is not self]]


# =================================================================
# Secrets, DNS and certificates
# =================================================================


@dataclass(frozen=True)
class SecretGeneration:
    """Policy for generating secret values with a cryptographic RNG."""

    exclude_characters: str = ""
    length: int = 32


@dataclass(eq=False, kw_only=True)
class Secret(Resource):
    name: str
    fields: tuple[str, ...]
    # None means the value is supplied out-of-band and must already exist.
    generation: SecretGeneration | None = None

    @property
    def imported(self) -> bool:
        return self.generation is None

    def ref(self, field_name: str) -> SecretRef:
        if field_name not in self.fields:
            raise KeyError(f"Secret {self.name!r} has no field {field_name!r}")
        return SecretRef(self, field_name)


@dataclass(eq=False, kw_only=True)
class HostedZone(Resource):
    domain_name: str
    zone_id: str | None = None

    @property
    def imported(self) -> bool:
        return True


@dataclass(eq=False, kw_only=True)
class Certificate(Resource):
    domain_name: str
    subject_alternative_names: tuple[str, ...]
    hosted_zone: HostedZone
    validation_timeout: float
    validation: str = "DNS"

    def references(self) -> list[Resource]:
        return [self.hosted_zone]


# =================================================================
# Database
# =================================================================


@dataclass(frozen=True)
class Endpoint:
    hostname: AttributeRef
    port: AttributeRef


@dataclass(eq=False, kw_only=True)
class DatabaseCluster(Resource):
    network: Network
    subnet_group: str
    credentials: Secret
    username_field: str
    password_field: str
    security_group: SecurityGroup
    instance_type: str = "t3.medium"
    instances: int = 1
    port: int = 27017

    def references(self) -> list[Resource]:
        return [self.network, self.credentials, self.security_group]

    @property
    def endpoint(self) -> Endpoint:
        return Endpoint(hostname=self.attr("endpoint.hostname"), port=self.attr("endpoint.port"))

    @property
    def master_username(self) -> SecretRef:
        return self.credentials.ref(self.username_field)

    @property
    def master_password(self) -> SecretRef:
        return self.credentials.ref(self.password_field)


# =================================================================
# Compute
# =================================================================


@dataclass(frozen=True)
class ContainerImage:
    asset_path: str | None = None
    registry_uri: str | None = None

    @classmethod
    def from_asset(cls, path: str) -> "ContainerImage":
        return cls(asset_path=path)

    @classmethod
    def from_registry(cls, uri: str) -> "ContainerImage":
        return cls(registry_uri=uri)


@dataclass(frozen=True)
class ContainerLimits:
    cpu: int = 256
    memory_mib: int = 512


@dataclass(eq=False, kw_only=True)
class LogGroup(Resource):
    retention_days: int = 1


@dataclass(eq=False, kw_only=True)
class Cluster(Resource):
    network: Network

    def references(self) -> list[Resource]:
        return [self.network]


@dataclass(eq=False, kw_only=True)
class ContainerService(Resource):
    network: Network
    cluster: Cluster
    image: ContainerImage
    limits: ContainerLimits
    port: int
    environment: dict[str, str | AttributeRef]
    secrets: dict[str, SecretRef]
    security_group: SecurityGroup
    log_group: LogGroup
    subnet_group: str
    assign_public_ip: bool = True
    desired_count: int = 1
    log_stream_prefix: str = "ecs"

    def references(self) -> list[Resource]:
        refs: list[Resource] = [
            self.network,
            self.cluster,
            self.security_group,
            self.log_group,
        ]
        refs.extend(ref.secret for ref in self.secrets.values())
        refs.extend(
            value.resource for value in self.environment.values() if isinstance(value, AttributeRef)
        )
        return refs


# =================================================================
# Traffic
# =================================================================


@dataclass(frozen=True)
class HealthCheck:
    path: str = "/health"
    interval: int = 30
    timeout: int = 5
    healthy_threshold: int = 2
    unhealthy_threshold: int = 3
    protocol: str = "HTTP"

    def __post_init__(self) -> None:
        if self.timeout >= self.interval:
            raise ValueError("Health check timeout must be shorter than its interval")
        for name in ("healthy_threshold", "unhealthy_threshold"):
            value = getattr(self, name)
            if not 2 <= value <= 10:
                raise ValueError(f"{name} must be between 2 and 10, got {value}")
        if not self.path.startswith("/"):
            raise ValueError("Health check path must start with '/'")


@dataclass(eq=False, kw_only=True)
class LoadBalancer(Resource):
    network: Network
    subnet_group: str
    security_group: SecurityGroup
    internet_facing: bool = True

    def references(self) -> list[Resource]:
        return [self.network, self.security_group]

    @property
    def dns_name(self) -> AttributeRef:
        return self.attr("dns_name")


@dataclass(eq=False, kw_only=True)
class TargetGroup(Resource):
    network: Network
    port: int
    health_check: HealthCheck
    targets: list[ContainerService]
    protocol: str = "HTTP"

    def references(self) -> list[Resource]:
        return [self.network, *self.targets]


@dataclass(eq=False, kw_only=True)
class Listener(Resource):
    load_balancer: LoadBalancer
    certificate: Certificate
    target_group: TargetGroup
    port: int = 443
    protocol: str = "HTTPS"

    def references(self) -> list[Resource]:
        return [self.load_balancer, self.certificate, self.target_group]


@dataclass(eq=False, kw_only=True)
class DnsRecord(Resource):
    hosted_zone: HostedZone
    record_name: str
    alias_target: LoadBalancer
    record_type: str = "A"

    def references(self) -> list[Resource]:
        return [self.hosted_zone, self.alias_target]
