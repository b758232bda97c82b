"""
In-memory provider.

Realizes a graph without a cloud account: a secret store, hosted zones with
upsert semantics, simulated DNS-challenge validation and task definitions
that keep plaintext environment and secret references apart. Used for tests
and for dry runs of the provisioning order.
"""

import hashlib
import secrets as random_source
import string
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..errors import DependencyError, ProvisioningError, SecretNotFoundError
from ..network import assert_routing
from ..resources import (
    AttributeRef,
    Certificate,
    CertificateStatus,
    Cluster,
    ContainerService,
    DatabaseCluster,
    DnsRecord,
    HostedZone,
    Listener,
    LoadBalancer,
    LogGroup,
    Network,
    Resource,
    Secret,
    SecurityGroup,
    SubnetKind,
    TargetGroup,
)

ALPHABET = string.ascii_letters + string.digits + string.punctuation + " "


@dataclass
class RecordSet:
    name: str
    record_type: str
    value: str
    alias: bool = False


@dataclass
class ProvisionedResource:
    resource: Resource
    attributes: dict[str, Any] = field(default_factory=dict)


class InMemoryBackend:
    """
    Fake provider keyed by resource id.

    Args:
        secret_store: pre-existing secrets, ``{name: {field: value}}``.
        hosted_zones: domains whose hosted zones already exist.
        validation_polls: status checks before a certificate is issued;
            ``None`` means DNS validation never completes.
    """

    def __init__(
        self,
        *,
        secret_store: Mapping[str, Mapping[str, str]] | None = None,
        hosted_zones: Iterable[str] = (),
        validation_polls: int | None = 1,
    ) -> None:
        self.secret_store: dict[str, dict[str, str]] = {
            name: dict(values) for name, values in (secret_store or {}).items()
        }
        self.zones: dict[str, dict[tuple[str, str], RecordSet]] = {
            zone.rstrip("."): {} for zone in hosted_zones
        }
        self.validation_polls = validation_polls
        self.resources: dict[str, ProvisionedResource] = {}
        self._pending_validation: dict[str, int | None] = {}
        self._lock = threading.RLock()
        self._creators = {
            Network: self._create_network,
            SecurityGroup: self._create_security_group,
            Secret: self._create_secret,
            HostedZone: self._create_hosted_zone,
            Certificate: self._create_certificate,
            DatabaseCluster: self._create_database,
            LogGroup: self._create_noop,
            Cluster: self._create_noop,
            ContainerService: self._create_service,
            LoadBalancer: self._create_load_balancer,
            TargetGroup: self._create_target_group,
            Listener: self._create_listener,
            DnsRecord: self._create_dns_record,
        }

    # -----------------------------------------------------------------
    # Backend protocol
    # -----------------------------------------------------------------

    def create(self, resource: Resource) -> None:
        creator = self._creators.get(type(resource))
        if creator is None:
            raise ProvisioningError(f"Unsupported resource type {type(resource).__name__}")
        with self._lock:
            for dep in resource.dependencies():
                if dep.id not in self.resources:
                    raise DependencyError(f"{resource.id!r} created before {dep.id!r}")
            attributes = creator(resource)
            self.resources[resource.id] = ProvisionedResource(resource, attributes or {})

    def delete(self, resource: Resource) -> None:
        with self._lock:
            provisioned = self.resources.pop(resource.id, None)
            if provisioned is None:
                return
            for other in self.resources.values():
                if any(dep is resource for dep in other.resource.dependencies()):
                    self.resources[resource.id] = provisioned
                    raise DependencyError(
                        f"{resource.id!r} is still used by {other.resource.id!r}"
                    )
            if isinstance(resource, DnsRecord):
                self.zones[resource.hosted_zone.domain_name.rstrip(".")].pop(
                    (resource.record_name, resource.record_type), None
                )
            elif isinstance(resource, Certificate):
                challenge = provisioned.attributes["challenge_record"]
                self.zones[resource.hosted_zone.domain_name.rstrip(".")].pop((challenge, "CNAME"), None)
            elif isinstance(resource, Secret) and not resource.imported:
                self.secret_store.pop(resource.name, None)

    def certificate_status(self, certificate: Certificate) -> CertificateStatus:
        with self._lock:
            if certificate.id not in self.resources:
                raise ProvisioningError(f"Certificate {certificate.id!r} was never requested")
            remaining = self._pending_validation.get(certificate.id)
            if remaining is None:
                return CertificateStatus.PENDING_VALIDATION
            if remaining > 0:
                self._pending_validation[certificate.id] = remaining - 1
                return CertificateStatus.PENDING_VALIDATION
            return CertificateStatus.ISSUED

    # -----------------------------------------------------------------
    # Inspection helpers
    # -----------------------------------------------------------------

    def attributes(self, resource: Resource) -> dict[str, Any]:
        return dict(self.resources[resource.id].attributes)

    def resolve(self, value: str | AttributeRef) -> str:
        if isinstance(value, AttributeRef):
            return str(self.resources[value.resource.id].attributes[value.name])
        return value

    def records(self, zone: str) -> list[RecordSet]:
        return list(self.zones[zone].values())

    def start_task(self, service: ContainerService) -> dict[str, str]:
        """
        Build the environment a task of ``service`` starts with.

        This is the only place secret values leave the store, mirroring the
        orchestrator injecting them at container start.
        """
        with self._lock:
            task_definition = self.resources[service.id].attributes["task_definition"]
            environment = dict(task_definition["environment"])
            for name, value_from in task_definition["secrets"].items():
                secret_name, field_name = value_from.rsplit(":", 1)
                environment[name] = self.secret_store[secret_name][field_name]
            return environment

    # -----------------------------------------------------------------
    # Creators
    # -----------------------------------------------------------------

    def _create_noop(self, resource: Resource) -> None:
        return None

    def _create_network(self, network: Network) -> dict[str, Any]:
        assert_routing(network)
        return {
            "subnets": {
                group.name: [str(s.cidr) for s in network.subnets_in(group.name)]
                for group in network.subnet_groups
            }
        }

    def _create_security_group(self, group: SecurityGroup) -> dict[str, Any]:
        rules = []
        for rule in group.ingress:
            if isinstance(rule.peer, SecurityGroup):
                if rule.peer is not group and rule.peer.id not in self.resources:
                    raise DependencyError(f"{group.id!r} authorizes unknown group {rule.peer.id!r}")
                source = f"sg:{rule.peer.id}"
            else:
                source = rule.peer.cidr
            rules.append({"source": source, "port": rule.port, "protocol": rule.protocol})
        return {"ingress": rules}

    def _create_secret(self, secret: Secret) -> dict[str, Any]:
        if secret.imported:
            stored = self.secret_store.get(secret.name)
            if stored is None:
                raise SecretNotFoundError(secret.name)
            missing = [name for name in secret.fields if name not in stored]
            if missing:
                raise ProvisioningError(f"Secret {secret.name!r} is missing fields {missing}")
            return {"arn": f"arn:memory:secret:{secret.name}"}

        policy = secret.generation
        alphabet = [c for c in ALPHABET if c not in policy.exclude_characters]
        self.secret_store[secret.name] = {
            name: "".join(random_source.choice(alphabet) for _ in range(policy.length))
            for name in secret.fields
        }
        return {"arn": f"arn:memory:secret:{secret.name}"}

    def _create_hosted_zone(self, zone: HostedZone) -> dict[str, Any]:
        domain = zone.domain_name.rstrip(".")
        if domain not in self.zones:
            raise ProvisioningError(f"Hosted zone {domain!r} does not exist")
        return {"zone_id": zone.zone_id or f"Z{hashlib.sha1(domain.encode()).hexdigest()[:12].upper()}"}

    def _create_certificate(self, certificate: Certificate) -> dict[str, Any]:
        token = hashlib.sha1(certificate.domain_name.encode()).hexdigest()[:16]
        challenge = f"_{token}.{certificate.domain_name}"
        self._upsert(
            certificate.hosted_zone.domain_name,
            RecordSet(name=challenge, record_type="CNAME", value=f"_{token}.acm-validations.aws"),
        )
        self._pending_validation[certificate.id] = self.validation_polls
        return {
            "challenge_record": challenge,
            "domains": [certificate.domain_name, *certificate.subject_alternative_names],
        }

    def _create_database(self, cluster: DatabaseCluster) -> dict[str, Any]:
        if cluster.network.group(cluster.subnet_group).kind != SubnetKind.PRIVATE_ISOLATED:
            raise ProvisioningError(f"{cluster.id!r} must be placed in a private-isolated subnet")
        stored = self.secret_store.get(cluster.credentials.name)
        if stored is None:
            raise SecretNotFoundError(cluster.credentials.name)
        suffix = hashlib.sha1(cluster.id.encode()).hexdigest()[:10]
        return {
            "endpoint.hostname": f"{cluster.id.lower()}.cluster-{suffix}.docdb.memory.internal",
            "endpoint.port": cluster.port,
            "subnets": [str(s.cidr) for s in cluster.network.subnets_in(cluster.subnet_group)],
        }

    def _create_service(self, service: ContainerService) -> dict[str, Any]:
        # Secrets are stored as "valueFrom" references, the way a task
        # definition records them; the values stay in the secret store.
        task_definition = {
            "image": service.image.registry_uri or service.image.asset_path,
            "cpu": service.limits.cpu,
            "memory": service.limits.memory_mib,
            "port": service.port,
            "environment": {name: self.resolve(value) for name, value in service.environment.items()},
            "secrets": {
                name: f"{ref.secret.name}:{ref.field}" for name, ref in service.secrets.items()
            },
        }
        return {
            "task_definition": task_definition,
            "subnets": [str(s.cidr) for s in service.network.subnets_in(service.subnet_group)],
            "assign_public_ip": service.assign_public_ip,
            "desired_count": service.desired_count,
        }

    def _create_load_balancer(self, load_balancer: LoadBalancer) -> dict[str, Any]:
        suffix = hashlib.sha1(load_balancer.id.encode()).hexdigest()[:8]
        return {"dns_name": f"{load_balancer.id.lower()}-{suffix}.elb.memory.internal"}

    def _create_target_group(self, target_group: TargetGroup) -> dict[str, Any]:
        return {"targets": [service.id for service in target_group.targets]}

    def _create_listener(self, listener: Listener) -> dict[str, Any]:
        if self.certificate_status(listener.certificate) != CertificateStatus.ISSUED:
            raise ProvisioningError(f"Certificate {listener.certificate.id!r} is not issued yet")
        return {"port": listener.port, "protocol": listener.protocol}

    def _create_dns_record(self, record: DnsRecord) -> dict[str, Any]:
        target = self.resolve(record.alias_target.dns_name)
        self._upsert(
            record.hosted_zone.domain_name,
            RecordSet(name=record.record_name, record_type=record.record_type, value=target, alias=True),
        )
        return {"fqdn": record.record_name}

    def _upsert(self, zone: str, record: RecordSet) -> None:
        self.zones[zone.rstrip(".")][(record.name, record.record_type)] = record
