"""
The service's provisioning graph.

Composes the components in dependency order:

    network -> {certificate, secrets} -> database -> service -> load balancer -> DNS

The service's security group is created before the database so the database
can authorize it.
"""

from dataclasses import dataclass

from .certificate import CertificateIssuer
from .compute import ComputeCluster
from .config import DeploymentConfig
from .database import DatabaseProvisioner
from .dns import DNSBinder, lookup_hosted_zone
from .graph import ResourceGraph
from .network import DEFAULT_SUBNETS, NetworkTopology
from .resources import (
    AttributeRef,
    Certificate,
    ContainerImage,
    ContainerLimits,
    ContainerService,
    DatabaseCluster,
    DnsRecord,
    HealthCheck,
    HostedZone,
    LoadBalancer,
    Network,
    Resource,
    Secret,
    SecretRef,
)
from .secret import DEFAULT_EXCLUDED_CHARACTERS, SecretsProvisioner
from .traffic import TrafficRouter

APP_SECRET_FIELD = "payloadSecret"


@dataclass
class ServiceGraph:
    graph: ResourceGraph
    network: Network
    hosted_zone: HostedZone
    certificate: Certificate
    app_secret: Secret
    service: ContainerService
    load_balancer: LoadBalancer
    dns_record: DnsRecord
    db_credentials: Secret | None = None
    database: DatabaseCluster | None = None


def build_service_graph(config: DeploymentConfig) -> ServiceGraph:
    graph = ResourceGraph()

    network = NetworkTopology(graph).allocate(
        DEFAULT_SUBNETS, cidr=config.vpc_cidr, max_azs=config.max_azs
    )
    hosted_zone = lookup_hosted_zone(graph, config.domain_name, zone_id=config.hosted_zone_id)
    certificate = CertificateIssuer(graph, config.certificate_timeout_seconds).issue(
        config.domain_name, hosted_zone
    )

    secrets = SecretsProvisioner(graph)
    app_secret = secrets.generate(
        "PayloadSecret", (APP_SECRET_FIELD,), DEFAULT_EXCLUDED_CHARACTERS
    )

    compute = ComputeCluster(graph)
    service_security_group = compute.security_group(network)

    environment: dict[str, str | AttributeRef] = {"NODE_ENV": config.node_env}
    injected: dict[str, SecretRef] = {"PAYLOAD_SECRET": app_secret.ref(APP_SECRET_FIELD)}
    depends_on: list[Resource] = []

    db_credentials = database = None
    if config.enable_database:
        db_credentials = secrets.resolve_existing(
            config.db_credentials_secret,
            (config.db_username_field, config.db_password_field),
            resource_id="DocDBCredentials",
        )
        database = DatabaseProvisioner(graph).create_cluster(
            network,
            db_credentials,
            service_security_group,
            username_field=config.db_username_field,
            password_field=config.db_password_field,
            instance_type=config.db_instance_type,
        )
        environment["DB_HOST"] = database.endpoint.hostname
        injected["DB_USERNAME"] = database.master_username
        injected["DB_PASSWORD"] = database.master_password
        depends_on.append(database)

    if config.container_image:
        image = ContainerImage.from_registry(config.container_image)
    else:
        image = ContainerImage.from_asset(config.container_asset_path)

    service = compute.deploy(
        network,
        image,
        ContainerLimits(cpu=config.cpu, memory_mib=config.memory_mib),
        config.container_port,
        environment,
        injected,
        service_security_group,
        desired_count=config.desired_count,
        depends_on=depends_on,
    )

    load_balancer = TrafficRouter(graph).route(network, certificate, service, HealthCheck())
    dns_record = DNSBinder(graph).bind(
        hosted_zone,
        config.backend_subdomain,
        config.domain_name,
        load_balancer,
        resource_id="BackendPayloadARecord",
    )

    return ServiceGraph(
        graph=graph,
        network=network,
        hosted_zone=hosted_zone,
        certificate=certificate,
        app_secret=app_secret,
        service=service,
        load_balancer=load_balancer,
        dns_record=dns_record,
        db_credentials=db_credentials,
        database=database,
    )
