"""
AWS CDK provider.

Translates each descriptor into CDK constructs inside a stack. CloudFormation
owns the actual create/update/delete lifecycle (including blocking on ACM's
DNS validation), so this backend only has to emit constructs in dependency
order.
"""

import json
from typing import Any

from aws_cdk import Duration, RemovalPolicy as CdkRemovalPolicy, Stack, Token
from aws_cdk import aws_certificatemanager as acm
from aws_cdk import aws_docdb as docdb
from aws_cdk import aws_ec2 as ec2
from aws_cdk import aws_ecs as ecs
from aws_cdk import aws_elasticloadbalancingv2 as elbv2
from aws_cdk import aws_logs as logs
from aws_cdk import aws_route53 as route53
from aws_cdk import aws_route53_targets as route53_targets
from aws_cdk import aws_secretsmanager as secretsmanager

from ..errors import ConfigurationError, ProvisioningError
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
    RemovalPolicy,
    Resource,
    Secret,
    SecurityGroup,
    SubnetKind,
    TargetGroup,
)

_SUBNET_TYPES = {
    SubnetKind.PUBLIC: ec2.SubnetType.PUBLIC,
    SubnetKind.PRIVATE_ISOLATED: ec2.SubnetType.PRIVATE_ISOLATED,
}

_REMOVAL_POLICIES = {
    RemovalPolicy.DESTROY: CdkRemovalPolicy.DESTROY,
    RemovalPolicy.RETAIN: CdkRemovalPolicy.RETAIN,
    RemovalPolicy.SNAPSHOT: CdkRemovalPolicy.SNAPSHOT,
}

_RETENTION = {
    1: logs.RetentionDays.ONE_DAY,
    3: logs.RetentionDays.THREE_DAYS,
    5: logs.RetentionDays.FIVE_DAYS,
    7: logs.RetentionDays.ONE_WEEK,
    14: logs.RetentionDays.TWO_WEEKS,
    30: logs.RetentionDays.ONE_MONTH,
}


class CdkBackend:
    """Emits one construct (or small construct group) per descriptor."""

    def __init__(self, stack: Stack) -> None:
        self.stack = stack
        self._constructs: dict[str, Any] = {}
        self._creators = {
            Network: self._create_network,
            SecurityGroup: self._create_security_group,
            Secret: self._create_secret,
            HostedZone: self._create_hosted_zone,
            Certificate: self._create_certificate,
            DatabaseCluster: self._create_database,
            LogGroup: self._create_log_group,
            Cluster: self._create_cluster,
            ContainerService: self._create_service,
            LoadBalancer: self._create_load_balancer,
            TargetGroup: self._create_target_group,
            Listener: self._create_listener,
            DnsRecord: self._create_dns_record,
        }

    def create(self, resource: Resource) -> None:
        creator = self._creators.get(type(resource))
        if creator is None:
            raise ProvisioningError(f"Unsupported resource type {type(resource).__name__}")
        construct = creator(resource)
        for dep in resource.depends_on:
            construct.node.add_dependency(self.construct(dep))
        self._constructs[resource.id] = construct

    def delete(self, resource: Resource) -> None:
        raise ProvisioningError("CDK stacks are torn down with `cdk destroy`, not resource by resource")

    def certificate_status(self, certificate: Certificate) -> CertificateStatus:
        # CloudFormation waits for DNS validation while deploying the stack.
        return CertificateStatus.ISSUED

    def construct(self, resource: Resource) -> Any:
        try:
            return self._constructs[resource.id]
        except KeyError:
            raise ProvisioningError(f"{resource.id!r} has not been created yet") from None

    def resolve(self, value: str | AttributeRef) -> str:
        if not isinstance(value, AttributeRef):
            return value
        construct = self.construct(value.resource)
        if isinstance(value.resource, DatabaseCluster):
            if value.name == "endpoint.hostname":
                return construct.cluster_endpoint.hostname
            if value.name == "endpoint.port":
                return Token.as_string(construct.cluster_endpoint.port)
        if isinstance(value.resource, LoadBalancer) and value.name == "dns_name":
            return construct.load_balancer_dns_name
        raise ProvisioningError(f"Cannot resolve attribute {value}")

    # =================================================================
    # Creators
    # =================================================================

    def _create_network(self, network: Network) -> ec2.Vpc:
        return ec2.Vpc(
            self.stack,
            network.id,
            ip_addresses=ec2.IpAddresses.cidr(str(network.cidr)),
            max_azs=network.max_azs,
            nat_gateways=0,
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    name=group.name,
                    subnet_type=_SUBNET_TYPES[group.kind],
                    cidr_mask=group.cidr_mask,
                )
                for group in network.subnet_groups
            ],
        )

    def _create_security_group(self, group: SecurityGroup) -> ec2.SecurityGroup:
        security_group = ec2.SecurityGroup(
            self.stack,
            group.id,
            vpc=self.construct(group.network),
            description=group.description or None,
            allow_all_outbound=group.allow_all_outbound,
        )
        for rule in group.ingress:
            if isinstance(rule.peer, SecurityGroup):
                peer = security_group if rule.peer is group else self.construct(rule.peer)
            else:
                peer = ec2.Peer.ipv4(rule.peer.cidr)
            port = ec2.Port.udp(rule.port) if rule.protocol == "udp" else ec2.Port.tcp(rule.port)
            security_group.add_ingress_rule(peer, port, rule.description or None)
        return security_group

    def _create_secret(self, secret: Secret) -> secretsmanager.ISecret:
        if secret.imported:
            return secretsmanager.Secret.from_secret_name_v2(self.stack, secret.id, secret.name)

        # Secrets Manager generates exactly one key per secret string.
        if len(secret.fields) != 1:
            raise ConfigurationError(
                f"Generated secret {secret.name!r} must have exactly one field for CloudFormation"
            )
        return secretsmanager.Secret(
            self.stack,
            secret.id,
            description=f"Generated {secret.name}",
            removal_policy=_REMOVAL_POLICIES[secret.removal_policy],
            generate_secret_string=secretsmanager.SecretStringGenerator(
                secret_string_template=json.dumps({}),
                generate_string_key=secret.fields[0],
                exclude_characters=secret.generation.exclude_characters or None,
                password_length=secret.generation.length,
            ),
        )

    def _create_hosted_zone(self, zone: HostedZone) -> route53.IHostedZone:
        if zone.zone_id:
            return route53.HostedZone.from_hosted_zone_attributes(
                self.stack, zone.id, hosted_zone_id=zone.zone_id, zone_name=zone.domain_name
            )
        return route53.HostedZone.from_lookup(self.stack, zone.id, domain_name=zone.domain_name)

    def _create_certificate(self, certificate: Certificate) -> acm.Certificate:
        return acm.Certificate(
            self.stack,
            certificate.id,
            domain_name=certificate.domain_name,
            subject_alternative_names=list(certificate.subject_alternative_names),
            validation=acm.CertificateValidation.from_dns(self.construct(certificate.hosted_zone)),
        )

    def _create_database(self, cluster: DatabaseCluster) -> docdb.DatabaseCluster:
        credentials = self.construct(cluster.credentials)
        return docdb.DatabaseCluster(
            self.stack,
            cluster.id,
            # unsafe_unwrap yields a dynamic reference resolved by
            # CloudFormation, not the username itself.
            master_user=docdb.Login(
                username=credentials.secret_value_from_json(cluster.username_field).unsafe_unwrap(),
                password=credentials.secret_value_from_json(cluster.password_field),
            ),
            vpc=self.construct(cluster.network),
            vpc_subnets=ec2.SubnetSelection(subnet_group_name=cluster.subnet_group),
            instance_type=ec2.InstanceType(cluster.instance_type),
            instances=cluster.instances,
            port=cluster.port,
            removal_policy=_REMOVAL_POLICIES[cluster.removal_policy],
            security_group=self.construct(cluster.security_group),
        )

    def _create_log_group(self, log_group: LogGroup) -> logs.LogGroup:
        retention = _RETENTION.get(log_group.retention_days)
        if retention is None:
            raise ConfigurationError(
                f"Unsupported log retention {log_group.retention_days} days; use one of {sorted(_RETENTION)}"
            )
        return logs.LogGroup(
            self.stack,
            log_group.id,
            retention=retention,
            removal_policy=_REMOVAL_POLICIES[log_group.removal_policy],
        )

    def _create_cluster(self, cluster: Cluster) -> ecs.Cluster:
        return ecs.Cluster(self.stack, cluster.id, vpc=self.construct(cluster.network))

    def _create_service(self, service: ContainerService) -> ecs.FargateService:
        task_definition = ecs.FargateTaskDefinition(
            self.stack,
            f"{service.id}TaskDefinition",
            cpu=service.limits.cpu,
            memory_limit_mib=service.limits.memory_mib,
        )
        if service.image.registry_uri:
            image = ecs.ContainerImage.from_registry(service.image.registry_uri)
        else:
            image = ecs.ContainerImage.from_asset(service.image.asset_path)

        task_definition.add_container(
            f"{service.id}Container",
            image=image,
            environment={name: self.resolve(value) for name, value in service.environment.items()},
            secrets={
                name: ecs.Secret.from_secrets_manager(self.construct(ref.secret), ref.field)
                for name, ref in service.secrets.items()
            },
            port_mappings=[
                ecs.PortMapping(container_port=service.port, protocol=ecs.Protocol.TCP)
            ],
            logging=ecs.LogDrivers.aws_logs(
                stream_prefix=service.log_stream_prefix,
                log_group=self.construct(service.log_group),
            ),
        )

        return ecs.FargateService(
            self.stack,
            service.id,
            cluster=self.construct(service.cluster),
            task_definition=task_definition,
            security_groups=[self.construct(service.security_group)],
            assign_public_ip=service.assign_public_ip,
            vpc_subnets=ec2.SubnetSelection(subnet_group_name=service.subnet_group),
            desired_count=service.desired_count,
        )

    def _create_load_balancer(self, load_balancer: LoadBalancer) -> elbv2.ApplicationLoadBalancer:
        return elbv2.ApplicationLoadBalancer(
            self.stack,
            load_balancer.id,
            vpc=self.construct(load_balancer.network),
            internet_facing=load_balancer.internet_facing,
            security_group=self.construct(load_balancer.security_group),
            vpc_subnets=ec2.SubnetSelection(subnet_group_name=load_balancer.subnet_group),
        )

    def _create_target_group(self, target_group: TargetGroup) -> elbv2.ApplicationTargetGroup:
        check = target_group.health_check
        return elbv2.ApplicationTargetGroup(
            self.stack,
            target_group.id,
            vpc=self.construct(target_group.network),
            port=target_group.port,
            protocol=getattr(elbv2.ApplicationProtocol, target_group.protocol),
            target_type=elbv2.TargetType.IP,
            targets=[self.construct(service) for service in target_group.targets],
            health_check=elbv2.HealthCheck(
                path=check.path,
                interval=Duration.seconds(check.interval),
                timeout=Duration.seconds(check.timeout),
                healthy_threshold_count=check.healthy_threshold,
                unhealthy_threshold_count=check.unhealthy_threshold,
                protocol=getattr(elbv2.Protocol, check.protocol),
            ),
        )

    def _create_listener(self, listener: Listener) -> elbv2.ApplicationListener:
        return elbv2.ApplicationListener(
            self.stack,
            listener.id,
            load_balancer=self.construct(listener.load_balancer),
            port=listener.port,
            protocol=getattr(elbv2.ApplicationProtocol, listener.protocol),
            certificates=[
                elbv2.ListenerCertificate.from_certificate_manager(
                    self.construct(listener.certificate)
                )
            ],
            default_target_groups=[self.construct(listener.target_group)],
            # Ingress to the load balancer is modelled explicitly on its security group.
            open=False,
        )

    def _create_dns_record(self, record: DnsRecord) -> route53.ARecord:
        return route53.ARecord(
            self.stack,
            record.id,
            zone=self.construct(record.hosted_zone),
            record_name=record.record_name,
            target=route53.RecordTarget.from_alias(
                route53_targets.LoadBalancerTarget(self.construct(record.alias_target))
            ),
        )
