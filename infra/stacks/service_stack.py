"""
Service stack - TLS-terminated Fargate backend with optional DocumentDB.

This stack deploys the backend container with:
- VPC with public and private-isolated subnets (no NAT gateways)
- Generated application secret in Secrets Manager
- ACM certificate validated through the existing Route 53 hosted zone
- ECS Fargate service behind an internet-facing ALB (HTTPS on 443)
- DocumentDB cluster reachable only from the service's security group
- Alias A record for the backend subdomain

The resources are described once as a provisioning graph and emitted here
in dependency order by the CDK backend.
"""

from aws_cdk import CfnOutput, Stack
from constructs import Construct

from provisioning import DeploymentConfig, Provisioner, build_service_graph
from provisioning.backends.cdk import CdkBackend


class ServiceStack(Stack):
    """
    Creates the whole backend deployment from a ``DeploymentConfig``.

    Attributes exposed for other stacks and tests:
    - service_graph: the provisioning graph the stack was built from
    - backend: CDK backend holding the emitted constructs
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        config: DeploymentConfig,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.config = config
        self.service_graph = build_service_graph(config)
        self.backend = CdkBackend(self)

        # =================================================================
        # Resources
        # =================================================================

        self.created = Provisioner(self.service_graph.graph, self.backend).provision()

        # =================================================================
        # Outputs
        # =================================================================

        CfnOutput(
            self,
            "BackendPayloadURL",
            value=self.backend.resolve(self.service_graph.load_balancer.dns_name),
            description=f"Load balancer DNS name (served as https://{config.backend_fqdn})",
        )

        if self.service_graph.database is not None:
            CfnOutput(
                self,
                "DatabaseEndpoint",
                value=self.backend.resolve(self.service_graph.database.endpoint.hostname),
                description="DocumentDB cluster endpoint",
            )
