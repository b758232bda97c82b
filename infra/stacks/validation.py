"""
CDK validation aspects for pre-deployment checks.

These aspects run during `cdk synth` and add warnings/info annotations,
catching issues before deployment.

Usage:
    from stacks.validation import add_validation_aspects
    add_validation_aspects(app)
"""

import aws_cdk as cdk
import jsii
from aws_cdk import aws_docdb as docdb
from aws_cdk import aws_ecs as ecs
from aws_cdk import aws_elasticloadbalancingv2 as elbv2
from aws_cdk import aws_secretsmanager as secretsmanager
from constructs import IConstruct


def _deleted_with_stack(node: cdk.CfnResource) -> bool:
    return node.cfn_options.deletion_policy in (None, cdk.CfnDeletionPolicy.DELETE)


@jsii.implements(cdk.IAspect)
class ProductionReadinessAspect:
    """
    Flags settings that are fine for a demo but not for production.

    Checks:
    - ECS services run fewer than 2 tasks
    - DocumentDB clusters are deleted together with the stack

    The checks read the CloudFormation-level resources, where the synthesized
    desired count and deletion policy are recorded.
    """

    def __init__(self, enforce_ha: bool = True, enforce_retention: bool = True):
        self._enforce_ha = enforce_ha
        self._enforce_retention = enforce_retention

    def visit(self, node: IConstruct) -> None:
        if self._enforce_ha and isinstance(node, ecs.CfnService):
            count = node.desired_count
            if isinstance(count, (int, float)) and not cdk.Token.is_unresolved(count) and count < 2:
                cdk.Annotations.of(node).add_info(
                    f"Service runs {int(count)} task(s); ensure desired_count >= 2 for production HA"
                )

        if (
            self._enforce_retention
            and isinstance(node, docdb.CfnDBCluster)
            and _deleted_with_stack(node)
        ):
            cdk.Annotations.of(node).add_info(
                "DocumentDB cluster is deleted with the stack; ensure SNAPSHOT or RETAIN for production data"
            )


@jsii.implements(cdk.IAspect)
class SecurityAspect:
    """
    Validates security requirements for deployed resources.

    Checks:
    - Secrets that are deleted on stack deletion
    - Listeners terminate TLS
    """

    def visit(self, node: IConstruct) -> None:
        if isinstance(node, secretsmanager.CfnSecret) and _deleted_with_stack(node):
            cdk.Annotations.of(node).add_info(
                "Secret is deleted with the stack; ensure RETAIN if its value must survive redeploys"
            )

        if isinstance(node, elbv2.CfnListener) and node.protocol != "HTTPS":
            cdk.Annotations.of(node).add_warning("Listener does not terminate TLS")


def add_validation_aspects(
    scope: cdk.App,
    enforce_ha: bool = True,
    enforce_retention: bool = True,
    enable_security_checks: bool = True,
) -> None:
    """
    Add validation aspects to all stacks in the CDK app.

    Args:
        scope: The CDK App to add aspects to
        enforce_ha: Whether to check for high-availability configurations
        enforce_retention: Whether to check database removal policies
        enable_security_checks: Whether to run security-related validations
    """
    cdk.Aspects.of(scope).add(
        ProductionReadinessAspect(
            enforce_ha=enforce_ha,
            enforce_retention=enforce_retention,
        )
    )

    if enable_security_checks:
        cdk.Aspects.of(scope).add(SecurityAspect())
