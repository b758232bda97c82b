#!/usr/bin/env python3
"""
AWS CDK app entry point for the backend service.

Configuration is read from CDK context, e.g.:

    cdk deploy -c domain_name=example.com -c backend_subdomain=api
"""

import os

import aws_cdk as cdk

from provisioning import DeploymentConfig
from provisioning.log import configure_logging
from provisioning.preflight import get_secretsmanager_client, run_preflight
from stacks import ServiceStack, add_validation_aspects

configure_logging(log_level="INFO")

app = cdk.App()

config = DeploymentConfig.from_context(app)

# Environment configuration
env = cdk.Environment(
    account=app.node.try_get_context("account") or os.environ.get("CDK_DEFAULT_ACCOUNT"),
    region=app.node.try_get_context("region") or os.environ.get("CDK_DEFAULT_REGION", "us-east-1"),
)

if config.preflight:
    run_preflight(config, client=get_secretsmanager_client(env.region))

ServiceStack(app, "InfraStack", config=config, env=env)

add_validation_aspects(app)

app.synth()
