"""
Pre-deployment checks against the real AWS account.

CloudFormation only notices a missing pre-created secret half-way through a
deployment. Checking up front turns that into an immediate, clear failure.
Only secret *metadata* is read; values are never fetched.
"""

from functools import lru_cache
from typing import Any

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from .config import DeploymentConfig
from .errors import ProvisioningError, SecretNotFoundError

logger = structlog.get_logger(__name__)


@lru_cache(maxsize=4)
def get_secretsmanager_client(region: str | None = None) -> Any:
    """
    Get a Secrets Manager client.

    Credentials come from the usual boto3 chain (environment, profile or
    instance role).
    """
    return boto3.client("secretsmanager", region_name=region)


def check_secret_exists(name: str, client: Any | None = None) -> None:
    """
    Raises:
        SecretNotFoundError: the secret does not exist or is scheduled for deletion.
        ProvisioningError: the secret store could not be queried.
    """
    client = client or get_secretsmanager_client()
    try:
        response = client.describe_secret(SecretId=name)
    except ClientError as e:
        error_code = e.response.get("Error", {}).get("Code", "Unknown")
        if error_code == "ResourceNotFoundException":
            raise SecretNotFoundError(name) from e
        raise ProvisioningError(f"Could not check secret {name!r}: {error_code}") from e
    except BotoCoreError as e:
        raise ProvisioningError(f"Could not check secret {name!r}: {e}") from e

    if response.get("DeletedDate"):
        raise SecretNotFoundError(name)
    logger.info("preflight_secret_found", secret=name)


def run_preflight(config: DeploymentConfig, client: Any | None = None) -> None:
    """Check every out-of-band prerequisite of ``config``."""
    if config.enable_database:
        check_secret_exists(config.db_credentials_secret, client=client)
