"""
Deployment configuration.

Values come from CDK context (``cdk.json`` or ``cdk deploy -c key=value``),
so the same code deploys any domain without edits. Context values arrive as
strings from the CLI; pydantic coerces them.
"""

import ipaddress
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigurationError

_LABEL = r"(?!-)[a-z0-9-]{1,63}(?<!-)"
_DOMAIN_RE = re.compile(rf"^{_LABEL}(\.{_LABEL})+$")
_SUBDOMAIN_RE = re.compile(rf"^{_LABEL}(\.{_LABEL})*$")


class DeploymentConfig(BaseModel):
    """Everything the service graph needs to know about one deployment."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    domain_name: str
    backend_subdomain: str
    hosted_zone_id: str | None = None

    # Database
    enable_database: bool = True
    db_credentials_secret: str = "universal/db/credentials"
    db_username_field: str = "dbMainUsername"
    db_password_field: str = "dbMainPassword"
    db_instance_type: str = "t3.medium"

    # Network
    vpc_cidr: str = "10.0.0.0/16"
    max_azs: int = Field(default=2, ge=1, le=6)

    # Service
    container_image: str | None = None
    container_asset_path: str = "../backend"
    container_port: int = Field(default=3000, gt=0, lt=65536)
    cpu: int = 256
    memory_mib: int = 512
    desired_count: int = Field(default=1, ge=0)
    node_env: str = "production"

    certificate_timeout_seconds: float = Field(default=600.0, gt=0)
    preflight: bool = False

    @field_validator("domain_name")
    @classmethod
    def _check_domain(cls, value: str) -> str:
        value = value.strip().rstrip(".").lower()
        if not _DOMAIN_RE.match(value):
            raise ValueError(f"{value!r} is not a valid domain name")
        return value

    @field_validator("backend_subdomain")
    @classmethod
    def _check_subdomain(cls, value: str) -> str:
        value = value.strip().lower()
        if not _SUBDOMAIN_RE.match(value):
            raise ValueError(f"{value!r} is not a valid subdomain")
        return value

    @field_validator("vpc_cidr")
    @classmethod
    def _check_cidr(cls, value: str) -> str:
        return str(ipaddress.IPv4Network(value))

    @property
    def backend_fqdn(self) -> str:
        return f"{self.backend_subdomain}.{self.domain_name}"

    @classmethod
    def from_mapping(cls, values: dict[str, Any]) -> "DeploymentConfig":
        try:
            return cls.model_validate({k: v for k, v in values.items() if v is not None})
        except ValidationError as e:
            raise ConfigurationError(f"Invalid deployment configuration:\n{e}") from e

    @classmethod
    def from_context(cls, scope: Any) -> "DeploymentConfig":
        """Read every known field from the CDK context of ``scope``."""
        values = {name: scope.node.try_get_context(name) for name in cls.model_fields}
        return cls.from_mapping(values)
