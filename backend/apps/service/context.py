"""
Per-request service context.

Everything a handler needs (secret values injected by the orchestrator, the
database host, and the MongoDB client factory) is gathered here and passed
to the handlers explicitly, so handlers never read the environment
themselves.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from urllib.parse import quote_plus

from pydantic import SecretStr
from pydantic_settings import BaseSettings
from pymongo import MongoClient

DB_PORT = 27017
DB_NAME = "testdb"
# Downloaded into the image's working directory by the Dockerfile.
TLS_CA_FILE = "global-bundle.pem"
SERVER_SELECTION_TIMEOUT_MS = 5000


class ServiceSettings(BaseSettings):
    """Values injected into the container by the task definition."""

    PAYLOAD_SECRET: SecretStr | None = None
    DB_USERNAME: SecretStr | None = None
    DB_PASSWORD: SecretStr | None = None
    DB_HOST: str | None = None
    NODE_ENV: str = "development"

    model_config = {"extra": "ignore"}


def default_client_factory(uri: str) -> MongoClient:
    return MongoClient(uri, serverSelectionTimeoutMS=SERVER_SELECTION_TIMEOUT_MS)


@dataclass(frozen=True)
class ServiceContext:
    payload_secret: str | None = field(default=None, repr=False)
    db_username: str | None = field(default=None, repr=False)
    db_password: str | None = field(default=None, repr=False)
    db_host: str | None = None
    node_env: str = "development"
    client_factory: Callable[[str], MongoClient] = field(default=default_client_factory, repr=False)

    @property
    def database_configured(self) -> bool:
        return bool(self.db_host and self.db_username and self.db_password)

    def database_uri(self) -> str:
        """
        Connection string for the DocumentDB cluster.

        Username and password are percent-encoded. Generated passwords may
        contain characters that are reserved in URIs.
        """
        user = quote_plus(self.db_username or "")
        password = quote_plus(self.db_password or "")
        return (
            f"mongodb://{user}:{password}@{self.db_host}:{DB_PORT}/{DB_NAME}"
            f"?tls=true&tlsCAFile={TLS_CA_FILE}&replicaSet=rs0"
            "&readPreference=secondaryPreferred&retryWrites=false"
        )


def _reveal(value: SecretStr | None) -> str | None:
    return value.get_secret_value() if value is not None else None


def get_service_context() -> ServiceContext:
    """Build a context from the current environment."""
    config = ServiceSettings()
    return ServiceContext(
        payload_secret=_reveal(config.PAYLOAD_SECRET),
        db_username=_reveal(config.DB_USERNAME),
        db_password=_reveal(config.DB_PASSWORD),
        db_host=config.DB_HOST or None,
        node_env=config.NODE_ENV,
    )
