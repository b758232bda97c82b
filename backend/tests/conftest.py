"""
Shared pytest fixtures for all tests.

The service reads its configuration from the environment on every request,
so tests set it with ``monkeypatch`` and never touch a real database:
MongoDB clients are replaced with ``MagicMock`` instances.
"""

from unittest.mock import MagicMock

import pytest
from django.test import Client, RequestFactory

from apps.service.context import ServiceContext

SERVICE_ENV_VARS = ("PAYLOAD_SECRET", "DB_USERNAME", "DB_PASSWORD", "DB_HOST", "NODE_ENV")


@pytest.fixture(autouse=True)
def clean_service_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Start every test without injected service variables."""
    for name in SERVICE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def client() -> Client:
    return Client()


@pytest.fixture
def request_factory() -> RequestFactory:
    return RequestFactory()


@pytest.fixture
def mongo_client() -> MagicMock:
    """A MongoClient stand-in whose collection stores one document."""
    mongo = MagicMock(name="MongoClient")
    collection = mongo.__getitem__.return_value.__getitem__.return_value
    collection.insert_one.return_value.inserted_id = "generated-id"
    collection.find_one.return_value = {"key": "random", "value": 0.25}
    return mongo


@pytest.fixture
def db_context(mongo_client: MagicMock) -> ServiceContext:
    return ServiceContext(
        payload_secret="app-secret",
        db_username="admin",
        db_password="p@ss:word/1",
        db_host="docdb.cluster-abc.us-east-1.docdb.amazonaws.com",
        node_env="production",
        client_factory=MagicMock(return_value=mongo_client),
    )
