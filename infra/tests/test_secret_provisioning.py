"""
Tests for secret descriptors and the opaque secret reference.
"""

import pytest

from provisioning import ResourceGraph
from provisioning.errors import PlaintextSecretError
from provisioning.resources import RemovalPolicy, SecretRef, logical_id
from provisioning.secret import DEFAULT_EXCLUDED_CHARACTERS, SecretsProvisioner


class TestResolveExisting:
    def test_imported_and_retained(self, graph: ResourceGraph) -> None:
        secret = SecretsProvisioner(graph).resolve_existing(
            "universal/db/credentials", ("dbMainUsername", "dbMainPassword")
        )

        assert secret.id == "UniversalDbCredentials"
        assert secret.imported
        assert secret.removal_policy == RemovalPolicy.RETAIN
        assert secret in graph

    def test_explicit_resource_id(self, graph: ResourceGraph) -> None:
        secret = SecretsProvisioner(graph).resolve_existing(
            "universal/db/credentials", ("user",), resource_id="DocDBCredentials"
        )

        assert graph.get("DocDBCredentials") is secret


class TestGenerate:
    def test_generation_policy(self, graph: ResourceGraph) -> None:
        secret = SecretsProvisioner(graph).generate("PayloadSecret", ("payloadSecret",))

        assert not secret.imported
        assert secret.removal_policy == RemovalPolicy.DESTROY
        assert secret.generation.length == 32
        assert secret.generation.exclude_characters == DEFAULT_EXCLUDED_CHARACTERS

    def test_default_exclusions(self) -> None:
        assert set(DEFAULT_EXCLUDED_CHARACTERS) == {'"', "@", "/", "\\", " "}

    def test_empty_schema_rejected(self, graph: ResourceGraph) -> None:
        with pytest.raises(ValueError):
            SecretsProvisioner(graph).generate("Empty", ())

    def test_short_length_rejected(self, graph: ResourceGraph) -> None:
        with pytest.raises(ValueError):
            SecretsProvisioner(graph).generate("Short", ("value",), length=4)


class TestSecretRef:
    @pytest.fixture
    def ref(self, graph: ResourceGraph) -> SecretRef:
        secret = SecretsProvisioner(graph).generate("PayloadSecret", ("payloadSecret",))
        return secret.ref("payloadSecret")

    def test_refuses_plaintext_conversion(self, ref: SecretRef) -> None:
        with pytest.raises(PlaintextSecretError):
            str(ref)

    def test_refuses_interpolation(self, ref: SecretRef) -> None:
        with pytest.raises(PlaintextSecretError):
            f"PAYLOAD_SECRET={ref}"

    def test_repr_names_field_only(self, ref: SecretRef) -> None:
        assert repr(ref) == "SecretRef(PayloadSecret:payloadSecret)"

    def test_unknown_field(self, graph: ResourceGraph) -> None:
        secret = SecretsProvisioner(graph).generate("PayloadSecret", ("payloadSecret",))

        with pytest.raises(KeyError):
            secret.ref("password")


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("universal/db/credentials", "UniversalDbCredentials"),
        ("api", "Api"),
        ("backend-payload", "BackendPayload"),
        ("PayloadSecret", "PayloadSecret"),
    ],
)
def test_logical_id(name: str, expected: str) -> None:
    assert logical_id(name) == expected
