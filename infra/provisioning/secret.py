"""
Secret provisioning.

The graph only ever holds ``Secret`` descriptors and ``SecretRef`` handles.
Values are written by the backend straight into the secret store and are
resolved there (or at container start), never on the way through here.
"""

from collections.abc import Sequence

from .graph import ResourceGraph
from .resources import RemovalPolicy, Secret, SecretGeneration, logical_id

# Characters that break shell quoting or URI userinfo encoding.
DEFAULT_EXCLUDED_CHARACTERS = '"@/\\ '


class SecretsProvisioner:
    """Looks up pre-created secrets and declares generated ones."""

    def __init__(self, graph: ResourceGraph) -> None:
        self.graph = graph

    def resolve_existing(
        self,
        name: str,
        fields: Sequence[str],
        *,
        resource_id: str | None = None,
    ) -> Secret:
        """
        Reference a secret that must already exist in the secret store.

        Existence is checked by the backend when the graph is provisioned;
        a missing secret raises ``SecretNotFoundError`` there and is never
        retried, since the secret has to be created out-of-band.
        """
        secret = Secret(
            id=resource_id or logical_id(name),
            name=name,
            fields=tuple(fields),
            removal_policy=RemovalPolicy.RETAIN,
        )
        return self.graph.add(secret)

    def generate(
        self,
        name: str,
        schema: Sequence[str],
        excluded_chars: str = DEFAULT_EXCLUDED_CHARACTERS,
        *,
        length: int = 32,
        resource_id: str | None = None,
    ) -> Secret:
        """Declare a secret whose fields are filled with random values on creation."""
        if not schema:
            raise ValueError("A generated secret needs at least one field")
        if length < 8:
            raise ValueError("Generated secrets must be at least 8 characters long")
        secret = Secret(
            id=resource_id or logical_id(name),
            name=name,
            fields=tuple(schema),
            generation=SecretGeneration(exclude_characters=excluded_chars, length=length),
        )
        return self.graph.add(secret)
