"""
Explicit provisioning graph.

Resources are added leaf-first. A resource may only reference resources that
are already in the graph, so the graph is acyclic by construction; the only
operations that can add edges afterwards (``add_dependency`` and
``authorize_ingress``) check for cycles themselves.

Edges are derived from the descriptors, so the creation order, the parallel
creation waves and the teardown order are all computed from the same data.
"""

from collections.abc import Iterator
from typing import TypeVar

from .errors import DependencyError
from .resources import CidrPeer, IngressRule, Resource, SecurityGroup

R = TypeVar("R", bound=Resource)


class ResourceGraph:
    """Directed acyclic graph of resource descriptors keyed by id."""

    def __init__(self) -> None:
        self._resources: dict[str, Resource] = {}

    def __contains__(self, resource: object) -> bool:
        return isinstance(resource, Resource) and self._resources.get(resource.id) is resource

    def __iter__(self) -> Iterator[Resource]:
        return iter(self._resources.values())

    def __len__(self) -> int:
        return len(self._resources)

    def get(self, resource_id: str) -> Resource:
        try:
            return self._resources[resource_id]
        except KeyError:
            raise DependencyError(f"No resource with id {resource_id!r}") from None

    def of_type(self, resource_type: type[R]) -> list[R]:
        return [r for r in self._resources.values() if isinstance(r, resource_type)]

    def add(self, resource: R) -> R:
        """Add a resource whose dependencies are all already in the graph."""
        if resource.id in self._resources:
            raise DependencyError(f"Duplicate resource id {resource.id!r}")
        for dep in resource.dependencies():
            self._require(dep, referenced_by=resource)
        self._resources[resource.id] = resource
        return resource

    def add_dependency(self, resource: Resource, depends_on: Resource) -> None:
        """Add an explicit ordering edge ``depends_on -> resource``."""
        self._require(resource)
        self._require(depends_on, referenced_by=resource)
        if resource is depends_on or self._reaches(depends_on, resource):
            raise DependencyError(
                f"{resource.id!r} -> {depends_on.id!r} would create a dependency cycle"
            )
        if depends_on not in resource.depends_on:
            resource.depends_on.append(depends_on)

    def authorize_ingress(
        self,
        group: SecurityGroup,
        peer: SecurityGroup | CidrPeer,
        port: int,
        description: str = "",
        protocol: str = "tcp",
    ) -> IngressRule:
        """
        Allow ``peer`` to reach ``group`` on ``port``.

        A security-group peer must already be in the graph and becomes a
        dependency of ``group``. Adding the same rule twice is a no-op.
        """
        self._require(group)
        if isinstance(peer, SecurityGroup):
            self._require(peer, referenced_by=group)
            if peer is not group and self._reaches(peer, group):
                raise DependencyError(
                    f"Ingress from {peer.id!r} to {group.id!r} would create a dependency cycle"
                )

        rule = IngressRule(peer=peer, port=port, protocol=protocol, description=description)
        for existing in group.ingress:
            if existing.same_as(rule):
                return existing
        group.ingress.append(rule)
        return rule

    def dependencies_of(self, resource: Resource) -> list[Resource]:
        return resource.dependencies()

    def dependents_of(self, resource: Resource) -> list[Resource]:
        return [
            other
            for other in self._resources.values()
            if any(dep is resource for dep in other.dependencies())
        ]

    def creation_order(self) -> list[Resource]:
        """Topological order; ties keep insertion order."""
        return [resource for wave in self.waves() for resource in wave]

    def waves(self) -> list[list[Resource]]:
        """
        Group resources into waves that can be created in parallel.

        Every resource lands in the wave after its deepest dependency.
        """
        depth: dict[str, int] = {}
        for resource in self._ordered():
            deps = resource.dependencies()
            depth[resource.id] = 1 + max((depth[dep.id] for dep in deps), default=-1)

        waves: list[list[Resource]] = [[] for _ in range(max(depth.values(), default=-1) + 1)]
        for resource in self._resources.values():
            waves[depth[resource.id]].append(resource)
        return waves

    def teardown_order(self) -> list[Resource]:
        """Reverse creation order: dependents always go before their dependencies."""
        return list(reversed(self.creation_order()))

    def _ordered(self) -> list[Resource]:
        # Kahn's algorithm over insertion order.
        remaining = {rid: len(r.dependencies()) for rid, r in self._resources.items()}
        dependents: dict[str, list[Resource]] = {rid: [] for rid in self._resources}
        for resource in self._resources.values():
            for dep in resource.dependencies():
                dependents[dep.id].append(resource)

        ready = [r for r in self._resources.values() if remaining[r.id] == 0]
        ordered: list[Resource] = []
        while ready:
            resource = ready.pop(0)
            ordered.append(resource)
            for dependent in dependents[resource.id]:
                remaining[dependent.id] -= 1
                if remaining[dependent.id] == 0:
                    ready.append(dependent)

        if len(ordered) != len(self._resources):
            stuck = sorted(rid for rid, count in remaining.items() if count > 0)
            raise DependencyError(f"Dependency cycle between {stuck}")
        return ordered

    def _reaches(self, start: Resource, target: Resource) -> bool:
        stack = [start]
        seen: set[str] = set()
        while stack:
            current = stack.pop()
            if current is target:
                return True
            if current.id in seen:
                continue
            seen.add(current.id)
            stack.extend(current.dependencies())
        return False

    def _require(self, resource: Resource, referenced_by: Resource | None = None) -> None:
        if resource in self:
            return
        if referenced_by is None:
            raise DependencyError(f"{resource.id!r} is not in the graph")
        raise DependencyError(
            f"{referenced_by.id!r} references {resource.id!r}, which has not been created yet"
        )
