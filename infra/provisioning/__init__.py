"""Provisioning graph for the TLS backend service."""

from .blueprint import ServiceGraph, build_service_graph
from .config import DeploymentConfig
from .graph import ResourceGraph
from .provisioner import Backend, Provisioner

__all__ = [
    "Backend",
    "DeploymentConfig",
    "Provisioner",
    "ResourceGraph",
    "ServiceGraph",
    "build_service_graph",
]
