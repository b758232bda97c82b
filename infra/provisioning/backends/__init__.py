"""Providers that realize a provisioning graph.

``cdk`` is imported explicitly by callers so the in-memory backend stays
usable without the CDK runtime.
"""

from .memory import InMemoryBackend

__all__ = ["InMemoryBackend"]
