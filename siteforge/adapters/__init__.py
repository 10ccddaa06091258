"""Adapters — source-control and hosting integrations.

Public re-exports for convenient access.
"""

from siteforge.adapters.base import HostingProvider, SourceControl, TransportError
from siteforge.adapters.factory import build_collaborators
from siteforge.adapters.mock import InMemoryHosting, InMemorySourceControl

__all__ = [
    "HostingProvider",
    "InMemoryHosting",
    "InMemorySourceControl",
    "SourceControl",
    "TransportError",
    "build_collaborators",
]
