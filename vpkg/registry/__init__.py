"""vpkg registry access -- index, repository manifests, and template discovery.

Quick usage::

    from vpkg.registry import ListOptions, RegistryClient

    with RegistryClient() as client:
        for package in client.list_packages(ListOptions(tags=["cache"])):
            print(package.name, package.version)
"""

from vpkg.registry.client import RegistryClient
from vpkg.registry.discovery import (
    CandidateProbeDiscovery,
    DiscoveryStrategy,
    GitHubContentsDiscovery,
)
from vpkg.registry.models import (
    ListOptions,
    Package,
    PackageType,
    PackageWithRepo,
    Registry,
    RepositoryInfo,
    RepositoryMeta,
    Tag,
)

__all__ = [
    "CandidateProbeDiscovery",
    "DiscoveryStrategy",
    "GitHubContentsDiscovery",
    "ListOptions",
    "Package",
    "PackageType",
    "PackageWithRepo",
    "Registry",
    "RegistryClient",
    "RepositoryInfo",
    "RepositoryMeta",
    "Tag",
]
