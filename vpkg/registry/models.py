"""Pydantic v2 models for the vpkg registry documents.

The registry index lists repositories; each repository publishes a manifest
(``meta.yaml``) listing the packages it hosts.  All models are read-only views
of network documents and are re-fetched on every operation.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class PackageType(str, Enum):
    """Kind of installable unit."""
    FX_MODULE = "fx-module"
    CLI_COMMAND = "cli-command"


# ---------------------------------------------------------------------------
# Registry index
# ---------------------------------------------------------------------------

class Tag(BaseModel):
    """A category tag declared by the registry."""
    name: str = Field(..., description="Tag identifier, e.g. 'cache'")
    description: str = Field(default="", description="What packages with this tag provide")


class RepositoryInfo(BaseModel):
    """One package source listed in the registry index."""
    name: str = Field(..., description="Display name")
    repository: str = Field(default="", description="VCS repository URL")
    meta_url: str = Field(..., description="URL of the repository's meta.yaml manifest")
    author: str = Field(default="")
    verified: bool = Field(default=False)

    @property
    def base_url(self) -> str:
        """Repository content root: the manifest URL without its filename.

        ``https://host/org/repo/main/meta.yaml`` -> ``https://host/org/repo/main``
        """
        return self.meta_url.rstrip("/").rsplit("/", 1)[0]


class Registry(BaseModel):
    """The top-level registry index."""
    version: str = Field(default="")
    registry_url: str = Field(default="")
    repositories: list[RepositoryInfo] = Field(
        default_factory=list, description="Repositories in lookup order"
    )
    tags: list[Tag] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Repository manifest
# ---------------------------------------------------------------------------

class Package(BaseModel):
    """A single installable unit of scaffolding."""
    name: str = Field(..., description="Globally unique 'namespace/id' name")
    title: str = Field(default="")
    description: str = Field(default="")
    type: PackageType = Field(default=PackageType.FX_MODULE)
    templates: str = Field(
        default="",
        description="Directory of template files, relative to the repository root",
    )
    destination: Optional[str] = Field(
        default=None, description="Install path override, relative to the project root"
    )
    version: str = Field(default="")
    license: str = Field(default="")
    author: str = Field(default="")
    entry: str = Field(default="", description="Entry point of a cli-command package")
    tags: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)

    @property
    def namespace(self) -> str:
        """The part of the name before the first ``/`` (empty if there is none)."""
        head, sep, _ = self.name.partition("/")
        return head if sep else ""

    @property
    def short_name(self) -> str:
        """The package id after the namespace."""
        _, sep, tail = self.name.partition("/")
        return tail if sep else self.name

    def has_any_tag(self, tags: list[str]) -> bool:
        """Return ``True`` when the package carries at least one of *tags*."""
        return any(tag in self.tags for tag in tags)


class RepositoryMeta(BaseModel):
    """A repository's manifest."""
    version: str = Field(default="")
    repository: str = Field(default="")
    author: str = Field(default="")
    license: str = Field(default="")
    packages: list[Package] = Field(default_factory=list)


class PackageWithRepo(BaseModel):
    """A package together with the repository it was found in.

    Template file URLs are relative to the owning repository, so the pairing
    travels with the package through the install.
    """
    package: Package
    repository_info: RepositoryInfo
    repository_meta: RepositoryMeta


class ListOptions(BaseModel):
    """Filters for listing available packages."""
    tags: list[str] = Field(
        default_factory=list, description="Keep packages carrying any of these tags"
    )
    type: Optional[PackageType] = Field(default=None, description="Keep only this type")
