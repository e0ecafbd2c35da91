"""Synchronous client for the vpkg package registry.

Wraps the three kinds of documents a registry host serves (the registry
index, per-repository ``meta.yaml`` manifests, and raw repository files) with
a small error taxonomy: transport failures raise ``RegistryNetworkError``,
non-200 answers raise ``RegistryStatusError`` and malformed documents raise
``RegistryParseError``.  Requests are never retried.

Typical usage::

    with RegistryClient() as client:
        found = client.find_package("vandor/redis-cache")
        files = client.discover_template_files(found, found.package.templates)
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

import httpx
import yaml
from pydantic import BaseModel, ValidationError

from vpkg.config import VpkgConfig
from vpkg.errors import (
    NoTemplateFilesError,
    PackageNotFoundError,
    RegistryError,
    RegistryNetworkError,
    RegistryParseError,
    RegistryStatusError,
)
from vpkg.registry.discovery import DiscoveryStrategy, default_strategies
from vpkg.registry.models import (
    ListOptions,
    Package,
    PackageWithRepo,
    Registry,
    RepositoryMeta,
)

log = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class RegistryClient:
    """Client for a registry index and the repositories it lists.

    Each instance owns one ``httpx.Client``; nothing is cached between calls,
    so every operation sees the registry as it is now.  Pass *transport* to
    route requests somewhere other than the network (tests use
    ``httpx.MockTransport``).
    """

    def __init__(
        self,
        registry_url: str | None = None,
        *,
        config: VpkgConfig | None = None,
        transport: httpx.BaseTransport | None = None,
        strategies: list[DiscoveryStrategy] | None = None,
    ) -> None:
        self.config = config or VpkgConfig()
        self.registry_url = registry_url or self.config.registry_url
        self.strategies = (
            strategies if strategies is not None else default_strategies(self.config)
        )
        self._transport = transport
        self._http: httpx.Client | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def http(self) -> httpx.Client:
        """The underlying ``httpx.Client``, created on first use."""
        if self._http is None:
            self._http = httpx.Client(
                timeout=httpx.Timeout(self.config.http_timeout, connect=10.0),
                transport=self._transport,
                follow_redirects=True,
            )
        return self._http

    def close(self) -> None:
        if self._http is not None:
            self._http.close()
            self._http = None

    def for_registry(self, registry_url: str) -> "RegistryClient":
        """Return a new client for another index sharing this client's settings."""
        return RegistryClient(
            registry_url,
            config=self.config,
            transport=self._transport,
            strategies=self.strategies,
        )

    def __enter__(self) -> "RegistryClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _get(self, url: str) -> bytes:
        try:
            response = self.http.get(url)
        except httpx.RequestError as exc:
            raise RegistryNetworkError(url, str(exc) or type(exc).__name__) from exc
        if response.status_code != 200:
            raise RegistryStatusError(url, response.status_code)
        return response.content

    def _get_document(self, url: str, model: type[ModelT]) -> ModelT:
        raw = self._get(url)
        try:
            data: Any = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise RegistryParseError(url, str(exc)) from exc
        if not isinstance(data, dict):
            raise RegistryParseError(url, "expected a YAML mapping at the top level")
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise RegistryParseError(url, str(exc)) from exc

    def _iter_repositories(self, registry: Registry):
        """Yield ``(info, meta)`` per repository, skipping ones that fail to load."""
        for repo_info in registry.repositories:
            try:
                repo_meta = self.fetch_repository_meta(repo_info.meta_url)
            except RegistryError as exc:
                log.warning("Skipping repository %s: %s", repo_info.name, exc)
                continue
            yield repo_info, repo_meta

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def fetch_registry(self) -> Registry:
        """Fetch and parse the registry index."""
        return self._get_document(self.registry_url, Registry)

    def fetch_repository_meta(self, meta_url: str) -> RepositoryMeta:
        """Fetch and parse one repository's manifest."""
        return self._get_document(meta_url, RepositoryMeta)

    def fetch_package_file(self, package_with_repo: PackageWithRepo, file_path: str) -> bytes:
        """Fetch a file from the package's repository.

        *file_path* is relative to the repository root, which is the directory
        holding the repository's manifest.
        """
        base_url = package_with_repo.repository_info.base_url
        return self._get(f"{base_url}/{file_path.lstrip('/')}")

    def find_package(self, name: str) -> PackageWithRepo:
        """Find a package by exact name across all repositories.

        Repositories are searched in the order the registry lists them and the
        first match wins.  A repository whose manifest cannot be loaded is
        skipped so that packages hosted elsewhere stay installable.

        Raises:
            PackageNotFoundError: If no repository provides *name*.
        """
        registry = self.fetch_registry()
        for repo_info, repo_meta in self._iter_repositories(registry):
            for package in repo_meta.packages:
                if package.name == name:
                    return PackageWithRepo(
                        package=package,
                        repository_info=repo_info,
                        repository_meta=repo_meta,
                    )
        raise PackageNotFoundError(name)

    def list_packages(self, options: ListOptions | None = None) -> list[Package]:
        """Return packages from every reachable repository, filtered by *options*.

        ``options.type`` must match exactly; ``options.tags`` keeps packages
        carrying at least one of the given tags.
        """
        options = options or ListOptions()
        registry = self.fetch_registry()

        packages: list[Package] = []
        for _, repo_meta in self._iter_repositories(registry):
            packages.extend(repo_meta.packages)

        if options.type is not None:
            packages = [pkg for pkg in packages if pkg.type == options.type]
        if options.tags:
            packages = [pkg for pkg in packages if pkg.has_any_tag(options.tags)]
        return packages

    def discover_template_files(
        self, package_with_repo: PackageWithRepo, templates_dir: str
    ) -> list[str]:
        """Return template paths relative to *templates_dir*.

        Each configured strategy is tried in turn; the first one to return a
        non-empty list wins.

        Raises:
            NoTemplateFilesError: If every strategy comes back empty.
        """
        for index, strategy in enumerate(self.strategies):
            try:
                files = strategy.discover(self.http, package_with_repo, templates_dir)
            except (httpx.HTTPError, ValueError) as exc:
                log.debug("Discovery strategy %s unavailable: %s", strategy.name, exc)
                continue
            if not files:
                log.debug("Discovery strategy %s found no files", strategy.name)
                continue
            if index > 0:
                log.warning(
                    "Template discovery for %s fell back to %s; files outside its "
                    "candidate list will not be installed",
                    package_with_repo.package.name,
                    strategy.name,
                )
            return files

        raise NoTemplateFilesError(package_with_repo.package.name, templates_dir)
