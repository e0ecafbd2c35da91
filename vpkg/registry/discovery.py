"""Template file discovery for registry packages.

A package declares only the directory holding its templates; the files inside
it are found at install time.  Two strategies share the ``DiscoveryStrategy``
interface and are tried in order by ``RegistryClient.discover_template_files``:

* ``GitHubContentsDiscovery`` walks the GitHub contents API.  It is exact but
  only works for repositories hosted on GitHub.
* ``CandidateProbeDiscovery`` requests a short, fixed list of conventional
  file names and keeps the ones that exist.  It is best-effort and can miss
  files, so the client logs a warning whenever it is the strategy that
  produced the result.
"""

from __future__ import annotations

import logging
from typing import Protocol
from urllib.parse import urlparse

import httpx

from vpkg.config import VpkgConfig
from vpkg.registry.models import PackageWithRepo
from vpkg.utils import to_identifier

log = logging.getLogger(__name__)


def has_template_extension(filename: str, extensions: list[str]) -> bool:
    """Return ``True`` if *filename* ends with one of *extensions*."""
    return any(filename.endswith(ext) for ext in extensions)


class DiscoveryStrategy(Protocol):
    """Interface shared by every discovery strategy."""

    name: str

    def discover(
        self,
        http: httpx.Client,
        package_with_repo: PackageWithRepo,
        templates_dir: str,
    ) -> list[str]:
        """Return template paths relative to *templates_dir*, in discovery order."""
        ...


# ---------------------------------------------------------------------------
# Directory listing via the GitHub contents API
# ---------------------------------------------------------------------------


class GitHubContentsDiscovery:
    """Walk a GitHub repository's contents API below the templates directory."""

    name = "github-contents"

    def __init__(self, config: VpkgConfig | None = None) -> None:
        self.config = config or VpkgConfig()

    def discover(
        self,
        http: httpx.Client,
        package_with_repo: PackageWithRepo,
        templates_dir: str,
    ) -> list[str]:
        owner, repo, branch, prefix = self.parse_repository(
            package_with_repo.repository_info.meta_url
        )
        root = "/".join(part for part in (prefix, templates_dir.strip("/")) if part)
        return self._walk(http, owner, repo, branch, root, "", depth=1)

    def parse_repository(self, meta_url: str) -> tuple[str, str, str, str]:
        """Split a GitHub manifest URL into ``(owner, repo, branch, prefix)``.

        *prefix* is the directory of the manifest inside the repository, which
        is where package-relative paths start.

        Supported forms::

            https://raw.githubusercontent.com/<owner>/<repo>/<branch>/[dir/]meta.yaml
            https://github.com/<owner>/<repo>/(blob|raw)/<branch>/[dir/]meta.yaml

        Raises:
            ValueError: If the URL does not point at GitHub.
        """
        parsed = urlparse(meta_url)
        segments = [s for s in parsed.path.split("/") if s]
        host = parsed.netloc.lower()

        if host == "raw.githubusercontent.com" and len(segments) >= 4:
            owner, repo, branch = segments[0], segments[1], segments[2]
            prefix_parts = segments[3:-1]
        elif host in ("github.com", "www.github.com") and len(segments) >= 5 and segments[2] in ("blob", "raw"):
            owner, repo, branch = segments[0], segments[1], segments[3]
            prefix_parts = segments[4:-1]
        elif host in ("github.com", "www.github.com") and len(segments) >= 2:
            owner, repo, branch = segments[0], segments[1], self.config.default_branch
            prefix_parts = []
        else:
            raise ValueError(f"not a GitHub repository URL: {meta_url}")

        return owner, repo, branch, "/".join(prefix_parts)

    def _walk(
        self,
        http: httpx.Client,
        owner: str,
        repo: str,
        branch: str,
        directory: str,
        rel_prefix: str,
        depth: int,
    ) -> list[str]:
        api_url = (
            f"{self.config.github_api_url.rstrip('/')}/repos/{owner}/{repo}"
            f"/contents/{directory}"
        )
        response = http.get(api_url, params={"ref": branch})
        response.raise_for_status()
        items = response.json()
        if not isinstance(items, list):
            raise ValueError(f"{api_url} is not a directory listing")

        found: list[str] = []
        for item in items:
            if not isinstance(item, dict):
                log.debug("Ignoring malformed listing entry in %s: %r", api_url, item)
                continue
            item_name = item.get("name", "")
            item_type = item.get("type", "")
            rel_path = f"{rel_prefix}/{item_name}" if rel_prefix else item_name

            if item_type == "file":
                if has_template_extension(item_name, self.config.template_extensions):
                    found.append(rel_path)
            elif item_type == "dir":
                if depth >= self.config.max_discovery_depth:
                    log.debug("Not descending into %s: depth limit reached", rel_path)
                    continue
                try:
                    found.extend(
                        self._walk(
                            http, owner, repo, branch,
                            f"{directory}/{item_name}", rel_path, depth + 1,
                        )
                    )
                except (httpx.HTTPError, ValueError) as exc:
                    log.warning("Skipping template directory %s: %s", rel_path, exc)
        return found


# ---------------------------------------------------------------------------
# Fallback: probe conventional file names
# ---------------------------------------------------------------------------


class CandidateProbeDiscovery:
    """Probe a fixed list of conventional template paths.

    Only files whose names appear in the candidate list can be found, so this
    strategy is incomplete for any package with a non-standard layout.
    """

    name = "candidate-probe"

    BASE_CANDIDATES: tuple[str, ...] = (
        "main.go",
        "service.go",
        "README.md",
        "cmd/main.go",
        "internal/service.go",
        "handler.go",
        "config.go",
    )

    def __init__(self, config: VpkgConfig | None = None) -> None:
        self.config = config or VpkgConfig()

    def candidates(self, package_with_repo: PackageWithRepo) -> list[str]:
        """Return the candidate output paths (without template extension) to probe."""
        short_name = package_with_repo.package.short_name
        names = [
            *self.BASE_CANDIDATES[:3],
            f"{short_name}.go",
            f"{to_identifier(short_name)}.go",
            *self.BASE_CANDIDATES[3:],
        ]
        return list(dict.fromkeys(names))

    def discover(
        self,
        http: httpx.Client,
        package_with_repo: PackageWithRepo,
        templates_dir: str,
    ) -> list[str]:
        base_url = package_with_repo.repository_info.base_url
        root = templates_dir.strip("/")

        found: list[str] = []
        for candidate in self.candidates(package_with_repo):
            for ext in self.config.template_extensions:
                rel_path = candidate + ext
                url = f"{base_url}/{root}/{rel_path}" if root else f"{base_url}/{rel_path}"
                if self._exists(http, url):
                    found.append(rel_path)
        return found

    def _exists(self, http: httpx.Client, url: str) -> bool:
        try:
            response = http.get(url, timeout=self.config.probe_timeout)
        except httpx.HTTPError:
            return False
        return response.status_code == 200


def default_strategies(config: VpkgConfig | None = None) -> list[DiscoveryStrategy]:
    """The listing strategy followed by the probing fallback."""
    return [GitHubContentsDiscovery(config), CandidateProbeDiscovery(config)]
