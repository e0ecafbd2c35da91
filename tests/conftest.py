"""Shared pytest fixtures for the vpkg test suite.

Provides reusable fixtures for:
- An in-memory registry served through ``httpx.MockTransport``
- Temporary Go projects
- A Rich console that records output
"""

from __future__ import annotations

import io
import json
import logging
from pathlib import Path
from typing import Any

import httpx
import pytest
import yaml
from rich.console import Console

from vpkg.registry.client import RegistryClient

REGISTRY_URL = "https://registry.example.test/registry.yaml"
REPO_META_URL = "https://raw.githubusercontent.com/vandor/vpkg-repo/main/meta.yaml"
REPO_BASE = "https://raw.githubusercontent.com/vandor/vpkg-repo/main"
GITHUB_CONTENTS = "https://api.github.com/repos/vandor/vpkg-repo/contents"
MIRROR_META_URL = "https://mirror.example.test/vpkg/meta.yaml"
MIRROR_BASE = "https://mirror.example.test/vpkg"


# ---------------------------------------------------------------------------
# Fake registry
# ---------------------------------------------------------------------------


class FakeRegistry:
    """URL -> response table served through ``httpx.MockTransport``.

    Unknown URLs answer 404.  Query strings are ignored when matching, and
    every request is recorded in ``requests``.
    """

    def __init__(self) -> None:
        self.routes: dict[str, httpx.Response | Exception] = {}
        self.requests: list[httpx.Request] = []

    def add_bytes(self, url: str, content: bytes, status: int = 200) -> None:
        self.routes[url] = httpx.Response(status, content=content)

    def add_text(self, url: str, text: str, status: int = 200) -> None:
        self.add_bytes(url, text.encode("utf-8"), status)

    def add_yaml(self, url: str, data: Any) -> None:
        self.add_text(url, yaml.safe_dump(data, sort_keys=False))

    def add_json(self, url: str, data: Any, status: int = 200) -> None:
        self.add_bytes(url, json.dumps(data).encode("utf-8"), status)

    def add_error(self, url: str, exc: Exception) -> None:
        self.routes[url] = exc

    def add_listing(self, directory: str, entries: list[tuple[str, str]]) -> None:
        """Serve a GitHub contents listing for *directory* of ``(name, type)`` pairs."""
        self.add_json(
            f"{GITHUB_CONTENTS}/{directory}",
            [{"name": name, "type": kind, "path": f"{directory}/{name}"} for name, kind in entries],
        )

    def urls(self) -> list[str]:
        return [_route_key(request) for request in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(_route_key(request))
        if route is None:
            return httpx.Response(404, content=b"not found")
        if isinstance(route, Exception):
            raise route
        return httpx.Response(route.status_code, content=route.content)

    def client(self, **kwargs: Any) -> RegistryClient:
        kwargs.setdefault("transport", httpx.MockTransport(self.handler))
        return RegistryClient(REGISTRY_URL, **kwargs)


def _route_key(request: httpx.Request) -> str:
    return f"{request.url.scheme}://{request.url.host}{request.url.path}"


def registry_index(*repositories: tuple[str, str]) -> dict[str, Any]:
    """Registry index document listing ``(name, meta_url)`` repositories in order."""
    return {
        "version": "1",
        "registry_url": REGISTRY_URL,
        "repositories": [
            {"name": name, "meta_url": meta_url, "author": "vandor", "verified": True}
            for name, meta_url in repositories
        ],
        "tags": [{"name": "cache", "description": "Caching"}],
    }


REDIS_CACHE = {
    "name": "vandor/redis-cache",
    "title": "Redis Cache",
    "description": "Redis-backed cache module",
    "type": "fx-module",
    "templates": "packages/redis-cache",
    "version": "1.0.0",
    "license": "MIT",
    "author": "vandor",
    "tags": ["cache", "redis"],
    "dependencies": ["github.com/redis/go-redis/v9"],
}

HELLO_CLI = {
    "name": "vandor/hello-cli",
    "title": "Hello CLI",
    "description": "Greets people",
    "type": "cli-command",
    "templates": "packages/hello-cli",
    "version": "0.2.0",
    "tags": ["cli"],
}

HTTP_CLIENT = {
    "name": "vandor/http-client",
    "title": "HTTP Client",
    "type": "fx-module",
    "templates": "packages/http-client",
    "version": "2.1.0",
    "tags": ["http"],
}

SERVICE_TEMPLATE = (
    "package {{.Package}}\n"
    "\n"
    "// {{.Title}} for {{.Module}}\n"
    'const Name = "{{.VpkgName}}"\n'
)
CONFIG_TEMPLATE = "package {{.Package}}\n\ntype {{Pascal .Pkg}}Config struct{}\n"
README_TEMPLATE = "# {{ title }}\n\nInstalled at {{ package_path }}.\n"


@pytest.fixture
def fake_registry() -> FakeRegistry:
    """A registry with one GitHub-hosted repository of three packages.

    ``vandor/redis-cache`` is discoverable through the contents API;
    ``vandor/hello-cli`` has no listing and is only found by probing.
    """
    fake = FakeRegistry()
    fake.add_yaml(REGISTRY_URL, registry_index(("official", REPO_META_URL)))
    fake.add_yaml(
        REPO_META_URL,
        {
            "version": "1",
            "repository": "https://github.com/vandor/vpkg-repo",
            "author": "vandor",
            "license": "MIT",
            "packages": [REDIS_CACHE, HELLO_CLI, HTTP_CLIENT],
        },
    )

    fake.add_listing(
        "packages/redis-cache",
        [
            ("service.go.tmpl", "file"),
            ("README.md.tmpl", "file"),
            ("logo.png", "file"),
            ("config", "dir"),
        ],
    )
    fake.add_listing("packages/redis-cache/config", [("config.go.gotmpl", "file")])
    fake.add_text(f"{REPO_BASE}/packages/redis-cache/service.go.tmpl", SERVICE_TEMPLATE)
    fake.add_text(f"{REPO_BASE}/packages/redis-cache/README.md.tmpl", README_TEMPLATE)
    fake.add_text(f"{REPO_BASE}/packages/redis-cache/config/config.go.gotmpl", CONFIG_TEMPLATE)

    fake.add_text(
        f"{REPO_BASE}/packages/hello-cli/main.go.tmpl",
        "package main\n\n// {{.Description}}\n",
    )
    return fake


@pytest.fixture
def registry_client(fake_registry: FakeRegistry):
    """RegistryClient wired to ``fake_registry``."""
    client = fake_registry.client()
    yield client
    client.close()


# ---------------------------------------------------------------------------
# Projects & Console
# ---------------------------------------------------------------------------


@pytest.fixture
def go_project(tmp_path: Path) -> Path:
    """Temporary Go project with a ``go.mod`` at its root."""
    project_dir = tmp_path / "app"
    project_dir.mkdir()
    (project_dir / "go.mod").write_text(
        "module github.com/acme/app\n\ngo 1.22\n", encoding="utf-8"
    )
    yield project_dir


@pytest.fixture
def restore_logging():
    """Undo handler and level changes made by ``configure_logging``."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    httpx_level = logging.getLogger("httpx").level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("httpx").setLevel(httpx_level)


@pytest.fixture
def record_console() -> Console:
    """Rich console writing plain text to an in-memory buffer."""
    return Console(file=io.StringIO(), width=200, color_system=None, force_terminal=False)


def console_text(target: Console) -> str:
    """Everything written to a ``record_console`` so far."""
    return target.file.getvalue()
