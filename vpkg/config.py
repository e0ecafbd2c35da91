"""vpkg configuration.

Centralised, typed configuration for the registry client, the installer, and
the installed-package store.  All settings use Pydantic v2 models so they can
be validated at construction time and serialised to/from JSON or environment
variables without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

DEFAULT_REGISTRY_URL = (
    "https://raw.githubusercontent.com/alfariiizi/vpkg-registry/main/registry.yaml"
)


class VpkgConfig(BaseModel):
    """Global vpkg configuration.

    Instances are created once by the CLI entry point (or by a test) and then
    passed explicitly to ``RegistryClient``, ``Installer`` and
    ``InstalledPackageStore``.  Nothing reads configuration from module-level
    state.
    """

    registry_url: str = Field(default=DEFAULT_REGISTRY_URL)
    install_root: str = Field(
        default="internal/vpkg",
        description="Directory, relative to the project root, holding installed packages",
    )
    metadata_filename: str = Field(
        default="meta.yaml",
        description="Name of the per-install metadata file and of repository manifests",
    )
    project_markers: list[str] = Field(
        default_factory=lambda: ["go.mod", "vandor-config.yaml"],
        description="Files whose presence marks a directory as the project root",
    )
    template_extensions: list[str] = Field(
        default_factory=lambda: [".tmpl", ".templ", ".gotmpl"],
        description="Suffixes that mark a file as a template to render",
    )
    github_api_url: str = Field(default="https://api.github.com")
    default_branch: str = Field(default="main")
    max_discovery_depth: int = Field(
        default=3, ge=1, description="Directory levels walked by listing-based discovery"
    )
    http_timeout: float = Field(
        default=30.0, gt=0, description="Per-request timeout for content fetches in seconds"
    )
    probe_timeout: float = Field(
        default=5.0, gt=0, description="Per-request timeout for existence probes in seconds"
    )

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file and return its path."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return path

    @classmethod
    def load(cls, path: Path) -> "VpkgConfig":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "VpkgConfig":
        """Build a ``VpkgConfig`` from environment variables.

        Recognised variables (all optional):
            VPKG_REGISTRY_URL, VPKG_INSTALL_ROOT, VPKG_HTTP_TIMEOUT,
            VPKG_PROBE_TIMEOUT, VPKG_GITHUB_API_URL.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("VPKG_REGISTRY_URL"):
            kwargs["registry_url"] = os.environ["VPKG_REGISTRY_URL"]
        if os.environ.get("VPKG_INSTALL_ROOT"):
            kwargs["install_root"] = os.environ["VPKG_INSTALL_ROOT"]
        if os.environ.get("VPKG_HTTP_TIMEOUT"):
            kwargs["http_timeout"] = float(os.environ["VPKG_HTTP_TIMEOUT"])
        if os.environ.get("VPKG_PROBE_TIMEOUT"):
            kwargs["probe_timeout"] = float(os.environ["VPKG_PROBE_TIMEOUT"])
        if os.environ.get("VPKG_GITHUB_API_URL"):
            kwargs["github_api_url"] = os.environ["VPKG_GITHUB_API_URL"]
        return cls(**kwargs)
