"""Pydantic v2 models used while installing packages.

``InstallOptions`` and ``TemplateContext`` live for a single install call.
``InstalledPackage`` is the only record vpkg persists; it is written next to
the installed files and disappears with them.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from vpkg.registry.models import Package, PackageType


# ---------------------------------------------------------------------------
# Per-call inputs
# ---------------------------------------------------------------------------

class InstallOptions(BaseModel):
    """Per-invocation install settings.  Never persisted."""
    registry: Optional[str] = Field(default=None, description="Alternate registry index URL")
    dest: Optional[str] = Field(default=None, description="Destination path override")
    force: bool = Field(default=False, description="Overwrite an existing destination")
    dry_run: bool = Field(default=False, description="Report paths without writing anything")
    version: str = Field(default="", description="Version pin used when the spec has none")


class TemplateContext(BaseModel):
    """Variables shared by every template rendered during one install."""
    module: str = Field(..., description="Module path of the enclosing project")
    vpkg_name: str = Field(..., description="Full package name, e.g. 'vandor/redis-cache'")
    namespace: str = Field(..., description="e.g. 'vandor'")
    pkg: str = Field(..., description="Package id, e.g. 'redis-cache'")
    package: str = Field(..., description="Identifier form of the id, e.g. 'rediscache'")
    package_path: str = Field(..., description="Install destination")
    version: str = Field(default="")
    author: str = Field(default="")
    time: str = Field(..., description="ISO-8601 timestamp of the install")
    title: str = Field(default="")
    description: str = Field(default="")

    def as_template_vars(self) -> dict[str, Any]:
        """Return the context under both Go-template and snake_case names.

        Registry templates written for the Go tool reference ``.Package`` or
        ``.VpkgName``; Jinja-native templates can use ``package`` or
        ``vpkg_name`` instead.
        """
        data = self.model_dump()
        go_names = {
            "Module": self.module,
            "VpkgName": self.vpkg_name,
            "Namespace": self.namespace,
            "Pkg": self.pkg,
            "Package": self.package,
            "PackagePath": self.package_path,
            "Version": self.version,
            "Author": self.author,
            "Time": self.time,
            "Title": self.title,
            "Description": self.description,
        }
        return {**data, **go_names}


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class InstallResult(BaseModel):
    """Outcome of a successful ``Installer.install`` call."""
    package: Package
    version: str
    destination: Path
    files: list[Path] = Field(
        default_factory=list, description="Written paths, or would-be paths on a dry run"
    )
    dry_run: bool = False


class InstalledPackage(BaseModel):
    """Metadata persisted once per successful install."""
    name: str
    version: str = ""
    installed_at: datetime
    path: str = Field(..., description="Absolute install path")
    type: PackageType = PackageType.FX_MODULE
    meta: Package = Field(..., description="Snapshot of the registry record")


# ---------------------------------------------------------------------------
# Progress events
# ---------------------------------------------------------------------------

class InstallStep(str, Enum):
    """Top-level install phases reported to progress observers."""
    DISCOVERY = "discovery"
    DOWNLOAD = "download"
    RENDER = "render"
    INSTALL = "install"


class ProgressEvent(BaseModel):
    """A single progress update emitted by the installer."""
    step: InstallStep
    progress: float = Field(default=0.0, ge=0.0, le=1.0)
    description: str = ""
    total_files: int = 0
    processed: int = 0
    error: Optional[str] = None
