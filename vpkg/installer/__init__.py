"""vpkg installer -- spec parsing, template rendering, installs and removals.

Quick usage::

    from vpkg.installer import Installer, InstallOptions
    from vpkg.registry import RegistryClient

    with RegistryClient() as client:
        Installer(client).install("vandor/redis-cache@1.0.0", InstallOptions(dry_run=True))
"""

from vpkg.installer.installer import Installer
from vpkg.installer.models import (
    InstalledPackage,
    InstallOptions,
    InstallResult,
    InstallStep,
    ProgressEvent,
    TemplateContext,
)
from vpkg.installer.progress import ProgressReporter
from vpkg.installer.project import detect_module, find_project_root
from vpkg.installer.spec import parse_package_spec
from vpkg.installer.store import InstalledPackageStore
from vpkg.installer.templates import TemplateRenderer

__all__ = [
    "InstallOptions",
    "InstallResult",
    "InstallStep",
    "InstalledPackage",
    "InstalledPackageStore",
    "Installer",
    "ProgressEvent",
    "ProgressReporter",
    "TemplateContext",
    "TemplateRenderer",
    "detect_module",
    "find_project_root",
    "parse_package_spec",
]
