"""Exception hierarchy for vpkg.

Every failure raised by the registry client, the installer, and the
installed-package store derives from ``VpkgError`` so that callers (the CLI in
particular) can handle them in one place.
"""

from __future__ import annotations


class VpkgError(Exception):
    """Base class for all vpkg errors."""


class ConfigError(VpkgError):
    """Settings could not be read from a config file or the environment."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        super().__init__(f"Invalid configuration in {source}: {reason}")


# ---------------------------------------------------------------------------
# Registry errors
# ---------------------------------------------------------------------------


class RegistryError(VpkgError):
    """Raised when the registry or a repository cannot be read."""

    def __init__(self, url: str, message: str) -> None:
        self.url = url
        super().__init__(message)


class RegistryNetworkError(RegistryError):
    """Transport failure reaching a registry or repository host."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(url, f"Cannot reach {url}: {reason}")


class RegistryStatusError(RegistryError):
    """The host answered with a non-success HTTP status."""

    def __init__(self, url: str, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(url, f"Request to {url} failed with HTTP {status_code}")


class RegistryParseError(RegistryError):
    """A registry index or repository manifest is malformed."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(url, f"Cannot parse document at {url}: {reason}")


class PackageNotFoundError(VpkgError):
    """No repository in the registry provides the requested package."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Package {name} not found in any repository")


class NoTemplateFilesError(VpkgError):
    """Template discovery produced no files for a package."""

    def __init__(self, package: str, templates_dir: str) -> None:
        self.package = package
        self.templates_dir = templates_dir
        super().__init__(f"No template files found in {templates_dir!r} for package {package}")


# ---------------------------------------------------------------------------
# Project errors
# ---------------------------------------------------------------------------


class ProjectRootNotFoundError(VpkgError):
    """No ancestor of the start directory contains a project marker."""

    def __init__(self, start: str, markers: list[str]) -> None:
        self.start = start
        super().__init__(
            f"No project root found above {start} (looked for {', '.join(markers)})"
        )


class ModuleDetectionError(VpkgError):
    """The enclosing project's module identifier could not be determined."""


# ---------------------------------------------------------------------------
# Install errors
# ---------------------------------------------------------------------------


class PackageExistsError(VpkgError):
    """The install destination is already occupied and force was not set."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Package already exists at {path} (use --force to overwrite)")


class TemplateRenderError(VpkgError):
    """A template failed to parse or execute."""

    def __init__(self, filename: str, reason: str) -> None:
        self.filename = filename
        super().__init__(f"Failed to render template {filename}: {reason}")


class InstallFileError(VpkgError):
    """A path under the install destination could not be written, moved or deleted."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        super().__init__(f"Filesystem operation failed on {path}: {reason}")


class InstallCancelledError(VpkgError):
    """The install was cancelled between steps."""


class PackageNotInstalledError(VpkgError):
    """The package to remove or inspect is not installed."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Package {name} is not installed")
