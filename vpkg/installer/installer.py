"""Package installer.

Drives one install from a package spec to files on disk:

1. Resolve the spec against the registry.
2. Choose the destination and refuse to clobber an existing one.
3. Build the template context from the enclosing project.
4. Discover, fetch, render and write every template file.
5. Record the install in the destination's metadata file.

Usage::

    with RegistryClient() as client:
        installer = Installer(client)
        result = installer.install("vandor/redis-cache", InstallOptions())
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from rich.console import Console
from rich.markup import escape

from vpkg.config import VpkgConfig
from vpkg.errors import (
    InstallCancelledError,
    InstallFileError,
    PackageExistsError,
    VpkgError,
)
from vpkg.installer.models import (
    InstalledPackage,
    InstallOptions,
    InstallResult,
    InstallStep,
    ProgressEvent,
    TemplateContext,
)
from vpkg.installer.project import detect_module, find_project_root
from vpkg.installer.spec import parse_package_spec
from vpkg.installer.store import InstalledPackageStore
from vpkg.installer.templates import TemplateRenderer
from vpkg.registry.client import RegistryClient
from vpkg.registry.models import PackageType, PackageWithRepo
from vpkg.utils import console as default_console
from vpkg.utils import to_identifier

log = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]


class Installer:
    """Installs registry packages into a project.

    Attributes:
        client: Registry client used for lookups and file downloads.
        config: Tool configuration (install root, metadata file name, ...).
        renderer: Template renderer applied to every fetched file.
        console: Rich console receiving the usage receipt.
    """

    def __init__(
        self,
        client: RegistryClient,
        *,
        config: VpkgConfig | None = None,
        project_root: str | Path | None = None,
        module_detector: Callable[[Path], str] = detect_module,
        renderer: TemplateRenderer | None = None,
        console: Console | None = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.client = client
        self.config = config or VpkgConfig()
        self._project_root = Path(project_root).resolve() if project_root is not None else None
        self.module_detector = module_detector
        self.renderer = renderer or TemplateRenderer(self.config.template_extensions)
        self.console = console or default_console
        self.on_progress = on_progress

    # ------------------------------------------------------------------
    # Project
    # ------------------------------------------------------------------

    @property
    def project_root(self) -> Path:
        """Root of the enclosing project, located on first use."""
        if self._project_root is None:
            self._project_root = find_project_root(markers=self.config.project_markers)
        return self._project_root

    @property
    def store(self) -> InstalledPackageStore:
        return InstalledPackageStore(self.project_root, config=self.config)

    # ------------------------------------------------------------------
    # Install
    # ------------------------------------------------------------------

    def install(
        self,
        spec: str,
        options: InstallOptions | None = None,
        cancel: threading.Event | None = None,
    ) -> InstallResult:
        """Install the package named by *spec* (``namespace/name[@version]``).

        Nothing under the destination is touched before the overwrite check
        passes, and a dry run touches nothing at all.  The first failing file
        aborts the install; files already written are left in place.

        Raises:
            PackageNotFoundError: If no repository provides the package.
            PackageExistsError: If the destination exists and ``force`` is off.
            NoTemplateFilesError: If discovery yields no files.
            TemplateRenderError: If a template fails to render.
            InstallFileError: If a directory or file cannot be written.
            InstallCancelledError: If *cancel* is set between steps.
        """
        options = options or InstallOptions()
        name, version = parse_package_spec(spec)

        self._check_cancelled(cancel)
        found = self._find_package(name, options.registry)
        package = found.package

        version = self._resolve_version(name, version or options.version, package.version)
        destination = self.resolve_destination(name, options.dest or package.destination)

        if destination.exists() and not options.force:
            raise PackageExistsError(str(destination))

        context = self.build_context(found, destination, version)

        if not options.dry_run:
            self._mkdir(destination)

        self._check_cancelled(cancel)
        self._emit(InstallStep.DISCOVERY, 0.0, f"Discovering templates for {name}")
        try:
            files = self.client.discover_template_files(found, package.templates)
        except VpkgError as exc:
            self._emit(InstallStep.DISCOVERY, 0.0, "Discovery failed", error=str(exc))
            raise
        self._emit(
            InstallStep.DISCOVERY, 1.0, f"Found {len(files)} template files", total_files=len(files)
        )

        written: list[Path] = []
        for index, relative in enumerate(files, start=1):
            self._check_cancelled(cancel)
            output_path = destination / self.renderer.strip_template_extension(relative)
            if options.dry_run:
                log.debug("Would create: %s", output_path)
            else:
                try:
                    self._install_file(found, relative, output_path, context, index, len(files))
                except VpkgError as exc:
                    self._emit(
                        InstallStep.INSTALL,
                        (index - 1) / len(files),
                        f"Failed on {relative}",
                        total_files=len(files),
                        processed=index - 1,
                        error=str(exc),
                    )
                    raise
                log.debug("Created: %s", output_path)
            written.append(output_path)

        result = InstallResult(
            package=package,
            version=version,
            destination=destination,
            files=written,
            dry_run=options.dry_run,
        )
        if options.dry_run:
            return result

        installed = InstalledPackage(
            name=name,
            version=version,
            installed_at=datetime.now(timezone.utc),
            path=str(destination),
            type=package.type,
            meta=package,
        )
        try:
            self.store.write_metadata(destination, installed)
        except OSError as exc:
            raise InstallFileError(
                str(destination / self.config.metadata_filename), str(exc)
            ) from exc
        self._emit(
            InstallStep.INSTALL,
            1.0,
            f"Installed {name}",
            total_files=len(files),
            processed=len(files),
        )

        self.print_usage_receipt(found, context)
        return result

    def _install_file(
        self,
        found: PackageWithRepo,
        relative: str,
        output_path: Path,
        context: TemplateContext,
        index: int,
        total: int,
    ) -> None:
        """Fetch one template file, render or copy it, and write it to *output_path*."""
        templates_dir = found.package.templates.strip("/")
        remote_path = f"{templates_dir}/{relative}" if templates_dir else relative
        done = (index - 1) / total

        self._emit(InstallStep.DOWNLOAD, done, f"Downloading {relative}", total, index - 1)
        content = self.client.fetch_package_file(found, remote_path)

        self._emit(InstallStep.RENDER, done, f"Rendering {relative}", total, index - 1)
        rendered = self.renderer.render_bytes(relative, content, context)

        self._mkdir(output_path.parent)
        try:
            output_path.write_bytes(rendered)
        except OSError as exc:
            raise InstallFileError(str(output_path), str(exc)) from exc
        self._emit(InstallStep.INSTALL, index / total, f"Wrote {output_path.name}", total, index)

    # ------------------------------------------------------------------
    # Resolution helpers
    # ------------------------------------------------------------------

    def resolve_destination(self, name: str, dest: str | None = None) -> Path:
        """Return the absolute install directory for package *name*.

        *dest* wins when given; relative paths are taken from the project root.
        """
        if not dest:
            return self.store.default_path(name)
        path = Path(dest)
        if not path.is_absolute():
            path = self.project_root / path
        return path

    def build_context(
        self, found: PackageWithRepo, destination: Path, version: str
    ) -> TemplateContext:
        """Build the variables every template of this install is rendered with.

        Raises:
            ModuleDetectionError: If the project's module path is unknown.
        """
        package = found.package
        module = self.module_detector(self.project_root)
        try:
            package_path = destination.relative_to(self.project_root).as_posix()
        except ValueError:
            package_path = destination.as_posix()

        return TemplateContext(
            module=module,
            vpkg_name=package.name,
            namespace=package.namespace,
            pkg=package.short_name,
            package=to_identifier(package.short_name),
            package_path=package_path,
            version=version,
            author=package.author or found.repository_meta.author,
            time=datetime.now(timezone.utc).isoformat(timespec="seconds"),
            title=package.title,
            description=package.description,
        )

    @staticmethod
    def _resolve_version(name: str, requested: str, published: str) -> str:
        if not requested:
            return published
        if published and requested != published:
            log.warning(
                "Registry publishes %s at version %s; installing its files as %s",
                name,
                published,
                requested,
            )
        return requested

    # ------------------------------------------------------------------
    # Usage receipt
    # ------------------------------------------------------------------

    def print_usage_receipt(self, found: PackageWithRepo, context: TemplateContext) -> None:
        """Print how to use a freshly installed package."""
        package = found.package
        out = self.console
        import_line = f'   import {context.package} "{context.module}/{context.package_path}"'

        out.print(f"\n[bold green]✅ Package {escape(package.name)} installed successfully![/bold green]\n")

        if package.type == PackageType.FX_MODULE:
            out.print("[bold]Import the package:[/bold]")
            out.print(escape(import_line) + "\n", highlight=False)
            out.print("[bold]Wire into Fx application:[/bold]")
            out.print(
                "   app := fx.New(\n"
                f"       {escape(context.package)}.Module,\n"
                "       // ... other modules\n"
                "   )\n",
                highlight=False,
            )
            if package.dependencies:
                out.print("[bold]Dependencies to add:[/bold]")
                for dep in package.dependencies:
                    out.print(f"   go get {escape(dep)}", highlight=False)
                out.print()
        elif package.type == PackageType.CLI_COMMAND:
            out.print("[bold]Run as CLI command:[/bold]")
            out.print(escape(f"   vandor vpkg exec {package.name} [args]") + "\n", highlight=False)
            out.print("[bold]Or embed in your application:[/bold]")
            out.print(escape(import_line), highlight=False)
            out.print(
                f"   // Use {escape(context.package)}.Command() to get Cobra command\n",
                highlight=False,
            )
        else:
            raise ValueError(f"Unknown package type: {package.type!r}")

        out.print(f"See README in {escape(context.package_path)} for detailed usage instructions.")

    # ------------------------------------------------------------------
    # Installed packages
    # ------------------------------------------------------------------

    def remove(self, name: str, backup: bool = False) -> Path:
        """Remove an installed package; see ``InstalledPackageStore.remove``."""
        return self.store.remove(name, backup=backup)

    def list_installed(self) -> list[InstalledPackage]:
        return self.store.list_installed()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _find_package(self, name: str, registry: str | None) -> PackageWithRepo:
        # Repository files are addressed by their manifest URLs, so only the
        # lookup needs the alternate index.
        if not registry or registry == self.client.registry_url:
            return self.client.find_package(name)
        log.info("Looking up %s in registry %s", name, registry)
        with self.client.for_registry(registry) as client:
            return client.find_package(name)

    @staticmethod
    def _mkdir(path: Path) -> None:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise InstallFileError(str(path), str(exc)) from exc

    @staticmethod
    def _check_cancelled(cancel: threading.Event | None) -> None:
        if cancel is not None and cancel.is_set():
            raise InstallCancelledError("Installation cancelled")

    def _emit(
        self,
        step: InstallStep,
        progress: float,
        description: str,
        total_files: int = 0,
        processed: int = 0,
        error: str | None = None,
    ) -> None:
        if self.on_progress is None:
            return
        self.on_progress(
            ProgressEvent(
                step=step,
                progress=progress,
                description=description,
                total_files=total_files,
                processed=processed,
                error=error,
            )
        )
