"""vpkg command line interface.

Usage::

    vpkg list --tags cache,redis --type fx-module
    vpkg add vandor/redis-cache@1.0.0 --dest internal/cache --dry-run
    vpkg remove vandor/redis-cache --backup
    vpkg list-installed
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from rich.markup import escape

from vpkg.config import VpkgConfig
from vpkg.errors import ConfigError, VpkgError
from vpkg.installer import InstalledPackageStore, Installer, InstallOptions, ProgressReporter
from vpkg.installer.project import find_project_root
from vpkg.installer.spec import parse_package_spec
from vpkg.registry import ListOptions, PackageType, RegistryClient
from vpkg.utils import (
    configure_logging,
    console,
    print_error,
    print_success,
    print_summary_table,
    print_warning,
    truncate,
)


def build_client(config: VpkgConfig, registry_url: str | None = None) -> RegistryClient:
    """Create the registry client used by the registry-backed commands."""
    return RegistryClient(registry_url or config.registry_url, config=config)


def load_config(path: str | None = None) -> VpkgConfig:
    """Load settings from *path*, or from the environment when it is ``None``."""
    source = path or "VPKG_* environment variables"
    try:
        return VpkgConfig.load(Path(path)) if path else VpkgConfig.from_env()
    except (OSError, ValueError) as exc:
        # pydantic ValidationError and json errors are ValueErrors.
        raise ConfigError(source, str(exc)) from exc


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_list(args: argparse.Namespace, config: VpkgConfig) -> int:
    options = ListOptions(
        tags=args.tags,
        type=PackageType(args.type) if args.type else None,
    )
    with build_client(config, args.registry) as client:
        packages = client.list_packages(options)

    if not packages:
        print_warning("No packages found")
        return 0

    rows = [
        [
            escape(pkg.name),
            escape(pkg.version),
            pkg.type.value,
            escape(", ".join(pkg.tags)),
            escape(truncate(pkg.description, 60)),
        ]
        for pkg in packages
    ]
    print_summary_table(
        rows,
        ["Name", "Version", "Type", "Tags", "Description"],
        title="Available packages",
    )
    return 0


def cmd_add(args: argparse.Namespace, config: VpkgConfig) -> int:
    options = InstallOptions(
        registry=args.registry,
        dest=args.dest,
        force=args.force,
        dry_run=args.dry_run,
        version=args.version or "",
    )
    name, _ = parse_package_spec(args.package)

    with build_client(config, args.registry) as client:
        if options.dry_run:
            installer = Installer(client, config=config, console=console)
            result = installer.install(args.package, options)
        else:
            with ProgressReporter(name, console=console) as reporter:
                installer = Installer(client, config=config, console=console, on_progress=reporter)
                result = installer.install(args.package, options)

    if result.dry_run:
        for path in result.files:
            console.print(f"Would create: {escape(str(path))}", highlight=False, soft_wrap=True)
        print_success(
            f"Dry run: {len(result.files)} files for {result.package.name}@{result.version}"
        )
    return 0


def cmd_remove(args: argparse.Namespace, config: VpkgConfig) -> int:
    store = InstalledPackageStore(find_project_root(markers=config.project_markers), config=config)
    removed = store.remove(args.package, backup=args.backup)
    if args.backup:
        print_success(f"Package backed up to: {removed}")
    else:
        print_success(f"Package {args.package} removed successfully")
    return 0


def cmd_list_installed(args: argparse.Namespace, config: VpkgConfig) -> int:
    store = InstalledPackageStore(find_project_root(markers=config.project_markers), config=config)
    installed = store.list_installed()
    if not installed:
        print_warning("No packages installed")
        return 0

    rows = [
        [
            escape(pkg.name),
            escape(pkg.version),
            pkg.type.value,
            pkg.installed_at.strftime("%Y-%m-%d %H:%M"),
            escape(pkg.path),
        ]
        for pkg in installed
    ]
    print_summary_table(
        rows,
        ["Name", "Version", "Type", "Installed", "Path"],
        title="Installed packages",
    )
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vpkg",
        description="vpkg -- install code packages from a template registry",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  vpkg list --tags cache\n"
            "  vpkg add vandor/redis-cache@1.0.0 --dry-run\n"
            "  vpkg remove vandor/redis-cache --backup\n"
        ),
    )
    parser.add_argument(
        "--registry",
        default=None,
        help="Registry index URL (default: $VPKG_REGISTRY_URL or the public registry)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="JSON file saved with VpkgConfig.save (default: read VPKG_* environment variables)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show debug logging",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_list = sub.add_parser("list", help="List packages available in the registry")
    p_list.add_argument(
        "--tags",
        type=_split_csv,
        default=[],
        help="Comma-separated tags; packages matching any tag are shown",
    )
    p_list.add_argument(
        "--type",
        choices=[t.value for t in PackageType],
        default=None,
        help="Only show packages of this type",
    )
    p_list.set_defaults(func=cmd_list)

    p_add = sub.add_parser("add", help="Install a package into the current project")
    p_add.add_argument("package", help="Package spec: namespace/name[@version]")
    p_add.add_argument("--dest", default=None, help="Install destination (relative to the project root)")
    p_add.add_argument("--force", action="store_true", help="Overwrite an existing installation")
    p_add.add_argument("--dry-run", action="store_true", help="Show what would be installed")
    p_add.add_argument("--version", default=None, help="Version to install when the spec has none")
    p_add.set_defaults(func=cmd_add)

    p_remove = sub.add_parser("remove", help="Remove an installed package")
    p_remove.add_argument("package", help="Package name: namespace/name")
    p_remove.add_argument("--backup", action="store_true", help="Keep a timestamped backup")
    p_remove.set_defaults(func=cmd_remove)

    p_installed = sub.add_parser("list-installed", help="List packages installed in this project")
    p_installed.set_defaults(func=cmd_list_installed)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for ``vpkg``."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=args.verbose)

    try:
        config = load_config(args.config)
        return args.func(args, config)
    except VpkgError as exc:
        print_error(f"Error: {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
