"""Installed-package bookkeeping.

Every install writes one metadata file at the root of its destination
directory.  There is no central database: the store answers "what is
installed" by walking the install subtree for those files, which makes it a
pure filesystem component that works offline.
"""

from __future__ import annotations

import logging
import shutil
from datetime import datetime
from pathlib import Path

import yaml

from vpkg.config import VpkgConfig
from vpkg.errors import InstallFileError, PackageNotInstalledError
from vpkg.installer.models import InstalledPackage
from vpkg.utils import load_yaml, save_yaml

log = logging.getLogger(__name__)

BACKUP_TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"


class InstalledPackageStore:
    """Lists, finds and removes packages installed under one project root."""

    def __init__(self, project_root: str | Path, *, config: VpkgConfig | None = None) -> None:
        self.project_root = Path(project_root)
        self.config = config or VpkgConfig()

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @property
    def install_root(self) -> Path:
        """Directory holding every package installed at its default location."""
        return self.project_root / self.config.install_root

    def default_path(self, name: str) -> Path:
        """Conventional install directory for package *name*."""
        return self.install_root / name

    # ------------------------------------------------------------------
    # Metadata I/O
    # ------------------------------------------------------------------

    def write_metadata(self, destination: str | Path, installed: InstalledPackage) -> Path:
        """Write *installed* as the metadata file inside *destination*."""
        path = Path(destination) / self.config.metadata_filename
        return save_yaml(installed.model_dump(mode="json"), path)

    def load_metadata(self, path: str | Path) -> InstalledPackage:
        """Parse one metadata file.

        Raises:
            OSError, yaml.YAMLError, ValueError: If the file is unreadable
                or is not a valid install record.
        """
        return InstalledPackage.model_validate(load_yaml(path))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_installed(self) -> list[InstalledPackage]:
        """Return every package with a readable metadata file under the install root.

        A corrupt or foreign metadata file is skipped so that one bad record
        does not hide the rest.  Backups made by ``remove`` are not listed.
        """
        if not self.install_root.is_dir():
            return []

        installed: list[InstalledPackage] = []
        for meta_path in sorted(self.install_root.rglob(self.config.metadata_filename)):
            if not meta_path.is_file() or self._is_backup(meta_path):
                continue
            try:
                installed.append(self.load_metadata(meta_path))
            except (OSError, yaml.YAMLError, ValueError) as exc:
                # ValidationError is a ValueError subclass.
                log.debug("Ignoring unreadable package metadata %s: %s", meta_path, exc)
        return installed

    def _is_backup(self, meta_path: Path) -> bool:
        relative = meta_path.parent.relative_to(self.install_root)
        return any(".backup." in part for part in relative.parts)

    def find_installed(self, name: str) -> InstalledPackage | None:
        """Return the installed record for *name*, or ``None``."""
        for package in self.list_installed():
            if package.name == name:
                return package
        return None

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def remove(self, name: str, backup: bool = False) -> Path:
        """Remove an installed package.

        With *backup*, the directory is renamed to
        ``<path>.backup.<YYYYmmdd-HHMMSS>`` instead of being deleted, and the
        backup path is returned.  Otherwise the directory tree is deleted and
        its former path is returned.

        Raises:
            PackageNotInstalledError: If *name* does not denote a package
                directory below the install root.
            InstallFileError: If the directory cannot be renamed or deleted.
        """
        path = self._package_dir(name)

        if backup:
            stamp = datetime.now().strftime(BACKUP_TIMESTAMP_FORMAT)
            backup_path = path.with_name(f"{path.name}.backup.{stamp}")
            if backup_path.exists():
                raise InstallFileError(str(backup_path), "backup already exists")
            try:
                path.rename(backup_path)
            except OSError as exc:
                raise InstallFileError(str(path), str(exc)) from exc
            log.info("Package %s backed up to %s", name, backup_path)
            return backup_path

        try:
            shutil.rmtree(path)
        except OSError as exc:
            raise InstallFileError(str(path), str(exc)) from exc
        log.info("Package %s removed", name)
        return path

    def _package_dir(self, name: str) -> Path:
        """Return the directory of package *name*, refusing anything else.

        The directory must lie strictly below the install root and either be
        named ``namespace/id`` or hold a metadata file, so a bare namespace
        or the root itself is never treated as a package.
        """
        path = self.default_path(name)
        root = self.install_root.resolve()
        resolved = path.resolve()
        if resolved == root or root not in resolved.parents or not resolved.is_dir():
            raise PackageNotInstalledError(name)

        parts = name.split("/")
        qualified = len(parts) == 2 and all(part not in ("", ".", "..") for part in parts)
        if not qualified and not (resolved / self.config.metadata_filename).is_file():
            raise PackageNotInstalledError(name)
        return path
