"""Project root location and module detection."""

from __future__ import annotations

import re
from pathlib import Path

import yaml

from vpkg.errors import ModuleDetectionError, ProjectRootNotFoundError

DEFAULT_MARKERS: tuple[str, ...] = ("go.mod", "vandor-config.yaml")

_MODULE_RE = re.compile(r"^\s*module\s+(\S+)", re.MULTILINE)


def find_project_root(
    start: str | Path | None = None,
    markers: list[str] | tuple[str, ...] = DEFAULT_MARKERS,
) -> Path:
    """Walk upward from *start* (default: cwd) to the first directory holding a marker.

    Raises:
        ProjectRootNotFoundError: If the filesystem root is reached first.
    """
    origin = Path(start).resolve() if start is not None else Path.cwd().resolve()
    for directory in (origin, *origin.parents):
        if any((directory / marker).is_file() for marker in markers):
            return directory
    raise ProjectRootNotFoundError(str(origin), list(markers))


def detect_module(project_root: str | Path) -> str:
    """Return the module path of the project at *project_root*.

    Reads the ``module`` directive from ``go.mod``; falls back to
    ``project.module`` in ``vandor-config.yaml``.

    Raises:
        ModuleDetectionError: If neither file yields a module path.
    """
    root = Path(project_root)

    go_mod = root / "go.mod"
    if go_mod.is_file():
        match = _MODULE_RE.search(go_mod.read_text(encoding="utf-8"))
        if match:
            return match.group(1).strip('"')

    config_file = root / "vandor-config.yaml"
    if config_file.is_file():
        try:
            data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ModuleDetectionError(f"Cannot parse {config_file}: {exc}") from exc
        project = data.get("project") if isinstance(data, dict) else None
        if isinstance(project, dict) and project.get("module"):
            return str(project["module"])

    raise ModuleDetectionError(f"Cannot determine the module path of the project at {root}")
