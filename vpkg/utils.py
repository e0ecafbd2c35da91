"""Shared utility functions for vpkg.

Provides YAML I/O, identifier helpers, and the Rich-based console output
shared by the command line front end and the installer's usage receipt.
Everything else in the library logs, and the CLI routes logging through the
same Rich console.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

console = Console()


# ---------------------------------------------------------------------------
# String / name helpers
# ---------------------------------------------------------------------------


def sanitize_name(name: str) -> str:
    """Convert an arbitrary package name to a safe directory/slug name.

    * Lowercases the input.
    * Replaces spaces and non-alphanumeric characters (except hyphens and
      underscores) with hyphens.
    * Collapses consecutive hyphens and strips leading/trailing hyphens.

    Examples::

        sanitize_name("Redis Cache") -> "redis-cache"
        sanitize_name("  2FA (TOTP)  ") -> "2fa-totp"
    """
    result = re.sub(r"[^a-zA-Z0-9_-]", "-", name.strip().lower())
    result = re.sub(r"-+", "-", result)
    return result.strip("-")


def to_identifier(name: str) -> str:
    """Convert a package id into a lowercase identifier usable as a Go package name.

    Hyphens are dropped rather than replaced, so ``redis-cache`` becomes
    ``rediscache``.  Any other character outside ``[a-z0-9_]`` is removed and a
    leading digit is prefixed with ``pkg``.

    Examples::

        to_identifier("redis-cache") -> "rediscache"
        to_identifier("2fa") -> "pkg2fa"
    """
    ident = re.sub(r"[^a-z0-9_]", "", name.replace("-", "").lower())
    if not ident:
        return "pkg"
    if ident[0].isdigit():
        ident = f"pkg{ident}"
    return ident


def truncate(text: str, length: int) -> str:
    """Shorten *text* to *length* characters, ending with ``...`` when cut."""
    if len(text) <= length:
        return text
    return text[: max(length - 3, 0)] + "..."


# ---------------------------------------------------------------------------
# YAML I/O
# ---------------------------------------------------------------------------


def load_yaml(path: str | Path) -> dict[str, Any]:
    """Load and parse a YAML mapping from disk.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        ValueError: If the document is not a mapping.
    """
    raw = Path(path).read_text(encoding="utf-8")
    data = yaml.safe_load(raw)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a YAML mapping, got {type(data).__name__}")
    return data


def save_yaml(data: dict[str, Any], path: str | Path) -> Path:
    """Write *data* as block-style YAML.  Parent directories are created."""
    file_path = Path(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    content = yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    file_path.write_text(content, encoding="utf-8")
    return file_path


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


def configure_logging(verbose: bool = False, target: Console | None = None) -> None:
    """Route ``logging`` through a Rich handler bound to the shared console."""
    handler = RichHandler(
        console=target or console,
        show_time=False,
        show_path=False,
        markup=False,
    )
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def print_summary_table(
    rows: list[list[str]],
    columns: list[str],
    title: str | None = None,
    target: Console | None = None,
) -> None:
    """Print a table with the given column headers."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*row)

    out = target or console
    out.print(table)


def print_success(message: str, target: Console | None = None) -> None:
    """Print a green success message."""
    (target or console).print(f"[bold green]{escape(message)}[/bold green]")


def print_error(message: str, target: Console | None = None) -> None:
    """Print a red error message."""
    (target or console).print(f"[bold red]{escape(message)}[/bold red]")


def print_warning(message: str, target: Console | None = None) -> None:
    """Print a yellow warning message."""
    (target or console).print(f"[bold yellow]{escape(message)}[/bold yellow]")
