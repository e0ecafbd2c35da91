"""Rich progress display for installs.

``ProgressReporter`` is an ``on_progress`` observer for ``Installer``: it keeps
one row per install step and updates it from each ``ProgressEvent``.
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from vpkg.installer.models import InstallStep, ProgressEvent
from vpkg.utils import console as default_console

STEP_LABELS: dict[InstallStep, str] = {
    InstallStep.DISCOVERY: "Discovery",
    InstallStep.DOWNLOAD: "Download",
    InstallStep.RENDER: "Render",
    InstallStep.INSTALL: "Install",
}


class ProgressReporter:
    """Render installer progress events as a Rich progress display.

    Usage::

        with ProgressReporter("vandor/redis-cache") as reporter:
            Installer(client, on_progress=reporter).install(spec, options)
    """

    def __init__(self, package_name: str, console: Console | None = None) -> None:
        self.package_name = package_name
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TimeElapsedColumn(),
            console=console or default_console,
            transient=False,
        )
        self.tasks: dict[InstallStep, TaskID] = {}
        self.failed: str | None = None

    def __enter__(self) -> "ProgressReporter":
        self.progress.console.print(f"Installing [bold]{escape(self.package_name)}[/bold]")
        self.progress.start()
        for step, label in STEP_LABELS.items():
            self.tasks[step] = self.progress.add_task(label, total=1.0)
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.progress.stop()

    def __call__(self, event: ProgressEvent) -> None:
        task_id = self.tasks.get(event.step)
        if task_id is None:
            return

        label = STEP_LABELS[event.step]
        description = f"{label}: {escape(event.description)}"
        if event.total_files:
            description += f" ({event.processed}/{event.total_files})"
        if event.error is not None:
            self.failed = event.error
            description = f"[red]{label}: {escape(event.error)}[/red]"

        self.progress.update(task_id, completed=event.progress, description=description)

        # Download and render only report per-file progress.
        if event.step == InstallStep.INSTALL and event.progress >= 1.0 and event.error is None:
            for other in (InstallStep.DOWNLOAD, InstallStep.RENDER):
                self.progress.update(self.tasks[other], completed=1.0)
