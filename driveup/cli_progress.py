"""Console rendering and progress helpers for driveup CLI."""
from __future__ import annotations

from typing import Any, Dict, Optional
import time

from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.table import Table

from .listing import DirectoryListing
from .models import DrainSummary, UploadResult, UploadTask
from .orchestrator.registry import ProgressEntry


console = Console()


def _human_size(value: Optional[int]) -> str:
    if value is None:
        return "-"
    size = float(max(value, 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_idx = 0
    while size >= 1024.0 and unit_idx < len(units) - 1:
        size /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(size)} {units[unit_idx]}"
    return f"{size:.2f} {units[unit_idx]}"


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else escape(str(value))
        table.add_row(escape(key), rendered)

    panel = Panel(
        table,
        title="[bold green]drive-up[/bold green]",
        subtitle="[dim]upload queue[/dim]",
        border_style="blue",
    )
    console.print(panel)


def render_listing(listing: DirectoryListing) -> None:
    """Print the directory as the server reports it after reconciliation."""
    if listing.error_message:
        console.print(f"[red]{escape(listing.error_message)}[/red]")

    crumbs = " / ".join(escape(str(p.get("name", "?"))) for p in listing.path if isinstance(p, dict))
    title = escape(listing.name) + (f"  [dim]({crumbs})[/dim]" if crumbs else "")

    if listing.is_empty:
        console.print(f"[bold]{title}[/bold]: this folder is empty.")
        return

    table = Table(title=title, title_justify="left")
    table.add_column("Kind", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Size", justify="right")
    for directory in listing.directories:
        table.add_row("dir", escape(directory.name), "")
    for entry in listing.files:
        name = escape(entry.name)
        if entry.placeholder:
            name += " [yellow](uploading)[/yellow]"
        table.add_row(entry.kind, name, _human_size(entry.size))
    console.print(table)


class QueueProgressDisplay:
    """Event-based console display for the upload queue."""

    def __init__(self):
        self._active_tasks: Dict[str, TaskID] = {}
        self._live: Optional[Live] = None
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold green]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            expand=False,
            console=console,
        )

    def _emit_timeline(self, status: str, result: UploadResult) -> None:
        stamp = time.strftime("%H:%M:%S")
        size_label = f" {_human_size(result.size)}" if result.size else ""
        error_label = f" cause={escape(result.error)}" if result.error else ""
        color = {"DONE": "green", "FAIL": "red", "STOP": "yellow"}.get(status, "white")
        console.print(
            f"[dim]{stamp}[/dim] [{color}]{status:<4}[/{color}] "
            f"file: {escape(result.filename)}{size_label}{error_label}"
        )

    def _start_live(self) -> None:
        if self._live is not None:
            return
        self._live = Live(
            self._progress,
            console=console,
            refresh_per_second=8,
            vertical_overflow="visible",
        )
        self._live.start()

    def stop(self) -> None:
        if self._live is None:
            return
        self._live.stop()
        self._live = None

    def _drop_task(self, task_id: str) -> None:
        progress_id = self._active_tasks.pop(task_id, None)
        if progress_id is not None:
            self._progress.remove_task(progress_id)

    def on_task_start(self, task: UploadTask) -> None:
        self._start_live()
        self._active_tasks[task.id] = self._progress.add_task(
            "upload",
            label=escape(task.name[:60]),
            total=max(task.size, 1),
        )

    def on_task_progress(self, task: UploadTask, entry: ProgressEntry) -> None:
        progress_id = self._active_tasks.get(task.id)
        if progress_id is None:
            return
        total = max(task.size, 1)
        self._progress.update(progress_id, completed=total * entry.percent / 100.0, total=total)

    def on_task_complete(self, result: UploadResult) -> None:
        self._drop_task(result.task_id)
        self._emit_timeline("DONE", result)

    def on_task_fail(self, result: UploadResult) -> None:
        self._drop_task(result.task_id)
        self._emit_timeline("FAIL", result)

    def on_task_cancel(self, result: UploadResult) -> None:
        self._drop_task(result.task_id)
        self._emit_timeline("STOP", result)

    def on_drain(self, summary: DrainSummary) -> None:
        self.stop()
        console.print(
            f"[bold]Finished[/bold] uploaded={summary.completed} total={summary.total} "
            f"failed={summary.failed} cancelled={summary.cancelled}"
        )

    def attach(self, drive) -> None:
        """Subscribe to every queue event of an UploadOrchestrator."""
        drive.on("task_start", self.on_task_start)
        drive.on("task_progress", self.on_task_progress)
        drive.on("task_complete", self.on_task_complete)
        drive.on("task_fail", self.on_task_fail)
        drive.on("task_cancel", self.on_task_cancel)
        drive.on("drain", self.on_drain)
