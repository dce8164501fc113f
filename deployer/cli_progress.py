"""Console rendering and progress helpers for deployer CLI."""
from __future__ import annotations

import time
from typing import Any, Dict, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .models import FolderState, FolderUnit, StageResult, StageStatus
from .orchestrator.models import BatchResult, FolderReport

console = Console()

_STATE_STYLES = {
    FolderState.RELOCATED: ("MOVED", "green"),
    FolderState.COMPLETE: ("DONE", "yellow"),
    FolderState.PARTIALLY_DONE: ("PART", "yellow"),
    FolderState.PENDING: ("WAIT", "white"),
    FolderState.ERRORED_RETAINED: ("FAIL", "red"),
}

_STAGE_STYLES = {
    StageStatus.SUCCESS: ("OK", "green"),
    StageStatus.SKIPPED: ("SKIP", "dim"),
    StageStatus.FAILED: ("FAIL", "red"),
}


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]bulk-deploy[/bold green]",
        subtitle="[dim]deployer CLI[/dim]",
        border_style="blue",
    )
    console.print(panel)


def render_auth_report(statuses: Dict[str, Any]) -> None:
    """Render login state of each collaborator CLI."""
    table = Table(title="Authentication", show_header=True, header_style="bold")
    table.add_column("Provider")
    table.add_column("Status")
    table.add_column("Detail", style="dim")
    for status in statuses.values():
        label = "[green]OK[/green]" if status.ok else "[red]NO[/red]"
        table.add_row(status.provider, label, escape(status.detail or ""))
    console.print(table)


class BatchProgressDisplay:
    """Event-based console display for a deployment batch."""

    def __init__(self):
        self._started_at: Optional[float] = None
        self._folder_started: Dict[str, float] = {}

    def _emit_timeline(self, status: str, color: str, kind: str, name: str, detail: Optional[str] = None) -> None:
        stamp = time.strftime("%H:%M:%S")
        detail_label = f" [dim]{escape(detail)}[/dim]" if detail else ""
        console.print(
            f"[dim]{stamp}[/dim] [{color}]{status:<5}[/{color}] {kind}: {escape(name)}{detail_label}"
        )

    def on_batch_start(self, total: int) -> None:
        self._started_at = time.monotonic()
        console.print(f"\n[bold]Processing {total} folder(s)[/bold]\n")

    def on_folder_start(self, unit: FolderUnit, index: int, total: int) -> None:
        self._folder_started[unit.name] = time.monotonic()
        console.rule(f"[bold cyan][{index + 1}/{total}] {escape(unit.name)}[/bold cyan]", align="left")
        console.print(f"  [dim]identity={escape(unit.identity)} {unit.record.describe()}[/dim]")

    def on_stage_complete(self, unit: FolderUnit, result: StageResult) -> None:
        status, color = _STAGE_STYLES[result.status]
        detail = result.detail
        if result.status == StageStatus.SKIPPED:
            detail = "already done"
        self._emit_timeline(status, color, result.stage.label, unit.identity, detail)

    def on_folder_finish(self, report: FolderReport) -> None:
        status, color = _STATE_STYLES[report.state]
        started = self._folder_started.pop(report.folder_name, None)
        elapsed = f"{time.monotonic() - started:.1f}s" if started is not None else None
        detail = report.error or (str(report.destination) if report.destination else elapsed)
        self._emit_timeline(status, color, "folder", report.folder_name, detail)

    def on_batch_finish(self, result: BatchResult) -> None:
        table = Table(title="Summary", show_header=True, header_style="bold")
        table.add_column("Folder")
        table.add_column("Identity", style="cyan")
        table.add_column("State")
        table.add_column("Failed stages", style="red")
        for report in result.reports:
            status, color = _STATE_STYLES[report.state]
            failed = ", ".join(stage.label for stage in report.failed_stages)
            table.add_row(escape(report.folder_name), escape(report.identity or "-"), f"[{color}]{status}[/{color}]", failed)
        if result.reports:
            console.print(table)

        elapsed = ""
        if self._started_at is not None:
            elapsed = f" in {time.monotonic() - self._started_at:.1f}s"
        console.print(
            f"[bold]Finished[/bold] total={result.total} relocated={result.relocated} "
            f"pending={result.pending} errored={result.errored}{elapsed}"
        )

    def attach(self, orchestrator) -> None:
        """Subscribe all handlers to a PipelineOrchestrator."""
        orchestrator.on_batch_start(self.on_batch_start)
        orchestrator.on_folder_start(self.on_folder_start)
        orchestrator.on_stage_complete(self.on_stage_complete)
        orchestrator.on_folder_finish(self.on_folder_finish)
        orchestrator.on_batch_finish(self.on_batch_finish)
