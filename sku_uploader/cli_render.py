"""Console rendering and progress helpers for the sku-upload CLI."""
from __future__ import annotations

from typing import Any, Dict, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn, TaskID
from rich.table import Table

from .models import ProcessingResult, ProcessingStatus, RunResult
from .services.pattern_analyzer import PatternAnalysis

console = Console()

STATUS_STYLES = {
    ProcessingStatus.SUCCESS: ("green", "Success"),
    ProcessingStatus.ERROR: ("red", "Error"),
    ProcessingStatus.SKIPPED: ("yellow", "Skipped"),
    ProcessingStatus.DRY_RUN: ("cyan", "Dry Run (Not Uploaded)"),
}


def format_status(status: ProcessingStatus) -> str:
    style, label = STATUS_STYLES[status]
    return f"[{style}]{label}[/{style}]"


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    console.print(Panel(
        table,
        title="[bold green]sku-upload[/bold green]",
        subtitle="[dim]bulk product images[/dim]",
        border_style="blue",
    ))


def render_pattern_analysis(analysis: Optional[PatternAnalysis]) -> None:
    if analysis is None or not analysis.warnings:
        return

    header = (
        f"Most SKUs have {analysis.most_common_count} image(s) "
        f"({analysis.skus_with_expected_count}/{analysis.total_skus} SKUs)"
    )
    if not analysis.is_consistent_pattern:
        header += " [dim](no consistent pattern)[/dim]"

    lines = [header, ""]
    lines.extend(f"  [yellow]![/yellow] {escape(warning.describe())}" for warning in analysis.warnings)
    console.print(Panel("\n".join(lines), title="Possible missing images", border_style="yellow"))


def render_results(run_result: RunResult) -> None:
    table = Table(show_lines=False)
    table.add_column("Filename", style="bold")
    table.add_column("Detected SKU")
    table.add_column("Product")
    table.add_column("Status")
    table.add_column("Details", style="dim")

    for result in run_result.results:
        table.add_row(
            escape(result.filename),
            escape(result.detected_sku or "-"),
            escape(result.product_title or ("Yes" if result.product_found else "No")),
            format_status(result.status),
            escape(result.error_details or ""),
        )
    console.print(table)

    summary = run_result.summary
    style = "green" if run_result.success else "red"
    console.print(
        f"[{style}]{summary.total} file(s)[/{style}]: "
        f"{summary.successful} successful, {summary.failed} failed, "
        f"{summary.skipped} skipped, {summary.dry_run} dry-run"
    )


class RunProgressDisplay:
    """Progress bar advanced once per settled file."""

    def __init__(self, total: int):
        self.total = total
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.description}", justify="left"),
            BarColumn(bar_width=42),
            MofNCompleteColumn(),
            TextColumn("{task.fields[last]}"),
            console=console,
            transient=True,
        )
        self._task_id: Optional[TaskID] = None

    def __enter__(self):
        self._progress.start()
        self._task_id = self._progress.add_task("Processing", total=self.total, last="")
        return self

    def __exit__(self, *args):
        self._progress.stop()

    def on_result(self, result: ProcessingResult) -> None:
        if self._task_id is None:
            return
        mark = "✓" if result.status is not ProcessingStatus.ERROR else "✗"
        self._progress.update(self._task_id, advance=1, last=f"{mark} {escape(result.filename)}")
