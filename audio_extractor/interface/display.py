"""Rich console display components for the audio extractor."""

from contextlib import contextmanager
from typing import List, Optional
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    TaskProgressColumn,
    TimeElapsedColumn,
)
from rich.text import Text
from rich.align import Align

from ..core.cancellation import CancellationToken
from ..drives.models import RemovableDrive
from ..pipeline.models import ExtractionOptions, ExtractionRunSummary
from ..storage.models import DrivePreview, HistoryEntry
from ..core.config import AppInfo, ProgressConfig


class ExtractionDisplay:
    """Handles all rich console output for extraction operations."""

    def __init__(self, console: Optional[Console] = None):
        """Initialize with optional console instance."""
        self.console = console or Console()

    def show_app_header(self) -> None:
        """Display application header with branding."""
        header_text = Text()
        header_text.append(AppInfo.NAME.upper(), style="bold blue")
        header_text.append(f" v{AppInfo.VERSION}", style="dim")
        header_text.append(f"\n{AppInfo.DESCRIPTION}", style="italic")

        panel = Panel(Align.center(header_text), border_style="blue", padding=(1, 2))
        self.console.print(panel)

    def show_drives_table(self, drives: List[RemovableDrive]) -> None:
        """Display removable drives in a formatted table."""
        table = Table(title="Removable Drives")
        table.add_column("Drive", justify="center", style="cyan", no_wrap=True)
        table.add_column("Label", style="magenta")
        table.add_column("Path", style="green")

        for drive in drives:
            table.add_row(drive.id, drive.label, drive.path)

        self.console.print(table)

        if drives:
            self.console.print(
                f"\n[green]Found {len(drives)} removable drive(s)[/green]"
            )
        else:
            self.console.print("[red]No removable drives found![/red]")

    def show_drive_preview(self, preview: DrivePreview) -> None:
        """Display discovered files grouped by directory."""
        for directory, files in preview.files_by_directory.items():
            table = Table(title=directory, title_justify="left")
            table.add_column("File", style="magenta")
            table.add_column("Format", justify="center", style="cyan")
            table.add_column("Relative Path", style="dim")

            for audio_file in files:
                table.add_row(
                    audio_file.file_name,
                    audio_file.extension.lstrip(".").upper(),
                    str(audio_file.path_relative_to_volume_root),
                )
            self.console.print(table)

        formats = ", ".join(
            f"{ext.lstrip('.').upper()}: {count}"
            for ext, count in sorted(preview.by_format.items())
        )
        summary_lines = [
            f"Drive: {preview.drive_path}",
            f"Audio files: {preview.total_files}",
            f"Directories: {preview.directory_count}",
        ]
        if formats:
            summary_lines.append(f"Formats: {formats}")

        panel = Panel.fit(
            "[bold blue]Preview[/bold blue]\n" + "\n".join(summary_lines),
            border_style="blue",
        )
        self.console.print(panel)

        for directory in preview.skipped_directories:
            self.show_warning_message(f"Could not read {directory}")

    def show_extraction_config(self, options: ExtractionOptions) -> None:
        """Display the options a run will use."""
        stages = [
            name
            for name, enabled in (
                ("convert", options.convert_to_canonical),
                ("metadata", options.extract_metadata),
                ("waveform", options.generate_waveform),
                ("preview", options.generate_preview),
            )
            if enabled
        ]
        config_lines = [
            f"Stages: {', '.join(stages) or 'copy only'}",
            f"Batch Size: {options.batch_size}",
        ]
        if options.extension_filter:
            config_lines.append(f"Extensions: {', '.join(options.extension_filter)}")
        if options.directory_filter:
            config_lines.append(f"Directories: {', '.join(options.directory_filter)}")
        if options.file_name_pattern_filter:
            config_lines.append(f"Pattern: {options.file_name_pattern_filter}")

        panel = Panel.fit(
            "[bold blue]Extraction Configuration[/bold blue]\n"
            + " | ".join(config_lines),
            border_style="blue",
        )
        self.console.print(panel)

    def show_run_summary(self, summary: ExtractionRunSummary) -> None:
        """Display run totals and any failed items."""
        table = Table(title="Extraction Summary")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right", style="magenta")

        table.add_row("Discovered", str(summary.total_discovered))
        table.add_row("Attempted", str(summary.total_attempted))
        table.add_row("Succeeded", f"[green]{summary.success_count}[/green]")
        table.add_row("Failed", f"[red]{summary.failure_count}[/red]")
        self.console.print(table)

        if summary.aborted:
            self.show_error_message(f"Run aborted: {summary.abort_reason}")
        elif summary.cancelled:
            self.show_warning_message("Run was cancelled before all batches ran")

        if summary.failed_results:
            self.show_failed_items(summary)

        if summary.failure_count:
            self.show_warning_message(summary.message)
        else:
            self.show_success_message(summary.message)

        if summary.summary_path:
            self.console.print(f"[dim]Summary saved to: {summary.summary_path}[/dim]")

    def show_failed_items(self, summary: ExtractionRunSummary) -> None:
        table = Table(title="Failed Items")
        table.add_column("File", style="magenta")
        table.add_column("Stage", style="cyan")
        table.add_column("Error", style="red")

        for result in summary.failed_results:
            for error in result.errors:
                table.add_row(
                    result.source_file.file_name,
                    error.stage.value,
                    f"{error.kind}: {error.message}",
                )

        self.console.print(table)

    def show_history_table(self, entries: List[HistoryEntry]) -> None:
        """Display previous extraction runs, newest first."""
        if not entries:
            self.show_info_message("No extraction history yet")
            return

        table = Table(title="Extraction History")
        table.add_column("Started", style="cyan")
        table.add_column("Source", style="magenta")
        table.add_column("Attempted", justify="right", style="yellow")
        table.add_column("Succeeded", justify="right", style="green")
        table.add_column("Failed", justify="right", style="red")
        table.add_column("Success Rate", justify="right")

        for entry in entries:
            started = (
                entry.timestamp.strftime("%Y-%m-%d %H:%M:%S") if entry.timestamp else "—"
            )
            table.add_row(
                started,
                entry.source or "—",
                str(entry.total_attempted),
                str(entry.success_count),
                str(entry.failure_count),
                f"{entry.success_rate}%",
            )

        self.console.print(table)

    def show_success_message(self, message: str) -> None:
        """Display a success message."""
        self.console.print(f"[green]✓ {message}[/green]")

    def show_warning_message(self, message: str) -> None:
        """Display a warning message."""
        self.console.print(f"[yellow]⚠ {message}[/yellow]")

    def show_error_message(self, message: str) -> None:
        """Display an error message."""
        self.console.print(f"[red]✗ {message}[/red]")

    def show_info_message(self, message: str) -> None:
        """Display an informational message."""
        self.console.print(f"[blue]ℹ {message}[/blue]")


class ProgressTracker:
    """Manages progress bars and status updates."""

    def __init__(self, console: Optional[Console] = None):
        """Initialize with optional console instance."""
        self.console = console or Console()

    @contextmanager
    def processing_progress(self, description: str, total: Optional[int] = None):
        """Context manager for general processing progress."""
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn() if total else TextColumn(""),
            TaskProgressColumn() if total else TextColumn(""),
            console=self.console,
        ) as progress:
            task = progress.add_task(description, total=total)

            try:
                yield progress, task
            finally:
                progress.update(
                    task, description=f"✓ {description.replace('...', ' complete!')}"
                )

    @contextmanager
    def batch_progress(
        self,
        description: str = "Extracting audio files...",
        cancel_token: Optional[CancellationToken] = None,
    ):
        """Progress bar driven by per-batch ``(completed, total, percent)`` calls.

        Yields the callback to hand to the orchestrator. The final label tells
        a finished run from a cancelled or failed one.
        """
        with Progress(
            SpinnerColumn(ProgressConfig.SPINNER_STYLE),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(bar_width=ProgressConfig.PROGRESS_BAR_WIDTH),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            console=self.console,
        ) as progress:
            task = progress.add_task(description, total=None)

            def on_progress(completed: int, total: int, percent: int) -> None:
                progress.update(task, completed=completed, total=total)

            try:
                yield on_progress
            except BaseException:
                progress.update(
                    task, description=f"✗ {description.replace('...', ' failed')}"
                )
                raise

            if cancel_token is not None and cancel_token.cancelled:
                progress.update(
                    task, description=f"⚠ {description.replace('...', ' cancelled')}"
                )
            else:
                progress.update(
                    task, description=f"✓ {description.replace('...', ' complete!')}"
                )


class InteractivePrompts:
    """Handles interactive user prompts with rich formatting."""

    def __init__(self, console: Optional[Console] = None):
        """Initialize with optional console instance."""
        self.console = console or Console()

    def confirm(self, message: str, default: bool = True) -> bool:
        """Ask for yes/no confirmation."""
        suffix = " [Y/n]" if default else " [y/N]"
        response = (
            self.console.input(f"[yellow]{message}{suffix}:[/yellow] ").strip().lower()
        )

        if not response:
            return default

        return response in ("y", "yes", "true", "1")
