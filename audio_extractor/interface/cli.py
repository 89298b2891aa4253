"""CLI commands for the audio extractor application."""

import json
import logging
import signal
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, List

import typer
from rich.console import Console
from rich.logging import RichHandler

from ..catalog.services import prepare_import
from ..core.cancellation import CancellationToken
from ..core.config import (
    AppInfo,
    BatchConfig,
    FileConfig,
    HistoryConfig,
    Paths,
    TranscodeConfig,
)
from ..core.exceptions import (
    AudioExtractorError,
    EntryExportError,
    StorageExhaustedError,
)
from ..pipeline.models import ExtractionOptions
from ..pipeline.services import ExtractionService
from ..processing.transcoder import FFmpegTranscoder
from ..storage.models import ExtractionLayout
from .display import ExtractionDisplay, ProgressTracker, InteractivePrompts

# Initialize Rich console and Typer app
console = Console()
app = typer.Typer(
    name=AppInfo.NAME,
    help=AppInfo.DESCRIPTION,
    rich_markup_mode="rich",
    no_args_is_help=True,
)

# Initialize display components
display = ExtractionDisplay(console)
progress = ProgressTracker(console)
prompts = InteractivePrompts(console)


def handle_error(error: Exception) -> None:
    """Centralized error handling."""
    if isinstance(error, AudioExtractorError):
        display.show_error_message(error.message)
        if error.details:
            console.print(f"[dim]Details: {error.details}[/dim]")
    else:
        display.show_error_message(f"Unexpected error: {str(error)}")

    raise typer.Exit(1)


def build_service(
    ctx: typer.Context, timeout: float = TranscodeConfig.DEFAULT_TIMEOUT_SECONDS
) -> ExtractionService:
    """Create the extraction service for the configured output directory."""
    output_dir = ctx.obj.get("output_dir") or Paths.get_output_dir()
    layout = ExtractionLayout(Path(output_dir))
    return ExtractionService(
        output_dir=layout.root,
        transcoder=FFmpegTranscoder(timeout=timeout, work_dir=layout.temp_dir),
    )


@contextmanager
def interrupt_cancels(token: CancellationToken):
    """Turn Ctrl+C into a cooperative cancellation for the duration."""

    def _handler(signum, frame):
        console.print("[yellow]Cancelling after in-flight items finish...[/yellow]")
        token.cancel("interrupted")

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield token
    finally:
        signal.signal(signal.SIGINT, previous)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose output"
    ),
    output_dir: Optional[Path] = typer.Option(
        None, "--output-dir", "-o", help="Root directory for extracted files"
    ),
):
    """Extract, normalize and catalog audio from removable media."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=verbose)],
        force=True,
    )

    # Store global configuration in context
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["output_dir"] = output_dir

    # Show app header only for non-help commands
    if ctx.invoked_subcommand and ctx.invoked_subcommand != "--help":
        display.show_app_header()


@app.command()
def drives(ctx: typer.Context):
    """List attached removable drives."""
    service = build_service(ctx)
    display.show_drives_table(service.scan())

    if service.drives.last_error is not None:
        display.show_warning_message(str(service.drives.last_error))


@app.command()
def preview(
    ctx: typer.Context,
    drive_path: Path = typer.Argument(help="Drive root or directory to scan"),
    max_depth: int = typer.Option(
        FileConfig.PREVIEW_MAX_DEPTH, "--max-depth", "-d", help="Maximum directory depth"
    ),
):
    """Show the audio files on a drive without processing anything."""
    try:
        service = build_service(ctx)
        with progress.processing_progress(f"Scanning {drive_path}..."):
            drive_preview = service.preview(drive_path, max_depth)

        if not drive_preview.files:
            display.show_warning_message(f"No audio files found on {drive_path}")
            return

        display.show_drive_preview(drive_preview)

    except AudioExtractorError as e:
        handle_error(e)


@app.command()
def extract(
    ctx: typer.Context,
    drive_path: Path = typer.Argument(help="Drive root or directory to extract from"),
    no_convert: bool = typer.Option(
        False, "--no-convert", help="Skip conversion to canonical WAV"
    ),
    no_waveform: bool = typer.Option(
        False, "--no-waveform", help="Skip waveform image rendering"
    ),
    no_preview: bool = typer.Option(
        False, "--no-preview", help="Skip preview clip generation"
    ),
    no_metadata: bool = typer.Option(
        False, "--no-metadata", help="Skip metadata extraction"
    ),
    batch_size: int = typer.Option(
        BatchConfig.DEFAULT_BATCH_SIZE,
        "--batch-size",
        "-b",
        help="Number of files processed concurrently",
    ),
    extensions: Optional[List[str]] = typer.Option(
        None, "--ext", "-e", help="Only process these extensions (repeatable)"
    ),
    directories: Optional[List[str]] = typer.Option(
        None, "--dir", help="Only process directories containing this text (repeatable)"
    ),
    pattern: Optional[str] = typer.Option(
        None, "--pattern", "-p", help="Regular expression matched against file names"
    ),
    max_depth: int = typer.Option(
        FileConfig.DEFAULT_MAX_DEPTH, "--max-depth", "-d", help="Maximum directory depth"
    ),
    artist_id: Optional[str] = typer.Option(
        None, "--artist-id", "-a", help="Artist id attached to the track entries"
    ),
    entries_out: Optional[Path] = typer.Option(
        None, "--entries-out", help="Write track entries as JSON to this file"
    ),
    timeout: float = typer.Option(
        TranscodeConfig.DEFAULT_TIMEOUT_SECONDS,
        "--timeout",
        "-t",
        help="ffmpeg timeout per job in seconds",
    ),
):
    """Extract and process every audio file on a drive."""
    try:
        options = ExtractionOptions(
            convert_to_canonical=not no_convert,
            generate_waveform=not no_waveform,
            generate_preview=not no_preview,
            extract_metadata=not no_metadata,
            batch_size=batch_size,
            extension_filter=tuple(extensions or ()),
            directory_filter=tuple(directories or ()),
            file_name_pattern_filter=pattern,
        )
        service = build_service(ctx, timeout)
        display.show_extraction_config(options)

        token = CancellationToken()
        try:
            with interrupt_cancels(token), progress.batch_progress(
                cancel_token=token
            ) as on_progress:
                outcome = service.extract(
                    drive_path,
                    options,
                    max_depth=max_depth,
                    artist_id=artist_id,
                    on_progress=on_progress,
                    cancel_token=token,
                )
        except StorageExhaustedError as e:
            if e.summary is not None:
                display.show_run_summary(e.summary)
            raise

        display.show_run_summary(outcome.summary)
        display.show_info_message(
            f"{len(outcome.track_entries)} track entr"
            f"{'y' if len(outcome.track_entries) == 1 else 'ies'} ready for import"
        )

        if entries_out:
            if artist_id:
                payload = prepare_import(outcome.track_entries, artist_id)
            else:
                payload = [entry.to_dict() for entry in outcome.track_entries]
            try:
                entries_out.parent.mkdir(parents=True, exist_ok=True)
                entries_out.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            except OSError as e:
                raise EntryExportError(
                    "Failed to write track entries", path=str(entries_out), details=str(e)
                )
            display.show_success_message(f"Track entries written to {entries_out}")

    except AudioExtractorError as e:
        handle_error(e)


@app.command("extract-wav")
def extract_wav(ctx: typer.Context):
    """Extract WAV files from every removable drive with fixed settings."""
    try:
        service = build_service(ctx)
        options = ExtractionOptions.offline_wav()
        attached = service.scan()

        if not attached:
            display.show_warning_message("No removable drives found")
            if service.drives.last_error is not None:
                console.print(f"[dim]{service.drives.last_error}[/dim]")
            return

        display.show_drives_table(attached)
        display.show_extraction_config(options)

        token = CancellationToken()
        with interrupt_cancels(token):
            for drive in attached:
                if token.cancelled:
                    break
                console.print(f"[blue]Processing drive {drive.display_name}[/blue]")

                def report(completed: int, total: int, percent: int) -> None:
                    console.print(f"  Progress: {percent}% ({completed}/{total})")

                outcome = service.extract(
                    Path(drive.path or drive.id),
                    options,
                    on_progress=report,
                    cancel_token=token,
                )
                display.show_run_summary(outcome.summary)

    except AudioExtractorError as e:
        handle_error(e)


@app.command()
def history(
    ctx: typer.Context,
    limit: int = typer.Option(
        HistoryConfig.DEFAULT_HISTORY_LIMIT, "--limit", "-n", help="Number of runs to show"
    ),
):
    """Show previous extraction runs."""
    try:
        display.show_history_table(build_service(ctx).history(limit))
    except AudioExtractorError as e:
        handle_error(e)


@app.command()
def cleanup(
    ctx: typer.Context,
    older_than_days: int = typer.Option(
        HistoryConfig.DEFAULT_CLEANUP_DAYS,
        "--older-than-days",
        help="Delete temporary files older than this many days",
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Remove stale temporary files left by interrupted runs."""
    service = build_service(ctx)
    if not yes and not prompts.confirm(
        f"Delete temporary files older than {older_than_days} days in "
        f"{service.layout.temp_dir}?"
    ):
        return

    deleted = service.cleanup(older_than_days)
    display.show_success_message(f"Cleaned up {deleted} temporary file(s)")


@app.command()
def doctor(ctx: typer.Context):
    """Verify ffmpeg and the output directory layout."""
    service = build_service(ctx)
    healthy = True

    ffmpeg = service.transcoder
    if ffmpeg.is_available():
        display.show_success_message(ffmpeg.version() or f"{ffmpeg.binary} found")
    else:
        healthy = False
        display.show_error_message(f"{ffmpeg.binary} not found on PATH")

    try:
        service.layout.ensure()
    except OSError as e:
        healthy = False
        display.show_error_message(f"Cannot create output layout: {e}")
    else:
        for directory in service.layout.directories:
            display.show_success_message(f"{directory}")

    if not healthy:
        raise typer.Exit(1)
    display.show_info_message("Setup looks good")
