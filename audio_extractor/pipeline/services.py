"""Batch orchestration and the extraction service facade."""

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from .models import ExtractionOptions, ExtractionRunSummary, ProgressEvent
from .progress import ProgressPublisher
from ..catalog.models import TrackEntryCandidate
from ..catalog.services import TrackEntryProjector
from ..core.cancellation import CancellationToken
from ..core.config import FileConfig, HistoryConfig, Paths
from ..core.exceptions import (
    AudioExtractorError,
    BatchItemUnexpectedError,
    StorageExhaustedError,
)
from ..drives.models import RemovableDrive
from ..drives.services import DriveEnumerator, get_drive_enumerator
from ..processing.models import ProcessingResult, Stage
from ..processing.services import ItemProcessor
from ..processing.transcoder import FFmpegTranscoder, Transcoder
from ..storage.models import DiscoveredAudioFile, DrivePreview, ExtractionLayout, HistoryEntry
from ..storage.services import FileDiscoverer, SummaryStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, int], None]


def partition(items: Sequence, size: int) -> Iterator[Sequence]:
    """Consecutive slices of at most ``size`` items."""
    for start in range(0, len(items), size):
        yield items[start : start + size]


class BatchOrchestrator:
    """Runs items in sequential batches of bounded concurrency."""

    def __init__(
        self,
        layout: ExtractionLayout,
        processor: ItemProcessor,
        store: Optional[SummaryStore] = None,
        progress: Optional[ProgressPublisher] = None,
    ):
        self.layout = layout
        self.processor = processor
        self.store = store or SummaryStore(layout)
        self.progress = progress or ProgressPublisher()

    def run(
        self,
        files: List[DiscoveredAudioFile],
        options: ExtractionOptions,
        on_progress: Optional[ProgressCallback] = None,
        source_volume_id: str = "",
        cancel_token: Optional[CancellationToken] = None,
    ) -> ExtractionRunSummary:
        """Process ``files`` and persist the run summary.

        Batches run one after another; items inside a batch run concurrently
        on at most ``options.batch_size`` workers. ``on_progress`` receives
        ``(completed, total, percent)`` once after every batch.

        A ``StorageExhaustedError`` aborts the run once its batch settles; the
        partial summary is saved when possible and attached to the error.
        """
        run_id = uuid.uuid4().hex
        started_at = datetime.now()
        selected = options.select(files)
        total = len(selected)
        batches = list(partition(selected, options.batch_size))

        self.layout.ensure()
        logger.info(
            "Run %s: %d of %d discovered files selected, %d batch(es)",
            run_id,
            total,
            len(files),
            len(batches),
        )

        unsubscribe = None
        if on_progress is not None:

            def forward(event: ProgressEvent) -> None:
                # The publisher is shared by every run of this orchestrator
                if event.run_id == run_id:
                    on_progress(event.completed, event.total, event.percent)

            unsubscribe = self.progress.subscribe(forward)

        results: List[ProcessingResult] = []
        cancelled = False
        fatal: Optional[StorageExhaustedError] = None
        try:
            with ThreadPoolExecutor(
                max_workers=options.batch_size, thread_name_prefix="extract"
            ) as executor:
                for number, batch in enumerate(batches, 1):
                    if cancel_token is not None and cancel_token.cancelled:
                        logger.warning(
                            "Run %s cancelled before batch %d/%d",
                            run_id,
                            number,
                            len(batches),
                        )
                        cancelled = True
                        break

                    logger.info(
                        "Processing batch %d/%d (%d files)", number, len(batches), len(batch)
                    )
                    batch_results, fatal = self._run_batch(
                        executor, batch, options, cancel_token
                    )
                    results.extend(batch_results)
                    if fatal is not None:
                        break

                    completed = len(results)
                    self.progress.publish(
                        ProgressEvent(
                            completed=completed,
                            total=total,
                            percent=round(completed / total * 100),
                            batch_number=number,
                            batch_count=len(batches),
                            run_id=run_id,
                        )
                    )
        finally:
            if unsubscribe is not None:
                unsubscribe()

        summary = ExtractionRunSummary.from_results(
            run_id=run_id,
            source_volume_id=source_volume_id,
            started_at=started_at,
            total_discovered=len(files),
            results=results,
            cancelled=cancelled or bool(cancel_token and cancel_token.cancelled),
            options=options,
            abort_reason=fatal.message if fatal is not None else None,
        )

        if fatal is not None:
            logger.error(
                "Run %s aborted after %d item(s): %s", run_id, len(results), fatal
            )
            try:
                summary.summary_path = self.store.save(summary)
            except AudioExtractorError as e:
                logger.warning("Could not save summary of aborted run %s: %s", run_id, e)
            fatal.summary = summary
            raise fatal

        logger.info(
            "Extraction complete: %d succeeded, %d failed",
            summary.success_count,
            summary.failure_count,
        )
        summary.summary_path = self.store.save(summary)
        return summary

    def _run_batch(
        self,
        executor: ThreadPoolExecutor,
        batch: Sequence[DiscoveredAudioFile],
        options: ExtractionOptions,
        cancel_token: Optional[CancellationToken],
    ) -> Tuple[List[ProcessingResult], Optional[StorageExhaustedError]]:
        """Settled results of ``batch`` and the first storage exhaustion, if any."""
        futures = [
            (audio_file, executor.submit(self.processor.process, audio_file, options, cancel_token))
            for audio_file in batch
        ]

        results = []
        fatal: Optional[StorageExhaustedError] = None
        for audio_file, future in futures:
            try:
                results.append(future.result())
            except StorageExhaustedError as e:
                logger.error("Storage exhausted while processing %s: %s", audio_file.file_name, e)
                fatal = fatal or e
            except Exception as e:
                logger.exception("Unexpected failure processing %s", audio_file.file_name)
                results.append(self._unexpected_failure(audio_file, e))

        return results, fatal

    def _unexpected_failure(
        self, audio_file: DiscoveredAudioFile, error: Exception
    ) -> ProcessingResult:
        result = ProcessingResult(item_id=uuid.uuid4().hex, source_file=audio_file)
        wrapped = BatchItemUnexpectedError(
            "Batch processing failed",
            file_path=str(audio_file.absolute_path),
            details=f"{type(error).__name__}: {error}",
        )
        result.add_error(Stage.BATCH, wrapped)
        return result


@dataclass
class ExtractionOutcome:
    """What an extract call hands back to its caller."""

    summary: ExtractionRunSummary
    track_entries: List[TrackEntryCandidate] = field(default_factory=list)


class ExtractionService:
    """Facade over the pipeline for the CLI and any web layer."""

    def __init__(
        self,
        output_dir: Optional[Path] = None,
        transcoder: Optional[Transcoder] = None,
        drive_enumerator: Optional[DriveEnumerator] = None,
        discoverer: Optional[FileDiscoverer] = None,
        projector: Optional[TrackEntryProjector] = None,
    ):
        self.layout = ExtractionLayout(Path(output_dir) if output_dir else Paths.get_output_dir())
        self.transcoder = transcoder or FFmpegTranscoder(work_dir=self.layout.temp_dir)
        self.drives = drive_enumerator or get_drive_enumerator()
        self.discoverer = discoverer or FileDiscoverer()
        self.projector = projector or TrackEntryProjector()
        self.store = SummaryStore(self.layout)
        self.orchestrator = BatchOrchestrator(
            self.layout, ItemProcessor(self.layout, self.transcoder), self.store
        )

    @property
    def progress(self) -> ProgressPublisher:
        return self.orchestrator.progress

    def scan(self) -> List[RemovableDrive]:
        return self.drives.list_removable_drives()

    def preview(
        self, drive_path: Path, max_depth: int = FileConfig.PREVIEW_MAX_DEPTH
    ) -> DrivePreview:
        return self.discoverer.preview(Path(drive_path), max_depth)

    def extract(
        self,
        drive_path: Path,
        options: Optional[ExtractionOptions] = None,
        max_depth: int = FileConfig.DEFAULT_MAX_DEPTH,
        artist_id: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ExtractionOutcome:
        """Discover, process and project everything on ``drive_path``."""
        options = options or ExtractionOptions()
        logger.info("Scanning %s for audio files", drive_path)
        files = self.discoverer.discover(Path(drive_path), max_depth)
        summary = self.orchestrator.run(
            files,
            options,
            on_progress=on_progress,
            source_volume_id=str(drive_path),
            cancel_token=cancel_token,
        )
        return ExtractionOutcome(
            summary=summary, track_entries=self.projector.project(summary, artist_id)
        )

    def history(self, limit: int = HistoryConfig.DEFAULT_HISTORY_LIMIT) -> List[HistoryEntry]:
        return self.store.list_history(limit)

    def cleanup(self, older_than_days: int = HistoryConfig.DEFAULT_CLEANUP_DAYS) -> int:
        return self.store.cleanup_temp(older_than_days)
