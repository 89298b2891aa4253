"""File management services: discovery, artifact writing and run summaries."""

import errno
import json
import logging
import os
import re
import shutil
from collections import Counter
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .models import DiscoveredAudioFile, DrivePreview, ExtractionLayout, HistoryEntry
from ..core.config import FileConfig, HistoryConfig, TranscodeConfig
from ..core.exceptions import DiscoveryError, StorageExhaustedError, SummaryStoreError

logger = logging.getLogger(__name__)

_STORAGE_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9\-_]")


def sanitize_filename(name: str) -> str:
    """Reduce a file stem to characters that are safe on every filesystem."""
    sanitized = _UNSAFE_CHARS.sub("_", name).strip("_")
    return sanitized[: FileConfig.MAX_STEM_LENGTH] or "audio"


def raise_if_storage_exhausted(error: OSError, path: Path) -> None:
    """Escalate out-of-space errors, which are fatal to the whole run."""
    if error.errno in _STORAGE_ERRNOS:
        raise StorageExhaustedError(
            "No space left on destination", path=str(path), details=str(error)
        ) from error


def partial_path_for(output_path: Path, work_dir: Optional[Path] = None) -> Path:
    """Temporary sibling path used while an artifact is being written."""
    directory = work_dir or output_path.parent
    return directory / (
        f"{output_path.stem}{TranscodeConfig.PARTIAL_MARKER}{output_path.suffix}"
    )


def discard_partial(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove partial file %s: %s", path, e)


def atomic_copy(source: Path, destination: Path, work_dir: Optional[Path] = None) -> Path:
    """Copy a file so that ``destination`` is either complete or absent."""
    partial = partial_path_for(destination, work_dir)
    try:
        shutil.copyfile(source, partial)
        os.replace(partial, destination)
    except OSError as e:
        discard_partial(partial)
        raise_if_storage_exhausted(e, destination)
        raise
    return destination


def write_json_atomic(path: Path, payload: Dict[str, Any]) -> Path:
    """Serialize ``payload`` to ``path`` via a temporary file."""
    partial = partial_path_for(path)
    try:
        with partial.open("w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2, ensure_ascii=False)
        os.replace(partial, path)
    except OSError as e:
        discard_partial(partial)
        raise_if_storage_exhausted(e, path)
        raise
    return path


class FileDiscoverer:
    """Recursively collects supported audio files below a volume root."""

    def __init__(self, supported_extensions: Optional[Iterable[str]] = None):
        extensions = supported_extensions or FileConfig.SUPPORTED_INPUT_FORMATS
        self.supported_extensions = {ext.lower() for ext in extensions}
        self.skipped_directories: List[DiscoveryError] = []

    def discover(
        self, root_path: Path, max_depth: int = FileConfig.DEFAULT_MAX_DEPTH
    ) -> List[DiscoveredAudioFile]:
        """Walk ``root_path`` depth-first, at most ``max_depth`` levels deep.

        Files directly inside the root are at depth 1. Entries keep the order
        the OS reports them in; sort the result if you need determinism.
        Unreadable directories are skipped and recorded in
        ``skipped_directories``.
        """
        root = Path(root_path)
        if not root.is_dir():
            raise DiscoveryError("Directory does not exist", directory=str(root))

        self.skipped_directories = []
        found: List[DiscoveredAudioFile] = []
        self._walk(root, root, 0, max_depth, found)
        logger.debug("Discovered %d audio files under %s", len(found), root)
        return found

    def _walk(
        self,
        directory: Path,
        root: Path,
        level: int,
        max_depth: int,
        found: List[DiscoveredAudioFile],
    ) -> None:
        if level >= max_depth:
            return

        try:
            with os.scandir(directory) as it:
                entries = list(it)
        except OSError as e:
            error = DiscoveryError(
                "Cannot read directory",
                directory=str(directory),
                details=e.strerror or str(e),
            )
            self.skipped_directories.append(error)
            logger.warning("Skipping %s: %s", directory, error.details)
            return

        for entry in entries:
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = not is_dir and entry.is_file()
            except OSError as e:
                logger.debug("Cannot stat %s: %s", entry.path, e)
                continue

            if is_dir:
                self._walk(Path(entry.path), root, level + 1, max_depth, found)
            elif is_file and self.is_supported(entry.name):
                found.append(DiscoveredAudioFile.from_path(Path(entry.path), root))

    def is_supported(self, file_name: str) -> bool:
        return Path(file_name).suffix.lower() in self.supported_extensions

    def preview(
        self, root_path: Path, max_depth: int = FileConfig.PREVIEW_MAX_DEPTH
    ) -> DrivePreview:
        """Discover without processing and group the result for display."""
        files = self.discover(root_path, max_depth)
        return DrivePreview(
            drive_path=Path(root_path),
            files=files,
            files_by_directory=group_by_directory(files),
            by_format=count_by_extension(files),
            skipped_directories=[e.directory for e in self.skipped_directories],
        )


def group_by_directory(
    files: Iterable[DiscoveredAudioFile],
) -> Dict[str, List[DiscoveredAudioFile]]:
    grouped: Dict[str, List[DiscoveredAudioFile]] = {}
    for audio_file in files:
        grouped.setdefault(str(audio_file.containing_directory), []).append(audio_file)
    return grouped


def count_by_extension(files: Iterable[DiscoveredAudioFile]) -> Dict[str, int]:
    return dict(Counter(audio_file.extension for audio_file in files))


class SummaryStore:
    """Persists run summaries as JSON and reads them back as history."""

    def __init__(self, layout: ExtractionLayout):
        self.layout = layout

    @property
    def directory(self) -> Path:
        return self.layout.metadata_dir

    def summary_path_for(self, started_at: datetime) -> Path:
        stamp = started_at.strftime(HistoryConfig.TIMESTAMP_FORMAT)
        return self.directory / f"{HistoryConfig.SUMMARY_PREFIX}{stamp}.json"

    def save(self, summary) -> Path:
        """Write ``summary`` once; returns the file it was written to."""
        path = self.summary_path_for(summary.started_at)
        self.directory.mkdir(parents=True, exist_ok=True)
        try:
            write_json_atomic(path, summary.to_dict())
        except StorageExhaustedError:
            raise
        except OSError as e:
            raise SummaryStoreError(
                "Failed to write run summary", path=str(path), details=str(e)
            )
        logger.info("Run summary saved to %s", path)
        return path

    def load(self, path: Path) -> Dict[str, Any]:
        try:
            with Path(path).open("r", encoding="utf-8") as fh:
                return json.load(fh)
        except (OSError, ValueError) as e:
            raise SummaryStoreError(
                "Failed to read run summary", path=str(path), details=str(e)
            )

    def list_history(
        self, limit: int = HistoryConfig.DEFAULT_HISTORY_LIMIT
    ) -> List[HistoryEntry]:
        """Persisted runs, newest first. Unreadable files are skipped."""
        if not self.directory.is_dir():
            return []

        entries = []
        for path in self.directory.glob(f"{HistoryConfig.SUMMARY_PREFIX}*.json"):
            try:
                entries.append(self._to_history_entry(path, self.load(path)))
            except (SummaryStoreError, KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping unreadable summary %s: %s", path.name, e)

        entries.sort(key=lambda entry: entry.timestamp or datetime.min, reverse=True)
        return entries[:limit]

    def _to_history_entry(self, path: Path, data: Dict[str, Any]) -> HistoryEntry:
        started_at = data.get("started_at")
        return HistoryEntry(
            filename=path.name,
            timestamp=datetime.fromisoformat(started_at) if started_at else None,
            source=data.get("source_volume_id", ""),
            total_discovered=int(data["total_discovered"]),
            total_attempted=int(data["total_attempted"]),
            success_count=int(data["success_count"]),
            failure_count=int(data["failure_count"]),
        )

    def cleanup_temp(
        self,
        older_than_days: int = HistoryConfig.DEFAULT_CLEANUP_DAYS,
        now: Optional[datetime] = None,
    ) -> int:
        """Delete leftover temporary files older than the cutoff."""
        temp_dir = self.layout.temp_dir
        if not temp_dir.is_dir():
            return 0

        cutoff = (now or datetime.now()) - timedelta(days=older_than_days)
        deleted = 0
        for path in temp_dir.iterdir():
            try:
                if not path.is_file():
                    continue
                if datetime.fromtimestamp(path.stat().st_mtime) < cutoff:
                    path.unlink()
                    deleted += 1
            except OSError as e:
                logger.warning("Failed to clean up %s: %s", path, e)

        logger.info("Cleaned up %d temporary files", deleted)
        return deleted
