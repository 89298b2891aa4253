"""Pipeline domain models."""

import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional, List, Dict, Any, Iterable, Tuple

from ..core.config import BatchConfig
from ..core.exceptions import ConfigurationError
from ..processing.models import ProcessingResult
from ..storage.models import DiscoveredAudioFile


@dataclass(frozen=True)
class ExtractionOptions:
    """Per-run configuration. Immutable for the duration of a run."""

    convert_to_canonical: bool = True
    generate_waveform: bool = True
    generate_preview: bool = True
    extract_metadata: bool = True
    batch_size: int = BatchConfig.DEFAULT_BATCH_SIZE
    directory_filter: Tuple[str, ...] = ()
    extension_filter: Tuple[str, ...] = ()
    file_name_pattern_filter: Optional[str] = None

    def __post_init__(self):
        """Validate and normalize configuration values."""
        if isinstance(self.batch_size, bool) or not isinstance(self.batch_size, int):
            raise ConfigurationError("Batch size must be an integer", parameter="batch_size")
        if not BatchConfig.MIN_BATCH_SIZE <= self.batch_size <= BatchConfig.MAX_BATCH_SIZE:
            raise ConfigurationError(
                f"Batch size must be between {BatchConfig.MIN_BATCH_SIZE} "
                f"and {BatchConfig.MAX_BATCH_SIZE}",
                parameter="batch_size",
            )

        extensions = tuple(
            ext.lower() if ext.startswith(".") else f".{ext.lower()}"
            for ext in (e.strip() for e in self.extension_filter)
            if ext
        )
        directories = tuple(d.strip() for d in self.directory_filter if d.strip())
        object.__setattr__(self, "extension_filter", extensions)
        object.__setattr__(self, "directory_filter", directories)

        pattern = None
        if self.file_name_pattern_filter:
            try:
                pattern = re.compile(self.file_name_pattern_filter, re.IGNORECASE)
            except re.error as e:
                raise ConfigurationError(
                    "Invalid file name pattern",
                    parameter="file_name_pattern_filter",
                    details=str(e),
                )
        object.__setattr__(self, "_pattern", pattern)

    @classmethod
    def offline_wav(cls) -> "ExtractionOptions":
        """Fixed options of the unattended WAV extraction entry point."""
        return cls(
            convert_to_canonical=True,
            generate_waveform=True,
            generate_preview=False,
            extract_metadata=True,
            batch_size=3,
            extension_filter=(".wav",),
        )

    @property
    def has_filters(self) -> bool:
        return bool(self.directory_filter or self.extension_filter or self._pattern)

    def matches(self, audio_file: DiscoveredAudioFile) -> bool:
        """All configured filters must accept the file."""
        if self.extension_filter and audio_file.extension not in self.extension_filter:
            return False
        if self.directory_filter:
            directory = str(audio_file.containing_directory).lower()
            if not any(d.lower() in directory for d in self.directory_filter):
                return False
        if self._pattern is not None and not self._pattern.search(audio_file.file_name):
            return False
        return True

    def select(self, files: Iterable[DiscoveredAudioFile]) -> List[DiscoveredAudioFile]:
        return [f for f in files if self.matches(f)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "convert_to_canonical": self.convert_to_canonical,
            "generate_waveform": self.generate_waveform,
            "generate_preview": self.generate_preview,
            "extract_metadata": self.extract_metadata,
            "batch_size": self.batch_size,
            "directory_filter": list(self.directory_filter),
            "extension_filter": list(self.extension_filter),
            "file_name_pattern_filter": self.file_name_pattern_filter,
        }


@dataclass(frozen=True)
class ProgressEvent:
    """Cumulative progress, published once per completed batch."""

    completed: int
    total: int
    percent: int
    batch_number: int
    batch_count: int
    run_id: str = ""


@dataclass
class ExtractionRunSummary:
    """Outcome of one run. Persisted once and read-only afterwards."""

    run_id: str
    source_volume_id: str
    started_at: datetime
    total_discovered: int
    total_attempted: int
    success_count: int
    failure_count: int
    results: List[ProcessingResult] = field(default_factory=list)
    finished_at: Optional[datetime] = None
    cancelled: bool = False
    aborted: bool = False
    abort_reason: Optional[str] = None
    options: Optional[ExtractionOptions] = None
    summary_path: Optional[Path] = None

    @classmethod
    def from_results(
        cls,
        run_id: str,
        source_volume_id: str,
        started_at: datetime,
        total_discovered: int,
        results: List[ProcessingResult],
        cancelled: bool = False,
        options: Optional[ExtractionOptions] = None,
        abort_reason: Optional[str] = None,
    ) -> "ExtractionRunSummary":
        successes = sum(1 for result in results if result.succeeded)
        return cls(
            run_id=run_id,
            source_volume_id=source_volume_id,
            started_at=started_at,
            finished_at=datetime.now(),
            total_discovered=total_discovered,
            total_attempted=len(results),
            success_count=successes,
            failure_count=len(results) - successes,
            results=list(results),
            cancelled=cancelled,
            aborted=abort_reason is not None,
            abort_reason=abort_reason,
            options=options,
        )

    @property
    def successful_results(self) -> List[ProcessingResult]:
        return [result for result in self.results if result.succeeded]

    @property
    def failed_results(self) -> List[ProcessingResult]:
        return [result for result in self.results if not result.succeeded]

    @property
    def message(self) -> str:
        return f"Processed {self.success_count}/{self.total_attempted} files successfully"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "source_volume_id": self.source_volume_id,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "total_discovered": self.total_discovered,
            "total_attempted": self.total_attempted,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "cancelled": self.cancelled,
            "aborted": self.aborted,
            "abort_reason": self.abort_reason,
            "options": self.options.to_dict() if self.options else None,
            "results": [result.to_dict() for result in self.results],
        }
