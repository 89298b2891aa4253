"""Processing domain models."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, List, Dict, Any

from ..metadata.models import AudioTechnicalMetadata
from ..storage.models import DiscoveredAudioFile


class Stage(Enum):
    """Per-item processing stages, in execution order."""

    COPY = "copy"
    METADATA = "metadata"
    NORMALIZE = "normalize"
    WAVEFORM = "waveform"
    PREVIEW = "preview"
    CANCEL = "cancel"
    BATCH = "batch"


class TranscodeKind(Enum):
    """Jobs an external transcoder knows how to run."""

    NORMALIZE = "normalize"
    WAVEFORM = "waveform"
    PREVIEW = "preview"


@dataclass(frozen=True)
class TranscodeJob:
    """One external transcoding invocation."""

    kind: TranscodeKind
    input_path: Path
    output_path: Path
    width: int = 0
    height: int = 0
    duration_seconds: int = 0
    bitrate_kbps: int = 0


@dataclass
class StageError:
    """A failure recorded against one stage of an item."""

    stage: Stage
    message: str
    kind: str

    @classmethod
    def from_exception(cls, stage: Stage, error: BaseException) -> "StageError":
        return cls(stage=stage, message=str(error), kind=type(error).__name__)

    def to_dict(self) -> Dict[str, Any]:
        return {"stage": self.stage.value, "message": self.message, "kind": self.kind}


@dataclass
class SkippedStage:
    """A stage that was not attempted, and why."""

    stage: Stage
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"stage": self.stage.value, "reason": self.reason}


@dataclass
class ProcessingArtifacts:
    """Files produced for an item. Only paths that exist are set."""

    original_copy_path: Optional[Path] = None
    normalized_audio_path: Optional[Path] = None
    waveform_image_path: Optional[Path] = None
    preview_clip_path: Optional[Path] = None
    metadata_json_path: Optional[Path] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            name: str(value) if value is not None else None
            for name, value in (
                ("original_copy_path", self.original_copy_path),
                ("normalized_audio_path", self.normalized_audio_path),
                ("waveform_image_path", self.waveform_image_path),
                ("preview_clip_path", self.preview_clip_path),
                ("metadata_json_path", self.metadata_json_path),
            )
        }

    @property
    def paths(self) -> List[Path]:
        return [
            path
            for path in (
                self.original_copy_path,
                self.normalized_audio_path,
                self.waveform_image_path,
                self.preview_clip_path,
                self.metadata_json_path,
            )
            if path is not None
        ]


@dataclass
class ProcessingResult:
    """Outcome of running one discovered file through the item stages."""

    item_id: str
    source_file: DiscoveredAudioFile
    metadata: Optional[AudioTechnicalMetadata] = None
    artifacts: ProcessingArtifacts = field(default_factory=ProcessingArtifacts)
    errors: List[StageError] = field(default_factory=list)
    skipped: List[SkippedStage] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.errors

    def add_error(self, stage: Stage, error: BaseException) -> None:
        self.errors.append(StageError.from_exception(stage, error))

    def skip(self, stage: Stage, reason: str) -> None:
        self.skipped.append(SkippedStage(stage=stage, reason=reason))

    def error_for(self, stage: Stage) -> Optional[StageError]:
        for error in self.errors:
            if error.stage == stage:
                return error
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "source_file": self.source_file.to_dict(),
            "metadata": self.metadata.to_dict() if self.metadata else None,
            "artifacts": self.artifacts.to_dict(),
            "errors": [error.to_dict() for error in self.errors],
            "skipped": [skipped.to_dict() for skipped in self.skipped],
        }
