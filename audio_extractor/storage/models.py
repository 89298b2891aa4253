"""Storage domain models."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Any, Optional

from ..core.config import Paths


@dataclass(frozen=True)
class DiscoveredAudioFile:
    """An audio file found on a volume. Identity is the absolute path."""

    absolute_path: Path
    file_name: str = field(compare=False)
    extension: str = field(compare=False)
    containing_directory: Path = field(compare=False)
    path_relative_to_volume_root: Path = field(compare=False)

    @classmethod
    def from_path(cls, path: Path, volume_root: Path) -> "DiscoveredAudioFile":
        return cls(
            absolute_path=path,
            file_name=path.name,
            extension=path.suffix.lower(),
            containing_directory=path.parent,
            path_relative_to_volume_root=path.relative_to(volume_root),
        )

    @property
    def stem(self) -> str:
        return Path(self.file_name).stem

    def to_dict(self) -> Dict[str, Any]:
        return {
            "absolute_path": str(self.absolute_path),
            "file_name": self.file_name,
            "extension": self.extension,
            "containing_directory": str(self.containing_directory),
            "path_relative_to_volume_root": str(self.path_relative_to_volume_root),
        }


@dataclass
class ExtractionLayout:
    """Directory layout for extraction artifacts under a single root."""

    root: Path

    @property
    def originals_dir(self) -> Path:
        return self.root / "originals"

    @property
    def processed_dir(self) -> Path:
        return self.root / "processed"

    @property
    def metadata_dir(self) -> Path:
        return self.root / "metadata"

    @property
    def waveforms_dir(self) -> Path:
        return self.root / "waveforms"

    @property
    def previews_dir(self) -> Path:
        return self.root / "previews"

    @property
    def temp_dir(self) -> Path:
        return self.root / "temp"

    @property
    def directories(self) -> List[Path]:
        return [
            self.originals_dir,
            self.processed_dir,
            self.metadata_dir,
            self.waveforms_dir,
            self.previews_dir,
            self.temp_dir,
        ]

    def ensure(self) -> "ExtractionLayout":
        """Create every artifact directory. Idempotent."""
        for directory in self.directories:
            Paths.ensure_dir(directory)
        return self

    def missing_directories(self) -> List[Path]:
        return [directory for directory in self.directories if not directory.is_dir()]


@dataclass
class DrivePreview:
    """Discovery-only view of a volume."""

    drive_path: Path
    files: List[DiscoveredAudioFile]
    files_by_directory: Dict[str, List[DiscoveredAudioFile]]
    by_format: Dict[str, int]
    skipped_directories: List[str] = field(default_factory=list)
    scanned_at: datetime = field(default_factory=datetime.now)

    @property
    def total_files(self) -> int:
        return len(self.files)

    @property
    def directory_count(self) -> int:
        return len(self.files_by_directory)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "drive_path": str(self.drive_path),
            "summary": {
                "total_files": self.total_files,
                "by_format": dict(self.by_format),
                "directories": self.directory_count,
            },
            "files_by_directory": {
                directory: [f.to_dict() for f in files]
                for directory, files in self.files_by_directory.items()
            },
            "skipped_directories": list(self.skipped_directories),
            "scanned_at": self.scanned_at.isoformat(),
        }


@dataclass
class HistoryEntry:
    """One persisted run summary, as listed by the history view."""

    filename: str
    timestamp: Optional[datetime]
    source: str
    total_discovered: int
    total_attempted: int
    success_count: int
    failure_count: int

    @property
    def success_rate(self) -> int:
        """Percentage of attempted items that succeeded."""
        if self.total_attempted <= 0:
            return 0
        return round(self.success_count / self.total_attempted * 100)
