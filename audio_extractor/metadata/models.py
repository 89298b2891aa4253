"""Metadata domain models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any


@dataclass
class AudioTechnicalMetadata:
    """Tags and stream properties of a single audio file."""

    title: str
    artist: str
    album: str
    genre_list: List[str] = field(default_factory=list)
    year: Optional[int] = None
    duration_seconds: float = 0.0
    bitrate_kbps: int = 0
    sample_rate_hz: int = 0
    channel_count: int = 0
    codec_name: str = "Unknown"
    container: str = ""
    is_lossless: bool = False
    file_size_bytes: int = 0
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None

    # Set when tags could not be read and stat-derived defaults were used
    fallback_reason: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.fallback_reason is not None

    @property
    def duration_str(self) -> str:
        """Human-readable duration string."""
        total = int(round(self.duration_seconds))
        return f"{total // 60}:{total % 60:02d}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "artist": self.artist,
            "album": self.album,
            "genre_list": list(self.genre_list),
            "year": self.year,
            "duration_seconds": self.duration_seconds,
            "bitrate_kbps": self.bitrate_kbps,
            "sample_rate_hz": self.sample_rate_hz,
            "channel_count": self.channel_count,
            "codec_name": self.codec_name,
            "container": self.container,
            "is_lossless": self.is_lossless,
            "file_size_bytes": self.file_size_bytes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "modified_at": self.modified_at.isoformat() if self.modified_at else None,
            "fallback_reason": self.fallback_reason,
        }
