"""Catalog domain models."""

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any


EXTRACTED_FROM = "removable_media"


@dataclass
class AudioFileReference:
    """The playable audio file a catalog entry points at."""

    path: str
    original_name: str
    size_bytes: int
    duration_seconds: float
    sample_rate_hz: int
    bitrate_kbps: int
    channel_count: int
    mime_type: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "original_name": self.original_name,
            "size_bytes": self.size_bytes,
            "duration_seconds": self.duration_seconds,
            "sample_rate_hz": self.sample_rate_hz,
            "bitrate_kbps": self.bitrate_kbps,
            "channel_count": self.channel_count,
            "mime_type": self.mime_type,
        }


@dataclass
class Provenance:
    """Where an entry came from."""

    original_path: str
    item_id: str
    codec: str
    lossless: bool
    extracted_from: str = EXTRACTED_FROM

    def to_dict(self) -> Dict[str, Any]:
        return {
            "extracted_from": self.extracted_from,
            "original_path": self.original_path,
            "item_id": self.item_id,
            "codec": self.codec,
            "lossless": self.lossless,
        }


@dataclass
class TrackEntryCandidate:
    """A successfully processed item, shaped for an external catalog."""

    title: str
    artist_name: str
    album: str
    audio_file: AudioFileReference
    provenance: Provenance
    artist_id: Optional[str] = None
    genre_list: List[str] = field(default_factory=list)
    waveform_image_path: Optional[str] = None
    preview_clip_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "artist_id": self.artist_id,
            "artist_name": self.artist_name,
            "album": self.album,
            "genre_list": list(self.genre_list),
            "audio_file": self.audio_file.to_dict(),
            "waveform_image_path": self.waveform_image_path,
            "preview_clip_path": self.preview_clip_path,
            "provenance": self.provenance.to_dict(),
        }
