"""Metadata probe for reading tags and stream properties."""

import logging
import os
import re
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

import mutagen

from .models import AudioTechnicalMetadata
from ..core.config import AudioConfig, FileConfig
from ..core.exceptions import MetadataError

logger = logging.getLogger(__name__)

# Candidate keys per field across Vorbis comments, ID3 frames, MP4 atoms and RIFF INFO
TAG_KEYS = {
    "title": ("title", "TIT2", "\xa9nam", "INAM"),
    "artist": ("artist", "TPE1", "\xa9ART", "IART"),
    "album": ("album", "TALB", "\xa9alb", "IPRD"),
    "genre": ("genre", "TCON", "\xa9gen", "IGNR"),
    "date": ("date", "TDRC", "\xa9day", "ICRD", "year"),
}

CODEC_BY_TYPE = {
    "MP3": "mp3",
    "EasyMP3": "mp3",
    "FLAC": "flac",
    "OggFLAC": "flac",
    "WAVE": "pcm",
    "AIFF": "pcm",
    "OggVorbis": "vorbis",
    "OggOpus": "opus",
    "AAC": "aac",
}

_YEAR = re.compile(r"(\d{4})")


class MetadataProbe:
    """Reads embedded tags and technical properties from a single file."""

    def probe(self, path: Path) -> AudioTechnicalMetadata:
        """Return metadata for ``path``. Never raises.

        If the tags cannot be parsed the result carries filename and stat
        derived defaults, so the item can still be identified and transcoded.
        """
        path = Path(path)
        size, created_at, modified_at = self._stat(path)
        try:
            metadata = self._read_tags(path)
        except Exception as e:
            reason = str(e) or type(e).__name__
            logger.warning("Falling back to default metadata for %s: %s", path.name, reason)
            metadata = self._fallback(path, reason)

        metadata.file_size_bytes = size
        metadata.created_at = created_at
        metadata.modified_at = modified_at
        return metadata

    def _read_tags(self, path: Path) -> AudioTechnicalMetadata:
        try:
            audio = mutagen.File(str(path))
        except mutagen.MutagenError as e:
            raise MetadataError("Failed to parse audio file", file_path=str(path), details=str(e))

        if audio is None:
            raise MetadataError("Unrecognized audio format", file_path=str(path))

        info = audio.info
        tags = audio.tags
        codec = self._codec_name(audio)

        genres = []
        for value in _tag_values(tags, TAG_KEYS["genre"]):
            genres.extend(g.strip() for g in value.split(";") if g.strip())

        return AudioTechnicalMetadata(
            title=_first(tags, TAG_KEYS["title"]) or path.stem,
            artist=_first(tags, TAG_KEYS["artist"]) or FileConfig.UNKNOWN_ARTIST,
            album=_first(tags, TAG_KEYS["album"]) or FileConfig.UNKNOWN_ALBUM,
            genre_list=list(dict.fromkeys(genres)),
            year=_parse_year(_first(tags, TAG_KEYS["date"])),
            duration_seconds=round(float(getattr(info, "length", 0) or 0), 3),
            bitrate_kbps=int(round((getattr(info, "bitrate", 0) or 0) / 1000)),
            sample_rate_hz=int(getattr(info, "sample_rate", 0) or 0),
            channel_count=int(getattr(info, "channels", 0) or 0),
            codec_name=codec,
            container=path.suffix.lower().lstrip("."),
            is_lossless=codec in AudioConfig.LOSSLESS_CODECS,
        )

    def _codec_name(self, audio) -> str:
        type_name = type(audio).__name__
        if type_name in ("MP4", "EasyMP4"):
            codec = str(getattr(audio.info, "codec", "") or "").lower()
            return "alac" if codec.startswith("alac") else "aac"
        return CODEC_BY_TYPE.get(type_name, type_name.lower())

    def _fallback(self, path: Path, reason: str) -> AudioTechnicalMetadata:
        return AudioTechnicalMetadata(
            title=path.stem,
            artist=FileConfig.UNKNOWN_ARTIST,
            album=FileConfig.UNKNOWN_ALBUM,
            codec_name=FileConfig.UNKNOWN_CODEC,
            container=path.suffix.lower().lstrip("."),
            fallback_reason=reason,
        )

    def _stat(self, path: Path) -> Tuple[int, Optional[datetime], Optional[datetime]]:
        try:
            stat = os.stat(path)
        except OSError as e:
            logger.debug("Cannot stat %s: %s", path, e)
            return 0, None, None

        created = getattr(stat, "st_birthtime", stat.st_ctime)
        return (
            stat.st_size,
            datetime.fromtimestamp(created),
            datetime.fromtimestamp(stat.st_mtime),
        )


def _tag_values(tags, keys) -> List[str]:
    """All string values stored under the first key that is present."""
    if not tags:
        return []
    for key in keys:
        try:
            value = tags[key]
        except (KeyError, ValueError, TypeError):
            continue

        # ID3 frames keep their values in .text
        value = getattr(value, "text", value)
        if isinstance(value, (list, tuple)):
            values = [str(v).strip() for v in value]
        else:
            values = [str(value).strip()]
        values = [v for v in values if v]
        if values:
            return values
    return []


def _first(tags, keys) -> Optional[str]:
    values = _tag_values(tags, keys)
    return values[0] if values else None


def _parse_year(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    match = _YEAR.search(value)
    return int(match.group(1)) if match else None
