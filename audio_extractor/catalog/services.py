"""Projection of run results into catalog track entries."""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .models import AudioFileReference, Provenance, TrackEntryCandidate
from ..core.config import FileConfig
from ..core.exceptions import MissingArtistError
from ..processing.models import ProcessingResult

logger = logging.getLogger(__name__)

PLACEHOLDER_GENRES = {"unknown", ""}


def mime_type_for(path: Path) -> str:
    return FileConfig.MIME_TYPES.get(Path(path).suffix.lower(), FileConfig.DEFAULT_MIME_TYPE)


class TrackEntryProjector:
    """Turns successful processing results into catalog candidates."""

    def __init__(self, reject_zero_duration: bool = True):
        self.reject_zero_duration = reject_zero_duration

    def project(self, summary, artist_id: Optional[str] = None) -> List[TrackEntryCandidate]:
        """One candidate per result with no errors and known metadata.

        Results with a zero duration are rejected unless the projector was
        built with ``reject_zero_duration=False``.
        """
        candidates = []
        for result in summary.results:
            if result.errors or result.metadata is None:
                continue
            if self.reject_zero_duration and result.metadata.duration_seconds <= 0:
                logger.info(
                    "Not projecting %s: duration unknown", result.source_file.file_name
                )
                continue

            audio_path = (
                result.artifacts.normalized_audio_path
                or result.artifacts.original_copy_path
            )
            if audio_path is None:
                continue
            candidates.append(self._to_candidate(result, audio_path, artist_id))

        logger.debug("Projected %d of %d results", len(candidates), len(summary.results))
        return candidates

    def _to_candidate(
        self, result: ProcessingResult, audio_path: Path, artist_id: Optional[str]
    ) -> TrackEntryCandidate:
        metadata = result.metadata
        artifacts = result.artifacts
        return TrackEntryCandidate(
            title=metadata.title,
            artist_id=artist_id,
            artist_name=metadata.artist,
            album=metadata.album,
            genre_list=[
                genre
                for genre in metadata.genre_list
                if genre.strip().lower() not in PLACEHOLDER_GENRES
            ],
            audio_file=AudioFileReference(
                path=str(audio_path),
                original_name=result.source_file.file_name,
                size_bytes=metadata.file_size_bytes,
                duration_seconds=metadata.duration_seconds,
                sample_rate_hz=metadata.sample_rate_hz,
                bitrate_kbps=metadata.bitrate_kbps,
                channel_count=metadata.channel_count,
                mime_type=mime_type_for(audio_path),
            ),
            waveform_image_path=(
                str(artifacts.waveform_image_path) if artifacts.waveform_image_path else None
            ),
            preview_clip_path=(
                str(artifacts.preview_clip_path) if artifacts.preview_clip_path else None
            ),
            provenance=Provenance(
                original_path=str(result.source_file.absolute_path),
                item_id=result.item_id,
                codec=metadata.codec_name,
                lossless=metadata.is_lossless,
            ),
        )


def prepare_import(
    candidates: Iterable[TrackEntryCandidate],
    artist_id: Optional[str] = None,
    default_status: str = "draft",
    make_public: bool = False,
) -> List[Dict[str, Any]]:
    """Build the payload handed to the catalog importer.

    An explicit ``artist_id`` wins over the one on each candidate.
    """
    payload = []
    for candidate in candidates:
        resolved = artist_id or candidate.artist_id
        if not resolved:
            raise MissingArtistError(
                "Artist ID is required for track import",
                item_id=candidate.provenance.item_id,
            )
        entry = candidate.to_dict()
        entry["artist_id"] = resolved
        entry["status"] = default_status
        entry["is_public"] = make_public
        payload.append(entry)
    return payload
