"""Fixture helpers shared by the test modules."""

from pathlib import Path
from typing import Iterable, List

import numpy as np
import soundfile as sf

from audio_extractor.metadata.models import AudioTechnicalMetadata
from audio_extractor.storage.models import DiscoveredAudioFile


def write_wav(
    path: Path,
    seconds: float = 0.5,
    samplerate: int = 44100,
    channels: int = 2,
    subtype: str = "PCM_16",
) -> Path:
    """Write a short sine tone as a WAV file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    t = np.linspace(0, seconds, int(samplerate * seconds), endpoint=False)
    tone = 0.2 * np.sin(2 * np.pi * 440 * t)
    data = np.column_stack([tone] * channels) if channels > 1 else tone
    sf.write(str(path), data, samplerate, subtype=subtype)
    return path


def touch_files(root: Path, names: Iterable[str], content: bytes = b"data") -> List[Path]:
    paths = []
    for name in names:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        paths.append(path)
    return paths


def discovered(root: Path, names: Iterable[str]) -> List[DiscoveredAudioFile]:
    """Discovery records for paths that need not exist."""
    return [DiscoveredAudioFile.from_path(root / name, root) for name in names]


def sample_metadata(**overrides) -> AudioTechnicalMetadata:
    values = dict(
        title="Song",
        artist="Band",
        album="Record",
        genre_list=["Rock"],
        duration_seconds=120.0,
        bitrate_kbps=1411,
        sample_rate_hz=44100,
        channel_count=2,
        codec_name="pcm",
        container="wav",
        is_lossless=True,
        file_size_bytes=1024,
    )
    values.update(overrides)
    return AudioTechnicalMetadata(**values)
