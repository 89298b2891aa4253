"""Configuration constants and settings for the audio extractor."""

from pathlib import Path


class AudioConfig:
    """Canonical audio format constants."""

    CANONICAL_SAMPLE_RATE = 44100
    CANONICAL_CHANNELS = 2
    CANONICAL_SUBTYPE = "PCM_16"  # soundfile subtype name
    CANONICAL_CODEC = "pcm_s16le"  # ffmpeg codec name
    CANONICAL_EXTENSION = ".wav"

    LOSSLESS_CODECS = ["pcm", "flac", "alac", "wavpack", "ape", "tta", "aiff"]


class FileConfig:
    """File discovery configuration."""

    SUPPORTED_INPUT_FORMATS = [".wav", ".mp3", ".flac", ".m4a", ".aac", ".ogg"]
    DEFAULT_MAX_DEPTH = 10
    PREVIEW_MAX_DEPTH = 5
    MAX_STEM_LENGTH = 100

    MIME_TYPES = {
        ".wav": "audio/wav",
        ".mp3": "audio/mpeg",
        ".flac": "audio/flac",
        ".m4a": "audio/mp4",
        ".aac": "audio/aac",
        ".ogg": "audio/ogg",
    }
    DEFAULT_MIME_TYPE = "application/octet-stream"

    UNKNOWN_ARTIST = "Unknown Artist"
    UNKNOWN_ALBUM = "Unknown Album"
    UNKNOWN_CODEC = "Unknown"


class WaveformConfig:
    """Waveform image rendering configuration."""

    DEFAULT_WIDTH = 800
    DEFAULT_HEIGHT = 200
    COLOR = "0xff6b35"
    EXTENSION = ".png"


class PreviewConfig:
    """Preview clip configuration."""

    DEFAULT_DURATION_SECONDS = 30
    DEFAULT_BITRATE_KBPS = 128
    EXTENSION = ".mp3"


class BatchConfig:
    """Batch scheduling configuration."""

    DEFAULT_BATCH_SIZE = 3
    MIN_BATCH_SIZE = 1
    MAX_BATCH_SIZE = 32


class TranscodeConfig:
    """External transcoder configuration."""

    FFMPEG_BINARY = "ffmpeg"
    DEFAULT_TIMEOUT_SECONDS = 300
    STDERR_TAIL_CHARS = 400
    PARTIAL_MARKER = ".partial"


class HistoryConfig:
    """Run summary persistence configuration."""

    SUMMARY_PREFIX = "extraction_summary_"
    TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S_%f"
    DEFAULT_HISTORY_LIMIT = 20
    DEFAULT_CLEANUP_DAYS = 7


class ProgressConfig:
    """Progress bar and display configuration."""

    SPINNER_STYLE = "dots"
    PROGRESS_BAR_WIDTH = 40


class AppInfo:
    """Application metadata."""

    NAME = "audio-extractor"
    VERSION = "1.0.0"
    DESCRIPTION = "Removable-media audio extraction and processing tool"


class Paths:
    """Default paths and directories."""

    @staticmethod
    def get_output_dir() -> Path:
        """Get default extraction output directory."""
        return Path.cwd() / "extracted-audio"

    @staticmethod
    def ensure_dir(path: Path) -> Path:
        """Ensure directory exists and return it."""
        path.mkdir(parents=True, exist_ok=True)
        return path
