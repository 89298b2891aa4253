"""External transcoder abstraction.

``FFmpegTranscoder`` is the production implementation: it renders an argument
template per job kind, runs ffmpeg with a timeout, and only moves the output
into place once the process succeeded and actually produced a file.
``FakeTranscoder`` writes small placeholder artifacts without spawning
anything and is what the test-suite runs against.
"""

import logging
import os
import shutil
import subprocess
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, List, Optional

import numpy as np
import soundfile as sf

from .models import TranscodeJob, TranscodeKind
from ..core.config import AudioConfig, TranscodeConfig, WaveformConfig
from ..core.exceptions import StorageExhaustedError, TranscodeError
from ..storage.services import discard_partial, partial_path_for, raise_if_storage_exhausted

logger = logging.getLogger(__name__)

COMMON_ARGS = ["-hide_banner", "-nostdin", "-loglevel", "error", "-y"]

# fmt: off
COMMAND_TEMPLATES: Dict[TranscodeKind, List[str]] = {
    TranscodeKind.NORMALIZE: [
        "-i", "{input}",
        "-vn",
        "-map_metadata", "-1",
        "-fflags", "+bitexact",
        "-flags:a", "+bitexact",
        "-acodec", "{codec}",
        "-ar", "{sample_rate}",
        "-ac", "{channels}",
        "-f", "wav",
        "{output}",
    ],
    TranscodeKind.WAVEFORM: [
        "-i", "{input}",
        "-filter_complex", "[0:a]showwavespic=s={width}x{height}:colors={color}[waveform]",
        "-map", "[waveform]",
        "-frames:v", "1",
        "-f", "image2",
        "{output}",
    ],
    TranscodeKind.PREVIEW: [
        "-i", "{input}",
        "-vn",
        "-t", "{duration}",
        "-acodec", "libmp3lame",
        "-b:a", "{bitrate}k",
        "-f", "mp3",
        "{output}",
    ],
}
# fmt: on


class Transcoder(ABC):
    """Runs one transcoding job and returns the finished output path."""

    @abstractmethod
    def run(self, job: TranscodeJob) -> Path:
        """Execute ``job``.

        Raises TranscodeError on failure, in which case no file exists at
        ``job.output_path``.
        """


class FFmpegTranscoder(Transcoder):
    """Transcoder that shells out to ffmpeg."""

    def __init__(
        self,
        binary: str = TranscodeConfig.FFMPEG_BINARY,
        timeout: float = TranscodeConfig.DEFAULT_TIMEOUT_SECONDS,
        work_dir: Optional[Path] = None,
    ):
        self.binary = binary
        self.timeout = timeout
        self.work_dir = work_dir

    def build_command(self, job: TranscodeJob, output_path: Path) -> List[str]:
        values = {
            "input": str(job.input_path),
            "output": str(output_path),
            "codec": AudioConfig.CANONICAL_CODEC,
            "sample_rate": AudioConfig.CANONICAL_SAMPLE_RATE,
            "channels": AudioConfig.CANONICAL_CHANNELS,
            "width": job.width,
            "height": job.height,
            "color": WaveformConfig.COLOR,
            "duration": job.duration_seconds,
            "bitrate": job.bitrate_kbps,
        }
        template = COMMAND_TEMPLATES[job.kind]
        return [self.binary] + COMMON_ARGS + [arg.format(**values) for arg in template]

    def run(self, job: TranscodeJob) -> Path:
        partial = partial_path_for(job.output_path, self.work_dir)
        command = self.build_command(job, partial)
        logger.debug("Running %s", " ".join(command))

        try:
            result = subprocess.run(
                command, capture_output=True, text=True, timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            discard_partial(partial)
            raise TranscodeError(
                f"ffmpeg timed out after {self.timeout}s",
                file_path=str(job.input_path),
            )
        except FileNotFoundError:
            raise TranscodeError(
                f"{self.binary} not found. Please install ffmpeg.",
                file_path=str(job.input_path),
            )
        except OSError as e:
            discard_partial(partial)
            raise TranscodeError(
                "Failed to start ffmpeg", file_path=str(job.input_path), details=str(e)
            )

        if result.returncode != 0:
            discard_partial(partial)
            stderr = (result.stderr or "").strip()
            if "No space left on device" in stderr:
                raise StorageExhaustedError(
                    "No space left on destination", path=str(job.output_path), details=stderr
                )
            raise TranscodeError(
                f"ffmpeg exited with code {result.returncode}",
                file_path=str(job.input_path),
                returncode=result.returncode,
                details=stderr[-TranscodeConfig.STDERR_TAIL_CHARS:] or None,
            )

        if not partial.is_file() or partial.stat().st_size == 0:
            discard_partial(partial)
            raise TranscodeError(
                "ffmpeg produced no output", file_path=str(job.input_path)
            )

        try:
            os.replace(partial, job.output_path)
        except OSError as e:
            discard_partial(partial)
            raise_if_storage_exhausted(e, job.output_path)
            raise TranscodeError(
                "Failed to move output into place",
                file_path=str(job.output_path),
                details=str(e),
            )
        return job.output_path

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None

    def version(self) -> Optional[str]:
        """First line of ``ffmpeg -version``, or None if it cannot be run."""
        try:
            result = subprocess.run(
                [self.binary, "-version"], capture_output=True, text=True, timeout=10
            )
        except (OSError, subprocess.TimeoutExpired):
            return None
        if result.returncode != 0 or not result.stdout:
            return None
        return result.stdout.splitlines()[0].strip()


PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


class FakeTranscoder(Transcoder):
    """Writes placeholder artifacts without spawning external processes.

    ``fail_when`` decides per job whether to raise TranscodeError instead;
    ``delay`` simulates a slow process. Every job is recorded in ``jobs``.
    """

    def __init__(
        self,
        fail_when: Optional[Callable[[TranscodeJob], bool]] = None,
        delay: float = 0.0,
        duration_seconds: float = 1.0,
    ):
        self.fail_when = fail_when
        self.delay = delay
        self.duration_seconds = duration_seconds
        self.jobs: List[TranscodeJob] = []
        self._lock = threading.Lock()

    def run(self, job: TranscodeJob) -> Path:
        with self._lock:
            self.jobs.append(job)

        if self.delay:
            time.sleep(self.delay)

        if self.fail_when is not None and self.fail_when(job):
            raise TranscodeError(
                f"simulated {job.kind.value} failure", file_path=str(job.input_path)
            )

        if job.kind is TranscodeKind.NORMALIZE:
            frames = int(AudioConfig.CANONICAL_SAMPLE_RATE * self.duration_seconds)
            silence = np.zeros((frames, AudioConfig.CANONICAL_CHANNELS), dtype="int16")
            sf.write(
                str(job.output_path),
                silence,
                AudioConfig.CANONICAL_SAMPLE_RATE,
                format="WAV",
                subtype=AudioConfig.CANONICAL_SUBTYPE,
            )
        elif job.kind is TranscodeKind.WAVEFORM:
            job.output_path.write_bytes(PNG_SIGNATURE)
        else:
            job.output_path.write_bytes(b"ID3" + bytes(32))

        return job.output_path

    def jobs_of(self, kind: TranscodeKind) -> List[TranscodeJob]:
        with self._lock:
            return [job for job in self.jobs if job.kind is kind]
