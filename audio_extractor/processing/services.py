"""Per-item audio processing: normalization, waveform, preview and orchestration."""

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, List, Optional

import soundfile as sf

from .models import ProcessingResult, Stage, StageError, TranscodeJob, TranscodeKind
from .transcoder import Transcoder
from ..core.cancellation import CancellationToken
from ..core.config import AudioConfig, PreviewConfig, WaveformConfig
from ..core.exceptions import (
    PreviewError,
    StorageExhaustedError,
    TranscodeError,
    WaveformError,
)
from ..metadata.services import MetadataProbe
from ..pipeline.models import ExtractionOptions
from ..storage.models import DiscoveredAudioFile, ExtractionLayout
from ..storage.services import atomic_copy, sanitize_filename, write_json_atomic

logger = logging.getLogger(__name__)


class FormatNormalizer:
    """Rewrites audio to canonical 16-bit / 44.1 kHz / stereo PCM WAV."""

    def __init__(self, transcoder: Transcoder, work_dir: Optional[Path] = None):
        self.transcoder = transcoder
        self.work_dir = work_dir

    def is_canonical(self, audio_file: Path) -> bool:
        """Check whether a file is already a canonical WAV."""
        if audio_file.suffix.lower() != AudioConfig.CANONICAL_EXTENSION:
            return False
        try:
            info = sf.info(str(audio_file))
        except Exception:
            return False
        return (
            info.samplerate == AudioConfig.CANONICAL_SAMPLE_RATE
            and info.channels == AudioConfig.CANONICAL_CHANNELS
            and info.subtype == AudioConfig.CANONICAL_SUBTYPE
        )

    def normalize(self, input_path: Path, output_path: Path) -> Path:
        """Write canonical audio to ``output_path``. Raises TranscodeError."""
        if self.is_canonical(input_path):
            logger.debug("%s is already canonical, copying", input_path.name)
            try:
                return atomic_copy(input_path, output_path, self.work_dir)
            except StorageExhaustedError:
                raise
            except OSError as e:
                raise TranscodeError(
                    "Failed to copy canonical audio",
                    file_path=str(input_path),
                    details=str(e),
                )

        logger.debug("Converting %s to canonical WAV", input_path.name)
        return self.transcoder.run(
            TranscodeJob(TranscodeKind.NORMALIZE, input_path, output_path)
        )


class WaveformRenderer:
    """Renders a fixed-size waveform image from normalized audio."""

    def __init__(self, transcoder: Transcoder):
        self.transcoder = transcoder

    def render(
        self,
        normalized_audio_path: Path,
        output_image_path: Path,
        width: int = WaveformConfig.DEFAULT_WIDTH,
        height: int = WaveformConfig.DEFAULT_HEIGHT,
    ) -> Path:
        job = TranscodeJob(
            TranscodeKind.WAVEFORM,
            normalized_audio_path,
            output_image_path,
            width=width,
            height=height,
        )
        try:
            return self.transcoder.run(job)
        except TranscodeError as e:
            raise WaveformError(
                "Failed to render waveform",
                file_path=str(normalized_audio_path),
                details=e.message,
            ) from e


class PreviewClipper:
    """Cuts a short lossy preview from normalized audio."""

    def __init__(self, transcoder: Transcoder):
        self.transcoder = transcoder

    def clip(
        self,
        normalized_audio_path: Path,
        output_clip_path: Path,
        duration_seconds: int = PreviewConfig.DEFAULT_DURATION_SECONDS,
        bitrate_kbps: int = PreviewConfig.DEFAULT_BITRATE_KBPS,
    ) -> Path:
        job = TranscodeJob(
            TranscodeKind.PREVIEW,
            normalized_audio_path,
            output_clip_path,
            duration_seconds=duration_seconds,
            bitrate_kbps=bitrate_kbps,
        )
        try:
            return self.transcoder.run(job)
        except TranscodeError as e:
            raise PreviewError(
                "Failed to create preview",
                file_path=str(normalized_audio_path),
                details=e.message,
            ) from e


class ItemProcessor:
    """Runs one discovered file through copy, probe, normalize, render and clip.

    Stage failures are recorded on the result and never raised, except for
    StorageExhaustedError which is fatal to the whole run.
    """

    def __init__(
        self,
        layout: ExtractionLayout,
        transcoder: Transcoder,
        probe: Optional[MetadataProbe] = None,
    ):
        self.layout = layout
        self.probe = probe or MetadataProbe()
        self.normalizer = FormatNormalizer(transcoder, work_dir=layout.temp_dir)
        self.renderer = WaveformRenderer(transcoder)
        self.clipper = PreviewClipper(transcoder)

    def process(
        self,
        audio_file: DiscoveredAudioFile,
        options: ExtractionOptions,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ProcessingResult:
        item_id = uuid.uuid4().hex
        result = ProcessingResult(item_id=item_id, source_file=audio_file)
        base_name = f"{sanitize_filename(audio_file.stem)}_{item_id}"

        enabled = {
            Stage.METADATA: options.extract_metadata,
            Stage.NORMALIZE: options.convert_to_canonical,
            Stage.WAVEFORM: options.generate_waveform,
            Stage.PREVIEW: options.generate_preview,
        }
        pending = [stage for stage, on in enabled.items() if on]
        for stage, on in enabled.items():
            if not on:
                result.skip(stage, "disabled")

        logger.info("Processing %s", audio_file.file_name)

        if self._stop_if_cancelled(result, cancel_token, [Stage.COPY] + pending):
            return result
        original = self._copy_original(result, audio_file, base_name)
        if original is None:
            for stage in pending:
                result.skip(stage, "original could not be copied")
            return result

        if Stage.METADATA in pending:
            pending.remove(Stage.METADATA)
            self._extract_metadata(result, audio_file, base_name)

        normalized = None
        if Stage.NORMALIZE in pending:
            if self._stop_if_cancelled(result, cancel_token, pending):
                return result
            pending.remove(Stage.NORMALIZE)
            normalized = self._normalize(result, original, base_name)

        if not pending:
            return result

        if normalized is None:
            reason = (
                "normalization failed"
                if enabled[Stage.NORMALIZE]
                else "normalization disabled"
            )
            for stage in pending:
                result.skip(stage, reason)
            return result

        if self._stop_if_cancelled(result, cancel_token, pending):
            return result
        self._derive_artifacts(result, normalized, base_name, pending)

        if result.errors:
            logger.warning(
                "Processed %s with %d error(s)", audio_file.file_name, len(result.errors)
            )
        else:
            logger.info("Successfully processed %s", audio_file.file_name)
        return result

    def _stop_if_cancelled(
        self,
        result: ProcessingResult,
        cancel_token: Optional[CancellationToken],
        remaining: List[Stage],
    ) -> bool:
        if cancel_token is None or not cancel_token.cancelled:
            return False
        result.errors.append(
            StageError(
                stage=Stage.CANCEL,
                message=f"Run cancelled before {remaining[0].value}"
                if remaining
                else "Run cancelled",
                kind="RunCancelled",
            )
        )
        for stage in remaining:
            result.skip(stage, "cancelled")
        return True

    def _copy_original(
        self, result: ProcessingResult, audio_file: DiscoveredAudioFile, base_name: str
    ) -> Optional[Path]:
        destination = self.layout.originals_dir / f"{base_name}{audio_file.extension}"
        try:
            atomic_copy(audio_file.absolute_path, destination, self.layout.temp_dir)
        except StorageExhaustedError:
            raise
        except OSError as e:
            result.add_error(Stage.COPY, e)
            logger.warning("Failed to copy %s: %s", audio_file.file_name, e)
            return None
        result.artifacts.original_copy_path = destination
        return destination

    def _extract_metadata(
        self, result: ProcessingResult, audio_file: DiscoveredAudioFile, base_name: str
    ) -> None:
        # Probe the source so file timestamps reflect the drive, not the copy
        result.metadata = self.probe.probe(audio_file.absolute_path)
        sidecar = self.layout.metadata_dir / f"{base_name}.json"
        payload = {
            "item_id": result.item_id,
            "source_file": audio_file.to_dict(),
            "metadata": result.metadata.to_dict(),
        }
        try:
            write_json_atomic(sidecar, payload)
        except StorageExhaustedError:
            raise
        except OSError as e:
            result.add_error(Stage.METADATA, e)
            return
        result.artifacts.metadata_json_path = sidecar

    def _normalize(
        self, result: ProcessingResult, original: Path, base_name: str
    ) -> Optional[Path]:
        destination = (
            self.layout.processed_dir / f"{base_name}{AudioConfig.CANONICAL_EXTENSION}"
        )
        try:
            normalized = self.normalizer.normalize(original, destination)
        except TranscodeError as e:
            result.add_error(Stage.NORMALIZE, e)
            logger.warning("Normalization failed for %s: %s", original.name, e)
            return None
        result.artifacts.normalized_audio_path = normalized
        return normalized

    def _derive_artifacts(
        self,
        result: ProcessingResult,
        normalized: Path,
        base_name: str,
        stages: List[Stage],
    ) -> None:
        """Render and clip are independent, so they run side by side."""
        tasks: Dict[Stage, Callable[[], Path]] = {}
        if Stage.WAVEFORM in stages:
            image = self.layout.waveforms_dir / f"{base_name}{WaveformConfig.EXTENSION}"
            tasks[Stage.WAVEFORM] = lambda: self.renderer.render(normalized, image)
        if Stage.PREVIEW in stages:
            clip = self.layout.previews_dir / f"{base_name}_preview{PreviewConfig.EXTENSION}"
            tasks[Stage.PREVIEW] = lambda: self.clipper.clip(normalized, clip)

        if len(tasks) == 1:
            outcomes = {stage: _capture(task) for stage, task in tasks.items()}
        else:
            with ThreadPoolExecutor(max_workers=len(tasks)) as executor:
                futures = {
                    stage: executor.submit(_capture, task) for stage, task in tasks.items()
                }
                outcomes = {stage: future.result() for stage, future in futures.items()}

        for stage, (path, error) in outcomes.items():
            if error is not None:
                result.add_error(stage, error)
                logger.warning("%s failed for %s: %s", stage.value, normalized.name, error)
            elif stage is Stage.WAVEFORM:
                result.artifacts.waveform_image_path = path
            else:
                result.artifacts.preview_clip_path = path


def _capture(task: Callable[[], Path]):
    """Run a derived-artifact task, returning (path, recoverable error)."""
    try:
        return task(), None
    except (WaveformError, PreviewError) as e:
        return None, e
