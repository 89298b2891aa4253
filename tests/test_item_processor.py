import errno
import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from audio_extractor.core.cancellation import CancellationToken
from audio_extractor.core.exceptions import StorageExhaustedError
from audio_extractor.pipeline.models import ExtractionOptions
from audio_extractor.processing.models import Stage, TranscodeKind
from audio_extractor.processing.services import ItemProcessor
from audio_extractor.processing.transcoder import FakeTranscoder
from audio_extractor.storage.models import DiscoveredAudioFile, ExtractionLayout
from audio_extractor.storage.services import sanitize_filename
from tests.support import write_wav


class TestItemProcessor(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        tmp = Path(self._tmp.name)
        self.drive = tmp / "drive"
        self.layout = ExtractionLayout(tmp / "out").ensure()
        self.canonical = self._discovered(write_wav(self.drive / "My Song (Live).wav"))
        self.hires = self._discovered(
            write_wav(self.drive / "hires.wav", samplerate=48000, subtype="PCM_24")
        )

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _discovered(self, path: Path) -> DiscoveredAudioFile:
        return DiscoveredAudioFile.from_path(path, self.drive)

    def _skipped(self, result):
        return {skipped.stage: skipped.reason for skipped in result.skipped}

    def test_full_run_produces_every_artifact(self) -> None:
        transcoder = FakeTranscoder()
        result = ItemProcessor(self.layout, transcoder).process(
            self.canonical, ExtractionOptions()
        )

        self.assertTrue(result.succeeded, result.errors)
        artifacts = result.artifacts
        self.assertEqual(len(artifacts.paths), 5)
        for path in artifacts.paths:
            self.assertTrue(path.exists(), path)

        base = f"My_Song__Live_{result.item_id}"
        self.assertEqual(artifacts.original_copy_path.name, f"{base}.wav")
        self.assertEqual(artifacts.normalized_audio_path.parent, self.layout.processed_dir)
        self.assertEqual(artifacts.waveform_image_path.name, f"{base}.png")
        self.assertEqual(artifacts.preview_clip_path.name, f"{base}_preview.mp3")

        # Canonical input takes the copy fast path
        self.assertEqual(transcoder.jobs_of(TranscodeKind.NORMALIZE), [])
        self.assertEqual(
            transcoder.jobs_of(TranscodeKind.WAVEFORM)[0].input_path,
            artifacts.normalized_audio_path,
        )

        sidecar = json.loads(artifacts.metadata_json_path.read_text(encoding="utf-8"))
        self.assertEqual(sidecar["item_id"], result.item_id)
        self.assertEqual(sidecar["metadata"]["title"], "My Song (Live)")
        self.assertEqual(result.metadata.sample_rate_hz, 44100)

    def test_non_canonical_input_is_transcoded(self) -> None:
        transcoder = FakeTranscoder()
        result = ItemProcessor(self.layout, transcoder).process(self.hires, ExtractionOptions())

        self.assertTrue(result.succeeded)
        job = transcoder.jobs_of(TranscodeKind.NORMALIZE)[0]
        self.assertEqual(job.input_path, result.artifacts.original_copy_path)
        self.assertEqual(job.output_path, result.artifacts.normalized_audio_path)

    def test_normalize_failure_skips_render_and_clip(self) -> None:
        transcoder = FakeTranscoder(fail_when=lambda job: job.kind is TranscodeKind.NORMALIZE)
        result = ItemProcessor(self.layout, transcoder).process(self.hires, ExtractionOptions())

        self.assertEqual(len(result.errors), 1)
        self.assertEqual(result.errors[0].stage, Stage.NORMALIZE)
        self.assertEqual(result.errors[0].kind, "TranscodeError")
        self.assertIsNone(result.artifacts.normalized_audio_path)
        self.assertIsNone(result.artifacts.waveform_image_path)
        self.assertIsNone(result.artifacts.preview_clip_path)
        skipped = self._skipped(result)
        self.assertEqual(skipped[Stage.WAVEFORM], "normalization failed")
        self.assertEqual(skipped[Stage.PREVIEW], "normalization failed")
        self.assertEqual(list(self.layout.processed_dir.iterdir()), [])

    def test_waveform_failure_does_not_affect_preview(self) -> None:
        transcoder = FakeTranscoder(fail_when=lambda job: job.kind is TranscodeKind.WAVEFORM)
        result = ItemProcessor(self.layout, transcoder).process(
            self.canonical, ExtractionOptions()
        )

        self.assertEqual([e.kind for e in result.errors], ["WaveformError"])
        self.assertIsNone(result.artifacts.waveform_image_path)
        self.assertTrue(result.artifacts.preview_clip_path.exists())
        self.assertIsNotNone(result.artifacts.normalized_audio_path)

    def test_disabled_stages_are_skipped(self) -> None:
        options = ExtractionOptions(generate_preview=False, extract_metadata=False)
        result = ItemProcessor(self.layout, FakeTranscoder()).process(self.canonical, options)

        self.assertTrue(result.succeeded)
        self.assertIsNone(result.metadata)
        self.assertIsNone(result.artifacts.metadata_json_path)
        self.assertIsNone(result.artifacts.preview_clip_path)
        skipped = self._skipped(result)
        self.assertEqual(skipped[Stage.PREVIEW], "disabled")
        self.assertEqual(skipped[Stage.METADATA], "disabled")

    def test_without_normalization_nothing_is_derived(self) -> None:
        transcoder = FakeTranscoder()
        options = ExtractionOptions(convert_to_canonical=False)
        result = ItemProcessor(self.layout, transcoder).process(self.canonical, options)

        self.assertTrue(result.succeeded)
        self.assertIsNotNone(result.artifacts.original_copy_path)
        self.assertIsNone(result.artifacts.waveform_image_path)
        self.assertEqual(transcoder.jobs, [])
        self.assertEqual(self._skipped(result)[Stage.WAVEFORM], "normalization disabled")

    def test_copy_failure_skips_remaining_stages(self) -> None:
        with patch(
            "audio_extractor.processing.services.atomic_copy",
            side_effect=PermissionError(errno.EACCES, "Permission denied"),
        ):
            result = ItemProcessor(self.layout, FakeTranscoder()).process(
                self.canonical, ExtractionOptions()
            )

        self.assertEqual([e.stage for e in result.errors], [Stage.COPY])
        self.assertEqual(result.errors[0].kind, "PermissionError")
        self.assertIsNone(result.metadata)
        self.assertEqual(result.artifacts.paths, [])
        self.assertEqual(
            set(self._skipped(result)),
            {Stage.METADATA, Stage.NORMALIZE, Stage.WAVEFORM, Stage.PREVIEW},
        )

    def test_out_of_space_is_raised(self) -> None:
        with patch(
            "audio_extractor.storage.services.shutil.copyfile",
            side_effect=OSError(errno.ENOSPC, "No space left on device"),
        ):
            with self.assertRaises(StorageExhaustedError):
                ItemProcessor(self.layout, FakeTranscoder()).process(
                    self.canonical, ExtractionOptions()
                )

    def test_cancelled_before_start(self) -> None:
        token = CancellationToken()
        token.cancel()
        result = ItemProcessor(self.layout, FakeTranscoder()).process(
            self.canonical, ExtractionOptions(), token
        )

        self.assertEqual([e.stage for e in result.errors], [Stage.CANCEL])
        self.assertEqual(result.errors[0].kind, "RunCancelled")
        self.assertEqual(result.artifacts.paths, [])
        self.assertEqual(self._skipped(result)[Stage.COPY], "cancelled")

    def test_cancelled_between_stages(self) -> None:
        token = CancellationToken()

        def cancel_after_normalize(job):
            if job.kind is TranscodeKind.NORMALIZE:
                token.cancel()
            return False

        transcoder = FakeTranscoder(fail_when=cancel_after_normalize)
        result = ItemProcessor(self.layout, transcoder).process(
            self.hires, ExtractionOptions(), token
        )

        self.assertEqual([e.stage for e in result.errors], [Stage.CANCEL])
        self.assertIsNotNone(result.artifacts.normalized_audio_path)
        self.assertIsNone(result.artifacts.waveform_image_path)
        skipped = self._skipped(result)
        self.assertEqual(skipped[Stage.WAVEFORM], "cancelled")
        self.assertEqual(skipped[Stage.PREVIEW], "cancelled")
        self.assertEqual(transcoder.jobs_of(TranscodeKind.WAVEFORM), [])


class TestSanitizeFilename(unittest.TestCase):
    def test_sanitize_filename(self) -> None:
        self.assertEqual(sanitize_filename("My Song (Live)!"), "My_Song__Live")
        self.assertEqual(sanitize_filename("ok-name_1"), "ok-name_1")
        self.assertEqual(sanitize_filename("???"), "audio")
        self.assertEqual(len(sanitize_filename("x" * 300)), 100)


if __name__ == "__main__":
    unittest.main()
