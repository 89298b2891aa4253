import dataclasses
import unittest
from pathlib import Path

from audio_extractor.core.exceptions import ConfigurationError
from audio_extractor.pipeline.models import ExtractionOptions
from tests.support import discovered

ROOT = Path("/media/usb")


class TestExtractionOptions(unittest.TestCase):
    def test_defaults(self) -> None:
        options = ExtractionOptions()
        self.assertTrue(options.convert_to_canonical)
        self.assertTrue(options.generate_waveform)
        self.assertTrue(options.generate_preview)
        self.assertTrue(options.extract_metadata)
        self.assertEqual(options.batch_size, 3)
        self.assertFalse(options.has_filters)

    def test_invalid_batch_sizes(self) -> None:
        for value in (0, -1, 33, True, "3", 2.5):
            with self.subTest(value=value):
                with self.assertRaises(ConfigurationError) as ctx:
                    ExtractionOptions(batch_size=value)
                self.assertEqual(ctx.exception.parameter, "batch_size")

    def test_invalid_pattern(self) -> None:
        with self.assertRaises(ConfigurationError) as ctx:
            ExtractionOptions(file_name_pattern_filter="([unclosed")
        self.assertEqual(ctx.exception.parameter, "file_name_pattern_filter")

    def test_options_are_frozen(self) -> None:
        options = ExtractionOptions()
        with self.assertRaises(dataclasses.FrozenInstanceError):
            options.batch_size = 5

    def test_extensions_are_normalized(self) -> None:
        options = ExtractionOptions(extension_filter=("WAV", ".Flac", " mp3 ", ""))
        self.assertEqual(options.extension_filter, (".wav", ".flac", ".mp3"))

    def test_filters_combine_with_and(self) -> None:
        files = discovered(
            ROOT,
            [
                "Live/take1.wav",
                "Live/take2.mp3",
                "Studio/take3.wav",
                "Live/outtake.wav",
            ],
        )
        options = ExtractionOptions(
            extension_filter=(".wav",),
            directory_filter=("live",),
            file_name_pattern_filter=r"^TAKE\d",
        )

        self.assertTrue(options.has_filters)
        self.assertEqual([f.file_name for f in options.select(files)], ["take1.wav"])

    def test_offline_wav_preset(self) -> None:
        options = ExtractionOptions.offline_wav()
        self.assertTrue(options.convert_to_canonical)
        self.assertTrue(options.generate_waveform)
        self.assertFalse(options.generate_preview)
        self.assertTrue(options.extract_metadata)
        self.assertEqual(options.batch_size, 3)
        self.assertEqual(options.extension_filter, (".wav",))

    def test_to_dict(self) -> None:
        data = ExtractionOptions(directory_filter=("a",)).to_dict()
        self.assertEqual(data["directory_filter"], ["a"])
        self.assertIsNone(data["file_name_pattern_filter"])


if __name__ == "__main__":
    unittest.main()
