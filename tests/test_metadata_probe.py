import tempfile
import unittest
from pathlib import Path

from audio_extractor.metadata.services import MetadataProbe, _parse_year
from tests.support import write_wav


class TestMetadataProbe(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.probe = MetadataProbe()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_reads_stream_properties_of_wav(self) -> None:
        path = write_wav(self.tmp / "Take Five.wav", seconds=1.0)

        meta = self.probe.probe(path)

        self.assertFalse(meta.is_fallback)
        self.assertEqual(meta.title, "Take Five")
        self.assertEqual(meta.artist, "Unknown Artist")
        self.assertEqual(meta.album, "Unknown Album")
        self.assertEqual(meta.sample_rate_hz, 44100)
        self.assertEqual(meta.channel_count, 2)
        self.assertAlmostEqual(meta.duration_seconds, 1.0, places=2)
        self.assertEqual(meta.codec_name, "pcm")
        self.assertEqual(meta.container, "wav")
        self.assertTrue(meta.is_lossless)
        self.assertEqual(meta.file_size_bytes, path.stat().st_size)
        self.assertIsNotNone(meta.modified_at)

    def test_zero_byte_file_falls_back(self) -> None:
        path = self.tmp / "empty.mp3"
        path.write_bytes(b"")

        meta = self.probe.probe(path)

        self.assertTrue(meta.is_fallback)
        self.assertEqual(meta.title, "empty")
        self.assertEqual(meta.artist, "Unknown Artist")
        self.assertEqual(meta.duration_seconds, 0)
        self.assertEqual(meta.codec_name, "Unknown")
        self.assertEqual(meta.container, "mp3")
        self.assertEqual(meta.file_size_bytes, 0)

    def test_corrupt_file_falls_back(self) -> None:
        path = self.tmp / "broken.flac"
        path.write_bytes(b"this is not audio at all" * 20)

        meta = self.probe.probe(path)

        self.assertTrue(meta.is_fallback)
        self.assertEqual(meta.title, "broken")
        self.assertEqual(meta.sample_rate_hz, 0)
        self.assertEqual(meta.file_size_bytes, 480)

    def test_missing_file_never_raises(self) -> None:
        meta = self.probe.probe(self.tmp / "gone.wav")

        self.assertTrue(meta.is_fallback)
        self.assertEqual(meta.file_size_bytes, 0)
        self.assertIsNone(meta.created_at)
        self.assertIsNone(meta.modified_at)

    def test_to_dict_is_json_ready(self) -> None:
        meta = self.probe.probe(write_wav(self.tmp / "a.wav"))
        data = meta.to_dict()
        self.assertIsInstance(data["modified_at"], str)
        self.assertEqual(data["genre_list"], [])


class TestParseYear(unittest.TestCase):
    def test_parse_year(self) -> None:
        self.assertEqual(_parse_year("1999-05-01"), 1999)
        self.assertEqual(_parse_year("2004"), 2004)
        self.assertIsNone(_parse_year("unknown"))
        self.assertIsNone(_parse_year(None))


if __name__ == "__main__":
    unittest.main()
