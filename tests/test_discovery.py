import errno
import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from audio_extractor.core.exceptions import DiscoveryError
from audio_extractor.storage.services import (
    FileDiscoverer,
    count_by_extension,
    group_by_directory,
)
from tests.support import touch_files

LAYOUT = [
    "a.wav",
    "b.MP3",
    "notes.txt",
    "album/c.flac",
    "album/cover.jpg",
    "album/disc1/d.ogg",
    "album/disc1/extra/e.m4a",
]


class TestFileDiscoverer(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        touch_files(self.root, LAYOUT)
        self.discoverer = FileDiscoverer()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _names(self, max_depth: int):
        return sorted(f.file_name for f in self.discoverer.discover(self.root, max_depth))

    def test_default_depth_finds_all_supported_files(self) -> None:
        self.assertEqual(
            self._names(10), ["a.wav", "b.MP3", "c.flac", "d.ogg", "e.m4a"]
        )

    def test_depth_limits(self) -> None:
        self.assertEqual(self._names(0), [])
        self.assertEqual(self._names(1), ["a.wav", "b.MP3"])
        self.assertEqual(self._names(2), ["a.wav", "b.MP3", "c.flac"])
        self.assertEqual(self._names(3), ["a.wav", "b.MP3", "c.flac", "d.ogg"])

    def test_no_file_deeper_than_max_depth(self) -> None:
        for max_depth in range(0, 6):
            for audio_file in self.discoverer.discover(self.root, max_depth):
                depth = len(audio_file.path_relative_to_volume_root.parts)
                self.assertLessEqual(depth, max_depth)

    def test_records_are_populated(self) -> None:
        files = {f.file_name: f for f in self.discoverer.discover(self.root)}
        mp3 = files["b.MP3"]
        self.assertEqual(mp3.extension, ".mp3")
        self.assertEqual(mp3.containing_directory, self.root)
        self.assertEqual(mp3.absolute_path, self.root / "b.MP3")

        flac = files["c.flac"]
        self.assertEqual(flac.path_relative_to_volume_root, Path("album") / "c.flac")
        self.assertEqual(flac.stem, "c")

    def test_missing_root_raises(self) -> None:
        with self.assertRaises(DiscoveryError):
            self.discoverer.discover(self.root / "nope")

    def test_unreadable_directory_is_skipped(self) -> None:
        blocked = str(self.root / "album")
        real_scandir = os.scandir

        def fake_scandir(path):
            if str(path) == blocked:
                raise OSError(errno.EACCES, "Permission denied")
            return real_scandir(path)

        with patch("audio_extractor.storage.services.os.scandir", side_effect=fake_scandir):
            files = self.discoverer.discover(self.root)

        self.assertEqual(sorted(f.file_name for f in files), ["a.wav", "b.MP3"])
        self.assertEqual(len(self.discoverer.skipped_directories), 1)
        self.assertEqual(self.discoverer.skipped_directories[0].directory, blocked)

    @unittest.skipIf(sys.platform == "win32", "symlinks need privileges on Windows")
    def test_directory_symlinks_are_not_followed(self) -> None:
        os.symlink(self.root / "album", self.root / "link")
        names = self._names(10)
        self.assertEqual(names.count("c.flac"), 1)

    def test_custom_extensions(self) -> None:
        discoverer = FileDiscoverer(supported_extensions=[".WAV"])
        files = discoverer.discover(self.root)
        self.assertEqual([f.file_name for f in files], ["a.wav"])


class TestPreview(unittest.TestCase):
    def test_preview_counts_without_touching_the_drive(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            touch_files(
                root, ["one.wav", "two.mp3", "sub/three.wav", "readme.txt", "sub/art.png"]
            )
            before = sorted(p for p in root.rglob("*"))

            preview = FileDiscoverer().preview(root)

            self.assertEqual(preview.total_files, 3)
            self.assertEqual(preview.by_format, {".wav": 2, ".mp3": 1})
            self.assertEqual(preview.directory_count, 2)
            self.assertEqual(sorted(p for p in root.rglob("*")), before)

            data = preview.to_dict()
            self.assertEqual(data["summary"]["total_files"], 3)
            self.assertEqual(data["summary"]["directories"], 2)

    def test_grouping_helpers(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            touch_files(root, ["x.wav", "d/y.wav", "d/z.flac"])
            files = FileDiscoverer().discover(root)

            grouped = group_by_directory(files)
            self.assertEqual(len(grouped[str(root / "d")]), 2)
            self.assertEqual(len(grouped[str(root)]), 1)
            self.assertEqual(count_by_extension(files), {".wav": 2, ".flac": 1})


if __name__ == "__main__":
    unittest.main()
