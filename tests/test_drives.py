import unittest
from unittest.mock import patch

from audio_extractor.core.exceptions import DriveEnumerationError
from audio_extractor.drives.models import RemovableDrive
from audio_extractor.drives.services import (
    UnsupportedPlatformDriveEnumerator,
    WindowsDriveEnumerator,
    get_drive_enumerator,
)

DRIVE_FIXED = 3
DRIVE_REMOVABLE = 2


class FakeKernel32:
    """Minimal kernel32 stand-in keyed by volume root."""

    def __init__(self, volumes, labels=None, bitmask=None):
        self.volumes = volumes
        self.labels = labels or {}
        self.bitmask = bitmask

    def GetLogicalDrives(self):
        if self.bitmask is not None:
            return self.bitmask
        mask = 0
        for root in self.volumes:
            mask |= 1 << (ord(root[0]) - ord("A"))
        return mask

    def GetDriveTypeW(self, root):
        return self.volumes[root.value]

    def GetVolumeInformationW(self, root, name_buffer, size, *rest):
        label = self.labels.get(root.value)
        if label is None:
            return 0
        name_buffer.value = label
        return 1


class TestWindowsDriveEnumerator(unittest.TestCase):
    def test_lists_only_removable_volumes(self) -> None:
        kernel32 = FakeKernel32(
            volumes={"C:\\": DRIVE_FIXED, "E:\\": DRIVE_REMOVABLE, "F:\\": DRIVE_REMOVABLE},
            labels={"E:\\": "MUSIC", "F:\\": ""},
        )
        drives = WindowsDriveEnumerator(kernel32).list_removable_drives()

        self.assertEqual(
            drives,
            [
                RemovableDrive(id="E:", label="MUSIC", is_removable=True, path="E:\\"),
                RemovableDrive(id="F:", label="Unnamed Drive", is_removable=True, path="F:\\"),
            ],
        )
        self.assertEqual(drives[0].display_name, "E: - MUSIC")

    def test_label_query_failure_gives_unknown_drive(self) -> None:
        kernel32 = FakeKernel32(volumes={"G:\\": DRIVE_REMOVABLE})
        drives = WindowsDriveEnumerator(kernel32).list_removable_drives()
        self.assertEqual([d.label for d in drives], ["Unknown Drive"])

    def test_no_removable_volumes(self) -> None:
        kernel32 = FakeKernel32(volumes={"C:\\": DRIVE_FIXED, "D:\\": DRIVE_FIXED})
        enumerator = WindowsDriveEnumerator(kernel32)
        self.assertEqual(enumerator.list_removable_drives(), [])
        self.assertIsNone(enumerator.last_error)

    def test_os_failure_returns_empty_list_with_diagnostic(self) -> None:
        enumerator = WindowsDriveEnumerator(FakeKernel32(volumes={}, bitmask=0))
        with self.assertLogs("audio_extractor.drives.services", level="WARNING"):
            drives = enumerator.list_removable_drives()

        self.assertEqual(drives, [])
        self.assertIsInstance(enumerator.last_error, DriveEnumerationError)


class TestPlatformSelection(unittest.TestCase):
    def test_unsupported_platform_reports_no_drives(self) -> None:
        enumerator = UnsupportedPlatformDriveEnumerator(platform="linux")
        self.assertEqual(enumerator.list_removable_drives(), [])
        self.assertIn("only supported on Windows", str(enumerator.last_error))

    def test_get_drive_enumerator(self) -> None:
        with patch("audio_extractor.drives.services.sys.platform", "win32"):
            self.assertIsInstance(get_drive_enumerator(), WindowsDriveEnumerator)
        with patch("audio_extractor.drives.services.sys.platform", "darwin"):
            self.assertIsInstance(get_drive_enumerator(), UnsupportedPlatformDriveEnumerator)


if __name__ == "__main__":
    unittest.main()
