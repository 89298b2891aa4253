"""Removable drive enumeration.

Drive-type detection is inherently platform specific. Only Windows is
supported; it goes through the Win32 volume API rather than parsing shell
output. Every other platform gets an enumerator that reports no drives and
records why, so callers can still pass an explicit mount path to discovery.
"""

import ctypes
import logging
import string
import sys
from abc import ABC, abstractmethod
from typing import List, Optional

from .models import RemovableDrive
from ..core.exceptions import DriveEnumerationError

logger = logging.getLogger(__name__)

DRIVE_REMOVABLE = 2
MAX_PATH = 261
UNNAMED_LABEL = "Unnamed Drive"
UNKNOWN_LABEL = "Unknown Drive"


class DriveEnumerator(ABC):
    """Lists attached removable volumes. Never raises."""

    def __init__(self):
        self.last_error: Optional[DriveEnumerationError] = None

    def list_removable_drives(self) -> List[RemovableDrive]:
        """Return removable volumes, or an empty list if the query fails."""
        self.last_error = None
        try:
            volumes = self.list_volumes()
        except DriveEnumerationError as e:
            self.last_error = e
            logger.warning("Drive enumeration failed: %s", e)
            return []
        return [volume for volume in volumes if volume.is_removable]

    @abstractmethod
    def list_volumes(self) -> List[RemovableDrive]:
        """Query the OS for all mounted volumes.

        Raises DriveEnumerationError when the query itself fails.
        """


class WindowsDriveEnumerator(DriveEnumerator):
    """Drive enumeration through kernel32 (GetLogicalDrives/GetDriveTypeW)."""

    def __init__(self, kernel32=None):
        super().__init__()
        self._kernel32 = kernel32

    def _get_kernel32(self):
        if self._kernel32 is None:
            try:
                self._kernel32 = ctypes.windll.kernel32
            except (AttributeError, OSError) as e:
                raise DriveEnumerationError("kernel32 is not available", details=str(e))
        return self._kernel32

    def list_volumes(self) -> List[RemovableDrive]:
        kernel32 = self._get_kernel32()
        try:
            bitmask = kernel32.GetLogicalDrives()
        except OSError as e:
            raise DriveEnumerationError("GetLogicalDrives failed", details=str(e))

        if not bitmask:
            raise DriveEnumerationError("GetLogicalDrives returned no volumes")

        volumes = []
        for index, letter in enumerate(string.ascii_uppercase):
            if not bitmask & (1 << index):
                continue

            drive_id = f"{letter}:"
            root = f"{drive_id}\\"
            try:
                drive_type = kernel32.GetDriveTypeW(ctypes.c_wchar_p(root))
            except OSError as e:
                logger.debug("GetDriveTypeW failed for %s: %s", root, e)
                continue

            is_removable = drive_type == DRIVE_REMOVABLE
            volumes.append(
                RemovableDrive(
                    id=drive_id,
                    label=self._get_label(kernel32, root) if is_removable else "",
                    is_removable=is_removable,
                    path=root,
                )
            )

        return volumes

    def _get_label(self, kernel32, root: str) -> str:
        name_buffer = ctypes.create_unicode_buffer(MAX_PATH)
        try:
            ok = kernel32.GetVolumeInformationW(
                ctypes.c_wchar_p(root),
                name_buffer,
                MAX_PATH,
                None,
                None,
                None,
                None,
                0,
            )
        except OSError:
            return UNKNOWN_LABEL

        if not ok:
            return UNKNOWN_LABEL
        return name_buffer.value.strip() or UNNAMED_LABEL


class UnsupportedPlatformDriveEnumerator(DriveEnumerator):
    """Placeholder for platforms without removable-drive detection."""

    def __init__(self, platform: str = sys.platform):
        super().__init__()
        self.platform = platform

    def list_volumes(self) -> List[RemovableDrive]:
        raise DriveEnumerationError(
            "Removable drive detection is only supported on Windows",
            details=f"platform={self.platform}",
        )


def get_drive_enumerator() -> DriveEnumerator:
    """Return the enumerator for the running platform."""
    if sys.platform == "win32":
        return WindowsDriveEnumerator()
    return UnsupportedPlatformDriveEnumerator()
