"""Drive domain models."""

from dataclasses import dataclass
from typing import Dict, Any


@dataclass(frozen=True)
class RemovableDrive:
    """Represents an attached volume."""

    id: str
    label: str
    is_removable: bool
    path: str = ""

    @property
    def display_name(self) -> str:
        """Human-readable volume name."""
        return f"{self.id} - {self.label}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "is_removable": self.is_removable,
            "path": self.path,
        }
