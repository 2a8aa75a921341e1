"""Data models for Google Drive API responses."""

from dataclasses import dataclass
from typing import Any, Optional

from .utils import is_folder, is_native_document


@dataclass(frozen=True)
class RemoteEntry:
    """One item of a Drive folder listing.

    Entries only live for the duration of a listing call; anything that must
    survive between runs is copied into a ``FileRecord``.
    """

    id: str
    """Stable Drive file ID"""

    name: str
    """Display name (not necessarily unique or filesystem-safe)"""

    mime_type: str = ""
    """Drive MIME type"""

    modified_time: str = ""
    """RFC 3339 modification timestamp, compared verbatim"""

    @property
    def is_folder(self) -> bool:
        """Check if this entry is a folder."""
        return is_folder(self.mime_type)

    @property
    def is_native_document(self) -> bool:
        """Check if this entry is a Google-native document (not downloadable)."""
        return is_native_document(self.mime_type)

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> Optional["RemoteEntry"]:
        """Create a RemoteEntry from a Drive v3 ``files`` resource.

        Args:
            data: File resource dictionary

        Returns:
            RemoteEntry, or None if the resource lacks an id or name
        """
        entry_id = data.get("id")
        name = data.get("name")
        if not entry_id or not name:
            return None
        return cls(
            id=entry_id,
            name=name,
            mime_type=data.get("mimeType") or "",
            modified_time=data.get("modifiedTime") or "",
        )

