"""State management for tracking sync history.

The state file remembers, per logical directory, which Drive files were
downloaded, under which local name and at which modification time. It is
the only source of truth for what the previous run left on disk: deletions
are detected by comparing it against the current listing, never by scanning
the local directory.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from ..exceptions import StatePersistenceError
from ..utils import write_json_atomic

logger = logging.getLogger(__name__)


@dataclass
class FileRecord:
    """What the last successful download of a Drive file left on disk."""

    name: str
    """Sanitized local file name, fixed when the file was downloaded"""

    modified_time: str
    """Drive ``modifiedTime`` at download time (the watermark)"""

    mime_type: Optional[str] = None
    """Drive MIME type, informational only"""

    def to_dict(self) -> dict[str, str]:
        """Convert record to dictionary for JSON serialization."""
        data = {"name": self.name, "modifiedTime": self.modified_time}
        if self.mime_type:
            data["mimeType"] = self.mime_type
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FileRecord":
        """Create FileRecord from dictionary.

        Raises:
            ValueError: If the record has no usable name
        """
        if not isinstance(data, dict):
            raise ValueError(f"File record must be an object: {data!r}")
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise ValueError(f"File record without a name: {data!r}")
        return cls(
            name=name,
            modified_time=str(data.get("modifiedTime") or ""),
            mime_type=data.get("mimeType"),
        )


@dataclass
class DirectoryState:
    """Records for one logical directory, keyed by Drive file ID.

    Insertion order is preserved and determines media map ordering.
    """

    files: dict[str, FileRecord] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.files)

    def __contains__(self, file_id: object) -> bool:
        return file_id in self.files

    def get(self, file_id: str) -> Optional[FileRecord]:
        """Get the record for a file ID, if any."""
        return self.files.get(file_id)

    def upsert(self, file_id: str, record: FileRecord) -> None:
        """Insert or replace a record.

        A replaced record keeps its position in iteration order.
        """
        self.files[file_id] = record

    def remove(self, file_id: str) -> Optional[FileRecord]:
        """Remove and return the record for a file ID."""
        return self.files.pop(file_id, None)

    def to_dict(self) -> dict[str, Any]:
        """Convert directory state to dictionary for JSON serialization."""
        return {
            "files": {
                file_id: record.to_dict() for file_id, record in self.files.items()
            }
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DirectoryState":
        """Create DirectoryState from dictionary."""
        if not isinstance(data, dict):
            raise ValueError("Directory state must be an object")
        files = data.get("files", {})
        if not isinstance(files, dict):
            raise ValueError("'files' must be an object")
        return cls(
            files={
                str(file_id): FileRecord.from_dict(record)
                for file_id, record in files.items()
            }
        )


@dataclass
class SyncState:
    """All directory states, keyed by logical directory key."""

    dirs: dict[str, DirectoryState] = field(default_factory=dict)

    def directory(self, key: str) -> DirectoryState:
        """Get the state for a directory, creating an empty one if needed."""
        if key not in self.dirs:
            self.dirs[key] = DirectoryState()
        return self.dirs[key]

    @property
    def file_count(self) -> int:
        """Total number of tracked files."""
        return sum(len(directory) for directory in self.dirs.values())

    def to_dict(self) -> dict[str, Any]:
        """Convert state to dictionary for JSON serialization."""
        return {"dirs": {key: d.to_dict() for key, d in self.dirs.items()}}

    @classmethod
    def from_dict(cls, data: Any) -> "SyncState":
        """Create SyncState from dictionary.

        Raises:
            ValueError: If the document does not have the expected shape
        """
        if not isinstance(data, dict):
            raise ValueError("State document must be an object")
        dirs = data.get("dirs", {})
        if not isinstance(dirs, dict):
            raise ValueError("'dirs' must be an object")
        return cls(
            dirs={
                str(key): DirectoryState.from_dict(directory)
                for key, directory in dirs.items()
            }
        )


class StateLoadStatus(str, Enum):
    """Outcome of reading the state file."""

    LOADED = "loaded"
    """State file was read successfully"""

    ABSENT = "absent"
    """No state file exists yet"""

    CORRUPT = "corrupt"
    """State file exists but could not be parsed"""


@dataclass
class StateLoadResult:
    """State read from disk, tagged with how it was obtained.

    ``ABSENT`` and ``CORRUPT`` both carry an empty state so a run can
    proceed; ``error`` describes what was wrong with a corrupt file.
    """

    status: StateLoadStatus
    state: SyncState
    error: Optional[str] = None


class SyncStateManager:
    """Loads and saves the sync state file."""

    def __init__(self, state_path: Path):
        """Initialize state manager.

        Args:
            state_path: Path of the JSON state file
        """
        self.state_path = state_path

    def load(self) -> StateLoadResult:
        """Load sync state.

        Never raises: a missing or unreadable file yields empty state.

        Returns:
            StateLoadResult with status LOADED, ABSENT or CORRUPT
        """
        if not self.state_path.exists():
            logger.debug(f"No sync state found at {self.state_path}")
            return StateLoadResult(StateLoadStatus.ABSENT, SyncState())

        try:
            with open(self.state_path, encoding="utf-8") as f:
                data = json.load(f)
            state = SyncState.from_dict(data)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable sync state {self.state_path}: {e}")
            return StateLoadResult(StateLoadStatus.CORRUPT, SyncState(), error=str(e))

        logger.debug(
            f"Loaded sync state with {state.file_count} files "
            f"in {len(state.dirs)} directories"
        )
        return StateLoadResult(StateLoadStatus.LOADED, state)

    def save(self, state: SyncState) -> None:
        """Save sync state atomically.

        The document is written to a temporary file in the same directory
        and moved over the state file, so readers never see a partial write.

        Args:
            state: State to persist

        Raises:
            StatePersistenceError: If the file cannot be written
        """
        try:
            write_json_atomic(self.state_path, state.to_dict())
        except OSError as e:
            raise StatePersistenceError(
                f"Failed to save sync state to {self.state_path}: {e}"
            ) from e

        logger.debug(
            f"Saved sync state with {state.file_count} files to {self.state_path}"
        )

    def clear(self) -> bool:
        """Delete the state file.

        Returns:
            True if state was cleared, False if no state existed
        """
        if self.state_path.exists():
            self.state_path.unlink()
            logger.debug(f"Cleared sync state at {self.state_path}")
            return True
        return False
