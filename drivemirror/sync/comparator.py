"""Comparison of a Drive listing against recorded state."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..models import RemoteEntry
from .state import DirectoryState, FileRecord


class SyncAction(str, Enum):
    """Actions that can be taken during sync."""

    DOWNLOAD = "download"
    """Download remote file to local"""

    DELETE_LOCAL = "delete_local"
    """Delete local file (removed from Drive)"""

    SKIP = "skip"
    """Skip file (no action needed)"""


@dataclass
class SyncDecision:
    """Represents a decision about how to sync one file."""

    action: SyncAction
    """Action to take"""

    reason: str
    """Human-readable reason for this decision"""

    file_id: str
    """Drive file ID"""

    remote_entry: Optional[RemoteEntry] = None
    """Current listing entry (if the file still exists remotely)"""

    record: Optional[FileRecord] = None
    """Stored record (if the file was synced before)"""

    @property
    def display_name(self) -> str:
        """Name to show to the user for this decision."""
        if self.remote_entry is not None:
            return self.remote_entry.name
        if self.record is not None:
            return self.record.name
        return self.file_id


@dataclass
class DirectoryPlan:
    """Everything that has to happen to bring one directory up to date."""

    downloads: list[SyncDecision] = field(default_factory=list)
    deletions: list[SyncDecision] = field(default_factory=list)
    skips: list[SyncDecision] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.downloads or self.deletions)


class FileComparator:
    """Decides which files of a directory to download or delete."""

    def plan(
        self,
        remote_entries: Iterable[RemoteEntry],
        directory_state: DirectoryState,
    ) -> DirectoryPlan:
        """Compare a listing with the stored state of the same directory.

        A file is downloaded when it has no record or when its
        ``modified_time`` differs from the recorded one. A record is
        deleted when its ID no longer appears in the listing. Native
        documents and folders are never downloaded, but their IDs still
        count as present.

        Nothing is mutated; the deletion set is computed in full before the
        caller applies any change.

        Args:
            remote_entries: Current children of the remote folder
            directory_state: Stored records for the matching local directory

        Returns:
            DirectoryPlan with download, delete and skip decisions
        """
        plan = DirectoryPlan()
        remote_ids: set[str] = set()

        for entry in remote_entries:
            remote_ids.add(entry.id)
            if entry.is_native_document:
                continue

            record = directory_state.get(entry.id)
            if record is None:
                plan.downloads.append(
                    SyncDecision(
                        action=SyncAction.DOWNLOAD,
                        reason="New remote file",
                        file_id=entry.id,
                        remote_entry=entry,
                    )
                )
            elif record.modified_time != entry.modified_time:
                plan.downloads.append(
                    SyncDecision(
                        action=SyncAction.DOWNLOAD,
                        reason="Remote file modified",
                        file_id=entry.id,
                        remote_entry=entry,
                        record=record,
                    )
                )
            else:
                plan.skips.append(
                    SyncDecision(
                        action=SyncAction.SKIP,
                        reason="Unchanged",
                        file_id=entry.id,
                        remote_entry=entry,
                        record=record,
                    )
                )

        for file_id, record in directory_state.files.items():
            if file_id not in remote_ids:
                plan.deletions.append(
                    SyncDecision(
                        action=SyncAction.DELETE_LOCAL,
                        reason="Removed from Drive",
                        file_id=file_id,
                        record=record,
                    )
                )

        return plan
