"""Sync engine for drivemirror - one-way Drive to local mirroring."""

from .comparator import DirectoryPlan, FileComparator, SyncAction, SyncDecision
from .engine import SyncEngine
from .index import MediaIndex, build_media_index, public_path, write_media_index
from .operations import SyncOperations
from .state import (
    DirectoryState,
    FileRecord,
    StateLoadResult,
    StateLoadStatus,
    SyncState,
    SyncStateManager,
)

__all__ = [
    "SyncEngine",
    "SyncOperations",
    "FileComparator",
    "DirectoryPlan",
    "SyncAction",
    "SyncDecision",
    "MediaIndex",
    "build_media_index",
    "public_path",
    "write_media_index",
    "DirectoryState",
    "FileRecord",
    "StateLoadResult",
    "StateLoadStatus",
    "SyncState",
    "SyncStateManager",
]
