"""File operations used by the sync engine."""

import logging
from pathlib import Path
from typing import Callable, Optional

from ..api import DriveClient
from ..exceptions import DriveDownloadError
from ..models import RemoteEntry
from ..utils import safe_name

logger = logging.getLogger(__name__)


class SyncOperations:
    """Download and delete operations with a common interface."""

    def __init__(self, client: DriveClient):
        """Initialize sync operations.

        Args:
            client: Drive API client
        """
        self.client = client

    def download_entry(
        self,
        entry: RemoteEntry,
        directory: Path,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> str:
        """Download a Drive file into a local directory.

        The file is written to ``directory / safe_name(entry.name)``,
        overwriting any existing file of that name.

        Args:
            entry: Remote file to download (never a native document)
            directory: Local target directory
            progress_callback: Optional progress callback
                function(bytes_downloaded, total_bytes)

        Returns:
            The sanitized local file name

        Raises:
            DriveDownloadError: If the name has no usable local form
            DriveAPIError: If the download fails
        """
        local_name = safe_name(entry.name)
        if local_name in ("", ".", ".."):
            raise DriveDownloadError(
                f"Cannot derive a local file name from {entry.name!r} ({entry.id})"
            )
        self.client.download_file(
            file_id=entry.id,
            output_path=directory / local_name,
            progress_callback=progress_callback,
        )
        return local_name

    def delete_local(self, path: Path) -> bool:
        """Delete a local file.

        Args:
            path: File to delete

        Returns:
            True if a file was deleted, False if it was already gone

        Raises:
            OSError: If the file exists but cannot be deleted
        """
        try:
            path.unlink()
        except FileNotFoundError:
            logger.debug("Already absent: %s", path)
            return False
        return True
