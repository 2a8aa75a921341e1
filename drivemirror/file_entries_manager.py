"""Manager for fetching folder listings with automatic pagination."""

import logging

from .api import DriveClient
from .models import RemoteEntry
from .utils import DEFAULT_PAGE_SIZE

logger = logging.getLogger(__name__)


class FileEntriesManager:
    """Fetches complete folder listings, following ``nextPageToken``."""

    def __init__(self, client: DriveClient, page_size: int = DEFAULT_PAGE_SIZE):
        """Initialize the file entries manager.

        Args:
            client: Drive API client
            page_size: Number of entries per page
        """
        self.client = client
        self.page_size = page_size

    def get_all_in_folder(self, folder_id: str) -> list[RemoteEntry]:
        """Get every immediate child of a folder.

        Errors are not caught: an incomplete listing would make every
        missing entry look like a remote deletion.

        Args:
            folder_id: Drive folder ID

        Returns:
            List of entries in listing order

        Raises:
            DriveAPIError: If any page cannot be fetched
        """
        all_entries: list[RemoteEntry] = []
        page_token = None
        pages = 0

        while True:
            result = self.client.list_children(
                folder_id, page_token=page_token, page_size=self.page_size
            )
            pages += 1
            for item in result.get("files", []):
                entry = RemoteEntry.from_api_response(item)
                if entry is None:
                    logger.debug("Skipping malformed entry in %s: %r", folder_id, item)
                    continue
                all_entries.append(entry)

            page_token = result.get("nextPageToken")
            if not page_token:
                break

        logger.debug(
            "Listed %d entries in folder %s (%d page(s))",
            len(all_entries),
            folder_id,
            pages,
        )
        return all_entries
