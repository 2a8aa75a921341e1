"""drivemirror - mirror a Google Drive folder into a static site's public directory."""

from .api import DriveClient
from .config import DriveMirrorConfig
from .exceptions import (
    DriveAPIError,
    DriveAuthenticationError,
    DriveConfigError,
    DriveDownloadError,
    DriveInvalidResponseError,
    DriveMirrorError,
    DriveNetworkError,
    DriveNotFoundError,
    DrivePermissionError,
    DriveRateLimitError,
    StatePersistenceError,
)
from .models import RemoteEntry
from .utils import safe_name

__version__ = "0.1.0"

__all__ = [
    "DriveClient",
    "DriveMirrorConfig",
    "DriveAPIError",
    "DriveAuthenticationError",
    "DriveConfigError",
    "DriveDownloadError",
    "DriveInvalidResponseError",
    "DriveMirrorError",
    "DriveNetworkError",
    "DriveNotFoundError",
    "DrivePermissionError",
    "DriveRateLimitError",
    "RemoteEntry",
    "StatePersistenceError",
    "safe_name",
]
