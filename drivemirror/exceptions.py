"""Exceptions raised by drivemirror."""


class DriveMirrorError(Exception):
    """Base exception for all drivemirror errors."""


class DriveConfigError(DriveMirrorError):
    """Required configuration is missing or invalid."""


class DriveAPIError(DriveMirrorError):
    """Base exception for Google Drive API errors."""


class DriveAuthenticationError(DriveAPIError):
    """Service account credentials were rejected."""


class DrivePermissionError(DriveAPIError):
    """The service account has no access to the requested resource."""


class DriveNotFoundError(DriveAPIError):
    """The requested file or folder does not exist."""


class DriveRateLimitError(DriveAPIError):
    """Drive API quota or rate limit exceeded."""


class DriveNetworkError(DriveAPIError):
    """Network error while talking to the Drive API."""


class DriveInvalidResponseError(DriveAPIError):
    """The Drive API returned a response that could not be parsed."""


class DriveDownloadError(DriveAPIError):
    """A file download failed or could not be written to disk."""


class StatePersistenceError(DriveMirrorError):
    """The sync state file could not be written."""
