"""API client for Google Drive v3."""

from __future__ import annotations

import logging
import os
import random
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

import httpx
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from .config import DRIVE_READONLY_SCOPE
from .exceptions import (
    DriveAPIError,
    DriveAuthenticationError,
    DriveConfigError,
    DriveDownloadError,
    DriveInvalidResponseError,
    DriveNetworkError,
    DriveNotFoundError,
    DrivePermissionError,
    DriveRateLimitError,
)
from .utils import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_PAGE_SIZE,
    DEFAULT_RETRY_DELAY,
    DOWNLOAD_CHUNK_SIZE,
)

if TYPE_CHECKING:
    from google.auth.credentials import Credentials

    from .config import DriveMirrorConfig

logger = logging.getLogger(__name__)

DRIVE_API_URL = "https://www.googleapis.com/drive/v3"
TOKEN_URI = "https://oauth2.googleapis.com/token"
LIST_FIELDS = "nextPageToken, files(id, name, mimeType, modifiedTime)"


class DriveClient:
    """Read-only client for the Google Drive v3 REST API."""

    def __init__(
        self,
        credentials: Credentials,
        api_url: str = DRIVE_API_URL,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize Drive API client.

        Args:
            credentials: google-auth credentials used to mint bearer tokens
            api_url: Drive API base URL
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 60.0)
            transport: Optional httpx transport (used by tests)
        """
        self.credentials = credentials
        self.api_url = api_url.rstrip("/")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.Client | None = None
        self._token_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: DriveMirrorConfig, **kwargs: Any) -> DriveClient:
        """Create a client authenticated as the configured service account.

        Raises:
            DriveConfigError: If the private key cannot be parsed
        """
        info = {
            "type": "service_account",
            "client_email": config.client_email,
            "private_key": config.private_key,
            "token_uri": TOKEN_URI,
        }
        try:
            credentials = service_account.Credentials.from_service_account_info(
                info, scopes=[DRIVE_READONLY_SCOPE]
            )
        except ValueError as e:
            raise DriveConfigError(f"Invalid service account key: {e}") from e
        return cls(credentials, **kwargs)

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> DriveClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _auth_headers(self) -> dict[str, str]:
        """Return an Authorization header, refreshing the token if needed.

        Raises:
            DriveAuthenticationError: If the token cannot be obtained
        """
        with self._token_lock:
            if not self.credentials.valid:
                try:
                    self.credentials.refresh(Request())
                except Exception as e:
                    raise DriveAuthenticationError(
                        f"Failed to obtain access token: {e}"
                    ) from e
            return {"Authorization": f"Bearer {self.credentials.token}"}

    def _should_retry(self, exception: Exception, attempt: int) -> bool:
        """Determine if a request should be retried.

        Args:
            exception: The exception that occurred
            attempt: Current attempt number (0-based)

        Returns:
            True if the request should be retried, False otherwise
        """
        if attempt >= self.max_retries:
            return False
        return isinstance(exception, (DriveNetworkError, DriveRateLimitError))

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # +/- 25% jitter
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _handle_http_error(
        self, e: httpx.HTTPStatusError, attempt: int
    ) -> tuple[Exception, bool]:
        """Map an HTTP error to a drivemirror exception.

        Args:
            e: The HTTP error exception
            attempt: Current attempt number

        Returns:
            Tuple of (exception to raise, should_retry)
        """
        status_code = e.response.status_code
        detail = self._error_detail(e.response)
        suffix = f": {detail}" if detail else ""

        if status_code == 401:
            return (DriveAuthenticationError(f"Unauthorized{suffix}"), False)
        if status_code == 404:
            return (DriveNotFoundError(f"Resource not found{suffix}"), False)
        if status_code == 429 or (status_code == 403 and "rate" in detail.lower()):
            error = DriveRateLimitError(f"Rate limit exceeded{suffix}")
            return (error, attempt < self.max_retries)
        if status_code == 403:
            return (DrivePermissionError(f"Access forbidden{suffix}"), False)

        error = DriveAPIError(f"API request failed with status {status_code}{suffix}")
        should_retry = 500 <= status_code < 600 and attempt < self.max_retries
        return (error, should_retry)

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        """Extract the error message from a Drive error body, if any."""
        try:
            if response.content:
                data = response.json()
                if isinstance(data, dict):
                    error = data.get("error")
                    if isinstance(error, dict):
                        return str(error.get("message") or "")
                    if error:
                        return str(error)
        except ValueError:
            pass
        return ""

    def _retry_after(self, response: httpx.Response, attempt: int) -> float:
        retry_after = response.headers.get("Retry-After")
        if retry_after and retry_after.isdigit():
            return float(retry_after)
        return self._calculate_retry_delay(attempt)

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Make an API request with retry logic.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response JSON data

        Raises:
            DriveAPIError: If the request fails after all retries
        """
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        last_exception: Exception | None = None
        client = self._get_client()

        for attempt in range(self.max_retries + 1):
            try:
                response = client.request(
                    method, url, headers=self._auth_headers(), **kwargs
                )
                response.raise_for_status()
                try:
                    return response.json()
                except ValueError as e:
                    raise DriveInvalidResponseError(
                        "Invalid JSON response from Drive API"
                    ) from e

            except httpx.HTTPStatusError as e:
                error, should_retry = self._handle_http_error(e, attempt)
                last_exception = error
                if should_retry:
                    delay = self._retry_after(e.response, attempt)
                    logger.debug(
                        "%s %s failed (%s), retrying in %.1fs",
                        method,
                        url,
                        error,
                        delay,
                    )
                    time.sleep(delay)
                    continue
                raise error from e
            except DriveAPIError:
                raise
            except httpx.RequestError as e:
                error = DriveNetworkError(f"Network error: {e}")
                last_exception = error
                if self._should_retry(error, attempt):
                    time.sleep(self._calculate_retry_delay(attempt))
                    continue
                raise error from e

        if last_exception:
            raise last_exception
        raise DriveAPIError("Request failed after all retry attempts")

    # =========================
    # Listing
    # =========================

    def list_children(
        self,
        folder_id: str,
        page_token: str | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> dict[str, Any]:
        """List one page of the immediate, non-trashed children of a folder.

        Shared drive items are included.

        Args:
            folder_id: Drive folder ID
            page_token: Token from a previous page's ``nextPageToken``
            page_size: Number of entries per page

        Returns:
            Drive ``files.list`` response with ``files`` and ``nextPageToken``
        """
        escaped = folder_id.replace("\\", "\\\\").replace("'", "\\'")
        params: dict[str, Any] = {
            "q": f"'{escaped}' in parents and trashed = false",
            "fields": LIST_FIELDS,
            "pageSize": page_size,
            "supportsAllDrives": "true",
            "includeItemsFromAllDrives": "true",
        }
        if page_token:
            params["pageToken"] = page_token
        return self._request("GET", "/files", params=params)

    # =========================
    # Download Operations
    # =========================

    def download_file(
        self,
        file_id: str,
        output_path: Path,
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> Path:
        """Download a file's binary content.

        The content is streamed into a hidden ``.part`` file next to
        ``output_path`` and renamed over it only once the stream has been
        read completely, so an interrupted download never leaves a truncated
        file in place.

        Args:
            file_id: Drive file ID
            output_path: Destination path (overwritten if it exists)
            progress_callback: Optional callback function(bytes_downloaded, total_bytes)

        Returns:
            Path where the file was saved

        Raises:
            DriveAPIError: If download fails
        """
        url = f"{self.api_url}/files/{file_id}"
        params = {"alt": "media", "supportsAllDrives": "true"}
        part_path = output_path.with_name(f".{output_path.name}.part")
        client = self._get_client()

        for attempt in range(self.max_retries + 1):
            try:
                self._stream_to(client, url, params, part_path, progress_callback)
                os.replace(part_path, output_path)
                return output_path

            except httpx.HTTPStatusError as e:
                part_path.unlink(missing_ok=True)
                error, should_retry = self._handle_http_error(e, attempt)
                if should_retry:
                    time.sleep(self._retry_after(e.response, attempt))
                    continue
                raise DriveDownloadError(f"Download failed: {error}") from e
            except httpx.RequestError as e:
                part_path.unlink(missing_ok=True)
                error = DriveNetworkError(f"Network error during download: {e}")
                if self._should_retry(error, attempt):
                    time.sleep(self._calculate_retry_delay(attempt))
                    continue
                raise error from e
            except OSError as e:
                part_path.unlink(missing_ok=True)
                raise DriveDownloadError(f"Failed to write file: {e}") from e
            except BaseException:
                part_path.unlink(missing_ok=True)
                raise

        raise DriveDownloadError(
            f"Download of {file_id} failed after all retry attempts"
        )

    def _stream_to(
        self,
        client: httpx.Client,
        url: str,
        params: dict[str, str],
        path: Path,
        progress_callback: Callable[[int, int], None] | None,
    ) -> None:
        with client.stream(
            "GET", url, params=params, headers=self._auth_headers()
        ) as response:
            if response.is_error:
                response.read()
            response.raise_for_status()

            total_size = int(response.headers.get("Content-Length", 0))
            bytes_downloaded = 0

            with open(path, "wb") as f:
                for chunk in response.iter_bytes(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
                        bytes_downloaded += len(chunk)
                        if progress_callback:
                            progress_callback(bytes_downloaded, total_size)
