"""Unit tests for the Drive API client."""

from unittest.mock import Mock

import httpx
import pytest

from drivemirror.api import DriveClient
from drivemirror.config import DriveMirrorConfig
from drivemirror.exceptions import (
    DriveAPIError,
    DriveAuthenticationError,
    DriveConfigError,
    DriveDownloadError,
    DriveNetworkError,
    DriveNotFoundError,
    DrivePermissionError,
    DriveRateLimitError,
)


def _credentials(valid=True):
    credentials = Mock()
    credentials.valid = valid
    credentials.token = "test-token"
    return credentials


def _client(handler, **kwargs):
    kwargs.setdefault("retry_delay", 0)
    return DriveClient(
        _credentials(), transport=httpx.MockTransport(handler), **kwargs
    )


def _error(status, message):
    return httpx.Response(
        status, json={"error": {"code": status, "message": message}}
    )


class TestDriveClient:
    """Tests for DriveClient initialization and authentication."""

    def test_default_api_url(self):
        client = DriveClient(_credentials())
        assert client.api_url == "https://www.googleapis.com/drive/v3"

    def test_bearer_token_sent(self):
        """Test that requests carry the credentials' access token."""
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={"files": []})

        _client(handler).list_children("root")

        assert seen["auth"] == "Bearer test-token"

    def test_expired_credentials_are_refreshed(self):
        credentials = _credentials(valid=False)
        client = DriveClient(
            credentials,
            transport=httpx.MockTransport(
                lambda request: httpx.Response(200, json={"files": []})
            ),
        )

        client.list_children("root")

        credentials.refresh.assert_called_once()

    def test_refresh_failure_raises_authentication_error(self):
        credentials = _credentials(valid=False)
        credentials.refresh.side_effect = RuntimeError("invalid_grant")
        client = DriveClient(credentials)

        with pytest.raises(DriveAuthenticationError, match="invalid_grant"):
            client.list_children("root")

    def test_from_config_rejects_invalid_key(self):
        """Test that an unparseable private key is a configuration error."""
        config = DriveMirrorConfig(
            client_email="sync@example.iam.gserviceaccount.com",
            private_key="not a key",
            root_folder_id="root",
        )

        with pytest.raises(DriveConfigError):
            DriveClient.from_config(config)

    def test_context_manager_closes_client(self):
        client = _client(lambda request: httpx.Response(200, json={"files": []}))
        with client:
            client.list_children("root")
            assert client._client is not None
        assert client._client is None


class TestListChildren:
    """Tests for list_children."""

    def test_query_parameters(self):
        """Test that listing excludes trashed items and includes shared drives."""
        seen = {}

        def handler(request):
            seen["url"] = request.url
            return httpx.Response(
                200,
                json={
                    "files": [{"id": "1", "name": "a.jpg"}],
                    "nextPageToken": "next",
                },
            )

        result = _client(handler).list_children("folder123")

        params = seen["url"].params
        assert seen["url"].path == "/drive/v3/files"
        assert params["q"] == "'folder123' in parents and trashed = false"
        assert params["supportsAllDrives"] == "true"
        assert params["includeItemsFromAllDrives"] == "true"
        assert "modifiedTime" in params["fields"]
        assert "nextPageToken" in params["fields"]
        assert "pageToken" not in params
        assert result["nextPageToken"] == "next"

    def test_page_token(self):
        seen = {}

        def handler(request):
            seen["params"] = request.url.params
            return httpx.Response(200, json={"files": []})

        _client(handler).list_children("folder123", page_token="abc", page_size=50)

        assert seen["params"]["pageToken"] == "abc"
        assert seen["params"]["pageSize"] == "50"

    def test_quotes_in_folder_id_are_escaped(self):
        seen = {}

        def handler(request):
            seen["q"] = request.url.params["q"]
            return httpx.Response(200, json={"files": []})

        _client(handler).list_children("a'b")

        assert seen["q"] == "'a\\'b' in parents and trashed = false"

    @pytest.mark.parametrize(
        "status,message,error_class",
        [
            (401, "Invalid Credentials", DriveAuthenticationError),
            (403, "Insufficient permissions for this file", DrivePermissionError),
            (404, "File not found: root", DriveNotFoundError),
            (400, "Invalid query", DriveAPIError),
        ],
    )
    def test_error_mapping(self, status, message, error_class):
        """Test that HTTP errors map to specific exceptions without retrying."""
        calls = []

        def handler(request):
            calls.append(request)
            return _error(status, message)

        with pytest.raises(error_class, match=message):
            _client(handler).list_children("root")

        assert len(calls) == 1

    def test_server_error_is_retried(self):
        responses = [
            _error(503, "Backend Error"),
            httpx.Response(200, json={"files": []}),
        ]

        result = _client(lambda request: responses.pop(0)).list_children("root")

        assert result == {"files": []}

    def test_rate_limit_403_is_retried(self):
        """Drive reports some quota errors as 403 with a rate limit message."""
        responses = [
            _error(403, "User Rate Limit Exceeded"),
            httpx.Response(200, json={"files": []}),
        ]

        result = _client(lambda request: responses.pop(0)).list_children("root")

        assert result == {"files": []}

    def test_rate_limit_exhausted(self):
        def handler(request):
            return _error(429, "Too many requests")

        with pytest.raises(DriveRateLimitError):
            _client(handler, max_retries=2).list_children("root")

    def test_server_error_exhausted(self):
        calls = []

        def handler(request):
            calls.append(request)
            return _error(500, "Internal Error")

        with pytest.raises(DriveAPIError, match="status 500"):
            _client(handler, max_retries=2).list_children("root")

        assert len(calls) == 3

    def test_network_error(self):
        """Test that connection failures surface as DriveNetworkError."""
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(DriveNetworkError):
            _client(handler, max_retries=1).list_children("root")

        assert len(calls) == 2

    def test_invalid_json(self):
        def handler(request):
            return httpx.Response(200, content=b"<html></html>")

        with pytest.raises(DriveAPIError, match="Invalid JSON"):
            _client(handler).list_children("root")


class FailingStream(httpx.SyncByteStream):
    """Response body that breaks off after the first chunk."""

    def __iter__(self):
        yield b"partial"
        raise httpx.ReadError("connection reset")


class TestDownloadFile:
    """Tests for download_file."""

    def test_download_writes_file(self, tmp_path):
        seen = {}

        def handler(request):
            seen["url"] = request.url
            return httpx.Response(200, content=b"image bytes")

        output = tmp_path / "a.jpg"
        result = _client(handler).download_file("file1", output)

        assert result == output
        assert output.read_bytes() == b"image bytes"
        assert seen["url"].path == "/drive/v3/files/file1"
        assert seen["url"].params["alt"] == "media"
        assert seen["url"].params["supportsAllDrives"] == "true"
        assert [p.name for p in tmp_path.iterdir()] == ["a.jpg"]

    def test_download_overwrites_existing_file(self, tmp_path):
        output = tmp_path / "a.jpg"
        output.write_bytes(b"old")

        _client(lambda request: httpx.Response(200, content=b"new")).download_file(
            "file1", output
        )

        assert output.read_bytes() == b"new"

    def test_progress_callback(self, tmp_path):
        progress = Mock()

        _client(
            lambda request: httpx.Response(
                200, content=b"12345", headers={"Content-Length": "5"}
            )
        ).download_file("file1", tmp_path / "a.bin", progress_callback=progress)

        progress.assert_called_with(5, 5)

    def test_interrupted_download_leaves_no_partial_file(self, tmp_path):
        """A broken stream fails the download and keeps the old file intact."""
        output = tmp_path / "a.jpg"
        output.write_bytes(b"previous version")

        def handler(request):
            return httpx.Response(200, stream=FailingStream())

        with pytest.raises(DriveNetworkError):
            _client(handler, max_retries=0).download_file("file1", output)

        assert output.read_bytes() == b"previous version"
        assert [p.name for p in tmp_path.iterdir()] == ["a.jpg"]

    def test_interrupted_download_is_retried(self, tmp_path):
        responses = [
            httpx.Response(200, stream=FailingStream()),
            httpx.Response(200, content=b"complete"),
        ]
        output = tmp_path / "a.jpg"

        _client(lambda request: responses.pop(0)).download_file("file1", output)

        assert output.read_bytes() == b"complete"

    def test_download_not_found(self, tmp_path):
        def handler(request):
            return _error(404, "File not found: file1")

        with pytest.raises(DriveDownloadError, match="File not found"):
            _client(handler).download_file("file1", tmp_path / "a.jpg")

        assert list(tmp_path.iterdir()) == []

    def test_download_to_missing_directory(self, tmp_path):
        """Write errors surface as DriveDownloadError."""
        with pytest.raises(DriveDownloadError, match="Failed to write"):
            _client(lambda request: httpx.Response(200, content=b"x")).download_file(
                "file1", tmp_path / "missing" / "a.jpg"
            )
