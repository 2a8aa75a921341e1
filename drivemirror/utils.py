"""Utility functions for drivemirror."""

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Optional

# =============================================================================
# Constants for Drive operations
# =============================================================================

# MIME type Drive uses for folders
FOLDER_MIME_TYPE: str = "application/vnd.google-apps.folder"

# Docs, Sheets, Slides, folders, shortcuts... have no binary to download
NATIVE_DOCUMENT_PREFIX: str = "application/vnd.google-apps."

# Logical directory key for files that live directly in the root folder
ROOT_KEY: str = "public-root"

# Page size for folder listings (Drive v3 maximum)
DEFAULT_PAGE_SIZE: int = 1000

# Chunk size for streamed downloads (64 KB)
DOWNLOAD_CHUNK_SIZE: int = 64 * 1024

# Retry configuration for transient errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 1.0  # seconds


# =============================================================================
# Naming utilities
# =============================================================================

SAFE_NAME_PLACEHOLDER: str = "·"

_UNSAFE_CHARS = re.compile(r'[/\\?%*:|"<>]')


def safe_name(name: str) -> str:
    """Turn a Drive display name into a name that is safe on local disk.

    Path separators, glob wildcards, quotes, angle brackets, colon, pipe
    and percent are each replaced with ``SAFE_NAME_PLACEHOLDER``, then
    surrounding whitespace is stripped. Distinct remote names may map to the
    same local name.

    Args:
        name: Remote display name

    Returns:
        Sanitized file name

    Examples:
        >>> safe_name("a/b:c*d.png")
        'a·b·c·d.png'
        >>> safe_name("  report.pdf ")
        'report.pdf'
    """
    return _UNSAFE_CHARS.sub(SAFE_NAME_PLACEHOLDER, name).strip()


# =============================================================================
# MIME type helpers
# =============================================================================


def is_folder(mime_type: Optional[str]) -> bool:
    """Check whether a MIME type denotes a Drive folder."""
    return mime_type == FOLDER_MIME_TYPE


def is_native_document(mime_type: Optional[str]) -> bool:
    """Check whether a MIME type denotes a Google-native document.

    Native documents (Docs, Sheets, Slides, Forms, folders, shortcuts) have
    no fixed binary form and are never downloaded.

    Examples:
        >>> is_native_document("application/vnd.google-apps.document")
        True
        >>> is_native_document("image/png")
        False
    """
    return bool(mime_type) and mime_type.startswith(NATIVE_DOCUMENT_PREFIX)


def is_ignored_folder(name: str, ignored: tuple[str, ...]) -> bool:
    """Check whether a folder name contains any ignored substring.

    The match is case-insensitive: ``"Private Photos"`` is ignored by
    ``("private",)``.
    """
    lowered = name.lower()
    return any(pattern in lowered for pattern in ignored)


def is_reserved_folder_name(name: str) -> bool:
    """Check whether a folder name cannot serve as a local directory key.

    Such names either collide with ``ROOT_KEY`` or would resolve outside
    the public directory.

    Examples:
        >>> is_reserved_folder_name("public-root")
        True
        >>> is_reserved_folder_name("..")
        True
        >>> is_reserved_folder_name("a/b")
        True
        >>> is_reserved_folder_name("Photos")
        False
    """
    if name in (ROOT_KEY, "", ".", ".."):
        return True
    return "/" in name or "\\" in name


# =============================================================================
# File utilities
# =============================================================================


def write_json_atomic(path: Path, data: Any) -> None:
    """Write ``data`` as indented JSON, replacing ``path`` atomically.

    The document goes to a temporary file in the same directory which is then
    moved over ``path``; on failure the temporary file is removed and the
    original file is left untouched.

    Raises:
        OSError: If the file cannot be written
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
