"""Media map generation.

The media map lists, for every logical directory, the public URL paths of
its files. It is rebuilt from the sync state on every run.
"""

import logging
from pathlib import Path

from ..utils import ROOT_KEY, write_json_atomic
from .state import SyncState

logger = logging.getLogger(__name__)

MediaIndex = dict[str, list[str]]


def public_path(directory_key: str, name: str) -> str:
    """Return the public path of a file.

    Examples:
        >>> public_path("Photos", "a.jpg")
        '/Photos/a.jpg'
        >>> public_path("public-root", "b.png")
        '/b.png'
    """
    if directory_key == ROOT_KEY:
        return f"/{name}"
    return f"/{directory_key}/{name}"


def build_media_index(state: SyncState) -> MediaIndex:
    """Build the media map from sync state.

    Directories and files keep the order of the state mappings, which is
    insertion order.
    """
    return {
        key: [public_path(key, record.name) for record in directory.files.values()]
        for key, directory in state.dirs.items()
    }


def write_media_index(index: MediaIndex, path: Path) -> None:
    """Write the media map, replacing any previous one.

    Raises:
        OSError: If the file cannot be written
    """
    write_json_atomic(path, index)
    logger.debug("Wrote media map with %d directories to %s", len(index), path)
