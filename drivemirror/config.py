"""Configuration for drivemirror.

Settings are read once at startup from the environment (optionally seeded
from a ``.env`` file) into a ``DriveMirrorConfig`` that is handed to the
client and the sync engine.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .exceptions import DriveConfigError

# Folders whose lowercase name contains any of these are never synced
IGNORED_FOLDERS: tuple[str, ...] = ("assets", "cursors", "private")

DRIVE_READONLY_SCOPE = "https://www.googleapis.com/auth/drive.readonly"

ENV_CLIENT_EMAIL = "GOOGLE_SA_CLIENT_EMAIL"
ENV_PRIVATE_KEY = "GOOGLE_SA_PRIVATE_KEY"
ENV_FOLDER_ID = "GOOGLE_DRIVE_FOLDER_ID"
ENV_PUBLIC_DIR = "DRIVEMIRROR_PUBLIC_DIR"
ENV_STATE_PATH = "DRIVEMIRROR_STATE_PATH"
ENV_DATA_DIR = "DRIVEMIRROR_DATA_DIR"

DEFAULT_PUBLIC_DIR = "public"
DEFAULT_STATE_PATH = ".drive-sync.json"
DEFAULT_DATA_DIR = "src/data"
MEDIA_MAP_FILENAME = "media-map.json"


def load_env_file(env_file: Optional[Path] = None) -> bool:
    """Load variables from a .env file into the process environment.

    Variables already set in the environment win over the file.

    Args:
        env_file: Path to the .env file (defaults to ./.env)

    Returns:
        True if a file was found and loaded
    """
    return load_dotenv(dotenv_path=env_file or Path.cwd() / ".env", override=False)


@dataclass(frozen=True)
class DriveMirrorConfig:
    """Resolved configuration for one sync run."""

    client_email: str
    private_key: str
    root_folder_id: str
    public_dir: Path = Path(DEFAULT_PUBLIC_DIR)
    state_path: Path = Path(DEFAULT_STATE_PATH)
    data_dir: Path = Path(DEFAULT_DATA_DIR)
    ignored_folders: tuple[str, ...] = field(default=IGNORED_FOLDERS)

    @property
    def media_map_path(self) -> Path:
        """Path of the generated media map."""
        return self.data_dir / MEDIA_MAP_FILENAME

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None
    ) -> "DriveMirrorConfig":
        """Build configuration from environment variables.

        Args:
            environ: Mapping to read from (defaults to ``os.environ``)

        Returns:
            Resolved configuration

        Raises:
            DriveConfigError: If a required variable is missing or empty
        """
        if environ is None:
            environ = os.environ

        missing = [
            name
            for name in (ENV_CLIENT_EMAIL, ENV_PRIVATE_KEY, ENV_FOLDER_ID)
            if not environ.get(name)
        ]
        if missing:
            raise DriveConfigError(
                f"Missing environment variable(s): {', '.join(missing)}"
            )

        return cls(
            client_email=environ[ENV_CLIENT_EMAIL],
            # Keys pasted into .env files usually carry literal "\n" sequences
            private_key=environ[ENV_PRIVATE_KEY].replace("\\n", "\n"),
            root_folder_id=environ[ENV_FOLDER_ID],
            public_dir=Path(environ.get(ENV_PUBLIC_DIR) or DEFAULT_PUBLIC_DIR),
            state_path=Path(environ.get(ENV_STATE_PATH) or DEFAULT_STATE_PATH),
            data_dir=Path(environ.get(ENV_DATA_DIR) or DEFAULT_DATA_DIR),
        )
