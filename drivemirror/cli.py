"""CLI interface for drivemirror."""

import dataclasses
import logging
from pathlib import Path
from typing import Any, Optional

import click

from . import __version__
from .api import DriveClient
from .config import (
    DEFAULT_DATA_DIR,
    DEFAULT_STATE_PATH,
    ENV_DATA_DIR,
    ENV_STATE_PATH,
    MEDIA_MAP_FILENAME,
    DriveMirrorConfig,
    load_env_file,
)
from .exceptions import DriveAPIError, DriveConfigError, StatePersistenceError
from .output import OutputFormatter
from .sync import SyncEngine, SyncStateManager, build_media_index, write_media_index
from .sync.state import StateLoadStatus

logger = logging.getLogger(__name__)


def state_file_option(func: Any) -> Any:
    return click.option(
        "--state-file",
        type=click.Path(dir_okay=False, path_type=Path),
        envvar=ENV_STATE_PATH,
        default=DEFAULT_STATE_PATH,
        show_default=True,
        help="Path of the sync state file",
    )(func)


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Load environment variables from this file (default: ./.env)",
)
@click.version_option(version=__version__)
@click.pass_context
def main(
    ctx: Any,
    quiet: bool,
    json: bool,
    verbose: bool,
    env_file: Optional[Path],
) -> None:
    """drivemirror - Mirror a Google Drive folder into a public directory."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("drivemirror").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)

    if load_env_file(env_file):
        logger.debug("Loaded environment from %s", env_file or ".env")


@main.command()
@click.option(
    "--public-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory to mirror into (default: public)",
)
@click.option(
    "--state-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path of the sync state file (default: .drive-sync.json)",
)
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for media-map.json (default: src/data)",
)
@click.option(
    "--workers",
    type=click.IntRange(1, 32),
    default=1,
    show_default=True,
    help="Number of parallel downloads per folder",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show what would be done without downloading or deleting anything",
)
@click.pass_context
def sync(
    ctx: Any,
    public_dir: Optional[Path],
    state_file: Optional[Path],
    data_dir: Optional[Path],
    workers: int,
    dry_run: bool,
) -> None:
    """Download new and changed files, remove deleted ones, write the media map.

    Credentials and the root folder are read from GOOGLE_SA_CLIENT_EMAIL,
    GOOGLE_SA_PRIVATE_KEY and GOOGLE_DRIVE_FOLDER_ID.
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        config = DriveMirrorConfig.from_env()
    except DriveConfigError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    overrides = {
        "public_dir": public_dir,
        "state_path": state_file,
        "data_dir": data_dir,
    }
    config = dataclasses.replace(
        config, **{key: value for key, value in overrides.items() if value}
    )

    try:
        with DriveClient.from_config(config) as client:
            engine = SyncEngine(client, config, output=out, max_workers=workers)
            stats = engine.run(dry_run=dry_run)
    except DriveConfigError as e:
        out.error(str(e))
        ctx.exit(1)
        return
    except DriveAPIError as e:
        out.error(f"Sync aborted, state left unchanged: {e}")
        ctx.exit(1)
        return
    except StatePersistenceError as e:
        out.error(str(e))
        ctx.exit(1)
        return
    except OSError as e:
        out.error(f"Failed to write media map: {e}")
        ctx.exit(1)
        return

    out.output_json({"dry_run": dry_run, **stats})


@main.command()
@state_file_option
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar=ENV_DATA_DIR,
    default=DEFAULT_DATA_DIR,
    show_default=True,
    help="Directory for media-map.json",
)
@click.pass_context
def index(ctx: Any, state_file: Path, data_dir: Path) -> None:
    """Rebuild the media map from the state file without contacting Drive."""
    out: OutputFormatter = ctx.obj["out"]

    result = SyncStateManager(state_file).load()
    if result.status == StateLoadStatus.CORRUPT:
        out.warning(f"Sync state {state_file} is unreadable: {result.error}")

    media_index = build_media_index(result.state)
    media_map_path = data_dir / MEDIA_MAP_FILENAME
    try:
        write_media_index(media_index, media_map_path)
    except OSError as e:
        out.error(f"Failed to write media map: {e}")
        ctx.exit(1)
        return

    out.success(f"Media map written to {media_map_path}")
    out.output_json(media_index)


@main.command()
@state_file_option
@click.pass_context
def status(ctx: Any, state_file: Path) -> None:
    """Show what the state file currently tracks."""
    out: OutputFormatter = ctx.obj["out"]

    result = SyncStateManager(state_file).load()
    counts = {key: len(directory) for key, directory in result.state.dirs.items()}

    if out.json_output:
        out.output_json(
            {
                "state_file": str(state_file),
                "status": result.status.value,
                "directories": counts,
                "files": result.state.file_count,
            }
        )
        return

    if result.status == StateLoadStatus.ABSENT:
        out.info(f"No sync state at {state_file} - nothing synced yet")
        return
    if result.status == StateLoadStatus.CORRUPT:
        out.warning(f"Sync state {state_file} is unreadable: {result.error}")
        return

    out.info(f"State file: {state_file}")
    for key, count in counts.items():
        out.info(f"  {key}: {count} file(s)")
    out.info(f"Total: {result.state.file_count} file(s) in {len(counts)} folder(s)")


@main.command()
@state_file_option
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def reset(ctx: Any, state_file: Path, yes: bool) -> None:
    """Forget all sync state so the next sync downloads everything again.

    Local files are not touched.
    """
    out: OutputFormatter = ctx.obj["out"]

    if not yes and not click.confirm(f"Delete sync state {state_file}?"):
        out.info("Aborted")
        return

    if SyncStateManager(state_file).clear():
        out.success(f"Cleared sync state {state_file}")
    else:
        out.info(f"No sync state at {state_file}")


if __name__ == "__main__":
    main()
