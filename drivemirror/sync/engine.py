"""Core sync engine for mirroring a Drive folder onto local disk."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Optional

from rich.progress import Progress, SpinnerColumn, TextColumn

from ..api import DriveClient
from ..config import DriveMirrorConfig
from ..file_entries_manager import FileEntriesManager
from ..models import RemoteEntry
from ..output import OutputFormatter
from ..utils import ROOT_KEY, is_ignored_folder, is_reserved_folder_name
from .comparator import DirectoryPlan, FileComparator, SyncDecision
from .index import build_media_index, write_media_index
from .operations import SyncOperations
from .state import DirectoryState, FileRecord, StateLoadStatus, SyncStateManager

logger = logging.getLogger(__name__)


class SyncEngine:
    """Mirrors the configured Drive folder into the public directory.

    Each retained top-level folder becomes ``public_dir/<folder name>``;
    loose files in the root folder go to ``public_dir`` itself under the
    ``ROOT_KEY`` directory key.
    """

    def __init__(
        self,
        client: DriveClient,
        config: DriveMirrorConfig,
        output: Optional[OutputFormatter] = None,
        state_manager: Optional[SyncStateManager] = None,
        max_workers: int = 1,
    ):
        """Initialize sync engine.

        Args:
            client: Drive API client
            config: Resolved configuration
            output: Output formatter for displaying progress/status
            state_manager: State store (defaults to one at ``config.state_path``)
            max_workers: Number of parallel downloads per directory (default: 1)
        """
        self.client = client
        self.config = config
        self.output = output or OutputFormatter()
        self.state_manager = state_manager or SyncStateManager(config.state_path)
        self.max_workers = max(1, max_workers)
        self.operations = SyncOperations(client)
        self.entries = FileEntriesManager(client)
        self.comparator = FileComparator()

    def run(self, dry_run: bool = False) -> dict:
        """Run one full sync.

        Listing errors and state persistence errors propagate and abort the
        run; in that case the state file is left as it was. Download errors
        only affect the file concerned.

        Args:
            dry_run: If True, only show what would be done

        Returns:
            Dictionary with sync statistics

        Raises:
            DriveAPIError: If a folder cannot be listed
            StatePersistenceError: If the state file cannot be written
            OSError: If the media map cannot be written
        """
        start_time = time.time()

        load_result = self.state_manager.load()
        if load_result.status == StateLoadStatus.CORRUPT:
            self.output.warning(
                f"Sync state {self.state_manager.state_path} is unreadable "
                f"({load_result.error}); starting from empty state"
            )
        state = load_result.state

        root_items = self._list_with_spinner(
            self.config.root_folder_id, "Listing root folder..."
        )
        folders, root_files = self._partition_root(root_items)

        if not self.output.quiet:
            self.output.info(f"Syncing folders: {', '.join(folders) or '(none)'}")
            self.output.info(f"Root files: {len(root_files)}")
            if dry_run:
                self.output.info("Dry run: No changes will be made")
            self.output.print("")

        stats = self._create_empty_stats()

        for name, folder in folders.items():
            entries = self._list_with_spinner(folder.id, f"Listing {name}...")
            dir_stats = self.reconcile_directory(
                entries,
                state.directory(name),
                self.config.public_dir / name,
                dry_run=dry_run,
            )
            self._add_stats(stats, dir_stats)

        dir_stats = self.reconcile_directory(
            root_files,
            state.directory(ROOT_KEY),
            self.config.public_dir,
            dry_run=dry_run,
        )
        self._add_stats(stats, dir_stats)
        stats["directories"] = len(folders) + 1

        if not dry_run:
            self.state_manager.save(state)
            index = build_media_index(state)
            write_media_index(index, self.config.media_map_path)
            if not self.output.quiet:
                self.output.info(f"Media map written to {self.config.media_map_path}")

        logger.debug("Sync finished in %.2fs", time.time() - start_time)

        if not self.output.quiet:
            self._display_summary(stats, dry_run)

        return stats

    def reconcile_directory(
        self,
        remote_entries: list[RemoteEntry],
        directory_state: DirectoryState,
        local_path: Path,
        dry_run: bool = False,
    ) -> dict:
        """Bring one local directory in line with its Drive listing.

        New and modified files are downloaded, files no longer listed are
        deleted, and ``directory_state`` is updated in place. A failed
        download leaves the file's record untouched so it is retried on the
        next run.

        Args:
            remote_entries: Current children of the remote folder
            directory_state: Stored records for this directory (mutated)
            local_path: Local directory mirroring the remote folder
            dry_run: If True, only report the plan

        Returns:
            Dictionary with statistics for this directory
        """
        plan = self.comparator.plan(remote_entries, directory_state)
        stats = self._create_empty_stats()
        stats["skips"] = len(plan.skips)

        if dry_run:
            self._display_plan(plan, local_path)
            stats["downloads"] = len(plan.downloads)
            stats["deletes_local"] = len(plan.deletions)
            return stats

        local_path.mkdir(parents=True, exist_ok=True)

        results = self._execute_downloads(plan.downloads, local_path)
        # Apply in plan order so record order does not depend on timing
        for decision in plan.downloads:
            entry = decision.remote_entry
            local_name = results.get(decision.file_id)
            if entry is None or local_name is None:
                stats["failed"] += 1
                continue
            directory_state.upsert(
                entry.id,
                FileRecord(
                    name=local_name,
                    modified_time=entry.modified_time,
                    mime_type=entry.mime_type or None,
                ),
            )
            stats["downloads"] += 1

        for decision in plan.deletions:
            record = decision.record
            if record is not None:
                self._delete_local(local_path / record.name)
            directory_state.remove(decision.file_id)
            stats["deletes_local"] += 1

        return stats

    def _list_with_spinner(
        self, folder_id: str, description: str
    ) -> list[RemoteEntry]:
        """List a folder while showing a spinner."""
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            disable=self.output.quiet or self.output.json_output,
        ) as progress:
            task = progress.add_task(description, total=None)
            entries = self.entries.get_all_in_folder(folder_id)
            progress.update(task, description=f"Found {len(entries)} item(s)")
        return entries

    def _partition_root(
        self, root_items: list[RemoteEntry]
    ) -> tuple[dict[str, RemoteEntry], list[RemoteEntry]]:
        """Split the root listing into retained folders and loose files.

        Folders whose name matches the ignore list are dropped, as are
        native documents. Folders named ``ROOT_KEY`` or whose name is not a
        single path component are skipped with a warning. When two folders
        share a name the later one wins.

        Returns:
            Tuple of (folders by name, root files)
        """
        folders: dict[str, RemoteEntry] = {}
        root_files: list[RemoteEntry] = []

        for item in root_items:
            if not item.mime_type:
                continue
            if item.is_folder:
                if is_ignored_folder(item.name, self.config.ignored_folders):
                    logger.debug("Ignoring folder %s", item.name)
                    continue
                if is_reserved_folder_name(item.name):
                    self.output.warning(
                        f"Skipping folder '{item.name}' ({item.id}): "
                        "name cannot be used as a local directory"
                    )
                    continue
                if item.name in folders:
                    self.output.warning(
                        f"Duplicate folder name '{item.name}', using {item.id}"
                    )
                folders[item.name] = item
            elif not item.is_native_document:
                root_files.append(item)

        return folders, root_files

    def _execute_downloads(
        self, decisions: list[SyncDecision], local_path: Path
    ) -> dict[str, Optional[str]]:
        """Download files, sequentially or in parallel.

        Returns:
            Mapping of file ID to local name, or None where the download failed
        """
        if self.max_workers <= 1 or len(decisions) <= 1:
            return {
                decision.file_id: self._download_one(decision, local_path)
                for decision in decisions
            }

        logger.debug(
            f"Downloading {len(decisions)} files with {self.max_workers} workers"
        )
        results: dict[str, Optional[str]] = {}
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(self._download_one, decision, local_path): decision
                for decision in decisions
            }
            for future in as_completed(futures):
                results[futures[future].file_id] = future.result()
        return results

    def _download_one(
        self, decision: SyncDecision, local_path: Path
    ) -> Optional[str]:
        """Download a single file, reporting instead of raising on failure."""
        entry = decision.remote_entry
        if entry is None:
            return None

        start = time.time()
        try:
            local_name = self.operations.download_entry(entry, local_path)
        except Exception as e:
            logger.debug("Download of %s failed", entry.name, exc_info=True)
            self.output.error(f"Failed to download {entry.name}: {e}")
            return None

        logger.debug("Download of %s took %.2fs", entry.name, time.time() - start)
        if not self.output.quiet:
            self.output.info(f"Downloaded: {entry.name}")
        return local_name

    def _delete_local(self, path: Path) -> None:
        """Delete a local file, tolerating files that are already gone."""
        try:
            self.operations.delete_local(path)
        except OSError as e:
            self.output.warning(f"Could not remove {path}: {e}")
            return
        if not self.output.quiet:
            self.output.info(f"Removed: {path.name}")

    def _create_empty_stats(self) -> dict:
        """Create an empty statistics dictionary.

        Returns:
            Dictionary with zero counts for all stat categories
        """
        return {
            "downloads": 0,
            "deletes_local": 0,
            "skips": 0,
            "failed": 0,
        }

    @staticmethod
    def _add_stats(total: dict, part: dict) -> None:
        for key in ("downloads", "deletes_local", "skips", "failed"):
            total[key] += part[key]

    def _display_plan(self, plan: DirectoryPlan, local_path: Path) -> None:
        """Display what a dry run would do in one directory."""
        if self.output.quiet or not plan.has_changes:
            return

        self.output.info(f"{local_path}:")
        for decision in plan.downloads:
            self.output.info(f"  ↓ {decision.display_name} ({decision.reason})")
        for decision in plan.deletions:
            self.output.info(f"  ✗ {decision.display_name} ({decision.reason})")

    def _display_summary(self, stats: dict, dry_run: bool) -> None:
        """Display sync summary.

        Args:
            stats: Statistics dictionary
            dry_run: Whether this was a dry run
        """
        self.output.print("")
        if dry_run:
            self.output.success("Dry run complete!")
        else:
            self.output.success("Sync complete!")

        total_actions = stats["downloads"] + stats["deletes_local"]

        if total_actions > 0:
            self.output.info(f"Total actions: {total_actions}")
            if stats["downloads"] > 0:
                label = "To download" if dry_run else "Downloaded"
                self.output.info(f"  {label}: {stats['downloads']}")
            if stats["deletes_local"] > 0:
                label = "To delete locally" if dry_run else "Deleted locally"
                self.output.info(f"  {label}: {stats['deletes_local']}")
        else:
            self.output.info("No changes needed - everything is in sync!")

        if stats["failed"] > 0:
            self.output.warning(
                f"{stats['failed']} download(s) failed and will be retried next run"
            )
