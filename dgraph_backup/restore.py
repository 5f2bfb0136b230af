"""Restore pipeline: list, select, download, extract, load."""

import logging
import subprocess
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from dgraph_backup.archiver import Archiver
from dgraph_backup.exceptions import (
    InvalidSelectionError,
    LoaderError,
    NoBackupsFoundError,
    SelectionCancelledError,
)
from dgraph_backup.models import LoadResult, RemoteObject, RestoreResult
from dgraph_backup.storage import RemoteStore

logger = logging.getLogger(__name__)

Selector = Callable[[List[RemoteObject]], Optional[str]]


def choose(candidates: Sequence[RemoteObject], selection) -> str:
    """Resolve a selection against the listed candidates.

    Args:
        candidates: Objects shown to the operator, in display order
        selection: 1-based position (int or digit string), an exact key,
            or None for a cancelled prompt

    Returns:
        The selected object's key

    Raises:
        SelectionCancelledError: selection is None or empty
        InvalidSelectionError: position out of range or unknown key
    """
    if selection is None or (isinstance(selection, str) and not selection.strip()):
        raise SelectionCancelledError("No backup selected, restore cancelled")

    keys = [c.key for c in candidates]

    if isinstance(selection, str):
        selection = selection.strip()
        if selection in keys:
            return selection
        if not selection.isdigit():
            raise InvalidSelectionError(f"Unknown backup: {selection}")
        selection = int(selection)

    if isinstance(selection, int) and not isinstance(selection, bool):
        if 1 <= selection <= len(keys):
            return keys[selection - 1]
        raise InvalidSelectionError(f"Selection {selection} out of range 1-{len(keys)}")

    raise InvalidSelectionError(f"Cannot parse selection: {selection!r}")


def key_selector(key: str) -> Selector:
    """Selector that picks a fixed key (non-interactive restore).

    Only an exact key matches; positions are not accepted here.
    """
    def select(candidates):
        if key not in {c.key for c in candidates}:
            raise InvalidSelectionError(f"Unknown backup: {key}")
        return key
    return select


def latest_selector(candidates: List[RemoteObject]) -> Optional[str]:
    """Selector that picks the newest object."""
    return candidates[0].key if candidates else None


class CommandLoader:
    """Run an external bulk-load command against an extracted export."""

    def __init__(self, command: Sequence[str] = ('dgraph', 'live', '-f'),
                 extra_args: Sequence[str] = ()):
        self.command = list(command)
        self.extra_args = list(extra_args)

    def build_command(self, path) -> List[str]:
        return self.command + [str(path)] + self.extra_args

    def load(self, path) -> LoadResult:
        """Run the loader with stdout and stderr combined.

        Raises:
            LoaderError: the executable could not be started.
        """
        cmd = self.build_command(path)
        logger.info(f"Running loader: {' '.join(cmd)}")
        try:
            completed = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True
            )
        except OSError as e:
            raise LoaderError(f"Cannot run {cmd[0]}: {e}") from e
        return LoadResult(output=completed.stdout or '', exit_status=completed.returncode)


class RestorePipeline:
    """Fetch one snapshot from the bucket and load it into Dgraph."""

    def __init__(self, store: RemoteStore, archiver: Archiver, loader,
                 selector: Selector, work_dir='.', restore_dir='data',
                 run_loader: bool = True):
        self.store = store
        self.archiver = archiver
        self.loader = loader
        self.selector = selector
        self.work_dir = Path(work_dir)
        self.restore_dir = Path(restore_dir)
        self.run_loader = run_loader

    @classmethod
    def from_config(cls, config, selector: Selector, store: Optional[RemoteStore] = None,
                    loader=None, run_loader: bool = True) -> 'RestorePipeline':
        return cls(
            store=store or RemoteStore.from_config(config),
            archiver=Archiver(config.archive.work_dir, config.archive.compression_level),
            loader=loader or CommandLoader(config.loader.command, config.loader.extra_args),
            selector=selector,
            work_dir=config.archive.work_dir,
            restore_dir=config.archive.restore_dir,
            run_loader=run_loader
        )

    def select(self) -> str:
        """List the bucket and let the selector pick a key."""
        candidates = self.store.list_objects()
        if not candidates:
            raise NoBackupsFoundError(f"No backups found in bucket {self.store.bucket}")

        key = self.selector(candidates)
        if key is None:
            raise SelectionCancelledError("No backup selected, restore cancelled")
        if key not in {c.key for c in candidates}:
            raise InvalidSelectionError(f"Unknown backup: {key}")
        return key

    def run(self) -> RestoreResult:
        """Execute the restore.

        Raises:
            RestoreError: nothing to restore, selection cancelled or invalid,
                or the loader failed.
            DownloadError: the object could not be fetched.
            ArchiveError: the download could not be extracted.
        """
        key = self.select()
        logger.info(f"Restoring backup {key}")

        archive_path = self.store.download(key, self.work_dir)
        data_path = self.archiver.extract(archive_path, self.restore_dir)

        result = RestoreResult(success=True, key=key, archive_path=archive_path,
                               data_path=data_path)
        if not self.run_loader:
            logger.info(f"Skipping loader, data extracted to {data_path}")
            return result

        load = self.loader.load(data_path)
        result.loader_output = load.output
        if not load.ok:
            raise LoaderError(
                f"Loader exited with status {load.exit_status}",
                output=load.output,
                exit_status=load.exit_status
            )

        logger.info(f"✓ Restore of {key} complete")
        return result
