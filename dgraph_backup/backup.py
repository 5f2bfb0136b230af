"""Backup pipeline: export, wait, archive, upload, clean up."""

import logging
import shutil
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

from dgraph_backup.archiver import Archiver
from dgraph_backup.exceptions import ExportNotReadyError, StorageError
from dgraph_backup.export import ExportTrigger
from dgraph_backup.models import BackupArchive, BackupResult
from dgraph_backup.poller import ExponentialBackoff, ReadinessPoller
from dgraph_backup.storage import RemoteStore

logger = logging.getLogger(__name__)


class BackupPipeline:
    """One unit of backup work. Not reentrant: callers must serialize runs."""

    def __init__(self, config, trigger: ExportTrigger, poller: ReadinessPoller,
                 archiver: Archiver, store: RemoteStore):
        self.config = config
        self.trigger = trigger
        self.poller = poller
        self.archiver = archiver
        self.store = store

    @classmethod
    def from_config(cls, config, store: Optional[RemoteStore] = None,
                    stop_event: Optional[threading.Event] = None) -> 'BackupPipeline':
        """Wire the default collaborators from configuration."""
        trigger = ExportTrigger(
            config.dgraph.host,
            config.dgraph.export_format,
            timeout=config.dgraph.request_timeout
        )
        backoff = ExponentialBackoff(
            initial_delay=config.polling.initial_delay_seconds,
            max_delay=config.polling.max_delay_seconds,
            multiplier=config.polling.multiplier
        )
        poller = ReadinessPoller(backoff, stop_event=stop_event)
        archiver = Archiver(config.archive.work_dir, config.archive.compression_level)
        store = store or RemoteStore.from_config(config)
        return cls(config, trigger, poller, archiver, store)

    @property
    def export_path(self) -> Path:
        return Path(self.config.dgraph.export_path)

    def run(self) -> BackupResult:
        """Execute one backup.

        Returns:
            BackupResult; success is False when the export request was
            rejected or the upload failed.

        Raises:
            FatalBackupError: export failed or unreachable, export never
                appeared, or archiving failed.
            BackupCancelledError: stop requested while waiting.
        """
        result = BackupResult(success=False, stage='trigger')

        if not self.trigger.request_export():
            result.error = "Export request was rejected by the server"
            result.finished_at = datetime.now()
            logger.error(f"❌ Backup aborted: {result.error}")
            return result

        result.stage = 'wait'
        ready = self.poller.wait_until_ready(self.export_path, self.config.polling.max_attempts)
        if self.poller.state:
            result.poll_attempts = self.poller.state.attempt_count
        if not ready:
            raise ExportNotReadyError(self.export_path, self.config.polling.max_attempts)

        archive = None
        try:
            result.stage = 'archive'
            archive = self.archiver.compress(self.export_path, self.config.archive.file_prefix)
            result.archive_key = self.store.object_key(archive.key)
            result.archive_size = archive.size

            result.stage = 'upload'
            try:
                result.location = self.store.upload(archive.local_path, result.archive_key)
                result.success = True
            except StorageError as e:
                result.error = str(e)
                logger.error(f"❌ Failed to upload: {e}")
        finally:
            self.cleanup(archive)
            result.finished_at = datetime.now()

        if result.success:
            result.stage = 'done'
            logger.info(f"✅ SUCCESS: {result.archive_key} ({result.duration_seconds:.1f}s)")
        return result

    def cleanup(self, archive: Optional[BackupArchive] = None):
        """Remove the archive file and the export directory. Errors are only logged."""
        if archive is not None:
            try:
                if archive.local_path.exists():
                    archive.local_path.unlink()
                    logger.debug(f"Deleted archive {archive.local_path}")
            except OSError as e:
                logger.warning(f"⚠️ Error while deleting {archive.local_path}: {e}")

        try:
            if self.export_path.is_dir():
                shutil.rmtree(self.export_path)
            elif self.export_path.exists():
                self.export_path.unlink()
            logger.debug(f"Deleted export path {self.export_path}")
        except OSError as e:
            logger.warning(f"⚠️ Error while deleting {self.export_path}: {e}")
