"""Exception hierarchy for backup and restore runs."""


class BackupError(Exception):
    """Base class for all backup/restore failures."""


class FatalBackupError(BackupError):
    """A failure that must stop the process (and any running schedule)."""


class ExportFailedError(FatalBackupError):
    """Export endpoint answered 2xx but without the success marker."""

    def __init__(self, message: str, body: str = ""):
        super().__init__(message)
        self.body = body


class ExportUnreachableError(FatalBackupError):
    """Export endpoint could not be reached at all."""


class ExportNotReadyError(FatalBackupError):
    """Export path never appeared within the allowed attempts."""

    def __init__(self, path, attempts: int):
        super().__init__(f"Export not ready at {path} after {attempts} attempts")
        self.path = path
        self.attempts = attempts


class ArchiveError(FatalBackupError):
    """Creating or extracting an archive failed."""


class BackupCancelledError(BackupError):
    """Stop was requested while waiting for the export."""


class StorageError(BackupError):
    """Object storage operation failed."""


class DownloadError(StorageError):
    pass


class RestoreError(BackupError):
    """Base class for restore-only failures."""


class NoBackupsFoundError(RestoreError):
    pass


class SelectionCancelledError(RestoreError):
    pass


class InvalidSelectionError(RestoreError):
    pass


class LoaderError(RestoreError):
    """Bulk loader exited non-zero or could not be started."""

    def __init__(self, message: str, output: str = "", exit_status: int = None):
        super().__init__(message)
        self.output = output
        self.exit_status = exit_status


class ConfigError(BackupError):
    """Missing or invalid configuration."""
