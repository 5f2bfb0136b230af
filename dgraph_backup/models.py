"""Data records passed between backup and restore components."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional


def format_size(bytes_size: int) -> str:
    """Format bytes as human-readable size."""
    if bytes_size == 0:
        return "0 B"
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if bytes_size < 1024.0:
            return f"{bytes_size:.2f} {unit}"
        bytes_size /= 1024.0
    return f"{bytes_size:.2f} PB"


@dataclass
class ExportJob:
    """A single export request sent to Dgraph."""
    request_uri: str
    export_format: str
    issued_at: datetime = field(default_factory=datetime.now)


@dataclass
class BackupArchive:
    """Zip archive of one export, owned by the run that created it."""
    local_path: Path
    prefix: str
    timestamp: str

    @property
    def key(self) -> str:
        """Object key used for upload: the archive's file name."""
        return self.local_path.name

    @property
    def size(self) -> int:
        return self.local_path.stat().st_size if self.local_path.exists() else 0


@dataclass(frozen=True)
class RemoteObject:
    """Read-only view of one object in the backup bucket."""
    key: str
    size_bytes: int
    last_modified: Optional[datetime] = None


@dataclass
class RetryState:
    """Counters for one readiness wait loop."""
    current_delay: float
    max_delay: float
    max_attempts: int
    attempt_count: int = 0

    @property
    def exhausted(self) -> bool:
        return self.attempt_count >= self.max_attempts


@dataclass
class BackupResult:
    """Outcome of one backup run."""
    success: bool
    stage: str
    archive_key: Optional[str] = None
    location: Optional[str] = None
    archive_size: int = 0
    poll_attempts: int = 0
    error: Optional[str] = None
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> float:
        if not self.finished_at:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()


@dataclass
class LoadResult:
    """Captured output and exit status of the bulk loader."""
    output: str
    exit_status: int

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


@dataclass
class RestoreResult:
    """Outcome of one restore run."""
    success: bool
    key: Optional[str] = None
    archive_path: Optional[Path] = None
    data_path: Optional[Path] = None
    loader_output: str = ""
    error: Optional[str] = None
