"""Dgraph export backup and restore.

Triggers Dgraph exports, ships them to S3 as zip archives on demand or on a
schedule, and restores a chosen snapshot with the bulk loader.
"""

from .archiver import Archiver
from .backup import BackupPipeline
from .export import ExportTrigger
from .models import BackupArchive, BackupResult, RemoteObject, RestoreResult, RetryState
from .poller import ExponentialBackoff, ReadinessPoller
from .restore import CommandLoader, RestorePipeline, choose
from .scheduler import BackupScheduler
from .storage import RemoteStore

__all__ = [
    'Archiver',
    'BackupPipeline',
    'ExportTrigger',
    'BackupArchive',
    'BackupResult',
    'RemoteObject',
    'RestoreResult',
    'RetryState',
    'ExponentialBackoff',
    'ReadinessPoller',
    'CommandLoader',
    'RestorePipeline',
    'choose',
    'BackupScheduler',
    'RemoteStore',
]
