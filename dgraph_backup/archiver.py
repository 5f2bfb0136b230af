"""Zip archives of Dgraph export directories."""

import logging
import shutil
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Optional

from dgraph_backup.exceptions import ArchiveError
from dgraph_backup.models import BackupArchive, format_size

logger = logging.getLogger(__name__)


def rfc3339_timestamp(now: Optional[datetime] = None) -> str:
    """Local time with UTC offset, second precision (2024-05-01T10:00:00+09:00)."""
    now = now or datetime.now()
    if now.tzinfo is None:
        now = now.astimezone()
    return now.isoformat(timespec='seconds')


class Archiver:
    """Compress a directory tree into one zip file and expand it again."""

    def __init__(self, output_dir: str = '.', compression_level: int = 6):
        self.output_dir = Path(output_dir)
        self.compression_level = compression_level

    def archive_name(self, prefix: str, timestamp: str) -> str:
        return f"{prefix}-{timestamp}.zip"

    def compress(self, source_dir, prefix: str,
                 now: Optional[datetime] = None) -> BackupArchive:
        """Create `<prefix>-<RFC3339>.zip` holding `source_dir`.

        Entries are stored under the source directory's own name, so
        extracting into D yields D/<source name>/...

        Raises:
            ArchiveError: source missing or the zip could not be written.
                Any partial archive is removed first.
        """
        source = Path(source_dir)
        if not source.exists():
            raise ArchiveError(f"Nothing to archive, {source} does not exist")

        timestamp = rfc3339_timestamp(now)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        archive_path = self.output_dir / self.archive_name(prefix, timestamp)

        logger.info(f"Creating archive: {archive_path}")
        root_name = source.resolve().name
        total_size = 0
        file_count = 0

        compression = zipfile.ZIP_DEFLATED if self.compression_level > 0 else zipfile.ZIP_STORED
        compress_args = {'compresslevel': self.compression_level} if self.compression_level > 0 else {}

        try:
            with zipfile.ZipFile(archive_path, 'w', compression, **compress_args) as zf:
                if source.is_file():
                    zf.write(source, root_name)
                    total_size += source.stat().st_size
                    file_count += 1
                else:
                    zf.write(source, root_name)
                    for path in sorted(source.rglob('*')):
                        arcname = f"{root_name}/{path.relative_to(source).as_posix()}"
                        zf.write(path, arcname)
                        if path.is_file():
                            total_size += path.stat().st_size
                            file_count += 1
        except (OSError, zipfile.BadZipFile) as e:
            if archive_path.exists():
                archive_path.unlink()
            raise ArchiveError(f"Error zipping {source}: {e}") from e

        archive = BackupArchive(local_path=archive_path, prefix=prefix, timestamp=timestamp)
        logger.info(f"✓ Archive created: {archive_path.name}")
        logger.info(f"  Files added: {file_count}")
        logger.info(f"  Original size: {format_size(total_size)}")
        logger.info(f"  Archive size: {format_size(archive.size)}")
        return archive

    def extract(self, archive_path, target_dir) -> Path:
        """Unpack an archive into target_dir.

        Anything already at the archive's top-level paths under target_dir
        is removed first, so only this snapshot's files remain there.

        Returns:
            Path of the top-level directory inside the archive, e.g.
            data/export when the archive was made from ./export.

        Raises:
            ArchiveError: missing, corrupt or unsafe archive.
        """
        archive_path = Path(archive_path)
        target = Path(target_dir)

        if not archive_path.exists():
            raise ArchiveError(f"Archive not found: {archive_path}")

        try:
            with zipfile.ZipFile(archive_path, 'r') as zf:
                names = zf.namelist()
                if not names:
                    raise ArchiveError(f"Archive is empty: {archive_path}")

                resolved_target = target.resolve()
                for name in names:
                    destination = (target / name).resolve()
                    if destination != resolved_target and resolved_target not in destination.parents:
                        raise ArchiveError(f"Unsafe path in archive: {name}")

                roots = {name.split('/', 1)[0] for name in names}
                target.mkdir(parents=True, exist_ok=True)
                for root in roots - {'', '.'}:
                    self._remove_existing(target / root)
                zf.extractall(target)
        except zipfile.BadZipFile as e:
            raise ArchiveError(f"Corrupt archive {archive_path}: {e}") from e
        except OSError as e:
            raise ArchiveError(f"Error extracting {archive_path}: {e}") from e

        data_path = target / roots.pop() if len(roots) == 1 else target
        logger.info(f"✓ Extracted {archive_path.name} to {data_path}")
        return data_path

    @staticmethod
    def _remove_existing(path: Path):
        """Delete a previous extraction so snapshots never mix."""
        if path.is_dir() and not path.is_symlink():
            logger.info(f"Removing previous restore at {path}")
            shutil.rmtree(path)
        elif path.exists() or path.is_symlink():
            path.unlink()
