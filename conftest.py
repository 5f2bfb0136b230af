"""Shared pytest fixtures for dgraph-backup tests."""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from config import load_config
from dgraph_backup.models import RemoteObject


class FakeStore:
    """In-memory stand-in for RemoteStore."""

    def __init__(self, objects=None, payloads=None, upload_error=None, download_error=None):
        self.bucket = 'test-bucket'
        self.key_prefix = ''
        self.objects = list(objects or [])
        self.payloads = dict(payloads or {})
        self.upload_error = upload_error
        self.download_error = download_error
        self.uploads = []
        self.downloads = []

    def object_key(self, file_name):
        return f"{self.key_prefix}{file_name}"

    def upload(self, local_path, key=None):
        local_path = Path(local_path)
        self.uploads.append({'path': local_path, 'key': key, 'existed': local_path.exists()})
        if self.upload_error:
            raise self.upload_error
        return f"https://{self.bucket}.s3.test/{key}"

    def list_objects(self, prefix=None):
        return list(self.objects)

    def download(self, key, output_dir='.'):
        self.downloads.append(key)
        if self.download_error:
            raise self.download_error
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        path = output_dir / Path(key).name
        path.write_bytes(self.payloads.get(key, b''))
        return path


class RecordingLoader:
    """Loader capability that records calls instead of running a process."""

    def __init__(self, output='loaded', exit_status=0):
        self.output = output
        self.exit_status = exit_status
        self.calls = []

    def load(self, path):
        from dgraph_backup.models import LoadResult
        self.calls.append(Path(path))
        return LoadResult(output=self.output, exit_status=self.exit_status)


def remote(key, size=1024, day=1):
    return RemoteObject(
        key=key,
        size_bytes=size,
        last_modified=datetime(2024, 5, day, 3, 0, tzinfo=timezone.utc)
    )


def make_export_dir(path: Path) -> Path:
    """Create a small export tree like the one Dgraph writes."""
    run_dir = path / 'dgraph.r10.u0501.0300'
    run_dir.mkdir(parents=True)
    (run_dir / 'g01.json.gz').write_bytes(b'\x1f\x8b fake json export')
    (run_dir / 'g01.schema.gz').write_bytes(b'\x1f\x8b fake schema')
    (run_dir / 'g01.gql_schema.gz').write_bytes(b'')
    return path


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def recording_loader():
    return RecordingLoader()


@pytest.fixture
def make_config(tmp_path):
    """Build a Config rooted in tmp_path; keyword sections override defaults."""
    def factory(**sections):
        overrides = {
            'dgraph': {'export_path': str(tmp_path / 'export')},
            'storage': {'bucket': 'test-bucket', 'access_key': 'key', 'secret_key': 'secret'},
            'archive': {
                'file_prefix': 'dgraph-backup',
                'work_dir': str(tmp_path / 'work'),
                'restore_dir': str(tmp_path / 'data'),
            },
            'polling': {'max_attempts': 10, 'initial_delay_seconds': 1, 'max_delay_seconds': 8},
        }
        for section, values in sections.items():
            overrides.setdefault(section, {}).update(values)
        return load_config(None, overrides)
    return factory
