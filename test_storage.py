"""Tests for the S3 remote store using a mocked boto3 client."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from dgraph_backup.exceptions import DownloadError, StorageError
from dgraph_backup.storage import RemoteStore


def client_error(code='500', operation='PutObject'):
    return ClientError({'Error': {'Code': code, 'Message': 'boom'}}, operation)


@pytest.fixture
def s3_client():
    return MagicMock()


@pytest.fixture
def store(s3_client):
    return RemoteStore('backups', 'ap-northeast-2', s3_client=s3_client, show_progress=False)


def test_upload_uses_file_name_as_key(store, s3_client, tmp_path):
    archive = tmp_path / 'dgraph-backup-2024-05-01T03:00:00+09:00.zip'
    archive.write_bytes(b'PK zip')

    location = store.upload(archive)

    args, kwargs = s3_client.upload_fileobj.call_args
    assert args[1] == 'backups'
    assert args[2] == archive.name
    assert kwargs['ExtraArgs']['ContentType'] == 'application/zip'
    assert location == (
        'https://backups.s3.ap-northeast-2.amazonaws.com/'
        'dgraph-backup-2024-05-01T03%3A00%3A00%2B09%3A00.zip'
    )


def test_upload_with_prefix_and_custom_endpoint(s3_client, tmp_path):
    store = RemoteStore('backups', 'us-east-1', endpoint_url='http://minio:9000/',
                        key_prefix='dgraph/', s3_client=s3_client, show_progress=False)
    archive = tmp_path / 'a.zip'
    archive.write_bytes(b'x')

    location = store.upload(archive)

    assert s3_client.upload_fileobj.call_args[0][2] == 'dgraph/a.zip'
    assert location == 'http://minio:9000/backups/dgraph/a.zip'


def test_upload_failure_raises_storage_error(store, s3_client, tmp_path):
    archive = tmp_path / 'a.zip'
    archive.write_bytes(b'x')
    s3_client.upload_fileobj.side_effect = client_error()

    with pytest.raises(StorageError):
        store.upload(archive)


def test_upload_missing_file_raises_storage_error(store, tmp_path):
    with pytest.raises(StorageError):
        store.upload(tmp_path / 'gone.zip')


def test_list_objects_newest_first_across_pages(store, s3_client):
    paginator = MagicMock()
    paginator.paginate.return_value = [
        {'Contents': [
            {'Key': 'a.zip', 'Size': 10, 'LastModified': datetime(2024, 5, 1, tzinfo=timezone.utc)},
            {'Key': 'c.zip', 'Size': 30, 'LastModified': datetime(2024, 5, 3, tzinfo=timezone.utc)},
        ]},
        {'Contents': [
            {'Key': 'b.zip', 'Size': 20, 'LastModified': datetime(2024, 5, 2, tzinfo=timezone.utc)},
        ]},
        {},
    ]
    s3_client.get_paginator.return_value = paginator

    objects = store.list_objects()

    s3_client.get_paginator.assert_called_once_with('list_objects_v2')
    paginator.paginate.assert_called_once_with(Bucket='backups')
    assert [o.key for o in objects] == ['c.zip', 'b.zip', 'a.zip']
    assert objects[0].size_bytes == 30


def test_list_failure_raises_storage_error(store, s3_client):
    s3_client.get_paginator.return_value.paginate.side_effect = client_error(operation='ListObjectsV2')

    with pytest.raises(StorageError):
        store.list_objects()


def test_download_writes_file_named_after_key(store, s3_client, tmp_path):
    s3_client.head_object.return_value = {'ContentLength': 5}
    s3_client.download_fileobj.side_effect = lambda bucket, key, f, Callback=None: f.write(b'hello')

    path = store.download('nightly/b.zip', tmp_path)

    assert path == tmp_path / 'b.zip'
    assert path.read_bytes() == b'hello'
    assert s3_client.download_fileobj.call_args[0][:2] == ('backups', 'nightly/b.zip')


def test_download_failure_removes_partial_file(store, s3_client, tmp_path):
    s3_client.head_object.return_value = {'ContentLength': 5}

    def fail(bucket, key, f, Callback=None):
        f.write(b'he')
        raise client_error(operation='GetObject')

    s3_client.download_fileobj.side_effect = fail

    with pytest.raises(DownloadError):
        store.download('b.zip', tmp_path)
    assert not (tmp_path / 'b.zip').exists()


def test_download_missing_object(store, s3_client, tmp_path):
    s3_client.head_object.side_effect = client_error('404', 'HeadObject')

    with pytest.raises(DownloadError):
        store.download('missing.zip', tmp_path)
    s3_client.download_fileobj.assert_not_called()


@pytest.mark.parametrize('code, message', [('404', 'not found'), ('403', 'denied')])
def test_verify_bucket_access_errors(store, s3_client, code, message):
    s3_client.head_bucket.side_effect = client_error(code, 'HeadBucket')

    with pytest.raises(StorageError, match=message):
        store.verify_bucket_access()


def test_verify_bucket_access_unreachable(store, s3_client):
    s3_client.head_bucket.side_effect = EndpointConnectionError(endpoint_url='https://s3.invalid')

    with pytest.raises(StorageError, match='Error accessing bucket'):
        store.verify_bucket_access()


def test_location_with_prefix_is_percent_encoded(s3_client):
    store = RemoteStore('backups', 'us-east-1', key_prefix='nightly/', s3_client=s3_client,
                        show_progress=False)

    assert store.object_location('nightly/a+b:c.zip') == (
        'https://backups.s3.us-east-1.amazonaws.com/nightly/a%2Bb%3Ac.zip'
    )
