"""S3 remote store for backup archives."""

import logging
import sys
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from tqdm import tqdm

from dgraph_backup.exceptions import DownloadError, StorageError
from dgraph_backup.models import RemoteObject, format_size

logger = logging.getLogger(__name__)


class TransferProgress:
    """tqdm byte counter usable as a boto3 transfer callback."""

    def __init__(self, total: int, desc: str):
        self.pbar = tqdm(
            total=total,
            unit='B',
            unit_scale=True,
            desc=desc,
            leave=False,
            disable=not sys.stderr.isatty()
        )

    def __call__(self, bytes_transferred):
        self.pbar.update(bytes_transferred)

    def close(self):
        self.pbar.close()


class RemoteStore:
    """Upload, download and list backup archives in one S3 bucket."""

    def __init__(self, bucket: str, region: str, access_key: Optional[str] = None,
                 secret_key: Optional[str] = None, endpoint_url: Optional[str] = None,
                 key_prefix: str = '', s3_client=None, show_progress: bool = True):
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        self.key_prefix = key_prefix
        self.show_progress = show_progress

        if s3_client is None:
            boto_config = BotoConfig(
                region_name=region,
                retries={'max_attempts': 3, 'mode': 'standard'}
            )
            s3_client = boto3.client(
                's3',
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                endpoint_url=endpoint_url,
                config=boto_config
            )
        self.s3_client = s3_client

    @classmethod
    def from_config(cls, config, **kwargs) -> 'RemoteStore':
        storage = config.storage
        return cls(
            bucket=storage.bucket,
            region=storage.region,
            access_key=storage.access_key,
            secret_key=storage.secret_key,
            endpoint_url=storage.endpoint_url,
            key_prefix=storage.key_prefix,
            **kwargs
        )

    def object_key(self, file_name: str) -> str:
        return f"{self.key_prefix}{file_name}"

    def object_location(self, key: str) -> str:
        """URL of an uploaded object, in the form S3 reports it."""
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{quote(key)}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{quote(key)}"

    def verify_bucket_access(self):
        """Verify we can access the S3 bucket.

        Raises:
            StorageError: bucket missing, access denied or unreachable.
        """
        try:
            self.s3_client.head_bucket(Bucket=self.bucket)
            logger.info(f"✓ Verified access to bucket: {self.bucket}")
        except ClientError as e:
            error_code = e.response['Error']['Code']
            if error_code == '404':
                raise StorageError(f"Bucket not found: {self.bucket}")
            elif error_code == '403':
                raise StorageError(f"Access denied to bucket: {self.bucket}")
            else:
                raise StorageError(f"Error accessing bucket: {e}")
        except BotoCoreError as e:
            raise StorageError(f"Error accessing bucket: {e}") from e

    def upload(self, local_path, key: Optional[str] = None) -> str:
        """Upload a local file.

        Args:
            local_path: File to send
            key: Object key; defaults to the prefixed file name

        Returns:
            Location URL of the uploaded object

        Raises:
            StorageError: The file could not be read or the upload failed.
        """
        local_path = Path(local_path)
        key = key or self.object_key(local_path.name)

        try:
            file_size = local_path.stat().st_size
        except OSError as e:
            raise StorageError(f"Failed to open file {local_path}: {e}") from e

        logger.info("Uploading archive to S3...")
        logger.info(f"  Source: {local_path} ({format_size(file_size)})")
        logger.info(f"  Destination: s3://{self.bucket}/{key}")

        progress = TransferProgress(file_size, "  Uploading") if self.show_progress else None
        try:
            with open(local_path, 'rb') as f:
                self.s3_client.upload_fileobj(
                    f,
                    self.bucket,
                    key,
                    ExtraArgs={
                        'ContentType': 'application/zip',
                        'Metadata': {
                            'original_size': str(file_size),
                            'created_by': 'dgraph-backup'
                        }
                    },
                    Callback=progress
                )
        except (ClientError, BotoCoreError, OSError) as e:
            raise StorageError(f"Failed to upload file: {e}") from e
        finally:
            if progress:
                progress.close()

        location = self.object_location(key)
        logger.info(f"✓ Uploaded to {location}")
        return location

    def list_objects(self, prefix: Optional[str] = None) -> List[RemoteObject]:
        """List bucket contents, newest first.

        Raises:
            StorageError: The bucket could not be listed.
        """
        prefix = self.key_prefix if prefix is None else prefix
        objects = []

        try:
            paginator = self.s3_client.get_paginator('list_objects_v2')
            params = {'Bucket': self.bucket}
            if prefix:
                params['Prefix'] = prefix
            for page in paginator.paginate(**params):
                for obj in page.get('Contents', []):
                    objects.append(RemoteObject(
                        key=obj['Key'],
                        size_bytes=obj.get('Size', 0),
                        last_modified=obj.get('LastModified')
                    ))
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Error listing bucket {self.bucket}: {e}") from e

        objects.sort(key=lambda o: (o.last_modified is not None, o.last_modified or 0, o.key),
                     reverse=True)
        logger.debug(f"Found {len(objects)} object(s) in {self.bucket}")
        return objects

    def download(self, key: str, output_dir='.') -> Path:
        """Download an object to a local file named after the key.

        Returns:
            Path of the written file

        Raises:
            DownloadError: The object could not be fetched or written.
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        output_path = output_dir / Path(key).name

        total = 0
        try:
            head = self.s3_client.head_object(Bucket=self.bucket, Key=key)
            total = head.get('ContentLength', 0)
        except (ClientError, BotoCoreError) as e:
            raise DownloadError(f"Unable to download item {key}: {e}") from e

        progress = TransferProgress(total, "  Downloading") if self.show_progress else None
        try:
            with open(output_path, 'wb') as f:
                self.s3_client.download_fileobj(self.bucket, key, f, Callback=progress)
        except (ClientError, BotoCoreError, OSError) as e:
            if output_path.exists():
                output_path.unlink()
            raise DownloadError(f"Unable to download item {key}: {e}") from e
        finally:
            if progress:
                progress.close()

        logger.info(f"✓ Downloaded {output_path} ({format_size(output_path.stat().st_size)})")
        return output_path
