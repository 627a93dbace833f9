"""Object store client for S3 and S3-compatible services."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any, Callable

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import StorageError
from .sync.models import FileStat
from .utils import (
    DEFAULT_LIST_PAGE_SIZE,
    MTIME_METADATA_KEY,
    is_safe_relative_path,
    ms_from_datetime,
    normalize_subtree,
    parse_mtime_metadata,
)

if TYPE_CHECKING:
    from .config import Config

logger = logging.getLogger(__name__)


class S3Storage:
    """Thin wrapper around a boto3 S3 client bound to one bucket.

    Object keys are the relative paths of the local tree. Each uploaded
    object carries the source file's mtime (ms) in its user metadata.
    """

    def __init__(self, client: Any, bucket: str):
        """Initialize the storage wrapper.

        Args:
            client: boto3 S3 client
            bucket: Bucket name
        """
        self.client = client
        self.bucket = bucket

    @classmethod
    def from_config(cls, settings: Config) -> S3Storage:
        """Create a client from configuration.

        Raises:
            ConfigurationError: If a required setting is missing
        """
        settings.require_s3_settings()
        boto_config = BotoConfig(
            connect_timeout=5,
            read_timeout=60,
            retries={"max_attempts": 3, "mode": "standard"},
            s3={"addressing_style": "path"} if settings.endpoint else None,
        )
        client = boto3.client(
            "s3",
            region_name=settings.region,
            aws_access_key_id=settings.access_key_id,
            aws_secret_access_key=settings.secret_access_key,
            endpoint_url=settings.endpoint,
            config=boto_config,
        )
        return cls(client, settings.bucket or "")

    def _stat_from_head(self, key: str, head: dict) -> FileStat:
        metadata = head.get("Metadata") or {}
        mtime = parse_mtime_metadata(metadata.get(MTIME_METADATA_KEY))
        if mtime is None:
            # Object not written by vaultsync; fall back to the store's time
            mtime = ms_from_datetime(head["LastModified"])
            logger.debug(f"No mtime metadata on {key}, using LastModified")
        return FileStat(size=head["ContentLength"], mtime=mtime)

    def list_objects(
        self,
        prefix: str | None = None,
        exclude: Callable[[str], bool] | None = None,
    ) -> Iterator[tuple[str, FileStat]]:
        """Lazily list objects, one ``head_object`` per key for its mtime.

        Folder markers are skipped, and so are keys that cannot be mapped
        to a file under the local root (``..``, empty components, a
        leading slash).

        Args:
            prefix: Optional relative folder to restrict the listing to
            exclude: Optional predicate; matching keys are skipped before
                they are stat'ed

        Yields:
            (key, FileStat) tuples
        """
        prefix = normalize_subtree(prefix)
        params: dict[str, Any] = {
            "Bucket": self.bucket,
            "PaginationConfig": {"PageSize": DEFAULT_LIST_PAGE_SIZE},
        }
        if prefix:
            params["Prefix"] = prefix

        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(**params):
                for item in page.get("Contents", []):
                    key = item.get("Key")
                    if not key or key.endswith("/"):
                        continue
                    if not is_safe_relative_path(key):
                        logger.warning(f"Skipping object with unusable key: {key!r}")
                        continue
                    if exclude is not None and exclude(key):
                        continue
                    yield key, self.head(key)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to list bucket {self.bucket}: {e}") from e

    def head(self, key: str) -> FileStat:
        """Get the size and mtime of one object."""
        try:
            head = self.client.head_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to stat {key}: {e}", path=key) from e
        return self._stat_from_head(key, head)

    def put_object(self, key: str, body: bytes, mtime: int) -> FileStat:
        """Upload bytes, recording the source mtime in object metadata."""
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body,
                Metadata={MTIME_METADATA_KEY: str(mtime)},
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to upload {key}: {e}", path=key) from e
        return FileStat(size=len(body), mtime=mtime)

    def get_object(self, key: str) -> tuple[bytes, FileStat]:
        """Download an object's bytes and current metadata."""
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            body = response["Body"].read()
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to download {key}: {e}", path=key) from e
        stat = self._stat_from_head(key, response)
        return body, FileStat(size=len(body), mtime=stat.mtime)

    def delete_object(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to delete {key}: {e}", path=key) from e
