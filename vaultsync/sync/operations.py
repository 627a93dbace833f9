"""Transfer primitives between the local tree and the object store."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from ..exceptions import StorageError
from ..utils import is_safe_relative_path, ms_from_ns, normalize_path, ns_from_ms
from .models import FileStat

if TYPE_CHECKING:
    from ..s3 import S3Storage

logger = logging.getLogger(__name__)


class Transfer(Protocol):
    """Primitives the reconciliation engine applies decisions with.

    ``upload`` and ``download`` always read the current content of the
    source side and return the metadata of what was actually transferred.
    """

    def upload(self, path: str) -> FileStat: ...

    def download(self, path: str) -> FileStat: ...

    def delete_local(self, path: str) -> None: ...

    def delete_remote(self, path: str) -> None: ...


class SyncOperations:
    """Unified upload/download/delete operations for one local root."""

    def __init__(self, root: Path, storage: S3Storage):
        """Initialize sync operations.

        Args:
            root: Local directory being synced
            storage: Object store for the remote side
        """
        self.root = root
        self.storage = storage

    def local_path(self, path: str) -> Path:
        """Map a relative path to a file under the root.

        Raises:
            StorageError: If the path could point outside the root
        """
        relative = normalize_path(path)
        if not is_safe_relative_path(relative):
            raise StorageError(f"Path escapes {self.root}: {path!r}", path=path)
        return self.root / relative

    def upload(self, path: str) -> FileStat:
        """Upload the current content of a local file.

        Returns:
            Size and mtime of the uploaded file
        """
        local_path = self.local_path(path)
        try:
            stat = local_path.stat()
            body = local_path.read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}", path=path) from e

        mtime = ms_from_ns(stat.st_mtime_ns)
        logger.info(f"Uploading {path} ({len(body)} bytes)")
        return self.storage.put_object(path, body, mtime)

    def download(self, path: str) -> FileStat:
        """Download an object, setting the local mtime to the remote mtime.

        Returns:
            Size and mtime of the downloaded object
        """
        local_path = self.local_path(path)
        body, stat = self.storage.get_object(path)
        logger.info(f"Downloading {path} ({stat.size} bytes)")
        try:
            # Ensure parent directory exists
            local_path.parent.mkdir(parents=True, exist_ok=True)
            local_path.write_bytes(body)
            mtime_ns = ns_from_ms(stat.mtime)
            os.utime(local_path, ns=(mtime_ns, mtime_ns))
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}", path=path) from e
        return stat

    def delete_local(self, path: str) -> None:
        logger.info(f"Deleting local file {path}")
        try:
            self.local_path(path).unlink()
        except FileNotFoundError:
            logger.debug(f"Local file {path} already gone")
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}", path=path) from e

    def delete_remote(self, path: str) -> None:
        logger.info(f"Deleting remote object {path}")
        self.storage.delete_object(path)
