"""Diff a local snapshot against a remote listing into pending records."""

import logging
from collections.abc import Iterable, Mapping
from typing import Optional

from ..utils import is_in_subtree, normalize_subtree
from .models import FileRecord, FileStat, RecordKind
from .state import StateStore

logger = logging.getLogger(__name__)


class DiffLoader:
    """Seeds the state store with the paths that need reconciliation.

    A path present on both sides with exactly equal size and mtime is
    already synchronized: it gets no pending record, only its LAST_SYNCED
    record is refreshed. Every other remote object gets a REMOTE record,
    and every local file not matched by an identical remote object gets a
    LOCAL record.
    """

    def __init__(self, store: StateStore):
        self.store = store

    def load(
        self,
        local_files: Mapping[str, FileStat],
        remote_entries: Iterable[tuple[str, FileStat]],
        subtree: Optional[str] = None,
    ) -> int:
        """Compare both sides and upsert pending records.

        Args:
            local_files: Local snapshot, relative path to FileStat
            remote_entries: Lazy sequence of (path, FileStat) remote objects
            subtree: Optional relative folder restricting both sides

        Returns:
            Number of pending records written
        """
        prefix = normalize_subtree(subtree)
        remaining = {
            path: stat
            for path, stat in local_files.items()
            if is_in_subtree(path, prefix)
        }
        written = 0
        identical = 0

        for path, remote_stat in remote_entries:
            if not is_in_subtree(path, prefix):
                continue

            local_stat = remaining.get(path)
            if local_stat is not None and local_stat == remote_stat:
                del remaining[path]
                # Both sides agree, so this is the new baseline
                self.store.upsert(
                    FileRecord.from_stat(path, remote_stat, RecordKind.LAST_SYNCED)
                )
                identical += 1
                continue

            self.store.upsert(FileRecord.from_stat(path, remote_stat, RecordKind.REMOTE))
            written += 1

        for path, local_stat in remaining.items():
            self.store.upsert(FileRecord.from_stat(path, local_stat, RecordKind.LOCAL))
            written += 1

        logger.debug(
            f"Diff complete: {written} pending record(s), "
            f"{identical} identical path(s) skipped"
        )
        return written
