"""Decision logic mapping a path's records to a sync action."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .models import FileRecord, FileSyncInfo


class SyncAction(str, Enum):
    """Actions that can be taken during sync."""

    UPLOAD = "upload"
    """Upload local file to remote"""

    DOWNLOAD = "download"
    """Download remote file to local"""

    DELETE_LOCAL = "delete_local"
    """Delete local file"""

    DELETE_REMOTE = "delete_remote"
    """Delete remote file"""

    CONFLICT = "conflict"
    """Both sides changed since the last sync"""


@dataclass
class SyncDecision:
    """Represents a decision about how to sync a path."""

    action: SyncAction
    """Action to take"""

    reason: str
    """Human-readable reason for this decision"""

    relative_path: str
    """Relative path of the file"""


def _unchanged(record: FileRecord, last_synced: Optional[FileRecord]) -> bool:
    """True if a record's mtime is exactly the baseline mtime."""
    return last_synced is not None and last_synced.mtime == record.mtime


class FileComparator:
    """Decides what to do with one pending path.

    The decision only looks at the stored records, never at the live
    files. Whether a side changed is always an exact mtime comparison
    against the LAST_SYNCED record, never a newer/older test.
    """

    def decide(self, info: FileSyncInfo) -> Optional[SyncDecision]:
        """Determine the action for a path.

        Args:
            info: Records stored for the path

        Returns:
            SyncDecision, or None if the path has no pending record
        """
        local, remote, last_synced = info.local, info.remote, info.last_synced
        path = info.path

        # Case 1: File only pending locally
        if local and not remote:
            if _unchanged(local, last_synced):
                return SyncDecision(
                    action=SyncAction.DELETE_LOCAL,
                    reason="File deleted from remote",
                    relative_path=path,
                )
            return SyncDecision(
                action=SyncAction.UPLOAD,
                reason="New or modified local file",
                relative_path=path,
            )

        # Case 2: File only pending remotely
        if remote and not local:
            if _unchanged(remote, last_synced):
                return SyncDecision(
                    action=SyncAction.DELETE_REMOTE,
                    reason="File deleted locally",
                    relative_path=path,
                )
            return SyncDecision(
                action=SyncAction.DOWNLOAD,
                reason="New or modified remote file",
                relative_path=path,
            )

        # Case 3: Both sides differ
        if local and remote:
            return self._compare_both(path, local, remote, last_synced)

        return None

    def _compare_both(
        self,
        path: str,
        local: FileRecord,
        remote: FileRecord,
        last_synced: Optional[FileRecord],
    ) -> SyncDecision:
        if local.mtime > remote.mtime:
            if _unchanged(remote, last_synced):
                return SyncDecision(
                    action=SyncAction.UPLOAD,
                    reason="Local file is newer and remote is unchanged",
                    relative_path=path,
                )
            return SyncDecision(
                action=SyncAction.CONFLICT,
                reason="Local file is newer but remote changed since last sync",
                relative_path=path,
            )

        if local.mtime < remote.mtime:
            if _unchanged(local, last_synced):
                return SyncDecision(
                    action=SyncAction.DOWNLOAD,
                    reason="Remote file is newer and local is unchanged",
                    relative_path=path,
                )
            return SyncDecision(
                action=SyncAction.CONFLICT,
                reason="Remote file is newer but local changed since last sync",
                relative_path=path,
            )

        # Equal mtimes: no way to tell which side changed, even if sizes match
        return SyncDecision(
            action=SyncAction.CONFLICT,
            reason=(
                f"Same timestamp on both sides "
                f"({local.size} vs {remote.size} bytes)"
            ),
            relative_path=path,
        )
