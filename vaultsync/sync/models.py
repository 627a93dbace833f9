"""Records and value types shared by the sync components."""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Optional

from ..exceptions import DataIntegrityError
from ..utils import is_safe_relative_path


class RecordKind(IntEnum):
    """Kind of a stored file record.

    The integer values are part of the persisted layout.
    """

    LAST_SYNCED = 0
    """Agreed state after the last successful reconciliation"""

    REMOTE = 1
    """Pending state observed in the object store"""

    LOCAL = 2
    """Pending state observed in the local tree"""


class KeepSide(str, Enum):
    """Which version to keep when resolving a conflict."""

    LOCAL = "local"
    REMOTE = "remote"
    SKIP = "skip"


@dataclass(frozen=True)
class FileStat:
    """Size and modification time of one file or object."""

    size: int
    """Size in bytes"""

    mtime: int
    """Modification time in milliseconds since the Unix epoch"""


@dataclass(frozen=True)
class FileRecord:
    """A stored record for one ``(path, kind)`` pair."""

    path: str
    """Relative path, forward slashes, no leading slash"""

    size: int
    mtime: int
    kind: RecordKind

    @classmethod
    def from_stat(cls, path: str, stat: FileStat, kind: RecordKind) -> "FileRecord":
        """Create a record from a FileStat."""
        return cls(path=path, size=stat.size, mtime=stat.mtime, kind=kind)

    @classmethod
    def from_row(cls, row: Any) -> "FileRecord":
        """Validate a raw ``(path, kind, size, mtime)`` row from the store.

        Raises:
            DataIntegrityError: If any column has the wrong type or value
        """
        try:
            path, kind, size, mtime = row
        except (TypeError, ValueError) as e:
            raise DataIntegrityError(f"Malformed file record: {row!r}") from e

        if not is_safe_relative_path(path):
            raise DataIntegrityError(f"Invalid path in file record: {path!r}")
        # bool is an int subclass, but never a valid column value
        for name, value in (("size", size), ("mtime", mtime), ("kind", kind)):
            if not isinstance(value, int) or isinstance(value, bool):
                raise DataIntegrityError(
                    f"Invalid {name} in file record for {path}: {value!r}"
                )
        if size < 0:
            raise DataIntegrityError(f"Negative size in file record for {path}")
        try:
            record_kind = RecordKind(kind)
        except ValueError as e:
            raise DataIntegrityError(
                f"Invalid record kind for {path}: {kind!r}"
            ) from e

        return cls(path=path, size=size, mtime=mtime, kind=record_kind)

    @property
    def stat(self) -> FileStat:
        return FileStat(size=self.size, mtime=self.mtime)


@dataclass
class FileSyncInfo:
    """All records currently stored for one path."""

    path: str
    last_synced: Optional[FileRecord] = None
    local: Optional[FileRecord] = None
    remote: Optional[FileRecord] = None

    @property
    def is_pending(self) -> bool:
        """True if the path still has unreconciled work."""
        return self.local is not None or self.remote is not None

    def to_dict(self) -> dict:
        """Convert to a dictionary for JSON output."""

        def _record(record: Optional[FileRecord]) -> Optional[dict]:
            if record is None:
                return None
            return {"size": record.size, "mtime": record.mtime}

        return {
            "path": self.path,
            "last_synced": _record(self.last_synced),
            "local": _record(self.local),
            "remote": _record(self.remote),
        }


@dataclass(frozen=True)
class SyncProgressState:
    """Progress event emitted before each pending path is processed."""

    message: str
    current: int
    """1-based index of the path in the current phase"""

    total: int
