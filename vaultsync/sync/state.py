"""Persistent sync state.

This module holds the only durable state of vaultsync: one record per
``(path, kind)`` describing either the last synchronized version of a path
or a pending, not yet reconciled version seen on one side. Pending records
survive process termination, which is what lets an interrupted sync be
resumed.
"""

import hashlib
import logging
import sqlite3
import time
from pathlib import Path
from typing import Optional, Union

from ..exceptions import DataIntegrityError, InvariantViolationError
from ..utils import is_safe_relative_path
from .models import FileRecord, FileSyncInfo, RecordKind

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS file_records (
    path TEXT NOT NULL,
    kind INTEGER NOT NULL,
    size INTEGER NOT NULL,
    mtime INTEGER NOT NULL,
    PRIMARY KEY (path, kind)
);
CREATE TABLE IF NOT EXISTS status (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    last_sync_time INTEGER NOT NULL
);
"""

_PENDING_KINDS = (int(RecordKind.LOCAL), int(RecordKind.REMOTE))


def default_state_dir() -> Path:
    """Directory holding state databases (~/.config/vaultsync/state/)."""
    return Path.home() / ".config" / "vaultsync" / "state"


def default_state_path(
    vault_root: Path, bucket: str, state_dir: Optional[Path] = None
) -> Path:
    """Get the state database path for a vault/bucket pair.

    The file name is a hash of the absolute vault root and the bucket, so
    that different pairs never share state.

    Args:
        vault_root: Local directory being synced
        bucket: Bucket name
        state_dir: Directory for state files. Defaults to default_state_dir()

    Returns:
        Path to the SQLite database file
    """
    if state_dir is None:
        state_dir = default_state_dir()
    # Use absolute path for consistency
    combined = f"{vault_root.resolve()}:{bucket}"
    key = hashlib.sha256(combined.encode()).hexdigest()[:16]
    return state_dir / f"{key}.sqlite3"


class StateStore:
    """SQLite-backed store of file records.

    Every mutating operation runs in its own transaction, so each one is
    atomic. A whole sync run is not: progress is recorded path by path.

    Only one sync run may use a given store at a time; this is not enforced.

    Examples:
        >>> with StateStore(":memory:") as store:
        ...     store.upsert(FileRecord("a.md", 3, 100, RecordKind.LOCAL))
        ...     store.list_pending()
        ['a.md']
    """

    def __init__(self, db_path: Union[str, Path]):
        """Open (and create if needed) the state database.

        Args:
            db_path: Path to the SQLite file, or ":memory:"
        """
        if str(db_path) != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.db_path = str(db_path)
        self._conn: Optional[sqlite3.Connection] = sqlite3.connect(self.db_path)
        with self._conn:
            self._conn.executescript(_SCHEMA)
        logger.debug(f"Opened state store at {self.db_path}")

    def __enter__(self) -> "StateStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Close the database connection. Safe to call more than once."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.debug(f"Closed state store at {self.db_path}")

    @property
    def closed(self) -> bool:
        return self._conn is None

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise InvariantViolationError("State store is closed")
        return self._conn

    def upsert(self, record: FileRecord) -> None:
        """Insert a record, or update size/mtime of the existing one.

        Raises:
            InvariantViolationError: If the path could not be read back
        """
        if not is_safe_relative_path(record.path):
            raise InvariantViolationError(
                f"Refusing to store invalid path: {record.path!r}"
            )
        conn = self._connection()
        with conn:
            conn.execute(
                """
                INSERT INTO file_records (path, kind, size, mtime)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (path, kind) DO UPDATE SET
                    size = excluded.size,
                    mtime = excluded.mtime
                """,
                (record.path, int(record.kind), record.size, record.mtime),
            )

    def delete(self, path: str, kind: RecordKind) -> None:
        """Delete the record for ``(path, kind)`` if it exists."""
        conn = self._connection()
        with conn:
            conn.execute(
                "DELETE FROM file_records WHERE path = ? AND kind = ?",
                (path, int(kind)),
            )

    def delete_all(self) -> None:
        """Delete every record and the last sync time."""
        conn = self._connection()
        with conn:
            conn.execute("DELETE FROM file_records")
            conn.execute("DELETE FROM status")
        logger.debug("Cleared state store")

    def get_sync_info(self, path: str) -> Optional[FileSyncInfo]:
        """Get all records stored for a path.

        Returns:
            FileSyncInfo, or None if the path has no records

        Raises:
            DataIntegrityError: If a stored record fails validation
        """
        rows = (
            self._connection()
            .execute(
                "SELECT path, kind, size, mtime FROM file_records WHERE path = ?",
                (path,),
            )
            .fetchall()
        )
        if not rows:
            return None

        info = FileSyncInfo(path=path)
        for row in rows:
            record = FileRecord.from_row(row)
            if record.kind == RecordKind.LAST_SYNCED:
                info.last_synced = record
            elif record.kind == RecordKind.LOCAL:
                info.local = record
            else:
                info.remote = record
        return info

    def mark_complete(self, path: str) -> None:
        """Delete the pending records of a path, keeping LAST_SYNCED."""
        conn = self._connection()
        with conn:
            conn.execute(
                "DELETE FROM file_records WHERE path = ? AND kind IN (?, ?)",
                (path, *_PENDING_KINDS),
            )

    def mark_synced(self, path: str, size: int, mtime: int) -> None:
        """Record a new LAST_SYNCED state and complete the path atomically.

        A crash can never leave the new baseline next to the old pending
        records, which would otherwise read as a one-sided deletion.
        """
        conn = self._connection()
        with conn:
            conn.execute(
                """
                INSERT INTO file_records (path, kind, size, mtime)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (path, kind) DO UPDATE SET
                    size = excluded.size,
                    mtime = excluded.mtime
                """,
                (path, int(RecordKind.LAST_SYNCED), size, mtime),
            )
            conn.execute(
                "DELETE FROM file_records WHERE path = ? AND kind IN (?, ?)",
                (path, *_PENDING_KINDS),
            )

    def mark_deleted(self, path: str) -> None:
        """Forget a path deleted on both sides (all of its records)."""
        conn = self._connection()
        with conn:
            conn.execute("DELETE FROM file_records WHERE path = ?", (path,))

    def list_pending(self) -> list[str]:
        """List the distinct paths having a LOCAL or REMOTE record, sorted."""
        rows = (
            self._connection()
            .execute(
                "SELECT DISTINCT path FROM file_records "
                "WHERE kind IN (?, ?) ORDER BY path",
                _PENDING_KINDS,
            )
            .fetchall()
        )
        paths = []
        for (path,) in rows:
            if not isinstance(path, str):
                raise DataIntegrityError(f"Invalid path in file record: {path!r}")
            paths.append(path)
        return paths

    def get_all(self) -> list[FileRecord]:
        """Get every stored record, ordered by path and kind."""
        rows = (
            self._connection()
            .execute(
                "SELECT path, kind, size, mtime FROM file_records "
                "ORDER BY path, kind"
            )
            .fetchall()
        )
        return [FileRecord.from_row(row) for row in rows]

    def get_last_sync_time(self) -> Optional[int]:
        """Get the time of the last completed full sync (ms), if any."""
        row = (
            self._connection()
            .execute("SELECT last_sync_time FROM status WHERE id = 1")
            .fetchone()
        )
        if row is None:
            return None
        (value,) = row
        if not isinstance(value, int) or isinstance(value, bool):
            raise DataIntegrityError(f"Invalid last sync time: {value!r}")
        return value

    def set_last_sync_time(self, when_ms: Optional[int] = None) -> None:
        """Record the time of a completed full sync (defaults to now)."""
        if when_ms is None:
            when_ms = int(time.time() * 1000)
        conn = self._connection()
        with conn:
            conn.execute(
                """
                INSERT INTO status (id, last_sync_time) VALUES (1, ?)
                ON CONFLICT (id) DO UPDATE SET last_sync_time = excluded.last_sync_time
                """,
                (when_ms,),
            )
