"""Exceptions raised by vaultsync."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .sync.models import FileSyncInfo


class VaultSyncError(Exception):
    """Base exception for all vaultsync errors."""


class ConfigurationError(VaultSyncError):
    """Required settings (credentials, bucket, ...) are missing or invalid.

    Raised before any sync attempt begins.
    """


class ConflictError(VaultSyncError):
    """Both sides of a path changed since the last successful sync.

    This is the only error meant to be acted on by the user. The path stays
    pending until it is resolved with ``SyncSession.resolve_conflict``.
    """

    def __init__(self, path: str, info: Optional["FileSyncInfo"] = None):
        super().__init__(f"Local and remote files are in conflict: {path}")
        self.path = path
        self.info = info


class DataIntegrityError(VaultSyncError):
    """A record read from the state store failed validation."""


class InvariantViolationError(VaultSyncError):
    """An internal precondition did not hold.

    Indicates a logic defect; never retried.
    """


class StorageError(VaultSyncError):
    """A local filesystem or object store operation failed."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path
