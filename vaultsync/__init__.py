"""vaultsync - keep a local folder and an S3 bucket in sync."""

from .exceptions import (
    ConfigurationError,
    ConflictError,
    DataIntegrityError,
    InvariantViolationError,
    StorageError,
    VaultSyncError,
)
from .s3 import S3Storage
from .sync import KeepSide, StateStore, SyncSession

__all__ = [
    "S3Storage",
    "StateStore",
    "SyncSession",
    "KeepSide",
    "VaultSyncError",
    "ConfigurationError",
    "ConflictError",
    "DataIntegrityError",
    "InvariantViolationError",
    "StorageError",
]
