"""Three-way sync engine between a local tree and an object store."""

from .comparator import FileComparator, SyncAction, SyncDecision
from .diff import DiffLoader
from .engine import ConflictResolver, ReconciliationEngine
from .models import (
    FileRecord,
    FileStat,
    FileSyncInfo,
    KeepSide,
    RecordKind,
    SyncProgressState,
)
from .operations import SyncOperations, Transfer
from .progress import ProgressBroadcaster
from .scanner import DirectoryScanner
from .session import SyncPhase, SyncSession, SyncStats
from .state import StateStore, default_state_path

__all__ = [
    "SyncSession",
    "SyncPhase",
    "SyncStats",
    "ReconciliationEngine",
    "ConflictResolver",
    "DiffLoader",
    "FileComparator",
    "SyncAction",
    "SyncDecision",
    "SyncOperations",
    "Transfer",
    "ProgressBroadcaster",
    "DirectoryScanner",
    "StateStore",
    "default_state_path",
    "FileRecord",
    "FileStat",
    "FileSyncInfo",
    "KeepSide",
    "RecordKind",
    "SyncProgressState",
]
