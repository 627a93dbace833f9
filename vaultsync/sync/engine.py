"""Reconciliation of pending paths and manual conflict resolution."""

import logging
from typing import Optional

from ..exceptions import ConflictError, InvariantViolationError
from .comparator import FileComparator, SyncAction, SyncDecision
from .models import FileSyncInfo, KeepSide
from .operations import Transfer
from .state import StateStore

logger = logging.getLogger(__name__)


def _load_info(store: StateStore, path: str) -> FileSyncInfo:
    info = store.get_sync_info(path)
    if info is None:
        raise InvariantViolationError(f"No sync records found for {path}")
    return info


class ReconciliationEngine:
    """Applies the decision for one pending path at a time.

    The decision is made from the records captured at diff time; the bytes
    transferred are always read live from the source side.
    """

    def __init__(
        self,
        store: StateStore,
        transfer: Transfer,
        comparator: Optional[FileComparator] = None,
    ):
        """Initialize reconciliation engine.

        Args:
            store: State store holding the pending records
            transfer: Transfer primitives
            comparator: Decision logic (defaults to FileComparator())
        """
        self.store = store
        self.transfer = transfer
        self.comparator = comparator or FileComparator()

    def sync_file(self, path: str) -> SyncDecision:
        """Reconcile one pending path.

        Returns:
            The decision that was applied

        Raises:
            ConflictError: If both sides changed; the path stays pending
            InvariantViolationError: If the path has no pending records
        """
        info = _load_info(self.store, path)
        decision = self.comparator.decide(info)
        if decision is None:
            raise InvariantViolationError(f"Path {path} has no pending records")

        logger.debug(f"{path}: {decision.action.value} ({decision.reason})")

        if decision.action == SyncAction.CONFLICT:
            raise ConflictError(path, info)

        self.apply(decision.action, info)
        return decision

    def apply(self, action: SyncAction, info: FileSyncInfo) -> None:
        """Execute an action and record its outcome in the store.

        Every branch ends with the path's pending records removed.
        """
        path = info.path

        if action == SyncAction.UPLOAD:
            if info.local is None:
                raise InvariantViolationError(
                    f"Cannot upload {path}: no local record"
                )
            stat = self.transfer.upload(path)
            self.store.mark_synced(path, stat.size, stat.mtime)

        elif action == SyncAction.DOWNLOAD:
            if info.remote is None:
                raise InvariantViolationError(
                    f"Cannot download {path}: no remote record"
                )
            stat = self.transfer.download(path)
            self.store.mark_synced(path, stat.size, stat.mtime)

        elif action == SyncAction.DELETE_LOCAL:
            if info.local is None:
                raise InvariantViolationError(
                    f"Cannot delete local {path}: no local record"
                )
            self.transfer.delete_local(path)
            self.store.mark_deleted(path)

        elif action == SyncAction.DELETE_REMOTE:
            if info.remote is None:
                raise InvariantViolationError(
                    f"Cannot delete remote {path}: no remote record"
                )
            self.transfer.delete_remote(path)
            self.store.mark_deleted(path)

        else:
            raise InvariantViolationError(f"Cannot apply {action.value} to {path}")


class ConflictResolver:
    """Applies a user's choice to a conflicting path."""

    def __init__(self, engine: ReconciliationEngine):
        self.engine = engine

    def resolve(self, path: str, keep: KeepSide) -> Optional[SyncAction]:
        """Resolve a conflict by keeping one side or skipping the path.

        LOCAL and REMOTE force the transfer without checking the baseline.
        SKIP drops the pending records without touching LAST_SYNCED, so the
        path is looked at again by the next diff.

        Returns:
            The transfer applied, or None when the path was skipped
        """
        store = self.engine.store
        info = _load_info(store, path)
        keep = KeepSide(keep)
        logger.info(f"Resolving conflict on {path}: keep {keep.value}")

        if keep == KeepSide.SKIP:
            store.mark_complete(path)
            return None

        action = SyncAction.UPLOAD if keep == KeepSide.LOCAL else SyncAction.DOWNLOAD
        self.engine.apply(action, info)
        return action
