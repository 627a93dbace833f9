"""Orchestration of a complete sync run."""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass
from enum import Enum
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional

from .comparator import SyncAction
from .diff import DiffLoader
from .engine import ConflictResolver, ReconciliationEngine
from .models import FileStat, KeepSide, SyncProgressState
from .operations import SyncOperations, Transfer
from .progress import ProgressBroadcaster, ProgressCallback
from .scanner import DirectoryScanner
from .state import StateStore

if TYPE_CHECKING:
    from ..s3 import S3Storage

logger = logging.getLogger(__name__)

LocalLister = Callable[[Optional[str]], Mapping[str, FileStat]]
RemoteLister = Callable[[Optional[str]], Iterable[tuple[str, FileStat]]]


class SyncPhase(str, Enum):
    """States of a sync session, in order."""

    INIT = "init"
    FINISH_PENDING = "finish_pending"
    DIFF = "diff"
    SYNC_PENDING = "sync_pending"
    DONE = "done"


@dataclass
class SyncStats:
    """Counts of the work done by one sync run."""

    uploads: int = 0
    downloads: int = 0
    deletes_local: int = 0
    deletes_remote: int = 0
    processed: int = 0

    @property
    def transfers(self) -> int:
        return self.uploads + self.downloads + self.deletes_local + self.deletes_remote

    def record(self, action: SyncAction) -> None:
        self.processed += 1
        if action == SyncAction.UPLOAD:
            self.uploads += 1
        elif action == SyncAction.DOWNLOAD:
            self.downloads += 1
        elif action == SyncAction.DELETE_LOCAL:
            self.deletes_local += 1
        elif action == SyncAction.DELETE_REMOTE:
            self.deletes_remote += 1

    def add(self, other: "SyncStats") -> None:
        """Accumulate the counts of another run into this one."""
        for key, value in asdict(other).items():
            setattr(self, key, getattr(self, key) + value)

    def to_dict(self) -> dict:
        return asdict(self)


class SyncSession:
    """Runs a sync: finish pending work, diff, then reconcile the new work.

    A conflict halts the run with ConflictError. The caller resolves it
    with ``resolve_conflict`` and then calls ``start_sync(resume_only=True)``
    to process the remaining pending paths.

    Only one session may run against a given StateStore at a time.

    Examples:
        >>> with StateStore(db_path) as store:
        ...     session = SyncSession.for_vault(Path("/vault"), storage, store)
        ...     session.subscribe_progress(print)
        ...     stats = session.start_sync()
    """

    def __init__(
        self,
        store: StateStore,
        transfer: Transfer,
        list_local: LocalLister,
        list_remote: RemoteLister,
    ):
        """Initialize sync session.

        Args:
            store: State store
            transfer: Transfer primitives
            list_local: Returns the local snapshot, optionally for a subtree
            list_remote: Returns the lazy remote listing, optionally for a subtree
        """
        self.store = store
        self.engine = ReconciliationEngine(store, transfer)
        self.resolver = ConflictResolver(self.engine)
        self.diff_loader = DiffLoader(store)
        self.list_local = list_local
        self.list_remote = list_remote
        self.progress = ProgressBroadcaster()
        self.phase = SyncPhase.INIT
        self.stats = SyncStats()

    @classmethod
    def for_vault(
        cls,
        root: Path,
        storage: "S3Storage",
        store: StateStore,
        scanner: Optional[DirectoryScanner] = None,
    ) -> "SyncSession":
        """Create a session syncing a local directory with an S3 bucket.

        The scanner's exclusion rules (dot-files, ignore patterns) are
        applied to the remote listing too. A path seen on only one side
        would otherwise read as a deletion on the other.
        """
        scanner = scanner or DirectoryScanner()

        def list_remote(subtree: Optional[str]) -> Iterable[tuple[str, FileStat]]:
            return storage.list_objects(
                subtree, exclude=partial(scanner.is_excluded, subtree=subtree)
            )

        return cls(
            store=store,
            transfer=SyncOperations(root, storage),
            list_local=partial(scanner.snapshot, root),
            list_remote=list_remote,
        )

    def subscribe_progress(self, callback: ProgressCallback) -> Callable[[], None]:
        """Register a progress listener; returns an unsubscribe function."""
        return self.progress.subscribe(callback)

    def start_sync(
        self, resume_only: bool = False, subtree: Optional[str] = None
    ) -> SyncStats:
        """Run a sync.

        Args:
            resume_only: Only finish the work pending from an earlier run
            subtree: Optional relative folder to restrict the diff to

        Returns:
            SyncStats for this run

        Raises:
            ConflictError: If a path changed on both sides. No further paths
                are processed in this run; ``self.stats`` still counts the
                work done before the conflict.
        """
        stats = self.stats = SyncStats()

        self.phase = SyncPhase.FINISH_PENDING
        pending = self.store.list_pending()
        if pending:
            logger.info(f"Finishing {len(pending)} path(s) pending from last sync")
        self._process(pending, "Finishing previous sync", stats)

        if not resume_only:
            self.phase = SyncPhase.DIFF
            logger.debug(f"Computing diff (subtree={subtree!r})")
            self.diff_loader.load(
                self.list_local(subtree), self.list_remote(subtree), subtree
            )

            self.phase = SyncPhase.SYNC_PENDING
            self._process(self.store.list_pending(), "Synchronizing", stats)

            if subtree is None:
                self.store.set_last_sync_time()

        self.phase = SyncPhase.DONE
        logger.info(
            f"Sync done: {stats.uploads} upload(s), {stats.downloads} download(s), "
            f"{stats.deletes_local} local and {stats.deletes_remote} remote delete(s)"
        )
        return stats

    def _process(self, paths: list[str], label: str, stats: SyncStats) -> None:
        total = len(paths)
        for index, path in enumerate(paths, start=1):
            self.progress.emit(SyncProgressState(f"{label}: {path}", index, total))
            decision = self.engine.sync_file(path)
            stats.record(decision.action)

    def resolve_conflict(self, path: str, keep: KeepSide) -> Optional[SyncAction]:
        """Resolve a conflicting path; see ConflictResolver.resolve."""
        return self.resolver.resolve(path, keep)
