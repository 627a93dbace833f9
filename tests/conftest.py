"""Shared fixtures for vaultsync tests."""

from typing import Optional

import pytest

from vaultsync.sync import FileStat, StateStore, SyncSession
from vaultsync.utils import is_in_subtree, normalize_subtree


class FakeVault:
    """In-memory local tree and bucket implementing the sync adapters.

    Each side maps a path to ``(content, mtime)``. Transfers copy the
    current content and mtime, like the real adapters do.
    """

    def __init__(self) -> None:
        self.local: dict[str, tuple[bytes, int]] = {}
        self.remote: dict[str, tuple[bytes, int]] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_on: Optional[tuple[str, str]] = None

    @property
    def transfers(self) -> int:
        return len(self.calls)

    def _check_failure(self, operation: str, path: str) -> None:
        if self.fail_on == (operation, path):
            raise OSError(f"Simulated {operation} failure for {path}")

    def snapshot(self, subtree: Optional[str] = None) -> dict[str, FileStat]:
        prefix = normalize_subtree(subtree)
        return {
            path: FileStat(size=len(content), mtime=mtime)
            for path, (content, mtime) in self.local.items()
            if is_in_subtree(path, prefix)
        }

    def list_objects(self, prefix: Optional[str] = None):
        prefix = normalize_subtree(prefix)
        for path in sorted(self.remote):
            if is_in_subtree(path, prefix):
                content, mtime = self.remote[path]
                yield path, FileStat(size=len(content), mtime=mtime)

    def upload(self, path: str) -> FileStat:
        self._check_failure("upload", path)
        self.calls.append(("upload", path))
        self.remote[path] = self.local[path]
        content, mtime = self.local[path]
        return FileStat(size=len(content), mtime=mtime)

    def download(self, path: str) -> FileStat:
        self._check_failure("download", path)
        self.calls.append(("download", path))
        self.local[path] = self.remote[path]
        content, mtime = self.remote[path]
        return FileStat(size=len(content), mtime=mtime)

    def delete_local(self, path: str) -> None:
        self._check_failure("delete_local", path)
        self.calls.append(("delete_local", path))
        self.local.pop(path, None)

    def delete_remote(self, path: str) -> None:
        self._check_failure("delete_remote", path)
        self.calls.append(("delete_remote", path))
        self.remote.pop(path, None)


@pytest.fixture
def store():
    """Create an in-memory state store."""
    with StateStore(":memory:") as state_store:
        yield state_store


@pytest.fixture
def vault():
    """Create an empty fake vault and bucket."""
    return FakeVault()


@pytest.fixture
def session(store, vault):
    """Create a sync session wired to the fake vault."""
    return SyncSession(
        store=store,
        transfer=vault,
        list_local=vault.snapshot,
        list_remote=vault.list_objects,
    )
