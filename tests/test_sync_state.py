"""Tests for the StateStore."""

import sqlite3

import pytest

from vaultsync.exceptions import DataIntegrityError, InvariantViolationError
from vaultsync.sync import FileRecord, RecordKind, StateStore, default_state_path


def _record(path="a.md", size=10, mtime=100, kind=RecordKind.LOCAL) -> FileRecord:
    return FileRecord(path=path, size=size, mtime=mtime, kind=kind)


class TestUpsert:
    """Tests for inserting and updating records."""

    def test_insert_then_read(self, store):
        store.upsert(_record(kind=RecordKind.LOCAL))

        info = store.get_sync_info("a.md")

        assert info is not None
        assert info.local == _record(kind=RecordKind.LOCAL)
        assert info.remote is None
        assert info.last_synced is None

    def test_upsert_updates_existing(self, store):
        store.upsert(_record(size=10, mtime=100))
        store.upsert(_record(size=20, mtime=200))

        records = store.get_all()

        assert records == [_record(size=20, mtime=200)]

    def test_upsert_is_idempotent(self, store):
        store.upsert(_record())
        store.upsert(_record())

        assert len(store.get_all()) == 1

    def test_one_record_per_kind(self, store):
        for kind in RecordKind:
            store.upsert(_record(kind=kind, mtime=int(kind) + 1))

        info = store.get_sync_info("a.md")

        assert info.last_synced.mtime == 1
        assert info.remote.mtime == 2
        assert info.local.mtime == 3

    @pytest.mark.parametrize("path", ["/abs.md", "../up.md", "a//b.md", ""])
    def test_invalid_path_is_never_written(self, store, path):
        with pytest.raises(InvariantViolationError, match="invalid path"):
            store.upsert(_record(path=path))

        assert store.get_all() == []
        assert store.list_pending() == []


class TestDelete:
    """Tests for deleting records."""

    def test_delete_single_kind(self, store):
        store.upsert(_record(kind=RecordKind.LOCAL))
        store.upsert(_record(kind=RecordKind.REMOTE))

        store.delete("a.md", RecordKind.LOCAL)

        info = store.get_sync_info("a.md")
        assert info.local is None
        assert info.remote is not None

    def test_delete_missing_is_noop(self, store):
        store.delete("missing.md", RecordKind.LOCAL)
        assert store.get_all() == []

    def test_delete_all(self, store):
        store.upsert(_record("a.md"))
        store.upsert(_record("b.md", kind=RecordKind.LAST_SYNCED))
        store.set_last_sync_time(1234)

        store.delete_all()

        assert store.get_all() == []
        assert store.get_last_sync_time() is None


class TestGetSyncInfo:
    """Tests for reading a path's records."""

    def test_unknown_path_returns_none(self, store):
        assert store.get_sync_info("nope.md") is None

    def test_invalid_size_raises(self, store):
        store._connection().execute(
            "INSERT INTO file_records (path, kind, size, mtime) VALUES (?, ?, ?, ?)",
            ("bad.md", 2, "not a number", 100),
        )

        with pytest.raises(DataIntegrityError, match="size"):
            store.get_sync_info("bad.md")

    def test_invalid_kind_raises(self, store):
        store._connection().execute(
            "INSERT INTO file_records (path, kind, size, mtime) VALUES (?, ?, ?, ?)",
            ("bad.md", 7, 1, 100),
        )

        with pytest.raises(DataIntegrityError, match="kind"):
            store.get_sync_info("bad.md")

    def test_path_escaping_tree_raises(self, store):
        store._connection().execute(
            "INSERT INTO file_records (path, kind, size, mtime) VALUES (?, ?, ?, ?)",
            ("../bad.md", 2, 1, 100),
        )

        with pytest.raises(DataIntegrityError, match="Invalid path"):
            store.get_sync_info("../bad.md")


class TestPending:
    """Tests for pending-state bookkeeping."""

    def test_mark_complete_keeps_last_synced(self, store):
        store.upsert(_record(kind=RecordKind.LAST_SYNCED))
        store.upsert(_record(kind=RecordKind.LOCAL, mtime=200))
        store.upsert(_record(kind=RecordKind.REMOTE, mtime=300))

        store.mark_complete("a.md")

        info = store.get_sync_info("a.md")
        assert info.last_synced == _record(kind=RecordKind.LAST_SYNCED)
        assert info.local is None
        assert info.remote is None
        assert not info.is_pending

    def test_list_pending_distinct_and_sorted(self, store):
        store.upsert(_record("b.md", kind=RecordKind.LOCAL))
        store.upsert(_record("b.md", kind=RecordKind.REMOTE))
        store.upsert(_record("a.md", kind=RecordKind.REMOTE))
        store.upsert(_record("c.md", kind=RecordKind.LAST_SYNCED))

        assert store.list_pending() == ["a.md", "b.md"]

    def test_mark_synced_replaces_baseline_and_completes(self, store):
        store.upsert(_record(kind=RecordKind.LAST_SYNCED, mtime=100))
        store.upsert(_record(kind=RecordKind.LOCAL, mtime=200, size=5))

        store.mark_synced("a.md", size=5, mtime=200)

        info = store.get_sync_info("a.md")
        assert info.last_synced == _record(kind=RecordKind.LAST_SYNCED, size=5, mtime=200)
        assert store.list_pending() == []

    def test_mark_deleted_forgets_path(self, store):
        store.upsert(_record(kind=RecordKind.LAST_SYNCED))
        store.upsert(_record(kind=RecordKind.REMOTE))

        store.mark_deleted("a.md")

        assert store.get_sync_info("a.md") is None


class TestLifecycle:
    """Tests for opening, closing and persistence."""

    def test_records_survive_reopen(self, tmp_path):
        db_path = tmp_path / "state" / "vault.sqlite3"
        with StateStore(db_path) as store:
            store.upsert(_record(kind=RecordKind.REMOTE))

        with StateStore(db_path) as store:
            assert store.list_pending() == ["a.md"]

    def test_closed_store_raises(self, tmp_path):
        store = StateStore(tmp_path / "state.sqlite3")
        store.close()
        store.close()

        assert store.closed
        with pytest.raises(InvariantViolationError):
            store.list_pending()

    def test_last_sync_time(self, store):
        assert store.get_last_sync_time() is None
        store.set_last_sync_time(1000)
        store.set_last_sync_time(2000)
        assert store.get_last_sync_time() == 2000

    def test_schema_is_reused(self, tmp_path):
        db_path = tmp_path / "state.sqlite3"
        StateStore(db_path).close()

        conn = sqlite3.connect(db_path)
        tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master")}
        conn.close()

        assert {"file_records", "status"} <= tables


class TestDefaultStatePath:
    """Tests for the per vault/bucket state file name."""

    def test_distinct_per_bucket(self, tmp_path):
        first = default_state_path(tmp_path, "bucket-a", state_dir=tmp_path)
        second = default_state_path(tmp_path, "bucket-b", state_dir=tmp_path)

        assert first != second
        assert first.parent == tmp_path
        assert first.suffix == ".sqlite3"

    def test_stable(self, tmp_path):
        assert default_state_path(tmp_path, "b", tmp_path) == default_state_path(
            tmp_path, "b", tmp_path
        )
