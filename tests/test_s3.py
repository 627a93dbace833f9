"""Tests for the S3Storage wrapper."""

import io
from datetime import datetime, timezone
from unittest.mock import Mock, patch

import pytest
from botocore.exceptions import ClientError

from vaultsync.config import Config
from vaultsync.exceptions import ConfigurationError, StorageError
from vaultsync.s3 import S3Storage
from vaultsync.sync import FileStat

LAST_MODIFIED = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _head(size: int, mtime=None) -> dict:
    metadata = {} if mtime is None else {"mtime": str(mtime)}
    return {"ContentLength": size, "Metadata": metadata, "LastModified": LAST_MODIFIED}


def _client_error(operation: str) -> ClientError:
    return ClientError({"Error": {"Code": "500", "Message": "boom"}}, operation)


@pytest.fixture
def client():
    """Create a mock boto3 S3 client."""
    return Mock()


@pytest.fixture
def storage(client):
    return S3Storage(client, "test-bucket")


class TestListObjects:
    """Test listing remote objects."""

    def _pages(self, client, keys):
        paginator = Mock()
        paginator.paginate.return_value = [
            {"Contents": [{"Key": key} for key in keys[:2]]},
            {"Contents": [{"Key": key} for key in keys[2:]]},
        ]
        client.get_paginator.return_value = paginator
        return paginator

    def test_lists_files_with_metadata_mtime(self, storage, client):
        self._pages(client, ["a.md", "folder/", "notes/b.md"])
        client.head_object.side_effect = lambda Bucket, Key: _head(3, 100)

        entries = list(storage.list_objects())

        assert entries == [
            ("a.md", FileStat(3, 100)),
            ("notes/b.md", FileStat(3, 100)),
        ]
        client.get_paginator.assert_called_once_with("list_objects_v2")

    def test_exclude_skips_keys_before_head(self, storage, client):
        self._pages(client, [".obsidian/app.json", "a.md"])
        client.head_object.return_value = _head(1, 1)

        entries = list(storage.list_objects(exclude=lambda key: key.startswith(".")))

        assert [key for key, _ in entries] == ["a.md"]
        client.head_object.assert_called_once_with(Bucket="test-bucket", Key="a.md")

    def test_skips_keys_outside_the_tree(self, storage, client):
        self._pages(client, ["../escaped.txt", "/abs.md", "a//b.md", "ok.md"])
        client.head_object.return_value = _head(1, 1)

        assert [key for key, _ in storage.list_objects()] == ["ok.md"]

    def test_prefix_is_passed_to_listing(self, storage, client):
        paginator = self._pages(client, ["notes/a.md"])
        client.head_object.return_value = _head(1, 1)

        list(storage.list_objects("notes"))

        kwargs = paginator.paginate.call_args.kwargs
        assert kwargs["Prefix"] == "notes/"
        assert kwargs["Bucket"] == "test-bucket"

    def test_is_lazy(self, storage, client):
        self._pages(client, ["a.md", "b.md"])
        client.head_object.return_value = _head(1, 1)

        entries = storage.list_objects()
        next(entries)

        assert client.head_object.call_count == 1

    def test_missing_metadata_falls_back_to_last_modified(self, storage, client):
        client.head_object.return_value = _head(5)

        stat = storage.head("foreign.bin")

        assert stat == FileStat(5, int(LAST_MODIFIED.timestamp() * 1000))

    def test_listing_error_is_wrapped(self, storage, client):
        paginator = Mock()
        paginator.paginate.side_effect = _client_error("ListObjectsV2")
        client.get_paginator.return_value = paginator

        with pytest.raises(StorageError, match="test-bucket"):
            list(storage.list_objects())


class TestTransfers:
    """Test object upload, download and delete."""

    def test_put_object_stores_mtime_metadata(self, storage, client):
        stat = storage.put_object("a.md", b"hello", 1234)

        client.put_object.assert_called_once_with(
            Bucket="test-bucket",
            Key="a.md",
            Body=b"hello",
            Metadata={"mtime": "1234"},
        )
        assert stat == FileStat(5, 1234)

    def test_get_object(self, storage, client):
        client.get_object.return_value = {
            "Body": io.BytesIO(b"data"),
            **_head(4, 999),
        }

        body, stat = storage.get_object("a.md")

        assert body == b"data"
        assert stat == FileStat(4, 999)

    def test_delete_object(self, storage, client):
        storage.delete_object("a.md")

        client.delete_object.assert_called_once_with(Bucket="test-bucket", Key="a.md")

    def test_errors_are_wrapped_with_path(self, storage, client):
        client.delete_object.side_effect = _client_error("DeleteObject")

        with pytest.raises(StorageError) as exc_info:
            storage.delete_object("a.md")

        assert exc_info.value.path == "a.md"
        assert isinstance(exc_info.value.__cause__, ClientError)


class TestFromConfig:
    """Test creating the client from configuration."""

    def test_missing_settings_raise_before_connecting(self, tmp_path, monkeypatch):
        for key in ("BUCKET", "REGION", "ACCESS_KEY_ID", "SECRET_ACCESS_KEY"):
            monkeypatch.delenv(f"VAULTSYNC_{key}", raising=False)
        settings = Config(config_file=tmp_path / "config")

        with patch("vaultsync.s3.boto3") as mock_boto3:
            with pytest.raises(ConfigurationError, match="bucket"):
                S3Storage.from_config(settings)

        mock_boto3.client.assert_not_called()

    def test_endpoint_is_passed_through(self, tmp_path, monkeypatch):
        monkeypatch.setenv("VAULTSYNC_BUCKET", "b")
        monkeypatch.setenv("VAULTSYNC_REGION", "eu-west-1")
        monkeypatch.setenv("VAULTSYNC_ACCESS_KEY_ID", "id")
        monkeypatch.setenv("VAULTSYNC_SECRET_ACCESS_KEY", "secret")
        monkeypatch.setenv("VAULTSYNC_ENDPOINT", "http://localhost:9000")
        settings = Config(config_file=tmp_path / "config")

        with patch("vaultsync.s3.boto3") as mock_boto3:
            storage = S3Storage.from_config(settings)

        kwargs = mock_boto3.client.call_args.kwargs
        assert kwargs["endpoint_url"] == "http://localhost:9000"
        assert kwargs["region_name"] == "eu-west-1"
        assert storage.bucket == "b"
