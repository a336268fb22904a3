"""Tests for the path-addressed storage media."""

from __future__ import annotations

from pathlib import Path

import pytest

from lookout.storage import disks
from lookout.storage._protocols import S3ClientProtocol
from lookout.storage.disks import (
    DeleteResult,
    DiskError,
    DiskFileNotFoundError,
    LocalDisk,
    S3Disk,
)
from tests.mocks.cloud_mocks import MockS3Client, create_mock_s3_client

BUCKET = "diagnostics"


class TestLocalDisk:
    """Tests for LocalDisk."""

    def test_put_and_get(self, tmp_path: Path) -> None:
        """Test writing and reading an object."""
        disk = LocalDisk(tmp_path)

        disk.put("a/b/c.json", b"{}")

        assert disk.get("a/b/c.json") == b"{}"
        assert (tmp_path / "a" / "b" / "c.json").read_bytes() == b"{}"

    def test_put_overwrites(self, tmp_path: Path) -> None:
        """Test that a second write replaces the object."""
        disk = LocalDisk(tmp_path)

        disk.put("x.json", b"1")
        disk.put("x.json", b"2")

        assert disk.get("x.json") == b"2"
        assert disk.all_files() == ["x.json"]

    def test_get_missing(self, tmp_path: Path) -> None:
        """Test reading a path that holds nothing."""
        with pytest.raises(DiskFileNotFoundError):
            LocalDisk(tmp_path).get("missing.json")

    def test_all_files_is_recursive(self, tmp_path: Path) -> None:
        """Test listing nested objects under a directory."""
        disk = LocalDisk(tmp_path)
        for path in ("root/a/1.json", "root/b/c/2.json", "other/3.json"):
            disk.put(path, b"{}")

        assert disk.all_files("root") == ["root/a/1.json", "root/b/c/2.json"]
        assert disk.all_files("/root/") == ["root/a/1.json", "root/b/c/2.json"]
        assert len(disk.all_files()) == 3
        assert disk.all_files("nowhere") == []

    def test_delete(self, tmp_path: Path) -> None:
        """Test deleting present and missing objects."""
        disk = LocalDisk(tmp_path)
        disk.put("x.json", b"{}")

        disk.delete("x.json")
        disk.delete("x.json")

        assert disk.all_files() == []

    def test_paths_cannot_escape_root(self, tmp_path: Path) -> None:
        """Test that relative segments can't leave the root directory."""
        disk = LocalDisk(tmp_path / "root")

        with pytest.raises(DiskError):
            disk.put("../outside.json", b"{}")

    def test_delete_directory(self, tmp_path: Path) -> None:
        """Test removing a directory tree."""
        disk = LocalDisk(tmp_path)
        for path in ("root/a/1.json", "root/b/2.json", "keep/3.json"):
            disk.put(path, b"{}")

        result = disk.delete_directory("root")

        assert result == DeleteResult(deleted=2, failed=[])
        assert not (tmp_path / "root").exists()
        assert disk.all_files() == ["keep/3.json"]

    def test_delete_missing_directory(self, tmp_path: Path) -> None:
        """Test that deleting nothing succeeds."""
        result = LocalDisk(tmp_path).delete_directory("nowhere")

        assert result.complete
        assert result.deleted == 0

    def test_delete_directory_continues_past_failures(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that one undeletable file doesn't stop the others."""
        disk = LocalDisk(tmp_path)
        for path in ("root/a/1.json", "root/a/2.json", "root/b/3.json"):
            disk.put(path, b"{}")

        real_unlink = Path.unlink

        def unlink(self: Path, missing_ok: bool = False) -> None:
            if self.name == "2.json":
                raise PermissionError("read-only")
            real_unlink(self, missing_ok=missing_ok)

        monkeypatch.setattr(Path, "unlink", unlink)

        result = disk.delete_directory("root")

        assert result.deleted == 2
        assert result.failed == ["root/a/2.json"]
        assert not result.complete
        assert not (tmp_path / "root" / "b").exists()
        assert (tmp_path / "root" / "a" / "2.json").exists()

    def test_delete_directory_survives_rmdir_failure(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that a directory that can't be removed is left in place."""
        disk = LocalDisk(tmp_path)
        disk.put("root/a/1.json", b"{}")

        def rmdir(self: Path) -> None:
            raise OSError("device busy")

        monkeypatch.setattr(Path, "rmdir", rmdir)

        result = disk.delete_directory("root")

        assert result == DeleteResult(deleted=1, failed=[])
        assert (tmp_path / "root" / "a").is_dir()
        assert disk.all_files() == []


class TestS3Disk:
    """Tests for S3Disk."""

    @pytest.fixture
    def client(self) -> MockS3Client:
        return create_mock_s3_client(with_bucket=BUCKET)

    @pytest.fixture
    def disk(self, client: MockS3Client) -> S3Disk:
        return S3Disk(bucket=BUCKET, client=client)

    def test_put_and_get(self, disk: S3Disk, client: MockS3Client) -> None:
        """Test writing and reading an object."""
        disk.put("a/b.json", b"{}")

        assert disk.get("a/b.json") == b"{}"
        assert client.keys(BUCKET) == ["a/b.json"]

    def test_get_missing(self, disk: S3Disk) -> None:
        """Test that a missing key is reported as not found."""
        with pytest.raises(DiskFileNotFoundError):
            disk.get("missing.json")

    def test_missing_bucket(self, client: MockS3Client) -> None:
        """Test that other client errors are disk errors."""
        disk = S3Disk(bucket="missing", client=client)

        with pytest.raises(DiskError) as exc_info:
            disk.get("a.json")

        assert not isinstance(exc_info.value, DiskFileNotFoundError)
        with pytest.raises(DiskError):
            disk.put("a.json", b"{}")

    def test_all_files_uses_prefix(self, client: MockS3Client) -> None:
        """Test listing by prefix across pages."""
        client.page_size = 1
        disk = S3Disk(bucket=BUCKET, client=client)
        for key in ("root/1.json", "root/2.json", "rootless/3.json"):
            disk.put(key, b"{}")

        assert disk.all_files("root") == ["root/1.json", "root/2.json"]
        assert len(disk.all_files()) == 3

    def test_delete_directory_in_batches(
        self, disk: S3Disk, client: MockS3Client, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test bulk deletion split into several requests."""
        monkeypatch.setattr(disks, "S3_DELETE_BATCH_SIZE", 2)
        for i in range(5):
            disk.put(f"root/{i}.json", b"{}")
        client.calls.clear()

        result = disk.delete_directory("root")

        assert result == DeleteResult(deleted=5, failed=[])
        assert client.calls.count("delete_objects") == 3
        assert client.keys(BUCKET) == []

    def test_delete_directory_reports_errors(self, disk: S3Disk, client: MockS3Client) -> None:
        """Test that per-key errors are collected."""
        for i in range(3):
            disk.put(f"root/{i}.json", b"{}")
        client.failing_keys.add("root/1.json")

        result = disk.delete_directory("root")

        assert result.deleted == 2
        assert result.failed == ["root/1.json"]

    def test_client_is_created_with_boto3(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that boto3 builds the client from the configuration."""
        created: dict[str, object] = {}

        def fake_client(service: str, **kwargs: object) -> MockS3Client:
            created.update(kwargs, service=service)
            return create_mock_s3_client(with_bucket=BUCKET)

        monkeypatch.setattr(disks.boto3, "client", fake_client)
        disk = S3Disk(bucket=BUCKET, region="eu-west-1", endpoint_url="http://localhost:9000")

        disk.put("a.json", b"{}")

        assert created == {
            "service": "s3",
            "region_name": "eu-west-1",
            "endpoint_url": "http://localhost:9000",
        }

    def test_mock_client_matches_protocol(self, client: MockS3Client) -> None:
        """Test that the mock offers every client method the disk uses."""
        assert isinstance(client, S3ClientProtocol)
