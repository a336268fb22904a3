"""Path-addressed storage media for the blob repository.

A ``Disk`` stores opaque objects under slash-separated paths and offers
nothing beyond put/get/list/delete. Two media are provided:

- ``LocalDisk``: a directory on the local filesystem.
- ``S3Disk``: an AWS S3 (or S3-compatible) bucket, through boto3.
"""

from __future__ import annotations

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

if TYPE_CHECKING:
    from lookout.storage._protocols import S3ClientProtocol

logger = logging.getLogger(__name__)

# delete_objects accepts at most 1000 keys per request.
S3_DELETE_BATCH_SIZE = 1000


class DiskError(Exception):
    """Raised when the medium rejects an operation."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(f"{path}: {message}")


class DiskFileNotFoundError(DiskError):
    """Raised when reading a path that holds no object."""

    def __init__(self, path: str) -> None:
        super().__init__(path, "no such object")


@dataclass
class DeleteResult:
    """Outcome of a directory delete.

    Attributes:
        deleted: Number of objects deleted.
        failed: Paths that could not be deleted.
    """

    deleted: int = 0
    failed: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed


class Disk(ABC):
    """Abstract path-addressed storage medium."""

    @abstractmethod
    def put(self, path: str, contents: bytes) -> None:
        """Write ``contents`` at ``path``; readers never see a partial object."""
        pass

    @abstractmethod
    def get(self, path: str) -> bytes:
        """Read the object at ``path``.

        Raises:
            DiskFileNotFoundError: If nothing is stored there.
        """
        pass

    @abstractmethod
    def all_files(self, directory: str = "") -> list[str]:
        """List every object path under ``directory``, recursively."""
        pass

    @abstractmethod
    def delete(self, path: str) -> None:
        """Delete the object at ``path``. Deleting a missing object succeeds."""
        pass

    @abstractmethod
    def delete_directory(self, directory: str) -> DeleteResult:
        """Delete every object under ``directory``.

        Keeps going past individual failures and reports them instead of
        raising. A missing directory deletes nothing and succeeds.
        """
        pass


class LocalDisk(Disk):
    """A directory on the local filesystem.

    Example:
        >>> disk = LocalDisk(".lookout")
        >>> disk.put("entries/query/b1/e1.json", b"{}")
        >>> disk.all_files("entries")
        ['entries/query/b1/e1.json']
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _path(self, path: str) -> Path:
        full = self.root / path.strip("/") if path.strip("/") else self.root
        if not full.resolve().is_relative_to(self.root.resolve()):
            raise DiskError(path, f"path escapes {self.root}")
        return full

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    def put(self, path: str, contents: bytes) -> None:
        target = self._path(path)
        temp_path: str | None = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            # Write to a temp file in the same directory, then rename.
            fd, temp_path = tempfile.mkstemp(
                dir=target.parent,
                prefix=f".{target.name}.",
                suffix=".tmp",
            )
            with os.fdopen(fd, "wb") as f:
                f.write(contents)
            os.replace(temp_path, target)
        except OSError as e:
            if temp_path is not None:
                Path(temp_path).unlink(missing_ok=True)
            raise DiskError(path, str(e)) from e

    def get(self, path: str) -> bytes:
        try:
            return self._path(path).read_bytes()
        except FileNotFoundError as e:
            raise DiskFileNotFoundError(path) from e
        except OSError as e:
            raise DiskError(path, str(e)) from e

    def all_files(self, directory: str = "") -> list[str]:
        base = self._path(directory)
        if not base.is_dir():
            return []
        try:
            return sorted(
                self._relative(p)
                for p in base.rglob("*")
                if p.is_file() and not p.name.startswith(".")
            )
        except OSError as e:
            raise DiskError(directory, str(e)) from e

    def delete(self, path: str) -> None:
        try:
            self._path(path).unlink(missing_ok=True)
        except OSError as e:
            raise DiskError(path, str(e)) from e

    def delete_directory(self, directory: str) -> DeleteResult:
        base = self._path(directory)
        result = DeleteResult()
        if not base.is_dir():
            return result

        for dirpath, _dirnames, filenames in os.walk(base, topdown=False):
            current = Path(dirpath)
            for name in filenames:
                file_path = current / name
                try:
                    file_path.unlink()
                    result.deleted += 1
                except OSError as e:
                    logger.warning(f"Failed to delete {file_path}: {e}")
                    result.failed.append(self._relative(file_path))
            # Directories still holding failed files stay in place.
            if current != self.root and not any(current.iterdir()):
                try:
                    current.rmdir()
                except OSError as e:
                    logger.warning(f"Failed to remove directory {current}: {e}")

        return result


@dataclass
class S3DiskConfig:
    """Configuration for the S3 disk.

    Attributes:
        bucket: S3 bucket name.
        region: AWS region name.
        endpoint_url: Custom endpoint URL (for S3-compatible services).
    """

    bucket: str = ""
    region: str | None = None
    endpoint_url: str | None = None


class S3Disk(Disk):
    """An AWS S3 bucket.

    Example:
        >>> disk = S3Disk(bucket="diagnostics", region="us-east-1")
        >>>
        >>> # MinIO, LocalStack, ...
        >>> disk = S3Disk(bucket="diagnostics", endpoint_url="http://localhost:9000")
    """

    def __init__(
        self,
        bucket: str,
        region: str | None = None,
        endpoint_url: str | None = None,
        client: "S3ClientProtocol | None" = None,
    ) -> None:
        """Initialize the S3 disk.

        Args:
            bucket: S3 bucket name.
            region: AWS region name.
            endpoint_url: Custom endpoint URL (for MinIO, LocalStack, etc.).
            client: Preconfigured S3 client; created with boto3 when omitted.
        """
        self.config = S3DiskConfig(bucket=bucket, region=region, endpoint_url=endpoint_url)
        self._client = client

    @property
    def client(self) -> "S3ClientProtocol":
        if self._client is None:
            client_kwargs: dict[str, Any] = {}
            if self.config.region:
                client_kwargs["region_name"] = self.config.region
            if self.config.endpoint_url:
                client_kwargs["endpoint_url"] = self.config.endpoint_url
            self._client = boto3.client("s3", **client_kwargs)
        return self._client

    @staticmethod
    def _error_code(error: ClientError) -> str:
        return error.response.get("Error", {}).get("Code", "Unknown")

    def put(self, path: str, contents: bytes) -> None:
        try:
            self.client.put_object(
                Bucket=self.config.bucket,
                Key=path,
                Body=contents,
                ContentType="application/json",
            )
        except (ClientError, BotoCoreError) as e:
            raise DiskError(path, str(e)) from e

    def get(self, path: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=self.config.bucket, Key=path)
            return response["Body"].read()
        except ClientError as e:
            if self._error_code(e) in ("404", "NoSuchKey"):
                raise DiskFileNotFoundError(path) from e
            raise DiskError(path, str(e)) from e
        except BotoCoreError as e:
            raise DiskError(path, str(e)) from e

    def all_files(self, directory: str = "") -> list[str]:
        prefix = f"{directory.strip('/')}/" if directory.strip("/") else ""
        keys: list[str] = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.config.bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    keys.append(obj["Key"])
        except (ClientError, BotoCoreError) as e:
            raise DiskError(directory, str(e)) from e
        return keys

    def delete(self, path: str) -> None:
        try:
            self.client.delete_object(Bucket=self.config.bucket, Key=path)
        except (ClientError, BotoCoreError) as e:
            raise DiskError(path, str(e)) from e

    def delete_directory(self, directory: str) -> DeleteResult:
        # S3 has no directories: enumerate the prefix and bulk-delete it.
        keys = self.all_files(directory)
        result = DeleteResult()

        for i in range(0, len(keys), S3_DELETE_BATCH_SIZE):
            batch = keys[i : i + S3_DELETE_BATCH_SIZE]
            try:
                response = self.client.delete_objects(
                    Bucket=self.config.bucket,
                    Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
                )
            except (ClientError, BotoCoreError) as e:
                logger.warning(f"Failed to delete {len(batch)} objects: {e}")
                result.failed.extend(batch)
                continue

            errors = [error["Key"] for error in response.get("Errors", [])]
            result.failed.extend(errors)
            result.deleted += len(batch) - len(errors)

        return result
