"""Shared fixtures for lookout tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Iterator

import pytest

from lookout.entries import IncomingEntry
from lookout.storage.base import EntriesRepository
from lookout.storage.blob import BlobEntriesRepository
from lookout.storage.database import DatabaseEntriesRepository
from lookout.storage.disks import LocalDisk, S3Disk
from tests.mocks.cloud_mocks import MockS3Client, create_mock_s3_client

BUCKET = "diagnostics"

# Reference time well in the past so "old" and "recent" are unambiguous.
NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

EntryFactory = Callable[..., IncomingEntry]


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_entry() -> EntryFactory:
    """Build entries whose creation times increase with every call."""
    counter = {"n": 0}

    def factory(
        type: str = "query",
        batch_id: str = "batch-1",
        tags: tuple[str, ...] | list[str] = (),
        content: dict[str, Any] | None = None,
        created_at: datetime | None = None,
        family_hash: str | None = None,
        **kwargs: Any,
    ) -> IncomingEntry:
        counter["n"] += 1
        if created_at is None:
            created_at = NOW - timedelta(minutes=60) + timedelta(seconds=counter["n"])
        return IncomingEntry(
            batch_id=batch_id,
            type=type,
            tags=tuple(tags),
            content=content if content is not None else {"n": counter["n"]},
            created_at=created_at,
            family_hash=family_hash,
            **kwargs,
        )

    return factory


@pytest.fixture
def database_repository() -> Iterator[DatabaseEntriesRepository]:
    repository = DatabaseEntriesRepository(connection_url="sqlite://")
    repository.initialize()
    yield repository
    repository.close()


@pytest.fixture
def local_disk(tmp_path: Path) -> LocalDisk:
    return LocalDisk(tmp_path / "disk")


@pytest.fixture
def local_repository(local_disk: LocalDisk) -> BlobEntriesRepository:
    return BlobEntriesRepository(local_disk, directory="/lookout/")


@pytest.fixture
def s3_client() -> MockS3Client:
    return create_mock_s3_client(with_bucket=BUCKET, page_size=2)


@pytest.fixture
def s3_repository(s3_client: MockS3Client) -> BlobEntriesRepository:
    return BlobEntriesRepository(S3Disk(bucket=BUCKET, client=s3_client), directory="entries")


@pytest.fixture(params=["database", "local", "s3"])
def repository(request: pytest.FixtureRequest) -> EntriesRepository[Any]:
    """Every backend, for tests of the shared repository contract."""
    return request.getfixturevalue(f"{request.param}_repository")
