"""Blob entries repository.

This module provides the path-addressed backend. Each entry is one JSON
object at ``{directory}/{type}/{batch_id}/{uuid}.json`` on a ``Disk``, so
storing is a blind write. The medium has no secondary index: ``find``,
``get`` and ``prune`` enumerate objects and filter and sort in memory.
Objects carry no sequence, so ``get`` orders by creation time.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Sequence

from lookout.entries import EntryResult, utc
from lookout.storage.base import (
    EntriesRepository,
    EntryQueryOptions,
    StoreConfig,
    StoreDeleteError,
    StoreNotFoundError,
    StoreReadError,
    StoreWriteError,
    order_entries,
)
from lookout.storage.disks import Disk, DiskError, DiskFileNotFoundError

if TYPE_CHECKING:
    from lookout.entries import EntryUpdate, IncomingEntry

logger = logging.getLogger(__name__)

EXTENSION = ".json"


@dataclass
class BlobConfig(StoreConfig):
    """Configuration for the blob repository.

    Attributes:
        directory: Root prefix of every entry path.
        indent: JSON indentation of stored objects (None for compact).
    """

    directory: str = "lookout"
    indent: int | None = None

    def __post_init__(self) -> None:
        self.directory = self.directory.strip("/")


def _join(*parts: str) -> str:
    return "/".join(part for part in parts if part)


def _segment(name: str, value: str) -> str:
    # One path level: never empty, never a separator or a relative step.
    if not value or "/" in value or "\\" in value or value in (".", ".."):
        raise ValueError(f"Invalid {name} for an object path: {value!r}")
    return value


class BlobEntriesRepository(EntriesRepository[BlobConfig]):
    """Entries repository on a path-addressed disk.

    ``update`` is not supported: it accepts every update and changes
    nothing. Monitored tags are kept in memory only.

    Example:
        >>> repository = BlobEntriesRepository(LocalDisk(".lookout"), directory="entries")
        >>> repository.store(entries)
        >>>
        >>> # S3
        >>> repository = BlobEntriesRepository(S3Disk(bucket="diagnostics"))
    """

    def __init__(
        self,
        disk: Disk,
        directory: str = "lookout",
        indent: int | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize the blob repository.

        Args:
            disk: Medium holding the objects.
            directory: Root prefix; leading and trailing slashes are stripped.
            indent: JSON indentation of stored objects.
            **kwargs: Additional configuration options.
        """
        config = BlobConfig(
            directory=directory,
            indent=indent,
            **{k: v for k, v in kwargs.items() if hasattr(BlobConfig, k)},
        )
        super().__init__(config)
        self._disk = disk

    @classmethod
    def _default_config(cls) -> BlobConfig:
        """Create default configuration."""
        return BlobConfig()

    def _do_initialize(self) -> None:
        """Nothing to prepare: directories are implied by paths."""
        pass

    @property
    def disk(self) -> Disk:
        return self._disk

    @property
    def directory(self) -> str:
        return self._config.directory

    def entry_path(self, type: str, batch_id: str, uuid: str) -> str:
        """Get the object path of an entry.

        Raises:
            ValueError: If a segment is empty or would leave its directory.
        """
        name = _segment("uuid", uuid) + EXTENSION
        return _join(self.directory, _segment("type", type), _segment("batch_id", batch_id), name)

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def _serialize(self, data: dict[str, Any]) -> bytes:
        return json.dumps(data, indent=self._config.indent, default=str).encode("utf-8")

    def _read(self, path: str) -> EntryResult:
        try:
            data = json.loads(self._disk.get(path).decode("utf-8"))
            return EntryResult.from_dict(data)
        except DiskFileNotFoundError:
            raise
        except DiskError as e:
            raise StoreReadError(f"Failed to read {path}: {e}") from e
        except (UnicodeDecodeError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise StoreReadError(f"Malformed entry object {path}: {e}") from e

    def _list(self, directory: str) -> list[str]:
        try:
            files = self._disk.all_files(directory)
        except DiskError as e:
            raise StoreReadError(f"Failed to list {directory or 'root'}: {e}") from e
        return [path for path in files if path.endswith(EXTENSION)]

    def _scan(self, paths: list[str]) -> list[EntryResult]:
        entries: list[EntryResult] = []
        for path in paths:
            try:
                entries.append(self._read(path))
            except DiskFileNotFoundError:
                # Deleted between listing and reading.
                continue
        return entries

    # -------------------------------------------------------------------------
    # Entry Operations
    # -------------------------------------------------------------------------

    def store(self, entries: Sequence["IncomingEntry"]) -> None:
        """Write one object per entry.

        Every entry is attempted; a failed write does not stop the others.

        Raises:
            StoreWriteError: Listing which uuids were stored and which failed.
        """
        stored: list[str] = []
        failed: list[str] = []
        last_error: Exception | None = None

        for entry in entries:
            try:
                path = self.entry_path(entry.type, entry.batch_id, entry.uuid)
                self._disk.put(path, self._serialize(entry.to_dict()))
            except (DiskError, TypeError, ValueError) as e:
                logger.debug(f"Failed to store entry {entry.uuid}: {e}")
                failed.append(entry.uuid)
                last_error = e
                continue
            stored.append(entry.uuid)

        if failed:
            raise StoreWriteError(
                f"Failed to store {len(failed)} of {len(stored) + len(failed)} entries: {last_error}",
                stored=stored,
                failed=failed,
            ) from last_error

        logger.debug(f"Stored {len(stored)} entries")

    def find(self, id: str) -> EntryResult:
        """Find an entry by uuid, scanning every type and batch.

        Raises:
            StoreNotFoundError: If the entry doesn't exist.
            StoreReadError: If listing or reading fails.
        """
        name = f"{id}{EXTENSION}"
        for path in self._list(self.directory):
            if path.rsplit("/", 1)[-1] == name:
                try:
                    return self._read(path)
                except DiskFileNotFoundError:
                    break
        raise StoreNotFoundError("Entry", id)

    def get(self, type: str | None, options: EntryQueryOptions) -> list[EntryResult]:
        """Get entries matching the options, most recently created first."""
        options = options.for_type(type)

        directory = self.directory
        if options.type:
            directory = _join(directory, options.type)
            if options.batch_id:
                directory = _join(directory, options.batch_id)

        paths = self._list(directory)
        if options.uuids is not None:
            names = {f"{uuid}{EXTENSION}" for uuid in options.uuids}
            paths = [path for path in paths if path.rsplit("/", 1)[-1] in names]

        entries = [entry for entry in self._scan(paths) if options.matches(entry)]
        return order_entries(entries, options)

    def update(self, updates: Sequence["EntryUpdate"]) -> list["EntryUpdate"]:
        """Accept updates without applying them (not supported by this backend)."""
        if updates:
            logger.debug(f"Ignoring {len(updates)} entry updates")
        return []

    def prune(self, before: datetime, keep_exceptions: bool = False) -> int:
        """Delete entries created before ``before``.

        Unreadable objects are skipped and reported with the failed deletes.

        Raises:
            StoreReadError: If listing fails.
            StoreDeleteError: If some objects could not be read or deleted.
        """
        cutoff = utc(before)
        protected = self._config.protected_type
        protected_prefix = _join(self.directory, protected) + "/"
        deleted = 0
        failed: list[str] = []

        for path in self._list(self.directory):
            if keep_exceptions and path.startswith(protected_prefix):
                continue
            try:
                entry = self._read(path)
            except DiskFileNotFoundError:
                continue
            except StoreReadError as e:
                logger.warning(f"Skipping unreadable object {path}: {e}")
                failed.append(path)
                continue
            if entry.created_at >= cutoff:
                continue
            if keep_exceptions and entry.type == protected:
                continue
            try:
                self._disk.delete(path)
            except DiskError as e:
                logger.warning(f"Failed to prune {path}: {e}")
                failed.append(path)
                continue
            deleted += 1

        if failed:
            raise StoreDeleteError(
                f"Pruned {deleted} entries, {len(failed)} could not be read or deleted",
                deleted=deleted,
                failed=failed,
            )

        logger.info(f"Pruned {deleted} entries created before {before.isoformat()}")
        return deleted

    def clear(self) -> None:
        """Delete every object under the root directory."""
        try:
            result = self._disk.delete_directory(self.directory)
        except DiskError as e:
            raise StoreDeleteError(f"Failed to clear {self.directory or 'root'}: {e}") from e

        if not result.complete:
            raise StoreDeleteError(
                f"Cleared {result.deleted} objects, {len(result.failed)} could not be deleted",
                deleted=result.deleted,
                failed=result.failed,
            )

        logger.info(f"Cleared {result.deleted} entries")
