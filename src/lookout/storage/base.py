"""Base classes and interfaces for entry repositories.

This module defines the error taxonomy, the query options value object and
the abstract ``EntriesRepository`` contract that every backend implements.
Backend capabilities that some media lack (a native sequence, in-place
updates) degrade inside the contract instead of changing it, so callers
write a single code path.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import (
    TYPE_CHECKING,
    Any,
    Generic,
    Iterable,
    Mapping,
    Protocol,
    Sequence,
    TypeVar,
    runtime_checkable,
)

from lookout.entries import EntryResult, EntryType
from lookout.storage.monitoring import MonitoredTags, MonitoringSource

if TYPE_CHECKING:
    from lookout.entries import EntryUpdate, IncomingEntry


# =============================================================================
# Exceptions
# =============================================================================


class StoreError(Exception):
    """Base exception for all store-related errors."""

    pass


class StoreNotFoundError(StoreError):
    """Raised when a requested item is not found in the store."""

    def __init__(self, item_type: str, identifier: str) -> None:
        self.item_type = item_type
        self.identifier = identifier
        super().__init__(f"{item_type} not found: {identifier}")


class StoreConnectionError(StoreError):
    """Raised when connection to store backend fails."""

    def __init__(self, backend: str, message: str) -> None:
        self.backend = backend
        super().__init__(f"Failed to connect to {backend}: {message}")


class StoreWriteError(StoreError):
    """Raised when writing to store fails.

    Attributes:
        stored: Uuids known to have been written before the failure.
        failed: Uuids known to have failed. Both are empty when the
            backend cannot tell which entries of the batch were applied.
    """

    def __init__(
        self,
        message: str,
        stored: Iterable[str] = (),
        failed: Iterable[str] = (),
    ) -> None:
        self.stored = tuple(stored)
        self.failed = tuple(failed)
        super().__init__(message)


class StoreReadError(StoreError):
    """Raised when reading from store fails."""

    pass


class StoreDeleteError(StoreError):
    """Raised when a bulk delete only partially succeeds.

    Attributes:
        deleted: Number of items that were deleted.
        failed: Paths or identifiers that could not be deleted.
    """

    def __init__(self, message: str, deleted: int = 0, failed: Iterable[str] = ()) -> None:
        self.deleted = deleted
        self.failed = tuple(failed)
        super().__init__(message)


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class StoreConfig:
    """Base configuration for all repositories.

    Attributes:
        protected_type: Entry type spared by ``prune`` when asked to keep it.
        metadata: Additional backend-specific options.
    """

    protected_type: str = EntryType.EXCEPTION.value
    metadata: dict[str, Any] = field(default_factory=dict)


ConfigT = TypeVar("ConfigT", bound=StoreConfig)


# =============================================================================
# Query Options
# =============================================================================


@dataclass(frozen=True)
class EntryQueryOptions:
    """Filters and limit for ``EntriesRepository.get``.

    Every filter that is set must match (conjunction).

    Attributes:
        type: Restrict to one entry type.
        batch_id: Exact batch match.
        tag: The entry must carry this tag.
        family_hash: Exact family hash match.
        before_sequence: The entry's sequence must be strictly lower.
        uuids: The entry must be one of these.
        limit: Maximum number of entries to return.
        index_only: Collapse each exception family to its latest entry.
    """

    type: str | None = None
    batch_id: str | None = None
    tag: str | None = None
    family_hash: str | None = None
    before_sequence: int | None = None
    uuids: frozenset[str] | None = None
    limit: int = 50
    index_only: bool = False

    def __post_init__(self) -> None:
        if self.limit < 1:
            raise ValueError(f"limit must be positive, got {self.limit}")
        if self.type is not None:
            object.__setattr__(self, "type", str(self.type))
        if self.uuids is not None:
            object.__setattr__(self, "uuids", frozenset(self.uuids))

    @classmethod
    def for_batch(cls, batch_id: str, limit: int = 1000) -> "EntryQueryOptions":
        """Options returning every entry of one batch."""
        return cls(batch_id=batch_id, limit=limit)

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "EntryQueryOptions":
        """Build options from dashboard request parameters.

        Recognized keys: ``type``, ``batch_id``, ``tag``, ``family_hash``,
        ``before``, ``uuids`` and ``take``. Empty values are ignored.
        """
        before = params.get("before")
        uuids = params.get("uuids")
        if isinstance(uuids, str):
            uuids = [u for u in uuids.split(",") if u]
        return cls(
            type=params.get("type") or None,
            batch_id=params.get("batch_id") or None,
            tag=params.get("tag") or None,
            family_hash=params.get("family_hash") or None,
            before_sequence=int(before) if before not in (None, "") else None,
            uuids=frozenset(uuids) if uuids else None,
            limit=int(params.get("take") or 50),
        )

    def for_type(self, type: str | None) -> "EntryQueryOptions":
        """Return options restricted to ``type`` (unchanged when None)."""
        if type is None:
            return self
        return replace(self, type=str(type))

    @property
    def shows_every_entry(self) -> bool:
        """Whether hidden family members must be included.

        Looking at a family, a tag or a batch always lists every entry.
        """
        return not self.index_only or bool(self.family_hash or self.tag or self.batch_id)

    def matches(self, entry: EntryResult) -> bool:
        """Check if an entry matches these options' filters."""
        if self.type and entry.type != self.type:
            return False
        if self.batch_id and entry.batch_id != self.batch_id:
            return False
        if self.tag and self.tag not in entry.tags:
            return False
        if self.family_hash and entry.family_hash != self.family_hash:
            return False
        if self.before_sequence is not None:
            if entry.sequence is None or entry.sequence >= self.before_sequence:
                return False
        if self.uuids is not None and entry.uuid not in self.uuids:
            return False
        return True


def order_entries(
    entries: Iterable[EntryResult],
    options: EntryQueryOptions,
) -> list[EntryResult]:
    """Sort entries most recent first, collapse families and apply the limit.

    Used by backends that filter and sort in memory.
    """
    ordered = sorted(entries, key=EntryResult.sort_key, reverse=True)

    if not options.shows_every_entry:
        seen: set[str] = set()
        collapsed: list[EntryResult] = []
        for entry in ordered:
            if entry.is_exception() and entry.family_hash:
                if entry.family_hash in seen:
                    continue
                seen.add(entry.family_hash)
            collapsed.append(entry)
        ordered = collapsed

    return ordered[: options.limit]


# =============================================================================
# Capability Protocols
# =============================================================================


@runtime_checkable
class ClearableRepository(Protocol):
    """Protocol for repositories that can be wiped."""

    def clear(self) -> None: ...


@runtime_checkable
class PrunableRepository(Protocol):
    """Protocol for repositories that enforce retention."""

    def prune(self, before: datetime, keep_exceptions: bool = False) -> int: ...


@runtime_checkable
class TerminableRepository(Protocol):
    """Protocol for repositories with per-request state to reset."""

    def terminate(self) -> None: ...


# =============================================================================
# Abstract Repository
# =============================================================================


class EntriesRepository(ABC, Generic[ConfigT]):
    """Abstract base class for all entry repositories.

    Storage operations are abstract. The monitored-tag operations are
    implemented here on top of a ``MonitoredTags`` registry owned by the
    repository instance; backends with a persisted source of monitored
    tags supply it through ``_monitoring_source``.

    Example:
        >>> repository = get_repository("database", connection_url="sqlite://")
        >>> repository.store([IncomingEntry(batch_id="b1", type="query")])
        >>> repository.get(None, EntryQueryOptions(limit=10))
    """

    def __init__(self, config: ConfigT | None = None) -> None:
        """Initialize the repository with optional configuration.

        Args:
            config: Repository configuration. If None, uses default configuration.
        """
        self._config = config or self._default_config()
        self._initialized = False
        self._monitored_tags = MonitoredTags(self._monitoring_source())

    @classmethod
    @abstractmethod
    def _default_config(cls) -> ConfigT:
        """Create default configuration for this repository type."""
        pass

    @property
    def config(self) -> ConfigT:
        """Get the repository configuration."""
        return self._config

    def _monitoring_source(self) -> MonitoringSource | None:
        """Persisted source of monitored tags, if the backend has one."""
        return None

    # -------------------------------------------------------------------------
    # Lifecycle Methods
    # -------------------------------------------------------------------------

    def initialize(self) -> None:
        """Initialize the repository (connect, create tables, etc.).

        This method is called automatically on first use, but can be called
        explicitly for early initialization or connection testing.
        """
        if not self._initialized:
            self._do_initialize()
            self._initialized = True

    @abstractmethod
    def _do_initialize(self) -> None:
        """Perform actual initialization. Override in subclasses."""
        pass

    def close(self) -> None:
        """Close any open connections or resources."""
        pass

    def __enter__(self) -> "EntriesRepository[ConfigT]":
        self.initialize()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Entry Operations
    # -------------------------------------------------------------------------

    @abstractmethod
    def store(self, entries: Sequence["IncomingEntry"]) -> None:
        """Store entries, in the given order.

        Args:
            entries: The entries to store.

        Raises:
            StoreWriteError: If the medium rejects a write.
        """
        pass

    @abstractmethod
    def find(self, id: str) -> EntryResult:
        """Find the entry with the given uuid, whatever its type or batch.

        Raises:
            StoreNotFoundError: If no entry has that uuid.
            StoreReadError: If reading fails.
        """
        pass

    @abstractmethod
    def get(self, type: str | None, options: EntryQueryOptions) -> list[EntryResult]:
        """Get entries matching ``options``, most recent first.

        Args:
            type: Entry type to restrict to, or None for every type.
            options: Filters and limit.

        Returns:
            At most ``options.limit`` entries; empty when nothing matches.

        Raises:
            StoreReadError: If reading fails.
        """
        pass

    @abstractmethod
    def update(self, updates: Sequence["EntryUpdate"]) -> list["EntryUpdate"]:
        """Apply partial updates to stored entries, where supported.

        Returns:
            The updates that could not be applied because their entry
            does not exist. Backends without update support accept the
            call, change nothing and return an empty list.
        """
        pass

    @abstractmethod
    def prune(self, before: datetime, keep_exceptions: bool = False) -> int:
        """Delete entries created before ``before``.

        Args:
            before: Entries strictly older than this are deleted.
            keep_exceptions: Spare entries of the protected type.

        Returns:
            Number of entries deleted.

        Raises:
            StoreReadError: If the store cannot be enumerated.
            StoreDeleteError: If some deletions failed.
        """
        pass

    @abstractmethod
    def clear(self) -> None:
        """Delete every entry. Clearing an empty store succeeds.

        Raises:
            StoreDeleteError: If some deletions failed.
        """
        pass

    # -------------------------------------------------------------------------
    # Monitored Tags
    # -------------------------------------------------------------------------

    def load_monitored_tags(self) -> None:
        """Restore the monitored tags from the backend's persisted source."""
        self._monitored_tags.load()

    def is_monitoring(self, tags: Iterable[str]) -> bool:
        """Check whether any of ``tags`` is monitored."""
        return self._monitored_tags.is_monitoring(tags)

    def monitoring(self) -> frozenset[str]:
        """Get the monitored tags."""
        return self._monitored_tags.tags()

    def monitor(self, tags: Iterable[str]) -> None:
        """Start monitoring ``tags``."""
        self._monitored_tags.monitor(tags)

    def stop_monitoring(self, tags: Iterable[str]) -> None:
        """Stop monitoring ``tags``."""
        self._monitored_tags.stop_monitoring(tags)

    def terminate(self) -> None:
        """Reset the monitored tags at the end of a request or process."""
        self._monitored_tags.reset()
