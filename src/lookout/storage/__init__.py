"""Entry repositories.

This module provides a unified interface for storing and querying
diagnostic entries across backends (SQL databases, local directories,
S3 buckets).

Example:
    >>> from lookout.storage import EntryQueryOptions, get_repository
    >>>
    >>> repository = get_repository("database", connection_url="sqlite:///lookout.db")
    >>> repository.store(entries)
    >>>
    >>> # Latest exceptions
    >>> repository.get("exception", EntryQueryOptions(limit=25))
    >>>
    >>> # Everything recorded for one request
    >>> repository.get(None, EntryQueryOptions.for_batch(batch_id))
"""

from lookout.storage.base import (
    ClearableRepository,
    EntriesRepository,
    EntryQueryOptions,
    PrunableRepository,
    StoreConfig,
    StoreConnectionError,
    StoreDeleteError,
    StoreError,
    StoreNotFoundError,
    StoreReadError,
    StoreWriteError,
    TerminableRepository,
)
from lookout.storage.factory import get_repository, list_available_backends, register_repository
from lookout.storage.monitoring import MonitoredTags, MonitoringSource
from lookout.storage.retention import PruneResult, prune_entries

__all__ = [
    # Base classes
    "EntriesRepository",
    "ClearableRepository",
    "PrunableRepository",
    "TerminableRepository",
    "StoreConfig",
    "EntryQueryOptions",
    # Errors
    "StoreError",
    "StoreNotFoundError",
    "StoreConnectionError",
    "StoreWriteError",
    "StoreReadError",
    "StoreDeleteError",
    # Monitoring
    "MonitoredTags",
    "MonitoringSource",
    # Retention
    "PruneResult",
    "prune_entries",
    # Factory functions
    "get_repository",
    "register_repository",
    "list_available_backends",
]
