"""Lookout - a pluggable store for application diagnostic entries."""

from lookout.entries import EntryResult, EntryType, EntryUpdate, IncomingEntry
from lookout.recorder import EntryRecorder
from lookout.storage import (
    EntriesRepository,
    EntryQueryOptions,
    StoreError,
    StoreNotFoundError,
    get_repository,
    prune_entries,
)

__version__ = "0.1.0"

__all__ = [
    "IncomingEntry",
    "EntryResult",
    "EntryUpdate",
    "EntryType",
    "EntryRecorder",
    "EntriesRepository",
    "EntryQueryOptions",
    "StoreError",
    "StoreNotFoundError",
    "get_repository",
    "prune_entries",
]
