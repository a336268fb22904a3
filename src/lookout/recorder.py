"""Producer-side recording of entries.

An ``EntryRecorder`` collects the entries of one unit of work (one request,
one job, one command) under a shared batch id and stores them together.
Storing diagnostics must never break the application being diagnosed, so
``flush`` logs storage failures instead of raising them.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable
from uuid import uuid4

from lookout.entries import IncomingEntry
from lookout.storage.base import StoreError, TerminableRepository

if TYPE_CHECKING:
    from lookout.storage.base import EntriesRepository

logger = logging.getLogger(__name__)


class EntryRecorder:
    """Buffer entries for one batch and store them on flush.

    Example:
        >>> with EntryRecorder(repository) as recorder:
        ...     if recorder.should_record(["sql"]):
        ...         recorder.record_new("query", {"sql": "select 1"}, tags=["sql"])
    """

    def __init__(
        self,
        repository: "EntriesRepository[Any]",
        batch_id: str | None = None,
        monitored_only: bool = False,
    ) -> None:
        """Initialize the recorder.

        Args:
            repository: Repository entries are stored in.
            batch_id: Batch id stamped on every entry (generated when omitted).
            monitored_only: Only record entries carrying a monitored tag.
        """
        self.repository = repository
        self.batch_id = batch_id or str(uuid4())
        self.monitored_only = monitored_only
        self._entries: list[IncomingEntry] = []

    @property
    def pending(self) -> list[IncomingEntry]:
        """Entries recorded but not yet stored."""
        return list(self._entries)

    def should_record(self, tags: Iterable[str]) -> bool:
        """Check whether an entry with ``tags`` should be built at all."""
        if not self.monitored_only:
            return True
        return self.repository.is_monitoring(tags)

    def record(self, entry: IncomingEntry) -> IncomingEntry:
        """Buffer ``entry``, assigned to this recorder's batch."""
        if entry.batch_id != self.batch_id:
            entry = entry.with_batch_id(self.batch_id)
        self._entries.append(entry)
        return entry

    def record_new(
        self,
        type: str,
        content: dict[str, Any],
        tags: Iterable[str] = (),
        family_hash: str | None = None,
    ) -> IncomingEntry:
        """Build and buffer a new entry."""
        return self.record(
            IncomingEntry(
                batch_id=self.batch_id,
                type=type,
                content=content,
                tags=tuple(tags),
                family_hash=family_hash,
            )
        )

    def flush(self) -> bool:
        """Store the buffered entries.

        Returns:
            True if the entries were stored (or there were none), False if
            the repository rejected them. The buffer is emptied either way.
        """
        entries, self._entries = self._entries, []
        if not entries:
            return True

        try:
            self.repository.store(entries)
        except StoreError:
            logger.exception(f"Failed to store {len(entries)} entries of batch {self.batch_id}")
            return False
        return True

    def __enter__(self) -> "EntryRecorder":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.flush()
        if isinstance(self.repository, TerminableRepository):
            self.repository.terminate()
