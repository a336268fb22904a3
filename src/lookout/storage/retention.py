"""Scheduled or operator-triggered pruning of old entries."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from lookout.entries import utc
from lookout.storage.base import PrunableRepository, StoreDeleteError, StoreError

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_HOURS = 24


@dataclass
class PruneResult:
    """Result of a pruning run.

    Attributes:
        before: Entries created before this time were eligible.
        deleted: Entries deleted.
        keep_exceptions: Whether exceptions were spared.
    """

    before: datetime
    deleted: int
    keep_exceptions: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "before": self.before.isoformat(),
            "deleted": self.deleted,
            "keep_exceptions": self.keep_exceptions,
        }


def prune_entries(
    repository: PrunableRepository,
    hours: float = DEFAULT_RETENTION_HOURS,
    keep_exceptions: bool = False,
    now: datetime | None = None,
) -> PruneResult:
    """Delete entries older than ``hours``.

    Args:
        repository: Repository to prune.
        hours: Age in hours past which entries are deleted.
        keep_exceptions: Spare exception entries regardless of age.
        now: Reference time (defaults to the current UTC time).

    Returns:
        What was pruned.

    Raises:
        StoreError: If the repository can't be pruned. Partial failures
            are logged with the number of entries that were deleted.
    """
    if not isinstance(repository, PrunableRepository):
        raise StoreError(f"{type(repository).__name__} does not support pruning")
    if hours < 0:
        raise ValueError(f"hours must not be negative, got {hours}")

    before = utc(now or datetime.now(timezone.utc)) - timedelta(hours=hours)

    try:
        deleted = repository.prune(before, keep_exceptions)
    except StoreDeleteError as e:
        logger.error(f"Pruning partially failed after deleting {e.deleted} entries: {e}")
        raise

    logger.info(f"{deleted} entries pruned.")
    return PruneResult(before=before, deleted=deleted, keep_exceptions=keep_exceptions)
