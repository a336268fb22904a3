"""Monitored-tag registry.

Producers ask the registry whether any of an entry's tags is currently being
monitored before they build the entry, so ``is_monitoring`` sits on a hot
path and does no I/O. Persistence is delegated to an optional
``MonitoringSource``; without one the registry lives only as long as the
repository that owns it.
"""

from __future__ import annotations

import logging
from typing import Iterable, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class MonitoringSource(Protocol):
    """Protocol for a persisted set of monitored tags."""

    def load(self) -> Iterable[str]: ...

    def add(self, tags: list[str]) -> None: ...

    def remove(self, tags: list[str]) -> None: ...


class MonitoredTags:
    """The set of tags currently being monitored.

    Example:
        >>> registry = MonitoredTags()
        >>> registry.monitor(["sql"])
        >>> registry.is_monitoring(["sql", "http"])
        True
        >>> registry.stop_monitoring(["sql"])
        >>> registry.is_monitoring(["sql"])
        False
    """

    def __init__(self, source: MonitoringSource | None = None) -> None:
        self._source = source
        self._tags: set[str] = set()

    @property
    def source(self) -> MonitoringSource | None:
        return self._source

    def load(self) -> None:
        """Replace the in-memory set with the persisted one.

        Without a source the set is left empty.
        """
        if self._source is None:
            self._tags = set()
            return
        self._tags = set(self._source.load())
        logger.debug(f"Loaded {len(self._tags)} monitored tags")

    def monitor(self, tags: Iterable[str]) -> None:
        """Start monitoring ``tags`` (a union; already monitored tags are kept)."""
        tags = list(dict.fromkeys(tags))
        if not tags:
            return
        if self._source is not None:
            self._source.add(tags)
        self._tags.update(tags)

    def stop_monitoring(self, tags: Iterable[str]) -> None:
        """Stop monitoring ``tags``."""
        tags = list(dict.fromkeys(tags))
        if not tags:
            return
        if self._source is not None:
            self._source.remove(tags)
        self._tags.difference_update(tags)

    def is_monitoring(self, tags: Iterable[str]) -> bool:
        """Check whether any of ``tags`` is monitored."""
        if not self._tags:
            return False
        monitored = self._tags
        return any(tag in monitored for tag in tags)

    def tags(self) -> frozenset[str]:
        """Get the monitored tags."""
        return frozenset(self._tags)

    def reset(self) -> None:
        """Forget every monitored tag without touching the persisted set."""
        self._tags = set()

    def __contains__(self, tag: object) -> bool:
        return tag in self._tags

    def __len__(self) -> int:
        return len(self._tags)
