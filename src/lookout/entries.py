"""Entry types for the diagnostic store.

This module defines the records that producers hand to a repository
(``IncomingEntry``), the records a repository hands back (``EntryResult``)
and the partial updates that can be applied to stored entries
(``EntryUpdate``).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable
from uuid import uuid4


class EntryType(str, Enum):
    """Well-known entry types.

    The set of types is open-ended; any string is a valid entry type and
    these members only name the ones the bundled producers emit.
    """

    CACHE = "cache"
    COMMAND = "command"
    DUMP = "dump"
    EVENT = "event"
    EXCEPTION = "exception"
    GATE = "gate"
    JOB = "job"
    LOG = "log"
    MAIL = "mail"
    MODEL = "model"
    NOTIFICATION = "notification"
    QUERY = "query"
    REDIS = "redis"
    REQUEST = "request"
    SCHEDULED_TASK = "schedule"
    VIEW = "view"

    def __str__(self) -> str:
        return self.value


def utc(value: datetime) -> datetime:
    """Return ``value`` as a timezone-aware UTC datetime.

    Naive datetimes are taken to already be in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: datetime | str) -> datetime:
    """Parse an ISO-8601 timestamp (or pass a datetime through) as UTC."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return utc(value)


def _normalize_tags(tags: Iterable[str]) -> tuple[str, ...]:
    # Ordered, without duplicates.
    return tuple(dict.fromkeys(str(tag) for tag in tags))


@dataclass(frozen=True)
class IncomingEntry:
    """An entry built by a producer, not yet stored.

    Attributes:
        batch_id: Identifier shared by every entry of one unit of work.
        type: Entry type discriminator (see ``EntryType``).
        content: Type-specific payload.
        tags: Tags used for filtering and monitoring.
        uuid: Unique identifier, generated when not given.
        family_hash: Optional key grouping similar entries.
        created_at: Creation time (UTC).
    """

    batch_id: str
    type: str
    content: dict[str, Any] = field(default_factory=dict)
    tags: tuple[str, ...] = ()
    uuid: str = field(default_factory=lambda: str(uuid4()))
    family_hash: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", str(self.type))
        object.__setattr__(self, "tags", _normalize_tags(self.tags))
        object.__setattr__(self, "created_at", utc(self.created_at))

    @property
    def sequence(self) -> int | None:
        """Incoming entries never carry a sequence."""
        return None

    def is_exception(self) -> bool:
        """Check whether this entry records an exception."""
        return self.type == EntryType.EXCEPTION.value

    def with_tags(self, tags: Iterable[str]) -> "IncomingEntry":
        """Return a copy of this entry with ``tags`` merged into its tags."""
        return replace(self, tags=self.tags + tuple(tags))

    def with_batch_id(self, batch_id: str) -> "IncomingEntry":
        """Return a copy of this entry assigned to ``batch_id``."""
        return replace(self, batch_id=batch_id)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "uuid": self.uuid,
            "sequence": None,
            "batch_id": self.batch_id,
            "type": self.type,
            "family_hash": self.family_hash,
            "content": self.content,
            "created_at": self.created_at.isoformat(),
            "tags": list(self.tags),
        }


@dataclass(frozen=True)
class EntryResult:
    """An entry as read back from a repository.

    ``sequence`` is only present on backends that assign one.
    """

    uuid: str
    batch_id: str
    type: str
    content: dict[str, Any]
    created_at: datetime
    tags: tuple[str, ...] = ()
    sequence: int | None = None
    family_hash: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", _normalize_tags(self.tags))
        object.__setattr__(self, "created_at", utc(self.created_at))

    def is_exception(self) -> bool:
        """Check whether this entry records an exception."""
        return self.type == EntryType.EXCEPTION.value

    def sort_key(self) -> tuple[bool, int, datetime, str]:
        """Key ordering entries from oldest to most recent.

        Entries with a sequence rank above entries without one; sequences
        break ties first, then creation time, then uuid.
        """
        has_sequence = self.sequence is not None
        return (
            has_sequence,
            self.sequence if has_sequence else 0,
            self.created_at,
            self.uuid,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "uuid": self.uuid,
            "sequence": self.sequence,
            "batch_id": self.batch_id,
            "type": self.type,
            "family_hash": self.family_hash,
            "content": self.content,
            "created_at": self.created_at.isoformat(),
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EntryResult":
        """Create from dictionary."""
        return cls(
            uuid=data["uuid"],
            sequence=data.get("sequence"),
            batch_id=data["batch_id"],
            type=data["type"],
            family_hash=data.get("family_hash"),
            content=data.get("content") or {},
            created_at=parse_timestamp(data["created_at"]),
            tags=tuple(data.get("tags") or ()),
        )


@dataclass(frozen=True)
class EntryUpdate:
    """A partial change to an already stored entry.

    Attributes:
        uuid: Identifier of the entry to change.
        type: Type of the entry to change.
        changes: Keys merged into the entry's content.
        tags_added: Tags to add.
        tags_removed: Tags to remove.
    """

    uuid: str
    type: str
    changes: dict[str, Any] = field(default_factory=dict)
    tags_added: tuple[str, ...] = ()
    tags_removed: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", str(self.type))
        object.__setattr__(self, "tags_added", _normalize_tags(self.tags_added))
        object.__setattr__(self, "tags_removed", _normalize_tags(self.tags_removed))

    def change(self, **changes: Any) -> "EntryUpdate":
        """Return a copy with ``changes`` merged into the content changes."""
        return replace(self, changes={**self.changes, **changes})

    def add_tags(self, tags: Iterable[str]) -> "EntryUpdate":
        """Return a copy that also adds ``tags``."""
        return replace(self, tags_added=self.tags_added + tuple(tags))

    def remove_tags(self, tags: Iterable[str]) -> "EntryUpdate":
        """Return a copy that also removes ``tags``."""
        return replace(self, tags_removed=self.tags_removed + tuple(tags))

    def apply(self, entry: EntryResult) -> EntryResult:
        """Apply this update to ``entry`` and return the changed entry."""
        removed = set(self.tags_removed)
        tags = tuple(tag for tag in entry.tags + self.tags_added if tag not in removed)
        return replace(entry, content={**entry.content, **self.changes}, tags=tags)
