"""Factory functions for creating repositories.

This module provides a registry-based factory for repository instances.
New backends can be registered at runtime.
"""

from __future__ import annotations

from typing import Any, Callable

from lookout.storage.base import EntriesRepository, StoreError

# Type for repository constructor functions
RepositoryConstructor = Callable[..., EntriesRepository[Any]]

# Registry of repository constructors
_repository_registry: dict[str, RepositoryConstructor] = {}


def register_repository(name: str) -> Callable[[RepositoryConstructor], RepositoryConstructor]:
    """Decorator to register a repository backend.

    Example:
        >>> @register_repository("redis")
        ... class RedisEntriesRepository(EntriesRepository):
        ...     pass
    """

    def decorator(cls: RepositoryConstructor) -> RepositoryConstructor:
        _repository_registry[name.lower().strip()] = cls
        return cls

    return decorator


def _local_blob(root: str = ".lookout", **kwargs: Any) -> EntriesRepository[Any]:
    from lookout.storage.blob import BlobEntriesRepository
    from lookout.storage.disks import LocalDisk

    return BlobEntriesRepository(LocalDisk(root), **kwargs)


def _s3_blob(
    bucket: str,
    region: str | None = None,
    endpoint_url: str | None = None,
    client: Any = None,
    **kwargs: Any,
) -> EntriesRepository[Any]:
    from lookout.storage.blob import BlobEntriesRepository
    from lookout.storage.disks import S3Disk

    disk = S3Disk(bucket=bucket, region=region, endpoint_url=endpoint_url, client=client)
    return BlobEntriesRepository(disk, **kwargs)


def get_repository(backend: str, **kwargs: Any) -> EntriesRepository[Any]:
    """Create a repository instance for the specified backend.

    Args:
        backend: Name of the backend. Options:
            - "database": SQL database (aliases "db", "sql")
            - "blob": blob repository on a given ``disk``
            - "local": blob repository on a local directory (``root``)
            - "s3": blob repository on an S3 bucket (``bucket``)
        **kwargs: Backend-specific configuration options.

    Returns:
        Configured repository instance.

    Raises:
        StoreError: If the backend is unknown.

    Example:
        >>> repository = get_repository("database", connection_url="sqlite:///lookout.db")
        >>> repository = get_repository("s3", bucket="diagnostics", directory="entries")
    """
    backend = backend.lower().strip()

    if backend in _repository_registry:
        return _repository_registry[backend](**kwargs)

    if backend in ("database", "db", "sql"):
        from lookout.storage.database import DatabaseEntriesRepository

        return DatabaseEntriesRepository(**kwargs)

    elif backend == "blob":
        from lookout.storage.blob import BlobEntriesRepository

        return BlobEntriesRepository(**kwargs)

    elif backend in ("local", "filesystem"):
        return _local_blob(**kwargs)

    elif backend == "s3":
        return _s3_blob(**kwargs)

    raise StoreError(
        f"Unknown repository backend: {backend}. "
        f"Available backends: {', '.join(list_available_backends())}"
    )


def list_available_backends() -> list[str]:
    """List all repository backend names accepted by get_repository()."""
    return sorted({"database", "blob", "local", "s3", *_repository_registry})
