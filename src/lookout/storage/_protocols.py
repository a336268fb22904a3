"""Protocol definitions for third-party clients.

These protocols define only the methods actually used by lookout, giving
type coverage without requiring type stubs packages.
"""

from __future__ import annotations

from typing import Any, Iterator, Protocol, runtime_checkable


class S3ResponseBody(Protocol):
    """Protocol for S3 response body stream."""

    def read(self) -> bytes:
        """Read all bytes from the response body."""
        ...


class S3Paginator(Protocol):
    """Protocol for a boto3 paginator."""

    def paginate(self, **kwargs: Any) -> Iterator[dict[str, Any]]:
        """Iterate over result pages."""
        ...


@runtime_checkable
class S3ClientProtocol(Protocol):
    """Protocol for boto3 S3 client.

    Defines the minimal interface used by S3Disk.
    """

    def get_object(self, *, Bucket: str, Key: str) -> dict[str, Any]:
        """Retrieve an object from S3."""
        ...

    def put_object(
        self,
        *,
        Bucket: str,
        Key: str,
        Body: bytes,
        ContentType: str = ...,
    ) -> dict[str, Any]:
        """Upload an object to S3."""
        ...

    def delete_object(self, *, Bucket: str, Key: str) -> dict[str, Any]:
        """Delete an object from S3."""
        ...

    def delete_objects(self, *, Bucket: str, Delete: dict[str, Any]) -> dict[str, Any]:
        """Delete up to 1000 objects in one request."""
        ...

    def get_paginator(self, operation_name: str) -> S3Paginator:
        """Get a paginator for a list operation."""
        ...
