"""Storage client protocol, data types and errors.

This module defines the interface the upload, URL and delete services use to
talk to an S3-compatible object store, together with the error taxonomy those
services raise.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO, Protocol


class StorageError(RuntimeError):
    """Raised when object storage operations fail."""


class StorageConnectionError(StorageError):
    """Raised on authentication, network or remote call failures."""


class BucketError(StorageConnectionError):
    """Raised when the target bucket cannot be created."""


class TransferError(StorageError):
    """Raised when the store did not receive the bytes that were sent.

    Attributes:
        key: Storage key of the object.
        local_digest: MD5 computed while streaming the upload.
        remote_digest: MD5 reported by the store (ETag without quotes).
    """

    def __init__(self, key: str, local_digest: str, remote_digest: str) -> None:
        super().__init__(
            f"MD5 mismatch for file {key}, local={local_digest}, S3={remote_digest}"
        )
        self.key = key
        self.local_digest = local_digest
        self.remote_digest = remote_digest


@dataclass(frozen=True, slots=True)
class ObjectRef:
    """Handle to a (possibly nonexistent) object. Building one is free."""

    bucket: str
    key: str


class StoreClient(Protocol):
    """Protocol defining the interface for object storage backends."""

    def connect(self) -> object:
        """Return the authenticated connection handle, building it once.

        Raises:
            ConfigError: If credentials or bucket are missing.
            StorageConnectionError: If the handle cannot be built.
        """
        ...

    def ensure_bucket(self) -> str:
        """Return the configured bucket name, creating the bucket if absent.

        Raises:
            BucketError: If the bucket cannot be created.
            StorageConnectionError: If the existence check fails.
        """
        ...

    def object_ref(self, key: str) -> ObjectRef:
        """Return a reference to ``key`` in the configured bucket."""
        ...

    def write(
        self,
        ref: ObjectRef,
        body: BinaryIO,
        *,
        content_length: int,
        content_type: str | None,
        content_disposition: str | None,
        acl: str | None,
    ) -> str | None:
        """Upload ``body`` in a single request.

        The store reads ``body`` until ``content_length`` bytes or EOF.

        Returns:
            The ETag reported by the write response, if any.

        Raises:
            StorageConnectionError: If the request fails.
        """
        ...

    def fetch_etag(self, ref: ObjectRef) -> str:
        """Return the raw (quoted) entity tag of a stored object.

        Raises:
            StorageConnectionError: If the object metadata cannot be fetched.
        """
        ...

    def exists(self, ref: ObjectRef) -> bool:
        """Return whether the object exists.

        Raises:
            StorageConnectionError: For failures other than "not found".
        """
        ...

    def delete(self, ref: ObjectRef) -> None:
        """Delete the object.

        Raises:
            StorageConnectionError: If the operation fails.
        """
        ...

    def presign_get(self, ref: ObjectRef, *, expires_in: int) -> str:
        """Return a time-limited signed GET URL.

        Raises:
            StorageConnectionError: If URL generation fails.
        """
        ...

    def public_url(self, ref: ObjectRef, *, secure: bool) -> str:
        """Return the stable unsigned URL of the object."""
        ...
