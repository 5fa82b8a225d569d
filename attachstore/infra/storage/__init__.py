"""Object storage abstraction layer.

This module provides a protocol-based abstraction for object storage backends,
enabling support for S3, MinIO, and other S3-compatible services.
"""

from .client import (
    BucketError,
    ObjectRef,
    StorageConnectionError,
    StorageError,
    StoreClient,
    TransferError,
)

__all__ = [
    "BucketError",
    "ObjectRef",
    "StorageConnectionError",
    "StorageError",
    "StoreClient",
    "TransferError",
]
