"""Verified uploads, signed URLs and deletes for S3-compatible object storage."""

from attachstore.common.config import (
    ConfigError,
    ConnectionConfig,
    EnvConfigSource,
    PrivateAccess,
    PublicAccess,
    YamlConfigSource,
    get_connection_config,
)
from attachstore.common.retry import DEFAULT_RETRY_POLICY, RetryExecutor, RetryPolicy
from attachstore.domain.models import StoredObject
from attachstore.infra.storage.client import (
    BucketError,
    StorageConnectionError,
    StorageError,
    TransferError,
)
from attachstore.infra.storage.s3_client import S3StoreClient
from attachstore.services import AttachmentStore, DeleteService, UploadService, UrlService

__all__ = [
    "AttachmentStore",
    "BucketError",
    "ConfigError",
    "ConnectionConfig",
    "DEFAULT_RETRY_POLICY",
    "DeleteService",
    "EnvConfigSource",
    "PrivateAccess",
    "PublicAccess",
    "RetryExecutor",
    "RetryPolicy",
    "S3StoreClient",
    "StorageConnectionError",
    "StorageError",
    "StoredObject",
    "TransferError",
    "UploadService",
    "UrlService",
    "YamlConfigSource",
    "get_connection_config",
]
