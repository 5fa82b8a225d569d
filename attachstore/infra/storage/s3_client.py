"""S3-compatible storage client implementation.

This module provides an S3-compatible storage client that works with
AWS S3, MinIO, and other S3-compatible object storage services.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

import logging
import re
import threading
from typing import Any, BinaryIO
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from attachstore.common.config import ConfigError, ConnectionConfig
from attachstore.infra.storage.client import (
    BucketError,
    ObjectRef,
    StorageConnectionError,
)

logger = logging.getLogger(__name__)

AWS_DEFAULT_HOST = "s3.amazonaws.com"

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound", "NoSuchBucket"}
_DNS_BUCKET_PATTERN = re.compile(r"^[a-z0-9][a-z0-9\-]{1,61}[a-z0-9]$")


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def _is_not_found(exc: ClientError) -> bool:
    return _error_code(exc) in _NOT_FOUND_CODES


def _is_dns_compatible(bucket: str) -> bool:
    return bool(_DNS_BUCKET_PATTERN.match(bucket)) and "--" not in bucket


def _split_endpoint(endpoint: str | None, secure: bool) -> tuple[str, str]:
    """Return ``(scheme, host)`` for a configured endpoint.

    Endpoints may be given as a bare host (``s3.eu-west-1.amazonaws.com``) or as
    a URL; a bare host takes its scheme from the ``secure`` flag.
    """
    if not endpoint:
        return ("https" if secure else "http"), AWS_DEFAULT_HOST
    match = re.match(r"^(https?)://(.+)$", endpoint.strip(), re.IGNORECASE)
    if match:
        return match.group(1).lower(), match.group(2).rstrip("/")
    return ("https" if secure else "http"), endpoint.strip().rstrip("/")


class S3StoreClient:
    """S3-compatible object storage client.

    Supports AWS S3, MinIO, and other S3-compatible services.
    Uses boto3 for all storage operations. The boto3 client is built on first
    use and shared by every call made through this instance.
    """

    def __init__(self, *, config: ConnectionConfig) -> None:
        self._config = config
        self._client: Any = None
        self._lock = threading.Lock()

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    def connect(self) -> Any:
        """Return the cached boto3 client, building it on first call.

        Raises:
            ConfigError: If credentials or bucket are missing.
            StorageConnectionError: If the client cannot be created.
        """
        if self._client is not None:
            return self._client
        with self._lock:
            if self._client is None:
                self._config.require_remote_settings()
                self._client = self._build_client(self._config)
        return self._client

    @staticmethod
    def _build_client(config: ConnectionConfig) -> Any:
        """Create a boto3 S3 client from the connection config."""
        secure = config.is_secure()
        endpoint_url = None
        if config.endpoint():
            scheme, host = _split_endpoint(config.endpoint(), secure)
            endpoint_url = f"{scheme}://{host}"

        addressing_style = config.addressing_style()
        boto_config = Config(
            signature_version="s3v4",
            s3={
                "addressing_style": addressing_style,
                "payload_signing_enabled": False,
            },
            # Retries belong to RetryExecutor; a replayed body must be rewound by it.
            retries={"total_max_attempts": 1},
            request_checksum_calculation="when_required",
            response_checksum_validation="when_required",
        )

        try:
            return boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                region_name=config.region(),
                aws_access_key_id=config.access_key_id(),
                aws_secret_access_key=config.secret_access_key(),
                use_ssl=secure,
                config=boto_config,
            )
        except (BotoCoreError, ValueError) as exc:
            raise StorageConnectionError(f"Failed to create S3 client: {exc}") from exc

    def ensure_bucket(self) -> str:
        """Return the bucket name, creating the bucket if it does not exist."""
        client = self.connect()
        bucket = self._bucket_name()
        try:
            client.head_bucket(Bucket=bucket)
            return bucket
        except ClientError as exc:
            if not _is_not_found(exc):
                raise StorageConnectionError(
                    f"Failed to check bucket {bucket}: {exc}"
                ) from exc
        except BotoCoreError as exc:
            raise StorageConnectionError(f"Failed to check bucket {bucket}: {exc}") from exc

        params: dict[str, Any] = {"Bucket": bucket}
        region = self._config.region()
        if region != "us-east-1":
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}
        try:
            client.create_bucket(**params)
        except ClientError as exc:
            if _error_code(exc) != "BucketAlreadyOwnedByYou":
                raise BucketError(f"Failed to create bucket {bucket}: {exc}") from exc
        except BotoCoreError as exc:
            raise BucketError(f"Failed to create bucket {bucket}: {exc}") from exc

        logger.info("Created bucket %s", bucket, extra={"bucket": bucket})
        return bucket

    def _bucket_name(self) -> str:
        bucket = self._config.bucket()
        if not bucket:
            raise ConfigError("bucket is required")
        return bucket

    def object_ref(self, key: str) -> ObjectRef:
        return ObjectRef(bucket=self._bucket_name(), key=key)

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
        """Upload ``body`` with a single PutObject request."""
        params: dict[str, Any] = {
            "Bucket": ref.bucket,
            "Key": ref.key,
            "Body": body,
            "ContentLength": int(content_length),
        }
        if content_type:
            params["ContentType"] = content_type
        if content_disposition:
            params["ContentDisposition"] = content_disposition
        if acl:
            params["ACL"] = acl

        try:
            response = self.connect().put_object(**params)
        except (BotoCoreError, ClientError) as exc:
            raise StorageConnectionError(f"Failed to upload object: {exc}") from exc
        return response.get("ETag")

    def fetch_etag(self, ref: ObjectRef) -> str:
        """Return the raw ETag reported by a HEAD request."""
        try:
            response = self.connect().head_object(Bucket=ref.bucket, Key=ref.key)
        except (BotoCoreError, ClientError) as exc:
            raise StorageConnectionError(f"Failed to get object metadata: {exc}") from exc

        etag = response.get("ETag")
        if not etag:
            raise StorageConnectionError("S3 response missing ETag")
        return str(etag)

    def exists(self, ref: ObjectRef) -> bool:
        try:
            self.connect().head_object(Bucket=ref.bucket, Key=ref.key)
        except ClientError as exc:
            if _is_not_found(exc):
                return False
            raise StorageConnectionError(f"Failed to get object metadata: {exc}") from exc
        except BotoCoreError as exc:
            raise StorageConnectionError(f"Failed to get object metadata: {exc}") from exc
        return True

    def delete(self, ref: ObjectRef) -> None:
        """Delete an object from storage."""
        try:
            self.connect().delete_object(Bucket=ref.bucket, Key=ref.key)
        except (BotoCoreError, ClientError) as exc:
            raise StorageConnectionError(f"Failed to delete object: {exc}") from exc

    def presign_get(self, ref: ObjectRef, *, expires_in: int) -> str:
        """Generate a presigned URL for downloading an object."""
        try:
            url = self.connect().generate_presigned_url(
                "get_object",
                Params={"Bucket": ref.bucket, "Key": ref.key},
                ExpiresIn=int(expires_in),
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageConnectionError(f"Failed to generate download URL: {exc}") from exc

        if not url:
            raise StorageConnectionError("Generated presigned URL is empty")

        return str(url)

    def public_url(self, ref: ObjectRef, *, secure: bool) -> str:
        """Build the unsigned URL of a public object."""
        endpoint = self._config.endpoint()
        scheme, host = _split_endpoint(endpoint, secure)
        key = quote(ref.key, safe="/~")
        style = self._config.addressing_style()
        # Custom endpoints (MinIO and friends) rarely resolve bucket subdomains.
        virtual = style == "virtual" or (
            style == "auto"
            and not endpoint
            and _is_dns_compatible(ref.bucket)
            and "." not in ref.bucket
        )
        if virtual:
            return f"{scheme}://{ref.bucket}.{host}/{key}"
        return f"{scheme}://{host}/{ref.bucket}/{key}"
