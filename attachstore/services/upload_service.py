"""Verified streaming uploads.

An upload streams the source to the store in a single request while hashing
it, then asks the store for the object's ETag and compares. For single-request
uploads the ETag is the MD5 of the body, so a match proves the store holds
exactly the bytes that were read. Sources that can be rewound are retried as a
whole; forward-only sources get exactly one attempt.
"""

from __future__ import annotations

import io
import logging
import time
from typing import BinaryIO, Union
from urllib.parse import quote

from attachstore.common.config import ConnectionConfig
from attachstore.common.logging import WarningSink, emit_warning
from attachstore.common.retry import DEFAULT_RETRY_POLICY, RetryExecutor, RetryPolicy
from attachstore.domain.models import StoredObject
from attachstore.infra.observability.metrics import UPLOAD_LATENCY, UPLOADS
from attachstore.infra.storage.client import StoreClient, TransferError
from attachstore.infra.storage.hashing import hashing_reader, is_replayable

from .base import BaseStorageService

logger = logging.getLogger(__name__)

PUBLIC_READ_ACL = "public-read"

UploadSource = Union[bytes, bytearray, memoryview, BinaryIO]


def content_disposition(display_name: str) -> str:
    return f"inline; filename='{quote(display_name, safe='')}'"


def strip_etag(etag: str) -> str:
    return etag.strip().strip('"')


class UploadService(BaseStorageService):
    """Streams objects to the store and verifies what arrived."""

    def __init__(
        self,
        *,
        client: StoreClient | None = None,
        config: ConnectionConfig | None = None,
        warn: WarningSink = emit_warning,
        retry_executor: RetryExecutor | None = None,
        policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    ) -> None:
        super().__init__(client=client, config=config, warn=warn)
        self._retry = retry_executor or RetryExecutor(warn=warn)
        self._policy = policy

    def put(self, stored_object: StoredObject, source: UploadSource) -> str:
        """Upload ``source`` under ``stored_object.key`` and verify it.

        Args:
            stored_object: Key, display name and content metadata.
            source: Raw bytes or a binary stream. Seekable streams are
                rewound before each attempt and retried on failure.

        Returns:
            The verified MD5 hex digest of the uploaded bytes.

        Raises:
            TransferError: If the store reports a different digest.
            StorageConnectionError: If the store cannot be reached.
            ValueError: If the length of a forward-only source is unknown.
        """
        if isinstance(source, (bytes, bytearray, memoryview)):
            source = io.BytesIO(bytes(source))

        replayable = is_replayable(source)

        def attempt() -> str:
            return self._attempt(stored_object, source, replayable=replayable)

        started = time.perf_counter()
        try:
            if replayable:
                digest = self._retry.run(
                    f"sending {stored_object.key}",
                    attempt,
                    self._policy,
                    operation_kind="upload",
                )
            else:
                digest = attempt()
        except TransferError:
            UPLOADS.labels(outcome="mismatch").inc()
            raise
        except Exception:
            UPLOADS.labels(outcome="error").inc()
            raise
        finally:
            UPLOAD_LATENCY.observe(time.perf_counter() - started)

        UPLOADS.labels(outcome="verified").inc()
        logger.info(
            "Uploaded %s (md5=%s)",
            stored_object.key,
            digest,
            extra={"key": stored_object.key, "md5": digest},
        )
        return digest

    def _attempt(
        self, stored_object: StoredObject, source: BinaryIO, *, replayable: bool
    ) -> str:
        if replayable:
            source.seek(0)
        content_length = self._content_length(stored_object, source, replayable)

        self._client.ensure_bucket()
        ref = self._client.object_ref(stored_object.key)
        reader = hashing_reader(source, limit=content_length)
        self._client.write(
            ref,
            reader,  # type: ignore[arg-type]
            content_length=content_length,
            content_type=stored_object.content_type,
            content_disposition=content_disposition(stored_object.display_name),
            acl=None if self._config.is_private() else PUBLIC_READ_ACL,
        )
        local_digest = reader.hexdigest()

        expected = stored_object.expected_digest
        if expected and expected.lower() != local_digest:
            self._warn(f"wrong digest for file {stored_object.key}")

        remote_digest = strip_etag(
            self._retry.run(
                f"get MD5 for {stored_object.key}",
                lambda: self._client.fetch_etag(ref),
                operation_kind="fetch_etag",
            )
        )
        if remote_digest != local_digest:
            raise TransferError(stored_object.key, local_digest, remote_digest)
        return local_digest

    @staticmethod
    def _content_length(
        stored_object: StoredObject, source: BinaryIO, replayable: bool
    ) -> int:
        if stored_object.content_length is not None:
            return stored_object.content_length
        if not replayable:
            raise ValueError(
                f"content_length is required for non-seekable source of {stored_object.key}"
            )
        source.seek(0, io.SEEK_END)
        size = source.tell()
        source.seek(0)
        return int(size)
