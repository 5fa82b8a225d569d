"""Tests for UploadService."""

from __future__ import annotations

import hashlib
import io
import os

import pytest
from prometheus_client import REGISTRY

from attachstore.common.config import ConfigError, ConnectionConfig
from attachstore.common.retry import RetryPolicy
from attachstore.domain.models import StoredObject
from attachstore.infra.storage.client import StorageConnectionError, TransferError
from attachstore.services.upload_service import (
    UploadService,
    content_disposition,
    strip_etag,
)


class ForwardOnly:
    def __init__(self, data: bytes) -> None:
        self._buffer = io.BytesIO(data)

    def read(self, size: int = -1) -> bytes:
        return self._buffer.read(size)


@pytest.fixture()
def photo() -> StoredObject:
    return StoredObject(
        key="a1b2.png", display_name="photo.png", content_type="image/png"
    )


@pytest.fixture()
def payload() -> bytes:
    return os.urandom(4096)


@pytest.fixture()
def upload_service(fake_client, public_config, executor, warnings):
    return UploadService(
        client=fake_client,
        config=public_config,
        warn=warnings.append,
        retry_executor=executor,
    )


def _uploads(outcome: str) -> float:
    return REGISTRY.get_sample_value("attachstore_uploads_total", {"outcome": outcome}) or 0.0


class TestPut:
    def test_returns_verified_md5(self, upload_service, fake_client, photo, payload):
        digest = upload_service.put(photo, io.BytesIO(payload))

        assert digest == hashlib.md5(payload).hexdigest()
        assert len(digest) == 32
        assert digest == digest.lower()
        assert digest == fake_client.objects["a1b2.png"]["etag"].strip('"')

    def test_sends_object_metadata(self, upload_service, fake_client, photo, payload):
        upload_service.put(photo, io.BytesIO(payload))

        stored = fake_client.objects["a1b2.png"]
        assert stored["body"] == payload
        assert stored["content_length"] == 4096
        assert stored["content_type"] == "image/png"
        assert stored["content_disposition"] == "inline; filename='photo.png'"
        assert stored["acl"] == "public-read"
        assert fake_client.bucket_checks == 1

    def test_private_storage_sends_no_acl(
        self, fake_client, private_config, executor, photo, payload
    ):
        service = UploadService(
            client=fake_client, config=private_config, retry_executor=executor
        )

        service.put(photo, payload)

        assert fake_client.objects["a1b2.png"]["acl"] is None

    def test_accepts_raw_bytes(self, upload_service, fake_client, photo):
        digest = upload_service.put(photo, b"hello")

        assert digest == hashlib.md5(b"hello").hexdigest()
        assert fake_client.objects["a1b2.png"]["body"] == b"hello"

    def test_rewinds_partially_read_source(self, upload_service, fake_client, photo):
        source = io.BytesIO(b"abcdef")
        source.read(3)

        upload_service.put(photo, source)

        assert fake_client.objects["a1b2.png"]["body"] == b"abcdef"

    def test_declared_length_caps_body(self, upload_service, fake_client):
        stored_object = StoredObject(key="k", display_name="k", content_length=3)

        digest = upload_service.put(stored_object, io.BytesIO(b"abcdef"))

        assert fake_client.objects["k"]["body"] == b"abc"
        assert digest == hashlib.md5(b"abc").hexdigest()

    def test_counts_verified_upload(self, upload_service, photo):
        before = _uploads("verified")

        upload_service.put(photo, b"x")

        assert _uploads("verified") == before + 1


class TestRetries:
    def test_seekable_source_retried_after_transient_failures(
        self, upload_service, fake_client, photo, payload, sleeps, warnings
    ):
        fake_client.fail_writes = 2
        source = io.BytesIO(payload)

        digest = upload_service.put(photo, source)

        assert digest == hashlib.md5(payload).hexdigest()
        assert fake_client.write_calls == 3
        assert fake_client.objects["a1b2.png"]["body"] == payload
        assert source.tell() == len(payload)
        assert sleeps == [0.25, 0.5]
        assert warnings[0].startswith("sending a1b2.png failed due to")
        assert warnings[0].endswith("(try 1)")

    def test_seekable_source_gives_up_after_max_tries(
        self, upload_service, fake_client, photo, payload, sleeps
    ):
        fake_client.fail_writes = 3
        before = _uploads("error")

        with pytest.raises(StorageConnectionError, match="connection reset"):
            upload_service.put(photo, io.BytesIO(payload))

        assert fake_client.write_calls == 3
        assert sleeps == [0.25, 0.5]
        assert _uploads("error") == before + 1

    def test_custom_policy(self, fake_client, public_config, executor, photo, sleeps):
        fake_client.fail_writes = 1
        service = UploadService(
            client=fake_client,
            config=public_config,
            retry_executor=executor,
            policy=RetryPolicy(max_tries=1),
        )

        with pytest.raises(StorageConnectionError):
            service.put(photo, b"data")

        assert sleeps == []

    def test_missing_credentials_fail_without_retry(
        self, photo, payload, executor, sleeps, warnings
    ):
        service = UploadService(
            config=ConnectionConfig(bucket="files"),
            warn=warnings.append,
            retry_executor=executor,
        )
        before = _uploads("error")

        with pytest.raises(ConfigError):
            service.put(photo, io.BytesIO(payload))

        assert sleeps == []
        assert warnings == []
        assert _uploads("error") == before + 1

    def test_non_seekable_source_not_retried(
        self, upload_service, fake_client, photo, payload, sleeps, warnings
    ):
        fake_client.fail_writes = 1
        stored_object = StoredObject(
            key="a1b2.png", display_name="photo.png", content_length=len(payload)
        )

        with pytest.raises(StorageConnectionError):
            upload_service.put(stored_object, ForwardOnly(payload))

        assert fake_client.write_calls == 1
        assert sleeps == []
        assert warnings == []

    def test_non_seekable_source_uploads_once(self, upload_service, fake_client, payload):
        stored_object = StoredObject(
            key="stream.bin", display_name="stream.bin", content_length=len(payload)
        )

        digest = upload_service.put(stored_object, ForwardOnly(payload))

        assert digest == hashlib.md5(payload).hexdigest()
        assert fake_client.write_calls == 1

    def test_non_seekable_source_requires_length(self, upload_service, photo):
        with pytest.raises(ValueError, match="content_length is required"):
            upload_service.put(photo, ForwardOnly(b"data"))

    def test_etag_fetch_retried_on_its_own(
        self, upload_service, fake_client, photo, warnings
    ):
        fake_client.fail_etag_fetches = 1

        upload_service.put(photo, b"data")

        assert fake_client.write_calls == 1
        assert fake_client.etag_calls == 2
        assert warnings[0].startswith("get MD5 for a1b2.png failed due to")


class TestVerification:
    def test_remote_mismatch_raises_transfer_error(
        self, fake_client, public_config, executor, photo, payload
    ):
        fake_client.etag_override = '"deadbeefdeadbeefdeadbeefdeadbeef"'
        service = UploadService(
            client=fake_client,
            config=public_config,
            retry_executor=executor,
            policy=RetryPolicy(max_tries=1),
        )
        before = _uploads("mismatch")

        with pytest.raises(TransferError) as excinfo:
            service.put(photo, io.BytesIO(payload))

        error = excinfo.value
        local = hashlib.md5(payload).hexdigest()
        assert error.key == "a1b2.png"
        assert error.local_digest == local
        assert error.remote_digest == "deadbeefdeadbeefdeadbeefdeadbeef"
        assert "a1b2.png" in str(error)
        assert local in str(error)
        assert "deadbeefdeadbeefdeadbeefdeadbeef" in str(error)
        assert _uploads("mismatch") == before + 1

    def test_mismatch_retried_as_whole_attempt(
        self, upload_service, fake_client, photo, sleeps
    ):
        fake_client.etag_override = '"deadbeefdeadbeefdeadbeefdeadbeef"'

        with pytest.raises(TransferError):
            upload_service.put(photo, b"data")

        assert fake_client.write_calls == 3
        assert sleeps == [0.25, 0.5]

    def test_caller_digest_mismatch_only_warns(
        self, upload_service, fake_client, warnings
    ):
        stored_object = StoredObject(
            key="a1b2.png",
            display_name="photo.png",
            expected_digest="0" * 32,
        )

        digest = upload_service.put(stored_object, b"data")

        assert digest == hashlib.md5(b"data").hexdigest()
        assert warnings == ["wrong digest for file a1b2.png"]

    def test_matching_caller_digest_is_silent(self, upload_service, warnings):
        stored_object = StoredObject(
            key="a1b2.png",
            display_name="photo.png",
            expected_digest=hashlib.md5(b"data").hexdigest().upper(),
        )

        upload_service.put(stored_object, b"data")

        assert warnings == []


def test_content_disposition_url_encodes_name():
    assert (
        content_disposition("my photo (1).png")
        == "inline; filename='my%20photo%20%281%29.png'"
    )


def test_strip_etag():
    assert strip_etag('"abc"') == "abc"
    assert strip_etag("abc") == "abc"
