from __future__ import annotations

import logging

import pytest

from attachstore.common.config import ConnectionConfig, get_connection_config
from attachstore.common.retry import RetryExecutor
from tests.services.fake_storage import FakeStoreClient


@pytest.fixture(autouse=True)
def reset_default_config():
    get_connection_config.cache_clear()  # type: ignore[attr-defined]
    yield
    get_connection_config.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture(autouse=True)
def restore_package_logger():
    logger = logging.getLogger("attachstore")
    handlers, propagate, level = list(logger.handlers), logger.propagate, logger.level
    yield
    logger.handlers[:] = handlers
    logger.propagate = propagate
    logger.setLevel(level)


@pytest.fixture()
def public_config() -> ConnectionConfig:
    return ConnectionConfig(
        access_key_id="test-key",
        secret_access_key="test-secret",
        bucket="files",
        private=False,
        secure=True,
    )


@pytest.fixture()
def private_config() -> ConnectionConfig:
    return ConnectionConfig(
        access_key_id="test-key",
        secret_access_key="test-secret",
        bucket="files",
        private=True,
        secure=True,
        expires=3600,
    )


@pytest.fixture()
def fake_client() -> FakeStoreClient:
    return FakeStoreClient()


@pytest.fixture()
def warnings() -> list[str]:
    return []


@pytest.fixture()
def sleeps() -> list[float]:
    return []


@pytest.fixture()
def executor(warnings, sleeps) -> RetryExecutor:
    return RetryExecutor(warn=warnings.append, sleep=sleeps.append)
