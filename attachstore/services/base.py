from __future__ import annotations

from attachstore.common.config import ConnectionConfig, get_connection_config
from attachstore.common.logging import WarningSink, emit_warning
from attachstore.infra.storage.client import StoreClient
from attachstore.infra.storage.s3_client import S3StoreClient


class BaseStorageService:
    """Shares the store client, config and warning sink between services."""

    def __init__(
        self,
        *,
        client: StoreClient | None = None,
        config: ConnectionConfig | None = None,
        warn: WarningSink = emit_warning,
    ) -> None:
        self._config = config or get_connection_config()
        self._client = client or S3StoreClient(config=self._config)
        self._warn = warn

    @property
    def client(self) -> StoreClient:
        return self._client

    @property
    def config(self) -> ConnectionConfig:
        return self._config
