from __future__ import annotations

from attachstore.common.config import ConnectionConfig, get_connection_config
from attachstore.common.logging import WarningSink, emit_warning
from attachstore.common.retry import RetryExecutor
from attachstore.domain.models import StoredObject
from attachstore.infra.storage.client import StoreClient
from attachstore.infra.storage.s3_client import S3StoreClient

from .delete_service import DeleteService
from .upload_service import UploadService, UploadSource
from .url_service import UrlService


class AttachmentStore:
    """Lazily constructs the storage services around one shared client."""

    def __init__(
        self,
        *,
        config: ConnectionConfig | None = None,
        client: StoreClient | None = None,
        warn: WarningSink = emit_warning,
        retry_executor: RetryExecutor | None = None,
    ) -> None:
        self._config = config or get_connection_config()
        self._client: StoreClient = client or S3StoreClient(config=self._config)
        self._warn = warn
        self._retry_executor = retry_executor
        self._upload: UploadService | None = None
        self._urls: UrlService | None = None
        self._deletes: DeleteService | None = None

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    @property
    def client(self) -> StoreClient:
        return self._client

    def upload(self) -> UploadService:
        if self._upload is None:
            self._upload = UploadService(
                client=self._client,
                config=self._config,
                warn=self._warn,
                retry_executor=self._retry_executor,
            )
        return self._upload

    def urls(self) -> UrlService:
        if self._urls is None:
            self._urls = UrlService(client=self._client, config=self._config, warn=self._warn)
        return self._urls

    def deletes(self) -> DeleteService:
        if self._deletes is None:
            self._deletes = DeleteService(
                client=self._client, config=self._config, warn=self._warn
            )
        return self._deletes

    def put(self, stored_object: StoredObject, source: UploadSource) -> str:
        return self.upload().put(stored_object, source)

    def url_for(self, key: str) -> str:
        return self.urls().url_for(key)

    def delete(self, key: str) -> bool:
        return self.deletes().delete(key)

    def exists(self, key: str) -> bool:
        return self._client.exists(self._client.object_ref(key))
