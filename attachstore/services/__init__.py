from .attachment_store import AttachmentStore
from .base import BaseStorageService
from .delete_service import DeleteService
from .upload_service import UploadService, content_disposition, strip_etag
from .url_service import DEFAULT_URL_EXPIRES_SECONDS, UrlService

__all__ = [
    "AttachmentStore",
    "BaseStorageService",
    "DeleteService",
    "UploadService",
    "UrlService",
    "DEFAULT_URL_EXPIRES_SECONDS",
    "content_disposition",
    "strip_etag",
]
