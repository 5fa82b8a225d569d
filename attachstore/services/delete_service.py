from __future__ import annotations

import logging

from attachstore.infra.observability.metrics import DELETES

from .base import BaseStorageService

logger = logging.getLogger(__name__)


class DeleteService(BaseStorageService):
    """Removes stored objects; deleting a missing object is a no-op."""

    def delete(self, key: str) -> bool:
        """Delete ``key`` if it exists.

        Returns:
            True if an object was deleted, False if there was nothing to delete.

        Raises:
            StorageConnectionError: If the existence check or delete fails.
        """
        ref = self._client.object_ref(key)
        if not self._client.exists(ref):
            DELETES.labels(result="absent").inc()
            return False
        self._client.delete(ref)
        DELETES.labels(result="deleted").inc()
        logger.info("Deleted %s", key, extra={"key": key})
        return True
