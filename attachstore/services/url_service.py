from __future__ import annotations

from typing import Final

from attachstore.common.config import PrivateAccess

from .base import BaseStorageService

# Signed URLs default to one hour when no expiry is configured.
DEFAULT_URL_EXPIRES_SECONDS: Final[int] = 3600


class UrlService(BaseStorageService):
    """Derives fetch URLs for stored objects."""

    def url_for(self, key: str) -> str:
        """Return a signed URL for private storage, else the public URL."""
        ref = self._client.object_ref(key)
        policy = self._config.access_policy()
        if isinstance(policy, PrivateAccess):
            return self._client.presign_get(
                ref, expires_in=policy.expires or DEFAULT_URL_EXPIRES_SECONDS
            )
        return self._client.public_url(ref, secure=policy.secure)
