from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class StoredObject:
    """Metadata of an object being uploaded.

    Attributes:
        key: Stable storage key (the disk filename), distinct from the display name.
        display_name: Human-facing filename, sent in the Content-Disposition header.
        content_type: MIME type of the content.
        content_length: Size in bytes. Required when the source cannot seek.
        expected_digest: MD5 hex digest the caller computed beforehand, if any.
    """

    key: str
    display_name: str
    content_type: str | None = None
    content_length: int | None = None
    expected_digest: str | None = None

    def __post_init__(self) -> None:
        if not self.key:
            raise ValueError("key is required")
        if self.content_length is not None and self.content_length < 0:
            raise ValueError("content_length must not be negative")
