"""Read-through MD5 accumulation for streaming uploads.

The storage client pulls the request body in whatever chunk size its HTTP layer
uses; every chunk passes through a ``HashingReader`` which updates the digest
before handing the bytes on. The reader knows nothing about retries or the
transport.
"""

from __future__ import annotations

import hashlib
import io
from typing import BinaryIO, Protocol, runtime_checkable


@runtime_checkable
class SeekableSource(Protocol):
    def read(self, size: int = -1) -> bytes: ...

    def seek(self, offset: int, whence: int = 0) -> int: ...

    def tell(self) -> int: ...

    def seekable(self) -> bool: ...


def is_replayable(source: object) -> bool:
    """Return whether ``source`` can be rewound and read again."""
    return isinstance(source, SeekableSource) and bool(source.seekable())


class HashingReader:
    """Forward-only reader that MD5-hashes everything read through it.

    ``limit`` caps the bytes handed out so the body never outgrows the
    declared content length. A source that ends early simply ends the body.
    """

    def __init__(self, source: BinaryIO, *, limit: int | None = None) -> None:
        self._source = source
        self._limit = limit
        self._md5 = hashlib.md5(usedforsecurity=False)
        self._bytes_read = 0

    @property
    def bytes_read(self) -> int:
        return self._bytes_read

    def hexdigest(self) -> str:
        return self._md5.hexdigest()

    def read(self, size: int = -1) -> bytes:
        if self._limit is not None:
            remaining = self._limit - self._bytes_read
            if remaining <= 0:
                return b""
            if size is None or size < 0 or size > remaining:
                size = remaining
        chunk = self._source.read(size)
        if not chunk:
            return b""
        self._md5.update(chunk)
        self._bytes_read += len(chunk)
        return chunk

    def _reset(self) -> None:
        self._md5 = hashlib.md5(usedforsecurity=False)
        self._bytes_read = 0


class SeekableHashingReader(HashingReader):
    """Hashing reader that may be rewound to where it started.

    Rewinding restarts the digest, so the final value always describes the
    last complete pass over the body.
    """

    def __init__(self, source: BinaryIO, *, limit: int | None = None) -> None:
        super().__init__(source, limit=limit)
        self._start = source.tell()

    def seekable(self) -> bool:
        return True

    def tell(self) -> int:
        return self._source.tell() - self._start

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if whence == io.SEEK_SET:
            target = offset
        elif whence == io.SEEK_CUR:
            target = self.tell() + offset
        else:
            raise io.UnsupportedOperation("only rewinding to the start is supported")
        if target == self.tell():
            return target
        if target != 0:
            raise io.UnsupportedOperation("only rewinding to the start is supported")
        self._source.seek(self._start)
        self._reset()
        return 0


def hashing_reader(source: BinaryIO, *, limit: int | None = None) -> HashingReader:
    """Wrap ``source``, exposing seek support only when the source has it."""
    if is_replayable(source):
        return SeekableHashingReader(source, limit=limit)
    return HashingReader(source, limit=limit)
