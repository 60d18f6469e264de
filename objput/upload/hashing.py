from __future__ import annotations

import base64
import binascii
import hashlib
from typing import BinaryIO

from objput.upload.errors import ConfigurationError, FileChangedError, StoreError, StoreErrorKind
from objput.upload.source import UploadSource

CHUNK_SIZE = 1024 * 1024
CONTENT_MD5 = "Content-MD5"


class Md5Reader:
    """Read-through wrapper that hashes every byte it hands out.

    With ``expected`` set, the digest is checked as soon as ``size`` bytes or
    the end of the stream have been read. A mismatch raises from ``read``, so
    a caller that buffers the body before committing it never commits.
    """

    def __init__(self, raw: BinaryIO, expected: str | None = None, size: int | None = None):
        self._raw = raw
        self._expected = expected
        self._size = size
        self._digest = hashlib.md5()
        self._checked = False
        self.bytes_read = 0

    def read(self, size: int = -1) -> bytes:
        chunk = self._raw.read(size)
        if chunk:
            self._digest.update(chunk)
            self.bytes_read += len(chunk)
        at_end = (not chunk and size != 0) or (self._size is not None and self.bytes_read >= self._size)
        if self._expected is not None and at_end:
            self.verify()
        return chunk

    def drain(self) -> bytes:
        for _ in iter(lambda: self.read(CHUNK_SIZE), b""):
            pass
        return self.digest()

    def digest(self) -> bytes:
        return self._digest.digest()

    def content_md5(self) -> str:
        return base64.b64encode(self.digest()).decode("ascii")

    def verify(self) -> None:
        if self._checked:
            return
        self._checked = True
        try:
            expected = base64.b64decode(self._expected or "", validate=True)
        except binascii.Error:
            expected = b""
        if expected != self.digest():
            raise StoreError(
                StoreErrorKind.PRECONDITION_FAILED,
                f"body does not match {CONTENT_MD5} {self._expected} (read {self.content_md5()})",
                code="BadDigest",
            )


def stream_md5(source: UploadSource) -> bytes:
    if not source.replayable:
        raise ConfigurationError("computing an MD5 requires a file source, not standard input")

    before = source.path.stat()
    with source.open() as handle:
        digest = Md5Reader(handle).drain()
    after = source.path.stat()
    if (before.st_size, before.st_mtime) != (after.st_size, after.st_mtime):
        raise FileChangedError(f"{source.path} changed while computing its MD5")
    return digest


def content_md5(source: UploadSource) -> str:
    """Base64 MD5 of the whole source, the value of a ``Content-MD5`` header."""
    return base64.b64encode(stream_md5(source)).decode("ascii")
