from __future__ import annotations

import sys
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator

from objput.upload.errors import ConfigurationError


class UploadSource:
    """Where the bytes come from: a file that can be reopened, or a one-shot stream."""

    def __init__(self, path: Path | None = None, stream: BinaryIO | None = None):
        if (path is None) == (stream is None):
            raise ValueError("exactly one of path or stream is required")
        self.path = path
        self._stream = stream
        self._consumed = False

    @classmethod
    def from_file(cls, path: Path | str) -> UploadSource:
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"{path}: no such file")
        if path.is_dir():
            raise ConfigurationError(f"{path}: is a directory")
        return cls(path=path)

    @classmethod
    def from_stdin(cls, stream: BinaryIO | None = None) -> UploadSource:
        return cls(stream=stream if stream is not None else sys.stdin.buffer)

    @property
    def name(self) -> str | None:
        return self.path.name if self.path else None

    @property
    def replayable(self) -> bool:
        return self.path is not None

    def size(self) -> int | None:
        return self.path.stat().st_size if self.path else None

    @contextmanager
    def open(self) -> Iterator[BinaryIO]:
        if self.path is not None:
            with self.path.open("rb") as handle:
                yield handle
            return
        if self._consumed:
            raise ConfigurationError("standard input cannot be read twice")
        self._consumed = True
        yield self._stream
