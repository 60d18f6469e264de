from __future__ import annotations

import sys
from typing import BinaryIO, Callable, Protocol, TextIO

from tqdm import tqdm

from objput.upload.models import ProgressState


class ProgressSink(Protocol):
    def advance(self, byte_count: int) -> None: ...

    def end(self) -> None: ...


ProgressFactory = Callable[[int | None], ProgressSink]


class ProgressReader:
    """Read-through wrapper that reports every chunk to a sink.

    Bytes are returned exactly as read; ``end`` reaches the sink once, either
    at end of stream or from ``finish``.
    """

    def __init__(self, raw: BinaryIO, sink: ProgressSink, total_size: int | None = None):
        self._raw = raw
        self._sink = sink
        self._ended = False
        self.state = ProgressState(total_size=total_size)

    def read(self, size: int = -1) -> bytes:
        chunk = self._raw.read(size)
        if chunk:
            self.state.bytes_transferred += len(chunk)
            self._sink.advance(len(chunk))
        elif size != 0:
            self.finish()
        return chunk

    def finish(self) -> None:
        if not self._ended:
            self._ended = True
            self._sink.end()


class TqdmSink:
    def __init__(self, total: int | None, desc: str | None = None, file: TextIO | None = None):
        self.bar = tqdm(
            total=total,
            desc=desc,
            unit="B",
            unit_scale=True,
            unit_divisor=1024,
            file=file if file is not None else sys.stderr,
            leave=True,
        )

    def advance(self, byte_count: int) -> None:
        self.bar.update(byte_count)

    def end(self) -> None:
        self.bar.close()


def should_draw_progress(quiet: bool = False, force: bool = False, stream: TextIO | None = None) -> bool:
    if quiet:
        return False
    if force:
        return True
    stream = stream if stream is not None else sys.stderr
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def tqdm_factory(desc: str | None) -> ProgressFactory:
    return lambda total: TqdmSink(total, desc=desc)
