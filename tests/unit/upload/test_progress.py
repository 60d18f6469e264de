from __future__ import annotations

import io

from objput.upload.progress import ProgressReader, TqdmSink, should_draw_progress


class RecordingSink:
    def __init__(self):
        self.advances: list[int] = []
        self.ends = 0

    def advance(self, byte_count):
        self.advances.append(byte_count)

    def end(self):
        self.ends += 1


def test_reader_reports_every_byte_and_ends_once():
    payload = bytes(range(256)) * 10
    sink = RecordingSink()
    reader = ProgressReader(io.BytesIO(payload), sink, total_size=len(payload))

    received = b"".join(iter(lambda: reader.read(100), b""))
    reader.finish()

    assert received == payload
    assert sum(sink.advances) == len(payload)
    assert reader.state.bytes_transferred == len(payload)
    assert reader.state.total_size == len(payload)
    assert sink.ends == 1


def test_finish_without_eof_ends_once():
    sink = RecordingSink()
    reader = ProgressReader(io.BytesIO(b"abc"), sink)
    assert reader.read(2) == b"ab"
    reader.finish()
    reader.finish()
    assert sink.advances == [2]
    assert sink.ends == 1


def test_zero_sized_read_does_not_end():
    sink = RecordingSink()
    reader = ProgressReader(io.BytesIO(b"abc"), sink)
    assert reader.read(0) == b""
    assert sink.ends == 0


class FakeTTY(io.StringIO):
    def __init__(self, tty):
        super().__init__()
        self._tty = tty

    def isatty(self):
        return self._tty


def test_should_draw_progress_policy():
    assert should_draw_progress(stream=FakeTTY(True)) is True
    assert should_draw_progress(stream=FakeTTY(False)) is False
    assert should_draw_progress(force=True, stream=FakeTTY(False)) is True
    assert should_draw_progress(quiet=True, stream=FakeTTY(True)) is False


def test_tqdm_sink_counts_bytes():
    out = io.StringIO()
    sink = TqdmSink(total=10, desc="report.txt", file=out)
    sink.advance(4)
    sink.advance(6)
    assert sink.bar.n == 10
    sink.end()
    assert "report.txt" in out.getvalue()
