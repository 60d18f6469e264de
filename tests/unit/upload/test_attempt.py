from __future__ import annotations

import io
from pathlib import Path

import pytest

from objput.upload.attempt import classify, run_attempt
from objput.upload.errors import ConfigurationError, StoreError, StoreErrorKind
from objput.upload.models import OutcomeKind, UploadRequest
from objput.upload.source import UploadSource


class RecordingSink:
    def __init__(self):
        self.total = 0
        self.ends = 0

    def advance(self, byte_count):
        self.total += byte_count

    def end(self):
        self.ends += 1


@pytest.mark.parametrize(
    "exc, expected",
    [
        (StoreError(StoreErrorKind.PRECONDITION_FAILED, "x"), OutcomeKind.FATAL),
        (StoreError(StoreErrorKind.DIRECTORY_CONFLICT, "x"), OutcomeKind.FATAL),
        (StoreError(StoreErrorKind.OTHER, "503"), OutcomeKind.RETRYABLE),
        (TimeoutError("slow"), OutcomeKind.RETRYABLE),
        (ConnectionResetError("reset"), OutcomeKind.RETRYABLE),
    ],
)
def test_classify(exc, expected):
    outcome = classify(exc)
    assert outcome.kind is expected
    assert outcome.cause is exc


def test_success_streams_whole_file(make_store, report_file: Path):
    store = make_store()
    request = UploadRequest("/user/stor/report.txt", source_size=500, copies=3, resolved=True)

    outcome = run_attempt(store, request, UploadSource.from_file(report_file))

    assert outcome.kind is OutcomeKind.SUCCESS
    assert store.puts[0].body == b"r" * 500
    assert store.puts[0].size == 500
    assert store.puts[0].options.copies == 3
    assert store.probe_calls == []


def test_progress_is_fresh_per_attempt(make_store, report_file: Path):
    store = make_store(put_effects=[StoreError(StoreErrorKind.OTHER, "reset"), None])
    sinks: list[RecordingSink] = []

    def factory(total):
        sinks.append(RecordingSink())
        return sinks[-1]

    request = UploadRequest("/a/report.txt", source_size=500, resolved=True)
    source = UploadSource.from_file(report_file)
    first = run_attempt(store, request, source, factory)
    second = run_attempt(store, request, source, factory)

    assert first.kind is OutcomeKind.RETRYABLE
    assert second.kind is OutcomeKind.SUCCESS
    assert [s.total for s in sinks] == [500, 500]
    assert [s.ends for s in sinks] == [1, 1]
    assert store.puts[1].body == b"r" * 500


def test_unreadable_source_is_fatal(make_store, tmp_path: Path):
    path = tmp_path / "gone.txt"
    path.write_text("x")
    source = UploadSource.from_file(path)
    path.unlink()
    store = make_store()

    outcome = run_attempt(store, UploadRequest("/a/gone.txt", resolved=True), source)

    assert outcome.kind is OutcomeKind.FATAL
    assert isinstance(outcome.cause, FileNotFoundError)
    assert store.puts == []


def test_stdin_cannot_be_replayed(make_store):
    store = make_store(put_effects=[StoreError(StoreErrorKind.OTHER, "reset")])
    source = UploadSource.from_stdin(io.BytesIO(b"streamed"))
    request = UploadRequest("/a/out", resolved=True)

    assert run_attempt(store, request, source).kind is OutcomeKind.RETRYABLE
    assert store.puts[0].body == b"streamed"
    assert store.puts[0].size is None
    with pytest.raises(ConfigurationError):
        run_attempt(store, request, source)
