from __future__ import annotations

from typing import BinaryIO

from objput.upload.errors import StoreError, StoreErrorKind
from objput.upload.models import AttemptOutcome, UploadRequest
from objput.upload.progress import ProgressFactory, ProgressReader
from objput.upload.source import UploadSource
from objput.upload.store import PutOptions, StoreClient

FATAL_KINDS = frozenset({StoreErrorKind.PRECONDITION_FAILED, StoreErrorKind.DIRECTORY_CONFLICT})


def classify(exc: BaseException) -> AttemptOutcome:
    if isinstance(exc, StoreError) and exc.kind in FATAL_KINDS:
        return AttemptOutcome.fatal(exc)
    return AttemptOutcome.retryable(exc)


def run_attempt(
    store: StoreClient,
    request: UploadRequest,
    source: UploadSource,
    progress: ProgressFactory | None = None,
) -> AttemptOutcome:
    """Perform one full put of ``source`` to the already resolved destination."""
    try:
        with source.open() as stream:
            return _put(store, request, stream, progress)
    except OSError as exc:
        # the source itself is unreadable; another attempt will not change that
        return AttemptOutcome.fatal(exc)


def _put(
    store: StoreClient,
    request: UploadRequest,
    stream: BinaryIO,
    progress: ProgressFactory | None,
) -> AttemptOutcome:
    options = PutOptions(
        headers=dict(request.headers),
        copies=request.copies,
        create_parents=request.create_parents,
    )
    reader = None
    if progress is not None:
        reader = ProgressReader(stream, progress(request.source_size), request.source_size)
        stream = reader
    try:
        store.put(request.destination_path, stream, request.source_size, options)
    except Exception as exc:
        return classify(exc)
    finally:
        if reader is not None:
            reader.finish()
    return AttemptOutcome.success()
