from __future__ import annotations

import json
import logging
import mimetypes
import time
import uuid
from typing import Callable

from prometheus_client import Counter, Histogram

from objput.upload.attempt import classify, run_attempt
from objput.upload.errors import (
    ConfigurationError,
    FatalFailure,
    FileChangedError,
    TerminalFailure,
)
from objput.upload.hashing import CONTENT_MD5, content_md5
from objput.upload.models import AttemptOutcome, UploadRequest, UploadResult
from objput.upload.pathing import normalize_path, resolve_request
from objput.upload.progress import ProgressFactory
from objput.upload.retry import BackoffPolicy, RetryController
from objput.upload.source import UploadSource
from objput.upload.store import StoreClient, header_value


UPLOAD_ATTEMPTS = Counter("objput_upload_attempts_total", "Upload attempts started")
UPLOAD_RETRIES = Counter("objput_upload_retries_total", "Upload attempts retried after a transient failure")
UPLOAD_FAILURES = Counter(
    "objput_upload_failures_total",
    "Uploads that ended in a terminal failure",
    labelnames=("kind",),
)
UPLOAD_SECONDS = Histogram("objput_upload_seconds", "Upload wall time seconds, retries included")


class Uploader:
    def __init__(
        self,
        store: StoreClient,
        policy: BackoffPolicy | None = None,
        *,
        progress: ProgressFactory | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.policy = policy or BackoffPolicy()
        self.progress = progress
        self.sleep = sleep
        self.logger = logging.getLogger("objput.upload")
        self.run_id = uuid.uuid4().hex
        self.controller: RetryController | None = None

    def upload(self, request: UploadRequest, source: UploadSource, *, compute_md5: bool = False) -> UploadResult:
        """Upload ``source`` and close the store, whatever the outcome.

        Raises ConfigurationError before any write, FatalFailure without
        retrying, or RetryableFailure once every attempt has failed.
        """
        try:
            with UPLOAD_SECONDS.time():
                return self._upload(request, source, compute_md5)
        except ConfigurationError as exc:
            UPLOAD_FAILURES.labels(kind="configuration").inc()
            self._log_event("upload_failed", level=logging.ERROR, extra={"kind": "configuration", "error": str(exc)})
            raise
        except TerminalFailure as exc:
            UPLOAD_FAILURES.labels(kind=exc.kind).inc()
            self._log_event(
                "upload_failed",
                level=logging.ERROR,
                extra={"kind": exc.kind, "attempts": exc.attempts, "error": str(exc)},
            )
            raise
        finally:
            self.store.close()

    def _upload(self, request: UploadRequest, source: UploadSource, compute_md5: bool) -> UploadResult:
        request = self._prepare(request, source, compute_md5)
        policy = self.policy if source.replayable else self.policy.single_attempt()
        controller = RetryController(policy, sleep=self.sleep, on_backoff=self._on_backoff)
        self.controller = controller

        def attempt(number: int) -> AttemptOutcome:
            nonlocal request
            UPLOAD_ATTEMPTS.inc()
            if not request.resolved:
                try:
                    probe = self.store.probe(request.destination_path)
                except Exception as exc:
                    return classify(exc)
                request = resolve_request(request, probe, source.name)
                self._log_event(
                    "probe",
                    extra={"probe": probe.kind.value, "path": request.destination_path},
                )
            self._log_event("attempt_started", extra={"attempt": number, "path": request.destination_path})
            return run_attempt(self.store, request, source, self.progress)

        controller.run(attempt)
        self._log_event(
            "upload_succeeded",
            level=logging.INFO,
            extra={"path": request.destination_path, "attempts": controller.attempts},
        )
        return UploadResult(request.destination_path, controller.attempts, tuple(controller.delays))

    def _prepare(self, request: UploadRequest, source: UploadSource, compute_md5: bool) -> UploadRequest:
        if request.copies < 1:
            raise ConfigurationError(f"copies must be at least 1, got {request.copies}")
        request = UploadRequest(
            destination_path=normalize_path(request.destination_path),
            source_size=request.source_size if request.source_size is not None else source.size(),
            headers=dict(request.headers),
            copies=request.copies,
            create_parents=request.create_parents,
            resolved=request.resolved,
        )

        if header_value(request.headers, "Content-Type") is None:
            guessed, _ = mimetypes.guess_type(source.name) if source.name else (None, None)
            request = request.with_headers({"Content-Type": guessed or "application/octet-stream"})

        if compute_md5:
            try:
                digest = content_md5(source)
            except (OSError, FileChangedError) as exc:
                raise FatalFailure(exc, attempts=0) from exc
            request = request.with_headers({CONTENT_MD5: digest})
        return request

    def _on_backoff(self, attempt: int, delay: float, cause: BaseException) -> None:
        UPLOAD_RETRIES.inc()
        self._log_event(
            "backoff",
            level=logging.WARNING,
            extra={"attempt": attempt, "delay": delay, "error": str(cause), "error_type": type(cause).__name__},
        )

    def _log_event(self, event: str, level: int = logging.DEBUG, extra: dict | None = None) -> None:
        payload = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "level": logging.getLevelName(level).lower(),
            "component": "uploader",
            "run_id": self.run_id,
            "event": event,
        }
        if extra:
            payload.update(extra)
        self.logger.log(level, json.dumps(payload))
