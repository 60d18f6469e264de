from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Mapping


class ProbeKind(str, Enum):
    NOT_FOUND = "not_found"
    OBJECT = "object"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class ExistenceProbe:
    kind: ProbeKind
    content_type: str | None = None

    @classmethod
    def not_found(cls) -> ExistenceProbe:
        return cls(ProbeKind.NOT_FOUND)

    @classmethod
    def existing_object(cls, content_type: str | None) -> ExistenceProbe:
        return cls(ProbeKind.OBJECT, content_type)

    @classmethod
    def existing_directory(cls) -> ExistenceProbe:
        return cls(ProbeKind.DIRECTORY)


@dataclass(frozen=True)
class UploadRequest:
    """What to upload where.

    ``resolved`` flips once the destination has been checked against the
    store; a resolved request is never re-probed or re-resolved.
    """

    destination_path: str
    source_size: int | None = None
    headers: Mapping[str, str] = field(default_factory=dict)
    copies: int = 2
    create_parents: bool = False
    resolved: bool = False

    def with_headers(self, extra: Mapping[str, str]) -> UploadRequest:
        return replace(self, headers={**self.headers, **extra})


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    FATAL = "fatal"


@dataclass(frozen=True)
class AttemptOutcome:
    kind: OutcomeKind
    cause: BaseException | None = None

    @classmethod
    def success(cls) -> AttemptOutcome:
        return cls(OutcomeKind.SUCCESS)

    @classmethod
    def retryable(cls, cause: BaseException) -> AttemptOutcome:
        return cls(OutcomeKind.RETRYABLE, cause)

    @classmethod
    def fatal(cls, cause: BaseException) -> AttemptOutcome:
        return cls(OutcomeKind.FATAL, cause)


class RetryState(str, Enum):
    IDLE = "idle"
    ATTEMPTING = "attempting"
    BACKING_OFF = "backing_off"
    SUCCEEDED = "succeeded"
    FAILED_FATAL = "failed_fatal"
    FAILED_EXHAUSTED = "failed_exhausted"


@dataclass(frozen=True)
class BackoffState:
    attempt_number: int
    current_delay: float
    max_delay: float
    max_attempts: int

    @property
    def exhausted(self) -> bool:
        return self.attempt_number >= self.max_attempts

    def advance(self, factor: float) -> BackoffState:
        return replace(
            self,
            attempt_number=self.attempt_number + 1,
            current_delay=min(self.current_delay * factor, self.max_delay),
        )


@dataclass
class ProgressState:
    bytes_transferred: int = 0
    total_size: int | None = None


@dataclass(frozen=True)
class UploadResult:
    path: str
    attempts: int
    delays: tuple[float, ...] = ()
