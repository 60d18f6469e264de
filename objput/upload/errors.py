from __future__ import annotations

from enum import Enum


class StoreErrorKind(str, Enum):
    PRECONDITION_FAILED = "precondition-failed"
    DIRECTORY_CONFLICT = "directory-conflict"
    OTHER = "other"


class StoreError(RuntimeError):
    """Raised by a store client; ``kind`` drives retry classification."""

    def __init__(self, kind: StoreErrorKind, message: str, code: str | None = None):
        self.kind = kind
        self.code = code
        super().__init__(message)


class FileChangedError(RuntimeError):
    """Raised when a file changes during hashing."""


class UploadError(Exception):
    """Base class for every error that ends an upload invocation."""


class ConfigurationError(UploadError):
    """Invalid combination of inputs, detected before anything is written."""


class TerminalFailure(UploadError):
    def __init__(self, cause: BaseException, attempts: int):
        self.cause = cause
        self.attempts = attempts
        super().__init__(str(cause))

    @property
    def kind(self) -> str:
        if isinstance(self.cause, StoreError):
            return self.cause.kind.value
        return type(self.cause).__name__


class FatalFailure(TerminalFailure):
    """A logical conflict that another attempt cannot fix."""


class RetryableFailure(TerminalFailure):
    """A transient failure that outlived the attempt budget."""
