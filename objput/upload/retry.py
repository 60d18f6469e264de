from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from typing import Callable

from objput.upload.errors import FatalFailure, RetryableFailure
from objput.upload.models import AttemptOutcome, BackoffState, OutcomeKind, RetryState

logger = logging.getLogger("objput.upload.retry")

BackoffHook = Callable[[int, float, BaseException], None]


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential backoff: ``initial_delay * factor ** n`` seconds, capped at ``max_delay``."""

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    factor: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must not be negative")
        if self.factor < 1:
            raise ValueError("factor must be at least 1")

    def initial_state(self) -> BackoffState:
        return BackoffState(
            attempt_number=1,
            current_delay=min(self.initial_delay, self.max_delay),
            max_delay=self.max_delay,
            max_attempts=self.max_attempts,
        )

    def single_attempt(self) -> BackoffPolicy:
        return replace(self, max_attempts=1)


class RetryController:
    """Drives attempts one at a time until success, a fatal outcome or the budget runs out.

    ``state``, ``backoff`` and ``delays`` stay inspectable after ``run`` returns
    or raises.
    """

    def __init__(
        self,
        policy: BackoffPolicy | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        on_backoff: BackoffHook | None = None,
    ):
        self.policy = policy or BackoffPolicy()
        self.sleep = sleep
        self.on_backoff = on_backoff
        self.state = RetryState.IDLE
        self.backoff = self.policy.initial_state()
        self.delays: list[float] = []

    @property
    def attempts(self) -> int:
        return 0 if self.state is RetryState.IDLE else self.backoff.attempt_number

    def run(self, attempt: Callable[[int], AttemptOutcome]) -> AttemptOutcome:
        if self.state is not RetryState.IDLE:
            raise RuntimeError(f"retry controller already ran (state={self.state.value})")

        self.state = RetryState.ATTEMPTING
        while True:
            outcome = attempt(self.backoff.attempt_number)

            if outcome.kind is OutcomeKind.SUCCESS:
                self.state = RetryState.SUCCEEDED
                return outcome

            if outcome.kind is OutcomeKind.FATAL:
                self.state = RetryState.FAILED_FATAL
                raise FatalFailure(outcome.cause, self.attempts) from outcome.cause

            if self.backoff.exhausted:
                self.state = RetryState.FAILED_EXHAUSTED
                raise RetryableFailure(outcome.cause, self.attempts) from outcome.cause

            self.state = RetryState.BACKING_OFF
            delay = self.backoff.current_delay
            self._notify(delay, outcome.cause)
            self.sleep(delay)
            self.delays.append(delay)
            self.backoff = self.backoff.advance(self.policy.factor)
            self.state = RetryState.ATTEMPTING

    def _notify(self, delay: float, cause: BaseException) -> None:
        if self.on_backoff is None:
            return
        try:
            self.on_backoff(self.backoff.attempt_number, delay, cause)
        except Exception:
            logger.warning("backoff hook failed", exc_info=True)
