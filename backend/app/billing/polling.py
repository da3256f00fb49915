"""Bounded, cancellable retry loop around payment verification."""
from __future__ import annotations

import asyncio
import inspect
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import BaseModel, ConfigDict

from ..errors import ServiceError, StoreError, VerificationPending
from .models import VerificationResult

logger = logging.getLogger("billing")

VerifyCallable = Callable[[str], Union[VerificationResult, Awaitable[VerificationResult]]]


class PollOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


class PollResult(BaseModel):
    """Terminal state of one polling run."""

    tx_ref: str
    outcome: PollOutcome
    attempts: int
    result: Optional[VerificationResult] = None
    error: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def succeeded(self) -> bool:
        return self.outcome == PollOutcome.SUCCEEDED


class PaymentVerificationPoller:
    """Call ``verify`` until it succeeds, fails terminally or runs out of attempts.

    Pending answers and store hiccups are retried after ``interval_seconds``.
    ``cancel()`` stops the loop before its next attempt, and ``timeout_seconds``
    bounds the total wall time measured with ``clock``.
    """

    def __init__(
        self,
        verify: VerifyCallable,
        *,
        interval_seconds: float = 2.0,
        max_attempts: int = 10,
        timeout_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if interval_seconds < 0:
            raise ValueError("interval_seconds must be >= 0")
        self._verify = verify
        self.interval_seconds = interval_seconds
        self.max_attempts = max_attempts
        self.timeout_seconds = timeout_seconds
        self._sleep = sleep
        self._clock = clock
        self._cancelled = False
        self._task: Optional["asyncio.Task[PollResult]"] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def start(self, tx_ref: str) -> "asyncio.Task[PollResult]":
        """Schedule :meth:`run` on the running loop and keep a handle for ``cancel``."""

        self._task = asyncio.get_running_loop().create_task(self.run(tx_ref))
        return self._task

    async def run(self, tx_ref: str) -> PollResult:
        started = self._clock()
        attempts = 0
        last_error: Optional[str] = None

        while attempts < self.max_attempts:
            if self._cancelled:
                return PollResult(tx_ref=tx_ref, outcome=PollOutcome.CANCELLED, attempts=attempts, error=last_error)
            if self._deadline_passed(started):
                return PollResult(tx_ref=tx_ref, outcome=PollOutcome.TIMED_OUT, attempts=attempts, error=last_error)

            attempts += 1
            try:
                result = self._verify(tx_ref)
                if inspect.isawaitable(result):
                    result = await result
            except (VerificationPending, StoreError) as exc:
                last_error = exc.message
                logger.debug("Verification attempt %s pending tx_ref=%s", attempts, tx_ref)
            except ServiceError as exc:
                # VerificationFailed and any other domain error end the run.
                return PollResult(tx_ref=tx_ref, outcome=PollOutcome.FAILED, attempts=attempts, error=exc.message)
            else:
                return PollResult(tx_ref=tx_ref, outcome=PollOutcome.SUCCEEDED, attempts=attempts, result=result)

            if attempts >= self.max_attempts:
                break
            try:
                await self._sleep(self.interval_seconds)
            except asyncio.CancelledError:
                if not self._cancelled:
                    raise
                return PollResult(tx_ref=tx_ref, outcome=PollOutcome.CANCELLED, attempts=attempts, error=last_error)

        logger.info("Payment verification exhausted", extra={"tx_ref": tx_ref, "poll_attempts": attempts})
        return PollResult(tx_ref=tx_ref, outcome=PollOutcome.EXHAUSTED, attempts=attempts, error=last_error)

    def _deadline_passed(self, started: float) -> bool:
        if self.timeout_seconds is None:
            return False
        return self._clock() - started >= self.timeout_seconds


__all__ = ["PaymentVerificationPoller", "PollOutcome", "PollResult"]
