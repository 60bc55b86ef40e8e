"""Polling state machine that waits for a settlement transfer to land."""

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, Optional

from app.core.errors import QueryError
from app.core.logging import get_logger
from app.settlement.client import SettlementClient
from app.settlement.metrics import (
    SETTLEMENT_POLLS,
    SETTLEMENT_WAIT_SECONDS,
    SETTLEMENT_WAITS,
    SETTLEMENT_WAITS_IN_FLIGHT,
)
from app.settlement.models import (
    SettlementOutcome,
    TransferStatus,
    WaitProgress,
    WaitResult,
)

logger = get_logger().bind(module="settlement.watcher")

ProgressCallback = Callable[[WaitProgress], Optional[Awaitable[Any]]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransferWatcher:
    """Waits for a transfer to reach a terminal settlement state.

    Each call to :meth:`wait` owns its own timeout budget and is cancelled
    independently. A semaphore bounds how many waits poll the settlement
    system at once; time spent queued for a slot counts against the
    wait's own timeout.

    The clock and sleep functions are injectable so the loop can be driven
    by a fake clock in tests.
    """

    def __init__(
        self,
        client: SettlementClient,
        timeout: float = 300.0,
        poll_interval: float = 5.0,
        accept_executed: bool = False,
        max_concurrent_waits: int = 100,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the watcher.

        Args:
            client: Settlement status client
            timeout: Default maximum wait in seconds
            poll_interval: Default delay between polls in seconds
            accept_executed: Treat execution without fulfillment as settled
            max_concurrent_waits: Upper bound on concurrently polling waits
            clock: Monotonic clock returning seconds
            sleep: Coroutine function used between polls
            now: Wall clock used for ``observed_at``
        """
        if timeout < 0:
            raise ValueError("timeout must not be negative")
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if max_concurrent_waits < 1:
            raise ValueError("max_concurrent_waits must be at least 1")

        self.client = client
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.accept_executed = accept_executed
        self._semaphore = asyncio.Semaphore(max_concurrent_waits)
        self._clock = clock
        self._sleep = sleep
        self._now = now

    async def wait(
        self,
        transfer_ref: str,
        timeout: float | None = None,
        poll_interval: float | None = None,
        accept_executed: bool | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> WaitResult:
        """Poll until the transfer settles or the timeout elapses.

        A query error counts as a non-terminal poll. Only the timeout ends the
        wait unsuccessfully, and it is reported at or after the deadline.

        Args:
            transfer_ref: Transfer request identifier
            timeout: Maximum wait in seconds, defaults to the watcher's
            poll_interval: Delay between polls, defaults to the watcher's
            accept_executed: Override the execution-is-enough policy
            on_progress: Called with a WaitProgress after every poll

        Returns:
            WaitResult with a FULFILLED, EXECUTED or TIMED_OUT outcome

        Raises:
            ValueError: If the arguments are invalid
            asyncio.CancelledError: If the calling task is cancelled
        """
        if not transfer_ref or not transfer_ref.strip():
            raise ValueError("transfer_ref must not be empty")

        budget = self.timeout if timeout is None else timeout
        interval = self.poll_interval if poll_interval is None else poll_interval
        accept = self.accept_executed if accept_executed is None else accept_executed
        if budget < 0:
            raise ValueError("timeout must not be negative")
        if interval <= 0:
            raise ValueError("poll_interval must be positive")

        started = self._clock()
        try:
            async with asyncio.timeout(budget):
                await self._semaphore.acquire()
        except TimeoutError:
            # No polling slot freed up within the budget
            result = self._result(
                SettlementOutcome.TIMED_OUT,
                self._clock() - started,
                TransferStatus(),
                0,
            )
        else:
            SETTLEMENT_WAITS_IN_FLIGHT.inc()
            try:
                result = await self._poll(
                    transfer_ref, started, budget, interval, accept, on_progress
                )
            except asyncio.CancelledError:
                SETTLEMENT_WAITS.labels(outcome="cancelled").inc()
                logger.info("settlement_wait_cancelled", transfer_ref=transfer_ref)
                raise
            finally:
                SETTLEMENT_WAITS_IN_FLIGHT.dec()
                self._semaphore.release()

        SETTLEMENT_WAITS.labels(outcome=result.outcome.value).inc()
        SETTLEMENT_WAIT_SECONDS.observe(result.elapsed)
        log = logger.warning if not result.confirmed else logger.info
        log(
            "settlement_wait_finished",
            transfer_ref=transfer_ref,
            outcome=result.outcome.value,
            elapsed=round(result.elapsed, 3),
            polls=result.polls,
        )
        return result

    async def _poll(
        self,
        transfer_ref: str,
        started: float,
        timeout: float,
        poll_interval: float,
        accept_executed: bool,
        on_progress: ProgressCallback | None,
    ) -> WaitResult:
        deadline = started + timeout
        best = TransferStatus()
        polls = 0

        while True:
            polls += 1
            error: str | None = None
            try:
                observed = await self.client.status(transfer_ref)
            except QueryError as e:
                error = str(e)
                SETTLEMENT_POLLS.labels(result="error").inc()
                logger.warning(
                    "settlement_query_failed", transfer_ref=transfer_ref, error=error
                )
            else:
                best = best.merge(observed)

            now = self._clock()
            outcome = self._terminal_outcome(best, accept_executed)
            if error is None:
                SETTLEMENT_POLLS.labels(
                    result="terminal" if outcome else "pending"
                ).inc()

            await self._emit_progress(
                on_progress,
                WaitProgress(
                    transfer_ref=transfer_ref,
                    elapsed=now - started,
                    executed=best.executed,
                    fulfilled=best.fulfilled,
                    poll=polls,
                    error=error,
                ),
            )

            if outcome is not None:
                return self._result(outcome, now - started, best, polls)

            remaining = deadline - now
            if remaining <= 0:
                return self._result(
                    SettlementOutcome.TIMED_OUT, now - started, best, polls
                )

            await self._sleep(min(poll_interval, remaining))

    @staticmethod
    def _terminal_outcome(
        status: TransferStatus, accept_executed: bool
    ) -> SettlementOutcome | None:
        if status.fulfilled:
            return SettlementOutcome.FULFILLED
        if status.executed and accept_executed:
            return SettlementOutcome.EXECUTED
        return None

    def _result(
        self,
        outcome: SettlementOutcome,
        elapsed: float,
        status: TransferStatus,
        polls: int,
    ) -> WaitResult:
        return WaitResult(
            outcome=outcome,
            observed_at=self._now(),
            elapsed=elapsed,
            status=status,
            polls=polls,
        )

    async def _emit_progress(
        self, on_progress: ProgressCallback | None, progress: WaitProgress
    ) -> None:
        logger.debug(
            "settlement_poll",
            transfer_ref=progress.transfer_ref,
            elapsed=round(progress.elapsed, 3),
            executed=progress.executed,
            fulfilled=progress.fulfilled,
            poll=progress.poll,
        )
        if on_progress is None:
            return
        try:
            outcome = on_progress(progress)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            # Progress is a side channel and never fails the wait
            logger.warning(
                "settlement_progress_callback_failed",
                transfer_ref=progress.transfer_ref,
                error=str(e),
            )
