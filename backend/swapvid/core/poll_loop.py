"""
Poll Loop - Drive provider status checks until a terminal status or the deadline
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel

from swapvid.config.constants import POLL_DEADLINE_S, POLL_INTERVAL_S
from swapvid.core.provider_client import (
    FalQueueClient,
    ProviderError,
    ProviderStatus,
    StatusReport,
    TERMINAL_PROVIDER_STATUSES,
)
from swapvid.services.observability import logger, log_poll_tick


class DeadlineExceededError(Exception):
    """No terminal provider status was observed before the poll deadline"""

    def __init__(self, run_ref: str, elapsed_s: float, deadline_s: float):
        super().__init__(
            f"No terminal status for {run_ref} after {elapsed_s:.0f}s (deadline {deadline_s:.0f}s)"
        )
        self.run_ref = run_ref
        self.elapsed_s = elapsed_s
        self.deadline_s = deadline_s


class PollOutcome(BaseModel):
    """
    Outcome of polling a run

    timed_out is distinct from a provider-reported FAILED status.
    in_flight is only set by a single tick that found the run still processing.
    """

    run_ref: str
    status: ProviderStatus
    timed_out: bool = False
    in_flight: bool = False
    elapsed_s: float = 0.0
    polls: int = 0
    report: Optional[StatusReport] = None

    @property
    def completed(self) -> bool:
        return not self.timed_out and self.status == ProviderStatus.COMPLETED

    @property
    def failed(self) -> bool:
        return not self.timed_out and self.status == ProviderStatus.FAILED

    def deadline_error(self, deadline_s: float) -> DeadlineExceededError:
        return DeadlineExceededError(self.run_ref, self.elapsed_s, deadline_s)


class PollLoop:
    """
    Repeatedly polls provider status on a fixed interval

    UNKNOWN (transport errors) counts as still processing: it neither fails the
    run nor resets the deadline clock. The deadline is measured from the first
    poll; callers resuming a run pass the recorded origin in started_at.
    """

    def __init__(
        self,
        provider: FalQueueClient,
        interval_s: float = POLL_INTERVAL_S,
        deadline_s: float = POLL_DEADLINE_S,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self.provider = provider
        self.interval_s = interval_s
        self.deadline_s = deadline_s
        self._sleep = sleep
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    async def pause(self, seconds: float) -> None:
        await self._sleep(seconds)

    async def check(self, run_ref: str, job_id: Optional[str] = None, attempt: int = 1) -> StatusReport:
        """
        Poll once, absorbing provider errors as UNKNOWN

        Args:
            run_ref: Provider run reference
            job_id: Optional job ID for log context
            attempt: Poll counter for log context

        Returns:
            StatusReport (status UNKNOWN on any provider error)
        """
        try:
            return await self.provider.poll_status(run_ref)
        except ProviderError as e:
            logger.warning(
                "provider_poll_error",
                job_id=job_id,
                run_ref=run_ref,
                attempt=attempt,
                error=str(e),
            )
            return StatusReport(run_ref=run_ref, status=ProviderStatus.UNKNOWN, error=str(e))

    async def tick(
        self,
        run_ref: str,
        started_at: float,
        job_id: Optional[str] = None,
        attempt: int = 1,
    ) -> PollOutcome:
        """
        Single poll iteration for callers that suspend between polls themselves

        Args:
            run_ref: Provider run reference
            started_at: Epoch seconds of the first poll (deadline origin)
            job_id: Optional job ID for log context
            attempt: Poll counter for log context

        Returns:
            PollOutcome that is terminal, timed out, or in_flight
        """
        report = await self.check(run_ref, job_id=job_id, attempt=attempt)
        elapsed_s = self.now() - started_at
        log_poll_tick(job_id, run_ref, report.status.value, elapsed_s, attempt)

        if report.status in TERMINAL_PROVIDER_STATUSES:
            return PollOutcome(
                run_ref=run_ref,
                status=report.status,
                elapsed_s=elapsed_s,
                polls=attempt,
                report=report,
            )

        if elapsed_s >= self.deadline_s:
            logger.error(
                "poll_deadline_exceeded",
                job_id=job_id,
                run_ref=run_ref,
                elapsed_s=round(elapsed_s, 1),
                deadline_s=self.deadline_s,
            )
            return PollOutcome(
                run_ref=run_ref,
                status=report.status,
                timed_out=True,
                elapsed_s=elapsed_s,
                polls=attempt,
                report=report,
            )

        return PollOutcome(
            run_ref=run_ref,
            status=report.status,
            in_flight=True,
            elapsed_s=elapsed_s,
            polls=attempt,
            report=report,
        )

    async def poll(
        self,
        run_ref: str,
        started_at: Optional[float] = None,
        job_id: Optional[str] = None,
    ) -> PollOutcome:
        """
        Poll until COMPLETED, FAILED or the deadline

        Args:
            run_ref: Provider run reference
            started_at: Deadline origin; defaults to now (first poll)
            job_id: Optional job ID for log context

        Returns:
            Terminal or timed-out PollOutcome
        """
        origin = started_at if started_at is not None else self.now()
        attempt = 0

        while True:
            attempt += 1
            outcome = await self.tick(run_ref, origin, job_id=job_id, attempt=attempt)
            if not outcome.in_flight:
                return outcome

            remaining = self.deadline_s - outcome.elapsed_s
            await self._sleep(min(self.interval_s, max(remaining, 0.0)))
