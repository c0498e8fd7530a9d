"""
Trigger Strategies - Front doors that start an orchestration run

Both strategies drive the same JobOrchestrator and write identical terminal
states; they differ only in how the multi-minute provider wait is survived.
"""

import asyncio
from typing import Callable, Optional, Sequence, Set

from rq import Queue

from swapvid.config.settings import Settings, settings as default_settings
from swapvid.models import SessionLocal
from swapvid.services.factory import build_orchestrator
from swapvid.services.observability import logger
from swapvid.workers.generation_tasks import enqueue_long_run, run_submit_step
from swapvid.workers.queue import get_queue, step_retry


class TriggerStrategy:
    """Start orchestration for a job and return without waiting for it"""

    name = "base"

    async def start(self, job_id: str) -> None:
        raise NotImplementedError


class DurableTrigger(TriggerStrategy):
    """
    Durable-suspend path

    Enqueues the submit step on RQ; each later poll is its own scheduled RQ
    job, and everything needed to resume lives in Redis and the job record.
    """

    name = "durable"

    def __init__(self, queue: Optional[Queue] = None):
        self.queue = queue

    async def start(self, job_id: str) -> None:
        queue = self.queue or get_queue()
        rq_job = queue.enqueue(run_submit_step, job_id, retry=step_retry())
        logger.info(
            "generation_queued",
            job_id=job_id,
            trigger=self.name,
            rq_job_id=rq_job.id,
            queue=queue.name,
        )


class BoundedTrigger(TriggerStrategy):
    """
    Bounded-execution path

    Runs the orchestrator as an in-process background task limited to the host
    execution window. When the poll deadline cannot fit in the window the run
    is handed off at once to the longer-window context; when the window runs
    out mid-run it is handed off there too and resumes from the recorded run
    reference. Without a hand-off the in-process run is not bounded.
    """

    name = "bounded"

    def __init__(
        self,
        execution_window_s: float,
        poll_deadline_s: float,
        poll_interval_s: float,
        handoff: Optional[Callable[[str], object]] = None,
        session_factory: Callable = SessionLocal,
        orchestrator_factory: Callable = build_orchestrator,
        handoff_retry_delays_s: Sequence[float] = (1.0, 5.0),
    ):
        self.execution_window_s = execution_window_s
        self.poll_deadline_s = poll_deadline_s
        self.poll_interval_s = poll_interval_s
        self.handoff = handoff
        self.session_factory = session_factory
        self.orchestrator_factory = orchestrator_factory
        self.handoff_retry_delays_s = tuple(handoff_retry_delays_s)
        self._tasks: Set[asyncio.Task] = set()

    async def start(self, job_id: str) -> None:
        if self.handoff is not None and self.poll_deadline_s + self.poll_interval_s > self.execution_window_s:
            logger.info(
                "bounded_immediate_handoff",
                job_id=job_id,
                execution_window_s=self.execution_window_s,
                poll_deadline_s=self.poll_deadline_s,
            )
            self.handoff(job_id)
            return

        task = asyncio.create_task(self.run_in_window(job_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info("generation_started_in_process", job_id=job_id, trigger=self.name)

    async def run_in_window(self, job_id: str) -> Optional[str]:
        """
        Run the orchestrator in this process

        Returns:
            Final status, or None when the run was handed off or crashed
        """
        db = self.session_factory()
        orchestrator = self.orchestrator_factory(db, poll_interval_s=self.poll_interval_s)
        try:
            if self.handoff is None:
                outcome = await orchestrator.run(job_id)
            else:
                outcome = await asyncio.wait_for(orchestrator.run(job_id), timeout=self.execution_window_s)
            return outcome.status
        except asyncio.TimeoutError:
            logger.warning(
                "execution_window_exceeded",
                job_id=job_id,
                execution_window_s=self.execution_window_s,
            )
            await self._hand_off(job_id)
            return None
        except Exception:
            # Top of a fire-and-forget task; the job record stays non-terminal
            # and a re-trigger resumes it.
            logger.exception("bounded_run_crashed", job_id=job_id)
            return None
        finally:
            await orchestrator.aclose()
            db.close()

    async def _hand_off(self, job_id: str) -> bool:
        """
        Enqueue the longer-window run, retrying briefly

        On final failure the job stays non-terminal with its run reference
        recorded, so a re-trigger resumes polling.

        Returns:
            True if the hand-off was enqueued
        """
        delays = (0.0,) + self.handoff_retry_delays_s
        for attempt, delay in enumerate(delays, start=1):
            if delay:
                await asyncio.sleep(delay)
            try:
                self.handoff(job_id)
                return True
            except Exception as e:
                logger.error("handoff_failed", job_id=job_id, attempt=attempt, error=str(e))
        return False


def build_trigger(config: Optional[Settings] = None) -> TriggerStrategy:
    """Pick the trigger strategy for this deployment"""
    config = config or default_settings
    if config.trigger_mode == "bounded":
        return BoundedTrigger(
            execution_window_s=config.execution_window_s,
            poll_deadline_s=config.poll_deadline_s,
            poll_interval_s=config.bounded_poll_interval_s,
            handoff=enqueue_long_run if config.bounded_handoff_enabled else None,
        )
    return DurableTrigger()
