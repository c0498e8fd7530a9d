"""
RQ task definitions for generation jobs.

The durable path runs one orchestrator step per RQ job and schedules the next
poll with enqueue_in, so no worker is held while the provider is busy. Workers
must run with the scheduler enabled (rq worker --with-scheduler).
"""

import asyncio
from datetime import timedelta
from typing import Optional

from rq import Queue

from swapvid.config.settings import settings
from swapvid.core.orchestrator import JobOrchestrator, TerminalOutcome
from swapvid.models import SessionLocal
from swapvid.services.factory import build_orchestrator
from swapvid.services.observability import logger
from swapvid.workers.queue import get_long_queue, get_queue, step_retry


async def _advance(orchestrator: JobOrchestrator, job_id: str, attempt: int) -> TerminalOutcome:
    try:
        return await orchestrator.advance(job_id, attempt=attempt)
    finally:
        await orchestrator.aclose()


async def _run(orchestrator: JobOrchestrator, job_id: str) -> TerminalOutcome:
    try:
        return await orchestrator.run(job_id)
    finally:
        await orchestrator.aclose()


def schedule_poll_step(
    job_id: str,
    attempt: int,
    queue: Optional[Queue] = None,
    delay_s: Optional[float] = None,
):
    queue = queue or get_queue()
    return queue.enqueue_in(
        timedelta(seconds=settings.poll_interval_s if delay_s is None else delay_s),
        run_poll_step,
        job_id,
        attempt,
        retry=step_retry(),
    )


def _run_step(job_id: str, attempt: int) -> str:
    db = SessionLocal()
    try:
        orchestrator = build_orchestrator(db)
        outcome = asyncio.run(_advance(orchestrator, job_id, attempt))

        if outcome.terminal:
            logger.info("durable_chain_finished", job_id=job_id, status=outcome.status, attempt=attempt)
        elif outcome.run_ref:
            schedule_poll_step(job_id, attempt + 1)
        else:
            # Submission claim held elsewhere; look again once it has expired
            logger.info(
                "durable_chain_deferred",
                job_id=job_id,
                attempt=attempt,
                retry_in_s=settings.submission_claim_ttl_s,
            )
            schedule_poll_step(job_id, attempt, delay_s=settings.submission_claim_ttl_s)

        return outcome.status
    except Exception as exc:
        logger.error("durable_step_failed", job_id=job_id, attempt=attempt, error=str(exc))
        raise
    finally:
        db.close()


def run_submit_step(job_id: str) -> str:
    logger.info("durable_submit_step", job_id=job_id)
    return _run_step(job_id, attempt=1)


def run_poll_step(job_id: str, attempt: int) -> str:
    logger.info("durable_poll_step", job_id=job_id, attempt=attempt)
    return _run_step(job_id, attempt=attempt)


def run_generation_job(job_id: str) -> str:
    """Longer-window context: run the whole orchestration in one RQ job"""
    logger.info("long_window_worker_start", job_id=job_id)
    db = SessionLocal()
    try:
        orchestrator = build_orchestrator(db, poll_interval_s=settings.bounded_poll_interval_s)
        outcome = asyncio.run(_run(orchestrator, job_id))
        return outcome.status
    except Exception as exc:
        logger.error("long_window_worker_failed", job_id=job_id, error=str(exc))
        raise
    finally:
        db.close()


def enqueue_long_run(job_id: str, queue: Optional[Queue] = None):
    queue = queue or get_long_queue()
    rq_job = queue.enqueue(
        run_generation_job,
        job_id,
        job_timeout=int(settings.long_window_s),
    )
    logger.info("long_window_handoff", job_id=job_id, rq_job_id=rq_job.id, queue=queue.name)
    return rq_job
