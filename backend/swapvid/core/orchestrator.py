"""
Job Orchestrator - Drive one generation job from submission to a terminal state
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ValidationError

from swapvid.config.constants import (
    JOB_STATUS_COMPLETE,
    JOB_STATUS_FAILED,
    PROVIDER_FAILED_REASON,
)
from swapvid.core.poll_loop import PollLoop, PollOutcome
from swapvid.core.provider_client import FalQueueClient, JobInput, ProviderError
from swapvid.models.job import JobModel
from swapvid.services.artifact_downloader import ArtifactDownloader, ArtifactDownloadError
from swapvid.services.artifact_store import ArtifactStorageError, build_artifact_key
from swapvid.services.error_classifier import ErrorClassifier
from swapvid.services.job_state import is_terminal_state
from swapvid.services.job_store import JobRecordStore
from swapvid.services.observability import (
    logger,
    log_failure_classification,
    log_generation_duration,
    log_notification_failure,
    log_submission,
)


class TerminalOutcome(BaseModel):
    """
    Result of an orchestration run

    status is "complete" or "failed" once terminal. "processing" means the job
    is still in flight: another runner owns submission, or a single durable
    step found the provider still working.
    """

    job_id: str
    status: str
    run_ref: Optional[str] = None
    result_url: Optional[str] = None
    failure_reason: Optional[Dict[str, Any]] = None

    @property
    def terminal(self) -> bool:
        return is_terminal_state(self.status)

    @classmethod
    def from_record(cls, job: JobModel) -> "TerminalOutcome":
        return cls(
            job_id=job.id,
            status=job.status,
            run_ref=job.provider_run_ref,
            result_url=job.result_url,
            failure_reason=job.failure_reason,
        )


def _to_datetime(epoch_s: float) -> datetime:
    return datetime.fromtimestamp(epoch_s, timezone.utc).replace(tzinfo=None)


def _to_epoch(value: datetime) -> float:
    return value.replace(tzinfo=timezone.utc).timestamp()


class JobOrchestrator:
    """
    Submission, polling, artifact hand-off and terminal write for one job

    Runs one sequential control flow per job. Re-running for a job that already
    has a provider run reference resumes polling without resubmitting; re-running
    a terminal job returns the recorded outcome.
    """

    def __init__(
        self,
        job_store: JobRecordStore,
        provider: FalQueueClient,
        artifact_store,
        downloader: ArtifactDownloader,
        poll_loop: PollLoop,
        classifier: Optional[ErrorClassifier] = None,
        notifier=None,
        claim_ttl_s: float = 120.0,
    ):
        self.job_store = job_store
        self.provider = provider
        self.artifact_store = artifact_store
        self.downloader = downloader
        self.poll_loop = poll_loop
        self.classifier = classifier or ErrorClassifier()
        self.notifier = notifier
        self.claim_ttl_s = claim_ttl_s

    async def run(self, job_id: str) -> TerminalOutcome:
        """
        Run the job to a terminal state, polling in-process

        When another runner holds the submission claim, waits for it to either
        record a run reference or expire, then resumes or resubmits.

        Args:
            job_id: Existing job identifier

        Returns:
            TerminalOutcome

        Raises:
            JobNotFoundError: If the job record does not exist
        """
        job = self.job_store.require(job_id)
        if is_terminal_state(job.status):
            logger.info("job_already_terminal", job_id=job_id, status=job.status)
            return TerminalOutcome.from_record(job)

        submitted = await self._ensure_submitted(job)
        while isinstance(submitted, TerminalOutcome) and not submitted.terminal:
            # Submission claim held by another runner; retake it once it expires
            logger.info("waiting_for_submission_claim", job_id=job_id, wait_s=self.claim_ttl_s)
            await self.poll_loop.pause(self.claim_ttl_s)
            submitted = await self._ensure_submitted(self.job_store.require(job_id))
        if isinstance(submitted, TerminalOutcome):
            return submitted

        origin = self._polling_origin(job_id)
        outcome = await self.poll_loop.poll(submitted, started_at=origin, job_id=job_id)
        return await self._finish(job, outcome)

    async def advance(self, job_id: str, attempt: int = 1) -> TerminalOutcome:
        """
        Submit if needed, then poll exactly once

        Used by callers that suspend between polls themselves; a "processing"
        outcome means the caller should schedule another advance.

        Args:
            job_id: Existing job identifier
            attempt: Poll counter for log context

        Returns:
            TerminalOutcome (terminal or processing)
        """
        job = self.job_store.require(job_id)
        if is_terminal_state(job.status):
            return TerminalOutcome.from_record(job)

        submitted = await self._ensure_submitted(job)
        if isinstance(submitted, TerminalOutcome):
            return submitted

        origin = self._polling_origin(job_id)
        outcome = await self.poll_loop.tick(submitted, origin, job_id=job_id, attempt=attempt)
        if outcome.in_flight:
            return TerminalOutcome(job_id=job_id, status=job.status, run_ref=submitted)
        return await self._finish(job, outcome)

    async def aclose(self):
        """Release HTTP clients held by collaborators"""
        await self.provider.close()
        await self.downloader.close()
        if self.notifier is not None and hasattr(self.notifier, "close"):
            await self.notifier.close()

    async def _ensure_submitted(self, job: JobModel) -> Union[str, TerminalOutcome]:
        if job.provider_run_ref:
            logger.info("resuming_submitted_job", job_id=job.id, run_ref=job.provider_run_ref)
            return job.provider_run_ref

        try:
            job_input = JobInput(
                source_video_url=job.input_video_url or "",
                image_url=job.character_image_url or "",
            )
        except ValidationError as e:
            return await self._fail(job, e.errors(include_url=False))

        resubmitting = job.submission_claimed_at is not None
        if not self.job_store.claim_submission(
            job.id, self.claim_ttl_s, now=_to_datetime(self.poll_loop.now())
        ):
            current = self.job_store.require(job.id)
            if is_terminal_state(current.status):
                return TerminalOutcome.from_record(current)
            if current.provider_run_ref:
                return current.provider_run_ref
            logger.info("submission_owned_elsewhere", job_id=job.id)
            return TerminalOutcome.from_record(current)

        try:
            run_ref = await self.provider.submit(job_input)
        except ProviderError as e:
            logger.error("provider_submit_failed", job_id=job.id, error=str(e))
            return await self._fail(job, e)

        if not self.job_store.mark_submitted(job.id, run_ref):
            current = self.job_store.require(job.id)
            if is_terminal_state(current.status):
                return TerminalOutcome.from_record(current)
            if current.provider_run_ref and current.provider_run_ref != run_ref:
                logger.warning(
                    "duplicate_submission_detected",
                    job_id=job.id,
                    recorded_run_ref=current.provider_run_ref,
                    discarded_run_ref=run_ref,
                )
                return current.provider_run_ref

        log_submission(job.id, run_ref, resubmitted=resubmitting)
        return run_ref

    def _polling_origin(self, job_id: str) -> float:
        recorded = self.job_store.mark_polling_started(job_id, now=_to_datetime(self.poll_loop.now()))
        return _to_epoch(recorded) if recorded else self.poll_loop.now()

    async def _finish(self, job: JobModel, outcome: PollOutcome) -> TerminalOutcome:
        if outcome.timed_out:
            return await self._fail(job, outcome.deadline_error(self.poll_loop.deadline_s), outcome)

        if outcome.failed:
            report = outcome.report
            raw = report.error if report is not None and report.error else PROVIDER_FAILED_REASON
            return await self._fail(job, raw, outcome)

        try:
            result = await self.provider.fetch_result(outcome.run_ref)
            data = await self.downloader.download_bytes(result.artifact_url)
        except (ProviderError, ArtifactDownloadError) as e:
            return await self._fail(job, e, outcome)

        key = build_artifact_key(job.id)
        try:
            public_url = self.artifact_store.store(key, data)
        except ArtifactStorageError as e:
            return await self._fail(job, e, outcome)

        if not self.job_store.mark_complete(job.id, public_url):
            return TerminalOutcome.from_record(self.job_store.require(job.id))

        self._log_duration(job, outcome)
        await self._notify(job, public_url)

        return TerminalOutcome(
            job_id=job.id,
            status=JOB_STATUS_COMPLETE,
            run_ref=outcome.run_ref,
            result_url=public_url,
        )

    async def _fail(
        self,
        job: JobModel,
        raw_error: Any,
        outcome: Optional[PollOutcome] = None,
    ) -> TerminalOutcome:
        classified = self.classifier.classify(raw_error)
        log_failure_classification(
            kind=classified.kind.value,
            code=classified.code,
            retryable=classified.retryable,
            job_id=job.id,
        )

        reason = classified.to_record()
        if not self.job_store.mark_failed(job.id, reason):
            return TerminalOutcome.from_record(self.job_store.require(job.id))

        if outcome is not None:
            self._log_duration(job, outcome)

        return TerminalOutcome(
            job_id=job.id,
            status=JOB_STATUS_FAILED,
            run_ref=outcome.run_ref if outcome else job.provider_run_ref,
            failure_reason=reason,
        )

    def _log_duration(self, job: JobModel, outcome: PollOutcome) -> None:
        if job.created_at is None:
            return
        duration_s = (datetime.utcnow() - job.created_at).total_seconds()
        log_generation_duration(job.id, duration_s, outcome.polls)

    async def _notify(self, job: JobModel, public_url: str) -> None:
        if self.notifier is None or not job.user_email:
            return
        try:
            await self.notifier.notify(
                job.user_email,
                public_url,
                {"job_id": job.id, "character_name": job.character_name},
            )
        except Exception as e:
            log_notification_failure(job.id, job.user_email, str(e))
