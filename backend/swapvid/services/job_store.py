"""
Job Record Store - Database operations for generation jobs

Every lifecycle write is a conditional UPDATE guarded by the row's current
state, so overlapping runs for the same job arbitrate in the database.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from swapvid.config.constants import (
    DEFAULT_ASPECT_RATIO,
    JOB_STATUS_COMPLETE,
    JOB_STATUS_FAILED,
    JOB_STATUS_PENDING,
    JOB_STATUS_PROCESSING,
    TERMINAL_STATUSES,
)
from swapvid.models.job import JobModel
from swapvid.services.job_state import source_states
from swapvid.services.observability import logger


class JobNotFoundError(LookupError):
    """Job record does not exist"""

    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class JobRecordStore:
    """Job database operations bound to one session"""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        user_id: str,
        input_video_url: str,
        character_image_url: str,
        user_email: Optional[str] = None,
        character_name: Optional[str] = None,
        aspect_ratio: Optional[str] = None,
        job_id: Optional[str] = None,
    ) -> JobModel:
        """Create a new pending job"""
        now = datetime.utcnow()
        job = JobModel(
            id=job_id or JobModel.generate_job_id(),
            user_id=user_id,
            user_email=user_email,
            character_name=character_name,
            input_video_url=input_video_url,
            character_image_url=character_image_url,
            aspect_ratio=aspect_ratio or DEFAULT_ASPECT_RATIO,
            status=JOB_STATUS_PENDING,
            state_transitions=[
                {
                    "status": JOB_STATUS_PENDING,
                    "timestamp": now.isoformat(),
                    "event": "job_created",
                }
            ],
            created_at=now,
        )
        self.db.add(job)
        self.db.commit()
        self.db.refresh(job)
        return job

    def get(self, job_id: str) -> Optional[JobModel]:
        """Get job by ID"""
        return self.db.get(JobModel, job_id)

    def require(self, job_id: str) -> JobModel:
        """
        Get job by ID

        Raises:
            JobNotFoundError: If the job does not exist
        """
        job = self.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def list_jobs(
        self,
        user_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[JobModel]:
        """List jobs newest first, optionally for one user"""
        query = self.db.query(JobModel)
        if user_id:
            query = query.filter(JobModel.user_id == user_id)
        return query.order_by(JobModel.created_at.desc()).offset(skip).limit(limit).all()

    def _conditional_update(self, job_id: str, conditions: List[Any], values: Dict[str, Any]) -> bool:
        values = dict(values, updated_at=datetime.utcnow())
        result = self.db.execute(
            update(JobModel)
            .where(JobModel.id == job_id, *conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount == 1

    def _record_transition(self, job_id: str, status: str, event: str, timestamp: datetime) -> None:
        job = self.get(job_id)
        if job is None:
            return
        transitions = list(job.state_transitions or [])
        transitions.append(
            {
                "status": status,
                "timestamp": timestamp.isoformat(),
                "event": event,
            }
        )
        job.state_transitions = transitions
        self.db.commit()

    def claim_submission(
        self,
        job_id: str,
        ttl_s: float,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Claim the right to submit this job to the provider

        Succeeds only while no run reference is recorded and no other claim
        younger than ttl_s exists. An expired claim (a submitter that died
        before recording its run reference) may be taken over.

        Returns:
            True if this caller now owns submission
        """
        ts = now or datetime.utcnow()
        claimed = self._conditional_update(
            job_id,
            [
                JobModel.provider_run_ref.is_(None),
                JobModel.status.in_([JOB_STATUS_PENDING, JOB_STATUS_PROCESSING]),
                or_(
                    JobModel.submission_claimed_at.is_(None),
                    JobModel.submission_claimed_at < ts - timedelta(seconds=ttl_s),
                ),
            ],
            {"status": JOB_STATUS_PROCESSING, "submission_claimed_at": ts},
        )
        if claimed:
            self._record_transition(job_id, JOB_STATUS_PROCESSING, "submission_claimed", ts)
        return claimed

    def mark_submitted(self, job_id: str, run_ref: str, now: Optional[datetime] = None) -> bool:
        """
        Record the provider run reference (set at most once)

        Returns:
            True if recorded, False if a reference already exists or the job is terminal
        """
        ts = now or datetime.utcnow()
        recorded = self._conditional_update(
            job_id,
            [
                JobModel.provider_run_ref.is_(None),
                JobModel.status.not_in(TERMINAL_STATUSES),
            ],
            {
                "provider_run_ref": run_ref,
                "status": JOB_STATUS_PROCESSING,
                "submitted_at": ts,
            },
        )
        if recorded:
            self._record_transition(job_id, JOB_STATUS_PROCESSING, "provider_submitted", ts)
        else:
            logger.warning("mark_submitted_skipped", job_id=job_id, run_ref=run_ref)
        return recorded

    def mark_polling_started(self, job_id: str, now: Optional[datetime] = None) -> Optional[datetime]:
        """
        Record the poll deadline origin once

        Returns:
            The recorded origin (existing or new), None if the job is missing
        """
        ts = now or datetime.utcnow()
        self._conditional_update(
            job_id,
            [JobModel.polling_started_at.is_(None)],
            {"polling_started_at": ts},
        )
        job = self.get(job_id)
        return job.polling_started_at if job else None

    def mark_complete(self, job_id: str, result_url: str, now: Optional[datetime] = None) -> bool:
        """
        Terminal write: complete

        Returns:
            True if this call performed the terminal write, False if it was a no-op
        """
        ts = now or datetime.utcnow()
        written = self._conditional_update(
            job_id,
            [JobModel.status.in_(source_states(JOB_STATUS_COMPLETE))],
            {
                "status": JOB_STATUS_COMPLETE,
                "result_url": result_url,
                "completed_at": ts,
            },
        )
        if written:
            self._record_transition(job_id, JOB_STATUS_COMPLETE, "generation_complete", ts)
        else:
            logger.info("terminal_write_skipped", job_id=job_id, attempted=JOB_STATUS_COMPLETE)
        return written

    def mark_failed(self, job_id: str, reason: Dict[str, Any], now: Optional[datetime] = None) -> bool:
        """
        Terminal write: failed

        Args:
            job_id: Job identifier
            reason: Structured failure reason

        Returns:
            True if this call performed the terminal write, False if it was a no-op
        """
        ts = now or datetime.utcnow()
        written = self._conditional_update(
            job_id,
            [JobModel.status.in_(source_states(JOB_STATUS_FAILED))],
            {
                "status": JOB_STATUS_FAILED,
                "failure_reason": reason,
                "completed_at": ts,
            },
        )
        if written:
            self._record_transition(job_id, JOB_STATUS_FAILED, "generation_failed", ts)
        else:
            logger.info("terminal_write_skipped", job_id=job_id, attempted=JOB_STATUS_FAILED)
        return written
