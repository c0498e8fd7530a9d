"""
Generation Job Model
"""

import uuid
from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, Text, JSON, DateTime, Index

from swapvid.models import Base


class JobStatus(str, Enum):
    """Job lifecycle states"""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"


class JobModel(Base):
    """
    Generation - one user-initiated video generation request

    Request context and source references are immutable after creation.
    The provider run reference is written once, before the first poll, and
    exactly one terminal write (complete or failed) is ever accepted.
    """

    __tablename__ = "generations"

    # Public job identifier
    id = Column(String, primary_key=True, default=lambda: JobModel.generate_job_id())

    # Request context
    user_id = Column(String, nullable=False)
    user_email = Column(String, nullable=True)
    character_name = Column(String, nullable=True)

    # Source references
    input_video_url = Column(Text, nullable=False)
    character_image_url = Column(Text, nullable=False)
    aspect_ratio = Column(String, nullable=False, default="fill")

    # Lifecycle
    status = Column(String, nullable=False, default=JobStatus.PENDING.value, index=True)
    provider_run_ref = Column(String, nullable=True)
    submission_claimed_at = Column(DateTime, nullable=True)
    polling_started_at = Column(DateTime, nullable=True)  # Poll deadline origin

    # Outcome
    result_url = Column(Text, nullable=True)
    failure_reason = Column(JSON, nullable=True)  # ClassifiedError payload

    # State transitions
    state_transitions = Column(JSON, nullable=False, default=list)  # [{"status": ..., "timestamp": ..., "event": ...}]

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    submitted_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_generations_user_id", "user_id"),
        Index("idx_generations_created_at", "created_at"),
    )

    def to_dict(self) -> dict:
        """Convert job model to dictionary"""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_email": self.user_email,
            "character_name": self.character_name,
            "input_video_url": self.input_video_url,
            "character_image_url": self.character_image_url,
            "aspect_ratio": self.aspect_ratio,
            "status": self.status,
            "provider_run_ref": self.provider_run_ref,
            "result_url": self.result_url,
            "failure_reason": self.failure_reason,
            "state_transitions": self.state_transitions,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "polling_started_at": self.polling_started_at.isoformat() if self.polling_started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    @staticmethod
    def generate_job_id() -> str:
        """Generate a unique job ID"""
        return str(uuid.uuid4())
