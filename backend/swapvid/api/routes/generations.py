"""
Generation API Routes
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session

from swapvid.config.constants import ASPECT_RATIO_OPTIONS, DEFAULT_ASPECT_RATIO
from swapvid.models import get_db
from swapvid.models.job import JobModel
from swapvid.services.job_state import is_terminal_state
from swapvid.services.job_store import JobRecordStore
from swapvid.services.observability import logger
from swapvid.workers.triggers import TriggerStrategy, build_trigger


# Request/Response Models


class GenerationRequest(BaseModel):
    """Request to start a character swap generation"""

    video_url: Optional[str] = Field(None, description="Source video URL")
    character_image_url: Optional[str] = Field(None, description="Character image URL")
    user_id: Optional[str] = Field(None, description="Requesting user")
    user_email: Optional[str] = None
    character_name: Optional[str] = None
    send_email: bool = False
    aspect_ratio: str = Field(default=DEFAULT_ASPECT_RATIO)
    job_id: Optional[str] = Field(None, description="Existing job to re-trigger")

    @field_validator("video_url", "character_image_url", "user_id", mode="before")
    @classmethod
    def strip_blank(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return v

    @field_validator("aspect_ratio")
    @classmethod
    def validate_aspect_ratio(cls, v):
        if v not in ASPECT_RATIO_OPTIONS:
            raise ValueError(f"aspect_ratio must be one of: {', '.join(ASPECT_RATIO_OPTIONS)}")
        return v


class GenerationResponse(BaseModel):
    """Response for generation request"""

    job_id: str
    status: str
    message: str


class JobStatusResponse(BaseModel):
    """Job status response"""

    job_id: str
    status: str
    user_id: str
    character_name: Optional[str] = None
    aspect_ratio: str
    run_ref: Optional[str] = None
    result_url: Optional[str] = None
    failure_reason: Optional[Dict[str, Any]] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    completed_at: Optional[str] = None


class JobListResponse(BaseModel):
    jobs: List[JobStatusResponse]
    total: int


def _to_response(job: JobModel) -> JobStatusResponse:
    data = job.to_dict()
    return JobStatusResponse(
        job_id=job.id,
        status=job.status,
        user_id=job.user_id,
        character_name=job.character_name,
        aspect_ratio=job.aspect_ratio,
        run_ref=job.provider_run_ref,
        result_url=job.result_url,
        failure_reason=job.failure_reason,
        created_at=data["created_at"],
        updated_at=data["updated_at"],
        completed_at=data["completed_at"],
    )


def _error(status_code: int, code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={
            "error": {
                "code": code,
                "message": message,
            }
        },
    )


_trigger: Optional[TriggerStrategy] = None


def get_trigger() -> TriggerStrategy:
    """Dependency returning the deployment's trigger strategy"""
    global _trigger
    if _trigger is None:
        _trigger = build_trigger()
    return _trigger


# Router
router = APIRouter()


@router.post("/generations", response_model=GenerationResponse, status_code=status.HTTP_202_ACCEPTED)
async def create_generation(
    request: GenerationRequest,
    db: Session = Depends(get_db),
    trigger: TriggerStrategy = Depends(get_trigger),
):
    """
    Create a generation job and start orchestration

    Returns before the job reaches a terminal state. Passing job_id for an
    existing job re-triggers it; the orchestrator resumes instead of
    resubmitting.

    Args:
        request: Generation request
        db: Database session
        trigger: Trigger strategy

    Returns:
        GenerationResponse with job_id
    """
    if not request.user_id:
        raise _error(status.HTTP_401_UNAUTHORIZED, "UNAUTHORIZED", "Unauthorized")
    if not request.video_url or not request.character_image_url:
        raise _error(
            status.HTTP_400_BAD_REQUEST,
            "VALIDATION_ERROR",
            "Video and character image are required",
        )

    store = JobRecordStore(db)
    job = store.get(request.job_id) if request.job_id else None

    if job is not None:
        if job.user_id != request.user_id:
            raise _error(status.HTTP_404_NOT_FOUND, "JOB_NOT_FOUND", f"Job {request.job_id} not found")
        if is_terminal_state(job.status):
            return GenerationResponse(
                job_id=job.id,
                status=job.status,
                message="Job already finished.",
            )
        logger.info("generation_retrigger", job_id=job.id, status=job.status)
    else:
        job = store.create(
            user_id=request.user_id,
            input_video_url=request.video_url,
            character_image_url=request.character_image_url,
            user_email=request.user_email if request.send_email else None,
            character_name=request.character_name,
            aspect_ratio=request.aspect_ratio,
            job_id=request.job_id,
        )
        logger.info(
            "generation_created",
            job_id=job.id,
            user_id=request.user_id,
            aspect_ratio=job.aspect_ratio,
            send_email=request.send_email,
        )

    try:
        await trigger.start(job.id)
    except Exception as e:
        logger.error(
            "generation_trigger_failed",
            job_id=job.id,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "TRIGGER_FAILED",
            "Failed to start generation workflow",
        )

    return GenerationResponse(
        job_id=job.id,
        status=job.status,
        message=f"Generation started. Use GET /v1/generations/{job.id} to check status.",
    )


@router.get("/generations/{job_id}", response_model=JobStatusResponse)
async def get_generation(job_id: str, db: Session = Depends(get_db)):
    """Get the current state of a generation job"""
    job = JobRecordStore(db).get(job_id)
    if job is None:
        raise _error(status.HTTP_404_NOT_FOUND, "JOB_NOT_FOUND", f"Job {job_id} not found")
    return _to_response(job)


@router.get("/generations", response_model=JobListResponse)
async def list_generations(
    user_id: str = Query(..., min_length=1),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    jobs = JobRecordStore(db).list_jobs(user_id=user_id, skip=skip, limit=limit)
    return JobListResponse(jobs=[_to_response(job) for job in jobs], total=len(jobs))
