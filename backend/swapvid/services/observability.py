"""
Observability and Logging Service
"""

import logging

import structlog
from typing import Any, Dict, Optional

from swapvid.config.settings import settings


logging.basicConfig(format="%(message)s", level=settings.log_level)

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

# Get logger
logger = structlog.get_logger("swapvid")


def log_submission(job_id: str, run_ref: str, resubmitted: bool = False) -> None:
    """
    Log a provider submission

    Args:
        job_id: Job ID
        run_ref: Provider request identifier returned by submit
        resubmitted: True when an expired submission claim was taken over
    """
    logger.info(
        "provider_submitted",
        job_id=job_id,
        run_ref=run_ref,
        resubmitted=resubmitted,
    )


def log_poll_tick(
    job_id: Optional[str],
    run_ref: str,
    status: str,
    elapsed_s: float,
    attempt: int,
) -> None:
    """
    Log a single status poll

    Args:
        job_id: Job ID (None when polling outside an orchestrated run)
        run_ref: Provider request identifier
        status: Normalized provider status
        elapsed_s: Seconds since the first poll
        attempt: 1-based poll counter
    """
    log_data: Dict[str, Any] = {
        "run_ref": run_ref,
        "status": status,
        "elapsed_s": round(elapsed_s, 1),
        "attempt": attempt,
    }
    if job_id:
        log_data["job_id"] = job_id

    logger.info("provider_polled", **log_data)


def log_failure_classification(
    kind: str,
    code: str,
    retryable: bool,
    job_id: Optional[str] = None,
) -> None:
    """
    Log failure classification event

    Args:
        kind: Taxonomy kind (e.g., "provider_error", "timeout")
        code: Error code (e.g., "GATEWAY_INTERNAL_SERVER_ERROR")
        retryable: Whether the underlying cause is transient
        job_id: Optional job ID for context
    """
    log_data = {
        "kind": kind,
        "code": code,
        "retryable": retryable,
    }
    if job_id:
        log_data["job_id"] = job_id

    logger.error("failure_classified", **log_data)


def log_generation_duration(job_id: str, duration_s: float, poll_count: int) -> None:
    """
    Log end-to-end generation duration

    Args:
        job_id: Job ID
        duration_s: Seconds from orchestration start to terminal write
        poll_count: Number of status polls performed in this run
    """
    logger.info(
        "generation_completed",
        job_id=job_id,
        duration_s=round(duration_s, 1),
        poll_count=poll_count,
    )


def log_notification_failure(job_id: str, address: str, error: str) -> None:
    """Log a swallowed notification failure"""
    logger.warning(
        "notification_failed",
        job_id=job_id,
        address=address,
        error=error,
    )
