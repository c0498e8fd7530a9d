"""
Service Factory - Build orchestrators from settings
"""

from typing import Optional

from sqlalchemy.orm import Session

from swapvid.config.settings import Settings, settings as default_settings
from swapvid.core.orchestrator import JobOrchestrator
from swapvid.core.poll_loop import PollLoop
from swapvid.core.provider_client import FalQueueClient
from swapvid.services.artifact_downloader import ArtifactDownloader
from swapvid.services.artifact_store import LocalArtifactStore, S3ArtifactStore
from swapvid.services.error_classifier import ErrorClassifier
from swapvid.services.job_store import JobRecordStore
from swapvid.services.notifier import ResendEmailNotifier


def build_provider_client(config: Settings) -> FalQueueClient:
    return FalQueueClient(
        api_key=config.fal_key,
        model_id=config.fal_model_id,
        base_url=config.fal_queue_base_url,
        timeout_s=config.provider_request_timeout_s,
    )


def build_artifact_store(config: Settings):
    if config.artifact_backend == "s3":
        return S3ArtifactStore(
            bucket=config.s3_bucket,
            region=config.s3_region,
            public_base_url=config.s3_public_base_url,
        )
    return LocalArtifactStore(
        static_root=config.static_root,
        url_prefix=config.static_url_prefix,
        public_base_url=config.public_base_url,
    )


def build_notifier(config: Settings) -> Optional[ResendEmailNotifier]:
    if not config.resend_api_key:
        return None
    return ResendEmailNotifier(
        api_key=config.resend_api_key,
        sender=config.email_from,
        api_url=config.resend_api_url,
    )


def build_orchestrator(
    db: Session,
    poll_interval_s: Optional[float] = None,
    config: Optional[Settings] = None,
) -> JobOrchestrator:
    """
    Compose an orchestrator for one execution context

    Args:
        db: Database session owned by the caller
        poll_interval_s: Override for the poll interval (bounded path polls faster)
        config: Settings (defaults to the process settings)

    Returns:
        JobOrchestrator; call aclose() when done
    """
    config = config or default_settings
    provider = build_provider_client(config)
    return JobOrchestrator(
        job_store=JobRecordStore(db),
        provider=provider,
        artifact_store=build_artifact_store(config),
        downloader=ArtifactDownloader(timeout_s=config.artifact_download_timeout_s),
        poll_loop=PollLoop(
            provider,
            interval_s=poll_interval_s if poll_interval_s is not None else config.poll_interval_s,
            deadline_s=config.poll_deadline_s,
        ),
        classifier=ErrorClassifier(
            provider=config.provider_name,
            model=config.provider_model_label,
        ),
        notifier=build_notifier(config),
        claim_ttl_s=config.submission_claim_ttl_s,
    )
