"""
Application Settings Configuration
"""

from pydantic_settings import BaseSettings
from pydantic import Field
from typing import List, Literal, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Generation provider (fal.ai queue API)
    fal_key: str = Field(default="")
    fal_queue_base_url: str = Field(default="https://queue.fal.run")
    fal_model_id: str = Field(default="fal-ai/kling-video/v2.6/standard/motion-control")

    # Labels recorded on classified provider errors
    provider_name: str = Field(default="kling")
    provider_model_label: str = Field(default="klingai/kling-v2.6-motion-control")

    provider_request_timeout_s: float = Field(default=30.0)
    artifact_download_timeout_s: float = Field(default=300.0)

    # Database
    database_url: str = Field(default="sqlite:///./data/generations.db")

    # Redis / RQ
    redis_url: str = Field(default="redis://localhost:6379/0")
    rq_queue_name: str = Field(default="generations")
    rq_long_queue_name: str = Field(default="generations-long")

    # Orchestration
    trigger_mode: Literal["durable", "bounded"] = Field(default="durable")
    poll_interval_s: float = Field(default=30.0)
    poll_deadline_s: float = Field(default=15 * 60.0)
    bounded_poll_interval_s: float = Field(default=5.0)
    execution_window_s: float = Field(default=300.0)
    long_window_s: float = Field(default=20 * 60.0)
    bounded_handoff_enabled: bool = Field(default=True)
    step_retry_intervals_s: List[int] = Field(default_factory=lambda: [10, 30, 60])
    submission_claim_ttl_s: float = Field(default=120.0)

    # Artifact storage
    artifact_backend: Literal["local", "s3"] = Field(default="local")
    static_root: str = Field(default="/var/lib/swapvid/static")
    static_url_prefix: str = "/static"
    public_base_url: str = Field(default="http://localhost:8000")
    s3_bucket: str = Field(default="")
    s3_region: str = Field(default="us-east-1")
    s3_public_base_url: Optional[str] = Field(default=None)

    # Email notification (Resend)
    resend_api_key: str = Field(default="")
    resend_api_url: str = Field(default="https://api.resend.com/emails")
    email_from: str = Field(default="SwapVid <noreply@resend.dev>")

    # Application
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
