"""
Provider Client - fal.ai queue API integration for motion-control video generation
"""

from enum import Enum
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field, field_validator

from swapvid.config.constants import CHARACTER_ORIENTATION
from swapvid.services.observability import logger


class ProviderStatus(str, Enum):
    """Normalized provider status (never persisted)"""

    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    UNKNOWN = "UNKNOWN"


TERMINAL_PROVIDER_STATUSES = {ProviderStatus.COMPLETED, ProviderStatus.FAILED}

_STATUS_MAP = {
    "IN_QUEUE": ProviderStatus.QUEUED,
    "QUEUED": ProviderStatus.QUEUED,
    "IN_PROGRESS": ProviderStatus.RUNNING,
    "RUNNING": ProviderStatus.RUNNING,
    "COMPLETED": ProviderStatus.COMPLETED,
    "OK": ProviderStatus.COMPLETED,
    "FAILED": ProviderStatus.FAILED,
    "ERROR": ProviderStatus.FAILED,
}


class JobInput(BaseModel):
    """Source references submitted to the provider"""

    source_video_url: str = Field(min_length=1)
    image_url: str = Field(min_length=1)

    @field_validator("source_video_url", "image_url", mode="before")
    @classmethod
    def strip_reference(cls, v):
        return v.strip() if isinstance(v, str) else v


class StatusReport(BaseModel):
    """Result of a single status poll"""

    run_ref: str
    status: ProviderStatus
    raw_status: Optional[str] = None
    error: Optional[Any] = None
    queue_position: Optional[int] = None
    logs: List[Any] = Field(default_factory=list)


class ProviderResult(BaseModel):
    """Completed provider output"""

    run_ref: str
    artifact_url: str


class ProviderError(Exception):
    """Base exception for provider failures"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[Any] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body


class ProviderTransportError(ProviderError):
    """Network failure or timeout while talking to the provider"""


class ProviderValidationError(ProviderError):
    """Provider rejected the input shape (structured detail array)"""


class ProviderRequestError(ProviderError):
    """Provider answered with an unexpected error response"""


class MissingArtifactError(ProviderError):
    """Provider reported success but returned no usable video reference"""


def _app_root(model_id: str) -> str:
    """
    Queue status/result endpoints are addressed by owner/app only,
    e.g. "fal-ai/kling-video/v2.6/standard/motion-control" -> "fal-ai/kling-video"
    """
    parts = [part for part in model_id.split("/") if part]
    return "/".join(parts[:2])


def _extract_artifact_url(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    video = data.get("video")
    if isinstance(video, dict):
        url = video.get("url")
        if isinstance(url, str) and url:
            return url
    return None


class FalQueueClient:
    """
    Client for the fal.ai queue REST API

    Holds no job state; every call is addressed by the provider run reference.
    Configuration is passed in explicitly by the composition root.
    """

    def __init__(
        self,
        api_key: str,
        model_id: str,
        base_url: str = "https://queue.fal.run",
        timeout_s: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.model_id = model_id.strip("/")
        self.app_root = _app_root(self.model_id)
        self.client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_s,
            headers={
                "Authorization": f"Key {api_key}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise ProviderTransportError(f"Timeout calling provider: {e}") from e
        except httpx.TransportError as e:
            raise ProviderTransportError(f"Network error calling provider: {e}") from e

        body: Any
        try:
            body = response.json()
        except ValueError:
            body = response.text

        if response.status_code >= 400:
            if isinstance(body, dict) and isinstance(body.get("detail"), list):
                raise ProviderValidationError(
                    f"Provider rejected request: {response.status_code}",
                    status_code=response.status_code,
                    body=body,
                )
            raise ProviderRequestError(
                f"Provider request failed, status_code: {response.status_code}, body: {response.text}",
                status_code=response.status_code,
                body=body,
            )

        return body

    async def submit(self, job_input: JobInput) -> str:
        """
        Submit a generation request to the provider queue

        Args:
            job_input: Source video and character image references

        Returns:
            Provider run reference (request_id)

        Raises:
            ProviderTransportError: On network failure
            ProviderValidationError: When the provider rejects the input
            ProviderRequestError: On any other error response
        """
        logger.info(
            "provider_submit_start",
            model_id=self.model_id,
            image_url=job_input.image_url,
            video_url=job_input.source_video_url,
        )

        body = await self._request(
            "POST",
            f"/{self.model_id}",
            json={
                "image_url": job_input.image_url,
                "video_url": job_input.source_video_url,
                "character_orientation": CHARACTER_ORIENTATION,
            },
        )

        run_ref = body.get("request_id") if isinstance(body, dict) else None
        if not isinstance(run_ref, str) or not run_ref:
            raise ProviderRequestError(
                "Provider accepted submission without a request_id",
                body=body,
            )

        logger.info("provider_submit_accepted", run_ref=run_ref)
        return run_ref

    async def poll_status(self, run_ref: str) -> StatusReport:
        """
        Fetch the current provider status for a run

        Args:
            run_ref: Provider run reference

        Returns:
            StatusReport with a normalized status

        Raises:
            ProviderError: On any transport or response failure
        """
        body = await self._request(
            "GET",
            f"/{self.app_root}/requests/{run_ref}/status",
            params={"logs": 1},
        )
        if not isinstance(body, dict):
            return StatusReport(run_ref=run_ref, status=ProviderStatus.UNKNOWN)

        raw_status = body.get("status")
        normalized = (
            _STATUS_MAP.get(raw_status.strip().upper(), ProviderStatus.UNKNOWN)
            if isinstance(raw_status, str)
            else ProviderStatus.UNKNOWN
        )
        error = body.get("error")
        if normalized == ProviderStatus.COMPLETED and error:
            normalized = ProviderStatus.FAILED

        return StatusReport(
            run_ref=run_ref,
            status=normalized,
            raw_status=raw_status if isinstance(raw_status, str) else None,
            error=error,
            queue_position=body.get("queue_position"),
            logs=body.get("logs") or [],
        )

    async def fetch_result(self, run_ref: str) -> ProviderResult:
        """
        Fetch the output of a completed run

        Args:
            run_ref: Provider run reference

        Returns:
            ProviderResult with the artifact URL

        Raises:
            MissingArtifactError: When the payload has no video URL
            ProviderValidationError: When the provider reports input validation detail
            ProviderError: On any other transport or response failure
        """
        body = await self._request("GET", f"/{self.app_root}/requests/{run_ref}")

        data: Dict[str, Any] = body if isinstance(body, dict) else {}
        if isinstance(data.get("data"), dict):
            data = data["data"]

        artifact_url = _extract_artifact_url(data)
        if not artifact_url:
            if isinstance(data.get("detail"), list):
                raise ProviderValidationError(
                    "Provider result carries validation detail",
                    body=data,
                )
            raise MissingArtifactError(
                "Video generation completed but no video url returned",
                body=body,
            )

        logger.info("provider_result_fetched", run_ref=run_ref, artifact_url=artifact_url)
        return ProviderResult(run_ref=run_ref, artifact_url=artifact_url)

    async def close(self):
        """Close HTTP client"""
        await self.client.aclose()
