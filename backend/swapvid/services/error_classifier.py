"""
Error Classifier - Map raw provider, transport and storage errors to a fixed taxonomy
"""

import json
from enum import Enum
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from swapvid.config.constants import TIMEOUT_REASON
from swapvid.config.settings import settings
from swapvid.core.poll_loop import DeadlineExceededError
from swapvid.core.provider_client import (
    MissingArtifactError,
    ProviderError,
    ProviderTransportError,
    ProviderValidationError,
)
from swapvid.services.artifact_downloader import ArtifactDownloadError
from swapvid.services.artifact_store import ArtifactStorageError


class ErrorKind(str, Enum):
    """Failure taxonomy recorded on failed jobs"""

    VALIDATION_ERROR = "validation_error"
    PROVIDER_ERROR = "provider_error"
    TIMEOUT = "timeout"
    STORAGE_ERROR = "storage_error"
    MISSING_ARTIFACT = "missing_artifact"
    TRANSPORT_ERROR = "transport_error"


class ClassifiedError(BaseModel):
    """Structured failure reason persisted on the job record"""

    kind: ErrorKind
    code: str
    message: str
    provider: Optional[str] = None
    model: Optional[str] = None
    details: Optional[str] = None
    retryable: bool = False

    def to_record(self) -> dict:
        return self.model_dump(mode="json")


class ErrorClassifier:
    """
    Classify raw errors for the job's terminal failure reason

    Provider error shapes are not strongly typed, so classification falls back
    to substring matching. Unrecognized shapes become provider_error with the
    raw text kept in details. classify() never raises.
    """

    # Error codes
    ERROR_GATEWAY_INTERNAL = "GATEWAY_INTERNAL_SERVER_ERROR"
    ERROR_PROVIDER = "PROVIDER_ERROR"
    ERROR_PROVIDER_AUTH = "PROVIDER_AUTH"
    ERROR_PROVIDER_RATE_LIMIT = "PROVIDER_RATE_LIMIT"
    ERROR_VALIDATION_FAILED = "VALIDATION_FAILED"
    ERROR_JOB_TIMEOUT = "JOB_TIMEOUT"
    ERROR_STORAGE_FAILED = "STORAGE_FAILED"
    ERROR_MISSING_ARTIFACT = "MISSING_ARTIFACT"
    ERROR_NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
    ERROR_NETWORK_ERROR = "NETWORK_ERROR"
    ERROR_DOWNLOAD_FAILED = "DOWNLOAD_FAILED"

    GATEWAY_INTERNAL_MARKER = "GatewayInternalServerError"

    def __init__(self, provider: Optional[str] = None, model: Optional[str] = None):
        self.provider = provider or settings.provider_name
        self.model = model or settings.provider_model_label

    def classify(self, raw_error: Any) -> ClassifiedError:
        """
        Classify a raw error

        Args:
            raw_error: Exception, provider payload (dict/list) or string

        Returns:
            ClassifiedError
        """
        try:
            return self._classify(raw_error)
        except Exception:
            return self._provider_error(self.ERROR_PROVIDER, "Provider request failed.", self._safe_str(raw_error))

    def _classify(self, raw_error: Any) -> ClassifiedError:
        if isinstance(raw_error, DeadlineExceededError):
            return ClassifiedError(
                kind=ErrorKind.TIMEOUT,
                code=self.ERROR_JOB_TIMEOUT,
                message=TIMEOUT_REASON,
                details=str(raw_error),
                retryable=True,
            )

        if isinstance(raw_error, ArtifactStorageError):
            return ClassifiedError(
                kind=ErrorKind.STORAGE_ERROR,
                code=self.ERROR_STORAGE_FAILED,
                message="Failed to save video",
                details=raw_error.message,
                retryable=True,
            )

        if isinstance(raw_error, MissingArtifactError):
            return ClassifiedError(
                kind=ErrorKind.MISSING_ARTIFACT,
                code=self.ERROR_MISSING_ARTIFACT,
                message="No videos were generated",
                provider=self.provider,
                model=self.model,
                details=self._serialize(raw_error),
            )

        if isinstance(raw_error, ArtifactDownloadError):
            return ClassifiedError(
                kind=ErrorKind.TRANSPORT_ERROR,
                code=self.ERROR_DOWNLOAD_FAILED,
                message=raw_error.message,
                details=raw_error.url,
                retryable=True,
            )

        if isinstance(raw_error, (ProviderTransportError, httpx.TransportError)):
            timed_out = isinstance(raw_error, httpx.TimeoutException) or isinstance(
                raw_error.__cause__, httpx.TimeoutException
            )
            return ClassifiedError(
                kind=ErrorKind.TRANSPORT_ERROR,
                code=self.ERROR_NETWORK_TIMEOUT if timed_out else self.ERROR_NETWORK_ERROR,
                message="Network error while contacting the video generation service",
                provider=self.provider,
                model=self.model,
                details=self._serialize(raw_error),
                retryable=True,
            )

        payload = raw_error.body if isinstance(raw_error, ProviderError) else raw_error
        validation_message = self._extract_validation_message(payload)
        if validation_message is not None or isinstance(raw_error, ProviderValidationError):
            return ClassifiedError(
                kind=ErrorKind.VALIDATION_ERROR,
                code=self.ERROR_VALIDATION_FAILED,
                message=validation_message or "Validation error",
                provider=self.provider,
                model=self.model,
                details=self._serialize(raw_error),
            )

        details = self._serialize(raw_error)

        if self.GATEWAY_INTERNAL_MARKER in details:
            return self._provider_error(
                self.ERROR_GATEWAY_INTERNAL,
                "AI Gateway/provider returned an internal server error.",
                details,
                retryable=True,
            )

        status_code = getattr(raw_error, "status_code", None)
        if status_code in (401, 403):
            return self._provider_error(
                self.ERROR_PROVIDER_AUTH,
                "Authentication with the video generation service failed.",
                details,
            )
        if status_code == 429:
            return self._provider_error(
                self.ERROR_PROVIDER_RATE_LIMIT,
                "Rate limit exceeded for video generation service.",
                details,
                retryable=True,
            )

        return self._provider_error(self.ERROR_PROVIDER, "Provider request failed.", details)

    def _provider_error(
        self,
        code: str,
        message: str,
        details: str,
        retryable: bool = False,
    ) -> ClassifiedError:
        return ClassifiedError(
            kind=ErrorKind.PROVIDER_ERROR,
            code=code,
            message=message,
            provider=self.provider,
            model=self.model,
            details=details,
            retryable=retryable,
        )

    def _extract_validation_message(self, payload: Any) -> Optional[str]:
        """
        Find a structured validation-detail array and return its first message

        Accepts the array itself, {"detail": [...]} and {"payload": {"detail": [...]}},
        or a JSON string of any of those.
        """
        if isinstance(payload, str):
            stripped = payload.strip()
            if not stripped.startswith(("[", "{")):
                return None
            try:
                payload = json.loads(stripped)
            except ValueError:
                return None

        if isinstance(payload, dict):
            if isinstance(payload.get("payload"), dict):
                payload = payload["payload"]
            payload = payload.get("detail")

        if not isinstance(payload, list) or not payload:
            return None

        first = payload[0]
        if isinstance(first, dict):
            message = first.get("msg") or first.get("message")
            if message:
                return str(message)
        elif isinstance(first, str) and first:
            return first
        return "Validation error"

    def _serialize(self, raw_error: Any) -> str:
        if isinstance(raw_error, BaseException):
            text = f"{type(raw_error).__name__}: {raw_error}"
            body = getattr(raw_error, "body", None)
            if body is not None:
                text = f"{text} | body={self._safe_str(body)}"
            return text
        return self._safe_str(raw_error)

    def _safe_str(self, value: Any) -> str:
        if isinstance(value, str):
            return value
        try:
            return json.dumps(value, default=str)
        except Exception:
            pass
        try:
            return str(value)
        except Exception:
            return f"<unprintable {type(value).__name__}>"
