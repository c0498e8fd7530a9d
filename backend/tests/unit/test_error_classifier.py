"""
Unit Tests for ErrorClassifier
"""

import httpx

from swapvid.config.constants import TIMEOUT_REASON
from swapvid.core.poll_loop import DeadlineExceededError
from swapvid.core.provider_client import (
    MissingArtifactError,
    ProviderRequestError,
    ProviderTransportError,
    ProviderValidationError,
)
from swapvid.services.artifact_downloader import ArtifactDownloadError
from swapvid.services.artifact_store import ArtifactStorageError
from swapvid.services.error_classifier import ErrorClassifier, ErrorKind


def _classifier():
    return ErrorClassifier(provider="kling", model="klingai/kling-v2.6-motion-control")


def test_gateway_internal_error_payload():
    """Gateway marker anywhere in the payload yields the gateway code."""
    raw = {
        "name": "GatewayInternalServerError",
        "message": "upstream blew up",
        "statusCode": 500,
    }

    classified = _classifier().classify(raw)

    assert classified.kind == ErrorKind.PROVIDER_ERROR
    assert classified.code == ErrorClassifier.ERROR_GATEWAY_INTERNAL
    assert classified.provider == "kling"
    assert classified.model == "klingai/kling-v2.6-motion-control"
    assert "upstream blew up" in classified.details
    assert classified.retryable is True


def test_gateway_marker_inside_exception_body():
    error = ProviderRequestError(
        "Provider request failed, status_code: 500",
        status_code=500,
        body={"type": "GatewayInternalServerError"},
    )

    classified = _classifier().classify(error)

    assert classified.code == ErrorClassifier.ERROR_GATEWAY_INTERNAL


def test_validation_detail_array_uses_first_message():
    classified = _classifier().classify([{"msg": "bad size"}, {"msg": "second"}])

    assert classified.kind == ErrorKind.VALIDATION_ERROR
    assert classified.code == ErrorClassifier.ERROR_VALIDATION_FAILED
    assert classified.message == "bad size"


def test_validation_detail_nested_under_payload():
    raw = {"payload": {"detail": [{"message": "image too small"}]}}

    classified = _classifier().classify(raw)

    assert classified.kind == ErrorKind.VALIDATION_ERROR
    assert classified.message == "image too small"


def test_validation_detail_in_json_string():
    classified = _classifier().classify('{"detail": [{"msg": "video too long"}]}')

    assert classified.kind == ErrorKind.VALIDATION_ERROR
    assert classified.message == "video too long"


def test_provider_validation_error_exception():
    error = ProviderValidationError(
        "Provider rejected request: 422",
        status_code=422,
        body={"detail": [{"msg": "unsupported format"}]},
    )

    classified = _classifier().classify(error)

    assert classified.kind == ErrorKind.VALIDATION_ERROR
    assert classified.message == "unsupported format"


def test_deadline_exceeded_is_timeout():
    classified = _classifier().classify(DeadlineExceededError("R1", 900.0, 900.0))

    assert classified.kind == ErrorKind.TIMEOUT
    assert classified.code == ErrorClassifier.ERROR_JOB_TIMEOUT
    assert classified.message == TIMEOUT_REASON


def test_storage_error():
    classified = _classifier().classify(ArtifactStorageError("disk full", key="generations/x.mp4"))

    assert classified.kind == ErrorKind.STORAGE_ERROR
    assert classified.details == "disk full"


def test_missing_artifact():
    classified = _classifier().classify(MissingArtifactError("no video url", body={"video": None}))

    assert classified.kind == ErrorKind.MISSING_ARTIFACT
    assert classified.code == ErrorClassifier.ERROR_MISSING_ARTIFACT


def test_transport_errors():
    """Network failures from the provider client and the downloader are transport errors."""
    request = httpx.Request("GET", "https://queue.fal.run")
    timeout = ProviderTransportError("Timeout calling provider")
    timeout.__cause__ = httpx.ReadTimeout("timed out", request=request)

    timeout_classified = _classifier().classify(timeout)
    network_classified = _classifier().classify(httpx.ConnectError("refused", request=request))
    download_classified = _classifier().classify(
        ArtifactDownloadError("Failed to download video: 404", url="https://fal.media/x.mp4", status_code=404)
    )

    assert timeout_classified.kind == ErrorKind.TRANSPORT_ERROR
    assert timeout_classified.code == ErrorClassifier.ERROR_NETWORK_TIMEOUT
    assert network_classified.kind == ErrorKind.TRANSPORT_ERROR
    assert network_classified.code == ErrorClassifier.ERROR_NETWORK_ERROR
    assert download_classified.kind == ErrorKind.TRANSPORT_ERROR
    assert download_classified.code == ErrorClassifier.ERROR_DOWNLOAD_FAILED


def test_status_code_mapping():
    auth = _classifier().classify(ProviderRequestError("denied", status_code=401))
    rate = _classifier().classify(ProviderRequestError("slow down", status_code=429))

    assert auth.code == ErrorClassifier.ERROR_PROVIDER_AUTH
    assert rate.code == ErrorClassifier.ERROR_PROVIDER_RATE_LIMIT
    assert rate.retryable is True


def test_unrecognized_shape_keeps_raw_details():
    classified = _classifier().classify("Processing failed on provider")

    assert classified.kind == ErrorKind.PROVIDER_ERROR
    assert classified.code == ErrorClassifier.ERROR_PROVIDER
    assert classified.details == "Processing failed on provider"


def test_classify_never_raises():
    class Unprintable:
        def __str__(self):
            raise RuntimeError("no")

        __repr__ = __str__

    classified = _classifier().classify(Unprintable())

    assert classified.kind == ErrorKind.PROVIDER_ERROR
    assert classified.details == "<unprintable Unprintable>"


def test_to_record_is_json_ready():
    record = _classifier().classify([{"msg": "bad size"}]).to_record()

    assert record["kind"] == "validation_error"
    assert record["message"] == "bad size"
    assert record["retryable"] is False
