"""
Provider Status Routes - Inspect a provider run directly
"""

from typing import Any, AsyncIterator, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from swapvid.config.settings import settings
from swapvid.core.provider_client import FalQueueClient, ProviderError
from swapvid.services.factory import build_provider_client
from swapvid.services.observability import logger


class ProviderStatusResponse(BaseModel):
    run_ref: str
    status: str
    raw_status: Optional[str] = None
    queue_position: Optional[int] = None
    error: Optional[Any] = None


async def get_provider_client() -> AsyncIterator[FalQueueClient]:
    client = build_provider_client(settings)
    try:
        yield client
    finally:
        await client.close()


router = APIRouter()


@router.get("/provider-status/{run_ref}", response_model=ProviderStatusResponse)
async def get_provider_status(
    run_ref: str,
    client: FalQueueClient = Depends(get_provider_client),
):
    """
    Ask the provider for the status of a run

    Debugging aid; does not touch any job record.
    """
    try:
        report = await client.poll_status(run_ref)
    except ProviderError as e:
        logger.warning("provider_status_failed", run_ref=run_ref, error=str(e), status_code=e.status_code)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "error": {
                    "code": "PROVIDER_UNAVAILABLE",
                    "message": str(e),
                }
            },
        )

    return ProviderStatusResponse(
        run_ref=run_ref,
        status=report.status.value,
        raw_status=report.raw_status,
        queue_position=report.queue_position,
        error=report.error,
    )
