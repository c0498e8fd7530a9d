"""
Artifact Downloader - Download generated videos from provider URLs
"""

import httpx
from typing import Optional

from swapvid.services.observability import logger


class ArtifactDownloadError(Exception):
    """Provider artifact could not be transferred"""

    def __init__(self, message: str, url: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.url = url
        self.status_code = status_code


class ArtifactDownloader:
    """
    Download generated videos from provider URLs into memory
    """

    def __init__(self, timeout_s: float = 300.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        """Initialize downloader"""
        self.client = httpx.AsyncClient(timeout=timeout_s, transport=transport, follow_redirects=True)

    async def download_bytes(self, url: str) -> bytes:
        """
        Download artifact bytes

        Args:
            url: Provider artifact URL

        Returns:
            Artifact content

        Raises:
            ArtifactDownloadError: If the transfer fails
        """
        logger.info("artifact_download_start", url=url)

        chunks = []
        try:
            async with self.client.stream("GET", url) as response:
                response.raise_for_status()
                async for chunk in response.aiter_bytes(chunk_size=65536):
                    chunks.append(chunk)
        except httpx.HTTPStatusError as e:
            logger.error("artifact_download_failed", url=url, status_code=e.response.status_code)
            raise ArtifactDownloadError(
                f"Failed to download video: {e.response.status_code}",
                url=url,
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.error("artifact_download_failed", url=url, error=str(e))
            raise ArtifactDownloadError(f"Failed to download video: {e}", url=url) from e

        data = b"".join(chunks)
        logger.info("artifact_download_complete", url=url, size_bytes=len(data))
        return data

    async def close(self):
        """Close HTTP client"""
        await self.client.aclose()
