"""
Artifact Storage Service - Persist generated videos and return public URLs
"""

import os
from datetime import datetime
from pathlib import Path
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from swapvid.config.constants import (
    ARTIFACT_CONTENT_TYPE,
    ARTIFACT_EXTENSION,
    ARTIFACT_KEY_PREFIX,
)
from swapvid.config.settings import settings
from swapvid.services.observability import logger


class ArtifactStorageError(Exception):
    """Artifact could not be persisted"""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.key = key


def build_artifact_key(job_id: str, now: Optional[datetime] = None) -> str:
    """
    Build a storage key unique per job and attempt

    Args:
        job_id: Job identifier
        now: Timestamp of the attempt (defaults to utcnow)

    Returns:
        Key like "generations/<job_id>-<epoch_ms>.mp4"
    """
    ts = now or datetime.utcnow()
    epoch_ms = int((ts - datetime(1970, 1, 1)).total_seconds() * 1000)
    return f"{ARTIFACT_KEY_PREFIX}/{job_id}-{epoch_ms}.{ARTIFACT_EXTENSION}"


class LocalArtifactStore:
    """
    Stores artifacts under the static root served by the API
    """

    def __init__(
        self,
        static_root: Optional[str] = None,
        url_prefix: Optional[str] = None,
        public_base_url: Optional[str] = None,
    ):
        """Initialize local artifact storage"""
        self.static_root = static_root or settings.static_root
        self.url_prefix = url_prefix if url_prefix is not None else settings.static_url_prefix
        self.public_base_url = (
            public_base_url if public_base_url is not None else settings.public_base_url
        ).rstrip("/")

    def get_storage_path(self, key: str) -> str:
        """
        Get absolute file path for a storage key

        Raises:
            ArtifactStorageError: If the key escapes the static root
        """
        root = os.path.abspath(self.static_root)
        path = os.path.abspath(os.path.join(root, key))
        if not path.startswith(root + os.sep):
            raise ArtifactStorageError(f"Invalid artifact key: {key}", key=key)
        return path

    def get_public_url(self, key: str) -> str:
        return f"{self.public_base_url}{self.url_prefix}/{key}"

    def store(self, key: str, data: bytes, content_type: str = ARTIFACT_CONTENT_TYPE) -> str:
        """
        Write artifact bytes and return the public URL

        Args:
            key: Storage key
            data: Artifact bytes
            content_type: MIME type (unused for local files)

        Returns:
            Public URL of the stored artifact

        Raises:
            ArtifactStorageError: If the write fails
        """
        path = self.get_storage_path(key)
        try:
            Path(os.path.dirname(path)).mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as f:
                f.write(data)
        except OSError as e:
            logger.error("artifact_store_failed", key=key, backend="local", error=str(e))
            raise ArtifactStorageError(f"Failed to write artifact {key}: {e}", key=key) from e

        url = self.get_public_url(key)
        logger.info("artifact_stored", key=key, backend="local", size_bytes=len(data), url=url)
        return url


class S3ArtifactStore:
    """S3-backed artifact storage with public-read objects"""

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        public_base_url: Optional[str] = None,
        s3_client=None,
    ) -> None:
        """
        Initialize S3 artifact storage.

        Args:
            bucket: S3 bucket name
            region: AWS region for the bucket
            public_base_url: Base URL objects are served from (CDN or bucket URL)
            s3_client: Optional preconfigured boto3 client
        """
        self._bucket = bucket
        self._region = region
        self._public_base_url = (
            public_base_url or f"https://{bucket}.s3.{region}.amazonaws.com"
        ).rstrip("/")
        self._s3_client = s3_client or boto3.client("s3", region_name=region)

    def store(self, key: str, data: bytes, content_type: str = ARTIFACT_CONTENT_TYPE) -> str:
        """
        Upload artifact bytes and return the public URL

        Raises:
            ArtifactStorageError: If the upload fails
        """
        try:
            self._s3_client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                ACL="public-read",
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("artifact_store_failed", key=key, backend="s3", error=str(e))
            raise ArtifactStorageError(f"Failed to upload artifact {key}: {e}", key=key) from e

        url = f"{self._public_base_url}/{key}"
        logger.info("artifact_stored", key=key, backend="s3", size_bytes=len(data), url=url)
        return url
