"""GCS upload client for rendered videos and their signed download URLs."""
import logging
import uuid
from datetime import timedelta
from typing import Any, Optional
from urllib.parse import unquote, urlparse

from fastapi.concurrency import run_in_threadpool

from quiz_video.errors import UploadError

logger = logging.getLogger(__name__)

# V4 signed URLs cannot outlive seven days.
MAX_SIGNED_URL_DAYS = 7


def blob_name_from_url(url: str) -> Optional[str]:
    """Last path segment of a storage URL, or None if there is none."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    name = unquote(parsed.path.rsplit("/", 1)[-1])
    return name or None


class UploadClient:
    """Pushes finished videos to a GCS bucket and hands out read-only URLs."""

    def __init__(
        self,
        bucket_name: str,
        retention_days: int = 7,
        project_id: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Any = None,
    ):
        if not bucket_name:
            raise UploadError("GCS bucket name is not configured")
        self.bucket_name = bucket_name
        self.retention_days = retention_days
        self.timeout = timeout
        if client is None:
            from google.cloud import storage as gcs_storage

            client = gcs_storage.Client(project=project_id or None)
        self._client = client

    @property
    def url_expiry(self) -> timedelta:
        return timedelta(days=max(1, min(self.retention_days, MAX_SIGNED_URL_DAYS)))

    def _request_timeout(self) -> float:
        # google-cloud-storage's own default when no deadline is configured
        return self.timeout if self.timeout is not None else 60

    async def ensure_container(self) -> None:
        """Create the bucket if it does not exist (idempotent)."""

        def _create_if_missing() -> bool:
            bucket = self._client.bucket(self.bucket_name)
            if bucket.exists(timeout=self._request_timeout()):
                return False
            self._client.create_bucket(bucket, timeout=self._request_timeout())
            return True

        try:
            created = await run_in_threadpool(_create_if_missing)
        except Exception as e:
            raise UploadError(f"Failed to initialize bucket {self.bucket_name}: {e}") from e
        if created:
            logger.info(f"Created bucket {self.bucket_name}")

    async def upload(self, job_id: str, video_bytes: bytes) -> str:
        """Upload a rendered video and return a time-limited signed URL."""
        blob_name = f"{job_id}-{uuid.uuid4()}.mp4"
        bucket = self._client.bucket(self.bucket_name)
        blob = bucket.blob(blob_name)
        blob.cache_control = "public, max-age=31536000"

        try:
            await run_in_threadpool(
                blob.upload_from_string,
                video_bytes,
                content_type="video/mp4",
                timeout=self._request_timeout(),
            )
            url = await run_in_threadpool(
                blob.generate_signed_url,
                version="v4",
                expiration=self.url_expiry,
                method="GET",
            )
        except Exception as e:
            raise UploadError(f"Failed to upload video: {e}", job_id=job_id) from e

        logger.info(f"Uploaded {len(video_bytes)} bytes for job {job_id} as {blob_name}")
        return url

    async def delete(self, url: str) -> None:
        blob_name = blob_name_from_url(url)
        if not blob_name:
            raise UploadError("Failed to delete video: Invalid blob URL")

        blob = self._client.bucket(self.bucket_name).blob(blob_name)
        try:
            await run_in_threadpool(blob.delete, timeout=self._request_timeout())
        except Exception as e:
            raise UploadError(f"Failed to delete video: {e}") from e
        logger.info(f"Deleted blob {blob_name}")
