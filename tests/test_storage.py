"""Tests for the GCS upload client."""
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from quiz_video.errors import UploadError
from quiz_video.services.storage import UploadClient, blob_name_from_url

SIGNED_URL = (
    "https://storage.googleapis.com/quiz-videos/job1-0f8e.mp4"
    "?X-Goog-Algorithm=GOOG4-RSA-SHA256&X-Goog-Signature=abcdef"
)


@pytest.fixture
def mock_gcs_client():
    """Mock google.cloud.storage.Client."""
    client = MagicMock()
    bucket = MagicMock()
    blob = MagicMock()
    blob.generate_signed_url.return_value = SIGNED_URL
    bucket.blob.return_value = blob
    bucket.exists.return_value = True
    client.bucket.return_value = bucket
    return client


@pytest.fixture
def uploader(mock_gcs_client):
    return UploadClient("quiz-videos", retention_days=7, timeout=30, client=mock_gcs_client)


def test_blob_name_from_url():
    assert blob_name_from_url(SIGNED_URL) == "job1-0f8e.mp4"
    assert blob_name_from_url("https://storage.googleapis.com/quiz-videos/a%20b.mp4") == "a b.mp4"
    assert blob_name_from_url("https://storage.googleapis.com/") is None
    assert blob_name_from_url("") is None


def test_missing_bucket_name_rejected(mock_gcs_client):
    with pytest.raises(UploadError):
        UploadClient("", client=mock_gcs_client)


def test_url_expiry_is_capped():
    assert UploadClient("b", retention_days=30, client=MagicMock()).url_expiry == timedelta(days=7)
    assert UploadClient("b", retention_days=0, client=MagicMock()).url_expiry == timedelta(days=1)
    assert UploadClient("b", retention_days=3, client=MagicMock()).url_expiry == timedelta(days=3)


@pytest.mark.asyncio
async def test_upload_returns_signed_url(uploader, mock_gcs_client):
    url = await uploader.upload("job1", b"video-bytes")

    assert url == SIGNED_URL
    bucket = mock_gcs_client.bucket.return_value
    blob_name = bucket.blob.call_args.args[0]
    assert blob_name.startswith("job1-")
    assert blob_name.endswith(".mp4")

    blob = bucket.blob.return_value
    blob.upload_from_string.assert_called_once_with(
        b"video-bytes", content_type="video/mp4", timeout=30
    )
    kwargs = blob.generate_signed_url.call_args.kwargs
    assert kwargs["method"] == "GET"
    assert kwargs["expiration"] == timedelta(days=7)


@pytest.mark.asyncio
async def test_upload_uses_unique_blob_names(uploader, mock_gcs_client):
    await uploader.upload("job1", b"a")
    await uploader.upload("job1", b"b")

    names = [call.args[0] for call in mock_gcs_client.bucket.return_value.blob.call_args_list]
    assert len(set(names)) == 2


@pytest.mark.asyncio
async def test_upload_failure_is_upload_error(uploader, mock_gcs_client):
    blob = mock_gcs_client.bucket.return_value.blob.return_value
    blob.upload_from_string.side_effect = ConnectionError("network unreachable")

    with pytest.raises(UploadError) as exc_info:
        await uploader.upload("job1", b"video-bytes")

    assert "Failed to upload video" in str(exc_info.value)
    assert exc_info.value.job_id == "job1"


@pytest.mark.asyncio
async def test_delete_uses_last_path_segment(uploader, mock_gcs_client):
    await uploader.delete(SIGNED_URL)

    bucket = mock_gcs_client.bucket.return_value
    bucket.blob.assert_called_with("job1-0f8e.mp4")
    bucket.blob.return_value.delete.assert_called_once_with(timeout=30)


@pytest.mark.asyncio
async def test_delete_invalid_url(uploader):
    with pytest.raises(UploadError) as exc_info:
        await uploader.delete("not a url")

    assert "Invalid blob URL" in str(exc_info.value)


@pytest.mark.asyncio
async def test_ensure_container_creates_missing_bucket(uploader, mock_gcs_client):
    mock_gcs_client.bucket.return_value.exists.return_value = False

    await uploader.ensure_container()

    mock_gcs_client.create_bucket.assert_called_once()


@pytest.mark.asyncio
async def test_ensure_container_skips_existing_bucket(uploader, mock_gcs_client):
    await uploader.ensure_container()

    mock_gcs_client.create_bucket.assert_not_called()
