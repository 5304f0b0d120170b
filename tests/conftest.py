import os
from pathlib import Path
from typing import List

import pytest
from fastapi.testclient import TestClient
from unittest.mock import MagicMock, AsyncMock

FAKE_MP3 = b"ID3\x04\x00\x00\x00\x00\x00\x00fake-mp3-frames"
SIGNED_URL = (
    "https://storage.googleapis.com/quiz-videos/job-1234.mp4"
    "?X-Goog-Algorithm=GOOG4-RSA-SHA256&X-Goog-Signature=abcdef0123"
)


def pytest_configure():
    os.environ.setdefault("GCS_BUCKET", "quiz-videos")
    os.environ.setdefault("AZURE_OPENAI_API_KEY", "test-azure-key")
    os.environ.setdefault("AZURE_OPENAI_ENDPOINT", "https://example.openai.azure.com")


@pytest.fixture
def sample_request_data():
    """Two questions with four options each, gradient style, default voice."""
    return {
        "questions": [
            {
                "question": "What is the capital of India?",
                "options": ["Mumbai", "New Delhi", "Chennai", "Kolkata"],
                "correctAnswer": 1,
            },
            {
                "question": "Which planet is known as the Red Planet?",
                "options": ["Venus", "Jupiter", "Mars", "Saturn"],
                "correctAnswer": 2,
            },
        ],
        "style": {
            "backgroundStyle": "gradient",
            "primaryColor": "#4A90E2",
            "secondaryColor": "#9B51E0",
        },
    }


@pytest.fixture
def sample_request(sample_request_data):
    from quiz_video.models.video import VideoRequest

    return VideoRequest(**sample_request_data)


@pytest.fixture
def mock_speech_provider():
    """Speech provider that returns a tiny mp3 payload without API calls."""
    provider = MagicMock()
    provider.synthesize = AsyncMock(return_value=FAKE_MP3)
    provider.is_valid_voice = MagicMock(return_value=True)
    provider.verify = AsyncMock(return_value=None)
    return provider


@pytest.fixture
def working_root(tmp_path) -> Path:
    return (tmp_path / "work").resolve()


@pytest.fixture
def resources(working_root):
    """Lifecycle manager with timing shrunk to zero."""
    from quiz_video.services.resources import ResourceLifecycleManager

    return ResourceLifecycleManager(working_root, settle_delay=0, retry_attempts=3, retry_backoff=0)


@pytest.fixture
def staging(working_root):
    """Staging server marked ready without binding a socket."""
    from quiz_video.services.staging_server import AudioStagingServer, StagingState

    server = AudioStagingServer(working_root, host="127.0.0.1", port=3001)
    server.state = StagingState.READY
    return server


class FakeRenderCoordinator:
    """Writes a placeholder mp4 into the job directory instead of rendering."""

    def __init__(self, resources):
        self.resources = resources
        self.calls: List[tuple] = []

    async def render(self, job_id, question, style, audio):
        self.calls.append((job_id, question, style, audio))
        output_path = self.resources.job_directory(job_id) / "output.mp4"
        output_path.write_bytes(b"\x00\x00\x00\x18ftypmp42fake-video")
        return output_path


@pytest.fixture
def fake_renderer(resources):
    return FakeRenderCoordinator(resources)


@pytest.fixture
def mock_uploader():
    uploader = MagicMock()
    uploader.upload = AsyncMock(return_value=SIGNED_URL)
    uploader.delete = AsyncMock(return_value=None)
    uploader.ensure_container = AsyncMock(return_value=None)
    return uploader


@pytest.fixture
def registry():
    from quiz_video.services.job_registry import JobRegistry

    return JobRegistry()


@pytest.fixture
def pipeline(resources, staging, mock_speech_provider, fake_renderer, mock_uploader, registry):
    """Pipeline wired with fakes for every external collaborator."""
    from quiz_video.services.pipeline import VideoPipeline
    from quiz_video.services.tts.orchestrator import TTSOrchestrator

    tts = TTSOrchestrator(mock_speech_provider, resources, default_voice="nova", timeout=5)
    return VideoPipeline(resources, staging, tts, fake_renderer, mock_uploader, registry)


@pytest.fixture
def test_client():
    """FastAPI test client."""
    from quiz_video.main import app

    yield TestClient(app)
    app.state.services = None
