"""Process-start wiring of the pipeline's collaborators."""
import logging
from dataclasses import dataclass
from pathlib import Path

from quiz_video.config import Settings
from quiz_video.errors import ConfigurationError, QuizVideoError
from quiz_video.services.job_registry import JobRegistry
from quiz_video.services.pipeline import VideoPipeline
from quiz_video.services.render import RemotionRenderer, RenderCoordinator
from quiz_video.services.resources import ResourceLifecycleManager
from quiz_video.services.staging_server import AudioStagingServer
from quiz_video.services.storage import UploadClient
from quiz_video.services.tts import SpeechProviderFactory, TTSOrchestrator
from quiz_video.services.tts.base import SpeechProvider

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """One instance of each collaborator, created once per process."""

    settings: Settings
    resources: ResourceLifecycleManager
    staging: AudioStagingServer
    speech: SpeechProvider
    renderer: RemotionRenderer
    uploader: UploadClient
    registry: JobRegistry
    pipeline: VideoPipeline

    async def start(self) -> None:
        await self.staging.start()

        if self.settings.TTS_VERIFY_ON_STARTUP:
            try:
                await self.speech.verify(self.settings.TTS_DEFAULT_VOICE)
            except QuizVideoError as e:
                raise ConfigurationError(f"Voice provider verification failed: {e}") from e
            logger.info("Voice provider verified")

        try:
            await self.uploader.ensure_container()
        except QuizVideoError as e:
            logger.error(f"Storage bucket initialization failed: {e}")

        self.resources.start_sweeper(
            interval_hours=self.settings.STALE_SWEEP_INTERVAL_HOURS,
            max_age_hours=self.settings.STALE_JOB_MAX_AGE_HOURS,
        )

    async def stop(self, drain_timeout: float = 30.0) -> None:
        await self.pipeline.drain(timeout=drain_timeout)
        await self.staging.shutdown()
        await self.resources.stop_sweeper()
        self.renderer.close()
        await self.resources.cleanup_all()


def build_services(settings: Settings) -> ServiceContainer:
    """Instantiate every collaborator from injected settings."""
    root = Path(settings.WORKING_ROOT)
    resources = ResourceLifecycleManager(
        root,
        settle_delay=settings.CLEANUP_SETTLE_SECONDS,
        retry_attempts=settings.CLEANUP_RETRY_ATTEMPTS,
        retry_backoff=settings.CLEANUP_RETRY_BACKOFF_SECONDS,
    )
    staging = AudioStagingServer(
        resources.root,
        host=settings.STAGING_SERVER_HOST,
        port=settings.STAGING_SERVER_PORT,
    )
    speech = SpeechProviderFactory.create(settings)
    tts = TTSOrchestrator(
        speech,
        resources,
        default_voice=settings.TTS_DEFAULT_VOICE,
        timeout=settings.TTS_TIMEOUT_SECONDS,
    )
    renderer = RemotionRenderer(
        Path(settings.REMOTION_PROJECT_DIR),
        entry_point=settings.REMOTION_ENTRY_POINT,
        binary=settings.REMOTION_BINARY,
        codec=settings.VIDEO_CODEC,
        timeout=settings.RENDER_TIMEOUT_SECONDS,
    )
    coordinator = RenderCoordinator(
        renderer,
        resources,
        composition_id=settings.REMOTION_COMPOSITION_ID,
        fps=settings.VIDEO_FPS,
        duration_seconds=settings.VIDEO_DURATION_SECONDS,
        url_check_timeout=settings.URL_CHECK_TIMEOUT_SECONDS,
    )
    uploader = UploadClient(
        settings.GCS_BUCKET,
        retention_days=settings.STORAGE_RETENTION_DAYS,
        project_id=settings.GCS_PROJECT_ID,
        timeout=settings.UPLOAD_TIMEOUT_SECONDS,
    )
    registry = JobRegistry()
    pipeline = VideoPipeline(resources, staging, tts, coordinator, uploader, registry)
    return ServiceContainer(
        settings=settings,
        resources=resources,
        staging=staging,
        speech=speech,
        renderer=renderer,
        uploader=uploader,
        registry=registry,
        pipeline=pipeline,
    )
