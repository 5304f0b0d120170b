"""
Video pipeline orchestrator.

Accepted -> Staging (speech + URL resolution) -> Rendering -> Uploading ->
Completed, with any stage able to fail. Whatever the outcome, the job is
unregistered from the active set before its working directory is cleaned
up.
"""
import asyncio
import logging
import uuid
from typing import List, Optional, Set

from fastapi.concurrency import run_in_threadpool

from quiz_video.errors import (
    ConflictError,
    NotReadyError,
    QuizVideoError,
    RenderError,
    ResourceError,
    SynthesisError,
    UploadError,
    ValidationError,
)
from quiz_video.models.jobs import JobRecord, JobStage
from quiz_video.models.video import AudioAsset, AudioUrls, VideoRequest
from quiz_video.services.job_registry import JobRegistry
from quiz_video.services.render import RenderCoordinator
from quiz_video.services.resources import ResourceLifecycleManager
from quiz_video.services.staging_server import AudioStagingServer
from quiz_video.services.storage import UploadClient
from quiz_video.services.tts.orchestrator import TTSOrchestrator

logger = logging.getLogger(__name__)

# Error kind used for unexpected exceptions raised inside each stage.
STAGE_ERRORS = {
    JobStage.ACCEPTED: ResourceError,
    JobStage.STAGING: SynthesisError,
    JobStage.RENDERING: RenderError,
    JobStage.UPLOADING: UploadError,
}


def new_job_id() -> str:
    return uuid.uuid4().hex


class VideoPipeline:
    """Runs quiz video jobs end to end."""

    def __init__(
        self,
        resources: ResourceLifecycleManager,
        staging: AudioStagingServer,
        tts: TTSOrchestrator,
        renderer: RenderCoordinator,
        uploader: UploadClient,
        registry: JobRegistry,
    ):
        self.resources = resources
        self.staging = staging
        self.tts = tts
        self.renderer = renderer
        self.uploader = uploader
        self.registry = registry
        self._tasks: Set[asyncio.Task] = set()

    def submit(self, request: VideoRequest) -> str:
        """Accept a job and run it in the background; returns the job id."""
        self._validate(request)
        job_id = new_job_id()
        self.registry.create(job_id)
        task = asyncio.create_task(self._run_in_background(job_id, request), name=f"video-job-{job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info(f"Accepted job {job_id} with {len(request.questions)} questions")
        return job_id

    async def generate(self, request: VideoRequest) -> str:
        """Synchronous variant: run a job to completion and return its URL."""
        self._validate(request)
        job_id = new_job_id()
        self.registry.create(job_id)
        return await self.run(job_id, request)

    async def run(self, job_id: str, request: VideoRequest) -> str:
        """Execute every stage for an already-registered job.

        Raises:
            QuizVideoError: after the job has been recorded as Failed and its
                working directory cleaned up
            asyncio.CancelledError: likewise recorded as Failed and cleaned up
                before propagating
        """
        stage = JobStage.ACCEPTED
        self.resources.register_active(job_id)
        logger.info(f"Starting video generation for job {job_id}")
        try:
            self.resources.create_job_directory(job_id)

            if not self.staging.is_ready():
                raise NotReadyError(
                    "Static file server is not ready. Please try again in a few seconds.",
                    job_id=job_id,
                )

            stage = self._advance(job_id, JobStage.STAGING)
            assets = await self.tts.synthesize_all(job_id, request.questions, request.voice)
            audio_urls = self._resolve_urls(job_id, assets)

            # Only the first question is rendered; the composition shows one question.
            stage = self._advance(job_id, JobStage.RENDERING)
            video_path = await self.renderer.render(
                job_id, request.questions[0], request.style, audio_urls[0]
            )

            stage = self._advance(job_id, JobStage.UPLOADING)
            video_bytes = await run_in_threadpool(video_path.read_bytes)
            url = await self.uploader.upload(job_id, video_bytes)
        except asyncio.CancelledError:
            logger.warning(f"Video generation for job {job_id} cancelled during {stage.value}")
            self._record_failure(
                job_id, QuizVideoError(f"Job cancelled during {stage.value}", job_id=job_id)
            )
            raise
        except Exception as e:
            error = self._as_pipeline_error(job_id, stage, e)
            logger.error(f"Failed video generation for job {job_id} during {stage.value}: {error.message}")
            self._record_failure(job_id, error)
            if error is e:
                raise
            raise error from e
        finally:
            await self._release(job_id)

        self.registry.complete(job_id, url)
        logger.info(f"Completed video generation for job {job_id}")
        return url

    async def delete_video(self, job_id: str) -> None:
        """Delete a job's uploaded video and forget the job."""
        record = self.registry.get(job_id)
        if not record.is_terminal:
            raise ConflictError("Job is still processing", job_id=job_id)
        if record.result_url:
            await self.uploader.delete(record.result_url)
        self.registry.delete(job_id)
        logger.info(f"Deleted job {job_id}")

    def status(self, job_id: str) -> JobRecord:
        return self.registry.get(job_id)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for background jobs to finish (shutdown path)."""
        if not self._tasks:
            return
        logger.info(f"Waiting for {len(self._tasks)} in-flight jobs")
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            logger.warning(f"{len(pending)} jobs still running after {timeout}s")

    async def _run_in_background(self, job_id: str, request: VideoRequest) -> None:
        try:
            await self.run(job_id, request)
        except QuizVideoError as e:
            # Already recorded in the registry; pollers see the failure.
            logger.debug(f"Background job {job_id} ended with {type(e).__name__}")

    def _validate(self, request: VideoRequest) -> None:
        if not request.questions:
            raise ValidationError("At least one question is required")

    def _advance(self, job_id: str, stage: JobStage) -> JobStage:
        self.registry.advance(job_id, stage)
        logger.info(f"Job {job_id} entered stage {stage.value}")
        return stage

    def _resolve_urls(self, job_id: str, assets: List[AudioAsset]) -> List[AudioUrls]:
        audio_urls = []
        for asset in assets:
            urls = AudioUrls(
                question_audio_url=self.staging.resolve_url(asset.question_audio_path),
                option_audio_urls=[self.staging.resolve_url(p) for p in asset.option_audio_paths],
            )
            logger.debug(f"Audio URLs for job {job_id}: {urls.all_urls()}")
            audio_urls.append(urls)
        return audio_urls

    def _as_pipeline_error(self, job_id: str, stage: JobStage, exc: Exception) -> QuizVideoError:
        if isinstance(exc, QuizVideoError):
            if exc.job_id is None:
                exc.job_id = job_id
            return exc
        logger.exception(f"Unexpected error in job {job_id} during {stage.value}")
        error_type = STAGE_ERRORS.get(stage, QuizVideoError)
        return error_type(f"{stage.value.capitalize()} failed: {exc}", job_id=job_id)

    def _record_failure(self, job_id: str, error: QuizVideoError) -> None:
        try:
            self.registry.fail(job_id, error.message)
        except QuizVideoError as e:
            # The job may have been removed from the registry by a caller.
            logger.warning(f"Could not record failure for job {job_id}: {e}")

    async def _release(self, job_id: str) -> None:
        """Unregister the job, then clean up its working directory."""
        self.resources.unregister_active(job_id)
        try:
            await self.resources.cleanup(job_id)
        except ResourceError as e:
            logger.error(f"Cleanup failed for job {job_id}, leaving it to the stale sweeper: {e}")
