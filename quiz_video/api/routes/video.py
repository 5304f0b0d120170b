"""Quiz video generation endpoints."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Response

from quiz_video.api.dependencies import get_pipeline
from quiz_video.errors import ConflictError, NotFoundError, QuizVideoError
from quiz_video.models.jobs import VideoAccepted, VideoResult, VideoStatusResponse
from quiz_video.models.video import VideoRequest
from quiz_video.services.pipeline import VideoPipeline

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api")


@router.post("/generate-video", status_code=202, response_model=VideoAccepted)
async def generate_video(payload: VideoRequest, pipeline: VideoPipeline = Depends(get_pipeline)):
    """
    Accept a quiz video job.
    Rendering happens in the background; poll /api/video-status/{jobId}.
    """
    try:
        job_id = pipeline.submit(payload)
    except QuizVideoError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return VideoAccepted(jobId=job_id)


@router.post("/generate-video/sync", response_model=VideoResult)
async def generate_video_sync(payload: VideoRequest, pipeline: VideoPipeline = Depends(get_pipeline)):
    """Render a quiz video within the request and return its URL."""
    try:
        url = await pipeline.generate(payload)
    except QuizVideoError as e:
        logger.error(f"Video generation error: {e}")
        status_code = e.status_code if e.status_code < 500 else 500
        raise HTTPException(status_code=status_code, detail=f"Video generation failed: {e.message}")
    return VideoResult(url=url)


@router.get("/video-status/{job_id}", response_model=VideoStatusResponse, response_model_exclude_none=True)
async def get_video_status(job_id: str, pipeline: VideoPipeline = Depends(get_pipeline)):
    """Return the current status of a job."""
    try:
        record = pipeline.status(job_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    return VideoStatusResponse.from_record(record)


@router.delete("/video/{job_id}", status_code=204)
async def delete_video(job_id: str, pipeline: VideoPipeline = Depends(get_pipeline)):
    """Delete a job's uploaded video and its status record."""
    try:
        await pipeline.delete_video(job_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=e.message)
    except QuizVideoError as e:
        logger.error(f"Failed to delete video for job {job_id}: {e}")
        raise HTTPException(status_code=500, detail=e.message)
    return Response(status_code=204)
