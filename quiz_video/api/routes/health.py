"""Health check endpoints."""
from fastapi import APIRouter, Request

from quiz_video.config import settings

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint."""
    services = getattr(request.app.state, "services", None)
    staging_state = services.staging.state.value if services else "not_started"
    active_jobs = len(services.resources.active_jobs) if services else 0
    return {
        "status": "healthy",
        "service": "quiz-video",
        "environment": settings.ENVIRONMENT,
        "staging": staging_state,
        "activeJobs": active_jobs,
    }


@router.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Quiz Video Service",
        "version": "0.1.0",
        "status": "running",
    }
