"""FastAPI dependencies resolving the process-wide services."""
from fastapi import HTTPException, Request

from quiz_video.services.container import ServiceContainer
from quiz_video.services.pipeline import VideoPipeline


def get_services(request: Request) -> ServiceContainer:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Service is starting up")
    return services


def get_pipeline(request: Request) -> VideoPipeline:
    return get_services(request).pipeline
