"""Main FastAPI application for the quiz video service."""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from quiz_video.api.routes import health, video
from quiz_video.config import settings
from quiz_video.logging_utils import configure_logging

# Create FastAPI app
app = FastAPI(
    title="Quiz Video Service",
    description="Turns quiz definitions into narrated vertical videos",
    version="0.1.0",
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
)

# CORS middleware
# In development, allow all origins for ease of testing
allowed_origins = (
    ["*"] if settings.is_development
    else ([settings.FRONTEND_URL] if settings.FRONTEND_URL else [])
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(video.router, tags=["Video"])


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request body", "details": jsonable_encoder(exc.errors())},
    )


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    from quiz_video.services.container import build_services

    configure_logging()
    print(f"🚀 Quiz Video Service starting in {settings.ENVIRONMENT} mode")
    print(f"🔊 Voice provider: {settings.TTS_PROVIDER}")
    print(f"🗂️  Working root: {settings.WORKING_ROOT}")

    services = build_services(settings)
    await services.start()
    app.state.services = services
    print(f"✅ Audio staging server ready at {services.staging.base_url}")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    services = getattr(app.state, "services", None)
    if services is not None:
        await services.stop()
        app.state.services = None

    print("👋 Quiz Video Service shutting down")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "quiz_video.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=settings.is_development,
    )
