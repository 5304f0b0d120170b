"""Configuration settings for the quiz video service."""
import tempfile
from pathlib import Path

from pydantic import ValidationError as SettingsValidationError
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from quiz_video.errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Service Configuration
    ENVIRONMENT: str = "development"
    PORT: int = 3000
    FRONTEND_URL: str = ""  # Frontend URL for CORS
    LOG_LEVEL: str = "INFO"

    # Voice synthesis
    TTS_PROVIDER: str = "azure_openai"  # azure_openai or openai
    AZURE_OPENAI_API_KEY: str = ""
    AZURE_OPENAI_ENDPOINT: str = ""
    AZURE_OPENAI_TTS_DEPLOYMENT: str = "tts"
    AZURE_OPENAI_API_VERSION: str = "2025-03-01-preview"
    OPENAI_API_KEY: str = ""
    OPENAI_TTS_MODEL: str = "tts-1"
    TTS_DEFAULT_VOICE: str = "nova"
    TTS_DEFAULT_LOCALE: str = "en-US"
    TTS_VERIFY_ON_STARTUP: bool = False

    # Object storage (GCS)
    GCS_BUCKET: str
    GCS_PROJECT_ID: str = ""
    STORAGE_RETENTION_DAYS: int = 7

    # Audio staging server
    STAGING_SERVER_HOST: str = "127.0.0.1"
    STAGING_SERVER_PORT: int = 3001
    WORKING_ROOT: str = str(Path(tempfile.gettempdir()) / "quiz-video-generator-temp")

    # Renderer (passed through to Remotion unchanged)
    REMOTION_PROJECT_DIR: str = "."
    REMOTION_ENTRY_POINT: str = "src/index.ts"
    REMOTION_BINARY: str = "npx"
    REMOTION_COMPOSITION_ID: str = "QuizScene"
    VIDEO_CODEC: str = "h264"
    VIDEO_FPS: int = 30
    VIDEO_DURATION_SECONDS: int = 10

    # Working directory lifecycle
    CLEANUP_SETTLE_SECONDS: float = 2.0
    CLEANUP_RETRY_ATTEMPTS: int = 3
    CLEANUP_RETRY_BACKOFF_SECONDS: float = 5.0
    STALE_JOB_MAX_AGE_HOURS: float = 24.0
    STALE_SWEEP_INTERVAL_HOURS: float = 6.0

    # Deadlines for external calls
    TTS_TIMEOUT_SECONDS: float = 60.0
    URL_CHECK_TIMEOUT_SECONDS: float = 10.0
    RENDER_TIMEOUT_SECONDS: float = 600.0
    UPLOAD_TIMEOUT_SECONDS: float = 120.0

    @model_validator(mode="after")
    def _check_provider_credentials(self) -> "Settings":
        provider = self.TTS_PROVIDER.lower()
        if provider == "azure_openai":
            missing = [
                name
                for name in ("AZURE_OPENAI_API_KEY", "AZURE_OPENAI_ENDPOINT")
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(f"Missing required environment variables: {', '.join(missing)}")
        elif provider == "openai":
            if not self.OPENAI_API_KEY:
                raise ValueError("Missing required environment variables: OPENAI_API_KEY")
        else:
            raise ValueError(f"Unknown TTS provider: {self.TTS_PROVIDER}")
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.ENVIRONMENT == "development"

    @property
    def duration_in_frames(self) -> int:
        return self.VIDEO_FPS * self.VIDEO_DURATION_SECONDS


def load_settings(**overrides) -> Settings:
    """Load settings, turning validation failures into a ConfigurationError."""
    try:
        return Settings(**overrides)
    except SettingsValidationError as e:
        fields = ", ".join(
            ".".join(str(part) for part in error["loc"]) or error["msg"] for error in e.errors()
        )
        raise ConfigurationError(f"Missing or invalid configuration: {fields}") from e


# Global settings instance
settings = load_settings()
