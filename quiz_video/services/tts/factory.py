"""Factory for creating speech providers."""
from openai import AsyncAzureOpenAI, AsyncOpenAI

from quiz_video.config import Settings
from quiz_video.errors import ConfigurationError
from quiz_video.services.tts.base import SpeechProvider
from quiz_video.services.tts.openai_provider import OpenAISpeechProvider


class SpeechProviderFactory:
    """Builds the configured speech provider."""

    @classmethod
    def create(cls, settings: Settings) -> SpeechProvider:
        """Create speech provider based on settings.

        Returns:
            SpeechProvider instance

        Raises:
            ConfigurationError: If provider type is unknown
        """
        provider_name = settings.TTS_PROVIDER.lower()
        timeout = settings.TTS_TIMEOUT_SECONDS

        # Retries are disabled; a failed synthesis fails the job.
        if provider_name == "azure_openai":
            client = AsyncAzureOpenAI(
                api_key=settings.AZURE_OPENAI_API_KEY,
                azure_endpoint=settings.AZURE_OPENAI_ENDPOINT,
                api_version=settings.AZURE_OPENAI_API_VERSION,
                timeout=timeout,
                max_retries=0,
            )
            return OpenAISpeechProvider(
                client=client,
                model=settings.AZURE_OPENAI_TTS_DEPLOYMENT,
                timeout=timeout,
            )
        elif provider_name == "openai":
            client = AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY,
                timeout=timeout,
                max_retries=0,
            )
            return OpenAISpeechProvider(
                client=client,
                model=settings.OPENAI_TTS_MODEL,
                timeout=timeout,
            )
        else:
            raise ConfigurationError(f"Unknown TTS provider: {provider_name}")
