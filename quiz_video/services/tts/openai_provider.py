"""OpenAI / Azure OpenAI speech provider implementation."""
import logging
from typing import Any, Optional

from openai import APIError, APIStatusError, APITimeoutError

from quiz_video.errors import DeadlineExceededError, SynthesisError
from quiz_video.services.tts.base import SpeechProvider

logger = logging.getLogger(__name__)

ALLOWED_VOICES = frozenset({"alloy", "echo", "fable", "nova", "onyx", "shimmer"})


def _preview(text: str, limit: int = 50) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


class OpenAISpeechProvider(SpeechProvider):
    """Speech synthesis through the ``audio.speech`` endpoint.

    Works with both ``AsyncOpenAI`` and ``AsyncAzureOpenAI`` clients; for
    Azure the model is the deployment name.
    """

    def __init__(
        self,
        client: Any,
        model: str,
        response_format: str = "mp3",
        timeout: Optional[float] = None,
    ):
        self.client = client
        self.model = model
        self.response_format = response_format
        self.timeout = timeout

    def is_valid_voice(self, voice: str) -> bool:
        return bool(voice) and voice.lower() in ALLOWED_VOICES

    async def synthesize(self, text: str, voice: str) -> bytes:
        if not self.is_valid_voice(voice):
            raise SynthesisError(f"Invalid voice name format: {voice}")

        logger.debug(f"Synthesizing speech with voice {voice}: {_preview(text)!r}")

        try:
            response = await self.client.audio.speech.create(
                model=self.model,
                voice=voice.lower(),
                input=text,
                response_format=self.response_format,
            )
        except APITimeoutError as e:
            raise DeadlineExceededError(f"Speech synthesis timed out after {self.timeout}s") from e
        except APIStatusError as e:
            raise SynthesisError(f"TTS request failed: {e.status_code} - {e.message}") from e
        except APIError as e:
            raise SynthesisError(f"TTS request failed: {e}") from e

        audio = response.content
        if not audio:
            raise SynthesisError("TTS request returned no audio")
        return audio
