"""Base speech provider interface."""
from abc import ABC, abstractmethod


class SpeechProvider(ABC):
    """Abstract base class for all voice-synthesis providers."""

    @abstractmethod
    async def synthesize(self, text: str, voice: str) -> bytes:
        """Synthesize speech.

        Args:
            text: Text to speak
            voice: Provider voice name

        Returns:
            Encoded audio (mp3)

        Raises:
            SynthesisError: If the provider rejects or fails the request
            DeadlineExceededError: If the provider call times out
        """
        pass

    @abstractmethod
    def is_valid_voice(self, voice: str) -> bool:
        """Check a voice name before issuing any request."""
        pass

    async def verify(self, voice: str) -> None:
        """Issue a tiny request to confirm credentials and deployment."""
        await self.synthesize("Test", voice)
