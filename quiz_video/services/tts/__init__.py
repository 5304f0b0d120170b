"""Speech synthesis services."""

from .base import SpeechProvider
from .factory import SpeechProviderFactory
from .orchestrator import TTSOrchestrator

__all__ = ['SpeechProvider', 'SpeechProviderFactory', 'TTSOrchestrator']
