"""Per-job speech synthesis fan-out."""
import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Tuple

from fastapi.concurrency import run_in_threadpool

from quiz_video.errors import DeadlineExceededError, SynthesisError
from quiz_video.models.video import AudioAsset, QuizQuestion, VoiceSpec
from quiz_video.services.resources import ResourceLifecycleManager
from quiz_video.services.tts.base import SpeechProvider

logger = logging.getLogger(__name__)


def option_label(index: int, text: str) -> str:
    """Voice-over text for an option, e.g. ``Option B: Paris``."""
    return f"Option {chr(ord('A') + index)}: {text}"


def question_directory(job_dir: Path, question_index: int) -> Path:
    return job_dir / f"question_{question_index}"


class TTSOrchestrator:
    """Turns every question and option into an mp3 under the job directory."""

    def __init__(
        self,
        provider: SpeechProvider,
        resources: ResourceLifecycleManager,
        default_voice: str = "nova",
        timeout: Optional[float] = None,
    ):
        self.provider = provider
        self.resources = resources
        self.default_voice = default_voice
        self.timeout = timeout

    async def synthesize_all(
        self,
        job_id: str,
        questions: List[QuizQuestion],
        voice: Optional[VoiceSpec] = None,
    ) -> List[AudioAsset]:
        """Synthesize all audio for a job, one AudioAsset per question.

        All provider calls run concurrently. If any single call fails the
        remaining calls are cancelled and the whole job's synthesis fails;
        partial audio is never returned.
        """
        voice_name = voice.name if voice else self.default_voice
        job_dir = self.resources.create_job_directory(job_id)
        logger.info(
            f"Starting speech synthesis for job {job_id}: {len(questions)} questions, "
            f"voice={voice_name}, locale={voice.locale if voice else 'default'}"
        )

        assets: List[AudioAsset] = []
        requests: List[Tuple[str, Path]] = []
        for index, question in enumerate(questions):
            question_dir = question_directory(job_dir, index)
            question_path = question_dir / "question.mp3"
            requests.append((question.question, question_path))

            option_paths = []
            for option_index, option in enumerate(question.options):
                option_path = question_dir / f"option_{option_index}.mp3"
                requests.append((option_label(option_index, option), option_path))
                option_paths.append(option_path)

            assets.append(
                AudioAsset(question_audio_path=question_path, option_audio_paths=option_paths)
            )

        try:
            async with asyncio.TaskGroup() as group:
                for text, path in requests:
                    group.create_task(self._synthesize_to_file(job_id, text, path, voice_name))
        except ExceptionGroup as eg:
            first = eg.exceptions[0]
            logger.error(f"Speech synthesis failed for job {job_id}: {first}")
            if isinstance(first, DeadlineExceededError):
                raise first from eg
            raise SynthesisError(f"Speech synthesis failed: {first}", job_id=job_id) from eg

        logger.info(f"Completed speech synthesis for job {job_id}: {len(requests)} audio files")
        return assets

    async def _synthesize_to_file(self, job_id: str, text: str, path: Path, voice: str) -> None:
        try:
            async with asyncio.timeout(self.timeout):
                audio = await self.provider.synthesize(text, voice)
        except TimeoutError as e:
            raise DeadlineExceededError(
                f"Speech synthesis timed out after {self.timeout}s", job_id=job_id
            ) from e

        await run_in_threadpool(_write_audio, path, audio)
        logger.debug(f"Wrote {len(audio)} bytes of audio to {path} for job {job_id}")


def _write_audio(path: Path, audio: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(audio)
