"""
Render coordination - Python bridge to the Remotion renderer.

Remotion runs as a Node.js CLI subprocess. The project is bundled once per
process; each job then renders the quiz composition from that bundle with a
JSON props file describing the question, style and staged audio URLs.
"""

import asyncio
import json
import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import httpx
from fastapi.concurrency import run_in_threadpool

from quiz_video.errors import DeadlineExceededError, RenderError
from quiz_video.models.video import AudioUrls, QuizQuestion, StyleSpec
from quiz_video.services.resources import ResourceLifecycleManager

logger = logging.getLogger(__name__)

OUTPUT_FILENAME = "output.mp4"
PROPS_FILENAME = "props.json"


@dataclass
class RenderProps:
    """Input properties for the quiz composition"""
    question: str
    options: List[str]
    correct_answer: int
    background_style: str
    question_audio_path: str
    option_audio_paths: List[str]
    duration_in_frames: int
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None
    font_family: Optional[str] = None

    @classmethod
    def build(
        cls,
        question: QuizQuestion,
        style: StyleSpec,
        audio: AudioUrls,
        duration_in_frames: int,
    ) -> "RenderProps":
        return cls(
            question=question.question,
            options=list(question.options),
            correct_answer=question.correctAnswer,
            background_style=style.backgroundStyle.value,
            question_audio_path=audio.question_audio_url,
            option_audio_paths=list(audio.option_audio_urls),
            duration_in_frames=duration_in_frames,
            primary_color=style.primaryColor,
            secondary_color=style.secondaryColor,
            font_family=style.fontFamily,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization"""
        props = {
            'question': self.question,
            'options': self.options,
            'correctAnswer': self.correct_answer,
            'backgroundStyle': self.background_style,
            'questionAudioPath': self.question_audio_path,
            'optionAudioPaths': self.option_audio_paths,
            'durationInFrames': self.duration_in_frames,
            'primaryColor': self.primary_color,
            'secondaryColor': self.secondary_color,
            'fontFamily': self.font_family,
        }
        return {key: value for key, value in props.items() if value is not None}


class RemotionRenderer:
    """
    Runs the Remotion CLI.

    This class handles:
    - Bundling the project once per process
    - Subprocess management with a deadline
    - Mapping CLI failures to RenderError
    """

    def __init__(
        self,
        project_dir: Path,
        entry_point: str = "src/index.ts",
        binary: str = "npx",
        codec: str = "h264",
        timeout: Optional[float] = None,
    ):
        self.project_dir = Path(project_dir)
        self.entry_point = entry_point
        self.binary = binary
        self.codec = codec
        self.timeout = timeout
        self._bundle_dir: Optional[Path] = None
        self._bundle_lock = asyncio.Lock()

    async def ensure_bundle(self) -> Path:
        """Bundle the project on first use and reuse it afterwards."""
        async with self._bundle_lock:
            if self._bundle_dir is not None and self._bundle_dir.exists():
                return self._bundle_dir

            bundle_dir = Path(tempfile.mkdtemp(prefix="quiz-video-bundle-"))
            logger.info(f"Bundling Remotion project {self.project_dir / self.entry_point}")
            try:
                await self._run(
                    [self.binary, "remotion", "bundle", self.entry_point, "--out-dir", str(bundle_dir)],
                    action="Bundling",
                )
            except (RenderError, DeadlineExceededError):
                shutil.rmtree(bundle_dir, ignore_errors=True)
                raise
            self._bundle_dir = bundle_dir
            return bundle_dir

    async def render(self, composition_id: str, props_path: Path, output_path: Path) -> None:
        bundle_dir = await self.ensure_bundle()
        await self._run(
            [
                self.binary,
                "remotion",
                "render",
                str(bundle_dir),
                composition_id,
                str(Path(output_path).resolve()),
                f"--props={Path(props_path).resolve()}",
                f"--codec={self.codec}",
            ],
            action="Video rendering",
        )

    def close(self) -> None:
        """Remove the cached bundle."""
        if self._bundle_dir is not None:
            shutil.rmtree(self._bundle_dir, ignore_errors=True)
            self._bundle_dir = None

    async def _run(self, cmd: List[str], action: str) -> str:
        logger.debug(f"Running renderer command: {' '.join(cmd)}")
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(self.project_dir),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise RenderError(f"Could not start renderer ({cmd[0]}): {e}") from e

        try:
            async with asyncio.timeout(self.timeout):
                raw_output, _ = await process.communicate()
        except TimeoutError as e:
            process.kill()
            await process.wait()
            raise DeadlineExceededError(f"{action} timed out after {self.timeout}s") from e

        output = raw_output.decode("utf-8", errors="replace") if raw_output else ""
        if process.returncode != 0:
            tail = " | ".join(output.strip().splitlines()[-10:])
            raise RenderError(f"{action} failed with exit code {process.returncode}: {tail}")
        return output


class RenderCoordinator:
    """Maps staged audio and style into the renderer's input contract."""

    def __init__(
        self,
        renderer: RemotionRenderer,
        resources: ResourceLifecycleManager,
        composition_id: str = "QuizScene",
        fps: int = 30,
        duration_seconds: int = 10,
        url_check_timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.renderer = renderer
        self.resources = resources
        self.composition_id = composition_id
        self.duration_in_frames = fps * duration_seconds
        self.url_check_timeout = url_check_timeout
        self._transport = transport

    async def validate_audio_urls(self, urls: List[str]) -> None:
        """Fetch every URL; the renderer hangs rather than failing on bad media."""
        async with httpx.AsyncClient(
            timeout=self.url_check_timeout, transport=self._transport, trust_env=False
        ) as client:

            async def check(url: str) -> None:
                try:
                    response = await client.get(url)
                except httpx.HTTPError as e:
                    raise RenderError(f"Failed to validate audio URL: {url} ({e!r})") from e
                if not response.is_success:
                    raise RenderError(
                        f"Failed to validate audio URL: {url} (HTTP {response.status_code})"
                    )

            try:
                async with asyncio.TaskGroup() as group:
                    for url in urls:
                        group.create_task(check(url))
            except ExceptionGroup as eg:
                raise eg.exceptions[0] from eg

    async def render(
        self,
        job_id: str,
        question: QuizQuestion,
        style: StyleSpec,
        audio: AudioUrls,
    ) -> Path:
        """Render one question to ``<job dir>/output.mp4`` and return its path."""
        await self.validate_audio_urls(audio.all_urls())

        job_dir = self.resources.job_directory(job_id)
        output_path = job_dir / OUTPUT_FILENAME
        props_path = job_dir / PROPS_FILENAME
        props = RenderProps.build(question, style, audio, self.duration_in_frames)
        await run_in_threadpool(props_path.write_text, json.dumps(props.to_dict()), "utf-8")

        logger.info(
            f"Rendering composition {self.composition_id} for job {job_id} "
            f"({self.duration_in_frames} frames, style={props.background_style})"
        )
        try:
            await self.renderer.render(self.composition_id, props_path, output_path)
        except RenderError as e:
            e.job_id = job_id
            raise

        if not output_path.exists() or output_path.stat().st_size == 0:
            raise RenderError("Renderer produced no output", job_id=job_id)

        logger.info(f"Rendered video for job {job_id}: {output_path.stat().st_size} bytes")
        return output_path
