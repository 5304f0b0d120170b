"""Internal HTTP server exposing working-directory files by URL.

The renderer fetches audio by URL rather than by local path, so every file
written under the working root is served at a URL whose path equals the
file's path relative to that root.
"""
import asyncio
import contextlib
import logging
import os
import re
import socket
from enum import Enum
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from quiz_video.errors import ResourceError

logger = logging.getLogger(__name__)

SAFE_URL_PATH = re.compile(r"^[A-Za-z0-9._/-]+$")


class StagingState(str, Enum):
    NOT_STARTED = "not_started"
    STARTING = "starting"
    READY = "ready"
    STOPPED = "stopped"


class _AudioStaticFiles(StaticFiles):
    """StaticFiles that labels mp3 files as audio/mpeg."""

    def file_response(self, full_path, stat_result, scope, status_code=200):
        response = super().file_response(full_path, stat_result, scope, status_code)
        if str(full_path).endswith(".mp3"):
            response.headers["content-type"] = "audio/mpeg"
        return response


class _EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the host process."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


def build_staging_app(root: Path, server: "AudioStagingServer") -> FastAPI:
    app = FastAPI(title="Audio staging", docs_url=None, redoc_url=None, openapi_url=None)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "HEAD"],
        allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept"],
    )

    @app.get("/health")
    async def staging_health():
        return {"status": "ok", "ready": server.is_ready()}

    app.mount("/", _AudioStaticFiles(directory=str(root), check_dir=False), name="staged")
    return app


class AudioStagingServer:
    """Serves the working root over HTTP with an explicit readiness state."""

    def __init__(
        self,
        root: Path,
        host: str = "127.0.0.1",
        port: int = 3001,
        startup_timeout: float = 10.0,
    ):
        self.root = Path(root)
        self.host = host
        self.port = port
        self.startup_timeout = startup_timeout
        self.state = StagingState.NOT_STARTED
        self.app = build_staging_app(self.root, self)
        self._server: Optional[_EmbeddedServer] = None
        self._task: Optional[asyncio.Task] = None

    def is_ready(self) -> bool:
        return self.state == StagingState.READY

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    async def start(self) -> None:
        """Bind and serve; returns once the listener accepts connections."""
        if self.state in (StagingState.STARTING, StagingState.READY):
            return

        self.state = StagingState.STARTING
        try:
            sock = self._bind()
        except OSError as e:
            self.state = StagingState.STOPPED
            raise ResourceError(f"Staging server could not bind {self.host}:{self.port}: {e}") from e

        # Port 0 asks the OS for a free port
        self.port = sock.getsockname()[1]
        # log_config=None keeps the host process logging configuration untouched
        config = uvicorn.Config(self.app, log_config=None, lifespan="off", access_log=False)
        self._server = _EmbeddedServer(config)
        self._task = asyncio.create_task(self._server.serve(sockets=[sock]), name="audio-staging-server")

        try:
            async with asyncio.timeout(self.startup_timeout):
                while not self._server.started:
                    if self._task.done():
                        break
                    await asyncio.sleep(0.01)
        except TimeoutError:
            await self.shutdown()
            raise ResourceError(f"Staging server did not start within {self.startup_timeout}s")

        if not self._server.started:
            self.state = StagingState.STOPPED
            error = self._task.exception() if not self._task.cancelled() else None
            self._task = None
            self._server = None
            raise ResourceError(f"Staging server exited during startup: {error}")

        self.state = StagingState.READY
        logger.info(f"Audio staging server running at {self.base_url} serving {self.root}")

    def _bind(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
            sock.listen(128)
            sock.setblocking(False)
        except OSError:
            sock.close()
            raise
        return sock

    def resolve_url(self, local_path: Path) -> str:
        """Map a file under the staging root to its absolute URL."""
        root = os.path.abspath(self.root)
        path = os.path.abspath(local_path)
        if os.path.commonpath([root, path]) != root:
            raise ResourceError(f"{local_path} is outside the staging root {self.root}")

        relative = Path(os.path.relpath(path, root)).as_posix()
        if not SAFE_URL_PATH.match(relative):
            raise ResourceError(f"Staged path is not URL-safe: {relative!r}")
        return f"{self.base_url}/{relative}"

    async def shutdown(self) -> None:
        if self._server is not None:
            self._server.should_exit = True
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            finally:
                self._task = None
        self._server = None
        if self.state != StagingState.NOT_STARTED:
            self.state = StagingState.STOPPED
            logger.info("Audio staging server stopped")
