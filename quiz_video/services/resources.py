"""Working-directory lifecycle for pipeline jobs.

Each job owns ``<root>/<job_id>``. Deletion is layered:

1. ``cleanup`` refuses to touch a job that is still registered as active,
   re-checking after a settling delay so late writes can finish.
2. Deletion itself is retried a bounded number of times with a fixed
   backoff, which rides out transient file locks.
3. A periodic sweeper force-deletes directories older than a threshold,
   reclaiming state leaked by crashed runs.
"""
import asyncio
import logging
import os
import re
import shutil
import threading
import time
from pathlib import Path
from typing import List, Optional, Set

from fastapi.concurrency import run_in_threadpool

from quiz_video.errors import ResourceError

logger = logging.getLogger(__name__)

JOB_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def _last_modified(directory: Path) -> float:
    """Newest mtime anywhere in the tree.

    A directory's own mtime only changes when direct children are added or
    removed, so writes into question subdirectories would not count.
    """
    newest = directory.stat().st_mtime
    for dirpath, dirnames, filenames in os.walk(directory):
        for name in dirnames + filenames:
            try:
                newest = max(newest, os.stat(os.path.join(dirpath, name)).st_mtime)
            except FileNotFoundError:
                continue
    return newest


class ResourceLifecycleManager:
    """Creates, guards and deletes per-job working directories."""

    def __init__(
        self,
        root: Path,
        settle_delay: float = 2.0,
        retry_attempts: int = 3,
        retry_backoff: float = 5.0,
    ):
        # Absolute, since the renderer runs with its own working directory
        self.root = Path(root).resolve()
        self.settle_delay = settle_delay
        self.retry_attempts = max(1, retry_attempts)
        self.retry_backoff = retry_backoff
        self._active: Set[str] = set()
        self._lock = threading.Lock()
        self._sweeper: Optional[asyncio.Task] = None
        self._ensure_root()

    def _ensure_root(self) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ResourceError(f"Cannot create working root {self.root}: {e}") from e

    def job_directory(self, job_id: str) -> Path:
        """Path of a job's working directory (not created)."""
        if not JOB_ID_PATTERN.match(job_id):
            raise ResourceError(f"Job id is not filesystem-safe: {job_id!r}", job_id=job_id)
        return self.root / job_id

    def create_job_directory(self, job_id: str) -> Path:
        job_dir = self.job_directory(job_id)
        try:
            job_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ResourceError(
                f"Failed to create job directory {job_dir}: {e}", job_id=job_id
            ) from e
        logger.debug(f"Created job directory {job_dir} for job {job_id}")
        return job_dir

    # Active job set

    def register_active(self, job_id: str) -> None:
        with self._lock:
            self._active.add(job_id)

    def unregister_active(self, job_id: str) -> None:
        with self._lock:
            self._active.discard(job_id)

    def is_active(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._active

    @property
    def active_jobs(self) -> Set[str]:
        with self._lock:
            return set(self._active)

    # Deletion

    async def cleanup(self, job_id: str) -> None:
        """Delete a job's directory unless the job is still active."""
        job_dir = self.job_directory(job_id)
        if not job_dir.exists() or self.is_active(job_id):
            return

        await asyncio.sleep(self.settle_delay)

        # Double check that the job was not re-registered while we waited
        if self.is_active(job_id):
            logger.info(f"Skipping cleanup of {job_dir}: job {job_id} became active")
            return

        last_error: Optional[OSError] = None
        for attempt in range(1, self.retry_attempts + 1):
            try:
                await run_in_threadpool(shutil.rmtree, job_dir)
                logger.info(f"Cleaned up job directory {job_dir}")
                return
            except FileNotFoundError:
                return
            except OSError as e:
                last_error = e
                remaining = self.retry_attempts - attempt
                if remaining:
                    logger.warning(
                        f"Failed to clean up {job_dir} ({e}), retrying in "
                        f"{self.retry_backoff}s ({remaining} attempts left)"
                    )
                    await asyncio.sleep(self.retry_backoff)

        raise ResourceError(
            f"Failed to clean up job directory {job_dir}: {last_error}", job_id=job_id
        ) from last_error

    async def cleanup_all(self) -> None:
        """Apply ``cleanup`` to every directory under the root (shutdown path)."""
        if not self.root.exists():
            return

        failures: List[str] = []
        for entry in sorted(self.root.iterdir()):
            if not entry.is_dir():
                continue
            try:
                await self.cleanup(entry.name)
            except ResourceError as e:
                logger.error(f"Cleanup of {entry} failed: {e}")
                failures.append(entry.name)

        if failures:
            raise ResourceError(
                f"Failed to clean up {len(failures)} job directories: {', '.join(failures)}"
            )
        logger.info("Cleaned up all job directories")

    def sweep_stale(self, max_age_hours: float) -> List[str]:
        """Force-delete job directories not modified within ``max_age_hours``.

        Ignores the active set: anything this old is treated as leaked.
        """
        if not self.root.exists():
            return []

        cutoff = time.time() - max_age_hours * 3600
        removed: List[str] = []
        for entry in self.root.iterdir():
            if not entry.is_dir():
                continue
            try:
                if _last_modified(entry) >= cutoff:
                    continue
                shutil.rmtree(entry)
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Stale sweep could not remove {entry}: {e}")
                continue
            removed.append(entry.name)

        if removed:
            logger.info(f"Stale sweep removed {len(removed)} job directories: {removed}")
        return removed

    # Periodic sweeper

    def start_sweeper(self, interval_hours: float, max_age_hours: float) -> None:
        if self._sweeper is not None and not self._sweeper.done():
            return
        self._sweeper = asyncio.create_task(
            self._sweep_periodically(interval_hours * 3600, max_age_hours),
            name="stale-job-sweeper",
        )

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    async def _sweep_periodically(self, interval_seconds: float, max_age_hours: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await run_in_threadpool(self.sweep_stale, max_age_hours)
            except Exception:
                # Keep the sweeper alive for the life of the process
                logger.exception("Stale job sweep failed")
