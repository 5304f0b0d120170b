"""In-memory job registry.

Job history lives for the lifetime of the process only. The registry talks
to a ``JobStore`` so a persistent store can replace the in-memory map
without touching the pipeline.
"""
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional

from quiz_video.errors import NotFoundError
from quiz_video.models.jobs import STAGE_PROGRESS, JobRecord, JobStage, JobStatus

logger = logging.getLogger(__name__)


class JobStore(ABC):
    """Keyed storage for job records."""

    @abstractmethod
    def put(self, record: JobRecord) -> None:
        pass

    @abstractmethod
    def get(self, job_id: str) -> Optional[JobRecord]:
        pass

    @abstractmethod
    def delete(self, job_id: str) -> bool:
        """Remove a record, returning whether it existed."""
        pass

    @abstractmethod
    def list(self) -> List[JobRecord]:
        pass


class InMemoryJobStore(JobStore):
    """Process-wide dict guarded by a lock; safe to share across threads."""

    def __init__(self) -> None:
        self._jobs: Dict[str, JobRecord] = {}
        self._lock = threading.Lock()

    def put(self, record: JobRecord) -> None:
        with self._lock:
            self._jobs[record.job_id] = record

    def get(self, job_id: str) -> Optional[JobRecord]:
        with self._lock:
            record = self._jobs.get(job_id)
            return record.model_copy() if record else None

    def delete(self, job_id: str) -> bool:
        with self._lock:
            return self._jobs.pop(job_id, None) is not None

    def list(self) -> List[JobRecord]:
        with self._lock:
            return [record.model_copy() for record in self._jobs.values()]


class JobRegistry:
    """Job id -> status/progress/result, mutated by the owning pipeline run."""

    def __init__(self, store: Optional[JobStore] = None):
        self.store = store or InMemoryJobStore()

    def create(self, job_id: str) -> JobRecord:
        record = JobRecord(job_id=job_id, status=JobStatus.PROCESSING, progress=0)
        self.store.put(record)
        logger.debug(f"Registered job {job_id}")
        return record

    def get(self, job_id: str) -> JobRecord:
        record = self.store.get(job_id)
        if record is None:
            raise NotFoundError("Job not found", job_id=job_id)
        return record

    def advance(self, job_id: str, stage: JobStage) -> JobRecord:
        """Move a processing job into ``stage`` and bump its progress."""
        return self._update(
            job_id,
            stage=stage,
            progress=STAGE_PROGRESS.get(stage, 0),
        )

    def complete(self, job_id: str, url: str) -> JobRecord:
        return self._update(
            job_id,
            status=JobStatus.COMPLETED,
            stage=JobStage.COMPLETED,
            progress=100,
            result_url=url,
            error=None,
        )

    def fail(self, job_id: str, error: str) -> JobRecord:
        return self._update(
            job_id,
            status=JobStatus.FAILED,
            stage=JobStage.FAILED,
            error=error,
        )

    def delete(self, job_id: str) -> None:
        if not self.store.delete(job_id):
            raise NotFoundError("Job not found", job_id=job_id)

    def count(self, status: Optional[JobStatus] = None) -> int:
        records = self.store.list()
        if status is None:
            return len(records)
        return sum(1 for record in records if record.status == status)

    def _update(self, job_id: str, **changes) -> JobRecord:
        record = self.get(job_id)
        if record.is_terminal:
            logger.warning(f"Ignoring update to terminal job {job_id}: {changes}")
            return record
        updated = record.model_copy(
            update={**changes, "updated_at": datetime.now(timezone.utc)}
        )
        self.store.put(updated)
        return updated
