"""Pydantic models for job tracking."""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    # Reserved for a store backed by an external queue; in-process jobs are
    # created as PROCESSING.
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class JobStage(str, Enum):
    ACCEPTED = "accepted"
    STAGING = "staging"
    RENDERING = "rendering"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"


# Progress reported when a stage is entered.
STAGE_PROGRESS = {
    JobStage.ACCEPTED: 0,
    JobStage.STAGING: 10,
    JobStage.RENDERING: 40,
    JobStage.UPLOADING: 80,
    JobStage.COMPLETED: 100,
}

TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobRecord(BaseModel):
    """Current state of one pipeline run."""

    job_id: str
    status: JobStatus = JobStatus.PROCESSING
    stage: JobStage = JobStage.ACCEPTED
    progress: int = Field(default=0, ge=0, le=100)
    result_url: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class VideoAccepted(BaseModel):
    """Response for an accepted asynchronous job."""

    jobId: str
    status: JobStatus = JobStatus.PROCESSING


class VideoResult(BaseModel):
    """Response for the synchronous variant."""

    url: str


class VideoStatusResponse(BaseModel):
    """Status-poll payload."""

    status: JobStatus
    url: Optional[str] = None
    error: Optional[str] = None
    progress: int = 0
    stage: JobStage

    @classmethod
    def from_record(cls, record: JobRecord) -> "VideoStatusResponse":
        return cls(
            status=record.status,
            url=record.result_url,
            error=record.error,
            progress=record.progress,
            stage=record.stage,
        )
