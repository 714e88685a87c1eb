"""Job record data model for async transcoding."""

import os
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
import uuid

from ffmpeg_jobs.jobs.errors import InvalidTransitionError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class DeletedFiles(BaseModel):
    """Counts reported back when a job's backing files are released."""
    input_files: int = 0
    output_file: int = 0


class JobRecord(BaseModel):
    """Tracks the lifecycle of one transcoding job.

    Status only moves forward: queued -> processing -> completed | failed.
    The mark_* methods are the only place status and timestamps change.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    status: JobStatus = JobStatus.QUEUED
    created_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    progress: int = 0
    command: List[str] = Field(default_factory=list)
    output_filename: str = "output.mp4"
    output_path: str = ""
    input_files: List[str] = Field(default_factory=list)
    file_mapping: Dict[str, str] = Field(default_factory=dict)
    logs: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def output_dir(self) -> str:
        return os.path.dirname(self.output_path)

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    def mark_processing(self) -> None:
        if self.status != JobStatus.QUEUED:
            raise InvalidTransitionError(
                f"Cannot start job {self.id} in status {self.status.value}"
            )
        self.status = JobStatus.PROCESSING
        self.started_at = utcnow()
        self.progress = 10

    def advance_progress(self, value: int) -> None:
        """Raise progress to value; lower values and non-processing jobs are ignored."""
        if self.status != JobStatus.PROCESSING:
            return
        self.progress = max(self.progress, min(int(value), 100))

    def mark_completed(self) -> None:
        if self.status != JobStatus.PROCESSING:
            raise InvalidTransitionError(
                f"Cannot complete job {self.id} in status {self.status.value}"
            )
        self.status = JobStatus.COMPLETED
        self.completed_at = utcnow()
        self.progress = 100

    def mark_failed(self, error: str) -> None:
        if self.status != JobStatus.PROCESSING:
            raise InvalidTransitionError(
                f"Cannot fail job {self.id} in status {self.status.value}"
            )
        self.status = JobStatus.FAILED
        self.completed_at = utcnow()
        self.error = error

    def append_log(self, line: str) -> None:
        self.logs.append(line)

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "createdAt": _iso(self.created_at),
            "startedAt": _iso(self.started_at),
            "completedAt": _iso(self.completed_at),
            "progress": self.progress,
            "outputFilename": self.output_filename,
        }


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
