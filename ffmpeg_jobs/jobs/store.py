"""Job store interface and in-memory implementation."""

from abc import ABC, abstractmethod
from threading import RLock
from typing import Any, Dict, List, Optional, Tuple

from ffmpeg_jobs.jobs.models import DeletedFiles, JobRecord
from ffmpeg_jobs.storage.staging import StagingArea


class JobStore(ABC):
    """Abstract interface for job record storage."""

    @abstractmethod
    def put(self, job: JobRecord) -> None:
        """Insert or replace a record."""
        ...

    @abstractmethod
    def update(self, job: JobRecord) -> bool:
        """Replace a record only if it is still stored. Returns False otherwise."""
        ...

    @abstractmethod
    def get(self, job_id: str) -> Optional[JobRecord]:
        ...

    @abstractmethod
    def list(self) -> List[Dict[str, Any]]:
        """Summaries of every stored job, oldest first."""
        ...

    @abstractmethod
    def records(self) -> List[JobRecord]:
        """Snapshot of every stored record."""
        ...

    @abstractmethod
    def delete(self, job_id: str) -> Optional[Tuple[JobRecord, DeletedFiles]]:
        """Remove a record and release its backing files.

        This is the only path that deletes a stored job's files.
        Returns None if the job is unknown.
        """
        ...


class InMemoryJobStore(JobStore):
    """Dict-backed store. Lives for the life of the process."""

    def __init__(self, staging: StagingArea):
        self._jobs: Dict[str, JobRecord] = {}
        self._lock = RLock()
        self._staging = staging

    def put(self, job: JobRecord) -> None:
        with self._lock:
            self._jobs[job.id] = job

    def update(self, job: JobRecord) -> bool:
        with self._lock:
            if job.id not in self._jobs:
                return False
            self._jobs[job.id] = job
            return True

    def get(self, job_id: str) -> Optional[JobRecord]:
        with self._lock:
            return self._jobs.get(job_id)

    def list(self) -> List[Dict[str, Any]]:
        return [job.summary() for job in self.records()]

    def records(self) -> List[JobRecord]:
        with self._lock:
            return list(self._jobs.values())

    def delete(self, job_id: str) -> Optional[Tuple[JobRecord, DeletedFiles]]:
        with self._lock:
            job = self._jobs.pop(job_id, None)
        if job is None:
            return None
        return job, self._staging.release(job)

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)
