"""Job dispatcher interface."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ffmpeg_jobs.jobs.models import DeletedFiles, JobRecord


class JobDispatcher(ABC):
    """Abstract interface for accepting and running jobs."""

    @abstractmethod
    async def submit(self, job: JobRecord) -> str:
        """Accept a queued job for processing without waiting for it. Returns job_id."""
        ...

    @abstractmethod
    async def get_status(self, job_id: str) -> Optional[JobRecord]:
        """Get current state of a job."""
        ...

    @abstractmethod
    async def list_jobs(self) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def delete(self, job_id: str) -> Optional[DeletedFiles]:
        """Stop a job if it is running and remove it with its files."""
        ...

    @abstractmethod
    async def start(self) -> None:
        """Start the dispatcher (e.g., start worker loops)."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop the dispatcher gracefully."""
        ...
