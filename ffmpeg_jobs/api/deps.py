"""FastAPI dependencies resolving the components wired onto app.state during lifespan."""

from fastapi import HTTPException, Request

from ffmpeg_jobs.config import Settings
from ffmpeg_jobs.jobs.manager import JobManager
from ffmpeg_jobs.storage.staging import StagingArea


def get_manager(request: Request) -> JobManager:
    manager = getattr(request.app.state, "manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="Job manager not initialized")
    return manager


def get_staging(request: Request) -> StagingArea:
    return request.app.state.staging


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
