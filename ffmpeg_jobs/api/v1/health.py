"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ffmpeg_jobs.api.deps import get_settings, get_staging
from ffmpeg_jobs.config import Settings
from ffmpeg_jobs.jobs.supervisor import probe
from ffmpeg_jobs.storage.staging import StagingArea

router = APIRouter()


@router.get("/health")
async def health_check(
    staging: StagingArea = Depends(get_staging),
    config: Settings = Depends(get_settings),
):
    """Ready when the engine binary answers `-version` and the staging dirs exist."""
    storage_ready = staging.dirs_exist()
    engine_available = await probe(config.engine_binary, timeout=config.health_probe_timeout)

    body = {
        "status": "ready" if storage_ready and engine_available else "not ready",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "ffmpeg": "available" if engine_available else "unavailable",
        "storage": "ready" if storage_ready else "not ready",
    }
    return JSONResponse(status_code=200 if body["status"] == "ready" else 503, content=body)
