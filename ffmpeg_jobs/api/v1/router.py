"""Aggregate all v1 API routers."""

from fastapi import APIRouter
from ffmpeg_jobs.api.v1.health import router as health_router
from ffmpeg_jobs.api.v1.endpoints import router as endpoints_router
from ffmpeg_jobs.api.v1.jobs import router as jobs_router

v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(health_router, tags=["health"])
v1_router.include_router(endpoints_router, tags=["endpoints"])
v1_router.include_router(jobs_router, tags=["jobs"])

# Root paths: /process, /jobs/..., /endpoints as clients already use them
root_router = APIRouter()
root_router.include_router(endpoints_router, tags=["endpoints"])
root_router.include_router(jobs_router, tags=["jobs"])
