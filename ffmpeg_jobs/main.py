"""Async FFmpeg job API - FastAPI application."""

import logging
from contextlib import asynccontextmanager
from datetime import timedelta

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ffmpeg_jobs.config import Settings, settings
from ffmpeg_jobs.api.v1.router import v1_router, root_router
from ffmpeg_jobs.api.v1.health import router as health_root_router
from ffmpeg_jobs.jobs.manager import JobManager
from ffmpeg_jobs.jobs.store import InMemoryJobStore
from ffmpeg_jobs.jobs.supervisor import ProcessSupervisor
from ffmpeg_jobs.jobs.sweeper import RetentionSweeper
from ffmpeg_jobs.storage.staging import StagingArea

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(config: Settings = settings) -> FastAPI:
    """Build the application. Every component is created in lifespan and hung on app.state."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting async FFmpeg API on port {config.port}")
        logger.info(f"Engine: {config.engine_binary} (timeout {config.processing_timeout:.0f}s)")
        logger.info(f"Upload dir: {config.upload_dir}, output dir: {config.output_dir}")

        staging = StagingArea(config.upload_dir, config.output_dir)
        staging.ensure_dirs()
        store = InMemoryJobStore(staging)
        manager = JobManager(
            store,
            staging,
            ProcessSupervisor(
                timeout=config.processing_timeout,
                kill_grace=config.kill_grace_seconds,
            ),
            engine_binary=config.engine_binary,
            engine_flags=config.engine_flags,
            max_workers=config.max_concurrent_jobs,
        )
        sweeper = RetentionSweeper(
            manager,
            store,
            retention=timedelta(hours=config.retention_hours),
            interval=config.sweep_interval_seconds,
        )

        await manager.start()
        await sweeper.start()
        logger.info(f"Job manager started with {config.max_concurrent_jobs} worker(s)")

        app.state.settings = config
        app.state.staging = staging
        app.state.store = store
        app.state.manager = manager
        app.state.sweeper = sweeper

        yield

        logger.info("Shutting down async FFmpeg API")
        await sweeper.stop()
        await manager.stop()
        # Records do not survive a restart, so neither may their files
        removed = await manager.delete_all()
        if removed:
            logger.info(f"Released {removed} job(s) on shutdown")

    app = FastAPI(
        title="Async FFmpeg API",
        description="Run arbitrary FFmpeg commands as asynchronous jobs",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount routers
    app.include_router(health_root_router, tags=["health"])  # GET /health at root
    app.include_router(v1_router)  # All /api/v1/* endpoints
    app.include_router(root_router)  # /process, /jobs, /endpoints at root
    return app


configure_logging(settings.log_level)
app = create_app()


def run() -> None:
    uvicorn.run(app, host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
