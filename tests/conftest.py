"""Shared fixtures: staging dirs on tmp_path and a job manager driving tests/fake_engine.py."""

import asyncio
import os
import sys
import time

import pytest
import pytest_asyncio

# Project root = parent directory of this tests/ folder
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from ffmpeg_jobs.jobs.manager import JobManager  # noqa: E402
from ffmpeg_jobs.jobs.models import JobRecord, JobStatus  # noqa: E402
from ffmpeg_jobs.jobs.store import InMemoryJobStore  # noqa: E402
from ffmpeg_jobs.jobs.supervisor import ProcessSupervisor  # noqa: E402
from ffmpeg_jobs.storage.staging import StagingArea  # noqa: E402

FAKE_ENGINE = os.path.join(os.path.dirname(os.path.abspath(__file__)), "fake_engine.py")

TERMINAL = (JobStatus.COMPLETED, JobStatus.FAILED)


@pytest.fixture
def staging(tmp_path):
    area = StagingArea(str(tmp_path / "uploads"), str(tmp_path / "output"))
    area.ensure_dirs()
    return area


@pytest.fixture
def store(staging):
    return InMemoryJobStore(staging)


def build_manager(store, staging, timeout=10.0, max_workers=2, engine_binary=None):
    return JobManager(
        store,
        staging,
        ProcessSupervisor(timeout=timeout, kill_grace=1.0),
        engine_binary=engine_binary or sys.executable,
        engine_flags=[FAKE_ENGINE],
        max_workers=max_workers,
    )


@pytest_asyncio.fixture
async def manager(store, staging):
    m = build_manager(store, staging)
    await m.start()
    yield m
    await m.stop()


def make_job(staging, command, inputs=None, output_filename="output.mp4"):
    """A queued record with real input files written to the upload dir."""
    job = JobRecord(command=list(command), output_filename=output_filename)
    for field, content in (inputs or {}).items():
        path = staging.new_upload_path(".bin")
        with open(path, "wb") as fh:
            fh.write(content)
        job.file_mapping[field] = path
        job.input_files.append(path)
    job.output_path = os.path.join(staging.job_output_dir(job.id), output_filename)
    return job


async def wait_for_status(manager, job_id, statuses=TERMINAL, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        job = await manager.get_status(job_id)
        if job is not None and job.status in statuses:
            return job
        await asyncio.sleep(0.02)
    raise AssertionError(f"job {job_id} never reached {statuses}")
