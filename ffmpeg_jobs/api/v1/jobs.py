"""Job management API — submit jobs, poll status, download outputs, delete."""

import json
import logging
import os
from typing import Any, List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import FileResponse
from starlette.datastructures import UploadFile

from ffmpeg_jobs.api.deps import get_manager, get_settings, get_staging
from ffmpeg_jobs.config import Settings
from ffmpeg_jobs.jobs.errors import SubmissionError
from ffmpeg_jobs.jobs.manager import JobManager
from ffmpeg_jobs.jobs.models import JobRecord, JobStatus
from ffmpeg_jobs.storage.staging import StagingArea

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_OUTPUT_FILENAME = "output.mp4"
CHUNK_SIZE = 1024 * 1024


# ---------------------------------------------------------------------------
# POST /process
# ---------------------------------------------------------------------------

@router.post("/process", status_code=202)
async def submit_job(
    request: Request,
    manager: JobManager = Depends(get_manager),
    staging: StagingArea = Depends(get_staging),
    config: Settings = Depends(get_settings),
):
    """Start a processing job with arbitrary engine arguments.

    Accepts multipart form data (`ffmpegArgs` as a JSON string, optional
    `outputFilename`, any file fields) or a JSON body. Returns as soon as
    the job is queued.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid JSON body")
        if not isinstance(body, dict):
            raise HTTPException(status_code=400, detail="JSON body must be an object")
        return await _create_job(
            body.get("ffmpegArgs"), body.get("outputFilename"), [], manager, staging, config
        )

    form = await request.form()
    try:
        uploads = [
            (field, value) for field, value in form.multi_items()
            if isinstance(value, UploadFile)
        ]
        return await _create_job(
            form.get("ffmpegArgs"), form.get("outputFilename"), uploads, manager, staging, config
        )
    finally:
        await form.close()


async def _create_job(
    raw_args: Any,
    raw_filename: Any,
    uploads: List[Tuple[str, UploadFile]],
    manager: JobManager,
    staging: StagingArea,
    config: Settings,
):
    try:
        command = parse_command(raw_args)
        output_filename = validate_output_filename(raw_filename)
    except SubmissionError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    if len(uploads) > config.max_upload_files:
        raise HTTPException(
            status_code=400,
            detail=f"Too many files (max {config.max_upload_files})",
        )

    job = JobRecord(command=command, output_filename=output_filename)
    saved: List[str] = []
    try:
        for index, (field, upload) in enumerate(uploads):
            path = await save_upload(upload, staging, config.max_file_size)
            saved.append(path)
            job.file_mapping[field or f"input{index}"] = path
        job.input_files = saved
        job.output_path = os.path.join(staging.job_output_dir(job.id), output_filename)
        await manager.submit(job)
    except HTTPException:
        _discard(staging, saved, job.id)
        raise
    except Exception as exc:
        logger.error(f"[{job.id}] Error creating job: {exc}")
        _discard(staging, saved, job.id)
        raise HTTPException(status_code=500, detail=f"Failed to create job: {exc}")

    return {
        "jobId": job.id,
        "status": JobStatus.QUEUED.value,
        "message": "Job queued for processing",
        "statusUrl": f"/jobs/{job.id}",
        "downloadUrl": f"/jobs/{job.id}/download",
    }


# ---------------------------------------------------------------------------
# GET /jobs, GET /jobs/{job_id}, GET /jobs/{job_id}/logs
# ---------------------------------------------------------------------------

@router.get("/jobs")
async def list_jobs(manager: JobManager = Depends(get_manager)):
    return {"jobs": await manager.list_jobs()}


@router.get("/jobs/{job_id}")
async def get_job_status(job_id: str, manager: JobManager = Depends(get_manager)):
    """Get the current status snapshot of a job."""
    job = await _require_job(manager, job_id)
    response = job.summary()
    response["error"] = job.error
    response["downloadUrl"] = (
        f"/jobs/{job.id}/download" if job.status == JobStatus.COMPLETED else None
    )
    return response


@router.get("/jobs/{job_id}/logs")
async def get_job_logs(job_id: str, manager: JobManager = Depends(get_manager)):
    """Diagnostic output captured from the engine, in arrival order."""
    job = await _require_job(manager, job_id)
    return {"id": job.id, "status": job.status.value, "logs": list(job.logs)}


# ---------------------------------------------------------------------------
# GET /jobs/{job_id}/download
# ---------------------------------------------------------------------------

@router.get("/jobs/{job_id}/download")
async def download_output(job_id: str, manager: JobManager = Depends(get_manager)):
    """Stream the output file of a completed job."""
    job = await _require_job(manager, job_id)

    if job.status != JobStatus.COMPLETED:
        raise HTTPException(
            status_code=400,
            detail={"error": "Job not completed", "status": job.status.value},
        )

    if not os.path.isfile(job.output_path):
        logger.error(f"[{job.id}] Output file missing for completed job: {job.output_path}")
        raise HTTPException(status_code=404, detail="Output file not found")

    return FileResponse(
        job.output_path,
        media_type="application/octet-stream",
        filename=job.output_filename,
    )


# ---------------------------------------------------------------------------
# DELETE /jobs/{job_id}
# ---------------------------------------------------------------------------

@router.delete("/jobs/{job_id}")
async def delete_job(job_id: str, manager: JobManager = Depends(get_manager)):
    """Cancel a job if it is running, then remove it and its files."""
    job = await _require_job(manager, job_id)
    was_completed = job.status == JobStatus.COMPLETED

    deleted = await manager.delete(job_id)
    if deleted is None:
        raise HTTPException(status_code=404, detail="Job not found")

    return {
        "message": "Job deleted successfully",
        "jobId": job_id,
        "wasCompleted": was_completed,
        "filesDeleted": {
            "inputFiles": deleted.input_files,
            "outputFile": deleted.output_file,
        },
    }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def parse_command(raw: Any) -> List[str]:
    """Turn the submitted ffmpegArgs (list or JSON string) into argument tokens."""
    if raw is None or raw == "":
        raise SubmissionError("ffmpegArgs parameter is required")

    args = raw
    if isinstance(raw, str):
        try:
            args = json.loads(raw)
        except ValueError:
            raise SubmissionError("Invalid ffmpegArgs JSON format")

    if not isinstance(args, list):
        raise SubmissionError("ffmpegArgs must be a JSON array of arguments")

    tokens = []
    for arg in args:
        if isinstance(arg, str):
            tokens.append(arg)
        elif isinstance(arg, (int, float)) and not isinstance(arg, bool):
            tokens.append(str(arg))
        else:
            raise SubmissionError(f"Unsupported ffmpegArgs entry: {arg!r}")
    return tokens


def validate_output_filename(raw: Any) -> str:
    """Output names are plain file names inside the job's output directory."""
    if raw is None or raw == "":
        return DEFAULT_OUTPUT_FILENAME
    if not isinstance(raw, str):
        raise SubmissionError("outputFilename must be a string")
    if (
        raw in (".", "..")
        or "/" in raw
        or "\\" in raw
        or "\x00" in raw
        or os.path.basename(raw) != raw
    ):
        raise SubmissionError(f"Invalid outputFilename: {raw!r}")
    return raw


async def save_upload(upload: UploadFile, staging: StagingArea, max_bytes: int) -> str:
    """Copy one upload into the staging area, enforcing the size limit."""
    ext = os.path.splitext(upload.filename or "")[1]
    path = staging.new_upload_path(ext)

    total = 0
    try:
        with open(path, "wb") as dst:
            while True:
                chunk = await upload.read(CHUNK_SIZE)
                if not chunk:
                    break
                total += len(chunk)
                if total > max_bytes:
                    raise HTTPException(
                        status_code=413,
                        detail=f"File too large (max {max_bytes} bytes)",
                    )
                dst.write(chunk)
    except BaseException:
        staging.remove_file(path)
        raise
    return path


def _discard(staging: StagingArea, saved: List[str], job_id: str) -> None:
    staging.remove_inputs(saved)
    staging.remove_output_dir(os.path.join(staging.output_dir, job_id))


async def _require_job(manager: JobManager, job_id: str) -> JobRecord:
    job: Optional[JobRecord] = await manager.get_status(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job
