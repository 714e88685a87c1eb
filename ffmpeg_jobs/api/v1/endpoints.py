"""Endpoint catalogue."""

from fastapi import APIRouter

router = APIRouter()

ENDPOINTS = [
    ("GET", "/health", 'Health check - returns "ready" when service is ready for requests'),
    ("GET", "/endpoints", "List available endpoints"),
    ("POST", "/process", "Start processing job with arbitrary FFmpeg parameters"),
    ("GET", "/jobs/{job_id}", "Get job status and info"),
    ("GET", "/jobs/{job_id}/logs", "Get diagnostic output captured from FFmpeg"),
    ("GET", "/jobs/{job_id}/download", "Download completed job output"),
    ("DELETE", "/jobs/{job_id}", "Cancel/delete job"),
    ("GET", "/jobs", "List all jobs"),
]


@router.get("/endpoints")
async def list_endpoints():
    return {
        "endpoints": [
            {"method": method, "path": path, "description": description}
            for method, path, description in ENDPOINTS
        ]
    }
